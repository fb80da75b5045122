"""
FSRS-4 review scheduling for mastery records.

Stability is in days; difficulty uses the FSRS 1-10 scale (MasteryRecord
defaults to 5). Ratings: 1 Again, 2 Hard, 3 Good, 4 Easy.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

# Default FSRS parameters
FSRS_PARAMS = {
    "w": [
        0.4,    # w0: initial stability for Again
        0.6,    # w1: initial stability for Hard
        2.4,    # w2: initial stability for Good
        5.8,    # w3: initial stability for Easy
        4.93,   # w4: difficulty decay
        0.94,   # w5: stability decay
        0.86,   # w6: stability factor
        0.01,   # w7: difficulty-stability factor
        1.49,   # w8: hard penalty
        0.14,   # w9: easy bonus
        0.94,   # w10: forgetting curve exponent
        2.18,   # w11: fail relearn factor
        0.05,   # w12: hard interval factor
        0.34,   # w13: easy interval factor
        1.26,   # w14: stability growth
        0.29,   # w15: difficulty growth
        2.61,   # w16: short-term stability
    ],
    "requestRetention": 0.90,
    "maximumInterval": 365,
}

RATING_AGAIN = 1
RATING_HARD = 2
RATING_GOOD = 3
RATING_EASY = 4

MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0


def rating_for(correct: bool, partial_credit: float) -> int:
    """Easy for a near-perfect correct answer, Good for any other correct answer, else Again."""
    if not correct:
        return RATING_AGAIN
    return RATING_EASY if partial_credit >= 0.95 else RATING_GOOD


@dataclass(frozen=True)
class ScheduleUpdate:
    rating: int
    stability: float
    difficulty: float
    interval_days: int
    next_review: datetime


class ReviewScheduler:
    """FSRS-4 scheduler over (stability, difficulty, last_review)."""

    def __init__(self, params: dict | None = None):
        self.params = params or FSRS_PARAMS
        self.w = self.params["w"]
        self.request_retention = self.params["requestRetention"]
        self.max_interval = self.params["maximumInterval"]

    def review(
        self,
        stability: float,
        difficulty: float,
        last_review: datetime | None,
        rating: int,
        now: datetime,
    ) -> ScheduleUpdate:
        """Apply one rated review and return the new schedule."""
        if stability <= 0 or last_review is None:
            new_stability = self._initial_stability(rating)
            new_difficulty = self._initial_difficulty(rating)
        else:
            elapsed_days = max(0.0, (now - last_review).total_seconds() / 86400)
            retrievability = math.pow(0.9, elapsed_days / stability)
            if rating == RATING_AGAIN:
                new_stability = self._next_forget_stability(difficulty, stability, retrievability)
            else:
                new_stability = self._next_recall_stability(difficulty, stability, retrievability, rating)
            new_difficulty = self._next_difficulty(difficulty, rating)

        interval = self._next_interval(new_stability)
        return ScheduleUpdate(
            rating=rating,
            stability=new_stability,
            difficulty=new_difficulty,
            interval_days=interval,
            next_review=now + timedelta(days=interval),
        )

    def _initial_stability(self, rating: int) -> float:
        return self.w[rating - 1]

    def _initial_difficulty(self, rating: int) -> float:
        # Again -> hardest, Easy -> easiest
        return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, MAX_DIFFICULTY - (rating - 1) * 3))

    def _next_difficulty(self, d: float, rating: int) -> float:
        return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, d - (rating - 3)))

    def _next_recall_stability(self, d: float, s: float, r: float, rating: int) -> float:
        hard_penalty = self.w[8] if rating == RATING_HARD else 1.0
        easy_bonus = self.w[9] if rating == RATING_EASY else 1.0

        new_s = s * (
            1
            + math.exp(self.w[14])
            * (11 - d)
            * math.pow(s, -self.w[15])
            * (math.exp((1 - r) * self.w[16]) - 1)
            * hard_penalty
            * easy_bonus
        )
        return min(self.max_interval, max(1, new_s))

    def _next_forget_stability(self, d: float, s: float, r: float) -> float:
        new_s = (
            self.w[11]
            * math.pow(d, -self.w[12])
            * (math.pow(s + 1, self.w[13]) - 1)
            * math.exp((1 - r) * self.w[14])
        )
        return max(1, min(s, new_s))

    def _next_interval(self, stability: float) -> int:
        interval = stability * math.log(self.request_retention) / math.log(0.9)
        return max(1, min(self.max_interval, round(interval)))


def apply_schedule(mastery, update: ScheduleUpdate, now: datetime):
    """Return a copy of a MasteryRecord with the new schedule applied."""
    return replace(
        mastery,
        stability=update.stability,
        difficulty=update.difficulty,
        last_review=now,
        next_review=update.next_review,
    )
