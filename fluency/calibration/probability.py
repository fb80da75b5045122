"""
Response probability models.

- Compensatory MIRT: strength on one component offsets weakness on another
- Conjunctive (DINA-like): every component must be mastered
- Disjunctive (DINO-like): any mastered component suffices
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from fluency.calibration.weights import MultiObjectTarget, MultiObjectTaskSpec
from fluency.core.components import InteractionModel, q_matrix_entry
from fluency.core.models import UserThetaProfile

SLIP_RATE = 0.1
GUESS_RATE = 0.2


def compensatory_probability(
    profile: UserThetaProfile,
    targets: Sequence[MultiObjectTarget],
    composite_difficulty: float,
) -> float:
    """P = sigmoid(sum(a * w * theta) - D)."""
    logit = sum(t.discrimination * t.weight * profile.theta_for(t.component) for t in targets)
    return 1 / (1 + math.exp(-(logit - composite_difficulty)))


def conjunctive_probability(
    profile: UserThetaProfile,
    targets: Sequence[MultiObjectTarget],
    slip_rate: float = SLIP_RATE,
    guess_rate: float = GUESS_RATE,
) -> float:
    all_mastered = all(profile.theta_for(t.component) >= t.difficulty for t in targets)
    return 1 - slip_rate if all_mastered else guess_rate


def disjunctive_probability(
    profile: UserThetaProfile,
    targets: Sequence[MultiObjectTarget],
    slip_rate: float = SLIP_RATE,
    guess_rate: float = GUESS_RATE,
) -> float:
    any_mastered = any(profile.theta_for(t.component) >= t.difficulty for t in targets)
    return 1 - slip_rate if any_mastered else guess_rate


def expected_probability(
    profile: UserThetaProfile,
    spec: MultiObjectTaskSpec,
    model: InteractionModel | str | None = None,
) -> float:
    """
    Expected probability of a correct response.

    The model is chosen from the explicit override, then the task spec,
    then the task type's Q-matrix row.
    """
    chosen = InteractionModel(
        model or spec.interaction_model or q_matrix_entry(spec.task_type).interaction_model
    )

    if chosen is InteractionModel.CONJUNCTIVE:
        return conjunctive_probability(profile, spec.targets)
    if chosen is InteractionModel.DISJUNCTIVE:
        return disjunctive_probability(profile, spec.targets)
    return compensatory_probability(profile, spec.targets, spec.composite_difficulty)
