"""
Economic value of language objects for task composition.

Converts an object plus its mastery record into:
- learning value (how much practicing it now is worth)
- cognitive cost (how much working memory it consumes)
- role affinity (which task roles suit its current stage)
- urgency and exposure balance signals
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from fluency.core.components import ComponentCode, ObjectRole
from fluency.core.models import Collocation, LanguageObject, MasteryRecord

# Lower mastery = more to gain from practice
MASTERY_LEARNING_FACTORS: dict[int, float] = {
    0: 1.0,
    1: 0.9,
    2: 0.7,
    3: 0.5,
    4: 0.3,
    5: 0.15,
    6: 0.05,
}

NEUTRAL_EXPOSURE_BALANCE = 0.5


@dataclass
class EconomicValue:
    """Derived value/cost signals for one object in one composition call."""

    object_id: str
    component: ComponentCode
    learning_value: float
    cognitive_cost: float
    synergy_map: dict[str, float] = field(default_factory=dict)
    role_affinity: dict[ObjectRole, float] = field(default_factory=dict)
    urgency: float = 0.0
    exposure_balance: float = NEUTRAL_EXPOSURE_BALANCE
    automaticity: float = 0.0


@dataclass
class ObjectCandidate:
    """A task-scoped join of object, mastery and economic value. Never persisted."""

    object: LanguageObject
    mastery: MasteryRecord
    value: EconomicValue

    @property
    def id(self) -> str:
        return self.object.id

    @property
    def component(self) -> ComponentCode:
        return self.object.component

    def synergy_with(self, other_id: str) -> float:
        return self.value.synergy_map.get(other_id, 0.0)


# ============================================================================
# COMPONENT SIGNALS
# ============================================================================


def mastery_learning_factor(stage: int) -> float:
    return MASTERY_LEARNING_FACTORS.get(stage, 0.5)


def review_urgency(mastery: MasteryRecord, now: datetime) -> float:
    """Urgency from the spaced-repetition schedule."""
    if mastery.next_review is None:
        return 0.5

    hours_until_due = (mastery.next_review - now).total_seconds() / 3600
    if hours_until_due < 0:
        return min(1.0, 0.7 + abs(hours_until_due) * 0.01)
    if hours_until_due < 24:
        return 0.5
    if hours_until_due < 72:
        return 0.3
    return 0.1


def automaticity_level(mastery: MasteryRecord) -> float:
    """Blend of cue-free accuracy, exposure saturation (20) and stability (30 days)."""
    exposure_factor = min(1.0, mastery.exposure_count / 20)
    stability_factor = min(1.0, mastery.stability / 30)
    return mastery.cue_free_accuracy * 0.5 + exposure_factor * 0.25 + stability_factor * 0.25


def role_affinity(mastery: MasteryRecord, automaticity: float) -> dict[ObjectRole, float]:
    stage = mastery.stage
    if stage <= 3:
        assessment = 0.8
    elif stage <= 4:
        assessment = 0.5
    else:
        assessment = 0.2

    if automaticity > 0.7:
        incidental = 0.9
    elif automaticity > 0.4:
        incidental = 0.5
    else:
        incidental = 0.2

    return {
        ObjectRole.ASSESSMENT: assessment,
        ObjectRole.PRACTICE: 0.9 if stage <= 4 else 0.4,
        ObjectRole.REINFORCEMENT: 0.8 if 3 <= stage <= 5 else 0.3,
        ObjectRole.INCIDENTAL: incidental,
    }


def deadline_urgency(deadline: datetime, now: datetime) -> float:
    days = (deadline - now).total_seconds() / 86400
    if days < 7:
        return 1.0
    if days < 30:
        return 0.7
    if days < 90:
        return 0.4
    return 0.2


# ============================================================================
# ECONOMIC VALUE
# ============================================================================


def calculate_economic_value(
    obj: LanguageObject,
    mastery: MasteryRecord,
    synergy: Mapping[str, float] | None = None,
    now: datetime | None = None,
    goal_deadline: datetime | None = None,
) -> EconomicValue:
    """
    Compute the economic value of practicing an object right now.

    Args:
        obj: Object snapshot
        mastery: Learner's mastery record for the object
        synergy: Related object id -> synergy score
        now: Reference time (defaults to datetime.now())
        goal_deadline: Optional goal deadline for deadline urgency

    Returns:
        EconomicValue with learning value, cost, affinities and urgency
    """
    now = now or datetime.now()

    urgency_from_review = review_urgency(mastery, now)
    learning_value = (
        mastery_learning_factor(mastery.stage) * 0.3
        + urgency_from_review * 0.3
        + obj.priority * 0.25
        + obj.frequency * 0.5 * 0.15
    )

    automaticity = automaticity_level(mastery)
    difficulty_factor = (obj.irt_difficulty + 3) / 6
    familiarity_cost = 1 - mastery.exposure_count / (mastery.exposure_count + 10)
    cognitive_cost = difficulty_factor * 0.4 + familiarity_cost * 0.3 + (1 - automaticity) * 0.3

    urgency = urgency_from_review
    if goal_deadline is not None:
        urgency = max(urgency, deadline_urgency(goal_deadline, now))

    return EconomicValue(
        object_id=obj.id,
        component=obj.component,
        learning_value=learning_value,
        cognitive_cost=cognitive_cost,
        synergy_map=dict(synergy or {}),
        role_affinity=role_affinity(mastery, automaticity),
        urgency=urgency,
        exposure_balance=NEUTRAL_EXPOSURE_BALANCE,
        automaticity=automaticity,
    )


def collocation_synergy(npmi: float | None, pmi: float | None) -> float:
    """Synergy score from collocation statistics: NPMI when present, else scaled PMI."""
    if npmi:
        return npmi
    return (pmi or 0.0) * 0.3


def build_candidate_pool(
    objects: Iterable[LanguageObject],
    masteries: Mapping[str, MasteryRecord],
    collocations: Iterable[Collocation] = (),
    now: datetime | None = None,
    goal_deadline: datetime | None = None,
) -> list[ObjectCandidate]:
    """
    Join objects with mastery and collocation synergy into composition candidates.

    Args:
        objects: Objects for the goal, in ranking order
        masteries: Object id -> mastery record (missing ids get a fresh record)
        collocations: Pair statistics for the goal
        now: Reference time
        goal_deadline: Optional goal deadline

    Returns:
        Candidates in the same order as objects
    """
    objects = list(objects)
    synergy_maps: dict[str, dict[str, float]] = {obj.id: {} for obj in objects}

    for object_a, object_b, npmi, pmi in map(Collocation._make, collocations):
        score = collocation_synergy(npmi, pmi)
        if object_a in synergy_maps:
            synergy_maps[object_a][object_b] = score
        if object_b in synergy_maps:
            synergy_maps[object_b][object_a] = score

    candidates = []
    for obj in objects:
        mastery = masteries.get(obj.id) or MasteryRecord()
        value = calculate_economic_value(obj, mastery, synergy_maps[obj.id], now, goal_deadline)
        candidates.append(ObjectCandidate(object=obj, mastery=mastery, value=value))

    logger.debug(f"Built candidate pool of {len(candidates)} objects")
    return candidates
