"""
Core domain models shared by composition, calibration and usage tracking.

LanguageObject and MasteryRecord are snapshots of storage-owned records;
UserThetaProfile is passed by value and replaced, never mutated in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, NamedTuple

from fluency.core.components import ComponentCode, ObjectKind, kind_to_component, to_component

THETA_MIN = -3.0
THETA_MAX = 3.0
MAX_MASTERY_STAGE = 6


def clamp(value: float, low: float = THETA_MIN, high: float = THETA_MAX) -> float:
    """Clamp a value into [low, high]."""
    return max(low, min(high, value))


@dataclass(frozen=True)
class LanguageObject:
    """An atomic learnable unit (word, morpheme, pattern, ...)."""

    id: str
    kind: ObjectKind | str
    content: str
    irt_difficulty: float = 0.0
    irt_discrimination: float = 1.0
    priority: float = 0.5
    frequency: float = 0.5
    relational_density: float = 0.5
    contextual_contribution: float = 0.5
    properties: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @property
    def component(self) -> ComponentCode:
        return kind_to_component(self.kind)

    def with_priority(self, priority: float) -> LanguageObject:
        """Return a copy with a revised priority (the only mutable attribute)."""
        return replace(self, priority=priority)


class Collocation(NamedTuple):
    """Co-occurrence statistics for an object pair."""

    object_a: str
    object_b: str
    npmi: float | None = None
    pmi: float | None = None

    @property
    def score(self) -> float:
        """NPMI when present (non-zero), else raw PMI."""
        return self.npmi if self.npmi else (self.pmi or 0.0)


@dataclass
class MasteryRecord:
    """Per (learner, object) mastery and scheduling state."""

    stage: int = 0
    stability: float = 0.0
    difficulty: float = 5.0
    exposure_count: int = 0
    cue_free_accuracy: float = 0.0
    cue_assisted_accuracy: float = 0.0
    last_review: datetime | None = None
    next_review: datetime | None = None

    def __post_init__(self) -> None:
        self.stage = max(0, min(MAX_MASTERY_STAGE, int(self.stage)))


@dataclass(frozen=True)
class UserThetaProfile:
    """Per-component ability estimates plus a global estimate, each in [-3, 3]."""

    global_theta: float = 0.0
    phonology: float = 0.0
    morphology: float = 0.0
    lexical: float = 0.0
    syntactic: float = 0.0
    pragmatic: float = 0.0

    def theta_for(self, component: ComponentCode | str) -> float:
        return getattr(self, _THETA_FIELDS[to_component(component)])

    def as_dict(self) -> dict[str, float]:
        return {
            "global": self.global_theta,
            **{code.value: self.theta_for(code) for code in ComponentCode},
        }

    def apply(self, delta: ThetaDelta) -> UserThetaProfile:
        """Return a new profile with the delta applied and every ability clamped."""
        changes = {
            _THETA_FIELDS[component]: clamp(self.theta_for(component) + value)
            for component, value in delta.components.items()
        }
        changes["global_theta"] = clamp(self.global_theta + delta.global_delta)
        return replace(self, **changes)


_THETA_FIELDS: dict[ComponentCode, str] = {
    ComponentCode.PHON: "phonology",
    ComponentCode.MORPH: "morphology",
    ComponentCode.LEX: "lexical",
    ComponentCode.SYNT: "syntactic",
    ComponentCode.PRAG: "pragmatic",
}


@dataclass
class ThetaDelta:
    """Aggregated ability change produced by one scored response."""

    components: dict[ComponentCode, float] = field(default_factory=dict)
    global_delta: float = 0.0

    def get(self, component: ComponentCode) -> float:
        return self.components.get(component, 0.0)
