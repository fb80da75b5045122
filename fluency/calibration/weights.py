"""
Q-matrix weight allocation for multi-object tasks.

Weight allocation principles:
1. Q-matrix provides the baseline weight for each target's component
2. Primary targets get a 1.5x bonus
3. Harder cognitive processes contribute proportionally less
4. Weights sum to 1 and primary targets hold at least half
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from fluency.core.components import (
    ROLE_CONFIGS,
    CognitiveProcess,
    ComponentCode,
    InteractionModel,
    ObjectRole,
    TaskType,
    process_multiplier,
    q_matrix_entry,
)
from fluency.core.exceptions import InvalidInputError
from fluency.core.models import clamp

PRIMARY_BONUS = 1.5
MIN_PRIMARY_SHARE = 0.5


@dataclass(frozen=True)
class MultiObjectTarget:
    """One object evaluated inside a multi-object task."""

    object_id: str
    component: ComponentCode
    content: str
    is_primary: bool
    cognitive_process: CognitiveProcess
    difficulty: float = 0.0
    discrimination: float = 1.0
    weight: float = 0.0
    role: ObjectRole = ObjectRole.ASSESSMENT

    def __post_init__(self) -> None:
        if self.weight < 0:
            raise InvalidInputError(f"Target {self.object_id!r} has negative weight {self.weight}")

    @property
    def theta_weight(self) -> float:
        """Allocated weight scaled by the role's influence on ability updates."""
        return self.weight * ROLE_CONFIGS[ObjectRole(self.role)].theta_multiplier


@dataclass
class MultiObjectTaskSpec:
    """Weighted targets plus the task metadata the calibration needs."""

    task_id: str
    targets: list[MultiObjectTarget]
    task_type: TaskType
    expected_answer: str
    composite_difficulty: float = 0.0
    task_format: str = "freeform"
    modality: str = "text"
    domain: str = "general"
    is_fluency_task: bool = False
    interaction_model: InteractionModel | None = None
    metadata: dict = field(default_factory=dict)


def allocate_weights(
    targets: Sequence[MultiObjectTarget],
    task_type: TaskType | str,
) -> list[MultiObjectTarget]:
    """
    Allocate Q-matrix weights to targets.

    Args:
        targets: Targets (any existing weight is ignored)
        task_type: Task type for the Q-matrix lookup

    Returns:
        New targets with weights summing to 1
    """
    if not targets:
        return []

    entry = q_matrix_entry(task_type)
    raw = [
        entry.weight_for(t.component)
        * (PRIMARY_BONUS if t.is_primary else 1.0)
        / process_multiplier(t.cognitive_process)
        for t in targets
    ]

    total = sum(raw)
    normalized = [w / total if total > 0 else 1 / len(targets) for w in raw]

    has_primary = any(t.is_primary for t in targets)
    primary_sum = sum(w for w, t in zip(normalized, targets) if t.is_primary)

    if has_primary and primary_sum < MIN_PRIMARY_SHARE:
        boost = MIN_PRIMARY_SHARE / primary_sum
        remaining = 1 - MIN_PRIMARY_SHARE
        secondary_total = sum(w for w, t in zip(normalized, targets) if not t.is_primary)
        secondary_count = sum(1 for t in targets if not t.is_primary)

        weights = []
        for w, t in zip(normalized, targets):
            if t.is_primary:
                weights.append(w * boost)
            elif secondary_total > 0:
                weights.append(w * remaining / secondary_total)
            else:
                weights.append(remaining / secondary_count)
        normalized = weights

    return [replace(t, weight=w) for t, w in zip(targets, normalized)]


def composite_difficulty(targets: Sequence[MultiObjectTarget]) -> float:
    """Weight- and process-adjusted difficulty, clamped to [-3, 3]. Empty -> 0."""
    if not targets:
        return 0.0
    return clamp(
        sum(t.weight * t.difficulty * process_multiplier(t.cognitive_process) for t in targets)
    )
