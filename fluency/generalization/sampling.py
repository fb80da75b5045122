"""
Representative sample selection.

The full usage space is combinatorially large, so practice targets a few
contexts chosen for goal alignment, diversity from what is already covered
and transfer potential to the remaining contexts.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from fluency.core.components import ComponentCode
from fluency.generalization.transfer import NEAR_TRANSFER_MAX_DISTANCE, transfer_distance
from fluency.usage.contexts import UsageContext

if TYPE_CHECKING:
    from config import Settings

DIVERSE_PICKS = 3


class RepresentativeSamplingStrategy(BaseModel):
    """Weights for goal alignment, diversity and transfer potential."""

    goal_weight: float = Field(0.5, ge=0.0, le=1.0)
    diversity_weight: float = Field(0.3, ge=0.0, le=1.0)
    transfer_weight: float = Field(0.2, ge=0.0, le=1.0)
    min_samples_for_generalization: int = Field(3, ge=1)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RepresentativeSamplingStrategy:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_sampling_config())


# Abstract, rule-like components need fewer samples and lean on transfer;
# context-bound ones (LEX, PRAG) lean on goal alignment.
COMPONENT_SAMPLING_STRATEGIES: dict[ComponentCode, RepresentativeSamplingStrategy] = {
    ComponentCode.PHON: RepresentativeSamplingStrategy(
        goal_weight=0.3, diversity_weight=0.3, transfer_weight=0.4, min_samples_for_generalization=3
    ),
    ComponentCode.MORPH: RepresentativeSamplingStrategy(
        goal_weight=0.35, diversity_weight=0.3, transfer_weight=0.35, min_samples_for_generalization=4
    ),
    ComponentCode.LEX: RepresentativeSamplingStrategy(
        goal_weight=0.5, diversity_weight=0.2, transfer_weight=0.3, min_samples_for_generalization=5
    ),
    ComponentCode.SYNT: RepresentativeSamplingStrategy(
        goal_weight=0.4, diversity_weight=0.3, transfer_weight=0.3, min_samples_for_generalization=5
    ),
    ComponentCode.PRAG: RepresentativeSamplingStrategy(
        goal_weight=0.5, diversity_weight=0.35, transfer_weight=0.15, min_samples_for_generalization=6
    ),
}

# Low-transfer components need more samples per unit of coverage gap
SAMPLE_MULTIPLIERS: dict[ComponentCode, float] = {
    ComponentCode.PHON: 0.7,
    ComponentCode.MORPH: 0.8,
    ComponentCode.LEX: 1.2,
    ComponentCode.SYNT: 1.0,
    ComponentCode.PRAG: 1.4,
}


@dataclass(frozen=True)
class SampleScore:
    context: UsageContext
    goal_alignment: float
    diversity: float
    transfer_potential: float
    total: float


def goal_alignment_score(context: UsageContext, goal_contexts: Sequence[UsageContext]) -> float:
    if not goal_contexts:
        return 0.5
    if any(g.context_id == context.context_id for g in goal_contexts):
        return 1.0
    return sum(1 - transfer_distance(context, g).distance for g in goal_contexts) / len(goal_contexts)


def diversity_score(context: UsageContext, covered: Sequence[UsageContext]) -> float:
    """Distance to the nearest covered context (1.0 when nothing is covered)."""
    return min((transfer_distance(context, c).distance for c in covered), default=1.0)


def transfer_potential_score(context: UsageContext, uncovered: Sequence[UsageContext]) -> float:
    """Share of the other uncovered contexts within near-transfer distance."""
    if len(uncovered) <= 1:
        return 0.0
    reachable = sum(
        1
        for other in uncovered
        if other.context_id != context.context_id
        and transfer_distance(context, other).distance <= NEAR_TRANSFER_MAX_DISTANCE
    )
    return reachable / (len(uncovered) - 1)


def score_samples(
    candidates: Sequence[UsageContext],
    goal_contexts: Sequence[UsageContext],
    covered: Sequence[UsageContext],
    strategy: RepresentativeSamplingStrategy,
) -> list[SampleScore]:
    scores = []
    for context in candidates:
        goal = goal_alignment_score(context, goal_contexts)
        diversity = diversity_score(context, covered)
        potential = transfer_potential_score(context, candidates)
        scores.append(
            SampleScore(
                context=context,
                goal_alignment=goal,
                diversity=diversity,
                transfer_potential=potential,
                total=(
                    goal * strategy.goal_weight
                    + diversity * strategy.diversity_weight
                    + potential * strategy.transfer_weight
                ),
            )
        )
    scores.sort(key=lambda s: s.total, reverse=True)
    return scores


def select_representative_samples(
    all_contexts: Sequence[UsageContext],
    goal_contexts: Sequence[UsageContext],
    covered: Sequence[UsageContext],
    strategy: RepresentativeSamplingStrategy,
    max_samples: int = 5,
) -> list[UsageContext]:
    """
    Greedily pick up to max_samples uncovered contexts by weighted score.

    Among the first three picks a context must bring a new domain or a new
    register, unless there are too few candidates to afford skipping.
    """
    covered_ids = {c.context_id for c in covered}
    uncovered = [c for c in all_contexts if c.context_id not in covered_ids]
    if not uncovered:
        return []

    scored = score_samples(uncovered, goal_contexts, covered, strategy)

    selected: list[UsageContext] = []
    used_domains: set[str] = set()
    used_registers: set[str] = set()

    for sample in scored:
        if len(selected) >= max_samples:
            break

        context = sample.context
        if len(selected) < DIVERSE_PICKS:
            is_diverse = context.domain not in used_domains or context.register not in used_registers
            if not is_diverse and len(scored) > max_samples:
                continue

        selected.append(context)
        used_domains.add(context.domain)
        used_registers.add(context.register)

    return selected


def minimum_samples(component: ComponentCode, current_coverage: float, target_coverage: float) -> int:
    """Practice contexts still needed to reach target coverage (0 once reached)."""
    if current_coverage >= target_coverage:
        return 0
    base = COMPONENT_SAMPLING_STRATEGIES[component].min_samples_for_generalization
    gap = target_coverage - current_coverage
    additional = math.ceil(gap * base * 2 * SAMPLE_MULTIPLIERS[component])
    return max(base, additional)
