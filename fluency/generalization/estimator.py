"""
Generalization Estimator.

Combines direct coverage (goal contexts practiced successfully) with
inferred coverage (goal contexts reachable by transfer from a practiced
one) and recommends the next contexts to practice.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from loguru import logger

from fluency.core.components import ComponentCode
from fluency.generalization.sampling import (
    COMPONENT_SAMPLING_STRATEGIES,
    RepresentativeSamplingStrategy,
    select_representative_samples,
)
from fluency.generalization.transfer import TransferEstimate, estimate_transfer
from fluency.usage.contexts import UsageContext, resolve_contexts, target_contexts_for_goal
from fluency.usage.tracker import ObjectUsageSpace, UsageSpaceTracker

MIN_INFERRED_PROBABILITY = 0.3
DEFAULT_RECOMMENDATIONS = 3


@dataclass
class GeneralizationEstimate:
    object_id: str
    component: ComponentCode
    direct_coverage: float
    estimated_total_coverage: float
    goal_aligned_coverage: float
    automation_level: float
    directly_covered: list[UsageContext] = field(default_factory=list)
    inferred_coverage: list[TransferEstimate] = field(default_factory=list)
    recommended_next_contexts: list[UsageContext] = field(default_factory=list)


def estimate_generalization(
    space: ObjectUsageSpace,
    goal_contexts: Sequence[UsageContext],
    component: ComponentCode | None = None,
    max_recommendations: int = DEFAULT_RECOMMENDATIONS,
    strategy: RepresentativeSamplingStrategy | None = None,
) -> GeneralizationEstimate:
    """
    Estimate how far an object's successful usage generalizes to goal contexts.

    Args:
        space: Object's usage space
        goal_contexts: Contexts the learner's goal requires
        component: Component (defaults to the usage space's component)
        max_recommendations: Number of next contexts to recommend
        strategy: Sampling weights for the recommendations (defaults to the
            component's own strategy)

    Returns:
        GeneralizationEstimate; inferred coverage keeps only the best source
        per uncovered goal, when its transfer probability is at least 0.3
    """
    component = component or space.component
    directly_covered = resolve_contexts(space.successful_ids)
    covered_ids = {c.context_id for c in directly_covered}

    direct_coverage = (
        sum(1 for g in goal_contexts if g.context_id in covered_ids) / len(goal_contexts) if goal_contexts else 0.0
    )

    # Mean success rate in successful contexts approximates automaticity
    rates = [c.success_rate for c in space.successful_contexts]
    automation = sum(rates) / len(rates) if rates else 0.0

    inferred: list[TransferEstimate] = []
    for target in goal_contexts:
        if target.context_id in covered_ids:
            continue
        best: TransferEstimate | None = None
        for source in directly_covered:
            estimate = estimate_transfer(source, target, automation)
            if best is None or estimate.probability > best.probability:
                best = estimate
        if best is not None and best.probability >= MIN_INFERRED_PROBABILITY:
            inferred.append(best)

    inferred_ratio = sum(t.probability for t in inferred) / len(goal_contexts) if goal_contexts else 0.0

    recommended = select_representative_samples(
        goal_contexts,
        goal_contexts,
        directly_covered,
        strategy or COMPONENT_SAMPLING_STRATEGIES[component],
        max_recommendations,
    )

    return GeneralizationEstimate(
        object_id=space.object_id,
        component=component,
        direct_coverage=direct_coverage,
        estimated_total_coverage=min(1.0, direct_coverage + inferred_ratio),
        goal_aligned_coverage=goal_aligned_coverage(covered_ids, inferred, goal_contexts),
        automation_level=automation,
        directly_covered=directly_covered,
        inferred_coverage=inferred,
        recommended_next_contexts=recommended,
    )


def goal_aligned_coverage(
    covered_ids: set[str],
    inferred: Sequence[TransferEstimate],
    goal_contexts: Sequence[UsageContext],
) -> float:
    """Direct goals count 1.0, inferred goals probability x confidence."""
    if not goal_contexts:
        return 1.0

    by_target = {t.target.context_id: t for t in inferred}
    total = 0.0
    for goal in goal_contexts:
        if goal.context_id in covered_ids:
            total += 1.0
        elif goal.context_id in by_target:
            t = by_target[goal.context_id]
            total += t.probability * t.confidence
    return total / len(goal_contexts)


class GeneralizationEstimator:
    """Generalization estimates for objects tracked by a UsageSpaceTracker."""

    def __init__(
        self,
        tracker: UsageSpaceTracker,
        max_recommendations: int = DEFAULT_RECOMMENDATIONS,
        strategy: RepresentativeSamplingStrategy | None = None,
    ):
        self.tracker = tracker
        self.max_recommendations = max_recommendations
        self.strategy = strategy

    def estimate(
        self,
        object_id: str,
        component: ComponentCode = ComponentCode.LEX,
        domain: str | None = None,
        goal_contexts: Sequence[UsageContext] | None = None,
    ) -> GeneralizationEstimate:
        space = self.tracker.get_usage_space(object_id, component, domain)
        if goal_contexts is None:
            goal_contexts = resolve_contexts(target_contexts_for_goal(domain or self.tracker.default_domain))

        estimate = estimate_generalization(space, goal_contexts, component, self.max_recommendations, self.strategy)
        logger.debug(
            f"Generalization for {object_id}: direct={estimate.direct_coverage:.2f} "
            f"total={estimate.estimated_total_coverage:.2f}"
        )
        return estimate
