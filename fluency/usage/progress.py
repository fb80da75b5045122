"""Goal-level usage-space progress across the five components."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from fluency.core.components import ComponentCode
from fluency.usage.tracker import ObjectUsageSpace

READINESS_WEIGHTS: dict[ComponentCode, float] = {
    ComponentCode.LEX: 0.35,
    ComponentCode.SYNT: 0.25,
    ComponentCode.PRAG: 0.20,
    ComponentCode.MORPH: 0.12,
    ComponentCode.PHON: 0.08,
}

CRITICAL_GAP_COVERAGE = 0.5
MAX_CRITICAL_GAPS = 5
MAX_RECOMMENDATIONS = 5


@dataclass(frozen=True)
class CoverageGap:
    object_id: str
    missing_contexts: tuple[str, ...]


@dataclass
class ComponentCoverage:
    total_objects: int = 0
    objects_with_full_coverage: int = 0
    average_coverage: float = 0.0
    critical_gaps: list[CoverageGap] = field(default_factory=list)


@dataclass(frozen=True)
class ProgressRecommendation:
    priority: int
    component: ComponentCode
    object_ids: tuple[str, ...]
    target_contexts: tuple[str, ...]
    reason: str


@dataclass
class UsageProgress:
    component_coverage: dict[ComponentCode, ComponentCoverage]
    overall_readiness: float
    recommendations: list[ProgressRecommendation]


def calculate_usage_progress(
    spaces_by_component: Mapping[ComponentCode, Sequence[ObjectUsageSpace]],
) -> UsageProgress:
    """
    Summarize coverage per component and overall goal readiness.

    Args:
        spaces_by_component: Usage spaces of a goal's objects grouped by component

    Returns:
        UsageProgress with per-component coverage, weighted readiness and
        up to five recommendations (lowest coverage first)
    """
    coverage: dict[ComponentCode, ComponentCoverage] = {}

    for component in ComponentCode:
        spaces = spaces_by_component.get(component, ())
        summary = ComponentCoverage(total_objects=len(spaces))
        gaps = []

        for space in spaces:
            if space.coverage_ratio >= 1.0:
                summary.objects_with_full_coverage += 1
            elif space.coverage_ratio < CRITICAL_GAP_COVERAGE:
                successful = set(space.successful_ids)
                gaps.append(
                    CoverageGap(
                        object_id=space.object_id,
                        missing_contexts=tuple(t for t in space.target_contexts if t not in successful),
                    )
                )

        if spaces:
            summary.average_coverage = sum(s.coverage_ratio for s in spaces) / len(spaces)
        summary.critical_gaps = gaps[:MAX_CRITICAL_GAPS]
        coverage[component] = summary

    overall = sum(coverage[c].average_coverage * w for c, w in READINESS_WEIGHTS.items())

    return UsageProgress(
        component_coverage=coverage,
        overall_readiness=overall,
        recommendations=_recommendations(coverage),
    )


def _recommendations(coverage: Mapping[ComponentCode, ComponentCoverage]) -> list[ProgressRecommendation]:
    recommendations = []
    for component, summary in sorted(coverage.items(), key=lambda item: item[1].average_coverage):
        if not summary.critical_gaps:
            continue

        missing: list[str] = []
        for gap in summary.critical_gaps:
            missing.extend(c for c in gap.missing_contexts if c not in missing)

        recommendations.append(
            ProgressRecommendation(
                priority=len(recommendations) + 1,
                component=component,
                object_ids=tuple(g.object_id for g in summary.critical_gaps),
                target_contexts=tuple(missing[:3]),
                reason=f"Low coverage ({summary.average_coverage:.0%}) in {component.value}",
            )
        )

    return recommendations[:MAX_RECOMMENDATIONS]
