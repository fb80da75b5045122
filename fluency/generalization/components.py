"""
Component-specific generalization over each component's own usage dimensions.

Components generalize differently:
- PHON: rules are abstract and transfer across word positions
- MORPH: productive affixes transfer to novel roots
- LEX: context-specific, low transfer
- SYNT: medium transfer, genre-dependent
- PRAG: lowest transfer, highly context-specific
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from fluency.core.components import ComponentCode


@dataclass(frozen=True)
class TransferProfile:
    near_rate: float
    far_coverage: float
    confidence: float


COMPONENT_TRANSFER_PROFILES: dict[ComponentCode, TransferProfile] = {
    ComponentCode.PHON: TransferProfile(near_rate=0.5, far_coverage=0.1, confidence=0.8),
    ComponentCode.MORPH: TransferProfile(near_rate=0.4, far_coverage=0.15, confidence=0.75),
    ComponentCode.LEX: TransferProfile(near_rate=0.25, far_coverage=0.05, confidence=0.7),
    ComponentCode.SYNT: TransferProfile(near_rate=0.35, far_coverage=0.1, confidence=0.7),
    ComponentCode.PRAG: TransferProfile(near_rate=0.2, far_coverage=0.02, confidence=0.6),
}


@dataclass(frozen=True)
class UsageDimension:
    name: str
    weight: float
    # Untrained share credited once at least one value is trained
    within_transfer: float = 0.0


COMPONENT_DIMENSIONS: dict[ComponentCode, tuple[UsageDimension, ...]] = {
    ComponentCode.PHON: (
        UsageDimension("positions", 1 / 3, within_transfer=0.7),
        UsageDimension("applicable_words", 1 / 3),
        UsageDimension("modality", 1 / 3),
    ),
    ComponentCode.MORPH: (
        UsageDimension("combinable_roots", 0.6, within_transfer=0.6),
        UsageDimension("pos_transformations", 0.4),
    ),
    ComponentCode.LEX: (
        UsageDimension("collocations", 0.5),
        UsageDimension("registers", 0.25),
        UsageDimension("domains", 0.25),
    ),
    ComponentCode.SYNT: (
        UsageDimension("verb_types", 0.4),
        UsageDimension("text_types", 0.3),
        UsageDimension("complexity_levels", 0.3),
    ),
    ComponentCode.PRAG: (
        UsageDimension("communicative_purposes", 0.3),
        UsageDimension("formality_levels", 0.25),
        UsageDimension("interlocutor_relations", 0.25),
        UsageDimension("politeness_strategies", 0.2),
    ),
}


@dataclass(frozen=True)
class CoverageBreakdown:
    direct_coverage: float
    near_transfer_coverage: float
    far_transfer_coverage: float
    total_estimated_coverage: float
    confidence: float


def dimension_coverage(dimension: UsageDimension, trained: Sequence[str], total: Sequence[str]) -> float:
    if not total:
        return 0.0
    ratio = min(1.0, len(trained) / len(total))
    if dimension.within_transfer and trained:
        return min(1.0, ratio + (1 - ratio) * dimension.within_transfer)
    return ratio


def estimate_component_generalization(
    component: ComponentCode,
    trained: Mapping[str, Sequence[str]],
    total: Mapping[str, Sequence[str]],
) -> CoverageBreakdown:
    """
    Coverage of a component's usage dimensions, direct plus transfer.

    Args:
        component: Component whose dimension list applies
        trained: dimension name -> values practiced so far
        total: dimension name -> all values in the goal's usage space

    Returns:
        CoverageBreakdown (missing dimensions count as uncovered)
    """
    profile = COMPONENT_TRANSFER_PROFILES[component]
    direct = sum(
        dim.weight * dimension_coverage(dim, trained.get(dim.name, ()), total.get(dim.name, ()))
        for dim in COMPONENT_DIMENSIONS[component]
    )
    near = (1 - direct) * profile.near_rate

    return CoverageBreakdown(
        direct_coverage=direct,
        near_transfer_coverage=near,
        far_transfer_coverage=profile.far_coverage,
        total_estimated_coverage=min(1.0, direct + near + profile.far_coverage),
        confidence=profile.confidence,
    )
