"""
Transfer distance and probability between usage contexts.

Identical-elements view of transfer: the more features two contexts share,
the more likely a skill practiced in one carries over to the other.

    distance    = 1 - shared / compared features
    probability = min(1, exp(-2 * distance) + 0.3 * automation)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

from fluency.usage.contexts import UsageContext

TransferType = Literal["near", "far"]

DECAY_CONSTANT = 2.0
AUTOMATION_BOOST = 0.3
NEAR_TRANSFER_MAX_DISTANCE = 0.5
FEATURE_DIMENSIONS = ("domain", "register", "modality", "genre")


@dataclass(frozen=True)
class TransferDistance:
    distance: float
    shared_features: tuple[str, ...]
    different_features: tuple[str, ...]


@dataclass(frozen=True)
class TransferEstimate:
    source: UsageContext
    target: UsageContext
    distance: float
    probability: float
    transfer_type: TransferType
    confidence: float
    basis: tuple[str, ...]


def _feature(context: UsageContext, dimension: str) -> str:
    return getattr(context, dimension) or "general"


def transfer_distance(source: UsageContext, target: UsageContext) -> TransferDistance:
    shared, different = [], []
    for dimension in FEATURE_DIMENSIONS:
        src, tgt = _feature(source, dimension), _feature(target, dimension)
        if src == tgt:
            shared.append(f"{dimension}:{src}")
        else:
            different.append(f"{dimension}:{src}→{tgt}")

    return TransferDistance(
        distance=1 - len(shared) / len(FEATURE_DIMENSIONS),
        shared_features=tuple(shared),
        different_features=tuple(different),
    )


def estimate_transfer(
    source: UsageContext,
    target: UsageContext,
    automation_level: float,
) -> TransferEstimate:
    """
    Estimate how likely a skill used in source transfers to target.

    Args:
        source: Context where the skill succeeded
        target: Context not yet practiced
        automation_level: Source automaticity in [0, 1]

    Returns:
        TransferEstimate with probability, near/far type and explanation
    """
    td = transfer_distance(source, target)
    transfer_type: TransferType = "near" if td.distance <= NEAR_TRANSFER_MAX_DISTANCE else "far"
    probability = min(1.0, math.exp(-DECAY_CONSTANT * td.distance) + automation_level * AUTOMATION_BOOST)

    feature_count = len(td.shared_features) + len(td.different_features)
    confidence = min(1.0, feature_count / 5) if feature_count else 0.5

    basis = []
    if td.shared_features:
        basis.append(f"Shared: {', '.join(td.shared_features)}")
    if td.different_features:
        basis.append(f"Differs: {', '.join(td.different_features)}")
    if transfer_type == "near":
        basis.append("Near transfer: high similarity supports automatic transfer")
    else:
        basis.append("Far transfer: requires explicit bridging for successful transfer")

    return TransferEstimate(
        source=source,
        target=target,
        distance=td.distance,
        probability=probability,
        transfer_type=transfer_type,
        confidence=confidence,
        basis=tuple(basis),
    )
