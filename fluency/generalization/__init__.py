"""
Generalization Module - Transfer and coverage estimation over usage contexts.
"""

from fluency.generalization.components import (
    COMPONENT_DIMENSIONS,
    COMPONENT_TRANSFER_PROFILES,
    CoverageBreakdown,
    estimate_component_generalization,
)
from fluency.generalization.estimator import (
    GeneralizationEstimate,
    GeneralizationEstimator,
    estimate_generalization,
)
from fluency.generalization.sampling import (
    COMPONENT_SAMPLING_STRATEGIES,
    RepresentativeSamplingStrategy,
    minimum_samples,
    select_representative_samples,
)
from fluency.generalization.transfer import (
    TransferEstimate,
    estimate_transfer,
    transfer_distance,
)

__all__ = [
    "COMPONENT_DIMENSIONS",
    "COMPONENT_TRANSFER_PROFILES",
    "CoverageBreakdown",
    "estimate_component_generalization",
    "GeneralizationEstimate",
    "GeneralizationEstimator",
    "estimate_generalization",
    "COMPONENT_SAMPLING_STRATEGIES",
    "RepresentativeSamplingStrategy",
    "minimum_samples",
    "select_representative_samples",
    "TransferEstimate",
    "estimate_transfer",
    "transfer_distance",
]
