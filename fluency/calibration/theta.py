"""
Multidimensional ability updates.

Multivariate Elo-style update per target:

    delta = K * w * r * (observed - expected) * (1 - |theta| / 3) * a

where r is the target role's multiplier (assessment 1.0, practice 0.6,
reinforcement 0.3, incidental 0).

Per-component deltas are summed across targets and the global delta is the
weight-normalized mean. Every delta is bounded by K in magnitude.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from fluency.calibration.probability import expected_probability
from fluency.calibration.scoring import MultiComponentEvaluation, MultiObjectScoringConfig
from fluency.calibration.weights import MultiObjectTaskSpec
from fluency.core.components import ComponentCode
from fluency.core.models import THETA_MAX, ThetaDelta, UserThetaProfile, clamp


@dataclass(frozen=True)
class ThetaContribution:
    component: ComponentCode
    theta_delta: float
    weight: float
    source_object_id: str


def boundary_decay(theta: float) -> float:
    return max(0.0, 1 - abs(theta) / THETA_MAX)


def theta_contributions(
    profile: UserThetaProfile,
    spec: MultiObjectTaskSpec,
    evaluation: MultiComponentEvaluation,
    config: MultiObjectScoringConfig | None = None,
) -> list[ThetaContribution]:
    """
    Per-target ability contributions for one evaluated response.

    Args:
        profile: Current ability profile (read only)
        spec: Weighted task spec
        evaluation: Result of evaluate_response for the same spec
        config: Learning rate and optional interaction-model override

    Returns:
        One contribution per target, in target order
    """
    config = config or MultiObjectScoringConfig()
    lr = config.learning_rate
    expected = expected_probability(profile, spec, config.interaction_model)

    contributions = []
    for target, component_eval in zip(spec.targets, evaluation.component_evaluations):
        delta = (
            lr
            * target.theta_weight
            * (component_eval.partial_credit - expected)
            * boundary_decay(profile.theta_for(target.component))
            * target.discrimination
        )
        contributions.append(
            ThetaContribution(
                component=target.component,
                theta_delta=clamp(delta, -lr, lr),
                weight=target.theta_weight,
                source_object_id=target.object_id,
            )
        )
    return contributions


def aggregate_contributions(
    contributions: Sequence[ThetaContribution],
    learning_rate: float,
) -> ThetaDelta:
    """Sum contributions per component and average them into a global delta, each bounded by the learning rate."""
    by_component: dict[ComponentCode, float] = {}
    for c in contributions:
        by_component[c.component] = by_component.get(c.component, 0.0) + c.theta_delta

    components = {
        component: clamp(value, -learning_rate, learning_rate)
        for component, value in by_component.items()
    }

    total_weight = sum(c.weight for c in contributions)
    global_delta = 0.0
    if total_weight > 0:
        global_delta = sum(c.weight * c.theta_delta for c in contributions) / total_weight

    return ThetaDelta(
        components=components,
        global_delta=clamp(global_delta, -learning_rate, learning_rate),
    )
