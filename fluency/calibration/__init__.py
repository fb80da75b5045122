"""
Calibration Module - Multi-component scoring and ability updates.

Components:
- weights: Q-matrix weight allocation and composite difficulty
- probability: compensatory / conjunctive / disjunctive response models
- scoring: similarity-based partial credit and error classification
- theta: per-target contributions and bounded aggregation
- feedback: component and multi-component feedback text
- schedule: FSRS review scheduling
- engine: CalibrationEngine tying it all together
"""

from fluency.calibration.engine import (
    DEFAULT_STAGE_THRESHOLDS,
    CalibrationEngine,
    CalibrationOutcome,
    MasteryUpdate,
    StageThresholds,
    check_stage_transition,
    create_multi_object_task_spec,
    should_use_multi_object_processing,
)
from fluency.calibration.feedback import component_feedback, multi_component_feedback
from fluency.calibration.probability import (
    GUESS_RATE,
    SLIP_RATE,
    compensatory_probability,
    conjunctive_probability,
    disjunctive_probability,
    expected_probability,
)
from fluency.calibration.schedule import ReviewScheduler, rating_for
from fluency.calibration.scoring import (
    ComponentEvaluation,
    ErrorType,
    MultiComponentEvaluation,
    MultiObjectScoringConfig,
    detect_error_type,
    evaluate_component,
    evaluate_response,
)
from fluency.calibration.theta import ThetaContribution, aggregate_contributions, theta_contributions
from fluency.calibration.weights import (
    MultiObjectTarget,
    MultiObjectTaskSpec,
    allocate_weights,
    composite_difficulty,
)

__all__ = [
    "DEFAULT_STAGE_THRESHOLDS",
    "CalibrationEngine",
    "CalibrationOutcome",
    "MasteryUpdate",
    "StageThresholds",
    "check_stage_transition",
    "create_multi_object_task_spec",
    "should_use_multi_object_processing",
    "component_feedback",
    "multi_component_feedback",
    "GUESS_RATE",
    "SLIP_RATE",
    "compensatory_probability",
    "conjunctive_probability",
    "disjunctive_probability",
    "expected_probability",
    "ReviewScheduler",
    "rating_for",
    "ComponentEvaluation",
    "ErrorType",
    "MultiComponentEvaluation",
    "MultiObjectScoringConfig",
    "detect_error_type",
    "evaluate_component",
    "evaluate_response",
    "ThetaContribution",
    "aggregate_contributions",
    "theta_contributions",
    "MultiObjectTarget",
    "MultiObjectTaskSpec",
    "allocate_weights",
    "composite_difficulty",
]
