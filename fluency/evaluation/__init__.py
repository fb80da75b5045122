"""
Evaluation Module - Object-specific multi-layer response evaluation.
"""

from fluency.evaluation.layers import (
    DEFAULT_LAYERS,
    AnswerRange,
    EvaluationLayer,
    EvaluationMode,
    HolisticOption,
    LayerLevel,
    ObjectEvaluationConfig,
    ObjectRubric,
    PartialCreditPattern,
    RubricCriterion,
    ScoringGuideLevel,
    default_layers,
)
from fluency.evaluation.multi_layer import (
    BatchEvaluationResult,
    ObjectEvaluationInput,
    ObjectEvaluationResult,
    ThetaInput,
    classify_error,
    evaluate_batch,
    evaluate_object,
    evaluation_to_theta_input,
)
from fluency.evaluation.regex_safety import MAX_RESPONSE_LENGTH, safe_regex_test

__all__ = [
    "DEFAULT_LAYERS",
    "AnswerRange",
    "EvaluationLayer",
    "EvaluationMode",
    "HolisticOption",
    "LayerLevel",
    "ObjectEvaluationConfig",
    "ObjectRubric",
    "PartialCreditPattern",
    "RubricCriterion",
    "ScoringGuideLevel",
    "default_layers",
    "BatchEvaluationResult",
    "ObjectEvaluationInput",
    "ObjectEvaluationResult",
    "ThetaInput",
    "classify_error",
    "evaluate_batch",
    "evaluate_object",
    "evaluation_to_theta_input",
    "MAX_RESPONSE_LENGTH",
    "safe_regex_test",
]
