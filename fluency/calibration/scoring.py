"""
Multi-component response scoring.

Each target is scored against the expected answer by normalized Levenshtein
similarity. Strictness sets the thresholds for partial credit, and near
misses are classified as omission, addition, ordering, form or substitution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field

from fluency.calibration.weights import MultiObjectTarget, MultiObjectTaskSpec
from fluency.core.components import ComponentCode, InteractionModel
from fluency.core.text import normalize_text, similarity

if TYPE_CHECKING:
    from config import Settings

Strictness = Literal["lenient", "normal", "strict"]

EXACT_MATCH_THRESHOLD = 0.95

# strictness -> (high, medium)
STRICTNESS_THRESHOLDS: dict[str, tuple[float, float]] = {
    "lenient": (0.8, 0.6),
    "normal": (0.85, 0.7),
    "strict": (0.9, 0.8),
}


class MultiObjectScoringConfig(BaseModel):
    """Scoring and ability-update settings for one response."""

    strictness: Strictness = "normal"
    partial_credit_enabled: bool = True
    learning_rate: float = Field(0.1, gt=0.0, le=1.0, description="K for ability updates")
    interaction_model: InteractionModel | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> MultiObjectScoringConfig:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_scoring_config())


class ErrorType(str, Enum):
    OMISSION = "omission"
    SUBSTITUTION = "substitution"
    ADDITION = "addition"
    ORDERING = "ordering"
    FORM = "form"
    USAGE = "usage"


@dataclass
class ComponentEvaluation:
    object_id: str
    component: ComponentCode
    correct: bool
    partial_credit: float
    feedback: str
    error_type: ErrorType | None = None
    correction: str | None = None


@dataclass
class MultiComponentEvaluation:
    overall_correct: bool
    composite_score: float
    component_evaluations: list[ComponentEvaluation] = field(default_factory=list)
    feedback: str = ""
    explanation: str = ""


def normalize_response(text: str) -> str:
    return normalize_text(text, lowercase=True)


def detect_error_type(response: str, expected: str) -> ErrorType:
    """Classify a near-miss response."""
    norm_response = normalize_response(response)
    norm_expected = normalize_response(expected)

    if len(norm_response) < len(norm_expected) * 0.5:
        return ErrorType.OMISSION
    if len(norm_response) > len(norm_expected) * 1.5:
        return ErrorType.ADDITION

    response_words = norm_response.split(" ")
    expected_words = norm_expected.split(" ")
    shared = [w for w in response_words if w in expected_words]
    if len(shared) == len(expected_words) and norm_response != norm_expected:
        return ErrorType.ORDERING

    # Morphological: every expected stem (first 60%) starts some response word
    stems = [w[: int(len(w) * 0.6)] for w in expected_words]
    if all(any(rw.startswith(stem) for rw in response_words) for stem in stems) and (
        norm_response != norm_expected
    ):
        return ErrorType.FORM

    return ErrorType.SUBSTITUTION


def evaluate_component(
    response: str,
    expected: str,
    target: MultiObjectTarget,
    config: MultiObjectScoringConfig,
) -> ComponentEvaluation:
    """Score one target against the expected answer."""
    score = similarity(normalize_response(response), normalize_response(expected))
    component = target.component.value

    if score >= EXACT_MATCH_THRESHOLD:
        return ComponentEvaluation(
            object_id=target.object_id,
            component=target.component,
            correct=True,
            partial_credit=1.0,
            feedback=f"Correct {component} usage.",
        )

    high, medium = STRICTNESS_THRESHOLDS[config.strictness]

    if config.partial_credit_enabled and score >= high:
        return ComponentEvaluation(
            object_id=target.object_id,
            component=target.component,
            correct=True,
            partial_credit=score,
            feedback=f"Good {component} - minor variation detected.",
            correction=expected,
        )

    if config.partial_credit_enabled and score >= medium:
        return ComponentEvaluation(
            object_id=target.object_id,
            component=target.component,
            correct=False,
            partial_credit=score * 0.7,
            feedback=f"Partial {component} - review needed.",
            error_type=detect_error_type(response, expected),
            correction=expected,
        )

    return ComponentEvaluation(
        object_id=target.object_id,
        component=target.component,
        correct=False,
        partial_credit=0.0,
        feedback=f"Incorrect {component} usage.",
        error_type=detect_error_type(response, expected),
        correction=expected,
    )


def evaluate_response(
    response: str,
    spec: MultiObjectTaskSpec,
    config: MultiObjectScoringConfig | None = None,
) -> MultiComponentEvaluation:
    """
    Evaluate a response against every target of a multi-object task.

    Args:
        response: Learner's raw response
        spec: Task spec with weighted targets and expected answer
        config: Scoring config (defaults: normal strictness, partial credit on)

    Returns:
        MultiComponentEvaluation with weighted composite score
    """
    config = config or MultiObjectScoringConfig()
    evaluations = [
        evaluate_component(response, spec.expected_answer, target, config) for target in spec.targets
    ]

    composite = sum(t.weight * e.partial_credit for t, e in zip(spec.targets, evaluations))
    overall_correct = all(e.correct for e in evaluations)

    if overall_correct:
        feedback = "Excellent! All components correct."
    elif composite >= 0.7:
        incorrect = ", ".join(e.component.value for e in evaluations if not e.correct)
        feedback = f"Good attempt! Review: {incorrect}."
    elif composite >= 0.4:
        feedback = "Partial understanding. Multiple areas need review."
    else:
        feedback = "Review needed. Check the explanation below."

    explanation = "\n".join(f"{e.component.value}: {e.feedback}" for e in evaluations)

    return MultiComponentEvaluation(
        overall_correct=overall_correct,
        composite_score=composite,
        component_evaluations=evaluations,
        feedback=feedback,
        explanation=explanation,
    )
