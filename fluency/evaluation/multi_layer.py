"""
Multi-Layer Evaluation.

Object-specific response evaluation with four scoring modes:
- binary: exact (1.0) or case-insensitive (0.9) match
- partial_credit: weighted layers (spelling, meaning, form, register, ...)
- range_based: exact -> variant -> partial pattern -> similarity threshold
- rubric_based: analytic criteria, optionally blended 70/30 with a holistic score

Batch results convert directly into a MultiComponentEvaluation so the
calibration engine can consume them.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from loguru import logger

from fluency.calibration.scoring import ComponentEvaluation, ErrorType, MultiComponentEvaluation, Strictness
from fluency.core.components import ROLE_CONFIGS, ComponentCode, ObjectRole
from fluency.core.text import normalize_text
from fluency.evaluation.layers import (
    EvaluationMode,
    ObjectEvaluationConfig,
    ScoringGuideLevel,
    default_layers,
    score_layer,
    text_similarity,
)
from fluency.evaluation.regex_safety import MAX_RESPONSE_LENGTH, safe_regex_test

# strictness -> composite score needed for overall correctness
BATCH_CORRECT_THRESHOLDS: dict[str, float] = {
    "lenient": 0.5,
    "normal": 0.6,
    "strict": 0.8,
}

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


@dataclass
class ObjectEvaluationInput:
    object_id: str
    component: ComponentCode
    response: str
    expected: list[str]
    config: ObjectEvaluationConfig = field(default_factory=ObjectEvaluationConfig)
    role: ObjectRole = ObjectRole.ASSESSMENT
    weight: float = 1.0
    task_type: str | None = None
    domain: str | None = None
    register: str | None = None


@dataclass(frozen=True)
class LayerScore:
    layer_id: str
    name: str
    score: float
    weight: float
    feedback: str


@dataclass(frozen=True)
class RubricScore:
    criterion_id: str
    score: float
    descriptor: str


@dataclass
class ObjectEvaluationResult:
    object_id: str
    component: ComponentCode
    score: float
    correct: bool
    feedback: str
    confidence: float
    layer_scores: list[LayerScore] = field(default_factory=list)
    match_type: str | None = None  # exact / variant / partial / none
    rubric_scores: list[RubricScore] = field(default_factory=list)
    correction: str | None = None
    error_type: ErrorType | None = None


@dataclass
class BatchMetadata:
    total_objects: int
    evaluated_objects: int
    average_score: float
    average_confidence: float


@dataclass
class BatchEvaluationResult:
    object_results: list[ObjectEvaluationResult]
    aggregated: MultiComponentEvaluation
    metadata: BatchMetadata


@dataclass(frozen=True)
class ThetaInput:
    object_id: str
    component: ComponentCode
    score: float
    role_adjusted_score: float
    effective_weight: float


def classify_error(response: str, expected: str) -> ErrorType:
    """Character-level error classification for a wrong single-object answer."""
    norm_response = normalize_text(response, lowercase=True)
    norm_expected = normalize_text(expected, lowercase=True)

    if not norm_response or len(norm_response) < len(norm_expected) * 0.5:
        return ErrorType.OMISSION
    if len(norm_response) > len(norm_expected) * 1.5:
        return ErrorType.ADDITION
    if sorted(norm_response) == sorted(norm_expected):
        return ErrorType.ORDERING
    if text_similarity(norm_response, norm_expected) >= 0.7:
        return ErrorType.FORM
    return ErrorType.SUBSTITUTION


# ============================================================================
# MODES
# ============================================================================


def _evaluate_binary(item: ObjectEvaluationInput) -> ObjectEvaluationResult:
    response = normalize_text(item.response)
    expected = [normalize_text(e) for e in item.expected]
    first_expected = item.expected[0] if item.expected else ""

    if response in expected:
        score = 1.0
    elif any(response.lower() == e.lower() for e in expected):
        score = 0.9
    else:
        score = 0.0
    correct = score >= 0.5

    return ObjectEvaluationResult(
        object_id=item.object_id,
        component=item.component,
        score=score,
        correct=correct,
        feedback="Correct!" if correct else f"Expected: {first_expected}",
        confidence=1.0,
        correction=None if correct else first_expected,
        error_type=None if correct else classify_error(response, first_expected),
    )


def _evaluate_partial_credit(item: ObjectEvaluationInput) -> ObjectEvaluationResult:
    layers = item.config.layers or default_layers(item.component)
    expected = item.expected[0] if item.expected else ""

    layer_scores = []
    for layer in layers:
        result = score_layer(item.response, expected, layer, item.register)
        layer_scores.append(LayerScore(layer.layer_id, layer.name, result.score, layer.weight, result.feedback))

    total_weight = sum(ls.weight for ls in layer_scores)
    score = sum(ls.score * ls.weight for ls in layer_scores) / total_weight if total_weight > 0 else 0.0
    correct = score >= 0.6

    return ObjectEvaluationResult(
        object_id=item.object_id,
        component=item.component,
        score=score,
        correct=correct,
        feedback=_layer_feedback(layer_scores, correct),
        confidence=0.85,
        layer_scores=layer_scores,
        correction=None if correct else expected,
        error_type=None if correct else _error_from_layers(layer_scores),
    )


def _evaluate_range_based(item: ObjectEvaluationInput) -> ObjectEvaluationResult:
    answer_range = item.config.answer_range
    if answer_range is None:
        return _evaluate_binary(item)

    response = normalize_text(item.response)

    def result(score: float, correct: bool, match_type: str, feedback: str, confidence: float, **extra):
        return ObjectEvaluationResult(
            object_id=item.object_id,
            component=item.component,
            score=score,
            correct=correct,
            feedback=feedback,
            confidence=confidence,
            match_type=match_type,
            **extra,
        )

    if any(normalize_text(m) == response for m in answer_range.exact_matches):
        return result(1.0, True, "exact", "Exact match!", 1.0)

    if any(normalize_text(v) == response for v in answer_range.acceptable_variants):
        return result(1.0, True, "variant", "Acceptable answer", 0.95)

    for pattern in answer_range.partial_credit_patterns:
        # None (unsafe or invalid) falls through to the next pattern
        if safe_regex_test(pattern.pattern, response) is True:
            return result(pattern.score, pattern.score >= 0.5, "partial", pattern.feedback, 0.8)

    if answer_range.semantic_threshold:
        best = max((text_similarity(response, m) for m in answer_range.exact_matches), default=0.0)
        if best >= answer_range.semantic_threshold:
            return result(best, best >= 0.6, "partial", f"Similar to expected ({best:.0%} match)", 0.7)

    first = answer_range.exact_matches[0] if answer_range.exact_matches else ""
    return result(
        0.0,
        False,
        "none",
        f"Expected one of: {', '.join(answer_range.exact_matches[:2])}...",
        0.9,
        correction=first,
        error_type=classify_error(response, first),
    )


def _evaluate_rubric_based(item: ObjectEvaluationInput) -> ObjectEvaluationResult:
    rubric = item.config.rubric
    if rubric is None or not rubric.criteria:
        return _evaluate_binary(item)

    expected = item.expected[0] if item.expected else ""
    sim = text_similarity(item.response, expected)

    rubric_scores = []
    for criterion in rubric.criteria:
        level = _level_reached(sim, criterion.scoring_guide)
        rubric_scores.append(
            RubricScore(
                criterion.criterion_id,
                level.score if level else 0.0,
                level.descriptor if level else "Below expectations",
            )
        )

    total_weight = sum(c.weight for c in rubric.criteria)
    score = (
        sum(rs.score * c.weight for rs, c in zip(rubric_scores, rubric.criteria)) / total_weight
        if total_weight > 0
        else 0.0
    )

    if rubric.holistic and rubric.holistic.enabled:
        score = score * 0.7 + _holistic_score(item.response, rubric.holistic.levels) * 0.3

    return ObjectEvaluationResult(
        object_id=item.object_id,
        component=item.component,
        score=score,
        correct=score >= 0.6,
        feedback=_rubric_feedback(rubric_scores, {c.criterion_id: c.name for c in rubric.criteria}),
        confidence=0.75,
        rubric_scores=rubric_scores,
    )


_MODE_HANDLERS = {
    EvaluationMode.BINARY: _evaluate_binary,
    EvaluationMode.PARTIAL_CREDIT: _evaluate_partial_credit,
    EvaluationMode.RANGE_BASED: _evaluate_range_based,
    EvaluationMode.RUBRIC_BASED: _evaluate_rubric_based,
}


# ============================================================================
# PUBLIC API
# ============================================================================


def evaluate_object(item: ObjectEvaluationInput) -> ObjectEvaluationResult:
    """
    Evaluate one object's portion of a response.

    Responses over MAX_RESPONSE_LENGTH characters score 0 without being
    inspected further.
    """
    if len(item.response) > MAX_RESPONSE_LENGTH:
        logger.warning(f"Response for {item.object_id} exceeds {MAX_RESPONSE_LENGTH} characters")
        return ObjectEvaluationResult(
            object_id=item.object_id,
            component=item.component,
            score=0.0,
            correct=False,
            feedback="Response exceeds maximum allowed length",
            confidence=1.0,
        )

    handler = _MODE_HANDLERS.get(EvaluationMode(item.config.mode), _evaluate_binary)
    return handler(item)


def evaluate_batch(
    inputs: Sequence[ObjectEvaluationInput],
    strictness: Strictness = "normal",
) -> BatchEvaluationResult:
    """
    Evaluate every object of a task independently and aggregate.

    Args:
        inputs: One input per evaluated object
        strictness: Sets the composite threshold for overall correctness

    Returns:
        Per-object results, the aggregated MultiComponentEvaluation and metadata
    """
    results = [evaluate_object(item) for item in inputs]

    total_weight = sum(item.weight for item in inputs) or 1.0
    composite = sum(r.score * item.weight for r, item in zip(results, inputs)) / total_weight
    overall_correct = composite >= BATCH_CORRECT_THRESHOLDS[strictness]

    component_evaluations = [
        ComponentEvaluation(
            object_id=r.object_id,
            component=r.component,
            correct=r.correct,
            partial_credit=r.score,
            feedback=r.feedback,
            error_type=r.error_type,
            correction=r.correction,
        )
        for r in results
    ]

    return BatchEvaluationResult(
        object_results=results,
        aggregated=MultiComponentEvaluation(
            overall_correct=overall_correct,
            composite_score=composite,
            component_evaluations=component_evaluations,
            feedback=_aggregated_feedback(results, overall_correct),
        ),
        metadata=BatchMetadata(
            total_objects=len(inputs),
            evaluated_objects=len(results),
            average_score=composite,
            average_confidence=sum(r.confidence for r in results) / len(results) if results else 0.0,
        ),
    )


def evaluation_to_theta_input(
    result: ObjectEvaluationResult,
    role: ObjectRole | str,
    weight: float,
) -> ThetaInput:
    """Scale an object result by its role's ability multiplier."""
    multiplier = ROLE_CONFIGS[ObjectRole(role)].theta_multiplier
    return ThetaInput(
        object_id=result.object_id,
        component=result.component,
        score=result.score,
        role_adjusted_score=result.score * multiplier,
        effective_weight=weight * multiplier,
    )


# ============================================================================
# HELPERS
# ============================================================================


def _level_reached(value: float, levels: Sequence[ScoringGuideLevel]) -> ScoringGuideLevel | None:
    ordered = sorted(levels, key=lambda lvl: lvl.score, reverse=True)
    for level in ordered:
        if value >= level.score:
            return level
    return ordered[-1] if ordered else None


def _holistic_score(response: str, levels: Sequence[ScoringGuideLevel]) -> float:
    # Length and sentence count as a complexity proxy
    word_count = len(response.split())
    sentence_count = len([s for s in _SENTENCE_SPLIT.split(response) if s.strip()])
    complexity = min(1.0, (word_count / 20) * 0.5 + (sentence_count / 3) * 0.5)
    level = _level_reached(complexity, levels)
    return level.score if level else 0.0


def _layer_feedback(layer_scores: Sequence[LayerScore], correct: bool) -> str:
    if correct:
        perfect = [ls.name for ls in layer_scores if ls.score == 1.0]
        if len(perfect) == len(layer_scores):
            return "Perfect!"
        return f"Good! {', '.join(perfect)} correct."

    weak = sorted((ls for ls in layer_scores if ls.score < 0.6), key=lambda ls: ls.score)
    if weak:
        return f"Focus on: {', '.join(ls.name for ls in weak)}"
    return "Almost there! Review your response."


_LAYER_ERROR_TYPES: dict[str, ErrorType] = {
    "form_accuracy": ErrorType.FORM,
    "spelling": ErrorType.FORM,
    "contextual_appropriateness": ErrorType.USAGE,
    "register_match": ErrorType.USAGE,
    "appropriateness": ErrorType.USAGE,
    "word_order": ErrorType.ORDERING,
    "structure": ErrorType.ORDERING,
}


def _error_from_layers(layer_scores: Sequence[LayerScore]) -> ErrorType:
    if not layer_scores:
        return ErrorType.SUBSTITUTION
    weakest = min(layer_scores, key=lambda ls: ls.score)
    return _LAYER_ERROR_TYPES.get(weakest.layer_id, ErrorType.SUBSTITUTION)


def _rubric_feedback(scores: Sequence[RubricScore], names: dict[str, str]) -> str:
    average = sum(s.score for s in scores) / len(scores)
    if average >= 0.9:
        return "Excellent work!"
    if average >= 0.7:
        return "Good work with minor areas for improvement."
    if average >= 0.5:
        return "Acceptable but needs improvement."

    lowest = min(scores, key=lambda s: s.score)
    return f"Focus on improving: {names.get(lowest.criterion_id, 'identified areas')}"


def _aggregated_feedback(results: Sequence[ObjectEvaluationResult], overall_correct: bool) -> str:
    if overall_correct:
        perfect = sum(1 for r in results if r.score == 1.0)
        if perfect == len(results):
            return "All correct! Excellent work!"
        return f"Good job! {perfect}/{len(results)} perfect."

    incorrect = [r for r in results if not r.correct]
    if len(incorrect) == 1:
        return f"Almost! Check: {incorrect[0].feedback}"
    return f"Review {len(incorrect)} items that need attention."
