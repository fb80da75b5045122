"""
Evaluation configuration types and per-layer scorers.

A partial-credit evaluation runs a response through several weighted layers
(spelling, meaning, form, register, ...). Layers with a dedicated scorer use
it; any other layer maps string similarity onto its declared levels.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from fluency.core.components import ComponentCode
from fluency.core.text import levenshtein_distance, normalize_text, similarity


class EvaluationMode(str, Enum):
    BINARY = "binary"
    PARTIAL_CREDIT = "partial_credit"
    RANGE_BASED = "range_based"
    RUBRIC_BASED = "rubric_based"


@dataclass(frozen=True)
class LayerLevel:
    score: float
    description: str


@dataclass(frozen=True)
class EvaluationLayer:
    layer_id: str
    name: str
    weight: float
    full_credit_criteria: str = ""
    levels: tuple[LayerLevel, ...] = ()


@dataclass(frozen=True)
class PartialCreditPattern:
    pattern: str
    score: float
    feedback: str


@dataclass
class AnswerRange:
    exact_matches: list[str]
    acceptable_variants: list[str] = field(default_factory=list)
    partial_credit_patterns: list[PartialCreditPattern] = field(default_factory=list)
    semantic_threshold: float | None = None


@dataclass(frozen=True)
class ScoringGuideLevel:
    score: float
    descriptor: str


@dataclass
class RubricCriterion:
    criterion_id: str
    name: str
    weight: float
    scoring_guide: list[ScoringGuideLevel]


@dataclass
class HolisticOption:
    enabled: bool
    levels: list[ScoringGuideLevel]


@dataclass
class ObjectRubric:
    criteria: list[RubricCriterion]
    holistic: HolisticOption | None = None


@dataclass
class ObjectEvaluationConfig:
    mode: EvaluationMode = EvaluationMode.BINARY
    layers: list[EvaluationLayer] | None = None
    answer_range: AnswerRange | None = None
    rubric: ObjectRubric | None = None


@dataclass(frozen=True)
class LayerResult:
    score: float
    feedback: str


# ============================================================================
# LAYER SCORERS
# ============================================================================

FORMAL_MARKERS = ("therefore", "consequently", "furthermore", "however")
INFORMAL_MARKERS = ("gonna", "wanna", "kinda", "yeah", "ok")


def text_similarity(a: str, b: str) -> float:
    """Case-insensitive similarity after normalization."""
    return similarity(normalize_text(a, lowercase=True), normalize_text(b, lowercase=True))


def score_form_accuracy(response: str, expected: str) -> LayerResult:
    normalized = normalize_text(response)
    normalized_expected = normalize_text(expected)
    if normalized == normalized_expected:
        return LayerResult(1.0, "Form is correct")

    sim = similarity(normalized, normalized_expected)
    if sim >= 0.8:
        return LayerResult(0.7, "Minor form error")
    if sim >= 0.5:
        return LayerResult(0.4, "Significant form error")
    return LayerResult(0.0, "Incorrect form")


def score_spelling(response: str, expected: str) -> LayerResult:
    distance = levenshtein_distance(response.lower(), expected.lower())
    if distance == 0:
        return LayerResult(1.0, "Spelling correct")
    if distance == 1:
        return LayerResult(0.8, "One spelling error")
    if distance == 2:
        return LayerResult(0.5, "Two spelling errors")
    return LayerResult(0.2, "Multiple spelling errors")


def score_contextual_appropriateness(response: str, expected: str) -> LayerResult:
    normalized = normalize_text(response)
    normalized_expected = normalize_text(expected)
    if normalized == normalized_expected:
        return LayerResult(1.0, "Contextually appropriate")

    expected_words = normalized_expected.split(" ")
    response_words = set(normalized.split(" "))
    overlap = sum(1 for w in expected_words if w in response_words) / len(expected_words)

    if overlap >= 0.8:
        return LayerResult(0.8, "Mostly appropriate")
    if overlap >= 0.5:
        return LayerResult(0.5, "Partially appropriate")
    return LayerResult(0.2, "May not fit context")


def score_semantic_accuracy(response: str, expected: str) -> LayerResult:
    # Word-set Jaccard stands in for embedding similarity
    response_words = set(normalize_text(response).split(" "))
    expected_words = set(normalize_text(expected).split(" "))
    jaccard = len(response_words & expected_words) / len(response_words | expected_words)

    if jaccard >= 0.8:
        return LayerResult(1.0, "Semantically accurate")
    if jaccard >= 0.5:
        return LayerResult(0.7, "Partially captures meaning")
    if jaccard >= 0.2:
        return LayerResult(0.4, "Some relevant content")
    return LayerResult(0.1, "Meaning unclear or incorrect")


def score_register_match(response: str, target_register: str | None) -> LayerResult:
    if not target_register:
        return LayerResult(0.8, "Register not specified")

    lowered = response.lower()
    has_formal = any(m in lowered for m in FORMAL_MARKERS)
    has_informal = any(m in lowered for m in INFORMAL_MARKERS)

    if target_register == "formal":
        if has_informal:
            return LayerResult(0.3, "Too informal")
        return LayerResult(0.9, "Appropriate register")
    if target_register == "informal":
        if has_formal and not has_informal:
            return LayerResult(0.5, "Too formal")
        return LayerResult(0.9, "Appropriate register")
    return LayerResult(0.7, "Register acceptable")


def score_generic_layer(response: str, expected: str, layer: EvaluationLayer) -> LayerResult:
    """Highest declared level whose score the similarity reaches."""
    sim = text_similarity(response, expected)
    levels = sorted(layer.levels, key=lambda lvl: lvl.score, reverse=True)
    for level in levels:
        if sim >= level.score:
            return LayerResult(level.score, level.description)
    return LayerResult(0.0, levels[-1].description if levels else "Incorrect")


_TEXT_SCORERS: dict[str, Callable[[str, str], LayerResult]] = {
    "form_accuracy": score_form_accuracy,
    "spelling": score_spelling,
    "contextual_appropriateness": score_contextual_appropriateness,
    "semantic_accuracy": score_semantic_accuracy,
}


def score_layer(
    response: str,
    expected: str,
    layer: EvaluationLayer,
    register: str | None = None,
) -> LayerResult:
    if layer.layer_id == "register_match":
        return score_register_match(response, register)
    scorer = _TEXT_SCORERS.get(layer.layer_id)
    if scorer is not None:
        return scorer(response, expected)
    return score_generic_layer(response, expected, layer)


# ============================================================================
# DEFAULT LAYERS
# ============================================================================


def _layer(layer_id: str, name: str, weight: float, criteria: str, *levels: tuple[float, str]) -> EvaluationLayer:
    return EvaluationLayer(
        layer_id=layer_id,
        name=name,
        weight=weight,
        full_credit_criteria=criteria,
        levels=tuple(LayerLevel(score, description) for score, description in levels),
    )


DEFAULT_LAYERS: dict[ComponentCode, list[EvaluationLayer]] = {
    ComponentCode.LEX: [
        _layer("spelling", "Spelling", 0.3, "Correct spelling",
               (1.0, "Correct"), (0.8, "One error"), (0.5, "Two errors"), (0.0, "Multiple errors")),
        _layer("semantic_accuracy", "Meaning", 0.5, "Correct meaning",
               (1.0, "Accurate"), (0.7, "Partially correct"), (0.3, "Related but incorrect"), (0.0, "Incorrect")),
        _layer("contextual_appropriateness", "Context", 0.2, "Appropriate for context",
               (1.0, "Appropriate"), (0.5, "Acceptable"), (0.0, "Inappropriate")),
    ],
    ComponentCode.MORPH: [
        _layer("form_accuracy", "Form", 0.6, "Correct morphological form",
               (1.0, "Correct form"), (0.7, "Minor error"), (0.3, "Wrong form"), (0.0, "Unrecognizable")),
        _layer("spelling", "Spelling", 0.4, "Correct spelling",
               (1.0, "Correct"), (0.5, "Spelling error"), (0.0, "Multiple errors")),
    ],
    ComponentCode.SYNT: [
        _layer("structure", "Structure", 0.5, "Correct syntactic structure",
               (1.0, "Correct structure"), (0.6, "Minor structure error"),
               (0.3, "Major structure error"), (0.0, "Incorrect structure")),
        _layer("agreement", "Agreement", 0.3, "Correct agreement",
               (1.0, "Full agreement"), (0.5, "Some agreement errors"), (0.0, "No agreement")),
        _layer("word_order", "Word Order", 0.2, "Correct word order",
               (1.0, "Correct order"), (0.5, "Minor order issue"), (0.0, "Incorrect order")),
    ],
    ComponentCode.PRAG: [
        _layer("appropriateness", "Appropriateness", 0.4, "Pragmatically appropriate",
               (1.0, "Fully appropriate"), (0.7, "Mostly appropriate"),
               (0.4, "Somewhat appropriate"), (0.0, "Inappropriate")),
        _layer("register_match", "Register", 0.3, "Correct register",
               (1.0, "Correct register"), (0.5, "Acceptable register"), (0.0, "Wrong register")),
        _layer("politeness", "Politeness", 0.3, "Appropriate politeness",
               (1.0, "Appropriate"), (0.5, "Acceptable"), (0.0, "Too direct/indirect")),
    ],
    ComponentCode.PHON: [
        _layer("accuracy", "Accuracy", 0.7, "Correct pronunciation pattern",
               (1.0, "Correct"), (0.7, "Minor deviation"), (0.4, "Noticeable error"), (0.0, "Incorrect")),
        _layer("intelligibility", "Intelligibility", 0.3, "Intelligible",
               (1.0, "Clear"), (0.5, "Understandable"), (0.0, "Unclear")),
    ],
}


def default_layers(component: ComponentCode) -> list[EvaluationLayer]:
    return DEFAULT_LAYERS[component]
