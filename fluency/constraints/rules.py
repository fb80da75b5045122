"""
Cross-component linguistic rules and their predicate handlers.

Each rule maps a (source component -> target component) pair to a predicate.
When an object of the source component is chosen, the predicate narrows the
objects that unfilled target-component slots may still accept.

Every PredicateType has exactly one handler in PREDICATE_HANDLERS.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from fluency.core.components import ComponentCode
from fluency.core.models import LanguageObject


class ConstraintType(str, Enum):
    REQUIRES = "requires"
    EXCLUDES = "excludes"
    PREFERS = "prefers"
    RESTRICTS_TO = "restricts_to"
    ENABLES = "enables"
    MODIFIES = "modifies"


HARD_CONSTRAINTS = frozenset({ConstraintType.REQUIRES, ConstraintType.EXCLUDES})


class PredicateType(str, Enum):
    SYNTACTIC_AGREEMENT = "syntactic_agreement"
    COLLOCATION = "collocation"
    PHONOLOGICAL_COMPATIBILITY = "phonological_compatibility"
    PHONOLOGICAL_MAPPING = "phonological_mapping"
    MORPHOLOGICAL_DERIVATION = "morphological_derivation"
    REGISTER_CONSISTENCY = "register_consistency"
    SEMANTIC_COHERENCE = "semantic_coherence"
    SEMANTIC_CONSTRAINT = "semantic_constraint"
    PRAGMATIC_CONSTRAINT = "pragmatic_constraint"


@dataclass(frozen=True)
class LinguisticRule:
    name: str
    source_component: ComponentCode
    target_component: ComponentCode
    constraint_type: ConstraintType
    predicate: PredicateType
    default_strength: float

    @property
    def pair_key(self) -> str:
        return component_pair_key(self.source_component, self.target_component)


@dataclass(frozen=True)
class PredicateRestriction:
    """Objects a predicate still allows, with a human-readable reason."""

    allowed_ids: list[str]
    reason: str


def component_pair_key(source: ComponentCode, target: ComponentCode) -> str:
    return f"{ComponentCode(source).value}->{ComponentCode(target).value}"


# ============================================================================
# RULE TABLE
# ============================================================================

_C = ComponentCode
_T = ConstraintType
_P = PredicateType

LINGUISTIC_RULES: list[LinguisticRule] = [
    LinguisticRule("Subject-verb agreement", _C.SYNT, _C.MORPH, _T.RESTRICTS_TO, _P.SYNTACTIC_AGREEMENT, 0.9),
    LinguisticRule("Voice-transitivity agreement", _C.SYNT, _C.LEX, _T.RESTRICTS_TO, _P.SYNTACTIC_AGREEMENT, 0.8),
    LinguisticRule("Word-family derivation", _C.MORPH, _C.LEX, _T.PREFERS, _P.MORPHOLOGICAL_DERIVATION, 0.6),
    LinguisticRule("Derivational family", _C.LEX, _C.MORPH, _T.PREFERS, _P.MORPHOLOGICAL_DERIVATION, 0.6),
    LinguisticRule("Grapheme-phoneme mapping", _C.LEX, _C.PHON, _T.RESTRICTS_TO, _P.PHONOLOGICAL_COMPATIBILITY, 0.7),
    LinguisticRule("Spelling-sound correspondence", _C.PHON, _C.LEX, _T.PREFERS, _P.PHONOLOGICAL_MAPPING, 0.5),
    LinguisticRule("Register consistency", _C.PRAG, _C.LEX, _T.RESTRICTS_TO, _P.REGISTER_CONSISTENCY, 0.8),
    LinguisticRule("Lexical register consistency", _C.LEX, _C.LEX, _T.PREFERS, _P.REGISTER_CONSISTENCY, 0.5),
    LinguisticRule("Collocational preference", _C.LEX, _C.LEX, _T.PREFERS, _P.COLLOCATION, 0.7),
    LinguisticRule("Semantic coherence", _C.LEX, _C.LEX, _T.PREFERS, _P.SEMANTIC_COHERENCE, 0.4),
    LinguisticRule("Pragmatic-syntactic fit", _C.PRAG, _C.SYNT, _T.PREFERS, _P.PRAGMATIC_CONSTRAINT, 0.5),
]


# ============================================================================
# PREDICATE HANDLERS
# ============================================================================

PredicateHandler = Callable[[LanguageObject, Sequence[LanguageObject]], PredicateRestriction | None]

# Higher = more formal
REGISTER_LEVELS: dict[str, int] = {
    "frozen": 5,
    "formal": 4,
    "consultative": 3,
    "casual": 2,
    "intimate": 1,
}


def _narrowed(allowed: list[LanguageObject], targets: Sequence[LanguageObject], reason: str):
    if len(allowed) < len(targets):
        return PredicateRestriction([t.id for t in allowed], reason)
    return None


def syntactic_agreement(
    source: LanguageObject, targets: Sequence[LanguageObject]
) -> PredicateRestriction | None:
    """Passive voice needs transitive verbs; plural subjects need plural verb forms."""
    pattern = source.properties.get("pattern")
    if not pattern:
        return None

    if "passive" in pattern or "PASSIVE" in pattern:
        transitive = [
            t for t in targets
            if t.properties.get("transitivity") in ("transitive", "ditransitive")
        ]
        restriction = _narrowed(transitive, targets, "Passive voice requires transitive verb")
        if restriction:
            return restriction

    if "plural_subject" in pattern:
        plural = [t for t in targets if t.properties.get("number") in ("plural", "both")]
        return _narrowed(plural, targets, "Plural subject requires plural verb form")

    return None


def phonological_compatibility(
    source: LanguageObject, targets: Sequence[LanguageObject]
) -> PredicateRestriction | None:
    """Keep targets whose pattern matches or is contained in the source's phonological pattern."""
    phon_pattern = source.properties.get("phonPattern")
    if not phon_pattern:
        return None

    compatible = [
        t for t in targets
        if not t.properties.get("pattern")
        or t.properties["pattern"] == phon_pattern
        or t.properties["pattern"] in phon_pattern
    ]
    return _narrowed(compatible, targets, f"Phonological pattern: {phon_pattern}")


def morphological_derivation(
    source: LanguageObject, targets: Sequence[LanguageObject]
) -> PredicateRestriction | None:
    root = source.properties.get("root")
    if not root:
        return None

    same_family = [t for t in targets if t.properties.get("root") == root]
    if not same_family:
        return None
    return _narrowed(same_family, targets, f"Morphological family: {root}")


def is_register_compatible(source: str, target: str) -> bool:
    """Registers within one step on the formality scale. Unknown registers sit at consultative."""
    return abs(REGISTER_LEVELS.get(source, 3) - REGISTER_LEVELS.get(target, 3)) <= 1


def register_consistency(
    source: LanguageObject, targets: Sequence[LanguageObject]
) -> PredicateRestriction | None:
    register = source.properties.get("register")
    if not register:
        return None

    # Targets without a register are neutral
    compatible = [
        t for t in targets
        if not t.properties.get("register")
        or is_register_compatible(register, t.properties["register"])
    ]
    return _narrowed(compatible, targets, f"Register: {register}")


def _no_restriction(
    source: LanguageObject, targets: Sequence[LanguageObject]
) -> PredicateRestriction | None:
    # Resolved elsewhere (collocation edges) or needs data the engine does not hold
    return None


PREDICATE_HANDLERS: dict[PredicateType, PredicateHandler] = {
    PredicateType.SYNTACTIC_AGREEMENT: syntactic_agreement,
    PredicateType.COLLOCATION: _no_restriction,
    PredicateType.PHONOLOGICAL_COMPATIBILITY: phonological_compatibility,
    PredicateType.PHONOLOGICAL_MAPPING: phonological_compatibility,
    PredicateType.MORPHOLOGICAL_DERIVATION: morphological_derivation,
    PredicateType.REGISTER_CONSISTENCY: register_consistency,
    PredicateType.SEMANTIC_COHERENCE: _no_restriction,
    PredicateType.SEMANTIC_CONSTRAINT: _no_restriction,
    PredicateType.PRAGMATIC_CONSTRAINT: _no_restriction,
}


def apply_predicate(
    rule: LinguisticRule,
    source: LanguageObject,
    targets: Sequence[LanguageObject],
) -> PredicateRestriction | None:
    """Run a rule's predicate against the target-component candidates."""
    return PREDICATE_HANDLERS[rule.predicate](source, targets)
