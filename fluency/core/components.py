"""
Linguistic components, roles and cognitive processes.

Canonical home for every lookup table that relates object kinds, component
codes, task types and roles. Other modules import from here instead of
keeping private copies of the mappings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fluency.core.exceptions import InvalidInputError


class ComponentCode(str, Enum):
    """The five linguistic subsystems an object can belong to."""

    PHON = "PHON"
    MORPH = "MORPH"
    LEX = "LEX"
    SYNT = "SYNT"
    PRAG = "PRAG"


class ObjectKind(str, Enum):
    """Storage-level object types."""

    LEX = "LEX"
    MWE = "MWE"  # multi-word expression
    TERM = "TERM"
    MORPH = "MORPH"
    G2P = "G2P"  # grapheme-to-phoneme pattern
    PHON = "PHON"
    SYNT = "SYNT"
    PRAG = "PRAG"


class ObjectRole(str, Enum):
    """Role an object plays inside a composed task."""

    ASSESSMENT = "assessment"
    PRACTICE = "practice"
    REINFORCEMENT = "reinforcement"
    INCIDENTAL = "incidental"


class CognitiveProcess(str, Enum):
    """Cognitive process a slot demands from the learner."""

    RECOGNITION = "recognition"
    RECALL = "recall"
    TRANSFORMATION = "transformation"
    PRODUCTION = "production"
    SYNTHESIS = "synthesis"


class InteractionModel(str, Enum):
    """How component abilities combine into a response probability."""

    COMPENSATORY = "compensatory"
    CONJUNCTIVE = "conjunctive"
    DISJUNCTIVE = "disjunctive"


class TaskType(str, Enum):
    """Task types known to the Q-matrix."""

    RECOGNITION = "recognition"
    RECALL_CUED = "recall_cued"
    RECALL_FREE = "recall_free"
    PRODUCTION = "production"
    TIMED = "timed"
    WORD_FORMATION = "word_formation"
    COLLOCATION = "collocation"
    SENTENCE_WRITING = "sentence_writing"
    SENTENCE_COMBINING = "sentence_combining"
    REGISTER_SHIFT = "register_shift"
    TRANSLATION = "translation"
    ERROR_CORRECTION = "error_correction"
    DEFINITION_MATCH = "definition_match"
    RAPID_RESPONSE = "rapid_response"


# ============================================================================
# OBJECT KIND <-> COMPONENT
# ============================================================================

_KIND_TO_COMPONENT: dict[ObjectKind, ComponentCode] = {
    ObjectKind.LEX: ComponentCode.LEX,
    ObjectKind.MWE: ComponentCode.LEX,
    ObjectKind.TERM: ComponentCode.LEX,
    ObjectKind.MORPH: ComponentCode.MORPH,
    ObjectKind.G2P: ComponentCode.PHON,
    ObjectKind.PHON: ComponentCode.PHON,
    ObjectKind.SYNT: ComponentCode.SYNT,
    ObjectKind.PRAG: ComponentCode.PRAG,
}

_COMPONENT_TO_KIND: dict[ComponentCode, ObjectKind] = {
    ComponentCode.LEX: ObjectKind.LEX,
    ComponentCode.MORPH: ObjectKind.MORPH,
    ComponentCode.PHON: ObjectKind.G2P,
    ComponentCode.SYNT: ObjectKind.SYNT,
    ComponentCode.PRAG: ObjectKind.PRAG,
}


def kind_to_component(kind: ObjectKind | str) -> ComponentCode:
    """Map an object kind (or its string tag) to its component. Unknown tags map to LEX."""
    try:
        return _KIND_TO_COMPONENT[ObjectKind(kind)]
    except ValueError:
        return ComponentCode.LEX


def component_to_kind(component: ComponentCode | str) -> ObjectKind:
    """Map a component code back to the storage kind used for it."""
    return _COMPONENT_TO_KIND[to_component(component)]


def to_component(value: ComponentCode | str) -> ComponentCode:
    """Coerce a component code string, rejecting unknown codes."""
    try:
        return ComponentCode(value)
    except ValueError as e:
        raise InvalidInputError(f"Unknown component code: {value!r}") from e


COMPONENT_DISPLAY_NAMES: dict[ComponentCode, str] = {
    ComponentCode.PHON: "Pronunciation/Spelling",
    ComponentCode.MORPH: "Word Form",
    ComponentCode.LEX: "Vocabulary",
    ComponentCode.SYNT: "Grammar",
    ComponentCode.PRAG: "Usage/Register",
}


# ============================================================================
# ROLES AND PROCESSES
# ============================================================================


@dataclass(frozen=True)
class RoleConfig:
    """Influence of a role on ability and scheduling updates."""

    theta_multiplier: float
    exposure_weight: float
    track_accuracy: bool
    update_schedule: bool


ROLE_CONFIGS: dict[ObjectRole, RoleConfig] = {
    ObjectRole.ASSESSMENT: RoleConfig(1.0, 1.0, True, True),
    ObjectRole.PRACTICE: RoleConfig(0.6, 0.8, True, True),
    ObjectRole.REINFORCEMENT: RoleConfig(0.3, 0.5, False, False),
    ObjectRole.INCIDENTAL: RoleConfig(0.0, 0.2, False, False),
}

PROCESS_MULTIPLIERS: dict[CognitiveProcess, float] = {
    CognitiveProcess.RECOGNITION: 1.0,
    CognitiveProcess.RECALL: 1.2,
    CognitiveProcess.TRANSFORMATION: 1.3,
    CognitiveProcess.PRODUCTION: 1.5,
    CognitiveProcess.SYNTHESIS: 1.8,
}


def process_multiplier(process: CognitiveProcess | str) -> float:
    """Cost multiplier for a cognitive process (1.0 for unknown processes)."""
    try:
        return PROCESS_MULTIPLIERS[CognitiveProcess(process)]
    except ValueError:
        return 1.0


# ============================================================================
# Q-MATRIX
# ============================================================================


@dataclass(frozen=True)
class QMatrixEntry:
    """Component contributions and interaction model for a task type."""

    task_type: TaskType
    components: dict[ComponentCode, float]
    interaction_model: InteractionModel
    primary_process: CognitiveProcess

    def weight_for(self, component: ComponentCode) -> float:
        """Q weight of a component; components absent from the row weigh 0.1."""
        return self.components.get(component) or 0.1


def _q(
    task_type: TaskType,
    model: InteractionModel,
    process: CognitiveProcess,
    **weights: float,
) -> QMatrixEntry:
    return QMatrixEntry(
        task_type=task_type,
        components={ComponentCode(k): v for k, v in weights.items()},
        interaction_model=model,
        primary_process=process,
    )


_C = InteractionModel.COMPENSATORY
_AND = InteractionModel.CONJUNCTIVE
_OR = InteractionModel.DISJUNCTIVE
_P = CognitiveProcess

Q_MATRIX: dict[TaskType, QMatrixEntry] = {
    TaskType.RECOGNITION: _q(TaskType.RECOGNITION, _C, _P.RECOGNITION, LEX=0.7, MORPH=0.15, PHON=0.15),
    TaskType.RECALL_CUED: _q(TaskType.RECALL_CUED, _C, _P.RECALL, LEX=0.6, MORPH=0.2, PHON=0.2),
    TaskType.RECALL_FREE: _q(TaskType.RECALL_FREE, _C, _P.RECALL, LEX=0.6, MORPH=0.2, PHON=0.2),
    TaskType.PRODUCTION: _q(TaskType.PRODUCTION, _C, _P.PRODUCTION, LEX=0.35, SYNT=0.3, PRAG=0.2, MORPH=0.15),
    TaskType.TIMED: _q(TaskType.TIMED, _C, _P.RECOGNITION, LEX=0.5, PHON=0.3, MORPH=0.2),
    TaskType.WORD_FORMATION: _q(TaskType.WORD_FORMATION, _AND, _P.TRANSFORMATION, MORPH=0.6, LEX=0.25, PHON=0.15),
    TaskType.COLLOCATION: _q(TaskType.COLLOCATION, _C, _P.RECALL, LEX=0.6, SYNT=0.25, PRAG=0.15),
    TaskType.SENTENCE_WRITING: _q(
        TaskType.SENTENCE_WRITING, _C, _P.PRODUCTION, SYNT=0.35, LEX=0.35, MORPH=0.15, PRAG=0.15
    ),
    TaskType.SENTENCE_COMBINING: _q(
        TaskType.SENTENCE_COMBINING, _AND, _P.TRANSFORMATION, SYNT=0.5, LEX=0.2, PRAG=0.15, MORPH=0.15
    ),
    TaskType.REGISTER_SHIFT: _q(TaskType.REGISTER_SHIFT, _AND, _P.TRANSFORMATION, PRAG=0.5, LEX=0.3, SYNT=0.2),
    TaskType.TRANSLATION: _q(TaskType.TRANSLATION, _C, _P.PRODUCTION, LEX=0.4, SYNT=0.35, MORPH=0.15, PRAG=0.1),
    TaskType.ERROR_CORRECTION: _q(TaskType.ERROR_CORRECTION, _OR, _P.TRANSFORMATION, SYNT=0.4, MORPH=0.3, LEX=0.3),
    TaskType.DEFINITION_MATCH: _q(TaskType.DEFINITION_MATCH, _C, _P.RECOGNITION, LEX=0.7, PRAG=0.15, MORPH=0.15),
    TaskType.RAPID_RESPONSE: _q(TaskType.RAPID_RESPONSE, _C, _P.RECOGNITION, LEX=0.5, PHON=0.3, MORPH=0.2),
}


def q_matrix_entry(task_type: TaskType | str) -> QMatrixEntry:
    """Q-matrix row for a task type; unknown task types use the recognition row."""
    try:
        return Q_MATRIX[TaskType(task_type)]
    except ValueError:
        return Q_MATRIX[TaskType.RECOGNITION]
