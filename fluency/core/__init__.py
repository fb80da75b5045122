"""
Core Module - Shared domain models and lookup tables.

Components:
- components: component codes, object kinds, roles, processes, Q-matrix
- models: LanguageObject, MasteryRecord, UserThetaProfile, ThetaDelta
- text: normalization and Levenshtein similarity
- exceptions: programmer-error exceptions

Design Principle:
All other subpackages import component mappings from here rather than
keeping their own copies.
"""

from fluency.core.components import (
    COMPONENT_DISPLAY_NAMES,
    PROCESS_MULTIPLIERS,
    Q_MATRIX,
    ROLE_CONFIGS,
    CognitiveProcess,
    ComponentCode,
    InteractionModel,
    ObjectKind,
    ObjectRole,
    QMatrixEntry,
    RoleConfig,
    TaskType,
    component_to_kind,
    kind_to_component,
    process_multiplier,
    q_matrix_entry,
    to_component,
)
from fluency.core.exceptions import FluencyError, InvalidInputError, InvalidTemplateError
from fluency.core.models import (
    Collocation,
    LanguageObject,
    MasteryRecord,
    ThetaDelta,
    UserThetaProfile,
    clamp,
)

__all__ = [
    "COMPONENT_DISPLAY_NAMES",
    "PROCESS_MULTIPLIERS",
    "Q_MATRIX",
    "ROLE_CONFIGS",
    "CognitiveProcess",
    "ComponentCode",
    "InteractionModel",
    "ObjectKind",
    "ObjectRole",
    "QMatrixEntry",
    "RoleConfig",
    "TaskType",
    "component_to_kind",
    "kind_to_component",
    "process_multiplier",
    "q_matrix_entry",
    "to_component",
    "FluencyError",
    "InvalidInputError",
    "InvalidTemplateError",
    "Collocation",
    "LanguageObject",
    "MasteryRecord",
    "ThetaDelta",
    "UserThetaProfile",
    "clamp",
]
