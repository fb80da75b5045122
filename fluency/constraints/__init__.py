"""
Constraints Module - Linguistic dependency graph and cascading propagation.

Components:
- rules: constraint/predicate enums, linguistic rule table, predicate handlers
- graph: constraint edges, edge conditions, graph builder
- propagation: propagate(), validate_assignments(), preference/restriction helpers
"""

from fluency.constraints.graph import (
    ConditionOperator,
    ConstraintEdge,
    ConstraintGraph,
    EdgeCondition,
    EdgeModification,
    build_constraint_graph,
    normalize_collocation_strength,
)
from fluency.constraints.propagation import (
    ConstraintPropagation,
    PropagationTrigger,
    apply_constraint_preferences,
    apply_restrictions,
    propagate,
    validate_assignments,
)
from fluency.constraints.rules import (
    LINGUISTIC_RULES,
    PREDICATE_HANDLERS,
    ConstraintType,
    LinguisticRule,
    PredicateType,
    is_register_compatible,
)

__all__ = [
    "ConditionOperator",
    "ConstraintEdge",
    "ConstraintGraph",
    "EdgeCondition",
    "EdgeModification",
    "build_constraint_graph",
    "normalize_collocation_strength",
    "ConstraintPropagation",
    "PropagationTrigger",
    "apply_constraint_preferences",
    "apply_restrictions",
    "propagate",
    "validate_assignments",
    "LINGUISTIC_RULES",
    "PREDICATE_HANDLERS",
    "ConstraintType",
    "LinguisticRule",
    "PredicateType",
    "is_register_compatible",
]
