"""
Constraint graph between language objects.

Edges come from collocation statistics (bidirectional `prefers` edges) plus
any explicit edges a caller supplies (e.g. curated `requires`/`excludes`
pairs). Linguistic rules are indexed by component pair alongside.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger

from fluency.constraints.rules import LINGUISTIC_RULES, ConstraintType, LinguisticRule
from fluency.core.models import Collocation, LanguageObject


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


@dataclass(frozen=True)
class EdgeCondition:
    """
    Gate an edge on a property of its source object.

    `property` is "component", "content" or any key of the object's properties.
    """

    property: str
    operator: ConditionOperator
    value: Any

    def evaluate(self, obj: LanguageObject) -> bool:
        if self.property == "component":
            actual: Any = obj.component.value
        elif self.property == "content":
            actual = obj.content
        else:
            actual = obj.properties.get(self.property)

        op = ConditionOperator(self.operator)
        if op is ConditionOperator.EQUALS:
            return actual == self.value
        if op is ConditionOperator.NOT_EQUALS:
            return actual != self.value
        if op is ConditionOperator.IN:
            return isinstance(self.value, (list, tuple, set, frozenset)) and actual in self.value
        if op is ConditionOperator.NOT_IN:
            return isinstance(self.value, (list, tuple, set, frozenset)) and actual not in self.value
        if op is ConditionOperator.GREATER_THAN:
            return _is_number(actual) and _is_number(self.value) and actual > self.value
        return _is_number(actual) and _is_number(self.value) and actual < self.value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class EdgeModification:
    property: str
    new_value: Any
    reason: str


@dataclass(frozen=True)
class ConstraintEdge:
    source_id: str
    target_id: str
    type: ConstraintType
    strength: float = 1.0
    condition: EdgeCondition | None = None
    modification: EdgeModification | None = None

    def __post_init__(self) -> None:
        # Accept plain strings such as "excludes" from callers and JSON
        object.__setattr__(self, "type", ConstraintType(self.type))


@dataclass
class ConstraintGraph:
    """Edge list plus lookup indices. Built once per composition call."""

    edges: list[ConstraintEdge] = field(default_factory=list)
    by_source: dict[str, list[ConstraintEdge]] = field(default_factory=dict)
    by_target: dict[str, list[ConstraintEdge]] = field(default_factory=dict)
    by_component_pair: dict[str, list[LinguisticRule]] = field(default_factory=dict)

    def edges_from(self, object_id: str) -> list[ConstraintEdge]:
        return self.by_source.get(object_id, [])

    def edges_to(self, object_id: str) -> list[ConstraintEdge]:
        return self.by_target.get(object_id, [])

    def excludes(self, a: str, b: str) -> bool:
        """True if a hard `excludes` edge links the two objects in either direction."""
        return any(
            e.type is ConstraintType.EXCLUDES and e.target_id == b for e in self.edges_from(a)
        ) or any(
            e.type is ConstraintType.EXCLUDES and e.target_id == a for e in self.edges_from(b)
        )


def normalize_collocation_strength(score: float) -> float:
    """
    Map a collocation score into [0, 1].

    Scores in [-1, 1] are treated as NPMI and shifted linearly; anything else
    is treated as raw PMI and squashed with a sigmoid centred at 2.
    """
    if -1 <= score <= 1:
        return (score + 1) / 2
    return 1 / (1 + math.exp(-score + 2))


def build_constraint_graph(
    collocations: Iterable[Collocation] = (),
    extra_edges: Iterable[ConstraintEdge] = (),
    rules: Iterable[LinguisticRule] = LINGUISTIC_RULES,
) -> ConstraintGraph:
    """
    Build a constraint graph from collocations and explicit edges.

    Args:
        collocations: Pair statistics; each yields prefers edges both ways
        extra_edges: Additional edges (requires/excludes/modifies/...)
        rules: Linguistic rule table to index by component pair

    Returns:
        ConstraintGraph with by-source, by-target and by-component-pair indices
    """
    edges: list[ConstraintEdge] = []

    for coll in map(Collocation._make, collocations):
        strength = normalize_collocation_strength(coll.score)
        edges.append(ConstraintEdge(coll.object_a, coll.object_b, ConstraintType.PREFERS, strength))
        edges.append(ConstraintEdge(coll.object_b, coll.object_a, ConstraintType.PREFERS, strength))

    edges.extend(extra_edges)

    by_source: dict[str, list[ConstraintEdge]] = defaultdict(list)
    by_target: dict[str, list[ConstraintEdge]] = defaultdict(list)
    for edge in edges:
        by_source[edge.source_id].append(edge)
        by_target[edge.target_id].append(edge)

    by_component_pair: dict[str, list[LinguisticRule]] = defaultdict(list)
    for rule in rules:
        by_component_pair[rule.pair_key].append(rule)

    logger.debug(f"Constraint graph built: {len(edges)} edges")
    return ConstraintGraph(
        edges=edges,
        by_source=dict(by_source),
        by_target=dict(by_target),
        by_component_pair=dict(by_component_pair),
    )
