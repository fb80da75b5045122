"""
Cascading constraint propagation.

When an object is chosen for a slot, propagation works out what that choice
implies for the rest of the task:

    Select SYNT "passive voice"
    -> restricts LEX slots to transitive verbs
    -> requires a MORPH past-participle form
    -> prefers certain collocations

A processed set keyed by object id guarantees termination over cyclic graphs
(bidirectional `prefers` edges always form cycles).
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from fluency.constraints.graph import ConstraintGraph
from fluency.constraints.rules import LINGUISTIC_RULES, ConstraintType, apply_predicate
from fluency.core.components import ComponentCode
from fluency.core.models import LanguageObject

if TYPE_CHECKING:
    from fluency.composition.templates import ObjectSlot


@dataclass(frozen=True)
class PropagationTrigger:
    slot_id: str
    object: LanguageObject

    @property
    def object_id(self) -> str:
        return self.object.id


@dataclass(frozen=True)
class RequiredObject:
    object_id: str
    reason: str
    from_constraint: str


@dataclass(frozen=True)
class ExcludedObject:
    object_id: str
    reason: str
    from_constraint: str


@dataclass(frozen=True)
class SlotRestriction:
    """
    Objects a slot may still take from one component.

    Candidates of other components are untouched, so a slot accepting
    both LEX and PRAG keeps its PRAG candidates under a LEX restriction.
    """

    slot_id: str
    allowed_object_ids: list[str]
    reason: str
    component: ComponentCode | None = None

    def permits(self, obj: LanguageObject) -> bool:
        if self.component is not None and obj.component is not self.component:
            return True
        return obj.id in self.allowed_object_ids


@dataclass(frozen=True)
class PreferenceAdjustment:
    object_id: str
    adjustment: float
    reason: str


@dataclass(frozen=True)
class PropertyModification:
    object_id: str
    property: str
    new_value: Any
    reason: str
    original_value: Any = None


@dataclass
class ConstraintPropagation:
    """Everything a single selection implies for the remaining slots."""

    trigger_slot_id: str
    trigger_object_id: str
    required: list[RequiredObject] = field(default_factory=list)
    excluded: list[ExcludedObject] = field(default_factory=list)
    restrictions: list[SlotRestriction] = field(default_factory=list)
    preferences: list[PreferenceAdjustment] = field(default_factory=list)
    modifications: list[PropertyModification] = field(default_factory=list)

    @property
    def excluded_ids(self) -> set[str]:
        return {e.object_id for e in self.excluded}

    def restriction_for(self, slot_id: str) -> SlotRestriction | None:
        """First restriction recorded for a slot."""
        return next((r for r in self.restrictions if r.slot_id == slot_id), None)


@dataclass
class _PropagationContext:
    processed: set[str]
    result: ConstraintPropagation
    objects_by_id: dict[str, LanguageObject]
    objects_by_component: dict[ComponentCode, list[LanguageObject]]
    assigned_slot_ids: set[str]


# ============================================================================
# PROPAGATION
# ============================================================================


def propagate(
    trigger: PropagationTrigger,
    graph: ConstraintGraph,
    candidate_pool: Iterable[LanguageObject],
    current_assignments: Mapping[str, Any],
    slots: Sequence[ObjectSlot],
) -> ConstraintPropagation:
    """
    Propagate the consequences of selecting an object for a slot.

    Args:
        trigger: The slot and object just selected
        graph: Constraint graph for the goal
        candidate_pool: Objects still available to the task
        current_assignments: slot_id -> assigned object (only the keys are read)
        slots: Template slots

    Returns:
        ConstraintPropagation with required, excluded, restricted, preferred
        and modified objects
    """
    pool = list(candidate_pool)
    by_component: dict[ComponentCode, list[LanguageObject]] = {}
    for obj in pool:
        by_component.setdefault(obj.component, []).append(obj)

    context = _PropagationContext(
        processed={trigger.object_id},
        result=ConstraintPropagation(trigger.slot_id, trigger.object_id),
        objects_by_id={obj.id: obj for obj in pool},
        objects_by_component=by_component,
        assigned_slot_ids=set(current_assignments),
    )

    _apply_object_constraints(trigger.object, graph, context)
    _apply_linguistic_rules(trigger.object, context, slots)
    _propagate_from_required(graph, context, slots)

    result = context.result
    logger.debug(
        f"Propagated {trigger.object_id}: required={len(result.required)} "
        f"excluded={len(result.excluded)} restrictions={len(result.restrictions)}"
    )
    return result


def _apply_object_constraints(
    source: LanguageObject,
    graph: ConstraintGraph,
    context: _PropagationContext,
) -> None:
    result = context.result

    for edge in graph.edges_from(source.id):
        if edge.target_id in context.processed:
            continue
        if edge.condition is not None and not edge.condition.evaluate(source):
            continue

        edge_type = ConstraintType(edge.type)
        if edge_type is ConstraintType.REQUIRES:
            result.required.append(
                RequiredObject(
                    object_id=edge.target_id,
                    reason=f"Required by {source.content}",
                    from_constraint=f"{source.id}->requires->{edge.target_id}",
                )
            )
        elif edge_type is ConstraintType.EXCLUDES:
            result.excluded.append(
                ExcludedObject(
                    object_id=edge.target_id,
                    reason=f"Excluded by {source.content}",
                    from_constraint=f"{source.id}->excludes->{edge.target_id}",
                )
            )
        elif edge_type is ConstraintType.PREFERS:
            result.preferences.append(
                PreferenceAdjustment(
                    object_id=edge.target_id,
                    adjustment=edge.strength * 0.5,
                    reason=f"Preferred with {source.content} (strength: {edge.strength:.2f})",
                )
            )
        elif edge_type is ConstraintType.MODIFIES and edge.modification is not None:
            target = context.objects_by_id.get(edge.target_id)
            original = target.properties.get(edge.modification.property) if target else None
            result.modifications.append(
                PropertyModification(
                    object_id=edge.target_id,
                    property=edge.modification.property,
                    new_value=edge.modification.new_value,
                    reason=edge.modification.reason,
                    original_value=original,
                )
            )
        # restricts_to is resolved per component by the linguistic rules;
        # enables carries no selection effect on its own


def _apply_linguistic_rules(
    source: LanguageObject,
    context: _PropagationContext,
    slots: Sequence[ObjectSlot],
) -> None:
    source_component = source.component

    for rule in LINGUISTIC_RULES:
        if rule.source_component is not source_component:
            continue

        target_slots = [
            s for s in slots
            if s.accepts(rule.target_component) and s.slot_id not in context.assigned_slot_ids
        ]
        if not target_slots:
            continue

        restriction = apply_predicate(
            rule, source, context.objects_by_component.get(rule.target_component, [])
        )
        if restriction is None:
            continue

        for slot in target_slots:
            context.result.restrictions.append(
                SlotRestriction(
                    slot_id=slot.slot_id,
                    allowed_object_ids=list(restriction.allowed_ids),
                    reason=f"{rule.name}: {restriction.reason}",
                    component=rule.target_component,
                )
            )


def _propagate_from_required(
    graph: ConstraintGraph,
    context: _PropagationContext,
    slots: Sequence[ObjectSlot],
) -> None:
    # Iterative fixpoint; the processed set stops cycles
    while True:
        pending = [r for r in context.result.required if r.object_id not in context.processed]
        if not pending:
            return

        for required in pending:
            if required.object_id in context.processed:
                continue
            context.processed.add(required.object_id)

            obj = context.objects_by_id.get(required.object_id)
            if obj is None:
                continue
            _apply_object_constraints(obj, graph, context)
            _apply_linguistic_rules(obj, context, slots)


# ============================================================================
# VALIDATION AND CONSTRAINT-AWARE SELECTION
# ============================================================================


def validate_assignments(
    assignments: Mapping[str, LanguageObject],
    graph: ConstraintGraph,
) -> tuple[bool, list[str]]:
    """
    Check hard constraints over a complete set of assignments.

    Args:
        assignments: slot_id -> assigned object

    Returns:
        (valid, violations) where violations are human-readable strings
    """
    violations: list[str] = []
    assigned_ids = {obj.id for obj in assignments.values()}

    for obj in assignments.values():
        for edge in graph.edges_from(obj.id):
            edge_type = ConstraintType(edge.type)
            if edge_type is ConstraintType.REQUIRES and edge.target_id not in assigned_ids:
                violations.append(f"{obj.content} requires {edge.target_id} but it's not included")
            elif edge_type is ConstraintType.EXCLUDES and edge.target_id in assigned_ids:
                violations.append(f"{obj.content} excludes {edge.target_id} but both are included")

    return not violations, violations


def apply_constraint_preferences(
    base_values: Mapping[str, float],
    propagation: ConstraintPropagation,
) -> dict[str, float]:
    """Add preference adjustments to base values; excluded objects become -inf."""
    adjusted = dict(base_values)

    for pref in propagation.preferences:
        adjusted[pref.object_id] = adjusted.get(pref.object_id, 0.0) + pref.adjustment

    for excluded in propagation.excluded:
        adjusted[excluded.object_id] = -math.inf

    return adjusted


def apply_restrictions(
    candidates: Sequence[LanguageObject],
    slot_id: str,
    propagation: ConstraintPropagation,
) -> list[LanguageObject]:
    """Filter candidates by every restriction recorded for the slot."""
    restrictions = [r for r in propagation.restrictions if r.slot_id == slot_id]
    return [c for c in candidates if all(r.permits(c) for r in restrictions)]
