"""
Task Composer.

Fills a template's slots with candidate objects using a greedy,
synergy-aware optimizer:

1. Fill required slots first with the best-scoring eligible candidate
2. Fill optional slots in declared order while the cognitive budget allows
3. Add a pairwise synergy bonus over the final assignments

When a constraint graph is supplied, every assignment is propagated and
later slots only consider candidates the propagation still allows.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger
from pydantic import BaseModel, Field

from fluency.composition.economic_value import ObjectCandidate
from fluency.composition.templates import ObjectSlot, TaskTemplate
from fluency.constraints.graph import ConstraintGraph
from fluency.constraints.propagation import (
    ConstraintPropagation,
    PropagationTrigger,
    propagate,
    validate_assignments,
)
from fluency.core.components import (
    ROLE_CONFIGS,
    ComponentCode,
    InteractionModel,
    ObjectRole,
    TaskType,
    process_multiplier,
)
from fluency.core.models import LanguageObject, clamp

if TYPE_CHECKING:
    from config import Settings


class CompositionOptimizationConfig(BaseModel):
    """Weights and limits for one composition call."""

    max_cognitive_load: float = Field(1.5, ge=0.0, description="Budget for optional slots")
    synergy_weight: float = Field(0.3, ge=0.0)
    urgency_weight: float = Field(0.2, ge=0.0)
    exposure_balance_weight: float = Field(0.1, ge=0.0)
    min_learning_value: float = Field(0.05, ge=0.0)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> CompositionOptimizationConfig:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_composition_config())


# ============================================================================
# RESULT TYPES
# ============================================================================

OVERLOAD_REASON = "cognitive_overload"

EVALUATED_ROLES = (ObjectRole.ASSESSMENT, ObjectRole.PRACTICE)

PARTIAL_CREDIT_LEVELS: list[tuple[float, str]] = [
    (1.0, "Correct and appropriate usage"),
    (0.7, "Minor error but meaning preserved"),
    (0.4, "Significant error but attempt made"),
    (0.0, "Incorrect or omitted"),
]


@dataclass
class FilledSlot:
    """A slot resolved to a concrete object."""

    slot: ObjectSlot
    object: LanguageObject
    effective_value: float
    effective_cost: float
    mastery_stage: int
    automaticity: float

    @property
    def slot_id(self) -> str:
        return self.slot.slot_id

    @property
    def object_id(self) -> str:
        return self.object.id

    @property
    def content(self) -> str:
        return self.object.content

    @property
    def role(self) -> ObjectRole:
        return self.slot.role

    @property
    def weight(self) -> float:
        return self.slot.weight

    @property
    def difficulty(self) -> float:
        return self.object.irt_difficulty

    @property
    def discrimination(self) -> float:
        return self.object.irt_discrimination


@dataclass
class SlotCriterion:
    slot_id: str
    criteria: str
    partial_credit_levels: list[tuple[float, str]]


@dataclass
class TaskRubric:
    slot_criteria: list[SlotCriterion]
    overall_criteria: str


@dataclass
class ComposedTask:
    task_id: str
    template_id: str
    filled_slots: list[FilledSlot]
    task_type: TaskType
    task_format: str
    modality: str
    domain: str
    interaction_model: InteractionModel
    composite_difficulty: float
    content: str
    expected_answers: list[str]
    rubric: TaskRubric

    def slot(self, slot_id: str) -> FilledSlot | None:
        return next((s for s in self.filled_slots if s.slot_id == slot_id), None)


@dataclass
class ExcludedCandidate:
    object_id: str
    reason: str


@dataclass
class CompositionResult:
    """
    Outcome of one composition call.

    An unfillable required slot is reported through success=False and
    failure_reason; it is never raised.
    """

    task: ComposedTask | None
    total_value: float
    total_cost: float
    efficiency: float
    synergy_bonus: float
    excluded_objects: list[ExcludedCandidate]
    success: bool
    failure_reason: str | None = None
    alternatives_considered: int = 0
    propagations: list[ConstraintPropagation] = field(default_factory=list)
    constraint_violations: list[str] = field(default_factory=list)


@dataclass
class _SlotAssignment:
    slot: ObjectSlot
    candidate: ObjectCandidate
    effective_value: float
    effective_cost: float


@dataclass
class _CompositionState:
    assignments: dict[str, _SlotAssignment] = field(default_factory=dict)
    total_value: float = 0.0
    total_cost: float = 0.0
    synergy_bonus: float = 0.0
    used_object_ids: set[str] = field(default_factory=set)
    scored: int = 0
    # Constraint state accumulated from propagation
    excluded_ids: set[str] = field(default_factory=set)
    # slot_id -> restricted component -> allowed object ids
    restrictions: dict[str, dict[ComponentCode | None, set[str]]] = field(default_factory=dict)
    preference_bonus: dict[str, float] = field(default_factory=dict)
    propagations: list[ConstraintPropagation] = field(default_factory=list)


# ============================================================================
# COMPOSER
# ============================================================================


class TaskComposer:
    """
    Greedy slot-filling optimizer.

    Deterministic: for a given candidate ordering the first-seen candidate
    wins ties.
    """

    def __init__(
        self,
        config: CompositionOptimizationConfig | None = None,
        graph: ConstraintGraph | None = None,
    ):
        self.config = config or CompositionOptimizationConfig()
        self.graph = graph

    def compose(
        self,
        template: TaskTemplate,
        candidates: list[ObjectCandidate],
        cognitive_load_budget: float | None = None,
        config: CompositionOptimizationConfig | None = None,
        graph: ConstraintGraph | None = None,
        domain: str = "general",
    ) -> CompositionResult:
        """
        Compose a task from a template and a candidate pool.

        Args:
            template: Slot layout to fill
            candidates: Candidate pool, in ranking order
            cognitive_load_budget: Overrides config.max_cognitive_load
            config: Overrides the composer's default config
            graph: Overrides the composer's constraint graph
            domain: Domain label carried onto the composed task

        Returns:
            CompositionResult (success=False when a required slot is unfillable)
        """
        config = config or self.config
        graph = graph if graph is not None else self.graph
        budget = config.max_cognitive_load if cognitive_load_budget is None else cognitive_load_budget

        state = _CompositionState()
        excluded: list[ExcludedCandidate] = []

        for slot in template.required_slots:
            best = self._find_best_assignment(slot, candidates, state, config, graph)
            if best is None:
                reason = f"No eligible candidate for required slot '{slot.slot_id}'"
                logger.warning(f"Composition of {template.template_id} failed: {reason}")
                return self._failure(state, excluded, reason)

            self._apply_assignment(state, best, template, candidates, graph)

        for slot in template.optional_slots:
            if state.total_cost >= budget:
                break

            best = self._find_best_assignment(slot, candidates, state, config, graph)
            if best is None:
                continue

            if state.total_cost + best.effective_cost <= budget:
                self._apply_assignment(state, best, template, candidates, graph)
            else:
                logger.debug(f"{best.candidate.id} rejected for {slot.slot_id}: over budget")
                excluded.append(ExcludedCandidate(best.candidate.id, OVERLOAD_REASON))

        state.synergy_bonus = synergy_bonus(state.assignments.values()) * config.synergy_weight
        state.total_value += state.synergy_bonus

        violations: list[str] = []
        if graph is not None:
            _, violations = validate_assignments(
                {sid: a.candidate.object for sid, a in state.assignments.items()}, graph
            )

        task = build_composed_task(template, list(state.assignments.values()), domain)
        logger.info(
            f"Composed {template.template_id}: {len(task.filled_slots)} slots, "
            f"value={state.total_value:.3f}, cost={state.total_cost:.3f}"
        )

        return CompositionResult(
            task=task,
            total_value=state.total_value,
            total_cost=state.total_cost,
            efficiency=state.total_value / state.total_cost if state.total_cost > 0 else 0.0,
            synergy_bonus=state.synergy_bonus,
            excluded_objects=excluded,
            success=True,
            alternatives_considered=state.scored,
            propagations=state.propagations,
            constraint_violations=violations,
        )

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _find_best_assignment(
        self,
        slot: ObjectSlot,
        candidates: list[ObjectCandidate],
        state: _CompositionState,
        config: CompositionOptimizationConfig,
        graph: ConstraintGraph | None,
    ) -> _SlotAssignment | None:
        best: _SlotAssignment | None = None
        best_score = -math.inf
        role_config = ROLE_CONFIGS[slot.role]
        multiplier = process_multiplier(slot.required_process)

        for candidate in candidates:
            if candidate.id in state.used_object_ids:
                continue
            if not satisfies_slot_constraints(candidate, slot, state.assignments):
                continue
            if graph is not None and not self._allowed_by_constraints(candidate, slot, state, graph):
                continue

            effective_value = (
                candidate.value.learning_value
                * slot.weight
                * role_config.theta_multiplier
                * candidate.value.role_affinity.get(slot.role, 0.0)
            )
            effective_cost = candidate.value.cognitive_cost * multiplier * slot.weight

            if effective_value < config.min_learning_value:
                continue

            state.scored += 1
            synergy_potential = sum(
                candidate.synergy_with(a.candidate.id) * config.synergy_weight
                for a in state.assignments.values()
            )
            score = (
                effective_value
                + synergy_potential
                + candidate.value.urgency * config.urgency_weight
                + candidate.value.exposure_balance * config.exposure_balance_weight
                + state.preference_bonus.get(candidate.id, 0.0)
                - effective_cost * 0.5
            )

            if score > best_score:
                best_score = score
                best = _SlotAssignment(slot, candidate, effective_value, effective_cost)

        return best

    @staticmethod
    def _allowed_by_constraints(
        candidate: ObjectCandidate,
        slot: ObjectSlot,
        state: _CompositionState,
        graph: ConstraintGraph,
    ) -> bool:
        if candidate.id in state.excluded_ids:
            return False

        by_component = state.restrictions.get(slot.slot_id, {})
        allowed = by_component.get(candidate.component, by_component.get(None))
        if allowed is not None and candidate.id not in allowed:
            return False

        return not any(graph.excludes(candidate.id, a.candidate.id) for a in state.assignments.values())

    def _apply_assignment(
        self,
        state: _CompositionState,
        assignment: _SlotAssignment,
        template: TaskTemplate,
        candidates: list[ObjectCandidate],
        graph: ConstraintGraph | None,
    ) -> None:
        state.assignments[assignment.slot.slot_id] = assignment
        state.total_value += assignment.effective_value
        state.total_cost += assignment.effective_cost
        state.used_object_ids.add(assignment.candidate.id)

        if graph is None:
            return

        propagation = propagate(
            PropagationTrigger(assignment.slot.slot_id, assignment.candidate.object),
            graph,
            [c.object for c in candidates],
            state.assignments,
            template.slots,
        )
        state.propagations.append(propagation)
        state.excluded_ids |= propagation.excluded_ids

        for restriction in propagation.restrictions:
            allowed = set(restriction.allowed_object_ids)
            by_component = state.restrictions.setdefault(restriction.slot_id, {})
            current = by_component.get(restriction.component)
            by_component[restriction.component] = allowed if current is None else current & allowed

        for pref in propagation.preferences:
            state.preference_bonus[pref.object_id] = (
                state.preference_bonus.get(pref.object_id, 0.0) + pref.adjustment
            )

    @staticmethod
    def _failure(
        state: _CompositionState,
        excluded: list[ExcludedCandidate],
        reason: str,
    ) -> CompositionResult:
        return CompositionResult(
            task=None,
            total_value=state.total_value,
            total_cost=state.total_cost,
            efficiency=state.total_value / state.total_cost if state.total_cost > 0 else 0.0,
            synergy_bonus=0.0,
            excluded_objects=excluded,
            success=False,
            failure_reason=reason,
            alternatives_considered=state.scored,
            propagations=state.propagations,
        )


# ============================================================================
# HELPERS
# ============================================================================


def satisfies_slot_constraints(
    candidate: ObjectCandidate,
    slot: ObjectSlot,
    assignments: dict[str, _SlotAssignment],
) -> bool:
    """Component, stage, automaticity, priority and related-slot synergy checks."""
    if not slot.accepts(candidate.component):
        return False

    constraints = slot.constraints
    if constraints is None:
        return True

    stage = candidate.mastery.stage
    if constraints.min_mastery_stage is not None and stage < constraints.min_mastery_stage:
        return False
    if constraints.max_mastery_stage is not None and stage > constraints.max_mastery_stage:
        return False
    if (
        constraints.min_automaticity is not None
        and candidate.value.automaticity < constraints.min_automaticity
    ):
        return False
    if constraints.min_priority is not None and candidate.object.priority < constraints.min_priority:
        return False

    if constraints.related_to_slot is not None:
        related = assignments.get(constraints.related_to_slot.slot_id)
        # Only enforced once the related slot has been filled
        if related is not None and candidate.synergy_with(related.candidate.id) <= 0:
            return False

    return True


def synergy_bonus(assignments) -> float:
    """Sum over assigned pairs of the mean of both directional synergy scores."""
    assigned = list(assignments)
    total = 0.0
    for i, first in enumerate(assigned):
        for second in assigned[i + 1:]:
            forward = first.candidate.synergy_with(second.candidate.id)
            backward = second.candidate.synergy_with(first.candidate.id)
            total += (forward + backward) / 2
    return total


def composite_difficulty(filled_slots: list[FilledSlot], base_difficulty: float) -> float:
    total_weight = sum(s.weight for s in filled_slots)
    if not filled_slots or total_weight <= 0:
        return clamp(base_difficulty)
    return clamp(sum(s.difficulty * s.weight for s in filled_slots) / total_weight)


def build_rubric(filled_slots: list[FilledSlot], template: TaskTemplate) -> TaskRubric:
    criteria = [
        SlotCriterion(
            slot_id=s.slot_id,
            criteria=f"Evaluate {s.content} ({s.role.value})",
            partial_credit_levels=list(PARTIAL_CREDIT_LEVELS),
        )
        for s in filled_slots
        if s.role in EVALUATED_ROLES
    ]
    return TaskRubric(slot_criteria=criteria, overall_criteria=f"Complete the {template.name} task correctly")


def render_content(template: TaskTemplate, filled_slots: list[FilledSlot]) -> str:
    content = template.content_template
    for s in filled_slots:
        content = content.replace("{{" + s.slot_id + "}}", s.content)
    return content


def build_composed_task(
    template: TaskTemplate,
    assignments: list[_SlotAssignment],
    domain: str = "general",
) -> ComposedTask:
    filled = [
        FilledSlot(
            slot=a.slot,
            object=a.candidate.object,
            effective_value=a.effective_value,
            effective_cost=a.effective_cost,
            mastery_stage=a.candidate.mastery.stage,
            automaticity=a.candidate.value.automaticity,
        )
        for a in assignments
    ]

    return ComposedTask(
        task_id=f"task-{uuid.uuid4().hex[:12]}",
        template_id=template.template_id,
        filled_slots=filled,
        task_type=template.task_type,
        task_format=template.task_format,
        modality=template.modalities[0] if template.modalities else "text",
        domain=domain,
        interaction_model=template.interaction_model,
        composite_difficulty=composite_difficulty(filled, template.base_difficulty),
        content=render_content(template, filled),
        expected_answers=[s.content for s in filled if s.role in EVALUATED_ROLES],
        rubric=build_rubric(filled, template),
    )
