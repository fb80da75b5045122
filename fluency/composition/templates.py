"""
Task templates and slots.

A template names an ordered set of slots. Each slot declares which
components it accepts, the role its object plays, its weight, the cognitive
process it demands and optional selection constraints.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from fluency.core.components import (
    CognitiveProcess,
    ComponentCode,
    InteractionModel,
    ObjectRole,
    TaskType,
)
from fluency.core.exceptions import InvalidTemplateError


@dataclass(frozen=True)
class RelatedSlot:
    """Same-task synergy requirement with another slot."""

    slot_id: str
    relationship_type: str = "collocation"


@dataclass(frozen=True)
class SlotConstraints:
    min_mastery_stage: int | None = None
    max_mastery_stage: int | None = None
    min_automaticity: float | None = None
    min_priority: float | None = None
    related_to_slot: RelatedSlot | None = None


@dataclass(frozen=True)
class ObjectSlot:
    """One position in a task template."""

    slot_id: str
    accepted_components: tuple[ComponentCode, ...]
    role: ObjectRole
    weight: float
    required_process: CognitiveProcess
    required: bool = True
    constraints: SlotConstraints | None = None

    def accepts(self, component: ComponentCode) -> bool:
        return component in self.accepted_components


@dataclass(frozen=True)
class TaskTemplate:
    """
    Ordered slot layout for a task.

    Raises:
        InvalidTemplateError: On zero slots, duplicate slot ids or negative weights
    """

    template_id: str
    name: str
    task_type: TaskType
    task_format: str
    modalities: tuple[str, ...]
    slots: tuple[ObjectSlot, ...]
    interaction_model: InteractionModel = InteractionModel.COMPENSATORY
    base_difficulty: float = 0.0
    content_template: str = ""
    min_evaluated_weight: float = 0.5

    def __post_init__(self) -> None:
        if not self.slots:
            raise InvalidTemplateError(f"Template {self.template_id!r} has no slots")

        seen: set[str] = set()
        for slot in self.slots:
            if slot.slot_id in seen:
                raise InvalidTemplateError(
                    f"Template {self.template_id!r} has duplicate slot id {slot.slot_id!r}"
                )
            seen.add(slot.slot_id)
            if slot.weight < 0:
                raise InvalidTemplateError(
                    f"Slot {slot.slot_id!r} in template {self.template_id!r} has negative weight"
                )

    @property
    def required_slots(self) -> list[ObjectSlot]:
        return [s for s in self.slots if s.required]

    @property
    def optional_slots(self) -> list[ObjectSlot]:
        return [s for s in self.slots if not s.required]

    @property
    def accepted_components(self) -> set[ComponentCode]:
        return {c for s in self.slots for c in s.accepted_components}

    def get_slot(self, slot_id: str) -> ObjectSlot | None:
        return next((s for s in self.slots if s.slot_id == slot_id), None)


# ============================================================================
# TEMPLATE LIBRARY
# ============================================================================

_LEX = ComponentCode.LEX

TASK_TEMPLATES: list[TaskTemplate] = [
    TaskTemplate(
        template_id="vocab-recognition-basic",
        name="Vocabulary Recognition",
        task_type=TaskType.RECOGNITION,
        task_format="mcq",
        modalities=("text",),
        slots=(
            ObjectSlot(
                slot_id="target-word",
                accepted_components=(_LEX,),
                role=ObjectRole.ASSESSMENT,
                weight=1.0,
                required_process=CognitiveProcess.RECOGNITION,
            ),
        ),
        interaction_model=InteractionModel.COMPENSATORY,
        base_difficulty=0.0,
        content_template='Select the correct meaning of "{{target-word}}"',
        min_evaluated_weight=0.5,
    ),
    TaskTemplate(
        template_id="sentence-writing-multi",
        name="Sentence Writing (Multi-object)",
        task_type=TaskType.SENTENCE_WRITING,
        task_format="freeform",
        modalities=("text",),
        slots=(
            ObjectSlot(
                slot_id="target-vocab",
                accepted_components=(_LEX,),
                role=ObjectRole.ASSESSMENT,
                weight=0.4,
                required_process=CognitiveProcess.PRODUCTION,
            ),
            ObjectSlot(
                slot_id="required-grammar",
                accepted_components=(ComponentCode.SYNT,),
                role=ObjectRole.PRACTICE,
                weight=0.3,
                required_process=CognitiveProcess.TRANSFORMATION,
                constraints=SlotConstraints(min_mastery_stage=2),
            ),
            ObjectSlot(
                slot_id="collocation-word",
                accepted_components=(_LEX,),
                role=ObjectRole.REINFORCEMENT,
                weight=0.2,
                required_process=CognitiveProcess.RECALL,
                required=False,
                constraints=SlotConstraints(related_to_slot=RelatedSlot("target-vocab")),
            ),
            ObjectSlot(
                slot_id="context-vocab",
                accepted_components=(_LEX,),
                role=ObjectRole.INCIDENTAL,
                weight=0.1,
                required_process=CognitiveProcess.RECOGNITION,
                required=False,
                constraints=SlotConstraints(min_automaticity=0.6),
            ),
        ),
        interaction_model=InteractionModel.COMPENSATORY,
        base_difficulty=0.5,
        content_template='Write a sentence using "{{target-vocab}}" with the {{required-grammar}} structure.',
        min_evaluated_weight=0.5,
    ),
    TaskTemplate(
        template_id="discourse-completion",
        name="Discourse Completion",
        task_type=TaskType.PRODUCTION,
        task_format="freeform",
        modalities=("text",),
        slots=(
            ObjectSlot(
                slot_id="pragmatic-function",
                accepted_components=(ComponentCode.PRAG,),
                role=ObjectRole.ASSESSMENT,
                weight=0.5,
                required_process=CognitiveProcess.PRODUCTION,
            ),
            ObjectSlot(
                slot_id="register-marker",
                accepted_components=(_LEX, ComponentCode.PRAG),
                role=ObjectRole.PRACTICE,
                weight=0.3,
                required_process=CognitiveProcess.TRANSFORMATION,
            ),
            ObjectSlot(
                slot_id="domain-vocab",
                accepted_components=(_LEX,),
                role=ObjectRole.REINFORCEMENT,
                weight=0.2,
                required_process=CognitiveProcess.RECALL,
                required=False,
            ),
        ),
        # Pragmatics must be right for the response to count
        interaction_model=InteractionModel.CONJUNCTIVE,
        base_difficulty=0.7,
        content_template="Complete the following dialogue appropriately for {{pragmatic-function}}:",
        min_evaluated_weight=0.6,
    ),
]


def get_template(template_id: str) -> TaskTemplate | None:
    """Look up a library template by id."""
    return next((t for t in TASK_TEMPLATES if t.template_id == template_id), None)


def find_suitable_templates(
    components: Iterable[ComponentCode],
    task_types: Iterable[TaskType] | None = None,
) -> list[TaskTemplate]:
    """
    Templates with at least one slot accepting any of the given components.

    Args:
        components: Components available in the candidate pool
        task_types: Optional task-type filter

    Returns:
        Matching templates in library order
    """
    wanted = set(components)
    allowed_types = set(task_types) if task_types is not None else None

    return [
        t
        for t in TASK_TEMPLATES
        if wanted & t.accepted_components
        and (allowed_types is None or t.task_type in allowed_types)
    ]
