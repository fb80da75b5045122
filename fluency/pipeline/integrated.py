"""
Integrated Task Pipeline.

Wires composition, constraint propagation, usage-space context selection,
multi-layer evaluation and calibration into two calls:

generate_task:
1. Load the goal's objects, mastery records and collocations
2. Build the candidate pool with economic values
3. Build the constraint graph
4. Find suitable templates and pick the best one for the pool
5. Select the usage context (explicit or expansion-driven)
6. Compose with constraint-aware slot filling
7. Fall back to a single-object recognition task if composition fails

process_response:
1. Evaluate the response per object (multi-layer)
2. Calibrate ability and mastery; commit mastery through the repository
3. Record usage events and detect expansions
4. Build feedback that celebrates expansions
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from loguru import logger

from fluency.calibration.engine import CalibrationEngine, CalibrationOutcome, create_multi_object_task_spec
from fluency.calibration.weights import MultiObjectTaskSpec
from fluency.composition.composer import (
    ComposedTask,
    CompositionOptimizationConfig,
    CompositionResult,
    TaskComposer,
)
from fluency.composition.economic_value import ObjectCandidate, build_candidate_pool
from fluency.composition.templates import TASK_TEMPLATES, TaskTemplate, find_suitable_templates
from fluency.constraints.graph import ConstraintGraph, build_constraint_graph
from fluency.core.components import ROLE_CONFIGS, ComponentCode, ObjectRole, TaskType
from fluency.core.models import Collocation, LanguageObject, MasteryRecord, UserThetaProfile
from fluency.evaluation.layers import EvaluationMode, ObjectEvaluationConfig
from fluency.evaluation.multi_layer import (
    BatchEvaluationResult,
    ObjectEvaluationInput,
    ObjectEvaluationResult,
    ThetaInput,
    evaluate_batch,
    evaluation_to_theta_input,
)
from fluency.usage.contexts import STANDARD_CONTEXTS, UsageContext, get_context
from fluency.usage.progress import calculate_usage_progress
from fluency.usage.tracker import (
    ExpansionEvent,
    ObjectUsageSpace,
    UsageEvent,
    UsageSpaceTracker,
    select_task_context,
)

# Only the top of the pool is consulted for context selection
CONTEXT_SELECTION_POOL = 20
MAX_MATCHES_PER_SLOT = 5
ASSESSMENT_SLOT_BONUS = 2

# Roles whose results move ability (incidental objects have a zero multiplier)
CALIBRATED_ROLES = tuple(role for role in ObjectRole if ROLE_CONFIGS[role].theta_multiplier > 0)


class ObjectSource(Protocol):
    """What the pipeline needs from object storage."""

    def fetch_objects_for_goal(self, goal_id: str | None) -> list[LanguageObject]: ...

    def fetch_mastery(self, object_ids: Sequence[str]) -> dict[str, MasteryRecord]: ...

    def upsert_mastery(self, object_id: str, record: MasteryRecord) -> None: ...

    def update_mastery(
        self,
        object_id: str,
        apply: Callable[[MasteryRecord | None], MasteryRecord],
    ) -> MasteryRecord: ...

    def fetch_collocations(self, object_ids: Sequence[str]) -> list[Collocation]: ...


# ============================================================================
# REQUEST / RESULT TYPES
# ============================================================================


@dataclass
class TaskRequest:
    session_id: str
    goal_id: str | None = None
    domain: str = "general"
    preferred_task_types: list[TaskType] | None = None
    optimization: CompositionOptimizationConfig | None = None
    prefer_expansion: bool = True
    target_context: str | None = None
    allow_fallback: bool = True
    goal_deadline: datetime | None = None


@dataclass
class PresentedTask:
    """The task as shown to the learner, for composed and fallback tasks alike."""

    task_id: str
    task_type: TaskType
    task_format: str
    modality: str
    prompt: str
    expected_answer: str
    alternatives: list[str]
    difficulty: float
    object_ids: list[str]
    metadata: dict = field(default_factory=dict)


@dataclass
class GenerationMetadata:
    candidates_considered: int = 0
    constraints_evaluated: int = 0
    efficiency: float = 0.0
    generation_time_ms: float = 0.0


@dataclass
class TaskResult:
    """
    Outcome of generate_task.

    success=False (with failure_reason) when the goal has no candidates or
    composition failed and fallback was not allowed.
    """

    success: bool
    task: PresentedTask | None
    spec: MultiObjectTaskSpec | None
    usage_context: UsageContext
    composed: ComposedTask | None = None
    composition: CompositionResult | None = None
    used_fallback: bool = False
    failure_reason: str | None = None
    metadata: GenerationMetadata = field(default_factory=GenerationMetadata)


@dataclass
class ResponseRequest:
    session_id: str
    task: PresentedTask
    spec: MultiObjectTaskSpec
    response: str
    profile: UserThetaProfile
    usage_context: UsageContext
    cue_level: int = 0
    hints_used: int = 0
    response_time_ms: int = 0
    domain: str | None = None
    now: datetime | None = None


@dataclass
class ResponseResult:
    batch: BatchEvaluationResult
    calibration: CalibrationOutcome
    usage_expansions: list[ExpansionEvent]
    updated_coverage: dict[str, float]
    feedback: str
    theta_inputs: list[ThetaInput] = field(default_factory=list)

    @property
    def object_evaluations(self) -> list[ObjectEvaluationResult]:
        return self.batch.object_results

    @property
    def profile(self) -> UserThetaProfile:
        return self.calibration.profile


@dataclass
class PipelineStatus:
    candidate_count: int
    template_count: int
    constraint_count: int
    usage_readiness: float


# ============================================================================
# PIPELINE
# ============================================================================


class TaskPipeline:
    """End-to-end task generation and response processing for one learner."""

    def __init__(
        self,
        objects: ObjectSource,
        tracker: UsageSpaceTracker,
        composer: TaskComposer | None = None,
        engine: CalibrationEngine | None = None,
    ):
        self.objects = objects
        self.tracker = tracker
        self.composer = composer or TaskComposer()
        self.engine = engine or CalibrationEngine()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_task(self, request: TaskRequest) -> TaskResult:
        """
        Generate the next task for a goal.

        Args:
            request: Goal, session and composition preferences

        Returns:
            TaskResult with the presented task and its calibration spec
        """
        started = time.perf_counter()

        candidates = self._load_candidates(request)
        if not candidates:
            logger.warning(f"No candidates for goal {request.goal_id}")
            return TaskResult(
                success=False,
                task=None,
                spec=None,
                usage_context=STANDARD_CONTEXTS[0],
                failure_reason="no_candidates",
                metadata=GenerationMetadata(generation_time_ms=_elapsed_ms(started)),
            )

        graph = build_constraint_graph(self.objects.fetch_collocations([c.id for c in candidates]))

        spaces = [
            self.tracker.get_usage_space(c.id, c.component, request.domain)
            for c in candidates[:CONTEXT_SELECTION_POOL]
        ]

        templates = find_suitable_templates({c.component for c in candidates}, request.preferred_task_types)
        if not templates:
            return self._fallback(request, candidates, graph, started, "no_templates")

        template = select_best_template(templates, candidates)
        context = self._resolve_context(request, spaces, template.task_type)

        composition = self.composer.compose(
            template,
            candidates,
            config=request.optimization,
            graph=graph,
            domain=context.domain,
        )
        if not composition.success or composition.task is None or not composition.task.filled_slots:
            reason = composition.failure_reason or "composition_failed"
            logger.info(f"Composition with {template.template_id} failed ({reason}); falling back")
            return self._fallback(request, candidates, graph, started, reason)

        composed = composition.task
        spec = build_task_spec(composed)
        task = composed_to_presented(composed, context)

        logger.debug(
            f"Generated {composed.task_type.value} task {composed.task_id} "
            f"from {template.template_id} in {context.context_id}"
        )

        return TaskResult(
            success=True,
            task=task,
            spec=spec,
            usage_context=context,
            composed=composed,
            composition=composition,
            metadata=GenerationMetadata(
                candidates_considered=len(candidates),
                constraints_evaluated=len(graph.edges),
                efficiency=composition.efficiency,
                generation_time_ms=_elapsed_ms(started),
            ),
        )

    def quick_generate_task(self, session_id: str, goal_id: str | None = None, domain: str = "general") -> TaskResult:
        """generate_task with fallback and expansion preference on."""
        return self.generate_task(
            TaskRequest(session_id=session_id, goal_id=goal_id, domain=domain, allow_fallback=True, prefer_expansion=True)
        )

    def _load_candidates(self, request: TaskRequest) -> list[ObjectCandidate]:
        objects = self.objects.fetch_objects_for_goal(request.goal_id)
        if not objects:
            return []
        ids = [o.id for o in objects]
        return build_candidate_pool(
            objects,
            self.objects.fetch_mastery(ids),
            self.objects.fetch_collocations(ids),
            goal_deadline=request.goal_deadline,
        )

    def _resolve_context(
        self,
        request: TaskRequest,
        spaces: Sequence[ObjectUsageSpace],
        task_type: TaskType,
    ) -> UsageContext:
        if request.target_context:
            context = get_context(request.target_context)
            if context is None:
                logger.warning(f"Unknown context {request.target_context!r}, using {STANDARD_CONTEXTS[0].context_id}")
                return STANDARD_CONTEXTS[0]
            return context
        return select_task_context(spaces, task_type, request.prefer_expansion)

    def _fallback(
        self,
        request: TaskRequest,
        candidates: list[ObjectCandidate],
        graph: ConstraintGraph,
        started: float,
        reason: str,
    ) -> TaskResult:
        context = STANDARD_CONTEXTS[0]
        if not request.allow_fallback:
            return TaskResult(
                success=False,
                task=None,
                spec=None,
                usage_context=context,
                failure_reason=reason,
                metadata=GenerationMetadata(
                    candidates_considered=len(candidates),
                    constraints_evaluated=len(graph.edges),
                    generation_time_ms=_elapsed_ms(started),
                ),
            )

        top = max(candidates, key=lambda c: c.value.learning_value)
        task_id = str(uuid.uuid4())
        spec = create_multi_object_task_spec(
            task_id,
            [(top.object, True)],
            TaskType.RECOGNITION,
            expected_answer=top.object.content,
            task_format="mcq",
            domain=request.domain,
        )
        spec.metadata["evaluation_mode"] = EvaluationMode.BINARY.value

        task = PresentedTask(
            task_id=task_id,
            task_type=TaskType.RECOGNITION,
            task_format="mcq",
            modality="text",
            prompt=f"Select the correct form: {top.object.content}",
            expected_answer=top.object.content,
            alternatives=[],
            difficulty=spec.composite_difficulty,
            object_ids=[top.id],
            metadata={"context": context.context_id, "fallback_reason": reason},
        )

        return TaskResult(
            success=True,
            task=task,
            spec=spec,
            usage_context=context,
            used_fallback=True,
            failure_reason=reason,
            metadata=GenerationMetadata(
                candidates_considered=1,
                constraints_evaluated=0,
                generation_time_ms=_elapsed_ms(started),
            ),
        )

    # ------------------------------------------------------------------
    # Response processing
    # ------------------------------------------------------------------

    def process_response(self, request: ResponseRequest) -> ResponseResult:
        """
        Evaluate, calibrate and record usage for one response.

        Each mastery record is read, updated and written in one unit of work
        per object through the object source; the new ability profile is
        returned for the caller to store.

        Args:
            request: Presented task, its spec, the raw response and context

        Returns:
            ResponseResult with evaluations, calibration outcome and expansions
        """
        now = request.now or datetime.now()
        inputs = build_evaluation_inputs(request.spec, request.response, request.usage_context)
        batch = evaluate_batch(inputs, self.engine.config.strictness)
        theta_inputs = [
            evaluation_to_theta_input(result, item.role, item.weight)
            for result, item in zip(batch.object_results, inputs)
        ]

        outcome = self.engine.calibrate(
            request.profile,
            request.spec,
            batch.aggregated,
            cue_level=request.cue_level,
            now=now,
            commit=self.objects.update_mastery,
        )

        expansions: list[ExpansionEvent] = []
        coverage: dict[str, float] = {}
        for result in batch.object_results:
            recorded = self.tracker.record_usage(
                UsageEvent(
                    object_id=result.object_id,
                    context_id=request.usage_context.context_id,
                    score=result.score,
                    success=result.correct,
                    component=result.component,
                    session_id=request.session_id,
                    task_id=request.task.task_id,
                    task_type=request.task.task_type,
                    timestamp=now,
                ),
                request.domain or request.usage_context.domain,
            )
            if recorded.expansion is not None:
                expansions.append(recorded.expansion)
            coverage[result.object_id] = recorded.new_coverage

        return ResponseResult(
            batch=batch,
            calibration=outcome,
            usage_expansions=expansions,
            updated_coverage=coverage,
            feedback=enhanced_feedback(batch, expansions, request.usage_context),
            theta_inputs=theta_inputs,
        )

    def status(self, goal_id: str | None = None, domain: str = "general") -> PipelineStatus:
        """Pool size, template count, constraint count and usage readiness for a goal."""
        objects = self.objects.fetch_objects_for_goal(goal_id)
        ids = [o.id for o in objects]
        graph = build_constraint_graph(self.objects.fetch_collocations(ids))

        by_component: dict[ComponentCode, list[ObjectUsageSpace]] = {}
        for obj in objects:
            space = self.tracker.get_usage_space(obj.id, obj.component, domain)
            by_component.setdefault(obj.component, []).append(space)

        return PipelineStatus(
            candidate_count=len(objects),
            template_count=len(TASK_TEMPLATES),
            constraint_count=len(graph.edges),
            usage_readiness=calculate_usage_progress(by_component).overall_readiness,
        )


# ============================================================================
# HELPERS
# ============================================================================


def select_best_template(templates: Sequence[TaskTemplate], candidates: Sequence[ObjectCandidate]) -> TaskTemplate:
    """
    Template with the most fillable slots for this pool.

    Each slot scores min(matching candidates, 5), plus 2 for assessment
    slots. Ties keep library order.
    """
    best, best_score = templates[0], -1
    for template in templates:
        score = 0
        for slot in template.slots:
            matching = sum(1 for c in candidates if slot.accepts(c.component))
            score += min(matching, MAX_MATCHES_PER_SLOT)
            if slot.role == ObjectRole.ASSESSMENT:
                score += ASSESSMENT_SLOT_BONUS
        if score > best_score:
            best, best_score = template, score
    return best


def build_task_spec(task: ComposedTask) -> MultiObjectTaskSpec:
    """Calibration spec over the slots of a composed task whose role moves ability."""
    evaluated = [s for s in task.filled_slots if s.role in CALIBRATED_ROLES]
    spec = create_multi_object_task_spec(
        task.task_id,
        [(s.object, s.role == ObjectRole.ASSESSMENT) for s in evaluated],
        task.task_type,
        expected_answer=task.expected_answers[0] if task.expected_answers else "",
        task_format=task.task_format,
        modality=task.modality,
        domain=task.domain,
        roles={s.object_id: s.role for s in evaluated},
    )
    spec.interaction_model = task.interaction_model
    spec.metadata["evaluation_mode"] = EvaluationMode.PARTIAL_CREDIT.value
    spec.metadata["roles"] = {s.object_id: s.role.value for s in evaluated}
    spec.metadata["template_id"] = task.template_id
    return spec


def composed_to_presented(task: ComposedTask, context: UsageContext) -> PresentedTask:
    return PresentedTask(
        task_id=task.task_id,
        task_type=task.task_type,
        task_format=task.task_format,
        modality=task.modality,
        prompt=task.content,
        expected_answer=task.expected_answers[0] if task.expected_answers else "",
        alternatives=task.expected_answers[1:],
        difficulty=task.composite_difficulty,
        object_ids=[s.object_id for s in task.filled_slots],
        metadata={
            "context": context.context_id,
            "domain": context.domain,
            "register": context.register,
            "slots_used": len(task.filled_slots),
        },
    )


def build_evaluation_inputs(
    spec: MultiObjectTaskSpec,
    response: str,
    context: UsageContext,
) -> list[ObjectEvaluationInput]:
    """
    One evaluation input per spec target, in target order.

    Composed tasks grade each object against its own content with partial
    credit; single-object tasks grade the whole answer in binary mode.
    """
    mode = EvaluationMode(spec.metadata.get("evaluation_mode", EvaluationMode.BINARY.value))
    roles = spec.metadata.get("roles", {})
    single = len(spec.targets) == 1 and mode == EvaluationMode.BINARY

    return [
        ObjectEvaluationInput(
            object_id=target.object_id,
            component=target.component,
            response=response,
            expected=[spec.expected_answer if single else target.content],
            config=ObjectEvaluationConfig(mode=mode),
            role=ObjectRole(roles.get(target.object_id, ObjectRole.ASSESSMENT.value)),
            weight=target.weight,
            task_type=spec.task_type.value,
            domain=context.domain,
            register=context.register,
        )
        for target in spec.targets
    ]


def enhanced_feedback(
    batch: BatchEvaluationResult,
    expansions: Sequence[ExpansionEvent],
    context: UsageContext,
) -> str:
    feedback = batch.aggregated.feedback
    if len(expansions) == 1:
        feedback = f"{feedback}\n\nGreat! You've successfully used this in {context.name}!"
    elif expansions:
        feedback = f"{feedback}\n\nExcellent! You've expanded your usage in {len(expansions)} areas!"
    return feedback


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
