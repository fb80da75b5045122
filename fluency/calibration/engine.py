"""
Calibration Engine.

Complete response pipeline for one multi-object task:
1. Evaluate the response per target
2. Derive per-target ability contributions and aggregate them
3. Apply the aggregated delta to a copy of the ability profile
4. Compute the next MasteryRecord for every target (accuracy, exposure,
   stage transition, review schedule)

The engine is pure: it returns the new profile and mastery records and the
caller commits them (one transaction per learner-object pair). Callers with
shared storage pass a `commit` callable so each record is derived from the
row read inside that transaction.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime

from loguru import logger

from fluency.calibration.feedback import multi_component_feedback
from fluency.calibration.schedule import ReviewScheduler, ScheduleUpdate, apply_schedule, rating_for
from fluency.calibration.scoring import (
    ComponentEvaluation,
    MultiComponentEvaluation,
    MultiObjectScoringConfig,
    evaluate_response,
)
from fluency.calibration.theta import ThetaContribution, aggregate_contributions, theta_contributions
from fluency.calibration.weights import (
    MultiObjectTarget,
    MultiObjectTaskSpec,
    allocate_weights,
    composite_difficulty,
)
from fluency.core.components import ComponentCode, ObjectRole, TaskType, q_matrix_entry
from fluency.core.models import LanguageObject, MasteryRecord, ThetaDelta, UserThetaProfile


# ============================================================================
# STAGE TRANSITIONS
# ============================================================================


@dataclass(frozen=True)
class StageThresholds:
    stage1_cue_assisted_accuracy: float = 0.50
    stage2_cue_free_accuracy: float = 0.60
    stage2_cue_assisted_accuracy: float = 0.80
    stage3_cue_free_accuracy: float = 0.75
    stage3_stability: float = 7
    stage4_cue_free_accuracy: float = 0.90
    stage4_stability: float = 30
    stage4_max_gap: float = 0.10


DEFAULT_STAGE_THRESHOLDS = StageThresholds()

# object_id, apply(current) -> new record; returns the record written
MasteryCommit = Callable[[str, Callable[[MasteryRecord | None], MasteryRecord]], MasteryRecord]


def check_stage_transition(
    mastery: MasteryRecord,
    thresholds: StageThresholds = DEFAULT_STAGE_THRESHOLDS,
) -> tuple[int, bool, str]:
    """
    Decide whether a mastery record advances one stage.

    Returns:
        (new_stage, transitioned, reason)
    """
    t = thresholds
    stage = mastery.stage
    cue_free = mastery.cue_free_accuracy
    cue_assisted = mastery.cue_assisted_accuracy
    gap = cue_assisted - cue_free

    if stage == 0:
        if cue_assisted >= t.stage1_cue_assisted_accuracy and mastery.exposure_count >= 1:
            return 1, True, f"Cue-assisted accuracy {cue_assisted:.0%} >= {t.stage1_cue_assisted_accuracy:.0%}"

    elif stage == 1:
        meets_accuracy = (
            cue_free >= t.stage2_cue_free_accuracy or cue_assisted >= t.stage2_cue_assisted_accuracy
        )
        if meets_accuracy and mastery.exposure_count >= 3:
            return 2, True, (
                f"Accuracy thresholds met (cue-free: {cue_free:.0%}, cue-assisted: {cue_assisted:.0%})"
            )

    elif stage == 2:
        if cue_free >= t.stage3_cue_free_accuracy and mastery.stability >= t.stage3_stability:
            return 3, True, (
                f"Cue-free accuracy {cue_free:.0%} >= {t.stage3_cue_free_accuracy:.0%} "
                f"with {mastery.stability:.1f} days stability"
            )

    elif stage == 3:
        if (
            cue_free >= t.stage4_cue_free_accuracy
            and mastery.stability >= t.stage4_stability
            and gap <= t.stage4_max_gap
        ):
            return 4, True, (
                f"Mastery achieved: {cue_free:.0%} accuracy, "
                f"{mastery.stability:.1f} days stability, {gap:.0%} gap"
            )

    return stage, False, "Thresholds not met"


# ============================================================================
# OUTCOME TYPES
# ============================================================================


@dataclass
class MasteryUpdate:
    object_id: str
    component: ComponentCode
    previous_stage: int
    new_stage: int
    stage_changed: bool
    new_accuracy: float
    record: MasteryRecord
    schedule: ScheduleUpdate


@dataclass
class CalibrationOutcome:
    evaluation: MultiComponentEvaluation
    contributions: list[ThetaContribution]
    aggregated: ThetaDelta
    profile: UserThetaProfile
    mastery_updates: list[MasteryUpdate] = field(default_factory=list)
    feedback: str = ""


class CalibrationEngine:
    """Scores responses and derives ability and mastery updates."""

    def __init__(
        self,
        config: MultiObjectScoringConfig | None = None,
        scheduler: ReviewScheduler | None = None,
        thresholds: StageThresholds = DEFAULT_STAGE_THRESHOLDS,
    ):
        self.config = config or MultiObjectScoringConfig()
        self.scheduler = scheduler or ReviewScheduler()
        self.thresholds = thresholds

    def process_response(
        self,
        profile: UserThetaProfile,
        spec: MultiObjectTaskSpec,
        response: str,
        masteries: Mapping[str, MasteryRecord] | None = None,
        cue_level: int = 0,
        now: datetime | None = None,
    ) -> CalibrationOutcome:
        """
        Evaluate a response and compute every resulting update.

        Args:
            profile: Ability profile before the response
            spec: Weighted multi-object task spec
            response: Learner's raw response
            masteries: object_id -> current mastery (missing ids start fresh)
            cue_level: 0 for cue-free, >0 when cues were shown
            now: Reference time for scheduling

        Returns:
            CalibrationOutcome with the new profile and mastery records
        """
        evaluation = evaluate_response(response, spec, self.config)
        return self.calibrate(profile, spec, evaluation, masteries, cue_level, now)

    def calibrate(
        self,
        profile: UserThetaProfile,
        spec: MultiObjectTaskSpec,
        evaluation: MultiComponentEvaluation,
        masteries: Mapping[str, MasteryRecord] | None = None,
        cue_level: int = 0,
        now: datetime | None = None,
        commit: MasteryCommit | None = None,
    ) -> CalibrationOutcome:
        """
        Same as process_response for an evaluation produced elsewhere.

        With `commit`, each mastery update is computed from the record handed
        over by the commit callable and `masteries` is ignored.
        """
        now = now or datetime.now()
        masteries = masteries or {}

        contributions = theta_contributions(profile, spec, evaluation, self.config)
        aggregated = aggregate_contributions(contributions, self.config.learning_rate)
        new_profile = profile.apply(aggregated)

        updates = []
        for target, component_eval in zip(spec.targets, evaluation.component_evaluations):
            if commit is None:
                updates.append(
                    self.update_mastery(target, component_eval, masteries.get(target.object_id), cue_level, now)
                )
            else:
                updates.append(self._commit_mastery(commit, target, component_eval, cue_level, now))

        for update in updates:
            if update.stage_changed:
                logger.info(
                    f"Object {update.object_id} advanced stage {update.previous_stage} -> {update.new_stage}"
                )

        return CalibrationOutcome(
            evaluation=evaluation,
            contributions=contributions,
            aggregated=aggregated,
            profile=new_profile,
            mastery_updates=updates,
            feedback=multi_component_feedback(evaluation),
        )

    def _commit_mastery(
        self,
        commit: MasteryCommit,
        target: MultiObjectTarget,
        component_eval: ComponentEvaluation,
        cue_level: int,
        now: datetime,
    ) -> MasteryUpdate:
        applied: list[MasteryUpdate] = []

        def apply(current: MasteryRecord | None) -> MasteryRecord:
            update = self.update_mastery(target, component_eval, current, cue_level, now)
            applied[:] = [update]
            return update.record

        commit(target.object_id, apply)
        return applied[0]

    def update_mastery(
        self,
        target: MultiObjectTarget,
        component_eval: ComponentEvaluation,
        mastery: MasteryRecord | None,
        cue_level: int,
        now: datetime,
    ) -> MasteryUpdate:
        mastery = mastery or MasteryRecord()
        previous_stage = mastery.stage
        exposures = mastery.exposure_count + 1

        if cue_level == 0:
            new_accuracy = (mastery.cue_free_accuracy * mastery.exposure_count + component_eval.partial_credit) / exposures
            record = replace(mastery, cue_free_accuracy=new_accuracy, exposure_count=exposures)
        else:
            new_accuracy = (
                mastery.cue_assisted_accuracy * mastery.exposure_count + component_eval.partial_credit
            ) / exposures
            record = replace(mastery, cue_assisted_accuracy=new_accuracy, exposure_count=exposures)

        schedule = self.scheduler.review(
            record.stability,
            record.difficulty,
            record.last_review,
            rating_for(component_eval.correct, component_eval.partial_credit),
            now,
        )
        record = apply_schedule(record, schedule, now)

        new_stage, changed, _ = check_stage_transition(record, self.thresholds)
        record = replace(record, stage=new_stage)

        return MasteryUpdate(
            object_id=target.object_id,
            component=target.component,
            previous_stage=previous_stage,
            new_stage=new_stage,
            stage_changed=changed,
            new_accuracy=new_accuracy,
            record=record,
            schedule=schedule,
        )


# ============================================================================
# TASK SPEC HELPERS
# ============================================================================


def create_multi_object_task_spec(
    task_id: str,
    objects: Sequence[tuple[LanguageObject, bool]],
    task_type: TaskType | str,
    expected_answer: str,
    task_format: str = "freeform",
    modality: str = "text",
    domain: str = "general",
    is_fluency_task: bool = False,
    roles: Mapping[str, ObjectRole] | None = None,
) -> MultiObjectTaskSpec:
    """
    Build a weighted task spec from (object, is_primary) pairs.

    Every target uses the task type's primary cognitive process. Roles
    default to assessment; pass `roles` (object_id -> role) for slot-filled
    tasks so practice and reinforcement objects move ability less.
    """
    roles = roles or {}
    entry = q_matrix_entry(task_type)
    targets = allocate_weights(
        [
            MultiObjectTarget(
                object_id=obj.id,
                component=obj.component,
                content=obj.content,
                is_primary=is_primary,
                cognitive_process=entry.primary_process,
                difficulty=obj.irt_difficulty,
                discrimination=obj.irt_discrimination,
                role=ObjectRole(roles.get(obj.id, ObjectRole.ASSESSMENT)),
            )
            for obj, is_primary in objects
        ],
        entry.task_type,
    )

    return MultiObjectTaskSpec(
        task_id=task_id,
        targets=targets,
        task_type=entry.task_type,
        expected_answer=expected_answer,
        composite_difficulty=composite_difficulty(targets),
        task_format=task_format,
        modality=modality,
        domain=domain,
        is_fluency_task=is_fluency_task,
    )


def should_use_multi_object_processing(
    targets: Sequence[MultiObjectTarget] | None,
    task_type: TaskType | str,
) -> bool:
    """Multiple explicit targets, or a task type whose Q-matrix row spans three or more components."""
    if targets and len(targets) > 1:
        return True
    return len(q_matrix_entry(task_type).components) >= 3
