"""
Unit tests for the calibration package.

Covers response probability models, Q-matrix weight allocation, scoring,
ability contributions, FSRS scheduling and the CalibrationEngine.
"""

from datetime import timedelta

import pytest

from fluency.calibration.engine import (
    CalibrationEngine,
    check_stage_transition,
    create_multi_object_task_spec,
    should_use_multi_object_processing,
)
from fluency.calibration.feedback import multi_component_feedback
from fluency.calibration.probability import expected_probability
from fluency.calibration.schedule import RATING_AGAIN, RATING_EASY, RATING_GOOD, ReviewScheduler, rating_for
from fluency.calibration.scoring import ErrorType, MultiObjectScoringConfig, evaluate_response
from fluency.calibration.theta import aggregate_contributions, theta_contributions
from fluency.calibration.weights import (
    MultiObjectTarget,
    MultiObjectTaskSpec,
    allocate_weights,
    composite_difficulty,
)
from fluency.core.components import CognitiveProcess, ComponentCode, InteractionModel, ObjectRole, TaskType
from fluency.core.exceptions import InvalidInputError
from fluency.core.models import MasteryRecord, UserThetaProfile


def target(object_id="t1", component=ComponentCode.LEX, is_primary=True, weight=1.0, difficulty=0.0, **kwargs):
    return MultiObjectTarget(
        object_id=object_id,
        component=component,
        content=kwargs.pop("content", "medication"),
        is_primary=is_primary,
        cognitive_process=kwargs.pop("process", CognitiveProcess.RECOGNITION),
        difficulty=difficulty,
        weight=weight,
        **kwargs,
    )


def spec(targets, task_type=TaskType.RECOGNITION, expected="medication", **kwargs):
    return MultiObjectTaskSpec(
        task_id="task-1", targets=targets, task_type=task_type, expected_answer=expected, **kwargs
    )


class TestProbability:
    def test_compensatory_at_zero_theta_is_half(self):
        p = expected_probability(UserThetaProfile(), spec([target()]))
        assert p == pytest.approx(0.5)

    def test_compensatory_increases_with_theta(self):
        p = expected_probability(UserThetaProfile(lexical=1.0), spec([target()]))
        assert p > 0.5

    def test_conjunctive_requires_every_component(self):
        targets = [
            target("lex", ComponentCode.LEX, weight=0.5, difficulty=0.0),
            target("synt", ComponentCode.SYNT, weight=0.5, difficulty=1.0),
        ]
        profile = UserThetaProfile(lexical=1.0, syntactic=0.0)

        assert expected_probability(profile, spec(targets), InteractionModel.CONJUNCTIVE) == pytest.approx(0.2)
        assert expected_probability(profile, spec(targets), InteractionModel.DISJUNCTIVE) == pytest.approx(0.9)

    def test_conjunctive_all_mastered_is_one_minus_slip(self):
        targets = [target("lex", difficulty=0.5)]
        profile = UserThetaProfile(lexical=1.0)
        assert expected_probability(profile, spec(targets), "conjunctive") == pytest.approx(0.9)

    def test_model_falls_back_to_q_matrix_row(self):
        targets = [target("morph", ComponentCode.MORPH, difficulty=1.0)]
        p = expected_probability(UserThetaProfile(), spec(targets, task_type=TaskType.WORD_FORMATION))
        assert p == pytest.approx(0.2)


class TestWeights:
    def test_weights_sum_to_one_and_favor_primary(self):
        weighted = allocate_weights(
            [
                target("lex", ComponentCode.LEX, is_primary=True),
                target("morph", ComponentCode.MORPH, is_primary=False),
            ],
            TaskType.RECOGNITION,
        )

        assert sum(t.weight for t in weighted) == pytest.approx(1.0)
        assert weighted[0].weight == pytest.approx(0.875)
        assert weighted[1].weight == pytest.approx(0.125)

    def test_weak_primary_is_boosted_to_half(self):
        weighted = allocate_weights(
            [
                target("phon", ComponentCode.PHON, is_primary=True),
                target("lex", ComponentCode.LEX, is_primary=False),
                target("morph", ComponentCode.MORPH, is_primary=False),
            ],
            TaskType.RECOGNITION,
        )

        assert sum(t.weight for t in weighted) == pytest.approx(1.0)
        assert weighted[0].weight == pytest.approx(0.5)
        assert weighted[1].weight > weighted[2].weight

    def test_harder_process_contributes_less(self):
        weighted = allocate_weights(
            [
                target("a", is_primary=False, process=CognitiveProcess.RECOGNITION),
                target("b", is_primary=False, process=CognitiveProcess.PRODUCTION),
            ],
            TaskType.RECOGNITION,
        )
        assert weighted[0].weight > weighted[1].weight

    def test_empty_targets(self):
        assert allocate_weights([], TaskType.RECOGNITION) == []
        assert composite_difficulty([]) == 0.0

    def test_negative_weight_rejected(self):
        with pytest.raises(InvalidInputError):
            target(weight=-0.1)

    def test_composite_difficulty_uses_process_multiplier(self):
        targets = [target(weight=0.5, difficulty=1.0, process=CognitiveProcess.PRODUCTION)]
        assert composite_difficulty(targets) == pytest.approx(0.75)


class TestScoring:
    def test_exact_match_gets_full_credit(self):
        result = evaluate_response("  Medication ", spec([target()]))

        assert result.overall_correct
        assert result.composite_score == pytest.approx(1.0)
        assert result.feedback == "Excellent! All components correct."

    def test_near_miss_under_normal_strictness(self):
        evaluation = evaluate_response("medicatoin", spec([target()])).component_evaluations[0]

        assert not evaluation.correct
        assert evaluation.partial_credit == pytest.approx(0.8 * 0.7)
        assert evaluation.error_type is ErrorType.FORM
        assert evaluation.correction == "medication"

    def test_near_miss_under_lenient_strictness(self):
        config = MultiObjectScoringConfig(strictness="lenient")
        evaluation = evaluate_response("medicatoin", spec([target()]), config).component_evaluations[0]

        assert evaluation.correct
        assert evaluation.partial_credit == pytest.approx(0.8)

    def test_partial_credit_disabled(self):
        config = MultiObjectScoringConfig(partial_credit_enabled=False)
        evaluation = evaluate_response("medicatoin", spec([target()]), config).component_evaluations[0]

        assert evaluation.partial_credit == 0.0

    def test_wrong_answer(self):
        result = evaluate_response("banana", spec([target()]))

        assert not result.overall_correct
        assert result.composite_score == 0.0
        assert result.component_evaluations[0].error_type is ErrorType.SUBSTITUTION

    def test_feedback_lists_components(self):
        result = evaluate_response("medication", spec([target()]))
        assert multi_component_feedback(result) == "All components correct!\n\n✓ Vocabulary: Excellent!"


class TestThetaContributions:
    def test_correct_response_at_zero_theta(self):
        s = spec([target()])
        evaluation = evaluate_response("medication", s)

        contributions = theta_contributions(UserThetaProfile(), s, evaluation)
        delta = aggregate_contributions(contributions, learning_rate=0.1)

        # 0.1 * 1.0 * (1.0 - 0.5)
        assert contributions[0].theta_delta == pytest.approx(0.05)
        assert delta.components[ComponentCode.LEX] == pytest.approx(0.05)
        assert delta.global_delta == pytest.approx(0.05)

    def test_deltas_bounded_by_learning_rate(self):
        s = spec([target(discrimination=10.0)])
        evaluation = evaluate_response("medication", s)

        contributions = theta_contributions(UserThetaProfile(), s, evaluation)

        assert contributions[0].theta_delta == pytest.approx(0.1)

    def test_no_movement_at_boundary(self):
        s = spec([target()])
        evaluation = evaluate_response("medication", s)

        contributions = theta_contributions(UserThetaProfile(lexical=3.0), s, evaluation)

        assert contributions[0].theta_delta == 0.0

    def test_aggregate_sums_per_component(self):
        s = spec([target("a", weight=0.5), target("b", weight=0.5)])
        evaluation = evaluate_response("medication", s)

        delta = aggregate_contributions(theta_contributions(UserThetaProfile(), s, evaluation), 0.1)

        assert delta.components[ComponentCode.LEX] == pytest.approx(0.05)
        assert delta.global_delta == pytest.approx(0.025)

    @pytest.mark.parametrize(
        "role,multiplier",
        [
            (ObjectRole.ASSESSMENT, 1.0),
            (ObjectRole.PRACTICE, 0.6),
            (ObjectRole.REINFORCEMENT, 0.3),
            (ObjectRole.INCIDENTAL, 0.0),
        ],
    )
    def test_role_scales_ability_movement(self, role, multiplier):
        s = spec([target(role=role)])
        evaluation = evaluate_response("medication", s)

        contribution = theta_contributions(UserThetaProfile(), s, evaluation)[0]

        assert contribution.theta_delta == pytest.approx(0.05 * multiplier)
        assert contribution.weight == pytest.approx(multiplier)

    def test_practice_target_moves_less_than_assessment_target(self):
        s = spec(
            [
                target("a", weight=0.5),
                target("p", component=ComponentCode.SYNT, is_primary=False, weight=0.5, role=ObjectRole.PRACTICE),
            ]
        )
        evaluation = evaluate_response("medication", s)

        delta = aggregate_contributions(theta_contributions(UserThetaProfile(), s, evaluation), 0.1)

        assert delta.components[ComponentCode.SYNT] == pytest.approx(0.6 * delta.components[ComponentCode.LEX])

    def test_task_spec_carries_roles(self, make_object):
        result = create_multi_object_task_spec(
            "t1",
            [(make_object("a"), True), (make_object("b", content="dosage"), False)],
            TaskType.RECOGNITION,
            "medication",
            roles={"b": ObjectRole.REINFORCEMENT},
        )

        assert [t.role for t in result.targets] == [ObjectRole.ASSESSMENT, ObjectRole.REINFORCEMENT]
        assert result.targets[1].theta_weight == pytest.approx(result.targets[1].weight * 0.3)


class TestSchedule:
    @pytest.mark.parametrize(
        "correct,credit,rating",
        [(False, 0.9, RATING_AGAIN), (True, 0.8, RATING_GOOD), (True, 0.96, RATING_EASY)],
    )
    def test_rating_for(self, correct, credit, rating):
        assert rating_for(correct, credit) == rating

    def test_first_review_uses_initial_stability(self, now):
        update = ReviewScheduler().review(0.0, 5.0, None, RATING_EASY, now)

        assert update.stability == pytest.approx(5.8)
        assert update.difficulty == 1.0
        assert update.interval_days == 6
        assert update.next_review == now + timedelta(days=6)

    def test_successful_recall_grows_stability(self, now):
        update = ReviewScheduler().review(10.0, 5.0, now - timedelta(days=10), RATING_GOOD, now)
        assert update.stability > 10.0

    def test_lapse_shrinks_stability(self, now):
        update = ReviewScheduler().review(10.0, 5.0, now - timedelta(days=10), RATING_AGAIN, now)

        assert 1 <= update.stability <= 10.0
        assert update.difficulty == 7.0


class TestStageTransitions:
    def test_stage_zero_needs_cue_assisted_accuracy(self):
        assert check_stage_transition(MasteryRecord(cue_assisted_accuracy=0.6, exposure_count=1))[:2] == (1, True)
        assert check_stage_transition(MasteryRecord(cue_free_accuracy=1.0, exposure_count=1))[:2] == (0, False)

    def test_stage_one_needs_three_exposures(self):
        record = MasteryRecord(stage=1, cue_free_accuracy=0.7, exposure_count=2)
        assert check_stage_transition(record)[0] == 1
        record.exposure_count = 3
        assert check_stage_transition(record)[0] == 2

    def test_stage_two_needs_stability(self):
        record = MasteryRecord(stage=2, cue_free_accuracy=0.8, stability=8)
        assert check_stage_transition(record)[:2] == (3, True)

    def test_stage_three_needs_accuracy_and_stability(self):
        record = MasteryRecord(stage=3, cue_free_accuracy=0.92, cue_assisted_accuracy=0.95, stability=40)
        assert check_stage_transition(record)[0] == 4
        record.stability = 20
        assert check_stage_transition(record)[0] == 3

    def test_stage_four_is_terminal_here(self):
        record = MasteryRecord(stage=4, cue_free_accuracy=1.0, stability=100)
        assert check_stage_transition(record) == (4, False, "Thresholds not met")


class TestCalibrationEngine:
    def test_process_response_updates_profile_and_mastery(self, make_object, now):
        task_spec = create_multi_object_task_spec(
            "task-1", [(make_object(), True)], TaskType.RECOGNITION, "medication"
        )
        profile = UserThetaProfile()

        outcome = CalibrationEngine().process_response(profile, task_spec, "medication", now=now)

        assert outcome.evaluation.overall_correct
        assert outcome.profile.lexical == pytest.approx(0.05)
        assert outcome.profile.global_theta == pytest.approx(0.05)
        assert profile.lexical == 0.0

        update = outcome.mastery_updates[0]
        assert update.record.exposure_count == 1
        assert update.record.cue_free_accuracy == pytest.approx(1.0)
        assert update.record.next_review == now + timedelta(days=6)
        assert update.record.last_review == now
        assert not update.stage_changed

    def test_cued_response_advances_fresh_object(self, make_object, now):
        task_spec = create_multi_object_task_spec(
            "task-1", [(make_object(), True)], TaskType.RECOGNITION, "medication"
        )

        outcome = CalibrationEngine().process_response(
            UserThetaProfile(), task_spec, "medication", cue_level=1, now=now
        )

        update = outcome.mastery_updates[0]
        assert update.record.cue_assisted_accuracy == pytest.approx(1.0)
        assert update.record.cue_free_accuracy == 0.0
        assert (update.previous_stage, update.new_stage, update.stage_changed) == (0, 1, True)

    def test_running_accuracy_averages_exposures(self, make_object, now):
        task_spec = create_multi_object_task_spec(
            "task-1", [(make_object(), True)], TaskType.RECOGNITION, "medication"
        )
        mastery = MasteryRecord(stage=1, cue_free_accuracy=1.0, exposure_count=1)

        outcome = CalibrationEngine().process_response(
            UserThetaProfile(), task_spec, "banana", {"obj-1": mastery}, now=now
        )

        assert outcome.mastery_updates[0].new_accuracy == pytest.approx(0.5)
        assert outcome.profile.lexical < 0

    def test_task_spec_helper(self, make_object):
        task_spec = create_multi_object_task_spec(
            "task-1",
            [(make_object("a"), True), (make_object("b", kind="MORPH"), False)],
            "word_formation",
            "medications",
        )

        assert task_spec.task_type is TaskType.WORD_FORMATION
        assert sum(t.weight for t in task_spec.targets) == pytest.approx(1.0)
        assert all(t.cognitive_process is CognitiveProcess.TRANSFORMATION for t in task_spec.targets)

    def test_multi_object_processing_decision(self):
        assert should_use_multi_object_processing([target("a"), target("b")], TaskType.RECOGNITION)
        assert should_use_multi_object_processing(None, TaskType.PRODUCTION)
