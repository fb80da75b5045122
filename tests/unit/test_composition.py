"""
Unit tests for economic value, templates and the task composer.
"""

from datetime import timedelta

import pytest

from fluency.composition.composer import OVERLOAD_REASON, CompositionOptimizationConfig, TaskComposer
from fluency.composition.economic_value import (
    build_candidate_pool,
    calculate_economic_value,
    review_urgency,
)
from fluency.composition.templates import ObjectSlot, TaskTemplate, find_suitable_templates, get_template
from fluency.constraints.graph import ConstraintEdge, build_constraint_graph
from fluency.constraints.rules import ConstraintType
from fluency.core.components import CognitiveProcess, ComponentCode, ObjectRole, TaskType
from fluency.core.exceptions import InvalidTemplateError
from fluency.core.models import Collocation, MasteryRecord


def single_lex_template():
    return TaskTemplate(
        template_id="single-lex",
        name="Single LEX",
        task_type=TaskType.RECOGNITION,
        task_format="mcq",
        modalities=("text",),
        slots=(
            ObjectSlot(
                slot_id="word",
                accepted_components=(ComponentCode.LEX,),
                role=ObjectRole.ASSESSMENT,
                weight=1.0,
                required_process=CognitiveProcess.RECOGNITION,
            ),
        ),
        content_template="Pick {{word}}",
    )


@pytest.fixture
def sentence_pool(make_candidate):
    return [
        make_candidate("lex-1", synergy={"lex-2": 0.8}),
        make_candidate("synt-1", kind="SYNT", stage=2),
        make_candidate("lex-2", synergy={"lex-1": 0.8}),
    ]


class TestEconomicValue:
    def test_fresh_object_values(self, make_object, now):
        value = calculate_economic_value(make_object(), MasteryRecord(), now=now)

        # 1.0 * 0.3 + 0.5 * 0.3 + 0.5 * 0.25 + 0.5 * 0.5 * 0.15
        assert value.learning_value == pytest.approx(0.6125)
        # difficulty 0.2 + unfamiliarity 0.3 + non-automaticity 0.3
        assert value.cognitive_cost == pytest.approx(0.8)
        assert value.automaticity == 0.0
        assert value.role_affinity[ObjectRole.ASSESSMENT] == 0.8

    def test_overdue_review_raises_urgency(self, now):
        mastery = MasteryRecord(next_review=now - timedelta(hours=10))
        assert review_urgency(mastery, now) == pytest.approx(0.8)

    def test_far_review_lowers_urgency(self, now):
        mastery = MasteryRecord(next_review=now + timedelta(days=5))
        assert review_urgency(mastery, now) == pytest.approx(0.1)

    def test_near_deadline_dominates_urgency(self, make_object, now):
        value = calculate_economic_value(
            make_object(), MasteryRecord(), now=now, goal_deadline=now + timedelta(days=3)
        )
        assert value.urgency == 1.0

    def test_candidate_pool_keeps_order_and_shares_synergy(self, make_object, now):
        objects = [make_object("a"), make_object("b"), make_object("c")]
        pool = build_candidate_pool(objects, {}, [Collocation("a", "b", npmi=0.6)], now=now)

        assert [c.id for c in pool] == ["a", "b", "c"]
        assert pool[0].synergy_with("b") == pytest.approx(0.6)
        assert pool[1].synergy_with("a") == pytest.approx(0.6)
        assert pool[2].synergy_with("a") == 0.0

    def test_pmi_only_collocation_is_scaled(self, make_object, now):
        pool = build_candidate_pool(
            [make_object("a"), make_object("b")], {}, [Collocation("a", "b", pmi=2.0)], now=now
        )
        assert pool[0].synergy_with("b") == pytest.approx(0.6)


class TestTemplates:
    def test_library_lookup(self):
        assert get_template("vocab-recognition-basic").task_type is TaskType.RECOGNITION
        assert get_template("missing") is None

    def test_find_by_component(self):
        ids = [t.template_id for t in find_suitable_templates([ComponentCode.PRAG])]
        assert ids == ["discourse-completion"]

    def test_find_with_task_type_filter(self):
        ids = [t.template_id for t in find_suitable_templates([ComponentCode.LEX], [TaskType.RECOGNITION])]
        assert ids == ["vocab-recognition-basic"]

    def test_template_without_slots_rejected(self):
        with pytest.raises(InvalidTemplateError):
            TaskTemplate("empty", "Empty", TaskType.RECOGNITION, "mcq", ("text",), slots=())

    def test_duplicate_slot_ids_rejected(self):
        slot = single_lex_template().slots[0]
        with pytest.raises(InvalidTemplateError):
            TaskTemplate("dup", "Dup", TaskType.RECOGNITION, "mcq", ("text",), slots=(slot, slot))


class TestTaskComposer:
    def test_single_slot_within_budget(self, make_candidate):
        candidate = make_candidate("lex-1", learning_value=0.9, cognitive_cost=0.3)
        result = TaskComposer().compose(single_lex_template(), [candidate], cognitive_load_budget=0.5)

        assert result.success
        assert result.total_cost == pytest.approx(0.3)
        assert result.total_value == pytest.approx(0.9)
        assert result.efficiency == pytest.approx(3.0)
        assert result.task.content == "Pick lex-1"
        assert result.task.expected_answers == ["lex-1"]

    def test_unfillable_required_slot_fails_without_raising(self, make_candidate):
        result = TaskComposer().compose(single_lex_template(), [make_candidate("s", kind="SYNT")])

        assert not result.success
        assert result.task is None
        assert "word" in result.failure_reason

    def test_low_value_candidates_are_skipped(self, make_candidate):
        config = CompositionOptimizationConfig(min_learning_value=0.5)
        result = TaskComposer(config).compose(single_lex_template(), [make_candidate(learning_value=0.4)])

        assert not result.success
        assert result.alternatives_considered == 0

    def test_multi_slot_composition_with_synergy(self, sentence_pool):
        template = get_template("sentence-writing-multi")
        result = TaskComposer().compose(template, sentence_pool, cognitive_load_budget=5.0)

        assert result.success
        filled = {s.slot_id: s.object_id for s in result.task.filled_slots}
        assert filled == {"target-vocab": "lex-1", "required-grammar": "synt-1", "collocation-word": "lex-2"}
        # (0.8 + 0.8) / 2 * synergy weight 0.3
        assert result.synergy_bonus == pytest.approx(0.24)
        assert result.total_cost == pytest.approx(0.18 + 0.117 + 0.072)

    def test_optional_slot_over_budget_is_excluded(self, sentence_pool):
        template = get_template("sentence-writing-multi")
        result = TaskComposer().compose(template, sentence_pool, cognitive_load_budget=0.3)

        assert result.success
        assert [s.slot_id for s in result.task.filled_slots] == ["target-vocab", "required-grammar"]
        assert [(e.object_id, e.reason) for e in result.excluded_objects] == [("lex-2", OVERLOAD_REASON)]

    def test_stage_constraint_blocks_grammar_slot(self, make_candidate):
        pool = [make_candidate("lex-1"), make_candidate("synt-1", kind="SYNT", stage=1)]
        result = TaskComposer().compose(get_template("sentence-writing-multi"), pool)

        assert not result.success
        assert "required-grammar" in result.failure_reason

    def test_excludes_edge_keeps_objects_apart(self, sentence_pool):
        graph = build_constraint_graph(
            extra_edges=[ConstraintEdge("lex-1", "lex-2", ConstraintType.EXCLUDES)]
        )
        result = TaskComposer(graph=graph).compose(
            get_template("sentence-writing-multi"), sentence_pool, cognitive_load_budget=5.0
        )

        assert result.success
        assert "lex-2" not in {s.object_id for s in result.task.filled_slots}
        assert result.propagations
        assert result.constraint_violations == []

    def test_register_restriction_leaves_other_components_in_mixed_slot(self, make_candidate):
        pool = [
            make_candidate("prag-1", kind="PRAG", properties={"register": "frozen"}),
            make_candidate("prag-2", kind="PRAG"),
            make_candidate("lex-1", properties={"register": "intimate"}),
            make_candidate("lex-2", properties={"register": "formal"}),
        ]

        result = TaskComposer(graph=build_constraint_graph()).compose(
            get_template("discourse-completion"), pool, cognitive_load_budget=2.0
        )

        assert result.success
        filled = {s.slot_id: s.object_id for s in result.task.filled_slots}
        assert filled == {"pragmatic-function": "prag-1", "register-marker": "prag-2", "domain-vocab": "lex-2"}
        restriction = result.propagations[0].restriction_for("register-marker")
        assert restriction.component is ComponentCode.LEX
        assert restriction.allowed_object_ids == ["lex-2"]

    @pytest.mark.parametrize("template_id", ["sentence-writing-multi", "discourse-completion"])
    def test_required_slot_weights_are_all_assigned(self, template_id, make_candidate):
        pool = [
            make_candidate("lex-1", synergy={"lex-2": 0.5}),
            make_candidate("synt-1", kind="SYNT", stage=2),
            make_candidate("prag-1", kind="PRAG", properties={"register": "formal"}),
            make_candidate("prag-2", kind="PRAG"),
            make_candidate("lex-2", synergy={"lex-1": 0.5}, properties={"register": "casual"}),
        ]
        template = get_template(template_id)

        result = TaskComposer(graph=build_constraint_graph()).compose(template, pool, cognitive_load_budget=5.0)

        assert result.success
        assigned = sum(s.weight for s in result.task.filled_slots if s.slot.required)
        assert assigned == pytest.approx(sum(s.weight for s in template.required_slots))

    def test_first_seen_candidate_wins_ties(self, make_candidate):
        pool = [make_candidate("first"), make_candidate("second")]
        result = TaskComposer().compose(single_lex_template(), pool)

        assert result.task.filled_slots[0].object_id == "first"
