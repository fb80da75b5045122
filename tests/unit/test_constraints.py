"""
Unit tests for the constraint graph, linguistic rules and propagation.
"""

import math

import pytest

from fluency.composition.templates import ObjectSlot
from fluency.constraints import (
    ConditionOperator,
    ConstraintEdge,
    ConstraintType,
    EdgeCondition,
    PropagationTrigger,
    apply_constraint_preferences,
    apply_restrictions,
    build_constraint_graph,
    is_register_compatible,
    normalize_collocation_strength,
    propagate,
    validate_assignments,
)
from fluency.constraints.rules import PREDICATE_HANDLERS, PredicateType
from fluency.core.components import CognitiveProcess, ComponentCode, ObjectRole
from fluency.core.models import Collocation


def lex_slot(slot_id="lex-slot"):
    return ObjectSlot(
        slot_id=slot_id,
        accepted_components=(ComponentCode.LEX,),
        role=ObjectRole.PRACTICE,
        weight=0.5,
        required_process=CognitiveProcess.RECALL,
    )


class TestGraph:
    def test_collocations_become_bidirectional_prefers(self):
        graph = build_constraint_graph([Collocation("a", "b", npmi=0.6)])

        assert [e.target_id for e in graph.edges_from("a")] == ["b"]
        assert [e.target_id for e in graph.edges_from("b")] == ["a"]
        assert graph.edges_from("a")[0].type is ConstraintType.PREFERS
        assert graph.edges_from("a")[0].strength == pytest.approx(0.8)

    def test_excludes_is_symmetric_lookup(self):
        graph = build_constraint_graph(extra_edges=[ConstraintEdge("a", "b", ConstraintType.EXCLUDES)])
        assert graph.excludes("a", "b")
        assert graph.excludes("b", "a")
        assert not graph.excludes("a", "c")

    def test_string_edge_types_are_coerced(self):
        edge = ConstraintEdge("a", "b", "excludes")
        graph = build_constraint_graph(extra_edges=[edge])

        assert edge.type is ConstraintType.EXCLUDES
        assert graph.excludes("b", "a")

    def test_rules_indexed_by_component_pair(self):
        graph = build_constraint_graph()
        assert "PRAG->LEX" in graph.by_component_pair

    def test_strength_normalization(self):
        assert normalize_collocation_strength(-1.0) == 0.0
        assert normalize_collocation_strength(1.0) == 1.0
        assert normalize_collocation_strength(2.0) == pytest.approx(0.5)


class TestPropagation:
    def test_requires_edge_yields_required_object(self, make_object):
        a = make_object("a", content="take")
        b = make_object("b", content="medication")
        graph = build_constraint_graph(extra_edges=[ConstraintEdge("a", "b", ConstraintType.REQUIRES)])

        result = propagate(PropagationTrigger("s1", a), graph, [a, b], {}, [lex_slot()])

        assert [r.object_id for r in result.required] == ["b"]
        assert result.required[0].reason == "Required by take"

    def test_cycles_terminate(self, make_object):
        objs = [make_object(i) for i in ("a", "b", "c")]
        graph = build_constraint_graph(
            [Collocation("a", "b", npmi=0.5)],
            extra_edges=[
                ConstraintEdge("a", "b", ConstraintType.REQUIRES),
                ConstraintEdge("b", "c", ConstraintType.REQUIRES),
                ConstraintEdge("c", "a", ConstraintType.REQUIRES),
            ],
        )

        result = propagate(PropagationTrigger("s1", objs[0]), graph, objs, {}, [])

        assert [r.object_id for r in result.required] == ["b", "c"]

    def test_excludes_and_prefers(self, make_object):
        a, b, c = (make_object(i) for i in ("a", "b", "c"))
        graph = build_constraint_graph(
            [Collocation("a", "c", npmi=1.0)],
            extra_edges=[ConstraintEdge("a", "b", ConstraintType.EXCLUDES)],
        )

        result = propagate(PropagationTrigger("s1", a), graph, [a, b, c], {}, [])

        assert result.excluded_ids == {"b"}
        assert [(p.object_id, p.adjustment) for p in result.preferences] == [("c", 0.5)]

    def test_edge_condition_gates_edge(self, make_object):
        a = make_object("a", properties={"register": "formal"})
        b = make_object("b")
        edge = ConstraintEdge(
            "a", "b", ConstraintType.EXCLUDES,
            condition=EdgeCondition("register", ConditionOperator.EQUALS, "casual"),
        )
        graph = build_constraint_graph(extra_edges=[edge])

        result = propagate(PropagationTrigger("s1", a), graph, [a, b], {}, [])

        assert result.excluded == []

    def test_register_rule_restricts_unassigned_lex_slots(self, make_object):
        prag = make_object("p", kind="PRAG", properties={"register": "formal"})
        formal = make_object("l1", properties={"register": "formal"})
        casual = make_object("l2", properties={"register": "casual"})
        neutral = make_object("l3")

        result = propagate(
            PropagationTrigger("prag-slot", prag),
            build_constraint_graph(),
            [prag, formal, casual, neutral],
            {},
            [lex_slot("lex-slot")],
        )

        restriction = result.restriction_for("lex-slot")
        assert restriction is not None
        assert restriction.allowed_object_ids == ["l1", "l3"]
        assert [o.id for o in apply_restrictions([formal, casual, neutral], "lex-slot", result)] == ["l1", "l3"]

    def test_restriction_only_filters_its_target_component(self, make_object):
        prag = make_object("p", kind="PRAG", properties={"register": "frozen"})
        other_prag = make_object("p2", kind="PRAG")
        intimate = make_object("l1", properties={"register": "intimate"})
        mixed_slot = ObjectSlot(
            slot_id="marker",
            accepted_components=(ComponentCode.LEX, ComponentCode.PRAG),
            role=ObjectRole.PRACTICE,
            weight=0.3,
            required_process=CognitiveProcess.TRANSFORMATION,
        )

        result = propagate(
            PropagationTrigger("prag-slot", prag), build_constraint_graph(), [prag, other_prag, intimate], {}, [mixed_slot]
        )

        assert result.restriction_for("marker").allowed_object_ids == []
        assert apply_restrictions([other_prag, intimate], "marker", result) == [other_prag]

    def test_passive_voice_needs_transitive_verbs(self, make_object):
        synt = make_object("passive", kind="SYNT", properties={"pattern": "passive_past"})
        verbs = [
            make_object("v1", properties={"transitivity": "transitive"}),
            make_object("v2", properties={"transitivity": "intransitive"}),
        ]

        result = propagate(
            PropagationTrigger("grammar", synt), build_constraint_graph(), [synt, *verbs], {}, [lex_slot()]
        )

        assert result.restriction_for("lex-slot").allowed_object_ids == ["v1"]

    def test_assigned_slots_are_not_restricted(self, make_object):
        prag = make_object("p", kind="PRAG", properties={"register": "formal"})
        casual = make_object("l2", properties={"register": "casual"})
        neutral = make_object("l3")

        result = propagate(
            PropagationTrigger("prag-slot", prag),
            build_constraint_graph(),
            [prag, casual, neutral],
            {"lex-slot": neutral},
            [lex_slot("lex-slot")],
        )

        assert result.restrictions == []


class TestValidation:
    def test_missing_requirement_and_both_excluded(self, make_object):
        a = make_object("a", content="take")
        b = make_object("b")
        graph = build_constraint_graph(
            extra_edges=[
                ConstraintEdge("a", "c", ConstraintType.REQUIRES),
                ConstraintEdge("a", "b", ConstraintType.EXCLUDES),
            ]
        )

        valid, violations = validate_assignments({"s1": a, "s2": b}, graph)

        assert not valid
        assert violations == [
            "take requires c but it's not included",
            "take excludes b but both are included",
        ]

    def test_valid_assignments(self, make_object):
        graph = build_constraint_graph(extra_edges=[ConstraintEdge("a", "b", ConstraintType.REQUIRES)])
        valid, violations = validate_assignments(
            {"s1": make_object("a"), "s2": make_object("b")}, graph
        )
        assert valid
        assert violations == []

    def test_preferences_and_exclusions_adjust_values(self, make_object):
        a, b, c = (make_object(i) for i in ("a", "b", "c"))
        graph = build_constraint_graph(
            [Collocation("a", "c", npmi=1.0)],
            extra_edges=[ConstraintEdge("a", "b", ConstraintType.EXCLUDES)],
        )
        propagation = propagate(PropagationTrigger("s1", a), graph, [a, b, c], {}, [])

        adjusted = apply_constraint_preferences({"b": 1.0, "c": 0.2}, propagation)

        assert adjusted["b"] == -math.inf
        assert adjusted["c"] == pytest.approx(0.7)


class TestRules:
    def test_every_predicate_has_a_handler(self):
        assert set(PREDICATE_HANDLERS) == set(PredicateType)

    @pytest.mark.parametrize(
        "source,target,compatible",
        [
            ("formal", "consultative", True),
            ("formal", "casual", False),
            ("frozen", "formal", True),
            ("unknown", "casual", True),
        ],
    )
    def test_register_compatibility(self, source, target, compatible):
        assert is_register_compatible(source, target) is compatible
