"""
Unit tests for usage contexts, the usage-space tracker and goal progress.
"""

from datetime import datetime

import pytest

from fluency.core.components import ComponentCode, TaskType
from fluency.usage import (
    STANDARD_CONTEXTS,
    InMemoryUsageStore,
    ObjectUsageSpace,
    UsageEvent,
    UsageSpaceTracker,
    apply_usage_event,
    calculate_usage_progress,
    context_similarity,
    coverage_ratio,
    get_context,
    resolve_contexts,
    select_task_context,
    target_contexts_for_goal,
)


@pytest.fixture
def store():
    return InMemoryUsageStore()


@pytest.fixture
def tracker(store):
    return UsageSpaceTracker(store)


def event(context_id, score=0.8, object_id="obj-1", **kwargs):
    return UsageEvent(object_id=object_id, context_id=context_id, score=score, timestamp=datetime(2025, 3, 1), **kwargs)


class TestContexts:
    def test_standard_contexts_have_unique_ids(self):
        ids = [c.context_id for c in STANDARD_CONTEXTS]
        assert len(ids) == len(set(ids)) == 10

    def test_goal_targets(self):
        assert target_contexts_for_goal("medical")[0] == "medical-spoken-consultative"
        assert target_contexts_for_goal("unknown") == target_contexts_for_goal("general")
        assert target_contexts_for_goal(None) == target_contexts_for_goal("general")

    def test_resolve_drops_unknown_ids(self):
        contexts = resolve_contexts(["academic-written-formal", "nowhere"])
        assert [c.context_id for c in contexts] == ["academic-written-formal"]

    @pytest.mark.parametrize(
        "a,b,expected",
        [
            ("medical-spoken-consultative", "medical-spoken-collegial", 3 / 5),
            ("personal-spoken-informal", "personal-written-informal", 2 / 6),
            ("personal-spoken-informal", "personal-spoken-informal", 1.0),
            ("custom", "custom", 1.0),
            ("custom", "personal-spoken-informal", 0.0),
        ],
    )
    def test_context_similarity(self, a, b, expected):
        assert context_similarity(a, b) == pytest.approx(expected)

    def test_similarity_accepts_context_objects(self):
        ctx = get_context("academic-written-formal")
        assert context_similarity(ctx, "academic-spoken-formal") == pytest.approx(2 / 6)


class TestCoverage:
    def test_no_targets_is_full_coverage(self):
        assert coverage_ratio([], []) == 1.0
        assert coverage_ratio(["a"], []) == 1.0

    def test_ratio_counts_only_targets(self):
        assert coverage_ratio(["a", "x"], ["a", "b", "c", "d"]) == pytest.approx(0.25)


class TestApplyUsageEvent:
    def test_first_success_is_an_expansion(self):
        space = ObjectUsageSpace("obj-1", target_contexts=target_contexts_for_goal("general"))

        expansion = apply_usage_event(space, event("personal-spoken-informal", 0.6))

        assert expansion is not None
        assert expansion.previous_coverage == 0.0
        assert expansion.new_coverage == pytest.approx(1 / 3)
        assert expansion.previous_coverage < expansion.new_coverage

    def test_repeat_success_updates_rate_without_expansion(self):
        space = ObjectUsageSpace("obj-1", target_contexts=target_contexts_for_goal("general"))
        apply_usage_event(space, event("personal-spoken-informal", 1.0))

        assert apply_usage_event(space, event("personal-spoken-informal", 0.6)) is None
        exposure = space.successful("personal-spoken-informal")
        assert exposure.exposure_count == 2
        assert exposure.success_rate == pytest.approx(0.8)

    def test_failure_is_recorded_as_attempt(self):
        space = ObjectUsageSpace("obj-1", target_contexts=target_contexts_for_goal("general"))

        assert apply_usage_event(space, event("professional-spoken-formal", 0.3)) is None
        assert space.attempted("professional-spoken-formal").success_rate == pytest.approx(0.3)
        assert space.coverage_ratio == 0.0

    def test_later_success_leaves_attempted_list(self):
        space = ObjectUsageSpace("obj-1", target_contexts=target_contexts_for_goal("general"))
        apply_usage_event(space, event("professional-spoken-formal", 0.3))

        expansion = apply_usage_event(space, event("professional-spoken-formal", 0.9))

        assert expansion is not None
        assert space.attempted("professional-spoken-formal") is None

    def test_unsuccessful_flag_overrides_score(self):
        space = ObjectUsageSpace("obj-1", target_contexts=["personal-spoken-informal"])
        assert apply_usage_event(space, event("personal-spoken-informal", 0.9, success=False)) is None

    def test_expansion_candidates_ranked_by_readiness(self):
        space = ObjectUsageSpace("obj-1", target_contexts=target_contexts_for_goal("general"))
        apply_usage_event(space, event("personal-spoken-informal"))

        candidates = space.expansion_candidates

        assert [c.context_id for c in candidates] == ["personal-written-informal", "professional-spoken-formal"]
        assert candidates[0].readiness_score == pytest.approx(2 / 6)
        assert candidates[0].prerequisites == ()

    def test_close_attempt_boosts_readiness(self):
        space = ObjectUsageSpace("obj-1", target_contexts=target_contexts_for_goal("general"))
        apply_usage_event(space, event("personal-spoken-informal"))
        apply_usage_event(space, event("professional-spoken-formal", 0.5))

        top = space.expansion_candidates[0]

        assert top.context_id == "professional-spoken-formal"
        assert top.readiness_score == pytest.approx(1 / 7 + 0.2)


class TestUsageSpaceTracker:
    def test_record_usage_persists_and_logs_expansion(self, tracker, store):
        result = tracker.record_usage(event("personal-spoken-informal", 0.6))

        assert result.recorded
        assert result.expansion is not None
        assert result.new_coverage == pytest.approx(1 / 3)
        assert store.spaces["obj-1"].successful_ids == ["personal-spoken-informal"]
        assert len(store.expansions) == 1

    def test_repeat_usage_is_not_an_expansion(self, tracker, store):
        tracker.record_usage(event("personal-spoken-informal"))
        result = tracker.record_usage(event("personal-spoken-informal"))

        assert result.expansion is None
        assert len(store.expansions) == 1

    def test_domain_sets_targets_of_new_space(self, tracker):
        tracker.record_usage(event("medical-spoken-consultative"), domain="medical")
        space = tracker.get_usage_space("obj-1")

        assert space.target_contexts == target_contexts_for_goal("medical")
        assert space.coverage_ratio == pytest.approx(0.25)

    def test_usage_builds_on_space_stored_in_between(self, tracker, store):
        tracker.record_usage(event("personal-spoken-informal"))
        stored = store.spaces["obj-1"]

        tracker.record_usage(event("personal-spoken-informal", 0.6))

        assert store.spaces["obj-1"] is stored
        assert stored.successful("personal-spoken-informal").exposure_count == 2
        assert stored.successful("personal-spoken-informal").success_rate == pytest.approx(0.7)

    def test_fresh_space_is_not_stored(self, tracker, store):
        space = tracker.get_usage_space("new", ComponentCode.SYNT)

        assert space.component is ComponentCode.SYNT
        assert "new" not in store.spaces


class TestSelectTaskContext:
    def test_no_applicable_contexts_uses_first_standard_context(self):
        assert select_task_context([], TaskType.RECOGNITION) == STANDARD_CONTEXTS[0]

    def test_ties_keep_declaration_order(self):
        assert select_task_context([], TaskType.PRODUCTION).context_id == "personal-spoken-informal"

    def test_prefers_unmastered_target_over_successful_one(self, tracker):
        tracker.record_usage(event("personal-spoken-informal"))
        space = tracker.get_usage_space("obj-1")

        context = select_task_context([space], TaskType.PRODUCTION)

        assert context.context_id == "personal-written-informal"

    def test_ready_expansion_wins(self, tracker):
        tracker.record_usage(event("medical-spoken-consultative"), domain="medical")
        space = tracker.get_usage_space("obj-1")

        context = select_task_context([space], TaskType.PRODUCTION)

        assert context.context_id == "medical-spoken-collegial"


class TestUsageProgress:
    def test_progress_summary(self):
        full = ObjectUsageSpace("lex-full")
        full.refresh()
        gap = ObjectUsageSpace("lex-gap", target_contexts=target_contexts_for_goal("general"))
        gap.refresh()

        progress = calculate_usage_progress({ComponentCode.LEX: [full, gap]})

        lex = progress.component_coverage[ComponentCode.LEX]
        assert lex.total_objects == 2
        assert lex.objects_with_full_coverage == 1
        assert lex.average_coverage == pytest.approx(0.5)
        assert progress.overall_readiness == pytest.approx(0.5 * 0.35)

        assert len(progress.recommendations) == 1
        recommendation = progress.recommendations[0]
        assert recommendation.priority == 1
        assert recommendation.object_ids == ("lex-gap",)
        assert recommendation.target_contexts == tuple(target_contexts_for_goal("general"))

    def test_empty_goal(self):
        progress = calculate_usage_progress({})

        assert progress.overall_readiness == 0.0
        assert progress.recommendations == []
        assert set(progress.component_coverage) == set(ComponentCode)
