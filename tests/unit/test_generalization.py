"""
Unit tests for transfer estimation, representative sampling and
generalization estimates.
"""

import math
from datetime import datetime

import pytest

from config import Settings
from fluency.core.components import ComponentCode
from fluency.generalization import (
    COMPONENT_SAMPLING_STRATEGIES,
    GeneralizationEstimator,
    RepresentativeSamplingStrategy,
    estimate_component_generalization,
    estimate_generalization,
    estimate_transfer,
    minimum_samples,
    select_representative_samples,
    transfer_distance,
)
from fluency.usage import (
    STANDARD_CONTEXTS,
    InMemoryUsageStore,
    ObjectUsageSpace,
    UsageEvent,
    UsageSpaceTracker,
    apply_usage_event,
    get_context,
    resolve_contexts,
    target_contexts_for_goal,
)


def ctx(context_id):
    return get_context(context_id)


@pytest.fixture
def medical_space():
    space = ObjectUsageSpace("obj-1", target_contexts=target_contexts_for_goal("medical"))
    apply_usage_event(
        space, UsageEvent("obj-1", "medical-spoken-consultative", 1.0, timestamp=datetime(2025, 3, 1))
    )
    return space


class TestTransfer:
    def test_near_transfer(self):
        estimate = estimate_transfer(
            ctx("medical-spoken-consultative"), ctx("medical-spoken-collegial"), automation_level=0.0
        )

        assert estimate.distance == pytest.approx(0.25)
        assert estimate.transfer_type == "near"
        assert estimate.probability == pytest.approx(math.exp(-0.5))
        assert estimate.confidence == pytest.approx(0.8)
        assert estimate.basis[-1].startswith("Near transfer")

    def test_far_transfer(self):
        estimate = estimate_transfer(
            ctx("personal-spoken-informal"), ctx("academic-written-formal"), automation_level=0.0
        )

        assert estimate.distance == 1.0
        assert estimate.transfer_type == "far"
        assert estimate.probability == pytest.approx(math.exp(-2))

    def test_automation_boosts_probability_up_to_one(self):
        same = ctx("academic-written-formal")
        assert estimate_transfer(same, same, automation_level=1.0).probability == 1.0

    def test_distance_features(self):
        td = transfer_distance(ctx("academic-written-formal"), ctx("academic-spoken-formal"))
        assert td.shared_features == ("domain:academic", "register:formal")
        assert td.different_features == ("modality:written→spoken", "genre:essay→presentation")


class TestSampling:
    def test_nothing_left_to_sample(self):
        strategy = RepresentativeSamplingStrategy()
        assert select_representative_samples(STANDARD_CONTEXTS, [], STANDARD_CONTEXTS, strategy) == []

    def test_samples_exclude_covered_and_respect_limit(self):
        covered = [ctx("personal-spoken-informal")]
        goal = resolve_contexts(target_contexts_for_goal("professional"))

        picks = select_representative_samples(
            STANDARD_CONTEXTS, goal, covered, COMPONENT_SAMPLING_STRATEGIES[ComponentCode.LEX], max_samples=3
        )

        assert len(picks) == 3
        assert "personal-spoken-informal" not in {c.context_id for c in picks}
        assert picks[0].context_id in target_contexts_for_goal("professional")

    def test_first_picks_are_diverse(self):
        picks = select_representative_samples(
            STANDARD_CONTEXTS, [], [], RepresentativeSamplingStrategy(), max_samples=3
        )
        pairs = {(c.domain, c.register) for c in picks}
        assert len(pairs) == 3

    def test_minimum_samples(self):
        assert minimum_samples(ComponentCode.LEX, 0.0, 0.8) == 10
        assert minimum_samples(ComponentCode.PHON, 0.7, 0.8) == 3
        assert minimum_samples(ComponentCode.LEX, 0.9, 0.8) == 0


class TestComponentGeneralization:
    def test_phonology_transfers_within_positions(self):
        breakdown = estimate_component_generalization(
            ComponentCode.PHON,
            trained={"positions": ["initial"]},
            total={"positions": ["initial", "medial", "final"]},
        )

        assert breakdown.direct_coverage == pytest.approx(0.8 / 3)
        assert breakdown.near_transfer_coverage == pytest.approx((1 - 0.8 / 3) * 0.5)
        assert breakdown.total_estimated_coverage == pytest.approx(0.8 / 3 + (1 - 0.8 / 3) * 0.5 + 0.1)
        assert breakdown.confidence == pytest.approx(0.8)

    def test_untrained_lexis_relies_on_transfer_only(self):
        breakdown = estimate_component_generalization(ComponentCode.LEX, {}, {})

        assert breakdown.direct_coverage == 0.0
        assert breakdown.total_estimated_coverage == pytest.approx(0.3)


class TestGeneralizationEstimate:
    def test_direct_and_inferred_coverage(self, medical_space):
        goal = resolve_contexts(target_contexts_for_goal("medical"))

        estimate = estimate_generalization(medical_space, goal)

        assert estimate.component is ComponentCode.LEX
        assert estimate.direct_coverage == pytest.approx(0.25)
        assert estimate.automation_level == pytest.approx(1.0)
        assert {t.target.context_id for t in estimate.inferred_coverage} == {
            "medical-written-technical",
            "medical-spoken-collegial",
            "professional-spoken-formal",
        }
        assert estimate.direct_coverage < estimate.estimated_total_coverage <= 1.0
        assert estimate.direct_coverage < estimate.goal_aligned_coverage < 1.0
        assert "medical-spoken-consultative" not in {c.context_id for c in estimate.recommended_next_contexts}

    def test_nothing_covered(self):
        space = ObjectUsageSpace("obj-1", target_contexts=target_contexts_for_goal("general"))
        goal = resolve_contexts(target_contexts_for_goal("general"))

        estimate = estimate_generalization(space, goal)

        assert estimate.direct_coverage == 0.0
        assert estimate.estimated_total_coverage == 0.0
        assert estimate.inferred_coverage == []
        assert len(estimate.recommended_next_contexts) == 3

    def test_estimator_reads_tracker_space(self):
        tracker = UsageSpaceTracker(InMemoryUsageStore())
        tracker.record_usage(UsageEvent("obj-1", "academic-written-formal", 0.9), domain="academic")

        estimate = GeneralizationEstimator(tracker).estimate("obj-1", domain="academic")

        assert estimate.direct_coverage == pytest.approx(1 / 3)
        assert [c.context_id for c in estimate.directly_covered] == ["academic-written-formal"]

    def test_explicit_strategy_ranks_recommendations(self, medical_space):
        goal = resolve_contexts(target_contexts_for_goal("medical"))
        covered = resolve_contexts(medical_space.successful_ids)
        diversity_only = RepresentativeSamplingStrategy(goal_weight=0.0, diversity_weight=1.0, transfer_weight=0.0)

        estimate = estimate_generalization(medical_space, goal, strategy=diversity_only)

        assert estimate.recommended_next_contexts == select_representative_samples(
            goal, goal, covered, diversity_only, max_samples=3
        )

    def test_estimator_passes_its_strategy(self):
        tracker = UsageSpaceTracker(InMemoryUsageStore())
        tracker.record_usage(UsageEvent("obj-1", "academic-written-formal", 0.9), domain="academic")
        transfer_only = RepresentativeSamplingStrategy(goal_weight=0.0, diversity_weight=0.0, transfer_weight=1.0)
        goal = resolve_contexts(target_contexts_for_goal("academic"))

        estimate = GeneralizationEstimator(tracker, max_recommendations=2, strategy=transfer_only).estimate(
            "obj-1", domain="academic"
        )

        assert estimate.recommended_next_contexts == select_representative_samples(
            goal, goal, [ctx("academic-written-formal")], transfer_only, max_samples=2
        )

    def test_strategy_from_settings(self):
        settings = Settings(
            sampling_goal_weight=0.1,
            sampling_diversity_weight=0.6,
            sampling_transfer_weight=0.3,
            sampling_min_samples=4,
        )

        strategy = RepresentativeSamplingStrategy.from_settings(settings)

        assert strategy == RepresentativeSamplingStrategy(
            goal_weight=0.1, diversity_weight=0.6, transfer_weight=0.3, min_samples_for_generalization=4
        )
