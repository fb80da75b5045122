"""
Integration Tests for the SQLite-backed task pipeline.

Runs the generate -> respond -> calibrate loop against the SQLAlchemy
repositories on an in-memory database and checks what survives a reload.
"""

from dataclasses import replace

import pytest

from fluency.core.components import ComponentCode, TaskType
from fluency.core.models import Collocation, MasteryRecord, UserThetaProfile
from fluency.db.repositories import ObjectRepository, UsageSpaceRepository
from fluency.pipeline import ResponseRequest, TaskPipeline, TaskRequest
from fluency.usage import (
    ContextExposure,
    ExpansionEvent,
    ObjectUsageSpace,
    UsageSpaceTracker,
    target_contexts_for_goal,
)

pytestmark = pytest.mark.integration


@pytest.fixture
def objects(session_factory):
    return ObjectRepository(session_factory, learner_id="learner-1")


@pytest.fixture
def usage(session_factory):
    return UsageSpaceRepository(session_factory, learner_id="learner-1")


@pytest.fixture
def seeded(objects, make_object):
    objects.add_objects(
        [
            make_object("med-1", content="medication", priority=0.9),
            make_object("dose-1", content="dosage", priority=0.5),
        ],
        goal_id="nursing",
    )
    objects.add_objects([make_object("other-1", content="invoice")], goal_id="billing")
    objects.add_collocations([Collocation("med-1", "dose-1", npmi=0.4, pmi=2.1)])
    return objects


class TestObjectRepository:
    def test_objects_filtered_by_goal_in_priority_order(self, seeded):
        assert [o.id for o in seeded.fetch_objects_for_goal("nursing")] == ["med-1", "dose-1"]
        assert len(seeded.fetch_objects_for_goal(None)) == 3

    def test_objects_round_trip(self, seeded):
        med = seeded.fetch_objects_for_goal("nursing")[0]

        assert med.content == "medication"
        assert med.component is ComponentCode.LEX
        assert med.priority == pytest.approx(0.9)

    def test_mastery_upsert_replaces_row(self, seeded, now):
        seeded.upsert_mastery("med-1", MasteryRecord(stage=1, exposure_count=1, last_review=now))
        seeded.upsert_mastery("med-1", MasteryRecord(stage=2, exposure_count=2, last_review=now))

        records = seeded.fetch_mastery(["med-1", "dose-1"])

        assert set(records) == {"med-1"}
        assert records["med-1"].stage == 2
        assert records["med-1"].exposure_count == 2
        assert records["med-1"].last_review == now

    def test_update_mastery_builds_on_stored_row(self, seeded, now):
        seen = []

        def bump(current):
            seen.append(current)
            base = current or MasteryRecord()
            return replace(base, exposure_count=base.exposure_count + 1, last_review=now)

        seeded.update_mastery("med-1", bump)
        written = seeded.update_mastery("med-1", bump)

        assert seen[0] is None
        assert seen[1].exposure_count == 1
        assert written.exposure_count == 2
        assert seeded.fetch_mastery(["med-1"])["med-1"].exposure_count == 2

    def test_failed_update_leaves_row_untouched(self, seeded):
        seeded.upsert_mastery("med-1", MasteryRecord(stage=1, exposure_count=1))

        def fail(current):
            raise ValueError("bad record")

        with pytest.raises(ValueError):
            seeded.update_mastery("med-1", fail)

        assert seeded.fetch_mastery(["med-1"])["med-1"].exposure_count == 1

    def test_mastery_is_per_learner(self, seeded, session_factory):
        seeded.upsert_mastery("med-1", MasteryRecord(stage=3))
        other = ObjectRepository(session_factory, learner_id="learner-2")

        assert other.fetch_mastery(["med-1"]) == {}

    def test_collocations_match_either_side(self, seeded):
        assert seeded.fetch_collocations(["dose-1"]) == [Collocation("med-1", "dose-1", 0.4, 2.1)]
        assert seeded.fetch_collocations([]) == []
        assert seeded.fetch_collocations(["other-1"]) == []


class TestUsageSpaceRepository:
    def test_missing_space_is_none(self, usage):
        assert usage.load_usage_space("med-1") is None

    def test_space_round_trip_recomputes_candidates(self, usage, now):
        space = ObjectUsageSpace(
            "med-1",
            successful_contexts=[ContextExposure("personal-spoken-informal", 2, 0.8, now)],
            target_contexts=target_contexts_for_goal("general"),
        )
        space.refresh()
        usage.save_usage_space(space)

        loaded = usage.load_usage_space("med-1")

        assert loaded.successful_contexts == space.successful_contexts
        assert loaded.target_contexts == space.target_contexts
        assert loaded.coverage_ratio == pytest.approx(1 / 3)
        assert [c.context_id for c in loaded.expansion_candidates] == [
            c.context_id for c in space.expansion_candidates
        ]

    def test_update_usage_space_builds_on_stored_space(self, usage, now):
        def record(current):
            space = current or ObjectUsageSpace("med-1", target_contexts=target_contexts_for_goal("general"))
            exposure = space.successful("personal-spoken-informal")
            if exposure is None:
                space.successful_contexts.append(ContextExposure("personal-spoken-informal", 1, 0.8, now))
            else:
                exposure.record(0.8, now)
            space.refresh()
            return space

        usage.update_usage_space("med-1", record)
        usage.update_usage_space("med-1", record)

        loaded = usage.load_usage_space("med-1")
        assert loaded.successful("personal-spoken-informal").exposure_count == 2
        assert loaded.coverage_ratio == pytest.approx(1 / 3)

    def test_expansion_history(self, usage, now):
        usage.record_expansion(ExpansionEvent("med-1", "personal-spoken-informal", 0.0, 1 / 3, now, "s1", "t1"))
        usage.record_expansion(ExpansionEvent("dose-1", "personal-spoken-informal", 0.0, 1 / 3, now))

        history = usage.expansion_history("med-1")

        assert len(history) == 1
        assert history[0].session_id == "s1"
        assert len(usage.expansion_history()) == 2


class TestPipelineRoundTrip:
    def test_correct_response_is_persisted(self, seeded, usage, now):
        pipeline = TaskPipeline(seeded, UsageSpaceTracker(usage))
        generated = pipeline.generate_task(
            TaskRequest(session_id="s1", goal_id="nursing", preferred_task_types=[TaskType.RECOGNITION])
        )
        assert generated.success
        assert generated.task.object_ids == ["med-1"]

        outcome = pipeline.process_response(
            ResponseRequest(
                session_id="s1",
                task=generated.task,
                spec=generated.spec,
                response="medication",
                profile=UserThetaProfile(),
                usage_context=generated.usage_context,
                domain="general",
                now=now,
            )
        )

        assert outcome.batch.aggregated.overall_correct

        record = seeded.fetch_mastery(["med-1"])["med-1"]
        assert record.exposure_count == 1
        assert record.next_review is not None and record.next_review > now

        history = usage.expansion_history("med-1")
        assert [e.new_context_id for e in history] == [generated.usage_context.context_id]
        assert usage.load_usage_space("med-1").coverage_ratio == pytest.approx(1 / 3)

    def test_responses_to_one_task_accumulate(self, seeded, usage, now):
        generated = TaskPipeline(seeded, UsageSpaceTracker(usage)).generate_task(
            TaskRequest(session_id="s1", goal_id="nursing", preferred_task_types=[TaskType.RECOGNITION])
        )
        request = ResponseRequest(
            session_id="s1",
            task=generated.task,
            spec=generated.spec,
            response="medication",
            profile=UserThetaProfile(),
            usage_context=generated.usage_context,
            now=now,
        )

        # Two pipelines over the same storage, both holding the same task
        TaskPipeline(seeded, UsageSpaceTracker(usage)).process_response(request)
        TaskPipeline(seeded, UsageSpaceTracker(usage)).process_response(request)

        assert seeded.fetch_mastery(["med-1"])["med-1"].exposure_count == 2
        space = usage.load_usage_space("med-1")
        assert space.successful(generated.usage_context.context_id).exposure_count == 2
        assert len(usage.expansion_history("med-1")) == 1

    def test_second_session_sees_stored_mastery(self, seeded, usage, now):
        pipeline = TaskPipeline(seeded, UsageSpaceTracker(usage))
        request = TaskRequest(session_id="s1", goal_id="nursing", preferred_task_types=[TaskType.RECOGNITION])
        first = pipeline.generate_task(request)
        pipeline.process_response(
            ResponseRequest(
                session_id="s1",
                task=first.task,
                spec=first.spec,
                response="medication",
                profile=UserThetaProfile(),
                usage_context=first.usage_context,
                now=now,
            )
        )

        status = TaskPipeline(seeded, UsageSpaceTracker(usage)).status(goal_id="nursing")

        assert status.candidate_count == 2
        assert status.usage_readiness > 0.0
