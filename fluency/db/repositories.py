"""
Storage collaborators backed by SQLAlchemy.

ObjectRepository serves objects, mastery and collocations to the composer
and calibration engine; UsageSpaceRepository is the durable UsageStore.
Every mutation runs in its own transaction keyed by (learner, object), and
the read of the prior row takes a row lock where the backend supports it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.orm import Session, sessionmaker

from fluency.core.components import to_component
from fluency.core.models import Collocation, LanguageObject, MasteryRecord
from fluency.db.database import session_scope
from fluency.db.models import (
    CollocationRow,
    ExpansionEventRow,
    LanguageObjectRow,
    MasteryRecordRow,
    ObjectUsageSpaceRow,
)
from fluency.usage.tracker import ContextExposure, ExpansionEvent, ObjectUsageSpace

DEFAULT_LEARNER = "default"


class ObjectRepository:
    """Objects, mastery records and collocations for one learner."""

    def __init__(self, session_factory: sessionmaker | None = None, learner_id: str = DEFAULT_LEARNER):
        self._session_factory = session_factory
        self.learner_id = learner_id

    def add_objects(self, objects: Iterable[LanguageObject], goal_id: str | None = None) -> int:
        """Insert or replace objects under a goal. Returns the number written."""
        count = 0
        with session_scope(self._session_factory) as session:
            for obj in objects:
                session.merge(LanguageObjectRow.from_domain(obj, goal_id))
                count += 1
        logger.debug(f"Stored {count} language objects for goal {goal_id}")
        return count

    def add_collocations(self, collocations: Iterable[Collocation]) -> int:
        count = 0
        with session_scope(self._session_factory) as session:
            for c in map(Collocation._make, collocations):
                session.add(CollocationRow(object_a=c.object_a, object_b=c.object_b, npmi=c.npmi, pmi=c.pmi))
                count += 1
        return count

    def fetch_objects_for_goal(self, goal_id: str | None) -> list[LanguageObject]:
        with session_scope(self._session_factory) as session:
            stmt = select(LanguageObjectRow).order_by(LanguageObjectRow.priority.desc(), LanguageObjectRow.id)
            if goal_id is not None:
                stmt = stmt.where(LanguageObjectRow.goal_id == goal_id)
            return [row.to_domain() for row in session.scalars(stmt)]

    def fetch_mastery(self, object_ids: Sequence[str]) -> dict[str, MasteryRecord]:
        """Mastery records by object id; objects never reviewed are absent."""
        if not object_ids:
            return {}
        with session_scope(self._session_factory) as session:
            rows = session.scalars(
                select(MasteryRecordRow).where(
                    MasteryRecordRow.learner_id == self.learner_id,
                    MasteryRecordRow.object_id.in_(object_ids),
                )
            )
            return {row.object_id: row.to_domain() for row in rows}

    def upsert_mastery(self, object_id: str, record: MasteryRecord) -> None:
        self.update_mastery(object_id, lambda _current: record)

    def update_mastery(
        self,
        object_id: str,
        apply: Callable[[MasteryRecord | None], MasteryRecord],
    ) -> MasteryRecord:
        """
        Read, change and write one mastery record in a single transaction.

        The prior row is read under a row lock, so concurrent responses for
        the same (learner, object) serialize instead of overwriting each
        other. `apply` receives None for an object never reviewed.
        """
        with session_scope(self._session_factory) as session:
            row = self._locked_mastery_row(session, object_id)
            record = apply(row.to_domain() if row is not None else None)
            if row is None:
                row = MasteryRecordRow(learner_id=self.learner_id, object_id=object_id)
                session.add(row)
            row.update_from(record)
        return record

    def _locked_mastery_row(self, session: Session, object_id: str) -> MasteryRecordRow | None:
        return session.scalars(
            select(MasteryRecordRow)
            .where(MasteryRecordRow.learner_id == self.learner_id, MasteryRecordRow.object_id == object_id)
            .with_for_update()
        ).one_or_none()

    def fetch_collocations(self, object_ids: Sequence[str]) -> list[Collocation]:
        """Collocations with at least one side in object_ids."""
        if not object_ids:
            return []
        with session_scope(self._session_factory) as session:
            rows = session.scalars(
                select(CollocationRow).where(
                    or_(CollocationRow.object_a.in_(object_ids), CollocationRow.object_b.in_(object_ids))
                )
            )
            return [row.to_domain() for row in rows]


# ============================================================================
# USAGE SPACES
# ============================================================================


def _exposure_to_json(exposure: ContextExposure) -> dict[str, Any]:
    return {
        "context_id": exposure.context_id,
        "exposure_count": exposure.exposure_count,
        "success_rate": exposure.success_rate,
        "last_exposure": exposure.last_exposure.isoformat() if exposure.last_exposure else None,
    }


def _exposure_from_json(data: dict[str, Any]) -> ContextExposure:
    last = data.get("last_exposure")
    return ContextExposure(
        context_id=data["context_id"],
        exposure_count=int(data.get("exposure_count", 0)),
        success_rate=float(data.get("success_rate", 0.0)),
        last_exposure=datetime.fromisoformat(last) if last else None,
    )


def _space_from_row(row: ObjectUsageSpaceRow) -> ObjectUsageSpace:
    space = ObjectUsageSpace(
        object_id=row.object_id,
        component=to_component(row.component),
        successful_contexts=[_exposure_from_json(e) for e in row.successful_contexts or []],
        attempted_contexts=[_exposure_from_json(e) for e in row.attempted_contexts or []],
        target_contexts=list(row.target_contexts or []),
    )
    # Expansion candidates are derived, not stored
    space.refresh()
    return space


class UsageSpaceRepository:
    """Durable UsageStore for one learner."""

    def __init__(self, session_factory: sessionmaker | None = None, learner_id: str = DEFAULT_LEARNER):
        self._session_factory = session_factory
        self.learner_id = learner_id

    def load_usage_space(self, object_id: str) -> ObjectUsageSpace | None:
        with session_scope(self._session_factory) as session:
            row = session.scalars(self._space_query(object_id)).one_or_none()
            return _space_from_row(row) if row is not None else None

    def save_usage_space(self, space: ObjectUsageSpace) -> None:
        self.update_usage_space(space.object_id, lambda _current: space)

    def update_usage_space(
        self,
        object_id: str,
        apply: Callable[[ObjectUsageSpace | None], ObjectUsageSpace],
    ) -> ObjectUsageSpace:
        """Read, change and write one usage space under a row lock in a single transaction."""
        with session_scope(self._session_factory) as session:
            row = session.scalars(self._space_query(object_id).with_for_update()).one_or_none()
            space = apply(_space_from_row(row) if row is not None else None)
            if row is None:
                row = ObjectUsageSpaceRow(learner_id=self.learner_id, object_id=object_id)
                session.add(row)

            row.component = space.component.value
            row.successful_contexts = [_exposure_to_json(e) for e in space.successful_contexts]
            row.attempted_contexts = [_exposure_to_json(e) for e in space.attempted_contexts]
            row.target_contexts = list(space.target_contexts)
            row.coverage_ratio = space.coverage_ratio
        return space

    def _space_query(self, object_id: str):
        return select(ObjectUsageSpaceRow).where(
            ObjectUsageSpaceRow.learner_id == self.learner_id,
            ObjectUsageSpaceRow.object_id == object_id,
        )

    def record_expansion(self, expansion: ExpansionEvent) -> None:
        with session_scope(self._session_factory) as session:
            session.add(
                ExpansionEventRow(
                    learner_id=self.learner_id,
                    object_id=expansion.object_id,
                    new_context_id=expansion.new_context_id,
                    previous_coverage=expansion.previous_coverage,
                    new_coverage=expansion.new_coverage,
                    session_id=expansion.session_id,
                    task_id=expansion.task_id,
                    occurred_at=expansion.timestamp,
                )
            )

    def expansion_history(self, object_id: str | None = None) -> list[ExpansionEvent]:
        with session_scope(self._session_factory) as session:
            stmt = (
                select(ExpansionEventRow)
                .where(ExpansionEventRow.learner_id == self.learner_id)
                .order_by(ExpansionEventRow.occurred_at)
            )
            if object_id is not None:
                stmt = stmt.where(ExpansionEventRow.object_id == object_id)
            return [
                ExpansionEvent(
                    object_id=row.object_id,
                    new_context_id=row.new_context_id,
                    previous_coverage=row.previous_coverage,
                    new_coverage=row.new_coverage,
                    timestamp=row.occurred_at,
                    session_id=row.session_id,
                    task_id=row.task_id,
                )
                for row in session.scalars(stmt)
            ]
