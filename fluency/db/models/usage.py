"""
Usage space models.

Per-learner usage spaces (context exposure lists stored as JSON) and the
append-only history of expansion events.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Float, Index, Integer, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ObjectUsageSpaceRow(Base):
    """Contexts in which a learner has used an object."""

    __tablename__ = "object_usage_spaces"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_id: Mapped[str] = mapped_column(Text, nullable=False)
    object_id: Mapped[str] = mapped_column(Text, nullable=False)
    component: Mapped[str] = mapped_column(Text, default="LEX")

    # [{"context_id", "exposure_count", "success_rate", "last_exposure"}]
    successful_contexts: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    attempted_contexts: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    target_contexts: Mapped[list[str]] = mapped_column(JSON, default=list)
    coverage_ratio: Mapped[float] = mapped_column(Float, default=0.0)

    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("learner_id", "object_id", name="uq_usage_learner_object"),)

    def __repr__(self) -> str:
        return f"<ObjectUsageSpaceRow learner={self.learner_id} object={self.object_id} coverage={self.coverage_ratio}>"


class ExpansionEventRow(Base):
    """First successful use of an object in a new context."""

    __tablename__ = "expansion_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_id: Mapped[str] = mapped_column(Text, nullable=False)
    object_id: Mapped[str] = mapped_column(Text, nullable=False)
    new_context_id: Mapped[str] = mapped_column(Text, nullable=False)
    previous_coverage: Mapped[float] = mapped_column(Float, nullable=False)
    new_coverage: Mapped[float] = mapped_column(Float, nullable=False)
    session_id: Mapped[str | None] = mapped_column(Text)
    task_id: Mapped[str | None] = mapped_column(Text)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (Index("idx_expansion_learner_object", "learner_id", "object_id"),)
