"""
Language object models.

Objects, per-learner mastery records and pairwise collocation statistics.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Float, ForeignKey, Index, Integer, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from fluency.core.models import Collocation, LanguageObject, MasteryRecord

from .base import Base


class LanguageObjectRow(Base):
    """A learnable unit belonging to a goal."""

    __tablename__ = "language_objects"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    goal_id: Mapped[str | None] = mapped_column(Text, index=True)
    kind: Mapped[str] = mapped_column(Text, nullable=False)  # LEX, MWE, TERM, MORPH, G2P, PHON, SYNT, PRAG
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # IRT parameters
    irt_difficulty: Mapped[float] = mapped_column(Float, default=0.0)
    irt_discrimination: Mapped[float] = mapped_column(Float, default=1.0)

    # Priority inputs (0-1 scale)
    priority: Mapped[float] = mapped_column(Float, default=0.5)
    frequency: Mapped[float] = mapped_column(Float, default=0.5)
    relational_density: Mapped[float] = mapped_column(Float, default=0.5)
    contextual_contribution: Mapped[float] = mapped_column(Float, default=0.5)

    properties: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(default=func.now())

    def __repr__(self) -> str:
        return f"<LanguageObjectRow {self.id} kind={self.kind} content={self.content!r}>"

    def to_domain(self) -> LanguageObject:
        return LanguageObject(
            id=self.id,
            kind=self.kind,
            content=self.content,
            irt_difficulty=self.irt_difficulty,
            irt_discrimination=self.irt_discrimination,
            priority=self.priority,
            frequency=self.frequency,
            relational_density=self.relational_density,
            contextual_contribution=self.contextual_contribution,
            properties=dict(self.properties or {}),
        )

    @classmethod
    def from_domain(cls, obj: LanguageObject, goal_id: str | None = None) -> LanguageObjectRow:
        return cls(
            id=obj.id,
            goal_id=goal_id,
            kind=getattr(obj.kind, "value", obj.kind),
            content=obj.content,
            irt_difficulty=obj.irt_difficulty,
            irt_discrimination=obj.irt_discrimination,
            priority=obj.priority,
            frequency=obj.frequency,
            relational_density=obj.relational_density,
            contextual_contribution=obj.contextual_contribution,
            properties=dict(obj.properties),
        )


class MasteryRecordRow(Base):
    """Mastery and FSRS scheduling state per learner per object."""

    __tablename__ = "mastery_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_id: Mapped[str] = mapped_column(Text, nullable=False)
    object_id: Mapped[str] = mapped_column(
        ForeignKey("language_objects.id", ondelete="CASCADE"), nullable=False
    )

    stage: Mapped[int] = mapped_column(Integer, default=0)  # 0-6
    stability: Mapped[float] = mapped_column(Float, default=0.0)  # days
    difficulty: Mapped[float] = mapped_column(Float, default=5.0)  # FSRS 1-10
    exposure_count: Mapped[int] = mapped_column(Integer, default=0)
    cue_free_accuracy: Mapped[float] = mapped_column(Float, default=0.0)
    cue_assisted_accuracy: Mapped[float] = mapped_column(Float, default=0.0)
    last_review: Mapped[datetime | None] = mapped_column()
    next_review: Mapped[datetime | None] = mapped_column()

    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("learner_id", "object_id", name="uq_mastery_learner_object"),
        Index("idx_mastery_next_review", "learner_id", "next_review"),
    )

    def __repr__(self) -> str:
        return f"<MasteryRecordRow learner={self.learner_id} object={self.object_id} stage={self.stage}>"

    def to_domain(self) -> MasteryRecord:
        return MasteryRecord(
            stage=self.stage,
            stability=self.stability,
            difficulty=self.difficulty,
            exposure_count=self.exposure_count,
            cue_free_accuracy=self.cue_free_accuracy,
            cue_assisted_accuracy=self.cue_assisted_accuracy,
            last_review=self.last_review,
            next_review=self.next_review,
        )

    def update_from(self, record: MasteryRecord) -> None:
        self.stage = record.stage
        self.stability = record.stability
        self.difficulty = record.difficulty
        self.exposure_count = record.exposure_count
        self.cue_free_accuracy = record.cue_free_accuracy
        self.cue_assisted_accuracy = record.cue_assisted_accuracy
        self.last_review = record.last_review
        self.next_review = record.next_review


class CollocationRow(Base):
    """Co-occurrence statistics for an object pair."""

    __tablename__ = "collocations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    object_a: Mapped[str] = mapped_column(ForeignKey("language_objects.id", ondelete="CASCADE"), nullable=False)
    object_b: Mapped[str] = mapped_column(ForeignKey("language_objects.id", ondelete="CASCADE"), nullable=False)
    npmi: Mapped[float | None] = mapped_column(Float)
    pmi: Mapped[float | None] = mapped_column(Float)

    __table_args__ = (UniqueConstraint("object_a", "object_b", name="uq_collocation_pair"),)

    def to_domain(self) -> Collocation:
        return Collocation(self.object_a, self.object_b, self.npmi, self.pmi)
