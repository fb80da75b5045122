"""
Standard usage contexts.

A usage context is a (domain, register, modality, genre) setting in which an
object may be used. The standard set follows the CEFR domains plus a
medical domain for healthcare goals.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from fluency.core.components import TaskType

_T = TaskType


@dataclass(frozen=True)
class UsageContext:
    context_id: str
    name: str
    domain: str
    register: str
    modality: str
    genre: str = "general"
    applicable_task_types: tuple[TaskType, ...] = ()

    @property
    def features(self) -> frozenset[str]:
        return frozenset(
            {
                f"domain:{self.domain}",
                f"register:{self.register}",
                f"modality:{self.modality}",
                f"genre:{self.genre}",
            }
        )


STANDARD_CONTEXTS: tuple[UsageContext, ...] = (
    # Personal
    UsageContext("personal-spoken-informal", "Casual Conversation", "personal", "informal", "spoken",
                 "conversation", (_T.PRODUCTION, _T.RECALL_FREE)),
    UsageContext("personal-written-informal", "Personal Messages", "personal", "informal", "written",
                 "messaging", (_T.SENTENCE_WRITING, _T.PRODUCTION)),
    # Professional
    UsageContext("professional-spoken-formal", "Professional Meetings", "professional", "formal", "spoken",
                 "meeting", (_T.PRODUCTION, _T.REGISTER_SHIFT)),
    UsageContext("professional-written-formal", "Business Correspondence", "professional", "formal", "written",
                 "email", (_T.SENTENCE_WRITING, _T.PRODUCTION)),
    UsageContext("professional-written-technical", "Technical Documentation", "professional", "technical",
                 "written", "documentation", (_T.SENTENCE_WRITING, _T.TRANSLATION)),
    # Medical
    UsageContext("medical-spoken-consultative", "Patient Interaction", "medical", "consultative", "spoken",
                 "consultation", (_T.PRODUCTION, _T.RECALL_FREE)),
    UsageContext("medical-written-technical", "Medical Documentation", "medical", "technical", "written",
                 "chart", (_T.SENTENCE_WRITING, _T.PRODUCTION)),
    UsageContext("medical-spoken-collegial", "Colleague Communication", "medical", "consultative", "spoken",
                 "handoff", (_T.PRODUCTION, _T.REGISTER_SHIFT)),
    # Academic
    UsageContext("academic-written-formal", "Academic Writing", "academic", "formal", "written",
                 "essay", (_T.SENTENCE_WRITING, _T.SENTENCE_COMBINING)),
    UsageContext("academic-spoken-formal", "Academic Presentation", "academic", "formal", "spoken",
                 "presentation", (_T.PRODUCTION,)),
)

_CONTEXTS_BY_ID: dict[str, UsageContext] = {c.context_id: c for c in STANDARD_CONTEXTS}

GOAL_TARGET_CONTEXTS: dict[str, tuple[str, ...]] = {
    "medical": (
        "medical-spoken-consultative",
        "medical-written-technical",
        "medical-spoken-collegial",
        "professional-spoken-formal",
    ),
    "academic": (
        "academic-written-formal",
        "academic-spoken-formal",
        "professional-written-formal",
    ),
    "professional": (
        "professional-spoken-formal",
        "professional-written-formal",
        "professional-written-technical",
    ),
    "general": (
        "personal-spoken-informal",
        "personal-written-informal",
        "professional-spoken-formal",
    ),
}


def get_context(context_id: str) -> UsageContext | None:
    return _CONTEXTS_BY_ID.get(context_id)


def contexts_for_domain(domain: str) -> list[UsageContext]:
    return [c for c in STANDARD_CONTEXTS if c.domain == domain]


def target_contexts_for_goal(domain: str | None) -> list[str]:
    """Target context ids for a goal domain; unknown domains use the general list."""
    return list(GOAL_TARGET_CONTEXTS.get(domain or "general", GOAL_TARGET_CONTEXTS["general"]))


def resolve_contexts(context_ids: Iterable[str]) -> list[UsageContext]:
    """Known contexts for the given ids, in order; unknown ids are dropped."""
    return [ctx for ctx in map(get_context, context_ids) if ctx is not None]


def context_similarity(a: str | UsageContext, b: str | UsageContext) -> float:
    """
    Jaccard similarity over {domain, register, modality, genre} features.

    Unknown context ids have no features: they are similar only to themselves.
    """
    ctx_a = a if isinstance(a, UsageContext) else get_context(a)
    ctx_b = b if isinstance(b, UsageContext) else get_context(b)
    if ctx_a is None or ctx_b is None:
        id_a = a.context_id if isinstance(a, UsageContext) else a
        id_b = b.context_id if isinstance(b, UsageContext) else b
        return 1.0 if id_a == id_b else 0.0

    union = ctx_a.features | ctx_b.features
    return len(ctx_a.features & ctx_b.features) / len(union)
