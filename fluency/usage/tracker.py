"""
Usage Space Tracker.

Tracks the contexts in which each object has been used successfully:

1. Coverage: |successful ∩ target| / |target| (1.0 when there are no targets)
2. Expansion: the first success of an object in a context
3. Expansion candidates: target contexts not yet successful, ranked by
   readiness (similarity to successful contexts, boosted after a close attempt)

Knowing a word in one context does not guarantee knowing it in all
contexts, so coverage measures productive ability rather than recall.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Protocol

from loguru import logger

from fluency.core.components import ComponentCode, TaskType
from fluency.usage.contexts import (
    STANDARD_CONTEXTS,
    UsageContext,
    context_similarity,
    target_contexts_for_goal,
)

DEFAULT_SUCCESS_THRESHOLD = 0.6
ATTEMPT_BOOST_MIN_RATE = 0.4
ATTEMPT_BOOST = 0.2
PREREQUISITE_MIN_SIMILARITY = 0.5
MAX_PREREQUISITES = 2


# ============================================================================
# TYPES
# ============================================================================


@dataclass
class UsageEvent:
    object_id: str
    context_id: str
    score: float
    success: bool = True
    component: ComponentCode = ComponentCode.LEX
    session_id: str | None = None
    task_id: str | None = None
    task_type: TaskType | None = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ContextExposure:
    context_id: str
    exposure_count: int
    success_rate: float
    last_exposure: datetime | None = None

    def record(self, score: float, when: datetime) -> None:
        self.exposure_count += 1
        self.success_rate = (self.success_rate * (self.exposure_count - 1) + score) / self.exposure_count
        self.last_exposure = when


@dataclass(frozen=True)
class ExpansionCandidate:
    context_id: str
    readiness_score: float
    prerequisites: tuple[str, ...] = ()


@dataclass
class ObjectUsageSpace:
    object_id: str
    component: ComponentCode = ComponentCode.LEX
    successful_contexts: list[ContextExposure] = field(default_factory=list)
    attempted_contexts: list[ContextExposure] = field(default_factory=list)
    target_contexts: list[str] = field(default_factory=list)
    coverage_ratio: float = 0.0
    expansion_candidates: list[ExpansionCandidate] = field(default_factory=list)

    @property
    def successful_ids(self) -> list[str]:
        return [c.context_id for c in self.successful_contexts]

    def successful(self, context_id: str) -> ContextExposure | None:
        return next((c for c in self.successful_contexts if c.context_id == context_id), None)

    def attempted(self, context_id: str) -> ContextExposure | None:
        return next((c for c in self.attempted_contexts if c.context_id == context_id), None)

    def refresh(self) -> None:
        """Recompute coverage ratio and expansion candidates."""
        self.coverage_ratio = coverage_ratio(self.successful_ids, self.target_contexts)
        self.expansion_candidates = expansion_candidates(self)


@dataclass(frozen=True)
class ExpansionEvent:
    object_id: str
    new_context_id: str
    previous_coverage: float
    new_coverage: float
    timestamp: datetime
    session_id: str | None = None
    task_id: str | None = None


@dataclass(frozen=True)
class UsageRecordResult:
    recorded: bool
    expansion: ExpansionEvent | None
    new_coverage: float


# ============================================================================
# PURE CALCULATIONS
# ============================================================================


def coverage_ratio(successful_ids: Iterable[str], target_ids: Sequence[str]) -> float:
    if not target_ids:
        return 1.0
    successful = set(successful_ids)
    return sum(1 for t in target_ids if t in successful) / len(target_ids)


def expansion_candidates(space: ObjectUsageSpace) -> list[ExpansionCandidate]:
    """Every not-yet-successful target context, most ready first."""
    successful_ids = space.successful_ids
    candidates = []

    for target_id in space.target_contexts:
        if space.successful(target_id) is not None:
            continue

        similarities = sorted(
            ((sid, context_similarity(target_id, sid)) for sid in successful_ids),
            key=lambda pair: pair[1],
            reverse=True,
        )
        readiness = similarities[0][1] if similarities else 0.0
        prerequisites = tuple(
            sid for sid, sim in similarities if sim >= PREREQUISITE_MIN_SIMILARITY
        )[:MAX_PREREQUISITES]

        attempted = space.attempted(target_id)
        if attempted is not None and attempted.success_rate >= ATTEMPT_BOOST_MIN_RATE:
            readiness = min(1.0, readiness + ATTEMPT_BOOST)

        candidates.append(ExpansionCandidate(target_id, readiness, prerequisites))

    candidates.sort(key=lambda c: c.readiness_score, reverse=True)
    return candidates


def apply_usage_event(
    space: ObjectUsageSpace,
    event: UsageEvent,
    success_threshold: float = DEFAULT_SUCCESS_THRESHOLD,
) -> ExpansionEvent | None:
    """
    Fold one usage event into a usage space in place.

    Returns:
        ExpansionEvent when the context entered the successful set for the first time
    """
    is_successful = event.success and event.score >= success_threshold
    previous_coverage = space.coverage_ratio
    entered_successful = False

    if is_successful:
        existing = space.successful(event.context_id)
        if existing is not None:
            existing.record(event.score, event.timestamp)
        else:
            space.successful_contexts.append(
                ContextExposure(event.context_id, 1, event.score, event.timestamp)
            )
            space.attempted_contexts = [
                c for c in space.attempted_contexts if c.context_id != event.context_id
            ]
            entered_successful = True
    else:
        existing = space.attempted(event.context_id)
        if existing is not None:
            existing.record(event.score, event.timestamp)
        elif space.successful(event.context_id) is None:
            space.attempted_contexts.append(
                ContextExposure(event.context_id, 1, event.score, event.timestamp)
            )

    space.refresh()

    if not entered_successful:
        return None

    return ExpansionEvent(
        object_id=space.object_id,
        new_context_id=event.context_id,
        previous_coverage=previous_coverage,
        new_coverage=space.coverage_ratio,
        timestamp=event.timestamp,
        session_id=event.session_id,
        task_id=event.task_id,
    )


# ============================================================================
# STORAGE
# ============================================================================


class UsageStore(Protocol):
    """Persistence contract for usage spaces and expansion history."""

    def load_usage_space(self, object_id: str) -> ObjectUsageSpace | None: ...

    def save_usage_space(self, space: ObjectUsageSpace) -> None: ...

    def update_usage_space(
        self,
        object_id: str,
        apply: Callable[[ObjectUsageSpace | None], ObjectUsageSpace],
    ) -> ObjectUsageSpace:
        """Load, apply and save one space atomically with respect to other updates of it."""
        ...

    def record_expansion(self, expansion: ExpansionEvent) -> None: ...


class InMemoryUsageStore:
    """Dict-backed UsageStore."""

    def __init__(self):
        self.spaces: dict[str, ObjectUsageSpace] = {}
        self.expansions: list[ExpansionEvent] = []
        self._lock = Lock()

    def load_usage_space(self, object_id: str) -> ObjectUsageSpace | None:
        return self.spaces.get(object_id)

    def save_usage_space(self, space: ObjectUsageSpace) -> None:
        self.spaces[space.object_id] = space

    def update_usage_space(
        self,
        object_id: str,
        apply: Callable[[ObjectUsageSpace | None], ObjectUsageSpace],
    ) -> ObjectUsageSpace:
        with self._lock:
            space = apply(self.spaces.get(object_id))
            self.spaces[object_id] = space
            return space

    def record_expansion(self, expansion: ExpansionEvent) -> None:
        self.expansions.append(expansion)


class UsageSpaceTracker:
    """Records usage events against a UsageStore."""

    def __init__(
        self,
        store: UsageStore,
        success_threshold: float = DEFAULT_SUCCESS_THRESHOLD,
        default_domain: str = "general",
    ):
        self.store = store
        self.success_threshold = success_threshold
        self.default_domain = default_domain

    def get_usage_space(
        self,
        object_id: str,
        component: ComponentCode = ComponentCode.LEX,
        domain: str | None = None,
    ) -> ObjectUsageSpace:
        """Stored usage space, or a fresh one targeting the goal domain's contexts."""
        space = self.store.load_usage_space(object_id)
        if space is not None:
            return space
        return self._new_space(object_id, component, domain)

    def _new_space(self, object_id: str, component: ComponentCode, domain: str | None) -> ObjectUsageSpace:
        space = ObjectUsageSpace(
            object_id=object_id,
            component=component,
            target_contexts=target_contexts_for_goal(domain or self.default_domain),
        )
        space.refresh()
        return space

    def record_usage(self, event: UsageEvent, domain: str | None = None) -> UsageRecordResult:
        """
        Record one usage event.

        Args:
            event: Usage event (score in [0, 1])
            domain: Goal domain used when the object has no usage space yet

        Returns:
            UsageRecordResult with the expansion event (if any) and new coverage
        """
        expansions: list[ExpansionEvent | None] = []

        def apply(current: ObjectUsageSpace | None) -> ObjectUsageSpace:
            space = current if current is not None else self._new_space(event.object_id, event.component, domain)
            expansions[:] = [apply_usage_event(space, event, self.success_threshold)]
            return space

        space = self.store.update_usage_space(event.object_id, apply)
        expansion = expansions[0]

        if expansion is not None:
            self.store.record_expansion(expansion)
            logger.info(
                f"Usage expansion: {event.object_id} -> {event.context_id} "
                f"(coverage {expansion.previous_coverage:.0%} -> {expansion.new_coverage:.0%})"
            )
        else:
            logger.debug(f"Usage recorded: {event.object_id} in {event.context_id} score={event.score:.2f}")

        return UsageRecordResult(recorded=True, expansion=expansion, new_coverage=space.coverage_ratio)


# ============================================================================
# CONTEXT SELECTION
# ============================================================================


def select_task_context(
    spaces: Sequence[ObjectUsageSpace],
    task_type: TaskType | str,
    prefer_expansion: bool = True,
) -> UsageContext:
    """
    Choose the usage context for a task.

    Targets that are ready for expansion score highest, unmastered targets
    next and already-successful targets lowest. Ties keep declaration order.
    """
    applicable = [c for c in STANDARD_CONTEXTS if task_type in c.applicable_task_types]
    if not applicable:
        return STANDARD_CONTEXTS[0]

    best, best_score = applicable[0], float("-inf")
    for context in applicable:
        score = 0.0
        for space in spaces:
            if context.context_id not in space.target_contexts:
                continue
            if space.successful(context.context_id) is not None:
                score += 0.2
                continue

            candidate = next(
                (e for e in space.expansion_candidates if e.context_id == context.context_id), None
            )
            if candidate is None:
                score += 0.3
            elif prefer_expansion and candidate.readiness_score >= 0.6:
                score += 1.0 + candidate.readiness_score
            else:
                score += 0.5 + candidate.readiness_score * 0.5

        if score > best_score:
            best, best_score = context, score

    return best
