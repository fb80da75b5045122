"""
Usage Module - Usage-space tracking across situational contexts.
"""

from fluency.usage.contexts import (
    GOAL_TARGET_CONTEXTS,
    STANDARD_CONTEXTS,
    UsageContext,
    context_similarity,
    contexts_for_domain,
    get_context,
    resolve_contexts,
    target_contexts_for_goal,
)
from fluency.usage.progress import UsageProgress, calculate_usage_progress
from fluency.usage.tracker import (
    ContextExposure,
    ExpansionCandidate,
    ExpansionEvent,
    InMemoryUsageStore,
    ObjectUsageSpace,
    UsageEvent,
    UsageRecordResult,
    UsageSpaceTracker,
    UsageStore,
    apply_usage_event,
    coverage_ratio,
    expansion_candidates,
    select_task_context,
)

__all__ = [
    "GOAL_TARGET_CONTEXTS",
    "STANDARD_CONTEXTS",
    "UsageContext",
    "context_similarity",
    "contexts_for_domain",
    "get_context",
    "resolve_contexts",
    "target_contexts_for_goal",
    "UsageProgress",
    "calculate_usage_progress",
    "ContextExposure",
    "ExpansionCandidate",
    "ExpansionEvent",
    "InMemoryUsageStore",
    "ObjectUsageSpace",
    "UsageEvent",
    "UsageRecordResult",
    "UsageSpaceTracker",
    "UsageStore",
    "apply_usage_event",
    "coverage_ratio",
    "expansion_candidates",
    "select_task_context",
]
