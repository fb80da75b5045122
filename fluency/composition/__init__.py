"""
Composition Module - Economic slot-filling for multi-object tasks.

Components:
- economic_value: learning value, cognitive cost, role affinity, candidate pool
- templates: slot/template definitions and the template library
- composer: greedy synergy-aware optimizer producing ComposedTask
"""

from fluency.composition.composer import (
    ComposedTask,
    CompositionOptimizationConfig,
    CompositionResult,
    ExcludedCandidate,
    FilledSlot,
    TaskComposer,
    TaskRubric,
)
from fluency.composition.economic_value import (
    EconomicValue,
    ObjectCandidate,
    automaticity_level,
    build_candidate_pool,
    calculate_economic_value,
)
from fluency.composition.templates import (
    TASK_TEMPLATES,
    ObjectSlot,
    RelatedSlot,
    SlotConstraints,
    TaskTemplate,
    find_suitable_templates,
    get_template,
)

__all__ = [
    "ComposedTask",
    "CompositionOptimizationConfig",
    "CompositionResult",
    "ExcludedCandidate",
    "FilledSlot",
    "TaskComposer",
    "TaskRubric",
    "EconomicValue",
    "ObjectCandidate",
    "automaticity_level",
    "build_candidate_pool",
    "calculate_economic_value",
    "TASK_TEMPLATES",
    "ObjectSlot",
    "RelatedSlot",
    "SlotConstraints",
    "TaskTemplate",
    "find_suitable_templates",
    "get_template",
]
