"""
Pipeline Module - End-to-end task generation and response processing.
"""

from fluency.pipeline.integrated import (
    GenerationMetadata,
    ObjectSource,
    PipelineStatus,
    PresentedTask,
    ResponseRequest,
    ResponseResult,
    TaskPipeline,
    TaskRequest,
    TaskResult,
    build_evaluation_inputs,
    build_task_spec,
    select_best_template,
)

__all__ = [
    "GenerationMetadata",
    "ObjectSource",
    "PipelineStatus",
    "PresentedTask",
    "ResponseRequest",
    "ResponseResult",
    "TaskPipeline",
    "TaskRequest",
    "TaskResult",
    "build_evaluation_inputs",
    "build_task_spec",
    "select_best_template",
]
