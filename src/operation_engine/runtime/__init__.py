"""Runtime exports."""

from operation_engine.runtime.execution_context import ExecutionContext, ExecutionStackLayer
from operation_engine.runtime.operation_executor import OperationExecutor
from operation_engine.runtime.progress import (
    progress_to_parent_work,
    project_progress,
    work_to_parent_work,
    work_to_progress,
)

__all__ = [
    "ExecutionContext",
    "ExecutionStackLayer",
    "OperationExecutor",
    "progress_to_parent_work",
    "project_progress",
    "work_to_parent_work",
    "work_to_progress",
]
