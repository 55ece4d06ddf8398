"""Progress projection: converting work done into per-level fractions.

All functions here are pure. A level's fraction is::

    clamp01((completed_child_work + own_work_done + active_child_work) / total_estimate)

where ``total_estimate = child_work_total + own_work_estimate`` (a zero total
means the level is complete once its work function returns) and
``active_child_work`` is the running child's fraction multiplied by its fixed
``parent_contribution``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Sequence

if TYPE_CHECKING:
    from operation_engine.operation import Operation
    from operation_engine.runtime.execution_context import ExecutionStackLayer


def clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def work_to_progress(operation: "Operation", total_work: float) -> float:
    """Fraction of ``operation`` completed given its total work done."""
    total_estimate = operation.child_work_total + operation.own_work_estimate
    if not total_estimate:
        return 1.0
    return clamp01(total_work / total_estimate)


def progress_to_parent_work(operation: "Operation", progress: float) -> float:
    """Work contributed to the parent by ``operation`` at ``progress``."""
    return progress * operation.parent_contribution


def work_to_parent_work(operation: "Operation", total_work: float) -> float:
    return progress_to_parent_work(operation, work_to_progress(operation, total_work))


def project_progress(stack: Sequence["ExecutionStackLayer"]) -> List[float]:
    """Fractions for every layer of ``stack``, root first.

    Computed from the innermost layer outwards so each parent sees the
    partial progress of its running child. A finished layer reports 1.0 and
    no layer reports less than its ``peak_progress``.
    """
    progresses: List[float] = [0.0] * len(stack)
    active_child_work = 0.0
    for index in range(len(stack) - 1, -1, -1):
        layer = stack[index]
        operation = layer.operation
        if layer.finished:
            progress = 1.0
        else:
            work = layer.completed_child_work + layer.own_work_done + active_child_work
            progress = max(layer.peak_progress, work_to_progress(operation, work))
        progresses[index] = progress
        active_child_work = progress_to_parent_work(operation, progress)
    return progresses


def visible_depth(stack: Sequence["ExecutionStackLayer"], show_hidden: bool = False) -> int:
    """Number of leading layers that appear in progress reports."""
    if show_hidden:
        return len(stack)
    depth = 0
    for layer in stack:
        if not layer.displayed:
            break
        depth += 1
    return depth


def stage_stack(stack: Sequence["ExecutionStackLayer"]) -> List[str]:
    return [layer.operation.name for layer in stack]


__all__ = [
    "clamp01",
    "work_to_progress",
    "progress_to_parent_work",
    "work_to_parent_work",
    "project_progress",
    "visible_depth",
    "stage_stack",
]
