"""Per-run execution state shared by the operation executor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from operation_engine.operation import Operation, OperationProgressCallback


@dataclass
class ExecutionStackLayer:
    """Progress bookkeeping for one executing operation.

    completed_child_work: sum of ``parent_contribution`` of sub-operations
        that have finished during this frame.
    own_work_done: work done so far by the operation's own work function,
        in the same units as ``own_work_estimate``.
    peak_progress: highest fraction reported for this layer so far.
    """

    operation: "Operation"
    displayed: bool = True
    completed_child_work: float = 0.0
    own_work_done: float = 0.0
    finished: bool = False
    peak_progress: float = 0.0

    def record_own_progress(self, fraction: float) -> None:
        fraction = min(max(float(fraction), 0.0), 1.0)
        self.own_work_done = max(self.own_work_done, fraction * self.operation.own_work_estimate)

    def finish(self) -> None:
        self.own_work_done = self.operation.own_work_estimate
        self.finished = True


@dataclass
class ExecutionContext:
    """State of a single ``execute`` call; never shared between runs."""

    progress_callback: Optional["OperationProgressCallback"]
    last_update: float
    stack: List[ExecutionStackLayer] = field(default_factory=list)
    snapshots_emitted: int = 0
    failure: Optional[BaseException] = None

    @property
    def current(self) -> ExecutionStackLayer:
        return self.stack[-1]
