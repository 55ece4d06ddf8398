"""Operation executor walks an operation tree and reports hierarchical progress."""

from __future__ import annotations

import inspect
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Optional

from operation_engine.exceptions import OperationReentrancyError
from operation_engine.runtime.execution_context import ExecutionContext, ExecutionStackLayer
from operation_engine.runtime.progress import project_progress, stage_stack, visible_depth
from operation_engine.schemas import EngineConfig, EngineError, EngineErrorCode, EngineErrorSource
from operation_engine.telemetry import TelemetryBus, _now_iso

if TYPE_CHECKING:
    from operation_engine.operation import (
        Operation,
        OperationProgressCallback,
        SubOperationCallback,
        SubOperationCallbackSet,
    )

logger = logging.getLogger(__name__)


class OperationExecutor:
    """Execute an operation tree sequentially.

    Each operation's work function is awaited as
    ``fn(operation, callbacks, progress_callback, *args)``:

    - ``callbacks`` maps every binding name to an async callable. Calling a
      single binding runs that sub-operation; calling a group runs every
      member in insertion order, including members appended after the
      callbacks were built.
    - ``progress_callback(fraction)`` reports the work function's own
      progress in [0, 1].

    Progress snapshots ``(stage_names, fractions)`` are sent to the run's
    progress callback at most once per ``config.min_report_interval``, plus
    once unconditionally whenever a work function returns.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        telemetry: Optional[TelemetryBus] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or EngineConfig()
        self.telemetry = telemetry
        self.clock = clock

    async def execute(
        self,
        operation: "Operation",
        progress_callback: Optional["OperationProgressCallback"],
        *args: Any,
    ) -> ExecutionContext:
        """Run ``operation`` as the root of a fresh execution context.

        Any exception raised by a work function propagates unchanged and
        aborts the run.
        """
        context = ExecutionContext(progress_callback=progress_callback, last_update=self.clock())
        logger.info("Starting run of %s", operation.full_name)
        if self.telemetry:
            self.telemetry.run_started(operation.full_name, args)

        await self._execute_internal(operation, context, True, *args)

        logger.info("Finished run of %s (%d progress snapshots)", operation.full_name, context.snapshots_emitted)
        if self.telemetry:
            self.telemetry.run_completed(operation.full_name, context.snapshots_emitted)
        return context

    async def _execute_internal(
        self,
        operation: "Operation",
        context: ExecutionContext,
        displayed: bool,
        /,
        *args: Any,
        **kwargs: Any,
    ) -> None:
        if operation.executing:
            raise OperationReentrancyError(operation.full_name, "is already executing")
        operation.executing = True

        layer = ExecutionStackLayer(operation=operation, displayed=displayed)
        context.stack.append(layer)
        callbacks = self._build_callbacks(operation, layer, context, displayed and operation.show_sub_operations)

        async def work_function_progress(fraction: float) -> None:
            layer.record_own_progress(fraction)
            if self._gate_progress_report(context):
                await self._send_progress_report(context, final=False)

        full_name = operation.full_name
        logger.debug("Executing operation %s", full_name)
        if self.telemetry:
            self.telemetry.operation_started(full_name, depth=len(context.stack) - 1)

        try:
            await operation.work.fn(operation, callbacks, work_function_progress, *args, **kwargs)
        except Exception as exc:
            # Only the frame the exception started in reports it.
            if exc is not context.failure:
                context.failure = exc
                logger.error("Operation %s failed: %s", full_name, exc)
                if self.telemetry:
                    self.telemetry.operation_failed(full_name, self._error_record(operation, exc))
            else:
                logger.debug("Operation %s aborted by a failed sub-operation", full_name)
            raise

        layer.finish()
        await self._send_progress_report(context, final=True)

        context.stack.pop()
        operation.executing = False
        logger.debug("Completed operation %s", full_name)
        if self.telemetry:
            self.telemetry.operation_completed(full_name)

    def _build_callbacks(
        self,
        operation: "Operation",
        layer: ExecutionStackLayer,
        context: ExecutionContext,
        child_displayed: bool,
    ) -> "SubOperationCallbackSet":
        callbacks: "SubOperationCallbackSet" = {}
        for group_name in operation.bindings.groups:
            callbacks[group_name] = self._group_callback(operation, group_name, layer, context, child_displayed)
        for binding_name, child in operation.bindings.callbacks.items():
            callbacks[binding_name] = self._single_callback(child, layer, context, child_displayed)
        return callbacks

    def _single_callback(
        self,
        child: "Operation",
        layer: ExecutionStackLayer,
        context: ExecutionContext,
        child_displayed: bool,
    ) -> "SubOperationCallback":
        async def run_sub_operation(*args: Any, **kwargs: Any) -> None:
            await self._execute_internal(child, context, child_displayed, *args, **kwargs)
            layer.completed_child_work += child.parent_contribution

        return run_sub_operation

    def _group_callback(
        self,
        operation: "Operation",
        group_name: str,
        layer: ExecutionStackLayer,
        context: ExecutionContext,
        child_displayed: bool,
    ) -> "SubOperationCallback":
        async def run_group(*args: Any, **kwargs: Any) -> None:
            # Reads the live group so members attached mid-run are visited.
            for member in operation.bindings.iter_group(group_name):
                await self._execute_internal(member, context, child_displayed, *args, **kwargs)
                layer.completed_child_work += member.parent_contribution

        return run_group

    def _gate_progress_report(self, context: ExecutionContext) -> bool:
        now = self.clock()
        if now - context.last_update < self.config.min_report_interval:
            return False
        context.last_update = now
        return True

    async def _send_progress_report(self, context: ExecutionContext, final: bool) -> None:
        progresses = project_progress(context.stack)
        for layer, progress in zip(context.stack, progresses):
            layer.peak_progress = progress

        depth = visible_depth(context.stack, show_hidden=self.config.show_hidden_stages)
        stages = stage_stack(context.stack[:depth])
        progresses = progresses[:depth]
        if final:
            context.last_update = self.clock()
        context.snapshots_emitted += 1

        if self.telemetry and self.config.record_progress_events:
            self.telemetry.progress_snapshot(context.current.operation.full_name, stages, progresses, final)
        if context.progress_callback is not None:
            result = context.progress_callback(stages, progresses)
            if inspect.isawaitable(result):
                await result

    def _error_record(self, operation: "Operation", exc: Exception) -> EngineError:
        return EngineError(
            error_id=f"operation-failed-{operation.full_name}",
            code=EngineErrorCode.EXECUTION,
            message=str(exc),
            source=EngineErrorSource.EXECUTOR,
            details={"exception_type": type(exc).__name__},
            operation_name=operation.full_name,
            timestamp=_now_iso(),
        )


__all__ = ["OperationExecutor"]
