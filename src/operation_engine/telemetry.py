"""Telemetry/event bus."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Sequence
from zoneinfo import ZoneInfo
import time

from operation_engine.schemas import EngineError, Event, EventType


def _now_iso() -> str:
    """Generate ISO-8601 timestamp."""
    return datetime.now(ZoneInfo("UTC")).isoformat()


@dataclass
class TelemetryBus:
    events: List[Event] = field(default_factory=list)

    def __post_init__(self):
        """Initialize start time tracking dicts."""
        self._operation_start_times: dict[str, float] = {}
        self._run_start_times: dict[str, float] = {}

    def emit(self, event: Event) -> None:
        self.events.append(event)

    # Run Events
    def run_started(self, root_name: str, args: Sequence[Any] = ()) -> None:
        self._run_start_times[root_name] = time.time()
        self.emit(Event(
            event_id=f"run_started-{len(self.events)}",
            operation_name=root_name,
            type=EventType.RUN,
            timestamp=_now_iso(),
            payload={
                "event": "run_started",
                "arg_count": len(args),
            }
        ))

    def run_completed(self, root_name: str, snapshots_emitted: int) -> None:
        payload = {"event": "run_completed", "snapshots_emitted": snapshots_emitted}
        started = self._run_start_times.pop(root_name, None)
        if started is not None:
            payload["duration_ms"] = (time.time() - started) * 1000
        self.emit(Event(
            event_id=f"run_completed-{len(self.events)}",
            operation_name=root_name,
            type=EventType.RUN,
            timestamp=_now_iso(),
            payload=payload,
        ))

    # Operation Events
    def operation_started(self, operation_name: str, depth: int) -> None:
        self._operation_start_times[operation_name] = time.time()
        self.emit(Event(
            event_id=f"operation_started-{len(self.events)}",
            operation_name=operation_name,
            type=EventType.OPERATION,
            timestamp=_now_iso(),
            payload={
                "event": "operation_started",
                "depth": depth,
            }
        ))

    def operation_completed(self, operation_name: str) -> None:
        """Emit operation completed event, with its duration when known."""
        payload = {"event": "operation_completed"}
        started = self._operation_start_times.pop(operation_name, None)
        if started is not None:
            payload["duration_ms"] = (time.time() - started) * 1000
        self.emit(Event(
            event_id=f"operation_completed-{len(self.events)}",
            operation_name=operation_name,
            type=EventType.OPERATION,
            timestamp=_now_iso(),
            payload=payload,
        ))

    def operation_failed(self, operation_name: str, error: EngineError) -> None:
        self._operation_start_times.pop(operation_name, None)
        self.emit(Event(
            event_id=f"operation_failed-{len(self.events)}",
            operation_name=operation_name,
            type=EventType.ERROR,
            timestamp=_now_iso(),
            payload={
                "event": "operation_failed",
                "error": error.model_dump(mode="json"),
            }
        ))

    # Progress Events
    def progress_snapshot(self, operation_name: str, stages: List[str], progresses: List[float], final: bool) -> None:
        self.emit(Event(
            event_id=f"progress_snapshot-{len(self.events)}",
            operation_name=operation_name,
            type=EventType.PROGRESS,
            timestamp=_now_iso(),
            payload={
                "event": "progress_snapshot",
                "stages": list(stages),
                "progresses": list(progresses),
                "final": final,
            }
        ))

    def events_of_type(self, event_type: EventType) -> List[Event]:
        return [event for event in self.events if event.type == event_type]

    def progress_history(self, operation_name: str, depth: Optional[int] = None) -> List[float]:
        """Fractions reported for the stage ``operation_name``.

        ``depth`` restricts matches to one position of the stage stack, which
        disambiguates stages sharing a display name at different levels.
        """
        history = []
        for event in self.events_of_type(EventType.PROGRESS):
            stages = event.payload["stages"]
            progresses = event.payload["progresses"]
            for index, stage in enumerate(stages):
                if stage == operation_name and (depth is None or depth == index):
                    history.append(progresses[index])
        return history
