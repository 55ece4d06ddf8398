"""Engine configuration schema."""

from __future__ import annotations

from pydantic import ConfigDict, Field

from .base import SchemaBase


class EngineConfig(SchemaBase):
    """Runtime settings for operation execution.

    Fields:
        min_report_interval: Minimum number of seconds between two throttled
            progress snapshots of one run. The snapshot emitted when a work
            function returns is never throttled.
        record_progress_events: Record every emitted snapshot on the
            telemetry bus (when one is attached).
        show_hidden_stages: Report stages below operations created with
            ``show_sub_operations=False``.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    min_report_interval: float = Field(default=0.01, ge=0)
    record_progress_events: bool = Field(default=True)
    show_hidden_stages: bool = Field(default=False)
