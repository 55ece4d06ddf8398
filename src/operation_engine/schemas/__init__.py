"""Schema exports."""

from .artifact import ArtifactPayload, ArtifactType
from .base import SchemaBase, Severity
from .config import EngineConfig
from .errors import EngineError, EngineErrorCode, EngineErrorSource
from .event import Event, EventType

__all__ = [
    "ArtifactPayload",
    "ArtifactType",
    "SchemaBase",
    "Severity",
    "EngineConfig",
    "EngineError",
    "EngineErrorCode",
    "EngineErrorSource",
    "Event",
    "EventType",
]
