"""Operation Engine package root.

The public API surface is the operation tree (``Operation``, ``WorkFunction``,
``Artifact``), the ``OperationExecutor`` and the schema types exposed in
``operation_engine.schemas``.
"""

__version__ = "0.1.0"

from operation_engine.artifacts import Artifact  # noqa: F401
from operation_engine.config_loader import load_engine_config  # noqa: F401
from operation_engine.exceptions import (  # noqa: F401
    ArtifactError,
    BindingConflictError,
    ManifestLoadError,
    OperationEngineError,
    OperationReentrancyError,
    OperationValidationError,
)
from operation_engine.loader import WebModLoader  # noqa: F401
from operation_engine.operation import Operation, WorkFunction  # noqa: F401
from operation_engine.runtime import OperationExecutor  # noqa: F401
from operation_engine.schemas import *  # noqa: F401,F403
from operation_engine.schemas import __all__ as SCHEMA_EXPORTS
from operation_engine.telemetry import TelemetryBus  # noqa: F401

__all__ = [
    "__version__",
    "Artifact",
    "ArtifactError",
    "BindingConflictError",
    "ManifestLoadError",
    "Operation",
    "OperationEngineError",
    "OperationExecutor",
    "OperationReentrancyError",
    "OperationValidationError",
    "TelemetryBus",
    "WebModLoader",
    "WorkFunction",
    "load_engine_config",
] + SCHEMA_EXPORTS
