"""Artifact schema definitions."""

from enum import Enum
from typing import Any, Dict, List, Union


class ArtifactType(str, Enum):
    """Categories of diagnostic artifacts an operation can collect."""
    ERROR = "error"
    DEBUG = "debug"
    INFO = "info"
    SOURCE = "source"
    OPERATION = "operation"


# JSON-representable value persisted in an artifact tree
ArtifactPayload = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
