"""Structured engine error records."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from .base import SchemaBase, Severity


class EngineErrorCode(str, Enum):
    CONFIG = "config"
    EXECUTION = "execution"


class EngineErrorSource(str, Enum):
    CONFIG_LOADER = "config_loader"
    EXECUTOR = "executor"


class EngineError(SchemaBase):
    error_id: str
    code: EngineErrorCode
    message: str
    source: EngineErrorSource
    severity: Severity = Field(default=Severity.ERROR)
    details: Optional[Dict[str, Any]] = Field(default=None)
    operation_name: Optional[str] = Field(default=None)
    timestamp: Optional[str] = Field(default=None)
