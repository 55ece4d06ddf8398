"""Configuration loader for Operation Engine settings manifests."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from operation_engine.exceptions import ManifestLoadError
from operation_engine.schemas import EngineConfig, EngineError, EngineErrorCode, EngineErrorSource, Severity
from operation_engine.utils.json_io import read_json_safe

ENV_MIN_REPORT_INTERVAL = "OPERATION_ENGINE_MIN_REPORT_INTERVAL"
ENV_SHOW_HIDDEN_STAGES = "OPERATION_ENGINE_SHOW_HIDDEN_STAGES"

_TRUTHY = {"1", "true", "yes", "on"}


def load_engine_config(path: Optional[Union[str, Path]] = None) -> Tuple[Optional[EngineConfig], Optional[EngineError]]:
    """Load engine settings from a YAML or JSON manifest.

    With no path, defaults are used. Environment overrides are applied on top
    of the manifest values in both cases.
    """
    payload: Dict[str, Any] = {}
    if path is not None:
        loaded, err = _load_file(Path(path))
        if err:
            return None, err
        if loaded is not None and not isinstance(loaded, dict):
            return None, _error(f"Engine config must be a mapping, got {type(loaded).__name__}", {"path": str(path)})
        payload = dict(loaded or {})

    payload.update(_env_overrides())
    try:
        return EngineConfig(**payload), None
    except ValidationError as exc:
        return None, _error("Engine config validation failed", {"errors": exc.errors(include_url=False)})


def load_engine_config_strict(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """Like :func:`load_engine_config` but raises :class:`ManifestLoadError`."""
    config, err = load_engine_config(path)
    if err:
        raise ManifestLoadError(str(path) if path is not None else "<defaults>", err.message)
    return config


def _load_file(path: Path):
    if not path.exists():
        return None, _error(f"Manifest not found: {path}")

    if path.suffix.lower() in {".yaml", ".yml"}:
        try:
            return yaml.safe_load(path.read_text()), None
        except yaml.YAMLError as exc:
            return None, _error(f"Failed to parse manifest {path.name}", {"error": str(exc)})

    data, message = read_json_safe(path)
    if message:
        return None, _error(f"Failed to parse manifest {path.name}", {"error": message})
    return data, None


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    interval = os.getenv(ENV_MIN_REPORT_INTERVAL)
    if interval:
        overrides["min_report_interval"] = interval
    hidden = os.getenv(ENV_SHOW_HIDDEN_STAGES)
    if hidden:
        overrides["show_hidden_stages"] = hidden.strip().lower() in _TRUTHY
    return overrides


def _error(message: str, details=None) -> EngineError:
    return EngineError(
        error_id="config_error",
        code=EngineErrorCode.CONFIG,
        message=message,
        source=EngineErrorSource.CONFIG_LOADER,
        severity=Severity.ERROR,
        details=details,
    )


__all__ = ["load_engine_config", "load_engine_config_strict", "ENV_MIN_REPORT_INTERVAL", "ENV_SHOW_HIDDEN_STAGES"]
