"""JSON I/O helpers for configuration manifests and exported artifact trees.

Errors are reported as ``(value, error_message)`` tuples rather than raised,
so callers can decide whether a failed read or write is fatal.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Tuple


def read_json_safe(
    path: Path,
    default: Any = None,
    encoding: str = "utf-8"
) -> Tuple[Any, Optional[str]]:
    """Read and parse a JSON file.

    Args:
        path: Path to the JSON file to read.
        default: Value returned when the file is missing or unparsable.
        encoding: Text encoding for file read.

    Returns:
        Tuple of (data, error_message). ``error_message`` is None on success.
    """
    try:
        payload = path.read_text(encoding=encoding)
    except FileNotFoundError:
        return default, f"JSON file not found: {path}"
    except OSError as exc:
        return default, f"Cannot read {path}: {exc}"

    try:
        return json.loads(payload), None
    except json.JSONDecodeError as exc:
        return default, f"Failed to parse JSON at {path}: {exc}"


def write_json_safe(
    path: Path,
    data: Any,
    indent: int = 2,
    ensure_ascii: bool = False,
    encoding: str = "utf-8"
) -> Tuple[bool, Optional[str]]:
    """Serialize ``data`` to ``path``, creating parent directories as needed.

    Returns:
        Tuple of (success, error_message). ``error_message`` is None on success.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(data, indent=indent, ensure_ascii=ensure_ascii)
        path.write_text(text + "\n", encoding=encoding)
        return True, None
    except (OSError, TypeError, ValueError) as exc:
        return False, f"Failed to write JSON at {path}: {exc}"


__all__ = ["read_json_safe", "write_json_safe"]
