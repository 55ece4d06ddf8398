"""Utility modules for Operation Engine."""

from .json_io import (
    read_json_safe,
    write_json_safe,
)

__all__ = [
    "read_json_safe",
    "write_json_safe",
]
