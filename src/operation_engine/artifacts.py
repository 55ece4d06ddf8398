"""Operation artifacts: named, typed diagnostic payloads attached to operations."""

from __future__ import annotations

import copy
import logging
import math
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Union

from operation_engine.exceptions import ArtifactError
from operation_engine.schemas import ArtifactPayload, ArtifactType

if TYPE_CHECKING:
    from operation_engine.operation import Operation

logger = logging.getLogger(__name__)

ArtifactPredicate = Callable[["Artifact"], bool]
ArtifactFilter = Union[ArtifactPredicate, Iterable[Union[ArtifactType, str]]]


def _coerce_type(name: str, value: Union[ArtifactType, str]) -> ArtifactType:
    try:
        return ArtifactType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in ArtifactType)
        raise ArtifactError(name, f"unknown artifact type {value!r} (expected one of: {allowed})")


def _copy_payload(name: str, payload: Any, path: str = "$") -> Any:
    """Return a private copy of ``payload`` with tuples turned into lists.

    Rejects anything that would not survive a round trip through JSON.
    """
    if payload is None or isinstance(payload, (str, bool, int)):
        return payload
    if isinstance(payload, float):
        if not math.isfinite(payload):
            raise ArtifactError(name, f"non-finite number at {path}")
        return payload
    if isinstance(payload, dict):
        copied = {}
        for key, value in payload.items():
            if not isinstance(key, str):
                raise ArtifactError(name, f"non-string key {key!r} at {path}")
            copied[key] = _copy_payload(name, value, f"{path}.{key}")
        return copied
    if isinstance(payload, (list, tuple)):
        return [_copy_payload(name, value, f"{path}[{index}]") for index, value in enumerate(payload)]
    raise ArtifactError(name, f"payload is not JSON-representable at {path} ({type(payload).__name__})")


class Artifact:
    """A single named diagnostic record owned by one operation.

    ``payload`` is persisted in exported artifact trees. ``reference`` may hold
    any live object that is useful while debugging in-process; it is never
    exported.
    """

    __slots__ = ("_type", "_name", "_payload", "_reference", "owner")

    def __init__(
        self,
        type: Union[ArtifactType, str],
        name: str,
        payload: ArtifactPayload,
        reference: Any = None,
    ) -> None:
        if not isinstance(name, str) or not name:
            raise ArtifactError(str(name), "artifact name must be a non-empty string")
        self._payload = _copy_payload(name, payload)
        self._type = _coerce_type(name, type)
        self._name = name
        self._reference = reference
        self.owner: Optional[Operation] = None

    @property
    def type(self) -> ArtifactType:
        return self._type

    @property
    def name(self) -> str:
        return self._name

    @property
    def payload(self) -> ArtifactPayload:
        """A copy of the recorded payload; the record itself never changes."""
        return copy.deepcopy(self._payload)

    @property
    def reference(self) -> Any:
        return self._reference

    def set_owner(self, operation: "Operation") -> None:
        if self.owner is not None and self.owner is not operation:
            raise ArtifactError(self._name, f"already attached to {self.owner.full_name}")
        self.owner = operation

    def owner_name(self) -> str:
        return self.owner.full_name if self.owner is not None else "parentless"

    def log_args(self, *args: Any) -> tuple:
        return (f"Artifact Log: {self.owner_name()} > {self._name}", self._payload, self._reference, *args)

    def log(self, *args: Any, logger: Optional[logging.Logger] = None) -> None:
        """Log this artifact at INFO on ``logger`` (module logger by default)."""
        parts = self.log_args(*args)
        (logger or _default_logger()).info(" ".join(["%s"] * len(parts)), *parts)

    def trace(self, *args: Any, logger: Optional[logging.Logger] = None) -> None:
        """Like :meth:`log` but at DEBUG and with the current call stack."""
        parts = self.log_args(*args)
        (logger or _default_logger()).debug(" ".join(["%s"] * len(parts)), *parts, stack_info=True)

    def __repr__(self) -> str:
        return f"Artifact(type={self._type.value!r}, name={self._name!r}, owner={self.owner_name()!r})"


def _default_logger() -> logging.Logger:
    return logger


def artifact_predicate(artifact_filter: ArtifactFilter) -> ArtifactPredicate:
    """Normalise an artifact filter into a predicate.

    A callable is returned unchanged. Any other iterable is treated as a set of
    allowed artifact types, so ``{"error"}`` becomes
    ``lambda a: a.type in {ArtifactType.ERROR}``.
    """
    if callable(artifact_filter):
        return artifact_filter
    if isinstance(artifact_filter, (str, ArtifactType)):
        artifact_filter = [artifact_filter]
    allowed = frozenset(_coerce_type("<filter>", t) for t in artifact_filter)
    return lambda artifact: artifact.type in allowed


__all__ = ["Artifact", "ArtifactFilter", "ArtifactPredicate", "artifact_predicate"]
