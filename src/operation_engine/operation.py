"""Operation tree nodes.

An :class:`Operation` is a named unit of work with two declared weights:

- ``own_work_estimate``: the work its own work function is predicted to do,
  excluding sub-operations.
- ``parent_contribution``: the weight it adds to its parent's total once fully
  complete. This is fixed when the operation is attached and is never
  renormalised, even if sub-operations are attached to it later.

Sub-operations are reachable from the parent's work function through named
bindings (see :class:`~operation_engine.bindings.SubOperationBindingSet`).
"""

from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, NamedTuple, Optional, Tuple, Union

from operation_engine.artifacts import Artifact, ArtifactFilter, artifact_predicate
from operation_engine.bindings import SubOperationBindingSet
from operation_engine.exceptions import ArtifactError, OperationReentrancyError, OperationValidationError
from operation_engine.schemas import ArtifactPayload, ArtifactType
from operation_engine.utils.json_io import write_json_safe

FULL_NAME_SEPARATOR = " > "

SubOperationCallback = Callable[..., Awaitable[None]]
SubOperationCallbackSet = Dict[str, SubOperationCallback]
WorkFunctionProgressCallback = Callable[[float], Awaitable[None]]
OperationWorkFunction = Callable[..., Awaitable[None]]
OperationProgressCallback = Callable[[List[str], List[float]], Awaitable[None]]

_ANONYMOUS_NAMES = {"<lambda>", "anonymous"}
_NUMERIC_NAME = re.compile(r"^\s*[+-]?\d")


class WorkFunction(NamedTuple):
    """A work function registered under an explicit name.

    The name is the default binding key the parent's work function uses to
    invoke the operation.
    """

    name: str
    fn: OperationWorkFunction


def _validate_work(operation_name: str, work: Union[WorkFunction, Tuple[str, OperationWorkFunction]]) -> WorkFunction:
    if not isinstance(work, tuple) or len(work) != 2:
        raise OperationValidationError(operation_name, "work function must be given as a (name, function) pair")
    name, fn = work
    if not callable(fn):
        raise OperationValidationError(operation_name, "operation must have a callable work function")
    if not isinstance(name, str) or not name.strip() or name in _ANONYMOUS_NAMES:
        raise OperationValidationError(operation_name, "work function must be named (cannot be anonymous)")
    if _NUMERIC_NAME.match(name):
        raise OperationValidationError(operation_name, f"work function name cannot be numeric: {name!r}")
    return WorkFunction(name, fn)


def _validate_estimate(operation_name: str, label: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        raise OperationValidationError(operation_name, f"{label} must be a finite non-negative number, got {value!r}")
    return float(value)


class Operation:
    """A node of the operation tree.

    Create an operation that estimates and reports its progress and collects
    diagnostic artifacts.

    Args:
        name: Human-readable name, unique among its siblings.
        work: ``WorkFunction(name, fn)`` pair. ``fn`` is awaited as
            ``fn(operation, callbacks, progress_callback, *args)``.
        own_work_estimate: Work predicted for the work function itself.
        parent_contribution: Weight contributed to the parent when complete.
        show_sub_operations: Include sub-operation stage names in progress
            reports.
    """

    def __init__(
        self,
        name: str,
        work: Union[WorkFunction, Tuple[str, OperationWorkFunction]],
        own_work_estimate: float,
        parent_contribution: float,
        show_sub_operations: bool = True,
    ):
        if not isinstance(name, str) or not name.strip():
            raise OperationValidationError(repr(name), "operation name must be a non-empty string")
        self.name = name
        self.work = _validate_work(name, work)
        self.own_work_estimate = _validate_estimate(name, "own_work_estimate", own_work_estimate)
        self.parent_contribution = _validate_estimate(name, "parent_contribution", parent_contribution)
        self.show_sub_operations = show_sub_operations

        self.child_work_total = 0.0
        self.sub_operations: List[Operation] = []
        self.bindings = SubOperationBindingSet(self)
        self.parent: Optional[Operation] = None
        self.executing = False
        self.artifacts: Dict[str, Artifact] = {}

    @classmethod
    def create(
        cls,
        name: str,
        work: Union[WorkFunction, Tuple[str, OperationWorkFunction]],
        own_work_estimate: float,
        parent_contribution: float,
        *,
        parent: Optional["Operation"] = None,
        show_sub_operations: bool = True,
        binding_name: Optional[str] = None,
        group_name: Optional[str] = None,
    ) -> "Operation":
        """Build an operation and, when ``parent`` is given, attach it."""
        if binding_name and group_name:
            raise OperationValidationError(
                name, "an operation cannot be bound to both a group and as a single binding"
            )
        operation = cls(name, work, own_work_estimate, parent_contribution, show_sub_operations)
        if parent is not None:
            if group_name:
                parent.add_sub_operation_to_group(operation, group_name)
            else:
                parent.add_sub_operation(operation, binding_name)
        elif binding_name or group_name:
            raise OperationValidationError(name, "a binding name requires a parent operation")
        return operation

    def create_sub_operation(
        self,
        name: str,
        work: Union[WorkFunction, Tuple[str, OperationWorkFunction]],
        own_work_estimate: float,
        parent_contribution: float,
        *,
        show_sub_operations: bool = True,
        binding_name: Optional[str] = None,
        group_name: Optional[str] = None,
    ) -> "Operation":
        return type(self).create(
            name,
            work,
            own_work_estimate,
            parent_contribution,
            parent=self,
            show_sub_operations=show_sub_operations,
            binding_name=binding_name,
            group_name=group_name,
        )

    def add_sub_operation_to_group(self, operation: "Operation", group_name: str) -> "Operation":
        return self.add_sub_operation(operation, group_name, group=True)

    def add_sub_operation(
        self, operation: "Operation", binding_name: Optional[str] = None, group: bool = False
    ) -> "Operation":
        """Attach ``operation`` under ``binding_name`` (default: its work function name)."""
        if operation.executing:
            raise OperationReentrancyError(
                operation.full_name, "sub-operations may not be attached while they are executing"
            )
        if operation.parent is not None:
            raise OperationValidationError(
                operation.full_name, f"already attached; cannot also attach to {self.full_name}"
            )
        ancestor: Optional[Operation] = self
        while ancestor is not None:
            if ancestor is operation:
                raise OperationValidationError(self.full_name, f"attaching {operation.name!r} would create a cycle")
            ancestor = ancestor.parent
        if any(sibling.name == operation.name for sibling in self.sub_operations):
            raise OperationValidationError(
                self.full_name, f"already has a sub-operation named {operation.name!r}"
            )

        binding_name = binding_name or operation.work.name
        if group:
            self.bindings.add_binding_to_group(binding_name, operation)
        else:
            self.bindings.add_binding(binding_name, operation)

        self.sub_operations.append(operation)
        operation.parent = self
        self.child_work_total += operation.parent_contribution
        return operation

    @property
    def full_name(self) -> str:
        """Root-to-node names joined with ``" > "``."""
        return self.get_full_name()

    def get_full_name(self, separator: str = FULL_NAME_SEPARATOR) -> str:
        names = []
        node: Optional[Operation] = self
        while node is not None:
            names.append(node.name)
            node = node.parent
        return separator.join(reversed(names))

    @property
    def total_estimate(self) -> float:
        return self.child_work_total + self.own_work_estimate

    async def execute(self, progress_callback: Optional[OperationProgressCallback], *args, config=None, telemetry=None):
        """Run this operation as the root of a fresh execution.

        See :class:`~operation_engine.runtime.operation_executor.OperationExecutor`.
        """
        from operation_engine.runtime.operation_executor import OperationExecutor

        executor = OperationExecutor(config=config, telemetry=telemetry)
        return await executor.execute(self, progress_callback, *args)

    # Artifacts

    def add_artifact(self, artifact: Artifact) -> Artifact:
        if artifact.name in self.artifacts and self.artifacts[artifact.name] is not artifact:
            raise ArtifactError(artifact.name, f"{self.full_name} already has an artifact with this name")
        artifact.set_owner(self)
        self.artifacts[artifact.name] = artifact
        return artifact

    def create_artifact(
        self,
        type: Union[ArtifactType, str],
        name: str,
        payload: ArtifactPayload,
        reference: Any = None,
    ) -> Artifact:
        return self.add_artifact(Artifact(type, name, payload, reference))

    def export_artifact_tree(self, artifact_filter: ArtifactFilter) -> Dict[str, Any]:
        """Export artifact payloads as a tree mirroring the operation tree.

        Every sub-operation appears under its name (an empty mapping when
        nothing below it matches). Matching artifacts appear under their own
        name at the same level; when an artifact name collides with a
        sub-operation name and both are mappings, the payload is merged over
        the subtree.
        """
        return self._export(artifact_predicate(artifact_filter))

    def _export(self, predicate) -> Dict[str, Any]:
        tree: Dict[str, Any] = {}
        for operation in self.sub_operations:
            tree[operation.name] = operation._export(predicate)

        for name, artifact in self.artifacts.items():
            if not predicate(artifact):
                continue
            payload = artifact.payload
            existing = tree.get(name)
            if isinstance(existing, dict) and isinstance(payload, dict):
                tree[name] = {**existing, **payload}
            else:
                tree[name] = payload
        return tree

    def save_artifact_tree(self, path: Path, artifact_filter: ArtifactFilter) -> Tuple[bool, Optional[str]]:
        return write_json_safe(Path(path), self.export_artifact_tree(artifact_filter))

    def __repr__(self) -> str:
        return (
            f"Operation(name={self.full_name!r}, own={self.own_work_estimate}, "
            f"contribution={self.parent_contribution}, children={len(self.sub_operations)})"
        )


__all__ = [
    "FULL_NAME_SEPARATOR",
    "Operation",
    "OperationProgressCallback",
    "OperationWorkFunction",
    "SubOperationCallback",
    "SubOperationCallbackSet",
    "WorkFunction",
    "WorkFunctionProgressCallback",
]
