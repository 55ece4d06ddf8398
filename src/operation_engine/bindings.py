"""Binding table resolving invocation names to sub-operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterator, List

from operation_engine.exceptions import BindingConflictError

if TYPE_CHECKING:
    from operation_engine.operation import Operation


class SubOperationBindingSet:
    """Maps binding names to a single sub-operation or to an ordered group.

    A name is either a single binding or a group, never both. Groups are
    append-only lists; :meth:`iter_group` walks them with an index cursor so
    members appended while the group is being executed are still visited.
    """

    def __init__(self, parent: "Operation"):
        self.groups: Dict[str, List["Operation"]] = {}
        self.callbacks: Dict[str, "Operation"] = {}
        self._parent = parent

    def add_binding(self, name: str, bound: "Operation") -> None:
        if name in self.callbacks:
            raise BindingConflictError(self._parent.full_name, f"already has an operation named {name!r}")
        if name in self.groups:
            raise BindingConflictError(self._parent.full_name, f"already has an operation group named {name!r}")
        self.callbacks[name] = bound

    def add_binding_to_group(self, group_name: str, bound: "Operation") -> None:
        self.add_group(group_name).append(bound)

    def add_group(self, group_name: str) -> List["Operation"]:
        if group_name in self.callbacks:
            raise BindingConflictError(
                self._parent.full_name,
                f"already has an operation named {group_name!r}; it cannot also be a group",
            )
        return self.groups.setdefault(group_name, [])

    def iter_group(self, group_name: str) -> Iterator["Operation"]:
        group = self.groups[group_name]
        index = 0
        while index < len(group):
            member = group[index]
            index += 1
            yield member

    def names(self) -> List[str]:
        return [*self.groups, *self.callbacks]

    def __contains__(self, name: object) -> bool:
        return name in self.callbacks or name in self.groups

    def __len__(self) -> int:
        return len(self.callbacks) + len(self.groups)
