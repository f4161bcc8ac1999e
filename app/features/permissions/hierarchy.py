"""
Permission hierarchy invariants.

The hierarchy is kept as a flat arena of records keyed by id with an optional
parent id. Child lists are derived by index lookup, and acyclicity is checked
on every reparenting write by walking the ancestors of the proposed parent.
"""
import re
from collections import defaultdict
from collections.abc import Iterable, Mapping
from typing import Optional, Protocol

from app.core.errors import HierarchyCycle


# Dotted path of identifier segments, e.g. "Class.Grid2.View"
PERMISSION_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


class PermissionRecord(Protocol):
    id: str
    parent_id: Optional[str]


def is_valid_permission_name(name: str) -> bool:
    return bool(PERMISSION_NAME_PATTERN.match(name))


def parent_map(permissions: Iterable[PermissionRecord]) -> dict[str, Optional[str]]:
    return {p.id: p.parent_id for p in permissions}


def children_index(permissions: Iterable[PermissionRecord]) -> dict[Optional[str], list[PermissionRecord]]:
    """Group permissions by parent id (None key holds declared roots)."""
    children: dict[Optional[str], list[PermissionRecord]] = defaultdict(list)
    for permission in permissions:
        children[permission.parent_id].append(permission)
    return children


def ensure_no_cycle(
    parents: Mapping[str, Optional[str]],
    permission_id: str,
    new_parent_id: Optional[str],
) -> None:
    """
    Reject making new_parent_id the parent of permission_id if it would close a loop.

    Walks from the proposed parent up to a root. Reaching permission_id (or
    revisiting any node, which means the stored data is already cyclic) is a
    cycle.

    Raises:
        HierarchyCycle: with details naming both ids
    """
    if new_parent_id is None:
        return

    seen: set[str] = set()
    current: Optional[str] = new_parent_id
    while current is not None:
        if current == permission_id or current in seen:
            raise HierarchyCycle(
                f"Cannot make {new_parent_id} the parent of {permission_id}",
                details={"permission_id": permission_id, "parent_id": new_parent_id},
            )
        seen.add(current)
        current = parents.get(current)


def subtree_ids(
    children: Mapping[Optional[str], list[PermissionRecord]],
    root_id: str,
) -> list[str]:
    """Ids of root_id and all of its descendants, parents before children."""
    ordered: list[str] = []
    seen: set[str] = set()
    stack = [root_id]
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        ordered.append(current)
        stack.extend(child.id for child in children.get(current, []))
    return ordered
