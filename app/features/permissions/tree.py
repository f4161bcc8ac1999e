"""
Nested permission tree for role-editing screens.

Pure transform of the flat permission list plus one role's selection.
Siblings are ordered by name, then id. Permissions whose parent is missing
from the input, or that only lead back into a stored cycle, become roots so
that nothing is ever dropped. Nodes are built without recursion, so depth is
bounded only by memory.
"""
from collections.abc import Collection, Iterable, Mapping

from app.features.permissions.hierarchy import children_index
from app.features.permissions.models import Permission
from app.features.permissions.schemas import PermissionNode


def _sort_key(permission: Permission) -> tuple[str, str]:
    return permission.name, permission.id


def _place(
    root: Permission,
    grouped: Mapping,
    placed: set[str],
) -> list[tuple[Permission, list[Permission]]]:
    """Depth-first walk from root; each entry is a permission and its unplaced children."""
    order = []
    placed.add(root.id)
    stack = [root]
    while stack:
        permission = stack.pop()
        children = [
            child
            for child in sorted(grouped.get(permission.id, []), key=_sort_key)
            if child.id not in placed
        ]
        placed.update(child.id for child in children)
        order.append((permission, children))
        stack.extend(reversed(children))
    return order


def _to_node(
    root: Permission,
    grouped: Mapping,
    placed: set[str],
    selected: set[str],
) -> PermissionNode:
    nodes: dict[str, PermissionNode] = {}
    # Children always follow their parent in the walk, so build bottom-up
    for permission, children in reversed(_place(root, grouped, placed)):
        nodes[permission.id] = PermissionNode(
            id=permission.id,
            name=permission.name,
            display_name=permission.display_name,
            element_type=permission.element_type,
            selected=permission.id in selected,
            children=[nodes.pop(child.id) for child in children],
        )
    return nodes[root.id]


def build_tree(
    permissions: Iterable[Permission],
    selected_ids: Collection[str],
) -> list[PermissionNode]:
    permissions = list(permissions)
    selected = set(selected_ids)
    known = {p.id for p in permissions}

    grouped = children_index(permissions)
    roots = [p for p in permissions if p.parent_id is None or p.parent_id not in known]

    placed: set[str] = set()
    forest = [_to_node(root, grouped, placed, selected) for root in sorted(roots, key=_sort_key)]

    # Members of a parent cycle are unreachable from any root; surface each
    # remaining cycle from its smallest member.
    for permission in sorted(permissions, key=_sort_key):
        if permission.id not in placed:
            forest.append(_to_node(permission, grouped, placed, selected))

    return forest
