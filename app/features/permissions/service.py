"""
Administrative write paths: role permission selection and hierarchy edits.

Validation happens before anything is written; a rejected request leaves the
store untouched. Writes are never retried here; an ambiguous failure is
surfaced to the caller for explicit re-submission.
"""
from collections.abc import Iterable
from typing import Any, Optional

from app.core.errors import (
    HierarchyCycle,
    PermissionHasChildren,
    PermissionNotFound,
    RoleNotFound,
    UnknownPermission,
)
from app.features.permissions.hierarchy import children_index, ensure_no_cycle, parent_map, subtree_ids
from app.features.permissions.models import Permission
from app.features.permissions.repository import PermissionRepository
from app.features.permissions.schemas import PermissionNode
from app.features.permissions.tree import build_tree
from app.utils import get_logger


log = get_logger(__name__)


class RolePermissionService:
    def __init__(self, repository: PermissionRepository):
        self.repository = repository

    # ------------------------------------------------------------------
    # Role permission selection
    # ------------------------------------------------------------------

    async def update_role_permissions(
        self,
        role_id: str,
        selected_permission_ids: Iterable[str],
    ) -> tuple[set[str], set[str]]:
        """
        Replace the role's assignment set with exactly selected_permission_ids.

        Returns:
            (added ids, removed ids)

        Raises:
            RoleNotFound: role_id does not exist
            UnknownPermission: any id is not a permission; nothing is written
            StorageUnavailable: the replace did not commit; the old set is intact
        """
        if not await self.repository.role_exists(role_id):
            raise RoleNotFound(details={"role_id": role_id})

        wanted = set(selected_permission_ids)
        found = {p.id for p in await self.repository.get_permissions_by_ids(wanted)}
        unknown = sorted(wanted - found)
        if unknown:
            raise UnknownPermission(
                f"Unknown permission ids: {', '.join(unknown)}",
                details={"permission_ids": unknown},
            )

        added, removed = await self.repository.replace_role_permissions(role_id, wanted)
        log.info(f"Role {role_id} permissions replaced: {len(added)} added, {len(removed)} removed")
        return added, removed

    async def get_role_tree(self, role_id: str) -> list[PermissionNode]:
        if not await self.repository.role_exists(role_id):
            raise RoleNotFound(details={"role_id": role_id})
        permissions = await self.repository.list_permissions()
        selected = await self.repository.get_role_permission_ids(role_id)
        return build_tree(permissions, selected)

    # ------------------------------------------------------------------
    # Hierarchy edits
    # ------------------------------------------------------------------

    async def _require_permission(self, permission_id: str) -> Permission:
        permission = await self.repository.get_permission(permission_id)
        if permission is None:
            raise PermissionNotFound(details={"permission_id": permission_id})
        return permission

    async def create_permission(
        self,
        name: str,
        display_name: str,
        element_type: str = "Other",
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Permission:
        if parent_id is not None:
            await self._require_permission(parent_id)
        permission = await self.repository.create_permission(
            name=name,
            display_name=display_name,
            element_type=element_type,
            parent_id=parent_id,
            description=description,
        )
        log.info(f"Permission created: {permission.name} ({permission.id}) parent={parent_id}")
        return permission

    async def update_permission(self, permission_id: str, changes: dict[str, Any]) -> Permission:
        """
        Apply a partial update. A "parent_id" key (even None) means reparent.

        Raises:
            PermissionNotFound: the permission or the new parent does not exist
            HierarchyCycle: the new parent is the permission itself or a descendant
            DuplicatePermissionName: the new name is taken
        """
        permission = await self._require_permission(permission_id)

        if "parent_id" in changes:
            new_parent_id = changes["parent_id"]
            if new_parent_id is not None:
                if new_parent_id == permission_id:
                    raise HierarchyCycle(
                        "A permission cannot be its own parent",
                        details={"permission_id": permission_id, "parent_id": new_parent_id},
                    )
                await self._require_permission(new_parent_id)
                parents = parent_map(await self.repository.list_permissions())
                ensure_no_cycle(parents, permission_id, new_parent_id)

        permission = await self.repository.update_permission(permission, changes)
        log.info(f"Permission updated: {permission.name} ({permission_id}) fields={sorted(changes)}")
        return permission

    async def delete_permission(self, permission_id: str, cascade: bool = False) -> list[str]:
        """
        Delete a permission and its role assignments.

        A permission with children is only deleted with cascade=True, which
        removes the whole subtree.

        Returns:
            ids deleted
        """
        await self._require_permission(permission_id)
        grouped = children_index(await self.repository.list_permissions())
        doomed = subtree_ids(grouped, permission_id)

        if len(doomed) > 1 and not cascade:
            raise PermissionHasChildren(
                details={"permission_id": permission_id, "children": [p.id for p in grouped[permission_id]]}
            )

        await self.repository.delete_permissions(doomed)
        log.info(f"Permission {permission_id} deleted with {len(doomed) - 1} descendants")
        return doomed
