"""
Storage collaborator for the permission store.

All reads and writes against users, roles, permissions and assignments go
through PermissionRepository. Database failures surface as
StorageUnavailable; nothing is retried here.
"""
from collections.abc import Collection
from typing import Any, Optional

from sqlalchemy import select, delete, insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DuplicatePermissionName, DuplicateRoleName, StorageUnavailable
from app.core.database.base import generate_ulid
from app.features.users.models import User
from app.features.permissions.models import Permission, Role, RolePermission, user_roles
from app.utils import get_logger


log = get_logger(__name__)


def is_unique_violation(exc: IntegrityError) -> bool:
    """True for unique constraint failures (SQLite and PostgreSQL wording)."""
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate key" in message


class PermissionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fail(self, operation: str, exc: SQLAlchemyError) -> StorageUnavailable:
        await self.session.rollback()
        log.error(f"Permission store failure during {operation}: {exc}")
        return StorageUnavailable(details={"operation": operation})

    # ------------------------------------------------------------------
    # Resolution reads
    # ------------------------------------------------------------------

    async def user_exists(self, user_id: str) -> bool:
        try:
            result = await self.session.execute(select(User.id).where(User.id == user_id))
        except SQLAlchemyError as exc:
            raise await self._fail("user_exists", exc) from exc
        return result.scalar_one_or_none() is not None

    async def get_role_ids_for_user(self, user_id: str) -> set[str]:
        try:
            result = await self.session.execute(
                select(user_roles.c.role_id).where(user_roles.c.user_id == user_id)
            )
        except SQLAlchemyError as exc:
            raise await self._fail("get_role_ids_for_user", exc) from exc
        return set(result.scalars().all())

    async def get_permission_names_for_roles(self, role_ids: Collection[str]) -> list[str]:
        """Names of permissions directly assigned to any of role_ids (may repeat)."""
        if not role_ids:
            return []
        try:
            result = await self.session.execute(
                select(Permission.name)
                .join(RolePermission, RolePermission.permission_id == Permission.id)
                .where(RolePermission.role_id.in_(list(role_ids)))
            )
        except SQLAlchemyError as exc:
            raise await self._fail("get_permission_names_for_roles", exc) from exc
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    async def list_permissions(self) -> list[Permission]:
        try:
            result = await self.session.execute(select(Permission).order_by(Permission.name))
        except SQLAlchemyError as exc:
            raise await self._fail("list_permissions", exc) from exc
        return list(result.scalars().all())

    async def get_permission(self, permission_id: str) -> Optional[Permission]:
        try:
            return await self.session.get(Permission, permission_id)
        except SQLAlchemyError as exc:
            raise await self._fail("get_permission", exc) from exc

    async def get_permission_by_name(self, name: str) -> Optional[Permission]:
        try:
            result = await self.session.execute(select(Permission).where(Permission.name == name))
        except SQLAlchemyError as exc:
            raise await self._fail("get_permission_by_name", exc) from exc
        return result.scalar_one_or_none()

    async def get_permissions_by_ids(self, permission_ids: Collection[str]) -> list[Permission]:
        if not permission_ids:
            return []
        try:
            result = await self.session.execute(
                select(Permission).where(Permission.id.in_(list(permission_ids)))
            )
        except SQLAlchemyError as exc:
            raise await self._fail("get_permissions_by_ids", exc) from exc
        return list(result.scalars().all())

    async def create_permission(
        self,
        name: str,
        display_name: str,
        element_type: str = "Other",
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Permission:
        permission = Permission(
            name=name,
            display_name=display_name,
            element_type=element_type,
            parent_id=parent_id,
            description=description,
        )
        self.session.add(permission)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise await self._fail("create_permission", exc) from exc
            await self.session.rollback()
            raise DuplicatePermissionName(details={"name": name}) from exc
        except SQLAlchemyError as exc:
            raise await self._fail("create_permission", exc) from exc
        await self.session.refresh(permission)
        return permission

    async def update_permission(self, permission: Permission, changes: dict[str, Any]) -> Permission:
        for key, value in changes.items():
            setattr(permission, key, value)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise await self._fail("update_permission", exc) from exc
            await self.session.rollback()
            raise DuplicatePermissionName(details={"name": changes.get("name")}) from exc
        except SQLAlchemyError as exc:
            raise await self._fail("update_permission", exc) from exc
        await self.session.refresh(permission)
        return permission

    async def delete_permissions(self, permission_ids: Collection[str]) -> None:
        """Delete permissions and every role assignment referencing them, in one transaction."""
        ids = list(permission_ids)
        try:
            await self.session.execute(
                delete(RolePermission).where(RolePermission.permission_id.in_(ids))
            )
            await self.session.execute(delete(Permission).where(Permission.id.in_(ids)))
            await self.session.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("delete_permissions", exc) from exc

    # ------------------------------------------------------------------
    # Roles and assignments
    # ------------------------------------------------------------------

    async def get_role(self, role_id: str) -> Optional[Role]:
        try:
            return await self.session.get(Role, role_id)
        except SQLAlchemyError as exc:
            raise await self._fail("get_role", exc) from exc

    async def role_exists(self, role_id: str) -> bool:
        return await self.get_role(role_id) is not None

    async def list_roles(self) -> list[Role]:
        try:
            result = await self.session.execute(select(Role).order_by(Role.name))
        except SQLAlchemyError as exc:
            raise await self._fail("list_roles", exc) from exc
        return list(result.scalars().all())

    async def create_role(self, name: str, description: Optional[str] = None) -> Role:
        role = Role(name=name, description=description)
        self.session.add(role)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise await self._fail("create_role", exc) from exc
            await self.session.rollback()
            raise DuplicateRoleName(details={"name": name}) from exc
        except SQLAlchemyError as exc:
            raise await self._fail("create_role", exc) from exc
        await self.session.refresh(role)
        return role

    async def get_role_permission_ids(self, role_id: str) -> set[str]:
        try:
            result = await self.session.execute(
                select(RolePermission.permission_id).where(RolePermission.role_id == role_id)
            )
        except SQLAlchemyError as exc:
            raise await self._fail("get_role_permission_ids", exc) from exc
        return set(result.scalars().all())

    async def _insert_role_permissions(self, role_id: str, permission_ids: Collection[str]) -> None:
        await self.session.execute(
            insert(RolePermission),
            [
                {"id": generate_ulid(), "role_id": role_id, "permission_id": permission_id}
                for permission_id in sorted(permission_ids)
            ],
        )

    async def replace_role_permissions(
        self,
        role_id: str,
        permission_ids: Collection[str],
    ) -> tuple[set[str], set[str]]:
        """
        Make role_id's assignment set exactly permission_ids.

        The role row is locked first so concurrent editors of the same role
        serialize; the delete and insert commit together or not at all.

        Returns:
            (added ids, removed ids)
        """
        target = set(permission_ids)
        try:
            await self.session.execute(
                select(Role.id).where(Role.id == role_id).with_for_update()
            )
            current = set(
                (
                    await self.session.execute(
                        select(RolePermission.permission_id).where(RolePermission.role_id == role_id)
                    )
                ).scalars().all()
            )
            removed = current - target
            added = target - current
            if removed:
                await self.session.execute(
                    delete(RolePermission).where(
                        RolePermission.role_id == role_id,
                        RolePermission.permission_id.in_(list(removed)),
                    )
                )
            if added:
                await self._insert_role_permissions(role_id, added)
            await self.session.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("replace_role_permissions", exc) from exc
        except Exception:
            await self.session.rollback()
            raise
        return added, removed

    async def assign_role_to_user(self, user_id: str, role_id: str) -> bool:
        """Add role membership. Returns False if it already existed."""
        try:
            existing = await self.session.execute(
                select(user_roles.c.role_id).where(
                    user_roles.c.user_id == user_id,
                    user_roles.c.role_id == role_id,
                )
            )
            if existing.first() is not None:
                return False
            await self.session.execute(insert(user_roles).values(user_id=user_id, role_id=role_id))
            await self.session.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("assign_role_to_user", exc) from exc
        return True

    async def remove_role_from_user(self, user_id: str, role_id: str) -> bool:
        """Remove role membership. Returns False if there was none."""
        try:
            result = await self.session.execute(
                delete(user_roles).where(
                    user_roles.c.user_id == user_id,
                    user_roles.c.role_id == role_id,
                )
            )
            await self.session.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("remove_role_from_user", exc) from exc
        return result.rowcount > 0
