"""
Seed script to populate a sample permission hierarchy and roles.

Run this script after database initialization to create:
- A permission tree (pages -> grids -> buttons)
- Default roles with their permission selections
- Demo users holding those roles (development only)

Re-running is safe: existing permissions, roles and users are kept, and each
role's selection is replaced with the one below.

Usage:
    uv run python -m scripts.seed_permissions
"""
import asyncio
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db, init_db
from app.features.permissions.models import Permission, Role
from app.features.permissions.repository import PermissionRepository
from app.features.permissions.service import RolePermissionService
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


# (name, display name, element type, parent name)
DEFAULT_PERMISSIONS: list[tuple[str, str, str, Optional[str]]] = [
    ("Admin", "Administration", "Page", None),
    (config.ADMIN_POLICY, "Manage permissions and roles", "Action", "Admin"),

    ("Class", "Class page", "Page", None),
    ("Class.Grid1", "Students grid", "Grid", "Class"),
    ("Class.Grid1.View", "View students", "Button", "Class.Grid1"),
    ("Class.Grid1.Add", "Add student", "Button", "Class.Grid1"),
    ("Class.Grid1.Edit", "Edit student", "Button", "Class.Grid1"),
    ("Class.Grid1.Delete", "Delete student", "Button", "Class.Grid1"),
    ("Class.Grid2", "Grades grid", "Grid", "Class"),
    ("Class.Grid2.View", "View grades", "Button", "Class.Grid2"),
    ("Class.Grid2.Edit", "Edit grades", "Button", "Class.Grid2"),

    ("Reports", "Reports page", "Page", None),
    ("Reports.Export", "Export reports", "Button", "Reports"),
]


DEFAULT_ROLES = {
    "Administrator": {
        "description": "Every permission, including administration",
        "permissions": "ALL",
    },
    "Editor": {
        "description": "Maintains class rosters",
        "permissions": ["Class.Grid1.View", "Class.Grid1.Add", "Class.Grid1.Edit"],
    },
    "Instructor": {
        "description": "Reads rosters and manages grades",
        "permissions": ["Class.Grid1.View", "Class.Grid2.View", "Class.Grid2.Edit", "Reports.Export"],
    },
}


# Development users: (id, email, name, roles)
DEMO_USERS = [
    ("01HZZADMIN000000000000000A", "admin@example.com", "Admin", ["Administrator"]),
    ("01HZZALICE000000000000000A", "alice@example.com", "Alice", ["Editor"]),
]


async def seed_permissions(db: AsyncSession) -> dict[str, Permission]:
    """
    Create the default hierarchy, parents before children.

    Returns:
        Dictionary mapping permission names to Permission objects
    """
    log.info("Creating default permissions...")
    repository = PermissionRepository(db)
    service = RolePermissionService(repository)
    permissions_map: dict[str, Permission] = {}

    for name, display_name, element_type, parent_name in DEFAULT_PERMISSIONS:
        existing = await repository.get_permission_by_name(name)
        if existing:
            log.debug(f"Permission '{name}' already exists, skipping")
            permissions_map[name] = existing
            continue

        parent_id = permissions_map[parent_name].id if parent_name else None
        permissions_map[name] = await service.create_permission(
            name=name,
            display_name=display_name,
            element_type=element_type,
            parent_id=parent_id,
        )
        log.info(f"Created permission: {name}")

    log.info(f"{len(permissions_map)} permissions present")
    return permissions_map


async def seed_roles(db: AsyncSession, permissions_map: dict[str, Permission]) -> dict[str, Role]:
    """
    Create default roles and replace their permission selections.

    Args:
        db: Database session
        permissions_map: Dictionary of permission name -> Permission object
    """
    log.info("Creating default roles...")
    repository = PermissionRepository(db)
    service = RolePermissionService(repository)
    roles: dict[str, Role] = {}

    for role_name, role_config in DEFAULT_ROLES.items():
        result = await db.execute(select(Role).where(Role.name == role_name))
        role = result.scalars().first()
        if role is None:
            role = await repository.create_role(role_name, role_config["description"])
            log.info(f"Created role '{role_name}'")
        roles[role_name] = role

        if role_config["permissions"] == "ALL":
            selected = [p.id for p in permissions_map.values()]
        else:
            selected = []
            for perm_name in role_config["permissions"]:
                if perm_name in permissions_map:
                    selected.append(permissions_map[perm_name].id)
                else:
                    log.warning(f"Permission '{perm_name}' not found for role '{role_name}'")

        await service.update_role_permissions(role.id, selected)
        log.info(f"Role '{role_name}' holds {len(selected)} permissions")

    return roles


async def seed_users(db: AsyncSession, roles: dict[str, Role]):
    """Create demo users and their role memberships if missing."""
    repository = PermissionRepository(db)
    for user_id, email, name, role_names in DEMO_USERS:
        if not await repository.user_exists(user_id):
            db.add(User(id=user_id, email=email, name=name))
            await db.commit()
            log.info(f"Created demo user {email} ({user_id})")
        for role_name in role_names:
            await repository.assign_role_to_user(user_id, roles[role_name].id)


async def main():
    """Main function to seed permissions, roles and demo users."""
    log.info("Starting permission seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            permissions_map = await seed_permissions(db)
            roles = await seed_roles(db, permissions_map)
            await seed_users(db, roles)

            log.info("Permission seeding completed successfully!")
            for role_name, role_config in DEFAULT_ROLES.items():
                log.info(f"  - {role_name}: {role_config['description']}")

        except Exception as e:
            log.error(f"Error seeding permissions: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
