"""
Permission, Role and RolePermission models.

Permissions form a forest through a self-referencing parent id (an arena:
children are derived by grouping on parent_id, never stored as embedded
lists). The hierarchy groups permissions for display only; holding a parent
grants nothing about its children.
"""
from typing import Optional

from sqlalchemy import String, ForeignKey, Table, Column, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


# ============================================================================
# Association Tables
# ============================================================================

# User-Role membership (owned by the identity subsystem, read here)
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


# Category tags for UI elements a permission guards
ELEMENT_TYPES = ("Page", "Grid", "Button", "Field", "Action", "Other")


# ============================================================================
# Core Models
# ============================================================================

class Permission(Base, TimestampMixin):
    """
    A named capability, e.g. name="Class.Grid2.View", element_type="Grid".

    Invariants (enforced on write, see hierarchy.py):
    - name is globally unique
    - parent links form a forest (no cycles)
    """
    __tablename__ = "permissions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    element_type: Mapped[str] = mapped_column(String(20), nullable=False, default="Other")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    parent_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("permissions.id"),
        nullable=True,
        index=True
    )

    parent: Mapped[Optional["Permission"]] = relationship(
        "Permission",
        remote_side=[id],
        back_populates="children",
        lazy="noload"
    )
    children: Mapped[list["Permission"]] = relationship(
        "Permission",
        back_populates="parent",
        lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, name={self.name!r}, parent_id={self.parent_id})>"


class Role(Base, TimestampMixin):
    """
    A named bundle of permissions assignable to users.
    Examples: Administrator, Editor, Viewer
    """
    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    users: Mapped[list["User"]] = relationship(  # type: ignore  # noqa: F821
        "User",
        secondary=user_roles,
        back_populates="roles",
        lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r})>"


class RolePermission(Base):
    """
    One assignment of a permission to a role.

    At most one row per (role, permission); rows are replaced by delete+insert,
    never retargeted.
    """
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permissions_role_id_permission_id"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    role_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    permission_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("permissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<RolePermission(role_id={self.role_id}, permission_id={self.permission_id})>"
