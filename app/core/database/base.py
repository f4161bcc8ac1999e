"""
SQLAlchemy declarative base and shared column helpers.

Every table in the permission store inherits from Base.
"""
from datetime import datetime
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
import ulid


def generate_ulid() -> str:
    """Generate a new ULID string (26 chars, lexicographically sortable)."""
    return str(ulid.new())


class Base(DeclarativeBase):
    """Declarative base for users, roles, permissions and assignments."""
    pass


class TimestampMixin:
    """
    Adds created_at / updated_at columns maintained by the database.

    Usage:
        class Role(Base, TimestampMixin):
            __tablename__ = "roles"
            id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
