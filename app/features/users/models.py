"""
User model with ULID primary keys.

Users are provisioned by the external identity subsystem; this service reads
them to resolve role membership and never creates them on login.
"""
from sqlalchemy import String, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class User(Base, TimestampMixin):
    """
    An authenticated principal's backing record.

    The id is the stable identifier carried in the bearer token.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Role membership (many-to-many through user_roles)
    roles: Mapped[list["Role"]] = relationship(  # type: ignore  # noqa: F821
        "Role",
        secondary="user_roles",
        back_populates="users",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
