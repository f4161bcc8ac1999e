"""
Database engine configuration and session management.

The permission store is reached through an async SQLAlchemy session.
Default: SQLite via aiosqlite. Any async URL works (e.g. postgresql+asyncpg)
without code changes; set DATABASE_URL.
"""
from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.core import config


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine; SQLite gets NullPool to avoid sharing connections across loops."""
    return create_async_engine(
        url,
        poolclass=NullPool if url.startswith("sqlite") else None,
        echo=False,  # Set to True for SQL query logging during development
    )


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(config.SQLALCHEMY_DATABASE_URL)
AsyncSessionLocal = build_sessionmaker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Usage in FastAPI routes:
        @router.get("/roles")
        async def list_roles(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None):
    """
    Create all tables. Called on application startup and by the seed script.
    """
    from app.core.database.base import Base

    # Import all models to ensure they're registered with SQLAlchemy
    from app.features.users.models import User  # noqa: F401
    from app.features.permissions.models import Permission, Role, RolePermission  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
