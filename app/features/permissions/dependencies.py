"""
FastAPI dependencies wiring the permission engine into routes.

Implements:
- Per-request repository, resolver, builder and service
- The request's AuthorizationContext (resolved once per request)
- require_policy() guards for protected routes
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.dependencies import get_current_principal
from app.features.permissions.context import (
    AuthorizationContext,
    AuthorizationContextBuilder,
    Principal,
)
from app.features.permissions.policies import authorize
from app.features.permissions.repository import PermissionRepository
from app.features.permissions.resolver import PermissionResolver
from app.features.permissions.service import RolePermissionService
from app.utils import get_logger


log = get_logger(__name__)


def get_repository(db: Annotated[AsyncSession, Depends(get_db)]) -> PermissionRepository:
    return PermissionRepository(db)


def get_resolver(
    repository: Annotated[PermissionRepository, Depends(get_repository)],
) -> PermissionResolver:
    return PermissionResolver(repository)


def get_context_builder(
    resolver: Annotated[PermissionResolver, Depends(get_resolver)],
) -> AuthorizationContextBuilder:
    return AuthorizationContextBuilder(resolver)


def get_service(
    repository: Annotated[PermissionRepository, Depends(get_repository)],
) -> RolePermissionService:
    return RolePermissionService(repository)


async def get_authorization_context(
    principal: Annotated[Principal, Depends(get_current_principal)],
    builder: Annotated[AuthorizationContextBuilder, Depends(get_context_builder)],
) -> AuthorizationContext:
    """
    The caller's frozen authorization context.

    FastAPI caches this per request, so several guards on one route share a
    single resolution.
    """
    return await builder.build_context(principal)


def require_policy(policy_id: str):
    """
    FastAPI dependency factory requiring a policy.

    Usage:
        @router.delete("/grids/{grid_id}")
        async def delete_grid(
            context: AuthorizationContext = Depends(require_policy("Class.Grid1.Delete"))
        ):
            ...

    Raises:
        HTTPException: 401 without a token, 403 if the policy is denied
    """
    async def policy_dependency(
        principal: Annotated[Principal, Depends(get_current_principal)],
        context: Annotated[AuthorizationContext, Depends(get_authorization_context)],
    ) -> AuthorizationContext:
        if not principal.authenticated:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if not authorize(context, policy_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permission denied",
            )
        return context

    return policy_dependency
