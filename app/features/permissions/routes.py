"""
Permission management API routes.

Provides the caller's effective permissions and policy checks for UI
rendering, plus admin endpoints for the permission hierarchy, roles, role
permission selection and role membership.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, status

from app.core import config
from app.core.errors import RoleNotFound, UserNotFound
from app.features.permissions.context import AuthorizationContext
from app.features.permissions.dependencies import (
    get_authorization_context,
    get_repository,
    get_resolver,
    get_service,
    require_policy,
)
from app.features.permissions.policies import authorize, default_registry
from app.features.permissions.repository import PermissionRepository
from app.features.permissions.resolver import PermissionResolver
from app.features.permissions.schemas import (
    AssignRoleToUser,
    EffectivePermissionsResponse,
    PermissionCreate,
    PermissionResponse,
    PermissionUpdate,
    PolicyCheckRequest,
    PolicyCheckResponse,
    RoleCreate,
    RolePermissionsUpdate,
    RolePermissionsUpdateResponse,
    RoleResponse,
    RoleTreeResponse,
)
from app.features.permissions.service import RolePermissionService
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

AdminContext = Annotated[AuthorizationContext, Depends(require_policy(config.ADMIN_POLICY))]
Repository = Annotated[PermissionRepository, Depends(get_repository)]
Service = Annotated[RolePermissionService, Depends(get_service)]


# ============================================================================
# Caller Routes
# ============================================================================

@router.get("/me", response_model=EffectivePermissionsResponse)
async def get_my_permissions(
    context: Annotated[AuthorizationContext, Depends(get_authorization_context)],
):
    """Effective permission names of the caller (empty when anonymous)."""
    return EffectivePermissionsResponse(
        user_id=context.user_id or "",
        permissions=sorted(context.permissions),
    )


@router.post("/check", response_model=PolicyCheckResponse)
async def check_policy(
    check: PolicyCheckRequest,
    context: Annotated[AuthorizationContext, Depends(get_authorization_context)],
):
    """Evaluate one policy for the caller; used to show or hide UI elements."""
    decision = authorize(context, check.policy)
    return PolicyCheckResponse(policy=check.policy, decision=decision.value, granted=bool(decision))


# ============================================================================
# Permission Routes
# ============================================================================

@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(repository: Repository, _admin: AdminContext):
    """List all permissions, flat, ordered by name."""
    return await repository.list_permissions()


@router.post("/permissions", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(permission: PermissionCreate, service: Service, admin: AdminContext):
    """Create a permission, optionally under a parent (admin only)."""
    created = await service.create_permission(**permission.model_dump())
    default_registry.register(created.name)
    log.info(f"Audit: user={admin.user_id} action=create resource=permission:{created.id}")
    return created


@router.get("/permissions/{permission_id}", response_model=PermissionResponse)
async def get_permission(permission_id: str, repository: Repository, _admin: AdminContext):
    """Get a specific permission by ID."""
    permission = await repository.get_permission(permission_id)
    if permission is None:
        raise HTTPException(status_code=404, detail="Permission not found")
    return permission


@router.put("/permissions/{permission_id}", response_model=PermissionResponse)
async def update_permission(
    permission_id: str,
    permission_update: PermissionUpdate,
    service: Service,
    admin: AdminContext,
):
    """Rename, relabel or reparent a permission (admin only)."""
    changes = permission_update.model_dump(exclude_unset=True)
    updated = await service.update_permission(permission_id, changes)
    if "name" in changes:
        default_registry.register(updated.name)
    log.info(f"Audit: user={admin.user_id} action=update resource=permission:{permission_id}")
    return updated


@router.delete("/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(
    permission_id: str,
    service: Service,
    admin: AdminContext,
    cascade: bool = False,
):
    """Delete a permission; pass cascade=true to delete a parent with its subtree (admin only)."""
    deleted = await service.delete_permission(permission_id, cascade=cascade)
    log.info(f"Audit: user={admin.user_id} action=delete resource=permission:{permission_id} count={len(deleted)}")
    return None


# ============================================================================
# Role Routes
# ============================================================================

@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(repository: Repository, _admin: AdminContext):
    return await repository.list_roles()


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(role: RoleCreate, repository: Repository, admin: AdminContext):
    """Create a new role (admin only)."""
    created = await repository.create_role(role.name, role.description)
    log.info(f"Audit: user={admin.user_id} action=create resource=role:{created.id}")
    return created


@router.get("/roles/{role_id}/tree", response_model=RoleTreeResponse)
async def get_role_tree(role_id: str, repository: Repository, service: Service, _admin: AdminContext):
    """The permission hierarchy with this role's selection flagged, for the editing screen."""
    role = await repository.get_role(role_id)
    if role is None:
        raise RoleNotFound(details={"role_id": role_id})
    tree = await service.get_role_tree(role_id)
    return RoleTreeResponse(role_id=role.id, role_name=role.name, tree=tree)


@router.put("/roles/{role_id}/permissions", response_model=RolePermissionsUpdateResponse)
async def update_role_permissions(
    role_id: str,
    selection: RolePermissionsUpdate,
    service: Service,
    admin: AdminContext,
):
    """Replace the role's permissions with exactly the submitted ids (admin only)."""
    added, removed = await service.update_role_permissions(role_id, selection.permission_ids)
    log.info(
        f"Audit: user={admin.user_id} action=assign resource=role:{role_id} "
        f"added={len(added)} removed={len(removed)}"
    )
    return RolePermissionsUpdateResponse(
        role_id=role_id,
        permission_ids=sorted(set(selection.permission_ids)),
        added=len(added),
        removed=len(removed),
    )


# ============================================================================
# Membership and Inspection Routes
# ============================================================================

@router.post("/assignments/user-role", status_code=status.HTTP_200_OK)
async def assign_role_to_user(assignment: AssignRoleToUser, repository: Repository, admin: AdminContext):
    """Give a user a role. Takes effect for the user's next resolution."""
    if not await repository.user_exists(assignment.user_id):
        raise UserNotFound(details={"user_id": assignment.user_id})
    if not await repository.role_exists(assignment.role_id):
        raise RoleNotFound(details={"role_id": assignment.role_id})

    created = await repository.assign_role_to_user(assignment.user_id, assignment.role_id)
    log.info(f"Audit: user={admin.user_id} action=assign resource=user:{assignment.user_id} role={assignment.role_id}")
    return {"message": "Role assigned" if created else "Role already assigned"}


@router.delete("/assignments/user-role", status_code=status.HTTP_204_NO_CONTENT)
async def remove_role_from_user(assignment: AssignRoleToUser, repository: Repository, admin: AdminContext):
    """Take a role away from a user."""
    if not await repository.remove_role_from_user(assignment.user_id, assignment.role_id):
        raise HTTPException(status_code=404, detail="Role assignment not found")
    log.info(f"Audit: user={admin.user_id} action=unassign resource=user:{assignment.user_id} role={assignment.role_id}")
    return None


@router.get("/users/{user_id}/permissions", response_model=EffectivePermissionsResponse)
async def get_user_permissions(
    user_id: str,
    resolver: Annotated[PermissionResolver, Depends(get_resolver)],
    _admin: AdminContext,
):
    """Effective permissions of any user (admin only). Unknown users are 404 here."""
    names = await resolver.resolve(user_id)
    return EffectivePermissionsResponse(user_id=user_id, permissions=sorted(names))
