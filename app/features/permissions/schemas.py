"""
Pydantic schemas for permission management.

Request and response models for permissions, roles, role assignments,
the editing tree and authorization checks.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from app.features.permissions.hierarchy import is_valid_permission_name
from app.features.permissions.models import ELEMENT_TYPES


# ============================================================================
# Permission Schemas
# ============================================================================

def _check_name(v: str) -> str:
    if not is_valid_permission_name(v):
        raise ValueError("Permission name must be a dotted path of identifiers, e.g. 'Class.Grid2.View'")
    return v


def _check_element_type(v: str) -> str:
    if v not in ELEMENT_TYPES:
        raise ValueError(f"element_type must be one of {', '.join(ELEMENT_TYPES)}")
    return v


class PermissionBase(BaseModel):
    """Base permission schema."""
    name: str = Field(..., min_length=1, max_length=200, description="Unique dotted permission name")
    display_name: str = Field(..., min_length=1, max_length=255, description="Human-readable label")
    element_type: str = Field("Other", description="UI element category (Page, Grid, Button, ...)")
    description: Optional[str] = Field(None, max_length=1000)
    parent_id: Optional[str] = Field(None, description="Parent permission id (null for a root)")


class PermissionCreate(PermissionBase):
    """Schema for creating a new permission."""

    @field_validator("name")
    @classmethod
    def name_dotted_path(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("element_type")
    @classmethod
    def element_type_known(cls, v: str) -> str:
        return _check_element_type(v)


class PermissionUpdate(BaseModel):
    """Rename, relabel or reparent a permission. Send parent_id: null to make it a root."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    element_type: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    parent_id: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_dotted_path(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_name(v)

    @field_validator("element_type")
    @classmethod
    def element_type_known(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_element_type(v)

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "PermissionUpdate":
        # Omitted means unchanged; only parent_id and description may be cleared
        cleared = [
            field for field in ("name", "display_name", "element_type")
            if field in self.model_fields_set and getattr(self, field) is None
        ]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class PermissionResponse(PermissionBase):
    """Schema for permission response."""
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PermissionNode(BaseModel):
    """One node of the role-editing tree."""
    id: str
    name: str
    display_name: str
    element_type: str
    selected: bool
    children: List["PermissionNode"] = []


PermissionNode.model_rebuild()


# ============================================================================
# Role Schemas
# ============================================================================

class RoleCreate(BaseModel):
    """Schema for creating a new role."""
    name: str = Field(..., min_length=1, max_length=100, description="Unique role name")
    description: Optional[str] = Field(None, max_length=1000)


class RoleResponse(BaseModel):
    """Schema for role response."""
    id: str
    name: str
    description: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RolePermissionsUpdate(BaseModel):
    """The complete selection for a role; replaces whatever was assigned before."""
    permission_ids: List[str] = Field(default_factory=list)


class RolePermissionsUpdateResponse(BaseModel):
    role_id: str
    permission_ids: List[str]
    added: int
    removed: int


class RoleTreeResponse(BaseModel):
    role_id: str
    role_name: str
    tree: List[PermissionNode]


# ============================================================================
# Assignment Schemas
# ============================================================================

class AssignRoleToUser(BaseModel):
    """Schema for adding or removing a user's role membership."""
    user_id: str = Field(..., description="User ID")
    role_id: str = Field(..., description="Role ID")


# ============================================================================
# Authorization Schemas
# ============================================================================

class PolicyCheckRequest(BaseModel):
    """Ask whether the caller passes a policy (UI visibility checks)."""
    policy: str = Field(..., min_length=1, description="Policy id, usually a permission name")


class PolicyCheckResponse(BaseModel):
    policy: str
    decision: str
    granted: bool


class EffectivePermissionsResponse(BaseModel):
    """A user's effective permission names."""
    user_id: str
    permissions: List[str] = []
