"""
Error taxonomy for permission resolution and administration.

Read paths degrade to "no permissions" where data is missing; everything
here that reaches a caller is either a rejected write or a storage failure.
"""
from typing import Any

from fastapi import status


class RBACError(Exception):
    code: str = "RBAC_ERROR"
    message: str = "Access control error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    details: Any | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Any | None = None,
    ):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        if details is not None:
            self.details = details

        super().__init__(self.message)


class UserNotFound(RBACError):
    code = "USER_NOT_FOUND"
    message = "User not found"
    status_code = status.HTTP_404_NOT_FOUND


class RoleNotFound(RBACError):
    code = "ROLE_NOT_FOUND"
    message = "Role not found"
    status_code = status.HTTP_404_NOT_FOUND


class PermissionNotFound(RBACError):
    code = "PERMISSION_NOT_FOUND"
    message = "Permission not found"
    status_code = status.HTTP_404_NOT_FOUND


class UnknownPermission(RBACError):
    code = "UNKNOWN_PERMISSION"
    message = "Unknown permission id"
    status_code = status.HTTP_400_BAD_REQUEST


class HierarchyCycle(RBACError):
    code = "HIERARCHY_CYCLE"
    message = "Parent assignment would create a cycle"
    status_code = status.HTTP_409_CONFLICT


class DuplicatePermissionName(RBACError):
    code = "DUPLICATE_PERMISSION_NAME"
    message = "Permission with this name already exists"
    status_code = status.HTTP_409_CONFLICT


class PermissionHasChildren(RBACError):
    code = "PERMISSION_HAS_CHILDREN"
    message = "Permission has children; delete them first or cascade"
    status_code = status.HTTP_409_CONFLICT


class DuplicateRoleName(RBACError):
    code = "DUPLICATE_ROLE_NAME"
    message = "Role with this name already exists"
    status_code = status.HTTP_409_CONFLICT


class StorageUnavailable(RBACError):
    code = "STORAGE_UNAVAILABLE"
    message = "Permission store unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def error_payload(code: str, message: str, details: Any | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        payload["details"] = details
    return {"error": payload}
