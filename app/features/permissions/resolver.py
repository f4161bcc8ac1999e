"""
Effective permission resolution.

A user's effective permissions are the union of the names directly assigned
to each role the user holds. The parent/child hierarchy plays no part here.
"""
from app.core.errors import UserNotFound
from app.features.permissions.repository import PermissionRepository
from app.utils import get_logger


log = get_logger(__name__)


class PermissionResolver:
    """Read-only; safe to share between concurrent requests on separate sessions."""

    def __init__(self, repository: PermissionRepository):
        self.repository = repository

    async def resolve(self, user_id: str) -> frozenset[str]:
        """
        Compute the effective permission names for user_id.

        Returns:
            Unordered, deduplicated set of permission names (empty if the
            user holds no roles)

        Raises:
            UserNotFound: user_id is not a known user
            StorageUnavailable: the store could not be read
        """
        if not await self.repository.user_exists(user_id):
            raise UserNotFound(details={"user_id": user_id})

        role_ids = await self.repository.get_role_ids_for_user(user_id)
        if not role_ids:
            log.debug(f"User {user_id} holds no roles")
            return frozenset()

        names = frozenset(await self.repository.get_permission_names_for_roles(role_ids))
        log.debug(f"Resolved {len(names)} permissions for user {user_id} from {len(role_ids)} roles")
        return names
