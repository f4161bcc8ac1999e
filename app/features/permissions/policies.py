"""
Policy evaluation.

A policy is a named check that requires one permission. Most policies are
registered under the permission's own name; a few call sites use an alias
(e.g. the admin policy). Evaluation is a pure function of the context's facts
and the policy id: no I/O, no shared mutable state during checks.
"""
from collections.abc import Iterable
from enum import Enum
from typing import Optional

from app.features.permissions.context import AuthorizationContext
from app.utils import get_logger


log = get_logger(__name__)


class Decision(str, Enum):
    GRANTED = "Granted"
    DENIED = "Denied"

    def __bool__(self) -> bool:
        return self is Decision.GRANTED


class PolicyRegistry:
    """
    Policy id -> required permission name.

    Populated once at startup; treated as read-only afterwards. Unregistered
    policy ids fall back to requiring the permission of the same name.
    """

    def __init__(self):
        self._policies: dict[str, str] = {}

    def register(self, policy_id: str, permission_name: Optional[str] = None) -> None:
        self._policies[policy_id] = permission_name or policy_id

    def register_many(self, permission_names: Iterable[str]) -> None:
        for name in permission_names:
            self.register(name)

    def required_permission(self, policy_id: str) -> str:
        return self._policies.get(policy_id, policy_id)

    def __contains__(self, policy_id: str) -> bool:
        return policy_id in self._policies

    def __len__(self) -> int:
        return len(self._policies)


default_registry = PolicyRegistry()


def authorize(
    context: AuthorizationContext,
    policy_id: str,
    registry: Optional[PolicyRegistry] = None,
) -> Decision:
    required = (registry or default_registry).required_permission(policy_id)
    if context.has_permission(required):
        return Decision.GRANTED
    log.debug(f"Policy {policy_id} denied for user {context.user_id}: missing {required}")
    return Decision.DENIED


def authorize_any(
    context: AuthorizationContext,
    policy_ids: Iterable[str],
    registry: Optional[PolicyRegistry] = None,
) -> Decision:
    """Granted if any policy is granted (empty input is denied)."""
    for policy_id in policy_ids:
        if authorize(context, policy_id, registry):
            return Decision.GRANTED
    return Decision.DENIED


def authorize_all(
    context: AuthorizationContext,
    policy_ids: Iterable[str],
    registry: Optional[PolicyRegistry] = None,
) -> Decision:
    """Granted only if every policy is granted (empty input is granted)."""
    for policy_id in policy_ids:
        if not authorize(context, policy_id, registry):
            return Decision.DENIED
    return Decision.GRANTED
