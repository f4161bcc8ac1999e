"""
Authorization context: permission facts attached to an authenticated principal.

The host framework may rebuild or re-run the builder on every request; the
builder itself checks whether the principal has already been resolved, so
resolution runs at most once per principal. Checks downstream read a frozen
AuthorizationContext snapshot, never the mutable principal.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from app.core import config
from app.core.errors import UserNotFound
from app.features.permissions.resolver import PermissionResolver
from app.utils import get_logger


log = get_logger(__name__)

# Marker fact recording when resolution ran; also covers principals with zero permissions
RESOLVED_CLAIM_TYPE = "PermissionsResolvedAt"


class Claim(NamedTuple):
    """A named, valued fact about a principal, e.g. ("Permission", "Class.Grid1.Add")."""
    kind: str
    value: str


@dataclass
class Principal:
    """
    An identity as handed over by the authentication layer.

    Facts are only ever appended; add_claims skips exact duplicates.
    """
    claims: list[Claim] = field(default_factory=list)
    authenticated: bool = True

    def find_first(self, kind: str) -> Optional[str]:
        for claim in self.claims:
            if claim.kind == kind:
                return claim.value
        return None

    def has_kind(self, kind: str) -> bool:
        return any(claim.kind == kind for claim in self.claims)

    def add_claims(self, claims: list[Claim]) -> int:
        """Append claims not already present. Returns the number added."""
        present = set(self.claims)
        added = 0
        for claim in claims:
            if claim in present:
                continue
            self.claims.append(claim)
            present.add(claim)
            added += 1
        return added

    @property
    def user_id(self) -> Optional[str]:
        return self.find_first(config.JWT_USER_ID_CLAIM)


@dataclass(frozen=True)
class AuthorizationContext:
    """Immutable snapshot of a principal's facts; safe to share across concurrent checks."""
    claims: frozenset[Claim]
    user_id: Optional[str] = None
    permission_claim_type: str = config.PERMISSION_CLAIM_TYPE

    @classmethod
    def from_principal(
        cls,
        principal: Principal,
        permission_claim_type: str = config.PERMISSION_CLAIM_TYPE,
    ) -> "AuthorizationContext":
        return cls(
            claims=frozenset(principal.claims),
            user_id=principal.user_id,
            permission_claim_type=permission_claim_type,
        )

    @property
    def permissions(self) -> frozenset[str]:
        return frozenset(c.value for c in self.claims if c.kind == self.permission_claim_type)

    def has_permission(self, name: str) -> bool:
        return Claim(self.permission_claim_type, name) in self.claims


class AuthorizationContextBuilder:
    def __init__(
        self,
        resolver: PermissionResolver,
        permission_claim_type: str = config.PERMISSION_CLAIM_TYPE,
    ):
        self.resolver = resolver
        self.permission_claim_type = permission_claim_type

    def is_resolved(self, principal: Principal) -> bool:
        return principal.has_kind(self.permission_claim_type) or principal.has_kind(RESOLVED_CLAIM_TYPE)

    async def build_once(self, principal: Principal) -> Principal:
        """
        Attach the principal's effective permissions as facts, unless already done.

        Unauthenticated principals and principals without a user id pass
        through unchanged. An unknown user gets zero permissions.

        Raises:
            StorageUnavailable: authorization cannot proceed without data
        """
        if not principal.authenticated:
            return principal
        if self.is_resolved(principal):
            return principal

        user_id = principal.user_id
        if user_id is None:
            log.debug("Authenticated principal carries no user id; skipping permission resolution")
            return principal

        try:
            names = await self.resolver.resolve(user_id)
        except UserNotFound:
            log.info(f"Principal {user_id} has no user record; treating as zero permissions")
            names = frozenset()

        claims = [Claim(self.permission_claim_type, name) for name in sorted(names)]
        claims.append(Claim(RESOLVED_CLAIM_TYPE, datetime.now(timezone.utc).isoformat()))
        principal.add_claims(claims)
        log.debug(f"Attached {len(names)} permission facts to principal {user_id}")
        return principal

    async def refresh(self, principal: Principal) -> Principal:
        """Drop previously resolved permission facts and resolve again."""
        principal.claims[:] = [
            c for c in principal.claims
            if c.kind not in (self.permission_claim_type, RESOLVED_CLAIM_TYPE)
        ]
        return await self.build_once(principal)

    async def build_context(self, principal: Principal) -> AuthorizationContext:
        await self.build_once(principal)
        return AuthorizationContext.from_principal(principal, self.permission_claim_type)
