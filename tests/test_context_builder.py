"""
Tests for the once-per-principal authorization context builder.
"""
import pytest

from app.core.errors import StorageUnavailable, UserNotFound
from app.features.permissions.context import (
    RESOLVED_CLAIM_TYPE,
    AuthorizationContext,
    AuthorizationContextBuilder,
    Claim,
    Principal,
)


class FakeResolver:
    def __init__(self, permissions=None, error=None):
        self.permissions = permissions or {}
        self.error = error
        self.calls = 0

    async def resolve(self, user_id):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return frozenset(self.permissions.get(user_id, ()))


def principal_for(user_id):
    return Principal(claims=[Claim("sub", user_id), Claim("email", f"{user_id}@example.com")])


def permission_values(principal):
    return sorted(c.value for c in principal.claims if c.kind == "Permission")


class TestBuildOnce:

    @pytest.mark.asyncio
    async def test_attaches_one_fact_per_permission(self):
        builder = AuthorizationContextBuilder(FakeResolver({"alice": {"B", "A"}}))
        principal = await builder.build_once(principal_for("alice"))
        assert permission_values(principal) == ["A", "B"]

    @pytest.mark.asyncio
    async def test_keeps_existing_facts(self):
        builder = AuthorizationContextBuilder(FakeResolver({"alice": {"A"}}))
        principal = await builder.build_once(principal_for("alice"))
        assert Claim("email", "alice@example.com") in principal.claims
        assert principal.user_id == "alice"

    @pytest.mark.asyncio
    async def test_second_call_is_a_no_op(self):
        resolver = FakeResolver({"alice": {"A", "B"}})
        builder = AuthorizationContextBuilder(resolver)
        principal = principal_for("alice")

        await builder.build_once(principal)
        first = list(principal.claims)
        await builder.build_once(principal)

        assert principal.claims == first
        assert resolver.calls == 1

    @pytest.mark.asyncio
    async def test_zero_permission_principal_is_resolved_once(self):
        resolver = FakeResolver({})
        builder = AuthorizationContextBuilder(resolver)
        principal = principal_for("nobody")

        await builder.build_once(principal)
        await builder.build_once(principal)

        assert permission_values(principal) == []
        assert principal.has_kind(RESOLVED_CLAIM_TYPE)
        assert resolver.calls == 1

    @pytest.mark.asyncio
    async def test_preexisting_permission_fact_skips_resolution(self):
        resolver = FakeResolver({"alice": {"A"}})
        builder = AuthorizationContextBuilder(resolver)
        principal = principal_for("alice")
        principal.claims.append(Claim("Permission", "Z"))

        await builder.build_once(principal)

        assert resolver.calls == 0
        assert permission_values(principal) == ["Z"]

    @pytest.mark.asyncio
    async def test_unauthenticated_principal_passes_through(self):
        resolver = FakeResolver({"alice": {"A"}})
        builder = AuthorizationContextBuilder(resolver)
        principal = Principal(claims=[Claim("sub", "alice")], authenticated=False)

        result = await builder.build_once(principal)

        assert result is principal
        assert principal.claims == [Claim("sub", "alice")]
        assert resolver.calls == 0

    @pytest.mark.asyncio
    async def test_missing_user_id_passes_through(self):
        resolver = FakeResolver()
        builder = AuthorizationContextBuilder(resolver)
        principal = Principal(claims=[Claim("email", "x@example.com")])

        await builder.build_once(principal)

        assert principal.claims == [Claim("email", "x@example.com")]
        assert resolver.calls == 0

    @pytest.mark.asyncio
    async def test_unknown_user_means_zero_permissions(self):
        builder = AuthorizationContextBuilder(FakeResolver(error=UserNotFound()))
        principal = await builder.build_once(principal_for("ghost"))
        assert permission_values(principal) == []
        assert principal.has_kind(RESOLVED_CLAIM_TYPE)

    @pytest.mark.asyncio
    async def test_storage_failure_propagates(self):
        builder = AuthorizationContextBuilder(FakeResolver(error=StorageUnavailable()))
        principal = principal_for("alice")

        with pytest.raises(StorageUnavailable):
            await builder.build_once(principal)
        assert not builder.is_resolved(principal)

    @pytest.mark.asyncio
    async def test_custom_fact_kind(self):
        builder = AuthorizationContextBuilder(FakeResolver({"alice": {"A"}}), permission_claim_type="perm")
        principal = await builder.build_once(principal_for("alice"))
        assert Claim("perm", "A") in principal.claims
        assert permission_values(principal) == []

    @pytest.mark.asyncio
    async def test_context_uses_builder_fact_kind(self):
        builder = AuthorizationContextBuilder(FakeResolver({"alice": {"A"}}), permission_claim_type="perm")
        context = await builder.build_context(principal_for("alice"))
        assert context.permission_claim_type == "perm"
        assert context.permissions == frozenset({"A"})
        assert context.has_permission("A")


class TestRefreshAndSnapshot:

    @pytest.mark.asyncio
    async def test_refresh_replaces_stale_permissions(self):
        resolver = FakeResolver({"alice": {"A"}})
        builder = AuthorizationContextBuilder(resolver)
        principal = await builder.build_once(principal_for("alice"))

        resolver.permissions["alice"] = {"B"}
        await builder.refresh(principal)

        assert permission_values(principal) == ["B"]
        assert resolver.calls == 2
        assert Claim("email", "alice@example.com") in principal.claims

    @pytest.mark.asyncio
    async def test_context_is_a_frozen_snapshot(self):
        builder = AuthorizationContextBuilder(FakeResolver({"alice": {"A"}}))
        principal = principal_for("alice")
        context = await builder.build_context(principal)

        principal.claims.append(Claim("Permission", "Later"))

        assert isinstance(context, AuthorizationContext)
        assert context.permissions == frozenset({"A"})
        assert context.user_id == "alice"
        assert context.has_permission("A")
        assert not context.has_permission("Later")

    def test_add_claims_skips_duplicates(self):
        principal = principal_for("alice")
        added = principal.add_claims([Claim("Permission", "A"), Claim("Permission", "A"), Claim("sub", "alice")])
        assert added == 1
        assert principal.claims.count(Claim("Permission", "A")) == 1
