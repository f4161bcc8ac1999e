"""
Tests for policy evaluation against a frozen authorization context.
"""
import pytest

from app.features.permissions.context import AuthorizationContext, Claim
from app.features.permissions.policies import (
    Decision,
    PolicyRegistry,
    authorize,
    authorize_all,
    authorize_any,
)


def context_with(*names, kind="Permission"):
    return AuthorizationContext(
        claims=frozenset(Claim(kind, n) for n in names) | {Claim("sub", "alice")},
        user_id="alice",
    )


class TestAuthorize:

    def test_granted_when_permission_fact_present(self):
        assert authorize(context_with("Class.Grid1.Add"), "Class.Grid1.Add", PolicyRegistry()) is Decision.GRANTED

    def test_denied_when_permission_fact_absent(self):
        assert authorize(context_with("Class.Grid1.Add"), "Class.Grid2.View", PolicyRegistry()) is Decision.DENIED

    def test_fact_of_another_kind_does_not_grant(self):
        context = context_with("Class.Grid1.Add", kind="Role")
        assert authorize(context, "Class.Grid1.Add", PolicyRegistry()) is Decision.DENIED

    def test_matching_is_exact(self):
        context = context_with("Class.Grid1")
        assert authorize(context, "Class.Grid1.Add", PolicyRegistry()) is Decision.DENIED
        assert authorize(context, "class.grid1", PolicyRegistry()) is Decision.DENIED

    def test_empty_context_is_denied(self):
        assert authorize(AuthorizationContext(claims=frozenset()), "Anything", PolicyRegistry()) is Decision.DENIED

    def test_decision_truthiness(self):
        assert Decision.GRANTED
        assert not Decision.DENIED

    def test_repeated_evaluation_is_stable(self):
        context = context_with("A")
        registry = PolicyRegistry()
        assert {authorize(context, "A", registry) for _ in range(50)} == {Decision.GRANTED}


class TestRegistry:

    def test_alias_policy_requires_mapped_permission(self):
        registry = PolicyRegistry()
        registry.register("CanEditRoster", "Class.Grid1.Edit")
        assert authorize(context_with("Class.Grid1.Edit"), "CanEditRoster", registry) is Decision.GRANTED
        assert authorize(context_with("CanEditRoster"), "CanEditRoster", registry) is Decision.DENIED

    def test_unregistered_policy_falls_back_to_permission_name(self):
        registry = PolicyRegistry()
        assert registry.required_permission("Reports.Export") == "Reports.Export"

    def test_register_many_registers_identity_policies(self):
        registry = PolicyRegistry()
        registry.register_many(["A", "B"])
        assert "A" in registry and "B" in registry
        assert len(registry) == 2


class TestCombinators:

    @pytest.mark.parametrize(
        "policies, expected",
        [(["A", "X"], Decision.GRANTED), (["X", "Y"], Decision.DENIED), ([], Decision.DENIED)],
    )
    def test_authorize_any(self, policies, expected):
        assert authorize_any(context_with("A", "B"), policies, PolicyRegistry()) is expected

    @pytest.mark.parametrize(
        "policies, expected",
        [(["A", "B"], Decision.GRANTED), (["A", "X"], Decision.DENIED), ([], Decision.GRANTED)],
    )
    def test_authorize_all(self, policies, expected):
        assert authorize_all(context_with("A", "B"), policies, PolicyRegistry()) is expected
