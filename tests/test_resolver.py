"""
Tests for effective permission resolution against the SQLite store.
"""
import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import StorageUnavailable, UserNotFound
from app.features.permissions.context import AuthorizationContextBuilder, Claim, Principal
from app.features.permissions.policies import Decision, PolicyRegistry, authorize
from app.features.permissions.resolver import PermissionResolver
from tests.db_helpers import add_permission, add_role, add_user, assign


async def seed_class_page(session):
    await add_permission(session, "p-class", "Class", element_type="Page")
    await add_permission(session, "p-grid1", "Class.Grid1", parent_id="p-class", element_type="Grid")
    await add_permission(session, "p-add", "Class.Grid1.Add", parent_id="p-grid1")
    await add_permission(session, "p-view2", "Class.Grid2.View", parent_id="p-class")
    await add_role(session, "r-editor", "Editor")
    await add_role(session, "r-viewer", "Viewer")
    await assign(session, "r-editor", "p-add")
    await assign(session, "r-viewer", "p-view2")


@pytest.mark.asyncio
async def test_unknown_user_raises(repository):
    with pytest.raises(UserNotFound):
        await PermissionResolver(repository).resolve("ghost")


@pytest.mark.asyncio
async def test_user_without_roles_has_no_permissions(session, repository):
    await add_user(session, "bob")
    assert await PermissionResolver(repository).resolve("bob") == frozenset()


@pytest.mark.asyncio
async def test_single_role_scenario(session, repository):
    await seed_class_page(session)
    await add_user(session, "alice", ["r-editor"])

    names = await PermissionResolver(repository).resolve("alice")
    assert names == frozenset({"Class.Grid1.Add"})

    builder = AuthorizationContextBuilder(PermissionResolver(repository))
    context = await builder.build_context(Principal(claims=[Claim("sub", "alice")]))
    assert authorize(context, "Class.Grid2.View", PolicyRegistry()) is Decision.DENIED
    assert authorize(context, "Class.Grid1.Add", PolicyRegistry()) is Decision.GRANTED


@pytest.mark.asyncio
async def test_union_over_roles(session, repository):
    await seed_class_page(session)
    await add_user(session, "carol", ["r-editor", "r-viewer"])
    names = await PermissionResolver(repository).resolve("carol")
    assert names == frozenset({"Class.Grid1.Add", "Class.Grid2.View"})


@pytest.mark.asyncio
async def test_shared_permission_is_deduplicated(session, repository):
    await seed_class_page(session)
    await assign(session, "r-viewer", "p-add")
    await add_user(session, "dave", ["r-editor", "r-viewer"])
    names = await PermissionResolver(repository).resolve("dave")
    assert names == frozenset({"Class.Grid1.Add", "Class.Grid2.View"})


@pytest.mark.asyncio
async def test_parent_permission_does_not_imply_children(session, repository):
    await seed_class_page(session)
    await add_role(session, "r-page", "PageOnly")
    await assign(session, "r-page", "p-class")
    await add_user(session, "erin", ["r-page"])
    assert await PermissionResolver(repository).resolve("erin") == frozenset({"Class"})


@pytest.mark.asyncio
async def test_role_with_no_permissions(session, repository):
    await add_role(session, "r-empty", "Empty")
    await add_user(session, "frank", ["r-empty"])
    assert await PermissionResolver(repository).resolve("frank") == frozenset()


@pytest.mark.asyncio
async def test_storage_failure_propagates(session, repository, monkeypatch):
    await add_user(session, "alice")

    async def broken_execute(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "execute", broken_execute)
    with pytest.raises(StorageUnavailable):
        await PermissionResolver(repository).resolve("alice")
