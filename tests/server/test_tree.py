"""Repository operations on the workspace / space / collection / bookmark tree."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from shelfmark.server.db.tables import Bookmark, Collection, Space
from shelfmark.server.errors import DuplicateWorkspaceError, ParentNotFoundError, StorageError
from shelfmark.server.managers import bookmarks as bookmarks_mgr
from shelfmark.server.managers import collections as collections_mgr
from shelfmark.server.managers import spaces as spaces_mgr
from shelfmark.server.managers import workspaces as workspaces_mgr
from shelfmark.server.models.api import (
    BookmarkCreate,
    BookmarkUpdate,
    CollectionCreate,
    CollectionUpdate,
    SpaceCreate,
    SpaceUpdate,
)

if TYPE_CHECKING:
    from conftest import Tree


async def _count(db: AsyncSession, table: type) -> int:
    return (await db.execute(select(func.count()).select_from(table))).scalar_one()


# -- Workspaces ----------------------------------------------------------------


async def test_workspace_get_or_create(db_session: AsyncSession) -> None:
    workspace, created = await workspaces_mgr.get_or_create_workspace(db_session, "default-workspace")
    assert created
    again, created = await workspaces_mgr.get_or_create_workspace(db_session, "default-workspace")
    assert not created
    assert again.id == workspace.id


async def test_create_workspace_rejects_duplicate(db_session: AsyncSession) -> None:
    await workspaces_mgr.create_workspace(db_session, "w1")
    with pytest.raises(DuplicateWorkspaceError):
        await workspaces_mgr.create_workspace(db_session, "w1")


async def test_get_missing_workspace_is_none(db_session: AsyncSession) -> None:
    assert await workspaces_mgr.get_workspace(db_session, "nope") is None


def _miss_first_lookups(db: AsyncSession, monkeypatch: pytest.MonkeyPatch, misses: int) -> None:
    """Make the first *misses* ``db.get`` calls see no row, as if another session had not committed yet."""
    get = db.get
    calls = 0

    async def _get(entity, ident, **kwargs):  # type: ignore[no-untyped-def]
        nonlocal calls
        calls += 1
        if calls <= misses:
            return None
        return await get(entity, ident, **kwargs)

    monkeypatch.setattr(db, "get", _get)


async def test_get_or_create_loses_insert_race(db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
    await workspaces_mgr.create_workspace(db_session, "w1")
    db_session.expunge_all()
    # Both the lookup and the pre-insert check miss; the INSERT hits the unique key.
    _miss_first_lookups(db_session, monkeypatch, misses=2)

    workspace, created = await workspaces_mgr.get_or_create_workspace(db_session, "w1")

    assert not created
    assert workspace.id == "w1"


async def test_get_or_create_after_concurrent_create(db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
    await workspaces_mgr.create_workspace(db_session, "w1")
    _miss_first_lookups(db_session, monkeypatch, misses=1)

    workspace, created = await workspaces_mgr.get_or_create_workspace(db_session, "w1")

    assert not created
    assert workspace.id == "w1"


# -- Spaces and collections ----------------------------------------------------


async def test_create_space_requires_workspace(db_session: AsyncSession) -> None:
    with pytest.raises(ParentNotFoundError) as excinfo:
        await spaces_mgr.create_space(db_session, SpaceCreate(workspace_id="ghost", name="X"))
    assert excinfo.value.kind == "Workspace"
    assert await _count(db_session, Space) == 0


async def test_spaces_listed_in_display_order(db_session: AsyncSession) -> None:
    await workspaces_mgr.create_workspace(db_session, "w1")
    await spaces_mgr.create_space(db_session, SpaceCreate(workspace_id="w1", name="Second", order_index=1))
    await spaces_mgr.create_space(db_session, SpaceCreate(workspace_id="w1", name="First", order_index=0))
    await workspaces_mgr.create_workspace(db_session, "w2")
    await spaces_mgr.create_space(db_session, SpaceCreate(workspace_id="w2", name="Elsewhere"))

    spaces = await spaces_mgr.list_spaces(db_session, "w1")
    assert [s.name for s in spaces] == ["First", "Second"]


async def test_update_space_is_partial(tree: Tree, db_session: AsyncSession) -> None:
    updated = await spaces_mgr.update_space(db_session, tree.space.id, SpaceUpdate(icon="star"))
    assert updated is not None
    assert updated.icon == "star"
    assert updated.name == "Personal"
    assert await spaces_mgr.update_space(db_session, "missing", SpaceUpdate(icon="x")) is None


async def test_delete_space_cascades(tree: Tree, db_session: AsyncSession) -> None:
    other = await collections_mgr.create_collection(db_session, CollectionCreate(space_id=tree.space.id, name="Later"))
    await bookmarks_mgr.create_bookmark(db_session, BookmarkCreate(collection_id=other.id, title="D", url="https://d"))

    assert await spaces_mgr.delete_space(db_session, tree.space.id)

    assert await spaces_mgr.get_space(db_session, tree.space.id) is None
    assert await _count(db_session, Collection) == 0
    assert await _count(db_session, Bookmark) == 0
    assert not await spaces_mgr.delete_space(db_session, tree.space.id)


async def test_delete_collection_cascades_only_its_bookmarks(tree: Tree, db_session: AsyncSession) -> None:
    other = await collections_mgr.create_collection(db_session, CollectionCreate(space_id=tree.space.id, name="Keep"))
    kept = await bookmarks_mgr.create_bookmark(db_session, BookmarkCreate(collection_id=other.id, title="K", url="https://k"))

    assert await collections_mgr.delete_collection(db_session, tree.collection.id)

    remaining = await bookmarks_mgr.list_bookmarks(db_session)
    assert [b.id for b in remaining] == [kept.id]


async def test_create_collection_requires_space(db_session: AsyncSession) -> None:
    with pytest.raises(ParentNotFoundError):
        await collections_mgr.create_collection(db_session, CollectionCreate(space_id="ghost", name="X"))


async def test_move_collection_to_missing_space_is_rejected(tree: Tree, db_session: AsyncSession) -> None:
    with pytest.raises(ParentNotFoundError):
        await collections_mgr.update_collection(db_session, tree.collection.id, CollectionUpdate(space_id="ghost"))
    unchanged = await collections_mgr.get_collection(db_session, tree.collection.id)
    assert unchanged is not None
    assert unchanged.space_id == tree.space.id


async def test_list_all_collections_filters_by_workspace(tree: Tree, db_session: AsyncSession) -> None:
    await workspaces_mgr.create_workspace(db_session, "w2")
    space = await spaces_mgr.create_space(db_session, SpaceCreate(workspace_id="w2", name="Work"))
    await collections_mgr.create_collection(db_session, CollectionCreate(space_id=space.id, name="Docs"))

    assert [c.name for c in await collections_mgr.list_all_collections(db_session, "w1")] == ["Reading"]
    assert len(await collections_mgr.list_all_collections(db_session)) == 2


# -- Bookmarks -----------------------------------------------------------------


async def test_new_bookmarks_are_appended(tree: Tree, db_session: AsyncSession) -> None:
    assert [b.order_index for b in tree.bookmarks] == [0, 1, 2]
    explicit = await bookmarks_mgr.create_bookmark(
        db_session,
        BookmarkCreate(collection_id=tree.collection.id, title="Z", url="https://z", order_index=10),
    )
    appended = await bookmarks_mgr.create_bookmark(
        db_session, BookmarkCreate(collection_id=tree.collection.id, title="Y", url="https://y")
    )
    assert explicit.order_index == 10
    assert appended.order_index == 11


async def test_create_bookmark_requires_collection(db_session: AsyncSession) -> None:
    with pytest.raises(ParentNotFoundError):
        await bookmarks_mgr.create_bookmark(db_session, BookmarkCreate(collection_id="ghost", title="X", url="https://x"))
    assert await _count(db_session, Bookmark) == 0


async def test_bookmark_defaults(tree: Tree) -> None:
    bookmark = tree.bookmarks[0]
    assert bookmark.tags == []
    assert bookmark.is_pinned is False
    assert bookmark.preview is None


async def test_moving_a_bookmark_appends_it(tree: Tree, db_session: AsyncSession) -> None:
    target = await collections_mgr.create_collection(db_session, CollectionCreate(space_id=tree.space.id, name="Later"))
    await bookmarks_mgr.create_bookmark(db_session, BookmarkCreate(collection_id=target.id, title="T", url="https://t"))

    moved = await bookmarks_mgr.update_bookmark(db_session, tree.bookmarks[0].id, BookmarkUpdate(collection_id=target.id))

    assert moved is not None
    assert moved.collection_id == target.id
    assert moved.order_index == 1


async def test_list_bookmarks_by_space(tree: Tree, db_session: AsyncSession) -> None:
    bookmarks = await bookmarks_mgr.list_bookmarks(db_session, space_id=tree.space.id)
    assert [b.title for b in bookmarks] == ["A", "B", "C"]
    assert await bookmarks_mgr.list_bookmarks(db_session, space_id="other") == []


async def test_search_matches_every_term(tree: Tree, db_session: AsyncSession) -> None:
    await bookmarks_mgr.update_bookmark(
        db_session, tree.bookmarks[1].id, BookmarkUpdate(description="Python asyncio guide")
    )

    assert [b.title for b in await bookmarks_mgr.search_bookmarks(db_session, "PYTHON guide")] == ["B"]
    assert await bookmarks_mgr.search_bookmarks(db_session, "python rust") == []
    assert len(await bookmarks_mgr.search_bookmarks(db_session, "example.com")) == 3


async def test_search_treats_wildcards_literally(tree: Tree, db_session: AsyncSession) -> None:
    assert await bookmarks_mgr.search_bookmarks(db_session, "%") == []


async def test_blank_search_is_rejected(db_session: AsyncSession) -> None:
    with pytest.raises(ValueError, match="required"):
        await bookmarks_mgr.search_bookmarks(db_session, "   ")


async def test_pinned_and_recent(tree: Tree, db_session: AsyncSession) -> None:
    await bookmarks_mgr.update_bookmark(db_session, tree.bookmarks[0].id, BookmarkUpdate(is_pinned=True))

    pinned = await bookmarks_mgr.list_pinned(db_session)
    assert [b.title for b in pinned] == ["A"]

    recent = await bookmarks_mgr.list_recent(db_session, limit=2)
    assert len(recent) == 2
    assert recent[0].title == "A"


async def test_storage_failure_is_wrapped(db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
    async def _broken(*args: object, **kwargs: object) -> None:
        raise OperationalError("SELECT 1", {}, Exception("database is gone"))

    monkeypatch.setattr(db_session, "execute", _broken)
    with pytest.raises(StorageError, match="Failed to fetch pinned bookmarks") as excinfo:
        await bookmarks_mgr.list_pinned(db_session)
    assert "database is gone" not in str(excinfo.value)
