"""Bookmark CRUD, queries and manual reordering.

Manual order is a dense, collection-scoped ``order_index`` sequence starting
at 0.  New bookmarks are appended (``max + 1``) unless the caller supplies an
index, and :func:`reorder_bookmarks` rewrites the sequence from an ordered id
list.  Listing orders by ``order_index`` ascending, newest first on ties.
"""

from __future__ import annotations

from collections import Counter

from loguru import logger
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shelfmark.server.db.tables import Bookmark, Collection
from shelfmark.server.errors import InvalidMembershipError, ParentNotFoundError, ReorderConflictError
from shelfmark.server.managers import new_id, storage_errors
from shelfmark.server.models.api import BookmarkCreate, BookmarkUpdate

RECENT_DEFAULT_LIMIT = 10

_MANUAL_ORDER = (Bookmark.order_index.asc(), Bookmark.created_at.desc())


# -- Queries -------------------------------------------------------------------


async def list_bookmarks(
    db: AsyncSession,
    *,
    collection_id: str | None = None,
    space_id: str | None = None,
) -> list[Bookmark]:
    """List bookmarks in manual order.

    Filters by direct ownership when *collection_id* is given, otherwise by
    the owning collections' space when *space_id* is given, otherwise returns
    every bookmark in the store.
    """
    stmt = select(Bookmark)
    if collection_id is not None:
        stmt = stmt.where(Bookmark.collection_id == collection_id)
    elif space_id is not None:
        stmt = stmt.join(Collection, Bookmark.collection_id == Collection.id).where(Collection.space_id == space_id)
    stmt = stmt.order_by(*_MANUAL_ORDER)
    async with storage_errors(db, "fetch bookmarks"):
        result = await db.execute(stmt)
        return list(result.scalars().all())


async def search_bookmarks(db: AsyncSession, query: str) -> list[Bookmark]:
    """Case-insensitive search over title, description and URL, newest edits first.

    Every whitespace-separated term must appear in at least one of the three
    fields.  Raises ``ValueError`` for a blank query.
    """
    terms = query.split()
    if not terms:
        msg = "Search query is required"
        raise ValueError(msg)
    matches = [
        or_(
            Bookmark.title.icontains(term, autoescape=True),
            Bookmark.description.icontains(term, autoescape=True),
            Bookmark.url.icontains(term, autoescape=True),
        )
        for term in terms
    ]
    stmt = select(Bookmark).where(and_(*matches)).order_by(Bookmark.updated_at.desc())
    async with storage_errors(db, "search bookmarks"):
        result = await db.execute(stmt)
        return list(result.scalars().all())


async def list_pinned(db: AsyncSession) -> list[Bookmark]:
    stmt = select(Bookmark).where(Bookmark.is_pinned.is_(True)).order_by(Bookmark.updated_at.desc())
    async with storage_errors(db, "fetch pinned bookmarks"):
        result = await db.execute(stmt)
        return list(result.scalars().all())


async def list_recent(db: AsyncSession, limit: int = RECENT_DEFAULT_LIMIT) -> list[Bookmark]:
    stmt = select(Bookmark).order_by(Bookmark.updated_at.desc()).limit(limit)
    async with storage_errors(db, "fetch recent bookmarks"):
        result = await db.execute(stmt)
        return list(result.scalars().all())


# -- CRUD ----------------------------------------------------------------------


async def get_bookmark(db: AsyncSession, bookmark_id: str) -> Bookmark | None:
    async with storage_errors(db, "fetch bookmark"):
        return await db.get(Bookmark, bookmark_id)


async def create_bookmark(db: AsyncSession, body: BookmarkCreate, *, commit: bool = True) -> Bookmark:
    """Create a bookmark.  Raises ``ParentNotFoundError`` if the collection is missing.

    ``commit=False`` behaves as in :func:`~shelfmark.server.managers.spaces.create_space`.
    """
    if not commit:
        return await _insert_bookmark(db, body)
    async with storage_errors(db, "create bookmark"):
        bookmark = await _insert_bookmark(db, body)
        await db.commit()
        await db.refresh(bookmark)
    logger.info("Bookmark created: {} (collection={}, order={})", bookmark.id, bookmark.collection_id, bookmark.order_index)
    return bookmark


async def _insert_bookmark(db: AsyncSession, body: BookmarkCreate) -> Bookmark:
    # Row lock serialises appends with concurrent reorders of the same collection.
    if await db.get(Collection, body.collection_id, with_for_update=True) is None:
        raise ParentNotFoundError("Collection", body.collection_id)
    data = body.model_dump()
    if data["order_index"] is None:
        data["order_index"] = await _next_order_index(db, body.collection_id)
    bookmark = Bookmark(id=new_id(), **data)
    db.add(bookmark)
    await db.flush()
    return bookmark


async def update_bookmark(db: AsyncSession, bookmark_id: str, body: BookmarkUpdate) -> Bookmark | None:
    """Partially update a bookmark.  Returns ``None`` if it does not exist.

    Moving a bookmark to another collection appends it there unless an
    ``order_index`` is supplied as well.  Raises ``ParentNotFoundError`` if
    the target collection does not exist.
    """
    async with storage_errors(db, "update bookmark"):
        bookmark = await db.get(Bookmark, bookmark_id)
        if bookmark is None:
            return None
        changes = body.model_dump(exclude_unset=True)
        if not changes:
            return bookmark
        target = changes.get("collection_id")
        if target is not None and target != bookmark.collection_id:
            if await db.get(Collection, target, with_for_update=True) is None:
                raise ParentNotFoundError("Collection", target)
            if "order_index" not in changes:
                changes["order_index"] = await _next_order_index(db, target)
        for key, value in changes.items():
            setattr(bookmark, key, value)
        await db.commit()
        await db.refresh(bookmark)
    return bookmark


async def delete_bookmark(db: AsyncSession, bookmark_id: str) -> bool:
    """Delete a bookmark.  Returns ``False`` if it does not exist."""
    async with storage_errors(db, "delete bookmark"):
        bookmark = await db.get(Bookmark, bookmark_id)
        if bookmark is None:
            return False
        await db.delete(bookmark)
        await db.commit()
    logger.info("Bookmark deleted: {}", bookmark_id)
    return True


async def _next_order_index(db: AsyncSession, collection_id: str) -> int:
    stmt = select(func.coalesce(func.max(Bookmark.order_index), -1) + 1).where(
        Bookmark.collection_id == collection_id
    )
    return int((await db.execute(stmt)).scalar_one())


# -- Reordering ----------------------------------------------------------------


async def reorder_bookmarks(db: AsyncSession, collection_id: str, ordered_ids: list[str]) -> list[Bookmark] | None:
    """Give the bookmark at position ``i`` of *ordered_ids* ``order_index = i``.

    Returns the collection's bookmarks re-read in their new order, or ``None``
    if the collection does not exist.  Bookmarks not listed keep their
    previous index, so callers should pass the full set to keep the sequence
    dense.

    The whole list is validated before anything is written: an id that is
    not a bookmark of this collection, or that appears twice, raises
    ``InvalidMembershipError`` and nothing changes.  The collection row is
    locked for the duration (``FOR UPDATE`` on PostgreSQL) and every row
    update must hit exactly one bookmark still in the collection; otherwise
    the transaction is rolled back and ``ReorderConflictError`` is raised.
    """
    async with storage_errors(db, "reorder bookmarks"):
        collection = await db.get(Collection, collection_id, with_for_update=True)
        if collection is None:
            await db.rollback()
            return None

        members = await db.execute(
            select(Bookmark.id).where(Bookmark.collection_id == collection_id).with_for_update()
        )
        member_ids = set(members.scalars().all())
        foreign_ids = list(dict.fromkeys(i for i in ordered_ids if i not in member_ids))
        duplicate_ids = sorted(i for i, n in Counter(ordered_ids).items() if n > 1)
        if foreign_ids or duplicate_ids:
            await db.rollback()
            raise InvalidMembershipError(collection_id, foreign_ids, duplicate_ids)

        for position, bookmark_id in enumerate(ordered_ids):
            result = await db.execute(
                update(Bookmark)
                .where(Bookmark.id == bookmark_id, Bookmark.collection_id == collection_id)
                # Manual order is not a content edit; keep recency untouched.
                .values(order_index=position, updated_at=Bookmark.updated_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                logger.warning(
                    "Reorder conflict in collection {}: bookmark {} changed concurrently",
                    collection_id,
                    bookmark_id,
                )
                msg = "Bookmarks changed while reordering; reload and try again"
                raise ReorderConflictError(msg)

        await db.commit()
        # Row updates bypassed the identity map; drop cached attribute state.
        db.expire_all()

    logger.info("Collection {} reordered ({} bookmarks)", collection_id, len(ordered_ids))
    return await list_bookmarks(db, collection_id=collection_id)
