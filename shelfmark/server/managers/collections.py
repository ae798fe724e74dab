"""Collection CRUD operations.

Collections belong to a space; bookmarks belong to a collection.  Deleting a
collection deletes its bookmarks in the same transaction.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from shelfmark.server.db.tables import Bookmark, Collection, Space
from shelfmark.server.errors import ParentNotFoundError
from shelfmark.server.managers import new_id, storage_errors
from shelfmark.server.models.api import CollectionCreate, CollectionUpdate


async def list_collections(db: AsyncSession, space_id: str) -> list[Collection]:
    """List a space's collections in display order."""
    stmt = (
        select(Collection)
        .where(Collection.space_id == space_id)
        .order_by(Collection.order_index.asc(), Collection.created_at.asc())
    )
    async with storage_errors(db, "fetch collections"):
        result = await db.execute(stmt)
        return list(result.scalars().all())


async def list_all_collections(db: AsyncSession, workspace_id: str | None = None) -> list[Collection]:
    """List collections across spaces, used for dashboard counts.

    With *workspace_id* the result is scoped through the owning spaces.
    Without it, every collection in the store is returned; callers relying
    on global counts depend on that.
    """
    stmt = select(Collection).order_by(Collection.order_index.asc(), Collection.created_at.asc())
    if workspace_id is not None:
        stmt = stmt.join(Space, Collection.space_id == Space.id).where(Space.workspace_id == workspace_id)
    async with storage_errors(db, "fetch collections"):
        result = await db.execute(stmt)
        return list(result.scalars().all())


async def get_collection(db: AsyncSession, collection_id: str) -> Collection | None:
    async with storage_errors(db, "fetch collection"):
        return await db.get(Collection, collection_id)


async def create_collection(db: AsyncSession, body: CollectionCreate, *, commit: bool = True) -> Collection:
    """Create a collection.  Raises ``ParentNotFoundError`` if the space is missing.

    ``commit=False`` behaves as in :func:`~shelfmark.server.managers.spaces.create_space`.
    """
    if not commit:
        return await _insert_collection(db, body)
    async with storage_errors(db, "create collection"):
        collection = await _insert_collection(db, body)
        await db.commit()
        await db.refresh(collection)
    logger.info("Collection created: {} '{}' (space={})", collection.id, collection.name, collection.space_id)
    return collection


async def _insert_collection(db: AsyncSession, body: CollectionCreate) -> Collection:
    if await db.get(Space, body.space_id) is None:
        raise ParentNotFoundError("Space", body.space_id)
    collection = Collection(id=new_id(), **body.model_dump())
    db.add(collection)
    await db.flush()
    return collection


async def update_collection(db: AsyncSession, collection_id: str, body: CollectionUpdate) -> Collection | None:
    """Partially update a collection.  Returns ``None`` if it does not exist.

    Raises ``ParentNotFoundError`` when moving it to a space that does not exist.
    """
    async with storage_errors(db, "update collection"):
        collection = await db.get(Collection, collection_id)
        if collection is None:
            return None
        changes = body.model_dump(exclude_unset=True)
        if not changes:
            return collection
        new_space_id = changes.get("space_id")
        if new_space_id is not None and new_space_id != collection.space_id:
            if await db.get(Space, new_space_id) is None:
                raise ParentNotFoundError("Space", new_space_id)
        for key, value in changes.items():
            setattr(collection, key, value)
        await db.commit()
        await db.refresh(collection)
    return collection


async def delete_collection(db: AsyncSession, collection_id: str) -> bool:
    """Delete a collection and its bookmarks.  Returns ``False`` if missing."""
    async with storage_errors(db, "delete collection"):
        collection = await db.get(Collection, collection_id)
        if collection is None:
            return False
        bookmarks = await db.execute(
            delete(Bookmark)
            .where(Bookmark.collection_id == collection_id)
            .execution_options(synchronize_session="fetch")
        )
        await db.delete(collection)
        await db.commit()
    logger.info("Collection deleted: {} (bookmarks={})", collection_id, bookmarks.rowcount)
    return True
