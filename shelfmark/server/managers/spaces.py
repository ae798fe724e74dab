"""Space CRUD operations.

Deleting a space removes its collections and their bookmarks in the same
transaction (bookmarks first, then collections, then the space), so the tree
never holds orphans even where the store does not enforce ``ON DELETE
CASCADE``.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from shelfmark.server.db.tables import Bookmark, Collection, Space, Workspace
from shelfmark.server.errors import ParentNotFoundError
from shelfmark.server.managers import new_id, storage_errors
from shelfmark.server.models.api import SpaceCreate, SpaceUpdate


async def list_spaces(db: AsyncSession, workspace_id: str) -> list[Space]:
    """List a workspace's spaces in display order."""
    stmt = (
        select(Space)
        .where(Space.workspace_id == workspace_id)
        .order_by(Space.order_index.asc(), Space.created_at.asc())
    )
    async with storage_errors(db, "fetch spaces"):
        result = await db.execute(stmt)
        return list(result.scalars().all())


async def get_space(db: AsyncSession, space_id: str) -> Space | None:
    async with storage_errors(db, "fetch space"):
        return await db.get(Space, space_id)


async def create_space(db: AsyncSession, body: SpaceCreate, *, commit: bool = True) -> Space:
    """Create a space.  Raises ``ParentNotFoundError`` if the workspace is missing.

    With ``commit=False`` the row is only flushed and driver errors propagate
    untouched, leaving the transaction to the caller (used by the import
    engine, which wraps each row in a savepoint).
    """
    if not commit:
        return await _insert_space(db, body)
    async with storage_errors(db, "create space"):
        space = await _insert_space(db, body)
        await db.commit()
        await db.refresh(space)
    logger.info("Space created: {} '{}' (workspace={})", space.id, space.name, space.workspace_id)
    return space


async def _insert_space(db: AsyncSession, body: SpaceCreate) -> Space:
    if await db.get(Workspace, body.workspace_id) is None:
        raise ParentNotFoundError("Workspace", body.workspace_id)
    space = Space(id=new_id(), **body.model_dump())
    db.add(space)
    await db.flush()
    return space


async def update_space(db: AsyncSession, space_id: str, body: SpaceUpdate) -> Space | None:
    """Partially update a space.  Returns ``None`` if it does not exist."""
    async with storage_errors(db, "update space"):
        space = await db.get(Space, space_id)
        if space is None:
            return None
        changes = body.model_dump(exclude_unset=True)
        if not changes:
            return space
        for key, value in changes.items():
            setattr(space, key, value)
        await db.commit()
        await db.refresh(space)
    return space


async def delete_space(db: AsyncSession, space_id: str) -> bool:
    """Delete a space with all of its collections and bookmarks.

    Returns ``False`` if the space does not exist.
    """
    async with storage_errors(db, "delete space"):
        space = await db.get(Space, space_id)
        if space is None:
            return False
        collection_ids = select(Collection.id).where(Collection.space_id == space_id)
        bookmarks = await db.execute(
            delete(Bookmark)
            .where(Bookmark.collection_id.in_(collection_ids))
            .execution_options(synchronize_session="fetch")
        )
        collections = await db.execute(
            delete(Collection).where(Collection.space_id == space_id).execution_options(synchronize_session="fetch")
        )
        await db.delete(space)
        await db.commit()
    logger.info(
        "Space deleted: {} (collections={}, bookmarks={})",
        space_id,
        collections.rowcount,
        bookmarks.rowcount,
    )
    return True
