"""Workspace operations.

Workspaces are addressed by caller-chosen ids (the id is the "magic link"),
so there is no id generation here.  :func:`get_or_create_workspace` tolerates
a concurrent create of the same id: the losing insert re-reads the winner's
row.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shelfmark.server.db.tables import Workspace
from shelfmark.server.errors import DuplicateWorkspaceError
from shelfmark.server.managers import storage_errors


async def get_workspace(db: AsyncSession, workspace_id: str) -> Workspace | None:
    async with storage_errors(db, "fetch workspace"):
        return await db.get(Workspace, workspace_id)


async def create_workspace(db: AsyncSession, workspace_id: str) -> Workspace:
    """Create a workspace.  Raises ``DuplicateWorkspaceError`` if the id exists."""
    async with storage_errors(db, "create workspace"):
        if await db.get(Workspace, workspace_id) is not None:
            raise DuplicateWorkspaceError(workspace_id)
        workspace = Workspace(id=workspace_id)
        db.add(workspace)
        try:
            await db.commit()
        except IntegrityError:
            # Another session inserted the same id after our check.
            await db.rollback()
            raise DuplicateWorkspaceError(workspace_id) from None
        await db.refresh(workspace)
    logger.info("Workspace created: {}", workspace_id)
    return workspace


async def get_or_create_workspace(db: AsyncSession, workspace_id: str) -> tuple[Workspace, bool]:
    """Return ``(workspace, created)``."""
    workspace = await get_workspace(db, workspace_id)
    if workspace is not None:
        return workspace, False
    try:
        return await create_workspace(db, workspace_id), True
    except DuplicateWorkspaceError:
        workspace = await get_workspace(db, workspace_id)
        if workspace is None:
            raise
        logger.debug("Workspace {} was created concurrently; using the existing row", workspace_id)
        return workspace, False
