"""Share CRUD operations.

A share is a capability token: whoever holds the ``view_key`` may read the
workspace's tree.  Keys are globally unique and generated here with
:func:`secrets.token_urlsafe`.  Expiry is evaluated when a share is looked up
by key; expired rows stay in the table until deleted.
"""

from __future__ import annotations

import secrets
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shelfmark.server.db.tables import Share, Workspace
from shelfmark.server.errors import ParentNotFoundError
from shelfmark.server.managers import new_id, storage_errors
from shelfmark.server.models.api import ShareCreate, ShareUpdate

VIEW_KEY_BYTES = 24


def generate_view_key() -> str:
    """Return a fresh unguessable view key (192 bits, URL-safe)."""
    return secrets.token_urlsafe(VIEW_KEY_BYTES)


def is_expired(share: Share, now: datetime | None = None) -> bool:
    if share.expires_at is None:
        return False
    now = now or datetime.now(UTC)
    expires_at = share.expires_at
    # SQLite hands back naive datetimes; stored values are always UTC.
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return expires_at <= now


async def list_shares(db: AsyncSession, workspace_id: str) -> list[Share]:
    """List a workspace's shares, newest first (expired ones included)."""
    stmt = select(Share).where(Share.workspace_id == workspace_id).order_by(Share.created_at.desc())
    async with storage_errors(db, "fetch shares"):
        result = await db.execute(stmt)
        return list(result.scalars().all())


async def get_share(db: AsyncSession, share_id: str) -> Share | None:
    async with storage_errors(db, "fetch share"):
        return await db.get(Share, share_id)


async def get_share_by_view_key(db: AsyncSession, view_key: str, now: datetime | None = None) -> Share | None:
    """Resolve a view key.  Returns ``None`` for unknown or expired keys."""
    async with storage_errors(db, "fetch share"):
        result = await db.execute(select(Share).where(Share.view_key == view_key))
        share = result.scalar_one_or_none()
    if share is None or is_expired(share, now):
        return None
    return share


async def create_share(db: AsyncSession, body: ShareCreate, view_key: str | None = None) -> Share:
    """Create a share for a workspace.

    *view_key* defaults to :func:`generate_view_key`.  Raises
    ``ParentNotFoundError`` if the workspace does not exist.
    """
    async with storage_errors(db, "create share"):
        if await db.get(Workspace, body.workspace_id) is None:
            raise ParentNotFoundError("Workspace", body.workspace_id)
        share = Share(id=new_id(), view_key=view_key or generate_view_key(), **body.model_dump())
        db.add(share)
        await db.commit()
        await db.refresh(share)
    logger.info("Share created: {} (workspace={}, expires_at={})", share.id, share.workspace_id, share.expires_at)
    return share


async def update_share(db: AsyncSession, share_id: str, body: ShareUpdate) -> Share | None:
    async with storage_errors(db, "update share"):
        share = await db.get(Share, share_id)
        if share is None:
            return None
        changes = body.model_dump(exclude_unset=True)
        if not changes:
            return share
        for key, value in changes.items():
            setattr(share, key, value)
        await db.commit()
        await db.refresh(share)
    return share


async def delete_share(db: AsyncSession, share_id: str) -> bool:
    async with storage_errors(db, "delete share"):
        share = await db.get(Share, share_id)
        if share is None:
            return False
        await db.delete(share)
        await db.commit()
    logger.info("Share deleted: {}", share_id)
    return True
