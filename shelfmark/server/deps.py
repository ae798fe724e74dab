"""FastAPI dependency injection for DB sessions and the preview fetcher.

Usage in route handlers::

    @router.post("/spaces")
    async def create_space(db: DbSession, body: SpaceCreate) -> SpaceResponse:
        ...

``get_db`` raises HTTP 503 if no database was configured
(SHELFMARK_DATABASE_URL unset).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shelfmark.server.preview import PreviewFetcher


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an async SQLAlchemy session, closing it after the request.

    Managers commit their own writes; anything left uncommitted when the
    handler returns or raises is rolled back on close.
    """
    session_factory = request.app.state.db_session_factory
    if session_factory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured (SHELFMARK_DATABASE_URL is unset).",
        )
    session: AsyncSession = session_factory()
    try:
        yield session
    finally:
        await session.close()


def get_preview_fetcher(request: Request) -> PreviewFetcher:
    """Return the shared preview fetcher (one pooled HTTP client per process)."""
    return request.app.state.preview_fetcher


# -- Annotated type aliases for concise route signatures ---------------------

DbSession = Annotated[AsyncSession, Depends(get_db)]
"""Annotated dependency: async SQLAlchemy session (auto-closed after request)."""

PreviewFetcherDep = Annotated[PreviewFetcher, Depends(get_preview_fetcher)]
"""Annotated dependency: shared :class:`PreviewFetcher`."""
