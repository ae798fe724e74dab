"""Fixtures for server tests: a small bookmark tree and an HTTP client."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shelfmark.server.app import app
from shelfmark.server.db.tables import Bookmark, Collection, Space, Workspace
from shelfmark.server.deps import get_db
from shelfmark.server.managers.bookmarks import create_bookmark
from shelfmark.server.managers.collections import create_collection
from shelfmark.server.managers.spaces import create_space
from shelfmark.server.managers.workspaces import create_workspace
from shelfmark.server.models.api import BookmarkCreate, CollectionCreate, SpaceCreate
from shelfmark.server.preview import PreviewFetcher

FAVICON_SERVICE = "https://icons.test/{host}.png"

PAGE_HTML = b"""<html><head>
<title>Fallback title</title>
<meta property="og:title" content="Example Page">
<meta property="og:description" content="An example.">
<meta property="og:image" content="/static/card.png">
</head><body></body></html>"""


def fake_site(request: httpx.Request) -> httpx.Response:
    """Stand-in for the outside world used by the app's preview fetcher."""
    if request.url.host == "blocked.test":
        return httpx.Response(403, text="Forbidden")
    return httpx.Response(200, content=PAGE_HTML, headers={"Content-Type": "text/html"})


@dataclass
class Tree:
    """``w1 / Personal / Reading / [A, B, C]`` with ``orderIndex`` 0, 1, 2."""

    workspace: Workspace
    space: Space
    collection: Collection
    bookmarks: list[Bookmark]


@pytest.fixture
async def tree(db_session: AsyncSession) -> Tree:
    workspace = await create_workspace(db_session, "w1")
    space = await create_space(db_session, SpaceCreate(workspace_id="w1", name="Personal"))
    collection = await create_collection(db_session, CollectionCreate(space_id=space.id, name="Reading"))
    bookmarks = [
        await create_bookmark(
            db_session,
            BookmarkCreate(collection_id=collection.id, title=title, url=f"https://example.com/{title.lower()}"),
        )
        for title in ("A", "B", "C")
    ]
    return Tree(workspace, space, collection, bookmarks)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app with the test DB session.

    Overrides ``get_db`` so every request uses the ``db_session`` fixture.
    The app lifespan does NOT run under ``ASGITransport``, so state fields
    are pre-set here; previews go to :func:`fake_site`.
    """

    async def _override_get_db() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db

    app.state.db_engine = None
    app.state.db_session_factory = None
    preview_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_site))
    app.state.preview_fetcher = PreviewFetcher(preview_client, timeout=2.0, favicon_service=FAVICON_SERVICE)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await preview_client.aclose()
    app.dependency_overrides.clear()
