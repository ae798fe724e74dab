"""Shared test fixtures.

Unit and API tests run against a fresh in-memory SQLite database per test
(aiosqlite, one shared connection via ``StaticPool``), so they need no
Docker.  The PostgreSQL container fixtures at the bottom are only pulled in
by tests marked ``@pytest.mark.integration``.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.pool import StaticPool

from shelfmark.server.db.engine import create_engine, create_session_factory
from shelfmark.server.db.tables import Base
from shelfmark.server.settings import _get_settings_cached

PACKAGE_DIR = Path(__file__).parent.parent / "shelfmark"


def _set_env(key: str, value: str) -> None:
    """Set an env var and invalidate the settings cache."""
    os.environ[key] = value
    _get_settings_cached.cache_clear()


# ---------------------------------------------------------------------------
# Function-scoped: in-memory SQLite with the full schema
# ---------------------------------------------------------------------------


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    engine = create_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async SQLAlchemy session on the per-test database.

    Managers commit for real; isolation comes from the database being thrown
    away with the engine.
    """
    async with create_session_factory(async_engine)() as session:
        yield session


# ---------------------------------------------------------------------------
# Session-scoped: PostgreSQL container (integration tests only)
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def pg_container() -> Iterator[object]:
    """Start a PostgreSQL 17 container for the test session."""
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer(
        image="postgres:17",
        username="test",
        password="test",
        dbname="shelfmark_test",
        driver="psycopg",
    ) as pg:
        yield pg


@pytest.fixture(scope="session")
def pg_url(pg_container) -> str:  # type: ignore[no-untyped-def]
    """PostgreSQL URL (psycopg3 dialect) with Alembic migrations applied."""
    url = pg_container.get_connection_url()
    _set_env("SHELFMARK_DATABASE_URL", url)

    from alembic import command
    from alembic.config import Config

    cfg = Config(str(PACKAGE_DIR / "server" / "alembic.ini"))
    command.upgrade(cfg, "head")

    return url
