"""Async SQLAlchemy engine and session factory.

Production uses psycopg3 (``postgresql+psycopg://``), which serves both the
async app and the synchronous Alembic migrations from the same URL.  SQLite
URLs (``sqlite+aiosqlite://``) are accepted for local development; pool sizing
does not apply to them.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine


def create_engine(database_url: str, **kwargs: object) -> AsyncEngine:
    """Create an async SQLAlchemy engine with production-ready pool settings.

    Default pool parameters are tuned for a small single-instance service:

    - **pool_size=5**: baseline connections kept open.
    - **max_overflow=10**: burst capacity above pool_size.
    - **pool_pre_ping=True**: test connections before checkout to handle
      server-side disconnects (PG restarts, idle timeouts).
    - **pool_recycle=3600**: recycle connections after 1 hour.

    All defaults can be overridden via *kwargs*.
    """
    is_sqlite = make_url(database_url).get_backend_name() == "sqlite"
    defaults: dict[str, object] = {"echo": False}
    if not is_sqlite:
        defaults.update(
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
    defaults.update(kwargs)
    engine = create_async_engine(database_url, **defaults)  # type: ignore[arg-type]
    if is_sqlite:
        _enable_sqlite_savepoints(engine)
    return engine


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT nests inside a real transaction.

    The sqlite3 driver defers BEGIN until the first DML statement, which makes
    ``begin_nested()`` open the outermost transaction instead.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to *engine*.

    ``expire_on_commit=False`` so that ORM instances remain usable after
    commit without triggering lazy loads (important for async code where
    implicit IO is forbidden).
    """
    return async_sessionmaker(engine, expire_on_commit=False)
