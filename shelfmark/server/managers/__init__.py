"""Data access managers (the domain repository).

Each module provides async functions that encapsulate CRUD operations and
the tree's consistency rules.  Managers accept ``AsyncSession`` as their
first parameter.  A missing row is reported as ``None`` (getters, updaters)
or ``False`` (deleters); storage failures surface as
:class:`~shelfmark.server.errors.StorageError`.  Managers never raise HTTP
exceptions -- that translation is the router's responsibility.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shelfmark.server.errors import StorageError


def new_id() -> str:
    return str(uuid.uuid4())


@asynccontextmanager
async def storage_errors(db: AsyncSession, action: str) -> AsyncIterator[None]:
    """Roll back and re-raise driver errors as a generic ``StorageError``.

    *action* completes the client-facing message ``"Failed to {action}"``.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.opt(exception=exc).error("Storage failure while trying to {}", action)
        raise StorageError(f"Failed to {action}") from exc
