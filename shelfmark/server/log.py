"""Logging configuration using loguru.

Everything, including stdlib loggers from uvicorn, sqlalchemy and httpx,
ends up in one loguru sink.  Each line carries a ``request_id`` field: the
id bound by :func:`request_context` for the HTTP request being served, or
``-`` outside of one (startup, CLI commands).
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger

REQUEST_ID_HEADER = "X-Request-ID"
NO_REQUEST = "-"

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[request_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Library loggers that are too chatty at INFO.
_LIBRARY_LEVELS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


class _InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru at the caller's frame."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", *, echo_sql: bool = False) -> None:
    """Install the loguru sink and route stdlib logging into it.

    With *echo_sql* the SQLAlchemy engine logger is raised to INFO so SQL
    statements appear in the same stream.
    """
    level = level.upper()

    logger.remove()
    logger.configure(extra={"request_id": NO_REQUEST})
    logger.add(sys.stderr, level=level, format=_FORMAT)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name, library_level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if echo_sql else logging.WARNING)

    logger.info("Logging initialised (level={}, echo_sql={})", level, echo_sql)


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


@contextmanager
def request_context(request_id: str | None = None) -> Iterator[str]:
    """Bind *request_id* (or a fresh one) to every log line emitted inside."""
    request_id = request_id or new_request_id()
    with logger.contextualize(request_id=request_id):
        yield request_id
