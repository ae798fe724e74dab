"""Domain exceptions raised by the managers.

Managers never raise HTTP exceptions; routers (and the app-level exception
handlers) translate these into status codes:

==========================  ======
Exception                   Status
==========================  ======
``ParentNotFoundError``     404
``InvalidMembershipError``  400
``ImportFormatError``       400
``DuplicateWorkspaceError`` 409
``ReorderConflictError``    409
``StorageError``            500
==========================  ======

Plain "row not found" is not an exception at all: getters return ``None``
and deleters return ``False``.
"""

from __future__ import annotations


class ParentNotFoundError(LookupError):
    """Raised when a create or move references a parent row that does not exist."""

    def __init__(self, kind: str, parent_id: str) -> None:
        self.kind = kind
        self.parent_id = parent_id
        super().__init__(f"{kind} '{parent_id}' not found")


class DuplicateWorkspaceError(ValueError):
    """Raised when a workspace with the given ID already exists."""


class InvalidMembershipError(ValueError):
    """Raised when a reorder lists ids that are not bookmarks of the collection."""

    def __init__(self, collection_id: str, foreign_ids: list[str], duplicate_ids: list[str] | None = None) -> None:
        self.collection_id = collection_id
        self.foreign_ids = foreign_ids
        self.duplicate_ids = duplicate_ids or []
        parts = []
        if foreign_ids:
            parts.append(f"not in collection: {', '.join(foreign_ids)}")
        if self.duplicate_ids:
            parts.append(f"listed more than once: {', '.join(self.duplicate_ids)}")
        super().__init__(f"Invalid bookmark order for collection '{collection_id}' ({'; '.join(parts)})")


class ImportFormatError(ValueError):
    """Raised when an import document lacks the ``spaces``/``collections``/``bookmarks`` arrays."""


class StorageError(RuntimeError):
    """The relational store rejected a write or could not be reached.

    The message is safe to show to clients; the driver exception is kept as
    ``__cause__`` for logging only.
    """

    def __init__(self, message: str = "Storage operation failed") -> None:
        super().__init__(message)


class ReorderConflictError(StorageError):
    """A reorder write hit a row that changed concurrently; nothing was committed."""
