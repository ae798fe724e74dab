"""SQLAlchemy ORM models for the bookmark tree.

These are the single source of truth for the database schema. Alembic reads
``Base.metadata`` to autogenerate migration scripts.

The hierarchy is Workspace -> Space -> Collection -> Bookmark, with Share
hanging off Workspace.  Foreign keys declare ``ON DELETE CASCADE`` for stores
that honour it, but the managers delete children explicitly so the tree stays
closed on stores that do not (SQLite without ``PRAGMA foreign_keys``).

Uses SQLAlchemy 2.0 declarative style with ``Mapped`` type annotations.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Timezone-aware timestamp type for all datetime columns.
TimestampTZ = DateTime(timezone=True)

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in unit tests).
JsonType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base with naming convention for constraints."""

    pass


# Apply naming convention to the metadata for deterministic constraint names.
Base.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Workspace(Base):
    __tablename__ = "workspaces"

    id: Mapped[str] = mapped_column(primary_key=True)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        TimestampTZ, default=utcnow, server_default=func.now(), onupdate=utcnow
    )


class Space(Base):
    __tablename__ = "spaces"
    __table_args__ = (Index("ix_spaces_workspace_id", "workspace_id"),)

    id: Mapped[str] = mapped_column(primary_key=True)
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.id", ondelete="CASCADE"))
    name: Mapped[str]
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str] = mapped_column(default="folder", server_default="folder")
    order_index: Mapped[int] = mapped_column(default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        TimestampTZ, default=utcnow, server_default=func.now(), onupdate=utcnow
    )


class Collection(Base):
    __tablename__ = "collections"
    __table_args__ = (Index("ix_collections_space_id", "space_id"),)

    id: Mapped[str] = mapped_column(primary_key=True)
    space_id: Mapped[str] = mapped_column(ForeignKey("spaces.id", ondelete="CASCADE"))
    name: Mapped[str]
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str] = mapped_column(default="folder", server_default="folder")
    order_index: Mapped[int] = mapped_column(default=0, server_default="0")
    view_mode: Mapped[str] = mapped_column(default="grid", server_default="grid")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        TimestampTZ, default=utcnow, server_default=func.now(), onupdate=utcnow
    )


class Bookmark(Base):
    __tablename__ = "bookmarks"
    __table_args__ = (
        Index("ix_bookmarks_collection_id", "collection_id"),
        Index("ix_bookmarks_updated_at", "updated_at"),
        Index("ix_bookmarks_is_pinned", "is_pinned"),
    )

    id: Mapped[str] = mapped_column(primary_key=True)
    collection_id: Mapped[str] = mapped_column(ForeignKey("collections.id", ondelete="CASCADE"))
    title: Mapped[str] = mapped_column(Text)
    url: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    favicon: Mapped[str | None] = mapped_column(Text)
    preview: Mapped[dict | None] = mapped_column(JsonType)
    tags: Mapped[list] = mapped_column(JsonType, default=list, server_default="[]")
    is_pinned: Mapped[bool] = mapped_column(default=False, server_default="false")
    order_index: Mapped[int] = mapped_column(default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        TimestampTZ, default=utcnow, server_default=func.now(), onupdate=utcnow
    )


class Share(Base):
    __tablename__ = "shares"
    __table_args__ = (Index("ix_shares_workspace_id", "workspace_id"),)

    id: Mapped[str] = mapped_column(primary_key=True)
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.id", ondelete="CASCADE"))
    view_key: Mapped[str] = mapped_column(unique=True)
    name: Mapped[str | None]
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())
    expires_at: Mapped[datetime | None] = mapped_column(TimestampTZ)
