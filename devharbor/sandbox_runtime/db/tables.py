"""SQLAlchemy ORM models for PostgreSQL.

Single source of truth for the database schema; Alembic reads
``Base.metadata`` to autogenerate migrations.  Uses SQLAlchemy 2.0
declarative style with ``Mapped`` type annotations.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

TimestampTZ = DateTime(timezone=True)


class Base(DeclarativeBase):
    pass


# Deterministic constraint names for migrations.
Base.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Workspace(Base):
    """One user's sandbox and the repositories deployed in it."""

    __tablename__ = "workspaces"
    __table_args__ = (Index("ix_workspaces_owner_id", "owner_id"),)

    sandbox_id: Mapped[str] = mapped_column(primary_key=True)
    owner_id: Mapped[str] = mapped_column(nullable=False)
    name: Mapped[str | None]
    root_directory: Mapped[str] = mapped_column(Text, nullable=False)
    repositories: Mapped[list] = mapped_column(JSONB, nullable=False, server_default="[]")
    """Ordered list of ``{"name": ..., "path": ...}`` objects."""
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())
