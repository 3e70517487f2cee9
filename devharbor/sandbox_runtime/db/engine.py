"""Async SQLAlchemy engine and session factory (psycopg3)."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

POOL_DEFAULTS: dict[str, object] = {
    "echo": False,
    "pool_size": 5,
    "max_overflow": 5,
    "pool_pre_ping": True,
    "pool_recycle": 1800,
}
"""Workspace lookups are short single-row reads; a small pool is plenty."""


def create_engine(database_url: str, **kwargs: object) -> AsyncEngine:
    """Create an async engine; *kwargs* override ``POOL_DEFAULTS``."""
    options = {**POOL_DEFAULTS, **kwargs}
    return create_async_engine(database_url, **options)  # type: ignore[arg-type]


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with ``expire_on_commit=False`` so rows stay readable after commit."""
    return async_sessionmaker(engine, expire_on_commit=False)
