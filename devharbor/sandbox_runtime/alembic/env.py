"""Alembic migration environment for workspace records.

The URL comes from ``sqlalchemy.url`` when a caller sets it on the Config
(tests do), otherwise from ``HARBOR_DATABASE_URL``.  Migrations always run
synchronously over psycopg3.
"""

from __future__ import annotations

from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import create_engine, pool

from devharbor.sandbox_runtime.db.tables import Base
from devharbor.sandbox_runtime.settings import get_settings

config = context.config
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

_SYNC_DRIVER = "postgresql+psycopg://"
_DRIVER_PREFIXES = ("postgresql+asyncpg://", "postgresql+psycopg_async://", "postgresql://", "postgres://")


def get_url() -> str:
    """Resolve the database URL and force the sync psycopg3 dialect."""
    url = config.get_main_option("sqlalchemy.url") or get_settings().database_url
    if not url:
        msg = "HARBOR_DATABASE_URL is not set. Cannot run migrations."
        raise RuntimeError(msg)
    for prefix in _DRIVER_PREFIXES:
        if url.startswith(prefix):
            return _SYNC_DRIVER + url.removeprefix(prefix)
    return url


def include_object(obj: Any, name: str | None, type_: str, reflected: bool, compare_to: Any) -> bool:
    """Skip tables that exist in the database but not in our metadata."""
    return not (type_ == "table" and reflected and compare_to is None)


def _configure_options() -> dict[str, Any]:
    return {
        "target_metadata": target_metadata,
        "include_object": include_object,
        "compare_type": True,
        "compare_server_default": True,
    }


def run_migrations_offline() -> None:
    """Emit SQL without connecting."""
    context.configure(
        url=get_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(get_url(), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options())
        with context.begin_transaction():
            context.run_migrations()
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
