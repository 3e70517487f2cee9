"""Integration smoke tests for the database fixtures.

Verifies the testcontainers + Alembic migration + savepoint rollback
pipeline works end-to-end, and that the migration matches the ORM models.
"""

from __future__ import annotations

import pytest
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from devharbor.sandbox_runtime.db.tables import Workspace

pytestmark = pytest.mark.integration


async def test_alembic_migrations_applied(db_session: AsyncSession):
    """The workspaces table and its owner index should exist."""
    result = await db_session.execute(
        text("SELECT table_name FROM information_schema.tables WHERE table_schema = 'public' ORDER BY table_name")
    )
    tables = sorted(row[0] for row in result)
    assert "workspaces" in tables
    assert "alembic_version" in tables

    result = await db_session.execute(text("SELECT indexname FROM pg_indexes WHERE tablename = 'workspaces'"))
    assert "ix_workspaces_owner_id" in {row[0] for row in result}


async def test_repositories_default_to_empty_list(db_session: AsyncSession):
    db_session.add(Workspace(sandbox_id="sb-defaults", owner_id="u", root_directory="/home/daytona"))
    await db_session.commit()

    row = (await db_session.execute(select(Workspace).where(Workspace.sandbox_id == "sb-defaults"))).scalar_one()
    await db_session.refresh(row)
    assert row.repositories == []
    assert row.created_at is not None


async def test_savepoint_rollback_isolation(db_session: AsyncSession):
    """Rows inserted in a test should not persist to the next test."""
    db_session.add(
        Workspace(
            sandbox_id="sb-isolation",
            owner_id="u",
            root_directory="/home/daytona",
            repositories=[{"name": "a", "path": "projects/a"}],
        )
    )
    await db_session.commit()  # commits savepoint, not the real txn

    result = await db_session.execute(select(Workspace).where(Workspace.sandbox_id == "sb-isolation"))
    assert result.scalar_one().repositories == [{"name": "a", "path": "projects/a"}]


async def test_savepoint_rollback_clean_state(db_session: AsyncSession):
    """Previous test's data should have been rolled back."""
    result = await db_session.execute(select(Workspace).where(Workspace.sandbox_id == "sb-isolation"))
    row = result.scalar_one_or_none()
    assert row is None, "Savepoint rollback did not clean up previous test's data"
