"""Workspace record CRUD operations.

Encapsulates all workspace data access: create, list, get, update, delete.
Repositories are stored as an ordered JSONB list and always round-trip
through ``RepositoryDescriptor`` so defaults (``projects/<name>``) are
applied once, at write time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from devharbor.sandbox_runtime.db.tables import Workspace
from devharbor.sandbox_runtime.errors import DuplicateWorkspaceError, WorkspaceNotFoundError
from devharbor.sandbox_runtime.models.workspace import RepositoryDescriptor, WorkspaceAccess, WorkspaceHandle

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from devharbor.sandbox_runtime.models.api import WorkspaceCreate, WorkspaceUpdate


def _dump_repositories(repositories: Iterable[RepositoryDescriptor]) -> list[dict]:
    return [repository.model_dump() for repository in repositories]


def load_repositories(workspace: Workspace) -> list[RepositoryDescriptor]:
    return [RepositoryDescriptor.model_validate(item) for item in workspace.repositories or []]


def to_access(workspace: Workspace) -> WorkspaceAccess:
    """Build the request-scoped handle (plus repositories) from a record."""
    return WorkspaceAccess(
        handle=WorkspaceHandle(
            sandbox_id=workspace.sandbox_id,
            root_directory=workspace.root_directory,
            owner_identity=workspace.owner_id,
        ),
        repositories=tuple(load_repositories(workspace)),
    )


async def create_workspace(db: AsyncSession, body: WorkspaceCreate, *, default_root_directory: str) -> Workspace:
    """Register a workspace.  Raises ``DuplicateWorkspaceError`` if the sandbox is taken."""
    existing = await db.get(Workspace, body.sandbox_id)
    if existing is not None:
        raise DuplicateWorkspaceError(body.sandbox_id)

    workspace = Workspace(
        sandbox_id=body.sandbox_id,
        owner_id=body.owner_id,
        name=body.name,
        root_directory=body.root_directory or default_root_directory,
        repositories=_dump_repositories(body.repositories),
    )
    db.add(workspace)
    await db.commit()
    await db.refresh(workspace)
    return workspace


async def list_workspaces(
    db: AsyncSession,
    *,
    owner_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Workspace]:
    """List workspace records, newest first, optionally for one owner."""
    stmt = select(Workspace).order_by(Workspace.created_at.desc())
    if owner_id is not None:
        stmt = stmt.where(Workspace.owner_id == owner_id)
    stmt = stmt.limit(limit).offset(offset)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_workspace(db: AsyncSession, sandbox_id: str) -> Workspace:
    """Get a workspace by sandbox ID.  Raises ``WorkspaceNotFoundError`` if missing."""
    workspace = await db.get(Workspace, sandbox_id)
    if workspace is None:
        raise WorkspaceNotFoundError(sandbox_id)
    return workspace


async def update_workspace(db: AsyncSession, sandbox_id: str, body: WorkspaceUpdate) -> Workspace:
    """Partially update a workspace.  Raises ``WorkspaceNotFoundError`` if missing."""
    workspace = await get_workspace(db, sandbox_id)

    changes = body.model_dump(exclude_unset=True)
    if not changes:
        return workspace

    if "repositories" in changes:
        changes["repositories"] = _dump_repositories(body.repositories or [])

    for key, value in changes.items():
        if value is None and key != "name":
            continue
        setattr(workspace, key, value)

    await db.commit()
    await db.refresh(workspace)
    return workspace


async def delete_workspace(db: AsyncSession, sandbox_id: str) -> None:
    """Delete a workspace.  Raises ``WorkspaceNotFoundError`` if missing."""
    workspace = await get_workspace(db, sandbox_id)
    await db.delete(workspace)
    await db.commit()
