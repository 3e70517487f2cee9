"""Workspace record CRUD endpoints (RPC-style).

All write operations use POST; reads use GET.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from devharbor.sandbox_runtime.db.tables import Workspace
from devharbor.sandbox_runtime.deps import DbSession, Settings
from devharbor.sandbox_runtime.errors import DuplicateWorkspaceError, WorkspaceNotFoundError
from devharbor.sandbox_runtime.managers import workspaces as manager
from devharbor.sandbox_runtime.models.api import WorkspaceCreate, WorkspaceResponse, WorkspaceUpdate

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


def _not_found(sandbox_id: str) -> HTTPException:
    return HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Workspace '{sandbox_id}' not found.")


@router.post("/create", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
async def create_workspace(body: WorkspaceCreate, db: DbSession, settings: Settings) -> Workspace:
    """Register a workspace record for a sandbox."""
    try:
        return await manager.create_workspace(db, body, default_root_directory=settings.default_root_directory)
    except DuplicateWorkspaceError:
        raise HTTPException(
            status.HTTP_409_CONFLICT, detail=f"Workspace '{body.sandbox_id}' already exists."
        ) from None


@router.get("/list", response_model=list[WorkspaceResponse])
async def list_workspaces(
    db: DbSession,
    owner_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> list[Workspace]:
    """List workspace records, newest first."""
    return await manager.list_workspaces(db, owner_id=owner_id, limit=limit, offset=offset)


@router.get("/{sandbox_id}/get", response_model=WorkspaceResponse)
async def get_workspace(sandbox_id: str, db: DbSession) -> Workspace:
    try:
        return await manager.get_workspace(db, sandbox_id)
    except WorkspaceNotFoundError:
        raise _not_found(sandbox_id) from None


@router.post("/{sandbox_id}/update", response_model=WorkspaceResponse)
async def update_workspace(sandbox_id: str, body: WorkspaceUpdate, db: DbSession) -> Workspace:
    """Partially update a workspace record."""
    try:
        return await manager.update_workspace(db, sandbox_id, body)
    except WorkspaceNotFoundError:
        raise _not_found(sandbox_id) from None


@router.post("/{sandbox_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workspace(sandbox_id: str, db: DbSession) -> None:
    try:
        await manager.delete_workspace(db, sandbox_id)
    except WorkspaceNotFoundError:
        raise _not_found(sandbox_id) from None
