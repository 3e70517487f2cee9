"""API request / response schemas.

These thin schemas sit between HTTP and the managers / facade.  Restart
endpoints return ``RestartReport`` directly; the schemas here cover the
workspace record CRUD and the small lifecycle endpoints.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from devharbor.sandbox_runtime.models.enums import Outcome, SandboxState
from devharbor.sandbox_runtime.models.workspace import RepositoryDescriptor

# ---------------------------------------------------------------------------
# Workspace records
# ---------------------------------------------------------------------------


class WorkspaceCreate(BaseModel):
    """Input for registering a workspace record."""

    sandbox_id: str = Field(min_length=1)
    owner_id: str = Field(min_length=1)
    name: str | None = None
    root_directory: str | None = Field(default=None, description="Defaults to HARBOR_DEFAULT_ROOT_DIRECTORY.")
    repositories: list[RepositoryDescriptor] = Field(default_factory=list)


class WorkspaceUpdate(BaseModel):
    """Partial update -- only fields explicitly set by the caller are applied."""

    name: str | None = None
    root_directory: str | None = None
    repositories: list[RepositoryDescriptor] | None = None


class WorkspaceResponse(BaseModel):
    """Serialized workspace record returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    sandbox_id: str
    owner_id: str
    name: str | None = None
    root_directory: str
    repositories: list[RepositoryDescriptor]
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Sandbox lifecycle
# ---------------------------------------------------------------------------


class SandboxStatusResponse(BaseModel):
    sandbox_id: str
    state: SandboxState


class SandboxStartResponse(BaseModel):
    sandbox_id: str
    state: SandboxState
    started: bool
    """False when the sandbox was already running."""


class SandboxStopResponse(BaseModel):
    sandbox_id: str
    stopped: bool
    """False when the sandbox was not running."""


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    error: str
    outcome: Outcome
