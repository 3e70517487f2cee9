"""Workspace data models.

A workspace is one user's sandbox plus the repositories deployed inside it.
The record lives in PostgreSQL; the handle is what the auth gate hands to the
orchestrator for the duration of a single request.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RepositoryDescriptor(BaseModel):
    """A repository deployed inside a sandbox."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    path: str = Field(default="", description="Relative to the sandbox root; defaults to projects/<name>.")

    @model_validator(mode="before")
    @classmethod
    def _default_path(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("name") and not data.get("path"):
            return {**data, "path": f"projects/{data['name']}"}
        return data


class WorkspaceHandle(BaseModel):
    """Validated, read-only access to one sandbox.  Lives for one request."""

    model_config = ConfigDict(frozen=True)

    sandbox_id: str
    root_directory: str
    owner_identity: str

    def working_directory(self, repository: RepositoryDescriptor) -> str:
        """Absolute in-sandbox path of *repository*."""
        return str(PurePosixPath(self.root_directory) / repository.path)


class WorkspaceAccess(BaseModel):
    """What a successful authentication yields: the handle and its repositories."""

    model_config = ConfigDict(frozen=True)

    handle: WorkspaceHandle
    repositories: tuple[RepositoryDescriptor, ...] = ()
