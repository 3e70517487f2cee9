"""Data models for the sandbox runtime."""

from devharbor.sandbox_runtime.models.api import (
    ErrorResponse,
    SandboxStartResponse,
    SandboxStatusResponse,
    WorkspaceCreate,
    WorkspaceResponse,
    WorkspaceUpdate,
)
from devharbor.sandbox_runtime.models.enums import Outcome, SandboxState, ServiceStatus
from devharbor.sandbox_runtime.models.restart import (
    RepositoryRestartResult,
    RestartReport,
    RestartSummary,
    ServiceDefinition,
    ServiceRestartResult,
)
from devharbor.sandbox_runtime.models.workspace import (
    RepositoryDescriptor,
    WorkspaceAccess,
    WorkspaceHandle,
)

__all__ = [
    # API schemas
    "ErrorResponse",
    # Enums
    "Outcome",
    # Restart
    "RepositoryDescriptor",
    "RepositoryRestartResult",
    "RestartReport",
    "RestartSummary",
    "SandboxStartResponse",
    "SandboxState",
    "SandboxStatusResponse",
    "ServiceDefinition",
    "ServiceRestartResult",
    "ServiceStatus",
    # Workspace
    "WorkspaceAccess",
    "WorkspaceCreate",
    "WorkspaceHandle",
    "WorkspaceResponse",
    "WorkspaceUpdate",
]
