"""Restart orchestration value objects.

One ``ServiceRestartResult`` per (repository, service) pair, grouped into one
``RepositoryRestartResult`` per repository.  ``RestartSummary`` is derived
from those results and never stored.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from devharbor.sandbox_runtime.models.enums import ServiceStatus


class ServiceDefinition(BaseModel):
    """A restartable service shared by every repository.

    ``restart_command`` may contain ``{repository}``, ``{service}`` and
    ``{path}`` placeholders.  Other braces are left untouched so shell
    syntax such as ``${HOME}`` survives.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    restart_command: str = Field(min_length=1)

    def render(self, *, repository: str, path: str) -> str:
        command = self.restart_command
        for key, value in (("{repository}", repository), ("{service}", self.name), ("{path}", path)):
            command = command.replace(key, value)
        return command


class ServiceRestartResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    service: str
    status: ServiceStatus
    output: str = ""
    """Captured output, truncated to the configured limit."""
    duration_ms: int = 0
    exit_code: int | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ServiceStatus.SUCCESS


class RepositoryRestartResult(BaseModel):
    repository: str
    path: str
    services: dict[str, ServiceRestartResult] = Field(default_factory=dict)
    """Ordered by the service definition order."""


class RestartSummary(BaseModel):
    repositories: int = 0
    total_services: int = 0
    successful: int = 0
    failed: int = 0


class RestartReport(BaseModel):
    """Outcome of one orchestration run, as returned to callers."""

    sandbox_id: str
    message: str
    summary: RestartSummary
    results: list[RepositoryRestartResult] = Field(default_factory=list)
    sandbox_started: bool = False
    """True when this run had to start the sandbox first."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def repository(self, name: str) -> RepositoryRestartResult:
        """Result for repository *name*.  Raises ``KeyError`` if absent."""
        for result in self.results:
            if result.repository == name:
                return result
        raise KeyError(name)
