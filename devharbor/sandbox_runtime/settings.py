"""Service configuration loaded from HARBOR_* environment variables."""

from __future__ import annotations

import secrets
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from devharbor.sandbox_runtime.models.restart import ServiceDefinition

DEFAULT_SERVICES: list[ServiceDefinition] = [
    ServiceDefinition(name="vscode", restart_command="supervisorctl restart {repository}-vscode"),
    ServiceDefinition(name="terminal", restart_command="supervisorctl restart {repository}-terminal"),
    ServiceDefinition(name="claude", restart_command="supervisorctl restart {repository}-claude"),
]


class HarborSettings(BaseSettings):
    """Devharbor Sandbox Runtime settings.

    All fields are read from environment variables with the ``HARBOR_`` prefix.
    For example, ``HARBOR_COMMAND_TIMEOUT=45`` maps to ``command_timeout``.
    Complex fields (``services``) are parsed from JSON.
    """

    model_config = SettingsConfigDict(
        env_prefix="HARBOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = False
    """Emit one JSON object per log line instead of the human format."""

    # -- Infrastructure --------------------------------------------------------
    database_url: str | None = None
    """PostgreSQL connection string (psycopg3).  Holds the workspace records."""

    # -- Sandbox provider ------------------------------------------------------
    sandbox_api_url: str = "https://app.daytona.io/api"
    sandbox_api_key: SecretStr | None = None
    """Provider API key.  Restart requests fail with missing_configuration when unset."""

    sandbox_http_timeout: float = 30.0
    """Timeout for provider control calls (state, start, stop)."""

    default_root_directory: str = "/home/daytona"
    """Root directory recorded for new workspaces that do not specify one."""

    # -- Restart orchestration -------------------------------------------------
    services: list[ServiceDefinition] = Field(default_factory=lambda: list(DEFAULT_SERVICES))
    """Ordered service set restarted for every repository."""

    command_timeout: float = Field(default=30.0, gt=0)
    output_limit: int = Field(default=500, ge=0)
    max_concurrency: int = Field(default=4, ge=1)
    """Repositories restarted in parallel.  ``1`` restarts them one after another."""

    concurrent_services: bool = False
    run_timeout: float = Field(default=300.0, gt=0)
    """Deadline for one orchestration run.  Restarts not yet issued are skipped after it."""

    # -- Sandbox start ---------------------------------------------------------
    start_timeout: float = Field(default=120.0, gt=0)
    start_poll_interval: float = Field(default=2.0, gt=0)
    start_grace_period: float = Field(default=3.0, ge=0)
    """Pause after the sandbox reports running, for in-sandbox services to come up."""

    # -- Auth ------------------------------------------------------------------
    auth_token: str | None = None
    """Bearer token for API access.  Auto-generated at startup if empty."""

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000
    graceful_shutdown_timeout: int = 120
    """Seconds to wait for in-flight restart runs during shutdown."""

    @field_validator("services")
    @classmethod
    def _unique_service_names(cls, value: list[ServiceDefinition]) -> list[ServiceDefinition]:
        names = [service.name for service in value]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            msg = f"Duplicate service names: {', '.join(duplicates)}"
            raise ValueError(msg)
        return value

    # -- Helpers ---------------------------------------------------------------

    def resolve_auth_token(self) -> str:
        """Return the configured token or generate a random one."""
        if self.auth_token:
            return self.auth_token
        return secrets.token_urlsafe(32)


@lru_cache(maxsize=1)
def get_settings() -> HarborSettings:
    """Return a cached settings instance.

    Call ``get_settings.cache_clear()`` in tests to force a re-read after
    overriding env vars.
    """
    return HarborSettings()
