"""Shared enumerations used across the sandbox runtime."""

from __future__ import annotations

from enum import StrEnum

# -- Sandbox -----------------------------------------------------------------


class SandboxState(StrEnum):
    """Coarse sandbox state as seen by the restart orchestrator."""

    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


PROVIDER_STATES: dict[str, SandboxState] = {
    "started": SandboxState.RUNNING,
    "stopped": SandboxState.STOPPED,
    "archived": SandboxState.STOPPED,
}
"""Provider state string -> SandboxState.  Anything else is UNKNOWN."""


# -- Restart -----------------------------------------------------------------


class ServiceStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"


# -- Outcome -----------------------------------------------------------------


class Outcome(StrEnum):
    """Stable failure taxonomy handed to the transport boundary."""

    UNAUTHORIZED = "unauthorized"
    MISSING_CONFIGURATION = "missing_configuration"
    NOT_FOUND = "not_found"
    START_FAILURE = "start_failure"
    INTERNAL = "internal"
