"""Remote call interfaces consumed by the orchestration core.

``CommandExecutor`` is the core's only path into a sandbox;
``SandboxController`` covers the provider-side lifecycle calls.  The
production implementation of both is ``SandboxApiClient``; tests substitute
in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from devharbor.sandbox_runtime.models.workspace import WorkspaceHandle


@dataclass(frozen=True)
class CommandResult:
    """Exit status and combined output of one remote command."""

    exit_code: int
    output: str = ""


@runtime_checkable
class CommandExecutor(Protocol):
    async def execute(self, handle: WorkspaceHandle, command: str, working_dir: str, timeout: float) -> CommandResult:
        """Run *command* in *working_dir* inside the sandbox.

        Raises ``SandboxApiError`` on transport or provider failure and
        ``TimeoutError`` when *timeout* elapses.
        """
        ...


@runtime_checkable
class SandboxController(Protocol):
    async def get_state(self, handle: WorkspaceHandle) -> str:
        """Return the provider's raw state string (e.g. ``"started"``)."""
        ...

    async def start(self, handle: WorkspaceHandle) -> None:
        """Issue the start instruction.  Raises ``SandboxApiError`` on failure."""
        ...

    async def stop(self, handle: WorkspaceHandle) -> None:
        """Issue the stop instruction.  Raises ``SandboxApiError`` on failure."""
        ...
