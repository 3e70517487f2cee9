"""Caller authorisation for sandbox operations.

The gate turns ``(sandbox_id, caller_identity)`` into a ``WorkspaceAccess``
or raises.  Checks run in a fixed order -- identity, provider configuration,
record ownership -- and none of them touches the sandbox, so a rejected
caller never causes a remote command.

Caller identity is established upstream (the identity proxy sets the
``X-Harbor-Caller`` header); this gate only decides whether that identity
owns the requested sandbox.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from loguru import logger

from devharbor.sandbox_runtime.errors import MissingConfigurationError, UnauthorizedError, WorkspaceNotFoundError
from devharbor.sandbox_runtime.managers.workspaces import get_workspace, to_access

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from devharbor.sandbox_runtime.models.workspace import WorkspaceAccess


@runtime_checkable
class AuthGate(Protocol):
    async def authenticate(self, sandbox_id: str, caller_identity: str | None) -> WorkspaceAccess:
        """Raise ``UnauthorizedError``, ``MissingConfigurationError`` or ``WorkspaceNotFoundError``."""
        ...


class RecordAuthGate:
    """Authorise callers against workspace records in PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, api_key_configured: bool) -> None:
        self._session_factory = session_factory
        self._api_key_configured = api_key_configured

    async def authenticate(self, sandbox_id: str, caller_identity: str | None) -> WorkspaceAccess:
        if not caller_identity or not caller_identity.strip():
            raise UnauthorizedError("Unauthorized")

        if not self._api_key_configured:
            msg = "Sandbox provider API key is not configured (HARBOR_SANDBOX_API_KEY is unset)."
            raise MissingConfigurationError(msg)

        async with self._session_factory() as db:
            workspace = await get_workspace(db, sandbox_id)

        # Someone else's sandbox is reported exactly like a missing one.
        if workspace.owner_id != caller_identity:
            logger.warning("Caller {} denied access to sandbox {}", caller_identity, sandbox_id)
            raise WorkspaceNotFoundError(sandbox_id)

        access = to_access(workspace)
        logger.debug(
            "Caller {} authorised for sandbox {} ({} repositories)",
            caller_identity,
            sandbox_id,
            len(access.repositories),
        )
        return access
