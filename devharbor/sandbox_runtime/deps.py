"""FastAPI dependency injection for DB sessions, the facade and auth.

Usage in route handlers::

    @router.post("/things")
    async def create_thing(db: DbSession, thing: ThingCreate) -> ThingResponse:
        ...

    @router.post("/{sandbox_id}/restart")
    async def restart(sandbox_id: str, facade: Facade, caller: CallerIdentity) -> RestartReport:
        ...

Dependencies raise HTTP 503 if the backing service was not configured
(HARBOR_DATABASE_URL unset).
"""

from __future__ import annotations

import secrets
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from devharbor.sandbox_runtime.execution.facade import RestartOrchestrationFacade
from devharbor.sandbox_runtime.registry import RunRegistry
from devharbor.sandbox_runtime.settings import HarborSettings

_bearer = HTTPBearer(auto_error=False)


async def verify_token(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
) -> None:
    """Reject requests whose bearer token does not match the server token."""
    expected: str = request.app.state.auth_token
    if credentials is None or not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing bearer token.",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an async SQLAlchemy session, closing it after the request.

    The caller (route handler or manager) is responsible for calling
    ``session.commit()`` on success.  If the handler raises, the session is
    simply closed and the implicit transaction is rolled back.
    """
    session_factory = request.app.state.db_session_factory
    if session_factory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured (HARBOR_DATABASE_URL is unset).",
        )
    session: AsyncSession = session_factory()
    try:
        yield session
    finally:
        await session.close()


def get_facade(request: Request) -> RestartOrchestrationFacade:
    facade: RestartOrchestrationFacade | None = request.app.state.facade
    if facade is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Restart orchestration unavailable (HARBOR_DATABASE_URL is unset).",
        )
    return facade


def get_registry(request: Request) -> RunRegistry:
    return request.app.state.registry


def get_app_settings(request: Request) -> HarborSettings:
    return request.app.state.settings


def get_caller_identity(x_harbor_caller: Annotated[str | None, Header()] = None) -> str | None:
    """Caller identity as asserted by the upstream identity proxy."""
    return x_harbor_caller


# -- Annotated type aliases for concise route signatures ---------------------

DbSession = Annotated[AsyncSession, Depends(get_db)]
"""Annotated dependency: async SQLAlchemy session (auto-closed after request)."""

Facade = Annotated[RestartOrchestrationFacade, Depends(get_facade)]
"""Annotated dependency: the shared restart orchestration facade."""

Registry = Annotated[RunRegistry, Depends(get_registry)]

Settings = Annotated[HarborSettings, Depends(get_app_settings)]

CallerIdentity = Annotated[str | None, Depends(get_caller_identity)]
"""Annotated dependency: ``X-Harbor-Caller`` header value (may be absent)."""
