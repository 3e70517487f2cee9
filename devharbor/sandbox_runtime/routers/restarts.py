"""Sandbox restart and lifecycle endpoints.

Failures are folded through ``classify_error`` and rendered as
``{"error", "outcome"}`` with the status from ``OUTCOME_STATUS``; anything
outside the domain errors is logged with its traceback and reported as
``internal``.  Per-service failures are not errors here -- they are part of
the ``RestartReport``.

The caller is authenticated before a run slot is claimed, so a rejected
caller never holds the sandbox's slot.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse
from loguru import logger

from devharbor.sandbox_runtime.context import RestartRun
from devharbor.sandbox_runtime.deps import CallerIdentity, Facade, Registry, Settings
from devharbor.sandbox_runtime.errors import DOMAIN_ERRORS, classify_error
from devharbor.sandbox_runtime.models.api import (
    ErrorResponse,
    SandboxStartResponse,
    SandboxStatusResponse,
    SandboxStopResponse,
)
from devharbor.sandbox_runtime.models.enums import Outcome, SandboxState
from devharbor.sandbox_runtime.models.restart import RestartReport
from devharbor.sandbox_runtime.registry import RunInProgressError, RunRegistry, ShuttingDownError
from devharbor.sandbox_runtime.settings import HarborSettings

router = APIRouter(prefix="/sandboxes", tags=["sandboxes"])

OUTCOME_STATUS: dict[Outcome, int] = {
    Outcome.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    Outcome.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    Outcome.MISSING_CONFIGURATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
    Outcome.START_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    Outcome.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    code: {"model": ErrorResponse} for code in sorted(set(OUTCOME_STATUS.values()))
}


def error_response(exc: Exception) -> JSONResponse:
    """Render an exception as ``{"error", "outcome"}`` with the mapped status."""
    outcome = classify_error(exc)
    body = ErrorResponse(error=str(exc) or type(exc).__name__, outcome=outcome)
    return JSONResponse(status_code=OUTCOME_STATUS[outcome], content=body.model_dump(mode="json"))


def failure_response(action: str, sandbox_id: str, exc: Exception) -> JSONResponse:
    """Log a failed request and render it.  Must be called from an ``except`` block."""
    if isinstance(exc, DOMAIN_ERRORS):
        logger.warning("{} for sandbox {} failed: {}", action, sandbox_id, exc)
    else:
        logger.exception("{} for sandbox {} failed unexpectedly", action, sandbox_id)
    return error_response(exc)


@asynccontextmanager
async def tracked_run(
    registry: RunRegistry,
    settings: HarborSettings,
    sandbox_id: str,
    caller_identity: str | None,
    *,
    complete: bool,
) -> AsyncIterator[RestartRun]:
    """Register a run for the duration of the block, with its deadline armed."""
    run = RestartRun(sandbox_id=sandbox_id, caller_identity=caller_identity, complete=complete)
    try:
        registry.register(run)
    except ShuttingDownError:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail="Server is shutting down.") from None
    except RunInProgressError:
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            detail=f"A restart is already in progress for sandbox '{sandbox_id}'.",
        ) from None

    run.arm_deadline(settings.run_timeout)
    try:
        yield run
    finally:
        if run.stopped:
            logger.warning("Restart run {} for sandbox {} was stopped before completion", run.run_id, sandbox_id)
        registry.unregister(run.run_id)


@router.post("/{sandbox_id}/restart", response_model=RestartReport, responses=_ERROR_RESPONSES)
async def restart_sandbox(
    sandbox_id: str,
    facade: Facade,
    registry: Registry,
    settings: Settings,
    caller: CallerIdentity,
) -> RestartReport | JSONResponse:
    """Start the sandbox if needed, then restart every service of every repository."""
    try:
        access = await facade.authenticate(sandbox_id, caller)
    except Exception as exc:
        return failure_response("Restart", sandbox_id, exc)

    async with tracked_run(registry, settings, sandbox_id, caller, complete=True) as run:
        try:
            return await facade.restart_authorized(access, stop=run.stop_event)
        except Exception as exc:
            return failure_response("Restart", sandbox_id, exc)


@router.post("/{sandbox_id}/services/restart", response_model=RestartReport, responses=_ERROR_RESPONSES)
async def restart_sandbox_services(
    sandbox_id: str,
    facade: Facade,
    registry: Registry,
    settings: Settings,
    caller: CallerIdentity,
) -> RestartReport | JSONResponse:
    """Restart services without checking the sandbox state first."""
    try:
        access = await facade.authenticate(sandbox_id, caller)
    except Exception as exc:
        return failure_response("Service restart", sandbox_id, exc)

    async with tracked_run(registry, settings, sandbox_id, caller, complete=False) as run:
        try:
            return await facade.restart_services(access.handle, access.repositories, stop=run.stop_event)
        except Exception as exc:
            return failure_response("Service restart", sandbox_id, exc)


@router.post("/{sandbox_id}/start", response_model=SandboxStartResponse, responses=_ERROR_RESPONSES)
async def start_sandbox(sandbox_id: str, facade: Facade, caller: CallerIdentity) -> SandboxStartResponse | JSONResponse:
    """Ensure the sandbox is running."""
    try:
        started = await facade.start_workspace(sandbox_id, caller)
    except Exception as exc:
        return failure_response("Start", sandbox_id, exc)
    return SandboxStartResponse(sandbox_id=sandbox_id, state=SandboxState.RUNNING, started=started)


@router.post("/{sandbox_id}/stop", response_model=SandboxStopResponse, responses=_ERROR_RESPONSES)
async def stop_sandbox(
    sandbox_id: str,
    facade: Facade,
    registry: Registry,
    caller: CallerIdentity,
) -> SandboxStopResponse | JSONResponse:
    """Stop the sandbox if it is running.  Refused while a restart run is in flight."""
    try:
        access = await facade.authenticate(sandbox_id, caller)
    except Exception as exc:
        return failure_response("Stop", sandbox_id, exc)

    if registry.get_by_sandbox(sandbox_id) is not None:
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            detail=f"A restart is in progress for sandbox '{sandbox_id}'.",
        )

    try:
        stopped = await facade.stop_authorized(access)
    except Exception as exc:
        return failure_response("Stop", sandbox_id, exc)
    return SandboxStopResponse(sandbox_id=sandbox_id, stopped=stopped)


@router.get("/{sandbox_id}/status", response_model=SandboxStatusResponse, responses=_ERROR_RESPONSES)
async def sandbox_status(sandbox_id: str, facade: Facade, caller: CallerIdentity) -> SandboxStatusResponse | JSONResponse:
    """Report the current sandbox state."""
    try:
        state = await facade.workspace_state(sandbox_id, caller)
    except Exception as exc:
        return failure_response("Status", sandbox_id, exc)
    return SandboxStatusResponse(sandbox_id=sandbox_id, state=state)
