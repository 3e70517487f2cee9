"""HTTP client for the sandbox provider (Daytona-compatible REST API).

Implements both ``CommandExecutor`` and ``SandboxController`` on top of one
shared ``httpx.AsyncClient``, whose connection pool makes concurrent command
dispatch safe.  Endpoints used::

    GET  /sandbox/{id}                            -> {"state": "started", ...}
    POST /sandbox/{id}/start
    POST /sandbox/{id}/stop
    POST /toolbox/{id}/toolbox/process/execute    -> {"exitCode": 0, "result": "..."}

Every failure surfaces as ``SandboxApiError`` (or ``TimeoutError`` for
timeouts); callers decide whether that is fatal.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

import httpx

from devharbor.sandbox_runtime.errors import SandboxApiError
from devharbor.sandbox_runtime.execution.command import CommandResult

if TYPE_CHECKING:
    from devharbor.sandbox_runtime.models.workspace import WorkspaceHandle
    from devharbor.sandbox_runtime.settings import HarborSettings

logger = logging.getLogger(__name__)

EXECUTE_TIMEOUT_MARGIN = 5.0
"""Extra seconds the HTTP call may take beyond the remote command timeout."""


class SandboxApiClient:
    """Provider client.  Owns no state besides the shared HTTP client."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: HarborSettings) -> SandboxApiClient:
        headers = {"Accept": "application/json"}
        if settings.sandbox_api_key is not None:
            headers["Authorization"] = f"Bearer {settings.sandbox_api_key.get_secret_value()}"
        client = httpx.AsyncClient(
            base_url=settings.sandbox_api_url.rstrip("/"),
            headers=headers,
            timeout=settings.sandbox_http_timeout,
        )
        return cls(client)

    async def aclose(self) -> None:
        await self._client.aclose()

    # -- SandboxController -----------------------------------------------------

    async def get_state(self, handle: WorkspaceHandle) -> str:
        payload = await self._request_json("GET", f"/sandbox/{handle.sandbox_id}")
        state = payload.get("state")
        if not isinstance(state, str):
            msg = f"Malformed sandbox payload for {handle.sandbox_id}: missing 'state'"
            raise SandboxApiError(msg)
        return state.lower()

    async def start(self, handle: WorkspaceHandle) -> None:
        logger.info("Starting sandbox %s", handle.sandbox_id)
        await self._request("POST", f"/sandbox/{handle.sandbox_id}/start")

    async def stop(self, handle: WorkspaceHandle) -> None:
        logger.info("Stopping sandbox %s", handle.sandbox_id)
        await self._request("POST", f"/sandbox/{handle.sandbox_id}/stop")

    # -- CommandExecutor -------------------------------------------------------

    async def execute(self, handle: WorkspaceHandle, command: str, working_dir: str, timeout: float) -> CommandResult:
        body = {"command": command, "cwd": working_dir, "timeout": math.ceil(timeout)}
        payload = await self._request_json(
            "POST",
            f"/toolbox/{handle.sandbox_id}/toolbox/process/execute",
            json=body,
            timeout=timeout + EXECUTE_TIMEOUT_MARGIN,
        )
        exit_code = payload.get("exitCode")
        if not isinstance(exit_code, int):
            msg = f"Malformed execute payload for {handle.sandbox_id}: missing 'exitCode'"
            raise SandboxApiError(msg)
        output = payload.get("result") or ""
        return CommandResult(exit_code=exit_code, output=str(output))

    # -- Transport -------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        kwargs: dict[str, Any] = {}
        if json is not None:
            kwargs["json"] = json
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            msg = f"{method} {url} timed out"
            raise TimeoutError(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"{method} {url} failed: {exc}"
            raise SandboxApiError(msg) from exc

        if response.is_error:
            msg = f"{method} {url} returned HTTP {response.status_code}: {response.text[:200]}"
            raise SandboxApiError(msg, status_code=response.status_code)
        return response

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request(method, url, **kwargs)
        try:
            payload = response.json()
        except ValueError as exc:
            msg = f"{method} {url} returned a non-JSON body"
            raise SandboxApiError(msg, status_code=response.status_code) from exc
        if not isinstance(payload, dict):
            msg = f"{method} {url} returned {type(payload).__name__}, expected an object"
            raise SandboxApiError(msg, status_code=response.status_code)
        return payload
