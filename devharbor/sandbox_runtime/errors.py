"""Domain exceptions and their classification.

Managers, the auth gate and the execution layer raise the exceptions below,
never HTTP exceptions.  ``classify_error`` folds any raised condition into
the stable ``Outcome`` taxonomy; the router owns the mapping from
``Outcome`` to HTTP status codes.
"""

from __future__ import annotations

from devharbor.sandbox_runtime.models.enums import Outcome


class UnauthorizedError(PermissionError):
    """Raised when the caller carries no usable identity."""


class MissingConfigurationError(RuntimeError):
    """Raised when a required setting (e.g. the provider API key) is absent."""


class WorkspaceNotFoundError(LookupError):
    """Raised when a workspace record is missing or owned by someone else."""


class DuplicateWorkspaceError(ValueError):
    """Raised when a workspace record for the sandbox already exists."""


class SandboxStartError(RuntimeError):
    """Raised when a sandbox cannot be brought to the running state."""


class SandboxApiError(RuntimeError):
    """Provider call failed (transport error, timeout, or non-2xx response).

    ``status_code`` is ``None`` when no HTTP response was received.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


DOMAIN_ERRORS: tuple[type[Exception], ...] = (
    UnauthorizedError,
    MissingConfigurationError,
    WorkspaceNotFoundError,
    SandboxStartError,
    SandboxApiError,
    TimeoutError,
)
"""Expected failures of a restart or lifecycle request.  Anything else is a bug."""


def classify_error(exc: BaseException) -> Outcome:
    """Map a raised condition onto the outcome taxonomy.

    Only ``WorkspaceNotFoundError`` and a provider 404 count as ``NOT_FOUND``;
    a stray ``KeyError`` or ``IndexError`` is ``INTERNAL``.
    """
    if isinstance(exc, UnauthorizedError):
        return Outcome.UNAUTHORIZED
    if isinstance(exc, MissingConfigurationError):
        return Outcome.MISSING_CONFIGURATION
    if isinstance(exc, WorkspaceNotFoundError):
        return Outcome.NOT_FOUND
    if isinstance(exc, SandboxStartError):
        return Outcome.START_FAILURE
    if isinstance(exc, SandboxApiError) and exc.status_code == 404:
        return Outcome.NOT_FOUND
    return Outcome.INTERNAL
