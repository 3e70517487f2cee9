from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.routing import APIRouter
from loguru import logger

from devharbor.sandbox_runtime.db.engine import POOL_DEFAULTS, create_engine, create_session_factory
from devharbor.sandbox_runtime.deps import verify_token
from devharbor.sandbox_runtime.execution.facade import build_facade
from devharbor.sandbox_runtime.execution.sandbox_api import SandboxApiClient
from devharbor.sandbox_runtime.log import setup_logging
from devharbor.sandbox_runtime.registry import RunRegistry
from devharbor.sandbox_runtime.settings import get_settings


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.log_json)

    auth_token = settings.resolve_auth_token()
    if not settings.auth_token:
        logger.warning("No HARBOR_AUTH_TOKEN set -- generated token: {}", auth_token)

    logger.info("Sandbox Runtime starting (host={}, port={})", settings.host, settings.port)
    logger.info(
        "Restart policy: services={}, command_timeout={}s, max_concurrency={}, run_timeout={}s",
        [service.name for service in settings.services],
        settings.command_timeout,
        settings.max_concurrency,
        settings.run_timeout,
    )

    # -- Initialise state fields (always present, possibly None) ----------------
    _app.state.settings = settings
    _app.state.auth_token = auth_token
    _app.state.registry = registry = RunRegistry()
    _app.state.db_engine = None
    _app.state.db_session_factory = None
    _app.state.sandbox_api = None
    _app.state.facade = None

    # -- Database --------------------------------------------------------------
    if settings.database_url:
        engine = create_engine(settings.database_url)
        _app.state.db_engine = engine
        _app.state.db_session_factory = create_session_factory(engine)
        logger.info(
            "PostgreSQL: connected (pool_size={}, max_overflow={})",
            POOL_DEFAULTS["pool_size"],
            POOL_DEFAULTS["max_overflow"],
        )
    else:
        logger.warning("HARBOR_DATABASE_URL not set -- workspace records and restarts disabled")

    # -- Sandbox provider ------------------------------------------------------
    if settings.sandbox_api_key is None:
        logger.warning("HARBOR_SANDBOX_API_KEY not set -- sandbox operations will report missing_configuration")
    _app.state.sandbox_api = SandboxApiClient.from_settings(settings)
    logger.info("Sandbox provider: {}", settings.sandbox_api_url)

    # -- Orchestration ---------------------------------------------------------
    if _app.state.db_session_factory is not None:
        _app.state.facade = build_facade(
            settings,
            session_factory=_app.state.db_session_factory,
            api_client=_app.state.sandbox_api,
        )
        logger.info("RestartOrchestrationFacade: initialised")

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("Sandbox Runtime shutting down (active_runs={})", registry.active_count)

    # 1. Stop accepting new runs.
    registry.begin_shutdown()

    # 2. Wait for active runs to complete naturally.
    if registry.active_count > 0:
        timeout = settings.graceful_shutdown_timeout
        logger.info("Waiting for {} active runs to finish (timeout={}s)...", registry.active_count, timeout)
        drained = await registry.wait_until_drained(timeout=timeout)
        if not drained:
            # Last resort: stop issuing restarts; in-flight commands still finish.
            stopped = registry.stop_all()
            logger.warning("Stopped {} runs after timeout", stopped)
            await registry.wait_until_drained(timeout=settings.command_timeout + 15.0)

    await _app.state.sandbox_api.aclose()
    logger.info("Sandbox provider client: closed")

    # Dispose DB engine (closes all pooled connections).
    if _app.state.db_engine is not None:
        await _app.state.db_engine.dispose()
        logger.info("PostgreSQL: disposed")


app = FastAPI(title="Devharbor Sandbox Runtime", lifespan=lifespan)

# ---------------------------------------------------------------------------
# API router -- all backend endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


# -- Protected routers -------------------------------------------------------
from devharbor.sandbox_runtime.routers.restarts import router as restarts_router  # noqa: E402
from devharbor.sandbox_runtime.routers.workspaces import router as workspaces_router  # noqa: E402

api.include_router(workspaces_router, dependencies=[Depends(verify_token)])
api.include_router(restarts_router, dependencies=[Depends(verify_token)])

app.include_router(api)
