import asyncio

import click


@click.group()
def main() -> None:
    """Devharbor - service restart orchestration for remote dev sandboxes."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from HARBOR_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from HARBOR_PORT or 8000).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def server(host: str | None, port: int | None, reload: bool) -> None:
    """Start the Sandbox Runtime server."""
    import uvicorn

    from devharbor.sandbox_runtime.settings import get_settings

    settings = get_settings()

    uvicorn.run(
        "devharbor.sandbox_runtime.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
        # Drain timeout plus room for one stopped run to finish its in-flight commands.
        timeout_graceful_shutdown=settings.graceful_shutdown_timeout + int(settings.command_timeout) + 30,
    )


@main.command()
@click.argument("sandbox_id")
@click.option("--caller", required=True, help="Identity of the workspace owner.")
@click.option(
    "--no-start",
    is_flag=True,
    default=False,
    help="Assume the sandbox is running; skip the state check and start.",
)
def restart(sandbox_id: str, caller: str, no_start: bool) -> None:
    """Restart every service of every repository in SANDBOX_ID and print the report."""
    from devharbor.sandbox_runtime.errors import DOMAIN_ERRORS, classify_error
    from devharbor.sandbox_runtime.log import setup_logging
    from devharbor.sandbox_runtime.settings import get_settings

    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.log_json)
    if not settings.database_url:
        raise click.ClickException("HARBOR_DATABASE_URL is not set.")

    try:
        report = asyncio.run(_run_restart(sandbox_id, caller, complete=not no_start))
    except DOMAIN_ERRORS as exc:
        raise click.ClickException(f"{classify_error(exc)}: {exc}") from exc

    click.echo(report.model_dump_json(indent=2))
    if report.summary.failed:
        raise SystemExit(1)


async def _run_restart(sandbox_id: str, caller: str, *, complete: bool):
    from devharbor.sandbox_runtime.db.engine import create_engine, create_session_factory
    from devharbor.sandbox_runtime.execution.facade import build_facade
    from devharbor.sandbox_runtime.execution.sandbox_api import SandboxApiClient
    from devharbor.sandbox_runtime.settings import get_settings

    settings = get_settings()
    engine = create_engine(settings.database_url, pool_size=1, max_overflow=0)
    api_client = SandboxApiClient.from_settings(settings)
    stop = asyncio.Event()
    deadline = asyncio.get_running_loop().call_later(settings.run_timeout, stop.set)
    try:
        facade = build_facade(settings, session_factory=create_session_factory(engine), api_client=api_client)
        if complete:
            return await facade.restart_services_complete(sandbox_id, caller, stop=stop)
        access = await facade.authenticate(sandbox_id, caller)
        return await facade.restart_services(access.handle, access.repositories, stop=stop)
    finally:
        deadline.cancel()
        await api_client.aclose()
        await engine.dispose()


# ---------------------------------------------------------------------------
# Database management
# ---------------------------------------------------------------------------


def _alembic_config():
    """Build an Alembic Config from the package's alembic.ini.

    Both alembic.ini and the alembic/ directory live inside the package,
    so this works whether running from source or from an installed package.
    """
    from pathlib import Path

    from alembic.config import Config

    ini_path = Path(__file__).parent / "sandbox_runtime" / "alembic.ini"
    return Config(str(ini_path))


@main.group()
def db() -> None:
    """Database migration and management commands."""


@db.command()
@click.option("--revision", default="head", help="Target revision (default: head).")
def upgrade(revision: str) -> None:
    """Run database migrations forward."""
    from alembic import command

    command.upgrade(_alembic_config(), revision)
    click.echo(f"Database upgraded to {revision}.")


@db.command()
@click.option("--revision", default="-1", help="Target revision (default: -1, one step back).")
def downgrade(revision: str) -> None:
    """Roll back database migrations."""
    from alembic import command

    command.downgrade(_alembic_config(), revision)
    click.echo(f"Database downgraded to {revision}.")


@db.command()
@click.argument("message")
def migrate(message: str) -> None:
    """Autogenerate a new migration from model changes."""
    from alembic import command

    command.revision(_alembic_config(), message=message, autogenerate=True)
    click.echo(f"Migration generated: {message}")


@db.command()
def current() -> None:
    """Show current database revision."""
    from alembic import command

    command.current(_alembic_config(), verbose=True)


@db.command()
def history() -> None:
    """Show migration history."""
    from alembic import command

    command.history(_alembic_config(), verbose=True)


if __name__ == "__main__":
    main()
