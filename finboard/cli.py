import click


@click.group()
def main() -> None:
    """Finboard - workspace runtime for the personal finance tracker."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from FINBOARD_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from FINBOARD_PORT or 8000).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the workspace runtime server."""
    import uvicorn

    from finboard.runtime.settings import FinboardSettings

    settings = FinboardSettings()

    uvicorn.run(
        "finboard.runtime.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is forwarded to loguru
    )


# ---------------------------------------------------------------------------
# Database management
# ---------------------------------------------------------------------------


def _alembic_config():
    """Build an Alembic Config from the packaged alembic.ini.

    Both alembic.ini and the alembic/ directory ship inside the package, so
    this works from a source checkout and from an installed wheel.
    """
    from pathlib import Path

    from alembic.config import Config

    ini_path = Path(__file__).parent / "runtime" / "alembic.ini"
    cfg = Config(str(ini_path))
    cfg.set_main_option("script_location", str(ini_path.parent / "alembic"))
    return cfg


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


# ---------------------------------------------------------------------------
# Workspace inspection
# ---------------------------------------------------------------------------


@main.group()
def workspaces() -> None:
    """Inspect workspaces stored in the database."""


@workspaces.command("list")
@click.argument("user_id")
def list_workspaces(user_id: str) -> None:
    """List USER_ID's workspaces in selection order (default first, then by name)."""
    import asyncio

    from finboard.runtime.db.engine import create_engine, create_session_factory
    from finboard.runtime.remote.sql import SqlWorkspaceRemote
    from finboard.runtime.settings import FinboardSettings

    settings = FinboardSettings()
    if not settings.database_url:
        raise click.ClickException("FINBOARD_DATABASE_URL is not set.")

    async def _run() -> list:
        engine = create_engine(settings.database_url, pool_size=1, max_overflow=0)
        try:
            return await SqlWorkspaceRemote(create_session_factory(engine)).list_workspaces(user_id)
        finally:
            await engine.dispose()

    rows = asyncio.run(_run())
    if not rows:
        click.echo(f"No workspaces for {user_id}.")
        return
    for ws in rows:
        marker = "*" if ws.is_default else " "
        click.echo(f"{marker} {ws.workspace_id}  {ws.name}  {ws.color}  {ws.icon}")


if __name__ == "__main__":
    main()
