import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import click

T = TypeVar("T")


@click.group()
def main() -> None:
    """Shelfmark - bookmarks organised into workspaces, spaces and collections."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from SHELFMARK_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from SHELFMARK_PORT or 8000).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the HTTP API server."""
    import uvicorn

    from shelfmark.server.settings import get_settings

    settings = get_settings()

    uvicorn.run(
        "shelfmark.server.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
    )


# ---------------------------------------------------------------------------
# Direct database access (seed / export / import)
# ---------------------------------------------------------------------------


def _run_with_session(action: Callable[..., Awaitable[T]]) -> T:
    """Run ``action(db)`` against the configured database and dispose the engine."""
    from shelfmark.server.db.engine import create_engine, create_session_factory
    from shelfmark.server.log import setup_logging
    from shelfmark.server.settings import get_settings

    settings = get_settings()
    if not settings.database_url:
        msg = "SHELFMARK_DATABASE_URL is not set."
        raise click.ClickException(msg)
    setup_logging(settings.log_level, echo_sql=settings.db_echo)

    async def _go() -> T:
        engine = create_engine(settings.database_url)
        try:
            async with create_session_factory(engine)() as db:
                return await action(db)
        finally:
            await engine.dispose()

    return asyncio.run(_go())


@main.command("export")
@click.argument("workspace_id")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write to this file instead of stdout.",
)
def export_cmd(workspace_id: str, output: Path | None) -> None:
    """Export a workspace as JSON."""
    from shelfmark.server.managers.transfer import export_workspace

    document = _run_with_session(lambda db: export_workspace(db, workspace_id))
    if document is None:
        msg = f"Workspace '{workspace_id}' not found."
        raise click.ClickException(msg)
    text = document.model_dump_json(by_alias=True, indent=2)
    if output is None:
        click.echo(text)
    else:
        output.write_text(text + "\n", encoding="utf-8")
        click.echo(f"Exported {workspace_id} to {output}.")


@main.command("import")
@click.argument("workspace_id")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def import_cmd(workspace_id: str, file: Path) -> None:
    """Merge an exported JSON FILE into a workspace."""
    from shelfmark.server.errors import ImportFormatError, ParentNotFoundError
    from shelfmark.server.managers.transfer import import_workspace

    try:
        document = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        msg = f"{file} is not valid JSON: {exc}"
        raise click.ClickException(msg) from None

    try:
        counts = _run_with_session(lambda db: import_workspace(db, workspace_id, document))
    except (ImportFormatError, ParentNotFoundError) as exc:
        raise click.ClickException(str(exc)) from None
    click.echo(
        f"Imported into {workspace_id}: {counts.spaces} spaces, "
        f"{counts.collections} collections, {counts.bookmarks} bookmarks."
    )


# ---------------------------------------------------------------------------
# Database management
# ---------------------------------------------------------------------------


def _alembic_config():
    """Build an Alembic Config from the package's alembic.ini.

    Both alembic.ini and the alembic/ directory live inside the package,
    so this works whether running from source or from an installed package.
    """
    from alembic.config import Config

    ini_path = Path(__file__).parent / "server" / "alembic.ini"
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


@db.command()
@click.option("--workspace-id", default=None, help="Workspace to create (default: SHELFMARK_DEFAULT_WORKSPACE_ID).")
def seed(workspace_id: str | None) -> None:
    """Create the default workspace if it does not exist yet."""
    from shelfmark.server.managers.workspaces import get_or_create_workspace
    from shelfmark.server.settings import get_settings

    workspace_id = workspace_id or get_settings().default_workspace_id
    _, created = _run_with_session(lambda db: get_or_create_workspace(db, workspace_id))
    click.echo(f"Workspace {workspace_id} {'created' if created else 'already exists'}.")


if __name__ == "__main__":
    main()
