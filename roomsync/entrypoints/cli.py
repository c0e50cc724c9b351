"""roomsync CLI entrypoint.

Command-line interface for syncing room subscriptions into a local store.
"""

from __future__ import annotations

import functools
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import click

if TYPE_CHECKING:
    from roomsync.adapters.factory import SyncFactory
    from roomsync.domain.config import RoomSyncConfig

from roomsync.core.errors import RoomSyncCliError, no_session_error, not_initialized_error
from roomsync.domain.entities import ResourceKind, Session, SyncOutcome, SyncResult
from roomsync.domain.exceptions import RoomSyncError
from roomsync.version import __version__

DEFAULT_DATA_DIR = ".roomsync"
DB_FILENAME = "store.db"
CONFIG_FILENAME = "config.toml"


def handle_cli_errors(command_name: str):
    """Decorator to handle common CLI errors.

    RoomSyncCliError propagates unchanged; domain errors keep their hint;
    anything else becomes a RoomSyncCliError, with a traceback in verbose
    mode.

    Args:
        command_name: Name of the command for error messages.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except RoomSyncCliError:
                raise
            except RoomSyncError as e:
                raise RoomSyncCliError(e.message, hint=e.hint) from e
            except Exception as e:
                ctx = click.get_current_context()
                if ctx.obj.get("verbose", False):
                    import traceback

                    traceback.print_exc()
                raise RoomSyncCliError(
                    f"Unexpected error in {command_name}: {e}",
                    hint="Run with --verbose for more details",
                ) from e

        return wrapper

    return decorator


def _load_config(data_dir: Path) -> RoomSyncConfig:
    """Load merged global and local configuration for a data directory."""
    from roomsync.adapters.factory import ConfigFactory

    return ConfigFactory().create_config_provider().load(data_dir)


def _configure_logging(config: RoomSyncConfig, verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = getattr(logging, config.logging.level)
    logging.basicConfig(level=level, format=config.logging.format)


def _data_dir(ctx: click.Context) -> Path:
    return ctx.obj["data_dir"]


def _require_db(ctx: click.Context) -> Path:
    """Return the store path, or fail if the data directory is not initialized."""
    db_path = _data_dir(ctx) / DB_FILENAME
    if not db_path.exists():
        not_initialized_error(str(_data_dir(ctx)))
    return db_path


def _create_factory(ctx: click.Context) -> SyncFactory:
    from roomsync.adapters.factory import SyncFactory

    return SyncFactory(ctx.obj["config"], _require_db(ctx))


def _default_session_id(server: str, user_id: str) -> str:
    host = urlparse(server).netloc or server
    return f"{user_id}@{host}"


def _format_result(result: SyncResult) -> str:
    name = result.resource.value
    if result.outcome == SyncOutcome.APPLIED:
        if result.resource == ResourceKind.SUBSCRIPTIONS:
            detail = f"{result.upserted} upserted, {result.removed} removed"
            if result.dropped:
                detail += f", {result.dropped} unmatched"
        elif result.resource == ResourceKind.ROOMS:
            detail = f"{result.enriched} enriched, {result.dropped} dropped"
        else:
            detail = "acknowledged"
        if result.skipped_records:
            detail += f", {result.skipped_records} invalid skipped"
        return f"✓ {name} ({result.path.value}): {detail}"
    reason = result.error or "server reported no changes"
    if result.outcome == SyncOutcome.SKIPPED:
        return f"- {name} skipped: {reason}"
    return f"✗ {name} failed: {reason}"


def _report_results(results: list[SyncResult], quiet: bool) -> None:
    """Print one line per result; fail if any result failed."""
    for result in results:
        if quiet and result.outcome == SyncOutcome.APPLIED:
            continue
        click.echo(_format_result(result), err=result.outcome != SyncOutcome.APPLIED)

    failed = [r.resource.value for r in results if r.outcome == SyncOutcome.FAILED]
    if failed:
        raise RoomSyncCliError(
            f"Sync failed for {', '.join(failed)}",
            hint="Local data is unchanged; run 'roomsync sync' again later",
        )


@click.group()
@click.version_option(version=__version__, prog_name="roomsync")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output.",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress non-essential output.",
)
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_DATA_DIR,
    envvar="ROOMSYNC_DIR",
    show_default=True,
    help="Directory holding config.toml and the local store.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, data_dir: Path) -> None:
    """roomsync - Keep a local copy of your room subscriptions.

    Fetches subscription and room deltas from the server and merges them
    into a local SQLite store, falling back to the legacy RPC protocol on
    servers that predate the REST endpoints.
    """
    ctx.ensure_object(dict)
    config = _load_config(data_dir)
    _configure_logging(config, verbose, quiet)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["data_dir"] = data_dir
    ctx.obj["config"] = config


@cli.command()
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Rewrite config.toml even if the data directory exists.",
)
@click.option(
    "--server",
    type=str,
    default=None,
    help="Server base URL to write into config.toml.",
)
@click.pass_context
@handle_cli_errors("init")
def init(ctx: click.Context, force: bool, server: str | None) -> None:
    """Create the data directory, default config and local store.

    Existing subscriptions and sessions are kept when re-initializing.
    """
    from roomsync.adapters.sqlite import init_database
    from roomsync.shared.config_io import create_default_config_file

    data_dir = _data_dir(ctx)
    config_path = data_dir / CONFIG_FILENAME
    db_path = data_dir / DB_FILENAME
    reinitialized = config_path.exists()

    if reinitialized and not force:
        raise RoomSyncCliError(
            f"roomsync is already initialized in {data_dir}",
            hint="Use 'roomsync init --force' to rewrite the config",
        )

    create_default_config_file(config_path, server_url=server)
    init_database(db_path)

    verb = "Reinitialized" if reinitialized else "Initialized"
    click.echo(f"{verb} roomsync in {data_dir}")
    if not ctx.obj.get("quiet", False):
        click.echo(f"  ✓ Created {config_path.name}")
        click.echo(f"  ✓ Created {db_path.name}")
        click.echo("\nNext: Run 'roomsync login' to add a session")


@cli.command()
@click.option("--server", required=True, help="Server base URL.")
@click.option("--user-id", required=True, help="Server user id.")
@click.option("--token", required=True, help="Auth token for the REST API.")
@click.option(
    "--session-id",
    default=None,
    help="Local session name (default: USER_ID@HOST).",
)
@click.pass_context
@handle_cli_errors("login")
def login(
    ctx: click.Context,
    server: str,
    user_id: str,
    token: str,
    session_id: str | None,
) -> None:
    """Record a session and make it the current one.

    Logging in again to an existing session updates its credentials and
    keeps its sync watermark.
    """
    session_id = session_id or _default_session_id(server, user_id)

    with _create_factory(ctx) as factory:
        sessions = factory.create_session_repository()
        existing = sessions.get(session_id)
        sessions.add(
            Session(
                id=session_id,
                user_id=user_id,
                server_url=server.rstrip("/"),
                token=token,
                is_current=True,
                last_subscription_fetch=existing.last_subscription_fetch if existing else None,
            )
        )

    click.echo(f"✓ Logged in as {session_id}")


@cli.command()
@click.option(
    "--full",
    is_flag=True,
    help="Ignore the stored watermark and fetch everything.",
)
@click.option(
    "--only",
    type=click.Choice(["all", "subscriptions", "rooms"]),
    default="all",
    show_default=True,
    help="Which resource to sync.",
)
@click.pass_context
@handle_cli_errors("sync")
def sync(ctx: click.Context, full: bool, only: str) -> None:
    """Fetch subscription and room changes from the server.

    Subscriptions are synced before rooms, both from the watermark stored
    on the current session.
    """
    with _create_factory(ctx) as factory:
        session = factory.create_session_repository().current()
        if session is None:
            no_session_error()

        updated_since = None if full else session.last_subscription_fetch

        if only == "all":
            background = factory.create_background_sync(session)
            results = background.full_sync(updated_since, session_id=session.id).result()
        else:
            orchestrator = factory.create_sync(session)
            if only == "subscriptions":
                results = [orchestrator.sync_subscriptions(updated_since, session_id=session.id)]
            else:
                results = [orchestrator.sync_rooms(updated_since, session_id=session.id)]

    _report_results(results, ctx.obj.get("quiet", False))


@cli.command()
@click.argument("rid", type=str)
@click.pass_context
@handle_cli_errors("read")
def read(ctx: click.Context, rid: str) -> None:
    """Mark room RID as read on the server."""
    with _create_factory(ctx) as factory:
        if factory.create_session_repository().current() is None:
            no_session_error()
        result = factory.create_sync().acknowledge_read(rid)

    click.echo(_format_result(result), err=not result.applied)


@cli.command()
@click.pass_context
@handle_cli_errors("status")
def status(ctx: click.Context) -> None:
    """Show sessions, sync watermark and store size."""
    from roomsync.adapters.sqlite import check_schema_version

    db_path = _require_db(ctx)

    with _create_factory(ctx) as factory:
        sessions = factory.create_session_repository().list_all()
        store = factory.create_store()
        total = store.count()
        active = len(store.list_subscriptions())

    click.echo(f"Data directory: {_data_dir(ctx)}")
    click.echo(f"Schema version: {check_schema_version(db_path)}")
    click.echo(f"Subscriptions: {active} active, {total - active} removed")

    if not sessions:
        click.echo("\nNo sessions. Run 'roomsync login' to add one.")
        return

    click.echo("\nSessions:")
    for session in sessions:
        marker = "*" if session.is_current else " "
        watermark = (
            session.last_subscription_fetch.isoformat()
            if session.last_subscription_fetch
            else "never synced"
        )
        click.echo(f"{marker} {session.id}  {session.server_url}  {watermark}")


@cli.command(name="list")
@click.option(
    "--all",
    "show_all",
    is_flag=True,
    help="Include soft-removed subscriptions.",
)
@click.pass_context
@handle_cli_errors("list")
def list_subscriptions(ctx: click.Context, show_all: bool) -> None:
    """List subscriptions in the local store.

    Shows the current session's subscriptions, or every owned subscription
    when no session is logged in.
    """
    with _create_factory(ctx) as factory:
        session = factory.create_session_repository().current()
        subscriptions = factory.create_store().list_subscriptions(
            auth_id=session.id if session else None,
            include_removed=show_all,
        )

    if not subscriptions:
        click.echo("No subscriptions")
        return

    for subscription in subscriptions:
        line = f"{subscription.rid}  {subscription.display_name}"
        if subscription.unread:
            line += f"  ({subscription.unread} unread)"
        if subscription.is_removed:
            line += "  [removed]"
        click.echo(line)


def main() -> int:
    """Main entrypoint for the CLI."""
    try:
        cli(obj={})
        return 0
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
