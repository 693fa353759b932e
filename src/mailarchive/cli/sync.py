"""Commands that talk to the mail server or rewrite the archive: sync, cleanup, check."""

import sys

import click
from click import echo, option, style
from rich.console import Console
from rich.table import Table

from ..cleanup import ArchiveMaintainer
from ..config import ArchiveConfig, ImapSettings
from ..imap import imap_factory
from ..sync import SyncEngine, SyncWindow, check_server

from .utils import (
    RichProgressCallback,
    cancel_on_interrupt,
    err,
    get_config,
    get_password,
    handle_errors,
    make_progress,
)


def _settings(config: ArchiveConfig, password: str | None) -> ImapSettings:
    settings = config.imap
    if not settings.configured:
        err("No IMAP server configured. Run 'mailarchive init' first.")
        sys.exit(1)
    if password:
        settings.password = password
    elif not settings.password:
        settings.password = get_password(None)
    return settings


@click.command()
@option('-F', '--full', is_flag=True, help="Check every remote message against the whole archive")
@option('-p', '--password', help="IMAP password (overrides config)")
@option('-y', '--year', type=int, help="Only messages received on or after Jan 1 of YEAR")
@click.pass_obj
@handle_errors
def sync(obj: dict, full: bool, password: str | None, year: int | None):
    """Download new messages into the archive.

    \b
    Examples:
      mailarchive sync              # Messages received since the last sync
      mailarchive sync -F           # Everything not yet archived
      mailarchive sync -y 2024      # Everything received since 2024-01-01
    """
    if full and year:
        raise click.UsageError("--full and --year are mutually exclusive")
    if full:
        window = SyncWindow.full()
    elif year:
        window = SyncWindow.from_year(year)
    else:
        window = SyncWindow.incremental()

    config = get_config(obj)
    settings = _settings(config, password)
    engine = SyncEngine(config.root, imap_factory(settings))

    echo(f"Server: {settings.host} ({settings.user})")
    echo(f"Archive: {config.root}")
    with cancel_on_interrupt() as cancel, make_progress() as progress:
        result = engine.run(window, RichProgressCallback(progress, window.label), cancel)

    if not result.ok:
        err(result.message)
        sys.exit(1)
    echo(result.message)
    if result.failed or result.folder_errors:
        for folder_error in result.folder_errors:
            echo(style(f"  {folder_error}", fg="yellow"))
        echo(style("Failed messages are retried on the next sync.", fg="yellow"))


@click.command()
@click.pass_obj
@handle_errors
def cleanup(obj: dict):
    """Remove duplicate messages and empty folders from the archive."""
    config = get_config(obj)
    maintainer = ArchiveMaintainer(config.root)
    with cancel_on_interrupt() as cancel, make_progress() as progress:
        result = maintainer.run(RichProgressCallback(progress, "Cleanup"), cancel)
    if not result.ok:
        err(result.message)
        sys.exit(1)
    echo(result.message)


@click.command()
@option('-p', '--password', help="IMAP password (overrides config)")
@click.pass_obj
@handle_errors
def check(obj: dict, password: str | None):
    """Connect to the server and count messages per folder."""
    settings = _settings(get_config(obj), password)
    status = check_server(imap_factory(settings))
    if not status.available:
        err(status.message)
        sys.exit(1)

    console = Console()
    table = Table(title=f"{settings.host} ({settings.user})")
    table.add_column("Folder", style="cyan")
    table.add_column("Messages", justify="right")
    for name, count in status.folders.items():
        table.add_row(name, f"{count:,}")
    console.print(table)
    echo(status.message)
