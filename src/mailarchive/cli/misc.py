"""Miscellaneous commands: init, usage."""

import sys

import click
import humanize
from click import echo, option
from rich.console import Console
from rich.table import Table

from ..config import ArchiveConfig, ImapSettings, get_config_path, save_config
from ..imap import DEFAULT_PORT
from ..usage import storage_usage

from .utils import err, get_config, handle_errors


@click.command()
@option('-a', '--archive-dir', default="~/EmailArchive", help="Where messages are stored")
@option('-f', '--force', is_flag=True, help="Overwrite an existing config")
@option('-H', '--host', prompt="IMAP host", help="IMAP server host")
@option('-P', '--port', type=int, default=DEFAULT_PORT, help="IMAP server port")
@option('-p', '--password', help="Store this password in the config (else prompted at sync time)")
@option('-S', '--no-ssl', is_flag=True, help="Connect without SSL")
@option('-t', '--timeout', type=float, default=60.0, help="Seconds before a server call times out")
@option('-u', '--user', prompt="IMAP user", help="IMAP username")
@click.pass_obj
def init(
    obj: dict,
    archive_dir: str,
    force: bool,
    host: str,
    port: int,
    password: str | None,
    no_ssl: bool,
    timeout: float,
    user: str,
):
    """Write the config file and create the archive directory.

    \b
    Examples:
      mailarchive init -H imap.example.com -u me@example.com
      mailarchive init -a /data/mail -H mail.local -P 143 -S -u me
    """
    config_path = get_config_path((obj or {}).get("config_path"))
    if config_path.exists() and not force:
        echo(f"Already initialized: {config_path}")
        return

    config = ArchiveConfig(
        archive_dir=archive_dir,
        imap=ImapSettings(
            host=host,
            port=port,
            user=user,
            password=password or "",
            use_ssl=not no_ssl,
            timeout=timeout,
        ),
    )
    try:
        config.root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        err(f"Cannot create archive directory {config.root}: {e}")
        sys.exit(1)
    save_config(config, config_path)
    echo(f"Initialized {config_path}")
    echo(f"Archive: {config.root}")


@click.command()
@click.pass_obj
@handle_errors
def usage(obj: dict):
    """Show disk usage of the archive per folder."""
    config = get_config(obj)
    root = config.root
    if not root.is_dir():
        err(f"Archive directory does not exist: {root}")
        sys.exit(1)

    report = storage_usage(root)
    table = Table(title=str(root))
    table.add_column("Folder", style="cyan")
    table.add_column("Messages", justify="right")
    table.add_column("Size", justify="right")
    for entry in report.per_folder:
        table.add_row(entry.name, f"{entry.messages:,}", humanize.naturalsize(entry.size_bytes))
    Console().print(table)
    echo(report.describe())
