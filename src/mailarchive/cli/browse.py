"""Read-only commands over the local archive: folders, ls, show."""

import click
import humanize
from click import argument, echo, option
from rich.console import Console
from rich.table import Table

from ..store import open_store

from .utils import format_date, get_config, handle_errors


@click.command()
@click.pass_obj
@handle_errors
def folders(obj: dict):
    """List archived folders with message counts."""
    config = get_config(obj)
    with open_store(config.root) as store:
        table = Table()
        table.add_column("Folder", style="cyan")
        table.add_column("Messages", justify="right")
        total = 0
        for folder in store.iter_folders():
            count = folder.get_message_count()
            total += count
            table.add_row(folder.full_name, f"{count:,}")
        Console().print(table)
    echo(f"Total: {total:,} messages")


@click.command()
@option('-n', '--limit', type=int, help="Show only the N most recently received messages")
@argument('folder')
@click.pass_obj
@handle_errors
def ls(obj: dict, limit: int | None, folder: str):
    """List messages in FOLDER, oldest first."""
    config = get_config(obj)
    with open_store(config.root) as store:
        local = store.get_folder(folder)
        with local.open():
            messages = local.get_messages()
            if limit:
                messages = messages[-limit:]
            table = Table()
            table.add_column("#", justify="right", style="dim")
            table.add_column("Received")
            table.add_column("From", max_width=30)
            table.add_column("Subject")
            table.add_column("Size", justify="right")
            for msg in messages:
                table.add_row(
                    str(msg.number),
                    format_date(msg.received_date),
                    ", ".join(msg.get_from()),
                    msg.subject or "",
                    humanize.naturalsize(msg.size),
                )
            Console().print(table)


@click.command()
@option('-H', '--html', 'show_html', is_flag=True, help="Print content.html instead of content.txt")
@argument('folder')
@argument('number', type=int)
@click.pass_obj
@handle_errors
def show(obj: dict, show_html: bool, folder: str, number: int):
    """Print message NUMBER (as listed by `ls`) from FOLDER."""
    config = get_config(obj)
    with open_store(config.root) as store:
        local = store.get_folder(folder)
        with local.open():
            try:
                msg = local.get_message(number)
            except IndexError as e:
                raise click.BadParameter(str(e), param_hint="NUMBER")
            echo(f"Message-ID: {msg.message_id or '-'}")
            echo(f"From: {', '.join(msg.get_from())}")
            echo(f"To: {', '.join(msg.get_recipients('to'))}")
            cc = msg.get_recipients("cc")
            if cc:
                echo(f"Cc: {', '.join(cc)}")
            echo(f"Subject: {msg.subject or ''}")
            echo(f"Date: {format_date(msg.sent_date)}")
            for path in msg.attachments:
                echo(f"Attachment: {path.name} ({humanize.naturalsize(path.stat().st_size)})")
            echo()
            if show_html:
                echo(msg.html or "(no HTML content)")
            else:
                echo(msg.content)
