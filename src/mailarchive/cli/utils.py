"""Shared CLI utilities and helpers."""

import logging
import signal
import sys
from contextlib import contextmanager
from datetime import datetime
from functools import wraps

import click
from click import prompt
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from ..config import ArchiveConfig, load_config
from ..errors import ArchiveError
from ..progress import CancelToken, TaskCancelled

EXIT_CANCELLED = 130


def err(*args, **kwargs):
    """Print to stderr."""
    print(*args, file=sys.stderr, **kwargs)


def setup_logging(verbose: int) -> None:
    """Route library logging through rich; ``-v`` for INFO, ``-vv`` for DEBUG."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def get_config(obj: dict | None) -> ArchiveConfig:
    return load_config((obj or {}).get("config_path"))


def format_date(dt: datetime | None) -> str:
    return dt.strftime("%Y-%m-%d %H:%M") if dt else "?"


def get_password(password_opt: str | None) -> str:
    """Get password from option, stdin (if piped), or prompt."""
    if password_opt:
        return password_opt
    elif not sys.stdin.isatty():
        return sys.stdin.readline().rstrip("\n")
    else:
        return prompt("Password", hide_input=True)


def make_progress(console: Console | None = None) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        TextColumn("[dim]{task.fields[status]}"),
        console=console or Console(stderr=True),
        transient=True,
    )


class RichProgressCallback:
    """`ProgressCallback` that drives one task of a rich `Progress`."""

    def __init__(self, progress: Progress, description: str):
        self.progress = progress
        self.task = progress.add_task(description, total=100, status="")

    def update(self, percent: int, message: str) -> None:
        self.progress.update(self.task, completed=percent, status=message[:80])


@contextmanager
def cancel_on_interrupt():
    """Yield a CancelToken that the first Ctrl-C sets; a second Ctrl-C interrupts immediately."""
    token = CancelToken()
    previous = signal.getsignal(signal.SIGINT)

    def handler(signum, frame):
        if token.cancelled:
            raise KeyboardInterrupt
        err("\nCancelling (Ctrl-C again to abort)...")
        token.cancel()

    try:
        signal.signal(signal.SIGINT, handler)
        installed = True
    except ValueError:
        # Not in the main thread; Ctrl-C stays a plain KeyboardInterrupt
        installed = False
    try:
        yield token
    finally:
        if installed:
            signal.signal(signal.SIGINT, previous)


def handle_errors(f):
    """Turn archive errors into exit code 1 and cancellation into 130."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (TaskCancelled, KeyboardInterrupt):
            err("Cancelled.")
            sys.exit(EXIT_CANCELLED)
        except ArchiveError as e:
            err(f"Error: {e}")
            sys.exit(1)
    return wrapper


class AliasGroup(click.Group):
    """Click Group whose commands can be registered with short aliases.

    ``group.add_command(cmd, aliases=["s"])`` makes ``s`` dispatch to ``cmd``;
    help lists each command once, as ``sync (s)``.
    """

    def __init__(self, *args, **kwargs):
        self.aliases: dict[str, str] = {}
        super().__init__(*args, **kwargs)

    def add_command(self, cmd: click.Command, name: str | None = None, aliases=()) -> None:
        super().add_command(cmd, name)
        name = name or cmd.name
        for alias in aliases:
            if alias in self.commands or self.aliases.get(alias, name) != name:
                raise ValueError(f"Alias {alias!r} for {name!r} is already taken")
            self.aliases[alias] = name

    def get_command(self, ctx, cmd_name):
        return super().get_command(ctx, self.aliases.get(cmd_name, cmd_name))

    def resolve_command(self, ctx, args):
        _, cmd_name, args = super().resolve_command(ctx, args)
        return _, self.aliases.get(cmd_name, cmd_name), args

    def aliases_of(self, cmd_name: str) -> list[str]:
        return sorted(a for a, name in self.aliases.items() if name == cmd_name)

    def format_commands(self, ctx, formatter):
        rows = []
        for name in self.list_commands(ctx):
            cmd = self.get_command(ctx, name)
            if cmd is None or cmd.hidden:
                continue
            aliases = self.aliases_of(name)
            label = f"{name} ({', '.join(aliases)})" if aliases else name
            rows.append((label, cmd.get_short_help_str(limit=formatter.width)))
        if rows:
            with formatter.section("Commands"):
                formatter.write_dl(rows)
