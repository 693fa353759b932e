"""CLI package for mailarchive.

This package organizes CLI commands into modules:
- sync.py: sync, cleanup, check (server and archive-writing commands)
- browse.py: folders, ls, show (read-only views of the archive)
- misc.py: init, usage
- utils.py: Shared utilities and helpers
"""

import click
from click import option
from dotenv import load_dotenv

from .utils import AliasGroup, setup_logging

from .browse import folders, ls, show
from .misc import init, usage
from .sync import check, cleanup, sync


@click.group(cls=AliasGroup)
@option('-c', '--config', 'config_path', type=click.Path(dir_okay=False), envvar="MAILARCHIVE_CONFIG",
        help="Config file (default ~/.config/mailarchive/config.yaml)")
@option('-v', '--verbose', count=True, help="Log progress (-v) or debug details (-vv)")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: int):
    """Archive a mail server to a local directory tree."""
    load_dotenv()
    setup_logging(verbose)
    ctx.obj = {"config_path": config_path}


main.add_command(check)
main.add_command(cleanup, aliases=['c'])
main.add_command(folders, aliases=['f'])
main.add_command(init, aliases=['i'])
main.add_command(ls)
main.add_command(show)
main.add_command(sync, aliases=['s'])
main.add_command(usage, aliases=['u'])


__all__ = [
    'main',
    'check',
    'cleanup',
    'folders',
    'init',
    'ls',
    'show',
    'sync',
    'usage',
]
