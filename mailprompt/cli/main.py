"""CLI entry point for mailprompt."""

import logging

import click
from dotenv import load_dotenv

from mailprompt.cli.workspace import Workspace
from mailprompt.config import Settings

logger = logging.getLogger(__name__)


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Fetch emails over IMAP and run them through an AI prompt."""
    load_dotenv()
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if ctx.obj is None:
        ctx.obj = Workspace(settings)
    ctx.call_on_close(ctx.obj.close)


# Import and register commands after cli is defined to avoid circular imports.
from mailprompt.cli.commands import (  # noqa: E402
    connection_check,
    folders,
    history,
    prompts,
    run,
    tags,
    vars_,
)

cli.add_command(connection_check)
cli.add_command(folders)
cli.add_command(run)
cli.add_command(history)
cli.add_command(tags)
cli.add_command(vars_)
cli.add_command(prompts)
