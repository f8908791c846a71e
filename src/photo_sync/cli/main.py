"""Command-line interface for the photo sync engine.

This is the main entry point that delegates to command modules.
"""

from pathlib import Path
from typing import Any, Optional

import click

from ..utils.logging_config import configure_third_party_loggers, setup_logging
from .commands import (
    PhotoSyncApp,
    clear_remote,
    configure,
    health,
    schedule,
    status,
    sync_command,
    validate,
    verify,
    watch,
)


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Set logging level",
)
@click.option("--log-file", type=click.Path(), help="Log to file")
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False),
    help="Catalog database (defaults to PHOTO_SYNC_DATABASE_PATH)",
)
@click.pass_context
def cli(
    ctx: Any, log_level: str, log_file: Optional[str], db_path: Optional[str]
) -> None:
    """Photo Cloud Sync.

    Keeps a local photo catalog in step with a remote photo store.
    """
    setup_logging(log_level=log_level, log_file=Path(log_file) if log_file else None)
    configure_third_party_loggers()

    app = PhotoSyncApp(db_path=Path(db_path) if db_path else None)
    ctx.obj = app
    ctx.call_on_close(app.close)


cli.add_command(configure)
cli.add_command(validate)
cli.add_command(health)
cli.add_command(sync_command)
cli.add_command(verify)
cli.add_command(status)
cli.add_command(schedule)
cli.add_command(watch)
cli.add_command(clear_remote)


if __name__ == "__main__":
    cli()
