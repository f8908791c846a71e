"""Status, verification and auto-sync policy commands."""

import logging
from typing import Optional

import click
from rich.console import Console

from ...config import ConfigurationError
from ...core.verifier import DEFAULT_SAMPLE_SIZE
from ...models import SyncFrequency
from ..display import (
    display_recent_runs,
    display_schedule_state,
    display_status,
    display_verification_result,
)
from .app import PhotoSyncApp

console = Console()
logger = logging.getLogger(__name__)


@click.command("status")
@click.option(
    "--runs",
    type=click.IntRange(min=0),
    default=5,
    show_default=True,
    help="Number of recent syncs to list",
)
@click.pass_obj
def status(app: PhotoSyncApp, runs: int) -> None:
    """Show sync state, the auto-sync policy and recent syncs."""
    orchestrator = app.orchestrator
    display_status(
        orchestrator.status,
        orchestrator.status_summary,
        orchestrator.last_sync_time_text,
        app.db_service.get_statistics(),
    )
    display_schedule_state(app.settings_store.load_schedule_state())
    if runs:
        display_recent_runs(app.db_service.get_recent_sync_runs(limit=runs))


@click.command("verify")
@click.option(
    "--sample-size",
    type=int,
    default=DEFAULT_SAMPLE_SIZE,
    show_default=True,
    help="Photos to check; 0 checks the whole catalog",
)
@click.option("--force", is_flag=True, help="Ignore a cached verification result")
@click.option("--report", is_flag=True, help="Print the full verification report")
@click.pass_obj
def verify(app: PhotoSyncApp, sample_size: int, force: bool, report: bool) -> None:
    """Check a random sample of the catalog against the remote store."""
    try:
        with console.status(f"Verifying {sample_size or 'all'} photos..."):
            result = app.orchestrator.verify(
                sample_size=sample_size, force_refresh=force
            )
    except ConfigurationError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise click.ClickException(str(e))

    display_verification_result(result, detailed=report)
    if not result.success:
        raise click.ClickException(result.message)


@click.command("schedule")
@click.option(
    "--enable/--disable",
    "auto_sync_enabled",
    default=None,
    help="Turn unattended syncing on or off",
)
@click.option(
    "--frequency",
    type=click.Choice([f.value for f in SyncFrequency]),
    default=None,
    help="How often unattended syncs run",
)
@click.option(
    "--wifi-only/--any-network",
    "wifi_only",
    default=None,
    help="Restrict unattended syncs to wifi",
)
@click.option(
    "--metadata-only/--full-verification",
    "metadata_only_verification",
    default=None,
    help="Skip file integrity checks when verifying",
)
@click.pass_obj
def schedule(
    app: PhotoSyncApp,
    auto_sync_enabled: Optional[bool],
    frequency: Optional[str],
    wifi_only: Optional[bool],
    metadata_only_verification: Optional[bool],
) -> None:
    """Show or change the auto-sync policy."""
    options = (auto_sync_enabled, frequency, wifi_only, metadata_only_verification)
    if all(option is None for option in options):
        display_schedule_state(app.settings_store.load_schedule_state())
        return

    state = app.scheduler.apply_policy(
        auto_sync_enabled=auto_sync_enabled,
        frequency=SyncFrequency(frequency) if frequency else None,
        wifi_only=wifi_only,
        metadata_only_verification=metadata_only_verification,
    )
    display_schedule_state(state)
    console.print("[green]✓ Auto-sync policy saved[/green]")
