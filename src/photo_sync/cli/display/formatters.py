"""Display formatters and UI helpers for CLI."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from ...config import SyncConfiguration
from ...core.orchestrator import SyncStatus
from ...core.verifier import VerificationResult
from ...database.models import SyncRun
from ...models import SyncScheduleState

console = Console()
logger = logging.getLogger(__name__)

FAILED_ITEMS_SHOWN = 10


def _mask(secret: str) -> str:
    if not secret:
        return "[dim]not set[/dim]"
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}{'*' * 8}{secret[-4:]}"


def _when(value: Any) -> str:
    if not isinstance(value, datetime):
        return "-"
    # SQLite hands back stored UTC values without a zone
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def display_configuration(configuration: SyncConfiguration) -> None:
    """Display the stored remote identity with the token masked.

    Args:
        configuration: Remote identity to show
    """
    table = Table(title="Remote Configuration", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("API token", _mask(configuration.api_token))
    table.add_row("Account ID", configuration.account_id or "[dim]not set[/dim]")
    table.add_row("Worker", configuration.worker_name or "[dim]not set[/dim]")
    table.add_row("Bucket", configuration.bucket_name or "[dim]not set[/dim]")
    table.add_row("Database", configuration.database_name or "[dim]not set[/dim]")
    table.add_row("Service URL", configuration.service_url or "[dim]-[/dim]")
    table.add_row(
        "Configured",
        "[green]yes[/green]" if configuration.is_configured else "[red]no[/red]",
    )

    console.print(table)


def display_failed_items(failed_items: Sequence[str]) -> None:
    """Display the first failed items of a session.

    Args:
        failed_items: ``"<id>: <kind>: <reason>"`` entries
    """
    if not failed_items:
        return
    console.print(f"\n[red]⚠️  {len(failed_items)} item(s) failed:[/red]")
    for item in failed_items[:FAILED_ITEMS_SHOWN]:
        console.print(f"  • {item}")
    if len(failed_items) > FAILED_ITEMS_SHOWN:
        console.print(f"  ... and {len(failed_items) - FAILED_ITEMS_SHOWN} more")


def display_verification_result(
    result: VerificationResult, detailed: bool = False
) -> None:
    """Display a verification outcome.

    Args:
        result: Verification result
        detailed: Render the full markdown report instead of the summary table
    """
    if detailed:
        console.print(Markdown(result.detailed_report()))
        return

    colour = "green" if result.success else "red"
    icon = "✓" if result.success else "✗"
    console.print(f"\n[{colour}]{icon} {result.message}[/{colour}]")

    table = Table(show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    cloud = result.total_cloud_photos
    table.add_row("Local photos", str(result.total_local_photos))
    table.add_row("Remote photos", str(cloud) if cloud is not None else "unknown")
    table.add_row("Sampled", str(result.sample_size))
    table.add_row("Verified", f"[green]{result.verified_photos}[/green]")
    for label, ids in (
        ("Missing", result.missing_photos),
        ("Metadata mismatch", result.metadata_mismatch),
        ("Integrity failed", result.integrity_failed),
    ):
        value = f"[red]{len(ids)}[/red]" if ids else "0"
        table.add_row(label, value)
    table.add_row("Checked at", _when(result.checked_at))

    console.print(table)


def display_schedule_state(state: SyncScheduleState) -> None:
    """Display the auto-sync policy.

    Args:
        state: Persisted schedule state
    """
    table = Table(title="Auto-sync", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row(
        "Enabled",
        "[green]yes[/green]" if state.auto_sync_enabled else "[yellow]no[/yellow]",
    )
    table.add_row("Frequency", state.frequency.value)
    table.add_row("Wifi only", "yes" if state.wifi_only else "no")
    table.add_row(
        "Verification", "metadata only" if state.metadata_only_verification else "full"
    )
    table.add_row("Last sync", _when(state.last_sync_time))

    console.print(table)


def display_recent_runs(runs: List[SyncRun]) -> None:
    """Display recent sync sessions, newest first.

    Args:
        runs: Sync history rows
    """
    if not runs:
        console.print("[dim]No sync sessions recorded yet[/dim]")
        return

    table = Table(title="Recent Syncs")
    table.add_column("Started", style="cyan")
    table.add_column("Mode")
    table.add_column("Synced", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Result")

    for run in runs:
        if run.cancelled:
            outcome = "[yellow]cancelled[/yellow]"
        elif run.success:
            outcome = "[green]ok[/green]"
        else:
            outcome = "[red]failed[/red]"
        table.add_row(
            _when(run.started_at),
            "metadata" if run.test_mode else "full",
            f"{run.synced_count}/{run.total_count}",
            str(run.failed_count) if run.failed_count else "0",
            outcome,
        )

    console.print(table)


def display_status(
    status: SyncStatus, summary: str, last_sync: str, stats: Dict[str, Any]
) -> None:
    """Display the orchestrator snapshot and catalog statistics.

    Args:
        status: Orchestrator snapshot
        summary: One-line status summary
        last_sync: Relative time of the last successful sync
        stats: Database statistics
    """
    console.print(f"\n[bold]{summary}[/bold]")
    console.print(f"[dim]Last sync: {last_sync}[/dim]\n")

    table = Table(show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")

    table.add_row("State", status.state.value)
    if status.is_syncing:
        table.add_row("Progress", f"{status.fraction * 100:.0f}%")
    table.add_row("Message", status.message)
    table.add_row("Catalog photos", str(stats.get("photos", 0)))
    table.add_row("Recorded syncs", str(stats.get("sync_runs", 0)))
    failed_runs = stats.get("failed_sync_runs", 0)
    table.add_row(
        "Failed syncs", f"[red]{failed_runs}[/red]" if failed_runs else "0"
    )
    table.add_row("Database", str(stats.get("database_path", "")))

    console.print(table)
