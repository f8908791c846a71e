"""Sync commands: one-off sessions and the unattended watcher."""

import logging
import threading
from typing import Any, Dict, Optional

import click
from rich.console import Console

from ...config import ConfigurationError
from ...core.orchestrator import (
    CompletionEvent,
    ProgressEvent,
    SyncEvent,
    VerificationEvent,
)
from ...database import ConsoleProgressReporter, TqdmProgressReporter
from ..display import display_failed_items
from .app import PhotoSyncApp

console = Console()
logger = logging.getLogger(__name__)

WAIT_POLL_SECONDS = 0.5


@click.command("sync")
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=None,
    help="Only sync the first N catalog photos",
)
@click.option(
    "--test-mode",
    is_flag=True,
    help="Send metadata only, do not upload files",
)
@click.option("--no-progress", is_flag=True, help="Disable the progress bar")
@click.option("--verbose", "-v", is_flag=True, help="Print every progress update")
@click.pass_obj
def sync_command(
    app: PhotoSyncApp,
    limit: Optional[int],
    test_mode: bool,
    no_progress: bool,
    verbose: bool,
) -> None:
    """Sync the local catalog to the remote store.

    Press Ctrl-C to cancel; the current batch finishes first.
    """
    reporter: Optional[Any] = None
    if verbose:
        reporter = ConsoleProgressReporter(verbose=True)
    elif not no_progress:
        reporter = TqdmProgressReporter(desc="Syncing photos")
    outcome: Dict[str, CompletionEvent] = {}

    def on_event(event: SyncEvent) -> None:
        if isinstance(event, ProgressEvent) and reporter is not None:
            reporter(event.update)
        elif isinstance(event, CompletionEvent):
            outcome["completion"] = event

    unsubscribe = app.orchestrator.subscribe(on_event)
    try:
        try:
            started = app.orchestrator.try_start(limit=limit, test_mode=test_mode)
        except ConfigurationError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise click.ClickException(str(e))

        if not started:
            console.print("[yellow]A sync is already running[/yellow]")
            return

        try:
            while not app.orchestrator.wait(timeout=WAIT_POLL_SECONDS):
                pass
        except KeyboardInterrupt:
            console.print("\n[yellow]Cancelling after the current batch...[/yellow]")
            app.orchestrator.cancel()
            app.orchestrator.wait()
    finally:
        unsubscribe()
        if isinstance(reporter, TqdmProgressReporter):
            reporter.close()

    completion = outcome.get("completion")
    if completion is None:
        raise click.ClickException("Sync ended without a result")

    if completion.success:
        console.print(f"\n[green]✓ {completion.message}[/green]")
    else:
        console.print(f"\n[red]✗ {completion.message}[/red]")
    display_failed_items(completion.failed_items)

    if not completion.success:
        raise click.ClickException(completion.message)


@click.command("watch")
@click.option(
    "--probe/--no-probe",
    default=True,
    help="Probe the sync worker to decide whether the network is up",
)
@click.pass_obj
def watch(app: PhotoSyncApp, probe: bool) -> None:
    """Run unattended syncs according to the auto-sync policy.

    Syncs start when the network changes, on a recurring timer and once at
    startup, whenever the policy allows one. Press Ctrl-C to stop.
    """
    if probe:
        service_url = app.load_configuration().service_url
        if service_url:
            app.reachability.set_probe_from_url(service_url)

    def on_event(event: SyncEvent) -> None:
        if isinstance(event, CompletionEvent):
            colour = "green" if event.success else "red"
            console.print(f"[{colour}]{event.message}[/{colour}]")
            display_failed_items(event.failed_items)
        elif isinstance(event, VerificationEvent):
            console.print(f"[cyan]{event.result.message}[/cyan]")

    unsubscribe = app.orchestrator.subscribe(on_event)
    stop = threading.Event()

    app.reachability.start()
    app.scheduler.start()
    state = app.settings_store.load_schedule_state()
    if state.auto_sync_enabled:
        console.print(
            f"[bold blue]Watching for sync opportunities "
            f"({state.frequency.value}, "
            f"{'wifi only' if state.wifi_only else 'any network'})[/bold blue]"
        )
    else:
        console.print(
            "[yellow]Auto-sync is disabled; enable it with "
            "'photo-sync schedule --enable'[/yellow]"
        )

    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping...[/yellow]")
    finally:
        unsubscribe()
        if app.orchestrator.cancel():
            app.orchestrator.wait()
        app.scheduler.shutdown()
        app.reachability.stop()
