"""Commands that manage and probe the remote store."""

import logging
from typing import Optional

import click
from rich.console import Console

from ...config import ConfigurationError
from ...remote import RemoteServiceError, RemoteValidator
from ..display import display_configuration
from .app import PhotoSyncApp

console = Console()
logger = logging.getLogger(__name__)


@click.command("configure")
@click.option("--api-token", help="API token of the remote provider")
@click.option("--account-id", help="Provider account identifier")
@click.option("--worker-name", help="Name of the sync worker")
@click.option("--bucket-name", help="Bucket holding the photo files")
@click.option("--database-name", help="Remote metadata database")
@click.option("--service-url", help="Override the worker URL")
@click.option("--clear", is_flag=True, help="Forget the stored configuration")
@click.option("--show", is_flag=True, help="Only show the stored configuration")
@click.pass_obj
def configure(
    app: PhotoSyncApp,
    api_token: Optional[str],
    account_id: Optional[str],
    worker_name: Optional[str],
    bucket_name: Optional[str],
    database_name: Optional[str],
    service_url: Optional[str],
    clear: bool,
    show: bool,
) -> None:
    """Store the remote identity used for sync and verification.

    Fields that are not given keep their stored value.
    """
    if clear:
        app.settings_store.clear_configuration()
        console.print("[green]✓ Configuration cleared[/green]")
        return

    configuration = app.settings_store.load_configuration()
    if show:
        display_configuration(configuration)
        return

    updates = {
        "api_token": api_token,
        "account_id": account_id,
        "worker_name": worker_name,
        "bucket_name": bucket_name,
        "database_name": database_name,
        "service_url_override": service_url,
    }
    changes = {key: value.strip() for key, value in updates.items() if value}
    if not changes:
        display_configuration(configuration)
        console.print("[dim]Nothing to change[/dim]")
        return

    configuration = configuration.model_copy(update=changes)
    app.settings_store.save_configuration(configuration)
    display_configuration(configuration)

    result = configuration.validate_fields()
    if result.is_valid:
        console.print("[green]✓ Configuration saved[/green]")
    else:
        console.print("[yellow]⚠️  Configuration saved but incomplete:[/yellow]")
        for error in result.errors:
            console.print(f"  • {error}")


@click.command("validate")
@click.pass_obj
def validate(app: PhotoSyncApp) -> None:
    """Check the stored identity against the provider and the worker."""
    configuration = app.load_configuration()
    with console.status("Validating configuration..."):
        result = RemoteValidator().validate_full_configuration(configuration)

    if result.ok:
        console.print("[green]✓ Configuration is valid[/green]")
        return
    console.print(f"[red]✗ {result.message}[/red]")
    raise click.ClickException(result.message or "Configuration is invalid")


@click.command("health")
@click.pass_obj
def health(app: PhotoSyncApp) -> None:
    """Ping the sync worker and report the remote photo count."""
    try:
        client = app.build_client()
    except ConfigurationError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise click.ClickException(str(e))

    try:
        if not client.health_check():
            console.print(f"[red]✗ {client.base_url} is not responding[/red]")
            raise click.ClickException("Remote service is unreachable")

        console.print(f"[green]✓ {client.base_url} is healthy[/green]")
        count = client.get_photo_count()
        if count is not None:
            console.print(f"  Remote photos: {count}")
        console.print(f"  Local photos: {app.db_service.count_photos()}")
    finally:
        client.close()


@click.command("clear-remote")
@click.option(
    "--token",
    prompt=True,
    hide_input=True,
    help="Clear token accepted by the worker",
)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def clear_remote(app: PhotoSyncApp, token: str, yes: bool) -> None:
    """Delete every photo and file from the remote store."""
    if not yes:
        click.confirm(
            "This removes ALL photos from the remote store. Continue?", abort=True
        )

    try:
        client = app.build_client()
    except ConfigurationError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise click.ClickException(str(e))

    try:
        result = client.clear_all(token)
    except RemoteServiceError as e:
        logger.error("Clearing remote store failed: %s", e)
        console.print(f"[red]✗ Clear failed: {e}[/red]")
        raise click.ClickException(str(e))
    finally:
        client.close()

    # The next unattended check must sync again
    state = app.settings_store.load_schedule_state()
    state.last_sync_time = None
    app.settings_store.save_schedule_state(state)
    console.print("[green]✓ Remote store cleared[/green]")
    if result:
        for key, value in result.items():
            console.print(f"  {key}: {value}")
