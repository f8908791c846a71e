"""CLI command modules."""

from .app import PhotoSyncApp
from .remote import clear_remote, configure, health, validate
from .status import schedule, status, verify
from .sync import sync_command, watch

__all__ = [
    "PhotoSyncApp",
    "clear_remote",
    "configure",
    "health",
    "schedule",
    "status",
    "sync_command",
    "validate",
    "verify",
    "watch",
]
