"""Display formatters and UI helpers for CLI."""

from .formatters import (
    display_configuration,
    display_failed_items,
    display_recent_runs,
    display_schedule_state,
    display_status,
    display_verification_result,
)

__all__ = [
    "display_configuration",
    "display_failed_items",
    "display_recent_runs",
    "display_schedule_state",
    "display_status",
    "display_verification_result",
]
