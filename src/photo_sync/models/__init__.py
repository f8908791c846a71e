"""Data models for the photo sync engine."""

from .models import (
    METADATA_WIRE_FIELDS,
    ConnectionType,
    FileKind,
    PhotoRecord,
    SyncFrequency,
    SyncScheduleState,
)

__all__ = [
    "METADATA_WIRE_FIELDS",
    "ConnectionType",
    "FileKind",
    "PhotoRecord",
    "SyncFrequency",
    "SyncScheduleState",
]
