"""Database package: local photo catalog, settings and progress tracking."""

from .models import Base, Photo, Setting, SyncRun
from .progress_tracker import (
    ConsoleProgressReporter,
    ProgressCallback,
    ProgressPhase,
    ProgressTracker,
    ProgressUpdate,
    TqdmProgressReporter,
)
from .service import DatabaseService
from .settings_store import SettingsStore

__all__ = [
    # Models
    "Base",
    "Photo",
    "Setting",
    "SyncRun",
    # Services
    "DatabaseService",
    "SettingsStore",
    # Progress tracking
    "ConsoleProgressReporter",
    "ProgressCallback",
    "ProgressPhase",
    "ProgressTracker",
    "ProgressUpdate",
    "TqdmProgressReporter",
]
