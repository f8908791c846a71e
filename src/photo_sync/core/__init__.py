"""Core sync engine: reachability, transfer, verification, orchestration."""

from .orchestrator import (
    CompletionEvent,
    ProgressEvent,
    SyncCompletedEvent,
    SyncOrchestrator,
    SyncState,
    SyncStatus,
    VerificationEvent,
)
from .reachability import NetworkPath, ReachabilityError, ReachabilityMonitor
from .scheduler import AutoSyncScheduler, calendar_units_between, should_sync
from .transfer import (
    CancellationToken,
    SyncSession,
    TransferEngine,
    TransferItemError,
)
from .verifier import MismatchKind, VerificationResult, Verifier

__all__ = [
    "AutoSyncScheduler",
    "CancellationToken",
    "CompletionEvent",
    "MismatchKind",
    "NetworkPath",
    "ProgressEvent",
    "ReachabilityError",
    "ReachabilityMonitor",
    "SyncCompletedEvent",
    "SyncOrchestrator",
    "SyncSession",
    "SyncState",
    "SyncStatus",
    "TransferEngine",
    "TransferItemError",
    "VerificationEvent",
    "VerificationResult",
    "Verifier",
    "calendar_units_between",
    "should_sync",
]
