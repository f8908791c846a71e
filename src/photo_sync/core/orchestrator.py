"""Single coordination point for sync sessions and verification.

The orchestrator owns the "is a sync running" state behind a lock, so at most one
session exists at a time. ``try_start`` checks and transitions atomically; the
session itself runs on a worker thread and reports back through the transfer
engine's callbacks, which the orchestrator republishes to its subscribers.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError

from ..config import SyncConfiguration
from ..database.progress_tracker import ProgressUpdate
from ..database.service import DatabaseService
from ..database.settings_store import SettingsStore
from .transfer import CancellationToken, TransferEngine
from .verifier import DEFAULT_SAMPLE_SIZE, VerificationResult, Verifier

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """Orchestrator states."""

    IDLE = "idle"
    SYNCING = "syncing"


@dataclass(frozen=True)
class SyncStatus:
    """Published snapshot of the orchestrator."""

    state: SyncState
    fraction: float
    synced: int
    total: int
    message: str
    failed_items: Tuple[str, ...]
    is_verifying: bool
    last_verification: Optional[VerificationResult]

    @property
    def is_syncing(self) -> bool:
        """True while a session runs."""
        return self.state is SyncState.SYNCING


@dataclass(frozen=True)
class ProgressEvent:
    """Progress of the running session."""

    update: ProgressUpdate


@dataclass(frozen=True)
class CompletionEvent:
    """End of a session with the full list of failed items."""

    success: bool
    message: str
    failed_items: Tuple[str, ...]


@dataclass(frozen=True)
class SyncCompletedEvent:
    """Broadcast sent after every session."""

    success: bool
    message: str
    failed_count: int


@dataclass(frozen=True)
class VerificationEvent:
    """A verification finished."""

    result: VerificationResult


SyncEvent = Union[ProgressEvent, CompletionEvent, SyncCompletedEvent, VerificationEvent]
SyncListener = Callable[[SyncEvent], None]
EngineFactory = Callable[[SyncConfiguration], TransferEngine]
VerifierFactory = Callable[[SyncConfiguration], Verifier]

READY_MESSAGE = "Ready to sync"


def format_relative_time(then: datetime, now: Optional[datetime] = None) -> str:
    """Human readable distance between ``then`` and ``now``."""
    if now is None:
        now = datetime.now(timezone.utc)
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    seconds = int((now - then).total_seconds())
    if seconds < 0:
        return "in the future"
    if seconds < 60:
        return "just now"

    for unit, size in (
        ("year", 365 * 86400),
        ("month", 30 * 86400),
        ("week", 7 * 86400),
        ("day", 86400),
        ("hour", 3600),
        ("minute", 60),
    ):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return "just now"


class SyncOrchestrator:
    """Owns the sync state machine and fans out its events."""

    def __init__(
        self,
        settings_store: SettingsStore,
        engine_factory: EngineFactory,
        verifier_factory: VerifierFactory,
        db_service: Optional[DatabaseService] = None,
    ):
        """Initialize orchestrator.

        Args:
            settings_store: Source of the remote identity and schedule state
            engine_factory: Builds a transfer engine for a configuration
            verifier_factory: Builds a verifier for a configuration
            db_service: When given, every finished session is written to history
        """
        self.settings_store = settings_store
        self.engine_factory = engine_factory
        self.verifier_factory = verifier_factory
        self.db_service = db_service

        self._lock = threading.RLock()
        self._dispatch_lock = threading.Lock()
        self._listeners: List[SyncListener] = []

        self._state = SyncState.IDLE
        self._fraction = 0.0
        self._synced = 0
        self._total = 0
        self._message = READY_MESSAGE
        self._failed_items: Tuple[str, ...] = ()
        self._is_verifying = False
        self._last_verification: Optional[VerificationResult] = None

        self._token: Optional[CancellationToken] = None
        self._thread: Optional[threading.Thread] = None
        self._session_started_at: Optional[datetime] = None
        self._session_test_mode = False

        self._engine: Optional[TransferEngine] = None
        self._engine_config: Optional[SyncConfiguration] = None
        self._verifier: Optional[Verifier] = None
        self._verifier_config: Optional[SyncConfiguration] = None

    # =========================================================================
    # Observers
    # =========================================================================

    def subscribe(self, listener: SyncListener) -> Callable[[], None]:
        """Register a listener for every event.

        Returns:
            Function that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _dispatch(self, event: SyncEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        with self._dispatch_lock:
            for listener in listeners:
                try:
                    listener(event)
                except Exception as e:
                    logger.error(
                        "Error in sync listener for %s: %s", type(event).__name__, e
                    )

    # =========================================================================
    # Published state
    # =========================================================================

    @property
    def state(self) -> SyncState:
        """Current state."""
        with self._lock:
            return self._state

    @property
    def is_syncing(self) -> bool:
        """True while a session runs."""
        return self.state is SyncState.SYNCING

    @property
    def is_verifying(self) -> bool:
        """True while a verification runs."""
        with self._lock:
            return self._is_verifying

    @property
    def status(self) -> SyncStatus:
        """Consistent snapshot of the published state."""
        with self._lock:
            return SyncStatus(
                state=self._state,
                fraction=self._fraction,
                synced=self._synced,
                total=self._total,
                message=self._message,
                failed_items=self._failed_items,
                is_verifying=self._is_verifying,
                last_verification=self._last_verification,
            )

    @property
    def last_sync_time(self) -> Optional[datetime]:
        """Time of the last successful sync."""
        return self.settings_store.get_last_sync_time()

    @property
    def last_sync_time_text(self) -> str:
        """Relative time of the last successful sync."""
        last = self.last_sync_time
        if last is None:
            return "Never synced"
        return format_relative_time(last)

    @property
    def status_summary(self) -> str:
        """One line describing the sync state."""
        status = self.status
        if status.is_syncing:
            return f"Syncing - {status.synced}/{status.total} photos"
        result = status.last_verification
        if result is None:
            return "Sync status not verified"
        if result.success:
            return f"In sync - verified {result.verified_photos} photos"
        return f"Sync has issues - {len(result.problem_ids)} problems to resolve"

    # =========================================================================
    # Sync sessions
    # =========================================================================

    def try_start(self, limit: Optional[int] = None, test_mode: bool = False) -> bool:
        """Start a session unless one is already running.

        Args:
            limit: Only sync the first ``limit`` catalog records
            test_mode: Send metadata only

        Returns:
            True if a session was started, False if one was already running

        Raises:
            ConfigurationError: If the remote identity is incomplete
        """
        configuration = self.settings_store.load_configuration()
        configuration.require_configured()

        with self._lock:
            if self._state is SyncState.SYNCING:
                logger.info("Sync already running, start request ignored")
                return False

            engine = self._engine_for(configuration)
            token = CancellationToken()

            self._state = SyncState.SYNCING
            self._fraction = 0.0
            self._synced = 0
            self._total = 0
            self._message = "Preparing sync..."
            self._failed_items = ()
            self._token = token
            self._session_started_at = datetime.now(timezone.utc)
            self._session_test_mode = test_mode

            self._thread = threading.Thread(
                target=self._run_session,
                args=(engine, limit, test_mode, token),
                daemon=True,
                name="photo-sync-session",
            )
            self._thread.start()

        logger.info(
            "Sync started (limit=%s, test_mode=%s)",
            limit if limit is not None else "none",
            test_mode,
        )
        return True

    start = try_start

    def cancel(self) -> bool:
        """Request cancellation of the running session.

        Returns:
            True if a running session was asked to stop
        """
        with self._lock:
            if self._state is not SyncState.SYNCING or self._token is None:
                return False
            self._token.cancel()
        logger.info("Sync cancellation requested")
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the running session finishes.

        Returns:
            True if no session is running any more
        """
        with self._lock:
            thread = self._thread
        if thread is not None:
            # Completion listeners run on the session thread
            thread.join(timeout)
            if thread.is_alive():
                return False
        return not self.is_syncing

    def _engine_for(self, configuration: SyncConfiguration) -> TransferEngine:
        if self._engine is None or self._engine_config != configuration:
            self._engine = self.engine_factory(configuration)
            self._engine_config = configuration
        return self._engine

    def _run_session(
        self,
        engine: TransferEngine,
        limit: Optional[int],
        test_mode: bool,
        token: CancellationToken,
    ) -> None:
        try:
            engine.sync(
                limit=limit,
                test_mode=test_mode,
                on_progress=self._handle_progress,
                on_complete=self._handle_complete,
                cancel_token=token,
            )
        except Exception as e:
            logger.exception("Sync session crashed")
            self._handle_complete(False, f"Sync failed: {e}", [])
        finally:
            # Every session ends in IDLE
            if self.is_syncing and self._token is token:
                self._handle_complete(False, "Sync ended without completion", [])

    def _handle_progress(self, update: ProgressUpdate) -> None:
        with self._lock:
            if self._state is not SyncState.SYNCING:
                return
            self._fraction = max(self._fraction, update.fraction)
            self._synced = update.synced
            self._total = update.total
            if update.message:
                self._message = update.message
        self._dispatch(ProgressEvent(update))

    def _handle_complete(
        self, success: bool, message: str, failed_items: List[str]
    ) -> None:
        with self._lock:
            if self._state is not SyncState.SYNCING:
                return
            cancelled = self._token.is_cancelled if self._token else False
            started_at = self._session_started_at or datetime.now(timezone.utc)
            test_mode = self._session_test_mode
            total = self._total
            synced = self._synced

            self._state = SyncState.IDLE
            self._fraction = 1.0
            self._message = message
            self._failed_items = tuple(failed_items)
            self._token = None

        completed_at = datetime.now(timezone.utc)
        if success:
            try:
                self.settings_store.set_last_sync_time(completed_at)
            except SQLAlchemyError as e:
                logger.error("Failed to persist last sync time: %s", e)
        self._record_history(
            started_at,
            completed_at,
            success,
            message,
            total,
            synced,
            failed_items,
            test_mode,
            cancelled,
        )

        logger.info(
            "Sync %s: %s (%d failed items)",
            "succeeded" if success else "failed",
            message,
            len(failed_items),
        )
        self._dispatch(CompletionEvent(success, message, tuple(failed_items)))
        self._dispatch(SyncCompletedEvent(success, message, len(failed_items)))

    def _record_history(
        self,
        started_at: datetime,
        completed_at: datetime,
        success: bool,
        message: str,
        total: int,
        synced: int,
        failed_items: List[str],
        test_mode: bool,
        cancelled: bool,
    ) -> None:
        if self.db_service is None:
            return
        try:
            self.db_service.record_sync_run(
                started_at=started_at,
                completed_at=completed_at,
                success=success,
                message=message,
                total_count=total,
                synced_count=synced,
                failed_items=list(failed_items),
                test_mode=test_mode,
                cancelled=cancelled,
            )
        except SQLAlchemyError as e:
            logger.error("Failed to record sync history: %s", e)

    # =========================================================================
    # Verification
    # =========================================================================

    def _verifier_for(self, configuration: SyncConfiguration) -> Verifier:
        with self._lock:
            if self._verifier is None or self._verifier_config != configuration:
                self._verifier = self.verifier_factory(configuration)
                self._verifier_config = configuration
            return self._verifier

    def verify(
        self, sample_size: int = DEFAULT_SAMPLE_SIZE, force_refresh: bool = False
    ) -> VerificationResult:
        """Verify a sample of the catalog against the remote store.

        Raises:
            ConfigurationError: If the remote identity is incomplete
        """
        configuration = self.settings_store.load_configuration()
        configuration.require_configured()
        verifier = self._verifier_for(configuration)
        verifier.metadata_only = (
            self.settings_store.load_schedule_state().metadata_only_verification
        )

        with self._lock:
            self._is_verifying = True
        try:
            result = verifier.verify(
                sample_size=sample_size, force_refresh=force_refresh
            )
        finally:
            with self._lock:
                self._is_verifying = False

        with self._lock:
            self._last_verification = result
        self._dispatch(VerificationEvent(result))
        return result

    def verify_status(
        self, sample_size: int = DEFAULT_SAMPLE_SIZE, force_refresh: bool = False
    ) -> Tuple[bool, str, int]:
        """Verify and summarize as (success, message, clean photo count)."""
        result = self.verify(sample_size=sample_size, force_refresh=force_refresh)
        clean = max(result.sample_size - len(result.problem_ids), 0)
        return result.success, result.message, clean
