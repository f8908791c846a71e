"""Unattended sync scheduling.

Three triggers lead into ``check_and_sync``: the application becoming active, a
network path change and a recurring backstop timer. The gate only starts a sync
when auto-sync is on, the network allows it and enough calendar time has passed
since the last successful sync. Unattended syncs always run in test mode
(metadata only).
"""

import logging
import threading
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import ConfigurationError
from ..database.settings_store import SettingsStore
from ..models import SyncFrequency, SyncScheduleState
from .orchestrator import SyncOrchestrator
from .reachability import NetworkPath, ReachabilityMonitor

logger = logging.getLogger(__name__)

BACKSTOP_JOB_ID = "photo-sync-backstop"


def _to_local(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone()


def _monday(day: date) -> date:
    return day - timedelta(days=day.weekday())


def calendar_units_between(
    earlier: datetime, later: datetime, frequency: SyncFrequency
) -> int:
    """Calendar units of ``frequency`` crossed between two instants.

    Both instants are compared in local time: days by date, weeks by the Monday
    of their ISO week, months by year and month. Naive values are taken as UTC.
    """
    start = _to_local(earlier)
    end = _to_local(later)

    if frequency is SyncFrequency.DAILY:
        return (end.date() - start.date()).days
    if frequency is SyncFrequency.WEEKLY:
        return (_monday(end.date()) - _monday(start.date())).days // 7
    if frequency is SyncFrequency.MONTHLY:
        return (end.year * 12 + end.month) - (start.year * 12 + start.month)
    return 0


def should_sync(state: SyncScheduleState, now: Optional[datetime] = None) -> bool:
    """Whether the schedule calls for a sync at ``now``."""
    if state.last_sync_time is None:
        return True
    if state.frequency is SyncFrequency.NEVER:
        return False
    if now is None:
        now = datetime.now(timezone.utc)
    return calendar_units_between(state.last_sync_time, now, state.frequency) >= 1


class AutoSyncScheduler:
    """Starts unattended syncs through the orchestrator."""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        settings_store: SettingsStore,
        reachability: ReachabilityMonitor,
        scheduler: Optional[Any] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize scheduler.

        Args:
            orchestrator: Orchestrator that runs the sync
            settings_store: Store holding the persisted schedule state
            reachability: Network monitor gating unattended syncs
            scheduler: APScheduler scheduler for the backstop timer
            clock: Source of the current time
        """
        self.orchestrator = orchestrator
        self.settings_store = settings_store
        self.reachability = reachability
        self.scheduler = scheduler or BackgroundScheduler(daemon=True)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._gate_lock = threading.Lock()
        self._started = False

    def start(self) -> None:
        """Listen for network changes, arm the timer and check once."""
        if self._started:
            return
        self._started = True
        self.reachability.add_listener(self.on_network_changed)
        if not self.scheduler.running:
            self.scheduler.start()
        self._arm_timer(self.settings_store.load_schedule_state())
        logger.info("Auto-sync scheduler started")
        self.check_and_sync()

    def shutdown(self) -> None:
        """Stop listening and stop the timer."""
        if not self._started:
            return
        self._started = False
        self.reachability.remove_listener(self.on_network_changed)
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Auto-sync scheduler stopped")

    # Triggers

    def on_app_became_active(self) -> bool:
        """Trigger for the application returning to the foreground."""
        logger.debug("Application became active")
        return self.check_and_sync()

    def on_network_changed(self, path: Optional[NetworkPath] = None) -> bool:
        """Trigger for a network path change."""
        logger.debug("Network changed: %s", path)
        return self.check_and_sync()

    def _on_timer(self) -> None:
        logger.debug("Backstop timer fired")
        self.check_and_sync()

    def check_and_sync(self) -> bool:
        """Start an unattended sync if the policy allows one now.

        Returns:
            True if a sync was started
        """
        with self._gate_lock:
            if self.orchestrator.is_syncing:
                logger.debug("Auto-sync skipped: sync already running")
                return False

            state = self.settings_store.load_schedule_state()
            if not state.auto_sync_enabled:
                logger.debug("Auto-sync skipped: disabled")
                return False

            self.reachability.wifi_only = state.wifi_only
            if not self.reachability.can_sync():
                logger.debug("Auto-sync skipped: network does not allow syncing")
                return False

            if not should_sync(state, self._clock()):
                logger.debug("Auto-sync skipped: last sync is recent enough")
                return False

            try:
                started = self.orchestrator.try_start(limit=None, test_mode=True)
            except ConfigurationError as e:
                logger.warning("Auto-sync skipped: %s", e)
                return False

            if started:
                logger.info("Auto-sync started (%s)", state.frequency.value)
            return started

    # Policy

    def apply_policy(
        self,
        auto_sync_enabled: Optional[bool] = None,
        frequency: Optional[SyncFrequency] = None,
        wifi_only: Optional[bool] = None,
        metadata_only_verification: Optional[bool] = None,
    ) -> SyncScheduleState:
        """Persist policy changes and re-arm the backstop timer.

        Returns:
            The updated schedule state
        """
        state = self.settings_store.load_schedule_state()
        if auto_sync_enabled is not None:
            state.auto_sync_enabled = auto_sync_enabled
        if frequency is not None:
            state.frequency = SyncFrequency(frequency)
        if wifi_only is not None:
            state.wifi_only = wifi_only
        if metadata_only_verification is not None:
            state.metadata_only_verification = metadata_only_verification
        self.settings_store.save_schedule_state(state)

        self.reachability.wifi_only = state.wifi_only
        self._arm_timer(state)
        logger.info(
            "Auto-sync policy: enabled=%s frequency=%s wifi_only=%s",
            state.auto_sync_enabled,
            state.frequency.value,
            state.wifi_only,
        )
        return state

    def _arm_timer(self, state: SyncScheduleState) -> None:
        if self.scheduler.get_job(BACKSTOP_JOB_ID) is not None:
            self.scheduler.remove_job(BACKSTOP_JOB_ID)

        interval = state.frequency.interval_seconds
        if not state.auto_sync_enabled or interval is None:
            logger.debug("Backstop timer disarmed")
            return

        self.scheduler.add_job(
            self._on_timer,
            IntervalTrigger(seconds=interval),
            id=BACKSTOP_JOB_ID,
            replace_existing=True,
        )
        logger.debug("Backstop timer armed every %ds", interval)
