"""Key-value persistence for the remote identity and the auto-sync policy."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError

from ..config import SyncConfiguration
from ..models import SyncScheduleState
from .models import Setting
from .service import DatabaseService

logger = logging.getLogger(__name__)

CONFIGURATION_KEY = "sync_configuration"
SCHEDULE_STATE_KEY = "schedule_state"


class SettingsStore:
    """Stores JSON documents in the ``settings`` table."""

    def __init__(self, db_service: DatabaseService):
        """Initialize settings store.

        Args:
            db_service: Database service owning the settings table
        """
        self.db_service = db_service

    def get(self, key: str, default: Any = None) -> Any:
        """Read and decode a setting, or ``default`` when absent."""
        with self.db_service.get_session() as session:
            setting = session.get(Setting, key)
            if setting is None:
                return default
            try:
                return json.loads(setting.value)
            except json.JSONDecodeError:
                logger.warning("Setting %s is not valid JSON, ignoring it", key)
                return default

    def set(self, key: str, value: Any) -> None:
        """Encode and store a setting."""
        encoded = json.dumps(value)
        with self.db_service.get_session() as session:
            setting = session.get(Setting, key)
            if setting is None:
                session.add(Setting(key=key, value=encoded))
            else:
                setting.value = encoded
            session.commit()
        logger.debug("Saved setting %s", key)

    def delete(self, key: str) -> bool:
        """Remove a setting. Returns True if it existed."""
        with self.db_service.get_session() as session:
            setting = session.get(Setting, key)
            if setting is None:
                return False
            session.delete(setting)
            session.commit()
            return True

    # Remote identity

    def load_configuration(self) -> SyncConfiguration:
        """Load the stored remote identity (empty when never saved)."""
        data = self.get(CONFIGURATION_KEY)
        if not data:
            return SyncConfiguration()
        try:
            return SyncConfiguration.model_validate(data)
        except ValidationError as e:
            logger.error("Stored sync configuration is invalid: %s", e)
            return SyncConfiguration()

    def save_configuration(self, configuration: SyncConfiguration) -> None:
        """Validate and persist the remote identity with its configured flag."""
        result = configuration.refresh_configured_flag()
        if not result.is_valid:
            logger.warning(
                "Saving incomplete sync configuration: %s", "; ".join(result.errors)
            )
        self.set(CONFIGURATION_KEY, configuration.model_dump(mode="json"))
        logger.info("Sync configuration saved (configured=%s)", result.is_valid)

    def clear_configuration(self) -> None:
        """Forget the remote identity."""
        self.delete(CONFIGURATION_KEY)
        logger.info("Sync configuration cleared")

    # Auto-sync policy

    def load_schedule_state(self) -> SyncScheduleState:
        """Load the persisted auto-sync policy (defaults when never saved)."""
        data = self.get(SCHEDULE_STATE_KEY)
        if not data:
            return SyncScheduleState()
        try:
            return SyncScheduleState.model_validate(data)
        except ValidationError as e:
            logger.error("Stored schedule state is invalid: %s", e)
            return SyncScheduleState()

    def save_schedule_state(self, state: SyncScheduleState) -> None:
        """Persist the auto-sync policy."""
        self.set(SCHEDULE_STATE_KEY, state.model_dump(mode="json"))

    def get_last_sync_time(self) -> Optional[datetime]:
        """Time of the last successful sync, in UTC."""
        return self.load_schedule_state().last_sync_time

    def set_last_sync_time(self, when: Optional[datetime] = None) -> datetime:
        """Record a successful sync.

        Args:
            when: Completion time; defaults to now. Naive values are taken as UTC.

        Returns:
            The stored timestamp
        """
        if when is None:
            when = datetime.now(timezone.utc)
        elif when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        else:
            when = when.astimezone(timezone.utc)

        state = self.load_schedule_state()
        state.last_sync_time = when
        self.save_schedule_state(state)
        logger.debug("Last sync time set to %s", when.isoformat())
        return when
