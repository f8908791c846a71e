"""Application wiring shared by every command."""

import logging
from pathlib import Path
from typing import Optional

from ...config import Config, SyncConfiguration, get_config
from ...core.orchestrator import SyncOrchestrator
from ...core.reachability import ReachabilityMonitor
from ...core.scheduler import AutoSyncScheduler
from ...core.transfer import TransferEngine
from ...core.verifier import Verifier
from ...database import DatabaseService, SettingsStore
from ...remote import RemoteStoreClient

logger = logging.getLogger(__name__)


class PhotoSyncApp:
    """Holds the services a command needs."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        """Initialize application.

        Args:
            db_path: Catalog database to use instead of the configured one
        """
        self.config: Config = get_config()
        if db_path is not None:
            self.config.database_path = Path(db_path)

        self.db_service = DatabaseService(db_path=self.config.database_path)
        self.settings_store = SettingsStore(self.db_service)
        self.reachability = ReachabilityMonitor(
            check_interval=self.config.reachability_interval
        )
        self.orchestrator = SyncOrchestrator(
            self.settings_store,
            engine_factory=self.build_engine,
            verifier_factory=self.build_verifier,
            db_service=self.db_service,
        )
        self.scheduler = AutoSyncScheduler(
            self.orchestrator, self.settings_store, self.reachability
        )

    def load_configuration(self) -> SyncConfiguration:
        """Stored remote identity with the environment URL override applied."""
        return self._apply_url_override(self.settings_store.load_configuration())

    def _apply_url_override(
        self, configuration: SyncConfiguration
    ) -> SyncConfiguration:
        if self.config.service_url and not configuration.service_url_override:
            return configuration.model_copy(
                update={"service_url_override": self.config.service_url}
            )
        return configuration

    def build_client(
        self, configuration: Optional[SyncConfiguration] = None
    ) -> RemoteStoreClient:
        """Create a remote client for ``configuration`` (stored one by default).

        Raises:
            ConfigurationError: If the remote identity is incomplete
        """
        if configuration is None:
            configuration = self.settings_store.load_configuration()
        return RemoteStoreClient.from_configuration(
            self._apply_url_override(configuration),
            timeout=self.config.http_timeout,
            max_retries=self.config.http_max_retries,
        )

    def build_engine(self, configuration: SyncConfiguration) -> TransferEngine:
        """Engine factory handed to the orchestrator."""
        logger.debug("Building transfer engine for %s", configuration.worker_name)
        return TransferEngine(
            self.db_service,
            self.build_client(configuration),
            self.config.media_root,
            batch_delay=self.config.batch_delay,
        )

    def build_verifier(self, configuration: SyncConfiguration) -> Verifier:
        """Verifier factory handed to the orchestrator."""
        logger.debug("Building verifier for %s", configuration.worker_name)
        return Verifier(
            self.db_service, self.build_client(configuration), self.config.media_root
        )

    def close(self) -> None:
        """Stop background services and release the database."""
        self.scheduler.shutdown()
        self.reachability.stop()
        self.db_service.close()
