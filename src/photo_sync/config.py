"""Configuration management for the photo sync engine.

Two layers live here:

* ``Config`` - process-level settings read from ``PHOTO_SYNC_*`` environment
  variables (a ``.env`` file is loaded first).
* ``SyncConfiguration`` - the remote identity (API token, account, worker,
  bucket, database) that the user enters once and that is persisted in the
  settings store.
"""

import os
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from pathlib import Path
from typing import ClassVar, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel

config_env = Path(__file__).parent.parent.parent / "config" / ".env"
if config_env.exists():
    load_dotenv(config_env)
else:
    load_dotenv()


class ConfigurationError(Exception):
    """Raised when the remote identity is incomplete."""

    def __init__(self, errors: List[str]):
        """Initialize with one reason per invalid field."""
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Cloud sync is not configured")


@dataclass
class ValidationResult:
    """Outcome of validating a ``SyncConfiguration``."""

    errors: List[str] = dataclass_field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """True when no field failed validation."""
        return not self.errors

    @property
    def error_message(self) -> Optional[str]:
        """First reason, for single-line display."""
        return self.errors[0] if self.errors else None


class SyncConfiguration(BaseModel):
    """Remote identity used by every sync and verify call."""

    api_token: str = ""
    account_id: str = ""
    worker_name: str = ""
    bucket_name: str = ""
    database_name: str = ""
    service_url_override: Optional[str] = None
    is_configured: bool = False

    REQUIRED_FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("api_token", "API token is not set"),
        ("account_id", "Account ID is not set"),
        ("worker_name", "Worker name is not set"),
        ("bucket_name", "Bucket name is not set"),
        ("database_name", "Database name is not set"),
    )

    @property
    def service_url(self) -> Optional[str]:
        """Base URL of the sync worker, derived from the worker name."""
        if self.service_url_override:
            return self.service_url_override.rstrip("/")
        if not self.worker_name.strip():
            return None
        return f"https://{self.worker_name.strip()}.workers.dev"

    def validate_fields(self) -> ValidationResult:
        """Check every identity field and report each missing one."""
        result = ValidationResult()
        for field_name, reason in self.REQUIRED_FIELDS:
            if not str(getattr(self, field_name)).strip():
                result.errors.append(reason)
        if not result.errors and self.service_url is None:
            result.errors.append("Unable to build a valid service URL")
        return result

    def refresh_configured_flag(self) -> ValidationResult:
        """Validate and cache the outcome in ``is_configured``."""
        result = self.validate_fields()
        self.is_configured = result.is_valid
        return result

    def require_configured(self) -> None:
        """Raise ``ConfigurationError`` unless every field is set.

        Raises:
            ConfigurationError: If one or more identity fields are empty
        """
        if self.is_configured:
            return
        result = self.refresh_configured_flag()
        if not result.is_valid:
            raise ConfigurationError(result.errors)


class Config:
    """Application configuration."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        default_db_path = str(Path.home() / ".photo-sync" / "catalog.db")
        self.database_path = Path(
            os.getenv("PHOTO_SYNC_DATABASE_PATH", default_db_path)
        )

        # Photo and thumbnail paths in the catalog are relative to this root
        self.media_root = Path(
            os.getenv(
                "PHOTO_SYNC_MEDIA_ROOT",
                str(Path.home() / "Pictures" / "photo-sync"),
            )
        )

        log_file = os.getenv("PHOTO_SYNC_LOG_FILE")
        self.log_file = Path(log_file) if log_file else None

        # Remote transport settings
        self.http_timeout = float(os.getenv("PHOTO_SYNC_HTTP_TIMEOUT", "60"))
        self.http_max_retries = int(os.getenv("PHOTO_SYNC_HTTP_MAX_RETRIES", "3"))
        self.service_url = os.getenv("PHOTO_SYNC_SERVICE_URL") or None

        # Transfer pacing
        self.batch_delay = float(os.getenv("PHOTO_SYNC_BATCH_DELAY", "2.0"))

        # Reachability probing
        self.reachability_interval = float(
            os.getenv("PHOTO_SYNC_REACHABILITY_INTERVAL", "15")
        )

        self._ensure_directories()

    def _ensure_directories(self) -> None:
        """Ensure required directories exist."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def get_config() -> Config:
    """Get application configuration."""
    return Config()
