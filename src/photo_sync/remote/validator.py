"""Online checks for a remote identity before it is used for syncing."""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from ..config import SyncConfiguration

logger = logging.getLogger(__name__)

CLOUDFLARE_API_BASE = "https://api.cloudflare.com/client/v4"


@dataclass
class CheckResult:
    """Outcome of one validation step."""

    ok: bool
    message: Optional[str] = None


class RemoteValidator:
    """Validates account credentials and worker reachability."""

    def __init__(
        self, session: Optional[requests.Session] = None, timeout: float = 15.0
    ):
        """Initialize validator.

        Args:
            session: Optional requests session (a new one is created otherwise)
            timeout: Request timeout in seconds
        """
        self.session = session or requests.Session()
        self.timeout = timeout

    def validate_credentials(self, api_token: str, account_id: str) -> CheckResult:
        """Check that the token can read the account."""
        url = f"{CLOUDFLARE_API_BASE}/accounts/{account_id}"
        try:
            response = self.session.get(
                url,
                headers={
                    "Authorization": f"Bearer {api_token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning("Credential check failed: %s", e)
            return CheckResult(False, f"Network error: {e}")

        if response.status_code == 200:
            return CheckResult(True)
        if response.status_code in (401, 403):
            return CheckResult(False, "API token is invalid or lacks access")
        if response.status_code == 404:
            return CheckResult(False, "Account ID does not exist")

        try:
            errors = response.json().get("errors") or []
        except ValueError:
            errors = []
        if errors and isinstance(errors[0], dict) and errors[0].get("message"):
            return CheckResult(False, f"Provider error: {errors[0]['message']}")
        return CheckResult(False, f"Unknown error (HTTP {response.status_code})")

    def validate_worker_access(self, service_url: str) -> CheckResult:
        """Check that the worker answers its health endpoint."""
        url = f"{service_url.rstrip('/')}/health"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning("Worker check failed: %s", e)
            return CheckResult(False, f"Network error: {e}")

        if 200 <= response.status_code < 300:
            return CheckResult(True)
        if response.status_code == 404:
            return CheckResult(
                False, "Worker not found or health endpoint not implemented"
            )
        return CheckResult(
            False, f"Worker returned an error (HTTP {response.status_code})"
        )

    def validate_full_configuration(
        self, configuration: SyncConfiguration
    ) -> CheckResult:
        """Validate fields, then credentials, then the worker."""
        fields = configuration.validate_fields()
        if not fields.is_valid:
            return CheckResult(False, fields.error_message)

        credentials = self.validate_credentials(
            configuration.api_token, configuration.account_id
        )
        if not credentials.ok:
            return CheckResult(
                False, f"Credential validation failed: {credentials.message}"
            )

        service_url = configuration.service_url
        if service_url is None:
            return CheckResult(False, "Unable to build a valid service URL")

        worker = self.validate_worker_access(service_url)
        if not worker.ok:
            return CheckResult(False, f"Worker validation failed: {worker.message}")

        logger.info("Remote configuration validated for %s", service_url)
        return CheckResult(True)
