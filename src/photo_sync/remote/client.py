"""HTTP client for the remote photo store.

The remote worker exposes a small JSON API under ``/api``. Every call goes through
``_request``, which adds the bearer token, applies the configured timeout and
retries server errors (5xx) with exponential backoff.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import requests

from ..config import SyncConfiguration
from ..models import PhotoRecord

logger = logging.getLogger(__name__)

SUCCESS_CODES: Tuple[int, ...] = (200, 201)


class RemoteServiceError(Exception):
    """Raised when the remote store rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        """Initialize with a reason and the HTTP status, if there was one."""
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        """String representation including the status code."""
        if self.status_code is None:
            return self.message
        return f"HTTP {self.status_code}: {self.message}"


class RemoteStoreClient:
    """Client for the remote store's HTTP API."""

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        timeout: float = 60.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize remote store client.

        Args:
            base_url: Service root, e.g. ``https://photos.example.workers.dev``
            api_token: Bearer token sent with every request
            timeout: Per-request timeout in seconds
            max_retries: Retries for server errors
            base_delay: First backoff delay in seconds (doubles each retry)
            session: Optional pre-built requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = session or requests.Session()
        if api_token:
            self.session.headers["Authorization"] = f"Bearer {api_token}"

    @classmethod
    def from_configuration(
        cls,
        configuration: SyncConfiguration,
        timeout: float = 60.0,
        max_retries: int = 3,
    ) -> "RemoteStoreClient":
        """Build a client for a validated ``SyncConfiguration``."""
        configuration.require_configured()
        return cls(
            base_url=configuration.service_url or "",
            api_token=configuration.api_token,
            timeout=timeout,
            max_retries=max_retries,
        )

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _retry_api_call(
        self, func: Callable[[], requests.Response]
    ) -> requests.Response:
        """Retry a request with exponential backoff on server errors.

        Args:
            func: Function performing one request

        Returns:
            The first response below 500, or the last 5xx response

        Raises:
            RemoteServiceError: On connection errors and timeouts
        """
        response = None
        for attempt in range(self.max_retries + 1):
            try:
                response = func()
            except requests.exceptions.RequestException as e:
                raise RemoteServiceError(f"Request failed: {e}") from e

            if response.status_code < 500 or attempt >= self.max_retries:
                return response

            delay = self.base_delay * (2**attempt)
            logger.warning(
                "Remote error %d, retrying in %.1fs... (attempt %d/%d)",
                response.status_code,
                delay,
                attempt + 1,
                self.max_retries,
            )
            time.sleep(delay)

        raise RemoteServiceError("No response received")

    def _request(
        self,
        method: str,
        path: str,
        expected: Iterable[int] = SUCCESS_CODES,
        **kwargs: Any,
    ) -> requests.Response:
        """Send a request and require one of the ``expected`` status codes."""
        url = self._url(path)
        kwargs.setdefault("timeout", self.timeout)
        logger.debug("%s %s", method, url)

        response = self._retry_api_call(
            lambda: self.session.request(method, url, **kwargs)
        )

        if response.status_code not in tuple(expected):
            body = (response.text or "").strip()
            message = f"{method} {path} failed"
            if body:
                message += f" - {body[:200]}"
            raise RemoteServiceError(message, response.status_code)
        return response

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteServiceError(
                "Invalid JSON in response", response.status_code
            ) from e
        if not isinstance(data, dict):
            raise RemoteServiceError("Unexpected response shape", response.status_code)
        return data

    # =========================================================================
    # Sync
    # =========================================================================

    def sync_metadata_batch(self, records: Iterable[PhotoRecord]) -> None:
        """Upload the metadata of one batch of photos.

        Raises:
            RemoteServiceError: If the batch was not accepted
        """
        payload = {"photos": [record.to_remote_payload() for record in records]}
        self._request("POST", "/api/sync", json=payload)
        logger.debug("Metadata batch of %d accepted", len(payload["photos"]))

    def upload_file(
        self, remote_path: str, content: bytes, content_type: str = "image/jpeg"
    ) -> None:
        """Upload one binary asset as multipart form data.

        Args:
            remote_path: Object key, e.g. ``photos/<id>.jpg``
            content: File bytes
            content_type: MIME type of the asset

        Raises:
            RemoteServiceError: If the upload was not accepted
        """
        self._request(
            "POST",
            "/api/upload",
            data={"path": remote_path},
            files={"file": (remote_path, content, content_type)},
        )

    def commit_sync(self, photo_count: int) -> None:
        """Finalize the metadata transaction opened by the batch uploads.

        Raises:
            RemoteServiceError: If the commit was rejected
        """
        self._request("POST", "/api/sync/commit", json={"count": photo_count})
        logger.info("Remote sync committed (%d photos)", photo_count)

    # =========================================================================
    # Verification
    # =========================================================================

    def photo_status(self, photo_id: str) -> int:
        """Status code of ``HEAD /api/photos/<id>``.

        200 means metadata and asset exist; 204 means only the metadata exists.
        """
        response = self._request(
            "HEAD", f"/api/photos/{photo_id}", expected=range(100, 600)
        )
        return response.status_code

    def get_metadata(self, photo_id: str) -> Optional[Dict[str, Any]]:
        """Remote metadata document of a photo, or None when unknown."""
        response = self._request(
            "GET", f"/api/metadata/{photo_id}", expected=(200, 404)
        )
        if response.status_code == 404:
            return None
        metadata = self._json(response).get("metadata")
        return metadata if isinstance(metadata, dict) else None

    def get_integrity(self, photo_id: str) -> Dict[str, Any]:
        """Integrity report for a photo's stored asset.

        Returns:
            Dictionary with ``isIntact`` and, when available, ``sha256``/``size``

        Raises:
            RemoteServiceError: If the report is unavailable
        """
        response = self._request("GET", f"/api/files/integrity/{photo_id}")
        integrity = self._json(response).get("integrity")
        if not isinstance(integrity, dict):
            raise RemoteServiceError("Integrity report missing", response.status_code)
        return integrity

    def get_photo_count(self) -> Optional[int]:
        """Number of photos in the remote bucket, or None when unavailable."""
        try:
            response = self._request("GET", "/api/files/count")
            count = self._json(response).get("count")
        except RemoteServiceError as e:
            logger.warning("Could not fetch remote photo count: %s", e)
            return None
        return count if isinstance(count, int) else None

    # =========================================================================
    # Administration
    # =========================================================================

    def health_check(self) -> bool:
        """True when the service answers ``GET /api/hello``."""
        try:
            self._request("GET", "/api/hello", expected=range(200, 300))
        except RemoteServiceError as e:
            logger.info("Health check failed: %s", e)
            return False
        return True

    def clear_all(self, token: str) -> Dict[str, Any]:
        """Delete every photo and metadata row on the remote side.

        Raises:
            RemoteServiceError: If the service refused the request
        """
        response = self._request("POST", "/api/clear", params={"token": token})
        logger.warning("Remote store cleared")
        try:
            return self._json(response)
        except RemoteServiceError:
            return {}

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()
