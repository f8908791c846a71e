"""Remote store access."""

from .client import RemoteServiceError, RemoteStoreClient
from .validator import CheckResult, RemoteValidator

__all__ = [
    "CheckResult",
    "RemoteServiceError",
    "RemoteStoreClient",
    "RemoteValidator",
]
