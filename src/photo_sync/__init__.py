"""Photo Cloud Sync.

Keeps a local photo catalog consistent with a remote store: batched metadata and
asset transfer, sampling verification and policy-driven unattended syncs.
"""

__version__ = "1.0.0"
__author__ = "Photo Cloud Sync contributors"
__email__ = ""

from .config import Config, ConfigurationError, SyncConfiguration
from .models import PhotoRecord, SyncFrequency, SyncScheduleState

__all__ = [
    "Config",
    "ConfigurationError",
    "PhotoRecord",
    "SyncConfiguration",
    "SyncFrequency",
    "SyncScheduleState",
]
