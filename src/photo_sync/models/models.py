"""Domain models for the photo sync engine."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator

# Catalog attribute -> key in the remote metadata document
METADATA_WIRE_FIELDS: Dict[str, str] = {
    "id": "id",
    "title": "title",
    "star_rating": "starRating",
    "country": "country",
    "area": "area",
    "locality": "locality",
    "date_time_original": "dateTimeOriginal",
    "add_timestamp": "addTimestamp",
    "lens_model": "lensModel",
    "model": "model",
    "exposure_time": "exposureTime",
    "f_number": "fNumber",
    "focal_length_35mm": "focalLenIn35mmFilm",
    "focal_length": "focalLength",
    "iso": "isoSPEEDRatings",
    "altitude": "altitude",
    "latitude": "latitude",
    "longitude": "longitude",
    "object_name": "objectName",
    "caption": "caption",
}


class FileKind(str, Enum):
    """Binary assets uploaded for each photo."""

    ORIGINAL = "original"
    THUMBNAIL_100 = "thumbnail100"
    THUMBNAIL_350 = "thumbnail350"

    @property
    def folder(self) -> str:
        """Remote folder holding this kind of asset."""
        return "photos" if self is FileKind.ORIGINAL else "thumbnails"

    @property
    def suffix(self) -> str:
        """Remote file name suffix."""
        return {
            FileKind.ORIGINAL: ".jpg",
            FileKind.THUMBNAIL_100: "_100.jpg",
            FileKind.THUMBNAIL_350: "_350.jpg",
        }[self]

    def remote_path(self, photo_id: str) -> str:
        """Object key of this asset in the remote bucket."""
        return f"{self.folder}/{photo_id}{self.suffix}"


class PhotoRecord(BaseModel):
    """A photo as stored in the local catalog.

    The sync engine treats records as read-only input keyed by ``id``.
    Paths are relative to the catalog's media root.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    path: str = ""
    thumbnail_path_100: str = ""
    thumbnail_path_350: str = ""
    star_rating: int = 0
    country: str = ""
    area: str = ""
    locality: str = ""
    date_time_original: str = ""
    add_timestamp: str = ""
    lens_model: str = ""
    model: str = ""
    exposure_time: float = 0.0
    f_number: float = 0.0
    focal_length_35mm: float = 0.0
    focal_length: float = 0.0
    iso: int = 0
    altitude: float = 0.0
    latitude: float = 0.0
    longitude: float = 0.0
    object_name: str = ""
    caption: str = ""

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Reject blank identifiers."""
        if not v or not v.strip():
            raise ValueError("photo id must not be empty")
        return v

    def local_path_for(self, kind: FileKind) -> str:
        """Relative local path of the given asset."""
        if kind is FileKind.ORIGINAL:
            return self.path
        if kind is FileKind.THUMBNAIL_100:
            return self.thumbnail_path_100
        return self.thumbnail_path_350

    def metadata_fields(self) -> Dict[str, Any]:
        """Metadata values keyed by their remote field names."""
        return {
            wire: getattr(self, attr) for attr, wire in METADATA_WIRE_FIELDS.items()
        }

    def to_remote_payload(self) -> Dict[str, Any]:
        """Build the document sent in a metadata batch."""
        payload = self.metadata_fields()
        payload["path"] = FileKind.ORIGINAL.remote_path(self.id)
        payload["thumbnailPath100"] = FileKind.THUMBNAIL_100.remote_path(self.id)
        payload["thumbnailPath350"] = FileKind.THUMBNAIL_350.remote_path(self.id)
        return payload


class SyncFrequency(str, Enum):
    """How often unattended syncs should run."""

    NEVER = "never"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def interval_seconds(self) -> Optional[int]:
        """Backstop timer interval, or None when no timer is armed."""
        day = 24 * 60 * 60
        return {
            SyncFrequency.NEVER: None,
            SyncFrequency.DAILY: day,
            SyncFrequency.WEEKLY: 7 * day,
            SyncFrequency.MONTHLY: 30 * day,
        }[self]


class ConnectionType(str, Enum):
    """Classified network path."""

    WIFI = "wifi"
    CELLULAR = "cellular"
    WIRED = "wired"
    UNKNOWN = "unknown"


class SyncScheduleState(BaseModel):
    """Persisted auto-sync policy and bookkeeping."""

    last_sync_time: Optional[datetime] = None
    auto_sync_enabled: bool = False
    frequency: SyncFrequency = SyncFrequency.MONTHLY
    wifi_only: bool = True
    metadata_only_verification: bool = False
