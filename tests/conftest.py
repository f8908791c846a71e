"""Shared fixtures."""

from typing import List

import pytest

from photo_sync.config import SyncConfiguration
from photo_sync.database import DatabaseService, SettingsStore
from photo_sync.models import PhotoRecord


def make_record(index: int, **overrides) -> PhotoRecord:
    """Build a catalog record with distinct metadata."""
    values = {
        "id": f"photo-{index:03d}",
        "title": f"Photo {index}",
        "path": f"originals/photo-{index:03d}.jpg",
        "thumbnail_path_100": f"thumbs/photo-{index:03d}_100.jpg",
        "thumbnail_path_350": f"thumbs/photo-{index:03d}_350.jpg",
        "star_rating": index % 6,
        "country": "Japan",
        "locality": "Kyoto",
        "date_time_original": f"2024:01:{(index % 28) + 1:02d} 10:00:00",
        "model": "X100V",
        "exposure_time": 0.004,
        "f_number": 2.0,
        "iso": 200,
        "latitude": 35.0116,
        "longitude": 135.7681,
    }
    values.update(overrides)
    return PhotoRecord(**values)


def make_records(count: int) -> List[PhotoRecord]:
    """Build ``count`` distinct records."""
    return [make_record(i) for i in range(count)]


def configured() -> SyncConfiguration:
    """A complete remote identity."""
    return SyncConfiguration(
        api_token="token-1234567890",
        account_id="account-1",
        worker_name="photos",
        bucket_name="photo-bucket",
        database_name="photo-db",
    )


@pytest.fixture
def temp_db(tmp_path):
    """Create a temporary database for testing."""
    db = DatabaseService(tmp_path / "catalog.db")
    yield db
    db.close()


@pytest.fixture
def settings_store(temp_db):
    """Settings store on the temporary database."""
    return SettingsStore(temp_db)


@pytest.fixture
def configured_store(settings_store):
    """Settings store holding a complete remote identity."""
    settings_store.save_configuration(configured())
    return settings_store
