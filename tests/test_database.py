"""Tests for database models, service and settings store."""

from datetime import datetime, timedelta, timezone

import pytest
from conftest import configured, make_record, make_records

from photo_sync.config import SyncConfiguration
from photo_sync.database import DatabaseService, Photo
from photo_sync.database.settings_store import CONFIGURATION_KEY
from photo_sync.models import SyncFrequency, SyncScheduleState


class TestDatabaseModels:
    """Test database models."""

    def test_photo_round_trips_to_record(self):
        """Test Photo row built from a record converts back unchanged."""
        record = make_record(1, caption="Temple", focal_length=23.0)
        photo = Photo(**record.model_dump())

        assert photo.to_record() == record

    def test_photo_repr(self):
        """Test Photo repr names the photo."""
        photo = Photo(**make_record(1).model_dump())
        assert "photo-001" in repr(photo)


class TestDatabaseService:
    """Test database service operations."""

    def test_init_db(self, temp_db):
        """Test database initialization."""
        assert temp_db.db_path.exists()
        assert temp_db.is_initialized()
        stats = temp_db.get_statistics()
        assert stats["photos"] == 0
        assert stats["sync_runs"] == 0
        assert stats["failed_sync_runs"] == 0
        assert stats["database_path"] == str(temp_db.db_path)

    def test_reopen_existing_database(self, tmp_path):
        """Test reopening keeps stored photos."""
        db_path = tmp_path / "catalog.db"
        first = DatabaseService(db_path)
        first.add_photo(make_record(1))
        first.close()

        second = DatabaseService(db_path)
        try:
            assert second.count_photos() == 1
        finally:
            second.close()

    def test_add_and_get_photo(self, temp_db):
        """Test storing and loading a photo."""
        record = make_record(7)
        temp_db.add_photo(record)

        assert temp_db.get_photo_by_id("photo-007") == record
        assert temp_db.get_photo_by_id("missing") is None

    def test_add_photo_replaces_existing(self, temp_db):
        """Test adding a photo with a known id replaces it."""
        temp_db.add_photo(make_record(1, title="Old"))
        temp_db.add_photo(make_record(1, title="New"))

        assert temp_db.count_photos() == 1
        assert temp_db.get_photo_by_id("photo-001").title == "New"

    def test_add_photos_counts(self, temp_db):
        """Test bulk insert returns the number written."""
        assert temp_db.add_photos(make_records(4)) == 4
        assert temp_db.count_photos() == 4

    def test_get_all_photos_newest_first(self, temp_db):
        """Test catalog order is by capture time, newest first."""
        temp_db.add_photos(
            [
                make_record(1, date_time_original="2023:05:01 08:00:00"),
                make_record(2, date_time_original="2024:02:01 08:00:00"),
                make_record(3, date_time_original="2023:12:24 18:30:00"),
            ]
        )

        ids = [photo.id for photo in temp_db.get_all_photos()]
        assert ids == ["photo-002", "photo-003", "photo-001"]

    def test_get_all_photos_ties_broken_by_id(self, temp_db):
        """Test photos with the same capture time keep a stable order."""
        same = "2024:01:01 00:00:00"
        temp_db.add_photos(
            [
                make_record(9, date_time_original=same),
                make_record(2, date_time_original=same),
            ]
        )

        ids = [photo.id for photo in temp_db.get_all_photos()]
        assert ids == ["photo-002", "photo-009"]

    def test_delete_photo(self, temp_db):
        """Test deleting a photo."""
        temp_db.add_photo(make_record(1))

        assert temp_db.delete_photo("photo-001") is True
        assert temp_db.delete_photo("photo-001") is False
        assert temp_db.count_photos() == 0

    def test_record_sync_run(self, temp_db):
        """Test a finished session is written to history."""
        started = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        run = temp_db.record_sync_run(
            started_at=started,
            completed_at=started + timedelta(minutes=2),
            success=False,
            message="Synced 8 of 10 photos, 2 failures",
            total_count=10,
            synced_count=8,
            failed_items=["a: metadata: boom", "b: original: boom"],
        )

        assert run.id is not None
        assert run.failed_count == 2
        assert run.test_mode is False
        stats = temp_db.get_statistics()
        assert stats["sync_runs"] == 1
        assert stats["failed_sync_runs"] == 1

    def test_recent_sync_runs_newest_first(self, temp_db):
        """Test history is returned newest first and limited."""
        base = datetime(2024, 6, 1, tzinfo=timezone.utc)
        for day in range(4):
            temp_db.record_sync_run(
                started_at=base + timedelta(days=day),
                completed_at=base + timedelta(days=day, minutes=1),
                success=True,
                message=f"run {day}",
                total_count=1,
                synced_count=1,
                failed_items=[],
            )

        runs = temp_db.get_recent_sync_runs(limit=2)
        assert [run.message for run in runs] == ["run 3", "run 2"]
        assert runs[0].failed_items is None


class TestSettingsStore:
    """Test settings store."""

    def test_get_default_when_missing(self, settings_store):
        """Test absent keys return the default."""
        assert settings_store.get("nothing", default={"a": 1}) == {"a": 1}

    def test_set_get_delete(self, settings_store):
        """Test JSON values round trip and can be removed."""
        settings_store.set("key", {"list": [1, 2], "flag": True})
        assert settings_store.get("key") == {"list": [1, 2], "flag": True}

        settings_store.set("key", "replaced")
        assert settings_store.get("key") == "replaced"

        assert settings_store.delete("key") is True
        assert settings_store.delete("key") is False
        assert settings_store.get("key") is None

    def test_empty_configuration_by_default(self, settings_store):
        """Test a fresh store has an unconfigured identity."""
        configuration = settings_store.load_configuration()
        assert configuration == SyncConfiguration()
        assert configuration.is_configured is False

    def test_save_configuration_sets_configured_flag(self, settings_store):
        """Test saving a complete identity marks it configured."""
        settings_store.save_configuration(configured())

        loaded = settings_store.load_configuration()
        assert loaded.is_configured is True
        assert loaded.worker_name == "photos"

    def test_save_incomplete_configuration(self, settings_store, caplog):
        """Test an incomplete identity is stored but not configured."""
        settings_store.save_configuration(SyncConfiguration(api_token="t"))

        assert settings_store.load_configuration().is_configured is False
        assert "incomplete" in caplog.text

    def test_invalid_stored_configuration(self, settings_store):
        """Test a malformed stored identity loads as empty."""
        settings_store.set(CONFIGURATION_KEY, {"api_token": ["not", "a", "str"]})
        assert settings_store.load_configuration() == SyncConfiguration()

    def test_clear_configuration(self, configured_store):
        """Test clearing forgets the identity."""
        configured_store.clear_configuration()
        assert configured_store.load_configuration().is_configured is False

    def test_schedule_state_defaults(self, settings_store):
        """Test the default auto-sync policy."""
        state = settings_store.load_schedule_state()
        assert state.auto_sync_enabled is False
        assert state.frequency is SyncFrequency.MONTHLY
        assert state.wifi_only is True
        assert state.last_sync_time is None

    def test_schedule_state_round_trip(self, settings_store):
        """Test the policy is persisted."""
        settings_store.save_schedule_state(
            SyncScheduleState(auto_sync_enabled=True, frequency=SyncFrequency.DAILY)
        )

        state = settings_store.load_schedule_state()
        assert state.auto_sync_enabled is True
        assert state.frequency is SyncFrequency.DAILY

    def test_last_sync_time_naive_is_utc(self, settings_store):
        """Test naive timestamps are stored as UTC."""
        stored = settings_store.set_last_sync_time(datetime(2024, 3, 1, 9, 30))

        assert stored == datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
        assert settings_store.get_last_sync_time() == stored

    def test_last_sync_time_converted_to_utc(self, settings_store):
        """Test aware timestamps are normalized to UTC."""
        tokyo = timezone(timedelta(hours=9))
        stored = settings_store.set_last_sync_time(
            datetime(2024, 3, 1, 9, 0, tzinfo=tokyo)
        )

        assert stored.tzinfo == timezone.utc
        assert stored.hour == 0

    def test_last_sync_time_keeps_policy(self, settings_store):
        """Test recording a sync leaves the policy alone."""
        settings_store.save_schedule_state(
            SyncScheduleState(auto_sync_enabled=True, wifi_only=False)
        )
        settings_store.set_last_sync_time()

        state = settings_store.load_schedule_state()
        assert state.auto_sync_enabled is True
        assert state.wifi_only is False
        assert state.last_sync_time is not None


@pytest.mark.parametrize(
    "frequency, seconds",
    [
        (SyncFrequency.NEVER, None),
        (SyncFrequency.DAILY, 86400),
        (SyncFrequency.WEEKLY, 7 * 86400),
        (SyncFrequency.MONTHLY, 30 * 86400),
    ],
)
def test_frequency_interval(frequency, seconds):
    """Test backstop interval per frequency."""
    assert frequency.interval_seconds == seconds
