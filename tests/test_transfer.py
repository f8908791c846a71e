"""Tests for the batched transfer engine."""

from unittest.mock import MagicMock, Mock

import pytest
from conftest import make_record, make_records
from sqlalchemy.exc import OperationalError

from photo_sync.core.transfer import (
    NO_PHOTOS_MESSAGE,
    CancellationToken,
    SyncSession,
    TransferEngine,
    TransferItemError,
)
from photo_sync.database.progress_tracker import ProgressPhase
from photo_sync.models import FileKind
from photo_sync.remote import RemoteServiceError


def _write_assets(media_root, records):
    for record in records:
        for kind in FileKind:
            path = media_root / record.local_path_for(kind)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(f"{record.id}:{kind.value}".encode())


@pytest.fixture
def media_root(tmp_path):
    """Directory holding the catalog's files."""
    root = tmp_path / "media"
    root.mkdir()
    return root


@pytest.fixture
def catalog():
    """Mock photo catalog."""
    return Mock()


@pytest.fixture
def client():
    """Mock remote store client."""
    return MagicMock()


@pytest.fixture
def engine(catalog, client, media_root):
    """Engine without pacing delay."""
    return TransferEngine(catalog, client, media_root, batch_delay=0)


class TestCancellationToken:
    """Test CancellationToken."""

    def test_cancel(self):
        """Test the flag is sticky."""
        token = CancellationToken()
        assert token.is_cancelled is False
        assert token.wait(0) is False

        token.cancel()

        assert token.is_cancelled is True
        assert token.wait(10) is True


class TestSyncSession:
    """Test SyncSession bookkeeping."""

    def test_add_failure(self, caplog):
        """Test failures are stored in their display form."""
        session = SyncSession()
        session.add_failure(TransferItemError("p1", "original", "boom"))

        assert session.failed_items == ["p1: original: boom"]
        assert "p1: original: boom" in caplog.text

    def test_summary(self):
        """Test summary counters."""
        session = SyncSession(test_mode=True, total=4, synced=3, processed=4)
        summary = session.get_summary()
        assert summary["synced"] == 3
        assert summary["test_mode"] is True
        assert summary["cancelled"] is False
        assert summary["failed"] == 0


class TestTransferEngine:
    """Test TransferEngine sessions."""

    def test_full_sync_uploads_every_asset(self, engine, catalog, client, media_root):
        """Test a normal session uploads metadata, files and commits once."""
        records = make_records(4)
        catalog.get_all_photos.return_value = records
        _write_assets(media_root, records)
        on_complete = Mock()

        session = engine.sync(on_complete=on_complete)

        assert session.success is True
        assert session.synced == 4
        assert client.sync_metadata_batch.call_count == 2
        assert client.upload_file.call_count == 12
        uploaded = {c[0][0] for c in client.upload_file.call_args_list}
        assert "photos/photo-000.jpg" in uploaded
        assert "thumbnails/photo-003_350.jpg" in uploaded
        client.commit_sync.assert_called_once_with(4)
        on_complete.assert_called_once_with(True, "Synced 4 photos", [])

    def test_upload_sends_file_contents(self, engine, catalog, client, media_root):
        """Test file bytes are read from the media root."""
        record = make_record(1)
        catalog.get_all_photos.return_value = [record]
        _write_assets(media_root, [record])

        engine.sync()

        contents = {c[0][0]: c[0][1] for c in client.upload_file.call_args_list}
        assert contents["photos/photo-001.jpg"] == b"photo-001:original"

    def test_limit_syncs_first_photos_in_batches(self, engine, catalog, client):
        """Test limit=5 over 10 photos runs batches of 3 and 2."""
        records = make_records(10)
        catalog.get_all_photos.return_value = records
        progress = []

        session = engine.sync(limit=5, test_mode=True, on_progress=progress.append)

        batches = [c[0][0] for c in client.sync_metadata_batch.call_args_list]
        assert [len(batch) for batch in batches] == [3, 2]
        assert [p.id for p in batches[0] + batches[1]] == [r.id for r in records[:5]]
        assert session.total == 5
        assert session.synced == 5
        assert progress[-1].fraction == 1.0
        assert progress[-1].phase is ProgressPhase.COMPLETE

    def test_test_mode_skips_files(self, engine, catalog, client):
        """Test metadata-only sessions upload no files but still commit."""
        catalog.get_all_photos.return_value = make_records(3)
        on_complete = Mock()

        session = engine.sync(test_mode=True, on_complete=on_complete)

        client.upload_file.assert_not_called()
        client.commit_sync.assert_called_once_with(3)
        assert session.success is True
        success, message, failed = on_complete.call_args[0]
        assert success is True
        assert message == "Synced metadata for 3 photos (test mode, files not uploaded)"
        assert failed == []

    def test_empty_catalog(self, engine, catalog, client):
        """Test an empty catalog finishes without remote calls."""
        catalog.get_all_photos.return_value = []
        on_complete = Mock()
        progress = []

        session = engine.sync(on_progress=progress.append, on_complete=on_complete)

        on_complete.assert_called_once_with(False, NO_PHOTOS_MESSAGE, [])
        client.sync_metadata_batch.assert_not_called()
        client.commit_sync.assert_not_called()
        assert session.success is False
        assert progress[-1].fraction == 1.0

    def test_catalog_error(self, engine, catalog, client):
        """Test an unreadable catalog ends the session."""
        catalog.get_all_photos.side_effect = OperationalError("SELECT", {}, None)
        on_complete = Mock()

        engine.sync(on_complete=on_complete)

        success, message, _ = on_complete.call_args[0]
        assert success is False
        assert message.startswith("Could not read photo catalog")
        client.commit_sync.assert_not_called()

    def test_metadata_failure_fails_whole_batch(self, engine, catalog, client):
        """Test a rejected batch marks each of its photos failed."""
        records = make_records(4)
        catalog.get_all_photos.return_value = records
        client.sync_metadata_batch.side_effect = [
            RemoteServiceError("rejected", 400),
            None,
        ]
        on_complete = Mock()

        session = engine.sync(test_mode=True, on_complete=on_complete)

        success, message, failed = on_complete.call_args[0]
        assert success is False
        assert message == "Synced 1 of 4 photos, 3 failures"
        assert failed == [
            f"{r.id}: metadata: HTTP 400: rejected" for r in records[:3]
        ]
        assert session.processed == 4

    def test_missing_file_fails_photo(self, engine, catalog, client, media_root):
        """Test unreadable files fail only their photo."""
        records = make_records(2)
        catalog.get_all_photos.return_value = records
        _write_assets(media_root, records[:1])

        session = engine.sync()

        assert session.synced == 1
        assert len(session.failed_items) == 3
        assert all(item.startswith("photo-001:") for item in session.failed_items)
        assert "cannot read file" in session.failed_items[0]
        client.commit_sync.assert_called_once_with(1)

    def test_photo_without_thumbnail_path(self, engine, catalog, client, media_root):
        """Test an asset without a catalog path is reported."""
        record = make_record(1, thumbnail_path_100="")
        catalog.get_all_photos.return_value = [record]
        _write_assets(media_root, [make_record(1)])

        session = engine.sync()

        assert session.failed_items == ["photo-001: thumbnail100: no local path"]
        assert client.upload_file.call_count == 2

    def test_upload_error_fails_photo(self, engine, catalog, client, media_root):
        """Test upload errors are recorded per asset."""
        records = make_records(1)
        catalog.get_all_photos.return_value = records
        _write_assets(media_root, records)
        client.upload_file.side_effect = RemoteServiceError("too large", 413)

        session = engine.sync()

        assert session.synced == 0
        assert session.failed_items[0] == "photo-000: original: HTTP 413: too large"
        assert session.success is False

    def test_commit_failure(self, engine, catalog, client):
        """Test a rejected commit fails the session."""
        catalog.get_all_photos.return_value = make_records(2)
        client.commit_sync.side_effect = RemoteServiceError("conflict", 409)
        on_complete = Mock()

        session = engine.sync(test_mode=True, on_complete=on_complete)

        success, message, failed = on_complete.call_args[0]
        assert success is False
        assert message == "Commit failed: HTTP 409: conflict"
        assert failed == ["sync: commit: HTTP 409: conflict"]
        assert session.synced == 2

    def test_cancel_between_batches(self, engine, catalog, client):
        """Test cancellation stops after the running batch, without commit."""
        catalog.get_all_photos.return_value = make_records(9)
        token = CancellationToken()
        client.sync_metadata_batch.side_effect = lambda batch: token.cancel()
        progress = []
        on_complete = Mock()

        session = engine.sync(
            test_mode=True,
            on_progress=progress.append,
            on_complete=on_complete,
            cancel_token=token,
        )

        assert client.sync_metadata_batch.call_count == 1
        client.commit_sync.assert_not_called()
        on_complete.assert_called_once_with(
            False, "Sync cancelled: 3 of 9 photos synced", []
        )
        assert session.cancelled is True
        assert progress[-1].phase is ProgressPhase.CANCELLED
        assert progress[-1].fraction == 1.0
        assert sum(1 for p in progress if p.is_complete) == 1

    def test_cancel_before_start(self, engine, catalog, client):
        """Test a pre-cancelled token syncs nothing."""
        catalog.get_all_photos.return_value = make_records(3)
        token = CancellationToken()
        token.cancel()

        session = engine.sync(cancel_token=token)

        client.sync_metadata_batch.assert_not_called()
        assert session.synced == 0
        assert session.success is False

    def test_progress_is_monotonic(self, engine, catalog, client):
        """Test published fractions never decrease."""
        catalog.get_all_photos.return_value = make_records(7)
        progress = []

        engine.sync(test_mode=True, on_progress=progress.append)

        fractions = [p.fraction for p in progress]
        assert fractions == sorted(fractions)
        assert fractions[-1] == 1.0

    def test_completion_callback_error_logged(self, engine, catalog, caplog):
        """Test a failing completion callback does not propagate."""
        catalog.get_all_photos.return_value = make_records(1)

        session = engine.sync(
            test_mode=True, on_complete=Mock(side_effect=RuntimeError("boom"))
        )

        assert session.finished
        assert "Error in completion callback" in caplog.text

    def test_unexpected_error_finishes_session(self, engine, catalog, client):
        """Test unexpected errors still deliver one completion."""
        catalog.get_all_photos.return_value = make_records(2)
        client.sync_metadata_batch.side_effect = KeyError("payload")
        on_complete = Mock()

        session = engine.sync(test_mode=True, on_complete=on_complete)

        on_complete.assert_called_once()
        success, message, _ = on_complete.call_args[0]
        assert success is False
        assert message.startswith("Sync failed:")
        assert session.finished
