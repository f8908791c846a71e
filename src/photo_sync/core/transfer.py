"""Batched transfer of the local catalog to the remote store.

A sync session walks the catalog in batches of three. Each batch first sends one
metadata request; unless the session runs in test mode, every photo of the batch
then uploads its original and both thumbnails on a shared thread pool. Batches
are paced by a short, cancellable delay and the session ends with one commit.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ..database.progress_tracker import (
    ProgressCallback,
    ProgressPhase,
    ProgressTracker,
)
from ..database.service import DatabaseService
from ..models import FileKind, PhotoRecord
from ..remote.client import RemoteServiceError, RemoteStoreClient

logger = logging.getLogger(__name__)

BATCH_SIZE = 3
MAX_CONCURRENT_UPLOADS = 3
BATCH_DELAY_SECONDS = 2.0

NO_PHOTOS_MESSAGE = "No photos found to sync"

CompletionCallback = Callable[[bool, str, List[str]], None]


class CancellationToken:
    """Cooperative cancellation flag shared between a session and its owner."""

    def __init__(self) -> None:
        """Initialize an uncancelled token."""
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        """True once ``cancel`` has been called."""
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; returns True if cancelled meanwhile."""
        if timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)


class TransferItemError(Exception):
    """A single asset or batch of a photo could not be transferred."""

    def __init__(self, photo_id: str, kind: str, reason: str):
        """Initialize with the photo, the failed part and the reason."""
        super().__init__(f"{photo_id}: {kind}: {reason}")
        self.photo_id = photo_id
        self.kind = kind
        self.reason = reason


@dataclass
class SyncSession:
    """State of one sync run."""

    test_mode: bool = False
    cancel_token: CancellationToken = dataclass_field(
        default_factory=CancellationToken
    )
    total: int = 0
    synced: int = 0
    processed: int = 0
    fraction: float = 0.0
    status_message: str = ""
    failed_items: List[str] = dataclass_field(default_factory=list)
    started_at: datetime = dataclass_field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    completed_at: Optional[datetime] = None
    success: bool = False

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested."""
        return self.cancel_token.is_cancelled

    @property
    def finished(self) -> bool:
        """Whether the completion callback has fired."""
        return self.completed_at is not None

    def add_failure(self, error: TransferItemError) -> None:
        """Record a failed item."""
        self.failed_items.append(str(error))
        logger.error("Transfer failed: %s", error)

    def get_summary(self) -> Dict[str, Any]:
        """Get summary statistics."""
        return {
            "total": self.total,
            "synced": self.synced,
            "processed": self.processed,
            "failed": len(self.failed_items),
            "cancelled": self.cancelled,
            "test_mode": self.test_mode,
            "success": self.success,
        }


class TransferEngine:
    """Runs sync sessions against the remote store."""

    def __init__(
        self,
        catalog: DatabaseService,
        client: RemoteStoreClient,
        media_root: Path | str,
        batch_size: int = BATCH_SIZE,
        max_workers: int = MAX_CONCURRENT_UPLOADS,
        batch_delay: float = BATCH_DELAY_SECONDS,
    ):
        """Initialize transfer engine.

        Args:
            catalog: Local photo catalog
            client: Remote store client
            media_root: Directory the catalog's relative asset paths resolve against
            batch_size: Photos per batch
            max_workers: Concurrent photo uploads within a batch
            batch_delay: Pause between batches in seconds
        """
        self.catalog = catalog
        self.client = client
        self.media_root = Path(media_root)
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.batch_delay = batch_delay

    def sync(
        self,
        limit: Optional[int] = None,
        test_mode: bool = False,
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[CompletionCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SyncSession:
        """Run one sync session to completion on the calling thread.

        Args:
            limit: Only sync the first ``limit`` catalog records
            test_mode: Send metadata only, skip binary uploads
            on_progress: Called after every batch and once at the end
            on_complete: Called exactly once with (success, message, failed_items)
            cancel_token: Token checked before each batch and each photo

        Returns:
            The finished session
        """
        session = SyncSession(
            test_mode=test_mode, cancel_token=cancel_token or CancellationToken()
        )
        tracker = ProgressTracker(callback=on_progress)

        try:
            self._run(session, tracker, limit, on_complete)
        except Exception as e:
            logger.exception("Sync session aborted")
            self._finish(
                session,
                tracker,
                on_complete,
                False,
                f"Sync failed: {e}",
                ProgressPhase.ERROR,
            )
        return session

    def _run(
        self,
        session: SyncSession,
        tracker: ProgressTracker,
        limit: Optional[int],
        on_complete: Optional[CompletionCallback],
    ) -> None:
        try:
            photos = self.catalog.get_all_photos()
        except SQLAlchemyError as e:
            tracker.start(0, "Preparing sync")
            self._finish(
                session,
                tracker,
                on_complete,
                False,
                f"Could not read photo catalog: {e}",
                ProgressPhase.ERROR,
            )
            return

        if limit is not None:
            photos = photos[: max(limit, 0)]
        session.total = len(photos)
        tracker.start(session.total, "Preparing sync")
        logger.info(
            "Starting sync of %d photos%s",
            session.total,
            " (test mode)" if session.test_mode else "",
        )

        if not photos:
            self._finish(session, tracker, on_complete, False, NO_PHOTOS_MESSAGE)
            return

        batches = [
            photos[i : i + self.batch_size]
            for i in range(0, len(photos), self.batch_size)
        ]
        phase = (
            ProgressPhase.UPLOADING_METADATA
            if session.test_mode
            else ProgressPhase.UPLOADING_FILES
        )
        token = session.cancel_token

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="photo-upload"
        ) as pool:
            for index, batch in enumerate(batches):
                if token.is_cancelled:
                    break
                logger.debug(
                    "Batch %d/%d (%d photos)", index + 1, len(batches), len(batch)
                )
                self._sync_batch(session, batch, pool)

                session.status_message = (
                    f"Synced {session.synced}/{session.total} photos"
                )
                tracker.update(
                    session.processed,
                    session.synced,
                    session.status_message,
                    phase=phase,
                )
                session.fraction = tracker.fraction

                is_last = index == len(batches) - 1
                if not is_last and token.wait(self.batch_delay):
                    break

        if token.is_cancelled:
            logger.info(
                "Sync cancelled after %d of %d photos", session.synced, session.total
            )
            self._finish(
                session,
                tracker,
                on_complete,
                False,
                f"Sync cancelled: {session.synced} of {session.total} photos synced",
                ProgressPhase.CANCELLED,
            )
            return

        tracker.update(
            session.processed,
            session.synced,
            "Committing",
            phase=ProgressPhase.COMMITTING,
        )
        try:
            self.client.commit_sync(session.synced)
        except RemoteServiceError as e:
            session.add_failure(TransferItemError("sync", "commit", str(e)))
            self._finish(
                session,
                tracker,
                on_complete,
                False,
                f"Commit failed: {e}",
                ProgressPhase.ERROR,
            )
            return

        if session.failed_items:
            message = (
                f"Synced {session.synced} of {session.total} photos, "
                f"{len(session.failed_items)} failures"
            )
            self._finish(session, tracker, on_complete, False, message)
        elif session.test_mode:
            message = (
                f"Synced metadata for {session.synced} photos "
                "(test mode, files not uploaded)"
            )
            self._finish(session, tracker, on_complete, True, message)
        else:
            message = f"Synced {session.synced} photos"
            self._finish(session, tracker, on_complete, True, message)

    def _sync_batch(
        self,
        session: SyncSession,
        batch: Sequence[PhotoRecord],
        pool: ThreadPoolExecutor,
    ) -> None:
        try:
            self.client.sync_metadata_batch(batch)
        except RemoteServiceError as e:
            for photo in batch:
                session.processed += 1
                session.add_failure(TransferItemError(photo.id, "metadata", str(e)))
            return

        if session.test_mode:
            session.processed += len(batch)
            session.synced += len(batch)
            return

        futures: Dict[Future, PhotoRecord] = {}
        for photo in batch:
            if session.cancel_token.is_cancelled:
                break
            futures[pool.submit(self._upload_assets, photo)] = photo

        for future in as_completed(futures):
            photo = futures[future]
            session.processed += 1
            try:
                errors = future.result()
            except Exception as e:
                errors = [TransferItemError(photo.id, "upload", str(e))]
            if errors:
                for error in errors:
                    session.add_failure(error)
            else:
                session.synced += 1

    def _upload_assets(self, photo: PhotoRecord) -> List[TransferItemError]:
        """Upload the original and both thumbnails of one photo."""
        errors = []
        for kind in FileKind:
            relative = photo.local_path_for(kind)
            if not relative:
                errors.append(TransferItemError(photo.id, kind.value, "no local path"))
                continue
            try:
                content = (self.media_root / relative).read_bytes()
            except OSError as e:
                errors.append(
                    TransferItemError(photo.id, kind.value, f"cannot read file: {e}")
                )
                continue
            try:
                self.client.upload_file(kind.remote_path(photo.id), content)
            except RemoteServiceError as e:
                errors.append(TransferItemError(photo.id, kind.value, str(e)))
        return errors

    def _finish(
        self,
        session: SyncSession,
        tracker: ProgressTracker,
        on_complete: Optional[CompletionCallback],
        success: bool,
        message: str,
        phase: ProgressPhase = ProgressPhase.COMPLETE,
    ) -> None:
        if session.finished:
            return
        session.success = success
        session.status_message = message
        tracker.complete(message, phase=phase)
        session.fraction = tracker.fraction
        session.completed_at = datetime.now(timezone.utc)
        logger.info("Sync finished: %s", message)

        if on_complete is None:
            return
        try:
            on_complete(success, message, list(session.failed_items))
        except Exception as e:
            logger.error("Error in completion callback: %s", e)
