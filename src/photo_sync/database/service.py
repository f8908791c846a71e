"""Database service for the local photo catalog and sync history."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import create_engine, func, inspect, select
from sqlalchemy.orm import Session, sessionmaker

from ..models import PhotoRecord
from .models import Base, Photo, SyncRun

logger = logging.getLogger(__name__)


class DatabaseService:
    """Service for database operations and transaction management."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        """Initialize database service.

        Args:
            db_path: Path to SQLite database file.
                    If None, uses default ~/.photo-sync/catalog.db
        """
        if db_path is None:
            db_path = Path.home() / ".photo-sync" / "catalog.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        db_exists = self.db_path.exists()

        db_url = f"sqlite:///{self.db_path}"
        # Sync sessions read the catalog from worker threads
        self.engine = create_engine(
            db_url, echo=False, connect_args={"check_same_thread": False}
        )

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

        logger.info("Database initialized at: %s", self.db_path)

        if not db_exists or not self.is_initialized():
            logger.info("Creating database schema...")
            self.init_db()

    def init_db(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database schema created successfully")

    def get_session(self) -> Session:
        """Get a new database session.

        Returns:
            SQLAlchemy Session object

        Note:
            Caller is responsible for closing the session
        """
        return self.SessionLocal()

    def is_initialized(self) -> bool:
        """Check that every table of the schema exists."""
        try:
            inspector = inspect(self.engine)
            missing = [
                name
                for name in Base.metadata.tables
                if not inspector.has_table(name)
            ]
            if missing:
                logger.debug("Required tables missing: %s", ", ".join(missing))
                return False
            return True
        except Exception as e:
            logger.debug("Database initialization check failed: %s", e)
            return False

    # =========================================================================
    # Photo catalog
    # =========================================================================

    def get_all_photos(self) -> List[PhotoRecord]:
        """Get every photo, newest capture first.

        Returns:
            List of immutable photo records
        """
        with self.get_session() as session:
            stmt = select(Photo).order_by(
                Photo.date_time_original.desc(), Photo.id.asc()
            )
            return [photo.to_record() for photo in session.scalars(stmt)]

    def get_photo_by_id(self, photo_id: str) -> Optional[PhotoRecord]:
        """Get a photo by identifier.

        Args:
            photo_id: Photo identifier

        Returns:
            PhotoRecord or None if not found
        """
        with self.get_session() as session:
            photo = session.get(Photo, photo_id)
            return photo.to_record() if photo else None

    def add_photo(self, record: PhotoRecord) -> PhotoRecord:
        """Insert a photo, replacing any existing row with the same id."""
        with self.get_session() as session:
            session.merge(Photo(**record.model_dump()))
            session.commit()
        logger.debug("Stored photo %s", record.id)
        return record

    def add_photos(self, records: Iterable[PhotoRecord]) -> int:
        """Insert or replace many photos in one transaction.

        Returns:
            Number of photos written
        """
        count = 0
        with self.get_session() as session:
            for record in records:
                session.merge(Photo(**record.model_dump()))
                count += 1
            session.commit()
        logger.info("Stored %d photos in catalog", count)
        return count

    def delete_photo(self, photo_id: str) -> bool:
        """Delete a photo.

        Returns:
            True if a row was deleted
        """
        with self.get_session() as session:
            photo = session.get(Photo, photo_id)
            if photo is None:
                return False
            session.delete(photo)
            session.commit()
            return True

    def count_photos(self) -> int:
        """Number of photos in the catalog."""
        with self.get_session() as session:
            return session.scalar(select(func.count()).select_from(Photo)) or 0

    # =========================================================================
    # Sync history
    # =========================================================================

    def record_sync_run(
        self,
        started_at: datetime,
        completed_at: datetime,
        success: bool,
        message: str,
        total_count: int,
        synced_count: int,
        failed_items: List[str],
        test_mode: bool = False,
        cancelled: bool = False,
    ) -> SyncRun:
        """Append a finished sync session to the history table."""
        with self.get_session() as session:
            run = SyncRun(
                started_at=started_at,
                completed_at=completed_at,
                success=success,
                message=message,
                total_count=total_count,
                synced_count=synced_count,
                failed_count=len(failed_items),
                failed_items=json.dumps(failed_items) if failed_items else None,
                test_mode=test_mode,
                cancelled=cancelled,
            )
            session.add(run)
            session.commit()
            session.refresh(run)
            logger.debug("Recorded sync run %s", run)
            return run

    def get_recent_sync_runs(self, limit: int = 5) -> List[SyncRun]:
        """Most recent sync runs, newest first."""
        with self.get_session() as session:
            stmt = (
                select(SyncRun)
                .order_by(SyncRun.started_at.desc(), SyncRun.id.desc())
                .limit(limit)
            )
            return list(session.scalars(stmt).all())

    def get_statistics(self) -> Dict[str, Any]:
        """Get database statistics.

        Returns:
            Dictionary with statistics
        """
        with self.get_session() as session:
            photo_count = session.scalar(select(func.count()).select_from(Photo))
            run_count = session.scalar(select(func.count()).select_from(SyncRun))
            failed_runs = session.scalar(
                select(func.count())
                .select_from(SyncRun)
                .where(SyncRun.success.is_(False))
            )

            return {
                "photos": photo_count or 0,
                "sync_runs": run_count or 0,
                "failed_sync_runs": failed_runs or 0,
                "database_path": str(self.db_path),
            }

    def close(self) -> None:
        """Close database connection."""
        if hasattr(self, "engine"):
            self.engine.dispose()
            logger.info("Database connection closed")
