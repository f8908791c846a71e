"""SQLAlchemy database models for the local photo catalog and sync bookkeeping."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..models import PhotoRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Photo(Base):
    """A photo in the local catalog."""

    __tablename__ = "photos"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    # Asset locations relative to the media root
    path: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    thumbnail_path_100: Mapped[str] = mapped_column(
        String(1000), nullable=False, default=""
    )
    thumbnail_path_350: Mapped[str] = mapped_column(
        String(1000), nullable=False, default=""
    )

    star_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Location
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    area: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    locality: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    altitude: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    latitude: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    longitude: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Timestamps as written by the importer (EXIF string format)
    date_time_original: Mapped[str] = mapped_column(
        String(50), nullable=False, default="", index=True
    )
    add_timestamp: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    # Camera / lens EXIF
    lens_model: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    model: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    exposure_time: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    f_number: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    focal_length_35mm: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0
    )
    focal_length: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    iso: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Free text
    object_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    caption: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def to_record(self) -> PhotoRecord:
        """Detach into an immutable ``PhotoRecord``."""
        return PhotoRecord(
            id=self.id,
            title=self.title,
            path=self.path,
            thumbnail_path_100=self.thumbnail_path_100,
            thumbnail_path_350=self.thumbnail_path_350,
            star_rating=self.star_rating,
            country=self.country,
            area=self.area,
            locality=self.locality,
            date_time_original=self.date_time_original,
            add_timestamp=self.add_timestamp,
            lens_model=self.lens_model,
            model=self.model,
            exposure_time=self.exposure_time,
            f_number=self.f_number,
            focal_length_35mm=self.focal_length_35mm,
            focal_length=self.focal_length,
            iso=self.iso,
            altitude=self.altitude,
            latitude=self.latitude,
            longitude=self.longitude,
            object_name=self.object_name,
            caption=self.caption,
        )

    def __repr__(self) -> str:
        """String representation of Photo."""
        return f"<Photo(id='{self.id}', title='{self.title}')>"


class Setting(Base):
    """Key-value application setting, stored as JSON text."""

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        """String representation of Setting."""
        return f"<Setting(key='{self.key}')>"


class SyncRun(Base):
    """History entry for one completed sync session."""

    __tablename__ = "sync_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    test_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")

    total_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    synced_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # JSON list of failed item descriptions
    failed_items: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("idx_sync_runs_started", "started_at"),)

    def __repr__(self) -> str:
        """String representation of SyncRun."""
        return (
            f"<SyncRun(id={self.id}, success={self.success}, "
            f"synced={self.synced_count}/{self.total_count})>"
        )
