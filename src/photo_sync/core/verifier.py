"""Sampling reconciliation of the local catalog against the remote store.

For every sampled photo three checks run against the remote side: existence,
metadata equality and asset integrity. A photo that does not exist remotely is
only reported as missing; the other two checks are independent, so a photo can
show up both as a metadata mismatch and as an integrity failure.
"""

import hashlib
import logging
import math
import random
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, FrozenSet, List, Optional, Sequence, Set

from ..database.service import DatabaseService
from ..models import FileKind, PhotoRecord
from ..remote.client import RemoteServiceError, RemoteStoreClient

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 20
VERIFY_BATCH_SIZE = 5
CACHE_TTL = timedelta(hours=1)
FLOAT_TOLERANCE = 1e-5
REPORT_ID_LIMIT = 10

ResultCallback = Callable[["VerificationResult"], None]


class MismatchKind(str, Enum):
    """Categories of reconciliation problems."""

    MISSING = "missing"
    METADATA_MISMATCH = "metadata_mismatch"
    INTEGRITY_FAILED = "integrity_failed"


@dataclass(frozen=True)
class PhotoCheck:
    """Outcome of the three checks for one photo."""

    photo_id: str
    exists: bool
    metadata_ok: bool = True
    integrity_ok: bool = True

    @property
    def problems(self) -> Set[MismatchKind]:
        """Problem categories this photo belongs to."""
        if not self.exists:
            return {MismatchKind.MISSING}
        kinds = set()
        if not self.metadata_ok:
            kinds.add(MismatchKind.METADATA_MISMATCH)
        if not self.integrity_ok:
            kinds.add(MismatchKind.INTEGRITY_FAILED)
        return kinds


@dataclass(frozen=True)
class VerificationResult:
    """Reconciliation report for one sample."""

    success: bool
    message: str
    verified_photos: int
    missing_photos: FrozenSet[str]
    metadata_mismatch: FrozenSet[str]
    integrity_failed: FrozenSet[str]
    sample_size: int
    total_local_photos: int
    total_cloud_photos: Optional[int]
    checked_at: datetime

    @property
    def problem_ids(self) -> FrozenSet[str]:
        """Every photo with at least one problem."""
        return self.missing_photos | self.metadata_mismatch | self.integrity_failed

    def ids_for(self, kind: MismatchKind) -> FrozenSet[str]:
        """Problem identifiers of one category."""
        return {
            MismatchKind.MISSING: self.missing_photos,
            MismatchKind.METADATA_MISMATCH: self.metadata_mismatch,
            MismatchKind.INTEGRITY_FAILED: self.integrity_failed,
        }[kind]

    def detailed_report(self) -> str:
        """Markdown report with an overview, problem lists and recommendations."""
        cloud = (
            str(self.total_cloud_photos)
            if self.total_cloud_photos is not None
            else "unknown"
        )
        lines = [
            "# Sync verification report",
            "",
            "## Overview",
            f"- Local photos: {self.total_local_photos}",
            f"- Remote photos: {cloud}",
            f"- Sampled photos: {self.sample_size}",
            f"- Verified photos: {self.verified_photos}",
        ]
        if self.total_cloud_photos is not None:
            lines.append(f"- Count difference: {self._difference_rate()}%")
        lines.append("")

        sections = (
            ("Missing on remote", self.missing_photos),
            ("Metadata mismatch", self.metadata_mismatch),
            ("Integrity failed", self.integrity_failed),
        )
        for title, ids in sections:
            if not ids:
                continue
            ordered = sorted(ids)
            lines.append(f"## {title} ({len(ordered)})")
            for index, photo_id in enumerate(ordered[:REPORT_ID_LIMIT], start=1):
                lines.append(f"{index}. ID: {photo_id}")
            if len(ordered) > REPORT_ID_LIMIT:
                lines.append(f"...and {len(ordered) - REPORT_ID_LIMIT} more")
            lines.append("")

        lines.append("## Recommendations")
        if self.success:
            lines.append("- All verified photos are in sync. No action needed.")
        else:
            if self.missing_photos:
                lines.append("- Sync again to upload the missing photos.")
            if self.metadata_mismatch:
                lines.append("- Re-send metadata for the mismatched photos.")
            if self.integrity_failed:
                lines.append("- Re-upload the files that failed the integrity check.")
            lines.append("- Consider a full re-sync to restore consistency.")

        lines.append("")
        lines.append(f"Checked at: {self.checked_at:%Y-%m-%d %H:%M:%S} UTC")
        return "\n".join(lines)

    def _difference_rate(self) -> str:
        if self.total_local_photos <= 0 or self.total_cloud_photos is None:
            return "100.0"
        difference = abs(self.total_local_photos - self.total_cloud_photos)
        return f"{difference / self.total_local_photos * 100:.1f}"


def build_message(
    verified: int, missing: int, mismatch: int, integrity: int
) -> str:
    """Summary line enumerating the three problem counts."""
    counts = f"{missing} missing, {mismatch} mismatch, {integrity} integrity"
    if missing or mismatch or integrity:
        return f"Verification failed: {counts}"
    return f"Verified {verified} photos: {counts}"


def values_match(local: Any, remote: Any) -> bool:
    """Compare one metadata field; floats within ``FLOAT_TOLERANCE``."""
    if remote is None:
        # Remote stores empty strings and zeroes as null
        return local in ("", 0, 0.0, None)
    if isinstance(local, float) or isinstance(remote, float):
        try:
            return math.isclose(
                float(local), float(remote), rel_tol=0.0, abs_tol=FLOAT_TOLERANCE
            )
        except (TypeError, ValueError):
            return False
    if isinstance(local, int) and not isinstance(local, bool):
        try:
            return local == int(remote)
        except (TypeError, ValueError):
            return False
    return str(local) == str(remote)


class Verifier:
    """Checks a random sample of the catalog against the remote store."""

    def __init__(
        self,
        catalog: DatabaseService,
        client: RemoteStoreClient,
        media_root: Path | str,
        metadata_only: bool = False,
        batch_size: int = VERIFY_BATCH_SIZE,
        cache_ttl: timedelta = CACHE_TTL,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize verifier.

        Args:
            catalog: Local photo catalog
            client: Remote store client
            media_root: Directory the catalog's relative asset paths resolve against
            metadata_only: Accept metadata without asset and skip integrity checks
            batch_size: Photos checked concurrently
            cache_ttl: How long a result is served from cache
            clock: Source of the current time (UTC)
        """
        self.catalog = catalog
        self.client = client
        self.media_root = Path(media_root)
        self.metadata_only = metadata_only
        self.batch_size = batch_size
        self.cache_ttl = cache_ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._cache_lock = threading.Lock()
        self._cached: Optional[VerificationResult] = None

    @property
    def cached_result(self) -> Optional[VerificationResult]:
        """Last result, regardless of age."""
        with self._cache_lock:
            return self._cached

    def invalidate_cache(self) -> None:
        """Drop the cached result."""
        with self._cache_lock:
            self._cached = None

    def verify(
        self,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        force_refresh: bool = False,
        on_result: Optional[ResultCallback] = None,
    ) -> VerificationResult:
        """Verify a sample of the catalog.

        Args:
            sample_size: Photos to check; ``<= 0`` checks the whole catalog
            force_refresh: Ignore a cached result younger than the cache TTL
            on_result: Called with the result

        Returns:
            Fresh or cached verification result
        """
        if not force_refresh:
            cached = self._fresh_cached_result()
            if cached is not None:
                logger.info("Returning cached verification result")
                self._deliver(cached, on_result)
                return cached

        photos = self.catalog.get_all_photos()
        sample = self._select_sample(photos, sample_size)
        logger.info(
            "Verifying %d of %d photos%s",
            len(sample),
            len(photos),
            " (metadata only)" if self.metadata_only else "",
        )

        checks = self._run_checks(sample)
        total_cloud = self.client.get_photo_count()

        missing = frozenset(c.photo_id for c in checks if not c.exists)
        mismatch = frozenset(
            c.photo_id for c in checks if MismatchKind.METADATA_MISMATCH in c.problems
        )
        integrity = frozenset(
            c.photo_id for c in checks if MismatchKind.INTEGRITY_FAILED in c.problems
        )
        verified = len(sample) - len(missing)

        result = VerificationResult(
            success=not (missing or mismatch or integrity),
            message=build_message(
                verified, len(missing), len(mismatch), len(integrity)
            ),
            verified_photos=verified,
            missing_photos=missing,
            metadata_mismatch=mismatch,
            integrity_failed=integrity,
            sample_size=len(sample),
            total_local_photos=len(photos),
            total_cloud_photos=total_cloud,
            checked_at=self._clock(),
        )

        with self._cache_lock:
            self._cached = result

        logger.info("Verification finished: %s", result.message)
        self._deliver(result, on_result)
        return result

    def _fresh_cached_result(self) -> Optional[VerificationResult]:
        with self._cache_lock:
            cached = self._cached
        if cached is None:
            return None
        if self._clock() - cached.checked_at < self.cache_ttl:
            return cached
        return None

    @staticmethod
    def _select_sample(
        photos: Sequence[PhotoRecord], sample_size: int
    ) -> List[PhotoRecord]:
        if sample_size <= 0 or sample_size >= len(photos):
            return list(photos)
        return random.sample(list(photos), sample_size)

    def _run_checks(self, sample: Sequence[PhotoRecord]) -> List[PhotoCheck]:
        checks: List[PhotoCheck] = []
        if not sample:
            return checks
        with ThreadPoolExecutor(
            max_workers=self.batch_size, thread_name_prefix="photo-verify"
        ) as pool:
            for start in range(0, len(sample), self.batch_size):
                batch = sample[start : start + self.batch_size]
                checks.extend(pool.map(self.check_photo, batch))
        return checks

    def check_photo(self, photo: PhotoRecord) -> PhotoCheck:
        """Run the existence, metadata and integrity checks for one photo."""
        if not self._exists(photo.id):
            logger.debug("Photo %s missing on remote", photo.id)
            return PhotoCheck(photo_id=photo.id, exists=False)

        metadata_ok = self._metadata_matches(photo)
        integrity_ok = True if self.metadata_only else self._integrity_ok(photo)
        return PhotoCheck(
            photo_id=photo.id,
            exists=True,
            metadata_ok=metadata_ok,
            integrity_ok=integrity_ok,
        )

    def _exists(self, photo_id: str) -> bool:
        try:
            status = self.client.photo_status(photo_id)
        except RemoteServiceError as e:
            logger.warning("Existence check for %s failed: %s", photo_id, e)
            return False
        if status == 200:
            return True
        # 204: metadata stored but asset absent
        return status == 204 and self.metadata_only

    def _metadata_matches(self, photo: PhotoRecord) -> bool:
        try:
            remote = self.client.get_metadata(photo.id)
        except RemoteServiceError as e:
            logger.warning("Metadata check for %s failed: %s", photo.id, e)
            return False
        if remote is None:
            return False

        mismatched = [
            wire
            for wire, local in photo.metadata_fields().items()
            if not values_match(local, remote.get(wire))
        ]
        if mismatched:
            logger.debug(
                "Metadata mismatch for %s: %s", photo.id, ", ".join(mismatched)
            )
            return False
        return True

    def _integrity_ok(self, photo: PhotoRecord) -> bool:
        try:
            integrity = self.client.get_integrity(photo.id)
        except RemoteServiceError as e:
            logger.warning("Integrity check for %s failed: %s", photo.id, e)
            return False

        local_path = self.media_root / photo.local_path_for(FileKind.ORIGINAL)
        if not photo.path or not local_path.is_file():
            return bool(integrity.get("isIntact", False))

        remote_hash = integrity.get("sha256")
        if remote_hash:
            try:
                return _sha256(local_path) == str(remote_hash).lower()
            except OSError as e:
                logger.warning("Cannot read %s for %s: %s", local_path, photo.id, e)
                return False

        remote_size = integrity.get("size")
        if remote_size is not None:
            try:
                return local_path.stat().st_size == int(remote_size)
            except (OSError, TypeError, ValueError):
                return False

        return bool(integrity.get("isIntact", False))

    @staticmethod
    def _deliver(
        result: VerificationResult, on_result: Optional[ResultCallback]
    ) -> None:
        if on_result is None:
            return
        try:
            on_result(result)
        except Exception as e:
            logger.error("Error in verification callback: %s", e)


def _sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()

