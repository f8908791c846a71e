"""Progress tracking for sync sessions.

The tracker turns raw counters from the transfer engine into ``ProgressUpdate``
objects whose fraction never moves backwards and always ends at exactly 1.0,
whether the session finished, failed or was cancelled.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from tqdm import tqdm

logger = logging.getLogger(__name__)


class ProgressPhase(str, Enum):
    """Phases of a sync session."""

    PREPARING = "preparing"
    UPLOADING_METADATA = "uploading_metadata"
    UPLOADING_FILES = "uploading_files"
    COMMITTING = "committing"
    VERIFYING = "verifying"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        """True for phases that end a session."""
        return self in (
            ProgressPhase.COMPLETE,
            ProgressPhase.CANCELLED,
            ProgressPhase.ERROR,
        )


@dataclass(frozen=True)
class ProgressUpdate:
    """Progress update information."""

    phase: ProgressPhase
    fraction: float
    processed: int
    synced: int
    total: int
    message: str = ""
    elapsed_time: float = 0.0
    estimated_remaining: Optional[float] = None

    @property
    def percentage(self) -> float:
        """Progress as a percentage."""
        return self.fraction * 100.0

    @property
    def is_complete(self) -> bool:
        """Check if the session has finished."""
        return self.phase.is_terminal

    def __str__(self) -> str:
        """String representation of progress."""
        parts = [
            f"[{self.phase.value}]",
            f"{self.synced}/{self.total}",
            f"({self.percentage:.1f}%)",
        ]
        if self.message:
            parts.append(f"- {self.message}")
        if self.estimated_remaining:
            parts.append(f"(~{self.estimated_remaining:.1f}s remaining)")
        return " ".join(parts)


# Type alias for progress callback function
ProgressCallback = Callable[[ProgressUpdate], None]


class ProgressTracker:
    """Tracks progress of one sync session."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        """Initialize progress tracker.

        Args:
            callback: Function to call with progress updates
        """
        self.callback = callback
        self._lock = threading.Lock()
        self._start_time = 0.0
        self._phase = ProgressPhase.PREPARING
        self._phase_start_time = 0.0
        self._phase_history: Dict[ProgressPhase, float] = {}
        self._fraction = 0.0
        self._processed = 0
        self._synced = 0
        self._total = 0
        self._finished = False

    @property
    def fraction(self) -> float:
        """Last published fraction."""
        return self._fraction

    @property
    def finished(self) -> bool:
        """True once ``complete`` has been called."""
        return self._finished

    def start(self, total: int, message: str = "") -> None:
        """Begin a session of ``total`` items.

        Args:
            total: Total items to process
            message: Optional descriptive message
        """
        with self._lock:
            self._start_time = time.time()
            self._phase_start_time = self._start_time
            self._total = max(total, 0)
            update = self._build(message)
        self._emit(update)

    def update(
        self,
        processed: int,
        synced: int,
        message: str = "",
        phase: Optional[ProgressPhase] = None,
    ) -> None:
        """Publish new counters.

        Args:
            processed: Items attempted so far
            synced: Items that succeeded so far
            message: Optional progress message
            phase: Optional phase change
        """
        with self._lock:
            if self._finished:
                logger.debug("Ignoring progress update after completion")
                return
            if phase is not None and phase is not self._phase:
                self._switch_phase(phase)
            self._processed = processed
            self._synced = synced
            if self._total > 0:
                fraction = min(processed / self._total, 1.0)
                self._fraction = max(self._fraction, fraction)
            update = self._build(message)
        self._emit(update)

    def complete(
        self, message: str = "", phase: ProgressPhase = ProgressPhase.COMPLETE
    ) -> None:
        """Publish the final update with fraction 1.0.

        Args:
            message: Optional completion message
            phase: Terminal phase to report
        """
        with self._lock:
            if self._finished:
                return
            self._switch_phase(phase)
            self._fraction = 1.0
            self._finished = True
            update = self._build(message)
        self._emit(update)

    def _switch_phase(self, phase: ProgressPhase) -> None:
        now = time.time()
        self._phase_history[self._phase] = now - self._phase_start_time
        self._phase = phase
        self._phase_start_time = now

    def _build(self, message: str) -> ProgressUpdate:
        elapsed = time.time() - self._start_time if self._start_time else 0.0

        estimated_remaining = None
        if 0.0 < self._fraction < 1.0 and elapsed > 0:
            estimated_remaining = elapsed / self._fraction - elapsed

        return ProgressUpdate(
            phase=self._phase,
            fraction=self._fraction,
            processed=self._processed,
            synced=self._synced,
            total=self._total,
            message=message,
            elapsed_time=elapsed,
            estimated_remaining=estimated_remaining,
        )

    def _emit(self, update: ProgressUpdate) -> None:
        if not self.callback:
            return
        try:
            self.callback(update)
        except Exception as e:
            logger.error("Error in progress callback: %s", e)

    def get_summary(self) -> Dict[str, Any]:
        """Get summary of progress tracking.

        Returns:
            Dictionary with tracking summary
        """
        total_time = time.time() - self._start_time if self._start_time > 0 else 0
        return {
            "total_time": total_time,
            "phase_history": {
                phase.value: duration for phase, duration in self._phase_history.items()
            },
            "current_phase": self._phase.value,
            "progress": f"{self._synced}/{self._total}",
            "percentage": self._fraction * 100,
        }


class ConsoleProgressReporter:
    """Simple console progress reporter."""

    def __init__(self, verbose: bool = True):
        """Initialize console reporter.

        Args:
            verbose: Whether to print every update or only phase changes and the end
        """
        self.verbose = verbose
        self._last_phase: Optional[ProgressPhase] = None

    def __call__(self, update: ProgressUpdate) -> None:
        """Handle progress update."""
        if update.phase != self._last_phase:
            print(f"\n{'=' * 60}")
            print(f"Phase: {update.phase.value.upper()}")
            print(f"{'=' * 60}")
            self._last_phase = update.phase

        if self.verbose or update.is_complete:
            print(f"  {update}")


class TqdmProgressReporter:
    """Progress reporter using a single tqdm bar per session."""

    def __init__(self, desc: str = "sync") -> None:
        """Initialize tqdm reporter."""
        self.desc = desc
        self._bar: Optional[Any] = None

    def __call__(self, update: ProgressUpdate) -> None:
        """Handle progress update."""
        if self._bar is None:
            self._bar = tqdm(total=max(update.total, 1), desc=self.desc, unit="photo")

        bar = self._bar
        bar.n = update.synced
        bar.set_postfix_str(update.message or update.phase.value)
        bar.refresh()

        if update.is_complete:
            self.close()

    def close(self) -> None:
        """Close the progress bar."""
        if self._bar is not None:
            self._bar.close()
            self._bar = None
