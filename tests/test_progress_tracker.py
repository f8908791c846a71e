"""Tests for progress tracker."""

from unittest.mock import MagicMock, Mock, patch

import pytest

from photo_sync.database.progress_tracker import (
    ConsoleProgressReporter,
    ProgressPhase,
    ProgressTracker,
    ProgressUpdate,
    TqdmProgressReporter,
)


def _update(**overrides) -> ProgressUpdate:
    values = {
        "phase": ProgressPhase.UPLOADING_FILES,
        "fraction": 0.5,
        "processed": 5,
        "synced": 4,
        "total": 10,
    }
    values.update(overrides)
    return ProgressUpdate(**values)


class TestProgressUpdate:
    """Test ProgressUpdate dataclass."""

    def test_defaults(self):
        """Test optional fields default to empty."""
        update = _update()
        assert update.message == ""
        assert update.elapsed_time == 0.0
        assert update.estimated_remaining is None

    def test_percentage(self):
        """Test percentage follows the fraction."""
        assert _update(fraction=0.25).percentage == 25.0

    @pytest.mark.parametrize(
        "phase, complete",
        [
            (ProgressPhase.UPLOADING_FILES, False),
            (ProgressPhase.COMMITTING, False),
            (ProgressPhase.COMPLETE, True),
            (ProgressPhase.CANCELLED, True),
            (ProgressPhase.ERROR, True),
        ],
    )
    def test_is_complete_for_terminal_phases(self, phase, complete):
        """Test only terminal phases are complete."""
        assert _update(phase=phase).is_complete is complete

    def test_str(self):
        """Test string representation."""
        text = str(_update(message="Batch 2", estimated_remaining=3.0))
        assert "[uploading_files]" in text
        assert "4/10" in text
        assert "(50.0%)" in text
        assert "- Batch 2" in text
        assert "~3.0s remaining" in text


class TestProgressTracker:
    """Test ProgressTracker."""

    def test_start_emits_zero_fraction(self):
        """Test start publishes the total."""
        callback = Mock()
        tracker = ProgressTracker(callback)

        tracker.start(total=10, message="Preparing")

        update = callback.call_args[0][0]
        assert update.total == 10
        assert update.fraction == 0.0
        assert update.phase is ProgressPhase.PREPARING

    def test_update_fraction(self):
        """Test fraction is processed over total."""
        callback = Mock()
        tracker = ProgressTracker(callback)
        tracker.start(total=4)

        tracker.update(processed=3, synced=2, phase=ProgressPhase.UPLOADING_FILES)

        update = callback.call_args[0][0]
        assert update.fraction == 0.75
        assert update.synced == 2
        assert update.phase is ProgressPhase.UPLOADING_FILES

    def test_fraction_never_decreases(self):
        """Test progress is monotonic."""
        tracker = ProgressTracker()
        tracker.start(total=10)

        tracker.update(processed=6, synced=6)
        tracker.update(processed=3, synced=3)

        assert tracker.fraction == 0.6

    def test_fraction_capped_at_one(self):
        """Test overshooting counters do not exceed 1.0."""
        tracker = ProgressTracker()
        tracker.start(total=2)
        tracker.update(processed=5, synced=5)
        assert tracker.fraction == 1.0

    def test_zero_total_keeps_fraction(self):
        """Test an empty session does not divide by zero."""
        tracker = ProgressTracker()
        tracker.start(total=0)
        tracker.update(processed=0, synced=0)
        assert tracker.fraction == 0.0

    def test_complete_sets_fraction_once(self):
        """Test completion is published exactly once."""
        callback = Mock()
        tracker = ProgressTracker(callback)
        tracker.start(total=3)

        tracker.complete("Done")
        tracker.complete("Again")

        completions = [
            c[0][0] for c in callback.call_args_list if c[0][0].is_complete
        ]
        assert len(completions) == 1
        assert completions[0].fraction == 1.0
        assert completions[0].message == "Done"
        assert tracker.finished is True

    def test_no_updates_after_complete(self):
        """Test progress after completion is dropped."""
        callback = Mock()
        tracker = ProgressTracker(callback)
        tracker.start(total=3)
        tracker.complete("Cancelled", phase=ProgressPhase.CANCELLED)
        callback.reset_mock()

        tracker.update(processed=1, synced=1)

        callback.assert_not_called()
        assert tracker.fraction == 1.0

    def test_callback_errors_are_logged(self, caplog):
        """Test a failing callback does not break tracking."""
        tracker = ProgressTracker(Mock(side_effect=RuntimeError("boom")))

        tracker.start(total=1)
        tracker.complete()

        assert tracker.finished
        assert "Error in progress callback" in caplog.text

    def test_estimated_remaining(self):
        """Test remaining time is estimated from elapsed time."""
        callback = Mock()
        tracker = ProgressTracker(callback)

        with patch("photo_sync.database.progress_tracker.time") as mock_time:
            mock_time.time.side_effect = [100.0, 100.0, 110.0, 110.0]
            tracker.start(total=4)
            tracker.update(processed=1, synced=1)

        update = callback.call_args[0][0]
        assert update.elapsed_time == pytest.approx(10.0)
        assert update.estimated_remaining == pytest.approx(30.0)

    def test_summary(self):
        """Test summary reports phase history and progress."""
        tracker = ProgressTracker()
        tracker.start(total=2)
        tracker.update(processed=1, synced=1, phase=ProgressPhase.UPLOADING_METADATA)
        tracker.complete()

        summary = tracker.get_summary()
        assert summary["current_phase"] == "complete"
        assert summary["progress"] == "1/2"
        assert summary["percentage"] == 100.0
        assert "preparing" in summary["phase_history"]
        assert "uploading_metadata" in summary["phase_history"]


class TestConsoleProgressReporter:
    """Test ConsoleProgressReporter."""

    def test_prints_phase_header_once(self, capsys):
        """Test the phase banner is printed on change only."""
        reporter = ConsoleProgressReporter(verbose=True)

        reporter(_update(processed=1))
        reporter(_update(processed=2))

        output = capsys.readouterr().out
        assert output.count("Phase: UPLOADING_FILES") == 1
        assert output.count("4/10") == 2

    def test_quiet_mode_prints_only_completion(self, capsys):
        """Test non-verbose mode skips intermediate updates."""
        reporter = ConsoleProgressReporter(verbose=False)

        reporter(_update(message="working"))
        reporter(_update(phase=ProgressPhase.COMPLETE, fraction=1.0, message="done"))

        output = capsys.readouterr().out
        assert "working" not in output
        assert "done" in output


class TestTqdmProgressReporter:
    """Test TqdmProgressReporter."""

    @patch("photo_sync.database.progress_tracker.tqdm")
    def test_bar_follows_synced_count(self, mock_tqdm):
        """Test one bar per session tracking synced photos."""
        bar = MagicMock()
        mock_tqdm.return_value = bar
        reporter = TqdmProgressReporter(desc="Syncing")

        reporter(_update(synced=2))
        reporter(_update(synced=5))

        mock_tqdm.assert_called_once_with(total=10, desc="Syncing", unit="photo")
        assert bar.n == 5
        bar.close.assert_not_called()

    @patch("photo_sync.database.progress_tracker.tqdm")
    def test_bar_closed_on_completion(self, mock_tqdm):
        """Test the bar closes with the session."""
        bar = MagicMock()
        mock_tqdm.return_value = bar
        reporter = TqdmProgressReporter()

        reporter(_update(phase=ProgressPhase.COMPLETE, fraction=1.0))

        bar.close.assert_called_once()
        reporter.close()
        bar.close.assert_called_once()
