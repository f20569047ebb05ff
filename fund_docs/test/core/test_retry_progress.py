"""
Tests for retry and progress utilities (fund_docs/utils/retry.py, fund_docs/utils/progress.py)
"""
import threading
from unittest import mock

import pytest

from fund_docs.core.config import calculate_backoff_delay
from fund_docs.core.exceptions import CompositionCancelled
from fund_docs.utils.progress import ProgressTracker
from fund_docs.utils.retry import fetch_with_retry


class TestFetchWithRetry:
    """Tests for fetch_with_retry()."""

    @mock.patch("fund_docs.utils.retry.time.sleep")
    def test_success_after_failures(self, sleep):
        """Test the call is retried with backoff until it succeeds."""
        fn = mock.Mock(side_effect=[OSError("busy"), OSError("busy"), "ok"])
        assert fetch_with_retry(fn, max_retries=3) == "ok"
        assert fn.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [
            calculate_backoff_delay(0),
            calculate_backoff_delay(1),
        ]

    @mock.patch("fund_docs.utils.retry.time.sleep")
    def test_last_error_raised(self, sleep):
        """Test the last error propagates after the final attempt."""
        fn = mock.Mock(side_effect=OSError("disk full"))
        with pytest.raises(OSError):
            fetch_with_retry(fn, max_retries=2)
        assert fn.call_count == 2
        assert sleep.call_count == 1

    @mock.patch("fund_docs.utils.retry.time.sleep")
    def test_unlisted_errors_not_retried(self, sleep):
        """Test only retry_on errors trigger another attempt."""
        fn = mock.Mock(side_effect=ValueError("bad"))
        with pytest.raises(ValueError):
            fetch_with_retry(fn, max_retries=3, retry_on=(OSError,))
        assert fn.call_count == 1
        sleep.assert_not_called()

    def test_backoff_capped(self):
        """Test the backoff delay is capped."""
        assert calculate_backoff_delay(0) <= calculate_backoff_delay(1)
        assert calculate_backoff_delay(100) == calculate_backoff_delay(200)


class TestProgressTracker:
    """Tests for ProgressTracker."""

    def test_counts(self):
        """Test update advances the counter."""
        tracker = ProgressTracker(enabled=True, label="members")
        tracker.start(4)
        for _ in range(4):
            tracker.checkpoint()
            tracker.update()
        tracker.finish()
        assert tracker.current_item == 4

    def test_milestone_logging(self, caplog):
        """Test progress is logged at milestones."""
        tracker = ProgressTracker(enabled=True, label="members")
        with caplog.at_level("INFO", logger="fund_docs.utils.progress"):
            tracker.start(4)
            tracker.update()
        assert any("members: 1/4" in record.getMessage() for record in caplog.records)

    def test_cancel(self):
        """Test checkpoint raises once the event is set."""
        event = threading.Event()
        tracker = ProgressTracker(enabled=False, cancel_event=event, label="appendix")
        tracker.checkpoint()
        event.set()
        assert tracker.cancelled
        with pytest.raises(CompositionCancelled) as exc_info:
            tracker.checkpoint()
        assert exc_info.value.details["stage"] == "appendix"

    def test_no_event(self):
        """Test trackers without an event never cancel."""
        tracker = ProgressTracker(enabled=False)
        assert not tracker.cancelled
        tracker.checkpoint()
