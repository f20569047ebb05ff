"""
Progress tracking for long composition loops.

The tracker doubles as the cancellation checkpoint: loops over members
call checkpoint() once per item, which raises CompositionCancelled when
the caller's cancel event is set.
"""
import logging
import threading
from datetime import datetime
from typing import Optional

from fund_docs.core.config import PROGRESS_BAR_ENABLED
from fund_docs.core.exceptions import CompositionCancelled

logger = logging.getLogger(__name__)


class ProgressTracker:
    """
    Simple progress tracker for long-running operations.

    Usage:
        tracker = ProgressTracker(cancel_event=event, label="appendix")
        tracker.start(len(members))
        for member in members:
            tracker.checkpoint()
            ...
            tracker.update()
        tracker.finish()
    """

    def __init__(
        self,
        enabled: bool = PROGRESS_BAR_ENABLED,
        cancel_event: Optional[threading.Event] = None,
        label: str = "items",
    ):
        """
        Initialize progress tracker.

        Args:
            enabled: Whether progress logging is enabled
            cancel_event: Event that requests cooperative cancellation
            label: Name of what is being processed, for log lines
        """
        self.enabled = enabled
        self.cancel_event = cancel_event
        self.label = label
        self.start_time: Optional[datetime] = None
        self.current_item = 0
        self.total_items = 0

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def checkpoint(self):
        """
        Raises:
            CompositionCancelled: If cancellation was requested
        """
        if self.cancelled:
            logger.info(f"Cancelled {self.label} at {self.current_item}/{self.total_items}")
            raise CompositionCancelled(
                "Composition cancelled",
                details={"stage": self.label, "completed": self.current_item},
            )

    def start(self, total: int):
        self.total_items = total
        self.current_item = 0
        self.start_time = datetime.now()

        if self.enabled:
            logger.info(f"Starting {self.label}: {total} items")

    def update(self, increment: int = 1):
        """
        Update progress.

        Args:
            increment: Number of items completed since last update
        """
        self.current_item += increment
        if not self.enabled or self.total_items <= 0:
            return

        # Log at 25% milestones
        previous = self.current_item - increment
        for milestone in (0.25, 0.50, 0.75, 1.0):
            if previous < self.total_items * milestone <= self.current_item:
                self._log_progress(self.current_item / self.total_items * 100)
                break

    def _log_progress(self, percentage: float):
        elapsed = self._get_elapsed_seconds()
        logger.info(
            f"  {self.label}: {self.current_item}/{self.total_items} "
            f"({percentage:.1f}%) - {elapsed:.1f}s elapsed"
        )

    def finish(self):
        if not self.enabled:
            return

        elapsed = self._get_elapsed_seconds()
        logger.info(
            f"Completed {self.label}: {self.current_item}/{self.total_items} "
            f"in {elapsed:.1f}s"
        )

    def _get_elapsed_seconds(self) -> float:
        if self.start_time:
            return (datetime.now() - self.start_time).total_seconds()
        return 0.0
