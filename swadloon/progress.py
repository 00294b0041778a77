"""Upload progress polling.

Workers only report failures through the log, so progress is derived by
polling how many jobs are still waiting in the queue rather than by
listening for completions.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Protocol

from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 0.75

ProgressCallback = Callable[[int, int], None]


class QueueDepth(Protocol):
    @property
    def total(self) -> int: ...

    def remaining(self) -> int: ...


class ProgressReporter:
    """Periodically read a queue's depth and report the done ratio."""

    def __init__(
        self,
        queue: QueueDepth,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.queue = queue
        self.interval = interval
        self.on_progress = on_progress
        self._last_logged: Optional[int] = None

    def done_count(self) -> int:
        return self.queue.total - self.queue.remaining()

    def done_ratio(self) -> float:
        total = self.queue.total
        if total == 0:
            return 1.0
        return self.done_count() / total

    def poll(self) -> float:
        """Take one reading, notify the callback and return the ratio."""
        done = self.done_count()
        total = self.queue.total
        ratio = self.done_ratio()

        if done != self._last_logged:
            logger.debug(f"Progress: {done}/{total} ({ratio * 100:.0f}%)")
            self._last_logged = done

        if self.on_progress is not None:
            self.on_progress(done, total)
        return ratio

    def run_until(self, finished: Callable[[], bool]) -> float:
        """Poll every `interval` seconds until finished() is true.

        A last reading is always taken after finished() flips so the final
        ratio is reported even for runs shorter than one interval.
        """
        while not finished():
            self.poll()
            time.sleep(self.interval)
        return self.poll()
