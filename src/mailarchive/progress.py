"""Progress reporting and cooperative cancellation for long-running archive jobs."""

import logging
import threading
from typing import Protocol

logger = logging.getLogger(__name__)

FINALIZE_CAP = 95


class TaskCancelled(BaseException):
    """Raised when a run's CancelToken has been set.

    Derives from BaseException so per-message/per-folder ``except Exception``
    handlers never turn a cancellation into a logged failure.
    """


class ProgressCallback(Protocol):
    def update(self, percent: int, message: str) -> None:
        """Report overall progress (0-100) and a status message."""
        ...


class NullProgress:
    def update(self, percent: int, message: str) -> None:
        pass


class LoggingProgress:
    """Forward updates to another callback and log them as ``[task] pct% - message``."""

    def __init__(self, task: str, callback: ProgressCallback | None = None, level: int = logging.INFO):
        self.task = task
        self.callback = callback or NullProgress()
        self.level = level

    def update(self, percent: int, message: str) -> None:
        self.callback.update(percent, message)
        logger.log(self.level, "[%s] %d%% - %s", self.task, percent, message)


class CancelToken:
    """Thread-safe cancellation flag, polled by the job between units of work."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        if self._event.is_set():
            raise TaskCancelled("Task cancelled")


class ProgressTracker:
    """Clamp a job's progress so it never goes backwards.

    Percentages stay at or below ``cap`` until `finish()`, which reports 100.
    """

    def __init__(self, callback: ProgressCallback | None = None, cap: int = FINALIZE_CAP):
        self.callback = callback or NullProgress()
        self.cap = cap
        self.percent = 0

    def update(self, percent: float, message: str) -> None:
        pct = int(max(self.percent, min(self.cap, percent)))
        self.percent = pct
        self.callback.update(pct, message)

    def status(self, message: str) -> None:
        """Report a message without moving the bar."""
        self.callback.update(self.percent, message)

    def finish(self, message: str) -> None:
        self.percent = 100
        self.callback.update(100, message)
