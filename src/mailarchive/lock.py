"""Single-writer lock on an archive root.

Sync and cleanup runs both take this lock, so they never create and delete
directories under the same archive at the same time. The lock file records the
owner's PID; a lock left behind by a process that no longer exists is reclaimed.
"""

import logging
import os
import time
from datetime import datetime
from pathlib import Path

from .errors import ArchiveLockedError

logger = logging.getLogger(__name__)

LOCK_FILE = ".lock"
# An unreadable lock younger than this may still be getting its PID written
WRITE_GRACE_SECONDS = 10


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)  # Signal 0 just checks if process exists
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True


def read_lock(root: Path) -> dict | None:
    """Return ``{"pid", "operation", "started"}`` for the current holder, or None.

    ``pid`` is None when the file holds no readable PID.
    """
    path = Path(root) / LOCK_FILE
    try:
        text = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    parts = text.split(" ", 2)
    try:
        pid = int(parts[0])
    except (ValueError, IndexError):
        pid = None
    return {
        "pid": pid,
        "operation": parts[1] if len(parts) > 1 else "?",
        "started": parts[2] if len(parts) > 2 else "?",
    }


class ArchiveLock:
    """Exclusive lock on an archive root, usable as a context manager."""

    def __init__(self, root: Path, operation: str):
        self.root = Path(root)
        self.operation = operation
        self.path = self.root / LOCK_FILE
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def _create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(f"{os.getpid()} {self.operation} {datetime.now().isoformat(timespec='seconds')}\n")
        return True

    def _age(self) -> float:
        try:
            return time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return float("inf")

    def acquire(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        if self._create():
            self._held = True
            return
        holder = read_lock(self.root)
        if holder and holder["pid"] is None and self._age() < WRITE_GRACE_SECONDS:
            # Created by another process that hasn't written its PID yet
            raise ArchiveLockedError(f"Archive is busy: lock {self.path} is being written")
        if holder and holder["pid"] is not None and _pid_alive(holder["pid"]):
            raise ArchiveLockedError(
                f"Archive is busy: {holder['operation']} running since {holder['started']} [PID {holder['pid']}]"
            )
        logger.warning("Removing stale archive lock %s (%s)", self.path, holder)
        self.path.unlink(missing_ok=True)
        if not self._create():
            raise ArchiveLockedError(f"Archive lock {self.path} was taken by another process")
        self._held = True

    def release(self) -> None:
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, *args):
        self.release()
