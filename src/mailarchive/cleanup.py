"""Remove duplicate message directories and empty folders from an archive."""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from .errors import ArchiveError, ArchiveLockedError, PropertiesError
from .layouts import (
    MESSAGES_DIR,
    PROPERTIES_FILE,
    ArchiveTree,
    MessageProperties,
    count_message_dirs,
    iter_message_dirs,
    migrate_legacy_layout,
)
from .layouts.tree import remove_if_empty
from .lock import ArchiveLock
from .progress import CancelToken, LoggingProgress, ProgressCallback, ProgressTracker, TaskCancelled

logger = logging.getLogger(__name__)

TASK_NAME = "Email Cleanup"
STATUS_EVERY = 50


@dataclass
class CleanupResult:
    processed: int = 0
    folders: int = 0
    duplicates_removed: int = 0
    empty_dirs_removed: int = 0
    error: str | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def summarize(self) -> str:
        if self.error:
            self.message = f"Error during cleanup: {self.error}"
        else:
            self.message = (
                f"Cleanup complete. Processed {self.processed} emails in {self.folders} folders. "
                f"Removed {self.duplicates_removed} duplicates and {self.empty_dirs_removed} empty directories."
            )
        return self.message


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


class ArchiveMaintainer:
    """Restores one-directory-per-message across the whole archive.

    When two directories carry the same message id, the one modified most
    recently is kept. Interrupting a run is safe: it only ever deletes
    duplicates, so running it again converges to the same result.
    """

    def __init__(self, root: Path):
        self.tree = ArchiveTree(Path(root).expanduser())
        self._seen: dict[str, Path] = {}

    @property
    def root(self) -> Path:
        return self.tree.root

    def run(self, progress: ProgressCallback | None = None, cancel: CancelToken | None = None) -> CleanupResult:
        cancel = cancel or CancelToken()
        tracker = ProgressTracker(LoggingProgress(TASK_NAME, progress))
        result = CleanupResult()
        logger.info("Starting %s", TASK_NAME)

        if not self.root.is_dir():
            result.error = f"Email archive directory does not exist: {self.root}"
            tracker.status(result.summarize())
            return result

        try:
            with ArchiveLock(self.root, "cleanup"):
                self._run(tracker, cancel, result)
        except TaskCancelled:
            logger.warning("%s was interrupted", TASK_NAME)
            raise
        except ArchiveLockedError as e:
            result.error = str(e)
            logger.warning("%s not started: %s", TASK_NAME, e)
            tracker.status(result.summarize())
            return result
        except (ArchiveError, OSError) as e:
            logger.error("Error during cleanup: %s", e)
            result.error = str(e)
            tracker.status(result.summarize())
            return result

        tracker.update(95, "Finalizing cleanup...")
        tracker.finish(result.summarize())
        logger.info("%s completed: %s", TASK_NAME, result.message)
        return result

    def _run(self, tracker: ProgressTracker, cancel: CancelToken, result: CleanupResult) -> None:
        tracker.update(0, "Starting email archive cleanup...")
        self._seen = {}
        folder_dirs = list(self.tree.iter_folder_dirs(post_order=True))
        total = sum(count_message_dirs(d) for d in folder_dirs)
        tracker.update(5, f"Found {len(folder_dirs)} folders with approximately {total} emails")

        for folder_dir in folder_dirs:
            cancel.check()
            tracker.status(f"Cleaning folder: {self.tree.folder_name(folder_dir)}")
            migrate_legacy_layout(folder_dir)
            for message_dir in list(iter_message_dirs(folder_dir)):
                cancel.check()
                result.processed += 1
                self._check_message(message_dir, result)
                if total:
                    tracker.update(5 + 90 * result.processed / total, "Processing emails")
                if result.processed % STATUS_EVERY == 0:
                    tracker.status(
                        f"Processed {result.processed} of ~{total} emails. "
                        f"Removed {result.duplicates_removed} duplicates."
                    )

            result.folders += 1
            if not total:
                tracker.update(5 + 90 * result.folders / len(folder_dirs), "Cleaning folders")

        cancel.check()
        tracker.status("Removing empty folders...")
        # A duplicate removed from an earlier folder can leave it empty, so this runs after every folder is checked
        for folder_dir in self.tree.iter_folder_dirs(post_order=True):
            remove_if_empty(folder_dir / MESSAGES_DIR)
            if remove_if_empty(folder_dir):
                result.empty_dirs_removed += 1
                logger.info("Removed empty folder %s", folder_dir)

    def _check_message(self, message_dir: Path, result: CleanupResult) -> None:
        if not (message_dir / PROPERTIES_FILE).is_file():
            return
        try:
            props = MessageProperties.load(message_dir)
        except (OSError, PropertiesError) as e:
            logger.warning("Error reading properties for %s: %s", message_dir, e)
            return

        message_id = props.canonical_id(message_dir.name)
        existing = self._seen.get(message_id)
        if existing is None or existing == message_dir:
            self._seen[message_id] = message_dir
            return

        if _mtime(message_dir) > _mtime(existing):
            keep, drop = message_dir, existing
        else:
            keep, drop = existing, message_dir
        logger.info("Removing duplicate %s (keeping %s)", drop, keep)
        shutil.rmtree(drop)
        self._seen[message_id] = keep
        result.duplicates_removed += 1
