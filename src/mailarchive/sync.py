"""Pull messages from a remote mailbox into the local archive."""

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable

from .content import save_message_content
from .errors import ArchiveError, ArchiveLockedError, PropertiesError, RemoteError, RemoteTimeoutError
from .layouts import (
    MESSAGES_DIR,
    PROPERTIES_FILE,
    ArchiveTree,
    MessageProperties,
    derive_message_id,
    iter_message_dirs,
    read_properties,
    sanitize_name,
)
from .layouts.base import KEY_ID, KEY_ID_FOLDER
from .lock import ArchiveLock
from .progress import (
    CancelToken,
    LoggingProgress,
    ProgressCallback,
    ProgressTracker,
    TaskCancelled,
)
from .remote import MailboxFactory, RemoteFolderInfo, RemoteMailbox, RemoteMessage

logger = logging.getLogger(__name__)


class SyncMode(Enum):
    FULL = "full"
    INCREMENTAL = "incremental"
    YEAR = "year"


@dataclass(frozen=True)
class SyncWindow:
    """Which remote messages a run considers: all, since `.lastSync`, or since Jan 1 of a year."""
    mode: SyncMode
    since: datetime | None = None

    @classmethod
    def full(cls) -> "SyncWindow":
        return cls(SyncMode.FULL)

    @classmethod
    def incremental(cls) -> "SyncWindow":
        return cls(SyncMode.INCREMENTAL)

    @classmethod
    def from_year(cls, year: int) -> "SyncWindow":
        return cls(SyncMode.YEAR, datetime(year, 1, 1))

    @property
    def prescan(self) -> bool:
        """Index the local archive and pre-count remote messages before downloading."""
        return self.mode is not SyncMode.INCREMENTAL

    @property
    def label(self) -> str:
        if self.mode is SyncMode.FULL:
            return "Full Email Sync"
        if self.mode is SyncMode.INCREMENTAL:
            return "New Emails Sync"
        return f"{self.since.year} Email Sync"


@dataclass
class SyncResult:
    """Outcome of one sync run."""
    mode: SyncMode
    folders: int = 0
    downloaded: int = 0
    skipped: int = 0
    failed: int = 0
    folder_errors: list[str] = field(default_factory=list)
    error: str | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def summarize(self) -> str:
        if self.error:
            self.message = f"Error during email download: {self.error}"
        elif self.downloaded == 0:
            self.message = f"No new emails to download. {self.skipped} emails already exist locally."
        else:
            self.message = (
                f"Download complete. {self.downloaded} emails downloaded from {self.folders} folders. "
                f"{self.skipped} emails skipped."
            )
        if not self.error and self.failed:
            self.message += f" {self.failed} emails failed."
        if not self.error and self.folder_errors:
            self.message += f" {len(self.folder_errors)} folders failed."
        return self.message


class DedupIndex:
    """Ids of messages already in the archive, raw and sanitized."""

    def __init__(self):
        self._ids: set[str] = set()

    def __len__(self):
        return len(self._ids)

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._ids

    def add(self, *ids: str | None) -> None:
        self._ids.update(i for i in ids if i)

    def seen(self, message_id: str, sanitized: str) -> bool:
        return message_id in self._ids or sanitized in self._ids


def build_dedup_index(tree: ArchiveTree, cancel: CancelToken | None = None) -> DedupIndex:
    """Collect ids from every message directory under the archive, both layouts."""
    index = DedupIndex()
    for folder_dir in tree.iter_folder_dirs():
        if cancel:
            cancel.check()
        for message_dir in iter_message_dirs(folder_dir):
            path = message_dir / PROPERTIES_FILE
            if not path.is_file():
                continue
            try:
                props = read_properties(path)
            except (OSError, PropertiesError) as e:
                logger.warning("Error reading properties file %s: %s", path, e)
                continue
            message_id = props.get(KEY_ID)
            folder_id = props.get(KEY_ID_FOLDER)
            index.add(message_id, folder_id)
            if not message_id and not folder_id:
                index.add(message_dir.name)
    return index


def _join(addresses: list[str]) -> str | None:
    return ", ".join(addresses) if addresses else None


def message_properties(message: RemoteMessage) -> MessageProperties:
    header_id = message.message_id.strip() if message.message_id else None
    return MessageProperties(
        message_id=header_id or None,
        subject=message.subject,
        from_addr=_join(message.from_),
        reply_to=_join(message.reply_to),
        to_addr=_join(message.to),
        cc_addr=_join(message.cc),
        sent_date=message.sent_date,
        received_date=message.received_date,
        size_bytes=message.size,
    )


class SyncEngine:
    """Downloads remote folders into an archive, never duplicating a message.

    ``mailbox_factory`` opens an authenticated session; everything else the
    engine needs is passed in, so several engines can run side by side on
    different archives.
    """

    def __init__(
        self,
        root: Path,
        mailbox_factory: MailboxFactory,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.tree = ArchiveTree(Path(root).expanduser())
        self.mailbox_factory = mailbox_factory
        self.clock = clock

    @property
    def root(self) -> Path:
        return self.tree.root

    def run(
        self,
        window: SyncWindow | None = None,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> SyncResult:
        """Run one sync. Returns a result whose ``message`` summarizes it.

        Connection-level failures and a busy archive are reported in the
        result; `TaskCancelled` propagates after the remote session is closed.
        """
        window = window or SyncWindow.incremental()
        cancel = cancel or CancelToken()
        tracker = ProgressTracker(LoggingProgress(window.label, progress))
        result = SyncResult(mode=window.mode)
        logger.info("Starting %s", window.label)

        try:
            with ArchiveLock(self.root, "sync"):
                self._run(window, tracker, cancel, result)
        except TaskCancelled:
            logger.warning("%s was interrupted", window.label)
            raise
        except ArchiveLockedError as e:
            result.error = str(e)
            logger.warning("%s not started: %s", window.label, e)
            tracker.status(result.summarize())
            return result
        except (ArchiveError, OSError) as e:
            logger.error("Error downloading emails: %s", e)
            result.error = str(e)
            tracker.status(result.summarize())
            return result

        tracker.update(95, "Finalizing download...")
        tracker.finish(result.summarize())
        logger.info("%s completed: %s", window.label, result.message)
        return result

    def _resolve_since(self, window: SyncWindow, tracker: ProgressTracker) -> datetime | None:
        if window.mode is not SyncMode.INCREMENTAL:
            return window.since
        try:
            since = self.tree.read_last_sync()
        except (OSError, ValueError) as e:
            logger.warning("Error reading last sync date: %s", e)
            tracker.update(5, "Last sync date not available, downloading all new emails")
            return None
        if since is None:
            logger.warning("No %s in %s; downloading all new emails", self.tree.last_sync_path.name, self.root)
            tracker.update(5, "Last sync date not available, downloading all new emails")
        else:
            tracker.update(5, f"Downloading emails since {since:%Y-%m-%d %H:%M:%S}")
        return since

    def _run(self, window: SyncWindow, tracker: ProgressTracker, cancel: CancelToken, result: SyncResult) -> None:
        tracker.update(0, "Connecting to mail server...")
        since = self._resolve_since(window, tracker)

        index = DedupIndex()
        if window.prescan:
            tracker.update(5, "Indexing existing messages to avoid duplicates...")
            index = build_dedup_index(self.tree, cancel)
            tracker.update(10, f"Found {len(index)} existing messages")

        cancel.check()
        started = self.clock()
        mailbox = self.mailbox_factory()
        with mailbox:
            cancel.check()
            folders = [f for f in mailbox.list_folders() if f.selectable]
            cancel.check()
            tracker.update(15, f"Found {len(folders)} folders")

            total = self._count(mailbox, folders, tracker, cancel) if window.prescan else 0

            for n, info in enumerate(folders):
                cancel.check()
                if total:
                    tracker.status(f"Processing folder: {info.name}")
                else:
                    tracker.update(20 + 75 * n / len(folders), f"Processing folder: {info.name}")
                try:
                    self._sync_folder(mailbox, info, since, index, result, tracker, cancel, total, n, len(folders))
                except (RemoteError, OSError) as e:
                    logger.warning("Error processing folder %s: %s", info.name, e)
                    result.folder_errors.append(f"{info.name}: {e}")
                result.folders += 1
                if result.downloaded == 0:
                    tracker.update(5 + 90 * result.folders / len(folders), f"Skipped {result.skipped} existing emails")

        if result.folder_errors:
            logger.warning("Not updating %s: %d folders failed", self.tree.last_sync_path.name, len(result.folder_errors))
            return
        try:
            self.tree.write_last_sync(started)
        except OSError as e:
            logger.warning("Error updating last sync time: %s", e)

    def _count(
        self,
        mailbox: RemoteMailbox,
        folders: list[RemoteFolderInfo],
        tracker: ProgressTracker,
        cancel: CancelToken,
    ) -> int:
        tracker.status("Counting emails...")
        total = 0
        for info in folders:
            cancel.check()
            try:
                with mailbox.open_folder(info.name) as folder:
                    cancel.check()
                    total += folder.message_count()
            except RemoteError as e:
                logger.warning("Error counting messages in folder %s: %s", info.name, e)
        return total

    def _sync_folder(
        self,
        mailbox: RemoteMailbox,
        info: RemoteFolderInfo,
        since: datetime | None,
        index: DedupIndex,
        result: SyncResult,
        tracker: ProgressTracker,
        cancel: CancelToken,
        total: int,
        position: int,
        folder_count: int,
    ) -> None:
        cancel.check()
        with mailbox.open_folder(info.name) as remote:
            cancel.check()
            folder_dir = self.tree.folder_dir(info.name, info.separator)
            (folder_dir / MESSAGES_DIR).mkdir(parents=True, exist_ok=True)

            candidates = remote.search_received_since(since) if since else remote.messages()
            cancel.check()
            if candidates:
                tracker.status(f"Found {len(candidates)} emails in {info.name}")

            for i, message in enumerate(candidates):
                cancel.check()
                try:
                    if self._sync_message(message, info.name, folder_dir, index, cancel):
                        result.downloaded += 1
                    else:
                        result.skipped += 1
                except RemoteTimeoutError:
                    raise
                except Exception as e:
                    result.failed += 1
                    logger.warning("Error processing message %d in %s: %s", i + 1, info.name, e)

                status = f"Downloaded {result.downloaded} new emails, skipped {result.skipped} existing emails"
                if total:
                    done = result.downloaded + result.skipped + result.failed
                    tracker.update(20 + 75 * done / total, status)
                else:
                    within = (i + 1) / len(candidates)
                    tracker.update(20 + 75 * (position + within) / folder_count, status)

    def _sync_message(
        self,
        message: RemoteMessage,
        folder_name: str,
        folder_dir: Path,
        index: DedupIndex,
        cancel: CancelToken,
    ) -> bool:
        """Download one message. Returns False if it was already archived."""
        message_id = derive_message_id(
            message.message_id, folder_name, message.sent_date, message.subject, now=self.clock(),
        )
        cancel.check()
        sanitized = sanitize_name(message_id)
        msg_dir = folder_dir / MESSAGES_DIR / sanitized
        legacy_dir = folder_dir / sanitized
        if index.seen(message_id, sanitized) or msg_dir.exists() or (legacy_dir / PROPERTIES_FILE).is_file():
            return False

        content = message.get_content()
        cancel.check()
        props = message_properties(message)

        msg_dir.mkdir(parents=True)
        try:
            save_message_content(msg_dir, content)
            # Written last: a directory without it is an incomplete download
            props.save(msg_dir)
        except BaseException:
            shutil.rmtree(msg_dir, ignore_errors=True)
            raise

        index.add(message_id, sanitized)
        logger.debug("Saved %s", msg_dir)
        return True


@dataclass
class ServerStatus:
    available: bool
    message: str
    folders: dict[str, int] = field(default_factory=dict)


def check_server(mailbox_factory: MailboxFactory) -> ServerStatus:
    """Connect, list folders and count their messages."""
    try:
        mailbox = mailbox_factory()
    except RemoteError as e:
        logger.warning("Server check failed: %s", e)
        return ServerStatus(False, f"Connection failed: {e}")

    counts: dict[str, int] = {}
    with mailbox:
        try:
            folders = mailbox.list_folders()
        except RemoteError as e:
            return ServerStatus(False, f"Listing folders failed: {e}")
        for info in folders:
            if not info.selectable:
                continue
            try:
                with mailbox.open_folder(info.name) as folder:
                    counts[info.name] = folder.message_count()
            except RemoteError as e:
                logger.warning("Error counting messages in folder %s: %s", info.name, e)
    total = sum(counts.values())
    return ServerStatus(True, f"Connected. {len(counts)} folders, {total} messages.", counts)
