"""Mail archiving: mirror a mail server into a local directory tree."""

from .cleanup import ArchiveMaintainer, CleanupResult
from .errors import (
    ArchiveError,
    ArchiveLockedError,
    FolderNotFoundError,
    InvalidStateError,
    RemoteConnectionError,
    RemoteError,
    StoreError,
)
from .progress import CancelToken, TaskCancelled
from .store import LocalFolder, LocalMessage, LocalStore, open_store
from .sync import SyncEngine, SyncMode, SyncResult, SyncWindow, check_server

__all__ = [
    "ArchiveError",
    "ArchiveLockedError",
    "ArchiveMaintainer",
    "CancelToken",
    "CleanupResult",
    "FolderNotFoundError",
    "InvalidStateError",
    "LocalFolder",
    "LocalMessage",
    "LocalStore",
    "RemoteConnectionError",
    "RemoteError",
    "StoreError",
    "SyncEngine",
    "SyncMode",
    "SyncResult",
    "SyncWindow",
    "TaskCancelled",
    "check_server",
    "open_store",
]
