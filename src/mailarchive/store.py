"""Read-only view of an archive as Store -> Folder -> Message.

Other tools browse a downloaded archive through this module exactly as they
would a live mailbox, without touching the network:

    with open_store(root) as store:
        folder = store.get_folder("INBOX")
        with folder.open():
            for msg in folder.get_messages():
                print(msg.subject, msg.get_from())

Opening a folder is the one operation that writes: a folder still in the legacy
layout (message directories directly inside it) is moved into `messages/` first.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator

from .addresses import sanitize_email_address
from .errors import FolderNotFoundError, InvalidStateError, PropertiesError, StoreError
from .layouts import (
    CONTENT_HTML,
    CONTENT_TXT,
    MESSAGES_DIR,
    ATTACHMENTS_DIR,
    PROPERTIES_FILE,
    ArchiveTree,
    MessageProperties,
    count_message_dirs,
    is_message_dir,
    iter_message_dirs,
    migrate_legacy_layout,
    read_properties,
)
from .layouts.base import split_addresses
from .layouts.tree import child_folder_dirs

logger = logging.getLogger(__name__)

UNKNOWN_SENDER = "unknown@domain.com"


class OpenMode(Enum):
    READ_ONLY = 1
    READ_WRITE = 2


class LocalMessage:
    """One archived message. Content, HTML and attachments are read on first access."""

    def __init__(self, folder: "LocalFolder", directory: Path, headers: dict[str, str]):
        self.folder = folder
        self.directory = directory
        self.headers = headers
        self.properties = MessageProperties.from_dict(headers, source=directory / PROPERTIES_FILE)
        self.number = 0
        self._content: str | None = None

    @classmethod
    def load(cls, folder: "LocalFolder", directory: Path) -> "LocalMessage":
        """Raises OSError/PropertiesError if `message.properties` can't be read."""
        return cls(folder, directory, read_properties(directory / PROPERTIES_FILE))

    def __repr__(self):
        return f"LocalMessage({self.directory.name!r}, subject={self.subject!r})"

    @property
    def message_id(self) -> str | None:
        return self.properties.message_id

    @property
    def subject(self) -> str | None:
        return self.properties.subject

    @property
    def sent_date(self) -> datetime | None:
        return self.properties.sent_date

    @property
    def received_date(self) -> datetime | None:
        return self.properties.received_date

    @property
    def content(self) -> str:
        if self._content is None:
            self._content = self._read_content()
        return self._content

    def _read_content(self) -> str:
        path = self.directory / CONTENT_TXT
        if not path.is_file():
            candidates = sorted(self.directory.glob("*.txt"))
            if not candidates:
                return ""
            path = candidates[0]
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning("Failed to read %s: %s", path, e)
            return ""

    @property
    def html(self) -> str | None:
        path = self.directory / CONTENT_HTML
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8", errors="replace")

    @property
    def attachments(self) -> list[Path]:
        attachments_dir = self.directory / ATTACHMENTS_DIR
        if not attachments_dir.is_dir():
            return []
        return sorted(p for p in attachments_dir.iterdir() if p.is_file())

    @property
    def size(self) -> int:
        if self.properties.size_bytes is not None:
            return self.properties.size_bytes
        return len(self.content.encode("utf-8"))

    def get_header(self, name: str) -> str | None:
        """Raw property value, looked up case-insensitively."""
        return self.headers.get(name.lower())

    def get_from(self) -> list[str]:
        addresses = [sanitize_email_address(a) for a in split_addresses(self.properties.from_addr)]
        return [a or UNKNOWN_SENDER for a in addresses]

    def get_reply_to(self) -> list[str]:
        return [a for a in map(sanitize_email_address, self.properties.reply_to_list) if a]

    def get_recipients(self, kind: str = "to") -> list[str]:
        """Sanitized ``to`` or ``cc`` addresses."""
        if kind == "to":
            values = self.properties.to_list
        elif kind == "cc":
            values = self.properties.cc_list
        else:
            raise ValueError(f"Unknown recipient kind: {kind!r}")
        return [a for a in map(sanitize_email_address, values) if a]


def _received_order(message: LocalMessage):
    received = message.received_date
    return (received is None, received or datetime.min)


class LocalFolder:
    """A directory of the archive. The default (root) folder has an empty full name."""

    def __init__(self, store: "LocalStore", full_name: str, directory: Path):
        self.store = store
        self.full_name = full_name
        self.directory = directory
        self.mode: OpenMode | None = None
        self._messages: list[LocalMessage] = []

    def __repr__(self):
        return f"LocalFolder({self.full_name!r})"

    @property
    def name(self) -> str:
        return self.full_name.rsplit("/", 1)[-1]

    @property
    def parent(self) -> "LocalFolder | None":
        if not self.full_name:
            return None
        parent_name, _, _ = self.full_name.rpartition("/")
        return self.store.get_folder(parent_name)

    @property
    def is_open(self) -> bool:
        return self.mode is not None

    def exists(self) -> bool:
        return self.directory.is_dir()

    def list(self) -> list["LocalFolder"]:
        """Child folders, excluding `messages/`, `attachments/` and message directories."""
        return [self.store.folder_at(d) for d in child_folder_dirs(self.directory)]

    def open(self, mode: OpenMode = OpenMode.READ_ONLY) -> "LocalFolder":
        if self.is_open:
            raise InvalidStateError(f"Folder {self.full_name!r} is already open")
        try:
            migrate_legacy_layout(self.directory)
        except OSError as e:
            logger.warning("Could not migrate %s to the current layout: %s", self.directory, e)

        messages = []
        for message_dir in iter_message_dirs(self.directory):
            if not (message_dir / PROPERTIES_FILE).is_file():
                logger.warning("Skipping %s: no %s", message_dir, PROPERTIES_FILE)
                continue
            try:
                messages.append(LocalMessage.load(self, message_dir))
            except (OSError, PropertiesError) as e:
                logger.warning("Skipping unreadable message %s: %s", message_dir, e)
        messages.sort(key=_received_order)
        for n, message in enumerate(messages, start=1):
            message.number = n

        self._messages = messages
        self.mode = mode
        logger.debug("Opened %s with %d messages", self.full_name or "/", len(messages))
        return self

    def close(self) -> None:
        if not self.is_open:
            raise InvalidStateError(f"Folder {self.full_name!r} is not open")
        self._messages = []
        self.mode = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        if self.is_open:
            self.close()

    def _require_open(self) -> None:
        if not self.is_open:
            raise InvalidStateError(f"Folder {self.full_name!r} is not open")

    def get_message_count(self) -> int:
        if not self.is_open:
            return count_message_dirs(self.directory)
        return len(self._messages)

    def get_messages(self) -> list[LocalMessage]:
        self._require_open()
        return list(self._messages)

    def get_message(self, number: int) -> LocalMessage:
        """Message by 1-based number, in received-date order."""
        self._require_open()
        if number < 1 or number > len(self._messages):
            raise IndexError(f"Message number out of range: {number}")
        return self._messages[number - 1]

    def search(self, predicate: Callable[[LocalMessage], bool] | None = None) -> list[LocalMessage]:
        self._require_open()
        if predicate is None:
            return list(self._messages)
        return [m for m in self._messages if predicate(m)]

    def __iter__(self) -> Iterator[LocalMessage]:
        return iter(self.get_messages())


class LocalStore:
    """An archive root opened for reading."""

    def __init__(self, root: Path):
        root = Path(root).expanduser()
        if not root.is_dir():
            raise StoreError(f"Archive directory does not exist: {root}")
        self.tree = ArchiveTree(root)
        self._closed = False
        self._folders: dict[str, LocalFolder] = {}

    @property
    def root(self) -> Path:
        return self.tree.root

    def _require_connected(self) -> None:
        if self._closed:
            raise InvalidStateError("Store is closed")

    @property
    def default_folder(self) -> LocalFolder:
        return self.get_folder("")

    def get_folder(self, path: str) -> LocalFolder:
        """Folder by ``/``-separated archive path; ``""`` is the default folder.

        The path is tried as written first, then as a remote folder name
        (sanitized the way sync names directories).
        """
        self._require_connected()
        path = path.strip("/")
        if path in self._folders:
            return self._folders[path]
        if not path:
            return self.folder_at(self.root)
        directory = self._literal_folder_dir(path) or self.tree.folder_dir(path)
        if not directory.is_dir():
            raise FolderNotFoundError(f"Folder not found: {path}")
        folder = self.folder_at(directory)
        self._folders[path] = folder
        return folder

    def _literal_folder_dir(self, path: str) -> Path | None:
        parts = path.split("/")
        if any(p in ("", ".", "..", MESSAGES_DIR, ATTACHMENTS_DIR) or p.startswith(".") for p in parts):
            return None
        directory = self.root.joinpath(*parts)
        if not directory.is_dir() or is_message_dir(directory):
            return None
        return directory

    def folder_at(self, directory: Path) -> LocalFolder:
        """Folder for a directory found on disk, keyed by its relative path."""
        self._require_connected()
        full_name = "" if directory == self.root else self.tree.folder_name(directory)
        folder = self._folders.get(full_name)
        if folder is None or folder.directory != directory:
            folder = self._folders[full_name] = LocalFolder(self, full_name, directory)
        return folder

    def iter_folders(self) -> Iterator[LocalFolder]:
        """Every folder below the root, depth-first."""
        self._require_connected()
        for directory in self.tree.iter_folder_dirs():
            yield self.folder_at(directory)

    def close(self) -> None:
        for folder in self._folders.values():
            if folder.is_open:
                folder.close()
        self._folders.clear()
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def open_store(root: Path | str) -> LocalStore:
    """Open an archive for reading. Raises StoreError if ``root`` isn't a directory."""
    return LocalStore(Path(root))
