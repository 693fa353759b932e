"""Directory-tree rules for the archive: where folders and messages live.

Layout::

    <root>/
      .lastSync
      INBOX/
        messages/
          <sanitized message id>/
            message.properties
            content.txt
            content.html
            attachments/<file>
        Receipts/            # nested remote folder
          messages/...
      Old/                   # legacy layout: message dirs directly in the folder
        <sanitized message id>/message.properties
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterator

from .base import (
    ATTACHMENTS_DIR,
    LAST_SYNC_FILE,
    MESSAGES_DIR,
    PROPERTIES_FILE,
)
from .naming import format_timestamp, parse_timestamp, sanitize_folder_path, sanitize_name

logger = logging.getLogger(__name__)


def is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


def is_message_dir(path: Path) -> bool:
    """A directory holding a `message.properties` file."""
    return path.is_dir() and (path / PROPERTIES_FILE).is_file()


def _subdirs(directory: Path) -> list[Path]:
    try:
        return sorted(p for p in directory.iterdir() if p.is_dir() and not is_hidden(p))
    except FileNotFoundError:
        return []


def child_folder_dirs(directory: Path) -> list[Path]:
    """Sub-folders of an archive directory (the root or a folder)."""
    return [
        p for p in _subdirs(directory)
        if p.name not in (MESSAGES_DIR, ATTACHMENTS_DIR) and not is_message_dir(p)
    ]


def legacy_message_dirs(folder_dir: Path) -> list[Path]:
    """Message directories stored directly in the folder (pre-`messages/` layout)."""
    return [
        p for p in _subdirs(folder_dir)
        if p.name not in (MESSAGES_DIR, ATTACHMENTS_DIR) and is_message_dir(p)
    ]


def current_message_dirs(folder_dir: Path) -> list[Path]:
    """Directories under ``<folder>/messages/``, with or without properties."""
    return _subdirs(folder_dir / MESSAGES_DIR)


def iter_message_dirs(folder_dir: Path) -> Iterator[Path]:
    """Message directories of one folder, current layout first, then legacy."""
    yield from current_message_dirs(folder_dir)
    yield from legacy_message_dirs(folder_dir)


def count_message_dirs(folder_dir: Path) -> int:
    """Count a folder's messages without reading any of them."""
    current = sum(1 for p in current_message_dirs(folder_dir) if (p / PROPERTIES_FILE).is_file())
    return current + len(legacy_message_dirs(folder_dir))


def migrate_legacy_layout(folder_dir: Path) -> int:
    """Move legacy message directories into ``<folder>/messages/``.

    Safe to call repeatedly; returns the number of directories moved. A legacy
    directory whose name already exists under `messages/` is left where it is.
    """
    legacy = legacy_message_dirs(folder_dir)
    if not legacy:
        return 0
    messages_dir = folder_dir / MESSAGES_DIR
    messages_dir.mkdir(exist_ok=True)
    moved = 0
    for src in legacy:
        dest = messages_dir / src.name
        if dest.exists():
            logger.warning("Not migrating %s: %s already exists", src, dest)
            continue
        try:
            src.rename(dest)
        except OSError as e:
            logger.warning("Failed to move message directory %s: %s", src, e)
            continue
        moved += 1
    if moved:
        logger.info("Migrated %d message directories in %s", moved, folder_dir)
    return moved


def remove_if_empty(directory: Path) -> bool:
    """Remove ``directory`` if it exists and has no entries."""
    try:
        directory.rmdir()
    except OSError:
        return False
    return True


class ArchiveTree:
    """Path derivation for one archive root."""

    def __init__(self, root: Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def last_sync_path(self) -> Path:
        return self._root / LAST_SYNC_FILE

    def folder_dir(self, full_name: str, separator: str | None = "/") -> Path:
        return self._root / sanitize_folder_path(full_name, separator)

    def message_dir(self, folder_dir: Path, message_id: str) -> Path:
        return folder_dir / MESSAGES_DIR / sanitize_name(message_id)

    def iter_folder_dirs(self, post_order: bool = False) -> Iterator[Path]:
        """All folder directories, depth-first.

        With ``post_order=True`` children are yielded before their parent, so a
        caller may delete a folder after emptying it.
        """
        def walk(directory: Path) -> Iterator[Path]:
            for child in child_folder_dirs(directory):
                if not post_order:
                    yield child
                yield from walk(child)
                if post_order:
                    yield child

        yield from walk(self._root)

    def folder_name(self, folder_dir: Path) -> str:
        """Archive-relative folder path using ``/``."""
        return folder_dir.relative_to(self._root).as_posix()

    def read_last_sync(self) -> datetime | None:
        """Watermark from `.lastSync`, or None if it was never written.

        Raises ValueError/OSError if the file exists but can't be used.
        """
        path = self.last_sync_path
        if not path.exists():
            return None
        lines = path.read_text(encoding="utf-8").splitlines()
        if not lines:
            raise ValueError(f"{path} is empty")
        return parse_timestamp(lines[0])

    def write_last_sync(self, when: datetime) -> None:
        self.last_sync_path.write_text(format_timestamp(when) + "\n", encoding="utf-8")
