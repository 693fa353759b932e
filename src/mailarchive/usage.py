"""Disk usage of an archive, per folder."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import humanize

from .layouts import ArchiveTree, count_message_dirs


@dataclass
class FolderUsage:
    name: str
    messages: int = 0
    size_bytes: int = 0


@dataclass
class StorageUsage:
    folders: int = 0
    messages: int = 0
    size_bytes: int = 0
    per_folder: list[FolderUsage] = field(default_factory=list)

    def describe(self) -> str:
        return (
            f"{self.messages:,} messages in {self.folders:,} folders, "
            f"{humanize.naturalsize(self.size_bytes)}"
        )


def _dir_size(directory: Path, skip: set[Path]) -> int:
    total = 0
    for dirpath, dirnames, filenames in os.walk(directory):
        # Nested folders are measured on their own
        dirnames[:] = [d for d in dirnames if Path(dirpath, d) not in skip and not d.startswith(".")]
        for name in filenames:
            try:
                total += os.path.getsize(os.path.join(dirpath, name))
            except OSError:
                pass
    return total


def storage_usage(root: Path) -> StorageUsage:
    """Walk the archive once, counting messages without reading them."""
    tree = ArchiveTree(Path(root).expanduser())
    usage = StorageUsage()
    folder_dirs = list(tree.iter_folder_dirs())
    nested = set(folder_dirs)
    for folder_dir in folder_dirs:
        entry = FolderUsage(
            name=tree.folder_name(folder_dir),
            messages=count_message_dirs(folder_dir),
            size_bytes=_dir_size(folder_dir, nested),
        )
        usage.per_folder.append(entry)
        usage.folders += 1
        usage.messages += entry.messages
        usage.size_bytes += entry.size_bytes
    return usage
