"""Boundary to the remote mailbox.

The archive core only needs to list folders, open one read-only, enumerate or
date-filter its messages and fetch each message's headers and content. Anything
satisfying these protocols can feed the sync engine; `mailarchive.imap` is the
IMAP implementation.
"""

from dataclasses import dataclass
from datetime import datetime
from email.message import Message
from typing import Callable, Protocol, Sequence


@dataclass
class RemoteFolderInfo:
    """One entry of the server's folder listing."""
    name: str
    separator: str | None = "/"
    selectable: bool = True


class RemoteMessage(Protocol):
    message_id: str | None
    subject: str | None
    from_: list[str]
    reply_to: list[str]
    to: list[str]
    cc: list[str]
    sent_date: datetime | None
    received_date: datetime | None
    size: int

    def get_content(self) -> Message:
        """Full MIME tree of the message."""
        ...


class RemoteFolder(Protocol):
    name: str

    def message_count(self) -> int:
        ...

    def messages(self) -> Sequence[RemoteMessage]:
        ...

    def search_received_since(self, since: datetime) -> Sequence[RemoteMessage]:
        """Messages whose received (internal) date is on or after ``since``."""
        ...

    def close(self) -> None:
        ...

    def __enter__(self) -> "RemoteFolder":
        ...

    def __exit__(self, *args) -> None:
        ...


class RemoteMailbox(Protocol):
    def list_folders(self) -> list[RemoteFolderInfo]:
        ...

    def open_folder(self, name: str) -> RemoteFolder:
        """Open a folder read-only."""
        ...

    def close(self) -> None:
        ...

    def __enter__(self) -> "RemoteMailbox":
        ...

    def __exit__(self, *args) -> None:
        ...


# Opens an authenticated session; raises RemoteConnectionError on failure
MailboxFactory = Callable[[], RemoteMailbox]
