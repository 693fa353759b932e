"""In-memory remote mailbox and archive fixtures shared by the tests."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from email.message import EmailMessage, Message
from pathlib import Path
from typing import Callable

from mailarchive.errors import RemoteConnectionError, RemoteError
from mailarchive.layouts import MESSAGES_DIR, MessageProperties, sanitize_name
from mailarchive.remote import RemoteFolderInfo


def make_email(
    subject: str | None = "Hello",
    body: str = "Hi there",
    html: str | None = None,
    attachments: list[tuple[str, bytes, str]] | None = None,
) -> EmailMessage:
    """Build a MIME message. ``attachments`` are ``(filename, data, mime type)``."""
    msg = EmailMessage()
    if subject is not None:
        msg["Subject"] = subject
    msg["From"] = "Alice <alice@example.com>"
    msg["To"] = "bob@example.com"
    msg.set_content(body)
    if html is not None:
        msg.add_alternative(html, subtype="html")
    for filename, data, mime in attachments or []:
        maintype, subtype = mime.split("/")
        msg.add_attachment(data, maintype=maintype, subtype=subtype, filename=filename)
    return msg


@dataclass
class FakeMessage:
    message_id: str | None
    subject: str | None = "Hello"
    received_date: datetime | None = datetime(2024, 3, 1, 12, 0, 0)
    sent_date: datetime | None = datetime(2024, 3, 1, 11, 59, 0)
    from_: list[str] = field(default_factory=lambda: ["Alice <alice@example.com>"])
    reply_to: list[str] = field(default_factory=list)
    to: list[str] = field(default_factory=lambda: ["bob@example.com"])
    cc: list[str] = field(default_factory=list)
    size: int = 1234
    content: Message | None = None
    error: Exception | None = None
    on_fetch: Callable[[], None] | None = None
    fetches: int = 0

    def get_content(self) -> Message:
        self.fetches += 1
        if self.on_fetch:
            self.on_fetch()
        if self.error:
            raise self.error
        if self.content is None:
            self.content = make_email(self.subject)
        return self.content


def message(message_id: str | None, **kwargs) -> FakeMessage:
    return FakeMessage(message_id=message_id, **kwargs)


class FakeFolder:
    def __init__(self, mailbox: "FakeMailbox", name: str, messages: list[FakeMessage]):
        self.mailbox = mailbox
        self.name = name
        self._messages = messages
        self.closed = False
        self.searches: list[datetime] = []

    def message_count(self) -> int:
        return len(self._messages)

    def messages(self) -> list[FakeMessage]:
        return list(self._messages)

    def search_received_since(self, since: datetime) -> list[FakeMessage]:
        self.searches.append(since)
        return [m for m in self._messages if m.received_date and m.received_date >= since]

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class FakeMailbox:
    """Folders keyed by full name. Records every folder it hands out."""

    def __init__(
        self,
        folders: dict[str, list[FakeMessage]] | None = None,
        separator: str = "/",
        noselect: set[str] | None = None,
        failing: set[str] | None = None,
    ):
        self.folders = folders or {}
        self.separator = separator
        self.noselect = noselect or set()
        self.failing = failing or set()
        self.opened: list[FakeFolder] = []
        self.sessions = 0
        self.closed = 0

    def list_folders(self) -> list[RemoteFolderInfo]:
        names = list(self.folders) + sorted(self.noselect)
        return [RemoteFolderInfo(n, self.separator, n not in self.noselect) for n in names]

    def open_folder(self, name: str) -> FakeFolder:
        if name in self.failing:
            raise RemoteError(f"SELECT {name} failed")
        folder = FakeFolder(self, name, self.folders[name])
        self.opened.append(folder)
        return folder

    def close(self) -> None:
        self.closed += 1

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def factory(self):
        def connect():
            self.sessions += 1
            return self
        return connect


def refusing_factory():
    raise RemoteConnectionError("Could not connect to imap.example.com:993: refused")


class RecordingProgress:
    def __init__(self):
        self.updates: list[tuple[int, str]] = []

    def update(self, percent: int, message: str) -> None:
        self.updates.append((percent, message))

    @property
    def percents(self) -> list[int]:
        return [p for p, _ in self.updates]


def write_message(
    folder_dir: Path,
    message_id: str | None,
    subject: str = "Hello",
    received: datetime | None = datetime(2024, 3, 1, 12, 0, 0),
    content: str | None = "Hi there\n",
    legacy: bool = False,
    name: str | None = None,
    mtime: float | None = None,
    **kwargs,
) -> Path:
    """Write one archived message the way a sync would.

    ``legacy=True`` puts it directly in the folder instead of under `messages/`.
    """
    parent = folder_dir if legacy else folder_dir / MESSAGES_DIR
    msg_dir = parent / (name or sanitize_name(message_id))
    msg_dir.mkdir(parents=True)
    if content is not None:
        (msg_dir / "content.txt").write_text(content, encoding="utf-8")
    MessageProperties(
        message_id=message_id,
        subject=subject,
        received_date=received,
        from_addr=kwargs.pop("from_addr", "alice@example.com"),
        **kwargs,
    ).save(msg_dir)
    if mtime is not None:
        os.utime(msg_dir, (mtime, mtime))
    return msg_dir
