"""On-disk record types for the archive."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .naming import format_timestamp, parse_timestamp, sanitize_name
from .properties import read_properties, write_properties

logger = logging.getLogger(__name__)

MESSAGES_DIR = "messages"
ATTACHMENTS_DIR = "attachments"
PROPERTIES_FILE = "message.properties"
CONTENT_TXT = "content.txt"
CONTENT_HTML = "content.html"
LAST_SYNC_FILE = ".lastSync"
PROPERTIES_COMMENT = "Email Message Properties"

# message.properties keys, in the order they are written
KEY_ID = "message.id"
KEY_ID_FOLDER = "message.id.folder"
KEY_SUBJECT = "subject"
KEY_FROM = "from"
KEY_REPLY_TO = "reply.to"
KEY_TO = "to"
KEY_CC = "cc"
KEY_SENT = "sent.date"
KEY_RECEIVED = "received.date"
KEY_SIZE = "size.bytes"


def split_addresses(value: str | None) -> list[str]:
    if not value:
        return []
    return [a.strip() for a in value.split(",") if a.strip()]


def _parse_date(props: dict[str, str], key: str, source: Path | None) -> datetime | None:
    value = props.get(key)
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        logger.warning("Unparseable %s %r in %s", key, value, source or "properties")
        return None


@dataclass
class MessageProperties:
    """Metadata persisted in a message directory's `message.properties`."""
    message_id: str | None = None
    folder_message_id: str | None = None
    subject: str | None = None
    from_addr: str | None = None
    reply_to: str | None = None
    to_addr: str | None = None
    cc_addr: str | None = None
    sent_date: datetime | None = None
    received_date: datetime | None = None
    size_bytes: int | None = None

    @property
    def to_list(self) -> list[str]:
        return split_addresses(self.to_addr)

    @property
    def cc_list(self) -> list[str]:
        return split_addresses(self.cc_addr)

    @property
    def reply_to_list(self) -> list[str]:
        return split_addresses(self.reply_to)

    def canonical_id(self, directory_name: str) -> str:
        """Identity used for duplicate detection.

        Stored sanitized id, else the sanitized raw id, else the directory name.
        """
        if self.folder_message_id:
            return self.folder_message_id
        if self.message_id:
            return sanitize_name(self.message_id)
        return directory_name

    def to_dict(self) -> dict[str, str]:
        values: dict[str, str] = {}
        if self.message_id:
            values[KEY_ID] = self.message_id
            values[KEY_ID_FOLDER] = self.folder_message_id or sanitize_name(self.message_id)
        values[KEY_SUBJECT] = self.subject if self.subject is not None else "(No Subject)"
        if self.from_addr:
            values[KEY_FROM] = self.from_addr
        if self.reply_to:
            values[KEY_REPLY_TO] = self.reply_to
        if self.to_addr is not None:
            values[KEY_TO] = self.to_addr
        if self.cc_addr is not None:
            values[KEY_CC] = self.cc_addr
        if self.sent_date:
            values[KEY_SENT] = format_timestamp(self.sent_date)
        if self.received_date:
            values[KEY_RECEIVED] = format_timestamp(self.received_date)
        if self.size_bytes is not None:
            values[KEY_SIZE] = str(self.size_bytes)
        return values

    @classmethod
    def from_dict(cls, props: dict[str, str], source: Path | None = None) -> "MessageProperties":
        size = props.get(KEY_SIZE)
        try:
            size_bytes = int(size) if size else None
        except ValueError:
            size_bytes = None
        return cls(
            message_id=props.get(KEY_ID) or None,
            folder_message_id=props.get(KEY_ID_FOLDER) or None,
            subject=props.get(KEY_SUBJECT),
            from_addr=props.get(KEY_FROM),
            reply_to=props.get(KEY_REPLY_TO),
            to_addr=props.get(KEY_TO),
            cc_addr=props.get(KEY_CC),
            sent_date=_parse_date(props, KEY_SENT, source),
            received_date=_parse_date(props, KEY_RECEIVED, source),
            size_bytes=size_bytes,
        )

    @classmethod
    def load(cls, message_dir: Path) -> "MessageProperties":
        """Load from ``<message_dir>/message.properties``.

        Raises OSError if the file is missing/unreadable, PropertiesError if malformed.
        """
        path = message_dir / PROPERTIES_FILE
        return cls.from_dict(read_properties(path), source=path)

    def save(self, message_dir: Path) -> None:
        write_properties(message_dir / PROPERTIES_FILE, self.to_dict(), PROPERTIES_COMMENT)
