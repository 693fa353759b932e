"""IMAP implementation of the remote mailbox boundary."""

import base64
import email
import imaplib
import logging
import re
from datetime import datetime, timedelta
from email.message import Message
from email.policy import default as email_policy
from email.utils import getaddresses, parsedate_to_datetime
from typing import Callable

from .errors import RemoteConnectionError, RemoteError, RemoteTimeoutError
from .remote import RemoteFolderInfo

logger = logging.getLogger(__name__)

DEFAULT_PORT = 993
HEADER_FETCH = "(INTERNALDATE RFC822.SIZE BODY.PEEK[HEADER])"
BODY_FETCH = "(BODY.PEEK[])"

_LIST_RE = re.compile(r'\(([^)]*)\)\s+(?:"((?:[^"\\]|\\.)*)"|NIL)\s+(.*)$')
_SIZE_RE = re.compile(rb"RFC822\.SIZE (\d+)")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def decode_imap_utf7(s: str) -> str:
    """Decode an IMAP modified UTF-7 mailbox name (RFC 3501 §5.1.3)."""
    out: list[str] = []
    i = 0
    while i < len(s):
        ch = s[i]
        if ch != "&":
            out.append(ch)
            i += 1
            continue
        end = s.find("-", i)
        if end == -1:
            out.append(s[i:])
            break
        if end == i + 1:
            out.append("&")
        else:
            chunk = s[i + 1:end].replace(",", "/")
            chunk += "=" * (-len(chunk) % 4)
            try:
                out.append(base64.b64decode(chunk).decode("utf-16-be"))
            except ValueError:
                out.append(s[i:end + 1])
        i = end + 1
    return "".join(out)


def encode_imap_utf7(s: str) -> str:
    """Encode a mailbox name as IMAP modified UTF-7."""
    out: list[str] = []
    pending: list[str] = []

    def flush():
        if pending:
            b64 = base64.b64encode("".join(pending).encode("utf-16-be")).decode("ascii")
            out.append("&" + b64.rstrip("=").replace("/", ",") + "-")
            pending.clear()

    for ch in s:
        if " " <= ch <= "~":
            flush()
            out.append("&-" if ch == "&" else ch)
        else:
            pending.append(ch)
    flush()
    return "".join(out)


def _quote(name: str) -> str:
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _unquote(name: str) -> str:
    name = name.strip()
    if len(name) >= 2 and name[0] == '"' and name[-1] == '"':
        return re.sub(r"\\(.)", r"\1", name[1:-1])
    return name


def parse_list_response(item) -> RemoteFolderInfo | None:
    """Parse one LIST response line, e.g. ``(\\HasNoChildren) "/" "INBOX"``."""
    if item is None:
        return None
    if isinstance(item, tuple):
        # Literal mailbox name: (b'(\\HasNoChildren) "/" {11}', b'Some "name"')
        line = item[0].decode("utf-8", "replace")
        literal = item[1].decode("utf-8", "replace")
    else:
        line = item.decode("utf-8", "replace") if isinstance(item, bytes) else item
        literal = None
    match = _LIST_RE.match(line)
    if not match:
        return None
    flags, delimiter, name = match.groups()
    name = literal if literal is not None else _unquote(name)
    if delimiter is not None:
        delimiter = re.sub(r"\\(.)", r"\1", delimiter)
    selectable = "\\noselect" not in flags.lower() and "\\nonexistent" not in flags.lower()
    return RemoteFolderInfo(name=decode_imap_utf7(name), separator=delimiter, selectable=selectable)


def _format_addresses(values: list[str]) -> list[str]:
    result = []
    for name, addr in getaddresses(values):
        if not addr and not name:
            continue
        if name and addr:
            if any(c in name for c in ',;<>"'):
                name = '"' + name.replace('"', "'") + '"'
            result.append(f"{name} <{addr}>")
        else:
            result.append(addr or name)
    return result


class ImapMessage:
    """One message of an open IMAP folder, headers and body fetched on demand."""

    def __init__(self, folder: "ImapFolder", uid: bytes):
        self._folder = folder
        self.uid = uid
        self._loaded = False
        self._message_id: str | None = None
        self._subject: str | None = None
        self._from: list[str] = []
        self._reply_to: list[str] = []
        self._to: list[str] = []
        self._cc: list[str] = []
        self._sent_date: datetime | None = None
        self._received_date: datetime | None = None
        self._size = 0

    def _load(self) -> None:
        if self._loaded:
            return
        data = self._folder.mailbox.command("FETCH headers", self._folder.mailbox.conn.uid, "FETCH", self.uid, HEADER_FETCH)
        if not data or not isinstance(data[0], tuple):
            raise RemoteError(f"No headers returned for UID {self.uid!r}")
        meta, header_bytes = data[0][0], data[0][1]

        internal = imaplib.Internaldate2tuple(meta)
        if internal:
            self._received_date = datetime(*internal[:6])
        size = _SIZE_RE.search(meta)
        self._size = int(size.group(1)) if size else len(header_bytes)

        msg = email.message_from_bytes(header_bytes, policy=email_policy)
        message_id = msg.get("Message-ID")
        self._message_id = str(message_id).strip() if message_id else None
        subject = msg.get("Subject")
        self._subject = str(subject) if subject is not None else None
        self._from = _format_addresses([str(v) for v in msg.get_all("From", [])])
        self._reply_to = _format_addresses([str(v) for v in msg.get_all("Reply-To", [])])
        self._to = _format_addresses([str(v) for v in msg.get_all("To", [])])
        self._cc = _format_addresses([str(v) for v in msg.get_all("Cc", [])])
        try:
            date = msg["Date"]
            if date:
                self._sent_date = parsedate_to_datetime(str(date))
        except (TypeError, ValueError):
            logger.debug("Unparseable Date header (UID %r)", self.uid)
        self._loaded = True

    @property
    def message_id(self) -> str | None:
        self._load()
        return self._message_id

    @property
    def subject(self) -> str | None:
        self._load()
        return self._subject

    @property
    def from_(self) -> list[str]:
        self._load()
        return self._from

    @property
    def reply_to(self) -> list[str]:
        self._load()
        return self._reply_to

    @property
    def to(self) -> list[str]:
        self._load()
        return self._to

    @property
    def cc(self) -> list[str]:
        self._load()
        return self._cc

    @property
    def sent_date(self) -> datetime | None:
        self._load()
        return self._sent_date

    @property
    def received_date(self) -> datetime | None:
        self._load()
        return self._received_date

    @property
    def size(self) -> int:
        self._load()
        return self._size

    def get_content(self) -> Message:
        data = self._folder.mailbox.command("FETCH body", self._folder.mailbox.conn.uid, "FETCH", self.uid, BODY_FETCH)
        if not data or not isinstance(data[0], tuple):
            raise RemoteError(f"No body returned for UID {self.uid!r}")
        return email.message_from_bytes(data[0][1], policy=email_policy)


class ImapFolder:
    """A folder selected read-only on the server."""

    def __init__(self, mailbox: "ImapMailbox", name: str, count: int):
        self.mailbox = mailbox
        self.name = name
        self._count = count
        self._open = True

    def message_count(self) -> int:
        return self._count

    def _search(self, criteria: str) -> list[ImapMessage]:
        data = self.mailbox.command(f"SEARCH {self.name}", self.mailbox.conn.uid, "SEARCH", None, criteria)
        uids = data[0].split() if data and data[0] else []
        return [ImapMessage(self, uid) for uid in uids]

    def messages(self) -> list[ImapMessage]:
        return self._search("ALL")

    def search_received_since(self, since: datetime) -> list[ImapMessage]:
        # SINCE compares calendar days in the server's timezone, so ask for one
        # day earlier and refine by INTERNALDATE client-side
        day = since - timedelta(days=1)
        criteria = f"SINCE {day.day:02d}-{_MONTHS[day.month - 1]}-{day.year}"
        return [
            m for m in self._search(criteria)
            if m.received_date is None or m.received_date >= since
        ]

    def close(self) -> None:
        if not self._open:
            return
        self._open = False
        try:
            self.mailbox.conn.close()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug("Error closing folder %s: %s", self.name, e)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class ImapMailbox:
    """Authenticated IMAP session."""

    def __init__(self, host: str, port: int = DEFAULT_PORT, use_ssl: bool = True, timeout: float | None = None):
        self.host = host
        self.port = port
        self.use_ssl = use_ssl
        self.timeout = timeout
        self._conn: imaplib.IMAP4 | None = None

    def connect(self, user: str, password: str) -> None:
        try:
            if self.use_ssl:
                conn = imaplib.IMAP4_SSL(self.host, self.port, timeout=self.timeout)
            else:
                conn = imaplib.IMAP4(self.host, self.port, timeout=self.timeout)
            conn.login(user, password)
        except (imaplib.IMAP4.error, OSError) as e:
            raise RemoteConnectionError(f"Could not connect to {self.host}:{self.port}: {e}") from e
        self._conn = conn
        logger.debug("Connected to %s:%s as %s", self.host, self.port, user)

    def disconnect(self) -> None:
        if self._conn:
            try:
                self._conn.logout()
            except (imaplib.IMAP4.error, OSError) as e:
                logger.debug("Error during logout: %s", e)
            self._conn = None

    close = disconnect

    @property
    def conn(self) -> imaplib.IMAP4:
        if not self._conn:
            raise RemoteConnectionError("Not connected")
        return self._conn

    def command(self, what: str, func: Callable, *args):
        """Run an imaplib call, returning its data or raising a RemoteError."""
        try:
            typ, data = func(*args)
        except TimeoutError as e:
            raise RemoteTimeoutError(f"{what} timed out after {self.timeout}s") from e
        except (imaplib.IMAP4.error, OSError) as e:
            raise RemoteError(f"{what} failed: {e}") from e
        if typ != "OK":
            raise RemoteError(f"{what} failed: {data}")
        return data

    def list_folders(self) -> list[RemoteFolderInfo]:
        data = self.command("LIST", self.conn.list)
        folders = []
        for item in data:
            info = parse_list_response(item)
            if info:
                folders.append(info)
        return folders

    def open_folder(self, name: str) -> ImapFolder:
        data = self.command(f"SELECT {name}", self.conn.select, _quote(encode_imap_utf7(name)), True)
        try:
            count = int(data[0])
        except (TypeError, ValueError, IndexError):
            count = 0
        return ImapFolder(self, name, count)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.disconnect()


def imap_factory(settings) -> Callable[[], ImapMailbox]:
    """Build a `MailboxFactory` from `ImapSettings`."""
    def connect() -> ImapMailbox:
        mailbox = ImapMailbox(settings.host, settings.port, settings.use_ssl, settings.timeout)
        mailbox.connect(settings.user, settings.password)
        return mailbox
    return connect
