"""Naming rules shared by the archive writer and reader.

Everything here is pure: the sync engine, the read-only store and the
maintenance job must derive identical paths from identical inputs.
"""

import re
from datetime import datetime
from pathlib import PurePosixPath

UNNAMED = "unnamed"
MAX_NAME_LEN = 200
# Longest suffix kept intact when a name is truncated (".properties" fits)
MAX_EXTENSION_LEN = 16

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
SYNTHETIC_ID_DATE_FORMAT = "%Y%m%d-%H%M%S"
NO_SUBJECT = "No Subject"

# Directory names with a fixed meaning inside a folder directory
RESERVED_NAMES = frozenset({"messages", "attachments"})

_ILLEGAL = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f]')
_DOT_RUNS = re.compile(r"\.{2,}")
_UNDERSCORE_RUNS = re.compile(r"_{2,}")
_EDGES = re.compile(r"^[\s.]+|[\s.]+$")


def _normalize(s: str) -> str:
    s = _DOT_RUNS.sub(".", s)
    s = _UNDERSCORE_RUNS.sub("_", s)
    return _EDGES.sub("", s)


def _truncate(s: str, max_len: int) -> str:
    dot = s.rfind(".")
    if dot > 0 and len(s) - dot <= MAX_EXTENSION_LEN:
        ext = s[dot:]
        return s[:max_len - len(ext)] + ext
    return s[:max_len]


def sanitize_name(raw: str | None, max_len: int = MAX_NAME_LEN) -> str:
    """Turn arbitrary header text into a single safe path segment.

    - Replace path separators, ``:*?"<>|`` and control characters with ``_``
    - Collapse runs of dots and runs of underscores
    - Strip leading/trailing whitespace and dots
    - Truncate to ``max_len`` (keeping a short extension)
    - Fall back to ``"unnamed"``

    The result is never empty and ``sanitize_name(sanitize_name(x)) == sanitize_name(x)``.
    """
    if not raw:
        return UNNAMED
    s = _normalize(_ILLEGAL.sub("_", raw))
    if len(s) > max_len:
        s = _normalize(_truncate(s, max_len))
    return s or UNNAMED


def sanitize_folder_segment(raw: str | None) -> str:
    """Sanitize one level of a remote folder name.

    Segments that would collide with the archive's own `messages/` or
    `attachments/` directories get a trailing underscore.
    """
    s = sanitize_name(raw)
    if s.lower() in RESERVED_NAMES:
        s += "_"
    return s


def sanitize_folder_path(full_name: str, separator: str | None = "/") -> PurePosixPath:
    """Map a remote folder's full name to a relative archive path.

    Each hierarchy level becomes one directory, e.g. ``INBOX/Receipts/2024``
    -> ``INBOX/Receipts/2024``, ``Work:Clients`` (separator ``:``) ->
    ``Work/Clients``.
    """
    if separator:
        parts = [p for p in full_name.split(separator) if p]
    else:
        parts = [full_name]
    if not parts:
        parts = [full_name]
    return PurePosixPath(*(sanitize_folder_segment(p) for p in parts))


def java_string_hash(s: str) -> int:
    """`String.hashCode()` as computed by the JVM (signed 32-bit, over UTF-16 units).

    Existing archives name id-less messages with this hash, so it has to match exactly.
    """
    data = s.encode("utf-16-be")
    h = 0
    for i in range(0, len(data), 2):
        h = (31 * h + ((data[i] << 8) | data[i + 1])) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def java_abs(n: int) -> int:
    # Math.abs(Integer.MIN_VALUE) overflows and stays negative
    return n if n == -0x80000000 else abs(n)


def to_local(dt: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def format_timestamp(dt: datetime) -> str:
    """Format as ``yyyy-MM-dd HH:mm:ss`` local time."""
    return to_local(dt).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> datetime:
    """Parse ``yyyy-MM-dd HH:mm:ss``. Raises ValueError on malformed input."""
    return datetime.strptime(text.strip(), TIMESTAMP_FORMAT)


def synthesize_message_id(
    folder: str,
    sent_date: datetime | None,
    subject: str | None,
    now: datetime | None = None,
) -> str:
    """Build the fallback id for a message without a Message-ID header.

    ``<folder>-<yyyyMMdd-HHmmss>-<abs(subject hash)>``. Two messages in the same
    folder sent within the same second whose subjects hash alike get the same
    id; the second one is then treated as already archived.
    """
    if subject is None:
        subject = NO_SUBJECT
    when = to_local(sent_date) or now or datetime.now()
    return f"{folder}-{when.strftime(SYNTHETIC_ID_DATE_FORMAT)}-{java_abs(java_string_hash(subject))}"


def derive_message_id(
    header_id: str | None,
    folder: str,
    sent_date: datetime | None,
    subject: str | None,
    now: datetime | None = None,
) -> str:
    """Message-ID header if present, else a synthesized id."""
    if header_id and header_id.strip():
        return header_id.strip()
    return synthesize_message_id(folder, sent_date, subject, now=now)
