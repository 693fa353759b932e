"""Reader/writer for the Java `.properties` text format used by `message.properties`."""

import re
from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path

from ..errors import PropertiesError

_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_SPECIAL = {"\t": "\\t", "\n": "\\n", "\r": "\\r", "\f": "\\f"}
_UNICODE = re.compile(r"[0-9a-fA-F]{4}")


def _escape(s: str, is_key: bool) -> str:
    out: list[str] = []
    for i, ch in enumerate(s):
        if ch == " ":
            out.append("\\ " if i == 0 or is_key else " ")
        elif ch in _SPECIAL:
            out.append(_SPECIAL[ch])
        elif ch in "=:#!\\":
            out.append("\\" + ch)
        elif " " < ch <= "~":
            out.append(ch)
        else:
            units = ch.encode("utf-16-be")
            for j in range(0, len(units), 2):
                out.append(f"\\u{units[j]:02X}{units[j + 1]:02X}")
    return "".join(out)


def _unescape(s: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(s):
        ch = s[i]
        if ch != "\\" or i + 1 >= len(s):
            out.append(ch)
            i += 1
            continue
        nxt = s[i + 1]
        if nxt == "u":
            code = s[i + 2:i + 6]
            if not _UNICODE.fullmatch(code):
                raise PropertiesError(f"Malformed \\uxxxx escape: {s[i:i + 6]!r}")
            out.append(chr(int(code, 16)))
            i += 6
        else:
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
    # Re-join surrogate pairs written as two \uXXXX escapes
    return "".join(out).encode("utf-16", "surrogatepass").decode("utf-16", "surrogatepass")


def _logical_lines(text: str) -> Iterable[str]:
    pending: str | None = None
    for natural in text.splitlines():
        line = natural.lstrip(" \t\f")
        if pending is None:
            if not line or line[0] in "#!":
                continue
        else:
            line = pending + line
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending = line[:-1]
            continue
        pending = None
        yield line
    if pending is not None:
        yield pending


def _split_entry(line: str) -> tuple[str, str]:
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == "\\":
            i += 2
            continue
        if ch in "=: \t\f":
            break
        i += 1
    key = line[:i]
    rest = line[i:].lstrip(" \t\f")
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip(" \t\f")
    return _unescape(key), _unescape(rest)


def parse_properties(text: str) -> dict[str, str]:
    """Parse properties text into an ordered dict. Later duplicates win."""
    return dict(_split_entry(line) for line in _logical_lines(text))


def read_properties(path: Path) -> dict[str, str]:
    """Read a properties file.

    Files written by this package are ASCII; files written by other tools may be
    UTF-8 or Latin-1, which is tried second.
    """
    raw = path.read_bytes()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        text = raw.decode("latin-1")
    return parse_properties(text)


def format_properties(values: Mapping[str, str], comment: str | None = None) -> str:
    lines = []
    if comment:
        lines.append(f"#{comment}")
    lines.append("#" + datetime.now().astimezone().strftime("%a %b %d %H:%M:%S %Z %Y"))
    for key, value in values.items():
        lines.append(f"{_escape(key, True)}={_escape(value, False)}")
    return "\n".join(lines) + "\n"


def write_properties(path: Path, values: Mapping[str, str], comment: str | None = None) -> None:
    """Write ``values`` in insertion order as an ASCII properties file."""
    path.write_text(format_properties(values, comment), encoding="ascii")
