"""Decompose a MIME message into the files of a message directory."""

import logging
from email.message import Message
from pathlib import Path

from .layouts import ATTACHMENTS_DIR, CONTENT_HTML, CONTENT_TXT, sanitize_name

logger = logging.getLogger(__name__)

HTML_NOTE = f"\n[HTML CONTENT AVAILABLE IN {CONTENT_HTML}]\n"


def attachment_note(name: str) -> str:
    return f"\n[ATTACHMENT: {name}]\n"


def decode_text(part: Message) -> str:
    """Decode a leaf part's payload using its declared charset."""
    payload = part.get_payload(decode=True)
    if payload is None:
        return ""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        logger.debug("Unknown charset %r, decoding as UTF-8", charset)
        return payload.decode("utf-8", errors="replace")


def payload_bytes(part: Message) -> bytes:
    """Transfer-decoded bytes of a part; embedded messages are re-serialized."""
    if part.is_multipart():
        return b"".join(p.as_bytes() for p in part.get_payload())
    return part.get_payload(decode=True) or b""


def is_attachment(part: Message) -> bool:
    disposition = part.get_content_disposition()
    if disposition == "attachment" or part.get_filename():
        return True
    return disposition == "inline" and part.get_content_maintype() != "text"


class MessageContent:
    """Accumulates text, HTML and attachments while walking a MIME tree."""

    def __init__(self, msg_dir: Path):
        self.msg_dir = msg_dir
        self.text: list[str] = []
        self.html: list[str] = []
        self.attachments: list[str] = []

    def _unique_name(self, name: str) -> str:
        if name not in self.attachments:
            return name
        stem, dot, ext = name.rpartition(".")
        if not dot or not stem:
            stem, ext = name, ""
        n = 1
        while True:
            candidate = f"{stem}-{n}.{ext}" if ext else f"{stem}-{n}"
            if candidate not in self.attachments:
                return candidate
            n += 1

    def add_attachment(self, part: Message, position: int) -> str:
        filename = part.get_filename()
        if filename:
            name = sanitize_name(filename)
        else:
            name = f"attachment-{position}"
            if part.get_content_maintype() == "message":
                name += ".eml"
        name = self._unique_name(name)
        attachments_dir = self.msg_dir / ATTACHMENTS_DIR
        attachments_dir.mkdir(exist_ok=True)
        (attachments_dir / name).write_bytes(payload_bytes(part))
        self.attachments.append(name)
        self.text.append(attachment_note(name))
        return name

    def add_multipart(self, multipart: Message) -> None:
        for i, part in enumerate(multipart.get_payload(), start=1):
            if is_attachment(part):
                self.add_attachment(part, i)
            elif part.get_content_maintype() == "multipart" and part.is_multipart():
                self.add_multipart(part)
            elif part.get_content_type() == "text/html":
                self.html.append(decode_text(part))
                self.text.append(HTML_NOTE)
            elif part.get_content_maintype() == "text":
                self.text.append(decode_text(part))
                self.text.append("\n")
            else:
                self.add_attachment(part, i)

    def add_single(self, message: Message) -> None:
        body = decode_text(message)
        self.text.append(body)
        if message.get_content_type() == "text/html":
            self.html.append(body)

    def write(self) -> None:
        (self.msg_dir / CONTENT_TXT).write_text("".join(self.text), encoding="utf-8")
        if self.html:
            (self.msg_dir / CONTENT_HTML).write_text("".join(self.html), encoding="utf-8")


def save_message_content(msg_dir: Path, message: Message) -> MessageContent:
    """Write `content.txt`, optional `content.html` and `attachments/` into ``msg_dir``.

    Attachments are written byte-for-byte as decoded from their transfer
    encoding and noted in `content.txt` as ``[ATTACHMENT: name]``.
    """
    content = MessageContent(msg_dir)
    if message.get_content_maintype() == "multipart" and message.is_multipart():
        content.add_multipart(message)
    elif message.is_multipart() or is_attachment(message):
        # Top-level message/rfc822, or a lone attachment as scanners send
        content.add_attachment(message, 1)
    else:
        content.add_single(message)
    content.write()
    return content
