"""Email address validation and repair for addresses read back from the archive."""

import logging
import re
from email.utils import parseaddr

from .layouts.naming import java_abs, java_string_hash

logger = logging.getLogger(__name__)

_ATOM = r"[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+"
_LOCAL_RE = re.compile(rf"^{_ATOM}(?:\.{_ATOM})*$")
_DOMAIN_RE = re.compile(r"^[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*$")
_DOMAIN_JUNK = re.compile(r"[^A-Za-z0-9.\-]")

DEFAULT_DOMAIN = "example.com"


def _split(text: str) -> tuple[str, str]:
    """Split ``Name <addr>`` into its parts; a bare address has no name."""
    text = text.strip()
    if "<" in text and text.endswith(">"):
        name, addr = parseaddr(text)
        if addr:
            return name, addr
    return "", text


def _valid_addr(addr: str) -> bool:
    local, at, domain = addr.rpartition("@")
    if not at:
        return False
    return bool(_LOCAL_RE.match(local) and _DOMAIN_RE.match(domain))


def is_valid_email_address(text: str | None) -> bool:
    if not text:
        return False
    _, addr = _split(text)
    return _valid_addr(addr)


def fallback_address(original: str) -> str:
    """Deterministic placeholder that keeps a hint of the original domain."""
    domain = DEFAULT_DOMAIN
    _, addr = _split(original)
    local, at, rest = addr.rpartition("@")
    if at and local and rest:
        cleaned = _DOMAIN_JUNK.sub("", rest)
        dot = cleaned.find(".")
        if dot > 0:
            domain = cleaned[:dot] + ".com"
    digest = str(java_abs(java_string_hash(original)))[:8]
    return f"invalid-email-{digest}@{domain}"


def sanitize_email_address(text: str | None) -> str | None:
    """Return ``text`` unchanged if valid, else a repaired or placeholder address.

    Repair strips characters outside ``[A-Za-z0-9.-]`` from the domain. Empty
    input returns None.
    """
    if not text:
        return None
    if is_valid_email_address(text):
        return text

    name, addr = _split(text)
    local, at, domain = addr.rpartition("@")
    if not at or not local or not domain:
        logger.warning("Email address missing @ or malformed: %r", text)
        return fallback_address(text)

    clean_domain = _DOMAIN_JUNK.sub("", domain)
    if "." not in clean_domain:
        logger.warning("Sanitized domain lacks a dot: %r", clean_domain)
        return fallback_address(text)

    sanitized = f"{local}@{clean_domain}"
    if not _valid_addr(sanitized):
        logger.warning("Failed to sanitize email address %r", text)
        return fallback_address(text)
    logger.debug("Sanitized email %r -> %r", text, sanitized)
    return f"{name} <{sanitized}>" if name else sanitized
