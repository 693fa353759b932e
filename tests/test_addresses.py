"""Tests for email address validation and repair."""

from mailarchive.addresses import fallback_address, is_valid_email_address, sanitize_email_address


class TestAddresses:
    def test_valid(self):
        assert is_valid_email_address("alice@example.com")
        assert is_valid_email_address("Alice Smith <alice.smith+tag@mail.example.co.uk>")
        assert not is_valid_email_address("")
        assert not is_valid_email_address(None)
        assert not is_valid_email_address("no-at-sign")
        assert not is_valid_email_address("a@b@c")

    def test_valid_unchanged(self):
        assert sanitize_email_address("Alice <alice@example.com>") == "Alice <alice@example.com>"

    def test_empty(self):
        assert sanitize_email_address("") is None
        assert sanitize_email_address(None) is None

    def test_domain_repaired(self):
        assert sanitize_email_address("bob@exa mple.com") == "bob@example.com"
        assert sanitize_email_address("bob@example.com>") == "bob@example.com"

    def test_dotless_domain_replaced(self):
        fixed = sanitize_email_address("bob@local!host")
        assert fixed.startswith("invalid-email-")
        assert fixed.endswith("@example.com")

    def test_fallback_deterministic(self):
        assert fallback_address("garbage") == fallback_address("garbage")
        assert fallback_address("garbage") != fallback_address("other garbage")

    def test_fallback_domain(self):
        address = fallback_address("bad local@mail.example.org")
        assert address.endswith("@mail.com")
        assert sanitize_email_address("bad local@mail.example.org") == address
