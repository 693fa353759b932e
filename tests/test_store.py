"""Tests for the read-only Store/Folder/Message view of an archive."""

import logging
from datetime import datetime

import pytest

from mailarchive.errors import FolderNotFoundError, InvalidStateError, StoreError
from mailarchive.store import LocalStore, OpenMode, open_store


@pytest.fixture
def inbox(archive, make_message):
    folder_dir = archive / "INBOX"
    make_message(folder_dir, "<2@x>", subject="Second", received=datetime(2024, 3, 2))
    make_message(folder_dir, "<1@x>", subject="First", received=datetime(2024, 3, 1))
    make_message(folder_dir, "<3@x>", subject="Undated", received=None)
    return folder_dir


class TestStore:
    def test_missing_root(self, tmp_path):
        with pytest.raises(StoreError):
            open_store(tmp_path / "nope")

    def test_folder_not_found(self, archive):
        with open_store(archive) as store:
            with pytest.raises(FolderNotFoundError):
                store.get_folder("INBOX")

    def test_folders_cached(self, archive, inbox):
        with open_store(archive) as store:
            assert store.get_folder("INBOX") is store.get_folder("/INBOX/")
            assert store.default_folder.full_name == ""

    def test_list_skips_message_dirs(self, archive, inbox, make_message):
        (archive / "INBOX" / "Receipts" / "messages").mkdir(parents=True)
        (archive / ".hidden").mkdir()
        make_message(archive / "Old", "<legacy@x>", legacy=True)
        with open_store(archive) as store:
            assert [f.full_name for f in store.default_folder.list()] == ["INBOX", "Old"]
            assert [f.full_name for f in store.get_folder("INBOX").list()] == ["INBOX/Receipts"]
            assert [f.full_name for f in store.iter_folders()] == ["INBOX", "INBOX/Receipts", "Old"]

    def test_parent(self, archive, inbox):
        (archive / "INBOX" / "Receipts").mkdir()
        with open_store(archive) as store:
            receipts = store.get_folder("INBOX/Receipts")
            assert receipts.name == "Receipts"
            assert receipts.parent is store.get_folder("INBOX")
            assert store.default_folder.parent is None

    def test_folder_names_kept_as_on_disk(self, archive, make_message):
        make_message(archive / "Messages", "<1@x>")
        make_message(archive / "a..b" / "Sub", "<2@x>")
        with open_store(archive) as store:
            names = [f.full_name for f in store.iter_folders()]
            assert names == ["Messages", "a..b", "a..b/Sub"]
            assert [f.full_name for f in store.default_folder.list()] == ["Messages", "a..b"]
            messages = store.get_folder("Messages")
            assert messages.directory == archive / "Messages"
            assert messages is next(store.iter_folders())
            assert store.get_folder("a..b/Sub").parent is store.get_folder("a..b")
            with messages.open() as folder:
                assert folder.get_message(1).message_id == "<1@x>"

    def test_remote_folder_name_lookup(self, archive, make_message):
        make_message(archive / "Work_Clients", "<1@x>")
        with open_store(archive) as store:
            folder = store.get_folder("Work:Clients")
            assert folder.full_name == "Work_Clients"
            assert folder is store.get_folder("Work_Clients")

    def test_literal_lookup_skips_message_dirs(self, archive, inbox):
        with pytest.raises(FolderNotFoundError):
            with open_store(archive) as store:
                store.get_folder("INBOX/messages")

    def test_closed_store(self, archive, inbox):
        store = LocalStore(archive)
        store.close()
        with pytest.raises(InvalidStateError):
            store.get_folder("INBOX")

    def test_close_closes_folders(self, archive, inbox):
        store = open_store(archive)
        folder = store.get_folder("INBOX").open()
        store.close()
        assert not folder.is_open


class TestFolder:
    def test_sorted_by_received_nulls_last(self, archive, inbox):
        with open_store(archive) as store:
            with store.get_folder("INBOX").open() as folder:
                messages = folder.get_messages()
                assert [m.subject for m in messages] == ["First", "Second", "Undated"]
                assert [m.number for m in messages] == [1, 2, 3]
                assert folder.get_message(2).subject == "Second"

    def test_message_number_out_of_range(self, archive, inbox):
        with open_store(archive) as store:
            with store.get_folder("INBOX").open() as folder:
                with pytest.raises(IndexError):
                    folder.get_message(0)
                with pytest.raises(IndexError):
                    folder.get_message(4)

    def test_requires_open(self, archive, inbox):
        with open_store(archive) as store:
            folder = store.get_folder("INBOX")
            with pytest.raises(InvalidStateError):
                folder.get_messages()
            with pytest.raises(InvalidStateError):
                folder.close()
            folder.open(OpenMode.READ_ONLY)
            with pytest.raises(InvalidStateError):
                folder.open()
            assert folder.mode is OpenMode.READ_ONLY

    def test_count_without_opening(self, archive, inbox):
        (inbox / "messages" / "partial").mkdir()
        with open_store(archive) as store:
            folder = store.get_folder("INBOX")
            assert folder.get_message_count() == 3
            folder.open()
            assert folder.get_message_count() == 3

    def test_skips_unreadable(self, archive, inbox, caplog):
        (inbox / "messages" / "partial").mkdir()
        corrupt = inbox / "messages" / "corrupt"
        corrupt.mkdir()
        (corrupt / "message.properties").write_text("subject=\\uZZZZ\n")
        with caplog.at_level(logging.WARNING):
            with open_store(archive) as store:
                with store.get_folder("INBOX").open() as folder:
                    assert folder.get_message_count() == 3
        assert "corrupt" in caplog.text
        assert "partial" in caplog.text

    def test_search(self, archive, inbox):
        with open_store(archive) as store:
            with store.get_folder("INBOX").open() as folder:
                found = folder.search(lambda m: m.received_date and m.received_date.day == 2)
                assert [m.message_id for m in found] == ["<2@x>"]
                assert len(folder.search()) == 3
                assert len(list(folder)) == 3


class TestMigration:
    def test_legacy_folder_migrated_on_open(self, archive, make_message):
        old = archive / "Old"
        make_message(old, "<1@x>", legacy=True, received=datetime(2024, 1, 1))
        make_message(old, "<2@x>", legacy=True, received=datetime(2024, 1, 2))
        with open_store(archive) as store:
            folder = store.get_folder("Old")
            assert folder.get_message_count() == 2
            with folder.open():
                assert [m.message_id for m in folder.get_messages()] == ["<1@x>", "<2@x>"]
        assert sorted(p.name for p in (old / "messages").iterdir()) == ["_1@x_", "_2@x_"]
        assert sorted(p.name for p in old.iterdir()) == ["messages"]

    def test_second_open_is_noop(self, archive, make_message):
        old = archive / "Old"
        make_message(old, "<1@x>", legacy=True)
        with open_store(archive) as store:
            folder = store.get_folder("Old")
            with folder.open():
                pass
            before = sorted(p.relative_to(old) for p in old.rglob("*"))
            with folder.open():
                assert folder.get_message_count() == 1
            assert sorted(p.relative_to(old) for p in old.rglob("*")) == before

    def test_clash_left_in_place(self, archive, make_message, caplog):
        old = archive / "Old"
        make_message(old, "<1@x>", subject="Current")
        make_message(old, "<1@x>", subject="Legacy", legacy=True)
        with open_store(archive) as store:
            with store.get_folder("Old").open() as folder:
                assert sorted(m.subject for m in folder.get_messages()) == ["Current", "Legacy"]
        assert (old / "_1@x_" / "message.properties").is_file()
        assert "Not migrating" in caplog.text


class TestMessage:
    def test_lazy_content(self, archive, inbox):
        with open_store(archive) as store:
            with store.get_folder("INBOX").open() as folder:
                msg = folder.get_message(1)
                assert msg._content is None
                assert msg.content == "Hi there\n"
                assert msg._content == "Hi there\n"
                assert msg.html is None
                assert msg.attachments == []

    def test_content_fallback(self, archive, make_message):
        msg_dir = make_message(archive / "INBOX", "<1@x>", content=None)
        (msg_dir / "body.txt").write_text("from another file")
        (msg_dir / "attachments").mkdir()
        (msg_dir / "attachments" / "b.pdf").write_bytes(b"b")
        (msg_dir / "attachments" / "a.pdf").write_bytes(b"a")
        with open_store(archive) as store:
            with store.get_folder("INBOX").open() as folder:
                msg = folder.get_message(1)
                assert msg.content == "from another file"
                assert [p.name for p in msg.attachments] == ["a.pdf", "b.pdf"]

    def test_no_content(self, archive, make_message):
        make_message(archive / "INBOX", "<1@x>", content=None)
        with open_store(archive) as store:
            with store.get_folder("INBOX").open() as folder:
                msg = folder.get_message(1)
                assert msg.content == ""
                assert msg.size == 0

    def test_addresses(self, archive, make_message):
        make_message(
            archive / "INBOX", "<1@x>",
            from_addr="alice@exam!ple.com",
            to_addr="bob@example.com, not-an-address",
            cc_addr="carol@example.com",
            size_bytes=99,
        )
        with open_store(archive) as store:
            with store.get_folder("INBOX").open() as folder:
                msg = folder.get_message(1)
                assert msg.get_from() == ["alice@example.com"]
                to = msg.get_recipients("to")
                assert to[0] == "bob@example.com"
                assert to[1].startswith("invalid-email-")
                assert msg.get_recipients("cc") == ["carol@example.com"]
                assert msg.get_reply_to() == []
                assert msg.get_header("Subject") == "Hello"
                assert msg.size == 99
                with pytest.raises(ValueError):
                    msg.get_recipients("bcc")
