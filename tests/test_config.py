"""Tests for YAML config loading and environment overrides."""

from pathlib import Path

import pytest
import yaml

from mailarchive.config import (
    ArchiveConfig,
    ImapSettings,
    get_config_path,
    load_config,
    save_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("MAILARCHIVE_CONFIG", "MAILARCHIVE_ROOT", "MAILARCHIVE_PASSWORD"):
        monkeypatch.delenv(var, raising=False)


class TestConfig:
    def test_defaults_without_file(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert config.archive_dir == "~/EmailArchive"
        assert config.root == Path("~/EmailArchive").expanduser()
        assert config.imap.port == 993
        assert config.imap.use_ssl
        assert config.imap.timeout == 60.0
        assert not config.imap.configured

    def test_round_trip(self, tmp_path):
        path = tmp_path / "config.yaml"
        config = ArchiveConfig(
            archive_dir=str(tmp_path / "mail"),
            imap=ImapSettings(host="mail.local", port=143, user="me", password="pw", use_ssl=False, timeout=5.0),
        )
        assert save_config(config, path) == path
        assert load_config(path) == config

    def test_minimal_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        save_config(ArchiveConfig(imap=ImapSettings(host="imap.example.com", user="me")), path)
        data = yaml.safe_load(path.read_text())
        assert data == {"archive_dir": "~/EmailArchive", "imap": {"host": "imap.example.com", "user": "me"}}

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        save_config(ArchiveConfig(imap=ImapSettings(host="h", user="u", password="from-file")), path)
        monkeypatch.setenv("MAILARCHIVE_ROOT", str(tmp_path / "elsewhere"))
        monkeypatch.setenv("MAILARCHIVE_PASSWORD", "from-env")
        config = load_config(path)
        assert config.root == tmp_path / "elsewhere"
        assert config.imap.password == "from-env"

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MAILARCHIVE_CONFIG", str(tmp_path / "alt.yaml"))
        assert get_config_path() == tmp_path / "alt.yaml"
        assert get_config_path(tmp_path / "explicit.yaml") == tmp_path / "explicit.yaml"

    def test_no_timeout(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("imap:\n  host: h\n  user: u\n  timeout: 0\n")
        assert load_config(path).imap.timeout is None

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == ArchiveConfig()
