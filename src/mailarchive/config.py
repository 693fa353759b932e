"""Configuration via a YAML file."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .imap import DEFAULT_PORT

CONFIG_ENV = "MAILARCHIVE_CONFIG"
ROOT_ENV = "MAILARCHIVE_ROOT"
PASSWORD_ENV = "MAILARCHIVE_PASSWORD"
DEFAULT_CONFIG_PATH = Path("~/.config/mailarchive/config.yaml")
DEFAULT_ARCHIVE_DIR = "~/EmailArchive"
DEFAULT_TIMEOUT = 60.0


@dataclass
class ImapSettings:
    """Connection settings for the remote mailbox."""
    host: str = ""
    port: int = DEFAULT_PORT
    user: str = ""
    password: str = ""
    use_ssl: bool = True
    timeout: float | None = DEFAULT_TIMEOUT

    @property
    def configured(self) -> bool:
        return bool(self.host and self.user)


@dataclass
class ArchiveConfig:
    """Top-level mailarchive configuration."""
    archive_dir: str = DEFAULT_ARCHIVE_DIR
    imap: ImapSettings = field(default_factory=ImapSettings)

    @property
    def root(self) -> Path:
        return Path(self.archive_dir).expanduser()


def get_config_path(path: Path | None = None) -> Path:
    """Explicit path, else ``$MAILARCHIVE_CONFIG``, else ``~/.config/mailarchive/config.yaml``."""
    if path:
        return Path(path).expanduser()
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def load_config(path: Path | None = None) -> ArchiveConfig:
    """Load config from YAML, then apply environment overrides."""
    config_path = get_config_path(path)
    data = {}
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    imap_data = data.get("imap") or {}
    timeout = imap_data.get("timeout", DEFAULT_TIMEOUT)
    config = ArchiveConfig(
        archive_dir=str(data.get("archive_dir", DEFAULT_ARCHIVE_DIR)),
        imap=ImapSettings(
            host=imap_data.get("host", ""),
            port=int(imap_data.get("port", DEFAULT_PORT)),
            user=imap_data.get("user", ""),
            password=str(imap_data.get("password", "") or ""),
            use_ssl=bool(imap_data.get("use_ssl", True)),
            timeout=float(timeout) if timeout else None,
        ),
    )

    if os.environ.get(ROOT_ENV):
        config.archive_dir = os.environ[ROOT_ENV]
    if os.environ.get(PASSWORD_ENV):
        config.imap.password = os.environ[PASSWORD_ENV]
    return config


def save_config(config: ArchiveConfig, path: Path | None = None) -> Path:
    """Save config to YAML. Returns the path written."""
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    imap = config.imap
    imap_data = {
        "host": imap.host,
        "user": imap.user,
    }
    if imap.password:
        imap_data["password"] = imap.password
    if imap.port != DEFAULT_PORT:
        imap_data["port"] = imap.port
    if not imap.use_ssl:
        imap_data["use_ssl"] = False
    if imap.timeout != DEFAULT_TIMEOUT:
        imap_data["timeout"] = imap.timeout

    data = {
        "archive_dir": config.archive_dir,
        "imap": imap_data,
    }
    with open(config_path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
    return config_path
