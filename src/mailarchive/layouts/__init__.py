"""Archive layout: naming, on-disk records and tree rules."""

from .base import (
    ATTACHMENTS_DIR,
    CONTENT_HTML,
    CONTENT_TXT,
    LAST_SYNC_FILE,
    MESSAGES_DIR,
    PROPERTIES_FILE,
    MessageProperties,
)
from .naming import (
    derive_message_id,
    format_timestamp,
    java_string_hash,
    parse_timestamp,
    sanitize_folder_path,
    sanitize_name,
    synthesize_message_id,
    to_local,
)
from .properties import parse_properties, read_properties, write_properties
from .tree import (
    ArchiveTree,
    count_message_dirs,
    is_message_dir,
    iter_message_dirs,
    migrate_legacy_layout,
)

__all__ = [
    "ATTACHMENTS_DIR",
    "CONTENT_HTML",
    "CONTENT_TXT",
    "LAST_SYNC_FILE",
    "MESSAGES_DIR",
    "PROPERTIES_FILE",
    "ArchiveTree",
    "MessageProperties",
    "count_message_dirs",
    "derive_message_id",
    "format_timestamp",
    "is_message_dir",
    "iter_message_dirs",
    "java_string_hash",
    "migrate_legacy_layout",
    "parse_properties",
    "parse_timestamp",
    "read_properties",
    "sanitize_folder_path",
    "sanitize_name",
    "synthesize_message_id",
    "to_local",
    "write_properties",
]
