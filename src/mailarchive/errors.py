"""Exception types raised by the archive library."""


class ArchiveError(Exception):
    """Base class for archive errors."""


class InvalidStateError(ArchiveError):
    """Operation not allowed in the object's current state (e.g. folder not open)."""


class StoreError(ArchiveError):
    """The local archive can't be opened or read."""


class FolderNotFoundError(StoreError):
    """No folder with the requested path exists in the archive."""


class PropertiesError(ArchiveError):
    """A `message.properties` file is missing or unreadable."""


class ArchiveLockedError(ArchiveError):
    """Another sync or cleanup run currently holds the archive."""


class RemoteError(ArchiveError):
    """A remote mailbox operation failed."""


class RemoteConnectionError(RemoteError):
    """Connecting or authenticating to the remote mailbox failed."""


class RemoteTimeoutError(RemoteError):
    """A remote call exceeded the configured timeout."""
