"""Exception hierarchy for adsync.

Only conditions that end a sync run are raised. Malformed payloads and
unidentifiable ads are logged and counted where they occur.
"""


class AdSyncError(Exception):
    """Base class for all adsync errors."""


class PersistenceError(AdSyncError):
    """The ad store could not write a record or page metadata."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class NavigationError(AdSyncError):
    """The Ad Library page could not be loaded."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class SyncStateError(AdSyncError):
    """A sync run was used after it finished."""
