"""Exception types.

Learn: Only a few of these ever escape the package. Channel and snapshot
failures are recovered at the boundary where they happen (a connection
status flip, a per-slice default); the types exist so that boundary can
catch exactly what it expects.
"""


class LiveSyncError(Exception):
    """Base class for every error raised by livesync."""


class InvalidPredicateError(LiveSyncError, ValueError):
    """A filter string or predicate could not be parsed."""


class ChannelOpenError(LiveSyncError):
    """The transport could not open a channel for (table, predicate)."""

    def __init__(self, table: str, reason: str = ""):
        self.table = table
        self.reason = reason
        super().__init__(f"Cannot open channel for {table!r}: {reason}".rstrip(": "))


class SnapshotError(LiveSyncError):
    """A snapshot fetch failed (network, status code or body)."""

    def __init__(self, path: str, reason: str, status_code: int | None = None):
        self.path = path
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Snapshot {path} failed: {reason}")
