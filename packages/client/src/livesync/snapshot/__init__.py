"""Point-in-time snapshot fetches (request/response)."""

from livesync.snapshot.client import SnapshotClient
from livesync.snapshot.source import SnapshotSource

__all__ = ["SnapshotClient", "SnapshotSource"]
