"""What the reducers need from the snapshot API."""

from typing import Any, Protocol


class SnapshotSource(Protocol):
    """Async request/response source. Any method may raise."""

    async def fetch_stats(self) -> dict[str, Any]: ...

    async def fetch_recent_anomalies(self) -> list[dict[str, Any]]: ...

    async def fetch_notifications(self) -> list[dict[str, Any]]: ...
