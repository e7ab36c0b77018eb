"""HTTP snapshot client for the dashboard API.

Learn: Three GET endpoints, all relative to the API base URL:
    /dashboard/stats             → counters object
    /dashboard/recent-anomalies  → list of anomaly rows
    /notifications               → list of notification rows
Every failure — network error, non-2xx status, a body that is not JSON
or not the expected shape — becomes a SnapshotError. The reducers catch
it and fall back per slice; nothing here retries.
"""

import time
from typing import Any, Optional

import httpx
import structlog

from livesync.errors import SnapshotError

logger = structlog.get_logger()

STATS_PATH = "/dashboard/stats"
RECENT_ANOMALIES_PATH = "/dashboard/recent-anomalies"
NOTIFICATIONS_PATH = "/notifications"

SLOW_REQUEST_SECONDS = 1.0


class SnapshotClient:
    """Async snapshot source backed by httpx."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> "SnapshotClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_stats(self) -> dict[str, Any]:
        data = await self._get_json(STATS_PATH)
        if not isinstance(data, dict):
            raise SnapshotError(STATS_PATH, "expected a JSON object")
        return data

    async def fetch_recent_anomalies(self) -> list[dict[str, Any]]:
        return await self._get_list(RECENT_ANOMALIES_PATH)

    async def fetch_notifications(self) -> list[dict[str, Any]]:
        return await self._get_list(NOTIFICATIONS_PATH)

    async def _get_list(self, path: str) -> list[dict[str, Any]]:
        data = await self._get_json(path)
        if not isinstance(data, list):
            raise SnapshotError(path, "expected a JSON array")
        return [row for row in data if isinstance(row, dict)]

    async def _get_json(self, path: str) -> Any:
        started = time.perf_counter()
        try:
            resp = await self._client.get(path)
        except httpx.HTTPError as e:
            raise SnapshotError(path, str(e) or type(e).__name__) from e

        elapsed = time.perf_counter() - started
        if elapsed > SLOW_REQUEST_SECONDS:
            logger.warning("snapshot.slow_request", path=path, seconds=round(elapsed, 3))

        if resp.is_error:
            raise SnapshotError(path, f"HTTP {resp.status_code}", status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            raise SnapshotError(path, "response body is not JSON", status_code=resp.status_code) from e
