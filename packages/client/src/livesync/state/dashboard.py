"""Dashboard aggregate — counters + recent anomalies.

Learn: Two streams feed this reducer, both scoped to the user:

- `anomalies` is applied as deltas. An INSERT prepends to `recent`
  (capped at 10) and bumps the counters; an UPDATE replaces the row in
  `recent` if it is still there. Counters are never recomputed from
  `recent` and never decremented: the list is lossy, so an anomaly that
  has scrolled out and is later changed leaves the counters as they
  were. A resnapshot is the only correction.
- `baseline_stats` is a refresh signal, not a delta. The aggregate
  cannot be rebuilt client-side, so any INSERT/UPDATE there re-runs
  both snapshot fetches.

The two snapshot fetches run concurrently and fail independently:
stats falls back to None, recent to empty.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog

from livesync.effects.toasts import Presenter, dispatch_toast
from livesync.events.types import ANOMALIES, BASELINE_STATS, INSERT, UPDATE
from livesync.realtime.binding import UserBinding
from livesync.realtime.manager import RealtimeManager
from livesync.schemas.change import ChangeEvent
from livesync.snapshot.source import SnapshotSource
from livesync.state.base import FeatureReducer, row_id
from livesync.state.bounded import BoundedList

logger = structlog.get_logger()

RECENT_CAPACITY = 10

HIGH_SEVERITY = "high"
DEFAULT_ANOMALY_TEXT = "Anomaly detected"
DEFAULT_HIGH_ANOMALY_TEXT = "Critical anomaly detected"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _count(stats: Optional[dict[str, Any]], row: dict[str, Any]) -> dict[str, Any]:
    """Counters with one more anomaly. None starts from zero."""
    stats = dict(stats or {})
    stats["total_anomalies"] = int(stats.get("total_anomalies") or 0) + 1
    high = row.get("severity_level") == HIGH_SEVERITY
    stats["high_severity"] = int(stats.get("high_severity") or 0) + (1 if high else 0)
    return stats


class DashboardReducer(FeatureReducer):
    """Live dashboard state: `stats`, `recent`, `loading`, `last_update`."""

    name = "dashboard"

    def __init__(
        self,
        manager: RealtimeManager,
        snapshots: SnapshotSource,
        presenter: Optional[Presenter] = None,
        *,
        capacity: int = RECENT_CAPACITY,
        on_change: Optional[Callable[[Any], None]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(on_change)
        self._snapshots = snapshots
        self._presenter = presenter
        self._clock = clock
        self._refresh_seq = 0
        self._live_inserts: list[dict[str, Any]] = []

        self.stats: Optional[dict[str, Any]] = None
        self.recent: BoundedList[dict[str, Any]] = BoundedList(capacity)
        self.loading = True
        self.last_update = clock()

        self._bindings = [
            UserBinding(manager, ANOMALIES, self.handle_anomaly),
            UserBinding(manager, BASELINE_STATS, self.handle_baseline),
        ]

    async def activate(self, user_id: Any) -> None:
        """Subscribe for `user_id` and load the first snapshot."""
        if self._bind(user_id):
            await self.refresh()

    def _reset_user_state(self) -> None:
        self.stats = None
        self.recent.clear()
        self._live_inserts = []
        self.loading = True

    # ─── Snapshot ────────────────────────────────────────

    async def refresh(self) -> None:
        """Re-run both snapshot fetches and replace state wholesale."""
        generation = self._generation
        self._refresh_seq += 1
        seq = self._refresh_seq
        self._live_inserts = []
        self.loading = True
        self._changed()

        stats, recent = await asyncio.gather(
            self._snapshots.fetch_stats(),
            self._snapshots.fetch_recent_anomalies(),
            return_exceptions=True,
        )

        if generation != self._generation or seq != self._refresh_seq:
            logger.debug("dashboard.snapshot_discarded", user_id=self.user_id)
            return

        if isinstance(stats, BaseException) or not isinstance(stats, dict):
            logger.warning("dashboard.stats_snapshot_failed", user_id=self.user_id, error=str(stats))
            self.stats = None
        else:
            self.stats = dict(stats)

        if isinstance(recent, BaseException) or not isinstance(recent, list):
            logger.warning("dashboard.recent_snapshot_failed", user_id=self.user_id, error=str(recent))
            recent = []

        # Inserts that arrived while we were fetching stay on top unless
        # the snapshot already has them. Those rows are also missing from
        # the snapshot's counters.
        snapshot_ids = {row_id(r) for r in recent}
        live = [r for r in self._live_inserts if row_id(r) not in snapshot_ids]
        if self.stats is not None:
            for row in live:
                self.stats = _count(self.stats, row)
        self.recent.reset([*live, *recent])
        self._live_inserts = []

        self.loading = False
        self.last_update = self._clock()
        logger.info(
            "dashboard.snapshot_loaded",
            user_id=self.user_id,
            has_stats=self.stats is not None,
            recent=len(self.recent),
        )
        self._changed()

    # ─── Stream handlers ─────────────────────────────────

    def handle_anomaly(self, event: ChangeEvent) -> None:
        row = event.current
        if not isinstance(row, dict):
            logger.debug("dashboard.event_ignored", table=event.table, operation=event.operation)
            return
        if event.operation == INSERT:
            self._apply_insert(row)
        elif event.operation == UPDATE:
            self._apply_update(row)
        else:
            logger.debug("dashboard.event_ignored", table=event.table, operation=event.operation)

    def handle_baseline(self, event: ChangeEvent) -> None:
        if event.operation not in (INSERT, UPDATE):
            logger.debug("dashboard.event_ignored", table=event.table, operation=event.operation)
            return
        logger.info("dashboard.baseline_changed", user_id=self.user_id)
        self._spawn(self.refresh())

    def _apply_insert(self, row: dict[str, Any]) -> None:
        rid = row_id(row)
        if rid is not None and self.recent.replace(lambda r: row_id(r) == rid, row):
            # Redelivered INSERT: refresh the row, counters already include it
            self.last_update = self._clock()
            self._changed()
            return

        self.recent.prepend(row)
        if self.loading:
            self._live_inserts.append(row)

        self.stats = _count(self.stats, row)
        self.last_update = self._clock()

        high = row.get("severity_level") == HIGH_SEVERITY
        text = row.get("rule_name") or (DEFAULT_HIGH_ANOMALY_TEXT if high else DEFAULT_ANOMALY_TEXT)
        dispatch_toast(self._presenter, row.get("severity_level"), text)
        logger.info("dashboard.anomaly_inserted", anomaly_id=rid, severity=row.get("severity_level"))
        self._changed()

    def _apply_update(self, row: dict[str, Any]) -> None:
        rid = row_id(row)
        if rid is None or not self.recent.replace(lambda r: row_id(r) == rid, row):
            # Not (or no longer) in the bounded list. Counters stay as they are.
            logger.debug("dashboard.update_outside_window", anomaly_id=rid)
            return
        self.last_update = self._clock()
        self._changed()
