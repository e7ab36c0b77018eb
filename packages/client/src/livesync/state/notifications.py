"""Notifications feed — unbounded list plus an unread counter.

Learn: `mark_as_read` is optimistic: local state changes immediately and
is provisional until the server agrees. Agreement arrives as an UPDATE
(or the next snapshot). To avoid counting the same read twice, an UPDATE
decides "was it unread?" from our local copy when we have one, and only
falls back to the event's `old` row for records we never saw.
"""

from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError

from livesync.effects.toasts import Presenter, dispatch_toast
from livesync.events.types import INSERT, NOTIFICATIONS, UPDATE
from livesync.realtime.binding import UserBinding
from livesync.realtime.manager import RealtimeManager
from livesync.schemas.change import ChangeEvent
from livesync.schemas.notification import NotificationRecord
from livesync.snapshot.source import SnapshotSource
from livesync.state.base import FeatureReducer, row_id

logger = structlog.get_logger()


def _parse(row: Any) -> Optional[NotificationRecord]:
    try:
        return NotificationRecord.model_validate(row)
    except ValidationError as e:
        logger.warning("notifications.malformed_record", error=str(e))
        return None


class NotificationsReducer(FeatureReducer):
    """`items` newest first, `unread_count` never below zero."""

    name = "notifications"

    def __init__(
        self,
        manager: RealtimeManager,
        snapshots: Optional[SnapshotSource] = None,
        presenter: Optional[Presenter] = None,
        *,
        on_change: Optional[Callable[[Any], None]] = None,
    ):
        super().__init__(on_change)
        self._snapshots = snapshots
        self._presenter = presenter
        self.items: list[NotificationRecord] = []
        self.unread_count = 0
        self._bindings = [UserBinding(manager, NOTIFICATIONS, self.handle_event)]

    async def activate(self, user_id: Any) -> None:
        if self._bind(user_id):
            await self.load()

    def _reset_user_state(self) -> None:
        self.items = []
        self.unread_count = 0

    async def load(self) -> None:
        """Merge a snapshot of the user's notifications into live state."""
        if self._snapshots is None:
            return
        generation = self._generation
        try:
            rows = await self._snapshots.fetch_notifications()
        except Exception as e:
            logger.warning("notifications.snapshot_failed", user_id=self.user_id, error=str(e))
            return
        if generation != self._generation:
            logger.debug("notifications.snapshot_discarded", user_id=self.user_id)
            return

        records = [r for r in (_parse(row) for row in rows) if r is not None]
        snapshot_ids = {row_id(r) for r in records}
        live_only = [i for i in self.items if row_id(i) not in snapshot_ids]
        self.items = [*live_only, *records]
        self.unread_count = sum(1 for i in self.items if not i.read)
        logger.info("notifications.snapshot_loaded", count=len(self.items), unread=self.unread_count)
        self._changed()

    # ─── Stream ──────────────────────────────────────────

    def handle_event(self, event: ChangeEvent) -> None:
        if event.operation not in (INSERT, UPDATE) or event.current is None:
            logger.debug("notifications.event_ignored", operation=event.operation)
            return
        record = _parse(event.current)
        if record is None:
            return
        if event.operation == INSERT:
            self._apply_insert(record)
        else:
            self._apply_update(record, event.previous)

    def _index(self, rid: Any) -> Optional[int]:
        key = str(rid)
        for i, item in enumerate(self.items):
            if row_id(item) == key:
                return i
        return None

    def _apply_insert(self, record: NotificationRecord) -> None:
        if self._index(record.id) is not None:
            # Already known (snapshot or redelivery): treat as an update
            self._apply_update(record, None)
            return
        self.items.insert(0, record)
        # Arrives already read: keep unread_count equal to the unread items
        if not record.read:
            self.unread_count += 1
        dispatch_toast(self._presenter, record.severity, record.text)
        self._changed()

    def _apply_update(self, record: NotificationRecord, previous: Optional[dict[str, Any]]) -> None:
        i = self._index(record.id)
        if i is not None:
            was_read = self.items[i].read
            self.items[i] = record
        elif previous is not None and "read" in previous:
            was_read = bool(previous["read"])
        else:
            logger.debug("notifications.update_unknown_record", notification_id=record.id)
            return

        if not was_read and record.read:
            self.unread_count = max(0, self.unread_count - 1)
        elif was_read and not record.read and i is not None:
            self.unread_count += 1
        self._changed()

    # ─── Local actions ───────────────────────────────────

    def mark_as_read(self, notification_id: Any) -> None:
        """Optimistically mark one notification read."""
        i = self._index(notification_id)
        if i is None:
            logger.debug("notifications.mark_unknown", notification_id=notification_id)
            return
        if self.items[i].read:
            return
        self.items[i] = self.items[i].model_copy(update={"read": True})
        self.unread_count = max(0, self.unread_count - 1)
        self._changed()

    def mark_all_as_read(self) -> None:
        self.items = [i if i.read else i.model_copy(update={"read": True}) for i in self.items]
        self.unread_count = 0
        self._changed()
