"""Activity feed — the user's last 50 activities, stream only."""

from typing import Any, Callable, Optional

import structlog

from livesync.events.types import ACTIVITY_FEED, INSERT
from livesync.realtime.binding import UserBinding
from livesync.realtime.manager import RealtimeManager
from livesync.schemas.change import ChangeEvent
from livesync.state.base import FeatureReducer, row_id
from livesync.state.bounded import BoundedList

logger = structlog.get_logger()

ACTIVITY_CAPACITY = 50


class ActivityFeedReducer(FeatureReducer):
    name = "activity"

    def __init__(
        self,
        manager: RealtimeManager,
        *,
        capacity: int = ACTIVITY_CAPACITY,
        on_change: Optional[Callable[[Any], None]] = None,
    ):
        super().__init__(on_change)
        self.items: BoundedList[dict[str, Any]] = BoundedList(capacity)
        self._bindings = [UserBinding(manager, ACTIVITY_FEED, self.handle_event)]

    def activate(self, user_id: Any) -> None:
        self._bind(user_id)

    def _reset_user_state(self) -> None:
        self.items.clear()

    def handle_event(self, event: ChangeEvent) -> None:
        row = event.current
        if event.operation != INSERT or not isinstance(row, dict):
            logger.debug("activity.event_ignored", operation=event.operation)
            return
        rid = row_id(row)
        if rid is None or not self.items.replace(lambda r: row_id(r) == rid, row):
            self.items.prepend(row)
        self._changed()
