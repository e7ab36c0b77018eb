"""Feature reducers — snapshot + live stream → bounded view state."""

from livesync.state.activity import ActivityFeedReducer
from livesync.state.bounded import BoundedList
from livesync.state.dashboard import DashboardReducer
from livesync.state.notifications import NotificationsReducer

__all__ = ["ActivityFeedReducer", "BoundedList", "DashboardReducer", "NotificationsReducer"]
