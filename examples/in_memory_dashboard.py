"""
Live dashboard without any services.

Wires the three reducers to an InMemoryTransport and a canned snapshot
source, then plays a short burst of change events through them — the
same path a Redis message takes after decoding.

Run:  python examples/in_memory_dashboard.py
"""

import asyncio

from livesync.effects.toasts import LogPresenter
from livesync.realtime import ConnectionState, InMemoryTransport, RealtimeManager
from livesync.schemas import ChangeEvent
from livesync.state import ActivityFeedReducer, DashboardReducer, NotificationsReducer

USER_ID = 42


class CannedSnapshots:
    async def fetch_stats(self):
        return {"total_anomalies": 10, "high_severity": 2}

    async def fetch_recent_anomalies(self):
        return []

    async def fetch_notifications(self):
        return [{"id": 100, "title": "Welcome", "read": True}]


async def main() -> None:
    connection = ConnectionState()
    transport = InMemoryTransport(connection)
    manager = RealtimeManager(transport, connection)
    presenter = LogPresenter()

    dashboard = DashboardReducer(manager, CannedSnapshots(), presenter)
    notifications = NotificationsReducer(manager, CannedSnapshots(), presenter)
    activity = ActivityFeedReducer(manager)

    transport.connect()
    activity.activate(USER_ID)
    await asyncio.gather(dashboard.activate(USER_ID), notifications.activate(USER_ID))

    transport.emit(ChangeEvent.insert("anomalies", {
        "id": 1, "user_id": USER_ID, "severity_level": "high", "rule_name": "A1 Rapid Repeat",
    }))
    transport.emit(ChangeEvent.insert("notifications", {
        "id": 101, "user_id": USER_ID, "title": "Click fraud suspected", "severity": "medium",
    }))
    transport.emit(ChangeEvent.insert("activity_feed", {
        "id": 7, "user_id": USER_ID, "title": "IP 10.0.0.8 blocked",
    }))
    notifications.mark_as_read(101)

    print(f"stats:         {dashboard.stats}")
    print(f"recent:        {[a['id'] for a in dashboard.recent]}")
    print(f"unread:        {notifications.unread_count} of {len(notifications.items)}")
    print(f"activity:      {[a['title'] for a in activity.items]}")
    print(f"connected:     {dashboard.connected}")

    for reducer in (dashboard, notifications, activity):
        reducer.deactivate()
    print(f"open channels: {transport.open_channels}")


if __name__ == "__main__":
    asyncio.run(main())
