"""Activity feed reducer tests."""

from livesync.schemas.change import ChangeEvent
from livesync.state.activity import ActivityFeedReducer


def activity(id, user_id=1):
    return {"id": id, "user_id": user_id, "title": f"activity {id}", "severity": "info"}


def test_keeps_newest_fifty(manager, transport):
    feed = ActivityFeedReducer(manager)
    feed.activate(1)
    for i in range(75):
        transport.emit(ChangeEvent.insert("activity_feed", activity(i)))

    assert len(feed.items) == 50
    assert feed.items.newest["id"] == 74
    assert feed.items[-1]["id"] == 25


def test_only_inserts_for_the_user(manager, transport):
    changes = []
    feed = ActivityFeedReducer(manager, capacity=5, on_change=changes.append)
    feed.activate(1)
    transport.emit(ChangeEvent.insert("activity_feed", activity(1, user_id=2)))
    transport.emit(ChangeEvent.update("activity_feed", activity(1)))
    transport.emit(ChangeEvent.delete("activity_feed", activity(1)))
    assert len(feed.items) == 0
    assert changes == []


def test_deactivate_stops_feed(manager, transport):
    feed = ActivityFeedReducer(manager)
    feed.activate(1)
    feed.deactivate()
    transport.emit(ChangeEvent.insert("activity_feed", activity(1)))
    assert len(feed.items) == 0
    assert transport.open_channels == 0


def test_switching_user_clears_previous_feed(manager, transport):
    feed = ActivityFeedReducer(manager)
    feed.activate(1)
    transport.emit(ChangeEvent.insert("activity_feed", activity(1)))
    assert len(feed.items) == 1

    feed.activate(2)
    assert len(feed.items) == 0

    transport.emit(ChangeEvent.insert("activity_feed", activity(2, user_id=1)))
    transport.emit(ChangeEvent.insert("activity_feed", activity(3, user_id=2)))
    assert [r["id"] for r in feed.items] == [3]


def test_reactivating_same_user_keeps_feed(manager, transport):
    feed = ActivityFeedReducer(manager)
    feed.activate(1)
    transport.emit(ChangeEvent.insert("activity_feed", activity(1)))
    feed.deactivate()
    feed.activate(1)
    assert [r["id"] for r in feed.items] == [1]

    feed.deactivate()
    feed.activate(2)
    assert len(feed.items) == 0
