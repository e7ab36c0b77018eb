"""RealtimeManager tests — channel accounting, routing, teardown."""

from livesync.realtime.manager import RealtimeManager
from livesync.realtime.transport import InMemoryTransport
from livesync.schemas.change import ChangeEvent
from livesync.schemas.predicate import Predicate


def _insert(table="anomalies", **row):
    return ChangeEvent.insert(table, row)


def test_open_channels_track_active_subscriptions(manager, transport):
    """Channels never outnumber subscriptions and drop to zero at the end."""
    stops = [manager.subscribe("anomalies", Predicate.eq("user_id", i), lambda e: None) for i in range(3)]
    assert transport.open_channels == manager.active_count == 3
    assert manager.open_channel_count == 3

    stops[0]()
    assert transport.open_channels <= manager.active_count == 2
    assert manager.open_channel_count == 2

    for stop in stops:
        stop()
    assert transport.open_channels == 0
    assert manager.active_count == 0
    assert manager.open_channel_count == 0


def test_identical_subscriptions_are_independent(manager, transport):
    a, b = [], []
    stop_a = manager.subscribe_to_user("anomalies", 1, a.append)
    manager.subscribe_to_user("anomalies", 1, b.append)
    assert transport.open_channels == 2

    stop_a()
    transport.emit(_insert(id=1, user_id=1))
    assert a == []
    assert len(b) == 1


def test_unsubscribe_is_idempotent_and_final(manager, transport):
    received = []
    stop = manager.subscribe("anomalies", None, received.append)
    transport.emit(_insert(id=1))
    stop()
    stop()
    transport.emit(_insert(id=2))

    assert [e.current["id"] for e in received] == [1]


def test_unsubscribe_during_delivery_drops_later_events(manager, transport):
    """A callback that tears down a sibling stops it from seeing the same event."""
    seen = []
    holder = {}

    def first(event):
        seen.append("first")
        holder["stop_second"]()

    manager.subscribe("anomalies", None, first)
    holder["stop_second"] = manager.subscribe("anomalies", None, lambda e: seen.append("second"))
    transport.emit(_insert(id=1))

    assert seen == ["first"]


def test_predicate_is_rechecked_locally(manager, transport):
    """The in-memory transport does not filter; the manager must."""
    mine, all_rows = [], []
    manager.subscribe_to_user("anomalies", 42, mine.append)
    manager.subscribe("anomalies", None, all_rows.append)

    transport.emit(_insert(id=1, user_id=42))
    transport.emit(_insert(id=2, user_id=7))

    assert [e.current["id"] for e in mine] == [1]
    assert [e.current["id"] for e in all_rows] == [1, 2]


def test_delete_matches_on_previous_row(manager, transport):
    received = []
    manager.subscribe_to_row("anomalies", 5, received.append)
    transport.emit(ChangeEvent.delete("anomalies", {"id": 5}))
    transport.emit(ChangeEvent.delete("anomalies", {"id": 6}))
    assert len(received) == 1


def test_other_tables_are_not_delivered(manager, transport):
    received = []
    manager.subscribe("anomalies", None, received.append)
    transport.emit(_insert("notifications", id=1))
    assert received == []


def test_open_failure_returns_noop_and_reports_disconnected(manager, transport, connection):
    connection.set_status(True)
    transport.fail_next_open = 1

    stop = manager.subscribe("anomalies", None, lambda e: None)

    assert connection.connected is False
    assert manager.active_count == 0
    assert manager.open_channel_count == 0
    assert transport.open_channels == 0
    stop()
    stop()


def test_failing_callback_does_not_break_delivery(manager, transport):
    received = []

    def boom(event):
        raise ValueError("consumer bug")

    manager.subscribe("anomalies", None, boom)
    manager.subscribe("anomalies", None, received.append)
    transport.emit(_insert(id=1))

    assert len(received) == 1


def test_unsubscribe_all(manager, transport):
    manager.subscribe("anomalies", None, lambda e: None)
    manager.subscribe("notifications", None, lambda e: None)
    manager.unsubscribe_all()
    assert manager.active_count == 0
    assert transport.open_channels == 0


def test_manager_shares_transport_connection_by_default():
    transport = InMemoryTransport()
    manager = RealtimeManager(transport)
    assert manager.connection is transport.connection


def test_server_side_filtering_still_rechecked(connection):
    transport = InMemoryTransport(connection, filter_server_side=True)
    manager = RealtimeManager(transport, connection)
    received = []
    manager.subscribe_to_user("anomalies", 1, received.append)
    assert transport.emit(_insert(id=1, user_id=2)) == 0
    assert transport.emit(_insert(id=2, user_id=1)) == 1
    assert len(received) == 1


def test_malformed_payload_is_dropped(manager, transport):
    received = []
    manager.subscribe("anomalies", None, received.append)
    assert transport.emit_payload({"table": "anomalies", "eventType": "BOGUS"}) == 0
    assert transport.emit_payload({"table": "anomalies", "eventType": "INSERT", "new": {"id": 1}}) == 1
    assert len(received) == 1
