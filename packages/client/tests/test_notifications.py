"""Notifications reducer tests — unread accounting and optimistic reads."""

import asyncio
import itertools
import random

import pytest

from livesync.effects.toasts import ToastKind
from livesync.schemas.change import ChangeEvent
from livesync.state.notifications import NotificationsReducer

from conftest import FakeSnapshots

USER = 42


def note(id, read=False, severity="info", user_id=USER, **extra):
    return {"id": id, "user_id": user_id, "title": f"n{id}", "read": read, "severity": severity, **extra}


@pytest.fixture()
def feed(manager, presenter):
    reducer = NotificationsReducer(manager, FakeSnapshots(), presenter)
    asyncio.run(reducer.activate(USER))
    return reducer


def test_insert_prepends_counts_and_toasts(feed, transport, presenter):
    transport.emit(ChangeEvent.insert("notifications", note(1, severity="high")))
    transport.emit(ChangeEvent.insert("notifications", note(2, severity="success")))

    assert [n.id for n in feed.items] == [2, 1]
    assert feed.unread_count == 2
    assert presenter.toasts == [(ToastKind.ERROR, "n1"), (ToastKind.SUCCESS, "n2")]


def test_remote_read_decrements_once(feed, transport):
    transport.emit(ChangeEvent.insert("notifications", note(1)))
    transport.emit(ChangeEvent.update("notifications", note(1, read=True), previous={"read": False}))
    transport.emit(ChangeEvent.update("notifications", note(1, read=True), previous={"read": False}))

    assert feed.items[0].read is True
    assert feed.unread_count == 0


def test_optimistic_read_is_not_double_counted(feed, transport):
    """The server's confirming UPDATE after mark_as_read changes nothing."""
    transport.emit(ChangeEvent.insert("notifications", note(1)))
    transport.emit(ChangeEvent.insert("notifications", note(2)))

    feed.mark_as_read(1)
    assert feed.unread_count == 1

    transport.emit(ChangeEvent.update("notifications", note(1, read=True), previous={"read": False}))
    assert feed.unread_count == 1


def test_mark_as_read_twice_or_unknown(feed, transport):
    transport.emit(ChangeEvent.insert("notifications", note(1)))
    feed.mark_as_read(1)
    feed.mark_as_read("1")
    feed.mark_as_read(999)
    assert feed.unread_count == 0


def test_mark_all_as_read(feed, transport):
    for i in range(3):
        transport.emit(ChangeEvent.insert("notifications", note(i)))
    feed.mark_all_as_read()
    assert feed.unread_count == 0
    assert all(n.read for n in feed.items)


def test_update_for_unknown_record_uses_old_row(feed, transport):
    feed.unread_count = 2
    transport.emit(ChangeEvent.update("notifications", note(77, read=True), previous={"id": 77, "read": False}))
    assert feed.unread_count == 1
    assert feed.items == []

    # No old row: nothing to go on
    transport.emit(ChangeEvent.update("notifications", note(78, read=True)))
    assert feed.unread_count == 1


def test_remote_unread_counts_again(feed, transport):
    transport.emit(ChangeEvent.insert("notifications", note(1, read=True)))
    assert feed.unread_count == 0
    transport.emit(ChangeEvent.update("notifications", note(1, read=False)))
    assert feed.unread_count == 1


def test_malformed_rows_are_ignored(feed, transport, presenter):
    transport.emit(ChangeEvent.insert("notifications", {"user_id": USER, "title": "no id"}))
    transport.emit(ChangeEvent.insert("notifications", note(1, read="not-a-bool")))
    assert feed.items == []
    assert feed.unread_count == 0
    assert presenter.toasts == []


def test_unread_never_negative_under_random_interleavings(feed, transport):
    rng = random.Random(1234)
    ids = itertools.count(1)
    known = []
    for _ in range(500):
        action = rng.choice(["insert", "update", "mark", "mark_all"])
        if action == "insert":
            nid = next(ids)
            known.append(nid)
            transport.emit(ChangeEvent.insert("notifications", note(nid, read=rng.random() < 0.2)))
        elif action == "update" and known:
            nid = rng.choice(known)
            transport.emit(ChangeEvent.update("notifications", note(nid, read=True), previous={"read": False}))
        elif action == "mark" and known:
            feed.mark_as_read(rng.choice(known))
        elif action == "mark_all":
            feed.mark_all_as_read()
        assert feed.unread_count >= 0
        assert feed.unread_count == sum(1 for n in feed.items if not n.read)


@pytest.mark.asyncio
async def test_snapshot_merges_with_live_items(manager, transport, presenter):
    snapshots = FakeSnapshots(notifications=[note(1), note(2, read=True)])
    snapshots.gate = asyncio.Event()
    feed = NotificationsReducer(manager, snapshots, presenter)
    task = asyncio.create_task(feed.activate(USER))
    await asyncio.sleep(0)

    transport.emit(ChangeEvent.insert("notifications", note(3)))
    transport.emit(ChangeEvent.insert("notifications", note(1)))
    snapshots.gate.set()
    await task

    assert [n.id for n in feed.items] == [3, 1, 2]
    assert feed.unread_count == 2


@pytest.mark.asyncio
async def test_snapshot_failure_keeps_live_state(manager, transport, presenter):
    snapshots = FakeSnapshots(notifications=RuntimeError("503"))
    feed = NotificationsReducer(manager, snapshots, presenter)
    await feed.activate(USER)
    transport.emit(ChangeEvent.insert("notifications", note(1)))
    assert feed.unread_count == 1


@pytest.mark.asyncio
async def test_deactivated_feed_ignores_everything(manager, transport, presenter):
    snapshots = FakeSnapshots(notifications=[note(1)])
    snapshots.gate = asyncio.Event()
    feed = NotificationsReducer(manager, snapshots, presenter)
    task = asyncio.create_task(feed.activate(USER))
    await asyncio.sleep(0)
    feed.deactivate()
    snapshots.gate.set()
    await task

    transport.emit(ChangeEvent.insert("notifications", note(2)))
    assert feed.items == []
    assert feed.unread_count == 0


@pytest.mark.asyncio
async def test_switching_user_drops_previous_notifications(manager, transport, presenter):
    feed = NotificationsReducer(manager, FakeSnapshots(), presenter)
    await feed.activate(1)
    transport.emit(ChangeEvent.insert("notifications", note(10, user_id=1)))
    assert feed.unread_count == 1

    await feed.activate(2)

    assert feed.items == []
    assert feed.unread_count == 0
    transport.emit(ChangeEvent.insert("notifications", note(11, user_id=1)))
    assert feed.items == []


@pytest.mark.asyncio
async def test_switch_with_failed_snapshot_still_clears(manager, transport, presenter):
    snapshots = FakeSnapshots(notifications=[note(1, user_id=1)])
    feed = NotificationsReducer(manager, snapshots, presenter)
    await feed.activate(1)
    assert feed.unread_count == 1

    snapshots.notifications = RuntimeError("503")
    await feed.activate(2)

    assert feed.items == []
    assert feed.unread_count == 0


@pytest.mark.asyncio
async def test_switch_without_snapshot_source_clears(manager, transport):
    feed = NotificationsReducer(manager)
    await feed.activate(1)
    transport.emit(ChangeEvent.insert("notifications", note(1, user_id=1)))
    feed.deactivate()

    await feed.activate(2)
    assert feed.items == []
    assert feed.unread_count == 0

    transport.emit(ChangeEvent.insert("notifications", note(2, user_id=2)))
    assert [n.id for n in feed.items] == [2]
    assert feed.unread_count == 1
