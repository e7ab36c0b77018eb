"""Test fixtures — an in-memory transport and scriptable collaborators.

Learn: Nothing here touches the network. The transport is the
InMemoryTransport (events are delivered synchronously by `emit`), the
snapshot source is a fake whose results and timing each test controls,
and the presenter just records the toasts it was asked to show.
"""

import asyncio
from typing import Any

import pytest

from livesync.effects.toasts import ToastKind
from livesync.realtime.connection import ConnectionState
from livesync.realtime.manager import RealtimeManager
from livesync.realtime.transport import InMemoryTransport


class RecordingPresenter:
    def __init__(self):
        self.toasts: list[tuple[ToastKind, str]] = []

    def show_toast(self, kind: ToastKind, text: str) -> None:
        self.toasts.append((kind, text))


class FakeSnapshots:
    """Snapshot source with per-endpoint results.

    A result that is an exception instance is raised. Setting `gate` makes
    every fetch wait for it, so a test can interleave stream events with
    an in-flight snapshot.
    """

    def __init__(self, stats: Any = None, recent: Any = None, notifications: Any = None):
        self.stats = stats if stats is not None else {}
        self.recent = recent if recent is not None else []
        self.notifications = notifications if notifications is not None else []
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []

    async def _answer(self, name: str, result: Any) -> Any:
        self.calls.append(name)
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(result, BaseException):
            raise result
        return result

    async def fetch_stats(self):
        return await self._answer("stats", self.stats)

    async def fetch_recent_anomalies(self):
        return await self._answer("recent", self.recent)

    async def fetch_notifications(self):
        return await self._answer("notifications", self.notifications)


@pytest.fixture()
def connection():
    return ConnectionState()


@pytest.fixture()
def transport(connection):
    return InMemoryTransport(connection)


@pytest.fixture()
def manager(transport, connection):
    return RealtimeManager(transport, connection)


@pytest.fixture()
def presenter():
    return RecordingPresenter()


@pytest.fixture()
def snapshots():
    return FakeSnapshots(stats={"total_anomalies": 10, "high_severity": 2}, recent=[])
