"""Bindings — one subscription per consumer active interval.

Learn: A dashboard widget is "active" between mount and unmount, and its
parameters (the user id, a row id) can change in between. A binding
models that as three transitions:

    bind(key)      → create exactly one subscription
    rebind(key)    → same key (by value): nothing; new key: tear down, then create
    unbind()       → tear down; the callback never runs again

Teardown always happens before the replacement is created, so two
subscriptions for one consumer never overlap. Keys are compared by value:
a freshly built but identical Predicate does not resubscribe.

Connection status is a separate registration on the shared
ConnectionState. It reflects the transport, not any single table.
"""

from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from livesync.events.types import ROW_COLUMN, USER_COLUMN
from livesync.realtime.connection import ConnectionState
from livesync.realtime.manager import RealtimeManager, Unsubscribe
from livesync.realtime.transport import EventCallback
from livesync.schemas.predicate import Predicate

Key = tuple[str, Optional[Predicate]]


class StatusWatcher:
    """Follows a ConnectionState while started; reads False when stopped."""

    def __init__(
        self,
        connection: ConnectionState,
        on_change: Optional[Callable[[bool], None]] = None,
    ):
        self._connection = connection
        self._on_change = on_change
        self._stop: Optional[Unsubscribe] = None
        self.connected = False

    @property
    def watching(self) -> bool:
        return self._stop is not None

    def start(self) -> None:
        if self._stop is None:
            self._stop = self._connection.on_connection_change(self._update)

    def stop(self) -> None:
        if self._stop is not None:
            self._stop()
            self._stop = None
        self._update(False)

    def _update(self, connected: bool) -> None:
        changed = connected != self.connected
        self.connected = connected
        if changed and self._on_change is not None:
            self._on_change(connected)


class SubscriptionBinding:
    """Binds a (table, predicate) subscription to an active interval."""

    def __init__(
        self,
        manager: RealtimeManager,
        on_event: EventCallback,
        connection: Optional[ConnectionState] = None,
    ):
        self._manager = manager
        self._on_event = on_event
        self._status = StatusWatcher(connection or manager.connection)
        self._key: Optional[Key] = None
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def key(self) -> Optional[Key]:
        return self._key

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    @property
    def connected(self) -> bool:
        return self._status.connected

    def bind(self, table: Optional[str], predicate: Optional[Predicate] = None) -> None:
        """Activate for (table, predicate); a missing table means inactive."""
        if not table:
            self.unbind()
            return

        key: Key = (table, predicate)
        if self.active and key == self._key:
            return

        self._teardown()
        self._key = key
        self._unsubscribe = self._manager.subscribe(table, predicate, self._on_event)
        self._status.start()

    rebind = bind

    def unbind(self) -> None:
        self._teardown()
        self._key = None
        self._status.stop()

    @contextmanager
    def bound(self, table: Optional[str], predicate: Optional[Predicate] = None) -> Iterator["SubscriptionBinding"]:
        """Scoped form: subscribed inside the block, torn down on exit."""
        self.bind(table, predicate)
        try:
            yield self
        finally:
            self.unbind()

    def _teardown(self) -> None:
        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            unsubscribe()


class _ColumnBinding:
    """Binding keyed by a single column value (a user id, a row id)."""

    column: str = ""

    def __init__(self, manager: RealtimeManager, table: str, on_event: EventCallback):
        self.table = table
        self._binding = SubscriptionBinding(manager, on_event)
        self.value: Any = None

    @property
    def active(self) -> bool:
        return self._binding.active

    @property
    def connected(self) -> bool:
        return self._binding.connected

    def bind(self, value: Any) -> None:
        """Subscribe for rows where column == value; None/"" unbinds."""
        if value is None or value == "":
            self.unbind()
            return
        self.value = value
        self._binding.bind(self.table, Predicate.eq(self.column, value))

    rebind = bind

    def unbind(self) -> None:
        self.value = None
        self._binding.unbind()


class UserBinding(_ColumnBinding):
    """Rows belonging to one user (`user_id=eq.<id>`)."""

    column = USER_COLUMN


class RowBinding(_ColumnBinding):
    """A single row by primary key (`id=eq.<id>`)."""

    column = ROW_COLUMN
