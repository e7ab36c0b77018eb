"""Transport interface and the in-memory transport.

Learn: A transport hands out Channels — one logical stream of change
events for a table. The manager never assumes the transport filters by
predicate; it re-checks every event (see manager.py). That lets a
transport stay dumb: the in-memory one here and the Redis one both
deliver everything for the table.

InMemoryTransport is what tests and embedded demos use. `emit` delivers
synchronously, the same way an event-loop callback would.
"""

from collections.abc import Mapping
from typing import Any, Callable, Optional, Protocol

import structlog
from pydantic import ValidationError

from livesync.errors import ChannelOpenError
from livesync.realtime.connection import ConnectionState
from livesync.schemas.change import ChangeEvent
from livesync.schemas.predicate import Predicate

logger = structlog.get_logger()

EventCallback = Callable[[ChangeEvent], None]


class Channel(Protocol):
    """One open, table-scoped event stream."""

    def on_event(self, callback: EventCallback) -> None: ...

    def close(self) -> None: ...


class Transport(Protocol):
    """Anything that can open channels."""

    def open_channel(self, table: str, predicate: Optional[Predicate]) -> Channel: ...


# ─── In-memory implementation ────────────────────────────


class MemoryChannel:
    """Channel held by an InMemoryTransport."""

    def __init__(self, transport: "InMemoryTransport", table: str, predicate: Optional[Predicate]):
        self.table = table
        self.predicate = predicate
        self.closed = False
        self._transport = transport
        self._callbacks: list[EventCallback] = []

    def on_event(self, callback: EventCallback) -> None:
        self._callbacks.append(callback)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._callbacks.clear()
        self._transport._release(self)

    def deliver(self, event: ChangeEvent) -> None:
        for callback in list(self._callbacks):
            if self.closed:
                return
            callback(event)


class InMemoryTransport:
    """Process-local transport: `emit` pushes an event to every open channel.

    With `filter_server_side=True` it also applies channel predicates
    before delivery, imitating a backend that filters for us.
    """

    def __init__(
        self,
        connection: Optional[ConnectionState] = None,
        *,
        filter_server_side: bool = False,
    ):
        self.connection = connection or ConnectionState()
        self.filter_server_side = filter_server_side
        self.fail_next_open = 0
        self.opened_total = 0
        self._channels: list[MemoryChannel] = []

    @property
    def open_channels(self) -> int:
        return len(self._channels)

    def channels_for(self, table: str) -> list[MemoryChannel]:
        return [ch for ch in self._channels if ch.table == table]

    def open_channel(self, table: str, predicate: Optional[Predicate]) -> MemoryChannel:
        if self.fail_next_open > 0:
            self.fail_next_open -= 1
            raise ChannelOpenError(table, "simulated failure")
        channel = MemoryChannel(self, table, predicate)
        self._channels.append(channel)
        self.opened_total += 1
        return channel

    def _release(self, channel: MemoryChannel) -> None:
        self._channels = [ch for ch in self._channels if ch is not channel]

    # ─── Producer side ───────────────────────────────────

    def emit(self, event: ChangeEvent) -> int:
        """Deliver `event` to every channel on its table. Returns the count."""
        delivered = 0
        for channel in self.channels_for(event.table):
            if self.filter_server_side and channel.predicate is not None:
                if not channel.predicate.matches(event.row):
                    continue
            channel.deliver(event)
            delivered += 1
        return delivered

    def emit_payload(self, payload: Mapping[str, Any]) -> int:
        """Validate a wire-shaped payload, then emit it. Malformed ones are dropped."""
        try:
            event = ChangeEvent.from_payload(payload)
        except ValidationError as e:
            logger.warning("realtime.malformed_payload", error=str(e))
            return 0
        return self.emit(event)

    def connect(self) -> None:
        self.connection.set_status(True)

    def disconnect(self) -> None:
        self.connection.set_status(False)
