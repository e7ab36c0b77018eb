"""RealtimeManager — creates subscriptions and routes events to them.

Learn: Each `subscribe` call opens its own channel, even for a
(table, predicate) pair that is already subscribed, and returns an
unsubscribe function. Three rules hold:

1. Unsubscribe is idempotent. The subscription is marked inactive
   before the channel is closed, so an event racing the teardown is
   dropped rather than delivered.
2. Every event is re-validated locally against the subscription's
   table and predicate before the callback runs. We never trust the
   transport to have filtered for us.
3. `subscribe` never raises. If the channel cannot be opened the
   caller gets a no-op unsubscribe and the failure shows up as
   `connected=False` on the shared ConnectionState.
"""

import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import structlog

from livesync.events.types import ROW_COLUMN, USER_COLUMN
from livesync.realtime.connection import ConnectionState
from livesync.realtime.transport import Channel, EventCallback, Transport
from livesync.schemas.change import ChangeEvent
from livesync.schemas.predicate import Predicate

logger = structlog.get_logger()

Unsubscribe = Callable[[], None]


def _noop() -> None:
    return None


@dataclass(eq=False)
class Subscription:
    """One logical subscription. Owned by the manager."""

    id: int
    table: str
    predicate: Optional[Predicate]
    callback: EventCallback
    active: bool = True
    channel: Optional[Channel] = field(default=None, repr=False)

    def accepts(self, event: ChangeEvent) -> bool:
        if not self.active or event.table != self.table:
            return False
        return self.predicate is None or self.predicate.matches(event.row)


class RealtimeManager:
    """Owns every live subscription on one transport."""

    def __init__(self, transport: Transport, connection: Optional[ConnectionState] = None):
        self.transport = transport
        self.connection = connection or getattr(transport, "connection", None) or ConnectionState()
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    @property
    def active_count(self) -> int:
        return len(self._subscriptions)

    @property
    def open_channel_count(self) -> int:
        """Subscriptions currently holding a channel. Never exceeds `active_count`."""
        return sum(1 for sub in self._subscriptions.values() if sub.channel is not None)

    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions.values())

    def subscribe(
        self,
        table: str,
        predicate: Optional[Predicate],
        on_event: EventCallback,
    ) -> Unsubscribe:
        """Open a channel for (table, predicate) and route matches to `on_event`."""
        sub = Subscription(id=next(self._ids), table=table, predicate=predicate, callback=on_event)
        log = logger.bind(subscription_id=sub.id, table=table, filter=str(predicate or "*"))

        channel: Optional[Channel] = None
        try:
            channel = self.transport.open_channel(table, predicate)
            channel.on_event(lambda event: self._route(sub, event))
        except Exception as e:
            log.warning("realtime.channel_open_failed", error=str(e))
            if channel is not None:
                self._close_channel(channel, log)
            self.connection.set_status(False)
            return _noop

        sub.channel = channel
        self._subscriptions[sub.id] = sub
        log.info("realtime.subscribed")
        return lambda: self._unsubscribe(sub.id)

    def subscribe_to_user(self, table: str, user_id: Any, on_event: EventCallback) -> Unsubscribe:
        return self.subscribe(table, Predicate.eq(USER_COLUMN, user_id), on_event)

    def subscribe_to_row(self, table: str, row_id: Any, on_event: EventCallback) -> Unsubscribe:
        return self.subscribe(table, Predicate.eq(ROW_COLUMN, row_id), on_event)

    def unsubscribe_all(self) -> None:
        for sub_id in list(self._subscriptions):
            self._unsubscribe(sub_id)
        logger.info("realtime.all_unsubscribed")

    # ─── Internals ───────────────────────────────────────

    def _unsubscribe(self, sub_id: int) -> None:
        sub = self._subscriptions.pop(sub_id, None)
        if sub is None:
            return
        sub.active = False
        log = logger.bind(subscription_id=sub.id, table=sub.table)
        if sub.channel is not None:
            self._close_channel(sub.channel, log)
            sub.channel = None
        log.info("realtime.unsubscribed")

    @staticmethod
    def _close_channel(channel: Channel, log: Any) -> None:
        try:
            channel.close()
        except Exception:
            log.exception("realtime.channel_close_failed")

    def _route(self, sub: Subscription, event: ChangeEvent) -> None:
        if not sub.accepts(event):
            logger.debug(
                "realtime.event_dropped",
                subscription_id=sub.id,
                table=event.table,
                operation=event.operation,
            )
            return
        try:
            sub.callback(event)
        except Exception:
            logger.exception(
                "realtime.callback_failed",
                subscription_id=sub.id,
                table=event.table,
                operation=event.operation,
            )
