"""Connection status — one authoritative boolean and its listeners.

Learn: Only the transport side writes the status (`set_status`).
Everybody else registers a listener and is told the current value right
away, so no consumer sits in an unknown state waiting for the next
transition. Reconnection and backoff belong to the transport; this
object only reflects what it is told.
"""

from typing import Callable

import structlog

logger = structlog.get_logger()

Listener = Callable[[bool], None]


class ConnectionState:
    """Connected/disconnected flag with synchronous listener fan-out."""

    def __init__(self, connected: bool = False):
        self._connected = connected
        self._listeners: list[tuple[object, Listener]] = []

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def on_connection_change(self, listener: Listener) -> Callable[[], None]:
        """Register `listener`, call it now with the current value.

        Returns a de-registration function that is safe to call twice.
        Registering the same callable twice yields two independent
        registrations.
        """
        token = object()
        self._listeners.append((token, listener))
        self._invoke(listener, self._connected)

        def unsubscribe() -> None:
            self._listeners = [entry for entry in self._listeners if entry[0] is not token]

        return unsubscribe

    def set_status(self, connected: bool) -> None:
        """Record a transition and notify listeners in registration order."""
        if connected == self._connected:
            return
        self._connected = connected
        logger.info("realtime.connection_changed", connected=connected)
        # Snapshot: listeners may de-register while we iterate
        for _, listener in list(self._listeners):
            self._invoke(listener, connected)

    @staticmethod
    def _invoke(listener: Listener, connected: bool) -> None:
        try:
            listener(connected)
        except Exception:
            logger.exception("realtime.connection_listener_failed", listener=repr(listener))
