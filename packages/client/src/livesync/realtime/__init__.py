"""Real-time infrastructure — connection status, channels, bindings.

Learn: Events flow through three layers:
1. Transport → Channel (one logical, filtered stream per table)
2. RealtimeManager → routes each event to the subscriptions it matches
3. Binding → ties one subscription to a consumer's active interval

The manager is a plain object constructed once and passed to whoever
needs it; there is no module-level instance.
"""

from livesync.realtime.binding import RowBinding, StatusWatcher, SubscriptionBinding, UserBinding
from livesync.realtime.connection import ConnectionState
from livesync.realtime.manager import RealtimeManager, Subscription
from livesync.realtime.transport import Channel, InMemoryTransport, Transport

__all__ = [
    "Channel",
    "ConnectionState",
    "InMemoryTransport",
    "RealtimeManager",
    "RowBinding",
    "StatusWatcher",
    "Subscription",
    "SubscriptionBinding",
    "Transport",
    "UserBinding",
]
