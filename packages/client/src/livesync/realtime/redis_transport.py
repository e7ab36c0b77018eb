"""Redis pub/sub transport — the production change stream.

Learn: The backend publishes every row change to one Redis channel per
table: `{prefix}:{table}` (default prefix `livesync:changes`). Redis
pub/sub cannot filter by column, so channels opened here ignore their
predicate and the manager does the filtering. Pub/sub is fire-and-forget:
anything published while we are disconnected is lost, which is why the
reducers resnapshot rather than trust the stream for totals.

One pub/sub connection serves every channel:
- the first channel for a table SUBSCRIBEs, the last close UNSUBSCRIBEs
- a listener task decodes messages and delivers them synchronously
- on connection loss the transport reports connected=False, backs off
  exponentially, reconnects, re-subscribes every live table and reports
  connected=True again
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as aioredis
import structlog
from pydantic import ValidationError
from redis.exceptions import RedisError

from livesync.realtime.connection import ConnectionState
from livesync.realtime.transport import EventCallback
from livesync.schemas.change import ChangeEvent
from livesync.schemas.predicate import Predicate

logger = structlog.get_logger()

DEFAULT_PREFIX = "livesync:changes"

ClientFactory = Callable[[str], Any]


def _default_client(url: str) -> aioredis.Redis:
    return aioredis.from_url(url, encoding="utf-8", decode_responses=True)


def channel_name(table: str, prefix: str = DEFAULT_PREFIX) -> str:
    return f"{prefix}:{table}"


def decode_event(data: Any, table: Optional[str] = None) -> Optional[ChangeEvent]:
    """Decode one pub/sub message body. Returns None (and logs) if malformed.

    Producers may omit "table" since the channel already names it.
    """
    try:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        payload = json.loads(data)
        if not isinstance(payload, dict):
            raise TypeError(f"expected a JSON object, got {type(payload).__name__}")
        if table is not None:
            payload.setdefault("table", table)
        return ChangeEvent.from_payload(payload)
    except (UnicodeDecodeError, json.JSONDecodeError, TypeError, ValidationError) as e:
        logger.warning("realtime.malformed_payload", table=table, error=str(e))
        return None


async def publish_change(redis: Any, event: ChangeEvent, prefix: str = DEFAULT_PREFIX) -> int:
    """Publish a change event. Returns the number of receiving clients.

    Learn: This is the producer side, used by the CLI and by tests. The
    backend's own publisher uses the same channel naming.
    """
    payload = json.dumps(event.to_payload())
    return await redis.publish(channel_name(event.table, prefix), payload)


class RedisChannel:
    """Channel handed out by RedisTransport."""

    def __init__(self, transport: "RedisTransport", table: str, predicate: Optional[Predicate]):
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


class RedisTransport:
    """Multiplexes table channels over one Redis pub/sub connection.

    Usage:
        transport = RedisTransport(settings.redis_url, connection)
        await transport.start()
        ...
        await transport.stop()
    """

    def __init__(
        self,
        redis_url: str,
        connection: Optional[ConnectionState] = None,
        *,
        prefix: str = DEFAULT_PREFIX,
        initial_delay: float = 0.5,
        max_delay: float = 30.0,
        poll_timeout: float = 1.0,
        client_factory: ClientFactory = _default_client,
    ):
        self.redis_url = redis_url
        self.connection = connection or ConnectionState()
        self.prefix = prefix
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.poll_timeout = poll_timeout
        self._client_factory = client_factory
        self._channels: dict[str, list[RedisChannel]] = {}
        self._redis: Any = None
        self._pubsub: Any = None
        self._task: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()
        self._running = False

    @property
    def open_channels(self) -> int:
        return sum(len(chs) for chs in self._channels.values())

    @property
    def subscribed_tables(self) -> list[str]:
        return sorted(name.removeprefix(f"{self.prefix}:") for name in self._channels)

    # ─── Channel management ──────────────────────────────

    def open_channel(self, table: str, predicate: Optional[Predicate]) -> RedisChannel:
        channel = RedisChannel(self, table, predicate)
        name = channel_name(table, self.prefix)
        first = name not in self._channels
        if first and self._pubsub is not None:
            self._schedule(self._pubsub.subscribe(name), action="subscribe", channel=name)
        self._channels.setdefault(name, []).append(channel)
        return channel

    def _release(self, channel: RedisChannel) -> None:
        name = channel_name(channel.table, self.prefix)
        remaining = [ch for ch in self._channels.get(name, []) if ch is not channel]
        if remaining:
            self._channels[name] = remaining
            return
        self._channels.pop(name, None)
        if self._pubsub is not None:
            self._schedule(self._pubsub.unsubscribe(name), action="unsubscribe", channel=name)

    def _schedule(self, coro: Awaitable[Any], *, action: str, channel: str) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)

        def done(t: asyncio.Task) -> None:
            self._pending.discard(t)
            if t.cancelled():
                return
            error = t.exception()
            if error is not None:
                logger.warning("realtime.redis_command_failed", action=action, channel=channel, error=str(error))
                self.connection.set_status(False)

        task.add_done_callback(done)

    # ─── Lifecycle ───────────────────────────────────────

    async def start(self) -> None:
        """Start the listener task. Connecting happens in the background."""
        if self._task is not None:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop listening and close the connection."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        for task in list(self._pending):
            task.cancel()
        await self._disconnect()
        self.connection.set_status(False)
        logger.info("realtime.redis_stopped")

    async def _run(self) -> None:
        delay = self.initial_delay
        while self._running:
            try:
                await self._connect()
                delay = self.initial_delay
                await self._listen()
            except (RedisError, OSError) as e:
                logger.warning("realtime.redis_disconnected", error=str(e), retry_in=delay)
            self.connection.set_status(False)
            await self._disconnect()
            if not self._running:
                break
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_delay)

    async def _connect(self) -> None:
        self._redis = self._client_factory(self.redis_url)
        await self._redis.ping()
        self._pubsub = self._redis.pubsub()
        if self._channels:
            await self._pubsub.subscribe(*self._channels)
        self.connection.set_status(True)
        logger.info("realtime.redis_connected", tables=self.subscribed_tables)

    async def _disconnect(self) -> None:
        pubsub, redis = self._pubsub, self._redis
        self._pubsub = self._redis = None
        try:
            if pubsub is not None:
                await pubsub.aclose()
            if redis is not None:
                await redis.aclose()
        except (RedisError, OSError) as e:
            logger.debug("realtime.redis_close_failed", error=str(e))

    async def _listen(self) -> None:
        while self._running:
            if not self._pubsub.subscribed:
                await asyncio.sleep(self.poll_timeout)
                continue
            message = await self._pubsub.get_message(
                ignore_subscribe_messages=True,
                timeout=self.poll_timeout,
            )
            if message is None or message.get("type") != "message":
                continue
            self._dispatch(message["channel"], message["data"])

    def _dispatch(self, name: Any, data: Any) -> None:
        if isinstance(name, bytes):
            name = name.decode("utf-8")
        table = name.removeprefix(f"{self.prefix}:")
        event = decode_event(data, table)
        if event is None:
            return
        for channel in list(self._channels.get(name, [])):
            try:
                channel.deliver(event)
            except Exception:
                logger.exception("realtime.delivery_failed", table=table)
