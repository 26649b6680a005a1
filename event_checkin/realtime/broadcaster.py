"""Publish/subscribe fan-out of check-in changes, keyed by event id.

Every write that other screens care about (a new spreadsheet import, a
check-in, a quick-add) ends in ``publish`` once its transaction commits. Live
viewers hold a :class:`Subscription` for one event; transports that manage
their own connections (Socket.IO) are plugged in as *relays*.

Delivery rules:
- each subscription owns a bounded buffer; when it is full the oldest
  message is dropped, so a stalled reader never blocks the publisher or the
  other readers;
- events from one publisher keep their order per subscriber;
- a failing relay is logged and skipped, it never fails the publish call.

``Broadcaster`` keeps subscribers in process memory. ``RedisBroadcaster``
pushes every message through Redis pub/sub and relays it to the local
subscribers of each server process, so several workers share delivery.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections import deque
from dataclasses import dataclass
from dataclasses import field
from typing import TYPE_CHECKING
from typing import Any

import redis
from django.conf import settings

if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 100


class TransportError(Exception):
    """Delivery of a change to a subscriber transport failed."""


@dataclass(frozen=True)
class ChangeEvent:
    type: str
    event_id: int
    payload: dict[str, Any] = field(default_factory=dict)

    def as_message(self) -> dict[str, Any]:
        return {"type": self.type, "eventId": self.event_id, "payload": self.payload}

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> ChangeEvent:
        return cls(
            type=str(message["type"]),
            event_id=int(message["eventId"]),
            payload=dict(message.get("payload") or {}),
        )


class Subscription:
    """A live channel receiving every change published for one event."""

    def __init__(self, broadcaster: Broadcaster, event_id: int, maxsize: int):
        self.broadcaster = broadcaster
        self.event_id = event_id
        self.maxsize = max(1, int(maxsize))
        self.dropped = 0
        self._buffer: deque[ChangeEvent] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._waiters: set[tuple[asyncio.AbstractEventLoop, asyncio.Event]] = set()

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"Subscription(event_id={self.event_id}, pending={len(self._buffer)})"

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __iter__(self) -> Iterator[ChangeEvent]:
        while True:
            change = self.get()
            if change is None:
                return
            yield change

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._buffer)

    def offer(self, change: ChangeEvent) -> bool:
        """Queue ``change`` without blocking; returns False once closed."""
        with self._cond:
            if self._closed:
                return False
            if len(self._buffer) >= self.maxsize:
                self._buffer.popleft()
                self.dropped += 1
            self._buffer.append(change)
            self._cond.notify_all()
            self._wake_waiters()
        return True

    def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Next queued change, or None on timeout or once closed and drained."""
        with self._cond:
            self._cond.wait_for(lambda: self._buffer or self._closed, timeout)
            if self._buffer:
                return self._buffer.popleft()
            return None

    async def aget(self, timeout: float | None = None) -> ChangeEvent | None:
        """Awaitable :meth:`get` that does not hold a worker thread."""
        waiter = (asyncio.get_running_loop(), asyncio.Event())
        with self._cond:
            if self._buffer:
                return self._buffer.popleft()
            if self._closed:
                return None
            self._waiters.add(waiter)
        try:
            await asyncio.wait_for(waiter[1].wait(), timeout)
        except asyncio.TimeoutError:
            pass
        finally:
            with self._cond:
                self._waiters.discard(waiter)
        with self._cond:
            if self._buffer:
                return self._buffer.popleft()
            return None

    def _wake_waiters(self) -> None:
        # Called with self._cond held; publishers may run on any thread.
        for loop, event in list(self._waiters):
            try:
                loop.call_soon_threadsafe(event.set)
            except RuntimeError:
                self._waiters.discard((loop, event))

    def close(self) -> None:
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()
            self._wake_waiters()
        self.broadcaster.unsubscribe(self)


class Broadcaster:
    """In-process registry of subscriptions and relays."""

    def __init__(self, *, buffer_size: int = DEFAULT_BUFFER_SIZE):
        self.buffer_size = buffer_size
        self._lock = threading.Lock()
        self._subscriptions: dict[int, set[Subscription]] = {}
        self._relays: list[Callable[[ChangeEvent], None]] = []

    def subscribe(self, event_id: int, *, maxsize: int | None = None) -> Subscription:
        sub = Subscription(self, int(event_id), maxsize or self.buffer_size)
        with self._lock:
            self._subscriptions.setdefault(sub.event_id, set()).add(sub)
        logger.debug("Subscribed to event %s", sub.event_id)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(subscription.event_id)
            if subs is None:
                return
            subs.discard(subscription)
            if not subs:
                del self._subscriptions[subscription.event_id]
        logger.debug("Unsubscribed from event %s", subscription.event_id)

    def subscriber_count(self, event_id: int | None = None) -> int:
        with self._lock:
            if event_id is not None:
                return len(self._subscriptions.get(int(event_id), ()))
            return sum(len(subs) for subs in self._subscriptions.values())

    def add_relay(self, relay: Callable[[ChangeEvent], None]) -> None:
        with self._lock:
            if relay not in self._relays:
                self._relays.append(relay)

    def remove_relay(self, relay: Callable[[ChangeEvent], None]) -> None:
        with self._lock:
            if relay in self._relays:
                self._relays.remove(relay)

    def publish(self, change: ChangeEvent) -> int:
        """Deliver ``change``; returns how many local subscriptions got it."""
        return self.deliver(change)

    def deliver(self, change: ChangeEvent) -> int:
        with self._lock:
            targets = list(self._subscriptions.get(int(change.event_id), ()))
            relays = list(self._relays)

        delivered = 0
        for sub in targets:
            if sub.offer(change):
                delivered += 1

        for relay in relays:
            try:
                relay(change)
            except Exception as exc:  # noqa: BLE001
                error = TransportError(f"relay {relay!r} failed for {change.type}")
                error.__cause__ = exc
                logger.warning("Realtime delivery degraded: %s (%s)", error, exc)
        return delivered


class RedisBroadcaster(Broadcaster):
    """Broadcaster sharing delivery between processes through Redis pub/sub.

    A listener thread relays every message on the event channels to the local
    subscribers of this process. It reconnects with exponential backoff when
    Redis goes away; while it is down, changes published here are also
    delivered locally so this process's viewers keep receiving them.
    """

    channel_prefix = "event_checkin:realtime:"

    def __init__(  # noqa: PLR0913
        self,
        client: redis.Redis,
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        channel_prefix: str | None = None,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
    ):
        super().__init__(buffer_size=buffer_size)
        self.client = client
        if channel_prefix:
            self.channel_prefix = channel_prefix
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.listening = False
        self._pubsub = None
        self._listener: threading.Thread | None = None
        self._stopping = threading.Event()

    @classmethod
    def from_url(cls, url: str, **kwargs) -> RedisBroadcaster:
        return cls(redis.Redis.from_url(url), **kwargs)

    def channel_for(self, event_id: int) -> str:
        return f"{self.channel_prefix}{int(event_id)}"

    def publish(self, change: ChangeEvent) -> int:
        """Publish through Redis; returns the number of listening processes.

        Falls back to local delivery when Redis is unreachable or this
        process's listener is not connected.
        """
        data = json.dumps(change.as_message(), default=str)
        try:
            channel = self.channel_for(change.event_id)
            receivers = int(self.client.publish(channel, data))
        except redis.RedisError as exc:
            logger.warning("Redis publish failed, delivering locally only: %s", exc)
            return self.deliver(change)
        if not self.listening:
            self.deliver(change)
        return receivers

    @property
    def listener_alive(self) -> bool:
        return self._listener is not None and self._listener.is_alive()

    def start(self) -> None:
        """Run the listener thread; connection errors are retried there."""
        if self.listener_alive:
            return
        self._stopping.clear()
        self._listener = threading.Thread(
            target=self._listen,
            name="realtime-redis-listener",
            daemon=True,
        )
        self._listener.start()

    def stop(self) -> None:
        self._stopping.set()
        self._close_pubsub()
        self._listener = None

    def _close_pubsub(self) -> None:
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is None:
            return
        try:
            pubsub.close()
        except redis.RedisError as exc:
            logger.debug("Closing Redis pubsub failed: %s", exc)

    def _listen(self) -> None:
        delay = self.reconnect_delay
        while not self._stopping.is_set():
            try:
                pubsub = self.client.pubsub(ignore_subscribe_messages=True)
                self._pubsub = pubsub
                pubsub.psubscribe(f"{self.channel_prefix}*")
                self.listening = True
                delay = self.reconnect_delay
                logger.info("Realtime Redis listener subscribed")
                for message in pubsub.listen():
                    self.handle_message(message)
            except Exception as exc:  # noqa: BLE001 - keep listening after any failure
                if self._stopping.is_set():
                    break
                logger.warning(
                    "Realtime Redis listener disconnected, retrying in %.1fs: %s",
                    delay,
                    exc,
                )
            finally:
                self.listening = False
            if self._stopping.is_set():
                break
            self._close_pubsub()
            self._stopping.wait(delay)
            delay = min(max(delay, 0.0) * 2, self.max_reconnect_delay)
        self._close_pubsub()

    def handle_message(self, message: dict[str, Any]) -> int:
        if message.get("type") not in {"message", "pmessage"}:
            return 0
        data = message.get("data")
        if isinstance(data, (bytes, bytearray)):
            data = data.decode("utf-8", "ignore")
        try:
            change = ChangeEvent.from_message(json.loads(data))
        except (TypeError, ValueError, KeyError):
            logger.warning(
                "Dropping malformed realtime message on %s", message.get("channel")
            )
            return 0
        return self.deliver(change)


_broadcaster: Broadcaster | None = None
_broadcaster_lock = threading.Lock()


def _build_broadcaster_from_settings() -> Broadcaster:
    buffer_size = int(
        getattr(settings, "REALTIME_SUBSCRIBER_BUFFER", DEFAULT_BUFFER_SIZE)
    )
    if buffer_size <= 0:
        buffer_size = DEFAULT_BUFFER_SIZE
    backend = str(getattr(settings, "REALTIME_BROADCASTER", "local")).lower()
    broadcaster: Broadcaster | None = None
    if backend == "redis":
        try:
            broadcaster = RedisBroadcaster.from_url(
                settings.REDIS_URL, buffer_size=buffer_size
            )
        except (ValueError, redis.RedisError) as exc:
            logger.error("Redis broadcaster unavailable, using local delivery: %s", exc)
        else:
            broadcaster.start()
    if broadcaster is None:
        broadcaster = Broadcaster(buffer_size=buffer_size)

    if getattr(settings, "REALTIME_SOCKETIO_ENABLED", False):
        from event_checkin.realtime.socketio import relay_to_socketio  # noqa: PLC0415

        broadcaster.add_relay(relay_to_socketio)
    logger.info("Realtime broadcaster ready (%s)", type(broadcaster).__name__)
    return broadcaster


def get_broadcaster() -> Broadcaster:
    global _broadcaster  # noqa: PLW0603
    if _broadcaster is None:
        with _broadcaster_lock:
            if _broadcaster is None:
                _broadcaster = _build_broadcaster_from_settings()
    return _broadcaster


def set_broadcaster(broadcaster: Broadcaster | None) -> None:
    """Swap the process-wide broadcaster (None rebuilds it from settings)."""
    global _broadcaster  # noqa: PLW0603
    with _broadcaster_lock:
        if isinstance(_broadcaster, RedisBroadcaster):
            _broadcaster.stop()
        _broadcaster = broadcaster
