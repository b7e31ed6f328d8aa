"""
Change Feed

Routes row-level change events (insert, update, delete) from the database
layer to subscribers. Each subscription owns a bounded queue: a subscriber
that falls behind loses events and is flagged so it can reload its state
instead of slowing publishers down.

Two transports are available. The local one delivers in-process and is
used by tests and single-process deployments. The Redis one fans events
out over pub/sub so every worker process sees changes committed by any
other.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder

logger = logging.getLogger(__name__)

EVENT_TYPES = ("insert", "update", "delete")


@dataclass(frozen=True)
class ChangeEvent:
    """One committed change to a row of ``table``."""

    table: str
    type: str
    row: dict[str, Any]
    old: dict[str, Any] | None = None

    def __post_init__(self):
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Unknown change type {self.type!r}")

    def matches(self, filters: dict[str, Any]) -> bool:
        source = self.row if self.row else (self.old or {})
        return all(source.get(key) == value for key, value in filters.items())

    def to_dict(self) -> dict[str, Any]:
        return {"table": self.table, "type": self.type, "row": self.row, "old": self.old}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), cls=DjangoJSONEncoder)

    @classmethod
    def from_json(cls, payload: str | bytes) -> "ChangeEvent":
        data = json.loads(payload)
        return cls(table=data["table"], type=data["type"], row=data.get("row") or {}, old=data.get("old"))


@dataclass(eq=False)
class Subscription:
    """A subscriber's view of one table, narrowed by equality filters."""

    feed: "ChangeFeed"
    table: str
    filters: dict[str, Any]
    maxsize: int
    overflowed: bool = False
    closed: bool = False
    _queue: queue.Queue = field(init=False, repr=False)

    def __post_init__(self):
        self._queue = queue.Queue(maxsize=self.maxsize)

    def offer(self, event: ChangeEvent) -> bool:
        """Queue ``event`` if it is for this subscription. Never blocks."""
        if self.closed or event.table != self.table or not event.matches(self.filters):
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            if not self.overflowed:
                logger.warning("Subscription to %s %s overflowed, dropping events", self.table, self.filters)
            self.overflowed = True
            return False
        return True

    def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Next event, waiting up to ``timeout`` seconds (0 means don't wait)."""
        if self.closed:
            return None
        try:
            if timeout == 0:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[ChangeEvent]:
        events = []
        while True:
            event = self.get(timeout=0)
            if event is None:
                return events
            events.append(event)

    def reset_overflow(self) -> bool:
        """Clear the overflow flag; returns whether it was set."""
        was_overflowed = self.overflowed
        self.overflowed = False
        return was_overflowed

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.feed.unsubscribe(self)
        self.drain_discard()

    def drain_discard(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return


class LocalTransport:
    """Delivers events to subscribers of the same process."""

    def __init__(self):
        self._feed: ChangeFeed | None = None

    def attach(self, feed: "ChangeFeed") -> None:
        self._feed = feed

    def publish(self, event: ChangeEvent) -> None:
        if self._feed is not None:
            self._feed.dispatch(event)

    def close(self) -> None:
        self._feed = None


class RedisTransport:
    """Fans events out over a Redis pub/sub channel.

    A background thread listens on the channel and hands decoded events to
    the local subscribers' queues.
    """

    def __init__(self, url: str, channel: str = "hostelhub:changes"):
        import redis

        self.channel = channel
        self._client = redis.Redis.from_url(url)
        self._pubsub = None
        self._thread = None
        self._feed: ChangeFeed | None = None

    def attach(self, feed: "ChangeFeed") -> None:
        self._feed = feed
        self._pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        self._pubsub.subscribe(**{self.channel: self._on_message})
        self._thread = self._pubsub.run_in_thread(sleep_time=0.1, daemon=True)
        logger.info("Listening for change events on redis channel %s", self.channel)

    def _on_message(self, message: dict) -> None:
        if self._feed is None:
            return
        try:
            event = ChangeEvent.from_json(message["data"])
        except (ValueError, KeyError, TypeError):
            logger.error("Discarding malformed change event: %r", message.get("data"), exc_info=True)
            return
        self._feed.dispatch(event)

    def publish(self, event: ChangeEvent) -> None:
        self._client.publish(self.channel, event.to_json())

    def close(self) -> None:
        self._feed = None
        if self._thread is not None:
            self._thread.stop()
            self._thread = None
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None


class ChangeFeed:
    """Subscription registry plus a transport that carries events to it."""

    def __init__(self, transport=None, queue_size: int | None = None):
        self.queue_size = queue_size or getattr(settings, "REALTIME_QUEUE_SIZE", 256)
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()
        self.transport = transport or LocalTransport()
        self.transport.attach(self)

    def subscribe(self, table: str, filters: dict[str, Any] | None = None, maxsize: int | None = None) -> Subscription:
        subscription = Subscription(
            feed=self,
            table=table,
            filters=dict(filters or {}),
            maxsize=maxsize or self.queue_size,
        )
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug("Subscribed to %s %s", table, subscription.filters)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        subscription.closed = True

    def publish(self, event: ChangeEvent) -> None:
        try:
            self.transport.publish(event)
        except Exception:  # noqa: BLE001 - a lost event is recovered by refetch
            logger.error("Failed to publish %s event on %s", event.type, event.table, exc_info=True)

    def dispatch(self, event: ChangeEvent) -> int:
        """Hand an event to every matching subscription; returns how many took it."""
        with self._lock:
            subscriptions = list(self._subscriptions)
        return sum(1 for subscription in subscriptions if subscription.offer(event))

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def close(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.close()
        self.transport.close()


_feed: ChangeFeed | None = None
_feed_lock = threading.Lock()


def build_feed() -> ChangeFeed:
    backend = getattr(settings, "REALTIME_BACKEND", "local")
    if backend == "redis":
        return ChangeFeed(RedisTransport(settings.REALTIME_REDIS_URL))
    if backend != "local":
        raise ValueError(f"Unknown REALTIME_BACKEND {backend!r}")
    return ChangeFeed(LocalTransport())


def get_feed() -> ChangeFeed:
    """Process-wide feed, created on first use."""
    global _feed
    with _feed_lock:
        if _feed is None:
            _feed = build_feed()
        return _feed


def reset_feed() -> None:
    global _feed
    with _feed_lock:
        if _feed is not None:
            _feed.close()
        _feed = None
