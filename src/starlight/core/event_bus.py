"""In-process publish/subscribe bus for collection change notifications.

Views subscribe to a topic when they mount and unsubscribe on teardown.  A
component that mutates a collection publishes the matching topic once the
mutation (and its cascade) has been persisted.  Messages carry no payload:
subscribers re-read the collection store to learn what changed, so the bus
never needs to know entity schemas.

Topics::

    content-changed        content items were uploaded, edited or deleted
    subscriptions-changed  an identity's subscriptions or the communities changed
    playlists-changed      playlists (or their embedded snapshots) changed

Usage::

    bus = EventBus()
    token = bus.subscribe(Topic.PLAYLISTS_CHANGED, sidebar.reload)
    ...
    bus.publish(Topic.PLAYLISTS_CHANGED)
    token.unsubscribe()

``publish`` is synchronous: every handler registered for the topic runs on
the calling thread, in registration order, before ``publish`` returns.  A
handler that raises is logged at WARNING and does not stop later handlers;
the mutation it reacts to has already been persisted.
"""

from __future__ import annotations

import enum
import itertools
import logging
from typing import Callable

logger = logging.getLogger(__name__)

Handler = Callable[[], None]


class Topic(str, enum.Enum):
    CONTENT_CHANGED = "content-changed"
    SUBSCRIPTIONS_CHANGED = "subscriptions-changed"
    PLAYLISTS_CHANGED = "playlists-changed"


class Subscription:
    """Token returned by :meth:`EventBus.subscribe`.

    Can be used as a context manager to scope a subscription::

        with bus.subscribe(Topic.CONTENT_CHANGED, refresh):
            ...
    """

    def __init__(self, bus: "EventBus", topic: Topic, token: int) -> None:
        self.bus = bus
        self.topic = topic
        self.token = token

    @property
    def active(self) -> bool:
        return self.bus._is_registered(self.topic, self.token)

    def unsubscribe(self) -> None:
        """Stop receiving notifications.  Calling it again is a no-op."""
        self.bus._remove(self.topic, self.token)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class EventBus:
    """Synchronous topic-based publish/subscribe.

    Owned by the application root and passed to every component that
    publishes or subscribes.
    """

    def __init__(self) -> None:
        self._handlers: dict[Topic, dict[int, Handler]] = {t: {} for t in Topic}
        self._tokens = itertools.count(1)

    def subscribe(self, topic: Topic | str, handler: Handler) -> Subscription:
        """Register *handler* for *topic* and return its unsubscribe token.

        *topic* may be given by name (``"content-changed"``).

        Raises:
            ValueError: *topic* names no known topic.
        """
        topic = Topic(topic)
        token = next(self._tokens)
        self._handlers[topic][token] = handler
        logger.debug("event_bus: subscribed", extra={"topic": topic.value, "token": token})
        return Subscription(self, topic, token)

    def publish(self, topic: Topic | str) -> int:
        """Invoke every handler of *topic* in registration order.

        Returns:
            Number of handlers that completed without raising.

        Raises:
            ValueError: *topic* names no known topic.  No handler runs.
        """
        topic = Topic(topic)
        # Snapshot so handlers may (un)subscribe while being notified.
        handlers = list(self._handlers[topic].items())
        delivered = 0
        for token, handler in handlers:
            try:
                handler()
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "event_bus: handler failed topic=%s token=%s: %s",
                    topic.value,
                    token,
                    exc,
                )
            else:
                delivered += 1
        logger.debug(
            "event_bus: published topic=%s handlers=%d delivered=%d",
            topic.value,
            len(handlers),
            delivered,
        )
        return delivered

    def publish_many(self, topics: "list[Topic] | tuple[Topic, ...]") -> None:
        """Publish several topics, each once, in the given order."""
        seen: set[Topic] = set()
        for topic in map(Topic, topics):
            if topic not in seen:
                seen.add(topic)
                self.publish(topic)

    def subscriber_count(self, topic: Topic | str) -> int:
        return len(self._handlers[Topic(topic)])

    def _is_registered(self, topic: Topic, token: int) -> bool:
        return token in self._handlers[topic]

    def _remove(self, topic: Topic, token: int) -> None:
        if self._handlers[topic].pop(token, None) is not None:
            logger.debug("event_bus: unsubscribed", extra={"topic": topic.value, "token": token})
