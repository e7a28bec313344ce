"""Transport interface.

This is the (small) contract that transport implementations should follow.
It lives outside :mod:`i40msg.protocol` so the protocol remains
transport-agnostic. A transport moves opaque bytes between topics; it knows
nothing about messages, and the core never talks to the network except
through it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportTimeout(TransportError):
    """An operation did not complete in time."""


class TransportConnectionError(TransportError):
    """The transport is not connected, or could not establish a connection."""


class TransportPortError(TransportError):
    """No suitable port could be bound or connected."""


Handler = Callable[[str, bytes], None]


def matches(pattern: str, topic: str) -> bool:
    """Return True if *topic* matches the subscription *pattern*.

    Patterns follow MQTT conventions: levels are separated by ``/``, ``+``
    matches exactly one level, and a trailing ``#`` matches any number of
    levels, including none.
    """

    if pattern == "#":
        return True

    pattern_levels = pattern.split("/")
    topic_levels = topic.split("/")

    for index, level in enumerate(pattern_levels):
        if level == "#":
            return index == len(pattern_levels) - 1
        if index >= len(topic_levels):
            return False
        if level != "+" and level != topic_levels[index]:
            return False

    return len(pattern_levels) == len(topic_levels)


class Transport(ABC):
    """Minimal contract for a publish/subscribe transport.

    Received messages are announced to the single handler installed with
    :func:`listen`, as ``handler(topic, data)``, on whatever thread the
    transport receives them. Whether a publisher receives its own messages
    back is up to the transport; the loopback, ZeroMQ and RabbitMQ
    transports all echo them to a subscribed publisher, the way an MQTT
    broker does.
    """

    def __init__(self) -> None:
        self._handler: Optional[Handler] = None
        self.connect_listeners: List[Callable[[], None]] = []
        self.disconnect_listeners: List[Callable[[], None]] = []

    @abstractmethod
    def connect(self) -> None:
        """Establish the underlying connection."""

    @abstractmethod
    def disconnect(self) -> None:
        """Tear down the underlying connection."""

    @abstractmethod
    def publish(self, topic: str, data: bytes) -> None:
        """Publish *data* on *topic*. Raises TransportConnectionError if the
        transport is not connected."""

    @abstractmethod
    def subscribe(self, topic: str) -> None:
        """Start receiving messages published on *topic*."""

    @abstractmethod
    def unsubscribe(self, topic: str) -> None:
        """Stop receiving messages published on *topic*."""

    @property
    def connected(self) -> bool:
        """Whether the transport is currently connected."""
        return False

    def listen(self, handler: Optional[Handler]) -> None:
        """Install the message-received *handler*, replacing any previous
        one. None removes it."""
        self._handler = handler

    def close(self) -> None:
        if self.connected:
            self.disconnect()

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _deliver(self, topic: str, data: bytes) -> None:
        handler = self._handler
        if handler is None:
            return

        # The handler runs on a transport thread; an exception escaping
        # here would take that thread down with it.

        try:
            handler(topic, data)
        except Exception:
            logger.exception("message handler failed for topic %r", topic)

    def _announce(self, listeners: List[Callable[[], None]]) -> None:
        for listener in tuple(listeners):
            try:
                listener()
            except Exception:
                logger.exception("connection listener %r failed", listener)

    def _require_connected(self) -> None:
        if not self.connected:
            raise TransportConnectionError(f"{type(self).__name__} is not connected")
