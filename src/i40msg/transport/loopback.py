"""In-process transport.

Every :class:`Transport` attached to the same :class:`Hub` sees what the
others publish, subject to its subscriptions, exactly as if they were
connected to the same broker. Each transport delivers on its own thread, so
publishing never runs a subscriber's handler on the publisher's thread.
"""

from __future__ import annotations

import queue
import threading
from typing import Optional, Set

from . import base


class Hub:
    """The shared "broker" for loopback transports."""

    def __init__(self) -> None:
        self._members: Set["Transport"] = set()
        self._lock = threading.Lock()

    def attach(self, transport: "Transport") -> None:
        with self._lock:
            self._members.add(transport)

    def detach(self, transport: "Transport") -> None:
        with self._lock:
            self._members.discard(transport)

    def route(self, topic: str, data: bytes) -> int:
        """Hand *data* to every attached transport subscribed to *topic*.
        Returns the number of transports it was handed to."""

        with self._lock:
            members = tuple(self._members)

        delivered = 0
        for member in members:
            if member.wants(topic):
                member._enqueue(topic, data)
                delivered += 1

        return delivered


default_hub = Hub()


class Transport(base.Transport):
    """Loopback transport attached to *hub*, the module default if not
    specified."""

    def __init__(self, hub: Optional[Hub] = None) -> None:
        super().__init__()

        if hub is None:
            hub = default_hub

        self.hub = hub
        self._subscriptions: Set[str] = set()
        self._lock = threading.Lock()
        self._queue: Optional[queue.SimpleQueue] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def connected(self) -> bool:
        return self._thread is not None

    def connect(self) -> None:
        if self.connected:
            return

        self._queue = queue.SimpleQueue()
        self._thread = threading.Thread(target=self._run, args=(self._queue,), daemon=True)
        self._thread.start()
        self.hub.attach(self)
        self._announce(self.connect_listeners)

    def disconnect(self) -> None:
        if not self.connected:
            return

        self.hub.detach(self)
        self._queue.put(None)
        thread = self._thread
        self._thread = None
        self._queue = None

        if thread is not threading.current_thread():
            thread.join(timeout=5)

        self._announce(self.disconnect_listeners)

    def publish(self, topic: str, data: bytes) -> None:
        self._require_connected()
        self.hub.route(topic, bytes(data))

    def subscribe(self, topic: str) -> None:
        with self._lock:
            self._subscriptions.add(topic)

    def unsubscribe(self, topic: str) -> None:
        with self._lock:
            self._subscriptions.discard(topic)

    def wants(self, topic: str) -> bool:
        with self._lock:
            patterns = tuple(self._subscriptions)

        for pattern in patterns:
            if base.matches(pattern, topic):
                return True
        return False

    def _enqueue(self, topic: str, data: bytes) -> None:
        pending = self._queue
        if pending is not None:
            pending.put((topic, data))

    def _run(self, pending: queue.SimpleQueue) -> None:
        while True:
            item = pending.get()
            if item is None:
                break

            topic, data = item
            self._deliver(topic, data)
