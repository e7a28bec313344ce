"""ZeroMQ publish/subscribe transport.

ZeroMQ has no broker, so every participant connects to a :class:`Proxy`:
publishers connect a PUB socket to the proxy's XSUB (frontend) port, and
subscribers connect a SUB socket to its XPUB (backend) port. A
:class:`Transport` does both, and therefore receives its own messages back
whenever it is subscribed to the topic it publishes on.

Wire frames
    topic_with_trailing_dot, data

The trailing dot keeps ZeroMQ's prefix matching from delivering
``i40/messages2`` to a subscriber of ``i40/messages``. MQTT-style wildcards
are honored by subscribing to the literal prefix ahead of the first
wildcard and filtering the rest on arrival.
"""

from __future__ import annotations

import atexit
import logging
import queue
import threading
import weakref
from typing import Optional, Set

import zmq

from .. import base
from ..base import TransportConnectionError, TransportPortError

logger = logging.getLogger(__name__)

minimum_port = 10139
maximum_port = 13679
default_frontend_port = 10139
default_backend_port = 10140
zmq_context = zmq.Context()


def _bind(socket: zmq.Socket, address: str, port: Optional[int]) -> int:
    """ Bind *socket* to *port*, or to the first available port in the
        default range if *port* is None. Returns the bound port.
    """

    if port is not None:
        port = int(port)
        try:
            socket.bind(f"tcp://{address}:{port}")
        except zmq.ZMQError as exc:
            raise TransportPortError(f"port already in use: {port}") from exc
        return port

    for trial in range(minimum_port, maximum_port + 1):
        try:
            socket.bind(f"tcp://{address}:{trial}")
        except zmq.ZMQError:
            # Assume this port is in use.
            continue
        return trial

    raise TransportPortError(f"no ports available in range {minimum_port}:{maximum_port}")


def _prefix(pattern: str) -> bytes:
    """ The ZeroMQ subscription prefix for an MQTT-style *pattern*. A
        trailing ``#`` also matches the parent level itself, so the prefix
        stops short of the separator; :func:`Transport.wants` discards
        whatever else slips through.
    """

    levels = pattern.split("/")

    for index, level in enumerate(levels):
        if level in ("+", "#"):
            literal = "/".join(levels[:index])
            if index > 0 and level == "+":
                literal += "/"
            return literal.encode()

    return (pattern + ".").encode()


class Proxy:
    """ Forward everything published to the frontend port to every
        subscriber of the backend port. The proxy runs on its own thread
        until :func:`stop` is called. If a port is not specified the first
        available port in the default range is used.
    """

    def __init__(self, frontend_port: Optional[int] = None, backend_port: Optional[int] = None, address: str = "*"):

        self.frontend = zmq_context.socket(zmq.XSUB)
        self.frontend.setsockopt(zmq.LINGER, 0)
        self.backend = zmq_context.socket(zmq.XPUB)
        self.backend.setsockopt(zmq.LINGER, 0)

        try:
            self.frontend_port = _bind(self.frontend, address, frontend_port)
            self.backend_port = _bind(self.backend, address, backend_port)
        except TransportPortError:
            self.frontend.close()
            self.backend.close()
            raise

        internal = f"inproc://i40msg.Proxy:control:{id(self)}"
        self._control_rx = zmq_context.socket(zmq.PAIR)
        self._control_rx.bind(internal)
        self._control_tx = zmq_context.socket(zmq.PAIR)
        self._control_tx.connect(internal)

        self.thread = threading.Thread(target=self.run, daemon=True)
        self.thread.start()

    def run(self) -> None:
        try:
            zmq.proxy_steerable(self.frontend, self.backend, None, self._control_rx)
        except zmq.ContextTerminated:
            pass
        except zmq.ZMQError:
            logger.exception("proxy terminated abnormally")
        finally:
            self.frontend.close(linger=0)
            self.backend.close(linger=0)
            self._control_rx.close(linger=0)

    def stop(self, timeout: float = 5) -> None:
        if self.thread.is_alive():
            self._control_tx.send(b"TERMINATE")
            self.thread.join(timeout)

        self._control_tx.close(linger=0)


class Transport(base.Transport):
    """ PUB/SUB client of a :class:`Proxy` at *address*. Subscription changes
        are handed to the receiving thread, which owns the SUB socket; the
        PUB socket is shared by any publishing thread under a lock.
    """

    poll_timeout = 50

    def __init__(self, address: str = "localhost", frontend_port: int = default_frontend_port, backend_port: int = default_backend_port):
        super().__init__()

        self.address = address
        self.frontend_port = int(frontend_port)
        self.backend_port = int(backend_port)

        self._subscriptions: Set[str] = set()
        self._lock = threading.Lock()
        self._changes: Optional[queue.SimpleQueue] = None
        self._pub: Optional[zmq.Socket] = None
        self._pub_lock = threading.Lock()
        self.thread: Optional[threading.Thread] = None
        self.shutdown = False

    @property
    def connected(self) -> bool:
        return self._pub is not None

    def connect(self) -> None:
        if self.connected:
            return

        try:
            pub = zmq_context.socket(zmq.PUB)
            pub.setsockopt(zmq.LINGER, 0)
            pub.connect(f"tcp://{self.address}:{self.frontend_port}")

            sub = zmq_context.socket(zmq.SUB)
            sub.setsockopt(zmq.LINGER, 0)
            sub.connect(f"tcp://{self.address}:{self.backend_port}")
        except zmq.ZMQError as exc:
            raise TransportConnectionError(f"cannot connect to proxy at {self.address}: {exc}") from exc

        changes: queue.SimpleQueue = queue.SimpleQueue()
        with self._lock:
            for pattern in self._subscriptions:
                changes.put((zmq.SUBSCRIBE, pattern))
            self._changes = changes

        self.shutdown = False
        self.thread = threading.Thread(target=self.run, args=(sub, changes), daemon=True)
        self.thread.start()

        self._poll_flush(pub)
        self._pub = pub
        _live.add(self)
        self._announce(self.connect_listeners)

    def disconnect(self) -> None:
        if not self.connected:
            return

        self.shutdown = True
        thread = self.thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)
        self.thread = None

        with self._pub_lock:
            self._pub.close(linger=0)
            self._pub = None

        with self._lock:
            self._changes = None

        _live.discard(self)
        self._announce(self.disconnect_listeners)

    def publish(self, topic: str, data: bytes) -> None:
        frames = ((topic + ".").encode(), bytes(data))

        # The lock around the ZeroMQ socket is necessary in a multithreaded
        # application; otherwise, if two different threads both invoke
        # send_multipart(), the message parts can and will get mixed together.

        with self._pub_lock:
            if self._pub is None:
                raise TransportConnectionError("zmq transport is not connected")
            self._pub.send_multipart(frames)

    def subscribe(self, topic: str) -> None:
        with self._lock:
            if topic in self._subscriptions:
                return
            self._subscriptions.add(topic)
            if self._changes is not None:
                self._changes.put((zmq.SUBSCRIBE, topic))

    def unsubscribe(self, topic: str) -> None:
        with self._lock:
            if topic not in self._subscriptions:
                return
            self._subscriptions.discard(topic)
            if self._changes is not None:
                self._changes.put((zmq.UNSUBSCRIBE, topic))

    def wants(self, topic: str) -> bool:
        with self._lock:
            patterns = tuple(self._subscriptions)

        for pattern in patterns:
            if base.matches(pattern, topic):
                return True
        return False

    def _poll_flush(self, socket: zmq.Socket, timeout: float = 0.01) -> None:
        """ Poll a freshly connected socket in an effort to make sure the
            connection is established before proceeding. This is not
            deterministic, but has been observed to reduce PUB/SUB 'misses'
            of the first few messages.
        """

        poller = zmq.Poller()
        poller.register(socket, zmq.POLLIN | zmq.POLLOUT)
        poller.poll(timeout * 1000)

    def _apply(self, sub: zmq.Socket, changes: queue.SimpleQueue) -> None:
        while True:
            try:
                option, pattern = changes.get_nowait()
            except queue.Empty:
                return
            sub.setsockopt(option, _prefix(pattern))

    def run(self, sub: zmq.Socket, changes: queue.SimpleQueue) -> None:

        poller = zmq.Poller()
        poller.register(sub, zmq.POLLIN)

        try:
            while not self.shutdown:
                self._apply(sub, changes)
                for active, _flag in poller.poll(self.poll_timeout):
                    if active == sub:
                        parts = sub.recv_multipart()
                        self._incoming(parts)
        except zmq.ContextTerminated:
            pass
        except zmq.ZMQError:
            logger.exception("zmq receive loop failed")
        finally:
            sub.close(linger=0)

    def _incoming(self, parts) -> None:
        if len(parts) != 2:
            logger.warning("dropping zmq message with %d frames", len(parts))
            return

        topic = parts[0].decode("utf-8", errors="replace")
        if topic.endswith("."):
            topic = topic[:-1]

        # Wildcard subscriptions are only prefix-filtered by ZeroMQ.

        if self.wants(topic):
            self._deliver(topic, parts[1])


_live: "weakref.WeakSet[Transport]" = weakref.WeakSet()


def _cleanup() -> None:
    for transport in list(_live):
        try:
            transport.disconnect()
        except zmq.ZMQError:
            pass


atexit.register(_cleanup)
