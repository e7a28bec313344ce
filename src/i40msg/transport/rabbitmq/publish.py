"""RabbitMQ publish/subscribe transport.

Topics are mapped onto a RabbitMQ topic exchange: the MQTT-style topic
``i40/messages`` becomes the routing key ``i40.messages``, and the
subscription wildcards ``+`` and ``#`` become ``*`` and ``#``. Each
transport consumes from its own exclusive, auto-deleted queue, so a
subscribed publisher receives its own messages back.

All channel operations happen on the connection thread; other threads hand
work to it via ``add_callback_threadsafe``.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional, Set

import pika
import pika.exceptions

from .. import base
from ..base import TransportConnectionError, TransportTimeout

logger = logging.getLogger(__name__)

default_port = 5672
default_exchange = "i40msg"


def routing_key(topic: str) -> str:
    levels = topic.split("/")
    levels = ["*" if level == "+" else level for level in levels]
    return ".".join(levels)


def topic_name(key: str) -> str:
    return key.replace(".", "/")


class Transport(base.Transport):

    timeout = 10

    def __init__(
        self,
        host: str = "localhost",
        port: int = default_port,
        username: Optional[str] = None,
        password: Optional[str] = None,
        virtual_host: str = "/",
        exchange: str = default_exchange,
        client_id: Optional[str] = None,
    ):
        super().__init__()

        self.host = host
        self.port = int(port)
        self.username = username
        self.password = password
        self.virtual_host = virtual_host
        self.exchange = exchange
        self.client_id = client_id

        self._subscriptions: Set[str] = set()
        self._lock = threading.Lock()
        self._outgoing: queue.SimpleQueue = queue.SimpleQueue()
        self._connection = None
        self._channel = None
        self._queue_name: Optional[str] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._failure: Optional[BaseException] = None
        self._closing = False

    def _parameters(self) -> pika.ConnectionParameters:
        if self.username:
            credentials = pika.PlainCredentials(self.username, self.password or "")
        else:
            credentials = pika.ConnectionParameters.DEFAULT_CREDENTIALS

        if self.client_id:
            properties = {"connection_name": self.client_id}
        else:
            properties = None

        return pika.ConnectionParameters(
            host=self.host,
            port=self.port,
            virtual_host=self.virtual_host,
            credentials=credentials,
            client_properties=properties,
            heartbeat=600,
            blocked_connection_timeout=300,
        )

    @property
    def connected(self) -> bool:
        connection = self._connection
        return connection is not None and connection.is_open

    def connect(self) -> None:
        if self.connected:
            return

        self._ready.clear()
        self._failure = None
        self._closing = False

        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

        if not self._ready.wait(self.timeout):
            raise TransportTimeout(f"no connection to {self.host}:{self.port} in {self.timeout} sec")

        if self._failure is not None:
            raise TransportConnectionError(f"cannot connect to {self.host}:{self.port}: {self._failure}") from self._failure

        self._announce(self.connect_listeners)

    def disconnect(self) -> None:
        connection = self._connection
        if connection is None:
            return

        self._closing = True

        try:
            connection.add_callback_threadsafe(self._stop)
        except pika.exceptions.AMQPError:
            pass

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.timeout)

    def publish(self, topic: str, data: bytes) -> None:
        # The connection thread clears _connection when it exits; read it once.

        connection = self._connection
        if connection is None or not connection.is_open:
            raise TransportConnectionError(f"{type(self).__name__} is not connected")

        self._outgoing.put((routing_key(topic), bytes(data)))
        try:
            connection.add_callback_threadsafe(self._flush)
        except pika.exceptions.AMQPError as exc:
            raise TransportConnectionError(str(exc)) from exc

    def subscribe(self, topic: str) -> None:
        with self._lock:
            if topic in self._subscriptions:
                return
            self._subscriptions.add(topic)

        self._later(lambda: self._bind(topic))

    def unsubscribe(self, topic: str) -> None:
        with self._lock:
            if topic not in self._subscriptions:
                return
            self._subscriptions.discard(topic)

        self._later(lambda: self._unbind(topic))

    def _later(self, callback) -> None:
        """Run *callback* on the connection thread, if there is one. A
        subscription change made while disconnected is applied on the next
        connect."""

        connection = self._connection
        if connection is None:
            return

        try:
            connection.add_callback_threadsafe(callback)
        except pika.exceptions.AMQPError:
            logger.debug("connection closed before a subscription change was queued")

    # Everything below runs on the connection thread.

    def _bind(self, topic: str) -> None:
        self._channel.queue_bind(exchange=self.exchange, queue=self._queue_name, routing_key=routing_key(topic))

    def _unbind(self, topic: str) -> None:
        self._channel.queue_unbind(exchange=self.exchange, queue=self._queue_name, routing_key=routing_key(topic))

    def _stop(self) -> None:
        self._channel.stop_consuming()

    def _flush(self) -> None:
        """Drain all queued outgoing messages."""

        while True:
            try:
                key, body = self._outgoing.get_nowait()
            except queue.Empty:
                break

            try:
                self._channel.basic_publish(exchange=self.exchange, routing_key=key, body=body)
            except pika.exceptions.AMQPError:
                logger.exception("publish to %r failed", key)

    def _on_message(self, _channel, method, _properties, body: bytes) -> None:
        self._deliver(topic_name(method.routing_key), body)

    def _run(self) -> None:
        try:
            connection = pika.BlockingConnection(self._parameters())
            channel = connection.channel()
            channel.exchange_declare(exchange=self.exchange, exchange_type="topic", durable=False)

            result = channel.queue_declare(queue="", exclusive=True, auto_delete=True)
            self._queue_name = result.method.queue
            self._channel = channel

            with self._lock:
                topics = tuple(self._subscriptions)

            for topic in topics:
                self._bind(topic)

            channel.basic_consume(queue=self._queue_name, on_message_callback=self._on_message, auto_ack=True)
        except (pika.exceptions.AMQPError, OSError) as exc:
            self._failure = exc
            self._ready.set()
            return

        self._connection = connection
        self._ready.set()

        try:
            channel.start_consuming()
        except pika.exceptions.AMQPError:
            if not self._closing:
                logger.exception("connection to %s:%d lost", self.host, self.port)
        finally:
            self._connection = None
            self._channel = None
            try:
                if connection.is_open:
                    connection.close()
            except pika.exceptions.AMQPError:
                pass

            self._announce(self.disconnect_listeners)
