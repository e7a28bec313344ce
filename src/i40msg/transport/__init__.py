"""Transport layer implementations.

The ZeroMQ and RabbitMQ backends are imported on first use, so that pyzmq
and pika are only required by those who use them.
"""

import importlib
import os

from . import base
from . import loopback
from .base import (
    TransportError,
    TransportTimeout,
    TransportConnectionError,
    TransportPortError,
    matches,
)

backends = {
    "loopback": "i40msg.transport.loopback",
    "zmq": "i40msg.transport.zmq.publish",
    "rabbitmq": "i40msg.transport.rabbitmq.publish",
}


def backend(name=None):
    """Return the module implementing the transport *name*; if *name* is
    not specified, the I40MSG_TRANSPORT environment variable decides,
    defaulting to ZeroMQ."""

    if name is None:
        name = os.environ.get("I40MSG_TRANSPORT", "zmq")

    name = name.lower()

    try:
        module = backends[name]
    except KeyError:
        raise ValueError(f"unknown transport backend: {name!r}") from None

    return importlib.import_module(module)


def create(configuration):
    """Instantiate the transport described by *configuration*, a
    :class:`i40msg.config.Configuration` or any mapping with the same
    keys. The transport is returned unconnected."""

    name = configuration.get("transport")
    module = backend(name)
    name = module.__name__

    host = configuration.get("host") or "localhost"
    port = configuration.get("port")

    if name == backends["loopback"]:
        return module.Transport()

    if name == backends["zmq"]:
        frontend = int(port) if port else module.default_frontend_port
        backend_port = configuration.get("backend_port")
        backend_port = int(backend_port) if backend_port else frontend + 1
        return module.Transport(host, frontend, backend_port)

    return module.Transport(
        host=host,
        port=int(port) if port else module.default_port,
        username=configuration.get("username"),
        password=configuration.get("password"),
        client_id=configuration.get("client_id"),
    )
