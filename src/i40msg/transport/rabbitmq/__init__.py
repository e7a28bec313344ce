"""RabbitMQ transport, by way of a topic exchange."""

from . import publish
from .publish import Transport
