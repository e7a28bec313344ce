"""ZeroMQ transport, by way of a publish/subscribe :class:`publish.Proxy`."""

from . import publish
from .publish import Proxy, Transport
