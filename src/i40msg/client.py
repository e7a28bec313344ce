""" The client-facing half of i40msg. A :class:`MessagingClient` ties a
    transport to the protocol codec, and every received message flows
    through the same pipeline: decode, record in the conversation tracker,
    buffer in the inbox, and finally dispatch to any matching callbacks.
"""

import logging

from . import callbacks
from . import config
from . import conversation
from . import inbox
from . import poll
from . import transport as transports

from .protocol import wire
from .protocol.builder import MessageBuilder
from .protocol.errors import DecodeError

logger = logging.getLogger(__name__)


default_topic = 'i40/messages'


class MessagingClient:
    """ Publish and receive I4.0 messages over the provided *transport*,
        which should not be connected yet. Unless told otherwise the client
        publishes to, and after :func:`connect` listens on, the default
        *topic*. The *capacity* bounds the inbox; see
        :class:`i40msg.inbox.Inbox`.

        Callbacks are invoked on the transport's receiving thread, and
        should be as lightweight as possible. A callback that raises does
        not prevent the remaining callbacks from running; the exception is
        handed to *on_error*, or logged if no handler is provided.
    """

    def __init__(self, transport, topic=default_topic, capacity=inbox.default_capacity, on_error=None, timeout=conversation.default_timeout):

        self.transport = transport
        self.topic = topic

        self.callbacks = callbacks.CallbackRegistry(on_error)
        self.conversations = conversation.ConversationTracker(timeout)
        self.inbox = inbox.Inbox(capacity)

        transport.listen(self._received)


    @classmethod
    def from_config(cls, configuration=None, **kwargs):
        """ Create a client, and its transport, from a
            :class:`i40msg.config.Configuration`. If no *configuration* is
            provided it is obtained from :func:`i40msg.config.load`. Any
            keyword arguments are passed on to the constructor.
        """

        if configuration is None:
            configuration = config.load()

        kwargs.setdefault('topic', configuration.get('topic') or default_topic)

        transport = transports.create(configuration)
        return cls(transport, **kwargs)


    def __enter__(self):
        self.connect()
        return self


    def __exit__(self, *exc):
        self.close()


    @property
    def connected(self):
        return self.transport.connected


    def connect(self):
        """ Connect the transport and subscribe to the default topic.
        """

        # Subscribing first means nothing published right after the
        # connection is established can slip past the subscription.

        self.transport.subscribe(self.topic)
        self.transport.connect()


    def disconnect(self):
        self.transport.disconnect()


    def close(self):
        """ Disconnect, and stop any periodic conversation sweep started
            with :func:`sweep`. The client cannot be reconnected afterwards.
        """

        poll.stop(self.conversations.cleanup_expired)
        self.transport.close()
        self.transport.listen(None)


    def subscribe(self, topic):
        self.transport.subscribe(topic)


    def unsubscribe(self, topic):
        self.transport.unsubscribe(topic)


    def publish(self, message, topic=None):
        """ Encode and publish *message* on *topic*, or on the default topic
            if none is specified. A :class:`MessageBuilder` is accepted in
            place of a message, and is built first. The message is recorded
            in its conversation only after the transport accepted it.
            Returns the message as published.
        """

        if isinstance(message, MessageBuilder):
            message = message.build()

        message.frame.validate()

        if topic is None:
            topic = self.topic

        data = wire.encode(message)
        self.transport.publish(topic, data)
        self.conversations.add_message(message)

        logger.debug('published %s message for conversation %s on %r', message.type, message.conversation_id, topic)
        return message


    def _received(self, topic, data):
        """ The handler installed on the transport. A payload that cannot be
            decoded is dropped without touching any client state.
        """

        try:
            message = wire.decode(data)
        except DecodeError as e:
            logger.warning('dropping undecodable message on %r: %s', topic, e)
            return

        self.conversations.add_message(message)
        self.inbox.enqueue(message, topic)
        self.callbacks.invoke(message, topic)


    # Callback registration.

    def on_message(self, callback):
        """ Invoke *callback* with every received message.
        """

        return self.callbacks.register(callbacks.GLOBAL, None, callback)


    def on_type(self, type, callback):
        """ Invoke *callback* with every received message of this message
            *type*; the comparison is an exact string match.
        """

        return self.callbacks.register(callbacks.TYPE, type, callback)


    def on_sender(self, sender, callback):
        return self.callbacks.register(callbacks.SENDER, sender, callback)


    def on_receiver(self, receiver, callback):
        return self.callbacks.register(callbacks.RECEIVER, receiver, callback)


    def on_conversation(self, id, callback):
        return self.callbacks.register(callbacks.CONVERSATION, id, callback)


    def on_topic(self, topic, callback):
        """ Invoke *callback* with every message received on *topic*, as
            ``callback(message, topic)``. The topic comparison ignores case,
            and is against the concrete topic the message arrived on; a
            wildcard here will not match anything.
        """

        return self.callbacks.register(callbacks.TOPIC, topic, callback)


    def remove(self, kind, selector, callback):
        """ Remove a callback registered with one of the ``on_*`` methods.
            The *kind* is one of the constants in :mod:`i40msg.callbacks`,
            for example :data:`i40msg.callbacks.TYPE`. Returns the number of
            registrations removed.
        """

        return self.callbacks.unregister(kind, selector, callback)


    # Inbox access.

    def receive(self, predicate=None, timeout=None):
        """ Remove and return the oldest received message satisfying
            *predicate*, a callable that receives a message. If there is no
            such message, wait up to *timeout* seconds for one to arrive; with
            no *timeout* this does not wait at all. Returns None if nothing
            matched.
        """

        if predicate is None:
            match = None
        else:
            match = lambda entry: predicate(entry.message)

        if timeout is None:
            entry = self.inbox.try_dequeue(match)
        else:
            entry = self.inbox.wait(match, timeout)

        if entry is None:
            return None

        return entry.message


    def drain(self, predicate=None):
        """ Remove and return every received message satisfying *predicate*,
            oldest first.
        """

        if predicate is None:
            match = None
        else:
            match = lambda entry: predicate(entry.message)

        return [entry.message for entry in self.inbox.dequeue_all(match)]


    # Conversation tracking.

    def create_conversation(self, timeout=None):
        return self.conversations.create(timeout)


    def conversation(self, id):
        """ Return the history of the conversation *id*, sent and received
            messages alike, oldest first.
        """

        return self.conversations.messages(id)


    def complete_conversation(self, id):
        self.conversations.complete(id)


    def cleanup_expired(self):
        return self.conversations.cleanup_expired()


    def sweep(self, period):
        """ Call :func:`cleanup_expired` every *period* seconds on a
            background thread. A *period* of None or zero stops the sweep.
        """

        poll.start(self.conversations.cleanup_expired, period)


# end of class MessagingClient


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
