""" Callback registration and dispatch for received messages. A callback is
    registered against one kind of predicate, and a received message is
    handed to every callback whose predicate matches it, in the order the
    callbacks were registered.
"""

import logging
import threading

from .protocol.errors import CallbackError

logger = logging.getLogger(__name__)


# Predicate kinds.

GLOBAL = 'global'
TYPE = 'type'
SENDER = 'sender'
RECEIVER = 'receiver'
CONVERSATION = 'conversation'
TOPIC = 'topic'

kinds = (GLOBAL, TYPE, SENDER, RECEIVER, CONVERSATION, TOPIC)


class Registration:
    """ One registered callback. *selector* is the value the predicate
        compares against: a message type, a participant id, a conversation
        id, or a topic; it is None for a :data:`GLOBAL` registration.
        Callbacks for :data:`TOPIC` registrations are invoked with both the
        message and the topic, all others receive just the message.
    """

    def __init__(self, kind, selector, callback):

        if kind not in kinds:
            raise ValueError('unknown callback kind: ' + repr(kind))

        if kind == GLOBAL:
            if selector is not None:
                raise ValueError('a global callback does not take a selector')
        elif selector is None:
            raise ValueError(kind + ' callbacks require a selector')
        else:
            selector = str(selector)

        if kind == TOPIC:
            folded = selector.casefold()
        else:
            folded = selector

        self.kind = kind
        self.selector = selector
        self.callback = callback
        self._folded = folded


    def __repr__(self):
        return 'Registration(%r, %r, %r)' % (self.kind, self.selector, self.callback)


    def matches(self, message, topic):

        kind = self.kind

        if kind == GLOBAL:
            return True

        frame = message.frame

        if kind == TYPE:
            return frame.type == self.selector
        if kind == SENDER:
            return frame.sender.identification.id == self.selector
        if kind == RECEIVER:
            return frame.receiver.identification.id == self.selector
        if kind == CONVERSATION:
            return frame.conversation_id == self.selector

        # TOPIC, the only remaining kind.

        if topic is None:
            return False
        return topic.casefold() == self._folded


    def same(self, kind, selector, callback):
        """ Return True if this registration was made with the same
            *kind*, *selector*, and *callback*.
        """

        if kind != self.kind:
            return False

        # Selectors are compared the way they were stored.

        if selector is not None:
            selector = str(selector)

        if kind == TOPIC and selector is not None:
            if selector.casefold() != self._folded:
                return False
        elif selector != self.selector:
            return False

        return callback is self.callback or callback == self.callback


    def run(self, message, topic):
        if self.kind == TOPIC:
            self.callback(message, topic)
        else:
            self.callback(message)


# end of class Registration



class CallbackRegistry:
    """ The set of registered callbacks for a single client. Every method is
        safe to call from any thread; in particular, a callback is free to
        register or unregister callbacks, including itself, while it is
        being invoked.

        An exception raised by a callback never escapes :func:`invoke`. It is
        wrapped in a :class:`~i40msg.protocol.errors.CallbackError` and handed
        to *on_error*; the default handler logs it with its traceback.
        Dispatch continues with the next matching callback either way.
    """

    def __init__(self, on_error=None):

        self.on_error = on_error
        self._registrations = list()
        self._lock = threading.Lock()


    def __len__(self):
        with self._lock:
            return len(self._registrations)


    def register(self, kind, selector, callback):
        """ Register *callback* to be invoked for every message matching the
            predicate described by *kind* and *selector*. Registering the same
            callback twice means it will be invoked twice.
        """

        if callable(callback):
            pass
        else:
            raise TypeError('callback must be callable')

        registration = Registration(kind, selector, callback)

        with self._lock:
            self._registrations.append(registration)

        return registration


    def unregister(self, kind, selector, callback):
        """ Remove any registrations made with exactly this *kind*,
            *selector*, and *callback*. Removing something that was never
            registered is not an error. Returns the number of registrations
            removed.
        """

        with self._lock:
            kept = list()
            removed = 0

            for registration in self._registrations:
                if registration.same(kind, selector, callback):
                    removed += 1
                else:
                    kept.append(registration)

            self._registrations = kept

        return removed


    def clear(self):
        with self._lock:
            self._registrations = list()


    def matching(self, message, topic=None):
        """ Return the registrations that match this *message* and *topic*,
            in registration order.
        """

        with self._lock:
            registrations = tuple(self._registrations)

        return [registration for registration in registrations if registration.matches(message, topic)]


    def invoke(self, message, topic=None):
        """ Invoke every callback matching the *message* and *topic*. The set
            of matching callbacks is determined up front; registrations made
            or removed by a callback during dispatch take effect for the next
            message. Returns the number of callbacks invoked.
        """

        matches = self.matching(message, topic)

        logger.debug('%d callback(s) match %s message on %r', len(matches), message.frame.type, topic)

        for registration in matches:
            try:
                registration.run(message, topic)
            except Exception as exc:
                self._report(CallbackError(registration.callback, message, topic, exc))

        return len(matches)


    def _report(self, error):

        handler = self.on_error

        if handler is None:
            logger.error('%s', error, exc_info=error.__cause__)
            return

        try:
            handler(error)
        except Exception:
            logger.exception('callback error handler failed while reporting: %s', error)


# end of class CallbackRegistry


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
