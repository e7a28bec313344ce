""" Correlation of messages into conversations. A conversation is the
    ordered history of every message, sent or received, that carries the
    same conversation id.
"""

import logging
import threading
import time
import uuid

logger = logging.getLogger(__name__)


default_timeout = 30 * 60


class Conversation:
    """ The history and bookkeeping for a single conversation. Instances are
        owned by a :class:`ConversationTracker` and are only ever modified
        while holding the tracker's lock.

        :ivar messages: Messages in the order they were recorded.
        :ivar timeout: Seconds of inactivity after which the conversation
            is considered expired.
    """

    def __init__(self, id, timeout, now):

        self.id = id
        self.messages = list()
        self.created_at = now
        self.last_activity = now
        self.timeout = timeout
        self.completed = False


    def __repr__(self):
        return "Conversation(%r, %d messages, completed=%r)" % (self.id, len(self.messages), self.completed)


    def expired(self, now):
        if self.completed:
            return True
        return (now - self.last_activity) > self.timeout


# end of class Conversation



class ConversationTracker:
    """ Track every conversation this client has taken part in. Conversations
        are created explicitly via :func:`create`, or implicitly the first
        time :func:`add_message` sees a conversation id. They are only ever
        removed by :func:`cleanup_expired`, which nothing calls on its own;
        the host process is expected to invoke it periodically, for example
        via :func:`i40msg.poll.start`.

        The *clock* argument, a callable returning UNIX epoch seconds, is
        there so that tests can control the passage of time.
    """

    def __init__(self, timeout=default_timeout, clock=time.time):

        self.timeout = float(timeout)
        self.clock = clock
        self._conversations = dict()
        self._lock = threading.Lock()


    def __len__(self):
        with self._lock:
            return len(self._conversations)


    def __contains__(self, id):
        return self.exists(id)


    def create(self, timeout=None):
        """ Allocate a new conversation with a freshly generated id, and
            return that id. The *timeout* is in seconds; the tracker default
            applies if it is not specified.
        """

        if timeout is None:
            timeout = self.timeout

        id = str(uuid.uuid4())
        conversation = Conversation(id, float(timeout), self.clock())

        with self._lock:
            self._conversations[id] = conversation

        return id


    def add_message(self, message):
        """ Append *message* to the history of its conversation, creating the
            conversation if necessary.

            Messages are never deduplicated: a transport that echoes a
            publisher's own messages back to it will result in the same
            logical message being recorded twice, once when it is sent, and
            once when the echo arrives.
        """

        id = message.frame.conversation_id
        now = self.clock()

        with self._lock:
            try:
                conversation = self._conversations[id]
            except KeyError:
                conversation = Conversation(id, self.timeout, now)
                self._conversations[id] = conversation

            conversation.messages.append(message)
            conversation.last_activity = now


    def messages(self, id):
        """ Return a copy of the message history for the conversation *id*.
            An unknown conversation has an empty history.
        """

        with self._lock:
            try:
                conversation = self._conversations[id]
            except KeyError:
                return list()

            return list(conversation.messages)


    def last_message(self, id):
        """ Return the most recent message in the conversation *id*, or None.
        """

        with self._lock:
            try:
                conversation = self._conversations[id]
            except KeyError:
                return None

            if conversation.messages:
                return conversation.messages[-1]

        return None


    def exists(self, id):
        with self._lock:
            return id in self._conversations


    def complete(self, id):
        """ Mark the conversation *id* as complete. It remains available
            until the next :func:`cleanup_expired`. Completing an unknown
            conversation does nothing.
        """

        with self._lock:
            try:
                conversation = self._conversations[id]
            except KeyError:
                return

            conversation.completed = True


    def active_count(self):
        """ Return the number of conversations not yet marked complete.
        """

        with self._lock:
            return sum(1 for conversation in self._conversations.values() if not conversation.completed)


    def cleanup_expired(self):
        """ Remove every conversation that is complete, or has been idle for
            longer than its timeout. Returns the number removed.
        """

        now = self.clock()

        with self._lock:
            expired = [id for id, conversation in self._conversations.items() if conversation.expired(now)]

            for id in expired:
                del self._conversations[id]

        if expired:
            logger.debug('removed %d expired conversation(s)', len(expired))

        return len(expired)


# end of class ConversationTracker


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
