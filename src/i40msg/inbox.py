""" A bounded buffer of received messages. The inbox decouples the arrival
    of messages, which happens on whatever thread the transport delivers
    them on, from their consumption, which can happen at leisure and
    selectively, by predicate.
"""

import collections
import logging
import threading
import time

logger = logging.getLogger(__name__)


default_capacity = 10000

Entry = collections.namedtuple('Entry', ('message', 'topic', 'received_at'))


def everything(entry):
    return True


class Inbox:
    """ An order-preserving buffer of :class:`Entry` tuples. Once the
        *capacity* is reached, enqueueing a new entry silently discards the
        oldest one; the newest entry is never the one dropped.

        Predicates passed to the dequeue methods receive a whole
        :class:`Entry`, so they may consider the topic and receipt time as
        well as the message itself. A predicate of None matches everything.
        Predicates are evaluated while the inbox is locked, and must not
        call back into the inbox.
    """

    def __init__(self, capacity=default_capacity):

        capacity = int(capacity)
        if capacity < 1:
            raise ValueError('inbox capacity must be at least 1')

        self.capacity = capacity
        self.dropped = 0

        self._entries = collections.deque()
        self._lock = threading.Lock()
        self._arrival = threading.Condition(self._lock)


    def __len__(self):
        with self._lock:
            return len(self._entries)

    count = __len__


    def enqueue(self, message, topic=None, received_at=None):
        """ Add a new entry to the tail of the inbox. The receipt time
            defaults to the message's own, if it has one, and otherwise now.
        """

        if received_at is None:
            received_at = getattr(message, 'received_at', None)
            if received_at is None:
                received_at = time.time()

        entry = Entry(message, topic, received_at)

        with self._lock:
            self._entries.append(entry)

            overflow = len(self._entries) - self.capacity
            if overflow > 0:
                logger.debug('inbox full, dropping %d oldest entries', overflow)

            while overflow > 0:
                self._entries.popleft()
                self.dropped += 1
                overflow -= 1

            self._arrival.notify_all()

        return entry


    def _take(self, predicate):
        """ Remove and return the first matching entry. Must be called with
            the lock held.
        """

        entries = self._entries

        for index, entry in enumerate(entries):
            if predicate(entry):
                del entries[index]
                return entry

        return None


    def try_dequeue(self, predicate=None):
        """ Remove and return the oldest entry satisfying *predicate*, or None
            if there is no such entry. Every other entry keeps its place.
        """

        if predicate is None:
            predicate = everything

        with self._lock:
            return self._take(predicate)


    def dequeue_all(self, predicate=None):
        """ Remove and return every entry satisfying *predicate*, oldest
            first. The entries left behind keep their relative order.
        """

        if predicate is None:
            predicate = everything

        with self._lock:
            matched = list()
            kept = collections.deque()

            for entry in self._entries:
                if predicate(entry):
                    matched.append(entry)
                else:
                    kept.append(entry)

            self._entries = kept

        return matched


    def wait(self, predicate=None, timeout=None):
        """ Like :func:`try_dequeue`, but block until a matching entry arrives
            if there is none yet. Returns None if *timeout* seconds pass
            first; a *timeout* of None waits indefinitely.
        """

        if predicate is None:
            predicate = everything

        if timeout is not None:
            deadline = time.monotonic() + timeout

        with self._lock:
            while True:
                entry = self._take(predicate)
                if entry is not None:
                    return entry

                if timeout is None:
                    self._arrival.wait()
                    continue

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None

                self._arrival.wait(remaining)


    def snapshot(self):
        """ Return a list of the current entries, oldest first, without
            removing anything.
        """

        with self._lock:
            return list(self._entries)


    def clear(self):
        with self._lock:
            self._entries.clear()


# end of class Inbox


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
