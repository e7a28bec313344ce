""" Periodic background invocation of a method. This is how a host process
    schedules routine maintenance, such as the conversation sweep performed
    by :func:`i40msg.conversation.ConversationTracker.cleanup_expired`;
    nothing in the messaging core starts a poller on its own.
"""

import logging
import threading
import time
import weakref

logger = logging.getLogger(__name__)

active = dict()
_active_lock = threading.Lock()


def _key(method):
    """ Bound methods are created anew on every attribute access, so their
        id() is not stable; key them by the instance and the function instead.
    """

    try:
        function = method.__func__
        instance = method.__self__
    except AttributeError:
        return id(method)

    return (id(instance), id(function))


def _reference(method):
    """ Return a weak reference to *method*, regardless of whether it is a
        plain callable or a bound method. A plain weakref.ref() to a bound
        method dies immediately, hence weakref.WeakMethod.
    """

    try:
        method.__func__
        method.__self__
    except AttributeError:
        return weakref.ref(method)
    else:
        return weakref.WeakMethod(method)


def period(method):
    """ Return the currently set polling period for the provided *method*.
        Returns None if no polling is presently active for that method.
    """

    try:
        poller = active[_key(method)]
    except KeyError:
        return None

    return poller.interval


def start(method, period):
    """ Call the provided *method* every *period* seconds on a dedicated
        background thread. If a poller is already active for the method its
        period is updated instead; one method never has two pollers. A
        *period* of None or zero stops polling.

        Only a weak reference to *method* is retained: once the owning object
        is garbage collected the poller exits on its own.
    """

    if period is None or period == 0:
        stop(method)
        return

    key = _key(method)

    with _active_lock:
        try:
            poller = active[key]
        except KeyError:
            poller = _Poller(method, key)
            active[key] = poller

    poller.period(period)


def stop(method):
    """ Discontinue calling the provided *method*.
    """

    with _active_lock:
        try:
            poller = active.pop(_key(method))
        except KeyError:
            return

    poller.stop()



class _Poller:
    """ Background thread to invoke a single polled method.
    """

    def __init__(self, method, key):

        self.key = key
        self.interval = None
        self.reference = _reference(method)
        self.shutdown = False

        self.alarm = threading.Event()
        self.thread = threading.Thread(target=self.run)
        self.thread.daemon = True
        self.thread.start()


    def period(self, period):
        """ Update the polling interval to *period* seconds.
        """

        period = float(period)
        if period <= 0:
            raise ValueError('polling period must be positive')

        self.interval = period
        self.wake()


    def run(self):

        interval = None
        next = time.time()

        # Initial wait for someone to call self.period().

        while self.interval is None and self.shutdown == False:
            self.alarm.wait(1)

        while self.shutdown == False:
            begin = time.time()

            if self.alarm.is_set():
                self.alarm.clear()

                # The interval only changes when the alarm is set. That is
                # the cue to start an entirely new cadence.

                interval = self.interval
                next = begin + interval
            else:
                next += interval

            method = self.reference()

            if method is None:
                # The owning object is gone. No further calls are possible.
                break

            try:
                method()
            except Exception:
                logger.exception('polled method %r raised', method)

            del method

            delay = next - time.time()
            if delay > 0:
                self.alarm.wait(delay)

        with _active_lock:
            if active.get(self.key) is self:
                del active[self.key]


    def stop(self):
        self.shutdown = True
        self.wake()


    def wake(self):
        self.alarm.set()


# end of class _Poller


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
