import pytest
import queue
import time

import i40msg
from i40msg.transport import TransportConnectionError, loopback, matches


@pytest.mark.parametrize('pattern,topic,expected', (
    ('i40/messages', 'i40/messages', True),
    ('i40/messages', 'i40/messages2', False),
    ('i40/messages', 'i40', False),
    ('i40/+', 'i40/messages', True),
    ('i40/+', 'i40/messages/extra', False),
    ('+/messages', 'i40/messages', True),
    ('i40/#', 'i40/messages/extra', True),
    ('i40/#', 'i40', True),
    ('i40/#', 'other/messages', False),
    ('#', 'anything/at/all', True),
    ('i40/#/extra', 'i40/messages/extra', False),
))
def test_matches(pattern, topic, expected):
    assert matches(pattern, topic) == expected


class Received:
    """ A transport handler that queues what it receives.
    """

    def __init__(self):
        self.queue = queue.Queue()

    def __call__(self, topic, data):
        self.queue.put((topic, data))

    def get(self, timeout=2):
        return self.queue.get(timeout=timeout)

    def empty(self, wait=0.1):
        time.sleep(wait)
        return self.queue.empty()


def test_loopback(hub):

    publisher = loopback.Transport(hub)
    subscriber = loopback.Transport(hub)
    bystander = loopback.Transport(hub)

    received = Received()
    echoed = Received()
    ignored = Received()

    subscriber.listen(received)
    publisher.listen(echoed)
    bystander.listen(ignored)

    subscriber.subscribe('i40/+')
    publisher.subscribe('i40/messages')
    bystander.subscribe('other/#')

    with publisher, subscriber, bystander:
        publisher.publish('i40/messages', b'payload')

        assert received.get() == ('i40/messages', b'payload')
        assert echoed.get() == ('i40/messages', b'payload')
        assert ignored.empty()

        subscriber.unsubscribe('i40/+')
        publisher.publish('i40/messages', b'again')
        assert echoed.get() == ('i40/messages', b'again')
        assert received.empty()

    assert publisher.connected == False


def test_loopback_not_connected(hub):

    transport = loopback.Transport(hub)

    with pytest.raises(TransportConnectionError):
        transport.publish('i40/messages', b'payload')


def test_loopback_listeners(hub):

    transport = loopback.Transport(hub)
    events = list()

    transport.connect_listeners.append(lambda: events.append('connect'))
    transport.disconnect_listeners.append(lambda: events.append('disconnect'))

    transport.connect()
    transport.connect()
    transport.disconnect()
    transport.disconnect()

    assert events == ['connect', 'disconnect']


def test_loopback_handler_failure(hub):
    """ A handler that raises does not take down the delivery thread.
    """

    transport = loopback.Transport(hub)
    received = Received()
    calls = list()

    def handler(topic, data):
        calls.append(data)
        if data == b'first':
            raise RuntimeError('handler failure')
        received(topic, data)

    transport.listen(handler)
    transport.subscribe('#')

    with transport:
        transport.publish('a', b'first')
        transport.publish('a', b'second')
        assert received.get() == ('a', b'second')

    assert calls == [b'first', b'second']


def settle(publisher, topic, received, attempts=50):
    """ ZeroMQ subscriptions take effect asynchronously. Publish a marker
        until one arrives, then discard any stragglers.
    """

    for attempt in range(attempts):
        publisher.publish(topic, b'ready')
        try:
            received.get(timeout=0.1)
        except queue.Empty:
            continue
        break
    else:
        raise AssertionError('subscription never took effect')

    time.sleep(0.1)
    while not received.queue.empty():
        received.queue.get()


def test_zmq(proxy):

    zmq_transport = i40msg.transport.backend('zmq')

    publisher = zmq_transport.Transport('127.0.0.1', proxy.frontend_port, proxy.backend_port)
    subscriber = zmq_transport.Transport('127.0.0.1', proxy.frontend_port, proxy.backend_port)

    received = Received()
    subscriber.listen(received)
    subscriber.subscribe('i40/+')

    with publisher, subscriber:
        settle(publisher, 'i40/ready', received)

        publisher.publish('i40/messages', b'payload')
        assert received.get() == ('i40/messages', b'payload')

        # The trailing dot keeps prefix matching from leaking through, and
        # wildcards are filtered on arrival.

        publisher.publish('i40/messages/extra', b'too deep')
        publisher.publish('i40x/messages', b'wrong prefix')
        publisher.publish('i40/last', b'last')
        assert received.get() == ('i40/last', b'last')


def test_zmq_exact_topic(proxy):

    zmq_transport = i40msg.transport.backend('zmq')

    transport = zmq_transport.Transport('127.0.0.1', proxy.frontend_port, proxy.backend_port)
    received = Received()
    transport.listen(received)
    transport.subscribe('i40/messages')

    with transport:
        settle(transport, 'i40/messages', received)

        transport.publish('i40/messages2', b'not for us')
        transport.publish('i40/messages', b'echo')
        assert received.get() == ('i40/messages', b'echo')

    assert transport.connected == False

    with pytest.raises(TransportConnectionError):
        transport.publish('i40/messages', b'closed')


def test_zmq_parent_level(proxy):
    """ A trailing # also matches the level it hangs off.
    """

    zmq_transport = i40msg.transport.backend('zmq')

    transport = zmq_transport.Transport('127.0.0.1', proxy.frontend_port, proxy.backend_port)
    received = Received()
    transport.listen(received)
    transport.subscribe('i40/#')

    with transport:
        settle(transport, 'i40/ready', received)

        transport.publish('i40x', b'sibling')
        transport.publish('i40x/a', b'sibling child')
        transport.publish('i40', b'parent')
        transport.publish('i40/a/b', b'child')

        assert received.get() == ('i40', b'parent')
        assert received.get() == ('i40/a/b', b'child')
        assert received.empty()


def test_zmq_prefix():

    pytest.importorskip('zmq')
    publish = i40msg.transport.backend('zmq')

    assert publish._prefix('i40/messages') == b'i40/messages.'
    assert publish._prefix('i40/+') == b'i40/'
    assert publish._prefix('i40/+/status') == b'i40/'
    assert publish._prefix('i40/#') == b'i40'
    assert publish._prefix('i40/cell/#') == b'i40/cell'
    assert publish._prefix('#') == b''
    assert publish._prefix('+/messages') == b''


def test_rabbitmq_routing_keys():

    pytest.importorskip('pika')
    publish = i40msg.transport.backend('rabbitmq')

    assert publish.routing_key('i40/messages') == 'i40.messages'
    assert publish.routing_key('i40/+/status') == 'i40.*.status'
    assert publish.routing_key('i40/#') == 'i40.#'
    assert publish.topic_name('i40.messages') == 'i40/messages'


class Closing:
    """ Stands in for a pika connection that the connection thread tears
        down at the worst possible moment: while it is being checked.
    """

    def __init__(self, transport):
        self.transport = transport
        self.callbacks = list()

    @property
    def is_open(self):
        self.transport._connection = None
        return True

    def add_callback_threadsafe(self, callback):
        self.callbacks.append(callback)


def test_rabbitmq_publish_while_closing():

    pytest.importorskip('pika')
    publish = i40msg.transport.backend('rabbitmq')

    transport = publish.Transport()

    with pytest.raises(TransportConnectionError):
        transport.publish('i40/messages', b'payload')

    closing = Closing(transport)
    transport._connection = closing
    transport.publish('i40/messages', b'payload')

    assert closing.callbacks == [transport._flush]
    assert transport._connection is None

    with pytest.raises(TransportConnectionError):
        transport.publish('i40/messages', b'payload')

    # Subscription changes made meanwhile wait for the next connect.

    transport.subscribe('i40/#')
    assert 'i40/#' in transport._subscriptions


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
