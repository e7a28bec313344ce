import logging
import pytest

from i40msg import callbacks
from i40msg.callbacks import CallbackRegistry
from i40msg.protocol import fields
from i40msg.protocol.errors import CallbackError


def test_kinds(call_for_proposal):

    message = call_for_proposal('P24', 'RH2', 'c-1')
    registry = CallbackRegistry()
    calls = list()

    registry.register(callbacks.GLOBAL, None, lambda message: calls.append('global'))
    registry.register(callbacks.TYPE, fields.CALL_FOR_PROPOSAL, lambda message: calls.append('type'))
    registry.register(callbacks.TYPE, fields.PROPOSAL, lambda message: calls.append('wrong type'))
    registry.register(callbacks.SENDER, 'P24', lambda message: calls.append('sender'))
    registry.register(callbacks.SENDER, 'RH2', lambda message: calls.append('wrong sender'))
    registry.register(callbacks.RECEIVER, 'RH2', lambda message: calls.append('receiver'))
    registry.register(callbacks.CONVERSATION, 'c-1', lambda message: calls.append('conversation'))
    registry.register(callbacks.CONVERSATION, 'c-2', lambda message: calls.append('wrong conversation'))
    registry.register(callbacks.TOPIC, 'I40/Messages', lambda message, topic: calls.append('topic ' + topic))

    assert len(registry) == 9

    invoked = registry.invoke(message, 'i40/messages')

    assert invoked == 6
    assert calls == ['global', 'type', 'sender', 'receiver', 'conversation', 'topic i40/messages']


def test_type_is_exact(call_for_proposal):

    registry = CallbackRegistry()
    calls = list()

    registry.register(callbacks.TYPE, 'CallForProposal', calls.append)
    registry.register(callbacks.TYPE, 'callForProposal', calls.append)

    assert registry.invoke(call_for_proposal()) == 1


def test_topic_requires_topic(call_for_proposal):

    registry = CallbackRegistry()
    registry.register(callbacks.TOPIC, 'i40/messages', lambda message, topic: None)

    assert registry.invoke(call_for_proposal()) == 0
    assert registry.invoke(call_for_proposal(), 'i40/other') == 0
    assert registry.invoke(call_for_proposal(), 'i40/messages') == 1


def test_register_errors():

    registry = CallbackRegistry()

    with pytest.raises(TypeError):
        registry.register(callbacks.GLOBAL, None, 'not callable')

    with pytest.raises(ValueError):
        registry.register('bogus', None, print)

    with pytest.raises(ValueError):
        registry.register(callbacks.GLOBAL, 'selector', print)

    with pytest.raises(ValueError):
        registry.register(callbacks.TYPE, None, print)

    assert len(registry) == 0


def test_unregister(call_for_proposal):

    registry = CallbackRegistry()
    calls = list()

    def first(message):
        calls.append('first')

    def second(message):
        calls.append('second')

    registry.register(callbacks.SENDER, 'P24', first)
    registry.register(callbacks.SENDER, 'P24', second)
    registry.register(callbacks.SENDER, 'P24', first)
    registry.register(callbacks.TOPIC, 'I40/Messages', lambda message, topic: None)

    registry.invoke(call_for_proposal())
    assert calls == ['first', 'second', 'first']

    assert registry.unregister(callbacks.SENDER, 'P24', first) == 2
    assert registry.unregister(callbacks.SENDER, 'P24', first) == 0
    assert registry.unregister(callbacks.SENDER, 'RH2', second) == 0

    del calls[:]
    registry.invoke(call_for_proposal())
    assert calls == ['second']

    registry.clear()
    assert len(registry) == 0


def test_selector_normalized():
    """ A selector is stored as a string, and has to be found again when
        it is removed with the same non-string value.
    """

    registry = CallbackRegistry()

    def callback(message):
        pass

    registry.register(callbacks.TYPE, 5, callback)
    registry.register(callbacks.CONVERSATION, 42, callback)

    assert registry.unregister(callbacks.TYPE, 5, callback) == 1
    assert registry.unregister(callbacks.CONVERSATION, '42', callback) == 1
    assert len(registry) == 0


def test_isolation(call_for_proposal, caplog):
    """ A failing callback does not stop the others, and the failure is
        logged rather than raised.
    """

    registry = CallbackRegistry()
    calls = list()

    def broken(message):
        raise RuntimeError('broken callback')

    registry.register(callbacks.GLOBAL, None, broken)
    registry.register(callbacks.GLOBAL, None, lambda message: calls.append(message))

    message = call_for_proposal()

    with caplog.at_level(logging.ERROR, logger='i40msg.callbacks'):
        assert registry.invoke(message) == 2

    assert calls == [message]
    assert 'broken callback' in caplog.text


def test_error_handler(call_for_proposal):

    errors = list()
    registry = CallbackRegistry(on_error=errors.append)

    cause = KeyError('missing')

    def broken(message):
        raise cause

    registry.register(callbacks.TYPE, fields.CALL_FOR_PROPOSAL, broken)

    message = call_for_proposal()
    registry.invoke(message, 'i40/messages')

    assert len(errors) == 1
    error = errors[0]
    assert isinstance(error, CallbackError)
    assert error.callback is broken
    assert error.message is message
    assert error.topic == 'i40/messages'
    assert error.__cause__ is cause


def test_broken_error_handler(call_for_proposal, caplog):

    def handler(error):
        raise ValueError('handler also broken')

    registry = CallbackRegistry(on_error=handler)
    registry.register(callbacks.GLOBAL, None, lambda message: 1 / 0)

    with caplog.at_level(logging.ERROR, logger='i40msg.callbacks'):
        registry.invoke(call_for_proposal())

    assert 'handler also broken' in caplog.text


def test_reentrant(call_for_proposal):
    """ A callback may unregister itself, and register others, during
        dispatch; the changes apply to the next message.
    """

    registry = CallbackRegistry()
    calls = list()

    def late(message):
        calls.append('late')

    def once(message):
        calls.append('once')
        registry.unregister(callbacks.GLOBAL, None, once)
        registry.register(callbacks.GLOBAL, None, late)

    registry.register(callbacks.GLOBAL, None, once)

    registry.invoke(call_for_proposal())
    assert calls == ['once']

    registry.invoke(call_for_proposal())
    assert calls == ['once', 'late']

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
