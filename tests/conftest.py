import pytest

import i40msg
from i40msg.protocol import fields
from i40msg.protocol.builder import MessageBuilder, string_property


class Clock:
    """ A stand-in for time.time() that only moves when told to.
    """

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def hub():
    return i40msg.transport.loopback.Hub()


@pytest.fixture
def client(hub):
    transport = i40msg.transport.loopback.Transport(hub)
    client = i40msg.MessagingClient(transport)
    client.connect()

    yield client

    client.close()


@pytest.fixture
def home(tmp_path, monkeypatch):
    """ Point the configuration directory at a scratch location, and clear
        any ambient overrides.
    """

    for variable, _key in i40msg.config.overrides:
        monkeypatch.delenv(variable, raising=False)

    monkeypatch.setattr(i40msg.config.directory, 'found', None)
    monkeypatch.setenv('I40MSG_HOME', str(tmp_path))

    return tmp_path


@pytest.fixture
def proxy():
    pytest.importorskip('zmq')
    import i40msg.transport.zmq

    proxy = i40msg.transport.zmq.Proxy(address='127.0.0.1')

    yield proxy

    proxy.stop()


def _call_for_proposal(sender='P24', receiver='RH2', conversation=None):
    builder = MessageBuilder()
    builder.sender(sender, 'Requester')
    builder.receiver(receiver, 'Provider')
    builder.type(fields.CALL_FOR_PROPOSAL)
    builder.element(string_property('Capability', 'Drilling'))

    if conversation is not None:
        builder.conversation(conversation)

    return builder.build()


@pytest.fixture
def call_for_proposal():
    """ A factory for a minimal, valid callForProposal message.
    """

    return _call_for_proposal

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
