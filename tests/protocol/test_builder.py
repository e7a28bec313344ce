import datetime
import pytest
import uuid

import i40msg
from i40msg.protocol import fields
from i40msg.protocol.builder import MessageBuilder, collection, element_list, reference, string_property, typed_property
from i40msg.protocol.errors import ValidationError


def test_basics():

    message = MessageBuilder() \
        .sender('P24', 'Requester') \
        .receiver('RH2', 'Provider') \
        .type(fields.CALL_FOR_PROPOSAL) \
        .conversation('c-1') \
        .element(string_property('Capability', 'Drilling')) \
        .build()

    assert message.sender == 'P24'
    assert message.receiver == 'RH2'
    assert message.frame.sender.role.name == 'Requester'
    assert message.type == 'callForProposal'
    assert message.conversation_id == 'c-1'
    assert message.frame.reply_by is None
    assert message.received_at is None
    assert len(message.payload) == 1
    assert message.element('Capability').value == 'Drilling'
    assert message.element('Missing') is None


def test_aliases():

    message = MessageBuilder().from_('A').to('B').type('inform').build()
    assert message.sender == 'A'
    assert message.receiver == 'B'


@pytest.mark.parametrize('missing', ('sender', 'receiver', 'type'))
def test_required_fields(missing):

    builder = MessageBuilder()

    if missing != 'sender':
        builder.sender('P24')
    if missing != 'receiver':
        builder.receiver('RH2')
    if missing != 'type':
        builder.type(fields.PROPOSAL)

    with pytest.raises(ValidationError) as error:
        builder.build()

    assert error.value.field == missing
    assert isinstance(error.value, ValueError)


def test_validation_order():
    """ With several fields missing, the first one in frame order is the
        one reported.
    """

    with pytest.raises(ValidationError) as error:
        MessageBuilder().type(fields.PROPOSAL).build()
    assert error.value.field == 'sender'

    with pytest.raises(ValidationError) as error:
        MessageBuilder().sender('P24').build()
    assert error.value.field == 'receiver'


def test_empty_conversation():

    builder = MessageBuilder().sender('P24').receiver('RH2').type(fields.PROPOSAL).conversation('')

    with pytest.raises(ValidationError) as error:
        builder.build()

    assert error.value.field == 'conversationId'


def test_conversation_generated():

    builder = MessageBuilder().sender('P24').receiver('RH2').type(fields.INFORM)

    first = builder.build()
    second = builder.build()

    assert first.conversation_id != ''
    assert first.conversation_id != second.conversation_id
    uuid.UUID(first.conversation_id)


def test_builder_is_not_shared():

    builder = MessageBuilder().sender('P24').receiver('RH2').type(fields.INFORM).conversation('c-2')
    builder.element(string_property('One', '1'))
    first = builder.build()

    builder.element(string_property('Two', '2'))
    second = builder.build()

    assert len(first.payload) == 1
    assert len(second.payload) == 2


def test_reply_by():

    deadline = datetime.datetime(2024, 5, 1, 12, 30, tzinfo=datetime.timezone.utc)
    message = MessageBuilder().sender('A').receiver('B').type(fields.CALL_FOR_PROPOSAL).reply_by(deadline).build()

    assert message.frame.reply_by == deadline

    with pytest.raises(TypeError):
        MessageBuilder().reply_by('tomorrow')


def test_element_type_checked():

    with pytest.raises(TypeError):
        MessageBuilder().element({'idShort': 'Raw'})


def test_helpers():

    semantic = reference('https://admin-shell.io/idta/CapabilityDescription/1/0')
    assert semantic.type == fields.EXTERNAL_REFERENCE
    assert semantic.keys[0].type == fields.GLOBAL_REFERENCE
    assert semantic.value == 'https://admin-shell.io/idta/CapabilityDescription/1/0'

    quantity = string_property('Quantity', 5, semantic='urn:quantity', description='Anzahl')
    assert quantity.value == '5'
    assert quantity.value_type == 'xs:string'
    assert quantity.semantic_id.value == 'urn:quantity'
    assert quantity.description[0].language == 'de'
    assert quantity.description[0].text == 'Anzahl'

    assert typed_property('Ready', True).value == 'true'
    assert typed_property('Ready', True).value_type == 'xs:boolean'
    assert typed_property('Count', 3).value_type == 'xs:integer'
    assert typed_property('Ratio', 0.5).value == '0.5'
    assert typed_property('Ratio', 0.5).value_type == 'xs:double'
    assert typed_property('Name', 'x').value_type == 'xs:string'

    group = collection('Requirements', quantity, string_property('Material', 'Steel'))
    assert group.get('Material').value == 'Steel'

    steps = element_list('Steps', string_property('Step', 'Drill'), string_property('Step', 'Mill'))
    assert steps.element_type_hint == fields.PROPERTY
    assert [step.value for step in steps] == ['Drill', 'Mill']

    assert element_list('Empty').element_type_hint is None


def test_message_id():

    builder = MessageBuilder().sender('P24').receiver('RH2').type(fields.CALL_FOR_PROPOSAL)

    first = builder.build()
    second = builder.build()

    assert first.frame.message_id != second.frame.message_id
    uuid.UUID(first.frame.message_id)
    assert first.frame.reply_to is None

    request = builder.message_id('m-1').build()
    assert request.frame.message_id == 'm-1'

    reply = MessageBuilder() \
        .sender('RH2').receiver('P24').type(fields.PROPOSAL) \
        .conversation(request.conversation_id) \
        .replying_to(request.frame.message_id) \
        .build()

    assert reply.frame.reply_to == 'm-1'
    assert reply.frame.message_id not in (None, 'm-1')


def test_top_level():

    assert i40msg.MessageBuilder is MessageBuilder
    assert i40msg.protocol.MessageBuilder is MessageBuilder

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
