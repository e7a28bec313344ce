from __future__ import annotations

import datetime
import uuid
from typing import Iterable, Optional

from . import fields
from .elements import Collection, Element, Key, LangString, List, Property, Reference
from .message import Frame, Message, Participant


class MessageBuilder:
    """ Fluent construction of a :class:`Message`::

            message = (
                MessageBuilder()
                .sender('P24')
                .receiver('RH2')
                .type(fields.CALL_FOR_PROPOSAL)
                .element(string_property('Quantity', '1'))
                .build()
            )

        :func:`build` validates the frame and raises
        :class:`~i40msg.protocol.errors.ValidationError` if the sender,
        receiver, type, or conversation id is missing. Unless they are set
        explicitly, every :func:`build` call generates a fresh conversation
        id and a fresh message id. The builder never shares state with the messages it returns.
    """

    def __init__(self):
        self._sender = Participant()
        self._receiver = Participant()
        self._type: str = ''
        self._conversation: Optional[str] = None
        self._reply_by: Optional[datetime.datetime] = None
        self._message_id: Optional[str] = None
        self._reply_to: Optional[str] = None
        self._elements: list = []

    # Routing
    def sender(self, id: str, role: Optional[str] = None, id_type: Optional[str] = None):
        self._sender = Participant.named(id, role, id_type)
        return self

    def receiver(self, id: str, role: Optional[str] = None, id_type: Optional[str] = None):
        self._receiver = Participant.named(id, role, id_type)
        return self

    from_ = sender
    to = receiver

    # Semantics
    def type(self, token: str):
        self._type = token
        return self

    def conversation(self, conversation_id: str):
        self._conversation = conversation_id
        return self

    def reply_by(self, deadline: Optional[datetime.datetime]):
        if deadline is not None and not isinstance(deadline, datetime.datetime):
            raise TypeError('reply_by deadline must be a datetime')
        self._reply_by = deadline
        return self

    def message_id(self, message_id: str):
        self._message_id = message_id
        return self

    def replying_to(self, message_id: Optional[str]):
        """ Mark the message as the response to the message *message_id*.
        """
        self._reply_to = message_id
        return self

    # Data
    def element(self, element: Element):
        if not isinstance(element, Element):
            raise TypeError('expected a payload element, got ' + type(element).__name__)
        self._elements.append(element)
        return self

    def elements(self, elements: Iterable[Element]):
        for element in elements:
            self.element(element)
        return self

    # Finalize
    def build(self) -> Message:

        conversation = self._conversation
        if conversation is None:
            conversation = str(uuid.uuid4())

        message_id = self._message_id
        if message_id is None:
            message_id = str(uuid.uuid4())

        frame = Frame(
            sender=self._sender,
            receiver=self._receiver,
            type=self._type,
            conversation_id=conversation,
            reply_by=self._reply_by,
            message_id=message_id,
            reply_to=self._reply_to,
        )

        frame.validate()

        return Message(frame=frame, payload=tuple(self._elements))


def reference(*values: str, key_type: str = fields.GLOBAL_REFERENCE, kind: str = fields.EXTERNAL_REFERENCE) -> Reference:
    """ Shorthand for a semantic reference built from one or more key
        values sharing the same *key_type*.
    """

    keys = tuple(Key(key_type, value) for value in values)
    return Reference(keys, kind)


def _semantic(semantic) -> Optional[Reference]:
    if semantic is None or isinstance(semantic, Reference):
        return semantic
    return reference(semantic)


def _described(description) -> Optional[tuple]:
    if description is None:
        return None
    if isinstance(description, str):
        return (LangString(description),)
    return tuple(description)


def string_property(id_short: str, value, semantic=None, description=None) -> Property:
    """ Construct an ``xs:string`` :class:`Property`. A non-string *value* is
        converted with str(); *semantic* may be a :class:`Reference` or a
        single global reference string.
    """

    if value is not None and not isinstance(value, str):
        value = str(value)

    return Property(id_short, value, fields.DEFAULT_VALUE_TYPE, semantic_id=_semantic(semantic), description=_described(description))


_value_types = {
    bool: 'xs:boolean',
    int: 'xs:integer',
    float: 'xs:double',
}


def typed_property(id_short: str, value, semantic=None, description=None) -> Property:
    """ Construct a :class:`Property` whose value type is derived from the
        Python type of *value*. Booleans are written the way XML schema
        expects them, as ``true`` or ``false``.
    """

    value_type = _value_types.get(type(value), fields.DEFAULT_VALUE_TYPE)

    if isinstance(value, bool):
        value = 'true' if value else 'false'
    elif value is not None:
        value = str(value)

    return Property(id_short, value, value_type, semantic_id=_semantic(semantic), description=_described(description))


def collection(id_short: str, *children: Element, semantic=None, description=None) -> Collection:
    return Collection(id_short, children, semantic_id=_semantic(semantic), description=_described(description))


def element_list(id_short: str, *children: Element, semantic=None, description=None, hint: Optional[str] = None) -> List:
    if hint is None and children:
        hint = children[0].model_type
    return List(id_short, children, hint, semantic_id=_semantic(semantic), description=_described(description))
