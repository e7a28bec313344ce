""" A class representation of a negotiation message: the :class:`Frame`,
    which says who is talking to whom about what, and the payload, which is
    an ordered sequence of :mod:`payload elements <i40msg.protocol.elements>`.

    These classes are immutable. The usual way to construct a
    :class:`Message` is via :class:`i40msg.protocol.builder.MessageBuilder`,
    which enforces the required frame fields; the usual way to put one on the
    wire is via :mod:`i40msg.protocol.wire`.
"""

from __future__ import annotations

import datetime
import time
from dataclasses import dataclass, field, replace
from typing import Iterator, Optional, Tuple

from . import elements
from .errors import ValidationError


@dataclass(frozen=True)
class Identification:
    id: str = ''
    id_type: Optional[str] = None


@dataclass(frozen=True)
class Role:
    name: str = ''


@dataclass(frozen=True)
class Participant:
    """ The sender or receiver of a message. The identification *id* is what
        routing matches on; the *role* is informational.
    """

    identification: Identification = field(default_factory=Identification)
    role: Role = field(default_factory=Role)

    @classmethod
    def named(cls, id: str, role: Optional[str] = None, id_type: Optional[str] = None) -> 'Participant':
        return cls(Identification(id, id_type), Role(role or ''))

    @property
    def id(self) -> str:
        return self.identification.id


@dataclass(frozen=True)
class Frame:
    """ The envelope metadata of a message. *type* is a protocol message type
        token, such as ``callForProposal``; see :mod:`i40msg.protocol.fields`
        for the known tokens. *reply_by* is an optional deadline for any
        response. *message_id* identifies this one message, and
        *reply_to* names the message id it answers.
    """

    sender: Participant = field(default_factory=Participant)
    receiver: Participant = field(default_factory=Participant)
    type: str = ''
    conversation_id: str = ''
    reply_by: Optional[datetime.datetime] = None
    message_id: Optional[str] = None
    reply_to: Optional[str] = None

    def validate(self) -> None:
        """ Raise :class:`ValidationError` for the first missing required
            field, checked in a fixed order: sender, receiver, type,
            conversation id.
        """

        if not self.sender.identification.id:
            raise ValidationError('sender', 'sender id is required')

        if not self.receiver.identification.id:
            raise ValidationError('receiver', 'receiver id is required')

        if not self.type:
            raise ValidationError('type', 'message type is required')

        if not self.conversation_id:
            raise ValidationError('conversationId', 'conversation id is required')


@dataclass(frozen=True)
class Message:
    """ A complete message: a :class:`Frame` plus the *payload*, a tuple of
        payload elements.

        :ivar created_at: UNIX epoch timestamp of local construction.
        :ivar received_at: UNIX epoch timestamp of receipt, or None for a
            message that was built locally.

        Neither timestamp is transmitted, and neither takes part in equality.
    """

    frame: Frame
    payload: Tuple[elements.Element, ...] = ()
    created_at: float = field(default_factory=time.time, compare=False)
    received_at: Optional[float] = field(default=None, compare=False)

    def __post_init__(self):
        payload = tuple(self.payload)
        for element in payload:
            if not isinstance(element, elements.Element):
                raise TypeError('message payload must contain payload elements, not ' + type(element).__name__)
        object.__setattr__(self, 'payload', payload)


    @property
    def type(self) -> str:
        return self.frame.type

    @property
    def conversation_id(self) -> str:
        return self.frame.conversation_id

    @property
    def sender(self) -> str:
        return self.frame.sender.identification.id

    @property
    def receiver(self) -> str:
        return self.frame.receiver.identification.id


    def element(self, id_short: str) -> Optional[elements.Element]:
        """ Return the first top-level payload element with the requested
            *id_short*, or None.
        """

        for element in self.payload:
            if element.id_short == id_short:
                return element
        return None


    def walk(self) -> Iterator[elements.Element]:
        """ Depth-first iteration over every element in the payload.
        """

        return elements.walk(self.payload)


    def received(self, timestamp: Optional[float] = None) -> 'Message':
        """ Return a copy of this message stamped with a receipt time.
        """

        if timestamp is None:
            timestamp = time.time()

        return replace(self, received_at=timestamp)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
