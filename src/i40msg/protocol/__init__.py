from . import errors
from . import fields
from . import elements
from . import message
from . import builder
from . import wire

from .errors import CallbackError, DecodeError, ProtocolError, ValidationError
from .elements import Collection, Key, LangString, List, Property, Reference
from .message import Frame, Identification, Message, Participant, Role
from .builder import MessageBuilder


"""
i40msg Protocol Layer
=====================

This package defines the transport-agnostic negotiation protocol: message
structures, their construction, and their wire encoding.

The protocol layer MUST NOT depend on any transport implementation
(e.g. ZeroMQ, RabbitMQ, etc).

---------------------------------------------------------------------

Layer Architecture Overview
---------------------------

Message Builder (builder.py)
    Fluent construction of protocol messages
    - Enforces the required frame fields
    - Generates conversation ids
    - Element shorthands (string_property, collection, ...)

    │
    ▼
Message Model (message.py, elements.py)
    Immutable protocol data structures
    - Frame, Participant
    - Message
    - Property / Collection / List payload tree
    Defines semantic meaning only

    │
    ▼
Wire Codec (wire.py)
    Message <-> canonical JSON bytes
    - Polymorphic payload reconstruction keyed by modelType

    │
    ▼
Field Vocabulary (fields.py)
    Message type tokens, discriminators, wire key names
    Prevents string drift across system

---------------------------------------------------------------------

Above the Protocol Layer (for context)
--------------------------------------

Client (i40msg.client)
    Publish, subscribe, receive
    - Callback dispatch (i40msg.callbacks)
    - Conversation tracking (i40msg.conversation)
    - Inbox (i40msg.inbox)

Transport (i40msg.transport)
    Moves bytes
    - ZeroMQ
    - RabbitMQ
    - in-process loopback

---------------------------------------------------------------------
"""


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
