"""
Canonical JSON wire encoding for messages.

Layout::

    {"frame": {"sender":   {"identification": {"id": ..., "idType": ...},
                            "role": {"name": ...}},
               "receiver": {...},
               "type": ...,
               "conversationId": ...,
               "replyBy": ...,
               "messageId": ...,
               "replyTo": ...},
     "interactionElements": [element, ...]}

    element:
    {"modelType": "Property" | "Collection" | "List",
     "idShort": ...,
     "semanticId": {"keys": [{"type": ..., "value": ...}], "type": ...},
     "description": [{"language": ..., "text": ...}],
     "value": ...,                  # string for Property, array otherwise
     "valueType": ...,              # Property only
     "typeValueListElement": ...}   # List only

Field names are fixed and lower camelCase, the output is compact, and
optional fields are omitted when they are None.
"""

from __future__ import annotations

import datetime
import re
import time
from typing import Any, Optional, Union

from .. import json
from . import fields
from .elements import Collection, Element, Key, LangString, List, Property, Reference, variants
from .errors import DecodeError, ValidationError
from .message import Frame, Identification, Message, Participant, Role


Wire = Union[bytes, bytearray, memoryview, str]


def encode(message: Message) -> bytes:
    """
    Serialize Message -> bytes
    """

    document = {
        "frame": _frame_out(message.frame),
        fields.PAYLOAD_KEY: [_element_out(element) for element in message.payload],
    }

    return json.dumps(document)


def decode(data: Wire) -> Message:
    """
    Deserialize bytes -> Message

    The returned message is stamped as received now. Any problem with the
    document raises DecodeError; a structurally sound message with empty
    required fields is returned as-is, see :func:`is_valid`.
    """

    if isinstance(data, memoryview):
        data = data.tobytes()
    elif isinstance(data, bytearray):
        data = bytes(data)

    try:
        document = json.loads(data)
    except json.errors as exc:
        raise DecodeError(f"malformed JSON: {exc}") from exc
    except TypeError as exc:
        raise DecodeError(f"cannot decode {type(data).__name__}") from exc

    if not isinstance(document, dict):
        raise DecodeError("message must be a JSON object")

    try:
        frame = _frame_in(_require(document, "frame", dict, "message"))

        raw_elements = document.get(fields.PAYLOAD_KEY)
        if raw_elements is None:
            raw_elements = []
        elif not isinstance(raw_elements, list):
            raise DecodeError(f"'{fields.PAYLOAD_KEY}' must be an array")

        payload = tuple(_element_in(raw) for raw in raw_elements)

    except RecursionError as exc:
        raise DecodeError("payload nested too deeply") from exc

    return Message(frame=frame, payload=payload, received_at=time.time())


def is_valid(data: Wire) -> bool:
    """
    Return True if *data* decodes to a message whose required frame fields
    (sender, receiver, type, conversation id) are all non-empty.
    """

    try:
        message = decode(data)
        message.frame.validate()
    except (DecodeError, ValidationError):
        return False

    return True


# --- timestamps ---

_fraction = re.compile(r"\.(\d+)")


def format_timestamp(value: datetime.datetime) -> str:
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def parse_timestamp(text: str) -> datetime.datetime:
    """ Parse an ISO-8601 timestamp. A trailing Z is read as UTC, and the
        fractional seconds are normalized to microseconds; other platforms
        happily write seven digits.
    """

    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"

    def _micro(match):
        digits = match.group(1)[:6]
        return "." + digits.ljust(6, "0")

    text = _fraction.sub(_micro, text, count=1)
    return datetime.datetime.fromisoformat(text)


# --- encoding ---

def _participant_out(participant: Participant) -> dict:
    identification = {"id": participant.identification.id}
    if participant.identification.id_type is not None:
        identification["idType"] = participant.identification.id_type

    return {
        "identification": identification,
        "role": {"name": participant.role.name},
    }


def _frame_out(frame: Frame) -> dict:
    out = {
        "sender":         _participant_out(frame.sender),
        "receiver":       _participant_out(frame.receiver),
        "type":           frame.type,
        "conversationId": frame.conversation_id,
    }

    if frame.reply_by is not None:
        out["replyBy"] = format_timestamp(frame.reply_by)

    if frame.message_id is not None:
        out["messageId"] = frame.message_id

    if frame.reply_to is not None:
        out["replyTo"] = frame.reply_to

    return out


def _reference_out(reference: Reference) -> dict:
    return {
        "keys": [{"type": key.type, "value": key.value} for key in reference.keys],
        "type": reference.type,
    }


def _element_out(element: Element) -> dict:

    # The discriminator comes from the class, never from the instance, so
    # anything that is not one of the concrete variants cannot be written.

    try:
        expected = variants[element.model_type]
    except KeyError:
        raise TypeError("cannot encode payload element of type " + type(element).__name__)

    if not isinstance(element, expected):
        raise TypeError("cannot encode payload element of type " + type(element).__name__)

    out: dict = {
        "modelType": element.model_type,
        "idShort":   element.id_short,
    }

    if element.semantic_id is not None:
        out["semanticId"] = _reference_out(element.semantic_id)

    if element.description is not None:
        out["description"] = [{"language": text.language, "text": text.text} for text in element.description]

    if isinstance(element, Property):
        if element.value is not None:
            out["value"] = element.value
        out["valueType"] = element.value_type
    else:
        out["value"] = [_element_out(child) for child in element.value]
        if isinstance(element, List) and element.element_type_hint is not None:
            out["typeValueListElement"] = element.element_type_hint

    return out


# --- decoding ---

_kinds = {
    dict: "an object",
    list: "an array",
    str: "a string",
}


def _require(source: dict, key: str, kind: type, where: str) -> Any:
    try:
        value = source[key]
    except KeyError:
        raise DecodeError(f"{where} is missing required field '{key}'")

    if not isinstance(value, kind):
        raise DecodeError(f"{where} field '{key}' must be {_kinds[kind]}")

    return value


def _optional(source: dict, key: str, kind: type, where: str) -> Optional[Any]:
    value = source.get(key)
    if value is None:
        return None

    if not isinstance(value, kind):
        raise DecodeError(f"{where} field '{key}' must be {_kinds[kind]}")

    return value


def _participant_in(raw: dict, where: str) -> Participant:
    identification = _require(raw, "identification", dict, where)
    id = _require(identification, "id", str, where + ".identification")
    id_type = _optional(identification, "idType", str, where + ".identification")

    role = _optional(raw, "role", dict, where)
    if role is None:
        name = ""
    else:
        name = _optional(role, "name", str, where + ".role") or ""

    return Participant(Identification(id, id_type), Role(name))


def _frame_in(raw: dict) -> Frame:
    sender = _participant_in(_require(raw, "sender", dict, "frame"), "frame.sender")
    receiver = _participant_in(_require(raw, "receiver", dict, "frame"), "frame.receiver")
    type = _require(raw, "type", str, "frame")
    conversation_id = _require(raw, "conversationId", str, "frame")

    reply_by = _optional(raw, "replyBy", str, "frame")
    if reply_by is not None:
        try:
            reply_by = parse_timestamp(reply_by)
        except ValueError as exc:
            raise DecodeError(f"frame field 'replyBy' is not an ISO-8601 timestamp: {reply_by!r}") from exc

    message_id = _optional(raw, "messageId", str, "frame")
    reply_to = _optional(raw, "replyTo", str, "frame")

    return Frame(sender, receiver, type, conversation_id, reply_by, message_id, reply_to)


def _reference_in(raw: dict, where: str) -> Reference:
    keys = list()
    for raw_key in _optional(raw, "keys", list, where) or ():
        if not isinstance(raw_key, dict):
            raise DecodeError(f"{where} keys must be objects")
        key_type = _require(raw_key, "type", str, where + ".keys")
        value = _require(raw_key, "value", str, where + ".keys")
        keys.append(Key(key_type, value))

    kind = _optional(raw, "type", str, where) or fields.EXTERNAL_REFERENCE
    return Reference(tuple(keys), kind)


def _description_in(raw: list, where: str) -> tuple:
    texts = list()
    for entry in raw:
        if not isinstance(entry, dict):
            raise DecodeError(f"{where} entries must be objects")
        text = _require(entry, "text", str, where)
        language = _optional(entry, "language", str, where) or "de"
        texts.append(LangString(text, language))
    return tuple(texts)


def _element_in(raw: Any) -> Element:

    if not isinstance(raw, dict):
        raise DecodeError("payload elements must be JSON objects")

    model_type = raw.get("modelType")
    if not isinstance(model_type, str):
        raise DecodeError("payload element is missing its 'modelType'")

    model_type = fields.MODEL_TYPE_ALIASES.get(model_type, model_type)

    try:
        variant = variants[model_type]
    except KeyError:
        raise DecodeError(f"unknown payload element modelType {raw['modelType']!r}")

    id_short = _optional(raw, "idShort", str, model_type) or ""
    where = f"{model_type} '{id_short}'"

    semantic_id = _optional(raw, "semanticId", dict, where)
    if semantic_id is not None:
        semantic_id = _reference_in(semantic_id, where + " semanticId")

    description = _optional(raw, "description", list, where)
    if description is not None:
        description = _description_in(description, where + " description")

    try:
        if variant is Property:
            value = _optional(raw, "value", str, where)
            value_type = _optional(raw, "valueType", str, where) or fields.DEFAULT_VALUE_TYPE
            return Property(id_short, value, value_type, semantic_id=semantic_id, description=description)

        children = tuple(_element_in(child) for child in _optional(raw, "value", list, where) or ())

        if variant is Collection:
            return Collection(id_short, children, semantic_id=semantic_id, description=description)

        hint = _optional(raw, "typeValueListElement", str, where)
        return List(id_short, children, hint, semantic_id=semantic_id, description=description)

    except (TypeError, ValueError) as exc:
        if isinstance(exc, DecodeError):
            raise
        raise DecodeError(f"{where}: {exc}") from exc
