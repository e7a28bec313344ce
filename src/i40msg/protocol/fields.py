"""Protocol constants.

Keep these in one place to avoid stringly-typed message handling. The set
of message types is open: routing only ever compares type tokens for exact
equality, so a token missing here is still a valid message type.
"""

from __future__ import annotations

from typing import Optional


# Negotiation

CALL_FOR_PROPOSAL = "callForProposal"
PROPOSAL = "proposal"
ACCEPT_PROPOSAL = "acceptProposal"
DENY_PROPOSAL = "denyProposal"

# Informational

INFORM = "inform"
INFORM_CONFIRM = "informConfirm"
FAILURE = "failure"
CONSENT = "consent"

# Requirement-oriented

REQUIREMENT = "requirement"
REQUIREMENT_INFORM = "requirementInform"
REQUIREMENT_REPEAT = "requirementRepeat"
REQUIREMENT_PREVIOUSLY = "requirementPreviously"
REQUIREMENT_TERMINATE = "requirementTerminate"

# Lifecycle

LIFECYCLE_KILL_AGENT = "Lifecycle_killAgent"
LIFECYCLE_RESTART_AGENT = "Lifecycle_restartAgent"
LIFECYCLE_SPAWN_AGENT = "Lifecycle_spawnAgent"
LIFECYCLE_UPDATE_AGENT = "Lifecycle_updateAgent"

# Order / production plan

RECIPE = "recipe"
ORDER_DELETE_ACTION = "Order_deleteAction"
ORDER_TERMINATE_ACTION = "Order_terminateAction"
ORDER_DONE_ACTION = "Order_doneAction"
ORDER_EXECUTE_ACTION = "Order_executeAction"
ORDER_PRODUCT_CREATION = "Order_productCreation"

NEGOTIATION = (CALL_FOR_PROPOSAL, PROPOSAL, ACCEPT_PROPOSAL, DENY_PROPOSAL)

# Subtypes further describe the intent of a frame type.

PROCESS_CHAIN = "ProcessChain"
MANUFACTURING_SEQUENCE = "ManufacturingSequence"
TRANSPORT_REQUEST = "TransportRequest"

SUBTYPES = (PROCESS_CHAIN, MANUFACTURING_SEQUENCE, TRANSPORT_REQUEST)


def parse_subtype(raw: Optional[str]) -> Optional[str]:
    """Return the canonical spelling of a subtype token, matched
    case-insensitively, or None if *raw* is empty or unknown."""

    if raw is None:
        return None

    raw = raw.strip().lower()
    if raw == "":
        return None

    for subtype in SUBTYPES:
        if subtype.lower() == raw:
            return subtype

    return None


# Payload element discriminators, as written on the wire. The AAS long
# forms are accepted when decoding.

PROPERTY = "Property"
COLLECTION = "Collection"
LIST = "List"

MODEL_TYPE_ALIASES = {
    "SubmodelElementCollection": COLLECTION,
    "SubmodelElementList": LIST,
}

DEFAULT_VALUE_TYPE = "xs:string"
EXTERNAL_REFERENCE = "ExternalReference"
MODEL_REFERENCE = "ModelReference"
GLOBAL_REFERENCE = "GlobalReference"

# Key name of the payload array in the encoded message.

PAYLOAD_KEY = "interactionElements"
