""" Python implementation of the I4.0 language messaging layer: building,
    encoding, and exchanging structured negotiation messages between
    Industry 4.0 agents, with conversation tracking, callback dispatch, and
    a bounded inbox on the receiving side.
"""

import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Utility components.

from . import json
from . import poll

# Submodules used by multiple other components.

from . import protocol
from . import config
home = config.directory

from . import callbacks
from . import conversation
from . import inbox
from . import transport

# Primary public-facing interfaces.

from . import client
from .client import MessagingClient
from .protocol import MessageBuilder

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
