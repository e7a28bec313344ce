"""Protocol exceptions.

Validation and decode errors are raised to the immediate caller. A
:class:`CallbackError` is only ever handed to an error handler at the
dispatch boundary; it is never raised out of a dispatch.
"""

from __future__ import annotations

from typing import Any, Optional


class ProtocolError(Exception):
    """Base class for all protocol-layer errors."""


class ValidationError(ProtocolError, ValueError):
    """A message is missing a required frame field."""

    def __init__(self, field: str, text: Optional[str] = None):
        self.field = field
        if text is None:
            text = f"{field} is required"
        super().__init__(text)


class DecodeError(ProtocolError, ValueError):
    """A wire payload could not be turned back into a message."""


class CallbackError(ProtocolError):
    """A user callback raised during dispatch.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, callback: Any, message: Any, topic: Optional[str], cause: BaseException):
        self.callback = callback
        self.message = message
        self.topic = topic
        self.__cause__ = cause
        name = getattr(callback, "__qualname__", None) or repr(callback)
        super().__init__(f"callback {name} failed: {type(cause).__name__}: {cause}")
