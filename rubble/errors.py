"""Error types shared across the stack and the implemented specification version."""

from __future__ import annotations

from enum import IntEnum


class RubbleError(Exception):
    """Base class for every error raised while encoding or decoding packets."""

    default_message = "rubble error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(self.default_message if message is None else message)


class EofError(RubbleError, EOFError):
    """Raised when a buffer ends before the data being read or written does."""

    default_message = "unexpected end of buffer"


class InvalidLengthError(RubbleError, ValueError):
    """Raised when a length field or a buffer size is not acceptable."""

    default_message = "invalid length"


class InvalidValueError(RubbleError, ValueError):
    """Raised when a field holds a value that is not allowed."""

    default_message = "invalid value"


class VersionNumber(IntEnum):
    """Bluetooth specification versions as sent in link-layer version exchanges."""

    V4_0 = 6
    V4_1 = 7
    V4_2 = 8


BLUETOOTH_VERSION = VersionNumber.V4_2
"""Version of the Bluetooth specification this stack implements."""