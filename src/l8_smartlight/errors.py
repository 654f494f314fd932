"""Exception hierarchy for the L8 driver.

Validation errors are raised synchronously before anything is written.
Protocol errors mean the byte stream is desynchronized and the connection
has to be reopened. Device errors are per-command and leave the
connection usable. Transport failures (``serial.SerialException``,
``OSError``) are not wrapped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocol.framing import Frame


class L8Error(Exception):
    """Base class for all driver errors."""


class ValidationError(L8Error, ValueError):
    """Invalid argument: coordinates, colors, lengths or option tokens."""


class EncodingError(ValidationError):
    """A frame cannot be encoded, e.g. parameters exceed the length byte."""


class ProtocolError(L8Error):
    """Malformed data on the wire. Fatal for the connection."""


class ChecksumError(ProtocolError):
    """A received frame failed CRC-8 verification."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Frame checksum mismatch: received 0x{expected:02X}, "
            f"computed 0x{actual:02X}"
        )
        self.expected = expected
        self.actual = actual


class DeviceError(L8Error):
    """The device answered a command with an error frame."""

    def __init__(self, message: str, frame: Frame | None = None) -> None:
        super().__init__(message)
        self.frame = frame


class NotConnectedError(L8Error, ConnectionError):
    """A command was issued while the session is not connected."""
