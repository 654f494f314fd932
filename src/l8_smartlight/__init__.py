"""Host-side driver for the L8 Smartlight LED matrix."""

__version__ = "0.1.0"

from .device import L8, ConnectionState
from .errors import (
    ChecksumError,
    DeviceError,
    EncodingError,
    L8Error,
    NotConnectedError,
    ProtocolError,
    ValidationError,
)
from .grid import DISPATCH_TABLE, DispatchStrategy, GridBuilder, GridSegment, L8Grid
from .models import Acceleration, Color, solid_matrix
from .polling import AccelerationStream
from .protocol import Command, Frame

__all__ = [
    "L8",
    "ConnectionState",
    "L8Grid",
    "GridBuilder",
    "GridSegment",
    "DispatchStrategy",
    "DISPATCH_TABLE",
    "AccelerationStream",
    "Acceleration",
    "Color",
    "solid_matrix",
    "Command",
    "Frame",
    "L8Error",
    "ValidationError",
    "EncodingError",
    "ProtocolError",
    "ChecksumError",
    "DeviceError",
    "NotConnectedError",
]
