"""Response parsing for device messages."""

from __future__ import annotations

from ..errors import ProtocolError
from ..models.acceleration import Acceleration
from .commands import Command
from .framing import Frame

ACCELERATION_PAYLOAD_SIZE = 7

# Inverse of ORIENTATION_CODES; unknown codes are passed through raw
ORIENTATION_NAMES: dict[int, str] = {
    1: "up",
    2: "down",
    5: "left",
    6: "right",
}


def parse_acceleration(frame: Frame) -> Acceleration:
    """Parse an ``L8_ACC_RESPONSE`` frame.

    The seven parameter bytes are ``x, y, z, lying, orientation, tap,
    shake``. The firmware reports ``tap`` as 1 in most readings, so it is
    not a reliable tap detector.

    Raises:
        ProtocolError: If the frame is not an acceleration response.
    """
    if frame.command != Command.L8_ACC_RESPONSE:
        raise ProtocolError(f"Not an acceleration response: {frame!r}")
    params = frame.parameters
    if len(params) < ACCELERATION_PAYLOAD_SIZE:
        raise ProtocolError(
            f"Acceleration response needs {ACCELERATION_PAYLOAD_SIZE} bytes, "
            f"got {len(params)}"
        )
    return Acceleration(
        x=params[0],
        y=params[1],
        z=params[2],
        lying="up" if params[3] == 2 else "upside_down",
        orientation=ORIENTATION_NAMES.get(params[4], params[4]),
        tap=params[5] == 1,
        shake=params[6] != 0,
    )


def parse_stored_id(frame: Frame) -> int:
    """Parse the id from a STORE_FRAME or STORE_ANIM response."""
    if frame.command not in (
        Command.L8_STORE_FRAME_RESPONSE,
        Command.L8_STORE_ANIM_RESPONSE,
    ):
        raise ProtocolError(f"Not a store response: {frame!r}")
    if not frame.parameters:
        raise ProtocolError(f"Store response without id: {frame!r}")
    return frame.parameters[0]
