"""SLCP command codes and frame builders.

Each builder validates its arguments and returns a complete wire frame.
Nothing is sent here; :class:`~l8_smartlight.device.L8` decides how the
device acknowledges each frame.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from enum import IntEnum

from ..errors import ValidationError
from ..models.color import ColorLike, as_color
from .framing import build_frame

MATRIX_SIZE = 8
MATRIX_PIXELS = MATRIX_SIZE * MATRIX_SIZE
DURATION_RESOLUTION_MS = 100


class Command(IntEnum):
    """SLCP command identifiers."""

    PING = 0x01
    PONG = 0x02
    OK = 0x0F
    ERR = 0x10
    L8_LED_SET = 0x43
    L8_MATRIX_SET = 0x44
    L8_MATRIX_OFF = 0x45
    L8_SUPERLED_SET = 0x4B
    L8_ACC_QUERY = 0x4C
    L8_ACC_RESPONSE = 0x4D
    L8_STORE_FRAME = 0x59
    L8_STORE_FRAME_RESPONSE = 0x5A
    L8_STORE_ANIM = 0x5F
    L8_STORE_ANIM_RESPONSE = 0x60
    L8_PLAY_ANIM = 0x66
    L8_SET_AUTOROTATE = 0x6A
    L8_SET_ORIENTATION = 0x80
    L8_SET_TEXT = 0x83
    L8_APP_STOP = 0x84
    L8_DELETE_USER_MEMORY = 0x93


SCROLL_SPEEDS: dict[str, int] = {
    "fast": 0,
    "medium": 2,
    "slow": 3,
}

ORIENTATION_CODES: dict[str, int] = {
    "up": 1,
    "down": 2,
    "left": 5,
    "right": 6,
}

ORIENTATIONS = ("auto", *ORIENTATION_CODES)


def build_command(command: Command, parameters: bytes = b"") -> bytes:
    """Build a frame for a command."""
    return build_frame(command.value, parameters)


def validate_coordinates(x: int, y: int) -> None:
    if not (0 <= x < MATRIX_SIZE and 0 <= y < MATRIX_SIZE):
        raise ValidationError(
            f"LED coordinates out of bounds: ({x}, {y}), expected 0-7"
        )


def encode_matrix(matrix: Sequence[ColorLike]) -> bytes:
    """Encode 64 colors, row-major from the top left, into 128 bytes."""
    if len(matrix) != MATRIX_PIXELS:
        raise ValidationError(
            f"Matrix must have {MATRIX_PIXELS} colors, got {len(matrix)}"
        )
    return b"".join(as_color(color).to_matrix_bytes() for color in matrix)


def build_ping() -> bytes:
    return build_command(Command.PING)


def build_set_led(x: int, y: int, color: ColorLike) -> bytes:
    """Build an LED_SET command for a single matrix pixel.

    Args:
        x: Column 0-7.
        y: Row 0-7.
        color: Pixel color.
    """
    validate_coordinates(x, y)
    return build_command(
        Command.L8_LED_SET, bytes([x, y]) + as_color(color).to_bgr()
    )


def build_set_matrix(matrix: Sequence[ColorLike]) -> bytes:
    """Build a MATRIX_SET command for all 64 pixels."""
    return build_command(Command.L8_MATRIX_SET, encode_matrix(matrix))


def build_clear_matrix() -> bytes:
    """Build a MATRIX_OFF command.

    The firmware rejects this command without a parameter, so a single
    zero byte is sent.
    """
    return build_command(Command.L8_MATRIX_OFF, b"\x00")


def build_set_super_led(color: ColorLike) -> bytes:
    return build_command(Command.L8_SUPERLED_SET, as_color(color).to_bgr())


def build_stop_application() -> bytes:
    return build_command(Command.L8_APP_STOP)


def build_set_scrolling_text(
    text: str, color: ColorLike, speed: str, loop: bool
) -> bytes:
    """Build a SET_TEXT command starting the text scroller app.

    Parameters are ``[loop, speed, r, g, b, text...]``.

    Args:
        text: ASCII text to scroll.
        color: Text color.
        speed: One of ``"slow"``, ``"medium"`` or ``"fast"``.
        loop: Keep scrolling after the first pass.
    """
    if speed not in SCROLL_SPEEDS:
        raise ValidationError(
            f"Invalid scrolling speed {speed!r}. Valid: {list(SCROLL_SPEEDS)}"
        )
    try:
        encoded = text.encode("ascii")
    except UnicodeEncodeError as e:
        raise ValidationError(f"Scrolling text must be ASCII: {text!r}") from e
    parameters = (
        bytes([1 if loop else 0, SCROLL_SPEEDS[speed]])
        + as_color(color).to_rgb()
        + encoded
    )
    return build_command(Command.L8_SET_TEXT, parameters)


def build_set_autorotate(enabled: bool) -> bytes:
    return build_command(Command.L8_SET_AUTOROTATE, bytes([1 if enabled else 0]))


def build_set_orientation(orientation: str) -> bytes:
    """Build a SET_ORIENTATION command for a manual orientation."""
    if orientation not in ORIENTATION_CODES:
        raise ValidationError(
            f"Invalid orientation {orientation!r}. Valid: {list(ORIENTATION_CODES)}"
        )
    return build_command(
        Command.L8_SET_ORIENTATION, bytes([ORIENTATION_CODES[orientation]])
    )


def build_acceleration_query() -> bytes:
    return build_command(Command.L8_ACC_QUERY)


def build_store_frame(matrix: Sequence[ColorLike]) -> bytes:
    """Build a STORE_FRAME command saving a matrix to user memory."""
    return build_command(Command.L8_STORE_FRAME, encode_matrix(matrix))


def duration_to_ticks(duration_ms: float) -> int:
    """Round a duration to the device's 100 ms timer resolution, halves up."""
    ticks = math.floor(duration_ms / DURATION_RESOLUTION_MS + 0.5)
    if not 0 <= ticks <= 0xFF:
        raise ValidationError(
            f"Frame duration must be 0-25500 ms, got {duration_ms}"
        )
    return ticks


def build_store_animation(
    frame_ids: Sequence[int], durations_ms: Sequence[float]
) -> bytes:
    """Build a STORE_ANIM command from stored frame ids.

    Parameters are ``[count, (frame_id, ticks)...]``.
    """
    if len(frame_ids) != len(durations_ms):
        raise ValidationError(
            f"Got {len(frame_ids)} frames but {len(durations_ms)} durations"
        )
    if not frame_ids:
        raise ValidationError("An animation needs at least one frame")
    parameters = bytearray([len(frame_ids)])
    for frame_id, duration in zip(frame_ids, durations_ms):
        if not 0 <= frame_id <= 0xFF:
            raise ValidationError(f"Frame id must be 0-255, got {frame_id}")
        parameters += bytes([frame_id, duration_to_ticks(duration)])
    return build_command(Command.L8_STORE_ANIM, bytes(parameters))


def build_play_animation(animation_id: int, loop: bool) -> bytes:
    if not 0 <= animation_id <= 0xFF:
        raise ValidationError(f"Animation id must be 0-255, got {animation_id}")
    return build_command(
        Command.L8_PLAY_ANIM, bytes([animation_id, 1 if loop else 0])
    )


def build_delete_user_memory() -> bytes:
    return build_command(Command.L8_DELETE_USER_MEMORY)
