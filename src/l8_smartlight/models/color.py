"""Color model and the three SLCP color encodings.

The L8 uses 4 bits per channel, so every component ranges from 0 (off)
to 15 (full brightness).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Union

from ..errors import ValidationError

CHANNEL_MAX = 15


@dataclass(frozen=True)
class Color:
    """A single 12-bit RGB color."""

    r: int = 0
    g: int = 0
    b: int = 0

    def __post_init__(self) -> None:
        for name in ("r", "g", "b"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(
                    f"Color channel {name} must be an integer, got {value!r}"
                )
            if not 0 <= value <= CHANNEL_MAX:
                raise ValidationError(
                    f"Color channel {name} must be 0-{CHANNEL_MAX}, got {value}"
                )

    def to_bgr(self) -> bytes:
        """3-byte single LED encoding (LED, SuperLED)."""
        return bytes([self.b, self.g, self.r])

    def to_rgb(self) -> bytes:
        """3-byte encoding used by the text scroller."""
        return bytes([self.r, self.g, self.b])

    def to_matrix_bytes(self) -> bytes:
        """2-byte packed matrix encoding: ``[b, (g << 4) | r]``."""
        return bytes([self.b, (self.g << 4) | self.r])

    def to_dict(self) -> dict[str, int]:
        return {"r": self.r, "g": self.g, "b": self.b}


ColorLike = Union[Color, Sequence[int], Mapping[str, int]]

BLACK = Color(0, 0, 0)


def as_color(value: ColorLike) -> Color:
    """Coerce a ``Color``, ``(r, g, b)`` sequence or ``{"r", "g", "b"}`` mapping.

    Raises:
        ValidationError: If the value is not a valid color.
    """
    if isinstance(value, Color):
        return value
    if isinstance(value, Mapping):
        try:
            return Color(value["r"], value["g"], value["b"])
        except KeyError as e:
            raise ValidationError(f"Color mapping is missing channel {e}") from e
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        if len(value) != 3:
            raise ValidationError(
                f"Color sequence must have 3 channels, got {len(value)}"
            )
        return Color(*value)
    raise ValidationError(f"Invalid color definition: {value!r}")


def solid_matrix(color: ColorLike = BLACK) -> list[Color]:
    """A 64 pixel matrix filled with a single color."""
    return [as_color(color)] * 64
