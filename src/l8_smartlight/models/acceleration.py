"""Accelerometer reading returned by the L8."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Union


@dataclass(frozen=True)
class Acceleration:
    """Decoded ``L8_ACC_RESPONSE`` payload.

    ``orientation`` is one of ``"up"``, ``"down"``, ``"left"``, ``"right"``,
    or the raw firmware code when it has no symbolic name.
    """

    x: int
    y: int
    z: int
    lying: str
    orientation: Union[str, int]
    tap: bool
    shake: bool

    def to_dict(self) -> dict:
        return asdict(self)
