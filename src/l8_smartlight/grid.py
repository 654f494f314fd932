"""Several L8s driven as one large matrix.

A grid is described relative to the first device::

    layout = GridBuilder(l8_a).right(l8_b).bottom(l8_c)
    grid = L8Grid(layout)
    await grid.open()
    await grid.set_led(12, 3, Color(0, 15, 0))      # lands on l8_b at (4, 3)
    await grid.set_matrix(pixels, columns=16)

Placing a device to the ``left`` of the layout shifts every placed
device 8 columns to the right and puts the new one at the origin; the
other directions work the same way on their axis. The finished layout is
normalized so its top left corner is (0, 0). Layouts do not need to be
rectangular; coordinates in gaps cannot be addressed.

Grid methods delegate to the devices as listed in ``DISPATCH_TABLE``:
per-coordinate methods go to the one device covering the pixel,
per-matrix methods split the matrix between all devices, broadcast
methods run on every device. Fan-out runs concurrently and fails with the
first error; devices that already succeeded are not rolled back.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import NamedTuple

from .device import L8
from .errors import ValidationError
from .models.color import BLACK, ColorLike, as_color
from .protocol.commands import MATRIX_PIXELS, MATRIX_SIZE

logger = logging.getLogger(__name__)

SEGMENT_SIZE = MATRIX_SIZE


@dataclass(frozen=True)
class GridSegment:
    """Placement of one device, in grid pixels."""

    x: int
    y: int
    device: L8

    def contains(self, x: int, y: int) -> bool:
        return (
            self.x <= x < self.x + SEGMENT_SIZE
            and self.y <= y < self.y + SEGMENT_SIZE
        )


class SegmentMapping(NamedTuple):
    index: int
    device: L8
    x: int
    y: int


class GridBuilder:
    """Accumulates device placements relative to each other."""

    def __init__(self, initial: L8) -> None:
        self._placements: list[list] = [[0, 0, initial]]

    def left(self, device: L8) -> GridBuilder:
        return self._add(device, SEGMENT_SIZE, 0)

    def right(self, device: L8) -> GridBuilder:
        return self._add(device, -SEGMENT_SIZE, 0)

    def top(self, device: L8) -> GridBuilder:
        return self._add(device, 0, SEGMENT_SIZE)

    def bottom(self, device: L8) -> GridBuilder:
        return self._add(device, 0, -SEGMENT_SIZE)

    def _add(self, device: L8, dx: int, dy: int) -> GridBuilder:
        # After the shift the device at (-dx, -dy) would sit on the origin
        if any(x == -dx and y == -dy for x, y, _ in self._placements):
            raise ValidationError(
                f"Cannot place {device!r}: the position is already taken"
            )
        for placement in self._placements:
            placement[0] += dx
            placement[1] += dy
        self._placements.append([0, 0, device])
        return self

    def normalize(self) -> None:
        """Move the layout so its smallest x and y are both 0."""
        min_x = min(x for x, _, _ in self._placements)
        min_y = min(y for _, y, _ in self._placements)
        for placement in self._placements:
            placement[0] -= min_x
            placement[1] -= min_y

    def build(self) -> list[GridSegment]:
        self.normalize()
        return [GridSegment(x, y, device) for x, y, device in self._placements]


class DispatchStrategy(Enum):
    PER_COORDINATE = "per_coordinate"
    PER_MATRIX = "per_matrix"
    BROADCAST = "broadcast"


DISPATCH_TABLE: dict[str, DispatchStrategy] = {
    "set_led": DispatchStrategy.PER_COORDINATE,
    "clear_led": DispatchStrategy.PER_COORDINATE,
    "set_matrix": DispatchStrategy.PER_MATRIX,
    "open": DispatchStrategy.BROADCAST,
    "close": DispatchStrategy.BROADCAST,
    "ping": DispatchStrategy.BROADCAST,
    "clear_matrix": DispatchStrategy.BROADCAST,
    "set_super_led": DispatchStrategy.BROADCAST,
    "clear_super_led": DispatchStrategy.BROADCAST,
    "set_scrolling_text": DispatchStrategy.BROADCAST,
    "stop_application": DispatchStrategy.BROADCAST,
    "clear_scrolling_text": DispatchStrategy.BROADCAST,
    "set_orientation": DispatchStrategy.BROADCAST,
    "clear_user_memory": DispatchStrategy.BROADCAST,
}


def _start_all(calls: Sequence[Callable[[], Awaitable]]) -> Awaitable[list]:
    """Start every call, then join them.

    If one call fails synchronously (validation, not connected), the
    awaitables already created are closed and nothing is sent.
    """
    awaitables = []
    try:
        for call in calls:
            awaitables.append(call())
    except BaseException:
        for awaitable in awaitables:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
        raise
    return _join(awaitables)


async def _join(awaitables: list[Awaitable]) -> list:
    return list(await asyncio.gather(*awaitables))


class L8Grid:
    """A layout of L8s addressed as one matrix.

    Args:
        layout: A :class:`GridBuilder` or already normalized segments.
    """

    def __init__(self, layout: GridBuilder | Sequence[GridSegment]) -> None:
        segments = layout.build() if isinstance(layout, GridBuilder) else list(layout)
        if not segments:
            raise ValidationError("A grid needs at least one device")
        self.segments: tuple[GridSegment, ...] = tuple(segments)
        self.width = max(s.x for s in self.segments) + SEGMENT_SIZE
        self.height = max(s.y for s in self.segments) + SEGMENT_SIZE
        logger.debug(
            "Grid of %d device(s), %dx%d pixels",
            len(self.segments), self.width, self.height,
        )

    def __repr__(self) -> str:
        return f"L8Grid({len(self.segments)} devices, {self.width}x{self.height})"

    @property
    def devices(self) -> list[L8]:
        return [segment.device for segment in self.segments]

    def map_coordinates(self, x: int, y: int) -> SegmentMapping:
        """Find the device covering grid pixel ``(x, y)``.

        Raises:
            ValidationError: If no device covers the pixel.
        """
        for index, segment in enumerate(self.segments):
            if segment.contains(x, y):
                return SegmentMapping(index, segment.device, x - segment.x, y - segment.y)
        raise ValidationError(f"Grid coordinates ({x}, {y}) are not covered by any L8")

    def map_matrix(
        self, matrix: Sequence[ColorLike], columns: int
    ) -> list[list]:
        """Split a grid matrix into one 64 pixel matrix per segment.

        Pixel ``i`` of ``matrix`` sits at ``(i % columns, i // columns)``.
        Segment pixels the matrix does not cover stay off.
        """
        if columns <= 0 or len(matrix) % columns:
            raise ValidationError(
                f"Matrix of {len(matrix)} pixels cannot have {columns} columns"
            )
        submatrices = [[BLACK] * MATRIX_PIXELS for _ in self.segments]
        for index, color in enumerate(matrix):
            mapping = self.map_coordinates(index % columns, index // columns)
            submatrices[mapping.index][mapping.y * SEGMENT_SIZE + mapping.x] = as_color(color)
        return submatrices

    def clear_grid(self) -> Awaitable[list]:
        """Switch off every device's matrix concurrently."""
        return self.clear_matrix()


def _per_coordinate(name: str):
    def method(self: L8Grid, x: int, y: int, *args, **kwargs):
        mapping = self.map_coordinates(x, y)
        return getattr(mapping.device, name)(mapping.x, mapping.y, *args, **kwargs)

    return method


def _per_matrix(name: str):
    def method(self: L8Grid, matrix: Sequence[ColorLike], columns: int, *args, **kwargs):
        submatrices = self.map_matrix(matrix, columns)
        return _start_all([
            partial(getattr(segment.device, name), submatrix, *args, **kwargs)
            for segment, submatrix in zip(self.segments, submatrices)
        ])

    return method


def _broadcast(name: str):
    def method(self: L8Grid, *args, **kwargs):
        return _start_all([
            partial(getattr(segment.device, name), *args, **kwargs)
            for segment in self.segments
        ])

    return method


_DISPATCHERS = {
    DispatchStrategy.PER_COORDINATE: _per_coordinate,
    DispatchStrategy.PER_MATRIX: _per_matrix,
    DispatchStrategy.BROADCAST: _broadcast,
}

for _name, _strategy in DISPATCH_TABLE.items():
    _method = _DISPATCHERS[_strategy](_name)
    _method.__name__ = _name
    _method.__qualname__ = f"L8Grid.{_name}"
    _method.__doc__ = f"Grid version of :meth:`L8.{_name}` ({_strategy.value})."
    setattr(L8Grid, _name, _method)
