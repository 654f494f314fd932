"""Continuous accelerometer readings.

The L8 only reports acceleration when asked, so the stream polls it. A
poll is only issued when a subscriber wants the next reading, at most one
poll is in flight, and after every reading the stream cools down for one
sampling interval. A request made during the cooldown is remembered and
served by exactly one poll as soon as the cooldown ends. A failed poll is
raised to the subscribers waiting for it; the others keep their last
unread reading.

Usage::

    stream = l8.acceleration_stream(interval=0.2)
    async with stream.subscribe() as readings:
        async for reading in readings:
            print(reading.x, reading.y, reading.z)
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .errors import ValidationError
from .models.acceleration import Acceleration

if TYPE_CHECKING:
    from .device import L8

logger = logging.getLogger(__name__)

_CLOSED = object()


class AccelerationSubscription:
    """One consumer of an :class:`AccelerationStream`.

    Only the newest reading is kept; an unread reading is replaced when a
    newer one arrives.
    """

    def __init__(self, stream: AccelerationStream) -> None:
        self._stream = stream
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self.closed = False
        self.waiting = False

    def __aiter__(self) -> AccelerationSubscription:
        return self

    async def __anext__(self) -> Acceleration:
        if self.closed:
            raise StopAsyncIteration
        if self._queue.empty():
            self._stream._read()
        self.waiting = True
        try:
            item = await self._queue.get()
        finally:
            self.waiting = False
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def __aenter__(self) -> AccelerationSubscription:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Detach from the stream; a pending ``__anext__`` ends the iteration."""
        if self.closed:
            return
        self.closed = True
        self._stream._unsubscribe(self)
        self._push(_CLOSED)

    def _push(self, item) -> None:
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(item)


class AccelerationStream:
    """Infinite, lazily polled sequence of :class:`Acceleration` readings.

    Args:
        device: Connected :class:`~l8_smartlight.device.L8`.
        interval: Sampling interval (and cooldown) in seconds.
    """

    def __init__(self, device: L8, interval: float = 0.1) -> None:
        if interval <= 0:
            raise ValidationError(f"Sampling interval must be positive, got {interval}")
        self._device = device
        self.interval = interval
        self._subscriptions: list[AccelerationSubscription] = []
        self._cooldown = False
        self._requested = False
        self._polling = False
        self._task: asyncio.Task | None = None

    @property
    def subscribers(self) -> int:
        return len(self._subscriptions)

    @property
    def polling(self) -> bool:
        return self._polling

    def subscribe(self) -> AccelerationSubscription:
        subscription = AccelerationSubscription(self)
        self._subscriptions.append(subscription)
        return subscription

    def __aiter__(self) -> AccelerationSubscription:
        return self.subscribe()

    def _unsubscribe(self, subscription: AccelerationSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        if not self._subscriptions:
            self._requested = False

    def _read(self) -> None:
        """A subscriber wants the next reading."""
        if self._polling:
            return
        if self._cooldown:
            self._requested = True
            return
        self._poll()

    def _poll(self) -> None:
        self._polling = True
        self._task = asyncio.get_running_loop().create_task(self._run_poll())

    async def _run_poll(self) -> None:
        try:
            result = await self._device.get_acceleration()
        except Exception as e:
            logger.error("Reading the acceleration failed: %s", e)
            result = e
        finally:
            self._polling = False
            self._task = None
        self._requested = False
        self._cooldown = True
        asyncio.get_running_loop().call_later(self.interval, self._end_cooldown)

        if isinstance(result, Exception):
            # Unread readings of subscribers that are not waiting are kept
            targets = [s for s in self._subscriptions if s.waiting]
        else:
            targets = list(self._subscriptions)
        for subscription in targets:
            subscription._push(result)

    def _end_cooldown(self) -> None:
        self._cooldown = False
        if self._requested and self._subscriptions:
            self._requested = False
            self._poll()
