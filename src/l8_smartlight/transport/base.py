"""Abstract byte-duplex transport used by :class:`~l8_smartlight.device.L8`."""

from __future__ import annotations

import abc
from collections.abc import Callable
from typing import Optional

DataHandler = Callable[[bytes], None]
LostHandler = Callable[[Optional[BaseException]], None]


class Transport(abc.ABC):
    """A connection delivering raw byte chunks of arbitrary size.

    Handlers are always invoked on the event loop thread that opened the
    transport. Errors from ``open``, ``write``, ``drain`` and ``close`` are
    raised to the caller unchanged.
    """

    def __init__(self) -> None:
        self._data_handler: DataHandler | None = None
        self._lost_handler: LostHandler | None = None

    def set_handlers(
        self, on_data: DataHandler, on_lost: LostHandler | None = None
    ) -> None:
        self._data_handler = on_data
        self._lost_handler = on_lost

    def _deliver(self, data: bytes) -> None:
        if self._data_handler is not None:
            self._data_handler(data)

    def _connection_lost(self, exc: BaseException | None) -> None:
        if self._lost_handler is not None:
            self._lost_handler(exc)

    @property
    @abc.abstractmethod
    def is_open(self) -> bool:
        ...

    @abc.abstractmethod
    async def open(self, port: str, baudrate: int) -> None:
        ...

    @abc.abstractmethod
    async def write(self, data: bytes) -> int:
        ...

    @abc.abstractmethod
    async def drain(self) -> None:
        """Wait until all written bytes have been transmitted."""

    @abc.abstractmethod
    async def close(self) -> None:
        ...
