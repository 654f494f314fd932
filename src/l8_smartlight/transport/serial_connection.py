"""Serial port transport for the L8 Smartlight.

The L8 shows up as a USB CDC serial device (or a Bluetooth serial port)
and talks 8N1. Reading happens on pyserial's ``ReaderThread``; every
received chunk is handed over to the asyncio loop so that frame decoding
stays on a single thread.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial

import serial
from serial.threaded import Protocol, ReaderThread
from serial.tools import list_ports

from .base import Transport

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 115200


def list_candidate_ports() -> list[str]:
    """Return serial ports that look like an L8 (USB modem or L8 bluetooth port)."""
    candidates = []
    for port_info in list_ports.comports():
        device = (port_info.device or "").lower()
        description = (port_info.description or "").lower()
        if (
            "usbmodem" in device
            or "ttyacm" in device
            or "l8" in device
            or "l8" in description
        ):
            candidates.append(port_info.device)
    return candidates


class _ChunkForwarder(Protocol):
    """Runs on the reader thread and forwards chunks to the loop."""

    def __init__(self, transport: SerialTransport, loop: asyncio.AbstractEventLoop) -> None:
        self._transport = transport
        self._loop = loop

    def data_received(self, data: bytes) -> None:
        self._loop.call_soon_threadsafe(self._transport._deliver, bytes(data))

    def connection_lost(self, exc: BaseException | None) -> None:
        if exc is not None:
            self._loop.call_soon_threadsafe(self._transport._connection_lost, exc)


class SerialTransport(Transport):
    """pyserial backed :class:`Transport`.

    Usage::

        transport = SerialTransport()
        transport.set_handlers(on_data)
        await transport.open("/dev/ttyACM0", 115200)
        await transport.write(frame)
        await transport.drain()
        await transport.close()
    """

    def __init__(self) -> None:
        super().__init__()
        self._serial: serial.Serial | None = None
        self._reader: ReaderThread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def is_open(self) -> bool:
        return self._reader is not None and self._reader.alive

    async def open(self, port: str, baudrate: int = DEFAULT_BAUDRATE) -> None:
        """Open ``port`` at ``baudrate`` 8N1 and start the reader thread.

        Raises:
            serial.SerialException: If the port cannot be opened.
        """
        self._loop = asyncio.get_running_loop()
        self._serial = await self._loop.run_in_executor(
            None,
            partial(
                serial.Serial,
                port,
                baudrate=baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
            ),
        )
        loop = self._loop
        self._reader = ReaderThread(self._serial, lambda: _ChunkForwarder(self, loop))
        self._reader.start()
        logger.info("Opened %s at %d baud", port, baudrate)

    async def write(self, data: bytes) -> int:
        if self._reader is None:
            raise serial.SerialException("Serial port is not open")
        written = await self._loop.run_in_executor(None, self._reader.write, data)
        return len(data) if written is None else written

    async def drain(self) -> None:
        if self._serial is None:
            raise serial.SerialException("Serial port is not open")
        await self._loop.run_in_executor(None, self._serial.flush)

    async def close(self) -> None:
        if self._reader is None:
            return
        reader, self._reader = self._reader, None
        try:
            await self._loop.run_in_executor(None, reader.close)
        finally:
            self._serial = None
            logger.info("Closed serial port")
