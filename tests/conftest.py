"""Shared fixtures: an in-memory transport standing in for the serial port."""

import asyncio

import pytest

from l8_smartlight.device import L8
from l8_smartlight.protocol.commands import Command
from l8_smartlight.protocol.framing import build_frame
from l8_smartlight.transport.base import Transport


class FakeTransport(Transport):
    """Records written frames and answers them through ``responder``.

    ``responder(frame)`` returns a list of byte chunks to deliver back,
    each on its own loop iteration after the write.
    """

    def __init__(self, responder=None):
        super().__init__()
        self.responder = responder
        self.written = []
        self.open_error = None
        self.opened_with = None
        self._open = False

    @property
    def is_open(self):
        return self._open

    async def open(self, port, baudrate):
        if self.open_error is not None:
            raise self.open_error
        self.opened_with = (port, baudrate)
        self._open = True

    async def write(self, data):
        self.written.append(bytes(data))
        if self.responder is not None:
            loop = asyncio.get_running_loop()
            for chunk in self.responder(bytes(data)) or []:
                loop.call_soon(self._deliver, chunk)
        return len(data)

    async def drain(self):
        pass

    async def close(self):
        self._open = False

    def feed(self, data):
        """Deliver bytes as if they came from the device."""
        self._deliver(data)

    def commands(self):
        return [frame[3] for frame in self.written]

    @staticmethod
    def acknowledge(frame):
        """Answer every frame with the generic OK response."""
        return [build_frame(Command.OK, bytes([frame[3]]))]

    @staticmethod
    async def settle(rounds=10):
        """Let pending callbacks and tasks run."""
        for _ in range(rounds):
            await asyncio.sleep(0)


@pytest.fixture
def make_transport():
    return FakeTransport


@pytest.fixture
def transport():
    return FakeTransport(FakeTransport.acknowledge)


@pytest.fixture
def device(transport):
    return L8("/dev/ttyACM0", transport_factory=lambda: transport)
