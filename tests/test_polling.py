"""Tests for the polled acceleration stream."""

import asyncio

import pytest

from l8_smartlight.errors import DeviceError, ValidationError
from l8_smartlight.polling import AccelerationStream
from l8_smartlight.protocol.commands import Command
from l8_smartlight.protocol.framing import build_frame

from conftest import FakeTransport

INTERVAL = 0.05


@pytest.fixture
def accelerometer(transport):
    readings = iter(range(1, 100))

    def respond(frame):
        if frame[3] == Command.L8_ACC_QUERY:
            x = next(readings)
            return [build_frame(Command.L8_ACC_RESPONSE, bytes([x, 0, 0, 2, 1, 0, 0]))]
        return FakeTransport.acknowledge(frame)

    transport.responder = respond
    return transport


def _queries(transport):
    return transport.commands().count(Command.L8_ACC_QUERY)


def test_interval_must_be_positive(device):
    with pytest.raises(ValidationError):
        AccelerationStream(device, 0)


def test_no_poll_without_subscribers(device, accelerometer):
    async def scenario():
        await device.open()
        stream = device.acceleration_stream(INTERVAL)
        await asyncio.sleep(INTERVAL * 2)
        assert stream.subscribers == 0

    asyncio.run(scenario())
    assert _queries(accelerometer) == 0


def test_readings_are_polled_on_demand(device, accelerometer):
    async def scenario():
        await device.open()
        stream = device.acceleration_stream(INTERVAL)
        values = []
        async with stream.subscribe() as readings:
            async for reading in readings:
                values.append(reading.x)
                if len(values) == 3:
                    break
        return values

    assert asyncio.run(scenario()) == [1, 2, 3]
    assert _queries(accelerometer) == 3


def test_cooldown_defers_the_next_poll(device, accelerometer):
    async def scenario():
        await device.open()
        stream = device.acceleration_stream(INTERVAL)
        subscription = stream.subscribe()
        first = await subscription.__anext__()
        assert first.x == 1

        pending = asyncio.ensure_future(subscription.__anext__())
        await FakeTransport.settle()
        assert not pending.done()
        assert _queries(accelerometer) == 1

        second = await asyncio.wait_for(pending, INTERVAL * 10)
        assert second.x == 2
        subscription.close()

    asyncio.run(scenario())


def test_requests_during_cooldown_share_one_poll(device, accelerometer):
    async def scenario():
        await device.open()
        stream = device.acceleration_stream(INTERVAL)
        a = stream.subscribe()
        b = stream.subscribe()

        # One poll serves both subscribers
        assert (await a.__anext__()).x == 1
        assert (await b.__anext__()).x == 1

        both = asyncio.gather(a.__anext__(), b.__anext__())
        readings = await asyncio.wait_for(both, INTERVAL * 10)
        assert [r.x for r in readings] == [2, 2]
        a.close()
        b.close()

    asyncio.run(scenario())
    assert _queries(accelerometer) == 2


def test_polling_stops_when_subscribers_leave(device, accelerometer):
    async def scenario():
        await device.open()
        stream = device.acceleration_stream(INTERVAL)
        subscription = stream.subscribe()
        await subscription.__anext__()

        pending = asyncio.ensure_future(subscription.__anext__())
        await FakeTransport.settle()
        subscription.close()
        with pytest.raises(StopAsyncIteration):
            await pending
        assert stream.subscribers == 0

        await asyncio.sleep(INTERVAL * 3)

    asyncio.run(scenario())
    assert _queries(accelerometer) == 1


def test_errors_reach_subscribers(device, transport):
    def reject(frame):
        return [build_frame(Command.ERR, bytes([frame[3]]))]

    transport.responder = reject

    async def scenario():
        await device.open()
        stream = device.acceleration_stream(INTERVAL)
        async with stream.subscribe() as readings:
            with pytest.raises(DeviceError):
                await readings.__anext__()
            assert not stream.polling

    asyncio.run(scenario())


def test_unexpected_poll_failure_does_not_stall_the_stream(device, accelerometer):
    async def scenario():
        await device.open()
        read = device.get_acceleration
        calls = []

        def flaky():
            calls.append(None)
            if len(calls) == 1:
                raise RuntimeError("decoder failed")
            return read()

        device.get_acceleration = flaky
        stream = device.acceleration_stream(INTERVAL)
        async with stream.subscribe() as readings:
            with pytest.raises(RuntimeError):
                await readings.__anext__()
            assert not stream.polling
            reading = await asyncio.wait_for(readings.__anext__(), INTERVAL * 10)
            assert reading.x == 1

    asyncio.run(scenario())


def test_failed_poll_keeps_unread_readings(device, transport):
    """Only subscribers waiting for the failed poll see its error."""
    queries = []

    def respond(frame):
        if frame[3] == Command.L8_ACC_QUERY:
            queries.append(frame)
            if len(queries) == 1:
                return [build_frame(Command.L8_ACC_RESPONSE, bytes([7, 0, 0, 2, 1, 0, 0]))]
            return [build_frame(Command.ERR, bytes([Command.L8_ACC_QUERY]))]
        return FakeTransport.acknowledge(frame)

    transport.responder = respond

    async def scenario():
        await device.open()
        stream = device.acceleration_stream(INTERVAL)
        waiting = stream.subscribe()
        idle = stream.subscribe()

        assert (await waiting.__anext__()).x == 7
        with pytest.raises(DeviceError):
            await asyncio.wait_for(waiting.__anext__(), INTERVAL * 10)

        # The first reading is still unread here
        assert (await idle.__anext__()).x == 7
        waiting.close()
        idle.close()

    asyncio.run(scenario())
