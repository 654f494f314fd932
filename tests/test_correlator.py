"""Tests for matching responses to outstanding requests."""

import asyncio

import pytest

from l8_smartlight.errors import DeviceError, NotConnectedError
from l8_smartlight.protocol.commands import Command
from l8_smartlight.protocol.correlator import (
    RequestCorrelator,
    ResponsePattern,
    acknowledgement,
    error_response,
)
from l8_smartlight.protocol.framing import Frame


def test_pattern_matches_command_and_prefix():
    pattern = ResponsePattern(Command.OK, b"\x43")
    assert pattern.matches(Frame(Command.OK, b"\x43"))
    assert pattern.matches(Frame(Command.OK, b"\x43\x00"))
    assert not pattern.matches(Frame(Command.OK, b"\x44"))
    assert not pattern.matches(Frame(Command.ERR, b"\x43"))


def test_pattern_without_parameters_matches_any():
    pattern = ResponsePattern(Command.L8_ACC_RESPONSE)
    assert pattern.matches(Frame(Command.L8_ACC_RESPONSE, bytes(7)))
    assert pattern.matches(Frame(Command.L8_ACC_RESPONSE))


def test_response_settles_matching_shape_only():
    """A response for B never settles A, whatever the order."""
    async def scenario():
        correlator = RequestCorrelator()
        a = correlator.expect(acknowledgement(Command.L8_LED_SET))
        b = correlator.expect(ResponsePattern(Command.L8_ACC_RESPONSE))

        assert correlator.dispatch(Frame(Command.L8_ACC_RESPONSE, bytes(7)))
        assert b.future.done()
        assert not a.future.done()

        assert correlator.dispatch(Frame(Command.OK, bytes([Command.L8_LED_SET])))
        assert a.future.result().parameters == b"\x43"
        assert correlator.pending == 0

    asyncio.run(scenario())


def test_same_shape_settles_in_registration_order():
    async def scenario():
        correlator = RequestCorrelator()
        first = correlator.expect(acknowledgement(Command.PING))
        second = correlator.expect(acknowledgement(Command.PING))

        correlator.dispatch(Frame(Command.OK, b"\x01"))
        assert first.future.done()
        assert not second.future.done()

        correlator.dispatch(Frame(Command.OK, b"\x01"))
        assert second.future.done()

    asyncio.run(scenario())


def test_unmatched_frame_is_reported():
    async def scenario():
        correlator = RequestCorrelator()
        waiting = correlator.expect(acknowledgement(Command.L8_LED_SET))
        assert not correlator.dispatch(Frame(Command.OK, b"\x44"))
        assert not waiting.future.done()
        assert correlator.pending == 1

    asyncio.run(scenario())


def test_error_pattern_fails_with_device_error():
    async def scenario():
        correlator = RequestCorrelator()
        expectation = correlator.expect(
            acknowledgement(Command.L8_LED_SET), error_response(Command.L8_LED_SET)
        )
        error = Frame(Command.ERR, b"\x43")
        assert correlator.dispatch(error)
        with pytest.raises(DeviceError) as excinfo:
            await expectation.future
        assert excinfo.value.frame == error

    asyncio.run(scenario())


def test_error_patterns_are_checked_first():
    """An ERR frame goes to the request it names, not to an ERR response waiter."""
    async def scenario():
        correlator = RequestCorrelator()
        listener = correlator.expect(ResponsePattern(Command.ERR))
        failing = correlator.expect(
            acknowledgement(Command.PING), error_response(Command.PING)
        )
        correlator.dispatch(Frame(Command.ERR, b"\x01"))
        assert failing.future.done()
        assert not listener.future.done()
        failing.future.exception()

    asyncio.run(scenario())


def test_cancelled_waiters_are_skipped():
    async def scenario():
        correlator = RequestCorrelator()
        cancelled = correlator.expect(acknowledgement(Command.PING))
        waiting = correlator.expect(acknowledgement(Command.PING))
        cancelled.future.cancel()

        assert correlator.dispatch(Frame(Command.OK, b"\x01"))
        assert waiting.future.done()
        assert correlator.pending == 0

    asyncio.run(scenario())


def test_discard():
    async def scenario():
        correlator = RequestCorrelator()
        expectation = correlator.expect(acknowledgement(Command.PING))
        correlator.discard(expectation)
        correlator.discard(expectation)
        assert correlator.pending == 0
        assert not correlator.dispatch(Frame(Command.OK, b"\x01"))

    asyncio.run(scenario())


def test_fail_all():
    async def scenario():
        correlator = RequestCorrelator()
        expectations = [
            correlator.expect(acknowledgement(Command.PING)),
            correlator.expect(ResponsePattern(Command.L8_ACC_RESPONSE)),
        ]
        correlator.fail_all(NotConnectedError("closed"))
        assert correlator.pending == 0
        for expectation in expectations:
            with pytest.raises(NotConnectedError):
                await expectation.future

    asyncio.run(scenario())
