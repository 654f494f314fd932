"""Matching of incoming frames to outstanding requests.

Responses are matched by shape (command code and leading parameter
bytes), not by send order. A response for one kind of request can never
settle a request waiting for another kind, but two requests waiting for
the same shape are settled in registration order. Callers that need
strict pairing must not issue same-shape requests concurrently.

There is no timeout: an expectation without a matching frame stays
pending until the session fails it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..errors import DeviceError
from .commands import Command
from .framing import Frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResponsePattern:
    """Shape of an expected frame.

    A frame matches when its command equals ``command`` and, if
    ``parameters`` is given, its parameters start with those bytes.
    """

    command: int
    parameters: bytes | None = None

    def matches(self, frame: Frame) -> bool:
        if frame.command != self.command:
            return False
        if self.parameters is None:
            return True
        return frame.parameters.startswith(self.parameters)


def acknowledgement(command: int) -> ResponsePattern:
    """Generic OK response echoing ``command``."""
    return ResponsePattern(Command.OK, bytes([command]))


def error_response(command: int) -> ResponsePattern:
    """Generic ERR response naming ``command``."""
    return ResponsePattern(Command.ERR, bytes([command]))


class PendingExpectation:
    """One outstanding request waiting for its response."""

    def __init__(
        self,
        response: ResponsePattern,
        error: ResponsePattern | None,
        future: asyncio.Future,
    ) -> None:
        self.response = response
        self.error = error
        self.future = future

    @property
    def settled(self) -> bool:
        return self.future.done()

    def __repr__(self) -> str:
        return f"PendingExpectation(response={self.response!r}, error={self.error!r})"


class RequestCorrelator:
    """Registry of pending expectations for one connection."""

    def __init__(self) -> None:
        self._pending: list[PendingExpectation] = []

    @property
    def pending(self) -> int:
        return len(self._pending)

    def expect(
        self,
        response: ResponsePattern,
        error: ResponsePattern | None = None,
    ) -> PendingExpectation:
        """Register an expectation and return it.

        Must be called from within the running event loop.
        """
        future = asyncio.get_running_loop().create_future()
        expectation = PendingExpectation(response, error, future)
        self._pending.append(expectation)
        return expectation

    def discard(self, expectation: PendingExpectation) -> None:
        if expectation in self._pending:
            self._pending.remove(expectation)

    def dispatch(self, frame: Frame) -> bool:
        """Offer a frame to the pending expectations.

        Error patterns are checked first, then response patterns; in both
        passes the earliest registered expectation wins. At most one
        expectation is settled per frame.

        Returns:
            True if the frame settled an expectation.
        """
        # Waiters that were cancelled no longer take part in matching
        self._pending = [e for e in self._pending if not e.settled]

        for expectation in self._pending:
            if expectation.error is not None and expectation.error.matches(frame):
                self._pending.remove(expectation)
                expectation.future.set_exception(
                    DeviceError(f"Device rejected the command: {frame!r}", frame)
                )
                return True

        for expectation in self._pending:
            if expectation.response.matches(frame):
                self._pending.remove(expectation)
                expectation.future.set_result(frame)
                return True

        return False

    def fail_all(self, exc: BaseException) -> None:
        """Fail every pending expectation with ``exc``."""
        pending, self._pending = self._pending, []
        for expectation in pending:
            if not expectation.settled:
                expectation.future.set_exception(exc)
        if pending:
            logger.debug("Failed %d pending expectation(s): %s", len(pending), exc)
