"""Session with a single L8 Smartlight.

Every command method validates its arguments and checks the connection
immediately, then returns an awaitable which performs the exchange::

    l8 = L8("/dev/ttyACM0")
    await l8.open()
    await l8.set_led(3, 4, Color(15, 0, 0))   # waits for the OK frame
    reading = await l8.get_acceleration()
    await l8.close()

So ``l8.set_led(9, 0, RED)`` raises :class:`ValidationError` right away,
while device and protocol errors arrive when the awaitable is awaited.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from typing import Optional, Union

from .errors import L8Error, NotConnectedError, ProtocolError, ValidationError
from .models.acceleration import Acceleration
from .models.color import BLACK, ColorLike
from .events import Observers
from .polling import AccelerationStream
from .protocol.commands import (
    ORIENTATIONS,
    Command,
    build_acceleration_query,
    build_clear_matrix,
    build_delete_user_memory,
    build_ping,
    build_play_animation,
    build_set_autorotate,
    build_set_led,
    build_set_matrix,
    build_set_orientation,
    build_set_scrolling_text,
    build_set_super_led,
    build_stop_application,
    build_store_animation,
    build_store_frame,
)
from .protocol.correlator import (
    RequestCorrelator,
    ResponsePattern,
    acknowledgement,
    error_response,
)
from .protocol.framing import Frame
from .protocol.parser import parse_acceleration, parse_stored_id
from .protocol.stream import StreamReassembler
from .transport.base import Transport
from .transport.serial_connection import DEFAULT_BAUDRATE, SerialTransport

logger = logging.getLogger(__name__)

COMMAND_OFFSET = 3  # magic(2) + length(1)

Expectation = Union[ResponsePattern, bool, None]


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class L8:
    """Controls one L8 Smartlight over a byte-duplex transport.

    Args:
        port: Default serial port used by :meth:`open`.
        baudrate: Default baudrate used by :meth:`open`.
        transport_factory: Creates a fresh :class:`Transport` per
            connection. Defaults to :class:`SerialTransport`.
    """

    def __init__(
        self,
        port: str | None = None,
        baudrate: int = DEFAULT_BAUDRATE,
        transport_factory: Callable[[], Transport] = SerialTransport,
    ) -> None:
        self.port = port
        self.baudrate = baudrate
        self._transport_factory = transport_factory
        self._transport: Transport | None = None
        self._state = ConnectionState.DISCONNECTED
        self._reassembler = StreamReassembler()
        self._correlator = RequestCorrelator()
        self._stream_error: ProtocolError | None = None

        self.frame_received: Observers[Frame] = Observers("frame_received")
        self.frame_sent: Observers[bytes] = Observers("frame_sent")
        self.unsolicited: Observers[Frame] = Observers("unsolicited")

    def __repr__(self) -> str:
        return f"L8(port={self.port!r}, state={self._state.value})"

    async def __aenter__(self) -> L8:
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def pending_requests(self) -> int:
        return self._correlator.pending

    # ─── OBSERVERS ───────────────────────────────────────────────────

    def on_frame_received(self, callback: Callable[[Frame], None]) -> Callable[[], None]:
        """Call ``callback`` for every decoded frame. Returns an unsubscribe function."""
        return self.frame_received.subscribe(callback)

    def on_frame_sent(self, callback: Callable[[bytes], None]) -> Callable[[], None]:
        """Call ``callback`` with the raw bytes of every frame written."""
        return self.frame_sent.subscribe(callback)

    def on_unsolicited(self, callback: Callable[[Frame], None]) -> Callable[[], None]:
        """Call ``callback`` for frames that settled no pending request."""
        return self.unsolicited.subscribe(callback)

    # ─── CONNECTION ──────────────────────────────────────────────────

    async def open(self, port: str | None = None, baudrate: int | None = None) -> None:
        """Connect to the device.

        Args:
            port: Serial port, defaults to the one given at construction.
            baudrate: Defaults to the one given at construction (115200).

        Raises:
            L8Error: If the session is already open or opening.
            ValidationError: If no port is known.
        """
        if self._state is not ConnectionState.DISCONNECTED:
            raise L8Error(f"Cannot open a session that is {self._state.value}")
        port = port or self.port
        if port is None:
            raise ValidationError("No serial port given")
        baudrate = baudrate or self.baudrate

        if self._transport is not None:
            # Left behind by a lost connection
            await self.close()

        self._state = ConnectionState.CONNECTING
        self._reassembler.reset()
        self._stream_error = None
        transport = self._transport_factory()
        transport.set_handlers(self._on_data, self._on_connection_lost)
        try:
            await transport.open(port, baudrate)
        except Exception:
            self._state = ConnectionState.DISCONNECTED
            logger.warning("Could not open %s", port)
            raise

        self._transport = transport
        self.port = port
        self.baudrate = baudrate
        self._state = ConnectionState.CONNECTED
        logger.info("Connected to L8 on %s", port)

    async def close(self) -> None:
        """Disconnect. Does nothing if there is no connection.

        Requests still waiting for a response fail with
        :class:`NotConnectedError`.
        """
        transport, self._transport = self._transport, None
        if transport is None:
            return
        self._state = ConnectionState.DISCONNECTED
        self._correlator.fail_all(NotConnectedError("Connection closed"))
        await transport.close()
        logger.info("Disconnected from L8 on %s", self.port)

    def _ensure_connected(self) -> Transport:
        if self._state is not ConnectionState.CONNECTED or self._transport is None:
            raise NotConnectedError(
                f"L8 is not connected ({self._state.value}). Call open() first."
            )
        if self._stream_error is not None:
            raise ProtocolError(
                f"Connection to {self.port} is desynchronized, reopen it: "
                f"{self._stream_error}"
            ) from self._stream_error
        return self._transport

    # ─── RECEIVING ───────────────────────────────────────────────────

    def _on_data(self, chunk: bytes) -> None:
        if self._stream_error is not None:
            # Out of sync: nothing can be decoded until the port is reopened
            return
        try:
            frames = self._reassembler.feed(chunk)
        except ProtocolError as e:
            logger.error("Stream from %s desynchronized, reopen required: %s", self.port, e)
            self._stream_error = e
            self._correlator.fail_all(e)
            return

        # Every frame reaches the correlator before any observer runs
        matched = []
        for frame in frames:
            logger.debug("Received %r", frame)
            matched.append(self._correlator.dispatch(frame))

        for frame, was_matched in zip(frames, matched):
            self.frame_received.notify(frame)
            if not was_matched:
                if frame.command == Command.ERR:
                    logger.warning("Unsolicited error frame %r", frame)
                self.unsolicited.notify(frame)

    def _on_connection_lost(self, exc: BaseException | None) -> None:
        logger.error("Connection to %s lost: %s", self.port, exc)
        self._state = ConnectionState.DISCONNECTED
        error = NotConnectedError(f"Connection to {self.port} lost: {exc}")
        self._correlator.fail_all(error)

    # ─── SENDING ─────────────────────────────────────────────────────

    def send_frame(
        self,
        frame: bytes,
        expect: Expectation = True,
        error: Expectation = True,
    ) -> Awaitable[Optional[Frame]]:
        """Write a raw frame and wait for its response.

        Args:
            frame: Complete wire frame.
            expect: ``True`` waits for the generic OK acknowledgement of the
                frame's command, a :class:`ResponsePattern` waits for that
                shape, ``False``/``None`` completes after the write drained.
            error: ``True`` fails on the generic ERR frame for the command,
                a :class:`ResponsePattern` fails on that shape,
                ``False``/``None`` disables error matching.

        Returns:
            Awaitable resolving to the response frame, or ``None`` when no
            response is expected.
        """
        self._ensure_connected()
        command = frame[COMMAND_OFFSET]
        response = acknowledgement(command) if expect is True else (expect or None)
        error_pattern = error_response(command) if error is True else (error or None)
        return self._exchange(frame, response, error_pattern)

    async def _exchange(
        self,
        frame: bytes,
        response: ResponsePattern | None,
        error: ResponsePattern | None,
    ) -> Frame | None:
        transport = self._ensure_connected()
        # Registered before writing so a fast response cannot slip past
        expectation = (
            self._correlator.expect(response, error) if response is not None else None
        )
        try:
            await transport.write(frame)
            await transport.drain()
        except BaseException:
            if expectation is not None:
                self._correlator.discard(expectation)
            raise

        logger.debug("Sent %s", frame.hex(" "))
        self.frame_sent.notify(frame)
        if expectation is None:
            return None
        try:
            return await expectation.future
        finally:
            self._correlator.discard(expectation)

    # ─── COMMANDS ────────────────────────────────────────────────────

    def ping(self) -> Awaitable[Optional[Frame]]:
        return self.send_frame(build_ping())

    def set_led(self, x: int, y: int, color: ColorLike) -> Awaitable[Optional[Frame]]:
        """Set the LED at column ``x``, row ``y`` (both 0-7)."""
        return self.send_frame(build_set_led(x, y, color))

    def clear_led(self, x: int, y: int) -> Awaitable[Optional[Frame]]:
        return self.set_led(x, y, BLACK)

    def set_matrix(self, matrix: Sequence[ColorLike]) -> Awaitable[Optional[Frame]]:
        """Set all 64 LEDs, row by row from the top left corner."""
        return self.send_frame(build_set_matrix(matrix))

    def clear_matrix(self) -> Awaitable[Optional[Frame]]:
        """Switch off all matrix LEDs. The SuperLED is not affected."""
        return self.send_frame(build_clear_matrix())

    def set_super_led(self, color: ColorLike) -> Awaitable[Optional[Frame]]:
        """Set the SuperLED on the back of the device."""
        return self.send_frame(build_set_super_led(color))

    def clear_super_led(self) -> Awaitable[Optional[Frame]]:
        return self.set_super_led(BLACK)

    def stop_application(self) -> Awaitable[Optional[Frame]]:
        """Stop the internal app currently running (e.g. the text scroller)."""
        return self.send_frame(build_stop_application())

    def clear_scrolling_text(self) -> Awaitable[Optional[Frame]]:
        return self.stop_application()

    def set_scrolling_text(
        self, text: str, color: ColorLike, speed: str = "medium", loop: bool = True
    ) -> Awaitable[Optional[Frame]]:
        """Start scrolling ``text`` across the matrix.

        The device does not acknowledge this command, so the awaitable
        completes once the frame has been written. Scrolling continues
        until :meth:`stop_application` is called.
        """
        return self.send_frame(
            build_set_scrolling_text(text, color, speed, loop), expect=False, error=False
        )

    def set_orientation(self, orientation: str) -> Awaitable[Optional[Frame]]:
        """Set which side of the device faces up.

        ``"auto"`` enables autorotation. ``"up"``, ``"down"``, ``"left"``
        and ``"right"`` disable it and fix the orientation; the second
        command is not acknowledged by the device.
        """
        if orientation not in ORIENTATIONS:
            raise ValidationError(
                f"Invalid orientation {orientation!r}. Valid: {list(ORIENTATIONS)}"
            )
        self._ensure_connected()
        if orientation == "auto":
            return self._set_orientation(build_set_autorotate(True), None)
        return self._set_orientation(
            build_set_autorotate(False), build_set_orientation(orientation)
        )

    async def _set_orientation(
        self, autorotate_frame: bytes, orientation_frame: bytes | None
    ) -> Frame | None:
        ack = await self._exchange(
            autorotate_frame,
            acknowledgement(Command.L8_SET_AUTOROTATE),
            error_response(Command.L8_SET_AUTOROTATE),
        )
        if orientation_frame is not None:
            await self._exchange(orientation_frame, None, None)
        return ack

    def get_acceleration(self) -> Awaitable[Acceleration]:
        """Query the accelerometer once."""
        self._ensure_connected()
        return self._get_acceleration(build_acceleration_query())

    async def _get_acceleration(self, frame: bytes) -> Acceleration:
        response = await self._exchange(
            frame,
            ResponsePattern(Command.L8_ACC_RESPONSE),
            error_response(Command.L8_ACC_QUERY),
        )
        return parse_acceleration(response)

    def acceleration_stream(self, interval: float = 0.1) -> AccelerationStream:
        """Continuous acceleration readings sampled every ``interval`` seconds."""
        return AccelerationStream(self, interval)

    # ─── ANIMATIONS ──────────────────────────────────────────────────

    def store_animation_frame(self, matrix: Sequence[ColorLike]) -> Awaitable[int]:
        """Store a matrix in user memory. Resolves to the device assigned frame id."""
        self._ensure_connected()
        return self._store_frame(build_store_frame(matrix))

    async def _store_frame(self, frame: bytes) -> int:
        response = await self._exchange(
            frame,
            ResponsePattern(Command.L8_STORE_FRAME_RESPONSE),
            error_response(Command.L8_STORE_FRAME),
        )
        frame_id = parse_stored_id(response)
        logger.debug("Stored animation frame %d", frame_id)
        return frame_id

    def store_animation(
        self, frame_ids: Sequence[int], durations_ms: Sequence[float]
    ) -> Awaitable[int]:
        """Store an animation from stored frames. Resolves to the animation id.

        Durations are rounded to the device's 100 ms resolution.
        """
        self._ensure_connected()
        return self._store_animation(build_store_animation(frame_ids, durations_ms))

    async def _store_animation(self, frame: bytes) -> int:
        response = await self._exchange(
            frame,
            ResponsePattern(Command.L8_STORE_ANIM_RESPONSE),
            error_response(Command.L8_STORE_ANIM),
        )
        animation_id = parse_stored_id(response)
        logger.debug("Stored animation %d", animation_id)
        return animation_id

    def prepare_animation(
        self,
        matrices: Sequence[Sequence[ColorLike]],
        durations_ms: Sequence[float],
    ) -> Awaitable[int]:
        """Store every matrix as a frame, then the animation made of them.

        Frames are stored one after another since each response carries the
        id the animation has to reference.
        """
        if len(matrices) != len(durations_ms):
            raise ValidationError(
                f"Got {len(matrices)} frames but {len(durations_ms)} durations"
            )
        # Validate everything up front; ids are placeholders
        build_store_animation([0] * len(durations_ms), durations_ms)
        frames = [build_store_frame(matrix) for matrix in matrices]
        self._ensure_connected()
        return self._prepare_animation(frames, durations_ms)

    async def _prepare_animation(
        self, frames: list[bytes], durations_ms: Sequence[float]
    ) -> int:
        frame_ids = []
        for frame in frames:
            frame_ids.append(await self._store_frame(frame))
        return await self._store_animation(build_store_animation(frame_ids, durations_ms))

    def play_animation(self, animation_id: int, loop: bool = True) -> Awaitable[Optional[Frame]]:
        return self.send_frame(build_play_animation(animation_id, loop))

    def clear_user_memory(self) -> Awaitable[Optional[Frame]]:
        """Erase all frames, animations and L8Ys stored on the device."""
        return self.send_frame(build_delete_user_memory())


