"""Reassembly of frames from a chunked byte stream.

The serial port delivers data in arbitrary chunks which do not line up
with frame boundaries. Bytes are collected in a fixed receive buffer and
every complete frame is cut out of its front.
"""

from __future__ import annotations

import logging

from ..errors import ProtocolError
from .framing import Frame, try_decode_frame

logger = logging.getLogger(__name__)

RECEIVE_BUFFER_SIZE = 4096


class StreamReassembler:
    """Turns transport chunks into decoded frames.

    Usage::

        reassembler = StreamReassembler()
        for frame in reassembler.feed(chunk):
            handle(frame)

    Decoding errors are fatal: once :meth:`feed` raised, the stream is out
    of sync and the reassembler must be :meth:`reset` along with the
    connection.
    """

    def __init__(self, capacity: int = RECEIVE_BUFFER_SIZE) -> None:
        self._buffer = bytearray(capacity)
        self._length = 0

    @property
    def capacity(self) -> int:
        return len(self._buffer)

    @property
    def pending(self) -> int:
        """Number of received bytes not yet consumed into frames."""
        return self._length

    def reset(self) -> None:
        self._length = 0

    def feed(self, chunk: bytes) -> list[Frame]:
        """Append a chunk and extract every complete frame.

        Args:
            chunk: Raw bytes as received from the transport.

        Returns:
            Frames completed by this chunk, in wire order (may be empty).

        Raises:
            ProtocolError: On missing magic bytes or receive buffer overflow.
            ChecksumError: On a checksum mismatch.
        """
        end = self._length + len(chunk)
        if end > len(self._buffer):
            raise ProtocolError(
                f"Receive buffer overflow: {end} bytes pending, "
                f"capacity {len(self._buffer)}"
            )
        self._buffer[self._length : end] = chunk
        self._length = end

        frames: list[Frame] = []
        while self._length > 0:
            result = try_decode_frame(self._buffer, 0, self._length)
            if result is None:
                break
            frame, consumed = result
            frames.append(frame)
            # Move the remaining bytes to the front of the buffer
            remaining = self._length - consumed
            self._buffer[0:remaining] = self._buffer[consumed : self._length]
            self._length = remaining

        if frames:
            logger.debug(
                "Decoded %d frame(s), %d byte(s) left over", len(frames), self._length
            )
        return frames
