"""SLCP frame builder and decoder.

Frame layout::

    +----------+--------+---------+------------------+----------+
    | Magic    | Length | Command |    Parameters    | Checksum |
    | 2 bytes  | 1 byte | 1 byte  | 0-254 bytes      | 1 byte   |
    +----------+--------+---------+------------------+----------+

- Magic: 0xAA 0x55
- Length: number of payload bytes (command byte + parameters)
- Checksum: CRC-8 over the payload
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ChecksumError, EncodingError, ProtocolError
from ..utils.crc import crc8

MAGIC_BYTES = b"\xAA\x55"
HEADER_SIZE = 3  # magic(2) + length(1)
CHECKSUM_SIZE = 1
MIN_FRAME_SIZE = HEADER_SIZE + 1 + CHECKSUM_SIZE
MAX_PAYLOAD_LENGTH = 0xFF
MAX_PARAMETERS = MAX_PAYLOAD_LENGTH - 1


@dataclass(frozen=True)
class Frame:
    """A decoded protocol frame.

    ``checksum`` defaults to the CRC-8 of the payload.
    """

    command: int
    parameters: bytes = b""
    checksum: int | None = None

    def __post_init__(self) -> None:
        if self.checksum is None:
            object.__setattr__(self, "checksum", crc8(self.payload))

    @property
    def payload_length(self) -> int:
        return 1 + len(self.parameters)

    @property
    def payload(self) -> bytes:
        return bytes([self.command]) + self.parameters

    def __repr__(self) -> str:
        return (
            f"Frame(command=0x{self.command:02X}, "
            f"parameters={self.parameters.hex(' ') if self.parameters else '(empty)'})"
        )


def build_frame(command: int, parameters: bytes = b"") -> bytes:
    """Build a wire frame for a single SLCP command.

    Args:
        command: Single-byte command code.
        parameters: Command-specific parameter bytes.

    Returns:
        The complete frame, ready to be written to the transport.

    Raises:
        EncodingError: If the command is not a byte or the payload does
            not fit the one-byte length field.
    """
    if not 0 <= command <= 0xFF:
        raise EncodingError(f"Command must be 0-255, got {command}")
    if len(parameters) > MAX_PARAMETERS:
        raise EncodingError(
            f"Parameters must be at most {MAX_PARAMETERS} bytes, "
            f"got {len(parameters)}"
        )
    payload = bytes([command]) + bytes(parameters)
    return MAGIC_BYTES + bytes([len(payload)]) + payload + bytes([crc8(payload)])


def try_decode_frame(
    data: bytes | bytearray | memoryview, offset: int = 0, end: int | None = None
) -> tuple[Frame, int] | None:
    """Try to decode one frame starting at ``offset``.

    Args:
        data: Buffer holding received bytes.
        offset: Position of the expected magic bytes.
        end: Logical end of valid data in ``data`` (defaults to its length).

    Returns:
        ``(frame, consumed)`` on success, or ``None`` when more data is
        needed to complete the frame.

    Raises:
        ProtocolError: If the magic bytes are missing or the length is 0.
        ChecksumError: If the checksum does not match the payload.
    """
    if end is None:
        end = len(data)
    available = end - offset
    if available < MIN_FRAME_SIZE:
        return None

    if bytes(data[offset : offset + 2]) != MAGIC_BYTES:
        raise ProtocolError(
            "Magic bytes not found: "
            + bytes(data[offset : offset + min(available, 8)]).hex(" ")
        )

    payload_length = data[offset + 2]
    if payload_length == 0:
        raise ProtocolError("Frame with zero payload length")

    frame_size = HEADER_SIZE + payload_length + CHECKSUM_SIZE
    if available < frame_size:
        return None

    payload_start = offset + HEADER_SIZE
    payload = bytes(data[payload_start : payload_start + payload_length])
    received = data[payload_start + payload_length]
    calculated = crc8(payload)
    if received != calculated:
        raise ChecksumError(received, calculated)

    frame = Frame(command=payload[0], parameters=payload[1:], checksum=received)
    return frame, frame_size


def parse_frame(data: bytes) -> Frame:
    """Parse a buffer holding exactly one complete frame.

    Raises:
        ProtocolError: If the data is truncated, has trailing bytes or is
            otherwise malformed.
    """
    result = try_decode_frame(data)
    if result is None:
        raise ProtocolError(f"Incomplete frame: {bytes(data).hex(' ')}")
    frame, consumed = result
    if consumed != len(data):
        raise ProtocolError(
            f"{len(data) - consumed} trailing bytes after frame"
        )
    return frame
