"""CRC-8 checksum used by SLCP frames.

Polynomial 0x07, initial value 0x00, no reflection and no final XOR.
Only the command byte and parameters are covered; magic bytes, length and
the checksum itself are excluded.
"""

from __future__ import annotations

POLYNOMIAL = 0x07


def _build_table() -> list[int]:
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            if crc & 0x80:
                crc = ((crc << 1) ^ POLYNOMIAL) & 0xFF
            else:
                crc = (crc << 1) & 0xFF
        table.append(crc)
    return table


CRC8_TABLE = _build_table()


def crc8(data: bytes) -> int:
    """Compute the CRC-8 of ``data``.

    Args:
        data: Payload bytes (command + parameters).

    Returns:
        The checksum as an integer 0-255.
    """
    crc = 0x00
    for byte in data:
        crc = CRC8_TABLE[crc ^ byte]
    return crc
