"""Byte-duplex transports carrying SLCP frames."""

from .base import Transport
from .serial_connection import SerialTransport, DEFAULT_BAUDRATE, list_candidate_ports
