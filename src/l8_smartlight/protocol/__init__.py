"""Protocol layer: framing, CRC, command builders, stream reassembly and response matching."""

from .framing import Frame, build_frame, parse_frame, try_decode_frame
from .commands import Command, build_command
from .stream import StreamReassembler
from .correlator import RequestCorrelator, ResponsePattern, acknowledgement
