"""Response parsing for device reply frames."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from .commands import Opcode
from .framing import Frame

# opcode, source, status
HEADER_SIZE = 3


class NakCause(IntEnum):
    """Reason codes carried in the first data byte of a NAK."""

    RESEND = 0x01
    BAD_CONTEXT = 0x02
    DENIED = 0x06


@dataclass
class AckResponse:
    """Parsed CMD_ACK (0xD0) reply."""

    source: int
    status: int


@dataclass
class NakResponse:
    """Parsed CMD_NAK (0xD1) reply."""

    source: int
    status: int
    cause: NakCause | int | None

    def __repr__(self) -> str:
        cause = self.cause.name if isinstance(self.cause, NakCause) else self.cause
        return f"NakResponse(source=0x{self.source:02X}, cause={cause})"


@dataclass
class CapabilitiesResponse:
    """Parsed CAPABILITIES_REPLY (0xD4) reply."""

    source: int
    status: int
    data: bytes

    def __repr__(self) -> str:
        return (
            f"CapabilitiesResponse(source=0x{self.source:02X}, "
            f"data={self.data.hex(' ') if self.data else '(empty)'})"
        )


def parse_ack(frame: Frame) -> AckResponse | None:
    if frame.opcode != Opcode.CMD_ACK or len(frame.payload) < HEADER_SIZE:
        return None
    return AckResponse(source=frame.payload[1], status=frame.payload[2])


def parse_nak(frame: Frame) -> NakResponse | None:
    """Parse a NAK reply.

    The cause byte is optional; unrecognised causes are kept as ints.
    """
    if frame.opcode != Opcode.CMD_NAK or len(frame.payload) < HEADER_SIZE:
        return None

    cause: NakCause | int | None = None
    if len(frame.payload) > HEADER_SIZE:
        raw = frame.payload[HEADER_SIZE]
        try:
            cause = NakCause(raw)
        except ValueError:
            cause = raw

    return NakResponse(
        source=frame.payload[1],
        status=frame.payload[2],
        cause=cause,
    )


def parse_capabilities(frame: Frame) -> CapabilitiesResponse | None:
    if frame.opcode != Opcode.CAPABILITIES_REPLY or len(frame.payload) < HEADER_SIZE:
        return None
    return CapabilitiesResponse(
        source=frame.payload[1],
        status=frame.payload[2],
        data=frame.payload[HEADER_SIZE:],
    )


def parse_response(frame: Frame):
    """Auto-dispatch a frame to the appropriate response parser.

    Returns the parsed response dataclass, or the raw Frame if no
    specific parser matches.
    """
    parsers = {
        Opcode.CMD_ACK: parse_ack,
        Opcode.CMD_NAK: parse_nak,
        Opcode.CAPABILITIES_REPLY: parse_capabilities,
    }
    parser = parsers.get(frame.opcode)
    if parser:
        result = parser(frame)
        if result is not None:
            return result
    return frame
