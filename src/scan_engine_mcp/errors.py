"""Exceptions raised by the frame codec and transaction sequencer."""

from __future__ import annotations


class ProtocolError(Exception):
    """Base class for every failure surfaced by the protocol layer."""


class TransportError(ProtocolError):
    """The underlying stream failed, closed, or delivered a short read/write."""


class FrameError(ProtocolError):
    """A frame could not be composed or failed validation."""


class MalformedFrame(FrameError):
    """The frame structure is impossible (e.g. a zero length byte)."""


class ChecksumMismatch(FrameError):
    """The received checksum does not match the one computed locally."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch: expected 0x{expected:04X}, got 0x{actual:04X}"
        )


class FrameTooLarge(FrameError):
    """A command payload does not fit in a single-byte length field."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"Payload of {size} bytes exceeds the {limit}-byte frame limit"
        )
