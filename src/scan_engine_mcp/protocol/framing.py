"""Message frame builder and parser for the serial command protocol.

Frame layout::

    +--------+--------------------------+-------------+-------------+
    | Length |         Payload          | Checksum hi | Checksum lo |
    | 1 byte |    (Length - 1) bytes    |   1 byte    |   1 byte    |
    +--------+--------------------------+-------------+-------------+

- Length: payload size plus one; counts itself but not the checksum
- Payload: opcode byte followed by opcode-specific arguments
- Checksum: negated 16-bit sum of (length + payload), big-endian

Streams passed to :func:`parse_frame` and :func:`write_frame` only need a
blocking ``read(n)`` / ``write(data)``; a ``serial.Serial``, a raw device
file or an ``io.BytesIO`` all qualify.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..errors import ChecksumMismatch, FrameTooLarge, MalformedFrame, TransportError
from ..utils.checksum import checksum, checksum_bytes

MAX_FRAME_LENGTH = 0xFF
MAX_PAYLOAD_SIZE = MAX_FRAME_LENGTH - 1  # length byte counts itself
CHECKSUM_SIZE = 2


class ByteStream(Protocol):
    """Blocking duplex byte stream; ``flush()`` is used when present."""

    def read(self, size: int) -> bytes: ...

    def write(self, data: bytes) -> int | None: ...


@dataclass(frozen=True)
class Frame:
    """A validated protocol frame."""

    length: int
    payload: bytes
    checksum: int

    @property
    def opcode(self) -> int | None:
        return self.payload[0] if self.payload else None

    def to_bytes(self) -> bytes:
        """Return the exact bytes this frame occupies on the wire."""
        return bytes([self.length]) + self.payload + self.checksum.to_bytes(2, "big")

    def __repr__(self) -> str:
        return (
            f"Frame(length={self.length}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'}, "
            f"checksum=0x{self.checksum:04X})"
        )


def hex_dump(data: bytes) -> str:
    """Render bytes as lowercase, space-separated hex (``"04 c5 04"``)."""
    return data.hex(" ")


def build_frame(payload: bytes) -> bytes:
    """Build the wire frame for a command payload.

    Args:
        payload: Opcode byte followed by its arguments.

    Returns:
        ``[length] + payload + [checksum_hi, checksum_lo]``.

    Raises:
        FrameTooLarge: If the payload does not fit the single-byte length.
    """
    payload = bytes(payload)
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise FrameTooLarge(len(payload), MAX_PAYLOAD_SIZE)
    body = bytes([len(payload) + 1]) + payload
    return body + checksum_bytes(body)


def _read_exact(stream: ByteStream, size: int, what: str) -> bytes:
    """Read exactly ``size`` bytes, failing on end of stream."""
    buf = bytearray()
    while len(buf) < size:
        try:
            chunk = stream.read(size - len(buf))
        except OSError as e:
            raise TransportError(f"Read failed while waiting for {what}: {e}") from e
        if not chunk:
            raise TransportError(
                f"Stream closed while reading {what}: "
                f"got {len(buf)} of {size} bytes"
            )
        buf += chunk
    return bytes(buf)


def parse_frame(stream: ByteStream) -> Frame:
    """Read and validate the next frame from ``stream``.

    Consumes exactly one frame's worth of bytes. On a checksum mismatch
    the consumed bytes are not pushed back and no attempt is made to
    find the next frame boundary.

    Raises:
        TransportError: The stream failed or ended before a full frame.
        MalformedFrame: The length byte is zero.
        ChecksumMismatch: The trailing checksum does not match.
    """
    length = _read_exact(stream, 1, "length byte")[0]
    if length < 1:
        raise MalformedFrame("length byte must be >= 1")

    remaining = _read_exact(stream, length - 1 + CHECKSUM_SIZE, "frame body")
    data = bytes([length]) + remaining
    covered, received = data[:-CHECKSUM_SIZE], data[-CHECKSUM_SIZE:]

    actual = int.from_bytes(received, "big")
    expected = checksum(covered)
    if actual != expected:
        raise ChecksumMismatch(expected=expected, actual=actual)

    return Frame(length=length, payload=covered[1:], checksum=actual)


def write_frame(stream: ByteStream, data: bytes) -> int:
    """Write a whole frame to ``stream`` and flush it.

    Partial writes are continued until every byte is accepted.

    Raises:
        TransportError: The stream failed or stopped accepting bytes.
    """
    view = memoryview(data)
    offset = 0
    try:
        while offset < len(view):
            written = stream.write(view[offset:])
            if not written:
                raise TransportError(
                    f"Short write: {offset} of {len(view)} bytes accepted"
                )
            offset += written
        flush = getattr(stream, "flush", None)
        if flush is not None:
            flush()
    except OSError as e:
        raise TransportError(f"Write failed after {offset} bytes: {e}") from e
    return offset
