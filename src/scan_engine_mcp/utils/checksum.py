"""16-bit additive checksum used to terminate every frame.

The checksum is the two's-complement negation of the wrapping 16-bit sum
of all preceding frame bytes, so adding it to that sum gives zero
modulo 65536.
"""

from __future__ import annotations

CHECKSUM_MASK = 0xFFFF


def checksum(data: bytes) -> int:
    """Return the 16-bit two's-complement negated sum of ``data``."""
    total = 0
    for byte in data:
        total = (total + byte) & CHECKSUM_MASK
    return -total & CHECKSUM_MASK


def checksum_bytes(data: bytes) -> bytes:
    """Return the checksum of ``data`` as two big-endian bytes."""
    return checksum(data).to_bytes(2, "big")
