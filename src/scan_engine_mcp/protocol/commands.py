"""Opcode constants and the fixed command catalog.

Every host command carries the same three-byte shape: opcode, message
source, and a status byte that is always zero for host-originated
requests.
"""

from __future__ import annotations

from enum import IntEnum
from types import MappingProxyType
from typing import Mapping

from .framing import build_frame

HOST_SOURCE = 0x04
STATUS_NONE = 0x00


class Opcode(IntEnum):
    """Message opcodes, host requests and device replies."""

    ILLUMINATION_OFF = 0xC0
    ILLUMINATION_ON = 0xC1
    AIM_OFF = 0xC4
    AIM_ON = 0xC5
    CMD_ACK = 0xD0
    CMD_NAK = 0xD1
    CAPABILITIES_REQUEST = 0xD3
    CAPABILITIES_REPLY = 0xD4


def build_payload(
    opcode: Opcode,
    args: bytes = b"",
    source: int = HOST_SOURCE,
    status: int = STATUS_NONE,
) -> bytes:
    """Build a command payload: opcode, source, status, then ``args``."""
    return bytes([opcode, source, status]) + args


# Named host commands, fixed for the lifetime of the process.
COMMANDS: Mapping[str, bytes] = MappingProxyType({
    "AIM_ON": build_payload(Opcode.AIM_ON),
    "AIM_OFF": build_payload(Opcode.AIM_OFF),
    "ILLUMINATION_ON": build_payload(Opcode.ILLUMINATION_ON),
    "ILLUMINATION_OFF": build_payload(Opcode.ILLUMINATION_OFF),
    "CAPABILITIES_REQUEST": build_payload(Opcode.CAPABILITIES_REQUEST),
})


def command_names() -> list[str]:
    return list(COMMANDS)


def get_payload(name: str) -> bytes:
    """Look up the payload for a named command (case-insensitive).

    Raises:
        ValueError: If the name is not in the catalog.
    """
    key = name.strip().upper()
    if key not in COMMANDS:
        raise ValueError(f"Unknown command '{name}'. Valid: {command_names()}")
    return COMMANDS[key]


def build_command(name: str) -> bytes:
    """Build the wire frame for a named command."""
    return build_frame(get_payload(name))
