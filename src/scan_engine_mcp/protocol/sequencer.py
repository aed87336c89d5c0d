"""Request/response transactions and scripted command sequences.

A transaction writes one command frame and blocks for exactly one reply
frame. There are no transaction IDs on the wire, so transactions must
never overlap.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from .commands import COMMANDS, get_payload
from .framing import ByteStream, Frame, build_frame, hex_dump, parse_frame, write_frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScriptStep:
    """One scripted command and the settling delay that follows it."""

    command: str
    delay: float = 0.0


# Aim and illumination need a moment to settle before being switched off.
ACTIVATION_SCRIPT: tuple[ScriptStep, ...] = (
    ScriptStep("AIM_ON", delay=1.0),
    ScriptStep("AIM_OFF"),
    ScriptStep("ILLUMINATION_ON", delay=1.0),
    ScriptStep("ILLUMINATION_OFF"),
    ScriptStep("CAPABILITIES_REQUEST"),
)


def transact(stream: ByteStream, command: str) -> Frame:
    """Send a named command and return the device's validated reply.

    Raises:
        ValueError: Unknown command name (before any I/O).
        TransportError: The stream failed during the write or read.
        FrameError: The reply was malformed or failed its checksum.
    """
    packet = build_frame(get_payload(command))
    write_frame(stream, packet)
    logger.info("Sent command: %s", hex_dump(packet))

    reply = parse_frame(stream)
    logger.info("Received packet: %s", hex_dump(reply.to_bytes()))
    return reply


def run_script(
    stream: ByteStream,
    script: Sequence[ScriptStep] = ACTIVATION_SCRIPT,
    sleep: Callable[[float], None] | None = None,
) -> list[Frame]:
    """Run each step in order, sleeping after steps that carry a delay.

    The first failing transaction aborts the rest of the script; its
    exception propagates unchanged.

    Returns:
        The reply frames, one per step.
    """
    sleep = sleep or time.sleep
    replies: list[Frame] = []
    for index, step in enumerate(script):
        logger.debug("Script step %d: %s", index, step.command)
        replies.append(transact(stream, step.command))
        if step.delay > 0:
            sleep(step.delay)
    return replies


def load_script(path: str | Path) -> list[ScriptStep]:
    """Load a script from a JSON file.

    The file holds a list of objects such as
    ``{"command": "AIM_ON", "delay": 1.0}``; ``delay`` is optional.

    Raises:
        ValueError: If the file is not a list of valid steps.
    """
    path = Path(path)
    raw = json.loads(path.read_text())
    if not isinstance(raw, list):
        raise ValueError(f"Script file must contain a JSON list, got {type(raw).__name__}")

    steps: list[ScriptStep] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict) or "command" not in entry:
            raise ValueError(f"Step {index} must be an object with a 'command' key")
        command = str(entry["command"]).strip().upper()
        if command not in COMMANDS:
            raise ValueError(
                f"Step {index}: unknown command '{entry['command']}'. "
                f"Valid: {list(COMMANDS)}"
            )
        delay = entry.get("delay", 0.0)
        if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
            raise ValueError(f"Step {index}: delay must be a non-negative number")
        steps.append(ScriptStep(command=command, delay=float(delay)))
    return steps


def script_to_dict(script: Sequence[ScriptStep]) -> list[dict]:
    return [{"command": step.command, "delay": step.delay} for step in script]
