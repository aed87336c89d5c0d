"""Tests for transactions and scripted sequences."""

from __future__ import annotations

import io
import json
import logging

import pytest

from scan_engine_mcp.errors import ChecksumMismatch, TransportError
from scan_engine_mcp.protocol.commands import build_command
from scan_engine_mcp.protocol.framing import build_frame
from scan_engine_mcp.protocol.sequencer import (
    ACTIVATION_SCRIPT,
    ScriptStep,
    load_script,
    run_script,
    script_to_dict,
    transact,
)

ACK = build_frame(b"\xd0\x00\x00")


class FakeDevice:
    """Duplex stream: replies are queued up front, writes are recorded."""

    def __init__(self, replies: bytes = b"") -> None:
        self._replies = io.BytesIO(replies)
        self.written = bytearray()
        self.events: list[str] = []

    def write(self, data) -> int:
        self.written += bytes(data)
        self.events.append("write")
        return len(data)

    def flush(self) -> None:
        self.events.append("flush")

    def read(self, size: int) -> bytes:
        self.events.append("read")
        return self._replies.read(size)


def test_transact_writes_frame_and_returns_reply():
    device = FakeDevice(ACK)
    reply = transact(device, "AIM_ON")

    assert bytes(device.written) == bytes([0x04, 0xC5, 0x04, 0x00, 0xFF, 0x33])
    assert reply.opcode == 0xD0


def test_transact_write_flush_before_read():
    device = FakeDevice(ACK)
    transact(device, "AIM_OFF")
    first_read = device.events.index("read")
    assert "write" in device.events[:first_read]
    assert "flush" in device.events[:first_read]


def test_transact_unknown_command_does_no_io():
    device = FakeDevice(ACK)
    with pytest.raises(ValueError):
        transact(device, "SELF_DESTRUCT")
    assert device.events == []


def test_transact_no_reply():
    with pytest.raises(TransportError):
        transact(FakeDevice(), "AIM_ON")


def test_transact_corrupt_reply():
    corrupt = bytearray(ACK)
    corrupt[1] ^= 0xFF
    with pytest.raises(ChecksumMismatch):
        transact(FakeDevice(bytes(corrupt)), "AIM_ON")


def test_transact_logs_hex_dumps(caplog):
    caplog.set_level(logging.INFO, logger="scan_engine_mcp.protocol.sequencer")
    transact(FakeDevice(ACK), "AIM_ON")
    assert "Sent command: 04 c5 04 00 ff 33" in caplog.text
    assert f"Received packet: {ACK.hex(' ')}" in caplog.text


def test_activation_script_shape():
    assert [s.command for s in ACTIVATION_SCRIPT] == [
        "AIM_ON",
        "AIM_OFF",
        "ILLUMINATION_ON",
        "ILLUMINATION_OFF",
        "CAPABILITIES_REQUEST",
    ]
    assert [s.delay for s in ACTIVATION_SCRIPT] == [1.0, 0.0, 1.0, 0.0, 0.0]


def test_run_script_order_and_delays():
    device = FakeDevice(ACK * 4 + build_frame(b"\xd4\x00\x00\x01"))
    sleeps: list[float] = []

    replies = run_script(device, sleep=sleeps.append)

    expected = b"".join(build_command(s.command) for s in ACTIVATION_SCRIPT)
    assert bytes(device.written) == expected
    assert len(replies) == 5
    assert replies[-1].opcode == 0xD4
    assert sleeps == [1.0, 1.0]


def test_run_script_aborts_on_first_failure():
    """The third step gets no reply; later steps are never sent."""
    device = FakeDevice(ACK * 2)
    sleeps: list[float] = []

    with pytest.raises(TransportError):
        run_script(device, sleep=sleeps.append)

    expected = b"".join(build_command(s.command) for s in ACTIVATION_SCRIPT[:3])
    assert bytes(device.written) == expected
    assert sleeps == [1.0]


def test_run_script_custom_steps():
    device = FakeDevice(ACK)
    sleeps: list[float] = []
    run_script(device, [ScriptStep("ILLUMINATION_ON", delay=0.25)], sleep=sleeps.append)
    assert bytes(device.written) == build_command("ILLUMINATION_ON")
    assert sleeps == [0.25]


def test_run_script_empty():
    device = FakeDevice()
    assert run_script(device, [], sleep=lambda s: None) == []
    assert device.events == []


def test_load_script(tmp_path):
    path = tmp_path / "script.json"
    path.write_text(json.dumps([
        {"command": "aim_on", "delay": 2},
        {"command": "AIM_OFF"},
    ]))
    assert load_script(path) == [
        ScriptStep("AIM_ON", delay=2.0),
        ScriptStep("AIM_OFF", delay=0.0),
    ]


def test_load_script_roundtrip_default(tmp_path):
    path = tmp_path / "default.json"
    path.write_text(json.dumps(script_to_dict(ACTIVATION_SCRIPT)))
    assert tuple(load_script(path)) == ACTIVATION_SCRIPT


@pytest.mark.parametrize(
    "content",
    [
        {"command": "AIM_ON"},
        [{"delay": 1}],
        ["AIM_ON"],
        [{"command": "FIRE_LASER"}],
        [{"command": "AIM_ON", "delay": -1}],
        [{"command": "AIM_ON", "delay": "soon"}],
        [{"command": "AIM_ON", "delay": True}],
    ],
)
def test_load_script_invalid(tmp_path, content):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(content))
    with pytest.raises(ValueError):
        load_script(path)
