"""MCP server entry point for serial scan engines.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import ProtocolError
from .protocol.commands import COMMANDS, get_payload
from .protocol.framing import hex_dump
from .protocol.parser import (
    AckResponse,
    CapabilitiesResponse,
    NakResponse,
    parse_response,
)
from .protocol.sequencer import (
    ACTIVATION_SCRIPT,
    load_script,
    script_to_dict,
)
from .transport.serial_connection import DEFAULT_BAUDRATE, SerialConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "scan-engine",
    instructions="Commands optical scan engines over a serial line",
)

# Global connection state
_connection: SerialConnection | None = None


def _get_connection() -> SerialConnection:
    """Get the active serial connection, raising if not connected."""
    if _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _connection


def _describe_reply(frame) -> dict[str, Any]:
    """Summarise a reply frame for tool output."""
    result: dict[str, Any] = {
        "raw": hex_dump(frame.to_bytes()),
        "opcode": f"0x{frame.opcode:02X}" if frame.opcode is not None else None,
    }
    parsed = parse_response(frame)
    if isinstance(parsed, AckResponse):
        result["reply"] = "ack"
    elif isinstance(parsed, NakResponse):
        result["reply"] = "nak"
        cause = parsed.cause
        result["cause"] = getattr(cause, "name", cause)
    elif isinstance(parsed, CapabilitiesResponse):
        result["reply"] = "capabilities"
        result["data"] = hex_dump(parsed.data)
    else:
        result["reply"] = "unknown"
    return result


def _discard_pending(conn: SerialConnection) -> None:
    """Drop unread input so the next reply starts on a frame boundary."""
    try:
        conn.reset_input_buffer()
    except (ConnectionError, OSError) as e:
        logger.warning("Could not discard pending input: %s", e)


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    port: str,
    baudrate: int = DEFAULT_BAUDRATE,
    timeout: float | None = None,
) -> dict[str, Any]:
    """Open the serial link to the scan engine.

    Args:
        port: Device path (e.g. /dev/ttyACM0, COM3) or pyserial URL.
        baudrate: Line speed (default 9600).
        timeout: Read timeout in seconds; omit to block until the device replies.
    """
    global _connection
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "port": _connection.settings.port,
        }

    _connection = SerialConnection(port, baudrate=baudrate, timeout=timeout)
    settings = _connection.open()
    return {
        "connected": True,
        "port": settings.port,
        "baudrate": settings.baudrate,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial link."""
    global _connection
    if _connection is None:
        return {"disconnected": True}
    _connection.close()
    _connection = None
    return {"disconnected": True}


# ─── COMMAND TOOLS ───────────────────────────────────────────────────

@mcp.tool()
def list_commands() -> dict[str, Any]:
    """List the named commands the engine understands, with their payloads."""
    return {
        "commands": [
            {"name": name, "payload": hex_dump(payload)}
            for name, payload in COMMANDS.items()
        ]
    }


@mcp.tool()
def send_command(name: str) -> dict[str, Any]:
    """Send one named command and return the device's reply.

    Args:
        name: Command name, e.g. AIM_ON or CAPABILITIES_REQUEST.
    """
    try:
        get_payload(name)
    except ValueError as e:
        return {"error": str(e)}

    conn = _get_connection()
    try:
        frame = conn.transact(name)
    except ProtocolError as e:
        logger.error("Command %s failed: %s", name, e)
        _discard_pending(conn)
        return {"error": str(e), "command": name}

    result = _describe_reply(frame)
    result["command"] = name.strip().upper()
    return result


@mcp.tool()
def run_activation_script(script_path: str | None = None) -> dict[str, Any]:
    """Run the activation sequence (aim on/off, illumination on/off, capabilities).

    Args:
        script_path: Optional JSON file with a custom list of
                     {"command": ..., "delay": seconds} steps.
    """
    if script_path is None:
        script = list(ACTIVATION_SCRIPT)
    else:
        try:
            script = load_script(script_path)
        except (OSError, ValueError) as e:
            return {"error": f"Could not load script: {e}"}

    conn = _get_connection()
    try:
        replies = conn.run_script(script)
    except ProtocolError as e:
        logger.error("Script aborted: %s", e)
        _discard_pending(conn)
        return {"error": str(e), "completed": False}

    steps = []
    for step, frame in zip(script, replies):
        entry = _describe_reply(frame)
        entry["command"] = step.command
        steps.append(entry)
    return {"completed": True, "steps": steps}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("scanengine://catalog/commands")
def resource_command_catalog() -> str:
    """Named commands and their payload bytes."""
    return json.dumps({name: hex_dump(p) for name, p in COMMANDS.items()})


@mcp.resource("scanengine://script/activation")
def resource_activation_script() -> str:
    """The default activation script."""
    return json.dumps(script_to_dict(ACTIVATION_SCRIPT))


@mcp.resource("scanengine://device/status")
def resource_device_status() -> str:
    """Current connection status."""
    if _connection is None or not _connection.connected:
        return json.dumps({"connected": False})
    s = _connection.settings
    return json.dumps({
        "connected": True,
        "port": s.port,
        "baudrate": s.baudrate,
        "timeout": s.timeout,
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
