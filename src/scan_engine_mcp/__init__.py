"""Serial framing protocol and MCP server for optical scan engines."""

__version__ = "0.1.0"
