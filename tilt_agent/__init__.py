"""Tilt agent: a streaming conversation engine with local and MCP-hosted tools."""

__version__ = "0.1.0"
