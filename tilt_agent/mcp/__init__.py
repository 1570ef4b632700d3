"""Stdio MCP tool servers: connections, the shared gateway and stored config."""

from .catalog import ServerCatalog, load_servers_yaml
from .connection import ConnectionState, SubprocessToolConnection
from .gateway import ToolGateway
from .models import MCPPromptInfo, MCPServerDescription, MCPServerInfo, MCPToolInfo

__all__ = [
    "ConnectionState",
    "MCPPromptInfo",
    "MCPServerDescription",
    "MCPServerInfo",
    "MCPToolInfo",
    "ServerCatalog",
    "SubprocessToolConnection",
    "ToolGateway",
    "load_servers_yaml",
]
