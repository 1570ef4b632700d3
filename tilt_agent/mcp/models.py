"""Data models for configured MCP servers and their discovery results."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class MCPServerDescription(BaseModel):
    """How to launch one stdio tool server.

    ``env`` overlays the host's base environment key by key.
    """

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    command: str = Field(..., min_length=1)
    args: list[str] = Field(default_factory=list)
    env: Optional[dict[str, str]] = None

    def __str__(self) -> str:
        return f"MCPServer({self.name}: {' '.join([self.command, *self.args])})"


class MCPToolInfo(BaseModel):
    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class MCPPromptInfo(BaseModel):
    name: str
    description: str = ""


class MCPServerInfo(BaseModel):
    """A server description together with what it advertised when queried."""

    description: MCPServerDescription
    tools: list[MCPToolInfo] = Field(default_factory=list)
    prompts: list[MCPPromptInfo] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return self.description.name

    def has_tool(self, tool_name: str) -> bool:
        return any(tool.name == tool_name for tool in self.tools)


__all__ = ["MCPServerDescription", "MCPToolInfo", "MCPPromptInfo", "MCPServerInfo"]
