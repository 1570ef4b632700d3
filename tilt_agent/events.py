"""Display-ready chat events projected from history."""

from __future__ import annotations

from typing import Literal, Sequence, Union

from pydantic import BaseModel

from .history import AssistantMessage, FunctionCall, FunctionCallOutput, HistoryItem, UserMessage
from .naming import try_decode_tool_name


class MessageEvent(BaseModel):
    type: Literal["message"] = "message"
    role: Literal["user", "assistant"]
    content: str

    model_config = {"frozen": True}


class ToolCallEvent(BaseModel):
    type: Literal["tool-call"] = "tool-call"
    function_name: str
    arguments: str

    model_config = {"frozen": True}


class ToolCallOutputEvent(BaseModel):
    type: Literal["tool-call-output"] = "tool-call-output"
    output: str

    model_config = {"frozen": True}


class MCPToolCallEvent(BaseModel):
    type: Literal["mcp-tool-call"] = "mcp-tool-call"
    server_name: str
    tool_name: str
    arguments: str

    model_config = {"frozen": True}


ChatEvent = Union[MessageEvent, ToolCallEvent, ToolCallOutputEvent, MCPToolCallEvent]


def project_events(history: Sequence[HistoryItem]) -> list[ChatEvent]:
    """Map history to events, one per item, in order. Pure."""
    events: list[ChatEvent] = []
    for item in history:
        if isinstance(item, UserMessage):
            events.append(MessageEvent(role="user", content=item.content))
        elif isinstance(item, AssistantMessage):
            events.append(MessageEvent(role="assistant", content=item.content))
        elif isinstance(item, FunctionCall):
            remote = try_decode_tool_name(item.name)
            if remote is None:
                events.append(ToolCallEvent(function_name=item.name, arguments=item.arguments))
            else:
                events.append(
                    MCPToolCallEvent(
                        server_name=remote.server_name,
                        tool_name=remote.tool_name,
                        arguments=item.arguments,
                    )
                )
        elif isinstance(item, FunctionCallOutput):
            events.append(ToolCallOutputEvent(output=item.output))
    return events


def render_event(event: ChatEvent) -> str:
    """One-line text rendering used by the REPL for tool traffic."""
    if isinstance(event, MessageEvent):
        return event.content
    if isinstance(event, ToolCallEvent):
        return f"Tool call: {event.function_name}({event.arguments})"
    if isinstance(event, ToolCallOutputEvent):
        return f"Tool output: {event.output}"
    return f"MCP Tool call: {event.server_name}/{event.tool_name}({event.arguments})"


__all__ = [
    "ChatEvent",
    "MessageEvent",
    "ToolCallEvent",
    "ToolCallOutputEvent",
    "MCPToolCallEvent",
    "project_events",
    "render_event",
]
