"""Fakes and stream builders shared by the tests."""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, Optional

from mcp.types import CallToolResult, TextContent

from tilt_agent.errors import TransportError
from tilt_agent.mcp.connection import NOT_CONNECTED
from tilt_agent.mcp.models import MCPPromptInfo, MCPServerDescription, MCPToolInfo
from tilt_agent.providers.base import LLMProvider
from tilt_agent.providers.models import (
    FunctionCallItem,
    MessageItem,
    OutputItemDone,
    OutputTextContent,
    OutputTextDelta,
    ResponseCompleted,
)


class FakeConnection:
    """In-memory stand-in for a subprocess tool server connection."""

    def __init__(
        self,
        description: MCPServerDescription,
        *,
        tools: Iterable[str] = (),
        fail_connect: bool = False,
        call_result: Any = None,
        call_error: Optional[Exception] = None,
    ):
        self.description = description
        self.tool_names = list(tools)
        self.fail_connect = fail_connect
        self.call_result = call_result
        self.call_error = call_error
        self.connected = False
        self.connects = 0
        self.closes = 0
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @property
    def name(self) -> str:
        return self.description.name

    async def connect(self) -> None:
        if self.connected:
            return
        self.connects += 1
        if self.fail_connect:
            raise TransportError(f"failed to start server {self.name}: spawn failed")
        self.connected = True

    async def reconnect(self, command, args, env=None) -> None:
        await self.close()
        self.description = self.description.model_copy(update={"command": command, "args": list(args), "env": env})
        await self.connect()

    async def close(self) -> None:
        if self.connected:
            self.closes += 1
        self.connected = False

    async def tools(self) -> list[MCPToolInfo]:
        if not self.connected:
            raise TransportError(NOT_CONNECTED)
        return [MCPToolInfo(name=name, description=f"{name} tool") for name in self.tool_names]

    async def prompts(self) -> list[MCPPromptInfo]:
        if not self.connected:
            raise TransportError(NOT_CONNECTED)
        return []

    async def call_tool(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        if not self.connected:
            raise TransportError(NOT_CONNECTED)
        self.calls.append((tool_name, arguments))
        if self.call_error is not None:
            raise self.call_error
        return self.call_result


class FakeConnectionFactory:
    """Connection factory for ``ToolGateway`` that records what it built."""

    def __init__(
        self,
        tools: Optional[dict[str, list[str]]] = None,
        *,
        failing: Iterable[str] = (),
        results: Optional[dict[str, Any]] = None,
    ):
        self.tools = tools or {}
        self.failing = set(failing)
        self.results = results or {}
        self.created: list[FakeConnection] = []

    def __call__(self, description: MCPServerDescription) -> FakeConnection:
        connection = FakeConnection(
            description,
            tools=self.tools.get(description.name, ()),
            fail_connect=description.name in self.failing,
            call_result=self.results.get(description.name),
        )
        self.created.append(connection)
        return connection

    def latest(self, name: str) -> FakeConnection:
        return [c for c in self.created if c.name == name][-1]


class ScriptedProvider(LLMProvider):
    """Replays one scripted list of stream events per provider request."""

    name = "scripted"

    def __init__(self, turns: Iterable[Any]):
        self.turns = list(turns)
        self.requests: list[dict[str, Any]] = []

    async def stream(self, *, model, input, tools, instructions=None):
        self.requests.append({"model": model, "input": list(input), "tools": tools, "instructions": instructions})
        if not self.turns:
            raise AssertionError("provider called more times than scripted")
        turn = self.turns.pop(0)
        if isinstance(turn, Exception):
            raise turn
        for event in turn:
            await asyncio.sleep(0)
            yield event


def text_turn(text: str) -> list[Any]:
    """Events for a plain assistant reply, streamed word by word."""
    words = text.split(" ")
    deltas = [w if i == 0 else f" {w}" for i, w in enumerate(words)]
    return [
        *(OutputTextDelta(type="response.output_text.delta", delta=d) for d in deltas),
        OutputItemDone(
            type="response.output_item.done",
            item=MessageItem(type="message", content=[OutputTextContent(text=text)]),
        ),
        ResponseCompleted(type="response.completed"),
    ]


def call_turn(*calls: tuple[str, str, str]) -> list[Any]:
    """Events for a response made only of function calls ``(call_id, name, arguments)``."""
    return [
        *(
            OutputItemDone(
                type="response.output_item.done",
                output_index=i,
                item=FunctionCallItem(type="function_call", call_id=call_id, name=name, arguments=arguments),
            )
            for i, (call_id, name, arguments) in enumerate(calls)
        ),
        ResponseCompleted(type="response.completed"),
    ]


def text_result(text: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=False)
