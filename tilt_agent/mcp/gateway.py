"""Process-wide set of MCP server connections.

The gateway owns every ``SubprocessToolConnection``; nothing else keeps a
reference to a connection's transport. It is constructed once and handed to
each engine that needs remote tools.

Locking: ``set_servers``, ``upsert``, ``remove`` and ``close`` take the write
side of a read/write lock; discovery, ``connect_all`` and tool calls take the
read side and run concurrently with each other. Each connection additionally
serializes its own requests.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import Any, AsyncIterator, Callable, Iterable, Optional

import orjson

from ..errors import NamespaceError, TransportError
from ..naming import encode_tool_name
from ..tools.base import CallResult, ToolSpec
from .connection import SubprocessToolConnection
from .models import MCPServerDescription, MCPServerInfo

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[MCPServerDescription], SubprocessToolConnection]


class ReadWriteLock:
    """Many readers or one writer. A queued writer holds off new readers."""

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._writers_waiting == 0)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            finally:
                self._writers_waiting -= 1
                # A cancelled writer must not keep readers parked.
                self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


def normalize_call_result(result: Any) -> CallResult:
    """Turn an MCP ``CallToolResult`` into a ``CallResult``.

    Structured content wins; all-text content collapses to one string;
    anything else is returned as a list of JSON-ready content items.
    """
    content = list(getattr(result, "content", None) or [])
    texts = [item.text for item in content if isinstance(getattr(item, "text", None), str)]
    if getattr(result, "isError", False):
        return CallResult.fail(" ".join(texts) or "tool reported an error")

    structured = getattr(result, "structuredContent", None)
    if structured is not None:
        return CallResult.ok(structured)
    if len(texts) == len(content):
        return CallResult.ok("\n".join(texts))
    return CallResult.ok(
        [item.model_dump(mode="json", exclude_none=True) if hasattr(item, "model_dump") else str(item) for item in content]
    )


class ToolGateway:
    """Routes discovery and calls to named tool-server connections."""

    def __init__(
        self,
        *,
        connection_factory: Optional[ConnectionFactory] = None,
        connect_timeout: float = 30.0,
    ):
        self._connections: dict[str, SubprocessToolConnection] = {}
        self._lock = ReadWriteLock()
        self._factory: ConnectionFactory = connection_factory or (
            lambda description: SubprocessToolConnection(description, connect_timeout=connect_timeout)
        )
        self.version = 0

    def _changed(self) -> None:
        self.version += 1

    def server_names(self) -> list[str]:
        return list(self._connections)

    def has_server(self, server_name: str) -> bool:
        return server_name in self._connections

    async def set_servers(self, descriptions: Iterable[MCPServerDescription]) -> None:
        """Replace the whole set: close every connection, then create one per description.

        Unchanged servers are torn down too; use ``upsert``/``remove`` for
        edits that should leave other servers running.
        """
        async with self._lock.write():
            await self._close_all_locked()
            connections: dict[str, SubprocessToolConnection] = {}
            for description in descriptions:
                if description.name in connections:
                    logger.warning("duplicate MCP server name %s; keeping the last one", description.name)
                connections[description.name] = self._factory(description)
            self._connections = connections
            self._changed()
            logger.info("MCP server set replaced servers=%s", list(connections))

    async def connect_all(self) -> None:
        """Connect every held connection in parallel; failures stay per server."""
        async with self._lock.read():
            connections = list(self._connections.values())
            results = await asyncio.gather(*(c.connect() for c in connections), return_exceptions=True)
            for connection, result in zip(connections, results):
                if isinstance(result, BaseException):
                    logger.warning("Failed to connect MCP server %s: %s", connection.name, result)
            self._changed()

    async def upsert(self, description: MCPServerDescription) -> None:
        """Add or update one server without disturbing the others."""
        async with self._lock.write():
            existing = self._connections.get(description.name)
            try:
                if existing is None:
                    connection = self._factory(description)
                    self._connections[description.name] = connection
                    await connection.connect()
                else:
                    await existing.reconnect(description.command, description.args, description.env)
            except TransportError as exc:
                logger.warning("MCP server %s registered but not connected: %s", description.name, exc)
            finally:
                self._changed()

    async def remove(self, server_name: str) -> None:
        async with self._lock.write():
            connection = self._connections.pop(server_name, None)
            if connection is None:
                return
            await self._close_quietly(connection)
            self._changed()

    async def close(self) -> None:
        async with self._lock.write():
            await self._close_all_locked()
            self._connections = {}
            self._changed()

    async def get_info(self, server_name: str) -> Optional[MCPServerInfo]:
        """Query one server's tools and prompts; ``None`` on any failure."""
        async with self._lock.read():
            connection = self._connections.get(server_name)
            if connection is None:
                return None
            return await self._query(connection)

    async def get_all_info(self) -> list[MCPServerInfo]:
        """Query every server in parallel and keep only those that answered."""
        async with self._lock.read():
            infos = await asyncio.gather(*(self._query(c) for c in self._connections.values()))
        return [info for info in infos if info is not None]

    async def tool_specs(self) -> list[ToolSpec]:
        """Remote tools re-exposed under their namespaced names."""
        specs: list[ToolSpec] = []
        for info in await self.get_all_info():
            for tool in info.tools:
                try:
                    name = encode_tool_name(info.name, tool.name)
                except NamespaceError as exc:
                    logger.warning("Skipping MCP tool %s/%s: %s", info.name, tool.name, exc)
                    continue
                specs.append(ToolSpec(name=name, description=tool.description, parameters=tool.input_schema))
        return specs

    async def call_tool(self, server_name: str, tool_name: str, arguments: dict[str, Any]) -> CallResult:
        async with self._lock.read():
            resolved = await self._resolve_tool(server_name, tool_name)
            if isinstance(resolved, CallResult):
                return resolved
            return await self._call(resolved, tool_name, arguments)

    async def invoke(self, server_name: str, tool_name: str, raw_arguments: str) -> CallResult:
        """Like ``call_tool`` but with the model's raw JSON argument string."""
        async with self._lock.read():
            resolved = await self._resolve_tool(server_name, tool_name)
            if isinstance(resolved, CallResult):
                return resolved
            try:
                arguments = orjson.loads(raw_arguments or "{}")
            except orjson.JSONDecodeError:
                return CallResult.fail("invalid arguments")
            if not isinstance(arguments, dict):
                return CallResult.fail("invalid arguments: expected a JSON object")
            return await self._call(resolved, tool_name, arguments)

    async def _resolve_tool(
        self, server_name: str, tool_name: str
    ) -> SubprocessToolConnection | CallResult:
        connection = self._connections.get(server_name)
        if connection is None:
            return CallResult.fail(f"tool not found on server: unknown server {server_name!r}")
        if not connection.connected:
            # Relaunch a server that exited or never started.
            try:
                await connection.connect()
            except TransportError as exc:
                return CallResult.fail(f"tool not found on server {server_name!r}: {exc}")
            self._changed()
        try:
            tools = await connection.tools()
        except TransportError as exc:
            return CallResult.fail(f"tool not found on server {server_name!r}: {exc}")
        if not any(tool.name == tool_name for tool in tools):
            return CallResult.fail(f"tool not found on server: {tool_name!r} is not provided by {server_name!r}")
        return connection

    async def _call(self, connection: SubprocessToolConnection, tool_name: str, arguments: dict[str, Any]) -> CallResult:
        try:
            result = await connection.call_tool(tool_name, arguments)
        except TransportError as exc:
            logger.warning("MCP tool %s/%s failed: %s", connection.name, tool_name, exc)
            return CallResult.fail(str(exc))
        normalized = normalize_call_result(result)
        logger.info("MCP tool %s/%s success=%s", connection.name, tool_name, normalized.success)
        return normalized

    async def _query(self, connection: SubprocessToolConnection) -> Optional[MCPServerInfo]:
        try:
            tools = await connection.tools()
            prompts = await connection.prompts()
        except Exception as exc:
            logger.error("Failed to get client info for %s: %s", connection.name, exc)
            return None
        return MCPServerInfo(description=connection.description, tools=tools, prompts=prompts)

    async def _close_all_locked(self) -> None:
        await asyncio.gather(*(self._close_quietly(c) for c in self._connections.values()))

    @staticmethod
    async def _close_quietly(connection: SubprocessToolConnection) -> None:
        try:
            await connection.close()
        except Exception as exc:
            logger.error("Error closing MCP server %s: %s", connection.name, exc)


__all__ = ["ToolGateway", "ReadWriteLock", "normalize_call_result"]
