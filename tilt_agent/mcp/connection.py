"""One stdio MCP server: launch, handshake, discovery, calls and teardown.

The ``stdio_client`` and ``ClientSession`` contexts are entered and exited by
a single background task per connection. anyio cancel scopes must be left
from the task that entered them, and the gateway connects, reconnects and
closes connections from whatever task happens to be running.
"""

from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import Any, Optional, Sequence

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import get_default_environment, stdio_client

from ..errors import TransportError
from .models import MCPPromptInfo, MCPServerDescription, MCPToolInfo

logger = logging.getLogger(__name__)

NOT_CONNECTED = "Transport not initialized. Call connect() first."


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class SubprocessToolConnection:
    """Connection to a single tool server spawned as a subprocess.

    All operations on one connection are serialized: the underlying transport
    is a stateful request/response channel.
    """

    def __init__(
        self,
        description: MCPServerDescription,
        *,
        connect_timeout: float = 30.0,
        ping_timeout: float = 5.0,
    ):
        self.description = description
        self.connect_timeout = connect_timeout
        self.ping_timeout = ping_timeout
        self._lock = asyncio.Lock()
        self._session: Optional[ClientSession] = None
        self._capabilities: Any = None
        self._runner: Optional[asyncio.Task] = None
        self._shutdown: Optional[asyncio.Event] = None

    @property
    def name(self) -> str:
        return self.description.name

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.CONNECTED if self._session is not None else ConnectionState.DISCONNECTED

    @property
    def connected(self) -> bool:
        return self._session is not None

    def server_parameters(self) -> StdioServerParameters:
        env = dict(get_default_environment())
        env.update(self.description.env or {})
        return StdioServerParameters(
            command=self.description.command,
            args=list(self.description.args),
            env=env,
        )

    async def connect(self) -> None:
        """Launch the server and complete the handshake. No-op when connected."""
        async with self._lock:
            await self._connect_locked()

    async def reconnect(
        self,
        command: str,
        args: Sequence[str],
        env: Optional[dict[str, str]] = None,
    ) -> None:
        """Tear down any running process, then launch with the new command line."""
        async with self._lock:
            await self._close_locked()
            self.description = self.description.model_copy(
                update={"command": command, "args": list(args), "env": env}
            )
            await self._connect_locked()

    async def close(self) -> None:
        """Stop the server process. Closing twice is a no-op."""
        async with self._lock:
            await self._close_locked()

    async def tools(self) -> list[MCPToolInfo]:
        async with self._lock:
            session = self._require_session()
            try:
                result = await session.list_tools()
            except Exception as exc:
                await self._drop_if_dead(session)
                raise TransportError(f"list_tools failed on {self.name}: {exc}") from exc
        return [
            MCPToolInfo(
                name=tool.name,
                description=tool.description or "",
                input_schema=tool.inputSchema or {"type": "object", "properties": {}},
            )
            for tool in result.tools
        ]

    async def prompts(self) -> list[MCPPromptInfo]:
        async with self._lock:
            session = self._require_session()
            if self._capabilities is not None and getattr(self._capabilities, "prompts", None) is None:
                # Server did not advertise the prompts capability.
                return []
            try:
                result = await session.list_prompts()
            except Exception as exc:
                await self._drop_if_dead(session)
                raise TransportError(f"list_prompts failed on {self.name}: {exc}") from exc
        return [MCPPromptInfo(name=p.name, description=p.description or "") for p in result.prompts]

    async def call_tool(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        """Invoke a tool and return the raw ``CallToolResult``."""
        async with self._lock:
            session = self._require_session()
            logger.debug("mcp call server=%s tool=%s args=%s", self.name, tool_name, arguments)
            try:
                return await session.call_tool(tool_name, arguments)
            except Exception as exc:
                await self._drop_if_dead(session)
                raise TransportError(f"call_tool {tool_name} failed on {self.name}: {exc}") from exc

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise TransportError(NOT_CONNECTED)
        return self._session

    async def _drop_if_dead(self, session: ClientSession) -> None:
        """After a failed request, tear down if the server no longer answers a ping.

        A server that exits after the handshake leaves the session object in
        place; dropping it here lets the next ``connect()`` relaunch the process.
        """
        if self._session is not session:
            return
        try:
            await asyncio.wait_for(session.send_ping(), timeout=self.ping_timeout)
        except Exception as exc:
            logger.warning("MCP server %s stopped responding (%r); marking disconnected", self.name, exc)
            await self._close_locked()

    async def _connect_locked(self) -> None:
        if self._session is not None:
            return

        loop = asyncio.get_running_loop()
        ready: asyncio.Future = loop.create_future()
        shutdown = asyncio.Event()
        logger.info("Launching MCP server %s: %s %s", self.name, self.description.command, " ".join(self.description.args))
        runner = asyncio.create_task(self._serve(ready, shutdown), name=f"mcp-server:{self.name}")
        try:
            session = await asyncio.wait_for(asyncio.shield(ready), timeout=self.connect_timeout)
        except (Exception, asyncio.CancelledError) as exc:
            if not ready.done():
                ready.cancel()
            shutdown.set()
            runner.cancel()
            await asyncio.gather(runner, return_exceptions=True)
            if isinstance(exc, asyncio.CancelledError):
                raise
            if isinstance(exc, asyncio.TimeoutError):
                raise TransportError(f"timeout ({self.connect_timeout}s) starting server {self.name}") from exc
            raise TransportError(f"failed to start server {self.name}: {exc}") from exc

        self._session = session
        self._runner = runner
        self._shutdown = shutdown
        logger.info("Connected to MCP server: %s", self.name)

    async def _close_locked(self) -> None:
        runner, shutdown = self._runner, self._shutdown
        self._session = None
        self._capabilities = None
        self._runner = None
        self._shutdown = None
        if runner is None or shutdown is None:
            return
        shutdown.set()
        try:
            await asyncio.wait_for(runner, timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            logger.warning("MCP server %s did not shut down within %.1fs", self.name, self.connect_timeout)
        logger.info("Closed MCP server: %s", self.name)

    async def _serve(self, ready: asyncio.Future, shutdown: asyncio.Event) -> None:
        try:
            async with stdio_client(self.server_parameters()) as (read_stream, write_stream):
                async with ClientSession(read_stream, write_stream) as session:
                    init_result = await session.initialize()
                    self._capabilities = getattr(init_result, "capabilities", None)
                    if not ready.done():
                        ready.set_result(session)
                    await shutdown.wait()
        except Exception as exc:
            if not ready.done():
                ready.set_exception(exc)
            else:
                logger.warning("MCP server %s transport ended: %s", self.name, exc)
        finally:
            if not ready.done():
                ready.set_exception(TransportError(f"server {self.name} exited during startup"))
            if self._runner is asyncio.current_task():
                # Process went away on its own; reflect that in the state.
                self._session = None
                self._runner = None
                self._shutdown = None


__all__ = ["ConnectionState", "SubprocessToolConnection", "NOT_CONNECTED"]
