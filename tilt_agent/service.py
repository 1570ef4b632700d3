from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional, TextIO

from .config import AgentSettings, load_settings
from .engine import ConversationEngine
from .events import ChatEvent, MessageEvent, render_event
from .logging import configure_logging
from .mcp.catalog import ServerCatalog
from .mcp.gateway import ToolGateway
from .providers.base import LLMProvider
from .providers.openai import OpenAIResponsesProvider
from .store import JsonFileStore, KeyValueStore
from .tools.memory import memory_tools
from .tools.registry import LocalToolRegistry

logger = logging.getLogger("tilt-agent")

HELP = "Commands: /servers, /tools, /reset, /quit"


class AgentService:
    """Wires the store, tools, tool servers, provider and engine together."""

    def __init__(
        self,
        settings: Optional[AgentSettings] = None,
        *,
        store: Optional[KeyValueStore] = None,
        gateway: Optional[ToolGateway] = None,
        provider: Optional[LLMProvider] = None,
        out: TextIO = sys.stdout,
    ):
        self.settings = settings or load_settings()
        self.out = out
        self.store = store if store is not None else JsonFileStore(self.settings.store_path)
        self.registry = LocalToolRegistry(memory_tools(self.store))
        self.gateway = gateway or ToolGateway(connect_timeout=self.settings.connect_timeout)
        self.catalog = ServerCatalog(self.store, self.gateway, seed_path=self.settings.mcp_servers_yaml)
        self.provider = provider or OpenAIResponsesProvider(
            api_key=self.settings.openai_api_key,
            base_url=self.settings.openai_base_url,
            timeout=self.settings.request_timeout,
        )
        self.engine = ConversationEngine(
            self.provider,
            self.registry,
            self.gateway,
            model=self.settings.model,
            instructions=self.settings.instructions,
            max_tool_rounds=self.settings.max_tool_rounds,
        )

    async def start(self) -> None:
        await self.catalog.init()
        await self.engine.start()
        logger.info("agent started servers=%s", [s.name for s in self.catalog.servers()])

    async def close(self) -> None:
        await self.gateway.close()
        logger.info("agent stopped")

    def _write(self, text: str = "", end: str = "\n") -> None:
        self.out.write(text + end)
        self.out.flush()

    async def handle_line(self, line: str) -> bool:
        """Handle one line of input. Returns ``False`` when the loop should stop."""
        line = line.strip()
        if not line:
            return True
        if line == "/quit":
            return False
        if line == "/reset":
            self.engine.reset()
            self._write("History cleared.")
            return True
        if line == "/servers":
            infos = {info.name: info for info in await self.catalog.info()}
            servers = self.catalog.servers()
            if not servers:
                self._write("No MCP servers configured.")
            for server in servers:
                info = infos.get(server.name)
                if info is None:
                    self._write(f"{server.name}: unavailable")
                else:
                    self._write(f"{server.name}: {len(info.tools)} tools, {len(info.prompts)} prompts")
            return True
        if line == "/tools":
            for spec in await self.engine.router.catalog():
                self._write(f"{spec.name}: {spec.description}")
            return True
        if line.startswith("/"):
            self._write(HELP)
            return True

        streamed = False
        shown = len(self.engine.events())

        def on_token(delta: str) -> None:
            nonlocal streamed
            streamed = True
            self._write(delta, end="")

        def on_chat_event(events: list[ChatEvent]) -> None:
            # Messages arrive through on_token; only tool traffic is echoed here.
            nonlocal streamed, shown
            for event in events[shown:]:
                if isinstance(event, MessageEvent):
                    continue
                if streamed:
                    self._write()
                    streamed = False
                self._write(render_event(event))
            shown = len(events)

        result = await self.engine.ask(line, on_token=on_token, on_chat_event=on_chat_event)
        self._write()
        if not result.ok:
            self._write(f"[{result.kind.value}] {result.error}")
        return True

    async def run(self, stdin: TextIO = sys.stdin) -> None:
        await self.start()
        self._write(HELP)
        try:
            while True:
                self._write("> ", end="")
                line = await asyncio.to_thread(stdin.readline)
                if not line:
                    break
                if not await self.handle_line(line):
                    break
        finally:
            await self.close()


def main() -> int:
    settings = load_settings()
    configure_logging(settings.log_level, json=settings.log_json)
    svc = AgentService(settings)
    try:
        asyncio.run(svc.run())
    except KeyboardInterrupt:
        logger.info("interrupted")
    return 0
