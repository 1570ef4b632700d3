"""Conversation engine: the streaming ask / tool-call loop for one agent."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
import logging
import time
from typing import Callable, Optional

from .config import DEFAULT_INSTRUCTIONS, DEFAULT_MODEL
from .errors import AskCancelled, ProviderError, ToolCallLimitExceeded
from .events import ChatEvent, project_events
from .history import AssistantMessage, FunctionCall, FunctionCallOutput, HistoryItem, UserMessage, to_input
from .mcp.gateway import ToolGateway
from .providers.base import LLMProvider
from .providers.models import FunctionCallItem, MessageItem, OutputItemDone, OutputTextDelta
from .routing import ToolRouter
from .tools.base import CallResult
from .tools.registry import LocalToolRegistry

logger = logging.getLogger(__name__)

TokenCallback = Callable[[str], None]
ChatEventCallback = Callable[[list[ChatEvent]], None]


class AskErrorKind(str, Enum):
    PROVIDER = "provider"
    TOOL_CALL_LIMIT = "tool_call_limit"
    CANCELLED = "cancelled"
    NOT_READY = "not_ready"


@dataclass(frozen=True)
class AskResult:
    """Outcome of one ``ask()``: either the final text or a typed failure."""

    text: str = ""
    error: Optional[str] = None
    kind: Optional[AskErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, text: str) -> "AskResult":
        return cls(text=text)

    @classmethod
    def failure(cls, kind: AskErrorKind, error: str) -> "AskResult":
        return cls(error=error, kind=kind)


class ConversationEngine:
    def __init__(
        self,
        provider: LLMProvider,
        registry: LocalToolRegistry,
        gateway: Optional[ToolGateway] = None,
        *,
        model: str = DEFAULT_MODEL,
        instructions: Optional[str] = DEFAULT_INSTRUCTIONS,
        max_tool_rounds: int = 8,
    ):
        if max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be at least 1")
        self.provider = provider
        self.gateway = gateway
        self.router = ToolRouter(registry, gateway)
        self.model = model
        self.instructions = instructions
        self.max_tool_rounds = max_tool_rounds
        self._history: list[HistoryItem] = []
        self._lock = asyncio.Lock()
        self._ready = asyncio.Event()

    @property
    def history(self) -> tuple[HistoryItem, ...]:
        return tuple(self._history)

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    async def start(self) -> None:
        """Connect every configured tool server, then accept questions."""
        if self.gateway is not None:
            await self.gateway.connect_all()
        self._ready.set()
        logger.info("engine ready model=%s local_tools=%s", self.model, self.router.registry.names())

    def events(self) -> list[ChatEvent]:
        return project_events(self._history)

    def reset(self) -> None:
        self._history.clear()
        logger.info("history cleared")

    async def ask(
        self,
        question: str,
        on_token: Optional[TokenCallback] = None,
        on_chat_event: Optional[ChatEventCallback] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> AskResult:
        if not self._ready.is_set():
            return AskResult.failure(AskErrorKind.NOT_READY, "engine not started; call start() first")

        async with self._lock:
            t0 = time.time()
            self._append(UserMessage(content=question), on_chat_event)
            try:
                text = await self._respond(on_token, on_chat_event, cancel)
            except ProviderError as exc:
                logger.error("ask failed: %s", exc)
                return AskResult.failure(AskErrorKind.PROVIDER, str(exc))
            except ToolCallLimitExceeded as exc:
                logger.warning("ask stopped: %s", exc)
                return AskResult.failure(AskErrorKind.TOOL_CALL_LIMIT, str(exc))
            except AskCancelled as exc:
                logger.info("ask cancelled")
                return AskResult.failure(AskErrorKind.CANCELLED, str(exc))
            logger.info("ask done chars=%d elapsed=%.3fs", len(text), time.time() - t0)
            return AskResult.success(text)

    async def _respond(
        self,
        on_token: Optional[TokenCallback],
        on_chat_event: Optional[ChatEventCallback],
        cancel: Optional[asyncio.Event],
    ) -> str:
        rounds = 0
        while True:
            _check_cancel(cancel)
            catalog = await self.router.catalog()
            tools = [spec.to_provider() for spec in catalog]

            deltas: list[str] = []
            messages: list[str] = []
            calls: list[FunctionCallItem] = []
            stream = self.provider.stream(
                model=self.model,
                input=to_input(self._history),
                tools=tools,
                instructions=self.instructions,
            )
            async with aclosing(stream):
                async for event in stream:
                    _check_cancel(cancel)
                    if isinstance(event, OutputTextDelta):
                        deltas.append(event.delta)
                        if on_token is not None:
                            on_token(event.delta)
                    elif isinstance(event, OutputItemDone):
                        if isinstance(event.item, FunctionCallItem):
                            calls.append(event.item)
                        elif isinstance(event.item, MessageItem):
                            messages.append(event.item.text())

            text = "".join(messages) if messages else "".join(deltas)
            if not calls:
                self._append(AssistantMessage(content=text), on_chat_event)
                return text

            if rounds >= self.max_tool_rounds:
                raise ToolCallLimitExceeded(self.max_tool_rounds)
            rounds += 1
            logger.info("tool round %d/%d calls=%s", rounds, self.max_tool_rounds, [c.name for c in calls])

            if text:
                self._append(AssistantMessage(content=text), on_chat_event)
            for call in calls:
                self._append(FunctionCall(call_id=call.call_id, name=call.name, arguments=call.arguments), on_chat_event)
                try:
                    result = await self._invoke(call, cancel)
                except AskCancelled:
                    # keep the call answered so the history stays replayable
                    self._append(FunctionCallOutput(call_id=call.call_id, output="cancelled"), on_chat_event)
                    raise
                self._append(FunctionCallOutput(call_id=call.call_id, output=result.to_output()), on_chat_event)

    async def _invoke(self, call: FunctionCallItem, cancel: Optional[asyncio.Event]) -> CallResult:
        _check_cancel(cancel)
        if cancel is None:
            return await self.router.invoke(call.name, call.arguments)

        task = asyncio.ensure_future(self.router.invoke(call.name, call.arguments))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
        if task in done:
            return task.result()
        logger.info("tool call %s aborted by cancellation", call.name)
        raise AskCancelled("ask cancelled during tool call")

    def _append(self, item: HistoryItem, on_chat_event: Optional[ChatEventCallback]) -> None:
        self._history.append(item)
        if on_chat_event is not None:
            on_chat_event(project_events(self._history))


def _check_cancel(cancel: Optional[asyncio.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise AskCancelled("ask cancelled")


__all__ = ["AskErrorKind", "AskResult", "ConversationEngine"]
