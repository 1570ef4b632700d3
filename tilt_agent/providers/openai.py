from __future__ import annotations

import logging
import time
from typing import Any, AsyncIterator, Optional

import httpx
import orjson
from pydantic import ValidationError

from ..errors import ProviderError
from .base import LLMProvider
from .models import (
    ErrorEvent,
    OutputTextDelta,
    ResponseFailed,
    ResponsesRequest,
    StreamEvent,
    parse_event,
)

logger = logging.getLogger(__name__)


class OpenAIResponsesProvider(LLMProvider):
    name = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url or "https://api.openai.com/v1"
        self.timeout = timeout
        self._transport = transport
        logger.debug("OpenAIResponsesProvider initialized base_url=%s timeout=%.1fs", self.base_url, self.timeout)

    async def stream(
        self,
        *,
        model: str,
        input: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        instructions: Optional[str] = None,
    ) -> AsyncIterator[StreamEvent]:
        if not self.api_key:
            raise ProviderError("OPENAI_API_KEY not set")

        payload = ResponsesRequest(
            model=model,
            input=input,
            instructions=instructions,
            tools=tools or None,
            stream=True,
        )
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        t0 = time.time()
        first_dt: float | None = None
        events = 0
        logger.info("openai.stream start model=%s items=%d tools=%d", model, len(input), len(tools or []))

        timeout = httpx.Timeout(self.timeout, read=None)
        try:
            async with httpx.AsyncClient(timeout=timeout, base_url=self.base_url, transport=self._transport) as client:
                async with client.stream(
                    "POST",
                    "/responses",
                    content=orjson.dumps(payload.model_dump(exclude_none=True)),
                    headers=headers,
                ) as resp:
                    logger.debug("openai.stream HTTP status=%s", resp.status_code)
                    if resp.status_code >= 400:
                        body = (await resp.aread()).decode(errors="replace")
                        raise ProviderError(
                            f"provider returned HTTP {resp.status_code}: {body[:500]}",
                            status_code=resp.status_code,
                        )
                    async for line in resp.aiter_lines():
                        data_str = _sse_data(line)
                        if data_str is None:
                            continue
                        if data_str == "[DONE]":
                            logger.debug("openai.stream received [DONE]")
                            break
                        try:
                            event = parse_event(data_str)
                        except (orjson.JSONDecodeError, ValidationError) as e:
                            logger.debug("openai.stream event parse error: %s", e)
                            continue
                        if event is None:
                            continue
                        if isinstance(event, ResponseFailed):
                            raise ProviderError(event.message())
                        if isinstance(event, ErrorEvent):
                            raise ProviderError(event.message or event.code or "stream error")
                        if isinstance(event, OutputTextDelta) and first_dt is None:
                            first_dt = time.time() - t0
                            logger.info("openai.stream first_token_latency=%.3fs", first_dt)
                        events += 1
                        yield event
        except httpx.HTTPError as exc:
            raise ProviderError(f"provider request failed: {exc}") from exc

        logger.info(
            "openai.stream done events=%d elapsed=%.3fs first_token_latency=%.3fs",
            events,
            time.time() - t0,
            -1.0 if first_dt is None else first_dt,
        )


def _sse_data(line: str) -> str | None:
    if not line or line.startswith(":"):
        # blank separator or SSE comment/heartbeat
        return None
    if line.startswith("data: "):
        data_str = line[6:].strip()
    elif line.startswith("data:"):
        data_str = line[5:].strip()
    else:
        return None
    return data_str or None
