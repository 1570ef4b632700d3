from __future__ import annotations

from typing import Any, AsyncIterator, Optional

from .models import StreamEvent


class LLMProvider:
    name: str = "base"

    async def stream(
        self,
        *,
        model: str,
        input: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        instructions: Optional[str] = None,
    ) -> AsyncIterator[StreamEvent]:  # pragma: no cover - abstract
        raise NotImplementedError
        yield  # type: ignore[unreachable]
