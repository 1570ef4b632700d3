"""Wire models for the streaming Responses API.

Only the events the engine acts on are modelled; everything else in the
stream is skipped by ``parse_event``.
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

import orjson
from pydantic import BaseModel, Field


class ResponsesRequest(BaseModel):
    model: str
    input: list[dict[str, Any]]
    instructions: Optional[str] = None
    tools: Optional[list[dict[str, Any]]] = None
    stream: bool = True

    model_config = {"extra": "forbid"}


class OutputTextContent(BaseModel):
    type: str = "output_text"
    text: str = ""

    model_config = {"extra": "ignore"}


class MessageItem(BaseModel):
    type: Literal["message"]
    id: Optional[str] = None
    role: str = "assistant"
    content: list[OutputTextContent] = Field(default_factory=list)

    model_config = {"extra": "ignore"}

    def text(self) -> str:
        return "".join(part.text for part in self.content if part.type == "output_text")


class FunctionCallItem(BaseModel):
    type: Literal["function_call"]
    id: Optional[str] = None
    call_id: str
    name: str
    arguments: str = "{}"

    model_config = {"extra": "ignore"}


class OtherItem(BaseModel):
    """Reasoning and other item kinds the engine does not act on."""

    type: str

    model_config = {"extra": "allow"}


OutputItem = Union[FunctionCallItem, MessageItem, OtherItem]


class OutputTextDelta(BaseModel):
    type: Literal["response.output_text.delta"]
    item_id: Optional[str] = None
    output_index: int = 0
    delta: str = ""

    model_config = {"extra": "ignore"}


class OutputItemDone(BaseModel):
    type: Literal["response.output_item.done"]
    output_index: int = 0
    item: OutputItem = Field(union_mode="left_to_right")

    model_config = {"extra": "ignore"}


class ResponseCompleted(BaseModel):
    type: Literal["response.completed"]
    response: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "ignore"}


class ResponseFailed(BaseModel):
    type: Literal["response.failed"]
    response: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "ignore"}

    def message(self) -> str:
        error = self.response.get("error") or {}
        return error.get("message") or "response failed"


class ErrorEvent(BaseModel):
    type: Literal["error"]
    message: str = ""
    code: Optional[str] = None

    model_config = {"extra": "ignore"}


StreamEvent = Union[OutputTextDelta, OutputItemDone, ResponseCompleted, ResponseFailed, ErrorEvent]

_EVENT_MODELS: dict[str, type[BaseModel]] = {
    "response.output_text.delta": OutputTextDelta,
    "response.output_item.done": OutputItemDone,
    "response.completed": ResponseCompleted,
    "response.failed": ResponseFailed,
    "error": ErrorEvent,
}


def parse_event(data: Union[str, bytes]) -> Optional[StreamEvent]:
    """Decode one SSE ``data:`` payload; unknown event types give ``None``."""
    payload = orjson.loads(data)
    if not isinstance(payload, dict):
        return None
    model = _EVENT_MODELS.get(payload.get("type", ""))
    if model is None:
        return None
    return model.model_validate(payload)  # type: ignore[return-value]


__all__ = [
    "ResponsesRequest",
    "MessageItem",
    "FunctionCallItem",
    "OtherItem",
    "OutputTextDelta",
    "OutputItemDone",
    "ResponseCompleted",
    "ResponseFailed",
    "ErrorEvent",
    "StreamEvent",
    "parse_event",
]
