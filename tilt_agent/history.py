"""Conversation history items.

History is append-only and is sent verbatim as the provider's ``input`` on
every turn, so each item knows its own wire shape.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class UserMessage(BaseModel):
    type: Literal["user_message"] = "user_message"
    content: str

    model_config = {"extra": "forbid", "frozen": True}

    def to_input(self) -> dict[str, Any]:
        return {"type": "message", "role": "user", "content": self.content}


class AssistantMessage(BaseModel):
    type: Literal["assistant_message"] = "assistant_message"
    content: str

    model_config = {"extra": "forbid", "frozen": True}

    def to_input(self) -> dict[str, Any]:
        return {"type": "message", "role": "assistant", "content": self.content}


class FunctionCall(BaseModel):
    type: Literal["function_call"] = "function_call"
    call_id: str
    name: str
    arguments: str = "{}"

    model_config = {"extra": "forbid", "frozen": True}

    def to_input(self) -> dict[str, Any]:
        return {"type": "function_call", "call_id": self.call_id, "name": self.name, "arguments": self.arguments}


class FunctionCallOutput(BaseModel):
    type: Literal["function_call_output"] = "function_call_output"
    call_id: str
    output: str

    model_config = {"extra": "forbid", "frozen": True}

    def to_input(self) -> dict[str, Any]:
        return {"type": "function_call_output", "call_id": self.call_id, "output": self.output}


HistoryItem = Annotated[
    Union[UserMessage, AssistantMessage, FunctionCall, FunctionCallOutput],
    Field(discriminator="type"),
]

def to_input(history: list[HistoryItem]) -> list[dict[str, Any]]:
    return [item.to_input() for item in history]


def unpaired_calls(history: list[HistoryItem]) -> list[str]:
    """Call ids that are not answered before the next assistant message."""
    pending: list[str] = []
    broken: list[str] = []
    for item in history:
        if isinstance(item, FunctionCall):
            pending.append(item.call_id)
        elif isinstance(item, FunctionCallOutput):
            if item.call_id in pending:
                pending.remove(item.call_id)
            else:
                broken.append(item.call_id)
        elif isinstance(item, AssistantMessage):
            broken.extend(pending)
            pending = []
    return broken + pending


__all__ = [
    "UserMessage",
    "AssistantMessage",
    "FunctionCall",
    "FunctionCallOutput",
    "HistoryItem",
    "to_input",
    "unpaired_calls",
]
