"""Uniform contract for invocable tools.

Every tool advertises ``{name, description, parameters}`` to the provider and
is invoked with the raw JSON argument string the model produced. ``invoke``
never raises: argument decoding, input validation, handler failures and
output validation all come back as a failed ``CallResult`` so the model can
read the error and retry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from typing import Any, ClassVar, Generic, TypeVar

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ToolValidationError

logger = logging.getLogger(__name__)

InputT = TypeVar("InputT", bound=BaseModel)
OutputT = TypeVar("OutputT", bound=BaseModel)


@dataclass(frozen=True)
class CallResult:
    success: bool
    result: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, result: Any) -> "CallResult":
        return cls(success=True, result=result)

    @classmethod
    def fail(cls, error: str) -> "CallResult":
        return cls(success=False, error=error)

    def to_output(self) -> str:
        """Text handed back to the model as function-call output."""
        if self.success:
            return orjson.dumps(self.result, default=str).decode()
        return self.error or "unknown error"


class ToolSpec(BaseModel):
    """One entry of the tool catalog advertised to the provider."""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_provider(self) -> dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
            "strict": False,
        }


class Tool(ABC, Generic[InputT, OutputT]):
    """Something the model can call, implemented in this process."""

    name: ClassVar[str]
    description: ClassVar[str]
    input_model: ClassVar[type[BaseModel]]
    output_model: ClassVar[type[BaseModel]]

    def describe(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            parameters=self.input_model.model_json_schema(),
        )

    def parse_arguments(self, raw_arguments: str) -> BaseModel:
        """Decode and validate the model's argument string.

        Raises ``ToolValidationError`` carrying the text handed back to the model.
        """
        try:
            payload = orjson.loads(raw_arguments or "{}")
        except orjson.JSONDecodeError as exc:
            logger.debug("tool=%s undecodable arguments=%r", self.name, raw_arguments)
            raise ToolValidationError("invalid arguments") from exc
        try:
            return self.input_model.model_validate(payload)
        except ValidationError as exc:
            raise ToolValidationError(f"Invalid arguments for tool {self.name}: {exc}") from exc

    def validate_output(self, raw: Any) -> BaseModel:
        if isinstance(raw, BaseModel):
            raw = raw.model_dump()
        try:
            return self.output_model.model_validate(raw)
        except ValidationError as exc:
            raise ToolValidationError(f"Output validation failed for tool {self.name}: {exc}") from exc

    async def invoke(self, raw_arguments: str) -> CallResult:
        try:
            args = self.parse_arguments(raw_arguments)
        except ToolValidationError as exc:
            return CallResult.fail(str(exc))

        try:
            raw = await self.run(args)  # type: ignore[arg-type]
        except Exception as exc:
            logger.info("tool=%s failed: %s", self.name, exc)
            return CallResult.fail(f"Error calling tool {self.name}: {exc}")

        try:
            output = self.validate_output(raw)
        except ToolValidationError as exc:
            return CallResult.fail(str(exc))

        return CallResult.ok(output.model_dump(exclude_none=True))

    @abstractmethod
    async def run(self, args: InputT) -> OutputT | dict[str, Any]:
        """Execute the tool with already-validated arguments."""
        raise NotImplementedError


__all__ = ["CallResult", "ToolSpec", "Tool"]
