"""Fixed set of in-process tools addressed by bare name."""

from __future__ import annotations

from typing import Iterable

from ..naming import SEPARATOR
from .base import Tool, ToolSpec


class LocalToolRegistry:
    """Name -> tool lookup for local tools.

    Names must be unique and must never contain the remote-name separator,
    so a local name can never decode as ``<server>_---_<tool>``.
    """

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self._add(tool)

    def _add(self, tool: Tool) -> None:
        if SEPARATOR in tool.name:
            raise ValueError(f"local tool name {tool.name!r} contains {SEPARATOR!r}")
        if tool.name in self._tools:
            raise ValueError(f"duplicate local tool name {tool.name!r}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> list[str]:
        return list(self._tools)

    def specs(self) -> list[ToolSpec]:
        return [tool.describe() for tool in self._tools.values()]


__all__ = ["LocalToolRegistry"]
