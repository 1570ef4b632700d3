"""Single entry point for resolving and invoking tools by catalog name.

Bare names go to the local registry; anything else must decode as
``<server>_---_<tool>`` and goes to the gateway. Resolution returns a tagged
route instead of relying on exceptions to fall through.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Optional, Union

from .mcp.gateway import ToolGateway
from .naming import try_decode_tool_name
from .tools.base import CallResult, Tool, ToolSpec
from .tools.registry import LocalToolRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalRoute:
    tool: Tool

    async def invoke(self, raw_arguments: str) -> CallResult:
        return await self.tool.invoke(raw_arguments)


@dataclass(frozen=True)
class RemoteRoute:
    server_name: str
    tool_name: str
    gateway: ToolGateway = field(compare=False, repr=False)

    async def invoke(self, raw_arguments: str) -> CallResult:
        return await self.gateway.invoke(self.server_name, self.tool_name, raw_arguments)


@dataclass(frozen=True)
class Unroutable:
    reason: str


Route = Union[LocalRoute, RemoteRoute, Unroutable]


class ToolRouter:
    def __init__(self, registry: LocalToolRegistry, gateway: Optional[ToolGateway] = None):
        self.registry = registry
        self.gateway = gateway
        self._catalog: Optional[list[ToolSpec]] = None
        self._catalog_version: Optional[int] = None

    def resolve(self, name: str) -> Route:
        tool = self.registry.get(name)
        if tool is not None:
            return LocalRoute(tool)
        remote = try_decode_tool_name(name)
        if remote is None:
            return Unroutable(f"tool not found: {name!r}")
        if self.gateway is None:
            return Unroutable(f"tool not found: no tool servers configured for {name!r}")
        return RemoteRoute(remote.server_name, remote.tool_name, self.gateway)

    async def invoke(self, name: str, raw_arguments: str) -> CallResult:
        route = self.resolve(name)
        if isinstance(route, Unroutable):
            result = CallResult.fail(route.reason)
        else:
            result = await route.invoke(raw_arguments)
        logger.info("tool call name=%s success=%s", name, result.success)
        return result

    async def catalog(self) -> list[ToolSpec]:
        """Local tools plus every reachable remote tool, cached per gateway version."""
        version = self.gateway.version if self.gateway is not None else 0
        if self._catalog is not None and self._catalog_version == version:
            return self._catalog
        specs = self.registry.specs()
        if self.gateway is not None:
            specs.extend(await self.gateway.tool_specs())
        self._catalog = specs
        self._catalog_version = version
        logger.debug("tool catalog rebuilt version=%s tools=%s", version, [s.name for s in specs])
        return specs


__all__ = ["LocalRoute", "RemoteRoute", "Unroutable", "Route", "ToolRouter"]
