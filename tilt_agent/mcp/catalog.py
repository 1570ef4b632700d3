"""Persisted list of configured MCP servers.

The list lives in the key/value store under ``mcp-clients-servers``. A YAML
file in the bridge's ``mcp.server.yml`` shape can seed servers that are not
stored yet:

    servers:
      - name: files
        command: npx
        args: ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"]
        env:
          TOKEN: ${FILES_TOKEN}
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
import re
from typing import Any, Optional, Union

from pydantic import TypeAdapter, ValidationError
import yaml

from ..store import KeyValueStore, read_json, write_json
from .gateway import ToolGateway
from .models import MCPServerDescription, MCPServerInfo

logger = logging.getLogger(__name__)

MCP_SERVERS_KEY = "mcp-clients-servers"

_SERVER_LIST = TypeAdapter(list[MCPServerDescription])
_ENV_REF = re.compile(r"\$\{([^}]+)\}")


def substitute_env_vars(env: dict[str, Any]) -> dict[str, str]:
    """Expand ``${VAR}`` references; unknown variables keep their placeholder."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        return os.getenv(var_name, f"${{{var_name}}}")

    return {str(key): _ENV_REF.sub(replacer, str(value)) for key, value in env.items()}


def load_servers_yaml(path: Union[str, Path]) -> list[MCPServerDescription]:
    """Read server definitions from YAML; bad files and entries are skipped."""
    yaml_path = Path(path).expanduser()
    if not yaml_path.exists():
        logger.info("MCP servers file not found: %s (this is optional)", yaml_path)
        return []
    try:
        with open(yaml_path, "r") as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error("Failed to load MCP servers YAML %s: %s", yaml_path, e)
        return []

    if not isinstance(config, dict):
        logger.warning("Invalid MCP servers YAML: %s", yaml_path)
        return []

    servers: list[MCPServerDescription] = []
    for definition in config.get("servers", []) or []:
        if not isinstance(definition, dict):
            logger.warning("Skipping non-mapping server definition in %s", yaml_path)
            continue
        if definition.get("env"):
            definition = {**definition, "env": substitute_env_vars(definition["env"])}
        try:
            servers.append(MCPServerDescription.model_validate(definition))
        except ValidationError as e:
            logger.error("Failed to parse server definition %s: %s", definition.get("name"), e)
    logger.info("Loaded %d MCP servers from %s", len(servers), yaml_path)
    return servers


class ServerCatalog:
    """Keeps stored server descriptions and the gateway in step."""

    def __init__(self, store: KeyValueStore, gateway: ToolGateway, *, seed_path: Optional[str] = None):
        self.store = store
        self.gateway = gateway
        self._servers = read_json(store, MCP_SERVERS_KEY, _SERVER_LIST) or []
        if seed_path:
            known = {server.name for server in self._servers}
            seeded = [s for s in load_servers_yaml(seed_path) if s.name not in known]
            if seeded:
                self._servers.extend(seeded)
                self._persist()

    def servers(self) -> list[MCPServerDescription]:
        return list(self._servers)

    def _persist(self) -> None:
        write_json(self.store, MCP_SERVERS_KEY, [s.model_dump(mode="json") for s in self._servers])

    async def init(self) -> None:
        """Push the full stored list to the gateway and connect everything."""
        await self.gateway.set_servers(self._servers)
        await self.gateway.connect_all()

    async def upsert(self, server: MCPServerDescription) -> None:
        for index, existing in enumerate(self._servers):
            if existing.name == server.name:
                self._servers[index] = server
                break
        else:
            self._servers.append(server)
        self._persist()
        await self.gateway.upsert(server)

    async def remove(self, name: str) -> None:
        self._servers = [server for server in self._servers if server.name != name]
        self._persist()
        await self.gateway.remove(name)

    async def info(self) -> list[MCPServerInfo]:
        return await self.gateway.get_all_info()


__all__ = ["ServerCatalog", "load_servers_yaml", "substitute_env_vars", "MCP_SERVERS_KEY"]
