"""Tests for the persisted server catalog and YAML seed loading."""
from __future__ import annotations

import orjson
import pytest

from tilt_agent.mcp.catalog import MCP_SERVERS_KEY, ServerCatalog, load_servers_yaml, substitute_env_vars
from tilt_agent.mcp.models import MCPServerDescription
from tilt_agent.store import write_json

SEED_YAML = """
servers:
  - name: files
    command: files-server
    args: ["--root", "/tmp"]
    env:
      TOKEN: ${FILES_TOKEN}
      MODE: fixed
  - name: healthy
    command: healthy-server
  - name: no-command
  - just a string
"""


def test_substitute_env_vars(monkeypatch) -> None:
    monkeypatch.setenv("FILES_TOKEN", "secret")
    monkeypatch.delenv("UNSET_VAR_FOR_TEST", raising=False)
    assert substitute_env_vars({"A": "${FILES_TOKEN}", "B": "x-${UNSET_VAR_FOR_TEST}", "C": 3}) == {
        "A": "secret",
        "B": "x-${UNSET_VAR_FOR_TEST}",
        "C": "3",
    }


def test_load_servers_yaml_skips_bad_entries(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("FILES_TOKEN", "secret")
    path = tmp_path / "servers.yml"
    path.write_text(SEED_YAML)

    servers = load_servers_yaml(path)
    assert [s.name for s in servers] == ["files", "healthy"]
    assert servers[0].args == ["--root", "/tmp"]
    assert servers[0].env == {"TOKEN": "secret", "MODE": "fixed"}
    assert servers[1].env is None


def test_load_servers_yaml_missing_or_invalid(tmp_path) -> None:
    assert load_servers_yaml(tmp_path / "nope.yml") == []
    bad = tmp_path / "bad.yml"
    bad.write_text("servers: [unclosed")
    assert load_servers_yaml(bad) == []
    scalar = tmp_path / "scalar.yml"
    scalar.write_text("just text")
    assert load_servers_yaml(scalar) == []


def test_seed_is_merged_and_persisted(store, gateway, tmp_path) -> None:
    write_json(store, MCP_SERVERS_KEY, [{"name": "files", "command": "stored-files", "args": []}])
    path = tmp_path / "servers.yml"
    path.write_text(SEED_YAML)

    catalog = ServerCatalog(store, gateway, seed_path=str(path))

    assert [(s.name, s.command) for s in catalog.servers()] == [
        ("files", "stored-files"),
        ("healthy", "healthy-server"),
    ]
    stored = orjson.loads(store.get(MCP_SERVERS_KEY))
    assert [s["name"] for s in stored] == ["files", "healthy"]


def test_invalid_stored_list_is_treated_as_absent(store, gateway) -> None:
    store.set(MCP_SERVERS_KEY, '[{"name": ""}]')
    assert ServerCatalog(store, gateway).servers() == []


@pytest.mark.asyncio
async def test_init_pushes_and_connects(store, gateway, connection_factory) -> None:
    write_json(
        store,
        MCP_SERVERS_KEY,
        [
            {"name": "files", "command": "files-server"},
            {"name": "broken", "command": "broken-server"},
        ],
    )
    catalog = ServerCatalog(store, gateway)
    await catalog.init()

    assert gateway.server_names() == ["files", "broken"]
    assert connection_factory.latest("files").connected
    assert [info.name for info in await catalog.info()] == ["files"]


@pytest.mark.asyncio
async def test_upsert_and_remove_persist(store, gateway, connection_factory) -> None:
    catalog = ServerCatalog(store, gateway)
    await catalog.init()

    await catalog.upsert(MCPServerDescription(name="files", command="files-server"))
    await catalog.upsert(MCPServerDescription(name="healthy", command="healthy-server"))
    await catalog.upsert(MCPServerDescription(name="files", command="files-server", args=["--ro"]))

    assert [s.name for s in catalog.servers()] == ["files", "healthy"]
    assert catalog.servers()[0].args == ["--ro"]
    assert connection_factory.latest("files").description.args == ["--ro"]

    reloaded = ServerCatalog(store, gateway)
    assert [s.args for s in reloaded.servers()] == [["--ro"], []]

    await catalog.remove("files")
    assert [s.name for s in catalog.servers()] == ["healthy"]
    assert gateway.server_names() == ["healthy"]
    assert [s["name"] for s in orjson.loads(store.get(MCP_SERVERS_KEY))] == ["healthy"]
