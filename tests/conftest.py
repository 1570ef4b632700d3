"""Shared pytest fixtures for tilt-agent tests."""

from __future__ import annotations

import pytest

from helpers import FakeConnectionFactory, text_result
from tilt_agent.mcp.gateway import ToolGateway
from tilt_agent.mcp.models import MCPServerDescription
from tilt_agent.store import MemoryStore
from tilt_agent.tools.memory import memory_tools
from tilt_agent.tools.registry import LocalToolRegistry


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def registry(store):
    return LocalToolRegistry(memory_tools(store))


@pytest.fixture
def files_server():
    return MCPServerDescription(name="files", command="files-server", args=["--root", "/tmp"])


@pytest.fixture
def connection_factory():
    return FakeConnectionFactory(
        tools={"files": ["list"], "healthy": ["ping"]},
        failing={"broken"},
        results={"files": text_result("a.txt"), "healthy": text_result("pong")},
    )


@pytest.fixture
def gateway(connection_factory):
    return ToolGateway(connection_factory=connection_factory)
