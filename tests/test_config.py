from __future__ import annotations

import logging

import orjson
import pytest
from pydantic import ValidationError

from tilt_agent.config import DEFAULT_INSTRUCTIONS, DEFAULT_MODEL, AgentSettings, load_settings
from tilt_agent.logging import JsonFormatter, configure_logging

ENV_KEYS = [
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "TILT_MODEL",
    "TILT_INSTRUCTIONS",
    "TILT_MAX_TOOL_ROUNDS",
    "TILT_STORE_PATH",
    "TILT_MCP_SERVERS_YAML",
    "TILT_CONNECT_TIMEOUT",
    "TILT_LOG_LEVEL",
    "TILT_LOG_JSON",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_defaults(clean_env) -> None:
    settings = load_settings()
    assert settings.openai_api_key == ""
    assert settings.openai_base_url is None
    assert settings.model == DEFAULT_MODEL
    assert settings.instructions == DEFAULT_INSTRUCTIONS
    assert settings.max_tool_rounds == 8
    assert settings.mcp_servers_yaml is None
    assert settings.connect_timeout == 30.0
    assert settings.log_json is False


def test_environment_overrides(clean_env) -> None:
    clean_env.setenv("OPENAI_API_KEY", "sk-test")
    clean_env.setenv("OPENAI_BASE_URL", "http://localhost:8080/v1")
    clean_env.setenv("TILT_MODEL", "gpt-test")
    clean_env.setenv("TILT_MAX_TOOL_ROUNDS", "3")
    clean_env.setenv("TILT_MCP_SERVERS_YAML", "/etc/tilt/servers.yml")
    clean_env.setenv("TILT_CONNECT_TIMEOUT", "5.5")
    clean_env.setenv("TILT_LOG_JSON", "yes")

    settings = load_settings()
    assert settings.openai_api_key == "sk-test"
    assert settings.openai_base_url == "http://localhost:8080/v1"
    assert settings.model == "gpt-test"
    assert settings.max_tool_rounds == 3
    assert settings.mcp_servers_yaml == "/etc/tilt/servers.yml"
    assert settings.connect_timeout == 5.5
    assert settings.log_json is True


def test_unparseable_numbers_fall_back(clean_env) -> None:
    clean_env.setenv("TILT_MAX_TOOL_ROUNDS", "lots")
    clean_env.setenv("TILT_CONNECT_TIMEOUT", "soon")
    settings = load_settings()
    assert settings.max_tool_rounds == 8
    assert settings.connect_timeout == 30.0


def test_round_limit_must_be_positive(clean_env) -> None:
    clean_env.setenv("TILT_MAX_TOOL_ROUNDS", "0")
    with pytest.raises(ValidationError):
        load_settings()
    with pytest.raises(ValidationError):
        AgentSettings(unknown_field=1)


def test_json_formatter_includes_extra_fields() -> None:
    record = logging.LogRecord("tilt_agent.test", logging.INFO, __file__, 1, "tool call %s", ("echo",), None)
    record.server = "files"
    payload = orjson.loads(JsonFormatter().format(record))
    assert payload["message"] == "tool call echo"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "tilt_agent.test"
    assert payload["server"] == "files"


def test_configure_logging_installs_one_handler() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        logger = configure_logging("debug", json=True)
        configure_logging("debug", json=True)
        assert logger.name == "tilt-agent"
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
