from __future__ import annotations

import os

from pydantic import BaseModel, Field


def env_str(key: str, default: str | None = None) -> str:
    v = os.getenv(key, default if default is not None else "")
    return v


def env_int(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except Exception:
        return default


def env_float(key: str, default: float) -> float:
    try:
        return float(os.getenv(key, str(default)))
    except Exception:
        return default


def env_bool(key: str, default: bool = False) -> bool:
    v = os.getenv(key)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")


DEFAULT_MODEL = "gpt-4.1-mini"
DEFAULT_INSTRUCTIONS = "You are a helpful assistant that can answer questions."


class AgentSettings(BaseModel):
    """Resolved runtime settings for one agent process."""

    model_config = {"extra": "forbid"}

    openai_api_key: str = ""
    openai_base_url: str | None = None
    model: str = DEFAULT_MODEL
    instructions: str = DEFAULT_INSTRUCTIONS
    max_tool_rounds: int = Field(default=8, ge=1)
    store_path: str = "~/.tilt-agent/store.json"
    mcp_servers_yaml: str | None = None
    connect_timeout: float = Field(default=30.0, gt=0)
    request_timeout: float = Field(default=60.0, gt=0)
    log_level: str = "INFO"
    log_json: bool = False


def load_settings() -> AgentSettings:
    """Build settings from the environment, falling back to model defaults."""
    return AgentSettings(
        openai_api_key=env_str("OPENAI_API_KEY", ""),
        openai_base_url=env_str("OPENAI_BASE_URL", "") or None,
        model=env_str("TILT_MODEL", DEFAULT_MODEL),
        instructions=env_str("TILT_INSTRUCTIONS", DEFAULT_INSTRUCTIONS),
        max_tool_rounds=env_int("TILT_MAX_TOOL_ROUNDS", 8),
        store_path=env_str("TILT_STORE_PATH", "~/.tilt-agent/store.json"),
        mcp_servers_yaml=env_str("TILT_MCP_SERVERS_YAML", "") or None,
        connect_timeout=env_float("TILT_CONNECT_TIMEOUT", 30.0),
        request_timeout=env_float("TILT_REQUEST_TIMEOUT", 60.0),
        log_level=env_str("TILT_LOG_LEVEL", "INFO"),
        log_json=env_bool("TILT_LOG_JSON", False),
    )
