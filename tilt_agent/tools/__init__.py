"""Local tools and the contract shared with remote ones."""

from .base import CallResult, Tool, ToolSpec
from .memory import memory_tools
from .registry import LocalToolRegistry

__all__ = ["CallResult", "Tool", "ToolSpec", "LocalToolRegistry", "memory_tools"]
