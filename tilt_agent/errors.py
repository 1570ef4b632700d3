"""Exception taxonomy for the agent.

Tool-level errors (validation, not found, transport) are caught at the tool
boundary and fed back to the model as function output. Only provider errors,
the tool-round limit and cancellation end an ``ask()`` early, and even those
are reported through ``AskResult`` rather than raised to the caller.
"""

from __future__ import annotations


class TiltError(Exception):
    """Base class for all agent errors."""


class ToolValidationError(TiltError):
    """Malformed tool arguments or output."""


class ToolNotFoundError(TiltError):
    """Unknown tool name, unknown server, or tool missing on its server."""


class NamespaceError(ToolNotFoundError, ValueError):
    """A remote tool name could not be encoded or decoded."""


class TransportError(TiltError):
    """Subprocess not connected, failed to start, or failed mid-request."""


class ProviderError(TiltError):
    """Upstream streaming request failed."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ToolCallLimitExceeded(TiltError):
    """The model kept calling tools past the configured number of rounds."""

    def __init__(self, limit: int):
        super().__init__(f"tool-call limit exceeded ({limit} rounds)")
        self.limit = limit


class AskCancelled(TiltError):
    """The caller cancelled an in-flight ask."""


__all__ = [
    "TiltError",
    "ToolValidationError",
    "ToolNotFoundError",
    "NamespaceError",
    "TransportError",
    "ProviderError",
    "ToolCallLimitExceeded",
    "AskCancelled",
]
