"""Namespacing of remote tool names.

Remote tools are advertised to the model as ``<server>_---_<tool>`` so they
can never collide with bare local tool names or with each other. A valid
name holds the separator exactly once, counting overlapping matches, so
``a_---_---_b`` is rejected rather than split one way or the other.
"""

from __future__ import annotations

from typing import NamedTuple

from .errors import NamespaceError

SEPARATOR = "_---_"


class RemoteName(NamedTuple):
    server_name: str
    tool_name: str


def _separator_positions(name: str) -> list[int]:
    positions: list[int] = []
    index = name.find(SEPARATOR)
    while index != -1:
        positions.append(index)
        index = name.find(SEPARATOR, index + 1)
    return positions


def encode_tool_name(server_name: str, tool_name: str) -> str:
    if not server_name or not tool_name:
        raise NamespaceError("server and tool names must be non-empty")
    encoded = f"{server_name}{SEPARATOR}{tool_name}"
    if len(_separator_positions(encoded)) != 1:
        raise NamespaceError(
            f"names must not contain or overlap {SEPARATOR!r}: server={server_name!r} tool={tool_name!r}"
        )
    return encoded


def decode_tool_name(name: str) -> RemoteName:
    positions = _separator_positions(name)
    if len(positions) != 1:
        raise NamespaceError(f"not a namespaced tool name: {name!r}")
    server_name, tool_name = name[: positions[0]], name[positions[0] + len(SEPARATOR):]
    if not server_name or not tool_name:
        raise NamespaceError(f"not a namespaced tool name: {name!r}")
    return RemoteName(server_name, tool_name)


def try_decode_tool_name(name: str) -> RemoteName | None:
    try:
        return decode_tool_name(name)
    except NamespaceError:
        return None


__all__ = ["SEPARATOR", "RemoteName", "encode_tool_name", "decode_tool_name", "try_decode_tool_name"]
