"""Best-effort key/value persistence for memories and server descriptions."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterator, Protocol, TypeVar, Union

import orjson
from pydantic import BaseModel, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyValueStore(Protocol):
    """String-keyed store of string values."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...

    def keys(self) -> Iterator[str]: ...


class MemoryStore:
    """In-process store; contents are lost with the process."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))


class JsonFileStore(MemoryStore):
    """Store backed by a single JSON object on disk.

    Every mutation rewrites the file through a temporary sibling and an
    atomic rename. An unreadable file is logged and treated as empty.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        super().__init__(self._load())

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = orjson.loads(self.path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as exc:
            logger.warning("store file unreadable path=%s error=%s", self.path, exc)
            return {}
        if not isinstance(raw, dict):
            logger.warning("store file is not an object path=%s", self.path)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_bytes(orjson.dumps(self._data, option=orjson.OPT_INDENT_2))
        os.replace(tmp, self.path)

    def set(self, key: str, value: str) -> None:
        super().set(key, value)
        self._flush()

    def remove(self, key: str) -> None:
        super().remove(key)
        self._flush()

    def clear(self) -> None:
        super().clear()
        self._flush()


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    """Serialize ``value`` (pydantic models included) and store it under ``key``."""
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    store.set(key, orjson.dumps(value).decode())


def read_json(store: KeyValueStore, key: str, schema: Union[type[T], TypeAdapter[T]]) -> T | None:
    """Read and validate a stored JSON value.

    Missing keys, undecodable JSON and schema mismatches all return ``None``.
    """
    raw = store.get(key)
    if raw is None:
        return None
    adapter = schema if isinstance(schema, TypeAdapter) else TypeAdapter(schema)
    try:
        return adapter.validate_python(orjson.loads(raw))
    except (orjson.JSONDecodeError, ValidationError) as exc:
        logger.error("Error parsing stored JSON for key %r: %s", key, exc)
        return None


__all__ = ["KeyValueStore", "MemoryStore", "JsonFileStore", "read_json", "write_json"]
