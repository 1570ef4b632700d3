"""Memory tools backed by the key/value store.

Each memory lives under ``memory:<key>``; a manifest of ``{key, description}``
entries is kept under ``memoryManifest`` so the model can list what it has
stored without reading every value.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, TypeAdapter

from ..store import KeyValueStore, read_json, write_json
from .base import Tool

MEMORY_PREFIX = "memory:"
MEMORY_MANIFEST_KEY = "memoryManifest"


class Memory(BaseModel):
    key: str
    description: str
    value: str


class ManifestEntry(BaseModel):
    key: str
    description: str


_MANIFEST = TypeAdapter(list[ManifestEntry])


class MessageOutput(BaseModel):
    message: Optional[str] = None


class KeyInput(BaseModel):
    key: str


class EmptyInput(BaseModel):
    pass


class MemoryListOutput(BaseModel):
    memories: list[ManifestEntry]


def memory_key(key: str) -> str:
    return f"{MEMORY_PREFIX}{key}"


def strip_memory_key(key: str) -> str:
    return key[len(MEMORY_PREFIX):] if key.startswith(MEMORY_PREFIX) else key


class MemoryBank:
    """Store access shared by the memory tools."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def manifest(self) -> list[ManifestEntry]:
        return read_json(self.store, MEMORY_MANIFEST_KEY, _MANIFEST) or []

    def read(self, key: str) -> Memory | None:
        return read_json(self.store, memory_key(key), Memory)

    def add(self, memory: Memory) -> None:
        stored_key = memory_key(memory.key)
        manifest = self.manifest()
        if any(entry.key == stored_key for entry in manifest):
            raise ValueError(f'Memory key "{stored_key}" already exists. Please use a different key.')
        manifest.append(ManifestEntry(key=stored_key, description=memory.description))
        write_json(self.store, MEMORY_MANIFEST_KEY, [m.model_dump() for m in manifest])
        write_json(self.store, stored_key, memory)

    def remove(self, key: str) -> None:
        stored_key = memory_key(key)
        manifest = [entry for entry in self.manifest() if entry.key != stored_key]
        write_json(self.store, MEMORY_MANIFEST_KEY, [m.model_dump() for m in manifest])
        self.store.remove(stored_key)


class _MemoryTool(Tool):
    def __init__(self, bank: MemoryBank):
        self.bank = bank


class WriteMemoryTool(_MemoryTool):
    name = "write_memory"
    description = "Store and retrieve key-value pairs in memory."
    input_model = Memory
    output_model = MessageOutput

    async def run(self, args: Memory) -> MessageOutput:
        self.bank.add(args)
        return MessageOutput(message=f'Memory stored successfully with key "{args.key}".')


class ListMemoriesTool(_MemoryTool):
    name = "list_memories"
    description = "List all stored memories."
    input_model = EmptyInput
    output_model = MemoryListOutput

    async def run(self, args: EmptyInput) -> MemoryListOutput:
        return MemoryListOutput(
            memories=[
                ManifestEntry(key=strip_memory_key(entry.key), description=entry.description)
                for entry in self.bank.manifest()
            ]
        )


class ReadMemoryTool(_MemoryTool):
    name = "read_memory"
    description = "Retrieve a stored memory by its key."
    input_model = KeyInput
    output_model = Memory

    async def run(self, args: KeyInput) -> Memory:
        memory = self.bank.read(args.key)
        if memory is None:
            raise LookupError(f'Memory with key "{args.key}" not found.')
        return memory


class ForgetMemoryTool(_MemoryTool):
    name = "forget_memory"
    description = "Remove a stored memory by its key."
    input_model = KeyInput
    output_model = MessageOutput

    async def run(self, args: KeyInput) -> MessageOutput:
        if self.bank.read(args.key) is None:
            raise LookupError(f'Memory with key "{args.key}" not found.')
        self.bank.remove(args.key)
        return MessageOutput(message=f'Memory with key "{args.key}" has been removed.')


def memory_tools(store: KeyValueStore) -> list[Tool]:
    bank = MemoryBank(store)
    return [
        WriteMemoryTool(bank),
        ReadMemoryTool(bank),
        ListMemoriesTool(bank),
        ForgetMemoryTool(bank),
    ]


__all__ = [
    "Memory",
    "MemoryBank",
    "WriteMemoryTool",
    "ListMemoriesTool",
    "ReadMemoryTool",
    "ForgetMemoryTool",
    "memory_tools",
]
