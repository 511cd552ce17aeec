"""Markdown-backed memory store: records, codec and persistence."""

from .schemas import MemoryRecord, new_memory_id
from .codec import decode, encode
from .store import MemoryStore

__all__ = [
    "MemoryRecord",
    "MemoryStore",
    "decode",
    "encode",
    "new_memory_id",
]
