"""
Storage layer for the Oblique Strategies MCP Server.

Components:
- KVStore: the key-value interface every backend implements
- MemoryKVStore / SQLiteKVStore: the available backends
- history: per-device capped history log kept in the KV store
"""

from mcp_oblique.storage.kv import (
    KVStore,
    MemoryKVStore,
    SQLiteKVStore,
    create_store,
)

__all__ = [
    "KVStore",
    "MemoryKVStore",
    "SQLiteKVStore",
    "create_store",
]
