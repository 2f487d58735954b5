"""
Per-device strategy history.

History is stored as one JSON array per device at ``user:<deviceId>:history``,
newest entry first. Every append rewrites the array, truncates it to the
configured maximum and refreshes the record's TTL.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from pydantic import BaseModel, TypeAdapter, ValidationError

from mcp_oblique.logging import get_logger

if TYPE_CHECKING:
    from mcp_oblique.storage.kv import KVStore

logger = get_logger(__name__)

MAX_HISTORY_ENTRIES = 100
HISTORY_TTL_SECONDS = 7776000  # 90 days


class HistoryEntry(BaseModel):
    """A single strategy view.

    Attributes:
        strategyId: Identifier of the strategy that was shown.
        viewedAt: Unix time in milliseconds.
        context: Optional label of what produced the view (e.g. the tool name).
    """

    strategyId: str
    viewedAt: int | float
    context: str | None = None


_HistoryList = TypeAdapter(list[HistoryEntry])


def history_key(device_id: str) -> str:
    """Return the storage key holding a device's history."""
    return f"user:{device_id}:history"


async def get_user_history(store: KVStore, device_id: str) -> list[HistoryEntry]:
    """
    Read a device's history, newest first.

    A missing record, or one that is not JSON or does not match the expected
    shape, reads as an empty history.
    """
    stored = await store.get(history_key(device_id))
    if not stored:
        return []

    try:
        return _HistoryList.validate_json(stored)
    except ValidationError:
        logger.warning(
            "Discarding malformed history record",
            extra={"device_id": device_id},
        )
        return []


async def add_history_entry(
    store: KVStore,
    device_id: str,
    entry: HistoryEntry,
    *,
    max_entries: int = MAX_HISTORY_ENTRIES,
    ttl_seconds: int = HISTORY_TTL_SECONDS,
) -> list[HistoryEntry]:
    """
    Prepend an entry to a device's history.

    Args:
        store: KV store handle.
        device_id: Device the entry belongs to.
        entry: The entry to record.
        max_entries: Cap on the stored list length.
        ttl_seconds: TTL applied to the whole record.

    Returns:
        The stored history after the append.
    """
    existing = await get_user_history(store, device_id)
    updated = [entry, *existing][:max_entries]

    payload = json.dumps(
        [item.model_dump(exclude_none=True) for item in updated],
        separators=(",", ":"),
    )
    await store.put(history_key(device_id), payload, expiration_ttl=ttl_seconds)
    return updated
