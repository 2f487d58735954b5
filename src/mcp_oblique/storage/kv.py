"""
Key-value storage for the Oblique Strategies MCP Server.

All server state lives behind the KVStore interface: string keys, string
values, optional per-key TTL. Two backends are provided:

- MemoryKVStore: dict-backed, for tests, development and the stdio transport
- SQLiteKVStore: file-backed, for a persistent single-node deployment

Neither backend offers compare-and-swap; callers that read then delete
(PIN exchange) accept the race that implies.

SQLite Schema:
    CREATE TABLE kv (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        expires_at REAL          -- Unix timestamp, NULL for no expiry
    );
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

from mcp_oblique.errors import FailedPreconditionError
from mcp_oblique.logging import get_logger

if TYPE_CHECKING:
    from mcp_oblique.config import StorageConfig

logger = get_logger(__name__)

ValueType = Literal["text", "json"]
Clock = Callable[[], float]


@runtime_checkable
class KVStore(Protocol):
    """Interface every storage backend implements."""

    async def get(self, key: str, value_type: ValueType = "text") -> Any:
        """Return the value at key (decoded when value_type is 'json') or None."""
        ...

    async def put(
        self, key: str, value: str, expiration_ttl: int | None = None
    ) -> None:
        """Store value at key, expiring after expiration_ttl seconds if given."""
        ...

    async def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""
        ...


def _decode(value: str | None, value_type: ValueType) -> Any:
    if value is None:
        return None
    if value_type == "json":
        return json.loads(value)
    return value


def _expiry(now: float, expiration_ttl: int | None) -> float | None:
    if expiration_ttl is None:
        return None
    if expiration_ttl <= 0:
        raise ValueError("expiration_ttl must be a positive number of seconds")
    return now + expiration_ttl


# =============================================================================
# In-memory backend
# =============================================================================


class MemoryKVStore:
    """
    Dict-backed KVStore honouring TTLs.

    Each instance owns its own data; construct one per process or per test.

    Example:
        >>> store = MemoryKVStore()
        >>> await store.put("pin:123456", "device-1", expiration_ttl=300)
        >>> await store.get("pin:123456")
        'device-1'
    """

    def __init__(self, clock: Clock = time.time) -> None:
        """
        Initialize an empty store.

        Args:
            clock: Returns the current Unix time; injectable for TTL tests.
        """
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    async def get(self, key: str, value_type: ValueType = "text") -> Any:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return _decode(value, value_type)

    async def put(
        self, key: str, value: str, expiration_ttl: int | None = None
    ) -> None:
        self._data[key] = (value, _expiry(self._clock(), expiration_ttl))

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def ttl_of(self, key: str) -> float | None:
        """Seconds until key expires, None if it has no expiry or is absent."""
        entry = self._data.get(key)
        if entry is None or entry[1] is None:
            return None
        return entry[1] - self._clock()

    def __contains__(self, key: str) -> bool:
        entry = self._data.get(key)
        if entry is None:
            return False
        return entry[1] is None or entry[1] > self._clock()

    def __len__(self) -> int:
        return sum(1 for key in list(self._data) if key in self)


# =============================================================================
# SQLite backend
# =============================================================================

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL
);

CREATE INDEX IF NOT EXISTS idx_kv_expires_at ON kv(expires_at);
"""


class SQLiteKVStore:
    """
    SQLite-backed KVStore.

    Blocking database calls run in the default executor. Each operation opens
    and closes its own connection; the schema is created lazily on first use.
    Expired rows read as absent and are purged when encountered.

    Example:
        >>> store = SQLiteKVStore("/var/lib/mcp-oblique/kv.db")
        >>> await store.put("token:abc", "device-1")
        >>> await store.get("token:abc")
        'device-1'
    """

    def __init__(self, db_path: str | Path, clock: Clock = time.time) -> None:
        """
        Initialize the SQLiteKVStore.

        Args:
            db_path: Path to the SQLite database file.
            clock: Returns the current Unix time; injectable for TTL tests.
        """
        self.db_path = Path(db_path)
        self._clock = clock
        self._initialized = False
        self._lock = asyncio.Lock()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            yield conn
        finally:
            conn.close()

    async def initialize(self) -> None:
        """
        Create the kv table if it does not exist and drop rows that expired
        while the server was down.

        Idempotent and safe to call concurrently.

        Raises:
            FailedPreconditionError: If the database cannot be initialized.
        """
        if self._initialized:
            return

        async with self._lock:
            if self._initialized:
                return

            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)

                def _init_db() -> None:
                    with self._get_connection() as conn:
                        conn.executescript(SCHEMA_SQL)
                        conn.commit()

                await asyncio.get_running_loop().run_in_executor(None, _init_db)
                self._initialized = True
                logger.info(
                    "KV database initialized",
                    extra={"db_path": str(self.db_path)},
                )
            except Exception as e:
                logger.error(
                    "Failed to initialize KV database",
                    extra={"db_path": str(self.db_path), "error": str(e)},
                )
                raise FailedPreconditionError(
                    f"Failed to initialize KV database: {e}",
                    details={"db_path": str(self.db_path)},
                ) from e

            await self.purge_expired()

    async def _run(self, operation: str, key: str, func: Callable[[], Any]) -> Any:
        await self.initialize()
        try:
            return await asyncio.get_running_loop().run_in_executor(None, func)
        except Exception as e:
            logger.error(
                "KV operation failed",
                extra={"operation": operation, "error": str(e)},
            )
            raise FailedPreconditionError(
                f"KV {operation} failed: {e}",
                details={"operation": operation, "key_prefix": key.split(":", 1)[0]},
            ) from e

    async def get(self, key: str, value_type: ValueType = "text") -> Any:
        now = self._clock()

        def _get() -> str | None:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT value, expires_at FROM kv WHERE key = ?", (key,)
                ).fetchone()
                if row is None:
                    return None
                value, expires_at = row
                if expires_at is not None and expires_at <= now:
                    conn.execute(
                        "DELETE FROM kv WHERE key = ? AND expires_at <= ?", (key, now)
                    )
                    conn.commit()
                    return None
                return value

        value = await self._run("get", key, _get)
        return _decode(value, value_type)

    async def put(
        self, key: str, value: str, expiration_ttl: int | None = None
    ) -> None:
        expires_at = _expiry(self._clock(), expiration_ttl)

        def _put() -> None:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO kv (key, value, expires_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        expires_at = excluded.expires_at
                    """,
                    (key, value, expires_at),
                )
                conn.commit()

        await self._run("put", key, _put)

    async def delete(self, key: str) -> None:
        def _delete() -> None:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.commit()

        await self._run("delete", key, _delete)

    async def purge_expired(self) -> int:
        """
        Delete every expired row.

        Returns:
            Number of rows removed.
        """
        now = self._clock()

        def _purge() -> int:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "DELETE FROM kv WHERE expires_at IS NOT NULL AND expires_at <= ?",
                    (now,),
                )
                conn.commit()
                return cursor.rowcount

        count = await self._run("purge", "kv", _purge)
        if count > 0:
            logger.info("Purged expired KV entries", extra={"count": count})
        return count


def create_store(config: StorageConfig) -> KVStore:
    """
    Build the storage backend selected by configuration.

    Args:
        config: StorageConfig naming the backend.

    Returns:
        A fresh KVStore instance.
    """
    if config.backend == "sqlite":
        return SQLiteKVStore(config.sqlite_path)
    return MemoryKVStore()
