"""
Persisted rating ledger.

Stores usage counters and prompt timestamps in a SQLite key/value table
and exposes the asynchronous ledger operations used by the prompt flow.
"""

import asyncio
import logging
import sqlite3
from datetime import datetime
from typing import Callable, Optional

from .db import DEFAULT_DB_PATH, get_connection
from .models import LedgerKey, LedgerSnapshot

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the underlying key/value storage fails."""


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the rating_ledger table if it doesn't exist.

    Args:
        db_path: Path to SQLite database file

    Raises:
        StorageError: If the table cannot be created
    """
    try:
        conn = get_connection(db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS rating_ledger (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()
    except sqlite3.Error as e:
        raise StorageError(f"Failed to initialize ledger schema in {db_path}: {e}") from e


class SQLiteKeyValueStore:
    """Asynchronous string key/value storage on top of SQLite.

    Each call opens its own connection and runs on a worker thread so the
    event loop is never blocked by disk I/O.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the store and make sure its table exists.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        initialize_schema(db_path)

    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key was never set."""
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    async def increment(self, key: str) -> int:
        """Atomically add one to an integer value, treating absent as 0.

        Returns:
            The value after incrementing
        """
        return await asyncio.to_thread(self._increment, key)

    def _get(self, key: str) -> Optional[str]:
        def op(conn: sqlite3.Connection) -> Optional[str]:
            row = conn.execute(
                "SELECT value FROM rating_ledger WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None
        return self._run("get", key, op)

    def _set(self, key: str, value: str) -> None:
        def op(conn: sqlite3.Connection) -> None:
            conn.execute("""
                INSERT INTO rating_ledger (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """, (key, value))
            conn.commit()
        self._run("set", key, op)

    def _remove(self, key: str) -> None:
        def op(conn: sqlite3.Connection) -> None:
            conn.execute("DELETE FROM rating_ledger WHERE key = ?", (key,))
            conn.commit()
        self._run("remove", key, op)

    def _increment(self, key: str) -> int:
        def op(conn: sqlite3.Connection) -> int:
            conn.execute("""
                INSERT INTO rating_ledger (key, value) VALUES (?, '1')
                ON CONFLICT(key) DO UPDATE SET value = CAST(value AS INTEGER) + 1
            """, (key,))
            row = conn.execute(
                "SELECT value FROM rating_ledger WHERE key = ?", (key,)
            ).fetchone()
            conn.commit()
            return int(row[0])
        return self._run("increment", key, op)

    def _run(self, action: str, key: str, op):
        try:
            conn = get_connection(self.db_path)
            try:
                return op(conn)
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"Ledger {action} failed for key '{key}': {e}") from e


class RatingsLedger:
    """Usage counters and prompt timestamps for one application.

    Absent keys read as "never set": None for timestamps, 0 for counters.
    Timestamps are written once per call and never cleared by this class.
    """

    def __init__(
        self,
        store: SQLiteKeyValueStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the ledger.

        Args:
            store: Key/value storage backing the ledger
            clock: Source of "now" for timestamp writes
        """
        self.store = store
        self.clock = clock

    async def record_use(self) -> int:
        count = await self.store.increment(LedgerKey.USES_COUNT.value)
        logger.debug(f"Recorded app use, usesCount={count}")
        return count

    async def record_positive_event(self) -> int:
        count = await self.store.increment(LedgerKey.EVENT_COUNT.value)
        logger.debug(f"Recorded positive event, eventCount={count}")
        return count

    async def record_rating_seen(self) -> None:
        await self._stamp(LedgerKey.LAST_SEEN_AT)

    async def record_rated(self) -> None:
        await self._stamp(LedgerKey.RATED_AT)

    async def record_decline(self) -> None:
        await self._stamp(LedgerKey.DECLINED_AT)

    async def reset_counters(self) -> None:
        """Set usesCount and eventCount back to zero."""
        await self.store.set(LedgerKey.USES_COUNT.value, "0")
        await self.store.set(LedgerKey.EVENT_COUNT.value, "0")
        logger.debug("Reset usage counters")

    async def read_all(self) -> LedgerSnapshot:
        """Read every ledger key into a single snapshot."""
        return LedgerSnapshot(
            rated_at=await self._read_timestamp(LedgerKey.RATED_AT),
            declined_at=await self._read_timestamp(LedgerKey.DECLINED_AT),
            last_seen_at=await self._read_timestamp(LedgerKey.LAST_SEEN_AT),
            uses_count=await self._read_count(LedgerKey.USES_COUNT),
            event_count=await self._read_count(LedgerKey.EVENT_COUNT),
        )

    async def _stamp(self, key: LedgerKey) -> None:
        now = self.clock()
        await self.store.set(key.value, now.isoformat())
        logger.debug(f"Set {key.value}={now.isoformat()}")

    async def _read_timestamp(self, key: LedgerKey) -> Optional[datetime]:
        raw = await self.store.get(key.value)
        if raw is None:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError as e:
            raise StorageError(f"Corrupt timestamp stored under '{key.value}': {raw!r}") from e

    async def _read_count(self, key: LedgerKey) -> int:
        raw = await self.store.get(key.value)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError as e:
            raise StorageError(f"Corrupt counter stored under '{key.value}': {raw!r}") from e
