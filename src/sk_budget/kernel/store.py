"""
Key-value record store - whole-document JSON blobs under named keys

The tracker persists three independent records (budget catalog, allocation
ledger, projects). Each record is written wholesale on every save; there is
no merge and no partial update.

Values are kept as raw text so that a record which no longer parses is
still visible to the repository that owns it. Deciding what to do with
unreadable data is the repository's job, not the store's.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Generic, Iterator, Protocol, TypeVar

from pydantic import BaseModel

from sk_budget.kernel.errors import StoreError
from sk_budget.kernel.logging import get_logger
from sk_budget.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)

T = TypeVar("T")


class LoadStatus(str, Enum):
    """
    Outcome of hydrating a record from the store

    RECOVERED means the record existed but could not be read and was
    replaced by empty state. Callers that care about data loss must check
    for it; it is never raised.
    """

    LOADED = "LOADED"  # Record present and valid
    ABSENT = "ABSENT"  # No record under the key
    RECOVERED = "RECOVERED"  # Record unreadable, empty state substituted


class LoadResult(BaseModel, Generic[T]):
    """Value loaded from the store together with how it was obtained"""

    value: T
    status: LoadStatus
    error: str | None = None

    @property
    def recovered(self) -> bool:
        return self.status == LoadStatus.RECOVERED


class KeyValueStore(Protocol):
    """Protocol for record stores - allows in-memory stores in tests"""

    def get(self, key: str) -> str | None:
        """Return the raw text stored under key, or None if absent"""
        ...

    def put(self, key: str, value: str) -> None:
        """Overwrite the record stored under key"""
        ...

    def delete(self, key: str) -> None:
        """Remove the record stored under key (no-op if absent)"""
        ...


class InMemoryKeyValueStore:
    """Dictionary-backed store for tests and throwaway sessions"""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._records: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._records.get(key)

    def put(self, key: str, value: str) -> None:
        self._records[key] = value

    def delete(self, key: str) -> None:
        self._records.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._records)


class SQLiteKeyValueStore:
    """
    SQLite-based record store

    Schema:
    - records table: key, raw value text, last update timestamp
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize the store, creating the schema if needed

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create tables if they don't exist"""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    key TEXT PRIMARY KEY,
                    value_text TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections"""
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=5.0)
        except sqlite3.Error as e:
            raise StoreError(str(self.db_path), str(e)) from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @retry_on_sqlite_lock()
    def get(self, key: str) -> str | None:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT value_text FROM records WHERE key = ?", (key,)
            )
            row = cursor.fetchone()
            return row["value_text"] if row else None

    @retry_on_sqlite_lock()
    def put(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO records (key, value_text, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value_text = excluded.value_text,
                    updated_at = excluded.updated_at
            """,
                (key, value, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
        logger.debug("Record written", key=key, size=len(value))

    @retry_on_sqlite_lock()
    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM records WHERE key = ?", (key,))
            conn.commit()

    def keys(self) -> list[str]:
        """List all record keys"""
        with self._connect() as conn:
            cursor = conn.execute("SELECT key FROM records ORDER BY key")
            return [row["key"] for row in cursor.fetchall()]

    def updated_at(self, key: str) -> datetime | None:
        """Timestamp of the last write to key, or None if absent"""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT updated_at FROM records WHERE key = ?", (key,)
            )
            row = cursor.fetchone()
            return datetime.fromisoformat(row["updated_at"]) if row else None
