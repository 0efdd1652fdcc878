"""Browser-scoped key-value storage used as the app's "local storage".

Each browser gets its own namespace (the long-lived client cookie), and every
namespace behaves like ``window.localStorage``: string keys mapped to string
values, read whole and written whole.

Design notes
------------
- Values are stored verbatim; callers own serialisation.
- WAL mode is enabled. Suitable for single-writer, multi-reader local use.
- ``InMemoryKeyValueStorage`` mirrors the same surface and is used when the
  database cannot be opened, and by the tests.

Default location (if not provided):  ~/wellness/data/local_storage.db
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
import sqlite3
from typing import Final, Protocol


DEFAULT_DB_PATH: Final[Path] = Path.home() / "wellness" / "data" / "local_storage.db"
DEFAULT_TABLE: Final[str] = "local_storage"


class SupportsLocalStorage(Protocol):
    """The ``localStorage`` subset the favourites store relies on."""

    def get_item(self, key: str) -> str | None:
        """Return the stored value or ``None`` when the key is absent."""

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    def remove_item(self, key: str) -> None:
        """Delete ``key`` if present."""


class KeyValueStorage(Protocol):
    """Storage shared by every browser, partitioned by namespace."""

    def scoped(self, namespace: str) -> SupportsLocalStorage:
        """Return a view restricted to ``namespace``."""


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(slots=True)
class _ScopedStorage:
    """Namespace-bound view handed to a single browser session."""

    backend: "SQLiteKeyValueStorage | InMemoryKeyValueStorage"
    namespace: str

    def get_item(self, key: str) -> str | None:
        return self.backend.get_item(self.namespace, key)

    def set_item(self, key: str, value: str) -> None:
        self.backend.set_item(self.namespace, key, value)

    def remove_item(self, key: str) -> None:
        self.backend.remove_item(self.namespace, key)


class SQLiteKeyValueStorage:
    """SQLite-backed storage keyed by ``(namespace, key)``."""

    def __init__(self, db_path: str | Path | None = None, *, table: str = DEFAULT_TABLE) -> None:
        self._db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self._table = table

        if str(self._db_path) != ":memory:":
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._conn:
            self._conn.execute("PRAGMA journal_mode = WAL;")
        self._bootstrap()

    # --- schema ----------------------------------------------------------------

    def _bootstrap(self) -> None:
        """Create the storage table if it doesn't exist."""
        with self._conn:
            self._conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                );
                """
            )

    @property
    def db_path(self) -> Path:
        return self._db_path

    # --- items -------------------------------------------------------------------

    def scoped(self, namespace: str) -> _ScopedStorage:
        return _ScopedStorage(self, namespace)

    def get_item(self, namespace: str, key: str) -> str | None:
        row = self._conn.execute(
            f"SELECT value FROM {self._table} WHERE namespace = ? AND key = ?;",
            (namespace, key),
        ).fetchone()
        return row["value"] if row else None

    def set_item(self, namespace: str, key: str, value: str) -> None:
        with self._conn:
            self._conn.execute(
                f"""
                INSERT INTO {self._table}(namespace, key, value, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(namespace, key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at;
                """,
                (namespace, key, value, _iso_now()),
            )

    def remove_item(self, namespace: str, key: str) -> None:
        with self._conn:
            self._conn.execute(
                f"DELETE FROM {self._table} WHERE namespace = ? AND key = ?;",
                (namespace, key),
            )

    def close(self) -> None:
        self._conn.close()


@dataclass(slots=True)
class InMemoryKeyValueStorage:
    """Process-local storage used when the database is unavailable during local dev."""

    _items: dict[tuple[str, str], str] = field(default_factory=dict)

    def scoped(self, namespace: str) -> _ScopedStorage:
        return _ScopedStorage(self, namespace)

    def get_item(self, namespace: str, key: str) -> str | None:
        return self._items.get((namespace, key))

    def set_item(self, namespace: str, key: str, value: str) -> None:
        self._items[(namespace, key)] = value

    def remove_item(self, namespace: str, key: str) -> None:
        self._items.pop((namespace, key), None)


__all__ = [
    "DEFAULT_DB_PATH",
    "InMemoryKeyValueStorage",
    "KeyValueStorage",
    "SQLiteKeyValueStorage",
    "SupportsLocalStorage",
]
