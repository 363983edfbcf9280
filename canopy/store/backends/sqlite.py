"""SQLite tree backend."""

import asyncio
import json
import sqlite3
import threading
from typing import Any, Optional

from .. import paths
from .base import TreeBackend, flatten, prune, unflatten


class SQLiteBackend(TreeBackend):
    """SQLite tree backend.

    Stores every leaf of the tree as one row keyed by its full path, so a
    subtree read is a prefix scan. Zero configuration required.
    Good for development and single-user production scenarios.

    Example:
        backend = SQLiteBackend()
        await backend.connect(path="fleet.db")

        # Or in-memory
        await backend.connect(path=":memory:")
    """

    def __init__(self):
        super().__init__()
        self._conn: Optional[sqlite3.Connection] = None
        self._path: Optional[str] = None
        self._lock = threading.Lock()

    async def connect(self, path: str = ":memory:", **kwargs) -> None:
        """Connect to SQLite database.

        Args:
            path: Database file path, or ":memory:" for in-memory database
        """
        self._path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._create_tables()
        self._connected = True

    def _create_tables(self) -> None:
        """Create the nodes table if it doesn't exist."""
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS nodes (
                path TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
        self._connected = False

    async def read(self, path: str) -> Optional[Any]:
        """Read the subtree at path."""
        return await asyncio.to_thread(self._read, path)

    async def write(self, path: str, value: Any) -> None:
        """Replace the subtree at path."""
        await asyncio.to_thread(self._write, path, prune(value))

    async def remove(self, path: str) -> bool:
        """Remove the subtree at path."""
        return await asyncio.to_thread(self._remove, path)

    # Blocking implementations, run off the event loop

    def _subtree_clause(self, path: str):
        """SQL condition and parameters selecting path and its descendants."""
        if not path:
            return "1 = 1", ()
        prefix = path + "/"
        return "(path = ? OR substr(path, 1, ?) = ?)", (path, len(prefix), prefix)

    def _read(self, path: str) -> Optional[Any]:
        clause, params = self._subtree_clause(path)
        with self._lock:
            cursor = self._conn.execute(
                f"SELECT path, value FROM nodes WHERE {clause}", params
            )
            leaves = {row["path"]: json.loads(row["value"]) for row in cursor}
        if not leaves:
            return None
        return unflatten(path, leaves)

    def _write(self, path: str, value: Any) -> None:
        with self._lock, self._conn:
            self._delete(path)
            # A leaf stored at an ancestor cannot coexist with children
            segments = paths.split(path)
            for depth in range(len(segments)):
                self._conn.execute(
                    "DELETE FROM nodes WHERE path = ?",
                    ("/".join(segments[:depth]),),
                )
            self._conn.executemany(
                "INSERT OR REPLACE INTO nodes (path, value) VALUES (?, ?)",
                [(leaf_path, json.dumps(leaf)) for leaf_path, leaf in flatten(path, value)],
            )

    def _remove(self, path: str) -> bool:
        with self._lock, self._conn:
            return self._delete(path) > 0

    def _delete(self, path: str) -> int:
        clause, params = self._subtree_clause(path)
        cursor = self._conn.execute(f"DELETE FROM nodes WHERE {clause}", params)
        return cursor.rowcount
