"""
SQLite node tree implementation.

This module stores the node tree in a single SQLite database. It suits
single-instance deployments and integration tests that need durability
without running ZooKeeper.

Invariants:
    - One row per node; "/" is implicit and never stored
    - Version bumps happen in the same statement as the payload write
    - Every multi-statement operation runs in a BEGIN IMMEDIATE transaction

How to change safely:
    - Schema migrations must be backward compatible
    - Keep version semantics identical to the ZooKeeper backend

Table schema:
    nodes:
        - path TEXT PRIMARY KEY
        - parent TEXT NOT NULL
        - data BLOB NOT NULL
        - version INTEGER NOT NULL
        - INDEX on (parent)
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Tuple

from .base import (
    INITIAL_NODE_VERSION,
    BadVersionError,
    NodeExistsError,
    NodeTreeConnectionError,
    NodeTreeError,
    NoNodeError,
    NotEmptyError,
    ancestors,
    node_name,
    parent_path,
)

logger = logging.getLogger(__name__)


class SqliteNodeTree:
    """SQLite implementation of the NodeTree protocol.

    Thread safety:
        Each operation opens its own connection. Writers are serialized by
        SQLite's database lock (BEGIN IMMEDIATE), so compare-and-swap holds
        across processes sharing the file.

    Example:
        >>> tree = SqliteNodeTree("/var/lib/varadhi/metastore.db")
        >>> await tree.connect()
        >>> await tree.create("/varadhi/orgs/public", b"{}", make_parents=True)
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the SQLite node tree.

        Args:
            db_path: Database file path
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.db_path = Path(db_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, translating SQLite failures.

        Yields:
            SQLite connection in autocommit mode

        Raises:
            NodeTreeConnectionError: If not connected
            NodeTreeError: For any SQLite failure
        """
        if not self._connected:
            raise NodeTreeConnectionError("Not connected")

        try:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        except sqlite3.Error as e:
            raise NodeTreeConnectionError(f"Failed to open {self.db_path}: {e}") from e

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        except sqlite3.Error as e:
            raise NodeTreeError(f"SQLite operation failed: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS nodes (
                path TEXT PRIMARY KEY,
                parent TEXT NOT NULL,
                data BLOB NOT NULL,
                version INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_nodes_parent ON nodes(parent);

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def connect(self) -> None:
        """Create the database file and schema if needed."""
        if self._connected:
            return
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise NodeTreeConnectionError(f"Cannot create {self.db_path.parent}: {e}") from e
        self._connected = True
        try:
            with self._get_connection() as conn:
                self._create_schema(conn)
        except NodeTreeError:
            self._connected = False
            raise
        logger.info(f"SQLite node tree ready at {self.db_path}")

    async def close(self) -> None:
        self._connected = False

    @staticmethod
    def _node_exists(conn: sqlite3.Connection, path: str) -> bool:
        if path == "/":
            return True
        cursor = conn.execute("SELECT 1 FROM nodes WHERE path = ?", (path,))
        return cursor.fetchone() is not None

    async def create(self, path: str, data: bytes = b"", make_parents: bool = False) -> None:
        async with self._lock:
            with self._transaction() as conn:
                if self._node_exists(conn, path):
                    raise NodeExistsError(path)
                if make_parents:
                    for ancestor in ancestors(path):
                        conn.execute(
                            "INSERT OR IGNORE INTO nodes (path, parent, data, version) "
                            "VALUES (?, ?, ?, ?)",
                            (ancestor, parent_path(ancestor), b"", INITIAL_NODE_VERSION),
                        )
                elif not self._node_exists(conn, parent_path(path)):
                    raise NoNodeError(parent_path(path))
                conn.execute(
                    "INSERT INTO nodes (path, parent, data, version) VALUES (?, ?, ?, ?)",
                    (path, parent_path(path), data, INITIAL_NODE_VERSION),
                )

    async def get(self, path: str) -> Tuple[bytes, int]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT data, version FROM nodes WHERE path = ?", (path,)
            ).fetchone()
        if row is None:
            raise NoNodeError(path)
        return bytes(row[0]), int(row[1])

    async def set(self, path: str, data: bytes, version: int) -> int:
        async with self._lock:
            with self._transaction() as conn:
                cursor = conn.execute(
                    "UPDATE nodes SET data = ?, version = version + 1 "
                    "WHERE path = ? AND version = ?",
                    (data, path, version),
                )
                if cursor.rowcount == 0:
                    if not self._node_exists(conn, path):
                        raise NoNodeError(path)
                    raise BadVersionError(f"{path}: expected version {version}")
                return version + 1

    async def exists(self, path: str) -> bool:
        with self._get_connection() as conn:
            return self._node_exists(conn, path)

    async def delete(self, path: str, version: Optional[int] = None) -> None:
        async with self._lock:
            with self._transaction() as conn:
                row = conn.execute(
                    "SELECT version FROM nodes WHERE path = ?", (path,)
                ).fetchone()
                if row is None:
                    raise NoNodeError(path)
                if version is not None and int(row[0]) != version:
                    raise BadVersionError(f"{path}: expected version {version}")
                child = conn.execute(
                    "SELECT 1 FROM nodes WHERE parent = ? LIMIT 1", (path,)
                ).fetchone()
                if child is not None:
                    raise NotEmptyError(path)
                conn.execute("DELETE FROM nodes WHERE path = ?", (path,))

    async def children(self, path: str) -> List[str]:
        with self._get_connection() as conn:
            if not self._node_exists(conn, path):
                raise NoNodeError(path)
            rows = conn.execute(
                "SELECT path FROM nodes WHERE parent = ? ORDER BY path", (path,)
            ).fetchall()
        return [node_name(row[0]) for row in rows]
