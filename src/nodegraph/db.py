"""SQLite store: one explicitly opened connection per Store instance.

    store = Store.open(path)
    rows = store.query("SELECT ...", (a, b))
    res = store.execute("INSERT ...", (a,))      # ExecResult(changes, inserted_id)
    node_id = store.transaction(lambda: ...)     # all-or-nothing

The connection runs in autocommit mode; transaction() issues BEGIN IMMEDIATE
so concurrent writers are serialized by SQLite while WAL readers are not
blocked. Nested transaction() calls join the outer one.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from nodegraph.errors import StoreFailure
from nodegraph.models import ExecResult, now_iso

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    Params = Sequence[Any] | Mapping[str, Any]

logger = logging.getLogger("nodegraph.db")

T = TypeVar("T")

_BUSY_TIMEOUT_MS = 5000

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS nodes (
        id INTEGER PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        content TEXT,
        link TEXT,
        type TEXT,
        metadata TEXT,        -- JSON object
        chunk TEXT,
        created_at TEXT,
        updated_at TEXT
    );

    CREATE TABLE IF NOT EXISTS edges (
        id INTEGER PRIMARY KEY,
        from_node_id INTEGER NOT NULL REFERENCES nodes(id) ON DELETE CASCADE,
        to_node_id INTEGER NOT NULL REFERENCES nodes(id) ON DELETE CASCADE,
        source TEXT,
        context TEXT,         -- JSON object: {"explanation": ..., "type": ..., ...}
        user_feedback INTEGER,
        created_at TEXT
    );
    CREATE INDEX IF NOT EXISTS idx_edges_from ON edges(from_node_id);
    CREATE INDEX IF NOT EXISTS idx_edges_to ON edges(to_node_id);

    CREATE TABLE IF NOT EXISTS dimensions (
        name TEXT PRIMARY KEY,
        description TEXT,
        is_priority INTEGER DEFAULT 0,
        updated_at TEXT
    );

    -- dimension -> dimensions(name) is kept in sync by DimensionStore
    -- (rename and delete cascade explicitly inside one transaction).
    CREATE TABLE IF NOT EXISTS node_dimensions (
        node_id INTEGER NOT NULL REFERENCES nodes(id) ON DELETE CASCADE,
        dimension TEXT NOT NULL,
        PRIMARY KEY (node_id, dimension)
    ) WITHOUT ROWID;
    CREATE INDEX IF NOT EXISTS idx_dim_by_dimension ON node_dimensions(dimension, node_id);
"""


class Store:
    """A single SQLite connection with query/execute/transaction primitives."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._depth = 0

    @classmethod
    def open(cls, db_path: Path | str) -> Store:
        store = cls(db_path)
        store.connect()
        return store

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        if self._conn is not None:
            return
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            # 0-byte files come from interrupted WAL setups; fail loudly instead of
            # an opaque "disk I/O error" later.
            if self.db_path.exists() and self.db_path.stat().st_size == 0:
                msg = f"SQLite DB is empty (0 bytes): {self.db_path}; remove it and retry"
                raise StoreFailure(msg)
        conn = sqlite3.connect(str(self.db_path), isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            if isinstance(self.db_path, Path):
                conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute(f"PRAGMA busy_timeout={_BUSY_TIMEOUT_MS}")
        except sqlite3.Error as exc:
            conn.close()
            msg = f"failed to open database {self.db_path}"
            raise StoreFailure(msg) from exc
        self._conn = conn
        logger.debug("opened %s", self.db_path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug("closed %s", self.db_path)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def __enter__(self) -> Store:
        self.connect()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            msg = "store is closed"
            raise StoreFailure(msg)
        return self._conn

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def ensure_schema(self, seed_dimensions: Iterable[str] = ()) -> bool:
        """Create tables if missing. Returns True when the schema was new.

        Seed dimensions are inserted as priority dimensions only on first creation.
        """
        existing = self.query(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='nodes'"
        )
        created = not existing
        try:
            self.conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise StoreFailure from exc
        if created:
            now = now_iso()

            def _seed() -> None:
                for name in seed_dimensions:
                    self.execute(
                        "INSERT OR IGNORE INTO dimensions(name, is_priority, updated_at) VALUES (?, 1, ?)",
                        (name, now),
                    )

            self.transaction(_seed)
            logger.info("created schema in %s", self.db_path)
        return created

    def table_counts(self) -> dict[str, int]:
        counts = {}
        for table in ("nodes", "edges", "dimensions", "node_dimensions"):
            counts[table] = int(self.query(f"SELECT COUNT(*) FROM {table}")[0][0])  # noqa: S608
        return counts

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def query(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(sql, _bind(params)).fetchall()
        except sqlite3.Error as exc:
            logger.debug("query failed: %s", exc)
            raise StoreFailure from exc

    def execute(self, sql: str, params: Params = ()) -> ExecResult:
        try:
            cur = self.conn.execute(sql, _bind(params))
        except sqlite3.Error as exc:
            logger.debug("statement failed: %s", exc)
            raise StoreFailure from exc
        return ExecResult(changes=cur.rowcount if cur.rowcount > 0 else 0, inserted_id=cur.lastrowid)

    def insert(self, sql: str, params: Params = ()) -> int:
        """Run an INSERT and return the new rowid."""
        res = self.execute(sql, params)
        if not res.changes or res.inserted_id is None:
            msg = "insert did not create a row"
            raise StoreFailure(msg)
        return res.inserted_id

    def transaction(self, fn: Callable[[], T]) -> T:
        """Run fn() atomically. Any exception rolls back everything fn() wrote."""
        if self._depth > 0:
            self._depth += 1
            try:
                return fn()
            finally:
                self._depth -= 1

        conn = self.conn
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            raise StoreFailure from exc
        self._depth = 1
        try:
            result = fn()
        except BaseException:
            self._depth = 0
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        self._depth = 0
        try:
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise StoreFailure from exc
        return result

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0


def _bind(params: Params) -> Any:
    return params if isinstance(params, dict) else tuple(params)
