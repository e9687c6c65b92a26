"""
GraphDatabase - SQLite store handle for documents, entities and the graph.

One explicitly constructed object per process owns the connection. Stores
receive it in their constructor; the CLI opens it at start-up and closes it
on exit.

Full-text indexes (FTS5, external content) are kept in sync with their base
tables by triggers, so every insert/update/delete updates the index inside
the same transaction.
"""

import secrets
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence

from notegraph.audit import log_audit
from notegraph.core.config import DATA_DIR_NAME


SCHEMA_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id             TEXT PRIMARY KEY,
    kind           TEXT NOT NULL CHECK (kind IN ('file', 'entry')),
    file_path      TEXT UNIQUE,
    file_hash      TEXT,
    file_type      TEXT,
    content        TEXT,
    title          TEXT,
    date           TEXT,
    metadata       TEXT NOT NULL DEFAULT '{}',
    extracted_text TEXT,
    processed      INTEGER NOT NULL DEFAULT 0,   -- 0 pending, 1 processed, 2 errored
    error_msg      TEXT,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL,
    CHECK (kind = 'file' OR file_path IS NULL)
);

CREATE TABLE IF NOT EXISTS entities (
    id         TEXT PRIMARY KEY,
    name       TEXT NOT NULL,
    type       TEXT NOT NULL,
    aliases    TEXT NOT NULL DEFAULT '[]',
    metadata   TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS relationships (
    id         TEXT PRIMARY KEY,
    source_id  TEXT NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
    target_id  TEXT NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
    type       TEXT NOT NULL,
    properties TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    UNIQUE (source_id, target_id, type),
    CHECK (source_id <> target_id)
);

CREATE TABLE IF NOT EXISTS document_entities (
    document_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    entity_id   TEXT NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
    mention     TEXT,
    confidence  REAL NOT NULL DEFAULT 1.0,
    PRIMARY KEY (document_id, entity_id)
);

CREATE INDEX IF NOT EXISTS idx_documents_kind ON documents(kind);
CREATE INDEX IF NOT EXISTS idx_documents_processed ON documents(processed);
CREATE INDEX IF NOT EXISTS idx_documents_date ON documents(date);
CREATE INDEX IF NOT EXISTS idx_entities_type ON entities(type);
CREATE INDEX IF NOT EXISTS idx_entities_name ON entities(name COLLATE NOCASE);
CREATE INDEX IF NOT EXISTS idx_relationships_source ON relationships(source_id);
CREATE INDEX IF NOT EXISTS idx_relationships_target ON relationships(target_id);
CREATE INDEX IF NOT EXISTS idx_document_entities_entity ON document_entities(entity_id);

-- Full-text search tables
CREATE VIRTUAL TABLE IF NOT EXISTS documents_fts USING fts5(
    title, extracted_text,
    content='documents',
    content_rowid='rowid'
);

CREATE VIRTUAL TABLE IF NOT EXISTS entities_fts USING fts5(
    name, aliases,
    content='entities',
    content_rowid='rowid'
);

-- Triggers to keep FTS in sync
CREATE TRIGGER IF NOT EXISTS documents_ai AFTER INSERT ON documents BEGIN
    INSERT INTO documents_fts(rowid, title, extracted_text)
    VALUES (new.rowid, new.title, new.extracted_text);
END;

CREATE TRIGGER IF NOT EXISTS documents_ad AFTER DELETE ON documents BEGIN
    INSERT INTO documents_fts(documents_fts, rowid, title, extracted_text)
    VALUES ('delete', old.rowid, old.title, old.extracted_text);
END;

CREATE TRIGGER IF NOT EXISTS documents_au AFTER UPDATE OF title, extracted_text ON documents BEGIN
    INSERT INTO documents_fts(documents_fts, rowid, title, extracted_text)
    VALUES ('delete', old.rowid, old.title, old.extracted_text);
    INSERT INTO documents_fts(rowid, title, extracted_text)
    VALUES (new.rowid, new.title, new.extracted_text);
END;

CREATE TRIGGER IF NOT EXISTS entities_ai AFTER INSERT ON entities BEGIN
    INSERT INTO entities_fts(rowid, name, aliases)
    VALUES (new.rowid, new.name, new.aliases);
END;

CREATE TRIGGER IF NOT EXISTS entities_ad AFTER DELETE ON entities BEGIN
    INSERT INTO entities_fts(entities_fts, rowid, name, aliases)
    VALUES ('delete', old.rowid, old.name, old.aliases);
END;

CREATE TRIGGER IF NOT EXISTS entities_au AFTER UPDATE OF name, aliases ON entities BEGIN
    INSERT INTO entities_fts(entities_fts, rowid, name, aliases)
    VALUES ('delete', old.rowid, old.name, old.aliases);
    INSERT INTO entities_fts(rowid, name, aliases)
    VALUES (new.rowid, new.name, new.aliases);
END;

CREATE TABLE IF NOT EXISTS schema_info (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def utc_now() -> str:
    """ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    """21-character URL-safe random identifier."""
    return secrets.token_urlsafe(16)[:21]


def escape_fts_query(query: str) -> str:
    """Turn free text into an FTS5 query of quoted terms.

    FTS5 treats certain characters as operators. Each whitespace-separated
    token is wrapped in quotes so it is matched literally; tokens are ANDed.
    """
    tokens = [t.replace('"', '""') for t in query.split() if t.strip()]
    return " ".join(f'"{t}"' for t in tokens)


class GraphDatabase:
    """SQLite-backed store for the knowledge graph.

    Lifecycle: construct once, pass to every store, ``close()`` at shutdown
    (or use as a context manager). Writes go through ``transaction()``,
    which holds the write lock, commits on success and rolls back on error.
    """

    def __init__(self, db_path: Path):
        """Open (and create if needed) the database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = sqlite3.connect(
            self.db_path, check_same_thread=False, isolation_level=None
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.execute("PRAGMA busy_timeout = 5000")
        self._depth = 0
        self._init_schema()

    @classmethod
    def for_vault(cls, vault_path: Path) -> "GraphDatabase":
        """Open the database stored inside a vault."""
        return cls(Path(vault_path).expanduser() / DATA_DIR_NAME / "index.db")

    def _init_schema(self) -> None:
        """Create tables, indexes and triggers if they don't exist."""
        with self.lock:
            self.conn.executescript(SCHEMA)
            self.conn.execute(
                "INSERT OR REPLACE INTO schema_info (key, value) VALUES ('version', ?)",
                (str(SCHEMA_VERSION),),
            )

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError(f"Database is closed: {self.db_path}")
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    def close(self) -> None:
        """Close the connection. Safe to call twice."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "GraphDatabase":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block atomically under the write lock.

        Nested calls join the outer transaction.
        """
        with self.lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self.conn
                finally:
                    self._depth -= 1
                return

            self.conn.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield self.conn
            except BaseException:
                self.conn.execute("ROLLBACK")
                raise
            else:
                self.conn.execute("COMMIT")
            finally:
                self._depth = 0

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Run a single write statement in its own transaction."""
        with self.transaction() as conn:
            return conn.execute(sql, params)

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self.lock:
            return self.conn.execute(sql, params).fetchall()

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        with self.lock:
            return self.conn.execute(sql, params).fetchone()

    def scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        row = self.query_one(sql, params)
        return row[0] if row else None

    def reset_graph(self) -> int:
        """Delete the graph and queue every document for reprocessing.

        Removes relationships, document links and entities, rebuilds both
        full-text indexes from their base tables, and resets every document
        to pending with no error.

        Returns:
            Number of documents reset
        """
        with self.transaction() as conn:
            conn.execute("DELETE FROM document_entities")
            conn.execute("DELETE FROM relationships")
            conn.execute("DELETE FROM entities")
            conn.execute("INSERT INTO entities_fts(entities_fts) VALUES ('rebuild')")
            conn.execute(
                "UPDATE documents SET processed = 0, error_msg = NULL, updated_at = ?",
                (utc_now(),),
            )
            conn.execute("INSERT INTO documents_fts(documents_fts) VALUES ('rebuild')")
            count = conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]

        log_audit("graph", "reset", {"documents": count})
        return count

    def integrity_check(self) -> bool:
        """Run FTS5 integrity checks on both indexes."""
        try:
            with self.lock:
                self.conn.execute(
                    "INSERT INTO documents_fts(documents_fts) VALUES ('integrity-check')"
                )
                self.conn.execute(
                    "INSERT INTO entities_fts(entities_fts) VALUES ('integrity-check')"
                )
        except sqlite3.DatabaseError:
            return False
        return True
