"""
DocumentStore - persistence for file-backed and manually written documents.

A ``file`` document mirrors a vault file (unique relative path plus content
fingerprint); an ``entry`` document is written by hand and has no path.
"""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import date as date_cls
from enum import IntEnum
from typing import Any, Dict, List, Optional

from notegraph.core.db import GraphDatabase, new_id, utc_now


ENTRY_TITLE_MAX = 100


class DocumentStatus(IntEnum):
    """Processing status stored in ``documents.processed``."""

    PENDING = 0
    PROCESSED = 1
    ERRORED = 2


@dataclass
class ExtractedContent:
    """Text and metadata pulled out of a vault file."""

    title: str
    extracted_text: str
    date: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Document:
    """A row of the documents table."""

    id: str
    kind: str  # "file" | "entry"
    title: Optional[str]
    extracted_text: Optional[str]
    status: DocumentStatus
    created_at: str
    updated_at: str
    file_path: Optional[str] = None
    file_hash: Optional[str] = None
    file_type: Optional[str] = None
    content: Optional[str] = None
    date: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    error_msg: Optional[str] = None

    @property
    def label(self) -> str:
        """Short human-readable name for progress output."""
        return self.file_path or self.title or self.id

    @property
    def text(self) -> str:
        """Text to extract from: inline content wins over extracted text."""
        return self.content or self.extracted_text or ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Document":
        return cls(
            id=row["id"],
            kind=row["kind"],
            title=row["title"],
            extracted_text=row["extracted_text"],
            status=DocumentStatus(row["processed"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            file_path=row["file_path"],
            file_hash=row["file_hash"],
            file_type=row["file_type"],
            content=row["content"],
            date=row["date"],
            metadata=json.loads(row["metadata"] or "{}"),
            error_msg=row["error_msg"],
        )


@dataclass
class DocumentCounts:
    total: int = 0
    files: int = 0
    entries: int = 0
    processed: int = 0
    pending: int = 0
    errored: int = 0


def entry_title(content: str) -> str:
    """First line of an entry, capped at 100 characters."""
    title = content.strip().split("\n")[0].strip() or "Untitled"
    if len(title) > ENTRY_TITLE_MAX:
        title = title[:ENTRY_TITLE_MAX] + "..."
    return title


class DocumentStore:
    """CRUD and status queries for documents."""

    def __init__(self, db: GraphDatabase):
        self.db = db

    def create_file(
        self,
        file_path: str,
        file_hash: str,
        file_type: str,
        extracted: ExtractedContent,
    ) -> str:
        """Insert a file-backed document in pending state.

        Args:
            file_path: Path relative to the vault root
            file_hash: Content fingerprint
            file_type: Detected type (markdown, text, csv, json)
            extracted: Title, date, text and metadata from the file

        Returns:
            The new document id
        """
        doc_id = new_id()
        now = utc_now()
        self.db.execute(
            """
            INSERT INTO documents (
                id, kind, file_path, file_hash, file_type, title, date,
                metadata, extracted_text, processed, created_at, updated_at
            ) VALUES (?, 'file', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                doc_id,
                file_path,
                file_hash,
                file_type,
                extracted.title,
                extracted.date,
                json.dumps(extracted.metadata, default=str),
                extracted.extracted_text,
                int(DocumentStatus.PENDING),
                now,
                now,
            ),
        )
        return doc_id

    def create_entry(self, content: str, date: Optional[str] = None) -> str:
        """Insert a manually written entry. Date defaults to today."""
        doc_id = new_id()
        now = utc_now()
        self.db.execute(
            """
            INSERT INTO documents (
                id, kind, content, title, date, extracted_text, processed,
                created_at, updated_at
            ) VALUES (?, 'entry', ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                doc_id,
                content,
                entry_title(content),
                date or date_cls.today().isoformat(),
                content,
                int(DocumentStatus.PENDING),
                now,
                now,
            ),
        )
        return doc_id

    def update_entry(self, doc_id: str, content: str) -> None:
        """Replace an entry's text and queue it for reprocessing."""
        doc = self.get(doc_id)
        if doc is None or doc.kind != "entry":
            raise ValueError(f"Not an entry document: {doc_id}")

        self.db.execute(
            """
            UPDATE documents SET
                content = ?, title = ?, extracted_text = ?,
                processed = 0, error_msg = NULL, updated_at = ?
            WHERE id = ?
            """,
            (content, entry_title(content), content, utc_now(), doc_id),
        )

    def update_file(self, doc_id: str, file_hash: str, extracted: ExtractedContent) -> None:
        """Store new content for a changed file and reset it to pending."""
        self.db.execute(
            """
            UPDATE documents SET
                file_hash = ?, title = ?, date = ?, metadata = ?,
                extracted_text = ?, processed = 0, error_msg = NULL,
                updated_at = ?
            WHERE id = ?
            """,
            (
                file_hash,
                extracted.title,
                extracted.date,
                json.dumps(extracted.metadata, default=str),
                extracted.extracted_text,
                utc_now(),
                doc_id,
            ),
        )

    def get(self, doc_id: str) -> Optional[Document]:
        row = self.db.query_one("SELECT * FROM documents WHERE id = ?", (doc_id,))
        return Document.from_row(row) if row else None

    def get_by_path(self, file_path: str) -> Optional[Document]:
        row = self.db.query_one(
            "SELECT * FROM documents WHERE file_path = ? AND kind = 'file'", (file_path,)
        )
        return Document.from_row(row) if row else None

    def list_all(self) -> List[Document]:
        rows = self.db.query("SELECT * FROM documents ORDER BY created_at, rowid")
        return [Document.from_row(r) for r in rows]

    def list_files(self) -> List[Document]:
        rows = self.db.query(
            "SELECT * FROM documents WHERE kind = 'file' ORDER BY file_path"
        )
        return [Document.from_row(r) for r in rows]

    def list_pending(self) -> List[Document]:
        """Documents waiting for extraction, oldest first."""
        rows = self.db.query(
            "SELECT * FROM documents WHERE processed = ? ORDER BY created_at, rowid",
            (int(DocumentStatus.PENDING),),
        )
        return [Document.from_row(r) for r in rows]

    def list_unprocessed(self) -> List[Document]:
        """Pending and errored documents; errored ones are retried on each run."""
        rows = self.db.query(
            "SELECT * FROM documents WHERE processed <> ? ORDER BY created_at, rowid",
            (int(DocumentStatus.PROCESSED),),
        )
        return [Document.from_row(r) for r in rows]

    def list_by_date(self, day: str) -> List[Document]:
        rows = self.db.query(
            "SELECT * FROM documents WHERE date = ? ORDER BY created_at, rowid", (day,)
        )
        return [Document.from_row(r) for r in rows]

    def mark_processed(self, doc_id: str, note: Optional[str] = None) -> None:
        """Mark as processed. ``note`` records why extraction was skipped."""
        self._set_status(doc_id, DocumentStatus.PROCESSED, note)

    def mark_errored(self, doc_id: str, message: str) -> None:
        self._set_status(doc_id, DocumentStatus.ERRORED, message)

    def _set_status(self, doc_id: str, status: DocumentStatus, message: Optional[str]) -> None:
        self.db.execute(
            "UPDATE documents SET processed = ?, error_msg = ?, updated_at = ? WHERE id = ?",
            (int(status), message, utc_now(), doc_id),
        )

    def reset_all_pending(self) -> int:
        """Set every document back to pending with no error."""
        cursor = self.db.execute(
            "UPDATE documents SET processed = 0, error_msg = NULL, updated_at = ?", (utc_now(),)
        )
        return cursor.rowcount

    def delete(self, doc_id: str) -> None:
        """Delete a document; its entity links cascade."""
        self.db.execute("DELETE FROM documents WHERE id = ?", (doc_id,))

    def counts(self) -> DocumentCounts:
        row = self.db.query_one(
            """
            SELECT
                COUNT(*) AS total,
                COALESCE(SUM(kind = 'file'), 0) AS files,
                COALESCE(SUM(kind = 'entry'), 0) AS entries,
                COALESCE(SUM(processed = 1), 0) AS processed,
                COALESCE(SUM(processed = 0), 0) AS pending,
                COALESCE(SUM(processed = 2), 0) AS errored
            FROM documents
            """
        )
        return DocumentCounts(**{k: row[k] for k in row.keys()})
