"""Document-entity links: which documents mention which entities."""

from typing import Optional

from notegraph.core.db import GraphDatabase


class DocumentLinks:
    """Owns the document_entities table."""

    def __init__(self, db: GraphDatabase):
        self.db = db

    def link(
        self,
        document_id: str,
        entity_id: str,
        mention: Optional[str] = None,
        confidence: float = 1.0,
    ) -> None:
        """Record a mention. Re-linking the same pair updates the link instead of duplicating it."""
        self.db.execute(
            """
            INSERT INTO document_entities (document_id, entity_id, mention, confidence)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (document_id, entity_id)
            DO UPDATE SET
                mention = COALESCE(excluded.mention, document_entities.mention),
                confidence = excluded.confidence
            """,
            (document_id, entity_id, mention, confidence),
        )

    def clear_document(self, document_id: str) -> int:
        cursor = self.db.execute(
            "DELETE FROM document_entities WHERE document_id = ?", (document_id,)
        )
        return cursor.rowcount

    def clear_all(self) -> int:
        cursor = self.db.execute("DELETE FROM document_entities")
        return cursor.rowcount

    def count(self, document_id: Optional[str] = None) -> int:
        if document_id is None:
            return self.db.scalar("SELECT COUNT(*) FROM document_entities")
        return self.db.scalar(
            "SELECT COUNT(*) FROM document_entities WHERE document_id = ?", (document_id,)
        )
