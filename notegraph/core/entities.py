"""
EntityStore - read side of the entity graph.

Lookups by id or name, full-text search over names and aliases with an
approximate fallback, one-hop neighbours and the documents that mention an
entity. Writes to entities go through EntityResolver.
"""

import json
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from notegraph.core.db import GraphDatabase, escape_fts_query
from notegraph.matching.fuzzy import Scorer, SequenceMatcherScorer


FUZZY_SEARCH_MIN_SCORE = 0.6


@dataclass
class Entity:
    """A row of the entities table."""

    id: str
    name: str
    type: str
    aliases: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Entity":
        return cls(
            id=row["id"],
            name=row["name"],
            type=row["type"],
            aliases=json.loads(row["aliases"] or "[]"),
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass
class RelatedEntity:
    """A one-hop neighbour of an entity."""

    entity: Entity
    type: str
    direction: str  # "outgoing" | "incoming"

    @property
    def arrow(self) -> str:
        return "→" if self.direction == "outgoing" else "←"


@dataclass
class EntityDocument:
    """A document that mentions an entity, with the recorded mention."""

    document_id: str
    kind: str
    title: Optional[str]
    file_path: Optional[str]
    date: Optional[str]
    mention: Optional[str]
    text: str


class EntityStore:
    """Queries over entities and their neighbourhood."""

    def __init__(self, db: GraphDatabase, scorer: Optional[Scorer] = None):
        self.db = db
        self.scorer = scorer or SequenceMatcherScorer()

    def get(self, entity_id: str) -> Optional[Entity]:
        row = self.db.query_one("SELECT * FROM entities WHERE id = ?", (entity_id,))
        return Entity.from_row(row) if row else None

    def get_by_name_or_id(self, query: str) -> Optional[Entity]:
        """Exact id first, then case-insensitive name."""
        entity = self.get(query)
        if entity:
            return entity
        row = self.db.query_one(
            "SELECT * FROM entities WHERE LOWER(name) = LOWER(?) ORDER BY created_at LIMIT 1",
            (query,),
        )
        return Entity.from_row(row) if row else None

    def list_all(self) -> List[Entity]:
        rows = self.db.query("SELECT * FROM entities ORDER BY name")
        return [Entity.from_row(r) for r in rows]

    def list_by_type(self, entity_type: str) -> List[Entity]:
        rows = self.db.query(
            "SELECT * FROM entities WHERE type = ? ORDER BY created_at, rowid", (entity_type,)
        )
        return [Entity.from_row(r) for r in rows]

    def known_entities(self, limit: int = 200) -> List[Dict[str, str]]:
        """Name/type pairs used to seed extraction prompts."""
        rows = self.db.query(
            "SELECT name, type FROM entities ORDER BY name LIMIT ?", (limit,)
        )
        return [{"name": r["name"], "type": r["type"]} for r in rows]

    def search(self, query: str, limit: int = 20) -> List[Entity]:
        """Full-text search over names and aliases.

        Falls back to approximate name scoring over every entity when the
        full-text index finds nothing.
        """
        results = self._fts_entities(query, limit)
        if results:
            return results
        return self._fuzzy_entities(query, limit)

    def _fts_entities(self, query: str, limit: int) -> List[Entity]:
        fts_query = escape_fts_query(query)
        if not fts_query:
            return []
        try:
            rows = self.db.query(
                """
                SELECT e.* FROM entities e
                JOIN entities_fts f ON e.rowid = f.rowid
                WHERE entities_fts MATCH ?
                ORDER BY rank
                LIMIT ?
                """,
                (fts_query, limit),
            )
        except sqlite3.OperationalError:
            return []
        return [Entity.from_row(r) for r in rows]

    def _fuzzy_entities(self, query: str, limit: int) -> List[Entity]:
        if not query.strip():
            return []
        scored = []
        for entity in self.list_all():
            score = self.scorer.score(query, entity.name)
            if score >= FUZZY_SEARCH_MIN_SCORE:
                scored.append((score, entity))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [entity for _, entity in scored[:limit]]

    def search_by_documents(self, query: str, limit: int = 20) -> List[Entity]:
        """Entities linked to documents whose title or text match the query."""
        fts_query = escape_fts_query(query)
        if not fts_query:
            return []
        try:
            rows = self.db.query(
                """
                SELECT DISTINCT e.* FROM entities e
                JOIN document_entities de ON e.id = de.entity_id
                JOIN documents d ON d.id = de.document_id
                JOIN documents_fts f ON d.rowid = f.rowid
                WHERE documents_fts MATCH ?
                LIMIT ?
                """,
                (fts_query, limit),
            )
        except sqlite3.OperationalError:
            return []
        return [Entity.from_row(r) for r in rows]

    def related(self, entity_id: str) -> List[RelatedEntity]:
        """One-hop neighbours: outgoing edges first, then incoming."""
        outgoing = self.db.query(
            """
            SELECT e.*, r.type AS rel_type FROM entities e
            JOIN relationships r ON e.id = r.target_id
            WHERE r.source_id = ?
            ORDER BY r.created_at, r.rowid
            """,
            (entity_id,),
        )
        incoming = self.db.query(
            """
            SELECT e.*, r.type AS rel_type FROM entities e
            JOIN relationships r ON e.id = r.source_id
            WHERE r.target_id = ?
            ORDER BY r.created_at, r.rowid
            """,
            (entity_id,),
        )
        return [
            RelatedEntity(Entity.from_row(r), r["rel_type"], "outgoing") for r in outgoing
        ] + [
            RelatedEntity(Entity.from_row(r), r["rel_type"], "incoming") for r in incoming
        ]

    def documents_for(self, entity_id: str) -> List[EntityDocument]:
        """Documents mentioning an entity, newest date first."""
        rows = self.db.query(
            """
            SELECT d.id AS document_id, d.kind, d.title, d.file_path, d.date,
                   de.mention, COALESCE(d.content, d.extracted_text, '') AS text
            FROM documents d
            JOIN document_entities de ON d.id = de.document_id
            WHERE de.entity_id = ?
            ORDER BY d.date IS NULL, d.date DESC, d.created_at DESC
            """,
            (entity_id,),
        )
        return [
            EntityDocument(
                document_id=r["document_id"],
                kind=r["kind"],
                title=r["title"],
                file_path=r["file_path"],
                date=r["date"],
                mention=r["mention"],
                text=r["text"],
            )
            for r in rows
        ]

    def for_document(self, document_id: str) -> List[Entity]:
        rows = self.db.query(
            """
            SELECT e.* FROM entities e
            JOIN document_entities de ON e.id = de.entity_id
            WHERE de.document_id = ?
            ORDER BY e.type, e.name
            """,
            (document_id,),
        )
        return [Entity.from_row(r) for r in rows]

    def counts_by_type(self) -> Dict[str, int]:
        rows = self.db.query(
            "SELECT type, COUNT(*) AS count FROM entities GROUP BY type ORDER BY count DESC, type"
        )
        return {r["type"]: r["count"] for r in rows}

    def count(self) -> int:
        return self.db.scalar("SELECT COUNT(*) FROM entities")
