"""
RelationshipStore - deduplicated directed typed edges between entities.
"""

import json
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from notegraph.audit import log_audit
from notegraph.core.db import GraphDatabase, new_id, utc_now
from notegraph.core.entities import EntityStore, RelatedEntity


@dataclass
class Relationship:
    id: str
    source_id: str
    target_id: str
    type: str
    properties: Dict[str, Any] = field(default_factory=dict)
    created_at: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Relationship":
        return cls(
            id=row["id"],
            source_id=row["source_id"],
            target_id=row["target_id"],
            type=row["type"],
            properties=json.loads(row["properties"] or "{}"),
            created_at=row["created_at"],
        )


class RelationshipStore:
    """At most one edge per (source, target, type); no self-loops."""

    def __init__(self, db: GraphDatabase):
        self.db = db

    def find_or_create(
        self,
        source_id: str,
        target_id: str,
        rel_type: str,
        properties: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Return the existing edge id or insert a new edge.

        Properties passed for an edge that already exists are discarded.

        Raises:
            ValueError: source and target are the same entity
        """
        if source_id == target_id:
            raise ValueError(f"Self-relationship not allowed: {source_id}")

        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT id FROM relationships WHERE source_id = ? AND target_id = ? AND type = ?",
                (source_id, target_id, rel_type),
            ).fetchone()
            if row:
                log_audit("relationship", "existing", {"id": row["id"], "type": rel_type})
                return row["id"]

            rel_id = new_id()
            conn.execute(
                """
                INSERT INTO relationships (id, source_id, target_id, type, properties, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (rel_id, source_id, target_id, rel_type, json.dumps(properties or {}), utc_now()),
            )

        log_audit(
            "relationship",
            "create",
            {"id": rel_id, "source": source_id, "target": target_id, "type": rel_type},
        )
        return rel_id

    def get(self, rel_id: str) -> Optional[Relationship]:
        row = self.db.query_one("SELECT * FROM relationships WHERE id = ?", (rel_id,))
        return Relationship.from_row(row) if row else None

    def for_entity(self, entity_id: str) -> List[Relationship]:
        """Edges touching an entity in either direction."""
        rows = self.db.query(
            """
            SELECT * FROM relationships
            WHERE source_id = ? OR target_id = ?
            ORDER BY created_at, rowid
            """,
            (entity_id, entity_id),
        )
        return [Relationship.from_row(r) for r in rows]

    def related(self, entity_id: str) -> List[RelatedEntity]:
        return EntityStore(self.db).related(entity_id)

    def count(self) -> int:
        return self.db.scalar("SELECT COUNT(*) FROM relationships")
