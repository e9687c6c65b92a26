"""
EntityResolver - find-or-create for entities named by the extractor.

Matching cascade, first hit wins, always within one entity type:

1. exact: case-insensitive name equality
2. alias: case-insensitive equality with any name or stored alias
3. fuzzy: approximate name similarity within ``max_distance``
4. create: a new entity whose aliases are the mentions

Matches merge the incoming name and mentions into the alias list. The
whole cascade runs inside one write transaction, which holds the database
lock, so two workers resolving the same unseen name cannot both create it.
"""

import json
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from notegraph.audit import log_audit
from notegraph.core.db import GraphDatabase, new_id, utc_now
from notegraph.matching import EntityIndexEntry, MatchStrategy, load_strategies


MAX_ALIASES = 50
DEFAULT_STRATEGIES = ["alias", "fuzzy_name"]


@dataclass
class ResolveResult:
    entity_id: str
    created: bool
    match_type: str  # "exact" | "alias" | "fuzzy_name" | "created"


def merge_aliases(
    canonical: str,
    current: List[str],
    incoming: Iterable[str],
    max_aliases: int = MAX_ALIASES,
) -> List[str]:
    """Append unseen aliases, case-insensitively, keeping order.

    The canonical name never becomes an alias of itself and the list never
    grows past ``max_aliases``.
    """
    merged = list(current)
    seen = {a.lower() for a in merged}
    seen.add(canonical.lower())

    for alias in incoming:
        if len(merged) >= max_aliases:
            break
        if not isinstance(alias, str):
            continue
        alias = alias.strip()
        if alias and alias.lower() not in seen:
            merged.append(alias)
            seen.add(alias.lower())

    return merged


class EntityResolver:
    """Resolve (name, type, mentions) to a single entity id."""

    def __init__(
        self,
        db: GraphDatabase,
        strategies: Optional[List[MatchStrategy]] = None,
        max_distance: float = 0.2,
        max_aliases: int = MAX_ALIASES,
    ):
        """
        Args:
            db: Open graph database
            strategies: Matching tiers run after the exact lookup
                        (default: alias, then fuzzy name; an empty list
                        leaves exact matching only)
            max_distance: Fuzzy acceptance threshold (1 - similarity)
            max_aliases: Alias cap per entity
        """
        self.db = db
        if strategies is None:
            strategies = load_strategies(DEFAULT_STRATEGIES, max_distance=max_distance)
        self.strategies = strategies
        self.max_aliases = max_aliases

    def resolve(
        self, name: str, entity_type: str, mentions: Iterable[str] = ()
    ) -> ResolveResult:
        """Find the entity for a name within a type, or create it.

        Raises:
            ValueError: name or type is empty
        """
        name = (name or "").strip()
        entity_type = (entity_type or "").strip()
        if not name:
            raise ValueError("Entity name must not be empty")
        if not entity_type:
            raise ValueError("Entity type must not be empty")
        mentions = [m for m in mentions if isinstance(m, str)]

        with self.db.transaction() as conn:
            row = conn.execute(
                """
                SELECT id, name, aliases FROM entities
                WHERE LOWER(name) = LOWER(?) AND type = ?
                ORDER BY created_at, rowid LIMIT 1
                """,
                (name, entity_type),
            ).fetchone()
            if row:
                self._add_aliases(conn, row["id"], row["name"], row["aliases"], [name, *mentions])
                result = ResolveResult(row["id"], False, "exact")
            else:
                result = self._match_or_create(conn, name, entity_type, mentions)

        log_audit(
            "resolve",
            "create" if result.created else "match",
            {"name": name, "type": entity_type, "entity_id": result.entity_id, "match_type": result.match_type},
        )
        return result

    def resolve_id(self, name: str, entity_type: str, mentions: Iterable[str] = ()) -> str:
        return self.resolve(name, entity_type, mentions).entity_id

    def _match_or_create(self, conn, name: str, entity_type: str, mentions: List[str]) -> ResolveResult:
        rows = conn.execute(
            "SELECT id, name, aliases FROM entities WHERE type = ? ORDER BY created_at, rowid",
            (entity_type,),
        ).fetchall()
        index: Dict[str, EntityIndexEntry] = {
            r["id"]: EntityIndexEntry(
                id=r["id"],
                name=r["name"],
                entity_type=entity_type,
                aliases=json.loads(r["aliases"] or "[]"),
            )
            for r in rows
        }

        if index:
            for strategy in self.strategies:
                candidates = strategy.find_matches(name, index)
                if candidates:
                    best = index[candidates[0].candidate_id]
                    self._add_aliases(
                        conn, best.id, best.name, json.dumps(best.aliases), [name, *mentions]
                    )
                    return ResolveResult(best.id, False, strategy.name)

        entity_id = new_id()
        now = utc_now()
        aliases = merge_aliases(name, [], mentions, self.max_aliases)
        conn.execute(
            """
            INSERT INTO entities (id, name, type, aliases, metadata, created_at, updated_at)
            VALUES (?, ?, ?, ?, '{}', ?, ?)
            """,
            (entity_id, name, entity_type, json.dumps(aliases), now, now),
        )
        return ResolveResult(entity_id, True, "created")

    def _add_aliases(self, conn, entity_id: str, canonical: str, aliases_json: str, incoming: List[str]) -> None:
        current = json.loads(aliases_json or "[]")
        merged = merge_aliases(canonical, current, incoming, self.max_aliases)
        if merged == current:
            return
        conn.execute(
            "UPDATE entities SET aliases = ?, updated_at = ? WHERE id = ?",
            (json.dumps(merged), utc_now(), entity_id),
        )
        log_audit("resolve", "aliases", {"entity_id": entity_id, "added": merged[len(current):]})
