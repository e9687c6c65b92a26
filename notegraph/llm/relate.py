"""
Relationship extraction between already resolved entities.

Records are validated with ``RelationshipRecord`` and filtered: both ends
must be resolved names, no self-pairs, one record per ordered pair. The
type policy decides what happens to types outside the allowed list.
"""

import re
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ValidationError, field_validator

from notegraph.audit import log_audit
from notegraph.llm.client import LLMClient
from notegraph.llm.parse import parse_json_array

ALLOWED_RELATIONSHIP_TYPES = (
    "payment_for",
    "bill_for",
    "lives_at",
    "tenant_of",
    "works_at",
    "employee_of",
    "located_in",
    "owns",
    "visited",
    "part_of",
    "mentioned_with",
    "related_to",
)

FALLBACK_RELATIONSHIP_TYPE = "related_to"

RELATIONSHIP_EXTRACTION_SYSTEM_PROMPT = """You are a relationship extraction system. Given a text and a list of entities found in it, extract relationships between those entities.
Return a JSON array. Each element must have:
- "source": name of the source entity (must be from the provided entity list)
- "target": name of the target entity (must be from the provided entity list)
- "type": one of the allowed types listed below

Allowed relationship types (use ONLY these):
- payment_for: an expense/amount is a payment for something
- bill_for: a bill is associated with a property/service
- lives_at: a person lives at a property
- tenant_of: a person rents a property
- works_at: a person works at an organization
- employee_of: a person is employed by an organization
- located_in: something is in a location
- owns: a person owns a property/thing
- visited: a person went to a place or organization
- part_of: something is part of something else
- mentioned_with: two entities appear together in context but no specific relationship
- related_to: generic fallback when nothing else fits

Rules:
- Only use entity names from the provided list; do not invent new entities.
- Only use relationship types from the allowed list above; do not invent new types.
- Each relationship should be directional: source -> target.
- Create only ONE relationship per entity pair. Pick the most specific type.
- Return ONLY the JSON array, no other text.
- If no relationships exist, return an empty array: []"""

OPEN_RELATIONSHIP_SYSTEM_PROMPT = """You are a relationship extraction system. Given a text and a list of entities found in it, extract relationships between those entities.
Return a JSON array. Each element must have:
- "source": name of the source entity (must be from the provided entity list)
- "target": name of the target entity (must be from the provided entity list)
- "type": a short snake_case verb phrase describing the relationship (e.g. "lives_at", "paid_for", "works_with")

Rules:
- Only use entity names from the provided list; do not invent new entities.
- Each relationship should be directional: source -> target.
- Create only ONE relationship per entity pair. Pick the most specific type.
- Return ONLY the JSON array, no other text.
- If no relationships exist, return an empty array: []"""


def to_snake_case(value: str) -> str:
    value = re.sub(r"[\s\-]+", "_", value.strip().lower())
    value = re.sub(r"[^a-z0-9_]", "", value)
    return re.sub(r"_+", "_", value).strip("_")


class RelationshipRecord(BaseModel):
    """One relationship as returned by the model, after validation."""

    source: str
    target: str
    type: str

    @field_validator("source", "target", "type", mode="before")
    @classmethod
    def non_empty_string(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("must be a non-empty string")
        return v.strip()

    @field_validator("type")
    @classmethod
    def snake_case_type(cls, v: str) -> str:
        v = to_snake_case(v)
        if not v:
            raise ValueError("type has no usable characters")
        return v


def apply_type_policy(rel_type: str, policy: str = "constrained") -> str:
    """Coerce unknown types to the fallback under the constrained policy."""
    if policy == "open" or rel_type in ALLOWED_RELATIONSHIP_TYPES:
        return rel_type
    return FALLBACK_RELATIONSHIP_TYPE


def build_relationship_prompt(text: str, entities: Sequence[Dict[str, str]]) -> str:
    entity_list = "\n".join(f"{e['name']} ({e['type']})" for e in entities)
    return (
        f"Text:\n{text}\n\nEntities found:\n{entity_list}\n\n"
        "Extract relationships between these entities."
    )


def filter_relationships(
    raw: List[Any],
    entities: Sequence[Dict[str, str]],
    policy: str = "constrained",
) -> List[RelationshipRecord]:
    """Validate records and drop the ones that cannot become edges."""
    names = {e["name"].lower() for e in entities}
    seen_pairs = set()
    records = []
    dropped = 0

    for item in raw:
        try:
            record = RelationshipRecord.model_validate(item)
        except ValidationError:
            dropped += 1
            continue

        source, target = record.source.lower(), record.target.lower()
        if source == target or source not in names or target not in names:
            dropped += 1
            continue
        if (source, target) in seen_pairs:
            dropped += 1
            continue

        seen_pairs.add((source, target))
        records.append(record.model_copy(update={"type": apply_type_policy(record.type, policy)}))

    if dropped:
        log_audit("relationship", "dropped", {"count": dropped})
    return records


def extract_relationships(
    client: LLMClient,
    text: str,
    entities: Sequence[Dict[str, str]],
    model: Optional[str] = None,
    policy: str = "constrained",
) -> List[RelationshipRecord]:
    """Ask the model how the resolved entities relate.

    Fewer than two entities cannot form an edge, so no call is made.
    """
    if len(entities) < 2:
        return []

    system_prompt = (
        OPEN_RELATIONSHIP_SYSTEM_PROMPT if policy == "open" else RELATIONSHIP_EXTRACTION_SYSTEM_PROMPT
    )
    response = client.complete(
        [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": build_relationship_prompt(text, entities)},
        ],
        model,
    )
    return filter_relationships(parse_json_array(response), entities, policy)
