"""
Entity extraction: prompt the model, then validate every record.

Model output is untyped; each record must pass ``EntityRecord`` before it
is used. Invalid records are dropped, never raised.
"""

from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from notegraph.audit import log_audit
from notegraph.llm.client import LLMClient
from notegraph.llm.parse import parse_json_array

ENTITY_TYPES = (
    "person",
    "property",
    "expense",
    "bill",
    "organization",
    "location",
    "date",
    "concept",
)

ENTITY_EXTRACTION_SYSTEM_PROMPT = """You are an entity extraction system. Given a text, extract all notable entities.
Return a JSON array. Each element must have:
- "name": canonical name of the entity (e.g. "123 Main St", not "the house")
- "type": one of: person, property, expense, bill, organization, location, date, concept
- "mentions": array of exact text spans that refer to this entity

Entity type guide:
- person: people's names, nicknames, roles (e.g. "John Doe", "Mom", "Dr. Smith", "the landlord")
- property: physical properties, addresses, real estate (e.g. "123 Main St", "the apartment")
- expense: monetary amounts (e.g. "$150", "$2,500/month")
- bill: types of bills/payments (e.g. "utility bill", "insurance", "mortgage payment")
- organization: companies, agencies, institutions (e.g. "Acme Corp", "City Water Dept")
- location: places, cities, areas (e.g. "San Francisco", "downtown")
- date: specific dates or time references (e.g. "January 15", "Q1 2024")
- concept: projects, events, abstract ideas (e.g. "kitchen renovation", "project launch")

Rules:
- Extract ALL entities, even small ones. Better to over-extract than miss something.
- Use canonical/normalized names (e.g. "John Doe" not "john").
- Monetary amounts: include the $ sign and number (e.g. "$150").
- If the text contains [[wiki-links]], the text inside [[ ]] is almost certainly an entity; extract it.
- Do NOT extract generic words that aren't specific entities (e.g. don't extract "today" unless it refers to a specific date).
- Return ONLY the JSON array, no other text."""


class EntityRecord(BaseModel):
    """One entity as returned by the model, after validation."""

    name: str
    type: str
    mentions: List[str] = []

    @model_validator(mode="before")
    @classmethod
    def default_mentions(cls, data: Any) -> Any:
        if isinstance(data, dict):
            mentions = data.get("mentions")
            data = dict(data)
            if isinstance(mentions, list):
                data["mentions"] = [m for m in mentions if isinstance(m, str)]
            else:
                data["mentions"] = [data.get("name")] if isinstance(data.get("name"), str) else []
        return data

    @field_validator("name", "type", mode="before")
    @classmethod
    def non_empty_string(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("must be a non-empty string")
        return v.strip()

    @field_validator("type")
    @classmethod
    def lowercase_type(cls, v: str) -> str:
        return v.lower()


def build_entity_prompt(text: str, known_entities: Sequence[Dict[str, str]] = (), limit: int = 200) -> str:
    prompt = f"Extract entities from this text:\n\n{text}"
    if known_entities:
        entity_list = ", ".join(f"{e['name']} ({e['type']})" for e in list(known_entities)[:limit])
        prompt += f"\n\nKnown entities (reuse these names if they match):\n{entity_list}"
    return prompt


def validate_entities(raw: List[Any]) -> List[EntityRecord]:
    """Keep records that validate; drop the rest."""
    records = []
    dropped = 0
    for item in raw:
        try:
            records.append(EntityRecord.model_validate(item))
        except ValidationError:
            dropped += 1
    if dropped:
        log_audit("llm", "parse_failed", {"kind": "entity", "dropped": dropped})
    return records


def extract_entities(
    client: LLMClient,
    text: str,
    known_entities: Sequence[Dict[str, str]] = (),
    model: Optional[str] = None,
    known_limit: int = 200,
) -> List[EntityRecord]:
    """Ask the model for the entities in ``text``.

    Args:
        client: LLM client
        text: Document text (already truncated)
        known_entities: ``{"name", "type"}`` pairs the model may reuse
        model: Model override
        known_limit: Max known entities listed in the prompt

    Returns:
        Validated entity records
    """
    response = client.complete(
        [
            {"role": "system", "content": ENTITY_EXTRACTION_SYSTEM_PROMPT},
            {"role": "user", "content": build_entity_prompt(text, known_entities, known_limit)},
        ],
        model,
    )
    return validate_entities(parse_json_array(response))
