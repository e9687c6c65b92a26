"""Tests for entity/relationship extraction and the LLM client."""

from types import SimpleNamespace

import httpx
import openai
import pytest

from notegraph.core.config import LLMConfig
from notegraph.llm.client import LLMClient, LLMConnectionError, LLMError
from notegraph.llm.extract import EntityRecord, build_entity_prompt, extract_entities
from notegraph.llm.relate import (
    RELATIONSHIP_EXTRACTION_SYSTEM_PROMPT,
    apply_type_policy,
    extract_relationships,
    to_snake_case,
)

RESOLVED = [
    {"name": "John Doe", "type": "person", "id": "e1"},
    {"name": "123 Main St", "type": "property", "id": "e2"},
    {"name": "Acme Corp", "type": "organization", "id": "e3"},
]


# ============================================================================
# Entities
# ============================================================================


class TestEntityRecord:
    def test_normalizes_fields(self):
        record = EntityRecord.model_validate({"name": " John Doe ", "type": " Person ", "mentions": ["John", 3]})
        assert (record.name, record.type, record.mentions) == ("John Doe", "person", ["John"])

    def test_missing_mentions_default_to_name(self):
        assert EntityRecord.model_validate({"name": "Acme", "type": "organization"}).mentions == ["Acme"]
        assert EntityRecord.model_validate(
            {"name": "Acme", "type": "organization", "mentions": "Acme"}
        ).mentions == ["Acme"]


class TestExtractEntities:
    def test_valid_records_survive(self, llm):
        llm.replies["entities"] = (
            'Sure!\n```json\n[{"name": "John Doe", "type": "person", "mentions": ["John Doe"]},'
            ' {"name": "", "type": "person"}, {"name": "Acme"}, {"type": "bill"},'
            ' "stray", {"name": "123 Main St", "type": "property"}]\n```'
        )
        records = extract_entities(llm, "John Doe lives at 123 Main St.")
        assert [(r.name, r.type) for r in records] == [("John Doe", "person"), ("123 Main St", "property")]

    def test_garbage_output_is_empty(self, llm):
        llm.replies["entities"] = "I could not find anything."
        assert extract_entities(llm, "some text here") == []

    def test_known_entities_in_prompt(self, llm):
        known = [{"name": f"Entity {i}", "type": "concept"} for i in range(250)]
        extract_entities(llm, "text body", known, model="small", known_limit=200)
        call = llm.calls_of("entities")[0]
        assert call["model"] == "small"
        assert "Entity 199 (concept)" in call["user"]
        assert "Entity 200 (concept)" not in call["user"]

    def test_prompt_without_known_entities(self):
        assert "Known entities" not in build_entity_prompt("text")


# ============================================================================
# Relationships
# ============================================================================


class TestExtractRelationships:
    def test_needs_two_entities(self, llm):
        assert extract_relationships(llm, "text", RESOLVED[:1]) == []
        assert llm.calls == []

    def test_filters_records(self, llm):
        llm.replies["relationships"] = [
            {"source": "john doe", "target": "123 Main St", "type": "lives at"},
            {"source": "John Doe", "target": "123 main st", "type": "owns"},
            {"source": "John Doe", "target": "John Doe", "type": "related_to"},
            {"source": "John Doe", "target": "Unknown Person", "type": "knows"},
            {"source": "Acme Corp", "target": "John Doe", "type": "employs"},
            {"source": "Acme Corp", "type": "owns"},
        ]
        records = extract_relationships(llm, "text", RESOLVED)
        assert [(r.source, r.target, r.type) for r in records] == [
            ("john doe", "123 Main St", "lives_at"),
            ("Acme Corp", "John Doe", "related_to"),
        ]
        assert llm.calls_of("relationships")[0]["messages"][0]["content"] == RELATIONSHIP_EXTRACTION_SYSTEM_PROMPT

    def test_open_policy_keeps_types(self, llm):
        llm.replies["relationships"] = [{"source": "Acme Corp", "target": "John Doe", "type": "Employs"}]
        records = extract_relationships(llm, "text", RESOLVED, policy="open")
        assert records[0].type == "employs"

    def test_type_helpers(self):
        assert to_snake_case(" Lives-At  Home ") == "lives_at_home"
        assert apply_type_policy("lives_at") == "lives_at"
        assert apply_type_policy("married_to") == "related_to"
        assert apply_type_policy("married_to", "open") == "married_to"


# ============================================================================
# LLMClient
# ============================================================================


def _fake_openai(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def _response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestLLMClient:
    def test_complete(self):
        seen = {}

        def create(**kwargs):
            seen.update(kwargs)
            return _response("hello")

        client = LLMClient(LLMConfig(model="mistral"))
        client._client = _fake_openai(create)
        assert client.complete([{"role": "user", "content": "hi"}]) == "hello"
        assert seen["model"] == "mistral"
        assert seen["temperature"] == 0.1

    def test_empty_completion_is_an_error(self):
        client = LLMClient(LLMConfig())
        client._client = _fake_openai(lambda **kwargs: _response(""))
        with pytest.raises(LLMError):
            client.complete([{"role": "user", "content": "hi"}])

    def test_connection_error(self):
        def create(**kwargs):
            raise openai.APIConnectionError(request=httpx.Request("POST", "http://localhost:1/v1"))

        client = LLMClient(LLMConfig(base_url="http://localhost:1/v1"))
        client._client = _fake_openai(create)
        with pytest.raises(LLMConnectionError, match="Cannot connect to LLM at http://localhost:1/v1"):
            client.complete([{"role": "user", "content": "hi"}])

    def test_builds_openai_client(self):
        client = LLMClient(LLMConfig(base_url="http://localhost:11434/v1", timeout=5))
        assert isinstance(client.client, openai.OpenAI)
        assert str(client.client.base_url).startswith("http://localhost:11434/v1")

    def test_resolve_model(self):
        config = LLMConfig(model="base", ask_model="big")
        assert config.resolve_model("ask") == "big"
        assert config.resolve_model("extraction") == "base"
