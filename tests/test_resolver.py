"""Tests for notegraph.core.resolver."""

import threading

import pytest

from notegraph.core.entities import EntityStore
from notegraph.core.resolver import MAX_ALIASES, EntityResolver, merge_aliases


@pytest.fixture
def resolver(db):
    return EntityResolver(db)


@pytest.fixture
def entities(db):
    return EntityStore(db)


# ============================================================================
# Cascade
# ============================================================================


class TestResolveCascade:
    def test_creates_new_entity(self, resolver, entities):
        result = resolver.resolve("John Doe", "person", ["John Doe", "John"])
        assert result.created
        assert result.match_type == "created"

        entity = entities.get(result.entity_id)
        assert entity.name == "John Doe"
        assert entity.type == "person"
        assert entity.aliases == ["John"]

    def test_idempotent(self, resolver):
        first = resolver.resolve_id("John Doe", "person")
        second = resolver.resolve_id("John Doe", "person")
        assert first == second

    def test_exact_match_ignores_case(self, resolver):
        created = resolver.resolve("Acme Corp", "organization")
        matched = resolver.resolve("ACME corp", "organization")
        assert matched.entity_id == created.entity_id
        assert matched.match_type == "exact"
        assert not matched.created

    def test_alias_match(self, resolver, entities):
        entity_id = resolver.resolve_id("Robert Smith", "person", ["Bob"])
        result = resolver.resolve("bob", "person")
        assert result.entity_id == entity_id
        assert result.match_type == "alias"

    def test_fuzzy_match(self, resolver, entities):
        entity_id = resolver.resolve_id("John Doe", "person")
        result = resolver.resolve("John D.", "person", ["John D."])
        assert result.entity_id == entity_id
        assert result.match_type == "fuzzy_name"
        assert "John D." in entities.get(entity_id).aliases

    def test_fuzzy_match_non_latin(self, resolver, entities):
        entity_id = resolver.resolve_id("Иван Петров", "person")
        result = resolver.resolve("Иван Петрова", "person")
        assert (result.entity_id, result.match_type) == (entity_id, "fuzzy_name")
        assert entities.get(entity_id).aliases == ["Иван Петрова"]

    def test_empty_strategy_list_keeps_exact_only(self, db):
        resolver = EntityResolver(db, strategies=[])
        entity_id = resolver.resolve_id("Robert Smith", "person", ["Bob"])
        assert resolver.resolve("robert smith", "person").entity_id == entity_id
        assert resolver.resolve("Bob", "person").created
        assert resolver.resolve("Robert Smyth", "person").created

    def test_dissimilar_name_creates(self, resolver):
        john = resolver.resolve_id("John Doe", "person")
        jane = resolver.resolve_id("Jane Doe", "person")
        assert john != jane

    def test_type_is_a_hard_partition(self, resolver, entities):
        person = resolver.resolve_id("Jordan", "person")
        location = resolver.resolve_id("Jordan", "location")
        assert person != location
        assert entities.counts_by_type() == {"location": 1, "person": 1}

    def test_fuzzy_never_crosses_types(self, resolver):
        person = resolver.resolve_id("John Doe", "person")
        other = resolver.resolve_id("John D.", "organization")
        assert other != person

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_empty_name_raises(self, resolver, name):
        with pytest.raises(ValueError):
            resolver.resolve(name, "person")

    def test_name_is_stripped(self, resolver, entities):
        entity_id = resolver.resolve_id("  Acme  ", "organization")
        assert entities.get(entity_id).name == "Acme"


# ============================================================================
# Aliases
# ============================================================================


class TestAliases:
    def test_create_drops_name_and_duplicates(self, resolver, entities):
        entity_id = resolver.resolve_id("John Doe", "person", ["john doe", "Johnny", "JOHNNY", "J."])
        assert entities.get(entity_id).aliases == ["Johnny", "J."]

    def test_empty_mentions_leave_aliases(self, resolver, entities):
        entity_id = resolver.resolve_id("John Doe", "person", ["Johnny"])
        before = entities.get(entity_id)
        resolver.resolve("John Doe", "person", [])
        after = entities.get(entity_id)
        assert after.aliases == ["Johnny"]
        assert after.updated_at == before.updated_at

    def test_match_appends_in_order(self, resolver, entities):
        entity_id = resolver.resolve_id("John Doe", "person", ["Johnny"])
        resolver.resolve("John Doe", "person", ["Mr. Doe", "johnny", "JD"])
        assert entities.get(entity_id).aliases == ["Johnny", "Mr. Doe", "JD"]

    def test_updated_at_moves_only_on_change(self, resolver, entities):
        entity_id = resolver.resolve_id("John Doe", "person")
        before = entities.get(entity_id).updated_at
        resolver.resolve("John Doe", "person", ["John Doe"])
        assert entities.get(entity_id).updated_at == before
        resolver.resolve("John Doe", "person", ["Johnny"])
        assert entities.get(entity_id).updated_at >= before
        assert entities.get(entity_id).aliases == ["Johnny"]

    def test_cap_at_fifty(self, resolver, entities):
        entity_id = resolver.resolve_id("John Doe", "person", [f"alias {i}" for i in range(40)])
        resolver.resolve("John Doe", "person", [f"other {i}" for i in range(40)])
        aliases = entities.get(entity_id).aliases
        assert len(aliases) == MAX_ALIASES
        assert aliases[:40] == [f"alias {i}" for i in range(40)]
        assert len({a.lower() for a in aliases}) == len(aliases)

    def test_alias_update_reaches_search_index(self, resolver, entities):
        entity_id = resolver.resolve_id("Robert Smith", "person")
        resolver.resolve("Robert Smith", "person", ["Bobcat"])
        assert [e.id for e in entities.search("Bobcat")] == [entity_id]

    def test_merge_aliases_helper(self):
        merged = merge_aliases("Acme", ["A Corp"], ["acme", "a corp", "", "  Acme Inc ", 3])
        assert merged == ["A Corp", "Acme Inc"]


# ============================================================================
# Concurrency
# ============================================================================


class TestConcurrentResolution:
    def test_racing_workers_create_one_entity(self, resolver, entities):
        barrier = threading.Barrier(8)
        results = []

        def worker():
            barrier.wait()
            results.append(resolver.resolve_id("Acme Corp", "organization", ["Acme"]))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(results)) == 1
        assert entities.count() == 1
