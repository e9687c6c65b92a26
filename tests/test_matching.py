"""Tests for notegraph.matching strategies."""

import pytest

from notegraph.matching import (
    AliasMatchStrategy,
    EntityIndexEntry,
    FuzzyNameMatchStrategy,
    MatchCandidate,
    Scorer,
    SequenceMatcherScorer,
    get_strategy,
    list_strategies,
    load_strategies,
    normalize_name,
)


def _make_index(*entries):
    """Build an index dict from (id, name, aliases) tuples."""
    return {
        entity_id: EntityIndexEntry(id=entity_id, name=name, entity_type="person", aliases=list(aliases))
        for entity_id, name, aliases in entries
    }


# ============================================================================
# MatchCandidate
# ============================================================================


class TestMatchCandidate:
    def test_valid_score(self):
        mc = MatchCandidate("id", "name", "alias", 0.5)
        assert mc.match_score == 0.5

    def test_invalid_score_raises(self):
        with pytest.raises(ValueError):
            MatchCandidate("id", "name", "alias", 1.5)
        with pytest.raises(ValueError):
            MatchCandidate("id", "name", "alias", -0.1)


# ============================================================================
# Strategy Registry
# ============================================================================


class TestStrategyRegistry:
    def test_builtin_strategies_registered(self):
        names = list_strategies()
        assert "alias" in names
        assert "fuzzy_name" in names

    def test_get_strategy(self):
        assert get_strategy("alias") is AliasMatchStrategy

    def test_get_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown strategy"):
            get_strategy("nonexistent")

    def test_load_strategies_passes_kwargs(self):
        strategies = load_strategies(["alias", "fuzzy_name"], max_distance=0.1)
        assert [s.name for s in strategies] == ["alias", "fuzzy_name"]
        assert strategies[1].score_range == pytest.approx((0.9, 1.0))


# ============================================================================
# Normalization and scoring
# ============================================================================


class TestScorer:
    def test_normalize(self):
        assert normalize_name("  José_Díaz, Jr. ") == "jose diaz jr"

    def test_identical_after_normalization(self):
        assert SequenceMatcherScorer().score("John Doe", "john  doe.") == 1.0

    def test_empty_scores_zero(self):
        assert SequenceMatcherScorer().score("", "John") == 0.0
        assert SequenceMatcherScorer().score("!!!", "John") == 0.0

    def test_abbreviated_name_is_close(self):
        assert 1 - SequenceMatcherScorer().score("John D.", "John Doe") <= 0.2

    def test_similar_length_different_name_is_far(self):
        assert 1 - SequenceMatcherScorer().score("Jane Doe", "John Doe") > 0.2

    def test_non_latin_names_keep_their_letters(self):
        assert normalize_name("Пётр Иванов!") == "петр иванов"
        assert normalize_name("東京都, 庁") == "東京都 庁"
        assert SequenceMatcherScorer().score("東京", "東京都") == pytest.approx(0.8)
        assert 1 - SequenceMatcherScorer().score("Иван Петров", "Иван Петрова") <= 0.2


# ============================================================================
# AliasMatchStrategy
# ============================================================================


class TestAliasMatchStrategy:
    def test_matches_alias_case_insensitively(self):
        index = _make_index(("e1", "Robert Smith", ["Bob", "Bobby"]))
        matches = AliasMatchStrategy().find_matches("bobby", index)
        assert len(matches) == 1
        assert matches[0].candidate_id == "e1"
        assert matches[0].match_score == 1.0
        assert matches[0].match_details["source"] == "entity_aliases"

    def test_matches_name(self):
        index = _make_index(("e1", "Acme Corp", []))
        matches = AliasMatchStrategy().find_matches("ACME CORP", index)
        assert matches[0].match_details["source"] == "exact_name"

    def test_no_partial_matches(self):
        index = _make_index(("e1", "Robert Smith", ["Bob"]))
        assert AliasMatchStrategy().find_matches("Bo", index) == []

    def test_empty_name(self):
        index = _make_index(("e1", "Robert Smith", []))
        assert AliasMatchStrategy().find_matches("", index) == []


# ============================================================================
# FuzzyNameMatchStrategy
# ============================================================================


class TestFuzzyNameMatchStrategy:
    def test_close_variant_matches(self):
        index = _make_index(("e1", "John Doe", []))
        matches = FuzzyNameMatchStrategy(max_distance=0.2).find_matches("John D.", index)
        assert [m.candidate_id for m in matches] == ["e1"]
        assert matches[0].match_type == "fuzzy_name"

    def test_different_name_rejected(self):
        index = _make_index(("e1", "John Doe", []))
        assert FuzzyNameMatchStrategy(max_distance=0.2).find_matches("Jane Doe", index) == []

    def test_best_candidate_first(self):
        index = _make_index(("e1", "Jon Doe", []), ("e2", "John Doe", []))
        matches = FuzzyNameMatchStrategy(max_distance=0.3).find_matches("John Doe", index)
        assert matches[0].candidate_id == "e2"

    def test_pluggable_scorer(self):
        class PrefixScorer(Scorer):
            def score(self, a, b):
                return 1.0 if b.lower().startswith(a.lower()) else 0.0

        index = _make_index(("e1", "Johnathan Doe", []))
        strategy = FuzzyNameMatchStrategy(max_distance=0.0, scorer=PrefixScorer())
        assert strategy.find_matches("john", index)[0].candidate_id == "e1"
        assert strategy.find_matches("doe", index) == []
