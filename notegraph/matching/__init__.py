"""Pluggable matching strategies for entity resolution."""

from notegraph.matching.base import (
    EntityIndexEntry,
    MatchCandidate,
    MatchStrategy,
    get_strategy,
    list_strategies,
    load_strategies,
    register_strategy,
)

# Import strategies to register them
from notegraph.matching.alias import AliasMatchStrategy
from notegraph.matching.fuzzy import (
    FuzzyNameMatchStrategy,
    Scorer,
    SequenceMatcherScorer,
    normalize_name,
)

__all__ = [
    "MatchStrategy",
    "MatchCandidate",
    "EntityIndexEntry",
    "register_strategy",
    "get_strategy",
    "list_strategies",
    "load_strategies",
    "AliasMatchStrategy",
    "FuzzyNameMatchStrategy",
    "Scorer",
    "SequenceMatcherScorer",
    "normalize_name",
]
