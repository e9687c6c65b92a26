"""
Base classes for matching strategies.

Matching strategies find candidate matches for an entity name among the
existing entities of the same type during resolution.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple


@dataclass
class EntityIndexEntry:
    """An entry in the entity index used for matching."""

    id: str
    name: str
    entity_type: str
    aliases: List[str] = field(default_factory=list)

    @property
    def all_names(self) -> List[str]:
        return [self.name, *self.aliases]


@dataclass
class MatchCandidate:
    """A potential match found by a matching strategy."""

    candidate_id: str
    candidate_name: str
    match_type: str  # "alias", "fuzzy_name"
    match_score: float  # 0.0 to 1.0
    match_details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not 0.0 <= self.match_score <= 1.0:
            raise ValueError(f"match_score must be between 0 and 1, got {self.match_score}")


class MatchStrategy(ABC):
    """Abstract base class for entity matching strategies.

    - AliasMatchStrategy: case-insensitive equality with a name or alias
    - FuzzyNameMatchStrategy: approximate similarity on names

    Strategies return candidates sorted by score, highest first.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name (e.g., 'alias', 'fuzzy_name')."""
        pass

    @property
    @abstractmethod
    def score_range(self) -> Tuple[float, float]:
        """Return (min_score, max_score) this strategy produces."""
        pass

    @abstractmethod
    def find_matches(
        self,
        name: str,
        index: Dict[str, EntityIndexEntry],
    ) -> List[MatchCandidate]:
        """Find matching candidates for a name.

        Args:
            name: Incoming entity name
            index: Dictionary mapping entity_id -> EntityIndexEntry, already
                   restricted to one entity type

        Returns:
            List of MatchCandidate objects sorted by score (highest first)
        """
        pass


_STRATEGY_REGISTRY: Dict[str, type] = {}


def register_strategy(name: str):
    """Decorator to register a matching strategy."""
    def decorator(cls):
        _STRATEGY_REGISTRY[name] = cls
        return cls
    return decorator


def get_strategy(name: str) -> type:
    """Get a strategy class by name."""
    if name not in _STRATEGY_REGISTRY:
        raise ValueError(f"Unknown strategy: {name}. Available: {list(_STRATEGY_REGISTRY.keys())}")
    return _STRATEGY_REGISTRY[name]


def list_strategies() -> List[str]:
    return list(_STRATEGY_REGISTRY.keys())


def load_strategies(names: List[str], **kwargs) -> List[MatchStrategy]:
    """Load and instantiate strategies by name.

    Args:
        names: List of strategy names to load
        **kwargs: Arguments passed to strategy constructors

    Returns:
        List of instantiated strategies
    """
    return [get_strategy(name)(**kwargs) for name in names]
