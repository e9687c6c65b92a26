"""
Fuzzy name matching strategy.

Similarity comes from a pluggable Scorer; the default uses
difflib.SequenceMatcher on normalized names.
"""

import re
import unicodedata
from abc import ABC, abstractmethod
from difflib import SequenceMatcher
from typing import Dict, List, Optional, Tuple

from notegraph.matching.base import (
    EntityIndexEntry,
    MatchCandidate,
    MatchStrategy,
    register_strategy,
)


def normalize_name(text: str) -> str:
    """Lowercase, strip accents, drop punctuation, collapse whitespace."""
    text = unicodedata.normalize("NFD", text)
    text = "".join(c for c in text if unicodedata.category(c) != "Mn")
    text = text.casefold().replace("_", " ")
    text = re.sub(r"[^\w\s]", "", text)
    return " ".join(text.split())


class Scorer(ABC):
    """Approximate string scorer: ``score(a, b)`` in [0, 1], 1 is identical."""

    @abstractmethod
    def score(self, a: str, b: str) -> float:
        pass


class SequenceMatcherScorer(Scorer):
    """Ratio of matching characters between the normalized strings."""

    def score(self, a: str, b: str) -> float:
        norm_a = normalize_name(a)
        norm_b = normalize_name(b)
        if not norm_a or not norm_b:
            return 0.0
        return SequenceMatcher(None, norm_a, norm_b).ratio()


@register_strategy("fuzzy_name")
class FuzzyNameMatchStrategy(MatchStrategy):
    """Match entities by approximate similarity on names.

    A candidate qualifies when ``1 - score <= max_distance``. Only the
    canonical name is scored; aliases are the alias strategy's job.
    """

    def __init__(self, max_distance: float = 0.2, scorer: Optional[Scorer] = None, **kwargs):
        """Initialize strategy.

        Args:
            max_distance: Largest accepted distance (1 - similarity)
            scorer: Similarity scorer (default SequenceMatcherScorer)
        """
        self._max_distance = max_distance
        self._scorer = scorer or SequenceMatcherScorer()

    @property
    def name(self) -> str:
        return "fuzzy_name"

    @property
    def score_range(self) -> Tuple[float, float]:
        return (1.0 - self._max_distance, 1.0)

    def find_matches(
        self,
        name: str,
        index: Dict[str, EntityIndexEntry],
    ) -> List[MatchCandidate]:
        if not name:
            return []

        candidates = []
        for entry_id, entry in index.items():
            score = self._scorer.score(name, entry.name)
            if 1.0 - score <= self._max_distance:
                candidates.append(
                    MatchCandidate(
                        candidate_id=entry_id,
                        candidate_name=entry.name,
                        match_type=self.name,
                        match_score=score,
                        match_details={
                            "query_name": name,
                            "distance": round(1.0 - score, 4),
                        },
                    )
                )

        # Stable sort keeps index order on ties
        candidates.sort(key=lambda c: c.match_score, reverse=True)
        return candidates
