"""
Alias matching strategy.

Case-insensitive equality against an entity's name or any stored alias.
"""

from typing import Dict, List, Tuple

from notegraph.matching.base import (
    EntityIndexEntry,
    MatchCandidate,
    MatchStrategy,
    register_strategy,
)


@register_strategy("alias")
class AliasMatchStrategy(MatchStrategy):
    """Match a name against known names and aliases. Score is always 1.0."""

    def __init__(self, **kwargs):
        """kwargs are ignored (allows shared kwargs across strategies)."""

    @property
    def name(self) -> str:
        return "alias"

    @property
    def score_range(self) -> Tuple[float, float]:
        return (1.0, 1.0)

    def _normalize(self, name: str) -> str:
        return name.lower().strip()

    def find_matches(
        self,
        name: str,
        index: Dict[str, EntityIndexEntry],
    ) -> List[MatchCandidate]:
        if not name:
            return []

        normalized_name = self._normalize(name)
        candidates = []

        for entry_id, entry in index.items():
            for known in entry.all_names:
                if self._normalize(known) == normalized_name:
                    candidates.append(
                        MatchCandidate(
                            candidate_id=entry_id,
                            candidate_name=entry.name,
                            match_type=self.name,
                            match_score=1.0,
                            match_details={
                                "matched_alias": known,
                                "source": "exact_name" if known == entry.name else "entity_aliases",
                            },
                        )
                    )
                    break

        return candidates
