"""
Precision Filtering and Ranking
Restricted-category gate, score thresholds, hard constraints and final ordering.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Tuple

from ...models.place import CatalogEntry
from ..config import RetrievalConfig, get_retrieval_config
from ..utils.geo import haversine_km
from .query_analyzer import QueryIntent
from .scoring import ScoredCandidate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdSettings:
    """Effective thresholds for one query."""

    min_total_score: float
    min_semantic_score: Optional[float] = None  # None in keyword-only mode


@dataclass
class FilterStats:
    """How many candidates survived each stage."""

    scored: int = 0
    passed_thresholds: int = 0
    passed_constraints: int = 0
    returned: int = 0

    def to_dict(self) -> dict:
        return {
            "scored": self.scored,
            "passed_thresholds": self.passed_thresholds,
            "passed_constraints": self.passed_constraints,
            "returned": self.returned,
        }


class RestrictedCategoryFilter:
    """
    Removes restricted-category entries before scoring.

    An entry in a restricted category survives only when the query unlocked
    that specific category.
    """

    def __init__(self, config: Optional[RetrievalConfig] = None):
        self.config = config or get_retrieval_config()

    @property
    def restricted(self) -> FrozenSet[str]:
        return self.config.restricted_categories

    def allows(self, entry: CatalogEntry, unlocked: FrozenSet[str] = frozenset()) -> bool:
        return entry.category not in self.restricted or entry.category in unlocked

    def apply(
        self, entries: Iterable[CatalogEntry], unlocked: FrozenSet[str] = frozenset()
    ) -> List[CatalogEntry]:
        return [entry for entry in entries if self.allows(entry, unlocked)]


class PrecisionFilter:
    """
    Drops candidates that fail the score thresholds or the query's hard constraints.

    Constraints:
    - Requested categories: the entry's category must be one of them
    - Location anchor: the entry must lie within twice the anchor radius
    """

    def passes_thresholds(self, candidate: ScoredCandidate, thresholds: ThresholdSettings) -> bool:
        if candidate.total_score < thresholds.min_total_score:
            return False
        if (
            thresholds.min_semantic_score is not None
            and candidate.semantic_score < thresholds.min_semantic_score
        ):
            return False
        return True

    def passes_constraints(self, candidate: ScoredCandidate, intent: QueryIntent) -> bool:
        entry = candidate.entry
        if intent.categories and entry.category not in intent.categories:
            return False

        anchor = intent.location_anchor
        if anchor is not None:
            coordinates = entry.coordinates
            if coordinates is None:
                return False
            distance = haversine_km(coordinates[0], coordinates[1], anchor.lat, anchor.lng)
            if distance > 2 * anchor.radius_km:
                return False

        return True

    def apply(
        self,
        candidates: Iterable[ScoredCandidate],
        intent: QueryIntent,
        thresholds: ThresholdSettings,
        stats: Optional[FilterStats] = None,
    ) -> List[ScoredCandidate]:
        stats = stats if stats is not None else FilterStats()
        candidates = list(candidates)
        stats.scored = len(candidates)

        above_threshold = [c for c in candidates if self.passes_thresholds(c, thresholds)]
        stats.passed_thresholds = len(above_threshold)

        constrained = [c for c in above_threshold if self.passes_constraints(c, intent)]
        stats.passed_constraints = len(constrained)

        logger.debug(
            f"Precision filter: {stats.scored} scored, {stats.passed_thresholds} above thresholds, "
            f"{stats.passed_constraints} within constraints"
        )
        return constrained


class Ranker:
    """Filters, orders and truncates scored candidates."""

    def __init__(self, precision_filter: Optional[PrecisionFilter] = None):
        self.precision_filter = precision_filter or PrecisionFilter()

    @staticmethod
    def order(candidates: Iterable[ScoredCandidate]) -> List[ScoredCandidate]:
        """Sort by total score descending, then id ascending, and assign ranks."""
        ordered = sorted(candidates, key=lambda c: (-c.total_score, c.entry.id))
        for i, candidate in enumerate(ordered):
            candidate.rank = i
        return ordered

    def rank(
        self,
        candidates: Iterable[ScoredCandidate],
        intent: QueryIntent,
        thresholds: ThresholdSettings,
        limit: int,
    ) -> Tuple[List[ScoredCandidate], FilterStats]:
        """
        Produce the final ordered list.

        Args:
            candidates: Scored candidates
            intent: Analyzed query
            thresholds: Effective thresholds
            limit: Maximum number of results

        Returns:
            Tuple of (ranked candidates, stage counts)
        """
        stats = FilterStats()
        survivors = self.precision_filter.apply(candidates, intent, thresholds, stats)
        ranked = self.order(survivors)[: max(0, limit)]
        stats.returned = len(ranked)
        return ranked, stats
