"""
Hybrid Scoring
Combines semantic similarity with structured signals derived from the query.

Score formula (vector mode, default weights):
total = (0.70 × semantic + 0.10 × category + 0.06 × location + 0.04 × price
         + 0.05 × keyword + 0.02 × feature + 0.03 × quality) × category_attenuation

Without vectors the fallback weights redistribute the semantic share across the
structured signals.
"""

import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional

from ...models.place import CatalogEntry
from ..config import RetrievalConfig, ScoringParameters, ScoringWeights, get_retrieval_config
from ..utils.geo import LocationAnchor, haversine_km
from .query_analyzer import QueryIntent, TriggerMatcher
from .vocabulary import (
    ACTIVITY_RULES,
    ATMOSPHERE_RULES,
    FEATURE_RULES,
    NICE_TO_HAVE_BY_ATMOSPHERE,
    NICE_TO_HAVE_BY_CATEGORY,
    RELATED_CATEGORIES,
)

logger = logging.getLogger(__name__)

SIGNALS = ("semantic", "category", "location", "price", "keyword", "feature", "quality")


@dataclass
class ScoredCandidate:
    """A catalog entry with its combined score."""

    entry: CatalogEntry
    semantic_score: float  # [0, 1]; 0 when no vector evidence
    structured_score: float
    total_score: float
    rank: int = -1  # Assigned by the ranker (0-indexed)

    # Per-signal values in [0, 1] plus the category attenuation factor
    components: Dict[str, float] = field(default_factory=dict)

    @property
    def entry_id(self) -> str:
        return self.entry.id

    def to_dict(self) -> dict:
        """Convert to dictionary for downstream consumers."""
        return {
            "id": self.entry.id,
            "name": self.entry.name,
            "category": self.entry.category,
            "semantic_score": float(self.semantic_score),
            "structured_score": float(self.structured_score),
            "total_score": float(self.total_score),
            "rank": self.rank,
            "components": {k: float(v) for k, v in self.components.items()},
        }


class CategoryScorer:
    """Category alignment and off-category attenuation."""

    def __init__(self, params: ScoringParameters):
        self.params = params

    def score(self, entry: CatalogEntry, intent: QueryIntent) -> float:
        if not intent.categories:
            return 0.0
        if entry.category in intent.categories:
            return 1.0
        if self._is_related(entry.category, intent.categories):
            return self.params.related_category_score
        return 0.0

    def attenuation(self, entry: CatalogEntry, intent: QueryIntent) -> float:
        """Multiplier for the total: 1.0 unless the entry is off-category."""
        if not intent.categories or entry.category in intent.categories:
            return 1.0
        if self._is_related(entry.category, intent.categories):
            return 1.0
        return self.params.off_category_factor

    @staticmethod
    def _is_related(category: str, requested: Iterable[str]) -> bool:
        return any(category in RELATED_CATEGORIES.get(wanted, ()) for wanted in requested)


class LocationScorer:
    """
    Proximity to the query's location anchor.

    Full score within the radius, linear decay to ``location_edge_score`` at
    twice the radius, zero beyond. No coordinates means no bonus.
    """

    def __init__(self, params: ScoringParameters):
        self.params = params

    def distance_km(self, entry: CatalogEntry, anchor: LocationAnchor) -> Optional[float]:
        coordinates = entry.coordinates
        if coordinates is None:
            return None
        return haversine_km(coordinates[0], coordinates[1], anchor.lat, anchor.lng)

    def score(self, entry: CatalogEntry, intent: QueryIntent) -> float:
        anchor = intent.location_anchor
        if anchor is None:
            return 0.0
        distance = self.distance_km(entry, anchor)
        if distance is None:
            return 0.0

        radius = anchor.radius_km
        if distance <= radius:
            return 1.0
        if distance > 2 * radius:
            return 0.0
        edge = self.params.location_edge_score
        return 1.0 - (1.0 - edge) * (distance - radius) / radius


class PriceTierScorer:
    """Exact tier match scores 1.0, adjacent tier partial, others 0."""

    def __init__(self, params: ScoringParameters):
        self.params = params

    def score(self, entry: CatalogEntry, intent: QueryIntent) -> float:
        if intent.price_tier is None or entry.price_tier is None:
            return 0.0
        gap = abs(int(entry.price_tier) - int(intent.price_tier))
        if gap == 0:
            return 1.0
        if gap == 1:
            return self.params.adjacent_price_score
        return 0.0


class KeywordScorer:
    """
    Term overlap between query keywords and entry text.

    Each keyword counts once, at the strongest field it appears in; name matches
    outweigh tags, highlights and descriptions. The whole query appearing in
    the name earns the remaining ``full_query_name_bonus`` share.
    """

    def __init__(self, params: ScoringParameters):
        self.params = params

    def score(self, entry: CatalogEntry, intent: QueryIntent) -> float:
        if not intent.keywords:
            return 0.0

        p = self.params
        fields = (
            (entry.name_text, p.name_match),
            (entry.tag_text, p.tag_match),
            (entry.highlight_text, p.highlight_match),
            (entry.short_description.lower(), p.short_description_match),
            (entry.description.lower(), p.description_match),
        )

        total = 0.0
        for keyword in sorted(intent.keywords):
            for text, weight in fields:
                if keyword in text:
                    total += weight
                    break
        score = (1.0 - p.full_query_name_bonus) * min(1.0, total / len(intent.keywords))

        if len(intent.text) > 2 and intent.text in entry.name_text:
            score += p.full_query_name_bonus

        return score


class FeatureScorer:
    """
    Share of requested must-have features evidenced in the entry text.

    Activity fit, each evidenced nice-to-have and each matching atmosphere add
    fixed bonuses on top; the result saturates at 1.0.
    """

    def __init__(self, params: ScoringParameters, whole_words: AbstractSet[str] = frozenset()):
        self.params = params
        self._evidence = {rule.value: TriggerMatcher(rule.evidence, whole_words) for rule in FEATURE_RULES}
        self._activities = {rule.value: TriggerMatcher(rule.triggers, whole_words) for rule in ACTIVITY_RULES}
        self._atmospheres = {
            rule.value: TriggerMatcher(rule.evidence, whole_words) for rule in ATMOSPHERE_RULES
        }
        nice_to_have_rows = [
            row
            for table in (NICE_TO_HAVE_BY_CATEGORY, NICE_TO_HAVE_BY_ATMOSPHERE)
            for rows in table.values()
            for row in rows
        ]
        self._nice_to_have = {value: TriggerMatcher(evidence, whole_words) for value, evidence in nice_to_have_rows}

    @staticmethod
    def _matched(matchers: Mapping[str, TriggerMatcher], wanted: Iterable[str], text: str) -> List[str]:
        return sorted(value for value in wanted if value in matchers and matchers[value].matches(text))

    def matched_features(self, entry: CatalogEntry, intent: QueryIntent) -> List[str]:
        return self._matched(self._evidence, intent.must_have_features, entry.search_text)

    def score(self, entry: CatalogEntry, intent: QueryIntent) -> float:
        text = entry.search_text
        score = 0.0
        if intent.must_have_features:
            matched = self.matched_features(entry, intent)
            score = len(matched) / len(intent.must_have_features)

        activity = self._activities.get(intent.activity_type) if intent.activity_type else None
        if activity is not None and activity.matches(text):
            score += self.params.activity_bonus

        score += self.params.nice_to_have_bonus * len(
            self._matched(self._nice_to_have, intent.nice_to_have_features, text)
        )
        score += self.params.atmosphere_bonus * len(self._matched(self._atmospheres, intent.atmosphere, text))

        return min(1.0, score)


class QualityScorer:
    """
    Rating and completeness signal.

    Staged rating tiers with review-count boosts, so returns diminish at the top
    of the scale. Completeness uses the entry's qualityScore when present,
    otherwise media/contact/promotion flags.
    """

    # (minimum rating, tier score), highest first
    RATING_TIERS = ((4.8, 1.0), (4.5, 0.85), (4.0, 0.7), (3.5, 0.5))
    LOW_RATING_SCORE = 0.3

    # (minimum reviews, boost), highest first
    REVIEW_BOOSTS = ((500, 0.15), (100, 0.1), (50, 0.05))

    def __init__(self, params: ScoringParameters):
        self.params = params

    def rating_score(self, entry: CatalogEntry) -> float:
        overall = entry.rating.overall
        if overall <= 0:
            return 0.0

        score = self.LOW_RATING_SCORE
        for minimum, tier in self.RATING_TIERS:
            if overall >= minimum:
                score = tier
                break

        for minimum, boost in self.REVIEW_BOOSTS:
            if entry.rating.review_count >= minimum:
                score += boost
                break

        return min(1.0, score)

    @staticmethod
    def completeness(entry: CatalogEntry) -> float:
        if entry.quality_score is not None:
            return entry.quality_score

        score = 0.0
        if entry.media.thumbnail_present:
            score += 0.3
        if entry.contact_flags.has_website:
            score += 0.2
        if entry.contact_flags.has_phone:
            score += 0.2
        if entry.contact_flags.has_booking:
            score += 0.1
        if entry.is_featured:
            score += 0.15
        if entry.is_premium:
            score += 0.05
        return min(1.0, score)

    def score(self, entry: CatalogEntry, intent: QueryIntent) -> float:
        share = self.params.rating_share
        return share * self.rating_score(entry) + (1.0 - share) * self.completeness(entry)


class HybridScorer:
    """
    Produces one ScoredCandidate per catalog entry.

    Semantic similarity dominates when available; structured signals shift rank.
    """

    def __init__(self, config: Optional[RetrievalConfig] = None):
        """
        Initialize hybrid scorer.

        Args:
            config: Retrieval configuration
        """
        self.config = config or get_retrieval_config()
        params = self.config.scoring

        self.category_scorer = CategoryScorer(params)
        self.location_scorer = LocationScorer(params)
        self.price_scorer = PriceTierScorer(params)
        self.keyword_scorer = KeywordScorer(params)
        self.feature_scorer = FeatureScorer(params, self.config.whole_word_triggers)
        self.quality_scorer = QualityScorer(params)

        logger.debug(f"Hybrid scorer initialized with weights: {self.config.weights.as_dict()}")

    def weights_for(self, vector_mode: bool) -> ScoringWeights:
        return self.config.weights if vector_mode else self.config.fallback_weights

    def score_entry(
        self,
        entry: CatalogEntry,
        intent: QueryIntent,
        semantic: Optional[float] = None,
        vector_mode: bool = True,
    ) -> ScoredCandidate:
        """
        Score a single entry.

        Args:
            entry: Catalog entry
            intent: Analyzed query
            semantic: Cosine similarity for the entry, if any
            vector_mode: Whether semantic evidence is available for this query

        Returns:
            ScoredCandidate (rank unset)
        """
        weights = self.weights_for(vector_mode)
        semantic_score = max(0.0, min(1.0, semantic)) if (vector_mode and semantic is not None) else 0.0

        components = {
            "semantic": semantic_score,
            "category": self.category_scorer.score(entry, intent),
            "location": self.location_scorer.score(entry, intent),
            "price": self.price_scorer.score(entry, intent),
            "keyword": self.keyword_scorer.score(entry, intent),
            "feature": self.feature_scorer.score(entry, intent),
            "quality": self.quality_scorer.score(entry, intent),
        }
        weight_map = weights.as_dict()
        structured = sum(weight_map[name] * components[name] for name in SIGNALS[1:])
        attenuation = self.category_scorer.attenuation(entry, intent)
        components["attenuation"] = attenuation

        total = (weights.semantic * semantic_score + structured) * attenuation

        return ScoredCandidate(
            entry=entry,
            semantic_score=semantic_score,
            structured_score=structured,
            total_score=total,
            components=components,
        )

    def score_all(
        self,
        entries: Iterable[CatalogEntry],
        intent: QueryIntent,
        semantic_scores: Optional[Mapping[str, float]] = None,
    ) -> List[ScoredCandidate]:
        """
        Score every entry.

        Args:
            entries: Eligible catalog entries
            intent: Analyzed query
            semantic_scores: id -> cosine similarity, or None for keyword-only mode

        Returns:
            ScoredCandidates in input order
        """
        vector_mode = semantic_scores is not None
        return [
            self.score_entry(
                entry,
                intent,
                semantic=semantic_scores.get(entry.id) if vector_mode else None,
                vector_mode=vector_mode,
            )
            for entry in entries
        ]

    def explain(self, candidate: ScoredCandidate, vector_mode: bool = True) -> str:
        """
        Generate human-readable explanation of a candidate's score.

        Args:
            candidate: Scored candidate
            vector_mode: Which weight set produced the score

        Returns:
            Explanation string
        """
        if not candidate.components:
            return "No scoring data available"

        weights = self.weights_for(vector_mode).as_dict()
        rank = f"Rank {candidate.rank + 1}" if candidate.rank >= 0 else "unranked"
        lines = [
            f"{candidate.entry.name} [{candidate.entry.id}] ({rank})",
            f"  Total Score: {candidate.total_score:.4f}",
            "  Components:",
        ]
        for name in SIGNALS:
            value = candidate.components.get(name, 0.0)
            lines.append(
                f"    {name.capitalize():<10} {value:.4f} x {weights[name]:.2f} = {value * weights[name]:.4f}"
            )
        lines.append(f"  Category attenuation: x {candidate.components.get('attenuation', 1.0):.2f}")
        return "\n".join(lines) + "\n"
