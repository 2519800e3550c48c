"""
Retrieval Configuration
Centralized configuration for scoring weights, thresholds, result limits and
restricted-category triggers.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple

# Categories hidden from results unless the query names them explicitly.
# The trigger lists are tuning data, not an exhaustive contract.
DEFAULT_RESTRICTED_TRIGGERS: Dict[str, Tuple[str, ...]] = {
    "medical": (
        "pharmacy",
        "hospital",
        "doctor",
        "medical",
        "clinic",
        "dentist",
        "urgent care",
        "physician",
    ),
    "legal": ("lawyer", "attorney", "legal", "law firm", "notary", "solicitor"),
    "financial_services": (
        "bank",
        "atm",
        "financial",
        "finance",
        "investment",
        "wealth management",
        "fund",
        "accountant",
        "accounting",
        "audit",
    ),
    "real_estate": ("real estate", "property", "realtor", "buy house", "buy a house"),
}

# Triggers matched only as whole words ("bar" must not match "barber");
# every other trigger matches as a substring.
DEFAULT_WHOLE_WORD_TRIGGERS: FrozenSet[str] = frozenset(
    {
        # Categories
        "bar", "pub", "spa", "dj", "mall", "shop", "store", "cove", "shore", "villa", "venue",
        "event",
        # Price tiers
        "ultra",
        # Atmosphere and features
        "fun", "love", "view", "zen", "vip", "deck",
        # Restricted categories
        "atm", "bank", "fund", "audit", "legal", "hospital",
    }
)


def _check_weights(name: str, weights: Dict[str, float]) -> None:
    total = sum(weights.values())
    if abs(total - 1.0) > 1e-6:
        raise ValueError(f"{name} weights must sum to 1.0, got {total}")
    for key, value in weights.items():
        if value < 0:
            raise ValueError(f"{name} weight '{key}' must be non-negative, got {value}")


@dataclass
class ScoringWeights:
    """Weights used when semantic similarity is available (must sum to 1.0)."""

    semantic: float = 0.70
    category: float = 0.10
    location: float = 0.06
    price: float = 0.04
    keyword: float = 0.05
    feature: float = 0.02
    quality: float = 0.03

    def __post_init__(self):
        """Validate configuration."""
        _check_weights("Scoring", self.as_dict())

    def as_dict(self) -> Dict[str, float]:
        return {
            "semantic": self.semantic,
            "category": self.category,
            "location": self.location,
            "price": self.price,
            "keyword": self.keyword,
            "feature": self.feature,
            "quality": self.quality,
        }


@dataclass
class FallbackWeights(ScoringWeights):
    """Weights for keyword-only scoring when no vectors are available."""

    semantic: float = 0.0
    category: float = 0.30
    location: float = 0.10
    price: float = 0.05
    keyword: float = 0.30
    feature: float = 0.05
    quality: float = 0.20


@dataclass
class ScoringParameters:
    """Shape parameters for individual signals."""

    # Multiplier applied to entries outside the requested (and related) categories
    off_category_factor: float = 0.35
    related_category_score: float = 0.5

    # Location score falls linearly from 1.0 at the radius to this value at 2x radius
    location_edge_score: float = 0.5

    # Adjacent price tier
    adjacent_price_score: float = 0.5

    # Keyword evidence by field (per keyword, name is strongest)
    name_match: float = 1.0
    tag_match: float = 0.5
    highlight_match: float = 0.4
    short_description_match: float = 0.4
    description_match: float = 0.25
    full_query_name_bonus: float = 0.25

    # Bonus when the entry matches the query's activity type
    activity_bonus: float = 0.25

    # Per nice-to-have evidence phrase and per matched atmosphere
    nice_to_have_bonus: float = 0.1
    atmosphere_bonus: float = 0.15

    # Share of the quality signal coming from rating tiers (rest is completeness)
    rating_share: float = 0.8

    def __post_init__(self):
        if not 0.0 <= self.off_category_factor <= 1.0:
            raise ValueError(f"off_category_factor must be in [0, 1], got {self.off_category_factor}")
        if not 0.0 <= self.rating_share <= 1.0:
            raise ValueError(f"rating_share must be in [0, 1], got {self.rating_share}")


@dataclass
class ThresholdConfig:
    """Minimum scores a candidate must clear to be returned."""

    min_semantic_score: float = 0.25
    min_total_score: float = 0.25

    # Keyword-only mode (no semantic evidence); quality alone never clears it
    fallback_min_total_score: float = 0.22


@dataclass
class ResultLimits:
    """Candidate and result window sizes."""

    candidate_k: int = 150  # Nearest neighbours pulled from the vector store
    default_max_results: int = 8
    professional_max_results: int = 15
    similar_places_k: int = 30


@dataclass
class RetrievalConfig:
    """Top-level retrieval configuration combining all sub-configs."""

    weights: ScoringWeights = field(default_factory=ScoringWeights)
    fallback_weights: ScoringWeights = field(default_factory=FallbackWeights)
    scoring: ScoringParameters = field(default_factory=ScoringParameters)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    limits: ResultLimits = field(default_factory=ResultLimits)
    restricted_triggers: Dict[str, Tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_RESTRICTED_TRIGGERS)
    )
    whole_word_triggers: FrozenSet[str] = DEFAULT_WHOLE_WORD_TRIGGERS

    # Extra semantic queries: the i-th query (0 = the user query) is weighted
    # 1 - i * expansion_query_decay and the best weighted score per place wins
    max_expansion_queries: int = 3
    expansion_query_decay: float = 0.2

    # Share of the query embedding taken from conversation context, when given
    context_weight: float = 0.3

    # "near me" without a user location anchors here
    default_anchor: str = "george town"
    near_me_radius_km: float = 3.0

    @property
    def restricted_categories(self) -> frozenset:
        return frozenset(self.restricted_triggers)

    @classmethod
    def from_env(cls) -> "RetrievalConfig":
        """Load configuration from environment variables."""
        config = cls()

        if min_total := os.getenv("RETRIEVAL_MIN_TOTAL_SCORE"):
            config.thresholds.min_total_score = float(min_total)

        if min_semantic := os.getenv("RETRIEVAL_MIN_SEMANTIC_SCORE"):
            config.thresholds.min_semantic_score = float(min_semantic)

        if candidate_k := os.getenv("RETRIEVAL_CANDIDATE_K"):
            config.limits.candidate_k = int(candidate_k)

        if max_results := os.getenv("RETRIEVAL_MAX_RESULTS"):
            config.limits.default_max_results = int(max_results)

        if anchor := os.getenv("RETRIEVAL_DEFAULT_ANCHOR"):
            config.default_anchor = anchor.strip().lower()

        return config

    def validate(self) -> None:
        """Validate configuration consistency."""
        assert 0.0 <= self.thresholds.min_semantic_score <= 1.0, "Semantic threshold must be in [0, 1]"
        assert self.thresholds.min_total_score >= 0.0, "Total score threshold must be >= 0"
        assert self.limits.default_max_results > 0, "Default max results must be positive"
        assert (
            self.limits.professional_max_results >= self.limits.default_max_results
        ), "Professional result window must be >= default window"
        assert self.near_me_radius_km > 0, "Near-me radius must be positive"
        assert 0.0 <= self.expansion_query_decay < 1.0, "Expansion query decay must be in [0, 1)"
        assert 0.0 <= self.context_weight < 1.0, "Context weight must be in [0, 1)"
        for category, triggers in self.restricted_triggers.items():
            assert triggers, f"Restricted category '{category}' needs at least one trigger"


# Global configuration instance
_global_config: Optional[RetrievalConfig] = None


def get_retrieval_config() -> RetrievalConfig:
    """Get global retrieval configuration (singleton pattern)."""
    global _global_config
    if _global_config is None:
        _global_config = RetrievalConfig.from_env()
        _global_config.validate()
    return _global_config


def reset_config() -> None:
    """Reset global configuration (useful for testing)."""
    global _global_config
    _global_config = None
