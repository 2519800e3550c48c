"""
Query Analyzer
Turns free-text queries into a structured QueryIntent using the rule tables
in vocabulary.py. Pure and deterministic; no external calls.
"""

import logging
import re
from dataclasses import dataclass
from typing import AbstractSet, Dict, FrozenSet, Iterable, Optional, Pattern, Sequence, Tuple

from ...models.place import PriceTier
from ..config import RetrievalConfig, get_retrieval_config
from ..utils.geo import LocationAnchor
from .vocabulary import (
    ACTIVITY_RULES,
    ATMOSPHERE_RULES,
    CATEGORY_RULES,
    FEATURE_RULES,
    GAZETTEER,
    NICE_TO_HAVE_BY_ATMOSPHERE,
    NICE_TO_HAVE_BY_CATEGORY,
    PRICE_TIER_RULES,
    STOP_WORDS,
    GazetteerEntry,
)

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")
_NEAR_ME_RE = re.compile(r"(?<![a-z0-9])(?:near|around|close to) me(?![a-z0-9])")


def normalize_query(text: str) -> str:
    """Lower-case, trim and collapse whitespace."""
    return " ".join(text.lower().split())


class TriggerMatcher:
    """
    Matches a set of trigger phrases against text.

    Triggers match as case-insensitive substrings, so "beach" also finds
    "beachside". Triggers listed in ``whole_words`` only match as whole words
    (with an optional "s"/"es" plural), which keeps "bar" out of "barber".
    """

    def __init__(self, triggers: Iterable[str], whole_words: AbstractSet[str] = frozenset()):
        self.triggers: Tuple[str, ...] = tuple(sorted({t.lower() for t in triggers}))
        self._pattern: Optional[Pattern[str]] = None

        words = [t for t in self.triggers if t in whole_words]
        substrings = [t for t in self.triggers if t not in whole_words]
        alternatives = []
        if substrings:
            alternatives.append("|".join(re.escape(t) for t in sorted(substrings, key=len, reverse=True)))
        if words:
            joined = "|".join(re.escape(t) for t in sorted(words, key=len, reverse=True))
            alternatives.append(rf"(?<![a-z0-9])(?:{joined})(?:e?s)?(?![a-z0-9])")
        if alternatives:
            self._pattern = re.compile("|".join(f"(?:{a})" for a in alternatives))

    def matches(self, text: str) -> bool:
        return self._pattern is not None and self._pattern.search(text) is not None

    def __repr__(self) -> str:
        return f"TriggerMatcher({len(self.triggers)} triggers)"


@dataclass(frozen=True)
class QueryIntent:
    """Structured interpretation of one query. Built fresh per query."""

    text: str = ""
    categories: FrozenSet[str] = frozenset()
    location_anchor: Optional[LocationAnchor] = None
    price_tier: Optional[PriceTier] = None
    must_have_features: FrozenSet[str] = frozenset()
    keywords: FrozenSet[str] = frozenset()
    activity_type: Optional[str] = None
    atmosphere: FrozenSet[str] = frozenset()
    # Soft preferences implied by the categories and atmosphere
    nice_to_have_features: FrozenSet[str] = frozenset()
    # Restricted categories whose triggers appear in the query
    unlocked_categories: FrozenSet[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        """True when the query carries no structured or keyword signal."""
        return not (
            self.categories
            or self.location_anchor
            or self.price_tier
            or self.must_have_features
            or self.keywords
            or self.activity_type
            or self.atmosphere
        )

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "categories": sorted(self.categories),
            "location_anchor": (
                {
                    "name": self.location_anchor.name,
                    "lat": self.location_anchor.lat,
                    "lng": self.location_anchor.lng,
                    "radius_km": self.location_anchor.radius_km,
                }
                if self.location_anchor
                else None
            ),
            "price_tier": self.price_tier.label if self.price_tier else None,
            "must_have_features": sorted(self.must_have_features),
            "keywords": sorted(self.keywords),
            "activity_type": self.activity_type,
            "atmosphere": sorted(self.atmosphere),
            "nice_to_have_features": sorted(self.nice_to_have_features),
            "unlocked_categories": sorted(self.unlocked_categories),
        }


class QueryAnalyzer:
    """
    Rule-driven query parser.

    Each table row is compiled once into a TriggerMatcher; analysis is a scan over
    the compiled rows.
    """

    def __init__(
        self,
        config: Optional[RetrievalConfig] = None,
        gazetteer: Sequence[GazetteerEntry] = GAZETTEER,
    ):
        self.config = config or get_retrieval_config()
        words = self.config.whole_word_triggers

        restricted = self.config.restricted_triggers
        self._restricted_matchers: Dict[str, TriggerMatcher] = {
            category: TriggerMatcher(triggers, words) for category, triggers in restricted.items()
        }

        # Restricted categories are regular categories once their triggers appear
        category_rows = [(rule.value, rule.triggers) for rule in CATEGORY_RULES]
        category_rows += [(category, triggers) for category, triggers in restricted.items()]
        self._category_matchers = [
            (value, TriggerMatcher(triggers, words)) for value, triggers in category_rows
        ]

        self._price_matchers = [(tier, TriggerMatcher(triggers, words)) for tier, triggers in PRICE_TIER_RULES]
        self._feature_matchers = [(rule.value, TriggerMatcher(rule.triggers, words)) for rule in FEATURE_RULES]
        self._activity_matchers = [(rule.value, TriggerMatcher(rule.triggers, words)) for rule in ACTIVITY_RULES]
        self._atmosphere_matchers = [
            (rule.value, TriggerMatcher(rule.triggers, words)) for rule in ATMOSPHERE_RULES
        ]

        # Longest names first so "seven mile beach" wins over shorter overlaps
        place_rows = [(name, entry) for entry in gazetteer for name in entry.names]
        place_rows.sort(key=lambda row: len(row[0]), reverse=True)
        self._place_matchers = [(entry, TriggerMatcher([name], {name})) for name, entry in place_rows]
        self._places_by_name = {name: entry for name, entry in place_rows}

    def analyze(
        self,
        query: str,
        user_location: Optional[Tuple[float, float]] = None,
        category_hint: Optional[str] = None,
    ) -> QueryIntent:
        """
        Parse a query into a QueryIntent.

        Args:
            query: Raw query text
            user_location: Optional (lat, lng) used for "near me"
            category_hint: Optional category added to the detected categories

        Returns:
            QueryIntent (all fields empty when nothing matched)
        """
        text = normalize_query(query or "")

        categories = set(self.detect_categories(text))
        if category_hint:
            categories.add(category_hint.strip().lower().replace(" ", "_"))

        atmosphere = frozenset(self.detect_atmosphere(text))

        intent = QueryIntent(
            text=text,
            categories=frozenset(categories),
            location_anchor=self.detect_location(text, user_location),
            price_tier=self.detect_price_tier(text),
            must_have_features=frozenset(self.detect_features(text)),
            keywords=self.extract_keywords(text),
            activity_type=self.detect_activity(text),
            atmosphere=atmosphere,
            nice_to_have_features=self.nice_to_have_features(categories, atmosphere),
            unlocked_categories=self.unlocked_categories(text),
        )
        logger.debug(f"Analyzed query '{text}': {intent.to_dict()}")
        return intent

    def detect_categories(self, text: str) -> Tuple[str, ...]:
        return tuple(value for value, matcher in self._category_matchers if matcher.matches(text))

    def detect_location(
        self, text: str, user_location: Optional[Tuple[float, float]] = None
    ) -> Optional[LocationAnchor]:
        """Named place (plain mention or "near <place>"), then "near me"."""
        for entry, matcher in self._place_matchers:
            if matcher.matches(text):
                return LocationAnchor(entry.lat, entry.lng, entry.radius_km, entry.name)

        if _NEAR_ME_RE.search(text):
            if user_location is not None:
                lat, lng = user_location
                return LocationAnchor(lat, lng, self.config.near_me_radius_km, "user location")
            default = self._places_by_name.get(self.config.default_anchor)
            if default is not None:
                return LocationAnchor(default.lat, default.lng, default.radius_km, default.name)
            logger.warning(f"Default anchor '{self.config.default_anchor}' is not in the gazetteer")

        return None

    def detect_price_tier(self, text: str) -> Optional[PriceTier]:
        for tier, matcher in self._price_matchers:
            if matcher.matches(text):
                return tier
        return None

    def detect_features(self, text: str) -> Tuple[str, ...]:
        return tuple(value for value, matcher in self._feature_matchers if matcher.matches(text))

    def detect_activity(self, text: str) -> Optional[str]:
        for value, matcher in self._activity_matchers:
            if matcher.matches(text):
                return value
        return None

    def detect_atmosphere(self, text: str) -> Tuple[str, ...]:
        return tuple(value for value, matcher in self._atmosphere_matchers if matcher.matches(text))

    def nice_to_have_features(
        self, categories: AbstractSet[str], atmosphere: AbstractSet[str]
    ) -> FrozenSet[str]:
        """Soft preferences implied by the requested categories and atmosphere."""
        features = set()
        for category in categories:
            features.update(value for value, _ in NICE_TO_HAVE_BY_CATEGORY.get(category, ()))
        for mood in atmosphere:
            features.update(value for value, _ in NICE_TO_HAVE_BY_ATMOSPHERE.get(mood, ()))
        return frozenset(features)

    def extract_keywords(self, text: str) -> FrozenSet[str]:
        """Tokens longer than two characters that are not stop words."""
        return frozenset(
            token
            for token in _TOKEN_RE.findall(text)
            if len(token) > 2 and token not in STOP_WORDS
        )

    def unlocked_categories(self, text: str) -> FrozenSet[str]:
        return frozenset(
            category
            for category, matcher in self._restricted_matchers.items()
            if matcher.matches(text)
        )
