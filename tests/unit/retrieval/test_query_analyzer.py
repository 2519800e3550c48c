"""
Tests for rule-driven query analysis.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from isle_retrieval.ml.config import RetrievalConfig
from isle_retrieval.ml.retrieval.query_analyzer import QueryAnalyzer, QueryIntent, TriggerMatcher
from isle_retrieval.models import PriceTier


@pytest.fixture(scope="module")
def analyzer():
    return QueryAnalyzer(RetrievalConfig())


class TestTriggerMatcher:
    def test_substring_by_default(self):
        matcher = TriggerMatcher(["beach", "snorkel"])
        assert matcher.matches("beachside snorkelers")
        assert matcher.matches("Quiet BEACHES")
        assert not matcher.matches("reach the shore")

    def test_whole_word_opt_in(self):
        matcher = TriggerMatcher(["bar", "beach"], whole_words={"bar"})
        assert matcher.matches("a beach bar")
        assert matcher.matches("rooftop bars")
        assert matcher.matches("beachfront")
        assert not matcher.matches("barbecue night")
        assert not matcher.matches("barber shop")
        assert not matcher.matches("embark here")

    def test_phrases(self):
        matcher = TriggerMatcher(["jet ski", "high-end"])
        assert matcher.matches("rent a jet ski")
        assert matcher.matches("high-end shopping")
        assert matcher.matches("jet skiing")
        assert not matcher.matches("jet set")

    def test_empty_matcher_never_matches(self):
        assert not TriggerMatcher([]).matches("anything")


class TestCategories:
    def test_single_category(self, analyzer):
        intent = analyzer.analyze("best beach")
        assert intent.categories == {"beach"}
        assert intent.keywords == {"beach"}
        assert intent.location_anchor is None
        assert intent.price_tier is None

    def test_multiple_categories(self, analyzer):
        intent = analyzer.analyze("Dinner and cocktails")
        assert intent.categories == {"restaurant", "bar"}

    def test_no_category(self, analyzer):
        assert analyzer.analyze("something fun").categories == frozenset()

    def test_category_hint_is_added(self, analyzer):
        intent = analyzer.analyze("somewhere nice", category_hint="Spa Wellness")
        assert intent.categories == {"spa_wellness"}

    def test_restricted_trigger_unlocks_category(self, analyzer):
        intent = analyzer.analyze("is there a pharmacy nearby")
        assert intent.unlocked_categories == {"medical"}
        assert "medical" in intent.categories

    def test_no_unlock_without_trigger(self, analyzer):
        assert analyzer.analyze("sunset cruise").unlocked_categories == frozenset()

    def test_substring_triggers(self, analyzer):
        assert analyzer.analyze("beachside snorkelers").categories == {"beach", "diving_snorkeling"}

    def test_short_triggers_need_whole_words(self, analyzer):
        assert analyzer.analyze("barber near george town").categories == frozenset()
        assert analyzer.analyze("great atmosphere").unlocked_categories == frozenset()
        assert analyzer.analyze("nearest atm").unlocked_categories == {"financial_services"}

    def test_offshore_does_not_unlock_financial_services(self, analyzer):
        intent = analyzer.analyze("offshore fishing charter")
        assert intent.unlocked_categories == frozenset()
        assert intent.categories == {"fishing", "boat_charter"}


class TestLocation:
    def test_named_place(self, analyzer):
        anchor = analyzer.analyze("snorkeling near Stingray City").location_anchor
        assert anchor.name == "stingray city"
        assert anchor.radius_km == 1.0

    def test_longest_name_wins(self, analyzer):
        intent = analyzer.analyze("hotels on seven mile beach")
        assert intent.location_anchor.name == "seven mile beach"
        assert "hotel" in intent.categories

    def test_alias(self, analyzer):
        assert analyzer.analyze("lunch in georgetown").location_anchor.name == "george town"

    def test_near_me_uses_default_anchor(self, analyzer):
        anchor = analyzer.analyze("restaurants near me").location_anchor
        assert anchor.name == "george town"
        assert (anchor.lat, anchor.lng) == (19.295, -81.381)

    def test_near_me_prefers_user_location(self, analyzer):
        anchor = analyzer.analyze("coffee near me", user_location=(19.3, -81.2)).location_anchor
        assert (anchor.lat, anchor.lng) == (19.3, -81.2)
        assert anchor.radius_km == 3.0

    def test_no_anchor(self, analyzer):
        assert analyzer.analyze("good coffee").location_anchor is None


class TestPriceTier:
    @pytest.mark.parametrize(
        "query,tier",
        [
            ("affordable lunch", PriceTier.BUDGET),
            ("mid-range hotel", PriceTier.MID),
            ("upscale dinner", PriceTier.LUXURY),
            ("the finest dining", PriceTier.ULTRA_LUXURY),
            ("cheap but luxury villa", PriceTier.LUXURY),
            ("no budget limits", PriceTier.ULTRA_LUXURY),
        ],
    )
    def test_tier_detection(self, analyzer, query, tier):
        assert analyzer.analyze(query).price_tier == tier

    def test_no_tier(self, analyzer):
        assert analyzer.analyze("beach").price_tier is None


class TestFeaturesAndKeywords:
    def test_features_fire_independently(self, analyzer):
        intent = analyzer.analyze("pet friendly hotel with a pool and wifi")
        assert intent.must_have_features == {"pet_friendly", "pool", "wifi"}

    def test_keywords_drop_stop_words_and_short_tokens(self, analyzer):
        intent = analyzer.analyze("The best tacos in town")
        assert intent.keywords == {"tacos", "town"}

    def test_activity(self, analyzer):
        assert analyzer.analyze("romantic dinner").activity_type == "romance"
        assert analyzer.analyze("beach").activity_type is None

    def test_text_is_normalized(self, analyzer):
        assert analyzer.analyze("  Sunset   DINNER ").text == "sunset dinner"

    def test_atmosphere(self, analyzer):
        assert analyzer.analyze("romantic dinner").atmosphere == {"romantic"}
        assert analyzer.analyze("quiet spot with a view").atmosphere == {"relaxing", "scenic"}
        assert analyzer.analyze("interview").atmosphere == frozenset()

    def test_nice_to_have_features(self, analyzer):
        intent = analyzer.analyze("romantic dinner")
        assert intent.nice_to_have_features == {"reservations", "candlelight", "quiet music", "sunset view"}
        assert analyzer.analyze("best beach").nice_to_have_features == frozenset()


def test_empty_query(analyzer):
    intent = analyzer.analyze("")
    assert intent.is_empty
    assert intent == QueryIntent()


def test_custom_restricted_triggers():
    config = RetrievalConfig(restricted_triggers={"legal": ("solicitor",)})
    analyzer = QueryAnalyzer(config)
    assert analyzer.analyze("need a solicitor").unlocked_categories == {"legal"}
    assert analyzer.analyze("need a pharmacy").unlocked_categories == frozenset()


@settings(max_examples=200, deadline=None)
@given(st.text(max_size=120))
def test_analysis_never_fails_and_is_deterministic(text):
    analyzer = QueryAnalyzer(RetrievalConfig())
    first = analyzer.analyze(text)
    assert first == analyzer.analyze(text)
    assert all(len(keyword) > 2 for keyword in first.keywords)
