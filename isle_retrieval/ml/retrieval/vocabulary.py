"""
Query Vocabulary
Static rule tables consulted by the query analyzer and the scorer.

Every table is plain data: a row maps a set of trigger phrases to the field
value it produces. Triggers are lower-case substrings; the short ones listed in
``RetrievalConfig.whole_word_triggers`` match whole words only.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

from ...models.place import PriceTier


@dataclass(frozen=True)
class TriggerRule:
    """One table row: trigger phrases -> resulting value."""

    value: str
    triggers: Tuple[str, ...]


@dataclass(frozen=True)
class FeatureRule:
    """A must-have feature: query triggers plus the evidence looked for in entries."""

    value: str
    triggers: Tuple[str, ...]
    evidence: Tuple[str, ...]


@dataclass(frozen=True)
class GazetteerEntry:
    name: str
    lat: float
    lng: float
    radius_km: float
    aliases: Tuple[str, ...] = ()

    @property
    def names(self) -> Tuple[str, ...]:
        return (self.name,) + self.aliases


CATEGORY_RULES: Tuple[TriggerRule, ...] = (
    TriggerRule(
        "restaurant",
        (
            "restaurant",
            "dining",
            "dinner",
            "lunch",
            "breakfast",
            "brunch",
            "cuisine",
            "chef",
            "food",
            "seafood",
            "where to eat",
            "eat out",
            "eating",
        ),
    ),
    TriggerRule(
        "hotel",
        (
            "hotel",
            "resort",
            "accommodation",
            "lodging",
            "place to stay",
            "where to stay",
            "somewhere to stay",
            "suite",
        ),
    ),
    TriggerRule(
        "villa_rental",
        ("villa", "vacation rental", "vacation home", "holiday home", "airbnb", "house rental", "condo"),
    ),
    TriggerRule("beach", ("beach", "shore", "shoreline", "coast", "cove", "sandy")),
    TriggerRule(
        "diving_snorkeling",
        (
            "dive",
            "diving",
            "diver",
            "snorkel",
            "snorkeling",
            "snorkelling",
            "scuba",
            "underwater",
            "reef",
            "coral",
            "wreck",
        ),
    ),
    TriggerRule(
        "water_sports",
        (
            "jet ski",
            "jetski",
            "kayak",
            "kayaking",
            "paddleboard",
            "paddle board",
            "paddleboarding",
            "parasail",
            "parasailing",
            "water sport",
            "kiteboard",
            "kiteboarding",
            "kitesurf",
            "kitesurfing",
            "windsurf",
            "windsurfing",
            "wakeboard",
        ),
    ),
    TriggerRule(
        "boat_charter",
        ("boat", "yacht", "charter", "sailing", "sailboat", "catamaran", "cruise", "sunset cruise"),
    ),
    TriggerRule(
        "fishing",
        ("fishing", "deep sea", "sportfishing", "sport fishing", "angling", "bonefish", "tarpon"),
    ),
    TriggerRule(
        "bar",
        ("bar", "pub", "cocktail", "drink", "lounge", "happy hour", "brewery", "rum bar", "beach bar"),
    ),
    TriggerRule(
        "spa_wellness",
        ("spa", "day spa", "massage", "wellness", "facial", "relaxation", "yoga"),
    ),
    TriggerRule(
        "activity",
        ("activity", "activities", "tour", "excursion", "adventure", "things to do"),
    ),
    TriggerRule(
        "attraction",
        (
            "attraction",
            "landmark",
            "sightseeing",
            "museum",
            "gallery",
            "must see",
            "must-see",
            "points of interest",
        ),
    ),
    TriggerRule(
        "shopping",
        ("shop", "shopping", "store", "boutique", "mall", "market", "souvenir"),
    ),
    TriggerRule("nightclub", ("nightclub", "night club", "dance club", "clubbing", "dj")),
    TriggerRule("golf", ("golf", "golfing", "tee time", "fairway", "golf course")),
    TriggerRule(
        "transport",
        (
            "transport",
            "transportation",
            "taxi",
            "car rental",
            "rent a car",
            "rental car",
            "shuttle",
            "airport transfer",
        ),
    ),
    TriggerRule("event", ("event", "wedding", "conference", "meeting", "venue")),
    TriggerRule("concierge", ("concierge",)),
    TriggerRule("private_jet", ("private jet", "charter flight", "aviation", "private flight")),
)

# Categories close enough that an entry from one is not penalized for the other
RELATED_CATEGORIES: Dict[str, FrozenSet[str]] = {
    "restaurant": frozenset({"bar", "hotel", "beach"}),
    "hotel": frozenset({"restaurant", "spa_wellness", "beach", "villa_rental"}),
    "villa_rental": frozenset({"hotel", "beach"}),
    "beach": frozenset({"diving_snorkeling", "water_sports", "restaurant", "bar"}),
    "diving_snorkeling": frozenset({"beach", "water_sports", "boat_charter"}),
    "water_sports": frozenset({"beach", "diving_snorkeling", "boat_charter"}),
    "boat_charter": frozenset({"fishing", "diving_snorkeling", "water_sports"}),
    "fishing": frozenset({"boat_charter"}),
    "bar": frozenset({"restaurant", "nightclub"}),
    "spa_wellness": frozenset({"hotel"}),
    "activity": frozenset({"attraction", "water_sports", "boat_charter"}),
    "attraction": frozenset({"activity", "beach"}),
    "shopping": frozenset({"attraction"}),
    "nightclub": frozenset({"bar"}),
    "golf": frozenset({"hotel"}),
    "transport": frozenset({"private_jet"}),
    "event": frozenset({"hotel", "restaurant"}),
    "concierge": frozenset({"private_jet", "transport"}),
    "private_jet": frozenset({"transport", "concierge"}),
}

# Ordered by priority: the first tier with a matching trigger wins
PRICE_TIER_RULES: Tuple[Tuple[PriceTier, Tuple[str, ...]], ...] = (
    (
        PriceTier.ULTRA_LUXURY,
        (
            "ultra luxury",
            "ultra-luxury",
            "ultra",
            "ultimate",
            "money no object",
            "money is no object",
            "spare no expense",
            "best of the best",
            "finest",
            "no budget",
        ),
    ),
    (
        PriceTier.LUXURY,
        (
            "luxury",
            "luxurious",
            "upscale",
            "premium",
            "exclusive",
            "high-end",
            "high end",
            "five star",
            "5 star",
            "5-star",
            "lavish",
            "opulent",
        ),
    ),
    (
        PriceTier.MID,
        ("mid-range", "mid range", "midrange", "mid-priced", "moderate", "moderately", "reasonable", "reasonably"),
    ),
    (
        PriceTier.BUDGET,
        (
            "cheap",
            "cheapest",
            "budget",
            "affordable",
            "inexpensive",
            "economical",
            "good value",
            "low cost",
            "low-cost",
        ),
    ),
)

FEATURE_RULES: Tuple[FeatureRule, ...] = (
    FeatureRule(
        "ocean_view",
        ("ocean view", "sea view", "water view"),
        ("ocean view", "sea view", "ocean-view", "oceanfront", "waterfront"),
    ),
    FeatureRule(
        "beachfront",
        ("beachfront", "beach front", "on the beach", "oceanfront"),
        ("beachfront", "beach front", "on the beach", "oceanfront", "beachside"),
    ),
    FeatureRule("pool", ("pool", "swimming pool", "infinity pool"), ("pool",)),
    FeatureRule(
        "outdoor_seating",
        ("outdoor seating", "outdoor dining", "al fresco", "alfresco", "patio", "terrace"),
        ("outdoor seating", "outdoor dining", "al fresco", "alfresco", "patio", "terrace", "deck"),
    ),
    FeatureRule("private", ("private", "secluded"), ("private", "secluded")),
    FeatureRule(
        "live_entertainment",
        ("live music", "live entertainment", "live band"),
        ("live music", "live entertainment", "live band", "dj"),
    ),
    FeatureRule(
        "vegan_options",
        ("vegan", "plant-based", "plant based", "vegetarian"),
        ("vegan", "plant-based", "plant based", "vegetarian"),
    ),
    FeatureRule("gluten_free", ("gluten-free", "gluten free"), ("gluten-free", "gluten free")),
    FeatureRule(
        "wheelchair_accessible",
        ("wheelchair", "accessible", "accessibility"),
        ("wheelchair", "accessible"),
    ),
    FeatureRule(
        "pet_friendly",
        ("pet friendly", "pet-friendly", "dog friendly", "dog-friendly", "pets allowed"),
        ("pet friendly", "pet-friendly", "dog friendly", "dog-friendly", "pets welcome", "pets allowed"),
    ),
    FeatureRule("parking", ("parking",), ("parking",)),
    FeatureRule("wifi", ("wifi", "wi-fi"), ("wifi", "wi-fi", "internet")),
    FeatureRule(
        "kid_friendly",
        ("kid friendly", "kid-friendly", "family friendly", "family-friendly", "kids", "children"),
        ("kid", "family", "children"),
    ),
)

# Ordered: the first matching activity wins
ACTIVITY_RULES: Tuple[TriggerRule, ...] = (
    TriggerRule("romance", ("romantic", "honeymoon", "anniversary", "date night", "couple")),
    TriggerRule("nightlife", ("nightlife", "night out", "going out", "party", "dancing")),
    TriggerRule("adventure", ("adventure", "thrill", "adrenaline", "explore", "exploring", "hike", "hiking")),
    TriggerRule("relaxation", ("relax", "relaxing", "unwind", "peaceful", "quiet", "tranquil")),
    TriggerRule("culture", ("history", "historic", "culture", "cultural", "heritage", "local")),
    TriggerRule("family", ("family", "kids", "children")),
    TriggerRule("water", ("swim", "swimming", "in the water", "underwater")),
)

# Every matching atmosphere is kept. Evidence is looked for in entry text.
ATMOSPHERE_RULES: Tuple[FeatureRule, ...] = (
    FeatureRule(
        "romantic",
        ("romantic", "intimate", "couples", "honeymoon", "anniversary", "date night", "love", "propose"),
        ("romantic", "intimate", "couples", "honeymoon"),
    ),
    FeatureRule(
        "family",
        ("family", "kids", "children", "child-friendly", "toddler", "baby"),
        ("family", "kids", "children"),
    ),
    FeatureRule(
        "adventurous",
        ("adventure", "thrill", "exciting", "extreme", "adrenaline", "daring"),
        ("adventure", "thrill", "adrenaline", "exciting"),
    ),
    FeatureRule(
        "relaxing",
        ("relax", "peaceful", "quiet", "calm", "tranquil", "serene", "unwind", "zen"),
        ("relax", "peaceful", "quiet", "calm", "tranquil", "serene"),
    ),
    FeatureRule(
        "luxurious",
        ("luxury", "luxurious", "upscale", "exclusive", "vip", "high-end", "five star", "5 star"),
        ("luxury", "luxurious", "upscale", "exclusive", "five star", "5-star"),
    ),
    FeatureRule(
        "authentic",
        ("local", "authentic", "traditional", "genuine", "hidden gem", "off the beaten path"),
        ("local", "authentic", "traditional", "hidden gem"),
    ),
    FeatureRule(
        "vibrant",
        ("lively", "vibrant", "energetic", "party", "nightlife", "fun", "social"),
        ("lively", "vibrant", "party", "live music", "dj"),
    ),
    FeatureRule(
        "scenic",
        ("view", "scenic", "sunset", "sunrise", "panoramic", "oceanfront", "waterfront"),
        ("view", "scenic", "sunset", "sunrise", "panoramic", "oceanfront", "waterfront"),
    ),
)

# Soft preferences implied by a category or an atmosphere: (value, evidence)
NICE_TO_HAVE_BY_CATEGORY: Dict[str, Tuple[Tuple[str, Tuple[str, ...]], ...]] = {
    "restaurant": (("reservations", ("reservation", "book a table", "booking")),),
}
NICE_TO_HAVE_BY_ATMOSPHERE: Dict[str, Tuple[Tuple[str, Tuple[str, ...]], ...]] = {
    "romantic": (
        ("candlelight", ("candlelight", "candlelit")),
        ("quiet music", ("quiet music", "live jazz", "acoustic")),
        ("sunset view", ("sunset",)),
    ),
}

GAZETTEER: Tuple[GazetteerEntry, ...] = (
    GazetteerEntry("seven mile beach", 19.335, -81.385, 3.0, ("7 mile beach", "7-mile beach")),
    GazetteerEntry("george town", 19.295, -81.381, 2.0, ("georgetown",)),
    GazetteerEntry("west bay", 19.375, -81.405, 3.0),
    GazetteerEntry("rum point", 19.365, -81.260, 2.0),
    GazetteerEntry("camana bay", 19.328, -81.378, 1.0),
    GazetteerEntry("stingray city", 19.389, -81.298, 1.0),
    GazetteerEntry("east end", 19.300, -81.100, 5.0),
    GazetteerEntry("north side", 19.350, -81.150, 4.0),
    GazetteerEntry("bodden town", 19.280, -81.250, 4.0),
    GazetteerEntry("cayman brac", 19.720, -79.800, 10.0, ("the brac",)),
    GazetteerEntry("little cayman", 19.680, -80.050, 8.0),
    GazetteerEntry("grand cayman", 19.313, -81.255, 25.0),
)

# Categories that justify the larger result window
PROFESSIONAL_CATEGORIES: FrozenSet[str] = frozenset(
    {"legal", "financial_services", "real_estate", "medical"}
)

STOP_WORDS: FrozenSet[str] = frozenset(
    {
        "the", "and", "for", "with", "near", "nearby", "around", "from", "that", "this",
        "are", "was", "were", "has", "have", "had", "can", "could", "would", "should",
        "will", "what", "where", "which", "who", "when", "how", "why", "there", "their",
        "best", "good", "great", "nice", "top", "some", "any", "all", "most", "very",
        "find", "show", "tell", "give", "get", "want", "need", "like", "looking", "look",
        "recommend", "recommendation", "recommendations", "suggest", "suggestion",
        "please", "you", "your", "our", "its", "into", "onto", "about", "over", "also",
        "place", "places", "spot", "spots", "thing", "things", "something", "somewhere",
        "visit", "visiting", "go", "going", "trip", "today", "tonight", "tomorrow",
        "island", "cayman", "islands",
    }
)
