"""
Place catalog models.
Validates catalog records and exposes the immutable Catalog used by every search.
"""

import json
import logging
import math
from enum import IntEnum
from functools import cached_property
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ..errors import CatalogError

logger = logging.getLogger(__name__)


class PriceTier(IntEnum):
    """Ordinal price tiers shared by catalog entries and query intents."""

    BUDGET = 1
    MID = 2
    LUXURY = 3
    ULTRA_LUXURY = 4

    @property
    def label(self) -> str:
        return {1: "budget", 2: "mid", 3: "luxury", 4: "ultraLuxury"}[self.value]


class _CatalogModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        populate_by_name=True,  # Accept snake_case as well as camelCase keys
        alias_generator=to_camel,
        extra="ignore",
    )


class GeoLocation(_CatalogModel):
    lat: Optional[float] = None
    lng: Optional[float] = None
    district: Optional[str] = None
    island: Optional[str] = None

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        """(lat, lng) when both are present and finite."""
        if self.lat is None or self.lng is None:
            return None
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            return None
        return self.lat, self.lng


class Rating(_CatalogModel):
    overall: float = Field(default=0.0, ge=0.0, le=5.0)
    review_count: int = Field(default=0, ge=0)


class Media(_CatalogModel):
    thumbnail_present: bool = False


class ContactFlags(_CatalogModel):
    has_website: bool = False
    has_phone: bool = False
    has_booking: bool = False


class CatalogEntry(_CatalogModel):
    """
    One searchable place.

    Entries are frozen after validation and shared read-only by all searches.
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    category: str
    subcategory: Optional[str] = None
    description: str = ""
    short_description: str = ""
    tags: Tuple[str, ...] = ()
    highlights: Tuple[str, ...] = ()
    location: GeoLocation = Field(default_factory=GeoLocation)
    price_tier: Optional[PriceTier] = None
    rating: Rating = Field(default_factory=Rating)
    quality_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    media: Media = Field(default_factory=Media)
    contact_flags: ContactFlags = Field(default_factory=ContactFlags)
    is_featured: bool = False
    is_premium: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        """Numeric ids from JSON feeds are kept as strings."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("category")
    @classmethod
    def normalize_category(cls, v: str) -> str:
        """Categories are lower-case snake_case keys."""
        normalized = v.strip().lower().replace(" ", "_").replace("-", "_")
        if not normalized:
            raise ValueError("category must not be empty")
        return normalized

    @field_validator("tags", "highlights", mode="before")
    @classmethod
    def drop_empty_strings(cls, v):
        if v is None:
            return ()
        return tuple(item for item in v if isinstance(item, str) and item.strip())

    @field_validator("price_tier", mode="before")
    @classmethod
    def parse_price_tier(cls, v):
        """Accept 1-4, "$"-style strings, or tier labels."""
        if v is None or v == "":
            return None
        if isinstance(v, str):
            text = v.strip().lower()
            if text and set(text) == {"$"}:
                return min(len(text), 4)
            labels = {"budget": 1, "mid": 2, "luxury": 3, "ultraluxury": 4, "ultra_luxury": 4}
            if text in labels:
                return labels[text]
        return v

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        return self.location.coordinates

    @cached_property
    def name_text(self) -> str:
        """Lower-cased name."""
        return self.name.lower()

    @cached_property
    def tag_text(self) -> str:
        return " ".join(self.tags).lower()

    @cached_property
    def highlight_text(self) -> str:
        return " ".join(self.highlights).lower()

    @cached_property
    def search_text(self) -> str:
        """All descriptive text, lower-cased, for substring checks."""
        parts = [
            self.name,
            self.category.replace("_", " "),
            self.subcategory or "",
            self.short_description,
            self.description,
            " ".join(self.tags),
            " ".join(self.highlights),
        ]
        return " ".join(part for part in parts if part).lower()


class Catalog:
    """
    Immutable collection of catalog entries with id lookup.

    The catalog is rebuilt start-to-finish; it is never mutated after construction.
    """

    def __init__(self, entries: Iterable[CatalogEntry]):
        entries = tuple(entries)
        by_id: Dict[str, CatalogEntry] = {}
        for entry in entries:
            if entry.id in by_id:
                raise CatalogError(f"Duplicate catalog id: {entry.id}", details={"id": entry.id})
            by_id[entry.id] = entry
        self._entries = entries
        self._by_id = by_id

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._by_id

    @property
    def entries(self) -> Tuple[CatalogEntry, ...]:
        return self._entries

    def get(self, entry_id: str) -> Optional[CatalogEntry]:
        return self._by_id.get(entry_id)

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "Catalog":
        """
        Validate raw records into a catalog.

        Args:
            records: Dicts with camelCase (or snake_case) keys

        Returns:
            Catalog

        Raises:
            CatalogError: If any record fails validation
        """
        entries: List[CatalogEntry] = []
        for position, record in enumerate(records):
            try:
                entries.append(CatalogEntry.model_validate(record))
            except ValidationError as e:
                raise CatalogError(
                    f"Invalid catalog record at position {position}",
                    details={"position": position, "errors": e.errors(include_url=False)},
                ) from e
        return cls(entries)


def load_catalog(path: Union[str, Path]) -> Catalog:
    """
    Load a catalog from a JSON file.

    The file holds either a list of records or an object with a "places" list.
    """
    path = Path(path)
    if not path.exists():
        raise CatalogError(f"Catalog file not found: {path}", details={"path": str(path)})

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise CatalogError(f"Catalog file is not valid JSON: {path}") from e

    if isinstance(data, dict):
        data = data.get("places", [])
    if not isinstance(data, list):
        raise CatalogError(f"Catalog file must contain a list of places: {path}")

    catalog = Catalog.from_records(data)
    logger.info(f"Loaded catalog with {len(catalog)} places from {path}")
    return catalog
