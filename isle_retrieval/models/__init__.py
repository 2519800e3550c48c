"""
Data models for the place catalog.
"""

from .place import (
    Catalog,
    CatalogEntry,
    ContactFlags,
    GeoLocation,
    Media,
    PriceTier,
    Rating,
    load_catalog,
)

__all__ = [
    "Catalog",
    "CatalogEntry",
    "ContactFlags",
    "GeoLocation",
    "Media",
    "PriceTier",
    "Rating",
    "load_catalog",
]
