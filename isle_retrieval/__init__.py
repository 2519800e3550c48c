"""
Hybrid retrieval and ranking over a catalog of places.
"""

from .errors import (
    CatalogError,
    CorruptIndexError,
    DimensionMismatchError,
    EmbeddingFileNotFoundError,
    EmbeddingFileReadError,
    IndexValidationError,
    LoadError,
    ProviderError,
    RetrievalError,
)
from .ml.search import RetrievalService, SearchOptions, SearchResult
from .models import Catalog, CatalogEntry, load_catalog

__version__ = "0.1.0"

__all__ = [
    "Catalog",
    "CatalogEntry",
    "load_catalog",
    "RetrievalService",
    "SearchOptions",
    "SearchResult",
    "RetrievalError",
    "LoadError",
    "EmbeddingFileNotFoundError",
    "EmbeddingFileReadError",
    "CorruptIndexError",
    "IndexValidationError",
    "DimensionMismatchError",
    "ProviderError",
    "CatalogError",
]
