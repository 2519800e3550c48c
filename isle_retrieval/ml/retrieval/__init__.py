"""
Retrieval components: vector store, query analysis, scoring and ranking.
"""

from .filters import FilterStats, PrecisionFilter, Ranker, RestrictedCategoryFilter, ThresholdSettings
from .query_analyzer import QueryAnalyzer, QueryIntent, TriggerMatcher, normalize_query
from .scoring import HybridScorer, ScoredCandidate
from .store_manager import VectorStoreManager, get_store_manager, reset_store_manager
from .vector_store import EmbeddingIndex, SimilarityMatch, VectorStore, write_embedding_files

__all__ = [
    # Vector store
    "EmbeddingIndex",
    "SimilarityMatch",
    "VectorStore",
    "write_embedding_files",
    "VectorStoreManager",
    "get_store_manager",
    "reset_store_manager",
    # Query analysis
    "QueryAnalyzer",
    "QueryIntent",
    "TriggerMatcher",
    "normalize_query",
    # Scoring and ranking
    "HybridScorer",
    "ScoredCandidate",
    "FilterStats",
    "PrecisionFilter",
    "Ranker",
    "RestrictedCategoryFilter",
    "ThresholdSettings",
]
