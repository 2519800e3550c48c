"""
Search Service
Single entry point for retrieval: query text in, ranked places out.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from ...errors import DimensionMismatchError, ProviderError
from ...models.place import Catalog, CatalogEntry
from ..config import RetrievalConfig, get_retrieval_config
from ..embeddings.text_encoder import QueryEmbeddingProvider, embed_combined
from ..retrieval.filters import RestrictedCategoryFilter, Ranker, ThresholdSettings
from ..retrieval.query_analyzer import QueryAnalyzer, QueryIntent, normalize_query
from ..retrieval.scoring import HybridScorer, ScoredCandidate
from ..retrieval.store_manager import VectorStoreManager
from ..retrieval.vocabulary import PROFESSIONAL_CATEGORIES

logger = logging.getLogger(__name__)


@dataclass
class SearchOptions:
    """
    Per-query options. Every field defaults to the configured behaviour.
    """

    max_results: Optional[int] = None
    category_hint: Optional[str] = None
    min_total_score: Optional[float] = None
    min_semantic_score: Optional[float] = None
    user_location: Optional[Tuple[float, float]] = None  # (lat, lng) for "near me"
    use_vectors: bool = True
    # Rephrasings of the query; the i-th one counts with weight 1 - decay * i
    expansion_queries: Tuple[str, ...] = ()
    # Conversation context blended into the query embedding
    context_text: Optional[str] = None

    def __post_init__(self):
        if self.max_results is not None and self.max_results < 0:
            raise ValueError(f"max_results must be >= 0, got {self.max_results}")
        self.expansion_queries = tuple(self.expansion_queries)


@dataclass
class SearchDiagnostics:
    """How a result set was produced."""

    vector_search_used: bool = False
    fallback_reason: Optional[str] = None
    candidates_considered: int = 0
    restricted_excluded: int = 0
    candidates_scored: int = 0
    candidates_passed_thresholds: int = 0
    candidates_passed_filter: int = 0
    returned: int = 0
    queries_embedded: int = 0
    threshold_relaxed: bool = False
    search_time_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "vector_search_used": self.vector_search_used,
            "fallback_reason": self.fallback_reason,
            "candidates_considered": self.candidates_considered,
            "restricted_excluded": self.restricted_excluded,
            "candidates_scored": self.candidates_scored,
            "candidates_passed_thresholds": self.candidates_passed_thresholds,
            "candidates_passed_filter": self.candidates_passed_filter,
            "returned": self.returned,
            "queries_embedded": self.queries_embedded,
            "threshold_relaxed": self.threshold_relaxed,
            "search_time_ms": self.search_time_ms,
        }


@dataclass
class SearchResult:
    """
    Ranked places with diagnostics.
    """

    query: str
    intent: QueryIntent
    candidates: List[ScoredCandidate] = field(default_factory=list)
    diagnostics: SearchDiagnostics = field(default_factory=SearchDiagnostics)

    @property
    def entries(self) -> List[CatalogEntry]:
        return [c.entry for c in self.candidates]

    @property
    def ids(self) -> List[str]:
        return [c.entry.id for c in self.candidates]

    @property
    def vector_search_used(self) -> bool:
        return self.diagnostics.vector_search_used

    def __len__(self) -> int:
        return len(self.candidates)

    def to_dict(self) -> dict:
        """Convert to dictionary for downstream consumers."""
        return {
            "query": self.query,
            "intent": self.intent.to_dict(),
            "results": [c.to_dict() for c in self.candidates],
            "diagnostics": self.diagnostics.to_dict(),
        }


class RetrievalService:
    """
    Retrieval facade.

    Orchestrates one search:
    - Query analysis, concurrently with the store load and query embedding
    - Restricted-category gate
    - Hybrid scoring (keyword-only when vectors are unavailable)
    - Precision filtering and ranking
    """

    def __init__(
        self,
        catalog: Catalog,
        store_manager: Optional[VectorStoreManager] = None,
        provider: Optional[QueryEmbeddingProvider] = None,
        config: Optional[RetrievalConfig] = None,
    ):
        """
        Initialize retrieval service.

        Args:
            catalog: Immutable place catalog
            store_manager: Handle to the shared vector store (None: keyword-only)
            provider: Query embedding provider (None: keyword-only)
            config: Retrieval configuration
        """
        self.catalog = catalog
        self.store_manager = store_manager
        self.provider = provider
        self.config = config or get_retrieval_config()

        self.analyzer = QueryAnalyzer(self.config)
        self.restricted_filter = RestrictedCategoryFilter(self.config)
        self.scorer = HybridScorer(self.config)
        self.ranker = Ranker()

        logger.info(
            f"Retrieval service initialized ({len(catalog)} places, "
            f"vectors={'on' if store_manager and provider else 'off'})"
        )

    def _limit_for(self, intent: QueryIntent, options: SearchOptions) -> int:
        if options.max_results is not None:
            return options.max_results
        if intent.categories & PROFESSIONAL_CATEGORIES:
            return self.config.limits.professional_max_results
        return self.config.limits.default_max_results

    def _thresholds_for(self, vector_mode: bool, options: SearchOptions) -> ThresholdSettings:
        thresholds = self.config.thresholds
        if vector_mode:
            return ThresholdSettings(
                min_total_score=(
                    options.min_total_score
                    if options.min_total_score is not None
                    else thresholds.min_total_score
                ),
                min_semantic_score=(
                    options.min_semantic_score
                    if options.min_semantic_score is not None
                    else thresholds.min_semantic_score
                ),
            )
        return ThresholdSettings(
            min_total_score=(
                options.min_total_score
                if options.min_total_score is not None
                else thresholds.fallback_min_total_score
            )
        )

    def _query_texts(self, intent: QueryIntent, options: SearchOptions) -> List[str]:
        """The query followed by its distinct, non-empty expansions."""
        texts = [intent.text]
        for query in options.expansion_queries:
            if len(texts) > self.config.max_expansion_queries:
                break
            cleaned = normalize_query(query)
            if cleaned and cleaned not in texts:
                texts.append(cleaned)
        return texts

    async def _embed(self, text: str) -> Tuple[Optional[np.ndarray], Optional[str]]:
        try:
            return await self.provider.embed_query(text), None
        except ProviderError as e:
            logger.warning(f"Query embedding failed, using keyword scoring: {e.message}")
            return None, "provider_error"

    async def _embed_primary(
        self, intent: QueryIntent, options: SearchOptions
    ) -> Tuple[Optional[np.ndarray], Optional[str]]:
        if not (options.context_text and normalize_query(options.context_text)):
            return await self._embed(intent.text)

        weight = self.config.context_weight
        try:
            embedding = await embed_combined(
                self.provider, [(intent.text, 1.0 - weight), (options.context_text, weight)]
            )
        except ProviderError as e:
            logger.warning(f"Query embedding failed, using keyword scoring: {e.message}")
            return None, "provider_error"
        if embedding is None:
            return None, "no_vector_matches"
        return embedding, None

    async def _semantic_scores(
        self, intent: QueryIntent, options: SearchOptions
    ) -> Tuple[Optional[Dict[str, float]], Optional[str], int]:
        """
        Similarity of the top candidates to the query and its expansions.

        Each expansion query is searched separately and weighted by its position
        (the primary query has weight 1); a place keeps its best weighted score.

        Returns:
            Tuple of (id -> similarity for the nearest candidates, or None;
            fallback reason; number of query vectors searched)
        """
        if not options.use_vectors:
            return None, "vectors_disabled", 0
        if self.store_manager is None or self.provider is None:
            return None, "vectors_not_configured", 0
        if not intent.text:
            return None, "empty_query", 0

        texts = self._query_texts(intent, options)
        store, embedded = await asyncio.gather(
            self.store_manager.get_store(),
            asyncio.gather(
                self._embed_primary(intent, options), *(self._embed(text) for text in texts[1:])
            ),
        )
        if store is None:
            return None, "store_unavailable", 0
        primary, embed_error = embedded[0]
        if primary is None:
            return None, embed_error, 0

        scores: Dict[str, float] = {}
        searched = 0
        decay = self.config.expansion_query_decay
        for position, (embedding, _) in enumerate(embedded):
            if embedding is None:
                continue
            try:
                matches = store.search_similar(embedding, self.config.limits.candidate_k)
            except DimensionMismatchError as e:
                if position == 0:
                    logger.warning(f"Query vector does not fit the store, using keyword scoring: {e.message}")
                    return None, "dimension_mismatch", 0
                logger.warning(f"Skipping expansion query '{texts[position]}': {e.message}")
                continue

            searched += 1
            weight = max(0.0, 1.0 - decay * position)
            for match in matches:
                weighted = match.score * weight
                if match.entry_id not in scores or weighted > scores[match.entry_id]:
                    scores[match.entry_id] = weighted

        if not scores:
            return None, "no_vector_matches", searched
        return scores, None, searched

    async def search(self, query_text: str, options: Optional[SearchOptions] = None) -> SearchResult:
        """
        Search the catalog.

        Args:
            query_text: Free-text query
            options: Per-query options

        Returns:
            SearchResult, ordered by total score (ties by id)
        """
        start_time = time.time()
        options = options or SearchOptions()

        intent = self.analyzer.analyze(
            query_text, user_location=options.user_location, category_hint=options.category_hint
        )
        semantic_scores, fallback_reason, queries_embedded = await self._semantic_scores(intent, options)
        vector_mode = semantic_scores is not None

        result = self._rank(query_text, intent, semantic_scores, options)
        result.diagnostics.fallback_reason = fallback_reason
        result.diagnostics.queries_embedded = queries_embedded
        result.diagnostics.search_time_ms = (time.time() - start_time) * 1000

        logger.info(
            f"Search '{intent.text[:60]}' returned {len(result)} places "
            f"({'hybrid' if vector_mode else 'keyword'}) in {result.diagnostics.search_time_ms:.1f}ms",
            extra={
                "query": intent.text,
                "vector_search_used": vector_mode,
                "fallback_reason": fallback_reason,
                "categories": sorted(intent.categories),
                "returned": len(result),
            },
        )
        return result

    def _rank(
        self,
        query_text: str,
        intent: QueryIntent,
        semantic_scores: Optional[Dict[str, float]],
        options: SearchOptions,
    ) -> SearchResult:
        vector_mode = semantic_scores is not None
        diagnostics = SearchDiagnostics(
            vector_search_used=vector_mode, candidates_considered=len(self.catalog)
        )

        eligible = self.restricted_filter.apply(self.catalog, intent.unlocked_categories)
        diagnostics.restricted_excluded = len(self.catalog) - len(eligible)

        scored = self.scorer.score_all(eligible, intent, semantic_scores)
        limit = self._limit_for(intent, options)
        ranked, stats = self.ranker.rank(
            scored, intent, self._thresholds_for(vector_mode, options), limit
        )

        diagnostics.candidates_scored = stats.scored
        diagnostics.candidates_passed_thresholds = stats.passed_thresholds
        diagnostics.candidates_passed_filter = stats.passed_constraints
        diagnostics.returned = stats.returned

        if not ranked and not vector_mode and options.min_total_score is None:
            ranked = self._keyword_rescue(scored, intent, limit, diagnostics)

        return SearchResult(query=query_text, intent=intent, candidates=ranked, diagnostics=diagnostics)

    def _keyword_rescue(
        self,
        scored: List[ScoredCandidate],
        intent: QueryIntent,
        limit: int,
        diagnostics: SearchDiagnostics,
    ) -> List[ScoredCandidate]:
        """
        Best keyword matches when nothing cleared the keyword-mode threshold.

        A query matching only low-weight fields (a description, say) cannot
        reach the total-score threshold, since keyword scoring carries at most
        a third of the fallback weights. Hard constraints still apply.
        """
        matched = [c for c in scored if c.components.get("keyword", 0.0) > 0.0]
        if not matched:
            return []

        ranked, stats = self.ranker.rank(matched, intent, ThresholdSettings(min_total_score=0.0), limit)
        if ranked:
            logger.debug(f"No place cleared the keyword threshold, returning {len(ranked)} keyword matches")
            diagnostics.threshold_relaxed = True
            diagnostics.candidates_passed_filter = stats.passed_constraints
            diagnostics.returned = stats.returned
        return ranked

    async def similar_places(
        self, entry_ids: Iterable[str], max_results: Optional[int] = None
    ) -> SearchResult:
        """
        Places similar to a set of known places (average of their embeddings).

        The given places are excluded and restricted categories never appear.
        Returns an empty result when the vector store is unavailable.
        """
        start_time = time.time()
        entry_ids = list(dict.fromkeys(entry_ids))
        limit = max_results if max_results is not None else self.config.limits.default_max_results
        intent = QueryIntent()
        diagnostics = SearchDiagnostics(candidates_considered=len(self.catalog))
        result = SearchResult(query="", intent=intent, diagnostics=diagnostics)

        store = await self.store_manager.get_store() if self.store_manager else None
        if store is None:
            diagnostics.fallback_reason = "store_unavailable"
            return result

        excluded = set(entry_ids)
        top_k = self.config.limits.similar_places_k + len(excluded)
        matches = store.search_similar_by_ids(entry_ids, top_k)
        diagnostics.vector_search_used = bool(matches)

        candidates = []
        for match in matches:
            entry = self.catalog.get(match.entry_id)
            if entry is None or entry.id in excluded:
                continue
            if not self.restricted_filter.allows(entry):
                diagnostics.restricted_excluded += 1
                continue
            candidates.append(self.scorer.score_entry(entry, intent, semantic=match.score))

        diagnostics.candidates_scored = len(candidates)
        min_semantic = self.config.thresholds.min_semantic_score
        kept = [c for c in candidates if c.semantic_score >= min_semantic]
        diagnostics.candidates_passed_thresholds = len(kept)
        diagnostics.candidates_passed_filter = len(kept)

        result.candidates = self.ranker.order(kept)[: max(0, limit)]
        diagnostics.returned = len(result.candidates)
        diagnostics.search_time_ms = (time.time() - start_time) * 1000
        logger.debug(f"Similar places for {len(entry_ids)} ids: {diagnostics.returned} returned")
        return result
