"""
Query Embedding Providers
Convert query text into vectors through an OpenAI-compatible embeddings API, or
through any callable supplied by the caller.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence, Tuple, Union

import httpx
import numpy as np

from ...config import Settings, get_settings
from ...errors import ProviderError
from ..retrieval.query_analyzer import normalize_query

logger = logging.getLogger(__name__)

VectorLike = Union[np.ndarray, Sequence[float]]


class QueryEmbeddingProvider(Protocol):
    """Anything that turns query text into a vector or raises ProviderError."""

    async def embed_query(self, text: str) -> np.ndarray: ...


def _to_vector(values: VectorLike, expected_dimension: Optional[int] = None) -> np.ndarray:
    vector = np.asarray(values, dtype=np.float32).reshape(-1)
    if vector.size == 0:
        raise ProviderError("Embedding provider returned an empty vector")
    if not np.all(np.isfinite(vector)):
        raise ProviderError("Embedding provider returned non-finite values")
    if expected_dimension is not None and vector.shape[0] != expected_dimension:
        raise ProviderError(
            f"Embedding provider returned dimension {vector.shape[0]}, expected {expected_dimension}",
            details={"expected": expected_dimension, "actual": int(vector.shape[0])},
        )
    return vector


class OpenAIEmbeddingProvider:
    """
    Embeddings over HTTP (OpenAI /v1/embeddings request and response shape).

    The underlying httpx client is created lazily and reused; call ``aclose()``
    when done, or use the provider as an async context manager.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize provider.

        Args:
            settings: Engine settings (URL, key, model, dimension, timeout)
            client: Optional preconfigured httpx client (not closed by this provider)
        """
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

        logger.info(
            f"Embedding provider initialized (model={self.settings.embedding_model}, "
            f"url={self.settings.embedding_api_url})"
        )

    @property
    def model(self) -> str:
        return self.settings.embedding_model

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.settings.embedding_timeout))
        return self._client

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.settings.embedding_api_key:
            headers["Authorization"] = f"Bearer {self.settings.embedding_api_key}"
        return headers

    async def _request(self, payload_input: Union[str, List[str]]) -> List[List[float]]:
        if not self.settings.embedding_api_key:
            raise ProviderError("No API key configured for the embedding provider")

        data = {"input": payload_input, "model": self.settings.embedding_model}
        try:
            response = await self._get_client().post(
                self.settings.embedding_api_url, headers=self._headers(), json=data
            )
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"Embedding request timed out after {self.settings.embedding_timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Embedding request failed: {e}") from e

        if response.status_code != 200:
            raise ProviderError(
                f"Embedding API error {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        try:
            result = response.json()
            items = sorted(result["data"], key=lambda item: item.get("index", 0))
            return [item["embedding"] for item in items]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ProviderError(f"Unexpected embedding API response: {e}") from e

    async def embed_query(self, text: str) -> np.ndarray:
        """
        Embed one query.

        Args:
            text: Query text (normalized before sending)

        Returns:
            float32 vector

        Raises:
            ProviderError: On any transport, HTTP or payload failure
        """
        cleaned = normalize_query(text)
        if not cleaned:
            raise ProviderError("Cannot embed an empty query")

        vectors = await self._request(cleaned)
        if len(vectors) != 1:
            raise ProviderError(f"Expected one embedding, got {len(vectors)}")

        vector = _to_vector(vectors[0], self.settings.embedding_dimension)
        logger.debug(f"Embedded query '{cleaned[:50]}' -> dimension {vector.shape[0]}")
        return vector

    async def embed_batch(self, texts: Sequence[str], batch_size: Optional[int] = None) -> np.ndarray:
        """
        Embed many texts (used by the offline builder).

        Returns:
            Array of shape (len(texts), dimension)
        """
        batch_size = batch_size or self.settings.embedding_batch_size
        rows: List[np.ndarray] = []
        for start in range(0, len(texts), batch_size):
            batch = [normalize_query(t) or " " for t in texts[start : start + batch_size]]
            vectors = await self._request(batch)
            if len(vectors) != len(batch):
                raise ProviderError(f"Expected {len(batch)} embeddings, got {len(vectors)}")
            rows.extend(_to_vector(v, self.settings.embedding_dimension) for v in vectors)
            logger.info(f"Embedded {min(start + batch_size, len(texts))}/{len(texts)} texts")

        if not rows:
            return np.zeros((0, self.settings.embedding_dimension), dtype=np.float32)
        return np.vstack(rows)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "OpenAIEmbeddingProvider":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class CallableEmbeddingProvider:
    """
    Wraps a plain function ``text -> vector`` (sync or async).

    Exceptions other than ProviderError are reported as ProviderError so the
    search service can fall back to keyword scoring.
    """

    def __init__(
        self,
        func: Callable[[str], Union[VectorLike, Awaitable[VectorLike]]],
        dimension: Optional[int] = None,
    ):
        self.func = func
        self.dimension = dimension

    async def embed_query(self, text: str) -> np.ndarray:
        cleaned = normalize_query(text)
        try:
            result = self.func(cleaned)
            if inspect.isawaitable(result):
                result = await result
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"Embedding function failed: {e}") from e
        return _to_vector(result, self.dimension)



def combine_embeddings(vectors: Sequence[VectorLike], weights: Sequence[float]) -> Optional[np.ndarray]:
    """
    Weighted average of several embeddings, L2-normalized.

    Args:
        vectors: Embeddings of equal dimension
        weights: One non-negative weight per embedding

    Returns:
        Combined unit vector, or None when the weights sum to zero or the
        average is the zero vector

    Raises:
        ProviderError: If the embeddings differ in dimension
    """
    if len(vectors) != len(weights):
        raise ValueError(f"Got {len(vectors)} vectors but {len(weights)} weights")
    if not vectors:
        return None

    matrix = [_to_vector(v) for v in vectors]
    dimensions = {v.shape[0] for v in matrix}
    if len(dimensions) > 1:
        raise ProviderError(
            "Cannot combine embeddings of different dimensions",
            details={"dimensions": sorted(dimensions)},
        )

    w = np.asarray(weights, dtype=np.float64)
    if np.any(w < 0):
        raise ValueError("Embedding weights must be non-negative")
    total = w.sum()
    if total <= 0:
        return None

    combined = (w[:, None] * np.vstack(matrix).astype(np.float64)).sum(axis=0) / total
    norm = np.linalg.norm(combined)
    if norm == 0:
        return None
    return (combined / norm).astype(np.float32)


async def embed_combined(
    provider: QueryEmbeddingProvider, parts: Sequence[Tuple[str, float]]
) -> Optional[np.ndarray]:
    """
    Embed several weighted texts and combine them into one vector.

    Empty texts are skipped. A part whose embedding fails is skipped as well;
    ProviderError is raised only when every part failed.
    """
    parts = [(text, weight) for text, weight in parts if normalize_query(text)]
    if not parts:
        return None

    errors: List[ProviderError] = []

    async def embed(text: str) -> Optional[np.ndarray]:
        try:
            return await provider.embed_query(text)
        except ProviderError as e:
            logger.warning(f"Skipping part of combined embedding: {e.message}")
            errors.append(e)
            return None

    vectors = await asyncio.gather(*(embed(text) for text, _ in parts))
    kept = [(v, weight) for v, (_, weight) in zip(vectors, parts) if v is not None]
    if not kept:
        raise errors[0]
    return combine_embeddings([v for v, _ in kept], [weight for _, weight in kept])
