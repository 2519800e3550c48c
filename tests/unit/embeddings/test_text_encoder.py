"""
Tests for query embedding providers.
"""

import json

import httpx
import numpy as np
import pytest

from isle_retrieval.config import Settings
from isle_retrieval.errors import ProviderError
from isle_retrieval.ml.embeddings import (
    CallableEmbeddingProvider,
    OpenAIEmbeddingProvider,
    build_embedding_text,
    combine_embeddings,
    embed_combined,
)
from tests.factories import make_entry


def _settings(**overrides):
    values = {
        "embedding_api_key": "test-key",
        "embedding_api_url": "https://embeddings.test/v1/embeddings",
        "embedding_model": "test-embedding",
        "embedding_dimension": 3,
        "embedding_batch_size": 2,
    }
    values.update(overrides)
    return Settings(**values)


def _provider(handler, **overrides):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAIEmbeddingProvider(_settings(**overrides), client=client), client


class TestOpenAIEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_embeds_normalized_query(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"data": [{"index": 0, "embedding": [0.1, 0.2, 0.3]}]})

        provider, client = _provider(handler)
        vector = await provider.embed_query("  Sunset   DINNER ")
        await client.aclose()

        np.testing.assert_allclose(vector, [0.1, 0.2, 0.3], atol=1e-6)
        assert vector.dtype == np.float32
        body = json.loads(requests[0].content)
        assert body == {"input": "sunset dinner", "model": "test-embedding"}
        assert requests[0].headers["authorization"] == "Bearer test-key"

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        provider, client = _provider(lambda request: httpx.Response(500, text="upstream down"))
        with pytest.raises(ProviderError) as exc_info:
            await provider.embed_query("beach")
        await client.aclose()
        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        provider, client = _provider(handler)
        with pytest.raises(ProviderError, match="timed out"):
            await provider.embed_query("beach")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider, client = _provider(handler)
        with pytest.raises(ProviderError):
            await provider.embed_query("beach")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unexpected_payload(self):
        provider, client = _provider(lambda request: httpx.Response(200, json={"oops": True}))
        with pytest.raises(ProviderError):
            await provider.embed_query("beach")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_wrong_dimension(self):
        provider, client = _provider(
            lambda request: httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0, 2.0]}]})
        )
        with pytest.raises(ProviderError, match="dimension"):
            await provider.embed_query("beach")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        calls = []
        provider, client = _provider(lambda request: calls.append(request), embedding_api_key=None)
        with pytest.raises(ProviderError):
            await provider.embed_query("beach")
        await client.aclose()
        assert calls == []

    @pytest.mark.asyncio
    async def test_empty_query(self):
        provider, client = _provider(lambda request: httpx.Response(500))
        with pytest.raises(ProviderError):
            await provider.embed_query("   ")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_batch_orders_by_index(self):
        def handler(request):
            texts = json.loads(request.content)["input"]
            data = [
                {"index": i, "embedding": [float(len(text)), 0.0, 1.0]} for i, text in enumerate(texts)
            ]
            return httpx.Response(200, json={"data": list(reversed(data))})

        provider, client = _provider(handler)
        vectors = await provider.embed_batch(["a", "bbb", "cc"])
        await client.aclose()

        assert vectors.shape == (3, 3)
        np.testing.assert_allclose(vectors[:, 0], [1.0, 3.0, 2.0])


class TestCallableEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_sync_function(self):
        seen = []

        def embed(text):
            seen.append(text)
            return [1.0, 0.0]

        vector = await CallableEmbeddingProvider(embed, dimension=2).embed_query(" Beach Bar ")
        assert seen == ["beach bar"]
        np.testing.assert_allclose(vector, [1.0, 0.0])

    @pytest.mark.asyncio
    async def test_async_function(self):
        async def embed(text):
            return np.ones(3)

        vector = await CallableEmbeddingProvider(embed).embed_query("beach")
        assert vector.shape == (3,)

    @pytest.mark.asyncio
    async def test_failures_become_provider_errors(self):
        def embed(text):
            raise ConnectionError("offline")

        with pytest.raises(ProviderError, match="offline"):
            await CallableEmbeddingProvider(embed).embed_query("beach")

    @pytest.mark.asyncio
    async def test_non_finite_vector(self):
        with pytest.raises(ProviderError):
            await CallableEmbeddingProvider(lambda text: [float("nan"), 1.0]).embed_query("beach")


class TestCombinedEmbedding:
    def test_weighted_average_is_normalized(self):
        combined = combine_embeddings([[1.0, 0.0], [0.0, 1.0]], [3.0, 1.0])
        expected = np.array([3.0, 1.0]) / np.sqrt(10.0)
        np.testing.assert_allclose(combined, expected, rtol=1e-6)
        assert np.linalg.norm(combined) == pytest.approx(1.0)

    def test_degenerate_combinations(self):
        assert combine_embeddings([], []) is None
        assert combine_embeddings([[1.0, 0.0]], [0.0]) is None
        assert combine_embeddings([[1.0, 0.0], [-1.0, 0.0]], [1.0, 1.0]) is None

    def test_dimension_mismatch(self):
        with pytest.raises(ProviderError):
            combine_embeddings([[1.0, 0.0], [1.0, 0.0, 0.0]], [1.0, 1.0])

    @pytest.mark.asyncio
    async def test_embed_combined_skips_empty_texts(self):
        seen = []

        def embed(text):
            seen.append(text)
            return {"dinner": [1.0, 0.0], "on the beach": [0.0, 1.0]}[text]

        provider = CallableEmbeddingProvider(embed)
        combined = await embed_combined(provider, [("Dinner", 0.7), ("  ", 0.5), ("on the beach", 0.3)])

        assert sorted(seen) == ["dinner", "on the beach"]
        np.testing.assert_allclose(combined, np.array([0.7, 0.3]) / np.sqrt(0.58), rtol=1e-6)

    @pytest.mark.asyncio
    async def test_embed_combined_skips_failed_parts(self):
        def embed(text):
            if text == "context":
                raise RuntimeError("boom")
            return [0.0, 2.0]

        combined = await embed_combined(CallableEmbeddingProvider(embed), [("query", 0.7), ("context", 0.3)])
        np.testing.assert_allclose(combined, [0.0, 1.0])

    @pytest.mark.asyncio
    async def test_embed_combined_raises_when_every_part_fails(self):
        def embed(text):
            raise RuntimeError("boom")

        with pytest.raises(ProviderError):
            await embed_combined(CallableEmbeddingProvider(embed), [("query", 0.7), ("context", 0.3)])

    @pytest.mark.asyncio
    async def test_embed_combined_without_text(self):
        assert await embed_combined(CallableEmbeddingProvider(lambda text: [1.0]), [("", 1.0)]) is None


def test_build_embedding_text():
    entry = make_entry(
        "x",
        "Kaibo Beach Bar",
        "bar",
        subcategory="Beach Bar",
        shortDescription="Laid-back spot",
        description="D" * 800,
        tags=[f"tag{i}" for i in range(12)],
        highlights=["Sunset views"],
        location={"district": "North Side", "island": "Grand Cayman"},
        rating={"overall": 4.6},
        isFeatured=True,
    )
    text = build_embedding_text(entry)

    assert text.startswith("kaibo beach bar bar beach bar laid-back spot")
    assert "d" * 500 in text
    assert "d" * 501 not in text
    assert "north side grand cayman" in text
    assert "tag9" in text
    assert "tag10" not in text
    assert text.endswith("sunset views highly rated featured")
    assert text == text.lower()
