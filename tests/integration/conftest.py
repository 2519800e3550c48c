"""
Integration test fixtures
"""

import pytest

from isle_retrieval.errors import ProviderError
from isle_retrieval.ml.embeddings import CallableEmbeddingProvider
from isle_retrieval.ml.retrieval import VectorStoreManager
from isle_retrieval.ml.search import RetrievalService

# Query text -> vector returned by the fake provider
QUERY_VECTORS = {
    "best beach": [1.0, 0.0, 0.0, 0.0],
    "beach": [1.0, 0.0, 0.0, 0.0],
    "somewhere to relax by the sea": [0.9, 0.0, 0.1, 0.0],
    "dive near george town": [0.0, 0.0, 1.0, 0.0],
}


def _lookup(text):
    return QUERY_VECTORS.get(text, [0.0, 0.0, 0.0, 1.0])


def _fail(text):
    raise ProviderError("embedding service unavailable")


@pytest.fixture
def fake_provider():
    """Provider answering from QUERY_VECTORS (other queries point at the medical place)."""
    return CallableEmbeddingProvider(_lookup, dimension=4)


@pytest.fixture
def failing_provider():
    return CallableEmbeddingProvider(_fail)


@pytest.fixture
def store_manager(sample_store):
    manager = VectorStoreManager.from_store(sample_store)
    yield manager
    manager.close()


@pytest.fixture
def hybrid_service(sample_catalog, store_manager, fake_provider, retrieval_config):
    """Service with vectors available."""
    return RetrievalService(
        sample_catalog, store_manager=store_manager, provider=fake_provider, config=retrieval_config
    )


@pytest.fixture
def keyword_service(sample_catalog, retrieval_config):
    """Service without any vector support."""
    return RetrievalService(sample_catalog, config=retrieval_config)

