"""
Pytest configuration and shared fixtures
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from isle_retrieval.config import reset_settings
from isle_retrieval.ml.config import RetrievalConfig, reset_config
from isle_retrieval.ml.retrieval.vector_store import VectorStore, write_embedding_files
from isle_retrieval.models import Catalog
from tests.factories import SAMPLE_PLACES


@pytest.fixture(autouse=True)
def reset_singletons():
    """Isolate tests from cached settings and configuration."""
    reset_settings()
    reset_config()
    yield
    reset_settings()
    reset_config()


@pytest.fixture
def retrieval_config():
    """Default configuration, independent of environment variables."""
    return RetrievalConfig()


@pytest.fixture
def sample_catalog():
    """Eight places across categories, including two restricted ones."""
    return Catalog.from_records([record for record, _ in SAMPLE_PLACES])


@pytest.fixture
def sample_vectors():
    """id -> 4-d vector for every sample place."""
    return {record["id"]: np.array(vector, dtype=np.float32) for record, vector in SAMPLE_PLACES}


@pytest.fixture
def embedding_files(tmp_path, sample_vectors):
    """Embedding file pair for the sample places; returns (index_path, vectors_path)."""
    ids = list(sample_vectors)
    vectors = np.vstack([sample_vectors[i] for i in ids])
    return write_embedding_files(vectors, ids, tmp_path / "embeddings", model="test-model")


@pytest.fixture
def sample_store(embedding_files):
    """VectorStore loaded from the sample embedding files."""
    index_path, vectors_path = embedding_files
    return VectorStore.from_files(index_path, vectors_path)
