"""
Tests for the offline embedding builder.
"""

import json

import numpy as np

from isle_retrieval.ml.retrieval.vector_store import VectorStore
from isle_retrieval.scripts import build_embeddings

PLACES = [
    {"id": "a", "name": "Seven Mile Beach", "category": "beach"},
    {"id": "b", "name": "Blue", "category": "restaurant"},
]


def _write_catalog(tmp_path):
    path = tmp_path / "places.json"
    path.write_text(json.dumps(PLACES))
    return path


def test_dry_run_writes_nothing(tmp_path):
    output_dir = tmp_path / "out"

    code = build_embeddings.main([str(_write_catalog(tmp_path)), "--output-dir", str(output_dir), "--dry-run"])

    assert code == 0
    assert not output_dir.exists()


def test_missing_catalog(tmp_path):
    assert build_embeddings.main([str(tmp_path / "missing.json")]) == 1


def test_missing_api_key(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)

    assert build_embeddings.main([str(_write_catalog(tmp_path)), "--output-dir", str(tmp_path / "out")]) == 1


def test_builds_embedding_files(tmp_path, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("RETRIEVAL_EMBEDDING_DIMENSION", "3")

    class FakeProvider:
        def __init__(self, settings):
            self.settings = settings

        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc_info):
            return None

        async def embed_batch(self, texts, batch_size=None):
            return np.array([[float(i + 1), 0.0, 1.0] for i in range(len(texts))], dtype=np.float32)

    monkeypatch.setattr(build_embeddings, "OpenAIEmbeddingProvider", FakeProvider)
    output_dir = tmp_path / "out"

    code = build_embeddings.main([str(_write_catalog(tmp_path)), "--output-dir", str(output_dir)])

    assert code == 0
    store = VectorStore.from_files(output_dir / "embedding-index.json", output_dir / "embeddings.bin")
    assert store.ids == ("a", "b")
    assert store.dimension == 3
    np.testing.assert_allclose(store.embedding_for("b"), [2.0, 0.0, 1.0])
