"""
Vector Store
Loads the precomputed embedding file pair and answers cosine-similarity queries.

File format:
    embedding-index.json  {version, model, dimension, count, generatedAt, idToIndex, indexToId}
    embeddings.bin        little-endian float32, row-major, count * dimension values
"""

import heapq
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ...errors import (
    CorruptIndexError,
    DimensionMismatchError,
    EmbeddingFileNotFoundError,
    EmbeddingFileReadError,
    IndexValidationError,
)

logger = logging.getLogger(__name__)

INDEX_FORMAT_VERSION = "1.0"
FLOAT_SIZE = 4
VECTOR_DTYPE = np.dtype("<f4")

# Rows processed per block during a scan
CHUNK_ROWS = 2048


class EmbeddingIndex(BaseModel):
    """Metadata file describing the vector buffer layout."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: str = INDEX_FORMAT_VERSION
    model: Optional[str] = None
    dimension: int = Field(..., gt=0)
    count: int = Field(..., ge=0)
    generated_at: Optional[str] = Field(default=None, alias="generatedAt")
    id_to_index: Dict[str, int] = Field(..., alias="idToIndex")
    index_to_id: List[str] = Field(..., alias="indexToId")

    def check_consistency(self) -> None:
        """
        Verify both id mappings describe the same positions.

        Raises:
            IndexValidationError: If the mappings are not mutual inverses
        """
        if len(self.index_to_id) != self.count:
            raise IndexValidationError(
                f"indexToId has {len(self.index_to_id)} ids, expected {self.count}",
                details={"index_to_id": len(self.index_to_id), "count": self.count},
            )
        if len(self.id_to_index) != self.count:
            raise IndexValidationError(
                f"idToIndex has {len(self.id_to_index)} ids, expected {self.count}",
                details={"id_to_index": len(self.id_to_index), "count": self.count},
            )
        for position, entry_id in enumerate(self.index_to_id):
            if self.id_to_index.get(entry_id) != position:
                raise IndexValidationError(
                    f"idToIndex and indexToId disagree for id '{entry_id}' at position {position}",
                    details={"id": entry_id, "position": position},
                )


@dataclass(frozen=True)
class SimilarityMatch:
    """A single nearest-neighbour hit."""

    entry_id: str
    score: float  # Cosine similarity in [-1, 1]

    def to_dict(self) -> dict:
        return {"id": self.entry_id, "score": float(self.score)}


class VectorStore:
    """
    Immutable embedding store.

    The vector buffer is read-only and row norms are computed once at load, so a
    store can be shared by any number of concurrent searches.
    """

    def __init__(self, index: EmbeddingIndex, vectors: np.ndarray):
        index.check_consistency()
        if vectors.size != index.count * index.dimension:
            raise IndexValidationError(
                f"Vector buffer holds {vectors.size} floats, expected "
                f"{index.count} x {index.dimension} = {index.count * index.dimension}",
                details={"floats": int(vectors.size), "count": index.count, "dimension": index.dimension},
            )

        matrix = vectors.reshape(index.count, index.dimension)
        matrix.flags.writeable = False

        self.index = index
        self._matrix = matrix
        self._ids: Tuple[str, ...] = tuple(index.index_to_id)
        self._norms = self._row_norms(matrix)
        self._norms.flags.writeable = False

    @staticmethod
    def _row_norms(matrix: np.ndarray) -> np.ndarray:
        norms = np.empty(matrix.shape[0], dtype=np.float64)
        for start in range(0, matrix.shape[0], CHUNK_ROWS):
            block = matrix[start : start + CHUNK_ROWS].astype(np.float64)
            norms[start : start + CHUNK_ROWS] = np.sqrt(np.einsum("ij,ij->i", block, block))
        return norms

    @classmethod
    def load(cls, index_bytes: Union[bytes, str], vector_bytes: bytes) -> "VectorStore":
        """
        Build a store from the raw contents of the file pair.

        Args:
            index_bytes: JSON index document
            vector_bytes: Little-endian float32 buffer

        Returns:
            VectorStore

        Raises:
            CorruptIndexError: If the index is malformed
            IndexValidationError: If the index and vector buffer disagree
        """
        try:
            index = EmbeddingIndex.model_validate_json(index_bytes)
        except ValidationError as e:
            raise CorruptIndexError(
                "Embedding index is malformed",
                details={"errors": e.errors(include_url=False)},
            ) from e

        if len(vector_bytes) % FLOAT_SIZE != 0:
            raise IndexValidationError(
                f"Vector file size {len(vector_bytes)} is not a multiple of {FLOAT_SIZE}",
                details={"bytes": len(vector_bytes)},
            )
        floats = len(vector_bytes) // FLOAT_SIZE
        if floats != index.count * index.dimension:
            raise IndexValidationError(
                f"Vector file holds {floats} floats, expected "
                f"{index.count} x {index.dimension} = {index.count * index.dimension}",
                details={"floats": floats, "count": index.count, "dimension": index.dimension},
            )

        vectors = np.frombuffer(vector_bytes, dtype=VECTOR_DTYPE)
        return cls(index, vectors)

    @classmethod
    def from_files(cls, index_path: Union[str, Path], vectors_path: Union[str, Path]) -> "VectorStore":
        """
        Load a store from disk.

        Raises:
            EmbeddingFileNotFoundError: If either file is missing
            EmbeddingFileReadError: If a file cannot be read
            CorruptIndexError: If the files are malformed or inconsistent
        """
        index_path = Path(index_path)
        vectors_path = Path(vectors_path)
        for path in (index_path, vectors_path):
            if not path.is_file():
                raise EmbeddingFileNotFoundError(str(path))

        logger.info(f"Loading embeddings from {index_path} and {vectors_path}")
        contents = []
        for path in (index_path, vectors_path):
            try:
                contents.append(path.read_bytes())
            except OSError as e:
                raise EmbeddingFileReadError(str(path), e.strerror or str(e)) from e
        store = cls.load(*contents)
        logger.info(
            f"Loaded {store.count} embeddings (dimension={store.dimension}, model={store.index.model})"
        )
        return store

    @property
    def dimension(self) -> int:
        return self.index.dimension

    @property
    def count(self) -> int:
        return self.index.count

    @property
    def ids(self) -> Tuple[str, ...]:
        return self._ids

    def __len__(self) -> int:
        return self.count

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self.index.id_to_index

    def embedding_for(self, entry_id: str) -> Optional[np.ndarray]:
        """Read-only view of the stored vector, or None."""
        position = self.index.id_to_index.get(entry_id)
        if position is None:
            return None
        return self._matrix[position]

    def _as_query(self, query: Sequence[float]) -> np.ndarray:
        vector = np.asarray(query, dtype=np.float64).reshape(-1)
        if vector.shape[0] != self.dimension:
            raise DimensionMismatchError(self.dimension, vector.shape[0])
        return vector

    def similarities(self, query: Sequence[float]) -> Optional[np.ndarray]:
        """
        Cosine similarity of the query against every row.

        Returns:
            Array aligned with ``ids``, or None when the query norm is zero.
            Rows with zero norm score 0.
        """
        vector = self._as_query(query)
        query_norm = float(np.linalg.norm(vector))
        if query_norm == 0.0 or not np.isfinite(query_norm):
            return None

        scores = np.zeros(self.count, dtype=np.float64)
        for start in range(0, self.count, CHUNK_ROWS):
            stop = min(start + CHUNK_ROWS, self.count)
            dots = self._matrix[start:stop].astype(np.float64) @ vector
            denominators = self._norms[start:stop] * query_norm
            np.divide(dots, denominators, out=scores[start:stop], where=denominators > 0)
        np.clip(scores, -1.0, 1.0, out=scores)
        return scores

    def search_similar(self, query: Sequence[float], top_k: int = 30) -> List[SimilarityMatch]:
        """
        Nearest neighbours by cosine similarity.

        Args:
            query: Query vector of length ``dimension``
            top_k: Maximum number of matches

        Returns:
            Matches sorted by score descending, ties by id ascending.
            Empty for a zero query vector.

        Raises:
            DimensionMismatchError: If the query has the wrong length
        """
        if top_k <= 0 or self.count == 0:
            return []
        scores = self.similarities(query)
        if scores is None:
            return []

        ids = self._ids
        best = heapq.nsmallest(top_k, range(self.count), key=lambda i: (-scores[i], ids[i]))
        return [SimilarityMatch(ids[i], float(scores[i])) for i in best]

    def average_embedding(self, entry_ids: Iterable[str]) -> Optional[np.ndarray]:
        """L2-normalized mean of the available vectors, or None if none are stored."""
        positions = [
            self.index.id_to_index[entry_id]
            for entry_id in entry_ids
            if entry_id in self.index.id_to_index
        ]
        if not positions:
            return None

        mean = self._matrix[positions].astype(np.float64).mean(axis=0)
        norm = np.linalg.norm(mean)
        if norm > 0:
            mean = mean / norm
        return mean.astype(np.float32)

    def search_similar_by_ids(self, entry_ids: Iterable[str], top_k: int = 30) -> List[SimilarityMatch]:
        """Search with the average embedding of the given entries."""
        context = self.average_embedding(entry_ids)
        if context is None:
            return []
        return self.search_similar(context, top_k)

    def get_stats(self) -> dict:
        return {
            "count": self.count,
            "dimension": self.dimension,
            "model": self.index.model,
            "version": self.index.version,
            "generated_at": self.index.generated_at,
            "memory_mb": self._matrix.nbytes / (1024 * 1024),
        }


def write_embedding_files(
    vectors: np.ndarray,
    entry_ids: Sequence[str],
    output_dir: Union[str, Path],
    model: Optional[str] = None,
    index_name: str = "embedding-index.json",
    vectors_name: str = "embeddings.bin",
) -> Tuple[Path, Path]:
    """
    Write the embedding file pair.

    Args:
        vectors: Array of shape (count, dimension)
        entry_ids: Catalog ids, one per row
        output_dir: Directory to write to (created if needed)
        model: Embedding model name recorded in the index

    Returns:
        Tuple of (index_path, vectors_path)
    """
    vectors = np.asarray(vectors, dtype=VECTOR_DTYPE)
    if vectors.ndim != 2:
        raise ValueError(f"Expected a 2-D array of vectors, got shape {vectors.shape}")
    if len(entry_ids) != vectors.shape[0]:
        raise ValueError(
            f"Mismatch between vectors ({vectors.shape[0]}) and entry_ids ({len(entry_ids)})"
        )
    if len(set(entry_ids)) != len(entry_ids):
        raise ValueError("Entry ids must be unique")

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    index = {
        "version": INDEX_FORMAT_VERSION,
        "model": model,
        "dimension": int(vectors.shape[1]),
        "count": int(vectors.shape[0]),
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "idToIndex": {entry_id: i for i, entry_id in enumerate(entry_ids)},
        "indexToId": list(entry_ids),
    }

    vectors_path = output_dir / vectors_name
    vectors_path.write_bytes(np.ascontiguousarray(vectors).tobytes())
    logger.info(f"Saved {vectors.shape[0]} vectors to {vectors_path}")

    index_path = output_dir / index_name
    index_path.write_text(json.dumps(index), encoding="utf-8")
    logger.info(f"Saved embedding index to {index_path}")

    return index_path, vectors_path
