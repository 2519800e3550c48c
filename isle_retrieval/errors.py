"""
Error Types
Exception hierarchy for the retrieval engine.

Load and provider errors are recovered by the search service (keyword-only
fallback); they only surface to callers that use the store or provider directly.
"""

from typing import Optional


class RetrievalError(Exception):
    """Base exception for retrieval engine errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class LoadError(RetrievalError):
    """Exception raised when the embedding store cannot be loaded."""

    pass


class EmbeddingFileNotFoundError(LoadError):
    """Exception raised when an embedding file is missing."""

    def __init__(self, path: str):
        super().__init__(message=f"Embedding file not found: {path}", details={"path": path})


class EmbeddingFileReadError(LoadError):
    """Exception raised when an embedding file exists but cannot be read."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Cannot read embedding file {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class CorruptIndexError(LoadError):
    """Exception raised when the embedding index or vector file is malformed."""

    pass


class IndexValidationError(CorruptIndexError):
    """Exception raised when index metadata disagrees with the vector buffer."""

    pass


class DimensionMismatchError(RetrievalError):
    """Exception raised when a query vector does not match the store dimension."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            message=f"Vector dimension mismatch: expected {expected}, got {actual}",
            details={"expected": expected, "actual": actual},
        )


class ProviderError(RetrievalError):
    """Exception raised when the query-embedding provider fails or times out."""

    pass


class CatalogError(RetrievalError):
    """Exception raised for invalid catalog data."""

    pass
