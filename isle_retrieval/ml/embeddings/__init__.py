"""
Query and catalog embedding
"""

from .catalog_text import build_embedding_text
from .text_encoder import (
    CallableEmbeddingProvider,
    OpenAIEmbeddingProvider,
    QueryEmbeddingProvider,
    combine_embeddings,
    embed_combined,
)

__all__ = [
    "build_embedding_text",
    "CallableEmbeddingProvider",
    "combine_embeddings",
    "embed_combined",
    "OpenAIEmbeddingProvider",
    "QueryEmbeddingProvider",
]
