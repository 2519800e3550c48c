"""
Retrieval and ranking components.
"""

from .config import RetrievalConfig, get_retrieval_config, reset_config

__all__ = ["RetrievalConfig", "get_retrieval_config", "reset_config"]
