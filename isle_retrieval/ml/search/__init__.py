"""
Search service
"""

from .search_service import RetrievalService, SearchDiagnostics, SearchOptions, SearchResult

__all__ = ["RetrievalService", "SearchDiagnostics", "SearchOptions", "SearchResult"]
