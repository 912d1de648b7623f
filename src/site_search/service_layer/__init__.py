"""Service layer - orchestration of the search core for callers."""

from .search_service import SearchService


__all__ = [
    "SearchService",
]
