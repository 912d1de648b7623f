"""Domain layer - models and errors with no storage dependencies."""

from site_search.domain.errors import (
    InvalidInputError,
    NotFoundError,
    SiteSearchError,
    StorageUnavailableError,
)
from site_search.domain.model import (
    AnalyticsEvent,
    Content,
    IndexEntry,
    RequestMeta,
    SuggestionTerm,
    TaxonomyTerm,
)


__all__ = [
    "AnalyticsEvent",
    "Content",
    "IndexEntry",
    "InvalidInputError",
    "NotFoundError",
    "RequestMeta",
    "SiteSearchError",
    "StorageUnavailableError",
    "SuggestionTerm",
    "TaxonomyTerm",
]
