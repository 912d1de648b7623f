"""Error hierarchy shared by the index, suggestion and analytics components."""


class SiteSearchError(Exception):
    """Base error for site-search."""


class NotFoundError(SiteSearchError):
    """Raised when a strict lookup targets content or an entry that does not exist."""


class StorageUnavailableError(SiteSearchError):
    """Raised when the persistence layer cannot serve an operation."""


class InvalidInputError(SiteSearchError):
    """Raised by explicit validators; request paths return empty results instead."""
