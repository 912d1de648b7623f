"""Adapters layer - collaborators the search core consumes."""

from .content_repository import AbstractContentRepository, InMemoryContentRepository


__all__ = [
    "AbstractContentRepository",
    "InMemoryContentRepository",
]
