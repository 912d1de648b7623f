"""Content repository contract consumed by the indexer and suggestion engine.

The content management system owns content; this module only describes the
read and subscription surface the search core needs, plus an in-memory
implementation used by tests and the CLI.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
import logging
from pathlib import Path
from typing import Any

import orjson

from site_search.domain.model import PUBLISHED_STATUS, Content, TaxonomyTerm


logger = logging.getLogger(__name__)

ContentChangedCallback = Callable[[Content], None]
ContentDeletedCallback = Callable[[int], None]


class AbstractContentRepository(ABC):
    """Abstract read/subscribe surface of the content repository."""

    @abstractmethod
    def get_content(self, content_id: int) -> Content | None:
        """Return the content item or None when it does not exist."""
        raise NotImplementedError

    @abstractmethod
    def list_content(self, types: Sequence[str], status: str = PUBLISHED_STATUS) -> list[int]:
        """Return ids of content of the given types and status."""
        raise NotImplementedError

    @abstractmethod
    def list_taxonomy_terms(self, taxonomy: str) -> list[TaxonomyTerm]:
        """Return labels of one taxonomy with their usage counts."""
        raise NotImplementedError

    @abstractmethod
    def on_content_changed(self, callback: ContentChangedCallback) -> None:
        """Register a callback fired after content is saved."""
        raise NotImplementedError

    @abstractmethod
    def on_content_deleted(self, callback: ContentDeletedCallback) -> None:
        """Register a callback fired after content is deleted."""
        raise NotImplementedError

    def iter_content(self, types: Sequence[str], status: str = PUBLISHED_STATUS) -> Iterable[Content]:
        """Yield content items of the given types, skipping ids that vanished meanwhile."""
        for content_id in self.list_content(types, status):
            content = self.get_content(content_id)
            if content is not None:
                yield content


class InMemoryContentRepository(AbstractContentRepository):
    """In-memory repository that fires change events on save and delete."""

    def __init__(
        self,
        contents: Iterable[Content] = (),
        taxonomy_terms: Iterable[TaxonomyTerm] = (),
    ) -> None:
        self._contents: dict[int, Content] = {content.id: content for content in contents}
        self._taxonomy_terms: list[TaxonomyTerm] = list(taxonomy_terms)
        self._changed_callbacks: list[ContentChangedCallback] = []
        self._deleted_callbacks: list[ContentDeletedCallback] = []

    @classmethod
    def from_json(cls, path: Path) -> "InMemoryContentRepository":
        """Load an export of the form ``{"content": [...], "taxonomy_terms": [...]}``."""
        payload: dict[str, Any] = orjson.loads(Path(path).read_bytes())
        contents = [_content_from_dict(item) for item in payload.get("content", [])]
        terms = [
            TaxonomyTerm(
                label=item["label"],
                usage_count=int(item.get("usage_count", 0)),
                taxonomy=item.get("taxonomy", "category"),
            )
            for item in payload.get("taxonomy_terms", [])
        ]
        logger.info("Loaded %d content items and %d taxonomy terms from %s", len(contents), len(terms), path)
        return cls(contents, terms)

    def get_content(self, content_id: int) -> Content | None:
        return self._contents.get(content_id)

    def list_content(self, types: Sequence[str], status: str = PUBLISHED_STATUS) -> list[int]:
        wanted = set(types)
        return [
            content.id
            for content in self._contents.values()
            if content.type in wanted and content.status == status
        ]

    def list_taxonomy_terms(self, taxonomy: str) -> list[TaxonomyTerm]:
        return [term for term in self._taxonomy_terms if term.taxonomy == taxonomy]

    def on_content_changed(self, callback: ContentChangedCallback) -> None:
        self._changed_callbacks.append(callback)

    def on_content_deleted(self, callback: ContentDeletedCallback) -> None:
        self._deleted_callbacks.append(callback)

    def save(self, content: Content) -> None:
        """Store content and notify subscribers."""
        self._contents[content.id] = content
        for callback in self._changed_callbacks:
            callback(content)

    def delete(self, content_id: int) -> bool:
        """Delete content and notify subscribers.

        Returns:
            True if content was deleted, False if not found
        """
        if self._contents.pop(content_id, None) is None:
            return False
        for callback in self._deleted_callbacks:
            callback(content_id)
        return True

    def add_taxonomy_term(self, term: TaxonomyTerm) -> None:
        self._taxonomy_terms.append(term)

    def clear(self) -> None:
        """Clear all content and taxonomy terms (for testing)."""
        self._contents.clear()
        self._taxonomy_terms.clear()


def _content_from_dict(item: dict[str, Any]) -> Content:
    published_at = item.get("published_at")
    extra: dict[str, Any] = {}
    if published_at:
        extra["published_at"] = datetime.fromisoformat(published_at)
    return Content(
        id=int(item["id"]),
        type=item.get("type", "post"),
        title=item.get("title", ""),
        body=item.get("body", ""),
        excerpt=item.get("excerpt", ""),
        url=item.get("url", ""),
        status=item.get("status", PUBLISHED_STATUS),
        categories=tuple(item.get("categories", ())),
        tags=tuple(item.get("tags", ())),
        comment_count=int(item.get("comment_count", 0)),
        **extra,
    )
