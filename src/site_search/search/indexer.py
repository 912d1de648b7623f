"""Index lifecycle and ranked full-text lookup.

The indexer keeps the Search Index Store consistent with the content
repository: single items are upserted or removed on content events, and a
full rebuild walks every published item of the configured types. Ranked
search combines the store's text-match score with each entry's static
relevance score and external boost factor.
"""

from __future__ import annotations

from collections.abc import Callable, Generator, Sequence
from datetime import datetime
import logging
import threading

from site_search.adapters.content_repository import AbstractContentRepository
from site_search.config import Settings
from site_search.domain.errors import InvalidInputError, NotFoundError
from site_search.domain.index_progress import BuildProgress, BuildResult
from site_search.domain.model import IndexEntry, utcnow
from site_search.domain.search import SearchFilters, SearchPage
from site_search.observability.metrics import INDEX_DOC_COUNT, INDEX_OPERATIONS, SEARCH_LATENCY, track_latency
from site_search.observability.tracing import create_span
from site_search.search.scoring import calculate_relevance_score
from site_search.search.sqlite_storage import SqliteIndexStore
from site_search.search.text import StandardAnalyzer, normalize_punctuation, sanitize_text_field, strip_tags, trim_words


logger = logging.getLogger(__name__)

EXCERPT_WORDS = 55
MAX_ERRORS_REPORTED = 50

Clock = Callable[[], datetime]
ProgressCallback = Callable[[BuildProgress], None]


class Indexer:
    """Owns the IndexEntry lifecycle and answers ranked queries."""

    def __init__(
        self,
        settings: Settings,
        repository: AbstractContentRepository,
        store: SqliteIndexStore,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.store = store
        self._clock = clock
        self._policy = settings.punctuation_policy()
        self._query_analyzer = StandardAnalyzer(
            stopwords=settings.get_stop_words(), min_length=settings.min_word_length
        )

    # ------------------------------------------------------------------
    # Single-item maintenance
    # ------------------------------------------------------------------
    def index_one(self, content_id: int) -> IndexEntry | None:
        """Upsert the entry for ``content_id``.

        Missing or non-public content is a no-op and returns None. An
        existing ``boost_factor`` survives re-indexing.
        """
        content = self.repository.get_content(content_id)
        if content is None or not content.is_public:
            logger.debug("Skipping content %s: missing or not public", content_id)
            return None

        now = self._clock()
        body = strip_tags(content.body)
        excerpt = strip_tags(content.excerpt) or trim_words(body, EXCERPT_WORDS)
        entry = IndexEntry(
            content_id=content.id,
            content_type=content.type,
            title=content.title,
            body=body,
            excerpt=excerpt,
            url=content.url,
            categories=content.categories,
            tags=content.tags,
            relevance_score=calculate_relevance_score(content, now),
            indexed_at=now,
        )
        stored = self.store.upsert(entry)
        INDEX_OPERATIONS.labels(operation="upsert", status="success").inc()
        logger.debug("Indexed content %s (relevance %.2f)", content_id, stored.relevance_score)
        return stored

    def remove_one(self, content_id: int) -> bool:
        """Delete the entry for ``content_id``; absent entries are a no-op."""
        removed = self.store.delete(content_id)
        INDEX_OPERATIONS.labels(operation="remove", status="success" if removed else "noop").inc()
        return removed

    def set_boost(self, content_id: int, boost_factor: float) -> bool:
        """Set the external boost multiplier of an existing entry.

        Raises:
            InvalidInputError: if ``boost_factor`` is negative.
        """
        if boost_factor < 0:
            raise InvalidInputError(f"boost_factor must be >= 0, got {boost_factor}")
        return self.store.set_boost(content_id, boost_factor)

    def get_entry(self, content_id: int, *, strict: bool = False) -> IndexEntry | None:
        entry = self.store.get(content_id)
        if entry is None and strict:
            raise NotFoundError(f"No index entry for content {content_id}")
        return entry

    # ------------------------------------------------------------------
    # Full rebuild
    # ------------------------------------------------------------------
    def iter_build_all(
        self,
        content_types: Sequence[str] | None = None,
        *,
        cancel_event: threading.Event | None = None,
        deadline: datetime | None = None,
    ) -> Generator[BuildProgress, None, BuildResult]:
        """Index every published item, yielding progress after each one.

        A failure on one item is logged, counted and skipped. The run stops
        early when ``cancel_event`` is set or ``deadline`` passes; the
        generator's return value is the final ``BuildResult``.
        """
        types = tuple(content_types) if content_types else self.settings.get_content_types()
        content_ids = self.repository.list_content(types)
        total = len(content_ids)
        indexed = skipped = failed = 0
        errors: list[str] = []
        cancelled = False

        logger.info("Rebuilding index for %d items of types %s", total, ", ".join(types))
        for position, content_id in enumerate(content_ids, start=1):
            if (cancel_event is not None and cancel_event.is_set()) or (
                deadline is not None and self._clock() >= deadline
            ):
                cancelled = True
                logger.warning("Index rebuild stopped early after %d of %d items", position - 1, total)
                break
            try:
                entry = self.index_one(content_id)
            except Exception as exc:
                failed += 1
                INDEX_OPERATIONS.labels(operation="upsert", status="error").inc()
                if len(errors) < MAX_ERRORS_REPORTED:
                    errors.append(f"{content_id}: {exc}")
                logger.warning("Failed to index content %s: %s", content_id, exc, exc_info=True)
            else:
                if entry is None:
                    skipped += 1
                else:
                    indexed += 1
            yield BuildProgress(
                processed=position,
                total=total,
                indexed=indexed,
                skipped=skipped,
                failed=failed,
                current_id=content_id,
            )

        result = BuildResult(
            total=total,
            indexed=indexed,
            skipped=skipped,
            failed=failed,
            errors=tuple(errors),
            cancelled=cancelled,
        )
        INDEX_OPERATIONS.labels(operation="rebuild", status="success" if result.success else "partial").inc()
        INDEX_DOC_COUNT.labels().set(sum(self.store.counts_by_type().values()))
        logger.info(
            "Index rebuild finished: %d indexed, %d skipped, %d failed%s",
            indexed,
            skipped,
            failed,
            " (cancelled)" if cancelled else "",
        )
        return result

    def build_all(
        self,
        content_types: Sequence[str] | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
        deadline: datetime | None = None,
    ) -> BuildResult:
        """Run a full rebuild, reporting each step to ``on_progress``."""
        with create_span("index.build_all", attributes={"index.content_types": content_types}):
            progress_stream = self.iter_build_all(content_types, cancel_event=cancel_event, deadline=deadline)
            while True:
                try:
                    progress = next(progress_stream)
                except StopIteration as stop:
                    return stop.value
                if on_progress is not None:
                    on_progress(progress)

    # ------------------------------------------------------------------
    # Ranked lookup
    # ------------------------------------------------------------------
    def _query_terms(self, term: str) -> list[str]:
        cleaned = normalize_punctuation(sanitize_text_field(term or ""), self._policy)
        return list(dict.fromkeys(self._query_analyzer.terms(cleaned)))

    def _content_types(self, filters: SearchFilters | None) -> tuple[str, ...]:
        if filters is not None and filters.content_types:
            return filters.content_types
        return self.settings.get_content_types()

    @staticmethod
    def _match_expression(terms: Sequence[str]) -> str:
        return " OR ".join('"' + term.replace('"', '""') + '"' for term in terms)

    def search_count(self, term: str, filters: SearchFilters | None = None) -> int:
        """Total entries matching ``term``, capped by the throttle ceiling."""
        terms = self._query_terms(term)
        if not terms:
            return 0
        total = self.store.count(self._match_expression(terms), self._content_types(filters))
        ceiling = self.settings.candidate_ceiling()
        return total if ceiling is None else min(total, ceiling)

    def search(
        self,
        term: str,
        filters: SearchFilters | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> SearchPage:
        """Return one page of ranked results plus the total match count.

        Empty or whitespace-only terms return an empty page without touching
        storage. ``page`` and ``page_size`` are clamped to at least 1.
        """
        page = max(1, int(page))
        page_size = max(1, int(page_size or self.settings.default_page_size))
        terms = self._query_terms(term)
        if not terms:
            return SearchPage(results=[], total_count=0, page=page, page_size=page_size)

        content_types = self._content_types(filters)
        match_expression = self._match_expression(terms)
        offset = (page - 1) * page_size
        limit = page_size
        ceiling = self.settings.candidate_ceiling()
        if ceiling is not None:
            limit = max(0, min(page_size, ceiling - offset))

        with (
            create_span("index.search", attributes={"search.terms": len(terms), "search.page": page}) as span,
            track_latency(SEARCH_LATENCY, kind="search"),
        ):
            total = self.store.count(match_expression, content_types)
            if ceiling is not None:
                total = min(total, ceiling)
            span.set_attribute("search.total", total)
            results = (
                self.store.search(match_expression, " ".join(terms), content_types, limit=limit, offset=offset)
                if limit
                else []
            )
        logger.debug("Search %r matched %d entries", term, total)
        return SearchPage(results=results, total_count=total, page=page, page_size=page_size)
