"""Search service orchestration layer.

Wires the indexer, query processor, suggestion engine, rebuild scheduler
and analytics recorder over one SQLite database, subscribes them to content
repository events, and exposes the caller-facing search API.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
import logging
import threading

import anyio

from site_search.adapters.content_repository import AbstractContentRepository
from site_search.config import Settings
from site_search.domain.index_progress import BuildResult, IndexStatus
from site_search.domain.model import Content, IndexEntry, RequestMeta, utcnow
from site_search.domain.search import DashboardData, ScoredResult, SearchFilters, SearchPage, SuggestionMatch
from site_search.observability.context import operation_context
from site_search.observability.metrics import SEARCH_REQUESTS
from site_search.search.indexer import Indexer, ProgressCallback
from site_search.search.query_processor import QueryProcessor
from site_search.search.sqlite_storage import (
    SqliteAnalyticsStore,
    SqliteDatabase,
    SqliteIndexStore,
    SqliteSuggestionStore,
)
from site_search.search.suggestions import SuggestionEngine
from site_search.search.text import normalize_punctuation
from site_search.services.analytics_service import AnalyticsRecorder
from site_search.services.rebuild_scheduler import MANUAL_FREQUENCY, SuggestionRebuildScheduler


logger = logging.getLogger(__name__)


class SearchService:
    """High-level facade over the search core.

    Search requests are tracked in analytics after the results are computed;
    analytics failures never reach the caller.
    """

    def __init__(
        self,
        settings: Settings,
        repository: AbstractContentRepository,
        *,
        database: SqliteDatabase | None = None,
        clock: Callable[[], datetime] = utcnow,
        subscribe: bool = True,
    ) -> None:
        """Initialize the service and its components.

        Args:
            settings: Injected configuration shared by every component
            repository: Content repository providing content and change events
            database: Optional pre-opened database (defaults to ``settings.database_path``)
            clock: Time source for indexing and analytics timestamps
            subscribe: Register content change/delete handlers on the repository
        """
        self.settings = settings
        self.repository = repository
        self.database = database or SqliteDatabase(settings.database_path)

        policy = settings.punctuation_policy()
        index_store = SqliteIndexStore(self.database, lambda text: normalize_punctuation(text, policy))
        self.indexer = Indexer(settings, repository, index_store, clock=clock)
        self.query_processor = QueryProcessor(settings, index_store)
        self.suggestions = SuggestionEngine(settings, repository, SqliteSuggestionStore(self.database))
        self.scheduler = SuggestionRebuildScheduler(
            self.suggestions,
            initial_delay_seconds=settings.suggestion_rebuild_delay_seconds,
            clock=clock,
        )
        self.analytics = AnalyticsRecorder(SqliteAnalyticsStore(self.database), clock=clock)

        if subscribe:
            repository.on_content_changed(self.handle_content_changed)
            repository.on_content_deleted(self.handle_content_deleted)

    # Content events -----------------------------------------------------
    def handle_content_changed(self, content: Content) -> None:
        self.indexer.index_one(content.id)
        self.suggestions.rebuild_on_save(content)

    def handle_content_deleted(self, content_id: int) -> None:
        self.indexer.remove_one(content_id)

    # Index lifecycle ----------------------------------------------------
    def index_one(self, content_id: int) -> IndexEntry | None:
        return self.indexer.index_one(content_id)

    def remove_one(self, content_id: int) -> bool:
        return self.indexer.remove_one(content_id)

    def build_all(
        self,
        content_types: Sequence[str] | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
        deadline: datetime | None = None,
    ) -> BuildResult:
        with operation_context("index.build"):
            result = self.indexer.build_all(
                content_types,
                on_progress=on_progress,
                cancel_event=cancel_event,
                deadline=deadline,
            )
            self.database.optimize()
        return result

    async def build_all_async(
        self,
        content_types: Sequence[str] | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
        deadline: datetime | None = None,
    ) -> BuildResult:
        """Run a full rebuild in a worker thread, off the event loop."""

        def _run() -> BuildResult:
            return self.build_all(
                content_types,
                on_progress=on_progress,
                cancel_event=cancel_event,
                deadline=deadline,
            )

        return await anyio.to_thread.run_sync(_run)

    def rebuild_suggestions(self) -> int:
        with operation_context("suggestions.build"):
            return self.suggestions.build_from_content()

    # Request path -------------------------------------------------------
    def search(
        self,
        term: str,
        filters: SearchFilters | None = None,
        page: int = 1,
        page_size: int | None = None,
        *,
        request_meta: RequestMeta | None = None,
        track: bool = True,
    ) -> SearchPage:
        """Ranked full-text search; the query is recorded in analytics."""
        try:
            with operation_context("search"):
                result = self.indexer.search(term, filters, page, page_size)
        except Exception:
            SEARCH_REQUESTS.labels(kind="search", outcome="error").inc()
            raise
        SEARCH_REQUESTS.labels(kind="search", outcome="hit" if result.total_count else "empty").inc()
        if track:
            self.analytics.track_search(term, result.total_count, request_meta)
        return result

    def weighted_search(
        self,
        raw_query: str,
        limit: int | None = None,
        *,
        request_meta: RequestMeta | None = None,
        track: bool = True,
    ) -> list[ScoredResult]:
        """Pattern-based weighted search; the query is recorded in analytics."""
        try:
            with operation_context("weighted_search"):
                results = self.query_processor.weighted_search(raw_query, limit)
        except Exception:
            SEARCH_REQUESTS.labels(kind="weighted", outcome="error").inc()
            raise
        SEARCH_REQUESTS.labels(kind="weighted", outcome="hit" if results else "empty").inc()
        if track:
            self.analytics.track_search(raw_query, request_meta=request_meta, current_result_count=len(results))
        return results

    def suggest(self, prefix: str, limit: int | None = None) -> list[SuggestionMatch]:
        return self.suggestions.get_suggestions(prefix, limit)

    def inline_suggestion(self, prefix: str) -> str:
        return self.suggestions.inline_suggestion(prefix)

    def track_search(
        self,
        query: str,
        result_count: int | None = None,
        request_meta: RequestMeta | None = None,
        *,
        current_result_count: int = 0,
    ) -> bool:
        return self.analytics.track_search(
            query,
            result_count,
            request_meta,
            current_result_count=current_result_count,
        )

    # Reporting ----------------------------------------------------------
    def get_status(self) -> IndexStatus:
        counts = self.indexer.store.counts_by_type()
        return IndexStatus(
            total_entries=sum(counts.values()),
            entries_by_type=counts,
            last_indexed_at=self.indexer.store.last_indexed_at(),
            suggestion_count=len(self.suggestions.snapshot),
            next_suggestion_rebuild_at=self.scheduler.next_rebuild_at,
        )

    def status_summary(self) -> str:
        return self.get_status().summary()

    def get_dashboard_data(self, days: int = 30) -> DashboardData:
        return self.analytics.get_dashboard_data(days)

    # Lifecycle ----------------------------------------------------------
    async def start(self) -> None:
        """Register the periodic suggestion rebuild for the configured frequency."""
        frequency = self.settings.suggestion_rebuild_frequency
        if frequency == MANUAL_FREQUENCY:
            logger.info("Suggestion rebuilds are manual; no schedule registered")
            return
        await self.scheduler.schedule_rebuild(frequency)

    async def stop(self) -> None:
        await self.scheduler.stop()

    def close(self) -> None:
        self.database.close()
