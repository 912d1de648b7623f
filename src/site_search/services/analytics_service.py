"""Best-effort search analytics capture and dashboard aggregation."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timedelta
import logging

from site_search.domain.errors import StorageUnavailableError
from site_search.domain.model import MAX_QUERY_LENGTH, AnalyticsEvent, RequestMeta, utcnow
from site_search.domain.search import DailyVolume, DashboardData, PopularSearch, ZeroResultSearch
from site_search.observability.metrics import ANALYTICS_WRITE_FAILURES
from site_search.search.sqlite_storage import SqliteAnalyticsStore
from site_search.search.text import sanitize_text_field


logger = logging.getLogger(__name__)

POPULAR_LIMIT = 20
ZERO_RESULT_LIMIT = 10
DEFAULT_WINDOW_DAYS = 30


class AnalyticsRecorder:
    """Append query events and aggregate them into dashboard data.

    ``track_search`` never raises on storage failure: search delivery must
    not degrade because telemetry could not be written.
    """

    def __init__(self, store: SqliteAnalyticsStore, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self._clock = clock

    def track_search(
        self,
        query: str,
        result_count: int | None = None,
        request_meta: RequestMeta | None = None,
        *,
        current_result_count: int = 0,
    ) -> bool:
        """Record one executed query.

        Args:
            query: Raw query text; markup is stripped and it is cut to 255 characters.
            result_count: Number of results; ``current_result_count`` is used when None.
            request_meta: Requester metadata, defaults to the loopback client.
            current_result_count: Size of the caller's current result set.

        Returns:
            True if the event was stored, False if it was empty or could not be written.
        """
        cleaned = sanitize_text_field(query, MAX_QUERY_LENGTH)
        if not cleaned:
            return False
        meta = request_meta or RequestMeta()
        count = current_result_count if result_count is None else result_count
        event = AnalyticsEvent(
            query=cleaned,
            result_count=max(0, int(count)),
            client_ip=meta.client_ip,
            user_agent=meta.user_agent,
            referrer=meta.referrer,
            occurred_at=self._clock(),
        )
        try:
            self.store.insert(event)
        except StorageUnavailableError as exc:
            ANALYTICS_WRITE_FAILURES.labels().inc()
            logger.warning("Failed to record search analytics: %s", exc)
            return False
        return True

    def get_dashboard_data(self, days: int = DEFAULT_WINDOW_DAYS) -> DashboardData:
        """Aggregate events from the trailing ``days`` window."""
        days = max(1, int(days))
        since = self._clock() - timedelta(days=days)

        popular = [
            PopularSearch(
                query=row["query"],
                search_count=row["search_count"],
                avg_results=round(float(row["avg_results"] or 0.0), 1),
            )
            for row in self.store.popular(since, POPULAR_LIMIT)
        ]
        zero_results = [
            ZeroResultSearch(query=row["query"], search_count=row["search_count"])
            for row in self.store.zero_results(since, ZERO_RESULT_LIMIT)
        ]
        daily_volume = [
            DailyVolume(day=date.fromisoformat(row["day"]), search_count=row["search_count"])
            for row in self.store.daily_volume(since)
        ]
        total_searches, avg_results = self.store.totals(since)
        zero_result_rate = 0.0
        if total_searches:
            distinct_zero = self.store.distinct_zero_result_queries(since)
            zero_result_rate = round(distinct_zero / total_searches * 100, 1)

        return DashboardData(
            days=days,
            popular_searches=popular,
            zero_result_searches=zero_results,
            daily_volume=daily_volume,
            total_searches=total_searches,
            avg_results=round(avg_results, 1),
            zero_result_rate=zero_result_rate,
        )
