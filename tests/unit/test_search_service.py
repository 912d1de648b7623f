"""Unit tests for the search service facade."""

from __future__ import annotations

import pytest

from site_search.config import Settings
from site_search.domain.errors import StorageUnavailableError
from site_search.domain.model import RequestMeta
from site_search.domain.search import SearchFilters
from site_search.service_layer.search_service import SearchService


class _UnavailableAnalyticsStore:
    def insert(self, event) -> None:
        raise StorageUnavailableError("recording search failed: disk I/O error")


@pytest.fixture
def service(test_settings, repository, database, clock):
    return SearchService(test_settings, repository, database=database, clock=clock)


@pytest.mark.unit
class TestContentEvents:
    def test_save_indexes_and_delete_removes(self, service, repository, make_content):
        repository.save(make_content(1, title="Garden tools", body="Rakes and spades"))

        assert service.indexer.get_entry(1) is not None
        assert service.search("spades").content_ids == [1]

        repository.delete(1)

        assert service.indexer.get_entry(1) is None
        assert service.search("spades").total_count == 0

    def test_save_refreshes_suggestions(self, service, repository, make_content):
        repository.save(make_content(1, title="Garden tools"))
        assert [match.term for match in service.suggest("gar")] == ["garden"]
        assert service.inline_suggestion("too") == "tools"

    def test_unpublishing_keeps_existing_entry(self, service, repository, make_content):
        repository.save(make_content(1, title="Garden"))
        repository.save(make_content(1, title="Garden", status="draft"))
        assert service.indexer.get_entry(1) is not None

    def test_unsubscribed_service_ignores_events(self, test_settings, repository, database, clock, make_content):
        service = SearchService(test_settings, repository, database=database, clock=clock, subscribe=False)
        repository.save(make_content(1, title="Garden"))
        assert service.indexer.get_entry(1) is None
        assert service.index_one(1) is not None
        assert service.remove_one(1) is True


@pytest.mark.unit
class TestRequestPath:
    def test_search_is_tracked(self, service, repository, make_content):
        repository.save(make_content(1, title="Garden tools"))
        repository.save(make_content(2, title="Garden hose"))

        page = service.search("garden", request_meta=RequestMeta(client_ip="198.51.100.7"))
        service.search("unicorn")

        assert page.total_count == 2
        data = service.get_dashboard_data()
        assert {row.query: row.avg_results for row in data.popular_searches} == {"garden": 2.0, "unicorn": 0.0}
        assert [row.query for row in data.zero_result_searches] == ["unicorn"]

    def test_untracked_search(self, service):
        service.search("garden", track=False)
        assert service.get_dashboard_data().total_searches == 0

    def test_search_filters_by_type(self, service, repository, make_content):
        repository.save(make_content(1, title="Garden tools"))
        repository.save(make_content(2, title="Garden shed", type="product"))

        page = service.search("garden", SearchFilters(content_types=("product",)))

        assert page.content_ids == [2]

    def test_weighted_search_is_tracked_with_result_size(self, service, repository, make_content):
        repository.save(make_content(1, title="Garden tools"))

        results = service.weighted_search("the garden")

        assert [result.content_id for result in results] == [1]
        [row] = service.get_dashboard_data().popular_searches
        assert (row.query, row.avg_results) == ("the garden", 1.0)

    def test_analytics_failure_does_not_break_search(self, service, repository, make_content):
        repository.save(make_content(1, title="Garden tools"))
        service.analytics.store = _UnavailableAnalyticsStore()

        assert service.search("garden").content_ids == [1]
        assert service.track_search("garden", 1) is False

    def test_explicit_tracking(self, service):
        assert service.track_search("garden", current_result_count=3) is True
        assert service.get_dashboard_data().avg_results == 3.0


@pytest.mark.unit
class TestLifecycle:
    def test_build_all_and_status(self, service, repository, make_content, clock):
        for content_id in range(1, 4):
            repository.save(make_content(content_id, title=f"Garden {content_id}"))
        repository.save(make_content(4, title="Shed", type="product"))

        result = service.build_all()
        status = service.get_status()

        assert result.indexed == 4
        assert status.total_entries == 4
        assert status.entries_by_type == {"post": 3, "product": 1}
        assert status.last_indexed_at == clock()
        assert "Indexed entries: 4" in service.status_summary()
        assert "Next suggestion rebuild: not scheduled" in service.status_summary()

    def test_rebuild_suggestions(self, service, repository, make_content):
        repository.save(make_content(1, title="Garden planning"))
        assert service.rebuild_suggestions() == 2
        assert service.get_status().suggestion_count == 2

    @pytest.mark.asyncio
    async def test_build_all_async(self, service, repository, make_content):
        repository.save(make_content(1, title="Garden"))
        result = await service.build_all_async()
        assert result.success is True
        assert service.search("garden", track=False).content_ids == [1]

    @pytest.mark.asyncio
    async def test_start_registers_schedule(self, service, clock):
        try:
            await service.start()
            assert service.scheduler.frequency == "weekly"
            assert service.get_status().next_suggestion_rebuild_at is not None
        finally:
            await service.stop()
        assert service.scheduler.is_scheduled is False

    @pytest.mark.asyncio
    async def test_manual_frequency_skips_schedule(self, repository, database, clock):
        settings = Settings(database_path=":memory:", suggestion_rebuild_frequency="manual")
        service = SearchService(settings, repository, database=database, clock=clock)
        await service.start()
        assert service.scheduler.is_scheduled is False
        await service.stop()
