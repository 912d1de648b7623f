"""Unit tests for the Indexer: lifecycle, rebuilds and ranked search."""

import dataclasses
from datetime import timedelta
import threading

import pytest

from site_search.adapters.content_repository import InMemoryContentRepository
from site_search.config import Settings
from site_search.domain.errors import InvalidInputError, NotFoundError
from site_search.domain.search import SearchFilters
from site_search.search.indexer import Indexer
from site_search.search.sqlite_storage import SqliteIndexStore
from site_search.search.text import normalize_punctuation


def _make_indexer(settings, repository, database, clock) -> Indexer:
    policy = settings.punctuation_policy()
    store = SqliteIndexStore(database, lambda text: normalize_punctuation(text, policy))
    return Indexer(settings, repository, store, clock=clock)


@pytest.fixture
def indexer(test_settings, repository, database, clock):
    return _make_indexer(test_settings, repository, database, clock)


def _without_timestamp(entry) -> dict:
    fields = dataclasses.asdict(entry)
    fields.pop("indexed_at")
    return fields


@pytest.mark.unit
class TestIndexOne:
    def test_missing_and_unpublished_content_is_noop(self, indexer, repository, make_content):
        repository.save(make_content(2, status="draft", title="Garden draft"))
        assert indexer.index_one(1) is None
        assert indexer.index_one(2) is None
        assert indexer.get_entry(2) is None

    def test_idempotent_except_indexed_at(self, indexer, repository, make_content, clock):
        repository.save(make_content(1, title="Garden tools", body="<p>Rakes and hoes</p>", comment_count=7))
        first = indexer.index_one(1)
        clock.advance(seconds=5)
        second = indexer.index_one(1)

        assert second.indexed_at == first.indexed_at + timedelta(seconds=5)
        assert _without_timestamp(first) == _without_timestamp(second)
        assert _without_timestamp(indexer.get_entry(1)) == _without_timestamp(first)

    def test_body_is_cleaned_and_excerpt_falls_back(self, indexer, repository, make_content):
        repository.save(make_content(1, body="<p>Hello <em>garden</em></p>"))
        entry = indexer.index_one(1)
        assert entry.body == "Hello garden"
        assert entry.excerpt == "Hello garden"

    def test_long_excerpt_is_trimmed(self, indexer, repository, make_content):
        repository.save(make_content(1, body=" ".join(f"word{i}" for i in range(80))))
        entry = indexer.index_one(1)
        assert entry.excerpt.endswith("word54…")

    def test_explicit_excerpt_kept(self, indexer, repository, make_content):
        repository.save(make_content(1, body="Long body", excerpt="Short summary"))
        assert indexer.index_one(1).excerpt == "Short summary"

    def test_reindex_preserves_boost(self, indexer, repository, make_content):
        repository.save(make_content(1, title="Garden"))
        indexer.index_one(1)
        indexer.set_boost(1, 3.0)
        assert indexer.index_one(1).boost_factor == 3.0

    def test_negative_boost_rejected(self, indexer):
        with pytest.raises(InvalidInputError):
            indexer.set_boost(1, -1.0)

    def test_strict_lookup(self, indexer):
        with pytest.raises(NotFoundError):
            indexer.get_entry(404, strict=True)


@pytest.mark.unit
class TestRemoveOne:
    def test_removed_entry_never_returned(self, indexer, repository, make_content):
        repository.save(make_content(1, title="Garden hose"))
        repository.save(make_content(2, title="Garden shed"))
        indexer.index_one(1)
        indexer.index_one(2)
        assert 1 in indexer.search("garden").content_ids

        assert indexer.remove_one(1) is True
        for term in ("garden", "hose", "garden hose"):
            assert 1 not in indexer.search(term).content_ids
        assert indexer.search("garden").content_ids == [2]

    def test_remove_absent_is_noop(self, indexer):
        assert indexer.remove_one(404) is False


@pytest.mark.unit
class TestSearch:
    @pytest.mark.parametrize("term", ["", "   ", "a", "to"])
    def test_empty_or_short_terms_return_nothing(self, indexer, repository, make_content, term):
        repository.save(make_content(1, title="a to garden"))
        indexer.index_one(1)
        page = indexer.search(term)
        assert page.results == []
        assert page.total_count == 0
        assert indexer.search_count(term) == 0

    def test_boost_monotonicity(self, indexer, repository, make_content, clock):
        repository.save(make_content(1, title="Garden hose"))
        repository.save(make_content(2, title="Garden hose"))
        indexer.index_one(1)
        clock.advance(seconds=1)
        indexer.index_one(2)
        # Equal scores: newest first
        assert indexer.search("hose").content_ids == [2, 1]

        indexer.set_boost(1, 2.0)
        results = indexer.search("hose").results
        assert [result.content_id for result in results] == [1, 2]
        assert results[0].final_score == pytest.approx(2 * results[1].final_score)

    def test_title_match_outranks_body_match(self, indexer, repository, make_content):
        repository.save(make_content(1, title="Notes", body="a garden", excerpt="notes"))
        repository.save(make_content(2, title="Garden", body="notes", excerpt="notes"))
        indexer.index_one(1)
        indexer.index_one(2)
        assert indexer.search("garden").content_ids == [2, 1]

    def test_content_type_filter(self, indexer, repository, make_content):
        repository.save(make_content(1, title="Garden post"))
        repository.save(make_content(2, type="product", title="Garden product"))
        indexer.index_one(1)
        indexer.index_one(2)
        assert indexer.search("garden", SearchFilters(content_types=("product",))).content_ids == [2]
        assert sorted(indexer.search("garden").content_ids) == [1, 2]

    def test_pagination(self, indexer, repository, make_content, clock):
        for content_id in range(1, 6):
            repository.save(make_content(content_id, title="Garden"))
            indexer.index_one(content_id)
            clock.advance(seconds=1)
        page = indexer.search("garden", page=3, page_size=2)
        assert page.total_count == 5
        assert page.content_ids == [1]
        assert indexer.search("garden", page=0, page_size=2).page == 1

    def test_throttle_caps_candidates(self, repository, database, clock, make_content):
        settings = Settings(database_path=":memory:", throttle_ceiling=3)
        indexer = _make_indexer(settings, repository, database, clock)
        for content_id in range(1, 6):
            repository.save(make_content(content_id, title="Garden"))
            indexer.index_one(content_id)
        assert indexer.search_count("garden") == 3
        page = indexer.search("garden", page=2, page_size=2)
        assert page.total_count == 3
        assert len(page.results) == 1
        assert indexer.search("garden", page=3, page_size=2).results == []

    def test_any_term_matches(self, indexer, repository, make_content):
        repository.save(make_content(1, title="Garden hose"))
        repository.save(make_content(2, title="Kitchen sink"))
        indexer.index_one(1)
        indexer.index_one(2)
        assert sorted(indexer.search("hose sink").content_ids) == [1, 2]

    def test_punctuation_policy_applies_to_both_sides(self, indexer, repository, make_content):
        repository.save(make_content(1, title="E-mail marketing"))
        indexer.index_one(1)
        assert indexer.search("e-mail").content_ids == [1]
        assert indexer.search("mail").content_ids == [1]

    def test_quotes_in_query_are_safe(self, indexer, repository, make_content):
        repository.save(make_content(1, title="Garden"))
        indexer.index_one(1)
        assert indexer.search('"garden" OR NOT').content_ids == [1]

    def test_stop_words_are_ignored(self, indexer, repository, make_content):
        repository.save(make_content(1, title="The history of Rome"))
        repository.save(make_content(2, title="Garden tips"))
        indexer.index_one(1)
        indexer.index_one(2)
        page = indexer.search("the garden")
        assert page.content_ids == [2]
        assert page.total_count == 1
        assert indexer.search("the and for").total_count == 0

    def test_accented_titles_match_and_score(self, indexer, repository, make_content):
        repository.save(make_content(1, title="Cafe garden"))
        repository.save(make_content(2, title="Café menu"))
        indexer.index_one(1)
        indexer.index_one(2)
        results = indexer.search("cafe").results
        assert sorted(result.content_id for result in results) == [1, 2]
        assert results[0].text_score == pytest.approx(results[1].text_score)
        assert all(result.final_score > 0 for result in results)
        assert sorted(indexer.search("café").content_ids) == [1, 2]


class FlakyRepository(InMemoryContentRepository):
    """Lists an extra vanished id and fails to load one item."""

    def list_content(self, types, status="publish"):
        return super().list_content(types, status) + [99]

    def get_content(self, content_id):
        if content_id == 2:
            raise RuntimeError("database hiccup")
        return super().get_content(content_id)


@pytest.mark.unit
class TestBuildAll:
    def test_partial_failure_does_not_abort(self, test_settings, database, clock, make_content):
        repository = FlakyRepository([make_content(1), make_content(2), make_content(3)])
        indexer = _make_indexer(test_settings, repository, database, clock)
        updates = []

        result = indexer.build_all(on_progress=updates.append)

        assert [update.processed for update in updates] == [1, 2, 3, 4]
        assert updates[-1].total == 4
        assert (result.indexed, result.skipped, result.failed) == (2, 1, 1)
        assert result.errors == ("2: database hiccup",)
        assert not result.success
        assert indexer.get_entry(3) is not None

    def test_only_published_of_requested_types(self, indexer, repository, make_content):
        repository.save(make_content(1))
        repository.save(make_content(2, type="page"))
        repository.save(make_content(3, status="draft"))
        result = indexer.build_all(["page"])
        assert (result.total, result.indexed) == (1, 1)
        assert indexer.get_entry(1) is None

    def test_iter_build_all_streams_progress(self, indexer, repository, make_content):
        repository.save(make_content(1))
        repository.save(make_content(2))
        stream = indexer.iter_build_all()
        assert next(stream).percent == 50
        assert next(stream).percent == 100
        with pytest.raises(StopIteration) as stop:
            next(stream)
        assert stop.value.value.indexed == 2

    def test_cancel_event_stops_early(self, indexer, repository, make_content):
        for content_id in range(1, 5):
            repository.save(make_content(content_id))
        cancel = threading.Event()

        result = indexer.build_all(on_progress=lambda _update: cancel.set(), cancel_event=cancel)

        assert result.cancelled
        assert result.indexed == 1
        assert not result.success

    def test_deadline_stops_before_work(self, indexer, repository, make_content, clock):
        repository.save(make_content(1))
        result = indexer.build_all(deadline=clock())
        assert result.cancelled
        assert result.indexed == 0
