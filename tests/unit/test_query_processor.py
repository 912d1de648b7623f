"""Unit tests for stop/boost word processing and weighted search."""

import pytest

from site_search.config import DEFAULT_STOP_WORDS, Settings
from site_search.search.indexer import Indexer
from site_search.search.query_processor import QueryProcessor
from site_search.search.sqlite_storage import SqliteIndexStore


@pytest.fixture
def store(database):
    return SqliteIndexStore(database)


def _processor(store, **overrides) -> QueryProcessor:
    return QueryProcessor(Settings(database_path=":memory:", **overrides), store)


@pytest.fixture
def indexed(test_settings, repository, store, clock, make_content):
    """Index a small corpus and return a helper that adds more items."""
    indexer = Indexer(test_settings, repository, store, clock=clock)

    def _add(content_id: int, **fields):
        repository.save(make_content(content_id, **fields))
        clock.advance(seconds=1)
        return indexer.index_one(content_id)

    return _add


@pytest.mark.unit
class TestProcess:
    def test_lowercases_and_removes_stop_words(self, store):
        processed = _processor(store).process("The Best  Garden Tools")
        assert processed.words == ["best", "garden", "tools"]
        assert processed.filtered_query == "best garden tools"
        assert all(term.boost == 1.0 for term in processed.terms)
        assert processed.has_boost_terms is False
        assert processed.original_query == "The Best  Garden Tools"

    def test_boost_words_weighted(self, store):
        processed = _processor(store, boost_words="organic").process("Organic compost")
        assert [(term.word, term.boost) for term in processed.terms] == [("organic", 2.0), ("compost", 1.0)]
        assert processed.has_boost_terms is True

    def test_boost_flag_uses_tokens_before_stop_word_removal(self, store):
        processed = _processor(store, boost_words="the").process("the shed")
        assert processed.words == ["shed"]
        assert processed.has_boost_terms is True

    def test_duplicates_are_kept(self, store):
        assert _processor(store).process("garden garden").words == ["garden", "garden"]

    @pytest.mark.parametrize("query", ["", "   ", "the and of", "THE Of a An", DEFAULT_STOP_WORDS.replace(",", " ")])
    def test_stop_word_only_queries_yield_no_terms(self, store, indexed, query):
        indexed(1, title="The garden of the year")
        processor = _processor(store)
        assert processor.process(query).terms == []
        assert processor.weighted_search(query) == []


@pytest.mark.unit
class TestWeightedSearch:
    def test_every_term_must_match(self, store, indexed):
        indexed(1, title="Garden tools guide")
        indexed(2, title="Garden hose")
        indexed(3, title="Kitchen", body="tools for the garden")
        results = _processor(store).weighted_search("garden tools")
        assert sorted(result.content_id for result in results) == [1, 3]

    def test_term_without_matches_short_circuits(self, store, indexed):
        indexed(1, title="Garden tools")
        assert _processor(store).weighted_search("garden cactus") == []

    def test_boost_term_multiplies_score(self, store, indexed):
        entry = indexed(1, title="Organic garden")
        results = _processor(store, boost_words="organic").weighted_search("organic garden")
        assert results[0].final_score == pytest.approx(entry.relevance_score * 2.0)

    def test_repeated_boost_word_multiplies_per_occurrence(self, store, indexed):
        entry = indexed(1, title="Organic garden")
        results = _processor(store, boost_words="organic").weighted_search("organic organic")
        assert [result.content_id for result in results] == [1]
        assert results[0].final_score == pytest.approx(entry.relevance_score * 4.0)

    def test_ordered_by_score_then_newest(self, store, indexed):
        indexed(1, title="Garden", body="x" * 600)
        indexed(2, title="Garden")
        indexed(3, title="Garden")
        results = _processor(store).weighted_search("garden")
        assert [result.content_id for result in results] == [1, 3, 2]

    def test_boost_factor_applies(self, store, indexed):
        indexed(1, title="Garden")
        indexed(2, title="Garden")
        store.set_boost(1, 3.0)
        assert [result.content_id for result in _processor(store).weighted_search("garden")] == [1, 2]

    def test_limit(self, store, indexed):
        for content_id in range(1, 6):
            indexed(content_id, title="Garden")
        assert len(_processor(store).weighted_search("garden", limit=2)) == 2
        assert len(_processor(store, weighted_search_limit=3).weighted_search("garden")) == 3

    def test_wildcards_are_literal(self, store, indexed):
        indexed(1, title="Garden 100% organic")
        indexed(2, title="Garden 1000 organic")
        assert [result.content_id for result in _processor(store).weighted_search("100%")] == [1]
