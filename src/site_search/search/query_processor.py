"""Stop-word and boost-word query processing with pattern-based retrieval.

The weighted search is an alternative retrieval path to the indexer's
full-text ranking: every surviving term must appear in the title or body,
and terms from the boost list multiply the score of documents they match.
"""

from __future__ import annotations

import logging

from site_search.config import Settings
from site_search.domain.search import ProcessedQuery, QueryTerm, ScoredResult
from site_search.observability.metrics import SEARCH_LATENCY, track_latency
from site_search.observability.tracing import create_span
from site_search.search.sqlite_storage import SqliteIndexStore


logger = logging.getLogger(__name__)

BOOST_WEIGHT = 2.0
DEFAULT_WEIGHT = 1.0
PATTERN_COLUMNS = ("title", "body")


class QueryProcessor:
    """Normalize raw queries using the configured stop and boost word sets."""

    def __init__(self, settings: Settings, store: SqliteIndexStore) -> None:
        self.settings = settings
        self.store = store
        self._stop_words = settings.get_stop_words()
        self._boost_words = settings.get_boost_words()

    def process(self, raw_query: str) -> ProcessedQuery:
        """Lowercase, split on whitespace, drop stop words and weight boost words.

        ``has_boost_terms`` looks at the tokens before stop-word removal, so a
        boost word that is also a stop word still flags the query.
        """
        tokens = (raw_query or "").strip().lower().split()
        terms = [
            QueryTerm(word=token, boost=BOOST_WEIGHT if token in self._boost_words else DEFAULT_WEIGHT)
            for token in tokens
            if token not in self._stop_words
        ]
        return ProcessedQuery(
            original_query=raw_query or "",
            terms=terms,
            filtered_query=" ".join(term.word for term in terms),
            has_boost_terms=any(token in self._boost_words for token in tokens),
        )

    def weighted_search(self, raw_query: str, limit: int | None = None) -> list[ScoredResult]:
        """Return documents matching every surviving term, best first.

        A query whose terms are all stop words, or with any term that matches
        nothing at all, returns an empty list.
        """
        limit = max(1, int(limit or self.settings.weighted_search_limit))
        processed = self.process(raw_query)
        if not processed.terms:
            return []

        # Repeated words share one match check but each still multiplies the score.
        unique_words = list(dict.fromkeys(term.word for term in processed.terms))

        with (
            create_span("query.weighted_search", attributes={"search.terms": len(processed.terms)}),
            track_latency(SEARCH_LATENCY, kind="weighted"),
        ):
            for word in unique_words:
                if not self.store.has_pattern_match(word, PATTERN_COLUMNS):
                    logger.debug("Weighted search %r: no entry contains %r", raw_query, word)
                    return []
            results = self.store.pattern_search(processed.terms, limit=limit, columns=PATTERN_COLUMNS)

        logger.debug("Weighted search %r returned %d results", raw_query, len(results))
        return results
