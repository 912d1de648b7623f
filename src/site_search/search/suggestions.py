"""Autocomplete suggestions served from a precomputed term snapshot.

The snapshot is built offline from the leading words of published titles
and from taxonomy labels, then matched at query time in three tiers:

- prefix match: 100
- substring match: 80
- fuzzy match on the equally long candidate prefix: ``60 - 15 * distance``
  for distance <= 2, only when candidate and query lengths differ by at most 3

Readers always see one complete snapshot; a rebuild swaps the tuple
reference only after the new snapshot has been persisted.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable
import logging
import threading
import time

from site_search.adapters.content_repository import AbstractContentRepository
from site_search.config import Settings
from site_search.domain.model import Content, SuggestionTerm
from site_search.domain.search import SuggestionMatch
from site_search.observability.metrics import SEARCH_LATENCY, SUGGESTION_SNAPSHOT_SIZE, track_latency
from site_search.observability.tracing import create_span
from site_search.search.fuzzy import prefix_distance
from site_search.search.sqlite_storage import SqliteSuggestionStore
from site_search.search.text import strip_non_alphanumeric


logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
PREFIX_SCORE = 100
CONTAINS_SCORE = 80
FUZZY_BASE_SCORE = 60
FUZZY_STEP = 15
MAX_FUZZY_DISTANCE = 2
MAX_LENGTH_DIFFERENCE = 3


class DebounceLock:
    """Short-lived, best-effort lock suppressing repeated triggers.

    ``acquire`` succeeds at most once per ``ttl_seconds`` window. This is a
    hint to avoid wasted rebuilds, not a mutual-exclusion guarantee across
    processes.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._expires_at: float | None = None
        self._lock = threading.Lock()

    def acquire(self) -> bool:
        with self._lock:
            now = self._clock()
            if self._expires_at is not None and now < self._expires_at:
                return False
            self._expires_at = now + self.ttl_seconds
            return True

    @property
    def held(self) -> bool:
        with self._lock:
            return self._expires_at is not None and self._clock() < self._expires_at

    def release(self) -> None:
        with self._lock:
            self._expires_at = None


def score_candidate(query: str, term: str) -> int | None:
    """Return the match-tier score of ``term`` for ``query``, or None."""
    position = term.find(query)
    if position == 0:
        return PREFIX_SCORE
    if position > 0:
        return CONTAINS_SCORE
    if abs(len(term) - len(query)) > MAX_LENGTH_DIFFERENCE:
        return None
    distance = prefix_distance(query, term, MAX_FUZZY_DISTANCE)
    if distance <= MAX_FUZZY_DISTANCE:
        return FUZZY_BASE_SCORE - FUZZY_STEP * distance
    return None


class SuggestionEngine:
    """Builds the suggestion snapshot and serves ranked autocomplete matches."""

    def __init__(
        self,
        settings: Settings,
        repository: AbstractContentRepository,
        store: SqliteSuggestionStore,
        *,
        debounce: DebounceLock | None = None,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.store = store
        self.debounce = debounce or DebounceLock(settings.suggestion_debounce_seconds)
        self._snapshot: tuple[SuggestionTerm, ...] = store.load()

    @property
    def snapshot(self) -> tuple[SuggestionTerm, ...]:
        return self._snapshot

    def _content_candidates(self) -> list[SuggestionTerm]:
        counts: Counter[str] = Counter()
        for content in self.repository.iter_content(self.settings.get_content_types()):
            for word in content.title.split()[: self.settings.suggestion_title_words]:
                cleaned = strip_non_alphanumeric(word)
                if len(cleaned) >= self.settings.suggestion_min_word_length:
                    counts[cleaned] += 1
        return [
            SuggestionTerm(term=word, frequency=frequency, source_type="content")
            for word, frequency in counts.most_common(self.settings.suggestion_content_candidates)
        ]

    def _taxonomy_candidates(self) -> list[SuggestionTerm]:
        candidates = []
        for taxonomy in self.settings.get_taxonomies():
            for term in self.repository.list_taxonomy_terms(taxonomy):
                label = term.label.strip().lower()
                if label and term.usage_count > 0:
                    candidates.append(SuggestionTerm(term=label, frequency=term.usage_count, source_type="taxonomy"))
        return candidates

    def build_from_content(self) -> int:
        """Rebuild and persist the snapshot; returns the number of terms kept.

        Content words and taxonomy labels are merged by term, keeping the
        higher frequency (content wins ties), then sorted by frequency.
        """
        with create_span("suggestions.build"):
            merged: dict[str, SuggestionTerm] = {}
            for candidate in self._content_candidates() + self._taxonomy_candidates():
                existing = merged.get(candidate.term)
                if existing is None or candidate.frequency > existing.frequency:
                    merged[candidate.term] = candidate
            ranked = sorted(merged.values(), key=lambda term: term.frequency, reverse=True)
            snapshot = tuple(ranked[: self.settings.suggestion_snapshot_size])

            self.store.replace(snapshot)
            self._snapshot = snapshot

        SUGGESTION_SNAPSHOT_SIZE.labels().set(len(snapshot))
        logger.info("Suggestion snapshot rebuilt with %d terms", len(snapshot))
        return len(snapshot)

    def get_suggestions(self, query: str, limit: int | None = None) -> list[SuggestionMatch]:
        """Return up to ``limit`` matches for ``query``, best tier first."""
        query = (query or "").strip().lower()
        if len(query) < MIN_QUERY_LENGTH:
            return []
        limit = max(1, int(limit or self.settings.suggestion_limit))

        snapshot = self._snapshot
        matches: list[SuggestionMatch] = []
        with track_latency(SEARCH_LATENCY, kind="suggest"):
            for candidate in snapshot:
                score = score_candidate(query, candidate.term)
                if score is not None:
                    matches.append(
                        SuggestionMatch(term=candidate.term, score=score, source_type=candidate.source_type)
                    )
        matches.sort(key=lambda match: match.score, reverse=True)
        return matches[:limit]

    def inline_suggestion(self, query: str) -> str:
        """Best completion for inline autocomplete, only if it is a prefix match."""
        matches = self.get_suggestions(query, limit=1)
        if matches and matches[0].score == PREFIX_SCORE:
            return matches[0].term
        return ""

    def rebuild_on_save(self, content: Content) -> bool:
        """Rebuild after a qualifying save unless a rebuild ran recently.

        Returns:
            True if a rebuild ran.
        """
        if not content.is_public or content.type not in self.settings.get_content_types():
            return False
        if not self.debounce.acquire():
            logger.debug("Suggestion rebuild for content %s suppressed by debounce lock", content.id)
            return False
        self.build_from_content()
        return True
