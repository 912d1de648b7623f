"""Scoring helpers: the static relevance heuristic and the text-match score.

The relevance score is a content-intrinsic quality signal recomputed on every
upsert. The text-match score measures how well one indexed entry matches a
query and is combined with relevance and boost at query time::

    final_score = text_match_score * relevance_score * boost_factor
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime
import math

from site_search.domain.model import Content, ensure_utc
from site_search.search.text import StandardAnalyzer


BASE_RELEVANCE = 1.0

# (exclusive lower bound, bonus) pairs, checked from the largest threshold down.
LENGTH_BONUSES: tuple[tuple[int, float], ...] = ((2000, 0.3), (500, 0.1))
RECENCY_BONUSES: tuple[tuple[int, float], ...] = ((30, 0.2), (90, 0.1))
ENGAGEMENT_BONUSES: tuple[tuple[int, float], ...] = ((10, 0.2), (5, 0.1))

TITLE_WEIGHT = 3.0
EXCERPT_WEIGHT = 1.5
BODY_WEIGHT = 1.0

_SECONDS_PER_DAY = 86400


def _threshold_bonus(value: float, thresholds: tuple[tuple[int, float], ...]) -> float:
    for threshold, bonus in thresholds:
        if value > threshold:
            return bonus
    return 0.0


def _recency_bonus(days_old: float) -> float:
    for max_days, bonus in RECENCY_BONUSES:
        if days_old < max_days:
            return bonus
    return 0.0


def calculate_relevance_score(content: Content, now: datetime) -> float:
    """Return the static relevance score for ``content`` as of ``now``.

    Three heuristics add to a base of 1.0:

    - body length: > 2000 characters +0.3, > 500 characters +0.1
    - recency: < 30 days old +0.2, < 90 days old +0.1
    - engagement: > 10 comments +0.2, > 5 comments +0.1

    Content dated in the future counts as brand new.
    """
    score = BASE_RELEVANCE
    score += _threshold_bonus(len(content.body), LENGTH_BONUSES)

    age_seconds = (ensure_utc(now) - ensure_utc(content.published_at)).total_seconds()
    score += _recency_bonus(max(age_seconds, 0.0) / _SECONDS_PER_DAY)

    score += _threshold_bonus(content.comment_count, ENGAGEMENT_BONUSES)
    return round(score, 2)


def _field_score(term_counts: Counter[str], terms: set[str], weight: float) -> float:
    score = 0.0
    for term in terms:
        tf = term_counts.get(term, 0)
        if tf:
            score += weight * (1.0 + math.log(tf))
    return score


class TextMatchScorer:
    """Score how well stored title/body/excerpt text matches a query.

    Each distinct query term contributes ``weight * (1 + ln(tf))`` per field
    it occurs in. There is no document-length normalization, so a longer body
    is never penalized relative to a shorter one with the same matches.
    """

    def __init__(self, analyzer: StandardAnalyzer | None = None) -> None:
        self.analyzer = analyzer or StandardAnalyzer()

    def __call__(self, query: str | None, title: str | None, body: str | None, excerpt: str | None) -> float:
        terms = set(self.analyzer.terms(query or ""))
        if not terms:
            return 0.0
        score = _field_score(Counter(self.analyzer.terms(title or "")), terms, TITLE_WEIGHT)
        score += _field_score(Counter(self.analyzer.terms(excerpt or "")), terms, EXCERPT_WEIGHT)
        score += _field_score(Counter(self.analyzer.terms(body or "")), terms, BODY_WEIGHT)
        return score
