"""Unit tests for the relevance heuristic and the text-match score."""

from datetime import datetime, timedelta, timezone
import math

import pytest

from site_search.domain.model import Content
from site_search.search.scoring import TextMatchScorer, calculate_relevance_score


NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _content(**overrides) -> Content:
    fields = {"id": 1, "type": "post", "published_at": NOW - timedelta(days=200)}
    fields.update(overrides)
    return Content(**fields)


@pytest.mark.unit
class TestRelevanceScore:
    def test_base_score(self):
        assert calculate_relevance_score(_content(), NOW) == 1.0

    @pytest.mark.parametrize(("length", "expected"), [(500, 1.0), (501, 1.1), (2000, 1.1), (2001, 1.3)])
    def test_length_thresholds(self, length, expected):
        assert calculate_relevance_score(_content(body="x" * length), NOW) == expected

    @pytest.mark.parametrize(("days", "expected"), [(10, 1.2), (29, 1.2), (60, 1.1), (120, 1.0)])
    def test_recency_thresholds(self, days, expected):
        content = _content(published_at=NOW - timedelta(days=days))
        assert calculate_relevance_score(content, NOW) == expected

    @pytest.mark.parametrize(("comments", "expected"), [(5, 1.0), (6, 1.1), (10, 1.1), (11, 1.2)])
    def test_engagement_thresholds(self, comments, expected):
        assert calculate_relevance_score(_content(comment_count=comments), NOW) == expected

    def test_all_bonuses(self):
        content = _content(body="x" * 3000, published_at=NOW - timedelta(days=1), comment_count=20)
        assert calculate_relevance_score(content, NOW) == 1.7

    def test_future_content_counts_as_new(self):
        content = _content(published_at=NOW + timedelta(days=3))
        assert calculate_relevance_score(content, NOW) == 1.2

    def test_naive_dates_are_utc(self):
        content = _content(published_at=datetime(2026, 2, 20))
        assert calculate_relevance_score(content, NOW) == 1.2


@pytest.mark.unit
class TestTextMatchScorer:
    def test_title_weighted_highest(self):
        scorer = TextMatchScorer()
        assert scorer("garden", "Garden tips", "", "") == pytest.approx(3.0)
        assert scorer("garden", "", "", "garden") == pytest.approx(1.5)
        assert scorer("garden", "", "garden", "") == pytest.approx(1.0)

    def test_term_frequency_is_dampened(self):
        assert TextMatchScorer()("garden", "", "garden garden", "") == pytest.approx(1 + math.log(2))

    def test_no_match_or_empty_query(self):
        scorer = TextMatchScorer()
        assert scorer("shed", "Garden", "garden", "garden") == 0.0
        assert scorer("", "Garden", "garden", "") == 0.0
        assert scorer(None, None, None, None) == 0.0

    def test_longer_body_not_penalized(self):
        scorer = TextMatchScorer()
        short = scorer("garden", "", "garden " + "x " * 10, "")
        long = scorer("garden", "", "garden " + "x " * 1000, "")
        assert short == long
