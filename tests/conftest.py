"""Shared test fixtures and configuration."""

from datetime import datetime, timedelta, timezone
import os

import pytest


# Complete test environment that overrides every configuration value tests rely on
TEST_ENV = {
    "SITE_SEARCH_DATABASE_PATH": ":memory:",
    "SITE_SEARCH_CONTENT_TYPES": "post,page,product",
    "SITE_SEARCH_TAXONOMIES": "category,post_tag,product_cat",
    "SITE_SEARCH_BOOST_WORDS": "",
    "SITE_SEARCH_MIN_WORD_LENGTH": "3",
    "SITE_SEARCH_THROTTLE_SEARCHES": "true",
    "SITE_SEARCH_THROTTLE_CEILING": "500",
    "SITE_SEARCH_SUGGESTION_REBUILD_FREQUENCY": "weekly",
    "SITE_SEARCH_LOG_LEVEL": "info",
    "SITE_SEARCH_LOG_JSON": "false",
}

# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value

from site_search.adapters.content_repository import InMemoryContentRepository
from site_search.config import Settings
from site_search.domain.model import Content
from site_search.search.sqlite_storage import SqliteDatabase


FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic, manually advanced clock."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Pin test defaults for every SITE_SEARCH_ variable."""
    for key in list(os.environ):
        if key.startswith("SITE_SEARCH_") and key not in TEST_ENV:
            monkeypatch.delenv(key, raising=False)
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def test_settings():
    """Settings with an in-memory database."""
    return Settings(database_path=":memory:")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def database():
    db = SqliteDatabase(":memory:")
    yield db
    db.close()


@pytest.fixture
def repository():
    return InMemoryContentRepository()


@pytest.fixture
def make_content():
    """Factory for published content with neutral ranking signals."""

    def _make(content_id: int, **overrides) -> Content:
        fields = {
            "id": content_id,
            "type": "post",
            "title": f"Item {content_id}",
            "body": "",
            "excerpt": "",
            "url": f"https://example.com/?p={content_id}",
            "published_at": FIXED_NOW - timedelta(days=1),
            "comment_count": 0,
        }
        fields.update(overrides)
        return Content(**fields)

    return _make
