"""Domain model - entities and value objects.

The domain layer has no dependencies on storage. Value objects are frozen
Pydantic dataclasses so they validate at construction and can be shared
between components without defensive copies.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Literal

from pydantic import Field
from pydantic.dataclasses import dataclass


PUBLISHED_STATUS = "publish"

MAX_QUERY_LENGTH = 255
MAX_META_LENGTH = 500
DEFAULT_CLIENT_IP = "127.0.0.1"

_IP_HEADERS = ("x-forwarded-for", "x-real-ip", "client-ip")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are assumed UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Content:
    """A content item as served by the content repository."""

    id: int
    type: str
    title: str = ""
    body: str = ""
    excerpt: str = ""
    url: str = ""
    status: str = PUBLISHED_STATUS
    published_at: datetime = Field(default_factory=utcnow)
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    comment_count: int = Field(default=0, ge=0)

    @property
    def is_public(self) -> bool:
        return self.status == PUBLISHED_STATUS


@dataclass(frozen=True)
class TaxonomyTerm:
    """A taxonomy label (category, tag, product category) with its usage count."""

    label: str
    usage_count: int = Field(default=0, ge=0)
    taxonomy: str = "category"


@dataclass(frozen=True)
class IndexEntry:
    """Denormalized per-content record enabling fast text search.

    Exactly one entry exists per live ``content_id``. ``relevance_score`` is
    recomputed on every upsert while ``boost_factor`` is an external override
    that re-indexing never touches.
    """

    content_id: int
    content_type: str
    title: str
    body: str
    excerpt: str
    url: str
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    relevance_score: float = Field(default=1.0, ge=0.0)
    boost_factor: float = Field(default=1.0, ge=0.0)
    indexed_at: datetime = Field(default_factory=utcnow)


@dataclass(frozen=True)
class SuggestionTerm:
    """One candidate autocomplete term in the suggestion snapshot."""

    term: str
    frequency: int = Field(ge=0)
    source_type: Literal["content", "taxonomy"] = "content"


@dataclass(frozen=True)
class RequestMeta:
    """Requester metadata captured alongside each analytics event."""

    client_ip: str = DEFAULT_CLIENT_IP
    user_agent: str = ""
    referrer: str = ""

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], remote_addr: str | None = None) -> "RequestMeta":
        """Build request metadata from HTTP headers.

        The client IP is taken from the first hop of ``X-Forwarded-For``, then
        ``X-Real-IP``, ``Client-IP`` and finally the socket address.
        """
        lowered = {key.lower(): value for key, value in headers.items()}
        client_ip = ""
        for header in _IP_HEADERS:
            value = (lowered.get(header) or "").strip()
            if value:
                client_ip = value.split(",")[0].strip()
                break
        if not client_ip:
            client_ip = (remote_addr or "").strip() or DEFAULT_CLIENT_IP
        return cls(
            client_ip=client_ip,
            user_agent=(lowered.get("user-agent") or "").strip()[:MAX_META_LENGTH],
            referrer=(lowered.get("referer") or lowered.get("referrer") or "").strip()[:MAX_META_LENGTH],
        )


@dataclass(frozen=True)
class AnalyticsEvent:
    """Append-only record of one executed query."""

    query: str
    result_count: int = Field(default=0, ge=0)
    client_ip: str = DEFAULT_CLIENT_IP
    user_agent: str = ""
    referrer: str = ""
    occurred_at: datetime = Field(default_factory=utcnow)
