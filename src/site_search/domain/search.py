"""Domain models for search, suggestion and reporting results.

Value objects are immutable (frozen=True) so a result handed to one caller
cannot be changed underneath another.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class SearchFilters(BaseModel):
    """Restrictions applied to a ranked search.

    An empty ``content_types`` tuple means "every configured content type".
    """

    model_config = ConfigDict(frozen=True)

    content_types: tuple[str, ...] = ()


class ScoredResult(BaseModel):
    """A single ranked hit with the factors that produced its score."""

    model_config = ConfigDict(frozen=True)

    content_id: int
    content_type: str
    title: str
    url: str
    text_score: float
    relevance_score: float
    boost_factor: float
    final_score: float


class SearchPage(BaseModel):
    """One page of ranked results plus the total used for pagination."""

    model_config = ConfigDict(frozen=True)

    results: list[ScoredResult] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 10

    @property
    def content_ids(self) -> list[int]:
        return [result.content_id for result in self.results]


class QueryTerm(BaseModel):
    """A surviving query token and its boost weight."""

    model_config = ConfigDict(frozen=True)

    word: str
    boost: float = 1.0


class ProcessedQuery(BaseModel):
    """Value object representing a normalized user query."""

    model_config = ConfigDict(frozen=True)

    original_query: str
    terms: list[QueryTerm] = Field(default_factory=list)
    filtered_query: str = ""
    has_boost_terms: bool = False

    @property
    def words(self) -> list[str]:
        return [term.word for term in self.terms]


class SuggestionMatch(BaseModel):
    """An autocomplete candidate with its match-tier score."""

    model_config = ConfigDict(frozen=True)

    term: str
    score: int
    source_type: str


class PopularSearch(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    search_count: int
    avg_results: float


class ZeroResultSearch(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    search_count: int


class DailyVolume(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    search_count: int


class DashboardData(BaseModel):
    """Aggregated search analytics for a trailing window.

    ``zero_result_rate`` is the percentage of distinct zero-result query
    strings over total searches, not the share of zero-result events.
    """

    model_config = ConfigDict(frozen=True)

    days: int
    popular_searches: list[PopularSearch] = Field(default_factory=list)
    zero_result_searches: list[ZeroResultSearch] = Field(default_factory=list)
    daily_volume: list[DailyVolume] = Field(default_factory=list)
    total_searches: int = 0
    avg_results: float = 0.0
    zero_result_rate: float = 0.0
