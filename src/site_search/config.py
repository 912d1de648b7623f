"""Centralized configuration for site-search using Pydantic Settings."""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PunctuationOption = Literal["remove", "replace", "keep"]
RebuildFrequency = Literal["daily", "weekly", "monthly", "manual"]

DEFAULT_STOP_WORDS = (
    "the,and,or,but,in,on,at,to,for,of,with,by,a,an,is,are,was,were,been,be,have,has,had,"
    "do,does,did,will,would,could,should,may,might,can,shall"
)


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Every component receives this object through its constructor; nothing
    reads stop words, boost words or punctuation policy from module state.
    """

    model_config = SettingsConfigDict(
        env_prefix="SITE_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Storage
    database_path: str = Field(default="site_search.db", description="SQLite database holding index, suggestions, analytics")

    # Content selection
    content_types: str = Field(default="post,page,product", description="Comma-separated content types to index")
    taxonomies: str = Field(
        default="category,post_tag,product_cat",
        description="Comma-separated taxonomy types whose labels feed the suggestion snapshot",
    )

    # Query processing
    stop_words: str = Field(default=DEFAULT_STOP_WORDS, description="Comma-separated stop words")
    boost_words: str = Field(default="", description="Comma-separated boost words")
    min_word_length: int = Field(default=3, ge=1, description="Minimum query word length for full-text lookup")
    throttle_searches: bool = Field(default=True, description="Limit ranked candidates per term")
    throttle_ceiling: int = Field(default=500, ge=1, description="Maximum ranked candidates per term when throttled")

    # Punctuation normalization
    hyphens: PunctuationOption = Field(default="replace", description="Hyphens and dashes")
    quotes: PunctuationOption = Field(default="replace", description="Apostrophes and quotes")
    ampersands: PunctuationOption = Field(default="replace", description="Ampersands")
    decimals: PunctuationOption = Field(default="remove", description="Decimal separators")

    # Paging
    default_page_size: int = Field(default=10, ge=1, description="Page size when callers pass none")
    weighted_search_limit: int = Field(default=50, ge=1, description="Result cap for pattern-based search")

    # Suggestions
    suggestion_limit: int = Field(default=5, ge=1)
    suggestion_title_words: int = Field(default=5, ge=1, description="Leading title words scanned per item")
    suggestion_min_word_length: int = Field(default=4, ge=1, description="Shortest candidate word kept")
    suggestion_content_candidates: int = Field(default=500, ge=1)
    suggestion_snapshot_size: int = Field(default=1000, ge=1)
    suggestion_rebuild_frequency: RebuildFrequency = Field(default="weekly")
    suggestion_rebuild_delay_seconds: int = Field(default=300, ge=0, description="Delay before first scheduled rebuild")
    suggestion_debounce_seconds: int = Field(default=60, ge=0, description="Rebuild-on-save lock lifetime")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    @field_validator("stop_words", "boost_words", "content_types", "taxonomies", mode="before")
    @classmethod
    def _join_sequences(cls, value: object) -> object:
        if isinstance(value, (list, tuple, set, frozenset)):
            return ",".join(str(item) for item in value)
        return value

    def get_stop_words(self) -> frozenset[str]:
        """Get the normalized stop word set."""
        return frozenset(word.lower() for word in _split_csv(self.stop_words))

    def get_boost_words(self) -> frozenset[str]:
        """Get the normalized boost word set."""
        return frozenset(word.lower() for word in _split_csv(self.boost_words))

    def get_content_types(self) -> tuple[str, ...]:
        """Get content types in configured order."""
        return tuple(_split_csv(self.content_types))

    def get_taxonomies(self) -> tuple[str, ...]:
        return tuple(_split_csv(self.taxonomies))

    def punctuation_policy(self) -> dict[str, str]:
        """Return the punctuation handling option for each punctuation class.

        Returns:
            Mapping of ``hyphens``, ``quotes``, ``ampersands`` and ``decimals``
            to one of ``remove``, ``replace`` or ``keep``.
        """
        return {
            "hyphens": self.hyphens,
            "quotes": self.quotes,
            "ampersands": self.ampersands,
            "decimals": self.decimals,
        }

    def candidate_ceiling(self) -> int | None:
        """Return the throttle ceiling, or None when throttling is disabled."""
        return self.throttle_ceiling if self.throttle_searches else None
