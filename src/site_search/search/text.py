"""Tokenization and text normalization for indexing and querying.

Analyzers follow a composable tokenizer/filter design: a tokenizer yields
``Token`` objects and filters transform the stream. The same punctuation
policy is applied to indexed text and to query text so both sides agree on
word boundaries.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
import html
import re
from typing import Protocol
import unicodedata


@dataclass
class Token:
    """Represents a token emitted by analyzers."""

    text: str
    position: int
    start_char: int
    end_char: int


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class RegexTokenizer:
    """Regex-based tokenizer that yields word tokens."""

    def __init__(self, pattern: str = r"\w+", flags: int = re.UNICODE) -> None:
        self.pattern = re.compile(pattern, flags)

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self.pattern.finditer(text)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


class LowercaseFilter:
    """Filter that lowercases token text."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if not token.text.islower():
                token.text = token.text.lower()
            yield token


class AccentFoldFilter:
    """Strips combining marks so "Café" and "cafe" index to the same term."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if not token.text.isascii():
                decomposed = unicodedata.normalize("NFKD", token.text)
                token.text = "".join(char for char in decomposed if not unicodedata.combining(char))
            yield token


class StopFilter:
    """Removes stopwords from the stream."""

    def __init__(self, stopwords: Iterable[str]) -> None:
        self.stopwords = {word.lower() for word in stopwords}

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text.lower() not in self.stopwords:
                yield token


class MinLengthFilter:
    """Drops tokens shorter than ``min_length`` characters."""

    def __init__(self, min_length: int) -> None:
        self.min_length = max(1, min_length)

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if len(token.text) >= self.min_length:
                yield token


class AnalyzerPipeline:
    """Composable analyzer pipeline (tokenizer + filters)."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str) -> list[Token]:
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        tokens = list(stream)
        for idx, token in enumerate(tokens):  # normalize positions post-filtering
            token.position = idx
        return tokens


class StandardAnalyzer:
    """Lowercasing, accent-folding word analyzer with optional stopword and length filtering."""

    def __init__(self, *, stopwords: Iterable[str] = (), min_length: int = 1) -> None:
        filters: list[TokenFilter] = [LowercaseFilter(), AccentFoldFilter()]
        stopwords = list(stopwords)
        if stopwords:
            filters.append(StopFilter(stopwords))
        if min_length > 1:
            filters.append(MinLengthFilter(min_length))
        self.pipeline = AnalyzerPipeline(RegexTokenizer(), filters)

    def __call__(self, text: str) -> list[Token]:
        return self.pipeline(text)

    def terms(self, text: str) -> list[str]:
        return [token.text for token in self(text)]


# Punctuation classes governed by the index options.
_HYPHENS = re.compile(r"[-‐‑‒–—―]")
_QUOTES = re.compile(r"['\"`‘’‚‛“”„´]")
_AMPERSANDS = re.compile(r"&(?:amp;)?")
_DECIMALS = re.compile(r"(?<=\d)[.,](?=\d)")

_PUNCTUATION_PATTERNS: dict[str, re.Pattern[str]] = {
    "hyphens": _HYPHENS,
    "quotes": _QUOTES,
    "ampersands": _AMPERSANDS,
    "decimals": _DECIMALS,
}

_TAG_PATTERN = re.compile(r"<(script|style)[^>]*>.*?</\1>|<[^>]+>", re.IGNORECASE | re.DOTALL)
_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_punctuation(text: str, policy: Mapping[str, str]) -> str:
    """Apply the remove/replace/keep policy for each punctuation class.

    Args:
        text: Text to normalize.
        policy: Mapping of punctuation class to ``remove``, ``replace`` or ``keep``.
            Classes missing from the mapping are kept.

    Returns:
        The normalized text.
    """
    for name, pattern in _PUNCTUATION_PATTERNS.items():
        option = policy.get(name, "keep")
        if option == "remove":
            text = pattern.sub("", text)
        elif option == "replace":
            text = pattern.sub(" ", text)
        elif option != "keep":
            raise ValueError(f"Unknown punctuation option '{option}' for {name}")
    return text


def strip_tags(text: str) -> str:
    """Remove markup (including script/style bodies) and collapse whitespace."""
    if not text:
        return ""
    cleaned = _TAG_PATTERN.sub(" ", text)
    cleaned = html.unescape(cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def trim_words(text: str, num_words: int = 55, more: str = "…") -> str:
    """Return the first ``num_words`` words of ``text``, marking truncation."""
    words = text.split()
    if len(words) <= num_words:
        return " ".join(words)
    return " ".join(words[:num_words]) + more


def strip_non_alphanumeric(word: str) -> str:
    """Lowercase ``word`` and drop everything but ASCII letters and digits."""
    return _NON_ALNUM.sub("", word.lower())


def sanitize_text_field(text: str, max_length: int | None = None) -> str:
    """Strip markup and control whitespace from a single-line user input."""
    cleaned = strip_tags(text or "")
    if max_length is not None:
        cleaned = cleaned[:max_length]
    return cleaned
