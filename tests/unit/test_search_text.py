"""Unit tests for analyzers and text normalization helpers."""

import pytest

from site_search.search.text import (
    StandardAnalyzer,
    normalize_punctuation,
    sanitize_text_field,
    strip_non_alphanumeric,
    strip_tags,
    trim_words,
)


@pytest.mark.unit
class TestStandardAnalyzer:
    def test_lowercases_and_splits_words(self):
        assert StandardAnalyzer().terms("Hello, World!") == ["hello", "world"]

    def test_stopwords_and_min_length(self):
        analyzer = StandardAnalyzer(stopwords=["the"], min_length=3)
        assert analyzer.terms("The cat is on a mat") == ["cat", "mat"]

    def test_positions_renumbered_after_filtering(self):
        tokens = StandardAnalyzer(stopwords=["the"])("the quick fox")
        assert [token.position for token in tokens] == [0, 1]

    def test_accents_are_folded(self):
        assert StandardAnalyzer().terms("Café Crème naïve") == ["cafe", "creme", "naive"]


@pytest.mark.unit
class TestNormalizePunctuation:
    @pytest.mark.parametrize(
        ("option", "expected"),
        [("replace", "e mail"), ("remove", "email"), ("keep", "e-mail")],
    )
    def test_hyphen_options(self, option, expected):
        assert normalize_punctuation("e-mail", {"hyphens": option}) == expected

    def test_decimals_only_between_digits(self):
        policy = {"decimals": "remove"}
        assert normalize_punctuation("version 2.5. Done", policy) == "version 25. Done"

    def test_ampersands_and_quotes(self):
        policy = {"ampersands": "replace", "quotes": "remove"}
        assert normalize_punctuation("R&D's lab", policy) == "R Ds lab"

    def test_missing_classes_are_kept(self):
        assert normalize_punctuation("rock-n-roll", {}) == "rock-n-roll"

    def test_unknown_option_raises(self):
        with pytest.raises(ValueError, match="Unknown punctuation option"):
            normalize_punctuation("x-y", {"hyphens": "explode"})


@pytest.mark.unit
class TestCleanupHelpers:
    def test_strip_tags_drops_markup_and_scripts(self):
        html = "<p>Hello <b>world</b></p><script>alert(1)</script>"
        assert strip_tags(html) == "Hello world"

    def test_strip_tags_unescapes_entities(self):
        assert strip_tags("Fish &amp; chips") == "Fish & chips"

    def test_trim_words(self):
        assert trim_words("a b c", 2) == "a b…"
        assert trim_words("a   b", 5) == "a b"

    def test_strip_non_alphanumeric(self):
        assert strip_non_alphanumeric("Garden's!") == "gardens"

    def test_sanitize_text_field_truncates(self):
        assert sanitize_text_field("<b>hi</b>  there", 4) == "hi t"
        assert sanitize_text_field(None) == ""
