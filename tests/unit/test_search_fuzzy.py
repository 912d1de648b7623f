"""Unit tests for edit distance used by suggestion matching."""

import pytest

from site_search.search.fuzzy import levenshtein_distance, prefix_distance


@pytest.mark.unit
class TestLevenshteinDistance:
    """Tests for levenshtein_distance function."""

    def test_identical_strings(self):
        assert levenshtein_distance("hello", "hello") == 0

    def test_empty_strings(self):
        assert levenshtein_distance("", "") == 0
        assert levenshtein_distance("abc", "") == 3
        assert levenshtein_distance("", "abc") == 3

    def test_single_edits(self):
        assert levenshtein_distance("cat", "cats") == 1
        assert levenshtein_distance("cats", "cat") == 1
        assert levenshtein_distance("cat", "bat") == 1

    def test_multiple_edits(self):
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_transposition_costs_two_without_flag(self):
        assert levenshtein_distance("bicycel", "bicycle") == 2

    def test_transposition_costs_one_with_flag(self):
        assert levenshtein_distance("bicycel", "bicycle", transpositions=True) == 1
        assert levenshtein_distance("ab", "ba", max_distance=1, transpositions=True) == 1

    def test_early_exit_returns_bound_plus_one(self):
        assert levenshtein_distance("abcdef", "uvwxyz", max_distance=2) == 3

    def test_length_gap_exceeding_bound(self):
        assert levenshtein_distance("ab", "abcdefgh", max_distance=3) == 4


@pytest.mark.unit
class TestPrefixDistance:
    def test_exact_prefix(self):
        assert prefix_distance("bi", "bicycle") == 0

    def test_adjacent_swap(self):
        assert prefix_distance("bicycel", "bicycle") == 1

    def test_substitution_in_prefix(self):
        assert prefix_distance("gardn", "garden") == 1

    def test_candidate_shorter_than_query(self):
        assert prefix_distance("gardens", "garden") == 1
