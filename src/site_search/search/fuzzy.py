"""Edit distance for typo-tolerant suggestion matching.

Provides Levenshtein distance with an optional adjacent-transposition rule
(optimal string alignment), so "bicycel" is one edit away from "bicycle".
Both variants support early termination once the distance is guaranteed to
exceed a threshold.
"""

from __future__ import annotations


def levenshtein_distance(
    s1: str,
    s2: str,
    max_distance: int | None = None,
    *,
    transpositions: bool = False,
) -> int:
    """Calculate the edit distance between two strings.

    Uses dynamic programming for O(m*n) time complexity, with optional
    early termination when distance exceeds max_distance.

    Args:
        s1: First string.
        s2: Second string.
        max_distance: If provided, return max_distance+1 early when
            distance is guaranteed to exceed this threshold.
        transpositions: Count a swap of two adjacent characters as a
            single edit (optimal string alignment distance).

    Returns:
        The minimum number of single-character edits (insertions,
        deletions, substitutions and, when enabled, adjacent
        transpositions) needed to change s1 into s2. If max_distance is
        set and exceeded, returns max_distance+1.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
        >>> levenshtein_distance("bicycel", "bicycle")
        2
        >>> levenshtein_distance("bicycel", "bicycle", transpositions=True)
        1
    """
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    # Use shorter string as columns for space efficiency
    if len(s1) > len(s2):
        s1, s2 = s2, s1

    m, n = len(s1), len(s2)

    if max_distance is not None and n - m > max_distance:
        return max_distance + 1

    before_prev_row: list[int] | None = None
    prev_row = list(range(m + 1))
    prev_row_min = 0

    for j in range(1, n + 1):
        curr_row = [j] + [0] * m
        row_min = j
        for i in range(1, m + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            value = min(
                prev_row[i] + 1,  # deletion
                curr_row[i - 1] + 1,  # insertion
                prev_row[i - 1] + cost,  # substitution
            )
            if (
                transpositions
                and before_prev_row is not None
                and i > 1
                and s1[i - 1] == s2[j - 2]
                and s1[i - 2] == s2[j - 1]
            ):
                value = min(value, before_prev_row[i - 2] + 1)
            curr_row[i] = value
            row_min = min(row_min, value)

        # A transposition can reach back two rows, so both rows must exceed the bound.
        if max_distance is not None and row_min > max_distance:
            if not transpositions or prev_row_min > max_distance:
                return max_distance + 1

        before_prev_row, prev_row, prev_row_min = prev_row, curr_row, row_min

    return prev_row[m]


def prefix_distance(query: str, candidate: str, max_distance: int | None = None) -> int:
    """Distance between ``query`` and the equally long prefix of ``candidate``."""
    return levenshtein_distance(query, candidate[: len(query)], max_distance, transpositions=True)
