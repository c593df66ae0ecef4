"""Tests for log filtering, ranking and highlighting."""

from __future__ import annotations

from pmc_watch.core.log_search import (
    CONTIGUOUS,
    SUBSEQUENCE,
    LogSearchIndex,
    filter_lines,
    highlight,
    rank,
)
from pmc_watch.types import Chunk, LogSnapshot


LINES = [
    "GET /health 200",
    "error: connection refused",
    "Error while reading config",
    "everything ok",
    "booting",
]


def test_empty_query_is_identity():
    assert filter_lines(LINES, "") == LINES


def test_contiguous_matches_rank_first():
    # "everything ok" has a single r, so it is not even a subsequence match
    assert filter_lines(LINES, "err") == [
        "error: connection refused",
        "Error while reading config",
    ]


def test_subsequence_matches_follow_contiguous_ones():
    lines = ["cfg loaded", "config loaded", "nothing here"]
    # "cfg" is contiguous in the first, a subsequence of the second
    assert filter_lines(lines, "cfg") == ["cfg loaded", "config loaded"]


def test_ties_keep_original_order():
    lines = ["b match", "a match", "c match"]
    assert filter_lines(lines, "match") == lines


def test_rank_tiers():
    assert rank("Connection refused", "REFUSED") == CONTIGUOUS
    assert rank("config", "cfg") == SUBSEQUENCE
    assert rank("abc", "xyz") is None


def test_every_contiguous_match_has_a_highlighted_chunk():
    lines = ["WEISSE STRASSE", "Straße 5", "ERROR disk full", "ǅungla"]
    for query in ["straße", "strasse", "error", "ǆ"]:
        for line in lines:
            if rank(line, query) == CONTIGUOUS:
                assert any(c.matched for c in highlight(line, query)), (line, query)
    assert rank("WEISSE STRASSE", "straße") is None


def test_query_is_literal_text():
    lines = ["a.b", "axb", "a-b"]
    assert filter_lines(lines, "a.b")[0] == "a.b"
    assert highlight("axb", "a.b") == [Chunk("axb")]


def test_highlight_splits_case_insensitively():
    assert highlight("Error: err", "err") == [
        Chunk("Err", matched=True),
        Chunk("or: "),
        Chunk("err", matched=True),
    ]


def test_highlight_concatenation_restores_line():
    line = "GET /api/users 500 user not found"
    chunks = highlight(line, "user")
    assert "".join(c.text for c in chunks) == line
    assert [c.text for c in chunks if c.matched] == ["user", "user"]


def test_highlight_without_query_is_single_chunk():
    assert highlight("plain", "") == [Chunk("plain")]


def test_highlight_regex_metacharacters():
    chunks = highlight("cost: $5 (approx)", "(approx)")
    assert chunks[-1] == Chunk("(approx)", matched=True)


def test_index_view_and_match_count():
    index = LogSearchIndex()
    snapshot = LogSnapshot(lines=LINES)
    assert index.view(snapshot) == LINES
    assert not index.active

    index.set_query("boot")
    assert index.active
    assert index.view(snapshot) == ["booting"]
    assert index.match_count == 1

    index.clear()
    assert index.query == ""
    assert index.view(snapshot) == LINES
