"""Ranked filtering and match highlighting over log lines.

Ranking is deterministic:

1. lines containing the query as a contiguous, case-insensitive substring
2. lines containing every query character in order (non-contiguous)

Within a tier the original line order is kept. Lines matching neither tier are
dropped. The query is always literal text; ``a.b`` matches only ``a.b``.
"""

from __future__ import annotations

import re

from ..types import Chunk, LogSnapshot

CONTIGUOUS = 0
SUBSEQUENCE = 1


def _pattern(query: str) -> re.Pattern[str]:
    return re.compile(f"({re.escape(query)})", re.IGNORECASE)


def _is_subsequence(needle: str, haystack: str) -> bool:
    it = iter(haystack)
    return all(ch in it for ch in needle)


def rank(line: str, query: str) -> int | None:
    """Match tier of ``line`` for ``query``; ``None`` when it does not match."""
    if _pattern(query).search(line):
        return CONTIGUOUS
    if _is_subsequence(query.lower(), line.lower()):
        return SUBSEQUENCE
    return None


def filter_lines(lines: list[str], query: str) -> list[str]:
    """Lines matching ``query``, best tier first. Empty query returns ``lines``."""
    if not query:
        return lines
    tiers: tuple[list[str], list[str]] = ([], [])
    for line in lines:
        tier = rank(line, query)
        if tier is not None:
            tiers[tier].append(line)
    return tiers[CONTIGUOUS] + tiers[SUBSEQUENCE]


def highlight(line: str, query: str) -> list[Chunk]:
    """Split ``line`` into plain and matched chunks for rendering."""
    if not query:
        return [Chunk(line)]
    # re.split with one capture group puts the matches at odd indexes
    parts = _pattern(query).split(line)
    return [
        Chunk(part, matched=i % 2 == 1)
        for i, part in enumerate(parts)
        if part
    ]


class LogSearchIndex:
    """Holds the active query and derives the visible lines from a snapshot."""

    def __init__(self, query: str = "") -> None:
        self.query = query
        self._last_view: list[str] = []

    @property
    def active(self) -> bool:
        return bool(self.query)

    @property
    def match_count(self) -> int:
        """Number of lines in the last computed view."""
        return len(self._last_view)

    def set_query(self, query: str) -> None:
        self.query = query

    def clear(self) -> None:
        self.query = ""

    def filter(self, lines: list[str]) -> list[str]:
        self._last_view = filter_lines(lines, self.query)
        return self._last_view

    def view(self, snapshot: LogSnapshot) -> list[str]:
        return self.filter(snapshot.lines)

    def highlight(self, line: str) -> list[Chunk]:
        return highlight(line, self.query)
