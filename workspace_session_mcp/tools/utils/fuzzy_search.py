"""Tolerant matching of search blocks: whitespace, indentation and fuzzy matches."""

import logging
import re
from dataclasses import dataclass
from difflib import SequenceMatcher
from enum import IntEnum

logger = logging.getLogger(__name__)

WORD_CHANGES_MIN_SCORE = 75.0


class MatchKind(IntEnum):
    """Match kinds ordered by preference; a lower value ranks higher."""

    EXACT = 0
    WHITESPACE = 1
    INDENTATION = 2
    WORD_CHANGES = 3
    STRUCTURAL = 4

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    MatchKind.EXACT: "exact match",
    MatchKind.WHITESPACE: "whitespace-normalized match",
    MatchKind.INDENTATION: "indentation-normalized match",
    MatchKind.WORD_CHANGES: "fuzzy match with word changes",
    MatchKind.STRUCTURAL: "structural fuzzy match",
}


@dataclass(frozen=True)
class Match:
    kind: MatchKind
    score: float
    start: int
    end: int


@dataclass(frozen=True)
class SearchResult:
    match: Match | None
    best_score: float


_WS_RE = re.compile(r"\s+")


def _collapse_whitespace(text: str) -> tuple[str, list[int]]:
    """Collapse whitespace runs to one space, mapping each output char to its source index."""
    chars: list[str] = []
    index_map: list[int] = []
    pos = 0
    for m in _WS_RE.finditer(text):
        for i in range(pos, m.start()):
            chars.append(text[i])
            index_map.append(i)
        chars.append(" ")
        index_map.append(m.start())
        pos = m.end()
    for i in range(pos, len(text)):
        chars.append(text[i])
        index_map.append(i)
    return "".join(chars), index_map


def _line_offsets(lines: list[str]) -> list[int]:
    offsets = [0]
    for line in lines:
        offsets.append(offsets[-1] + len(line))
    return offsets


def find_whitespace_match(content: str, pattern: str) -> Match | None:
    needle = _WS_RE.sub(" ", pattern).strip()
    if not needle:
        return None
    haystack, index_map = _collapse_whitespace(content)
    idx = haystack.find(needle)
    if idx < 0:
        return None
    start = index_map[idx]
    end = index_map[idx + len(needle) - 1] + 1
    return Match(MatchKind.WHITESPACE, 90.0, start, end)


def find_indentation_match(content: str, pattern: str) -> Match | None:
    """Compare lines with leading whitespace removed, one paragraph at a time.

    A paragraph is a run of non-blank lines; patterns that contain blank lines
    are compared across paragraphs.
    """
    needle = [line.strip() for line in pattern.strip("\n").split("\n")]
    if not any(needle):
        return None
    lines = content.splitlines(keepends=True)
    stripped = [line.strip() for line in lines]
    offsets = _line_offsets(lines)
    n = len(needle)

    if "" in needle:
        candidates = [(0, len(lines))]
    else:
        candidates = []
        i = 0
        while i < len(lines):
            if not stripped[i]:
                i += 1
                continue
            j = i
            while j < len(lines) and stripped[j]:
                j += 1
            candidates.append((i, j))
            i = j

    for first, last in candidates:
        for i in range(first, last - n + 1):
            if stripped[i : i + n] == needle:
                return Match(MatchKind.INDENTATION, 80.0, offsets[i], offsets[i + n])
    return None


def _similarity(a: str, b: str, floor: float) -> float:
    matcher = SequenceMatcher(None, a, b, autojunk=False)
    # quick_ratio is an upper bound; skip the expensive pass when it cannot win
    if matcher.quick_ratio() * 100.0 <= floor:
        return 0.0
    return matcher.ratio() * 100.0


def find_fuzzy_match(content: str, pattern: str, threshold: float) -> SearchResult:
    """Slide a window of the pattern's line count over the content with 50% overlap.

    The best window is refined line by line around its position and with one
    line more or less, then scored by character similarity (0-100).
    """
    lines = content.splitlines(keepends=True)
    pattern = pattern.strip("\n")
    n = max(1, pattern.count("\n") + 1)
    if not lines or not pattern.strip():
        return SearchResult(None, 0.0)
    offsets = _line_offsets(lines)
    step = max(1, n // 2)

    def window(i: int, size: int) -> str:
        return "".join(lines[i : i + size]).rstrip("\n")

    best_score = 0.0
    best_pos = (0, n)
    for i in range(0, max(1, len(lines) - n + 1), step):
        score = _similarity(window(i, n), pattern, best_score)
        if score > best_score:
            best_score, best_pos = score, (i, n)

    first, _ = best_pos
    for i in range(max(0, first - step), min(len(lines), first + step + 1)):
        for size in (n - 1, n, n + 1):
            if size < 1 or i + size > len(lines):
                continue
            score = _similarity(window(i, size), pattern, best_score)
            if score > best_score:
                best_score, best_pos = score, (i, size)

    logger.debug(f"Best fuzzy window at line {best_pos[0] + 1} scored {best_score:.1f}")
    if best_score < threshold or best_score == 0.0:
        return SearchResult(None, best_score)
    i, size = best_pos
    kind = MatchKind.WORD_CHANGES if best_score > WORD_CHANGES_MIN_SCORE else MatchKind.STRUCTURAL
    return SearchResult(Match(kind, best_score, offsets[i], offsets[i + size]), best_score)


def find_best_match(content: str, pattern: str, threshold: float) -> SearchResult:
    """Try exact, whitespace, indentation and then fuzzy matching, in rank order."""
    idx = content.find(pattern)
    if idx >= 0:
        return SearchResult(Match(MatchKind.EXACT, 100.0, idx, idx + len(pattern)), 100.0)
    match = find_whitespace_match(content, pattern)
    if match is None:
        match = find_indentation_match(content, pattern)
    if match is not None:
        return SearchResult(match, match.score)
    return find_fuzzy_match(content, pattern, threshold)
