"""Parsing and application of SEARCH/REPLACE edit blocks."""

import logging
import re
from dataclasses import dataclass, field

from workspace_session_mcp.tools.base import InvalidArguments, MatchFailure
from workspace_session_mcp.tools.utils.constants import MARKER_SNIFF_LINES
from workspace_session_mcp.tools.utils.fuzzy_search import MatchKind, find_best_match

logger = logging.getLogger(__name__)

SEARCH_RE = re.compile(r"^<{7,}\s*SEARCH\s*$")
DIVIDER_RE = re.compile(r"^={7,}\s*$")
REPLACE_RE = re.compile(r"^>{7,}\s*REPLACE\s*$")


@dataclass
class SearchReplaceBlock:
    search_lines: list[str]
    replace_lines: list[str] = field(default_factory=list)
    line: int = 0


def has_search_replace_markers(text: str) -> bool:
    """Whether the first lines of the text open a SEARCH block."""
    head = text.lstrip("\n").split("\n", MARKER_SNIFF_LINES)[:MARKER_SNIFF_LINES]
    return any(SEARCH_RE.match(line.rstrip("\r")) for line in head)


def parse_search_replace_blocks(text: str) -> list[SearchReplaceBlock]:
    blocks: list[SearchReplaceBlock] = []
    current: SearchReplaceBlock | None = None
    in_replace = False

    for number, raw in enumerate(text.split("\n"), start=1):
        line = raw.rstrip("\r")
        is_search = bool(SEARCH_RE.match(line))
        is_divider = bool(DIVIDER_RE.match(line))
        is_replace = bool(REPLACE_RE.match(line))

        if current is None:
            if is_search:
                current = SearchReplaceBlock(search_lines=[], line=number)
                in_replace = False
            elif is_divider or is_replace:
                raise InvalidArguments(f"Line {number}: Unexpected marker outside a block")
            continue

        if not in_replace:
            if is_divider:
                if not any(l.strip() for l in current.search_lines):
                    raise InvalidArguments(f"Line {number}: SEARCH block cannot be empty")
                in_replace = True
            elif is_search or is_replace:
                raise InvalidArguments(f"Line {number}: Unexpected marker in SEARCH block")
            else:
                current.search_lines.append(line)
            continue

        if is_replace:
            blocks.append(current)
            current = None
        elif is_search or is_divider:
            raise InvalidArguments(f"Line {number}: Unexpected marker in REPLACE block")
        else:
            current.replace_lines.append(line)

    if current is not None:
        if in_replace:
            raise InvalidArguments("Unclosed block - missing REPLACE marker")
        raise InvalidArguments("Unclosed SEARCH block - missing ======= marker")
    if not blocks:
        raise InvalidArguments("No valid search/replace blocks found")
    return blocks


def _leading_ws(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def apply_indentation_pattern(source_lines: list[str], target_lines: list[str]) -> list[str]:
    """Re-indent target lines using the indentation pattern of the matched source.

    The relative indentation of source line i is applied to target line
    i modulo the number of target lines; target lines with no counterpart keep
    their own indentation relative to the first target line.
    """
    if not source_lines or not target_lines:
        return target_lines
    base = _leading_ws(source_lines[0])
    pattern: dict[int, int] = {}
    for i, line in enumerate(source_lines):
        if line.strip():
            pattern.setdefault(i % len(target_lines), len(_leading_ws(line)) - len(base))

    target_base = len(_leading_ws(target_lines[0]))
    result = []
    for i, line in enumerate(target_lines):
        if not line.strip():
            result.append(line)
            continue
        relative = pattern.get(i, len(_leading_ws(line)) - target_base)
        if relative >= 0:
            indent = base + " " * relative
        else:
            indent = base[: max(0, len(base) + relative)]
        result.append(indent + line.lstrip())
    return result


def _expand_to_lines(content: str, start: int, end: int) -> tuple[int, int]:
    start = content.rfind("\n", 0, start) + 1
    if end > 0 and content[end - 1] == "\n":
        return start, end
    nl = content.find("\n", end)
    return start, len(content) if nl < 0 else nl + 1


def _covers_whole_lines(content: str, start: int, end: int, block: SearchReplaceBlock) -> bool:
    """Whether a multi-line match spans complete lines, so it can be re-indented."""
    if len(block.search_lines) < 2:
        return False
    line_start = content.rfind("\n", 0, start) + 1
    line_end = content.find("\n", end)
    tail = content[end:] if line_end < 0 else content[end:line_end]
    return not content[line_start:start].strip() and not tail.strip()


def apply_search_replace_blocks(
    content: str, blocks: list[SearchReplaceBlock], threshold: float
) -> tuple[str, list[str]]:
    """Apply blocks in order; each block sees the result of the previous ones.

    Returns the new content and the warnings for non-exact matches.
    """
    newline = "\r\n" if "\r\n" in content else "\n"
    warnings: list[str] = []

    for number, block in enumerate(blocks, start=1):
        search = newline.join(block.search_lines)
        replace = newline.join(block.replace_lines)
        result = find_best_match(content, search, threshold)
        match = result.match
        if match is None:
            raise MatchFailure(
                f"Block {number} (line {block.line}): no match found above "
                f"{threshold:.0f}% similarity. Best score seen: {result.best_score:.1f}%. "
                f"Search text:\n{search}",
                best_score=result.best_score,
            )

        if match.kind == MatchKind.EXACT:
            start, end = match.start, match.end
            # Deleting whole lines also removes their line break
            if (
                not block.replace_lines
                and (start == 0 or content[start - 1] == "\n")
                and content.startswith(newline, end)
            ):
                end += len(newline)
            content = content[:start] + replace + content[end:]
            continue

        if match.kind == MatchKind.WHITESPACE and not _covers_whole_lines(
            content, match.start, match.end, block
        ):
            start, end = match.start, match.end
            line_start = content.rfind("\n", 0, start) + 1
            if not content[line_start:start].strip() and search[:1].isspace():
                start = line_start
            replacement = replace
        else:
            start, end = _expand_to_lines(content, match.start, match.end)
            matched = content[start:end]
            trailing = newline if matched.endswith("\n") else ""
            source = matched[: len(matched) - len(trailing)] if trailing else matched
            new_lines = apply_indentation_pattern(source.split(newline), block.replace_lines)
            replacement = newline.join(new_lines) + trailing if new_lines else ""

        content = content[:start] + replacement + content[end:]
        warning = (
            f"Block {number}: Using {match.kind.description} ({match.score:.1f}% confidence)"
        )
        logger.debug(warning)
        warnings.append(warning)

    return content, warnings
