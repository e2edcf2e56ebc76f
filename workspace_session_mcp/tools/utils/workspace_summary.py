"""Directory tree and recently modified files shown when a workspace is initialized."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from workspace_session_mcp.tools.utils.constants import (
    DEFAULT_IGNORE_DIRECTORIES,
    SUMMARY_RECENT_FILES,
    SUMMARY_SCAN_LIMIT,
    SUMMARY_TREE_DEPTH,
    SUMMARY_TREE_LIMIT,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TreeItem:
    path: str
    name: str
    depth: int
    is_dir: bool


def _should_ignore(path: Path) -> bool:
    return path.name.startswith(".") or (path.name in DEFAULT_IGNORE_DIRECTORIES and path.is_dir())


def _children(path: Path) -> list[Path]:
    try:
        # Directories first, then files, each alphabetically
        return sorted(
            (child for child in path.iterdir() if not _should_ignore(child)),
            key=lambda p: (not p.is_dir(), p.name),
        )
    except OSError as e:
        logger.debug(f"Skipping {path}: {e}")
        return []


def build_tree(
    root: Path, limit: int = SUMMARY_TREE_LIMIT, max_depth: int = SUMMARY_TREE_DEPTH
) -> tuple[list[TreeItem], bool]:
    """Walk the workspace depth-first up to ``max_depth`` levels.

    Returns the items and whether the limit cut the walk short.
    """
    items: list[TreeItem] = []
    stack = [(child, 0) for child in reversed(_children(root))]
    while stack:
        current, depth = stack.pop()
        if len(items) >= limit:
            return items, True
        is_dir = current.is_dir()
        items.append(TreeItem(str(current.relative_to(root)), current.name, depth, is_dir))
        if is_dir and depth + 1 < max_depth:
            stack.extend((child, depth + 1) for child in reversed(_children(current)))
    return items, False


def format_tree(items: list[TreeItem], reached_limit: bool) -> str:
    if not items:
        return "(empty)"
    lines = [f"{'  ' * item.depth}{item.name}{'/' if item.is_dir else ''}" for item in items]
    if reached_limit:
        lines.append("... (more items not shown)")
    return "\n".join(lines)


def recent_files(root: Path, count: int = SUMMARY_RECENT_FILES, scan_limit: int = SUMMARY_SCAN_LIMIT) -> list[str]:
    """Relative paths of the most recently modified files, newest first."""
    found: list[tuple[float, str]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if not d.startswith(".") and d not in DEFAULT_IGNORE_DIRECTORIES
        )
        for name in filenames:
            if name.startswith("."):
                continue
            path = Path(dirpath) / name
            try:
                mtime = path.stat().st_mtime
            except OSError:
                continue
            found.append((mtime, str(path.relative_to(root))))
            if len(found) >= scan_limit:
                break
        if len(found) >= scan_limit:
            logger.debug(f"Stopped scanning {root} after {scan_limit} files")
            break
    found.sort(key=lambda item: (-item[0], item[1]))
    return [rel for _, rel in found[:count]]


def describe_workspace(root: Path) -> str:
    items, reached_limit = build_tree(root)
    lines = ["# Workspace structure", format_tree(items, reached_limit)]
    recent = recent_files(root)
    if recent:
        lines += ["", "# Recent files"] + [f"- {rel}" for rel in recent]
    return "\n".join(lines)
