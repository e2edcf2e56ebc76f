import fnmatch
from pathlib import Path

from workspace_session_mcp.models.session import ModeName, WorkspaceState
from workspace_session_mcp.tools.base import PolicyDenied


def resolve_path(state: WorkspaceState, path_str: str) -> Path:
    """
    Resolves a user-provided path against the workspace root, ensuring it stays inside.

    Args:
        state: The current WorkspaceState.
        path_str: A path relative to the root, or an absolute path under it.

    Returns:
        A canonical absolute Path.

    Raises:
        PolicyDenied: If the path escapes the workspace root after canonicalization.
    """
    path = Path(path_str).expanduser()
    target_path = path if path.is_absolute() else state.root / path
    # strict=False resolves symlinks of the existing prefix and keeps the rest
    resolved_path = target_path.resolve()
    if not resolved_path.is_relative_to(state.root):
        raise PolicyDenied(
            f"Path '{path_str}' is outside the workspace root {state.root}",
            reason="path outside workspace root",
        )
    return resolved_path


def relative_to_root(state: WorkspaceState, path: Path) -> str:
    try:
        return path.relative_to(state.root).as_posix()
    except ValueError:
        return str(path)


def _glob_matches(state: WorkspaceState, path: Path, pattern: str) -> bool:
    pattern_path = Path(pattern).expanduser()
    if pattern_path.is_absolute():
        return fnmatch.fnmatch(path.as_posix(), pattern_path.as_posix())
    return fnmatch.fnmatch(relative_to_root(state, path), pattern)


def admit_glob(
    state: WorkspaceState,
    path: Path,
    for_write: bool,
    readonly_allows_writes: bool = False,
) -> bool:
    """Whether the mode admits reading or writing the resolved path."""
    mode = state.mode
    if not for_write:
        return True
    if mode.name == ModeName.READ_ONLY:
        return readonly_allows_writes
    if mode.name == ModeName.RESTRICTED and mode.allowed_globs != "all":
        return any(_glob_matches(state, path, g) for g in mode.allowed_globs)
    return True
