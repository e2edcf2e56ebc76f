"""Applies edit requests under the read-before-write rules and checkpoints them."""

import logging
from pathlib import Path
from typing import Protocol

from workspace_session_mcp.engine.checkpoints import CheckpointStore
from workspace_session_mcp.engine.knowledge import FileKnowledgeTracker
from workspace_session_mcp.engine.locks import FileLockRegistry
from workspace_session_mcp.models.checkpoint import FileChange
from workspace_session_mcp.models.edits import (
    DeleteLines,
    EditReport,
    EditRequest,
    FullReplace,
    InsertAtLine,
    SearchReplaceBlocks,
    SymbolicEdit,
)
from workspace_session_mcp.models.session import WorkspaceState
from workspace_session_mcp.tools.base import (
    InvalidArguments,
    NotFound,
    PolicyDenied,
    StaleOrUnread,
    Unsupported,
    UnsupportedLargeFile,
)
from workspace_session_mcp.tools.utils.file_utils import (
    atomic_write,
    count_file_lines,
    count_lines,
    hash_bytes,
    hash_file,
    read_text,
    split_lines,
)
from workspace_session_mcp.tools.utils.large_file import LineEdit, stream_edit
from workspace_session_mcp.tools.utils.search_replace import (
    apply_search_replace_blocks,
    parse_search_replace_blocks,
)
from workspace_session_mcp.utils.path_utils import admit_glob, relative_to_root, resolve_path

logger = logging.getLogger(__name__)


class SymbolBridge(Protocol):
    """Structure-aware editing backend, e.g. a language server client."""

    async def apply(self, path: Path, content: str, edit: SymbolicEdit) -> str:
        """Return the new file content after applying ``edit``."""
        ...


def insert_after_line(content: str, line: int, text: str) -> str:
    """Insert ``text`` after line ``line`` (0 inserts at the top)."""
    lines = split_lines(content)
    if line < 0 or line > len(lines):
        raise InvalidArguments(
            f"Invalid line {line}: it should be within the range of lines of the file: [0, {len(lines)}]"
        )
    new_lines = split_lines(text)
    if new_lines and not new_lines[-1].endswith("\n") and line < len(lines):
        new_lines[-1] += "\n"
    if line == len(lines) and lines and not lines[-1].endswith("\n") and new_lines:
        lines[-1] += "\n"
    return "".join(lines[:line] + new_lines + lines[line:])


def delete_line_range(content: str, start: int, end: int) -> str:
    lines = split_lines(content)
    if start < 1 or end < start or end > len(lines):
        raise InvalidArguments(
            f"Invalid line range {start}-{end}: the file has {len(lines)} lines"
        )
    return "".join(lines[: start - 1] + lines[end:])


class EditPipeline:
    """
    Whole-file, block, line and symbolic edits against one workspace.

    Each apply runs under the path's write lock: admission, the knowledge gate,
    the write itself, the knowledge update and the checkpoint happen in that
    order and nothing else touches the path in between.
    """

    def __init__(
        self,
        state: WorkspaceState,
        knowledge: FileKnowledgeTracker,
        locks: FileLockRegistry,
        checkpoints: CheckpointStore,
        large_file_bytes: int = 4 * 1024 * 1024,
        fuzzy_threshold: float = 50.0,
        readonly_allows_writes: bool = False,
        symbol_bridge: SymbolBridge | None = None,
    ):
        self.state = state
        self.knowledge = knowledge
        self.locks = locks
        self.checkpoints = checkpoints
        self.large_file_bytes = large_file_bytes
        self.fuzzy_threshold = fuzzy_threshold
        self.readonly_allows_writes = readonly_allows_writes
        self.symbol_bridge = symbol_bridge

    def _admit(self, path_str: str) -> Path:
        path = resolve_path(self.state, path_str)
        if not admit_glob(self.state, path, for_write=True, readonly_allows_writes=self.readonly_allows_writes):
            raise PolicyDenied(
                f"Writing {relative_to_root(self.state, path)} is not allowed in "
                f"{self.state.mode.describe()} mode",
                reason="path not admitted by mode",
            )
        if path.is_dir():
            raise InvalidArguments(f"{relative_to_root(self.state, path)} is a directory")
        return path

    def _check_knowledge(self, path: Path) -> None:
        if self.knowledge.may_write(path):
            return
        unread = self.knowledge.unread_ranges(path)
        rel_path = relative_to_root(self.state, path)
        knowledge = self.knowledge.get(path)
        if knowledge is not None and knowledge.modified:
            message = f"{rel_path} changed since it was last read. Read it again before editing."
        else:
            ranges = ", ".join(f"{s}-{e}" for s, e in unread) or "none"
            message = (
                f"{rel_path} has not been read enough to edit it. "
                f"Read these line ranges first: {ranges}"
            )
        raise StaleOrUnread(message, unread_ranges=unread)

    async def apply(self, request: EditRequest) -> EditReport:
        path = self._admit(request.path)
        rel_path = relative_to_root(self.state, path)
        operation = request.operation
        logger.debug(f"Applying {operation.kind} to {rel_path}")

        async with self.locks.writing(path):
            self._check_knowledge(path)
            existed = path.is_file()
            if not existed and not isinstance(operation, FullReplace):
                raise NotFound(f"The path {rel_path} does not exist")

            if existed and path.stat().st_size > self.large_file_bytes:
                return await self._apply_large(path, rel_path, request)

            before = read_text(path) if existed else ""
            warnings: list[str] = []
            match operation:
                case FullReplace(content=content):
                    after = content
                case SearchReplaceBlocks(text=text, fuzzy_threshold=threshold):
                    blocks = parse_search_replace_blocks(text)
                    after, warnings = apply_search_replace_blocks(
                        before, blocks, self.fuzzy_threshold if threshold is None else threshold
                    )
                case InsertAtLine(line=line, content=content):
                    after = insert_after_line(before, line, content)
                case DeleteLines(start=start, end=end):
                    after = delete_line_range(before, start, end)
                case SymbolicEdit():
                    if self.symbol_bridge is None:
                        raise Unsupported(
                            "Symbolic edits need a language server bridge, which is not configured"
                        )
                    after = await self.symbol_bridge.apply(path, before, operation)

            unchanged = existed and after == before
            written = 0
            if unchanged:
                logger.debug(f"{rel_path} content unchanged; skipping write")
            else:
                written = atomic_write(path, after)
            self.knowledge.record_write(path, hash_bytes(after.encode("utf-8")), count_lines(after))

            change = FileChange(
                relative_path=rel_path,
                content_before=before,
                content_after=after,
                existed_before=existed,
            )
            checkpoint_id = self.checkpoints.create(
                request.description or f"{operation.kind} {rel_path}", [change]
            )

        logger.info(f"Edited {rel_path} ({operation.kind}, {written} bytes)")
        return EditReport(
            path=rel_path,
            written_bytes=written,
            warnings=warnings,
            checkpoint_id=checkpoint_id,
            unchanged=unchanged,
        )

    async def _apply_large(self, path: Path, rel_path: str, request: EditRequest) -> EditReport:
        operation = request.operation
        match operation:
            case FullReplace():
                edits = None
            case InsertAtLine(line=line, content=content):
                new_lines = split_lines(content)
                if new_lines and not new_lines[-1].endswith("\n") and line < count_file_lines(path):
                    new_lines[-1] += "\n"
                edits = [LineEdit(start=line + 1, end=line, new_lines=tuple(new_lines))]
            case DeleteLines(start=start, end=end):
                edits = [LineEdit(start=start, end=end)]
            case _:
                raise UnsupportedLargeFile(
                    f"{rel_path} is larger than {self.large_file_bytes} bytes; "
                    f"{operation.kind} edits cannot be streamed. "
                    "Use full replace, insert or delete lines instead."
                )

        before = read_text(path)
        if edits is None:
            written = atomic_write(path, operation.content)
        else:
            written = stream_edit(path, edits)
        after = read_text(path)
        self.knowledge.record_write(path, hash_file(path), count_file_lines(path))
        checkpoint_id = self.checkpoints.create(
            request.description or f"{operation.kind} {rel_path}",
            [FileChange(relative_path=rel_path, content_before=before, content_after=after)],
        )
        logger.info(f"Edited large file {rel_path} ({operation.kind}, {written} bytes)")
        return EditReport(path=rel_path, written_bytes=written, checkpoint_id=checkpoint_id)
