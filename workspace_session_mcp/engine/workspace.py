"""The workspace session: one root, one mode, and the engine components bound to them."""

import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from workspace_session_mcp.engine.checkpoints import CheckpointStore
from workspace_session_mcp.engine.edit_pipeline import EditPipeline, SymbolBridge
from workspace_session_mcp.engine.knowledge import FileKnowledgeTracker
from workspace_session_mcp.engine.locks import FileLockRegistry
from workspace_session_mcp.engine.memos import MemoStore
from workspace_session_mcp.engine.tasks import TaskStore
from workspace_session_mcp.engine.terminal import TerminalSessionManager
from workspace_session_mcp.models.checkpoint import Checkpoint, FileChange
from workspace_session_mcp.models.edits import (
    EditReport,
    EditRequest,
    FullReplace,
    SearchReplaceBlocks,
)
from workspace_session_mcp.models.memo import Memo
from workspace_session_mcp.models.session import InitType, Mode, WorkspaceState
from workspace_session_mcp.models.task import TaskRecord, TaskStatus, format_task_description
from workspace_session_mcp.models.terminal import (
    BashAction,
    Command,
    ListBackground,
    SendAscii,
    SendSpecials,
    SendText,
    StartBackground,
    StatusCheck,
)
from workspace_session_mcp.prompts import mode_instructions
from workspace_session_mcp.tools.base import (
    CommandDenied,
    DangerousCommand,
    InvalidArguments,
    IoError,
    NotFound,
    PartialRestore,
    ToolError,
)
from workspace_session_mcp.tools.utils.command_policy import (
    DangerLevel,
    admit_command,
    classify_command,
    is_interactive_command,
)
from workspace_session_mcp.tools.utils.constants import FULL_REPLACE_PERCENTAGE, MARKER_SNIFF_LINES
from workspace_session_mcp.tools.utils.file_utils import read_text, split_lines, split_path_range
from workspace_session_mcp.tools.utils.search_replace import has_search_replace_markers
from workspace_session_mcp.tools.utils.workspace_summary import describe_workspace
from workspace_session_mcp.utils.config import ServiceConfig
from workspace_session_mcp.utils.path_utils import relative_to_root, resolve_path

logger = logging.getLogger(__name__)

MemoScope = Literal["workspace", "user"]


def number_lines(content: str, init_line: int = 1) -> str:
    """Prefix every line with its number, ``cat -n`` style."""
    return "".join(
        f"{i + init_line:6}\t{line}" for i, line in enumerate(split_lines(content))
    )


@dataclass(frozen=True)
class FileSlice:
    """Lines first..last of a file as returned to the caller."""

    path: str
    content: str
    first: int
    last: int
    total: int
    clipped: bool = False

    def continuation_note(self) -> str:
        return (
            f"[Output limit reached: showing lines {self.first}-{self.last} of {self.total}. "
            f"Only these lines count as read; continue with `{self.path}:{self.last + 1}-`]"
        )


class WorkspaceSession:
    """
    Facade over the engine for one orchestrator session.

    Holds the workspace state and the components bound to its root: the
    knowledge tracker, the checkpoint store, the workspace memos and the edit
    pipeline. The lock registry and the terminal manager are shared handles
    passed in by the caller.
    """

    def __init__(
        self,
        config: ServiceConfig,
        locks: FileLockRegistry | None = None,
        terminals: TerminalSessionManager | None = None,
        symbol_bridge: SymbolBridge | None = None,
    ):
        self.config = config
        self.locks = locks or FileLockRegistry(config.WSMCP_LOCK_TIMEOUT, config.WSMCP_LOCK_COOLDOWN)
        self.terminals = terminals or TerminalSessionManager(
            shell=config.WSMCP_SHELL,
            tail_chars=config.WSMCP_OUTPUT_TAIL_CHARS,
            command_timeout=config.WSMCP_COMMAND_TIMEOUT,
            settle=config.WSMCP_INTERACTIVE_SETTLE,
        )
        self.symbol_bridge = symbol_bridge
        self.tasks = TaskStore(config.tasks_dir)
        self.memories = MemoStore(config.memories_dir)

        self.state: WorkspaceState | None = None
        self.knowledge = FileKnowledgeTracker(config.WSMCP_READ_THRESHOLD)
        self.checkpoints: CheckpointStore | None = None
        self.memos: MemoStore | None = None
        self.pipeline: EditPipeline | None = None

    # --- setup -------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self.state is not None

    def require_state(self) -> WorkspaceState:
        if self.state is None:
            raise InvalidArguments("The workspace is not initialized. Call initialize first.")
        return self.state

    def _bind_root(self, root: Path, mode: Mode) -> None:
        root = root.expanduser()
        if not root.is_dir():
            raise IoError(f"Workspace root {root} does not exist or is not a directory")
        self.state = WorkspaceState(root=root, mode=mode)
        hidden = self.state.root / self.config.WSMCP_HIDDEN_DIR
        self.knowledge = FileKnowledgeTracker(self.config.WSMCP_READ_THRESHOLD)
        self.checkpoints = CheckpointStore(self.state.root, hidden / "checkpoints")
        self.memos = MemoStore(hidden / "memos")
        self.pipeline = EditPipeline(
            self.state,
            self.knowledge,
            self.locks,
            self.checkpoints,
            large_file_bytes=self.config.WSMCP_LARGE_FILE_BYTES,
            fuzzy_threshold=self.config.WSMCP_FUZZY_THRESHOLD,
            readonly_allows_writes=self.config.WSMCP_READONLY_ALLOWS_WRITES,
            symbol_bridge=self.symbol_bridge,
        )
        logger.info(f"Workspace bound to {self.state.root} ({mode.describe()})")

    async def _close_terminal(self) -> None:
        if self.state is None or self.state.terminal_session_id is None:
            return
        session_id = self.state.terminal_session_id
        self.state.terminal_session_id = None
        if session_id in self.terminals.session_ids():
            await self.terminals.close(session_id)

    async def initialize(
        self,
        root: Path | None = None,
        mode: Mode | None = None,
        init_type: InitType = "first_call",
        task_id: str | None = None,
        initial_files: list[str] | None = None,
    ) -> str:
        """Set up or adjust the workspace and describe the result."""
        logger.debug(f"initialize type={init_type} root={root} task={task_id}")
        task: TaskRecord | None = None
        if task_id:
            task = self.tasks.load(task_id)

        if init_type == "user_asked_mode_change" and self.state is not None and task is None:
            self.change_mode(mode or self.state.mode)
        elif init_type == "reset_shell" and self.state is not None and task is None:
            if mode is not None:
                self.change_mode(mode)
            await self._close_terminal()
        else:
            await self._close_terminal()
            if task is not None:
                self._bind_root(Path(task.workspace_root), mode or task.mode)
                self._resume(task)
            else:
                self._bind_root(root or self.config.default_workspace(), mode or Mode.unrestricted())

        state = self.require_state()
        lines = [
            f"Workspace: {state.root}",
            f"Mode: {state.mode.describe()}",
        ]
        lines.append(mode_instructions(state.mode).rstrip())
        lines += ["", describe_workspace(state.root)]
        if state.task_id:
            lines.append(f"Task: {state.task_id}")
        if task is not None:
            lines += ["", format_task_description(task)]
        if initial_files:
            for path, content in await self.read_files(initial_files):
                lines += ["", f"{path}", "```", content.rstrip("\n"), "```"]
        return "\n".join(lines)

    def _resume(self, task: TaskRecord) -> None:
        state = self.require_state()
        state.task_id = task.id
        self.knowledge.load_snapshot(
            {p: k for p, k in task.file_knowledge.items() if Path(p).is_relative_to(state.root)}
        )
        # Files changed on disk since the save must be read again before editing
        for path in self.knowledge.tracked_paths():
            self.knowledge.refresh(path, clear_modified=False)
        if task.status != TaskStatus.ACTIVE:
            task.resume()
            self.tasks.save(task)
        logger.info(f"Resumed task {task.id} with {len(task.file_knowledge)} tracked files")

    def change_mode(self, mode: Mode) -> None:
        state = self.require_state()
        state.mode = mode
        logger.info(f"Mode changed to {mode.describe()}")

    async def close(self) -> None:
        await self._close_terminal()

    # --- files -------------------------------------------------------------

    async def read_slice(self, path_str: str, start: int | None = None, end: int | None = None) -> FileSlice:
        """Read lines start..end, capped at WSMCP_READ_MAX_CHARS on a line boundary.

        Only the lines returned are recorded as observed.
        """
        state = self.require_state()
        if end is not None and end < (start or 1):
            raise InvalidArguments(
                f"Invalid line range {start or 1}-{end} for {path_str}: the end is before the start"
            )
        path = resolve_path(state, path_str)
        rel_path = relative_to_root(state, path)
        if path.is_dir():
            raise InvalidArguments(f"{rel_path} is a directory")
        if not path.is_file():
            raise NotFound(f"{rel_path} does not exist")

        async with self.locks.reading(path):
            lines = split_lines(read_text(path))
            total = len(lines)
            first = max(1, start or 1)
            last = total if end is None else min(end, total)
            if total and first > total:
                raise InvalidArguments(f"Line {first} is past the end of {rel_path} ({total} lines)")
            selected = lines[first - 1 : last]
            clipped = False
            size = 0
            for count, line in enumerate(selected):
                size += len(line)
                # The first line is always returned whole
                if count and size > self.config.WSMCP_READ_MAX_CHARS:
                    selected = selected[:count]
                    clipped = True
                    break
            if total == 0:
                self.knowledge.observe(path)
            elif selected:
                last = first + len(selected) - 1
                self.knowledge.observe(path, first, last)

        return FileSlice(rel_path, "".join(selected), first, last, total, clipped)

    async def read_file(
        self, path_str: str, start: int | None = None, end: int | None = None, line_numbers: bool = False
    ) -> tuple[str, str]:
        file_slice = await self.read_slice(path_str, start, end)
        content = file_slice.content
        if line_numbers:
            content = number_lines(content, file_slice.first)
        if file_slice.clipped:
            content += file_slice.continuation_note() + "\n"
        return file_slice.path, content

    async def read_files(self, paths: list[str], line_numbers: bool = False) -> list[tuple[str, str]]:
        """Read each path; failures become ``(path, "ERROR: ...")`` entries."""
        results = []
        for entry in paths:
            path_str, start, end = split_path_range(entry)
            try:
                results.append(await self.read_file(path_str, start, end, line_numbers))
            except ToolError as e:
                logger.debug(f"Failed to read {entry}: {e}")
                results.append((entry, f"ERROR: {e}"))
        return results

    async def edit(self, request: EditRequest) -> EditReport:
        self.require_state()
        return await self.pipeline.apply(request)

    async def write_or_edit(
        self, path: str, percentage_to_change: float, text: str, description: str | None = None
    ) -> EditReport:
        """Pick the edit shape from the text: blocks when it carries markers, else full content."""
        state = self.require_state()
        head = "".join(text.splitlines(keepends=True)[:MARKER_SNIFF_LINES])
        if has_search_replace_markers(head):
            operation = SearchReplaceBlocks(text=text)
        elif percentage_to_change > FULL_REPLACE_PERCENTAGE or not resolve_path(state, path).exists():
            operation = FullReplace(content=text)
        else:
            raise InvalidArguments(
                f"Changing {percentage_to_change:g}% of an existing file needs search/replace "
                "blocks (<<<<<<< SEARCH / ======= / >>>>>>> REPLACE). "
                f"Send the full content only when changing more than {FULL_REPLACE_PERCENTAGE}%."
            )
        return await self.edit(EditRequest(path=path, operation=operation, description=description))

    # --- terminal ----------------------------------------------------------

    async def _terminal_id(self) -> str:
        state = self.require_state()
        if state.terminal_session_id is None or state.terminal_session_id not in self.terminals.session_ids():
            state.terminal_session_id = await self.terminals.create(state.root)
        return state.terminal_session_id

    def _admit_command(self, command: str) -> str:
        """Refuse dangerous or disallowed commands; return any warning to prefix."""
        state = self.require_state()
        classification = classify_command(command)
        if classification.level == DangerLevel.DANGEROUS:
            logger.warning(f"Refused dangerous command: {command}")
            raise DangerousCommand(
                f"Command refused: {classification.reason}", reason=classification.reason
            )
        admitted, rejected = admit_command(command, state.mode)
        if not admitted:
            raise CommandDenied(
                f"Command '{rejected}' is not allowed in {state.mode.describe()} mode",
                reason=f"'{rejected}' is not an allowed command",
            )
        if classification.level == DangerLevel.WARNING:
            return f"WARNING: {classification.reason}\n"
        return ""

    async def bash(self, action: BashAction, wait: float | None = None) -> str:
        state = self.require_state()
        warning = ""
        match action:
            case Command(command=command):
                warning = self._admit_command(command)
                session_id = await self._terminal_id()
                output = await self.terminals.execute(
                    session_id, command, timeout=wait, interactive=is_interactive_command(command)
                )
            case StatusCheck():
                session_id = await self._terminal_id()
                output = await self.terminals.wait(session_id, wait or 0.0)
            case SendText(send_text=text):
                session_id = await self._terminal_id()
                output = await self.terminals.send_text(session_id, text, timeout=wait)
            case SendSpecials(send_specials=keys):
                session_id = await self._terminal_id()
                output = await self.terminals.send_special_keys(session_id, keys, timeout=wait)
            case SendAscii(send_ascii=codes):
                session_id = await self._terminal_id()
                output = await self.terminals.send_ascii(session_id, codes, timeout=wait)
            case StartBackground(start_background=command):
                warning = self._admit_command(command)
                session_id = await self._terminal_id()
                job_id = await self.terminals.start_background(session_id, command)
                state.background_jobs.append(job_id)
                output = f"Started background job {job_id}\n"
            case ListBackground():
                session_id = await self._terminal_id()
                jobs = await self.list_background()
                output = "Background jobs still running:\n" + "\n".join(jobs) if jobs else "No background jobs running."

        status = self.terminals.status(session_id)
        state.last_exit_code = status.last_exit_code
        return f"{warning}{output.rstrip()}\n\n---\n\n{status.render()}"

    async def list_background(self) -> list[str]:
        """Background jobs started from this workspace that are still alive."""
        state = self.require_state()
        alive = set(await self.terminals.multiplexer.list_alive())
        state.background_jobs = [j for j in state.background_jobs if j in alive]
        return list(state.background_jobs)

    # --- checkpoints -------------------------------------------------------

    async def create_checkpoint(self, description: str, paths: list[str] | None = None) -> str:
        """Snapshot files so they can be restored later (default: every tracked file)."""
        state = self.require_state()
        if paths is None:
            targets = [p for p in self.knowledge.tracked_paths() if p.is_file()]
        else:
            targets = [resolve_path(state, p) for p in paths]
        changes = []
        for path in targets:
            async with self.locks.reading(path):
                content = read_text(path)
            changes.append(
                FileChange(
                    relative_path=relative_to_root(state, path),
                    content_before=content,
                    content_after=content,
                )
            )
        return self.checkpoints.create(description, changes)

    async def restore_checkpoint(self, checkpoint_id: str) -> list[str]:
        """Restore a checkpoint; every restored file must be read again before editing."""
        state = self.require_state()
        checkpoint = self.checkpoints.get(checkpoint_id)
        paths = []
        for change in checkpoint.changes:
            path = (state.root / change.relative_path).resolve()
            if path.is_relative_to(state.root) and path not in paths:
                paths.append(path)
        async with AsyncExitStack() as stack:
            for path in paths:
                await stack.enter_async_context(self.locks.writing(path))
            try:
                restored = self.checkpoints.restore(checkpoint_id)
            except PartialRestore as e:
                self._after_restore(e.restored)
                raise
            self._after_restore(restored)
        return restored

    def _after_restore(self, relative_paths: list[str]) -> None:
        state = self.require_state()
        for rel_path in relative_paths:
            path = (state.root / rel_path).resolve()
            if path.exists():
                self.knowledge.mark_modified(path)
            else:
                self.knowledge.purge(path)

    def list_checkpoints(self) -> list[Checkpoint]:
        self.require_state()
        return self.checkpoints.list_checkpoints()

    def delete_checkpoint(self, checkpoint_id: str) -> None:
        self.require_state()
        self.checkpoints.delete(checkpoint_id)

    # --- tasks -------------------------------------------------------------

    def save_task(
        self,
        description: str | None = None,
        relevant_files: list[str] | None = None,
        status: TaskStatus | None = None,
    ) -> TaskRecord:
        """Save the session as a resumable task, updating the current one if any."""
        state = self.require_state()
        task = None
        if state.task_id:
            try:
                task = self.tasks.load(state.task_id)
            except ToolError as e:
                logger.warning(f"Starting a new task record, previous one unavailable: {e}")
        if task is None:
            task = TaskRecord(workspace_root=str(state.root))
            state.task_id = task.id
        task.workspace_root = str(state.root)
        task.mode = state.mode.model_copy(deep=True)
        task.file_knowledge = self.knowledge.snapshot()
        if description is not None:
            task.description = description
        if relevant_files is not None:
            task.relevant_files = list(relevant_files)
        match status:
            case TaskStatus.COMPLETED:
                task.complete()
            case TaskStatus.PAUSED:
                task.pause()
            case TaskStatus.ACTIVE:
                task.resume()
        return self.tasks.save(task)

    async def load_task(self, task_id: str) -> str:
        return await self.initialize(task_id=task_id)

    def list_tasks(self) -> list[TaskRecord]:
        return self.tasks.list_tasks()

    def describe_task(self, task_id: str) -> str:
        return format_task_description(self.tasks.load(task_id))

    def delete_task(self, task_id: str) -> None:
        self.tasks.delete(task_id)
        if self.state is not None and self.state.task_id == task_id:
            self.state.task_id = None

    # --- memos -------------------------------------------------------------

    def _memo_store(self, scope: MemoScope) -> MemoStore:
        if scope == "user":
            return self.memories
        if scope == "workspace":
            self.require_state()
            return self.memos
        raise InvalidArguments(f"Unknown memo scope '{scope}'. Use 'workspace' or 'user'")

    def save_memo(
        self, name: str, content: str, tags: list[str] | None = None, scope: MemoScope = "workspace"
    ) -> Memo:
        return self._memo_store(scope).save(name, content, tags)

    def load_memo(self, name: str, scope: MemoScope = "workspace") -> Memo:
        return self._memo_store(scope).load(name)

    def list_memos(self, tags: list[str] | None = None, scope: MemoScope = "workspace") -> list[Memo]:
        return self._memo_store(scope).list_memos(tags)

    def delete_memo(self, name: str, scope: MemoScope = "workspace") -> None:
        self._memo_store(scope).delete(name)
