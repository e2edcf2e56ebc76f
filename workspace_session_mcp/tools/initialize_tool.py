import logging
from pathlib import Path
from typing import get_args

from typing_extensions import override

from workspace_session_mcp.engine.workspace import WorkspaceSession
from workspace_session_mcp.models.session import InitType, Mode, ModeName
from workspace_session_mcp.tools.base import InvalidArguments, ToolCallArguments, ToolExecResult, ToolParameter
from workspace_session_mcp.tools.base_workspace_tool import WorkspaceTool

logger = logging.getLogger(__name__)

INIT_TYPES: list[str] = list(get_args(InitType))
MODE_NAMES: list[str] = [m.value for m in ModeName]


def _allowed_items(value: object) -> str | list[str] | None:
    if value is None or value == "all":
        return value
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return value
    raise InvalidArguments(f"Expected \"all\" or a list of strings, got {value!r}")


def parse_mode(arguments: ToolCallArguments) -> Mode | None:
    name = arguments.get("mode_name")
    if name is None:
        return None
    allowed_globs = _allowed_items(arguments.get("allowed_globs"))
    allowed_commands = _allowed_items(arguments.get("allowed_commands"))
    try:
        return Mode.from_name(
            str(name), allowed_globs=allowed_globs, allowed_commands=allowed_commands
        )
    except ValueError as e:
        raise InvalidArguments(
            f"Unknown mode '{name}'. Allowed modes are: {', '.join(MODE_NAMES)}"
        ) from e


class InitializeTool(WorkspaceTool):
    """Sets up the workspace, changes its mode, resets the shell or resumes a task."""

    @override
    def get_name(self) -> str:
        return "initialize"

    @override
    def get_description(self) -> str:
        return """Initialize the workspace before using any other tool.
* `type=first_call` binds the workspace root and mode. Call it once at the start.
* `type=user_asked_mode_change` only changes the mode.
* `type=reset_shell` closes the terminal session; the next bash call starts a fresh shell.
* `type=user_asked_change_workspace` binds a new root and forgets what was read before.
* `task_id_to_resume` restores a saved task: root, mode and the record of files already read.
* `initial_files_to_read` are read (and count as read) right away.
"""

    @override
    def get_parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="type",
                type="string",
                description="What the call is for.",
                enum=INIT_TYPES,
            ),
            ToolParameter(
                name="any_workspace_path",
                type="string",
                description="Workspace root. Defaults to the configured workspace.",
                required=False,
            ),
            ToolParameter(
                name="initial_files_to_read",
                type="array",
                description="Files to read right away, relative to the root.",
                items={"type": "string"},
                required=False,
            ),
            ToolParameter(
                name="task_id_to_resume",
                type="string",
                description="Id of a saved task to resume.",
                required=False,
            ),
            ToolParameter(
                name="mode_name",
                type="string",
                description="Operating mode.",
                enum=MODE_NAMES,
                required=False,
            ),
            ToolParameter(
                name="allowed_globs",
                type=["string", "array"],
                description="Restricted mode: \"all\" or the globs of writable files.",
                items={"type": "string"},
                required=False,
            ),
            ToolParameter(
                name="allowed_commands",
                type=["string", "array"],
                description="Restricted mode: \"all\" or the command prefixes that may run.",
                items={"type": "string"},
                required=False,
            ),
        ]

    @override
    async def _execute_operation(
        self, arguments: ToolCallArguments, session: WorkspaceSession
    ) -> ToolExecResult:
        init_type = arguments.get("type") or "first_call"
        if init_type not in INIT_TYPES:
            raise InvalidArguments(
                f"Unknown initialize type '{init_type}'. Allowed types are: {', '.join(INIT_TYPES)}"
            )
        root = arguments.get("any_workspace_path")
        output = await session.initialize(
            root=Path(root) if root else None,
            mode=parse_mode(arguments),
            init_type=init_type,
            task_id=arguments.get("task_id_to_resume") or None,
            initial_files=self._optional_list(arguments, "initial_files_to_read"),
        )
        return ToolExecResult(output=output)
