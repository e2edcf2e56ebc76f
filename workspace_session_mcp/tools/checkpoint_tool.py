import logging
from typing_extensions import override

from workspace_session_mcp.engine.workspace import WorkspaceSession
from workspace_session_mcp.tools.base import (
    InvalidArguments,
    ToolCallArguments,
    ToolExecResult,
    ToolParameter,
)
from workspace_session_mcp.tools.base_workspace_tool import WorkspaceTool

logger = logging.getLogger(__name__)

CheckpointOperations = ["create", "restore", "list", "delete"]


class CheckpointTool(WorkspaceTool):
    """Creates, lists, restores and deletes checkpoints of workspace files."""

    @override
    def get_name(self) -> str:
        return "checkpoint"

    @override
    def get_description(self) -> str:
        return """Manage checkpoints of workspace files.
* Every edit already creates a checkpoint holding the file before and after the change.
* `create` snapshots `paths` (default: every file read or written so far) under `description`.
* `restore` writes back the content recorded before the checkpoint. Restored files must be read again before editing.
* `list` shows the checkpoints in order. `delete` removes the most recent one only.
"""

    @override
    def get_parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="operation",
                type="string",
                description=f"Allowed options are: {', '.join(CheckpointOperations)}.",
                enum=CheckpointOperations,
            ),
            ToolParameter(
                name="description",
                type="string",
                description="Required for `create`.",
                required=False,
            ),
            ToolParameter(
                name="paths",
                type="array",
                description="Files to snapshot with `create`.",
                items={"type": "string"},
                required=False,
            ),
            ToolParameter(
                name="checkpoint_id",
                type="string",
                description="Required for `restore` and `delete`.",
                required=False,
            ),
        ]

    @override
    async def _execute_operation(
        self, arguments: ToolCallArguments, session: WorkspaceSession
    ) -> ToolExecResult:
        operation = arguments.get("operation")
        match operation:
            case "create":
                checkpoint_id = await session.create_checkpoint(
                    self._require(arguments, "description"), self._optional_list(arguments, "paths")
                )
                return ToolExecResult(output=f"Created checkpoint {checkpoint_id}")
            case "restore":
                restored = await session.restore_checkpoint(self._require(arguments, "checkpoint_id"))
                files = "\n".join(f"- {p}" for p in restored) or "(no files)"
                return ToolExecResult(
                    output=f"Restored {len(restored)} files:\n{files}\nRead them again before editing."
                )
            case "list":
                checkpoints = session.list_checkpoints()
                if not checkpoints:
                    return ToolExecResult(output="No checkpoints.")
                lines = [
                    f"{c.sequence}. {c.id}  {c.timestamp:%Y-%m-%d %H:%M:%S}  {c.description}"
                    f"  [{', '.join(ch.relative_path for ch in c.changes)}]"
                    for c in checkpoints
                ]
                return ToolExecResult(output="\n".join(lines))
            case "delete":
                checkpoint_id = self._require(arguments, "checkpoint_id")
                session.delete_checkpoint(checkpoint_id)
                return ToolExecResult(output=f"Deleted checkpoint {checkpoint_id}")
            case _:
                raise InvalidArguments(
                    f"Unrecognized operation {operation}. Allowed options are: {', '.join(CheckpointOperations)}"
                )
