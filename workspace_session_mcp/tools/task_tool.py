import logging
from typing_extensions import override

from workspace_session_mcp.engine.workspace import WorkspaceSession
from workspace_session_mcp.models.task import TaskStatus
from workspace_session_mcp.tools.base import (
    InvalidArguments,
    ToolCallArguments,
    ToolExecResult,
    ToolParameter,
)
from workspace_session_mcp.tools.base_workspace_tool import WorkspaceTool

logger = logging.getLogger(__name__)

TaskOperations = ["save", "list", "load", "describe", "delete"]
TaskStatuses = [s.value for s in TaskStatus]


class TaskTool(WorkspaceTool):
    """Saves the session as a resumable task and manages saved tasks."""

    @override
    def get_name(self) -> str:
        return "task"

    @override
    def get_description(self) -> str:
        return """Save and resume work across sessions.
* `save` stores the workspace root, mode and the record of files read, under the current task id (a new one the first time).
* `load` resumes a task. Files that changed on disk since the save must be read again before editing.
* `list` shows saved tasks, `describe` renders one as markdown, `delete` removes one.
"""

    @override
    def get_parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="operation",
                type="string",
                description=f"Allowed options are: {', '.join(TaskOperations)}.",
                enum=TaskOperations,
            ),
            ToolParameter(
                name="task_id",
                type="string",
                description="Required for `load`, `describe` and `delete`.",
                required=False,
            ),
            ToolParameter(
                name="description",
                type="string",
                description="What the task is about, for `save`.",
                required=False,
            ),
            ToolParameter(
                name="relevant_files",
                type="array",
                description="Files worth re-reading on resume, for `save`.",
                items={"type": "string"},
                required=False,
            ),
            ToolParameter(
                name="status",
                type="string",
                description="New task status, for `save`.",
                enum=TaskStatuses,
                required=False,
            ),
        ]

    @override
    async def _execute_operation(
        self, arguments: ToolCallArguments, session: WorkspaceSession
    ) -> ToolExecResult:
        operation = arguments.get("operation")
        match operation:
            case "save":
                status = arguments.get("status")
                if status is not None and status not in TaskStatuses:
                    raise InvalidArguments(
                        f"Invalid status {status}. Allowed options are: {', '.join(TaskStatuses)}"
                    )
                task = session.save_task(
                    description=arguments.get("description"),
                    relevant_files=self._optional_list(arguments, "relevant_files"),
                    status=TaskStatus(status) if status else None,
                )
                return ToolExecResult(output=f"Saved task {task.id} ({task.status.value})")
            case "list":
                tasks = session.list_tasks()
                if not tasks:
                    return ToolExecResult(output="No saved tasks.")
                lines = [
                    f"{t.id}  [{t.status.value}]  {t.updated_at:%Y-%m-%d %H:%M:%S}  "
                    f"{t.workspace_root}  {t.description.splitlines()[0] if t.description else ''}"
                    for t in tasks
                ]
                return ToolExecResult(output="\n".join(lines))
            case "load":
                output = await session.load_task(self._require(arguments, "task_id"))
                return ToolExecResult(output=output)
            case "describe":
                return ToolExecResult(output=session.describe_task(self._require(arguments, "task_id")))
            case "delete":
                task_id = self._require(arguments, "task_id")
                session.delete_task(task_id)
                return ToolExecResult(output=f"Deleted task {task_id}")
            case _:
                raise InvalidArguments(
                    f"Unrecognized operation {operation}. Allowed options are: {', '.join(TaskOperations)}"
                )
