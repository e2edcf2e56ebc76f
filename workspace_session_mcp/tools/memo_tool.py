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

MemoOperations = ["save", "load", "list", "delete"]
MemoScopes = ["workspace", "user"]


class MemoTool(WorkspaceTool):
    """Named notes kept with the workspace or with the user."""

    @override
    def get_name(self) -> str:
        return "memo"

    @override
    def get_description(self) -> str:
        return """Keep named notes.
* `scope=workspace` (default) stores the memo in the workspace; `scope=user` keeps it for every workspace.
* `save` creates or overwrites a memo; `list` can filter by tags (memos carrying all of them).
"""

    @override
    def get_parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="operation",
                type="string",
                description=f"Allowed options are: {', '.join(MemoOperations)}.",
                enum=MemoOperations,
            ),
            ToolParameter(
                name="name",
                type="string",
                description="Memo name for `save`, `load` and `delete`: letters, digits, '.', '_' or '-'.",
                required=False,
            ),
            ToolParameter(
                name="content",
                type="string",
                description="Required for `save`.",
                required=False,
            ),
            ToolParameter(
                name="tags",
                type="array",
                description="Tags to store with `save` or to filter `list` by.",
                items={"type": "string"},
                required=False,
            ),
            ToolParameter(
                name="scope",
                type="string",
                description="Where the memo lives.",
                enum=MemoScopes,
                required=False,
            ),
        ]

    @override
    async def _execute_operation(
        self, arguments: ToolCallArguments, session: WorkspaceSession
    ) -> ToolExecResult:
        operation = arguments.get("operation")
        scope = arguments.get("scope") or "workspace"
        tags = self._optional_list(arguments, "tags")
        match operation:
            case "save":
                memo = session.save_memo(
                    self._require(arguments, "name"), self._require(arguments, "content"), tags, scope
                )
                return ToolExecResult(output=f"Saved {scope} memo '{memo.name}'")
            case "load":
                memo = session.load_memo(self._require(arguments, "name"), scope)
                header = f"# {memo.name}" + (f"  [{', '.join(memo.tags)}]" if memo.tags else "")
                return ToolExecResult(output=f"{header}\n\n{memo.content}")
            case "list":
                memos = session.list_memos(tags, scope)
                if not memos:
                    return ToolExecResult(output=f"No {scope} memos.")
                lines = [
                    f"{m.name}  {m.timestamp:%Y-%m-%d %H:%M:%S}" + (f"  [{', '.join(m.tags)}]" if m.tags else "")
                    for m in memos
                ]
                return ToolExecResult(output="\n".join(lines))
            case "delete":
                name = self._require(arguments, "name")
                session.delete_memo(name, scope)
                return ToolExecResult(output=f"Deleted {scope} memo '{name}'")
            case _:
                raise InvalidArguments(
                    f"Unrecognized operation {operation}. Allowed options are: {', '.join(MemoOperations)}"
                )
