import logging
from typing_extensions import override

from workspace_session_mcp.engine.workspace import WorkspaceSession
from workspace_session_mcp.tools.base import ToolCallArguments, ToolExecResult, ToolParameter
from workspace_session_mcp.tools.base_workspace_tool import WorkspaceTool

logger = logging.getLogger(__name__)


class ReadFilesTool(WorkspaceTool):
    """Reads files and records the returned lines as observed."""

    @override
    def get_name(self) -> str:
        return "read_files"

    @override
    def get_description(self) -> str:
        return """Read one or more files.
* Paths are relative to the workspace root. Append a line range to read part of a file: `src/app.py:10-20`, `src/app.py:10-` or `src/app.py:-20`.
* Only the lines returned count as read. A file must be (almost) fully read before it can be edited.
* A file that cannot be read is reported as `ERROR: ...` without failing the others.
"""

    @override
    def get_parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="file_paths",
                type="array",
                description="Files to read, optionally with a line range suffix.",
                items={"type": "string"},
            ),
            ToolParameter(
                name="show_line_numbers",
                type="boolean",
                description="Prefix lines with their numbers, like `cat -n`.",
                required=False,
            ),
        ]

    @override
    async def _execute_operation(
        self, arguments: ToolCallArguments, session: WorkspaceSession
    ) -> ToolExecResult:
        paths = self._optional_list(arguments, "file_paths")
        if not paths:
            return ToolExecResult(error="Parameter `file_paths` is required.", error_code=-1, error_kind="InvalidArguments")
        results = await session.read_files(paths, line_numbers=bool(arguments.get("show_line_numbers")))
        parts = []
        for path, content in results:
            body = content.rstrip("\n")
            parts.append(f"{path}\n```\n{body}\n```")
        logger.debug(f"Read {len(results)} files")
        return ToolExecResult(output="\n\n".join(parts))
