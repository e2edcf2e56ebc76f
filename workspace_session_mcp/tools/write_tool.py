import logging
from typing_extensions import override

from workspace_session_mcp.engine.workspace import WorkspaceSession
from workspace_session_mcp.models.edits import EditReport
from workspace_session_mcp.tools.base import ToolCallArguments, ToolExecResult, ToolParameter
from workspace_session_mcp.tools.base_workspace_tool import WorkspaceTool

logger = logging.getLogger(__name__)


def describe_report(report: EditReport) -> str:
    if report.unchanged:
        message = f"No changes: {report.path} already has this content."
    else:
        message = f"Success: wrote {report.written_bytes} bytes to {report.path}."
    if report.checkpoint_id:
        message += f"\nCheckpoint: {report.checkpoint_id}"
    if report.warnings:
        message += "\n\nWarnings:\n" + "\n".join(f"- {w}" for w in report.warnings)
    return message


class WriteOrEditTool(WorkspaceTool):
    """Writes a whole file or applies search/replace blocks to it."""

    @override
    def get_name(self) -> str:
        return "file_write_or_edit"

    @override
    def get_description(self) -> str:
        return """Create a file, overwrite it, or edit it with search/replace blocks.
* An existing file must have been read (at least 99% of its lines) and must not have changed since. Otherwise the call fails and lists the line ranges still to read.
* When changing more than half of the file, send the full new content.
* Otherwise send one or more blocks:
<<<<<<< SEARCH
existing lines
=======
new lines
>>>>>>> REPLACE
* Each SEARCH part should match the file exactly. Small whitespace, indentation or wording differences are tolerated and reported as warnings.
* Every edit is recorded in a checkpoint that can be restored.
"""

    @override
    def get_parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="file_path",
                type="string",
                description="File to write, relative to the workspace root.",
            ),
            ToolParameter(
                name="percentage_to_change",
                type="number",
                description="Estimated share (0-100) of the file's lines that will change.",
            ),
            ToolParameter(
                name="text_or_search_replace_blocks",
                type="string",
                description="Full file content, or search/replace blocks.",
            ),
            ToolParameter(
                name="description",
                type="string",
                description="Short description stored with the checkpoint.",
                required=False,
            ),
        ]

    @override
    async def _execute_operation(
        self, arguments: ToolCallArguments, session: WorkspaceSession
    ) -> ToolExecResult:
        path = self._require(arguments, "file_path")
        percentage = self._require(arguments, "percentage_to_change", (int, float))
        text = self._require(arguments, "text_or_search_replace_blocks")
        report = await session.write_or_edit(path, float(percentage), text, arguments.get("description"))
        return ToolExecResult(output=describe_report(report))
