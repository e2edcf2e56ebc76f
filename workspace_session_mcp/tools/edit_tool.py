# Copyright (c) 2023 Anthropic
# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates.
# SPDX-License-Identifier: MIT
#
# This file has been modified by ByteDance Ltd. and/or its affiliates. on 13 June 2025
#
# Original file was released under MIT License, with the full license text
# available at https://github.com/anthropics/anthropic-quickstarts/blob/main/LICENSE
#
# This modified file is released under the same license.

import logging
import shlex
from typing_extensions import override

from workspace_session_mcp.engine.workspace import WorkspaceSession
from workspace_session_mcp.models.edits import (
    DeleteLines,
    EditRequest,
    FullReplace,
    InsertAtLine,
    SymbolicEdit,
)
from workspace_session_mcp.tools.base import (
    InvalidArguments,
    ToolCallArguments,
    ToolExecResult,
    ToolParameter,
)
from workspace_session_mcp.tools.base_workspace_tool import WorkspaceTool
from workspace_session_mcp.tools.run import run
from workspace_session_mcp.tools.write_tool import describe_report
from workspace_session_mcp.utils.path_utils import resolve_path

logger = logging.getLogger(__name__)

EditToolSubCommands = [
    "view",
    "create",
    "insert",
    "delete_lines",
    "symbolic",
]
SymbolicEditKinds = ["replace_body", "insert_before", "insert_after"]


class TextEditorTool(WorkspaceTool):
    """Line-oriented viewing and editing on top of the edit pipeline."""

    @override
    def get_name(self) -> str:
        return "text_editor"

    @override
    def get_description(self) -> str:
        return """Editing tool for viewing, creating and editing files line by line
* If `path` is a file, `view` displays the result of applying `cat -n`. If `path` is a directory, `view` lists non-hidden files and directories up to 2 levels deep
* Viewing a file counts as reading the lines shown
* The `create` command cannot be used if the specified `path` already exists as a file
* `insert` inserts `new_str` AFTER the line `insert_line` (0 inserts at the top)
* `delete_lines` removes the lines `view_range[0]` to `view_range[1]` inclusive
* `symbolic` edits a code symbol (`symbol`) and needs a language server bridge
* Edits follow the same read-before-write rules as `file_write_or_edit` and are checkpointed
"""

    @override
    def get_parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="command",
                type="string",
                description=f"The commands to run. Allowed options are: {', '.join(EditToolSubCommands)}.",
                enum=EditToolSubCommands,
            ),
            ToolParameter(
                name="path",
                type="string",
                description="Path to file or directory, relative to the workspace root. e.g. 'src/main.py'.",
            ),
            ToolParameter(
                name="file_text",
                type="string",
                description="Required parameter of `create` command, with the content of the file to be created.",
                required=False,
            ),
            ToolParameter(
                name="insert_line",
                type="integer",
                description="Required parameter of `insert` command. The `new_str` will be inserted AFTER the line `insert_line` of `path`.",
                required=False,
            ),
            ToolParameter(
                name="new_str",
                type="string",
                description="Required parameter of `insert` and `symbolic` commands containing the text to insert.",
                required=False,
            ),
            ToolParameter(
                name="view_range",
                type="array",
                description="Line range for `view` (optional) and `delete_lines` (required), e.g. [11, 12]. Indexing at 1 to start. `[start_line, -1]` runs to the end of the file.",
                items={"type": "integer"},
                required=False,
            ),
            ToolParameter(
                name="symbol",
                type="string",
                description="Required parameter of `symbolic` command: the symbol to edit, e.g. 'MyClass.method'.",
                required=False,
            ),
            ToolParameter(
                name="symbolic_kind",
                type="string",
                description="Required parameter of `symbolic` command.",
                enum=SymbolicEditKinds,
                required=False,
            ),
        ]

    @override
    async def _execute_operation(
        self, arguments: ToolCallArguments, session: WorkspaceSession
    ) -> ToolExecResult:
        command = str(arguments.get("command"))
        path_str = self._require(arguments, "path")
        logger.debug(f"Processing command '{command}' for path '{path_str}'")

        match command:
            case "view":
                return await self._view(arguments, path_str, session)
            case "create":
                return await self._create(arguments, path_str, session)
            case "insert":
                insert_line = self._require(arguments, "insert_line", int)
                new_str = self._require(arguments, "new_str")
                operation = InsertAtLine(line=insert_line, content=new_str)
            case "delete_lines":
                start, end = self._view_range(arguments)
                if end == -1:
                    raise InvalidArguments("`delete_lines` needs an explicit end line.")
                operation = DeleteLines(start=start, end=end)
            case "symbolic":
                kind = self._require(arguments, "symbolic_kind")
                if kind not in SymbolicEditKinds:
                    raise InvalidArguments(
                        f"Invalid `symbolic_kind` {kind}. Allowed options are: {', '.join(SymbolicEditKinds)}"
                    )
                operation = SymbolicEdit(
                    location=self._require(arguments, "symbol"),
                    edit_kind=kind,
                    content=self._require(arguments, "new_str"),
                )
            case _:
                logger.error(f"Unrecognized command: {command}")
                raise InvalidArguments(
                    f"Unrecognized command {command}. The allowed commands for the {self.get_name()} tool are: {', '.join(EditToolSubCommands)}"
                )

        report = await session.edit(EditRequest(path=path_str, operation=operation))
        return ToolExecResult(output=describe_report(report))

    @staticmethod
    def _view_range(arguments: ToolCallArguments) -> tuple[int, int]:
        view_range = arguments.get("view_range")
        if not (
            isinstance(view_range, list)
            and len(view_range) == 2
            and all(isinstance(i, int) for i in view_range)
        ):
            raise InvalidArguments("Invalid `view_range`. It should be a list of two integers.")
        init_line, final_line = view_range
        if init_line < 1:
            raise InvalidArguments(f"Invalid `view_range`: {view_range}. Its first element should be at least 1")
        if final_line != -1 and final_line < init_line:
            raise InvalidArguments(
                f"Invalid `view_range`: {view_range}. Its second element `{final_line}` should be larger or equal than its first `{init_line}`"
            )
        return init_line, final_line

    async def _view(self, arguments: ToolCallArguments, path_str: str, session: WorkspaceSession) -> ToolExecResult:
        state = session.require_state()
        path = resolve_path(state, path_str)
        if path.is_dir():
            if arguments.get("view_range"):
                raise InvalidArguments(
                    "The `view_range` parameter is not allowed when `path` points to a directory."
                )
            return_code, stdout, stderr = await run(
                rf"find {shlex.quote(str(path))} -maxdepth 2 -not -path '*/\.*'"
            )
            if not stderr:
                stdout = f"Here's the files and directories up to 2 levels deep in {path_str}, excluding hidden items:\n{stdout}\n"
            return ToolExecResult(error_code=return_code, output=stdout, error=stderr or None)

        start, end = (None, None)
        if arguments.get("view_range") is not None:
            start, end = self._view_range(arguments)
            if end == -1:
                end = None
        file_slice = await session.read_slice(path_str, start, end)
        output = self._make_output(file_slice.content, file_slice.path, init_line=file_slice.first)
        if file_slice.clipped:
            output += file_slice.continuation_note() + "\n"
        return ToolExecResult(output=output)

    async def _create(self, arguments: ToolCallArguments, path_str: str, session: WorkspaceSession) -> ToolExecResult:
        file_text = self._require(arguments, "file_text")
        path = resolve_path(session.require_state(), path_str)
        if path.exists():
            raise InvalidArguments(f"File already exists at: {path_str}.")
        report = await session.edit(
            EditRequest(path=path_str, operation=FullReplace(content=file_text), description=f"create {path_str}")
        )
        return ToolExecResult(output=f"File created successfully at: {report.path}")

    def _make_output(
        self,
        file_content: str,
        file_descriptor: str,
        init_line: int = 1,
        expand_tabs: bool = True,
    ) -> str:
        """Generate output for the CLI based on the content of a file."""
        if expand_tabs:
            file_content = file_content.expandtabs()
        file_content = "\n".join(
            [f"{i + init_line:6}\t{line}" for i, line in enumerate(file_content.rstrip("\n").split("\n"))]
        )
        return (
            f"Here's the result of running `cat -n` on {file_descriptor}:\n" + file_content + "\n"
        )
