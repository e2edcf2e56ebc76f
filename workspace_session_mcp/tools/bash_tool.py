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
from typing_extensions import override

from pydantic import ValidationError

from workspace_session_mcp.engine.workspace import WorkspaceSession
from workspace_session_mcp.models.terminal import SpecialKey, bash_action_adapter
from workspace_session_mcp.tools.base import (
    InvalidArguments,
    ToolCallArguments,
    ToolExecResult,
    ToolParameter,
)
from workspace_session_mcp.tools.base_workspace_tool import WorkspaceTool
from workspace_session_mcp.tools.run import maybe_truncate

logger = logging.getLogger(__name__)


class BashTool(WorkspaceTool):
    """
    Runs commands in the workspace's long-lived interactive shell.
    """

    @override
    def get_name(self) -> str:
        return "bash"

    @override
    def get_description(self) -> str:
        keys = ", ".join(k.value for k in SpecialKey)
        return f"""Run commands in a persistent interactive bash shell started in the workspace root.
* `action` is exactly one of:
  - {{"command": "..."}} runs a command. Only one command can run at a time.
  - {{"status_check": true}} returns new output and the status of a running command.
  - {{"send_text": "..."}} types text into the running program (include "\\n" to press Enter).
  - {{"send_specials": [...]}} sends keys: {keys}.
  - {{"send_ascii": [...]}} sends raw character codes (0-127).
  - {{"start_background": "..."}} runs a command as a detached background job.
  - {{"list_background": true}} lists the background jobs that are still running.
* The working directory persists between commands (`cd` works).
* If a command is still running when `wait_for_seconds` runs out, it keeps running: check its status, send input, or interrupt it with CtrlC.
* Interactive programs (python, less, vim...) return as soon as their output settles.
* Dangerous commands (e.g. `rm -rf /`) are refused; in restricted mode only the allowed commands run.
"""

    @override
    def get_parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="action",
                type="object",
                description="The action to perform, see the tool description.",
            ),
            ToolParameter(
                name="wait_for_seconds",
                type="number",
                description="How long to wait for output before returning.",
                required=False,
            ),
        ]

    @override
    async def _execute_operation(
        self, arguments: ToolCallArguments, session: WorkspaceSession
    ) -> ToolExecResult:
        raw_action = arguments.get("action")
        if isinstance(raw_action, str):
            raw_action = {"command": raw_action}
        try:
            action = bash_action_adapter.validate_python(raw_action)
        except ValidationError as e:
            raise InvalidArguments(
                "Invalid `action`: expected exactly one of command, status_check, send_text, "
                f"send_specials, send_ascii, start_background or list_background. {e.error_count()} validation errors."
            ) from e

        wait = arguments.get("wait_for_seconds")
        if wait is not None and (not isinstance(wait, (int, float)) or wait < 0):
            raise InvalidArguments("`wait_for_seconds` should be a non-negative number.")

        logger.debug(f"bash action: {action!r}")
        output = await session.bash(action, float(wait) if wait is not None else None)
        return ToolExecResult(output=maybe_truncate(output), error_code=session.require_state().last_exit_code or 0)
