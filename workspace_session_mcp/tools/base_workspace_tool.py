# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

"""Base class for tools that operate on a workspace session."""

import logging
from abc import ABC, abstractmethod
from typing import Any

from typing_extensions import override

from workspace_session_mcp.engine.workspace import WorkspaceSession
from workspace_session_mcp.tools.base import (
    InvalidArguments,
    Tool,
    ToolCallArguments,
    ToolError,
    ToolExecResult,
)

logger = logging.getLogger(__name__)


class WorkspaceTool(Tool, ABC):
    """Base class for workspace tools with common validation and error handling."""

    def _validate_session(self, arguments: ToolCallArguments) -> WorkspaceSession:
        """
        Extract the WorkspaceSession injected by the server.

        Raises:
            ToolError: If the session is missing from the arguments
        """
        session = arguments.get("_session")
        if not isinstance(session, WorkspaceSession):
            logger.error("WorkspaceSession not found in arguments")
            raise ToolError("WorkspaceSession not found in arguments.")
        return session

    @staticmethod
    def _require(arguments: ToolCallArguments, name: str, kind: type | tuple[type, ...] = str) -> Any:
        value = arguments.get(name)
        if value is None or not isinstance(value, kind):
            raise InvalidArguments(f"Parameter `{name}` is required for {arguments.get('command') or 'this call'}.")
        return value

    @staticmethod
    def _optional_list(arguments: ToolCallArguments, name: str) -> list[str] | None:
        value = arguments.get(name)
        if value is None:
            return None
        if isinstance(value, str):
            return [value]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise InvalidArguments(f"Parameter `{name}` should be a list of strings.")
        return value

    @abstractmethod
    async def _execute_operation(
        self, arguments: ToolCallArguments, session: WorkspaceSession
    ) -> ToolExecResult:
        """Execute the specific operation for this tool."""
        pass

    @override
    async def execute(self, arguments: ToolCallArguments) -> ToolExecResult:
        """Execute the tool, turning engine errors into error results."""
        try:
            session = self._validate_session(arguments)
            return await self._execute_operation(arguments, session)
        except ToolError as e:
            logger.error(f"Tool error in {self.get_name()}: [{e.kind}] {e}")
            return ToolExecResult.from_error(e)
        except Exception as e:
            logger.error(f"Unexpected error in {self.get_name()}: {e}", exc_info=True)
            return ToolExecResult(error=f"Unexpected error: {e}", error_code=-1, error_kind="IoError")
