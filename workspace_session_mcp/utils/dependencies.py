"""
Configuration and dependency management for the workspace session MCP server.
"""

import logging
from functools import lru_cache

from workspace_session_mcp.engine.locks import FileLockRegistry
from workspace_session_mcp.engine.terminal import TerminalSessionManager
from workspace_session_mcp.tools.bash_tool import BashTool
from workspace_session_mcp.tools.checkpoint_tool import CheckpointTool
from workspace_session_mcp.tools.edit_tool import TextEditorTool
from workspace_session_mcp.tools.initialize_tool import InitializeTool
from workspace_session_mcp.tools.memo_tool import MemoTool
from workspace_session_mcp.tools.read_files_tool import ReadFilesTool
from workspace_session_mcp.tools.task_tool import TaskTool
from workspace_session_mcp.tools.write_tool import WriteOrEditTool
from workspace_session_mcp.utils.config import ServiceConfig
from workspace_session_mcp.utils.session_manager import SessionManager

logger = logging.getLogger(__name__)


@lru_cache
def get_base_config() -> ServiceConfig:
    """
    Retrieves the base server configuration from the environment and the config file.

    This function is cached to avoid repeatedly reading and parsing environment
    variables and the config file.

    Returns:
        A cached instance of the ServiceConfig.
    """
    return ServiceConfig()


# --- Shared engine handles ---
# One lock registry and one terminal table per process; sessions share them.


@lru_cache
def get_lock_registry() -> FileLockRegistry:
    config = get_base_config()
    logger.info("Initializing FileLockRegistry singleton.")
    return FileLockRegistry(timeout=config.WSMCP_LOCK_TIMEOUT, cooldown=config.WSMCP_LOCK_COOLDOWN)


@lru_cache
def get_terminal_manager() -> TerminalSessionManager:
    config = get_base_config()
    logger.info("Initializing TerminalSessionManager singleton.")
    return TerminalSessionManager(
        shell=config.WSMCP_SHELL,
        tail_chars=config.WSMCP_OUTPUT_TAIL_CHARS,
        command_timeout=config.WSMCP_COMMAND_TIMEOUT,
        settle=config.WSMCP_INTERACTIVE_SETTLE,
    )


@lru_cache
def get_session_manager() -> SessionManager:
    """Returns the process-wide SessionManager."""
    logger.info("Initializing SessionManager singleton.")
    return SessionManager(get_base_config(), get_lock_registry(), get_terminal_manager())


# --- Tool Providers ---


@lru_cache
def get_initialize_tool_provider() -> InitializeTool:
    """Returns a cached instance of the InitializeTool."""
    logger.info("Initializing InitializeTool singleton.")
    return InitializeTool()


@lru_cache
def get_read_files_tool_provider() -> ReadFilesTool:
    """Returns a cached instance of the ReadFilesTool."""
    logger.info("Initializing ReadFilesTool singleton.")
    return ReadFilesTool()


@lru_cache
def get_write_tool_provider() -> WriteOrEditTool:
    """Returns a cached instance of the WriteOrEditTool."""
    logger.info("Initializing WriteOrEditTool singleton.")
    return WriteOrEditTool()


@lru_cache
def get_file_editor_tool_provider() -> TextEditorTool:
    """Returns a cached instance of the TextEditorTool."""
    logger.info("Initializing TextEditorTool singleton.")
    return TextEditorTool()


@lru_cache
def get_bash_tool_provider() -> BashTool:
    """Returns a cached instance of the BashTool."""
    logger.info("Initializing BashTool singleton.")
    return BashTool()


@lru_cache
def get_checkpoint_tool_provider() -> CheckpointTool:
    """Returns a cached instance of the CheckpointTool."""
    logger.info("Initializing CheckpointTool singleton.")
    return CheckpointTool()


@lru_cache
def get_task_tool_provider() -> TaskTool:
    """Returns a cached instance of the TaskTool."""
    logger.info("Initializing TaskTool singleton.")
    return TaskTool()


@lru_cache
def get_memo_tool_provider() -> MemoTool:
    """Returns a cached instance of the MemoTool."""
    logger.info("Initializing MemoTool singleton.")
    return MemoTool()
