"""
MCP server definition for the workspace session engine.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from mcp.server.fastmcp import Context, FastMCP

from workspace_session_mcp.prompts import get_all_prompts, mode_instructions
from workspace_session_mcp.tools.base import Tool
from workspace_session_mcp.utils.config import ServiceConfig
from workspace_session_mcp.utils.dependencies import (
    get_base_config,
    get_bash_tool_provider,
    get_checkpoint_tool_provider,
    get_file_editor_tool_provider,
    get_initialize_tool_provider,
    get_memo_tool_provider,
    get_read_files_tool_provider,
    get_session_manager,
    get_task_tool_provider,
    get_write_tool_provider,
)

# Get a module-level logger
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Close every terminal session when the server stops."""
    try:
        yield
    finally:
        logger.info("Shutting down: closing workspace sessions")
        await get_session_manager().close_all()


def build_server(config: ServiceConfig) -> FastMCP:
    """Build and configure the FastMCP server instance.

    Args:
        config: The server's service configuration.

    Returns:
        A configured FastMCP instance.
    """
    logger.info("Initializing FastMCP server (transport: %s)", config.MCP_TRANSPORT)
    return FastMCP("workspace-session-mcp", lifespan=lifespan)


# Get the base configuration for server initialization.
# This is also imported by main.py to run the server.
server_config = get_base_config()
mcp_app = build_server(server_config)


def _session_id(context: Context) -> str:
    return context.client_id or "default"


async def call_tool(tool: Tool, context: Context, arguments: dict[str, Any]) -> dict[str, Any]:
    """Run a tool for the caller's workspace session and shape its reply."""
    try:
        session = get_session_manager().get_session(_session_id(context))
        # Filter out None values so we don't pass them to the tool
        args = {k: v for k, v in arguments.items() if v is not None}
        args["_session"] = session
        result = await tool.execute(args)
        if result.error:
            response = {
                "status": "error",
                "error": result.error,
                "kind": result.error_kind,
                "exit_code": result.error_code,
            }
            if result.details:
                response["details"] = result.details
            return response
        return {"status": "success", "result": result.output, "exit_code": result.error_code}
    except Exception as e:
        logger.error(f"Error executing {tool.get_name()}: {e}", exc_info=True)
        # It's better to return a structured error than to let the exception bubble up
        return {"status": "error", "error": str(e), "kind": "IoError", "exit_code": 1}


# --- Prompt Handlers ---
@mcp_app.prompt(title="Workspace Session Rules")
def get_system_prompt() -> str:
    """Read-before-write rules and the instructions of the current mode."""
    prompts = get_all_prompts()
    session = get_session_manager().get_session()
    if session.is_initialized:
        return prompts["base"] + mode_instructions(session.require_state().mode)
    return prompts["base"]


# --- Tool Definitions ---


@mcp_app.tool()
async def initialize(
    context: Context,
    type: str = "first_call",
    any_workspace_path: Optional[str] = None,
    initial_files_to_read: Optional[List[str]] = None,
    task_id_to_resume: Optional[str] = None,
    mode_name: Optional[str] = None,
    allowed_globs: Optional[str | List[str]] = None,
    allowed_commands: Optional[str | List[str]] = None,
) -> dict[str, Any]:
    """
    Initializes the workspace. Must be called before any other tool.

    Args:
        type: first_call, user_asked_mode_change, reset_shell or user_asked_change_workspace.
        any_workspace_path: The workspace root.
        initial_files_to_read: Files to read right away.
        task_id_to_resume: A saved task to resume.
        mode_name: unrestricted, read_only or restricted.
        allowed_globs: Restricted mode: "all" or writable file globs.
        allowed_commands: Restricted mode: "all" or allowed command prefixes.

    Returns:
        A dictionary with the workspace summary.
    """
    logger.info(f"initialize type={type} path={any_workspace_path} mode={mode_name}")
    return await call_tool(
        get_initialize_tool_provider(),
        context,
        {
            "type": type,
            "any_workspace_path": any_workspace_path,
            "initial_files_to_read": initial_files_to_read,
            "task_id_to_resume": task_id_to_resume,
            "mode_name": mode_name,
            "allowed_globs": allowed_globs,
            "allowed_commands": allowed_commands,
        },
    )


@mcp_app.tool()
async def read_files(
    context: Context,
    file_paths: List[str],
    show_line_numbers: bool = False,
) -> dict[str, Any]:
    """
    Reads files, optionally a line range each (`path:10-20`).

    Args:
        file_paths: Files to read, relative to the workspace root.
        show_line_numbers: Prefix lines with their numbers.

    Returns:
        A dictionary with the file contents.
    """
    logger.info(f"read_files {file_paths}")
    return await call_tool(
        get_read_files_tool_provider(),
        context,
        {"file_paths": file_paths, "show_line_numbers": show_line_numbers},
    )


@mcp_app.tool()
async def file_write_or_edit(
    context: Context,
    file_path: str,
    percentage_to_change: float,
    text_or_search_replace_blocks: str,
    description: Optional[str] = None,
) -> dict[str, Any]:
    """
    Writes a whole file or applies search/replace blocks to it.

    Args:
        file_path: File to write, relative to the workspace root.
        percentage_to_change: Estimated share (0-100) of lines that will change.
        text_or_search_replace_blocks: Full content, or SEARCH/REPLACE blocks.
        description: Checkpoint description.

    Returns:
        A dictionary with the result of the edit.
    """
    logger.info(f"file_write_or_edit {file_path} ({percentage_to_change}%)")
    return await call_tool(
        get_write_tool_provider(),
        context,
        {
            "file_path": file_path,
            "percentage_to_change": percentage_to_change,
            "text_or_search_replace_blocks": text_or_search_replace_blocks,
            "description": description,
        },
    )


@mcp_app.tool(name="text_editor")
async def text_editor_tool(
    context: Context,
    command: str,
    path: str,
    file_text: Optional[str] = None,
    new_str: Optional[str] = None,
    insert_line: Optional[int] = None,
    view_range: Optional[List[int]] = None,
    symbol: Optional[str] = None,
    symbolic_kind: Optional[str] = None,
) -> dict[str, Any]:
    """
    Views, creates and edits files line by line (view, create, insert, delete_lines, symbolic).

    Args:
        command: The operation.
        path: File or directory, relative to the workspace root.
        file_text: The content for 'create'.
        new_str: The text for 'insert' and 'symbolic'.
        insert_line: 'insert' puts new_str AFTER this line (0 = top).
        view_range: Line range for 'view' and 'delete_lines', e.g. [10, 25].
        symbol: Symbol for 'symbolic'.
        symbolic_kind: replace_body, insert_before or insert_after.

    Returns:
        A dictionary containing the result of the operation.
    """
    logger.info(f"text_editor '{command}' on '{path}'")
    return await call_tool(
        get_file_editor_tool_provider(),
        context,
        {
            "command": command,
            "path": path,
            "file_text": file_text,
            "new_str": new_str,
            "insert_line": insert_line,
            "view_range": view_range,
            "symbol": symbol,
            "symbolic_kind": symbolic_kind,
        },
    )


@mcp_app.tool()
async def bash(
    context: Context,
    action: dict[str, Any] | str,
    wait_for_seconds: Optional[float] = None,
) -> dict[str, Any]:
    """
    Runs a command or interacts with the running program in the persistent shell.

    Args:
        action: One of {"command"}, {"status_check"}, {"send_text"}, {"send_specials"},
            {"send_ascii"}, {"start_background"}, {"list_background"}.
        wait_for_seconds: How long to wait for output.

    Returns:
        A dictionary with the sanitized output and the shell status.
    """
    logger.info(f"bash {action!r}")
    return await call_tool(
        get_bash_tool_provider(),
        context,
        {"action": action, "wait_for_seconds": wait_for_seconds},
    )


@mcp_app.tool()
async def checkpoint(
    context: Context,
    operation: str,
    description: Optional[str] = None,
    paths: Optional[List[str]] = None,
    checkpoint_id: Optional[str] = None,
) -> dict[str, Any]:
    """
    Creates, restores, lists or deletes checkpoints.

    Args:
        operation: create, restore, list or delete.
        description: Description for 'create'.
        paths: Files to snapshot with 'create'.
        checkpoint_id: Checkpoint for 'restore' and 'delete'.

    Returns:
        A dictionary with the result.
    """
    logger.info(f"checkpoint {operation} {checkpoint_id or ''}")
    return await call_tool(
        get_checkpoint_tool_provider(),
        context,
        {
            "operation": operation,
            "description": description,
            "paths": paths,
            "checkpoint_id": checkpoint_id,
        },
    )


@mcp_app.tool()
async def task(
    context: Context,
    operation: str,
    task_id: Optional[str] = None,
    description: Optional[str] = None,
    relevant_files: Optional[List[str]] = None,
    status: Optional[str] = None,
) -> dict[str, Any]:
    """
    Saves, lists, loads, describes or deletes resumable tasks.

    Args:
        operation: save, list, load, describe or delete.
        task_id: Task for 'load', 'describe' and 'delete'.
        description: Task description for 'save'.
        relevant_files: Relevant files for 'save'.
        status: active, paused or completed for 'save'.

    Returns:
        A dictionary with the result.
    """
    logger.info(f"task {operation} {task_id or ''}")
    return await call_tool(
        get_task_tool_provider(),
        context,
        {
            "operation": operation,
            "task_id": task_id,
            "description": description,
            "relevant_files": relevant_files,
            "status": status,
        },
    )


@mcp_app.tool()
async def memo(
    context: Context,
    operation: str,
    name: Optional[str] = None,
    content: Optional[str] = None,
    tags: Optional[List[str]] = None,
    scope: Optional[str] = None,
) -> dict[str, Any]:
    """
    Saves, loads, lists or deletes named memos.

    Args:
        operation: save, load, list or delete.
        name: Memo name.
        content: Memo content for 'save'.
        tags: Tags to store, or to filter 'list' by.
        scope: workspace (default) or user.

    Returns:
        A dictionary with the result.
    """
    logger.info(f"memo {operation} {name or ''}")
    return await call_tool(
        get_memo_tool_provider(),
        context,
        {"operation": operation, "name": name, "content": content, "tags": tags, "scope": scope},
    )
