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

"""Utility to run one-shot shell commands asynchronously with a timeout."""

import asyncio
import logging
from pathlib import Path

from workspace_session_mcp.tools.base import IoError

logger = logging.getLogger(__name__)

TRUNCATED_MESSAGE: str = (
    "<response clipped><NOTE>To save on context only part of this output has been shown to you. "
    "Narrow the request (a line range, a filter) and retry.</NOTE>"
)
MAX_RESPONSE_LEN: int = 16000


def maybe_truncate(content: str, truncate_after: int | None = MAX_RESPONSE_LEN) -> str:
    """Truncate content and append a notice if content exceeds the specified length."""
    if not truncate_after or len(content) <= truncate_after:
        return content
    return content[:truncate_after] + TRUNCATED_MESSAGE


async def run(
    cmd: str,
    timeout: float | None = 120.0,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
    truncate_after: int | None = MAX_RESPONSE_LEN,
) -> tuple[int, str, str]:
    """Run a shell command asynchronously and return (returncode, stdout, stderr)."""
    logger.debug(f"Running command: {cmd} (cwd={cwd})")
    try:
        process = await asyncio.create_subprocess_shell(
            cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=env,
        )
    except OSError as e:
        raise IoError(f"Failed to start '{cmd}': {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        raise IoError(f"Command '{cmd}' timed out after {timeout} seconds") from exc

    return (
        process.returncode or 0,
        maybe_truncate(stdout.decode(errors="replace"), truncate_after=truncate_after),
        maybe_truncate(stderr.decode(errors="replace"), truncate_after=truncate_after),
    )
