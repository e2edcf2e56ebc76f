import itertools
import logging
import os
import re
import shlex
import shutil
import time
from pathlib import Path

from workspace_session_mcp.tools.base import IoError, Unsupported
from workspace_session_mcp.tools.run import run

logger = logging.getLogger(__name__)

_SESSION_LINE_RE = re.compile(r"^\s*\d+\.(\S+)\s")


class ScreenMultiplexer:
    """Runs background jobs in detached GNU screen sessions named by job id."""

    def __init__(self, prefix: str = "wsmcp", shell: str = "bash"):
        self.prefix = prefix
        self.shell = shell
        self._counter = itertools.count(1)

    @staticmethod
    def available() -> bool:
        return shutil.which("screen") is not None

    def _next_name(self) -> str:
        return f"{self.prefix}.{os.getpid()}.{int(time.time()) % 1_000_000}.{next(self._counter)}"

    async def start(self, command: str, cwd: Path, env: dict[str, str] | None = None) -> str:
        if not self.available():
            raise Unsupported("Background jobs need GNU screen, which is not installed")
        name = self._next_name()
        screen_cmd = (
            f"screen -dmS {shlex.quote(name)} "
            f"{shlex.quote(self.shell)} --noprofile --norc -c {shlex.quote(command)}"
        )
        code, _, stderr = await run(screen_cmd, timeout=10.0, cwd=cwd, env=env)
        if code != 0:
            raise IoError(f"Failed to start background job: {stderr.strip() or f'exit code {code}'}")
        logger.info(f"Started background job {name}: {command}")
        return name

    async def list_alive(self) -> list[str]:
        if not self.available():
            return []
        # screen -ls exits non-zero when there are no sessions
        _, stdout, _ = await run("screen -ls", timeout=10.0)
        names = []
        for line in stdout.splitlines():
            m = _SESSION_LINE_RE.match(line)
            if m and m.group(1).startswith(f"{self.prefix}."):
                names.append(m.group(1))
        return names
