import asyncio
import codecs
import fcntl
import logging
import os
import pty
import re
import secrets
import shlex
import signal
import struct
import tempfile
import termios
import uuid
from pathlib import Path

from workspace_session_mcp.engine.screen import ScreenMultiplexer
from workspace_session_mcp.models.terminal import SpecialKey, TerminalState, TerminalStatus
from workspace_session_mcp.tools.base import IoError, NoActiveProcess, NotFound, SessionBusy
from workspace_session_mcp.tools.utils.ansi import clean_output
from workspace_session_mcp.tools.utils.constants import CHILD_ENV, SPECIAL_KEY_SEQUENCES

logger = logging.getLogger(__name__)

_SHELL_VARIABLES = ("PS1", "PS2", "PS4", "PROMPT_COMMAND")
_STARTUP_TIMEOUT = 10.0
_TRUNCATION_NOTE = "[... earlier output truncated ...]\n"
# Canonical-mode pty input is cut past MAX_CANON (4096 on Linux); longer lines go through a script
_MAX_TYPED_LINE = 1024


def _set_controlling_tty() -> None:
    # Runs in the child after setsid(): make the pty the controlling terminal
    # so job control and Ctrl-C reach the foreground process group.
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


class TerminalSession:
    """
    One long-lived interactive shell attached to a pseudo-terminal.

    After every command the shell prints a marker line carrying the exit status
    and working directory, which ends the command and keeps ``cwd`` coherent.
    """

    def __init__(
        self,
        session_id: str,
        cwd: Path,
        shell: str = "bash",
        tail_chars: int = 20000,
        env: dict[str, str] | None = None,
    ):
        self.id = session_id
        self.cwd = cwd
        self.shell = shell
        self.tail_chars = tail_chars
        self.state = TerminalState.IDLE
        self.last_exit_code: int | None = None
        self.background_jobs: list[str] = []

        self._env = env
        self._token = secrets.token_hex(6)
        self._marker_prefix = f"__WSMCP_{self._token}__"
        self._marker_re = re.compile(re.escape(self._marker_prefix) + r" (-?\d+) (.*)$")
        self._process: asyncio.subprocess.Process | None = None
        self._master_fd: int | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._partial = ""
        self._pending: list[str] = []
        self._pending_len = 0
        self._tail = ""
        self._changed = asyncio.Event()
        self._done = asyncio.Event()
        self._lock = asyncio.Lock()
        self._script: Path | None = None

    # --- process lifecycle -------------------------------------------------

    def _child_env(self) -> dict[str, str]:
        env = dict(os.environ if self._env is None else self._env)
        for name in _SHELL_VARIABLES:
            env.pop(name, None)
        env.update(CHILD_ENV)
        env["HISTFILE"] = "/dev/null"
        return env

    def _setup_line(self) -> str:
        prompt_command = f'printf "{self._marker_prefix} %s %s\\n" "$?" "$PWD"'
        return f"set +H; PS1=''; PS2=''; PROMPT_COMMAND='{prompt_command}'\n"

    async def start(self) -> None:
        master_fd, slave_fd = pty.openpty()
        try:
            attrs = termios.tcgetattr(slave_fd)
            attrs[3] &= ~termios.ECHO
            termios.tcsetattr(slave_fd, termios.TCSANOW, attrs)
            # A wide window keeps long lines from being wrapped by programs
            fcntl.ioctl(slave_fd, termios.TIOCSWINSZ, struct.pack("HHHH", 50, 500, 0, 0))
            self._process = await asyncio.create_subprocess_exec(
                self.shell,
                "--noprofile",
                "--norc",
                "--noediting",
                "-i",
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                cwd=self.cwd,
                env=self._child_env(),
                start_new_session=True,
                preexec_fn=_set_controlling_tty,
            )
        except OSError as e:
            os.close(master_fd)
            raise IoError(f"Failed to start shell '{self.shell}': {e}") from e
        finally:
            os.close(slave_fd)

        self._master_fd = master_fd
        os.set_blocking(master_fd, False)
        asyncio.get_running_loop().add_reader(master_fd, self._on_readable)

        self.state = TerminalState.RUNNING
        self._done.clear()
        self._write(self._setup_line())
        if not await self._wait(_STARTUP_TIMEOUT):
            await self.close()
            raise IoError(f"Shell '{self.shell}' did not become ready")
        self._take_output()
        self._tail = ""
        self.state = TerminalState.IDLE
        self.last_exit_code = None
        logger.info(f"Terminal session {self.id} started in {self.cwd} (pid {self._process.pid})")

    async def close(self) -> None:
        if self._master_fd is not None:
            try:
                asyncio.get_running_loop().remove_reader(self._master_fd)
            except RuntimeError:
                pass
        if self._process is not None and self._process.returncode is None:
            try:
                os.killpg(self._process.pid, signal.SIGHUP)
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(self._process.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                try:
                    os.killpg(self._process.pid, signal.SIGKILL)
                except ProcessLookupError:
                    pass
                await self._process.wait()
        if self._master_fd is not None:
            os.close(self._master_fd)
            self._master_fd = None
        self._remove_script()
        self.state = TerminalState.DEAD
        self._done.set()
        self._changed.set()
        logger.info(f"Terminal session {self.id} closed")

    # --- output capture ----------------------------------------------------

    def _on_readable(self) -> None:
        try:
            data = os.read(self._master_fd, 65536)
        except BlockingIOError:
            return
        except OSError:
            # EIO: every process holding the pty has exited
            data = b""
        if not data:
            self._on_eof()
            return
        self._feed(self._decoder.decode(data))

    def _on_eof(self) -> None:
        loop = asyncio.get_running_loop()
        loop.remove_reader(self._master_fd)
        if self._partial:
            self._emit(self._partial)
            self._partial = ""
        self.state = TerminalState.DEAD
        logger.warning(f"Shell of terminal session {self.id} exited")
        self._done.set()
        self._changed.set()

    def _feed(self, text: str) -> None:
        lines = (self._partial + text).split("\n")
        self._partial = lines.pop()
        for line in lines:
            self._handle_line(line)
        # Hold back only what could be the start of a marker line
        keep = self._marker_hold(self._partial)
        if keep < len(self._partial):
            self._emit(self._partial[: len(self._partial) - keep])
            self._partial = self._partial[len(self._partial) - keep :]
        self._changed.set()

    def _marker_hold(self, partial: str) -> int:
        idx = partial.find(self._marker_prefix)
        if idx >= 0:
            return len(partial) - idx
        for k in range(min(len(partial), len(self._marker_prefix)), 0, -1):
            if self._marker_prefix.startswith(partial[-k:]):
                return k
        return 0

    def _handle_line(self, line: str) -> None:
        line = line.rstrip("\r")
        m = self._marker_re.search(line)
        if m is None:
            self._emit(line + "\n")
            return
        if m.start() > 0:
            self._emit(line[: m.start()])
        self.last_exit_code = int(m.group(1))
        self.cwd = Path(m.group(2))
        if self.state == TerminalState.RUNNING:
            self.state = TerminalState.EXITED
        self._done.set()

    def _emit(self, text: str) -> None:
        if not text:
            return
        self._pending.append(text)
        self._pending_len += len(text)
        if self._pending_len > self.tail_chars:
            joined = "".join(self._pending)
            kept = _TRUNCATION_NOTE + joined[-self.tail_chars :]
            self._pending = [kept]
            self._pending_len = len(kept)
        self._tail = (self._tail + text)[-self.tail_chars :]

    def _take_output(self) -> str:
        raw = "".join(self._pending)
        self._pending = []
        self._pending_len = 0
        return clean_output(raw)

    def _write(self, text: str) -> None:
        if self._master_fd is None:
            raise SessionBusy(f"Terminal session {self.id} is not running")
        data = text.encode("utf-8")
        while data:
            try:
                written = os.write(self._master_fd, data)
            except BlockingIOError:
                continue
            except OSError as e:
                raise IoError(f"Failed to write to terminal session {self.id}: {e}") from e
            data = data[written:]

    async def _wait(self, timeout: float, settle: float | None = None) -> bool:
        """Wait until the running command finishes.

        With ``settle``, also return once output has arrived and then stayed
        quiet for that long. Returns whether the command finished.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        seen_output = False
        while not self._done.is_set():
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            self._changed.clear()
            wait_for = remaining if settle is None or not seen_output else min(remaining, settle)
            try:
                await asyncio.wait_for(self._changed.wait(), timeout=wait_for)
                seen_output = seen_output or bool(self._pending)
            except asyncio.TimeoutError:
                if settle is not None and seen_output:
                    return self._done.is_set()
        return True

    # --- operations --------------------------------------------------------

    def _ensure_alive(self) -> None:
        if self.state == TerminalState.DEAD:
            raise SessionBusy(f"The shell of terminal session {self.id} has exited; create a new session")

    async def execute(self, command: str, timeout: float, settle: float | None = None) -> str:
        """Run a command and return its sanitized output.

        On timeout the command keeps running and the session stays Running.
        """
        async with self._lock:
            self._ensure_alive()
            if self.state == TerminalState.RUNNING:
                raise SessionBusy(
                    f"A command is still running in terminal session {self.id}. "
                    "Check its status, send input, or interrupt it with CtrlC."
                )
            self._remove_script()
            command = command.strip("\n")
            if any(len(line.encode("utf-8")) >= _MAX_TYPED_LINE for line in command.split("\n")):
                command = self._write_script(command)
            elif "\n" in command:
                # A group is read completely before it runs, so the marker fires once
                command = "{\n" + command + "\n}"
            self._take_output()
            self._done.clear()
            self.state = TerminalState.RUNNING
            logger.debug(f"[{self.id}] executing: {command}")
            self._write(command + "\n")
            finished = await self._wait(timeout, settle)
            logger.debug(f"[{self.id}] finished={finished} state={self.state.value}")
            return self._take_output()

    def _write_script(self, command: str) -> str:
        """Store a long command in a temp script and return the line that sources it."""
        try:
            fd, name = tempfile.mkstemp(prefix=f"wsmcp-{self.id}-", suffix=".sh")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(command + "\n")
        except OSError as e:
            raise IoError(f"Failed to stage command for terminal session {self.id}: {e}") from e
        self._script = Path(name)
        return f". {shlex.quote(name)}"

    def _remove_script(self) -> None:
        if self._script is not None:
            self._script.unlink(missing_ok=True)
            self._script = None

    async def send_input(self, text: str, timeout: float, settle: float) -> str:
        async with self._lock:
            self._ensure_alive()
            if self.state != TerminalState.RUNNING:
                raise NoActiveProcess(
                    f"No active process in terminal session {self.id} to receive input"
                )
            self._write(text)
            await self._wait(timeout, settle)
            return self._take_output()

    async def send_special_keys(self, keys: list[SpecialKey], timeout: float, settle: float) -> str:
        return await self.send_input("".join(SPECIAL_KEY_SEQUENCES[k] for k in keys), timeout, settle)

    async def send_ascii(self, codes: list[int], timeout: float, settle: float) -> str:
        return await self.send_input("".join(chr(c) for c in codes), timeout, settle)

    def read_pending(self) -> str:
        """Output produced since the last delivery, without waiting."""
        return self._take_output()

    def status(self) -> TerminalStatus:
        return TerminalStatus(
            session_id=self.id,
            state=self.state,
            cwd=str(self.cwd),
            output_tail=clean_output(self._tail),
            last_exit_code=self.last_exit_code,
            running=self.state == TerminalState.RUNNING,
            background_jobs=list(self.background_jobs),
        )


class TerminalSessionManager:
    """Table of named terminal sessions."""

    def __init__(
        self,
        shell: str = "bash",
        tail_chars: int = 20000,
        command_timeout: float = 30.0,
        settle: float = 0.5,
        multiplexer: ScreenMultiplexer | None = None,
    ):
        self.shell = shell
        self.tail_chars = tail_chars
        self.command_timeout = command_timeout
        self.settle = settle
        self.multiplexer = multiplexer or ScreenMultiplexer(shell=shell)
        self._sessions: dict[str, TerminalSession] = {}

    @property
    def interactive_timeout(self) -> float:
        return min(self.command_timeout, self.settle * 4)

    async def create(self, cwd: Path) -> str:
        session_id = uuid.uuid4().hex[:12]
        session = TerminalSession(session_id, cwd, shell=self.shell, tail_chars=self.tail_chars)
        await session.start()
        self._sessions[session_id] = session
        return session_id

    def get(self, session_id: str) -> TerminalSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFound(f"Terminal session not found: {session_id}")
        return session

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    async def execute(
        self, session_id: str, command: str, timeout: float | None = None, interactive: bool = False
    ) -> str:
        session = self.get(session_id)
        if interactive:
            return await session.execute(
                command, timeout if timeout is not None else self.interactive_timeout, settle=self.settle
            )
        return await session.execute(command, timeout if timeout is not None else self.command_timeout)

    async def send_text(self, session_id: str, text: str, timeout: float | None = None) -> str:
        return await self.get(session_id).send_input(
            text, timeout if timeout is not None else self.interactive_timeout, self.settle
        )

    async def send_special_keys(
        self, session_id: str, keys: list[SpecialKey], timeout: float | None = None
    ) -> str:
        return await self.get(session_id).send_special_keys(
            keys, timeout if timeout is not None else self.interactive_timeout, self.settle
        )

    async def send_ascii(self, session_id: str, codes: list[int], timeout: float | None = None) -> str:
        return await self.get(session_id).send_ascii(
            codes, timeout if timeout is not None else self.interactive_timeout, self.settle
        )

    async def wait(self, session_id: str, timeout: float) -> str:
        """Give a running command up to ``timeout`` more seconds, then return new output."""
        session = self.get(session_id)
        async with session._lock:
            if session.state == TerminalState.RUNNING:
                await session._wait(timeout)
            return session.read_pending()

    async def start_background(self, session_id: str, command: str) -> str:
        session = self.get(session_id)
        job_id = await self.multiplexer.start(command, session.cwd, env=session._child_env())
        session.background_jobs.append(job_id)
        return job_id

    def status(self, session_id: str) -> TerminalStatus:
        return self.get(session_id).status()

    async def close(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise NotFound(f"Terminal session not found: {session_id}")
        # Background jobs live in their own screen sessions and survive this
        await session.close()

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)
