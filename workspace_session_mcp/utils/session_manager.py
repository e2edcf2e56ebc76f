import logging

from workspace_session_mcp.engine.locks import FileLockRegistry
from workspace_session_mcp.engine.terminal import TerminalSessionManager
from workspace_session_mcp.engine.workspace import WorkspaceSession
from workspace_session_mcp.utils.config import ServiceConfig

logger = logging.getLogger(__name__)


class SessionManager:
    """Manages workspace sessions for all orchestrator connections."""

    def __init__(
        self,
        config: ServiceConfig,
        locks: FileLockRegistry,
        terminals: TerminalSessionManager,
    ) -> None:
        self.config = config
        self.locks = locks
        self.terminals = terminals
        # Simple dict as an in-process session storage.
        self._storage: dict[str, WorkspaceSession] = {}

    def get_session(self, session_id: str = "default") -> WorkspaceSession:
        """Returns or creates the workspace session for a given session id."""
        self.locks.cleanup_expired()
        if session_id not in self._storage:
            logger.info(f"Creating workspace session '{session_id}'")
            self._storage[session_id] = WorkspaceSession(
                self.config, locks=self.locks, terminals=self.terminals
            )
        return self._storage[session_id]

    async def close_all(self) -> None:
        for session in self._storage.values():
            await session.close()
        self._storage.clear()
        await self.terminals.close_all()
