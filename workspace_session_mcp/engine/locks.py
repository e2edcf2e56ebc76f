import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import AsyncIterator

from workspace_session_mcp.tools.base import LockTimeout

logger = logging.getLogger(__name__)


class LockStatus(str, Enum):
    UNLOCKED = "unlocked"
    READ_LOCKED = "read_locked"
    WRITE_LOCKED = "write_locked"


@dataclass
class _LockEntry:
    readers: int = 0
    writer: bool = False
    last_operation: float = 0.0

    @property
    def status(self) -> LockStatus:
        if self.writer:
            return LockStatus.WRITE_LOCKED
        if self.readers:
            return LockStatus.READ_LOCKED
        return LockStatus.UNLOCKED


class FileLockRegistry:
    """
    Per-path read/write locks with a minimum delay between operations.

    Readers share a path; a writer needs it to itself. Every acquisition waits
    out the cooldown since the previous operation on the same path, and gives
    up with LockTimeout once the timeout is spent.
    """

    def __init__(self, timeout: float = 5.0, cooldown: float = 0.5):
        self.timeout = timeout
        self.cooldown = cooldown
        self._entries: dict[Path, _LockEntry] = {}
        self._condition = asyncio.Condition()

    def status(self, path: Path) -> LockStatus:
        entry = self._entries.get(path)
        return entry.status if entry else LockStatus.UNLOCKED

    def is_locked(self, path: Path) -> bool:
        return self.status(path) != LockStatus.UNLOCKED

    def is_write_locked(self, path: Path) -> bool:
        return self.status(path) == LockStatus.WRITE_LOCKED

    async def _acquire(self, path: Path, write: bool) -> None:
        deadline = time.monotonic() + self.timeout
        kind = "write" if write else "read"
        async with self._condition:
            entry = self._entries.setdefault(path, _LockEntry())
            while True:
                now = time.monotonic()
                blocked = entry.writer or (write and entry.readers > 0)
                cooldown_left = entry.last_operation + self.cooldown - now
                if not blocked and cooldown_left <= 0:
                    break
                remaining = deadline - now
                if remaining <= 0:
                    raise LockTimeout(
                        f"Timed out after {self.timeout:.1f}s waiting for a {kind} lock on {path} "
                        f"(currently {entry.status.value})"
                    )
                wait_for = remaining if blocked else min(remaining, cooldown_left)
                try:
                    await asyncio.wait_for(self._condition.wait(), timeout=wait_for)
                except asyncio.TimeoutError:
                    pass
                # The entry may have been dropped by cleanup while waiting
                entry = self._entries.setdefault(path, entry)

            if write:
                entry.writer = True
            else:
                entry.readers += 1
            entry.last_operation = time.monotonic()
        logger.debug(f"Acquired {kind} lock on {path}")

    async def _release(self, path: Path, write: bool) -> None:
        async with self._condition:
            entry = self._entries.get(path)
            if entry is not None:
                if write:
                    entry.writer = False
                elif entry.readers > 0:
                    entry.readers -= 1
                entry.last_operation = time.monotonic()
            self._condition.notify_all()
        logger.debug(f"Released {'write' if write else 'read'} lock on {path}")

    async def acquire_read(self, path: Path) -> None:
        await self._acquire(path, write=False)

    async def acquire_write(self, path: Path) -> None:
        await self._acquire(path, write=True)

    async def release_read(self, path: Path) -> None:
        await self._release(path, write=False)

    async def release_write(self, path: Path) -> None:
        await self._release(path, write=True)

    @asynccontextmanager
    async def reading(self, path: Path) -> AsyncIterator[None]:
        await self.acquire_read(path)
        try:
            yield
        finally:
            await self.release_read(path)

    @asynccontextmanager
    async def writing(self, path: Path) -> AsyncIterator[None]:
        await self.acquire_write(path)
        try:
            yield
        finally:
            await self.release_write(path)

    def cleanup_expired(self) -> int:
        """Drop idle entries whose last operation is older than twice the timeout."""
        cutoff = time.monotonic() - 2 * self.timeout
        expired = [
            p for p, e in self._entries.items()
            if e.status == LockStatus.UNLOCKED and e.last_operation < cutoff
        ]
        for path in expired:
            del self._entries[path]
        if expired:
            logger.debug(f"Dropped {len(expired)} idle lock entries")
        return len(expired)
