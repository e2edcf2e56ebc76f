import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock

from workspace_session_mcp.models.knowledge import FileKnowledge, LineRange
from workspace_session_mcp.tools.utils.file_utils import count_file_lines, hash_file

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    knowledge: FileKnowledge
    lock: Lock = field(default_factory=Lock)


class FileKnowledgeTracker:
    """
    Records which line ranges of each file have been observed and gates writes.

    Entries are keyed by canonical path. Creation uses a double-checked lock so
    that only one entry is ever created per path; every mutation holds the
    entry's own lock, so observations of different paths run in parallel.
    """

    _entries: dict[Path, _Entry]
    _lock: Lock

    def __init__(self, read_threshold: float = 99.0):
        self.read_threshold = read_threshold
        self._entries = {}
        self._lock = Lock()

    def _get_or_create(self, path: Path) -> _Entry:
        # First, check without a lock for performance
        entry = self._entries.get(path)
        if entry is None:
            with self._lock:
                # Double-check if another thread created it while we were waiting for the lock
                entry = self._entries.get(path)
                if entry is None:
                    logger.debug(f"Creating knowledge entry for: {path}")
                    entry = _Entry(FileKnowledge(path=str(path), exists=False))
                    self._entries[path] = entry
        return entry

    def get(self, path: Path) -> FileKnowledge | None:
        entry = self._entries.get(path)
        if entry is None:
            return None
        with entry.lock:
            return entry.knowledge.model_copy(deep=True)

    def observe(self, path: Path, start: int | None = None, end: int | None = None) -> FileKnowledge:
        """Record that lines start..end (default: the whole file) were read."""
        entry = self._get_or_create(path)
        with entry.lock:
            knowledge = entry.knowledge
            if not path.is_file():
                knowledge.exists = False
                knowledge.total_lines = 0
                knowledge.fingerprint = ""
                knowledge.ranges = []
                knowledge.modified = False
                return knowledge.model_copy(deep=True)

            fingerprint = hash_file(path)
            total = count_file_lines(path)
            if knowledge.modified or fingerprint != knowledge.fingerprint:
                if knowledge.fingerprint and fingerprint != knowledge.fingerprint:
                    logger.debug(f"Fingerprint of {path} changed; previous ranges discarded")
                # Ranges recorded against other content say nothing about this content
                knowledge.ranges = []
                knowledge.modified = False
            knowledge.exists = True
            knowledge.fingerprint = fingerprint
            knowledge.total_lines = total
            knowledge.add_range(start or 1, total if end is None else end)
            knowledge.read_operations += 1
            knowledge.last_observed = datetime.now(timezone.utc)
            logger.debug(
                f"Observed {path} [{start or 1}, {end or total}] -> "
                f"{knowledge.percentage_read():.1f}% read"
            )
            return knowledge.model_copy(deep=True)

    def record_write(self, path: Path, fingerprint: str, total_lines: int) -> None:
        """After a successful write the whole file is known and unmodified."""
        entry = self._get_or_create(path)
        with entry.lock:
            knowledge = entry.knowledge
            knowledge.exists = True
            knowledge.fingerprint = fingerprint
            knowledge.total_lines = total_lines
            knowledge.ranges = [(1, total_lines)] if total_lines else []
            knowledge.modified = False
            knowledge.last_observed = datetime.now(timezone.utc)

    def mark_modified(self, path: Path) -> None:
        entry = self._entries.get(path)
        if entry is None:
            return
        with entry.lock:
            entry.knowledge.invalidate()
        logger.debug(f"Marked {path} as modified")

    def refresh(self, path: Path, clear_modified: bool = True) -> FileKnowledge | None:
        """Re-hash a tracked file; a changed hash marks it modified.

        With ``clear_modified`` an unchanged hash clears the modified flag.
        Entries of files that no longer exist are removed.
        """
        entry = self._entries.get(path)
        if entry is None:
            return None
        if not path.is_file():
            self.purge(path)
            return None
        fingerprint = hash_file(path)
        with entry.lock:
            knowledge = entry.knowledge
            if fingerprint != knowledge.fingerprint:
                knowledge.invalidate()
                knowledge.fingerprint = fingerprint
                knowledge.total_lines = count_file_lines(path)
            elif clear_modified and knowledge.modified and knowledge.ranges:
                knowledge.modified = False
            return knowledge.model_copy(deep=True)

    def unread_ranges(self, path: Path) -> list[LineRange]:
        entry = self._entries.get(path)
        if entry is None:
            if not path.is_file():
                return []
            total = count_file_lines(path)
            return [(1, total)] if total else []
        with entry.lock:
            return entry.knowledge.unread_ranges()

    def may_write(self, path: Path) -> bool:
        """A write is allowed to a missing file, or to a file read far enough and unchanged."""
        if not path.exists():
            return True
        entry = self._entries.get(path)
        if entry is None:
            return False
        fingerprint = hash_file(path)
        with entry.lock:
            knowledge = entry.knowledge
            if fingerprint != knowledge.fingerprint:
                logger.debug(f"{path} changed since it was last observed")
                knowledge.invalidate()
                knowledge.fingerprint = fingerprint
                knowledge.total_lines = count_file_lines(path)
                return False
            return (
                not knowledge.modified
                and knowledge.percentage_read() >= self.read_threshold
            )

    def purge(self, path: Path) -> None:
        with self._lock:
            self._entries.pop(path, None)

    def tracked_paths(self) -> list[Path]:
        return list(self._entries)

    def snapshot(self) -> dict[str, FileKnowledge]:
        result = {}
        for path in self.tracked_paths():
            knowledge = self.get(path)
            if knowledge is not None:
                result[str(path)] = knowledge
        return result

    def load_snapshot(self, snapshot: dict[str, FileKnowledge]) -> None:
        with self._lock:
            self._entries = {
                Path(p): _Entry(k.model_copy(deep=True)) for p, k in snapshot.items()
            }
