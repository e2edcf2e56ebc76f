import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from workspace_session_mcp.models.checkpoint import Checkpoint, FileChange
from workspace_session_mcp.tools.base import (
    IoError,
    NotFound,
    PartialRestore,
    PolicyDenied,
)
from workspace_session_mcp.tools.utils.file_utils import atomic_write

logger = logging.getLogger(__name__)


class CheckpointStore:
    """
    Append-only log of before/after file snapshots under ``<root>/<hidden>/checkpoints``.

    One JSON document per checkpoint; the in-memory index is rebuilt from disk
    when the store is created.
    """

    def __init__(self, root: Path, directory: Path):
        self.root = root
        self.directory = directory
        self._index: dict[str, Checkpoint] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if not self.directory.is_dir():
            return
        for doc in sorted(self.directory.glob("*.json")):
            try:
                checkpoint = Checkpoint.model_validate_json(doc.read_text(encoding="utf-8"))
            except (OSError, ValidationError, ValueError) as e:
                logger.warning(f"Skipping unreadable checkpoint {doc.name}: {e}")
                continue
            self._index[checkpoint.id] = checkpoint
        logger.debug(f"Loaded {len(self._index)} checkpoints from {self.directory}")

    def _ordered(self) -> list[Checkpoint]:
        return sorted(self._index.values(), key=lambda c: (c.sequence, c.timestamp))

    def create(self, description: str, changes: list[FileChange]) -> str:
        with self._lock:
            ordered = self._ordered()
            sequence = ordered[-1].sequence + 1 if ordered else 1
            checkpoint = Checkpoint(description=description, changes=changes, sequence=sequence)
            atomic_write(
                self.directory / f"{checkpoint.id}.json",
                checkpoint.model_dump_json(indent=2),
            )
            self._index[checkpoint.id] = checkpoint
        logger.info(f"Created checkpoint {checkpoint.id}: {description} ({len(changes)} files)")
        return checkpoint.id

    def get(self, checkpoint_id: str) -> Checkpoint:
        checkpoint = self._index.get(checkpoint_id)
        if checkpoint is None:
            raise NotFound(f"Checkpoint not found: {checkpoint_id}")
        return checkpoint

    def list_checkpoints(self) -> list[Checkpoint]:
        return self._ordered()

    def latest(self) -> Checkpoint | None:
        ordered = self._ordered()
        return ordered[-1] if ordered else None

    def restore(self, checkpoint_id: str) -> list[str]:
        """Write every change's content_before back, in recorded order.

        Files that did not exist before the change are removed.
        """
        checkpoint = self.get(checkpoint_id)
        restored: list[str] = []
        failed: list[tuple[str, str]] = []
        for change in checkpoint.changes:
            target = (self.root / change.relative_path).resolve()
            if not target.is_relative_to(self.root):
                failed.append((change.relative_path, "path outside workspace root"))
                continue
            try:
                if change.existed_before:
                    atomic_write(target, change.content_before)
                else:
                    target.unlink(missing_ok=True)
                restored.append(change.relative_path)
            except (IoError, OSError) as e:
                logger.error(f"Failed to restore {change.relative_path}: {e}")
                failed.append((change.relative_path, str(e)))
        if failed:
            raise PartialRestore(
                f"Checkpoint {checkpoint_id} restored {len(restored)} of "
                f"{len(checkpoint.changes)} files",
                restored=restored,
                failed=failed,
            )
        logger.info(f"Restored checkpoint {checkpoint_id} ({len(restored)} files)")
        return restored

    def delete(self, checkpoint_id: str) -> None:
        """Delete a checkpoint. Only the most recent one may be deleted."""
        with self._lock:
            checkpoint = self.get(checkpoint_id)
            latest = self.latest()
            if latest is not None and latest.id != checkpoint.id:
                raise PolicyDenied(
                    f"Only the most recent checkpoint ({latest.id}) can be deleted",
                    reason="checkpoint history is append-only",
                )
            try:
                (self.directory / f"{checkpoint_id}.json").unlink(missing_ok=True)
            except OSError as e:
                raise IoError(f"Failed to delete checkpoint {checkpoint_id}: {e}") from e
            del self._index[checkpoint_id]
        logger.info(f"Deleted checkpoint {checkpoint_id}")
