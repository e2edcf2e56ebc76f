import logging
from pathlib import Path

from workspace_session_mcp.engine.documents import JsonDocumentStore
from workspace_session_mcp.models.task import TaskRecord

logger = logging.getLogger(__name__)


class TaskStore:
    """Resumable task records in ``<data-dir>/<app>/tasks/<id>.json``."""

    def __init__(self, directory: Path):
        self._documents = JsonDocumentStore(directory, TaskRecord, "task")

    @property
    def directory(self) -> Path:
        return self._documents.directory

    def save(self, task: TaskRecord) -> TaskRecord:
        task.touch()
        self._documents.save(task.id, task)
        logger.info(f"Saved task {task.id} ({task.status.value})")
        return task

    def load(self, task_id: str) -> TaskRecord:
        return self._documents.load(task_id)

    def list_tasks(self) -> list[TaskRecord]:
        """All tasks, most recently updated first."""
        return sorted(self._documents.load_all(), key=lambda t: t.updated_at, reverse=True)

    def delete(self, task_id: str) -> None:
        self._documents.delete(task_id)
        logger.info(f"Deleted task {task_id}")
