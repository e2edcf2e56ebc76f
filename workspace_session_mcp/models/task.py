import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from workspace_session_mcp.models.knowledge import FileKnowledge
from workspace_session_mcp.models.session import Mode


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class TaskRecord(BaseModel):
    """A resumable snapshot of a workspace session."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    workspace_root: str
    description: str = ""
    mode: Mode = Field(default_factory=Mode.unrestricted)
    file_knowledge: dict[str, FileKnowledge] = Field(default_factory=dict)
    status: TaskStatus = TaskStatus.ACTIVE
    relevant_files: list[str] = Field(default_factory=list)

    def touch(self) -> None:
        self.updated_at = _now()

    def complete(self) -> None:
        self.status = TaskStatus.COMPLETED
        self.touch()

    def pause(self) -> None:
        self.status = TaskStatus.PAUSED
        self.touch()

    def resume(self) -> None:
        self.status = TaskStatus.ACTIVE
        self.touch()

    def summary(self) -> dict[str, object]:
        return {
            "id": self.id,
            "description": self.description,
            "status": self.status.value,
            "workspace_root": self.workspace_root,
            "updated_at": self.updated_at.isoformat(),
        }


def format_task_description(task: TaskRecord) -> str:
    """Render a task as markdown for the orchestrator."""
    lines = [
        f"# Task {task.id}",
        "",
        f"**Status:** {task.status.value}",
        f"**Created:** {task.created_at:%Y-%m-%d %H:%M:%S}",
        f"**Updated:** {task.updated_at:%Y-%m-%d %H:%M:%S}",
        f"**Workspace:** {task.workspace_root}",
        f"**Mode:** {task.mode.describe()}",
        "",
        "## Description",
        "",
        task.description or "_No description_",
    ]
    if task.relevant_files:
        lines += ["", "## Relevant Files", ""]
        lines += [f"- {f}" for f in task.relevant_files]
    if task.file_knowledge:
        lines += ["", "## File Activity", "", "| File | Read % | Read Operations |", "|---|---|---|"]
        for path, knowledge in sorted(task.file_knowledge.items()):
            lines.append(
                f"| {path} | {knowledge.percentage_read():.1f}% | {knowledge.read_operations} |"
            )
    return "\n".join(lines) + "\n"
