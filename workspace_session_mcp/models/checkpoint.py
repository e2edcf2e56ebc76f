import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class FileChange(BaseModel):
    """Before/after content of one file, relative to the workspace root."""

    relative_path: str
    content_before: str
    content_after: str
    existed_before: bool = True


class Checkpoint(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    sequence: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    description: str
    changes: list[FileChange] = Field(default_factory=list)

    def summary(self) -> dict[str, object]:
        return {
            "id": self.id,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
            "files": [c.relative_path for c in self.changes],
        }
