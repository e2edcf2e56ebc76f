from datetime import datetime, timezone

from pydantic import BaseModel, Field


class Memo(BaseModel):
    name: str
    content: str
    tags: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
