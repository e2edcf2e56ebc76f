import logging
from pathlib import Path

from workspace_session_mcp.engine.documents import JsonDocumentStore
from workspace_session_mcp.models.memo import Memo

logger = logging.getLogger(__name__)


class MemoStore:
    """Named notes, one JSON document per name.

    Used for workspace memos (``<root>/<hidden>/memos``) and for user
    memories shared across workspaces (``<data-dir>/<app>/memories``).
    """

    def __init__(self, directory: Path):
        self._documents = JsonDocumentStore(directory, Memo, "memo")

    def save(self, name: str, content: str, tags: list[str] | None = None) -> Memo:
        memo = Memo(name=name, content=content, tags=sorted(set(tags or [])))
        self._documents.save(name, memo)
        return memo

    def load(self, name: str) -> Memo:
        return self._documents.load(name)

    def list_memos(self, tags: list[str] | None = None) -> list[Memo]:
        """Memos sorted by name; with ``tags``, only memos carrying all of them."""
        memos = self._documents.load_all()
        if tags:
            wanted = set(tags)
            memos = [m for m in memos if wanted.issubset(m.tags)]
        return sorted(memos, key=lambda m: m.name)

    def delete(self, name: str) -> None:
        self._documents.delete(name)
