import logging
import re
from pathlib import Path
from typing import Generic, TypeVar

from filelock import FileLock, Timeout
from pydantic import BaseModel, ValidationError

from workspace_session_mcp.tools.base import InvalidArguments, IoError, LockTimeout, NotFound
from workspace_session_mcp.tools.utils.file_utils import atomic_write

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


def validate_document_name(name: str) -> str:
    if not _NAME_RE.match(name) or ".." in name:
        raise InvalidArguments(
            f"Invalid name '{name}': use letters, digits, '.', '_' or '-' (max 128 chars)"
        )
    return name


class JsonDocumentStore(Generic[ModelT]):
    """
    A directory of ``<name>.json`` documents, one pydantic model each.

    Writes hold a lock file in the directory so several server processes can
    share it.
    """

    def __init__(self, directory: Path, model: type[ModelT], label: str, lock_timeout: float = 5.0):
        self.directory = directory
        self.model = model
        self.label = label
        self.lock_timeout = lock_timeout

    def _path(self, name: str) -> Path:
        return self.directory / f"{validate_document_name(name)}.json"

    def _lock(self) -> FileLock:
        self.directory.mkdir(parents=True, exist_ok=True)
        return FileLock(str(self.directory / ".store.lock"), timeout=self.lock_timeout)

    def save(self, name: str, document: ModelT) -> Path:
        path = self._path(name)
        try:
            with self._lock():
                atomic_write(path, document.model_dump_json(indent=2))
        except Timeout as e:
            raise LockTimeout(f"Timed out waiting for the {self.label} store lock") from e
        except OSError as e:
            raise IoError(f"Failed to save {self.label} '{name}': {e}") from e
        logger.debug(f"Saved {self.label} '{name}' to {path}")
        return path

    def load(self, name: str) -> ModelT:
        path = self._path(name)
        if not path.is_file():
            raise NotFound(f"{self.label.capitalize()} not found: {name}")
        try:
            return self.model.model_validate_json(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise IoError(f"Failed to read {self.label} '{name}': {e}") from e
        except ValidationError as e:
            raise IoError(f"Corrupted {self.label} '{name}': {e}") from e

    def load_all(self) -> list[ModelT]:
        """Every readable document; unreadable ones are logged and skipped."""
        if not self.directory.is_dir():
            return []
        documents = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                documents.append(self.model.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValidationError) as e:
                logger.warning(f"Skipping unreadable {self.label} file {path.name}: {e}")
        return documents

    def delete(self, name: str) -> None:
        path = self._path(name)
        if not path.is_file():
            raise NotFound(f"{self.label.capitalize()} not found: {name}")
        try:
            with self._lock():
                path.unlink()
        except Timeout as e:
            raise LockTimeout(f"Timed out waiting for the {self.label} store lock") from e
        except OSError as e:
            raise IoError(f"Failed to delete {self.label} '{name}': {e}") from e
        logger.debug(f"Deleted {self.label} '{name}'")
