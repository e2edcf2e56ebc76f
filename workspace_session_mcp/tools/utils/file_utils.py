import hashlib
import logging
import os
import tempfile
from pathlib import Path

from workspace_session_mcp.tools.base import IoError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_file(path: Path) -> str:
    """SHA-256 of the file's bytes, read in chunks."""
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            while chunk := f.read(_CHUNK_SIZE):
                digest.update(chunk)
    except OSError as e:
        raise IoError(f"Failed to fingerprint {path}: {e}") from e
    return digest.hexdigest()


def count_lines(text: str) -> int:
    """Number of lines; a trailing newline does not start a new line."""
    if not text:
        return 0
    return text.count("\n") + (0 if text.endswith("\n") else 1)


def split_lines(text: str) -> list[str]:
    """Split on newlines keeping the line endings, consistent with count_lines."""
    if not text:
        return []
    lines = text.split("\n")
    result = [line + "\n" for line in lines[:-1]]
    if lines[-1]:
        result.append(lines[-1])
    return result


def count_file_lines(path: Path) -> int:
    lines = 0
    last = b""
    try:
        with open(path, "rb") as f:
            while chunk := f.read(_CHUNK_SIZE):
                lines += chunk.count(b"\n")
                last = chunk
    except OSError as e:
        raise IoError(f"Failed to read {path}: {e}") from e
    if last and not last.endswith(b"\n"):
        lines += 1
    return lines


def decode_text(data: bytes, path: Path) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise IoError(f"{path} is not a UTF-8 text file: {e}") from e


def read_text(path: Path) -> str:
    """Read a file as UTF-8 keeping its line endings."""
    try:
        data = path.read_bytes()
    except OSError as e:
        raise IoError(f"Failed to read {path}: {e}") from e
    return decode_text(data, path)


def atomic_write(path: Path, data: bytes | str) -> int:
    """Write to a temp sibling and rename it over the target.

    Returns the number of bytes written.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        mode = path.stat().st_mode & 0o7777 if path.exists() else None
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            if mode is not None:
                os.chmod(tmp_name, mode)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise IoError(f"Failed to write {path}: {e}") from e
    logger.debug(f"Wrote {len(data)} bytes to {path}")
    return len(data)


def split_path_range(path_str: str) -> tuple[str, int | None, int | None]:
    """Split ``file.py:10-20``, ``file.py:10-`` or ``file.py:-20`` into parts.

    A suffix that is not a line range is treated as part of the path.
    """
    base, sep, suffix = path_str.rpartition(":")
    if not sep or "-" not in suffix:
        return path_str, None, None
    start_str, _, end_str = suffix.partition("-")
    if not (start_str.isdigit() or start_str == "") or not (end_str.isdigit() or end_str == ""):
        return path_str, None, None
    if not start_str and not end_str:
        return path_str, None, None
    start = int(start_str) if start_str else None
    end = int(end_str) if end_str else None
    return base, start, end
