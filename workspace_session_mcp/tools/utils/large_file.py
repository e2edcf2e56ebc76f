"""Line-streaming edits for files too large to hold comfortably in memory."""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from workspace_session_mcp.tools.base import InvalidArguments, IoError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineEdit:
    """Replace lines ``start..end`` (1-based, inclusive) with ``new_lines``.

    ``end == start - 1`` inserts before ``start`` without removing anything.
    """

    start: int
    end: int
    new_lines: tuple[str, ...] = ()


def _check_overlaps(edits: list[LineEdit]) -> None:
    last_end = 0
    for edit in edits:
        if edit.start < 1 or edit.end < edit.start - 1:
            raise InvalidArguments(f"Invalid line edit {edit.start}-{edit.end}")
        if edit.start <= last_end:
            raise InvalidArguments(f"Overlapping line edits at line {edit.start}")
        last_end = max(last_end, edit.end)


def stream_edit(path: Path, edits: list[LineEdit]) -> int:
    """Apply line edits by streaming the file into a temp sibling and renaming it.

    Returns the number of bytes written.
    """
    ordered = sorted(edits, key=lambda e: (e.start, e.end))
    _check_overlaps(ordered)
    pending = list(ordered)
    written = 0

    try:
        mode = path.stat().st_mode & 0o7777
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as out, open(path, "rb") as src:
                line_no = 0
                skip_until = 0
                last_raw = b"\n"
                for raw in src:
                    line_no += 1
                    last_raw = raw
                    while pending and pending[0].start == line_no:
                        edit = pending.pop(0)
                        for new_line in edit.new_lines:
                            data = new_line.encode("utf-8")
                            out.write(data)
                            written += len(data)
                        skip_until = max(skip_until, edit.end)
                    if line_no <= skip_until:
                        continue
                    out.write(raw)
                    written += len(raw)
                # Edits past the end of the file append
                for edit in pending:
                    if edit.start > line_no + 1:
                        raise InvalidArguments(
                            f"Line {edit.start} is past the end of the file ({line_no} lines)"
                        )
                    if edit.new_lines and not last_raw.endswith(b"\n"):
                        out.write(b"\n")
                        written += 1
                        last_raw = b"\n"
                    for new_line in edit.new_lines:
                        data = new_line.encode("utf-8")
                        out.write(data)
                        written += len(data)
                if skip_until > line_no:
                    raise InvalidArguments(
                        f"Line {skip_until} is past the end of the file ({line_no} lines)"
                    )
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise IoError(f"Failed to stream edits into {path}: {e}") from e

    logger.debug(f"Streamed {len(edits)} line edits into {path} ({written} bytes)")
    return written
