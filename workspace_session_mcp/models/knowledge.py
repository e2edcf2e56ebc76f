from datetime import datetime, timezone

from pydantic import BaseModel, Field

LineRange = tuple[int, int]


def merge_range(ranges: list[LineRange], new: LineRange) -> list[LineRange]:
    """Insert an inclusive range into a normalized range list.

    Ranges stay sorted by start, non-overlapping, with adjacent ranges merged.
    """
    start, end = new
    if start > end:
        raise ValueError(f"Invalid line range {start}-{end}: the end is before the start")
    result: list[LineRange] = []
    i = 0
    # Ranges that end before the new one (and are not adjacent) stay as they are.
    while i < len(ranges) and ranges[i][1] < start - 1:
        result.append(ranges[i])
        i += 1
    # Everything up to the first range with start > end + 1 is absorbed.
    while i < len(ranges) and ranges[i][0] <= end + 1:
        start = min(start, ranges[i][0])
        end = max(end, ranges[i][1])
        i += 1
    result.append((start, end))
    result.extend(ranges[i:])
    return result


class FileKnowledge(BaseModel):
    """What is known about one file: observed ranges and its fingerprint."""

    path: str
    exists: bool = True
    total_lines: int = 0
    fingerprint: str = ""
    ranges: list[LineRange] = Field(default_factory=list)
    modified: bool = False
    read_operations: int = 0
    last_observed: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def add_range(self, start: int, end: int) -> None:
        if self.total_lines == 0:
            return
        start = max(1, min(start, self.total_lines))
        end = max(1, min(end, self.total_lines))
        self.ranges = merge_range(self.ranges, (start, end))

    def lines_read(self) -> int:
        return sum(e - s + 1 for s, e in self.ranges)

    def percentage_read(self) -> float:
        if self.total_lines == 0:
            return 100.0
        return min(100.0, self.lines_read() * 100.0 / self.total_lines)

    def unread_ranges(self) -> list[LineRange]:
        if self.total_lines == 0:
            return []
        if self.modified:
            return [(1, self.total_lines)]
        gaps: list[LineRange] = []
        cursor = 1
        for s, e in self.ranges:
            if s > cursor:
                gaps.append((cursor, s - 1))
            cursor = max(cursor, e + 1)
        if cursor <= self.total_lines:
            gaps.append((cursor, self.total_lines))
        return gaps

    def invalidate(self) -> None:
        self.modified = True
        self.ranges = []
