"""Command admission and danger classification."""

import logging
import re
import shlex
from dataclasses import dataclass
from enum import IntEnum

from workspace_session_mcp.models.session import Mode, ModeName
from workspace_session_mcp.tools.utils.constants import (
    INTERACTIVE_COMMANDS,
    PAGERS,
    REPL_COMMANDS,
)

logger = logging.getLogger(__name__)


class DangerLevel(IntEnum):
    SAFE = 0
    WARNING = 1
    DANGEROUS = 2


@dataclass(frozen=True)
class Classification:
    level: DangerLevel
    reason: str | None = None

    @property
    def is_dangerous(self) -> bool:
        return self.level == DangerLevel.DANGEROUS


SAFE = Classification(DangerLevel.SAFE)

_END = r"(?=$|[\s;&|)])"
_BLOCK_DEVICE = r"/dev/(?:sd|hd|nvme|xvd|vd|disk|mmcblk)"
_SYSTEM_FILES = r"(?:passwd|shadow|sudoers|group|hosts|fstab)\b"

DANGEROUS_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\brm\s+(?:-\S+\s+)*(?:/\*?|~/?|\$HOME/?)" + _END), "deletion of the root or home directory"),
    (re.compile(r"\brm\s+(?:-\S+\s+)*/?etc/" + _SYSTEM_FILES), "deletion of a system account file"),
    (re.compile(r"\bdd\s+.*\bof=" + _BLOCK_DEVICE), "raw write to a block device"),
    (re.compile(r">\s*" + _BLOCK_DEVICE), "redirect onto a block device"),
    (re.compile(r"\bmkfs(?:\.\w+)?\b"), "filesystem creation"),
    (
        re.compile(r"\bch(?:mod|own|grp)\s+(?:\S+\s+)*-[a-zA-Z]*R[a-zA-Z]*\s+(?:\S+\s+)*/" + _END),
        "recursive permission change on the root directory",
    ),
    (re.compile(r"(?:>>?|\btee\s+(?:-a\s+)?)\s*/etc/" + _SYSTEM_FILES), "overwriting a system account file"),
    (re.compile(r"\b(?:curl|wget)\b[^|]*\|\s*(?:sudo\s+)?(?:ba|z|k|da)?sh\b"), "piping a download into a shell"),
    (re.compile(r":\s*\(\s*\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:"), "fork bomb"),
    (re.compile(r"^\s*(?:sudo|su|doas|pkexec)" + _END), "privilege escalation"),
    (re.compile(r"^\s*(?:shutdown|reboot|halt|poweroff)\b"), "system shutdown"),
    (re.compile(r"^\s*nmap\b"), "network scanning"),
    (re.compile(r"\bcrontab\s+-r\b"), "removal of all cron jobs"),
]

WARNING_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\beval\b"), "dynamic evaluation with eval"),
    (re.compile(r"^\s*(?:curl|wget)\b"), "network download"),
    (re.compile(r"/etc/"), "access to system configuration under /etc"),
    (re.compile(r"\brm\s+(?:-\S+\s+)*-[a-zA-Z]*[rR]"), "recursive deletion"),
    (re.compile(r"\bgit\s+push\b.*\s(?:--force|-f)\b"), "force push"),
    (re.compile(r"\bgit\s+reset\s+--hard\b"), "discarding uncommitted changes"),
    (re.compile(r"\bkill(?:all)?\s+-(?:9|KILL)\b"), "forced process kill"),
    (re.compile(r"\bchmod\s+(?:-\S+\s+)*0?777\b"), "world-writable permissions"),
]


def split_chained_command(command: str) -> list[str]:
    """Split a command on &&, ||, ;, |, & and newlines outside of quotes.

    Redirections such as ``2>&1`` and ``&>`` are not separators.
    """
    parts: list[str] = []
    current: list[str] = []
    quote: str | None = None
    escaped = False

    for i, char in enumerate(command):
        if escaped:
            current.append(char)
            escaped = False
            continue
        if char == "\\" and quote != "'":
            current.append(char)
            escaped = True
            continue
        if quote:
            if char == quote:
                quote = None
            current.append(char)
            continue
        if char in ("'", '"'):
            quote = char
            current.append(char)
            continue
        if char == "&":
            prev = command[i - 1] if i > 0 else ""
            nxt = command[i + 1] if i + 1 < len(command) else ""
            if (prev and prev in "<>") or nxt == ">":
                current.append(char)
                continue
        if char in "&|;\n":
            part = "".join(current).strip()
            if part:
                parts.append(part)
            current = []
            continue
        current.append(char)

    part = "".join(current).strip()
    if part:
        parts.append(part)
    return parts


def _match_table(
    text: str, table: list[tuple[re.Pattern[str], str]]
) -> tuple[str, str] | None:
    for pattern, description in table:
        match = pattern.search(text)
        if match:
            return description, match.group(0).strip()
    return None


def _classify_single(command: str) -> Classification:
    hit = _match_table(command, DANGEROUS_PATTERNS)
    if hit:
        description, matched = hit
        return Classification(DangerLevel.DANGEROUS, f"{description} (matched '{matched}')")
    hit = _match_table(command, WARNING_PATTERNS)
    if hit:
        description, matched = hit
        return Classification(DangerLevel.WARNING, f"{description} (matched '{matched}')")
    return SAFE


def classify_command(command: str) -> Classification:
    """Classify a command as safe, suspicious or dangerous.

    The whole command is checked first so that patterns spanning a pipe are
    seen; then every chained part is checked and the worst level wins.
    """
    result = _classify_single(command)
    if result.is_dangerous:
        return result

    parts = split_chained_command(command)
    if len(parts) > 1:
        for part in parts:
            part_result = _classify_single(part)
            if part_result.level > result.level:
                label = "dangerous" if part_result.is_dangerous else "suspicious"
                result = Classification(
                    part_result.level, f"Part of command is {label}: {part_result.reason}"
                )
                if result.is_dangerous:
                    break
    if result.level != DangerLevel.SAFE:
        logger.debug(f"Command classified {result.level.name}: {command!r} ({result.reason})")
    return result


def _command_words(command: str) -> list[str]:
    try:
        words = shlex.split(command)
    except ValueError:
        words = command.split()
    # Skip leading VAR=value assignments
    while words and re.match(r"^[A-Za-z_][A-Za-z0-9_]*=", words[0]):
        words = words[1:]
    return words


def _is_admitted_part(part: str, allowed: list[str]) -> bool:
    part = part.strip()
    for entry in allowed:
        entry = entry.strip()
        if not entry:
            continue
        if part == entry or part.startswith(entry + " ") or part.startswith(entry + "\t"):
            return True
    return False


def admit_command(command: str, mode: Mode) -> tuple[bool, str | None]:
    """Check a command against the mode's allowed commands.

    Returns (admitted, first rejected sub-command).
    """
    if mode.name != ModeName.RESTRICTED or mode.allowed_commands == "all":
        return True, None
    parts = split_chained_command(command)
    if not parts:
        return False, command
    for part in parts:
        if not _is_admitted_part(part, mode.allowed_commands):
            return False, part
    return True, None


def is_interactive_command(command: str) -> bool:
    """Whether the command will claim the terminal for input."""
    parts = [p for p in re.split(r"\s*(?:&&|\|\||;)\s*", command.strip()) if p]
    if not parts:
        return False
    last = parts[-1]
    pipeline = [p for p in last.split("|") if p.strip()]
    for piece in pipeline[1:]:
        words = _command_words(piece)
        if words and words[0].rsplit("/", 1)[-1] in PAGERS:
            return True

    words = _command_words(pipeline[0]) if pipeline else []
    if not words:
        return False
    head = words[0].rsplit("/", 1)[-1]
    if head in INTERACTIVE_COMMANDS:
        return True
    if head in REPL_COMMANDS:
        args = words[1:]
        return not args or "-i" in args
    return False
