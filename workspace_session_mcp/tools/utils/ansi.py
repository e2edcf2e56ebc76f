"""Removal of terminal escape sequences from captured output."""

import re

# CSI sequences, OSC sequences (BEL or ST terminated) and two-character escapes
_ANSI_RE = re.compile(
    r"\x1b\[[0-9;?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-Z\\-_]"
)
# Residual ESC [ ... final-byte forms left behind by split or malformed sequences
_RESIDUAL_RE = re.compile(r"\x1b(?:[@-Z\\-_]|\[[0-9?;]*[0-9A-Za-z])")
# Lone ESC and 8-bit CSI bytes
_STRAY_RE = re.compile(r"[\x1b\x9b]")


def strip_ansi(text: str) -> str:
    """Return text without CSI, OSC or two-character escape sequences."""
    if "\x1b" not in text and "\x9b" not in text:
        return text
    text = _ANSI_RE.sub("", text)
    text = _RESIDUAL_RE.sub("", text)
    return _STRAY_RE.sub("", text)


def clean_output(text: str) -> str:
    """Sanitize terminal output: strip escapes, normalize line endings, drop backspaces."""
    text = strip_ansi(text)
    text = text.replace("\r\n", "\n")
    # Bare carriage returns redraw the current line; keep the last rendering.
    if "\r" in text:
        text = "\n".join(
            line.rstrip("\r").rsplit("\r", 1)[-1] for line in text.split("\n")
        )
    if "\b" in text:
        text = re.sub(r".\x08", "", text).replace("\x08", "")
    return text
