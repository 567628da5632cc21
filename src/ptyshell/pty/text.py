"""Terminal text cleanup for collected shell output."""

from __future__ import annotations

import re

# CSI sequences (colors, cursor movement, bracketed paste) and OSC sequences
# (window titles) terminated by BEL or ST.
_ANSI_RE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)")


def strip_ansi(text: str) -> str:
    """Strip ANSI escape sequences from text."""
    return _ANSI_RE.sub("", text)


def sanitize_control_chars(text: str) -> str:
    """Drop control characters a terminal would not print.

    Tabs and newlines survive; carriage returns are dropped so that the
    ``\\r\\n`` line endings a PTY produces collapse to ``\\n``.
    """
    cleaned = []
    for ch in text:
        cp = ord(ch)
        if ch in ("\t", "\n"):
            cleaned.append(ch)
        elif cp >= 32 and not 0x7F <= cp < 0xA0:
            cleaned.append(ch)
    return "".join(cleaned)


def clean_terminal_text(text: str) -> str:
    return sanitize_control_chars(strip_ansi(text))
