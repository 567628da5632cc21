"""Output channel message tags.

Every string handed to a session callback starts with one of two tags:

* ``ISHELL_OUTPUT:`` followed by a raw chunk of shell output, passed
  through exactly as read (chunks may split or merge lines arbitrarily).
* ``ISHELL_STATUS:`` followed by a short human-readable status line
  (startup, shutdown, PTY closed, spawn diagnostics).
"""

from __future__ import annotations

import enum
from typing import Callable

OUTPUT_TAG = "ISHELL_OUTPUT:"
STATUS_TAG = "ISHELL_STATUS:"

OutputCallback = Callable[[str], None]

# Status lines emitted by the session
STARTED = "[*] PTY shell started ({shell})"
SPAWN_FAILED = "[!] PTY spawn failed: {reason}"
PTY_CLOSED = "[*] PTY closed"
TERMINATED = "[*] Shell terminated"


class MessageKind(enum.Enum):
    OUTPUT = "output"
    STATUS = "status"
    UNKNOWN = "unknown"


def output_message(chunk: str) -> str:
    return OUTPUT_TAG + chunk


def status_message(line: str) -> str:
    if not line.endswith("\n"):
        line += "\n"
    return STATUS_TAG + line


def split_message(message: str) -> tuple[MessageKind, str]:
    """Split a callback message into its kind and untagged payload.

    Untagged text is returned unchanged as ``MessageKind.UNKNOWN``.
    """
    if message.startswith(OUTPUT_TAG):
        return MessageKind.OUTPUT, message[len(OUTPUT_TAG) :]
    if message.startswith(STATUS_TAG):
        return MessageKind.STATUS, message[len(STATUS_TAG) :]
    return MessageKind.UNKNOWN, message
