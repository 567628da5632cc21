"""Collecting output channel for PTY sessions."""

from __future__ import annotations

import re
import threading
import time
from collections import deque

from ptyshell.pty.messages import MessageKind, split_message
from ptyshell.pty.text import clean_terminal_text


class OutputBuffer:
    """Thread-safe sink for session messages.

    An instance is itself a valid output callback: pass it to
    ``ShellSession.start`` and it records what the reader thread delivers.

    Keeps two tracks, like a terminal log:

    * **raw**: shell output exactly as read, ANSI sequences included,
      capped at ``max_chars`` (oldest text is dropped first).
    * **statuses**: status lines (``[*] PTY closed`` etc.) in arrival order.

    ``wait_for`` / ``wait_for_status`` block the calling thread until a
    pattern shows up or the timeout expires, which is how dispatchers (and
    the tests) wait for a command's output without sleeping blindly.
    """

    def __init__(self, max_chars: int = 1_000_000) -> None:
        self._max_chars = max_chars
        self._chunks: deque[str] = deque()
        self._size = 0
        self._total_chars = 0
        self._statuses: list[str] = []
        self._cond = threading.Condition()

    def __call__(self, message: str) -> None:
        kind, payload = split_message(message)
        if kind == MessageKind.STATUS:
            self.add_status(payload.rstrip("\n"))
        else:
            self.append(payload)

    def append(self, chunk: str) -> None:
        """Append a raw output chunk."""
        if not chunk:
            return
        with self._cond:
            self._chunks.append(chunk)
            self._size += len(chunk)
            self._total_chars += len(chunk)
            while self._size > self._max_chars and len(self._chunks) > 1:
                self._size -= len(self._chunks.popleft())
            self._cond.notify_all()

    def add_status(self, line: str) -> None:
        with self._cond:
            self._statuses.append(line)
            self._cond.notify_all()

    def read_raw(self) -> str:
        """All buffered output, ANSI codes preserved."""
        with self._cond:
            return "".join(self._chunks)

    def read_text(self) -> str:
        """All buffered output with escape sequences and ``\\r`` removed."""
        return clean_terminal_text(self.read_raw())

    @property
    def statuses(self) -> list[str]:
        with self._cond:
            return list(self._statuses)

    @property
    def total_chars(self) -> int:
        """Total characters of output ever appended."""
        with self._cond:
            return self._total_chars

    def wait_for(self, pattern: str, timeout: float = 5.0) -> re.Match[str] | None:
        """Wait until cleaned output matches a regex pattern.

        Returns the match, or None on timeout.
        """
        compiled = re.compile(pattern)
        return self._wait(lambda: compiled.search(self._text_locked()), timeout)

    def wait_for_status(self, substring: str, timeout: float = 5.0) -> str | None:
        """Wait for a status line containing ``substring``."""

        def _find() -> str | None:
            for line in self._statuses:
                if substring in line:
                    return line
            return None

        return self._wait(_find, timeout)

    def clear(self) -> None:
        with self._cond:
            self._chunks.clear()
            self._statuses.clear()
            self._size = 0
            self._total_chars = 0

    def _text_locked(self) -> str:
        return clean_terminal_text("".join(self._chunks))

    def _wait(self, probe, timeout: float):
        deadline = time.monotonic() + timeout
        with self._cond:
            while True:
                result = probe()
                if result is not None:
                    return result
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._cond.wait(remaining)
