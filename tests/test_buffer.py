"""Tests for ptyshell.pty.buffer.OutputBuffer."""

from __future__ import annotations

import threading
import time

from ptyshell.pty.buffer import OutputBuffer
from ptyshell.pty.messages import output_message, status_message


class TestOutputBufferBasics:
    def test_empty(self) -> None:
        buf = OutputBuffer()
        assert buf.read_raw() == ""
        assert buf.read_text() == ""
        assert buf.statuses == []
        assert buf.total_chars == 0

    def test_append(self) -> None:
        buf = OutputBuffer()
        buf.append("hello ")
        buf.append("world")
        assert buf.read_raw() == "hello world"
        assert buf.total_chars == 11

    def test_append_empty_is_ignored(self) -> None:
        buf = OutputBuffer()
        buf.append("")
        assert buf.total_chars == 0

    def test_read_text_strips_terminal_noise(self) -> None:
        buf = OutputBuffer()
        buf.append("\x1b[32mok\x1b[0m\r\n")
        assert buf.read_raw() == "\x1b[32mok\x1b[0m\r\n"
        assert buf.read_text() == "ok\n"


class TestOutputBufferAsCallback:
    def test_output_messages_go_to_raw(self) -> None:
        buf = OutputBuffer()
        buf(output_message("$ "))
        buf(output_message("ls\r\n"))
        assert buf.read_raw() == "$ ls\r\n"
        assert buf.statuses == []

    def test_status_messages_are_separate(self) -> None:
        buf = OutputBuffer()
        buf(status_message("[*] PTY closed"))
        assert buf.statuses == ["[*] PTY closed"]
        assert buf.read_raw() == ""

    def test_untagged_text_counts_as_output(self) -> None:
        buf = OutputBuffer()
        buf("plain")
        assert buf.read_raw() == "plain"


class TestOutputBufferOverflow:
    def test_oldest_chunks_dropped(self) -> None:
        buf = OutputBuffer(max_chars=10)
        buf.append("aaaa")
        buf.append("bbbb")
        buf.append("cccc")
        assert buf.read_raw() == "bbbbcccc"
        assert buf.total_chars == 12

    def test_single_oversized_chunk_kept(self) -> None:
        buf = OutputBuffer(max_chars=3)
        buf.append("abcdef")
        assert buf.read_raw() == "abcdef"


class TestOutputBufferWait:
    def test_wait_for_existing_text(self) -> None:
        buf = OutputBuffer()
        buf.append("result: 42\r\n")
        match = buf.wait_for(r"result: (\d+)", timeout=0.1)
        assert match is not None
        assert match.group(1) == "42"

    def test_wait_for_timeout(self) -> None:
        buf = OutputBuffer()
        start = time.monotonic()
        assert buf.wait_for("never", timeout=0.2) is None
        assert time.monotonic() - start >= 0.2

    def test_wait_for_text_from_another_thread(self) -> None:
        buf = OutputBuffer()
        timer = threading.Timer(0.05, buf.append, args=("late hello",))
        timer.start()
        try:
            assert buf.wait_for("hello", timeout=2.0) is not None
        finally:
            timer.cancel()

    def test_wait_for_spans_chunks(self) -> None:
        buf = OutputBuffer()
        buf.append("hel")
        buf.append("lo")
        assert buf.wait_for("hello", timeout=0.1) is not None

    def test_wait_for_status(self) -> None:
        buf = OutputBuffer()
        buf.add_status("[*] PTY shell started (sh)")
        assert buf.wait_for_status("started", timeout=0.1) == "[*] PTY shell started (sh)"
        assert buf.wait_for_status("closed", timeout=0.1) is None


class TestOutputBufferClear:
    def test_clear(self) -> None:
        buf = OutputBuffer()
        buf.append("data")
        buf.add_status("[*] PTY closed")
        buf.clear()
        assert buf.read_raw() == ""
        assert buf.statuses == []
        assert buf.total_chars == 0
