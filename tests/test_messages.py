"""Tests for ptyshell.pty.messages and ptyshell.pty.text."""

from __future__ import annotations

from ptyshell.pty.messages import (
    OUTPUT_TAG,
    STATUS_TAG,
    MessageKind,
    output_message,
    split_message,
    status_message,
)
from ptyshell.pty.text import clean_terminal_text, sanitize_control_chars, strip_ansi


# ---------------------------------------------------------------------------
# Tagging
# ---------------------------------------------------------------------------


class TestTagging:
    def test_output_is_passed_verbatim(self) -> None:
        chunk = "no newline \x1b[1mbold"
        assert output_message(chunk) == OUTPUT_TAG + chunk

    def test_status_gets_newline(self) -> None:
        assert status_message("[*] PTY closed") == STATUS_TAG + "[*] PTY closed\n"

    def test_status_keeps_single_newline(self) -> None:
        assert status_message("done\n") == STATUS_TAG + "done\n"

    def test_tags_differ(self) -> None:
        assert OUTPUT_TAG != STATUS_TAG


class TestSplitMessage:
    def test_output(self) -> None:
        assert split_message(output_message("ls\r\n")) == (MessageKind.OUTPUT, "ls\r\n")

    def test_status(self) -> None:
        kind, payload = split_message(status_message("[*] Shell terminated"))
        assert kind == MessageKind.STATUS
        assert payload == "[*] Shell terminated\n"

    def test_untagged(self) -> None:
        assert split_message("hello") == (MessageKind.UNKNOWN, "hello")

    def test_empty_output_chunk(self) -> None:
        assert split_message(OUTPUT_TAG) == (MessageKind.OUTPUT, "")


# ---------------------------------------------------------------------------
# Text cleanup
# ---------------------------------------------------------------------------


class TestStripAnsi:
    def test_no_ansi(self) -> None:
        assert strip_ansi("hello world") == "hello world"

    def test_color_codes(self) -> None:
        assert strip_ansi("\x1b[31mred\x1b[0m") == "red"

    def test_private_mode(self) -> None:
        # bash enables bracketed paste before every prompt
        assert strip_ansi("\x1b[?2004h$ \x1b[?2004l") == "$ "

    def test_osc_title(self) -> None:
        assert strip_ansi("\x1b]0;user@host: ~\x07$ ") == "$ "
        assert strip_ansi("\x1b]2;title\x1b\\ok") == "ok"


class TestSanitize:
    def test_crlf_becomes_lf(self) -> None:
        assert sanitize_control_chars("a\r\nb\r\n") == "a\nb\n"

    def test_keeps_tabs_and_unicode(self) -> None:
        assert sanitize_control_chars("a\tb é") == "a\tb é"

    def test_drops_bell_and_backspace(self) -> None:
        assert sanitize_control_chars("a\x07b\x08c") == "abc"

    def test_clean_terminal_text(self) -> None:
        assert clean_terminal_text("\x1b[1mhello\x1b[0m\r\n") == "hello\n"
