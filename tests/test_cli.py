"""Tests for ptyshell.cli (console loop, helpers and the run command)."""

from __future__ import annotations

from unittest.mock import ANY, patch

import pytest
import typer
from typer.testing import CliRunner

from ptyshell.cli import app, parse_resize, print_message
from ptyshell.pty.messages import output_message, status_message
from ptyshell.pty.session import ShellSession

runner = CliRunner()


# ---------------------------------------------------------------------------
# parse_resize
# ---------------------------------------------------------------------------


class TestParseResize:
    def test_valid(self) -> None:
        assert parse_resize("resize 120 40") == (120, 40)

    def test_extra_whitespace(self) -> None:
        assert parse_resize("  resize   90  30 ") == (90, 30)

    def test_not_a_resize_command(self) -> None:
        assert parse_resize("ls -la") is None
        assert parse_resize("") is None
        assert parse_resize("resizer 1 2") is None

    @pytest.mark.parametrize(
        "line",
        ["resize", "resize 80", "resize 80 24 1", "resize a b", "resize 0 24", "resize 80 -1"],
    )
    def test_invalid(self, line: str) -> None:
        with pytest.raises(typer.BadParameter):
            parse_resize(line)


# ---------------------------------------------------------------------------
# print_message
# ---------------------------------------------------------------------------


class TestPrintMessage:
    def test_output_printed_raw(self, capsys) -> None:
        print_message(output_message("$ "))
        assert capsys.readouterr().out == "$ "

    def test_status_on_own_line(self, capsys) -> None:
        print_message(status_message("[*] PTY closed"))
        assert capsys.readouterr().out == "[*] PTY closed\n"


# ---------------------------------------------------------------------------
# run command
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_runs_commands(self) -> None:
        result = runner.invoke(app, ["run", "echo $((6*7))", "--shell", "/bin/sh"])
        assert result.exit_code == 0, result.output
        assert "42" in result.output

    def test_bad_shell(self) -> None:
        result = runner.invoke(app, ["run", "true", "--shell", "/nonexistent/shell"])
        assert result.exit_code == 1

    def test_timeout(self) -> None:
        result = runner.invoke(
            app, ["run", "sleep 5", "--shell", "/bin/sh", "--timeout", "0.5"]
        )
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# console command
# ---------------------------------------------------------------------------


def _console(stdin: str, *extra: str):
    return runner.invoke(app, ["console", "--shell", "/bin/sh", *extra], input=stdin)


class TestConsoleCommand:
    def test_default_command_is_console(self) -> None:
        result = runner.invoke(
            app, [], input="exit\n", env={"PTYSHELL_SHELL": "/bin/sh"}
        )
        assert result.exit_code == 0, result.output
        assert "PTY shell started" in result.output
        assert "[i] Done." in result.output

    def test_eof_ends_loop(self) -> None:
        result = _console("")
        assert result.exit_code == 0, result.output
        assert "[i] Done." in result.output

    def test_empty_line_ends_loop(self) -> None:
        result = _console("\nresize 100 30\n")
        assert result.exit_code == 0, result.output
        assert "Sent resize" not in result.output
        assert "[i] Done." in result.output

    @pytest.mark.parametrize("word", ["exit", "quit", "  quit  "])
    def test_exit_words_end_loop(self, word: str) -> None:
        result = _console(f"{word}\nresize 100 30\n")
        assert result.exit_code == 0, result.output
        assert "Sent resize" not in result.output
        assert "[*] Shell terminated" in result.output
        assert "[i] Done." in result.output

    def test_resize_applied(self) -> None:
        with patch.object(ShellSession, "notify_resize", autospec=True) as resize:
            result = _console("resize 100 30\nexit\n")
        assert result.exit_code == 0, result.output
        assert "[i] Sent resize 100x30" in result.output
        resize.assert_called_once_with(ANY, 100, 30)

    def test_bad_resize_keeps_going(self) -> None:
        result = _console("resize a b\nresize 90 20\nexit\n")
        assert result.exit_code == 0, result.output
        assert "[!] cols and rows must be integers" in result.output
        assert "[i] Sent resize 90x20" in result.output
        assert "[i] Done." in result.output

    def test_commands_sent_to_shell(self) -> None:
        with patch.object(ShellSession, "write", autospec=True) as write:
            result = _console("echo hi\nexit\n")
        assert result.exit_code == 0, result.output
        write.assert_called_once_with(ANY, "echo hi")

    def test_bad_shell(self) -> None:
        result = runner.invoke(
            app, ["console", "--shell", "/nonexistent/shell"], input="exit\n"
        )
        assert result.exit_code == 1
        assert "PTY spawn failed" in result.output
