"""CLI entry point for ptyshell."""

from __future__ import annotations

import logging
import sys

import typer

from ptyshell.config import ShellConfig
from ptyshell.pty import MessageKind, OutputBuffer, ShellSession, split_message

app = typer.Typer(
    name="ptyshell",
    help="Drive an interactive shell behind a pseudo-terminal.",
)

EXIT_WORDS = ("exit", "quit")


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_config(
    config_file: str | None,
    cols: int | None,
    rows: int | None,
    shell: list[str] | None,
) -> ShellConfig:
    config = ShellConfig.load(config_file)
    overrides: dict = {}
    if cols is not None:
        overrides["cols"] = cols
    if rows is not None:
        overrides["rows"] = rows
    if shell:
        overrides["shells"] = shell
    if overrides:
        config = ShellConfig.model_validate({**config.model_dump(), **overrides})
    return config


def print_message(message: str) -> None:
    """Output callback for the console: raw output as-is, status on its own line."""
    kind, payload = split_message(message)
    if kind == MessageKind.OUTPUT:
        sys.stdout.write(payload)
        sys.stdout.flush()
    else:
        typer.echo(payload.rstrip("\n"))


def parse_resize(line: str) -> tuple[int, int] | None:
    """Parse ``resize <cols> <rows>``.

    Returns None when the line is not a resize command at all.

    Raises:
        typer.BadParameter: malformed or non-positive dimensions.
    """
    parts = line.split()
    if not parts or parts[0] != "resize":
        return None
    if len(parts) != 3:
        raise typer.BadParameter("usage: resize <cols> <rows>")
    try:
        cols, rows = int(parts[1]), int(parts[2])
    except ValueError:
        raise typer.BadParameter("cols and rows must be integers") from None
    if cols <= 0 or rows <= 0:
        raise typer.BadParameter("cols and rows must be positive")
    return cols, rows


@app.command()
def console(
    cols: int | None = typer.Option(None, "--cols", help="Initial terminal columns."),
    rows: int | None = typer.Option(None, "--rows", help="Initial terminal rows."),
    shell: list[str] | None = typer.Option(
        None, "--shell", "-s", help="Shell to run (repeat for fallbacks)."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Line-oriented console: each line you type is sent to the shell."""
    setup_logging(verbose)
    config = _load_config(config_file, cols, rows, shell)

    session = ShellSession(config)
    if not session.start(print_message):
        raise typer.Exit(1)

    typer.echo("[i] PTY shell started. Type commands (empty line + Enter = exit)")
    typer.echo("    'exit' or 'quit' to leave, 'resize <cols> <rows>' to resize\n")

    try:
        while session.is_running():
            session.sync_terminal_size()
            try:
                line = input("shell> ")
            except EOFError:
                break

            if not line or line.strip() in EXIT_WORDS:
                break

            try:
                size = parse_resize(line)
            except typer.BadParameter as e:
                typer.echo(f"[!] {e}", err=True)
                continue
            if size is not None:
                session.notify_resize(*size)
                typer.echo(f"[i] Sent resize {size[0]}x{size[1]}")
                continue

            session.write(line)
    finally:
        typer.echo("\n[i] Stopping shell...")
        session.stop()

    typer.echo("[i] Done.")


@app.callback(invoke_without_command=True)
def default(ctx: typer.Context) -> None:
    """Drive an interactive shell behind a pseudo-terminal.

    Without a command, starts the console with settings from the config
    file and environment.
    """
    if ctx.invoked_subcommand is None:
        console(cols=None, rows=None, shell=None, verbose=False, config_file=None)


@app.command()
def run(
    commands: list[str] = typer.Argument(help="Command lines to send, in order."),
    timeout: float = typer.Option(
        10.0, "--timeout", "-t", help="Seconds to wait for the shell to finish."
    ),
    raw: bool = typer.Option(
        False, "--raw", help="Print output with escape sequences intact."
    ),
    shell: list[str] | None = typer.Option(
        None, "--shell", "-s", help="Shell to run (repeat for fallbacks)."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Send command lines to a fresh shell, then print everything it wrote."""
    setup_logging(verbose)
    config = _load_config(config_file, None, None, shell)

    buffer = OutputBuffer()
    session = ShellSession(config)
    if not session.start(buffer):
        typer.echo("\n".join(buffer.statuses), err=True)
        raise typer.Exit(1)

    try:
        for line in commands:
            session.write(line)
        session.write("exit")
        finished = buffer.wait_for_status("PTY closed", timeout=timeout)
    finally:
        session.stop()

    typer.echo(buffer.read_raw() if raw else buffer.read_text(), nl=False)
    if finished is None:
        typer.echo(f"\n[!] Shell still running after {timeout}s, stopped", err=True)
        raise typer.Exit(2)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
