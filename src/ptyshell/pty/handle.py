"""PTY handle: one owner for the master descriptor and the child shell."""

from __future__ import annotations

import fcntl
import logging
import os
import pty
import shutil
import signal
import struct
import subprocess
import sys
import termios

logger = logging.getLogger(__name__)


class PTYSpawnError(RuntimeError):
    """Raised when the PTY pair or the child shell cannot be created."""


def resolve_shell(candidates: list[str]) -> str:
    """Return the first executable shell among ``candidates``.

    Bare names are looked up on ``PATH``.
    """
    for candidate in candidates:
        path = candidate if os.path.isabs(candidate) else shutil.which(candidate)
        if path and os.path.isfile(path) and os.access(path, os.X_OK):
            return path
    raise PTYSpawnError(f"no executable shell among {candidates}")


def set_winsize(fd: int, cols: int, rows: int) -> None:
    packed = struct.pack("HHHH", rows, cols, 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, packed)


def get_winsize(fd: int) -> tuple[int, int]:
    """Return ``(cols, rows)`` of the terminal behind ``fd``."""
    packed = fcntl.ioctl(fd, termios.TIOCGWINSZ, b"\0" * 8)
    rows, cols, _, _ = struct.unpack("HHHH", packed)
    return cols, rows


def _inherit_termios(slave_fd: int) -> None:
    """Copy the caller's terminal settings onto a fresh PTY.

    Without a TTY on stdin the kernel defaults stay in place.
    """
    try:
        if not os.isatty(sys.stdin.fileno()):
            return
        attrs = termios.tcgetattr(sys.stdin.fileno())
        termios.tcsetattr(slave_fd, termios.TCSANOW, attrs)
    except (termios.error, OSError, ValueError) as e:
        logger.debug("Keeping default PTY attributes: %s", e)


class PTYHandle:
    """Owns a PTY master descriptor and the shell attached to its slave side.

    Created only through ``spawn``; everything it acquires is released by
    ``release`` (also called on context-manager exit), whichever step fails.
    """

    def __init__(self, master_fd: int, proc: subprocess.Popen, shell: str) -> None:
        self._master_fd = master_fd
        self._proc = proc
        self.shell = shell

    @classmethod
    def spawn(
        cls,
        shells: list[str],
        cols: int = 80,
        rows: int = 24,
        env: dict[str, str] | None = None,
    ) -> PTYHandle:
        """Open a PTY pair and start an interactive shell on it.

        Raises:
            PTYSpawnError: no shell candidate is executable, or the PTY or
                the process could not be created. Nothing is leaked.
        """
        shell = resolve_shell(shells)

        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise PTYSpawnError(f"openpty failed: {e}") from e

        try:
            _inherit_termios(slave_fd)
            set_winsize(slave_fd, cols, rows)
            proc = subprocess.Popen(
                [shell],
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,
                close_fds=True,
                env={**os.environ, **(env or {})},
            )
        except (OSError, subprocess.SubprocessError) as e:
            os.close(master_fd)
            raise PTYSpawnError(f"cannot start {shell}: {e}") from e
        finally:
            # Parent always closes slave fd
            os.close(slave_fd)

        os.set_blocking(master_fd, False)
        logger.debug("Spawned %s pid=%d master_fd=%d", shell, proc.pid, master_fd)
        return cls(master_fd, proc, shell)

    @property
    def master_fd(self) -> int:
        return self._master_fd

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.poll()

    def alive(self) -> bool:
        """Check (and reap, if it exited) the child process."""
        return self._proc.poll() is None

    def send_signal(self, sig: int) -> bool:
        """Signal the child. Returns False if it has already exited."""
        if not self.alive():
            return False
        try:
            self._proc.send_signal(sig)
        except ProcessLookupError:
            return False
        return True

    def read(self, size: int) -> bytes:
        return os.read(self._master_fd, size)

    def write(self, data: bytes) -> int:
        return os.write(self._master_fd, data)

    def set_winsize(self, cols: int, rows: int) -> None:
        set_winsize(self._master_fd, cols, rows)

    def get_winsize(self) -> tuple[int, int]:
        return get_winsize(self._master_fd)

    def terminate(self, grace: float = 0.2) -> int | None:
        """SIGTERM, wait up to ``grace`` seconds, then SIGKILL. Always reaps."""
        if self.send_signal(signal.SIGTERM):
            try:
                self._proc.wait(timeout=grace)
            except subprocess.TimeoutExpired:
                logger.debug("pid %d ignored SIGTERM, sending SIGKILL", self.pid)
                self.send_signal(signal.SIGKILL)
        return self._proc.wait()

    def close(self) -> None:
        """Close the master descriptor (idempotent)."""
        if self._master_fd < 0:
            return
        try:
            os.close(self._master_fd)
        except OSError as e:
            logger.debug("Error closing master fd %d: %s", self._master_fd, e)
        self._master_fd = -1

    def release(self, grace: float = 0.2) -> int | None:
        code = self.terminate(grace)
        self.close()
        return code

    def __enter__(self) -> PTYHandle:
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()
