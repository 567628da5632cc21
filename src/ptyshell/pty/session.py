"""PTY session: an interactive shell bridged to an output callback."""

from __future__ import annotations

import codecs
import contextlib
import enum
import logging
import os
import select
import shutil
import signal
import threading

from ptyshell.config import ShellConfig
from ptyshell.pty import signals
from ptyshell.pty.handle import PTYHandle, PTYSpawnError
from ptyshell.pty.messages import (
    PTY_CLOSED,
    SPAWN_FAILED,
    STARTED,
    TERMINATED,
    OutputCallback,
    output_message,
    status_message,
)
from ptyshell.pty.signals import ShutdownPipe, SignalForwarder

logger = logging.getLogger(__name__)

_HANGUP = select.POLLERR | select.POLLHUP | select.POLLNVAL


class SessionStatus(enum.Enum):
    """Lifecycle states for a shell session."""

    IDLE = "idle"  # Never started
    RUNNING = "running"
    EXITED = "exited"  # Shell or PTY went away on its own
    STOPPED = "stopped"  # Released by stop()


class ShellSession:
    """A single interactive shell running behind a pseudo-terminal.

    Wraps the shell with:
    - A reader thread pumping PTY output into the callback
    - A forwarder thread relaying SIGINT/SIGTERM/SIGHUP to the child
    - Window-size propagation (TIOCSWINSZ + SIGWINCH)
    - Graceful-then-forceful shutdown that always reaps the child

    None of the public methods raise once constructed; failures show up
    as status messages on the callback and as ``is_running()`` going
    false.
    """

    def __init__(self, config: ShellConfig | None = None) -> None:
        self.config = config or ShellConfig()
        self.cols = self.config.cols
        self.rows = self.config.rows
        # Set by the SIGWINCH handler, consumed by sync_terminal_size()
        self.resize_pending = False

        self._callback: OutputCallback | None = None
        self._handle: PTYHandle | None = None
        self._shutdown: ShutdownPipe | None = None
        self._forwarder: SignalForwarder | None = None
        self._reader: threading.Thread | None = None
        self._running = threading.Event()
        self._lifecycle = threading.Lock()
        self._handlers_acquired = False
        self._terminated_pending = False
        self._status = SessionStatus.IDLE

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, callback: OutputCallback | None = None) -> bool:
        """Spawn the shell and the background threads.

        Returns True if the session is running afterwards. A spawn failure
        is reported once through ``callback`` and leaves nothing behind.
        """
        with self._lifecycle:
            if self._running.is_set():
                return True
            if self._handle is not None:
                # Previous shell exited on its own; its resources are still held
                self._release_locked()

            self._callback = callback
            try:
                with contextlib.ExitStack() as stack:
                    handle = PTYHandle.spawn(
                        self.config.shells, self.cols, self.rows, self.config.env
                    )
                    stack.callback(handle.release, 0)
                    shutdown = ShutdownPipe()
                    stack.callback(shutdown.close)
                    forwarder = SignalForwarder(handle.send_signal, shutdown)
                    stack.pop_all()
            except (PTYSpawnError, OSError) as e:
                logger.warning("PTY spawn failed: %s", e)
                spawn_error = e
            else:
                spawn_error = None
                self._handle = handle
                self._shutdown = shutdown
                self._forwarder = forwarder
                self._reader = threading.Thread(
                    target=self._read_loop,
                    args=(handle, shutdown),
                    name="ptyshell-reader",
                    daemon=True,
                )
                self._running.set()
                self._status = SessionStatus.RUNNING
                self._reader.start()
                forwarder.start()

                signals.set_active(self)
                self._handlers_acquired = signals.install_handlers(
                    forward=self.config.forward_signals,
                    watch_resize=self.config.watch_resize,
                )

        if spawn_error is not None:
            self._emit_status(SPAWN_FAILED.format(reason=spawn_error))
            return False

        logger.info(
            "Shell session started: pid=%d shell=%s size=%dx%d",
            handle.pid,
            handle.shell,
            self.cols,
            self.rows,
        )
        self._emit_status(STARTED.format(shell=os.path.basename(handle.shell)))
        return True

    def stop(self) -> None:
        """Terminate the shell, join the threads, release the PTY.

        Idempotent. From a background thread (i.e. inside the callback) it
        backs off if another thread is already stopping the session.
        """
        blocking = not self._on_worker_thread()
        if not self._lifecycle.acquire(blocking=blocking):
            return
        try:
            if self._handle is None:
                return
            on_reader = threading.current_thread() is self._reader
            self._release_locked()
        finally:
            self._lifecycle.release()
        if on_reader:
            # Reported by the reader after its own PTY_CLOSED
            self._terminated_pending = True
            return
        self._emit_status(TERMINATED)

    def _release_locked(self) -> None:
        handle = self._handle
        shutdown = self._shutdown
        forwarder = self._forwarder
        reader = self._reader
        assert handle is not None and shutdown is not None and forwarder is not None

        # Both loops wake on the shutdown pipe
        self._running.clear()
        shutdown.set()

        pid = handle.pid
        code = handle.terminate(self.config.kill_grace)

        if reader is not None and reader is not threading.current_thread():
            reader.join()
        forwarder.join()

        handle.close()
        shutdown.close()
        forwarder.close()

        self._handle = None
        self._shutdown = None
        self._forwarder = None
        self._reader = None
        self.resize_pending = False

        signals.clear_active(self)
        if self._handlers_acquired:
            signals.release_handlers()
            self._handlers_acquired = False

        self._status = SessionStatus.STOPPED
        logger.info("Shell session stopped: pid=%d code=%s", pid, code)

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    def write(self, text: str) -> None:
        """Send one command line to the shell (``\\n`` appended if missing)."""
        handle = self._handle
        if not self._running.is_set() or handle is None or handle.master_fd < 0:
            return

        if not text.endswith("\n"):
            text += "\n"
        data = memoryview(text.encode(errors="replace"))

        try:
            while data:
                written = handle.write(data)
                data = data[written:]
        except BlockingIOError:
            logger.debug("PTY input full, dropped %d bytes", len(data))
        except OSError as e:
            logger.warning("PTY write failed (%s), stopping session", e)
            self.stop()

    def _read_loop(self, handle: PTYHandle, shutdown: ShutdownPipe) -> None:
        """Forward PTY output to the callback until the PTY or session ends."""
        master_fd = handle.master_fd
        shutdown_fd = shutdown.fileno()
        poller = select.poll()
        poller.register(master_fd, select.POLLIN)
        poller.register(shutdown_fd, select.POLLIN)
        timeout_ms = self.config.poll_interval * 1000
        # Keeps multi-byte characters intact across chunk boundaries
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        try:
            while self._running.is_set():
                events = dict(poller.poll(timeout_ms))
                if not events:
                    continue
                if shutdown_fd in events or not self._running.is_set():
                    break

                mask = events.get(master_fd, 0)
                if mask & select.POLLIN:
                    try:
                        data = handle.read(self.config.read_size)
                    except BlockingIOError:
                        continue
                    except OSError as e:
                        # EIO once the shell side of the PTY is gone
                        logger.debug("PTY read ended: %s", e)
                        break
                    if not data:
                        break
                    text = decoder.decode(data)
                    if text:
                        self._emit(output_message(text))
                elif mask & _HANGUP:
                    logger.debug("PTY hangup (revents=%#x)", mask)
                    break
        except Exception:
            logger.exception("PTY reader crashed")
        finally:
            tail = decoder.decode(b"", final=True)
            if tail:
                self._emit(output_message(tail))
            self._running.clear()
            shutdown.set()
            if self._status == SessionStatus.RUNNING:
                self._status = SessionStatus.EXITED
            self._emit_status(PTY_CLOSED)
            if self._terminated_pending:
                self._terminated_pending = False
                self._emit_status(TERMINATED)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def is_running(self) -> bool:
        """True while the session runs and the child is actually alive."""
        handle = self._handle
        return self._running.is_set() and handle is not None and handle.alive()

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def pid(self) -> int:
        handle = self._handle
        return handle.pid if handle is not None else -1

    @property
    def master_fd(self) -> int:
        handle = self._handle
        return handle.master_fd if handle is not None else -1

    # ------------------------------------------------------------------
    # Resize and signals
    # ------------------------------------------------------------------

    def notify_resize(self, cols: int, rows: int) -> None:
        """Push a new window size to the PTY and tell the shell to redraw."""
        handle = self._handle
        if not self._running.is_set() or handle is None:
            return

        self.cols = cols
        self.rows = rows
        try:
            handle.set_winsize(cols, rows)
        except OSError as e:
            logger.debug("TIOCSWINSZ failed: %s", e)
            return
        handle.send_signal(signal.SIGWINCH)
        logger.debug("Resized PTY to %dx%d", cols, rows)

    resize = notify_resize

    def terminal_size(self) -> tuple[int, int] | None:
        """Size the PTY currently reports, as ``(cols, rows)``."""
        handle = self._handle
        if handle is None or handle.master_fd < 0:
            return None
        try:
            return handle.get_winsize()
        except OSError:
            return None

    def sync_terminal_size(self) -> bool:
        """Apply a pending SIGWINCH by copying the controlling terminal's size.

        Returns True if the PTY was resized.
        """
        if not self.resize_pending:
            return False
        self.resize_pending = False
        if not self._running.is_set():
            return False

        size = shutil.get_terminal_size((self.cols, self.rows))
        if (size.columns, size.lines) == (self.cols, self.rows):
            return False
        self.notify_resize(size.columns, size.lines)
        return True

    def relay_signal(self, signum: int) -> bool:
        """Hand a signal to the forwarder thread (used by the signal handler)."""
        forwarder = self._forwarder
        if not self._running.is_set() or forwarder is None:
            return False
        return forwarder.deliver(signum)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _on_worker_thread(self) -> bool:
        current = threading.current_thread()
        forwarder = self._forwarder
        return current is self._reader or (
            forwarder is not None and current is forwarder.thread
        )

    def _emit(self, message: str) -> None:
        callback = self._callback
        if callback is None:
            return
        try:
            callback(message)
        except Exception:
            logger.exception("Error in output callback")

    def _emit_status(self, line: str) -> None:
        self._emit(status_message(line))

    def __enter__(self) -> ShellSession:
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def __del__(self) -> None:
        """Ensure cleanup on garbage collection."""
        if getattr(self, "_handle", None) is not None:
            self.stop()
