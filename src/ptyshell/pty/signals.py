"""Signal plumbing for PTY sessions.

Python only runs signal handlers on the main thread, between bytecodes.
The handlers installed here therefore do almost nothing themselves:

* SIGWINCH sets ``resize_pending`` on the active session.
* SIGINT / SIGTERM / SIGHUP write the signal number into the active
  session's forwarder pipe; the forwarder thread relays it to the child.

Only one session is "active" at a time (last registered wins). The slot
holds a weak reference, so it never keeps a session alive.
"""

from __future__ import annotations

import logging
import os
import select
import signal
import threading
import weakref
from typing import TYPE_CHECKING, Callable, Iterable

if TYPE_CHECKING:
    from ptyshell.pty.session import ShellSession

logger = logging.getLogger(__name__)

FORWARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


# ---------------------------------------------------------------------------
# Shutdown self-pipe
# ---------------------------------------------------------------------------


class ShutdownPipe:
    """One-shot event that ``select.poll`` can wait on.

    Once ``set`` the read end stays readable (it is never drained), so
    every poller registered on it wakes up, now and on later polls.
    """

    def __init__(self) -> None:
        self._r, self._w = os.pipe()
        os.set_blocking(self._w, False)
        self._set = False

    def fileno(self) -> int:
        return self._r

    def set(self) -> None:
        if self._set or self._w < 0:
            return
        self._set = True
        try:
            os.write(self._w, b"\0")
        except OSError as e:
            logger.debug("Shutdown pipe write failed: %s", e)

    def is_set(self) -> bool:
        return self._set

    def close(self) -> None:
        for fd in (self._r, self._w):
            if fd >= 0:
                os.close(fd)
        self._r = self._w = -1


# ---------------------------------------------------------------------------
# Forwarder thread
# ---------------------------------------------------------------------------


class SignalForwarder:
    """Relays signals handed to ``deliver`` to the child, on its own thread.

    The thread waits without timeout on its signal pipe and the session's
    shutdown pipe; setting the shutdown pipe is what ends it.
    """

    def __init__(
        self,
        relay: Callable[[int], bool],
        shutdown: ShutdownPipe,
        name: str = "ptyshell-signals",
    ) -> None:
        self._relay = relay
        self._shutdown = shutdown
        self._sig_r, self._sig_w = os.pipe()
        os.set_blocking(self._sig_r, False)
        os.set_blocking(self._sig_w, False)
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self.forwarded = 0

    @property
    def thread(self) -> threading.Thread:
        return self._thread

    def start(self) -> None:
        self._thread.start()

    def deliver(self, signum: int) -> bool:
        """Queue a signal for relay. Safe to call from a signal handler."""
        if self._sig_w < 0:
            return False
        try:
            os.write(self._sig_w, bytes([signum]))
        except OSError:
            return False
        return True

    def join(self, timeout: float | None = None) -> None:
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def close(self) -> None:
        for fd in (self._sig_r, self._sig_w):
            if fd >= 0:
                os.close(fd)
        self._sig_r = self._sig_w = -1

    def _run(self) -> None:
        poller = select.poll()
        poller.register(self._sig_r, select.POLLIN)
        poller.register(self._shutdown.fileno(), select.POLLIN)
        shutdown_fd = self._shutdown.fileno()

        while True:
            ready = {fd for fd, _ in poller.poll()}
            if self._sig_r in ready:
                self._drain()
            if shutdown_fd in ready:
                break
        logger.debug("Signal forwarder exiting (%d forwarded)", self.forwarded)

    def _drain(self) -> None:
        try:
            data = os.read(self._sig_r, 64)
        except BlockingIOError:
            return
        for signum in data:
            name = signal.Signals(signum).name
            if self._relay(signum):
                self.forwarded += 1
                logger.info("Forwarded %s to child", name)
            else:
                logger.debug("Dropped %s, no live child", name)


# ---------------------------------------------------------------------------
# Active session slot
# ---------------------------------------------------------------------------

_active: weakref.ReferenceType[ShellSession] | None = None


def set_active(session: ShellSession) -> None:
    """Make ``session`` the target of process-wide signals (last wins)."""
    global _active
    previous = get_active()
    if previous is not None and previous is not session:
        logger.debug("Active session displaced by a newer one")
    _active = weakref.ref(session)


def clear_active(session: ShellSession) -> None:
    """Empty the slot, but only if ``session`` still owns it."""
    global _active
    if get_active() is session:
        _active = None


def get_active() -> ShellSession | None:
    ref = _active
    return ref() if ref is not None else None


# ---------------------------------------------------------------------------
# Process-wide handlers
# ---------------------------------------------------------------------------


def _on_winch(signum: int, frame) -> None:
    session = get_active()
    if session is not None:
        session.resize_pending = True
    _registry.chain(signum, frame)


def _on_forwarded(signum: int, frame) -> None:
    session = get_active()
    if session is not None and session.relay_signal(signum):
        return
    _registry.fallback(signum, frame)


class _HandlerRegistry:
    """Reference-counted installation of the handlers above.

    Handlers go in on the first ``acquire`` and the previous ones come
    back on the last ``release``. ``signal.signal`` only works on the main
    thread; elsewhere acquiring is skipped and releasing leaves the
    handlers in place (they fall back to the old disposition while no
    session is active).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._saved: dict[int, Callable | int] = {}
        self._users = 0

    @property
    def users(self) -> int:
        return self._users

    def installed(self) -> set[int]:
        return set(self._saved)

    def acquire(self, signums: Iterable[int]) -> bool:
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers not installed")
            return False
        with self._lock:
            for signum in signums:
                if signum in self._saved:
                    continue
                handler = _on_winch if signum == signal.SIGWINCH else _on_forwarded
                previous = signal.signal(signum, handler)
                self._saved[signum] = previous if previous is not None else signal.SIG_DFL
            self._users += 1
        return True

    def release(self) -> None:
        with self._lock:
            if self._users == 0:
                return
            self._users -= 1
            if self._users:
                return
            if threading.current_thread() is not threading.main_thread():
                logger.debug("Off the main thread, signal handlers left installed")
                return
            for signum, previous in self._saved.items():
                signal.signal(signum, previous)
            self._saved.clear()

    def chain(self, signum: int, frame) -> None:
        previous = self._saved.get(signum)
        if callable(previous):
            previous(signum, frame)

    def fallback(self, signum: int, frame) -> None:
        """Act as if our handler had never been installed."""
        previous = self._saved.get(signum, signal.SIG_DFL)
        if callable(previous):
            previous(signum, frame)
        elif previous == signal.SIG_DFL:
            signal.signal(signum, signal.SIG_DFL)
            os.kill(os.getpid(), signum)


_registry = _HandlerRegistry()


def install_handlers(forward: bool = True, watch_resize: bool = True) -> bool:
    signums: list[int] = []
    if forward:
        signums.extend(FORWARDED_SIGNALS)
    if watch_resize:
        signums.append(signal.SIGWINCH)
    if not signums:
        return False
    return _registry.acquire(signums)


def release_handlers() -> None:
    _registry.release()
