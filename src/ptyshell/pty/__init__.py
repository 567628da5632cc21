"""PTY shell sessions: an interactive shell behind a pseudo-terminal.

A session owns one shell process, a reader thread that pumps its output
into a callback, and a forwarder thread that relays terminal signals.
"""

from ptyshell.pty.buffer import OutputBuffer
from ptyshell.pty.handle import PTYHandle, PTYSpawnError
from ptyshell.pty.messages import MessageKind, split_message
from ptyshell.pty.session import SessionStatus, ShellSession

__all__ = [
    "MessageKind",
    "OutputBuffer",
    "PTYHandle",
    "PTYSpawnError",
    "SessionStatus",
    "ShellSession",
    "split_message",
]
