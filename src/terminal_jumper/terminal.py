"""Terminal abstraction used by the layout engine.

Provides a ``Terminal`` protocol and a concrete ``ProcessTerminal`` backed
by ``sys.stdin``/``sys.stdout``.  The engine only needs the size, a way to
write, a cursor-position query and resize notifications.
"""

from __future__ import annotations

import logging
import os
import select
import signal
import sys
import termios
import tty
from typing import Callable, Protocol, TextIO

from terminal_jumper.escapes import CURSOR_POSITION_QUERY, parse_cursor_position

logger = logging.getLogger(__name__)

_QUERY_ATTEMPTS = 3
_QUERY_TIMEOUT = 0.2

# ---------------------------------------------------------------------------
# Terminal protocol
# ---------------------------------------------------------------------------


class Terminal(Protocol):
    """Interface for the terminal a ``TerminalJumper`` draws on."""

    @property
    def columns(self) -> int: ...

    @property
    def rows(self) -> int: ...

    def write(self, data: str) -> None: ...

    def get_cursor_position(self) -> tuple[int, int]:
        """Zero-based ``(row, col)`` of the cursor."""
        ...

    def start(self, on_resize: Callable[[], None]) -> None: ...

    def stop(self) -> None: ...


# ---------------------------------------------------------------------------
# ProcessTerminal implementation
# ---------------------------------------------------------------------------


class ProcessTerminal:
    """Terminal backed by the process's standard streams.

    Resize detection uses ``SIGWINCH``.  Every write is mirrored to the
    file named by ``TERMINAL_JUMPER_WRITE_LOG`` when that is set.
    """

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._resize_handler: Callable[[], None] | None = None
        self._prev_sigwinch_handler: signal.Handlers | None = None
        self._write_log_path: str = os.environ.get("TERMINAL_JUMPER_WRITE_LOG", "")

    # -- properties ---------------------------------------------------------

    @property
    def columns(self) -> int:
        try:
            return os.get_terminal_size(self._stdout.fileno()).columns
        except (ValueError, OSError):
            return 80

    @property
    def rows(self) -> int:
        try:
            return os.get_terminal_size(self._stdout.fileno()).lines
        except (ValueError, OSError):
            return 24

    # -- start / stop -------------------------------------------------------

    def start(self, on_resize: Callable[[], None]) -> None:
        """Begin delivering resize notifications to *on_resize*."""
        self._resize_handler = on_resize
        self._prev_sigwinch_handler = signal.getsignal(signal.SIGWINCH)
        signal.signal(signal.SIGWINCH, self._on_sigwinch)

    def stop(self) -> None:
        """Restore the previous ``SIGWINCH`` handler."""
        if self._prev_sigwinch_handler is not None:
            signal.signal(signal.SIGWINCH, self._prev_sigwinch_handler)
            self._prev_sigwinch_handler = None
        self._resize_handler = None

    # -- write --------------------------------------------------------------

    def write(self, data: str) -> None:
        """Write data to stdout and optionally to the write log."""
        self._raw_write(data)

        if self._write_log_path:
            try:
                with open(self._write_log_path, "a") as f:
                    f.write(data)
            except OSError:
                logger.warning("Could not append to %s", self._write_log_path)

    # -- cursor position ----------------------------------------------------

    def get_cursor_position(self) -> tuple[int, int]:
        """Ask the terminal where the cursor is.

        Sends ``ESC[6n`` with stdin in raw mode and waits for the
        ``ESC[{row};{col}R`` reply, retrying when the reply is garbled.
        Streams that are not terminals report ``(0, 0)``.
        """
        try:
            fd = self._stdin.fileno()
        except (AttributeError, ValueError, OSError):
            return (0, 0)
        if not (os.isatty(fd) and self._stdout.isatty()):
            return (0, 0)

        original = termios.tcgetattr(fd)
        try:
            tty.setraw(fd)
            for attempt in range(1, _QUERY_ATTEMPTS + 1):
                self._raw_write(CURSOR_POSITION_QUERY)
                position = parse_cursor_position(_read_reply(fd))
                if position is not None:
                    return position
                logger.debug("Cursor position query attempt %d failed", attempt)
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, original)

        logger.warning("Terminal did not report a cursor position; using (0, 0)")
        return (0, 0)

    # -- private: SIGWINCH -------------------------------------------------

    def _on_sigwinch(
        self,
        signum: int,
        frame: object,
    ) -> None:
        """Handle terminal resize signals."""
        if self._resize_handler is not None:
            self._resize_handler()

    # -- private: raw write ------------------------------------------------

    def _raw_write(self, data: str) -> None:
        """Write directly to stdout, bypassing buffering."""
        self._stdout.write(data)
        self._stdout.flush()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _read_reply(fd: int) -> str:
    """Read from *fd* until an ``R`` arrives or the terminal goes quiet."""
    data = b""
    while not data.endswith(b"R"):
        ready, _, _ = select.select([fd], [], [], _QUERY_TIMEOUT)
        if not ready:
            break
        chunk = os.read(fd, 32)
        if not chunk:
            break
        data += chunk
    return data.decode("utf-8", errors="replace")
