"""Terminal I/O for the review screen.

``Terminal`` is the interface the screen draws on. ``ProcessTerminal`` is
the real thing: the controlling tty in raw mode, switched to the alternate
screen for the lifetime of the app and restored afterwards.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import sys
import termios
import tty
from typing import Callable, Protocol, TextIO

logger = logging.getLogger(__name__)

ENTER_ALT_SCREEN = "\x1b[?1049h"
LEAVE_ALT_SCREEN = "\x1b[?1049l"
HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"

_READ_SIZE = 4096


class Terminal(Protocol):
    """What the screen needs from a terminal."""

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
    ) -> None: ...

    def stop(self) -> None: ...

    def write(self, data: str) -> None: ...

    @property
    def columns(self) -> int: ...

    @property
    def rows(self) -> int: ...

    def hide_cursor(self) -> None: ...

    def show_cursor(self) -> None: ...

    def clear_screen(self) -> None: ...

    def set_title(self, title: str) -> None: ...


class ProcessTerminal:
    """The process's own tty.

    Input is read by an asyncio reader on the stdin descriptor and decoded
    incrementally, so a multi-byte character split across two reads still
    arrives whole. Resizes come from ``SIGWINCH`` through the event loop.
    Set ``TERMKI_WRITE_LOG`` to a path to tee every write there.
    """

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._on_input: Callable[[str], None] | None = None
        self._on_resize: Callable[[], None] | None = None
        self._saved_mode: list | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._write_log = os.environ.get("TERMKI_WRITE_LOG", "")

    @property
    def columns(self) -> int:
        return self._size().columns

    @property
    def rows(self) -> int:
        return self._size().lines

    def _size(self) -> os.terminal_size:
        try:
            return os.get_terminal_size(self._stdout.fileno())
        except (ValueError, OSError):
            return os.terminal_size((80, 24))

    # -- lifecycle ----------------------------------------------------------

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
    ) -> None:
        self._on_input = on_input
        self._on_resize = on_resize

        fd = self._stdin.fileno()
        self._saved_mode = termios.tcgetattr(fd)
        tty.setraw(fd)
        self._emit(ENTER_ALT_SCREEN + HIDE_CURSOR)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; input and resize are disabled")
            return
        loop.add_reader(fd, self._read_input)
        loop.add_signal_handler(signal.SIGWINCH, self._resized)
        self._loop = loop

    def stop(self) -> None:
        if self._loop is not None:
            self._loop.remove_reader(self._stdin.fileno())
            self._loop.remove_signal_handler(signal.SIGWINCH)
            self._loop = None

        self._emit(SHOW_CURSOR + LEAVE_ALT_SCREEN)

        if self._saved_mode is not None:
            termios.tcsetattr(self._stdin.fileno(), termios.TCSADRAIN, self._saved_mode)
            self._saved_mode = None

        self._on_input = None
        self._on_resize = None

    # -- output -------------------------------------------------------------

    def write(self, data: str) -> None:
        self._emit(data)
        if not self._write_log:
            return
        try:
            with open(self._write_log, "a", encoding="utf-8") as f:
                f.write(data)
        except OSError as e:
            logger.debug("Write log %s unavailable: %s", self._write_log, e)
            self._write_log = ""

    def hide_cursor(self) -> None:
        self._emit(HIDE_CURSOR)

    def show_cursor(self) -> None:
        self._emit(SHOW_CURSOR)

    def clear_screen(self) -> None:
        self._emit("\x1b[2J\x1b[H")

    def set_title(self, title: str) -> None:
        self._emit(f"\x1b]0;{title}\x07")

    def _emit(self, data: str) -> None:
        try:
            self._stdout.write(data)
            self._stdout.flush()
        except OSError as e:
            logger.debug("Terminal write failed: %s", e)

    # -- callbacks ----------------------------------------------------------

    def _read_input(self) -> None:
        try:
            raw = os.read(self._stdin.fileno(), _READ_SIZE)
        except OSError as e:
            logger.debug("stdin read failed: %s", e)
            return

        text = self._decoder.decode(raw)
        if text and self._on_input is not None:
            self._on_input(text)

    def _resized(self) -> None:
        if self._on_resize is not None:
            self._on_resize()
