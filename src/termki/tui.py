"""Full-screen surface that owns the card buffer on a ``Terminal``.

``Screen`` is the render sink: it repaints every buffer line from the top
of the screen, passes raw image sequences straight through, defers
callbacks to the next event-loop tick and keeps a one-line notice area on
the bottom row.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from termki.render import NoticeLevel
from termki.utils import truncate_to_width

if TYPE_CHECKING:
    from termki.terminal import Terminal

logger = logging.getLogger(__name__)

_CLEAR_SCREEN = "\x1b[H\x1b[2J"
_CLEAR_LINE = "\x1b[2K"
_RESET = "\x1b[0m"

_NOTICE_STYLES: dict[str, str] = {
    "info": "\x1b[2m",
    "warning": "\x1b[33m",
    "error": "\x1b[31m",
}

_LOG_LEVELS: dict[str, int] = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class Screen:
    """Render sink backed by a terminal in the alternate screen."""

    def __init__(self, terminal: Terminal) -> None:
        self.terminal = terminal
        self._lines: list[str] = []
        self._notice: tuple[str, NoticeLevel] | None = None
        self._overlay: list[str] = []
        self._repaint_count = 0

    # -- geometry -----------------------------------------------------------

    @property
    def rows(self) -> int:
        """Rows available to the buffer; the last row holds notices."""
        return max(1, self.terminal.rows - 1)

    @property
    def columns(self) -> int:
        return self.terminal.columns

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    @property
    def notice(self) -> tuple[str, NoticeLevel] | None:
        return self._notice

    @property
    def repaint_count(self) -> int:
        return self._repaint_count

    # -- RenderSink ---------------------------------------------------------

    def set_lines(self, lines: list[str]) -> None:
        self._lines = list(lines)
        self._overlay = []
        self.repaint()

    def write(self, data: str) -> None:
        self.terminal.write(data)

    def call_soon(self, callback: Callable[[], None]) -> None:
        """Run *callback* on the next event-loop tick.

        Without a running loop the callback runs synchronously.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            callback()
            return
        loop.call_soon(callback)

    def notify(self, message: str, level: NoticeLevel = "info") -> None:
        logger.log(_LOG_LEVELS.get(level, logging.INFO), "%s", message)
        self._notice = (message, level)
        self.terminal.write(self._status_line())

    def clear_notice(self) -> None:
        if self._notice is None:
            return
        self._notice = None
        self.terminal.write(self._status_line())

    # -- painting -----------------------------------------------------------

    def repaint(self) -> None:
        """Clear the screen and draw every visible buffer line from row 1."""
        width = self.columns
        out: list[str] = [_CLEAR_SCREEN]
        for i, line in enumerate(self._lines[: self.rows]):
            out.append(f"\x1b[{i + 1};1H")
            out.append(truncate_to_width(line, width))
        out.append(self._status_line())
        out.append(self._overlay_lines())
        self._repaint_count += 1
        self.terminal.write("".join(out))

    def show_overlay(self, lines: list[str]) -> None:
        """Draw *lines* just above the notice row without touching the buffer."""
        self._overlay = list(lines)
        self.terminal.write(self._overlay_lines())

    def hide_overlay(self) -> None:
        self._overlay = []

    def _overlay_lines(self) -> str:
        if not self._overlay:
            return ""
        width = self.columns
        first_row = max(1, self.rows - len(self._overlay) + 1)
        out: list[str] = []
        for offset, line in enumerate(self._overlay):
            out.append(f"\x1b[{first_row + offset};1H{_CLEAR_LINE}")
            out.append(truncate_to_width(line, width))
        return "".join(out)

    def _status_line(self) -> str:
        row = self.terminal.rows
        out = f"\x1b[{row};1H{_CLEAR_LINE}"
        if self._notice is not None:
            message, level = self._notice
            text = truncate_to_width(message, self.columns - 1)
            out += f"{_NOTICE_STYLES.get(level, '')}{text}{_RESET}"
        return out
