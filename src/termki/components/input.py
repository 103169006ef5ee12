"""Input component - single-line free-text answer entry."""

from __future__ import annotations

from typing import Callable

import grapheme

from termki.keys import Key, is_printable, parse_key
from termki.utils import truncate_to_width, visible_width

_REVERSE = "\x1b[7m"
_RESET = "\x1b[0m"


class Input:
    """Single-line input with cursor movement and backspace."""

    def __init__(self, value: str = "") -> None:
        self._value: str = value
        self._cursor: int = len(value)

        self.on_submit: Callable[[str], None] | None = None
        self.on_cancel: Callable[[], None] | None = None

    def get_value(self) -> str:
        return self._value

    def set_value(self, value: str) -> None:
        self._value = value
        self._cursor = min(self._cursor, len(value))

    @property
    def cursor(self) -> int:
        return self._cursor

    def handle_input(self, data: str) -> None:
        key = parse_key(data)

        if key in (Key.enter, Key.escape):
            if self.on_submit:
                self.on_submit(self._value)
            return

        if key == Key.ctrl("c"):
            if self.on_cancel:
                self.on_cancel()
            return

        if key == Key.backspace:
            if self._cursor > 0:
                before = list(grapheme.graphemes(self._value[: self._cursor]))
                removed = len(before[-1]) if before else 1
                self._value = self._value[: self._cursor - removed] + self._value[self._cursor :]
                self._cursor -= removed
            return

        if key == Key.delete:
            if self._cursor < len(self._value):
                after = list(grapheme.graphemes(self._value[self._cursor :]))
                removed = len(after[0]) if after else 1
                self._value = self._value[: self._cursor] + self._value[self._cursor + removed :]
            return

        if key == Key.left:
            if self._cursor > 0:
                before = list(grapheme.graphemes(self._value[: self._cursor]))
                self._cursor -= len(before[-1]) if before else 1
            return

        if key == Key.right:
            if self._cursor < len(self._value):
                after = list(grapheme.graphemes(self._value[self._cursor :]))
                self._cursor += len(after[0]) if after else 1
            return

        if key in (Key.home, Key.ctrl("a")):
            self._cursor = 0
            return

        if key in (Key.end, Key.ctrl("e")):
            self._cursor = len(self._value)
            return

        if is_printable(data):
            self._value = self._value[: self._cursor] + data + self._value[self._cursor :]
            self._cursor += len(data)

    def render(self, width: int) -> list[str]:
        prompt = "> "
        available = max(1, width - visible_width(prompt) - 1)

        before = self._value[: self._cursor]
        at = self._value[self._cursor : self._cursor + 1] or " "
        after = self._value[self._cursor + 1 :]

        # Keep the cursor in view by dropping text from the left.
        while before and visible_width(before) + 1 > available:
            before = before[1:]

        line = f"{prompt}{before}{_REVERSE}{at}{_RESET}{after}"
        return [truncate_to_width(line, width, "")]
