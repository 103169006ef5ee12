"""SelectList component used to pick the deck to review."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from termki.keys import Key, parse_key
from termki.utils import truncate_to_width


def _identity(text: str) -> str:
    return text


@dataclass
class SelectListTheme:
    selected_text: Callable[[str], str] = _identity
    scroll_info: Callable[[str], str] = _identity


class SelectList:
    """Vertical list with wrap-around keyboard navigation."""

    def __init__(
        self,
        items: list[str],
        max_visible: int,
        theme: SelectListTheme | None = None,
    ) -> None:
        self._items = items
        self._selected_index = 0
        self._max_visible = max(1, max_visible)
        self._theme = theme or SelectListTheme()

        self.on_select: Callable[[str], None] | None = None
        self.on_cancel: Callable[[], None] | None = None

    @property
    def selected_index(self) -> int:
        return self._selected_index

    def get_selected_item(self) -> str | None:
        if self._selected_index < len(self._items):
            return self._items[self._selected_index]
        return None

    def render(self, width: int) -> list[str]:
        if not self._items:
            return ["  No decks"]

        start_index = max(
            0,
            min(
                self._selected_index - self._max_visible // 2,
                len(self._items) - self._max_visible,
            ),
        )
        end_index = min(start_index + self._max_visible, len(self._items))

        lines: list[str] = []
        for i in range(start_index, end_index):
            value = truncate_to_width(self._items[i], width - 4, "")
            if i == self._selected_index:
                lines.append(self._theme.selected_text(f"→ {value}"))
            else:
                lines.append(f"  {value}")

        if start_index > 0 or end_index < len(self._items):
            scroll_text = f"  ({self._selected_index + 1}/{len(self._items)})"
            lines.append(self._theme.scroll_info(truncate_to_width(scroll_text, width - 2, "")))

        return lines

    def handle_input(self, key_data: str) -> None:
        key = parse_key(key_data)
        if not self._items and key not in (Key.escape, "q"):
            return

        if key in (Key.up, "k"):
            self._selected_index = (
                len(self._items) - 1 if self._selected_index == 0 else self._selected_index - 1
            )
        elif key in (Key.down, "j"):
            self._selected_index = (
                0 if self._selected_index == len(self._items) - 1 else self._selected_index + 1
            )
        elif key == Key.enter:
            if self.on_select:
                self.on_select(self._items[self._selected_index])
        elif key in (Key.escape, "q"):
            if self.on_cancel:
                self.on_cancel()
