"""Interactive review application: deck picker, key commands, answer prompt."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from termki.anki_connect import AnkiConnectClient
from termki.components import Input, SelectList, SelectListTheme
from termki.config import Config
from termki.keys import Key, parse_key, split_input
from termki.session import ReviewSession
from termki.terminal import Terminal
from termki.terminal_image import TerminalCapabilities
from termki.tui import Screen

logger = logging.getLogger(__name__)

_ANSWER_TITLE = "Type your answer ([Enter]/[Esc] save, [Ctrl-C] cancel)"


def _bold(text: str) -> str:
    return f"\x1b[1m{text}\x1b[0m"


class ReviewApp:
    """Routes terminal input to the deck picker, the answer prompt or the session."""

    def __init__(
        self,
        terminal: Terminal,
        client: AnkiConnectClient,
        config: Config | None = None,
        capabilities: TerminalCapabilities | None = None,
        deck: str | None = None,
    ) -> None:
        self.terminal = terminal
        self.config = config or Config()
        self.screen = Screen(terminal)
        self.session = ReviewSession(client, self.screen, self.config, capabilities)
        self._initial_deck = deck

        self.picker: SelectList | None = None
        self.answer_input: Input | None = None
        self.closed = False
        self.on_close: Callable[[], None] | None = None

        self._commands: dict[str, Callable[[], None]] = {
            Key.space: self.session.reveal,
            "1": lambda: self._rate(1),
            "2": lambda: self._rate(2),
            "3": lambda: self._rate(3),
            "4": lambda: self._rate(4),
            "s": self.session.skip,
            "r": self.restart,
            "p": self.session.toggle_mode,
            "a": self.open_answer_input,
            "q": self.close,
        }

    # -- lifecycle ----------------------------------------------------------

    def start(self) -> None:
        self.terminal.start(self.handle_input, self.handle_resize)
        self.terminal.set_title("termki")
        self._announce_images()

        deck = self._initial_deck
        self._initial_deck = None
        if deck is not None and self.session.start_deck(deck):
            return
        self.show_deck_picker()

    def _announce_images(self) -> None:
        caps = self.session.capabilities
        if caps.supports_images:
            self.screen.notify(
                f"{caps.terminal.capitalize()} terminal detected - image support enabled!"
            )

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.session.close()
        if self.on_close is not None:
            self.on_close()

    def restart(self) -> None:
        self.answer_input = None
        self.session.restart()
        self.show_deck_picker()

    # -- deck picker --------------------------------------------------------

    def show_deck_picker(self) -> None:
        decks = self.session.list_decks()
        if decks is None:
            self.picker = None
            self.screen.set_lines(["", "  [q] Quit  [r] Retry"])
            return

        picker = SelectList(
            decks,
            max_visible=max(1, self.screen.rows - 6),
            theme=SelectListTheme(selected_text=_bold),
        )
        picker.on_select = self._on_deck_selected
        picker.on_cancel = self.close
        self.picker = picker
        self._draw_picker()

    def _draw_picker(self) -> None:
        if self.picker is None:
            return
        lines = ["Select deck to practice:", ""]
        lines.extend(self.picker.render(self.screen.columns))
        lines.extend(["", "[Enter] Select  [j/k] Move  [q] Quit"])
        self.screen.set_lines(lines)

    def _on_deck_selected(self, deck: str) -> None:
        if self.session.start_deck(deck):
            self.picker = None

    # -- answer prompt ------------------------------------------------------

    def open_answer_input(self) -> None:
        if not self.session.can_answer():
            return
        state = self.session.state
        if state is None:
            return

        answer = Input(state.user_answer)
        answer.on_submit = self._save_answer
        answer.on_cancel = self._cancel_answer
        self.answer_input = answer
        self._draw_answer_input()

    def _draw_answer_input(self) -> None:
        if self.answer_input is None:
            return
        lines = [_bold(_ANSWER_TITLE)]
        lines.extend(self.answer_input.render(self.screen.columns))
        self.screen.show_overlay(lines)

    def _save_answer(self, text: str) -> None:
        self.answer_input = None
        self.screen.hide_overlay()
        self.session.save_answer(text)

    def _cancel_answer(self) -> None:
        self.answer_input = None
        self.screen.hide_overlay()
        self.session.refresh()

    # -- input --------------------------------------------------------------

    def _rate(self, ease: int) -> None:
        self.session.rate(ease)

    def handle_input(self, data: str) -> None:
        for key_data in split_input(data):
            if self.closed:
                return
            self._dispatch(key_data)

    def _dispatch(self, key_data: str) -> None:
        self.screen.clear_notice()

        if self.answer_input is not None:
            self.answer_input.handle_input(key_data)
            if self.answer_input is not None:
                self._draw_answer_input()
            return

        if self.picker is not None:
            self.picker.handle_input(key_data)
            if self.picker is not None and not self.closed:
                self._draw_picker()
            return

        key = parse_key(key_data)
        if key is None:
            return

        if self.session.state is None:
            # No session: only quitting or retrying the deck list makes sense.
            if key == "q":
                self.close()
            elif key == "r":
                self.show_deck_picker()
            return

        command = self._commands.get(key)
        if command is not None:
            command()

    def handle_resize(self) -> None:
        if self.picker is not None:
            self._draw_picker()
        elif self.session.state is not None:
            self.session.refresh()
        else:
            self.screen.repaint()
        if self.answer_input is not None:
            self._draw_answer_input()


async def run_app(
    config: Config,
    terminal: Terminal,
    deck: str | None = None,
) -> None:
    """Run the review UI until the user quits."""
    loop = asyncio.get_running_loop()
    done = loop.create_future()

    client = AnkiConnectClient(config.anki_connect_url, timeout=config.request_timeout)
    app = ReviewApp(terminal, client, config, deck=deck)

    def _on_close() -> None:
        if not done.done():
            done.set_result(None)

    app.on_close = _on_close
    try:
        app.start()
        await done
    finally:
        terminal.stop()
        client.close()
