"""Review session: deck state, card navigation, and the card views."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from termki.anki_connect import AnkiConnectClient, AnkiConnectError, CardInfo, discover_media_dir
from termki.config import Config
from termki.layout import LayoutPlan, PlanBuilder
from termki.render import NoticeLevel, RenderOrchestrator, RenderSink
from termki.terminal_image import TerminalCapabilities, encoder_for, get_capabilities

logger = logging.getLogger(__name__)

RULE = "═" * 55

_RATING_HINT = "Rate: [1] Again  [2] Hard  [3] Good  [4] Easy  [s] Skip"
_FOOTER_HINT = "[q] Quit  [r] Restart  [p] Toggle practice mode"


@dataclass
class SessionStats:
    total: int = 0
    correct: int = 0
    incorrect: int = 0
    skipped: int = 0

    @property
    def correct_percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.correct / self.total * 100


@dataclass
class SessionState:
    deck: str
    card_ids: list[int]
    capabilities: TerminalCapabilities
    media_dir: str | None = None
    index: int = 0
    current_card: CardInfo | None = None
    revealed: bool = False
    practice_mode: bool = True
    user_answer: str = ""
    stats: SessionStats = field(default_factory=SessionStats)

    @property
    def images_enabled(self) -> bool:
        return self.capabilities.supports_images and self.media_dir is not None

    @property
    def finished(self) -> bool:
        return self.index >= len(self.card_ids)


class ReviewSession:
    """Drives a review of one deck's due cards onto a render sink."""

    def __init__(
        self,
        client: AnkiConnectClient,
        sink: RenderSink,
        config: Config | None = None,
        capabilities: TerminalCapabilities | None = None,
        orchestrator: RenderOrchestrator | None = None,
    ) -> None:
        self._client = client
        self._sink = sink
        self._config = config or Config()
        self.capabilities = capabilities or get_capabilities()
        self._orchestrator = orchestrator or RenderOrchestrator(
            sink,
            encoder_for(self.capabilities),
            max_width_cells=self._config.max_width_cells,
        )
        self._media_dir: str | None = self._config.media_dir
        self._media_dir_resolved = self._config.media_dir is not None
        self.practice_mode = self._config.practice_mode
        self.state: SessionState | None = None

    # -- notices ------------------------------------------------------------

    def _notify(self, message: str, level: NoticeLevel = "info") -> None:
        self._sink.notify(message, level)

    # -- media directory ----------------------------------------------------

    def media_dir(self) -> str | None:
        if not self._media_dir_resolved:
            self._media_dir = discover_media_dir(self._client)
            self._media_dir_resolved = True
            logger.info("Media directory: %s", self._media_dir)
        return self._media_dir

    # -- session lifecycle --------------------------------------------------

    def list_decks(self) -> list[str] | None:
        try:
            decks = self._client.deck_names()
        except AnkiConnectError:
            self._notify(
                "Failed to connect to AnkiConnect. Make sure Anki is running "
                "with the AnkiConnect add-on.",
                "error",
            )
            return None
        if not decks:
            self._notify("No decks found in Anki", "warning")
            return None
        return decks

    def start_deck(self, deck: str) -> bool:
        try:
            card_ids = self._client.find_due_cards(deck)
        except AnkiConnectError as e:
            self._notify(f"Failed to get cards: {e}", "error")
            return False
        if not card_ids:
            self._notify(f"No due cards in deck: {deck}", "info")
            return False

        self.state = SessionState(
            deck=deck,
            card_ids=list(card_ids),
            capabilities=self.capabilities,
            media_dir=self.media_dir() if self.capabilities.supports_images else None,
            practice_mode=self.practice_mode,
            stats=SessionStats(total=len(card_ids)),
        )
        logger.info("Started deck %r with %d due cards", deck, len(card_ids))
        self._load_next_card()
        return True

    def restart(self) -> None:
        self.close()

    def close(self) -> None:
        self._orchestrator.clear_images()
        if self.state is not None:
            self.practice_mode = self.state.practice_mode
        self.state = None

    # -- card navigation ----------------------------------------------------

    def _load_next_card(self) -> None:
        state = self.state
        if state is None:
            return

        while not state.finished:
            card_id = state.card_ids[state.index]
            try:
                card = self._client.card_info(card_id)
            except AnkiConnectError as e:
                self._notify(f"Failed to load card: {e}", "error")
                state.index += 1
                continue

            state.current_card = card
            state.revealed = False
            state.user_answer = ""
            self.refresh()
            return

        state.current_card = None
        self.refresh()

    def reveal(self) -> None:
        state = self.state
        if state is None or state.current_card is None or state.revealed:
            return
        state.revealed = True
        self.refresh()

    def rate(self, ease: int) -> bool:
        state = self.state
        if state is None or state.current_card is None or not state.revealed:
            return False

        try:
            self._client.answer_card(state.current_card.card_id, ease)
        except AnkiConnectError as e:
            self._notify(f"Failed to answer card: {e}", "error")
            return False

        if ease == 1:
            state.stats.incorrect += 1
        else:
            state.stats.correct += 1
        state.index += 1
        self._load_next_card()
        return True

    def skip(self) -> None:
        state = self.state
        if state is None or state.current_card is None:
            return
        state.stats.skipped += 1
        state.index += 1
        self._load_next_card()

    def toggle_mode(self) -> None:
        state = self.state
        if state is None:
            return
        state.practice_mode = not state.practice_mode
        self._notify(f"Practice mode: {'ON' if state.practice_mode else 'OFF'}")
        self.refresh()

    # -- free-text answer ---------------------------------------------------

    def can_answer(self) -> bool:
        state = self.state
        return (
            state is not None
            and state.current_card is not None
            and not state.revealed
            and state.practice_mode
        )

    def save_answer(self, text: str) -> None:
        if self.state is None:
            return
        self.state.user_answer = text
        self.refresh()

    # -- views --------------------------------------------------------------

    def refresh(self) -> None:
        state = self.state
        if state is None:
            return
        if state.current_card is None:
            plan = self.build_summary_view()
        else:
            plan = self.build_card_view()
        self._orchestrator.render(plan)

    def _add_user_answer(self, builder: PlanBuilder, state: SessionState) -> None:
        if not state.user_answer:
            return
        builder.add_line("YOUR ANSWER:")
        builder.add_line("─" * 12)
        for line in state.user_answer.splitlines():
            if line:
                builder.add_line(f"  {line}")
        builder.add_line()

    def build_card_view(self) -> LayoutPlan:
        state = self.state
        if state is None or state.current_card is None:
            return LayoutPlan()
        card = state.current_card
        stats = state.stats
        reserved = self._config.reserved_image_rows

        width = self._sink.columns
        rule = RULE[:width]
        builder = PlanBuilder(width=width)
        builder.add_lines(
            [
                rule,
                f"  Deck: {state.deck}",
                f"  Card: {state.index + 1}/{len(state.card_ids)}",
                f"  Session: ✓ {stats.correct}  ✗ {stats.incorrect}  → {stats.skipped}",
                f"  Mode: {'Practice' if state.practice_mode else 'Review'}",
                rule,
                "",
                "QUESTION:",
                "─" * 9,
            ]
        )
        builder.add_markup(card.front, state.media_dir, state.images_enabled, reserved)
        builder.add_lines(["", ""])

        if state.revealed:
            if state.practice_mode:
                self._add_user_answer(builder, state)
            builder.add_line("CORRECT ANSWER:")
            builder.add_line("─" * 15)
            builder.add_markup(card.back, state.media_dir, state.images_enabled, reserved)
            builder.add_lines(["", "", _RATING_HINT])
        elif state.practice_mode:
            self._add_user_answer(builder, state)
            builder.add_line("Press [a] to type your answer, [Space] to reveal answer")
        else:
            builder.add_line("Press [Space] to show answer")

        builder.add_lines(["", rule, _FOOTER_HINT])
        return builder.build()

    def build_summary_view(self) -> LayoutPlan:
        state = self.state
        if state is None:
            return LayoutPlan()
        stats = state.stats

        width = self._sink.columns
        rule = RULE[:width]
        builder = PlanBuilder(width=width)
        builder.add_lines(
            [
                rule,
                "  SESSION COMPLETE!",
                rule,
                "",
                f"  Total cards: {stats.total}",
                f"  Correct: {stats.correct} ({stats.correct_percent:.1f}%)",
                f"  Incorrect: {stats.incorrect}",
                f"  Skipped: {stats.skipped}",
                "",
                rule,
                "",
                "[q] Quit  [r] Start new session",
            ]
        )
        return builder.build()
