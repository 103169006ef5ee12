"""In-memory stand-in for ``AnkiConnectClient``."""

from __future__ import annotations

from termki.anki_connect import AnkiConnectError, CardInfo


class FakeAnki:
    """Serves decks and cards from dicts; ``fail`` names actions that error."""

    def __init__(
        self,
        decks: dict[str, list[int]] | None = None,
        cards: dict[int, CardInfo] | None = None,
        media_dir: str | None = None,
    ) -> None:
        self.decks = decks if decks is not None else {}
        self.cards = cards if cards is not None else {}
        self.media_dir = media_dir
        self.fail: set[str] = set()
        self.answers: list[tuple[int, int]] = []

    def _check(self, action: str) -> None:
        if action in self.fail:
            raise AnkiConnectError(f"{action} failed")

    def deck_names(self) -> list[str]:
        self._check("deckNames")
        return list(self.decks)

    def find_due_cards(self, deck_name: str) -> list[int]:
        self._check("findCards")
        return list(self.decks.get(deck_name, []))

    def card_info(self, card_id: int) -> CardInfo:
        self._check("cardsInfo")
        if card_id not in self.cards:
            raise AnkiConnectError("No card info found")
        return self.cards[card_id]

    def answer_card(self, card_id: int, ease: int) -> list[bool]:
        self._check("answerCards")
        self.answers.append((card_id, ease))
        return [True]

    def media_dir_path(self) -> str:
        self._check("getMediaDirPath")
        return self.media_dir or ""

    def close(self) -> None:
        pass

    def __enter__(self) -> FakeAnki:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def basic_card(card_id: int, front: str, back: str) -> CardInfo:
    return CardInfo(
        card_id=card_id,
        model_name="Basic",
        fields={"Front": front, "Back": back},
        deck_name="Default",
    )
