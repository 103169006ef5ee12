"""AnkiConnect client: decks, due cards, card info, answers, media directory.

AnkiConnect exposes a JSON RPC endpoint on ``http://localhost:8765``. Every
request is ``{"action", "version", "params"}`` and every response is
``{"result", "error"}``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:8765"
API_VERSION = 6


class AnkiConnectError(Exception):
    """AnkiConnect was unreachable or answered with an error."""


@dataclass
class CardInfo:
    card_id: int
    model_name: str
    fields: dict[str, str] = field(default_factory=dict)
    deck_name: str = ""
    question: str = ""
    answer: str = ""

    def _field(self, suffix: str, position: int) -> str:
        for name in (f"{self.model_name}-{suffix}", suffix):
            if name in self.fields:
                return self.fields[name]
        values = list(self.fields.values())
        if position < len(values):
            return values[position]
        return ""

    @property
    def front(self) -> str:
        return self._field("Front", 0)

    @property
    def back(self) -> str:
        return self._field("Back", 1)


def card_info_from_dict(data: dict[str, Any]) -> CardInfo:
    fields: dict[str, str] = {}
    for name, value in (data.get("fields") or {}).items():
        if isinstance(value, dict):
            fields[name] = str(value.get("value", ""))
        else:
            fields[name] = str(value)
    return CardInfo(
        card_id=int(data["cardId"]),
        model_name=str(data.get("modelName", "")),
        fields=fields,
        deck_name=str(data.get("deckName", "")),
        question=str(data.get("question", "")),
        answer=str(data.get("answer", "")),
    )


class AnkiConnectClient:
    def __init__(
        self,
        url: str = DEFAULT_URL,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self._client = httpx.Client(timeout=httpx.Timeout(timeout), transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> AnkiConnectClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def request(self, action: str, **params: Any) -> Any:
        payload = {"action": action, "version": API_VERSION, "params": params}
        try:
            response = self._client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.warning("AnkiConnect %s failed: %s", action, e)
            raise AnkiConnectError(f"Failed to connect to AnkiConnect at {self.url}") from e

        if response.status_code >= 400:
            raise AnkiConnectError(f"AnkiConnect returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise AnkiConnectError("Failed to parse AnkiConnect response") from e

        if not isinstance(body, dict) or "result" not in body:
            raise AnkiConnectError("Malformed AnkiConnect response")

        error = body.get("error")
        if error:
            logger.warning("AnkiConnect %s error: %s", action, error)
            raise AnkiConnectError(str(error))

        return body["result"]

    # -- actions ----------------------------------------------------------

    def deck_names(self) -> list[str]:
        return list(self.request("deckNames") or [])

    def find_due_cards(self, deck_name: str) -> list[int]:
        query = f'deck:"{deck_name}" is:due'
        return list(self.request("findCards", query=query) or [])

    def cards_info(self, card_ids: list[int]) -> list[CardInfo]:
        result = self.request("cardsInfo", cards=card_ids) or []
        try:
            return [card_info_from_dict(item) for item in result]
        except (KeyError, TypeError, ValueError) as e:
            raise AnkiConnectError("Malformed card info") from e

    def card_info(self, card_id: int) -> CardInfo:
        infos = self.cards_info([card_id])
        if not infos:
            raise AnkiConnectError("No card info found")
        return infos[0]

    def answer_card(self, card_id: int, ease: int) -> Any:
        if ease not in (1, 2, 3, 4):
            raise ValueError(f"ease must be between 1 and 4, got {ease}")
        return self.request("answerCards", answers=[{"cardId": card_id, "ease": ease}])

    def media_dir_path(self) -> str | None:
        result = self.request("getMediaDirPath")
        if not isinstance(result, str) or not result:
            return None
        return result


def default_media_candidates() -> list[Path]:
    home = Path.home()
    return [
        home / ".local/share/Anki2/User 1/collection.media",
        home / "Documents/Anki/User 1/collection.media",
        home / "Library/Application Support/Anki2/User 1/collection.media",
    ]


def discover_media_dir(
    client: AnkiConnectClient | None,
    candidates: list[Path] | None = None,
) -> str | None:
    if client is not None:
        try:
            path = client.media_dir_path()
            if path:
                return path
        except AnkiConnectError as e:
            logger.debug("getMediaDirPath unavailable: %s", e)

    for candidate in candidates if candidates is not None else default_media_candidates():
        if os.path.isdir(candidate):
            return str(candidate)
    return None
