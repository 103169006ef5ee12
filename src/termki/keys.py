"""Keyboard input parsing for legacy terminal sequences.

Raw stdin chunks are split into individual key sequences and mapped to key
identifiers such as ``"space"``, ``"ctrl+c"`` or ``"up"``.
"""

from __future__ import annotations

ESC = "\x1b"

KeyId = str


class Key:
    """Named key constants."""

    escape = "escape"
    enter = "enter"
    tab = "tab"
    space = "space"
    backspace = "backspace"
    delete = "delete"
    home = "home"
    end = "end"
    up = "up"
    down = "down"
    left = "left"
    right = "right"

    @staticmethod
    def ctrl(key: str) -> str:
        return f"ctrl+{key}"


LEGACY_KEY_SEQUENCES: dict[str, list[str]] = {
    "up": ["\x1b[A", "\x1bOA"],
    "down": ["\x1b[B", "\x1bOB"],
    "right": ["\x1b[C", "\x1bOC"],
    "left": ["\x1b[D", "\x1bOD"],
    "home": ["\x1b[H", "\x1bOH", "\x1b[1~", "\x1b[7~"],
    "end": ["\x1b[F", "\x1bOF", "\x1b[4~", "\x1b[8~"],
    "delete": ["\x1b[3~"],
}

_SEQUENCE_TO_KEY: dict[str, str] = {
    seq: name for name, seqs in LEGACY_KEY_SEQUENCES.items() for seq in seqs
}

_SPECIAL_CHARS: dict[str, str] = {
    ESC: Key.escape,
    "\r": Key.enter,
    "\n": Key.enter,
    "\t": Key.tab,
    " ": Key.space,
    "\x7f": Key.backspace,
    "\x08": Key.backspace,
}


def _csi_length(data: str, start: int) -> int:
    """Length of the CSI sequence at *start*, or of what is there if cut off."""
    i = start + 2
    while i < len(data):
        if 0x40 <= ord(data[i]) <= 0x7E:
            return i - start + 1
        i += 1
    return len(data) - start


def split_input(data: str) -> list[str]:
    """Split a raw stdin chunk into one string per key press."""
    keys: list[str] = []
    i = 0
    while i < len(data):
        ch = data[i]
        if ch == ESC and i + 1 < len(data):
            nxt = data[i + 1]
            if nxt == "[":
                length = _csi_length(data, i)
            elif nxt == "O" and i + 2 < len(data):
                length = 3
            else:
                length = 1
            keys.append(data[i : i + length])
            i += length
            continue
        keys.append(ch)
        i += 1
    return keys


def parse_key(data: str) -> KeyId | None:
    """Return the key identifier for a single key sequence."""
    if not data:
        return None

    name = _SEQUENCE_TO_KEY.get(data)
    if name is not None:
        return name

    special = _SPECIAL_CHARS.get(data)
    if special is not None:
        return special

    if len(data) == 1:
        cp = ord(data)
        if 1 <= cp <= 26:
            return Key.ctrl(chr(cp + 96))
        if data.isprintable():
            return data.lower()

    return None


def matches_key(data: str, key_id: KeyId) -> bool:
    return parse_key(data) == key_id


def is_printable(data: str) -> bool:
    return len(data) == 1 and data.isprintable()
