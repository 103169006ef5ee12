"""Tests for termki.keys."""

from __future__ import annotations

import pytest

from termki.keys import Key, is_printable, matches_key, parse_key, split_input


class TestSplitInput:
    def test_plain_characters(self) -> None:
        assert split_input("ab1") == ["a", "b", "1"]

    def test_csi_sequences(self) -> None:
        assert split_input("\x1b[Ax\x1b[3~") == ["\x1b[A", "x", "\x1b[3~"]

    def test_ss3_sequence(self) -> None:
        assert split_input("\x1bOB") == ["\x1bOB"]

    def test_lone_escape(self) -> None:
        assert split_input("\x1b") == ["\x1b"]

    def test_escape_then_char(self) -> None:
        assert split_input("\x1bq") == ["\x1b", "q"]

    def test_truncated_csi(self) -> None:
        assert split_input("\x1b[1") == ["\x1b[1"]


class TestParseKey:
    @pytest.mark.parametrize(
        "data,expected",
        [
            ("\x1b[A", Key.up),
            ("\x1bOB", Key.down),
            ("\x1b[C", Key.right),
            ("\x1b[D", Key.left),
            ("\x1b[H", Key.home),
            ("\x1b[4~", Key.end),
            ("\x1b[3~", Key.delete),
            ("\x1b", Key.escape),
            ("\r", Key.enter),
            ("\n", Key.enter),
            ("\t", Key.tab),
            (" ", Key.space),
            ("\x7f", Key.backspace),
            ("\x08", Key.backspace),
            ("\x03", "ctrl+c"),
            ("\x01", "ctrl+a"),
            ("q", "q"),
            ("Q", "q"),
            ("3", "3"),
        ],
    )
    def test_known(self, data: str, expected: str) -> None:
        assert parse_key(data) == expected

    def test_unknown_sequence(self) -> None:
        assert parse_key("\x1b[99~") is None

    def test_empty(self) -> None:
        assert parse_key("") is None

    def test_matches_key(self) -> None:
        assert matches_key("\x03", Key.ctrl("c"))
        assert not matches_key("c", Key.ctrl("c"))


def test_is_printable() -> None:
    assert is_printable("a")
    assert is_printable(" ")
    assert not is_printable("\x1b")
    assert not is_printable("ab")
