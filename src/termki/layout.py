"""Lay out card markup as buffer lines with rows reserved for images.

Rows are 1-indexed buffer lines. A plan is built once per render pass and
never mutated; the orchestrator turns it into buffer lines and, after the
buffer is committed, paints each image entry at its ``row_start``.
"""

from __future__ import annotations

import html
import os
import re
from dataclasses import dataclass
from typing import Iterator, Literal

from termki.terminal_image import image_fallback
from termki.utils import wrap_text

EntryKind = Literal["text", "image"]

RESERVED_IMAGE_ROWS = 10

_IMG_TAG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_SRC_RE = re.compile(
    r"""\bsrc\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))""", re.IGNORECASE
)
_LINE_BREAK_RE = re.compile(r"<br\s*/?>|</(?:div|p|li|tr|h[1-6])\s*>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


@dataclass(frozen=True)
class ImageReference:
    src: str | None
    start: int
    end: int


@dataclass(frozen=True)
class LayoutEntry:
    kind: EntryKind
    content: str
    row_start: int
    rows: int

    @property
    def row_end(self) -> int:
        return self.row_start + self.rows

    def lines(self) -> list[str]:
        if self.kind == "image":
            return [""] * self.rows
        return self.content.split("\n")


@dataclass(frozen=True)
class LayoutPlan:
    entries: tuple[LayoutEntry, ...] = ()

    def lines(self) -> list[str]:
        out: list[str] = []
        for entry in self.entries:
            out.extend(entry.lines())
        return out

    def images(self) -> Iterator[LayoutEntry]:
        return (e for e in self.entries if e.kind == "image")

    def __len__(self) -> int:
        return len(self.entries)


def strip_html(markup: str) -> str:
    """Drop tags and decode entities; ``<br>`` and block ends become newlines."""
    text = _LINE_BREAK_RE.sub("\n", markup.replace("\r\n", "\n"))
    text = _TAG_RE.sub("", text)
    return html.unescape(text)


def find_image_references(markup: str) -> list[ImageReference]:
    refs: list[ImageReference] = []
    for m in _IMG_TAG_RE.finditer(markup):
        src_match = _SRC_RE.search(m.group(0))
        src = None
        if src_match is not None:
            raw = next(g for g in src_match.groups() if g is not None)
            src = html.unescape(raw) or None
        refs.append(ImageReference(src=src, start=m.start(), end=m.end()))
    return refs


def _text_entry(text: str, row: int, width: int | None = None) -> LayoutEntry:
    if width:
        text = "\n".join(wrap_text(text, width))
    return LayoutEntry(kind="text", content=text, row_start=row, rows=text.count("\n") + 1)


def layout(
    markup: str,
    start_row: int,
    media_dir: str | None = None,
    images_enabled: bool = False,
    reserved_rows: int = RESERVED_IMAGE_ROWS,
    width: int | None = None,
) -> tuple[LayoutPlan, int]:
    """Split *markup* into text and image entries starting at *start_row*.

    Returns the plan and the first row after it. Each image reserves
    *reserved_rows* blank rows whatever its real size turns out to be. With
    a *width*, text is word-wrapped and every wrapped line takes a row.
    """
    entries: list[LayoutEntry] = []
    row = start_row

    if not images_enabled or not media_dir:
        text = strip_html(markup).strip("\n")
        if text:
            entry = _text_entry(text, row, width)
            entries.append(entry)
            row = entry.row_end
        return LayoutPlan(tuple(entries)), row

    last = 0
    for ref in find_image_references(markup):
        before = strip_html(markup[last : ref.start]).strip("\n")
        if before:
            entry = _text_entry(before, row, width)
            entries.append(entry)
            row = entry.row_end
        last = ref.end

        if ref.src is None:
            continue

        placeholder = _text_entry(image_fallback(ref.src), row, width)
        entries.append(placeholder)
        row = placeholder.row_end

        entries.append(
            LayoutEntry(
                kind="image",
                content=os.path.join(media_dir, ref.src),
                row_start=row,
                rows=reserved_rows,
            )
        )
        row += reserved_rows

    rest = strip_html(markup[last:]).strip("\n")
    if rest:
        entry = _text_entry(rest, row, width)
        entries.append(entry)
        row = entry.row_end

    return LayoutPlan(tuple(entries)), row


class PlanBuilder:
    """Accumulates plain lines and laid-out markup into a single plan."""

    def __init__(self, start_row: int = 1, width: int | None = None) -> None:
        self._entries: list[LayoutEntry] = []
        self._row = start_row
        self._width = width

    @property
    def next_row(self) -> int:
        return self._row

    def add_line(self, text: str = "") -> None:
        entry = _text_entry(text, self._row, self._width)
        self._entries.append(entry)
        self._row = entry.row_end

    def add_lines(self, lines: list[str]) -> None:
        for line in lines:
            self.add_line(line)

    def add_markup(
        self,
        markup: str,
        media_dir: str | None,
        images_enabled: bool,
        reserved_rows: int = RESERVED_IMAGE_ROWS,
    ) -> None:
        plan, self._row = layout(
            markup,
            self._row,
            media_dir=media_dir,
            images_enabled=images_enabled,
            reserved_rows=reserved_rows,
            width=self._width,
        )
        self._entries.extend(plan.entries)

    def build(self) -> LayoutPlan:
        return LayoutPlan(tuple(self._entries))
