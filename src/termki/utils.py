"""Terminal text utilities: width measurement, truncation and wrapping."""

from __future__ import annotations

import re

import grapheme
import wcwidth as _wcwidth

# CSI, OSC and APC sequences never take up columns.
_STRIP_RE = re.compile(
    r"\x1b\[[0-9;?]*[A-Za-z]"
    r"|\x1b\][^\x07]*(?:\x07|\x1b\\)"
    r"|\x1b_[^\x07\x1b]*(?:\x07|\x1b\\)"
)

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def _grapheme_width(cluster: str) -> int:
    """Column width of one grapheme cluster."""
    for ch in cluster[1:]:
        cp = ord(ch)
        # Emoji presentation selector, ZWJ and skin-tone modifiers
        if cp in (0xFE0F, 0x200D) or 0x1F3FB <= cp <= 0x1F3FF:
            return 2
    width = _wcwidth.wcswidth(cluster)
    if width < 0:
        # Control characters draw nothing.
        return 0
    return min(width, 2)


def visible_width(text: str) -> int:
    """Visible column width of *text*, ignoring escape sequences."""
    if not text:
        return 0

    stripped = _STRIP_RE.sub("", text).replace("\t", "   ")
    if stripped.isascii() and stripped.isprintable():
        return len(stripped)

    cached = _width_cache.get(stripped)
    if cached is not None:
        return cached

    total = sum(_grapheme_width(g) for g in grapheme.graphemes(stripped))
    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[stripped] = total
    return total


def truncate_to_width(text: str, max_width: int, ellipsis: str = "...") -> str:
    """Truncate *text* to fit within *max_width* visible columns.

    The ellipsis counts towards the width.
    """
    if max_width <= 0:
        return ""
    if visible_width(text) <= max_width:
        return text

    target = max_width - visible_width(ellipsis)
    if target <= 0:
        return _take_columns(ellipsis, max_width)
    return _take_columns(text, target) + ellipsis


def _take_columns(text: str, max_cols: int) -> str:
    """Prefix of *text* fitting in *max_cols* columns; escapes are kept."""
    result: list[str] = []
    cols = 0
    i = 0

    while i < len(text):
        m = _STRIP_RE.match(text, i)
        if m is not None:
            result.append(m.group(0))
            i = m.end()
            continue

        ch = text[i]
        w = _grapheme_width(ch)
        if cols + w > max_cols:
            break
        result.append(ch)
        cols += w
        i += 1

    return "".join(result)


def wrap_text(text: str, width: int) -> list[str]:
    """Word-wrap *text* to *width* columns.

    Embedded newlines start a new line. Words wider than *width* are broken
    at the column limit. Escape sequences are kept and take no width.
    """
    if width <= 0:
        return text.split("\n")

    lines: list[str] = []
    for physical_line in text.split("\n"):
        lines.extend(_wrap_line(physical_line, width))
    return lines


def _wrap_line(line: str, width: int) -> list[str]:
    if visible_width(line) <= width:
        return [line]

    lines: list[str] = []
    current: list[str] = []
    current_width = 0
    i = 0

    while i < len(line):
        m = _STRIP_RE.match(line, i)
        if m is not None:
            current.append(m.group(0))
            i = m.end()
            continue

        ch = line[i]
        if ch == "\t":
            ch, w = "   ", 3
        else:
            w = _grapheme_width(ch)

        if ch == " " and current_width + w > width:
            lines.append("".join(current))
            current = []
            current_width = 0
            i += 1
            continue

        while current_width > 0 and current_width + w > width:
            joined = "".join(current)
            cut = joined.rfind(" ")
            if cut > 0:
                lines.append(joined[:cut].rstrip(" "))
                current = [joined[cut:].lstrip(" ")]
            else:
                lines.append(joined)
                current = []
            current_width = visible_width("".join(current))

        if ch == " " and current_width == 0 and lines:
            # Leading space of a continuation line
            i += 1
            continue

        current.append(ch)
        current_width += w
        i += 1

    lines.append("".join(current))
    return lines
