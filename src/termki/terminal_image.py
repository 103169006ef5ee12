"""Inline image support: terminal capability detection, geometry, encoders.

Two graphics protocols are supported:

* kitty -- chunked base64 transmission with an image registry that can be
  cleared with a single delete command.
* iTerm2 -- one unchunked ``OSC 1337`` sequence, also understood by WezTerm.
  There is no registry, so nothing can be cleared.
"""

from __future__ import annotations

import base64
import logging
import math
import os
import random
import re
import subprocess
from dataclasses import dataclass, field
from typing import Literal, Protocol

logger = logging.getLogger(__name__)

ImageProtocol = Literal["kitty", "iterm2"] | None


@dataclass(frozen=True)
class TerminalCapabilities:
    images: ImageProtocol
    terminal: str

    @property
    def supports_images(self) -> bool:
        return self.images is not None


@dataclass(frozen=True)
class ResolvedGeometry:
    source_width_px: int
    source_height_px: int
    display_width_px: int
    display_height_px: int
    rows_consumed: int


@dataclass
class EncodedImage:
    sequences: list[str] = field(default_factory=list)
    rows: int = 0


DEFAULT_MAX_WIDTH_CELLS = 60
PX_PER_CELL = 8
LINE_HEIGHT_PX = 16

_cached_capabilities: TerminalCapabilities | None = None


# ---------------------------------------------------------------------------
# Capability detection
# ---------------------------------------------------------------------------


def detect_capabilities() -> TerminalCapabilities:
    term = os.environ.get("TERM", "").lower()
    term_program = os.environ.get("TERM_PROGRAM", "")

    if (
        "kitty" in term
        or os.environ.get("KITTY_PID")
        or os.environ.get("KITTY_WINDOW_ID")
    ):
        return TerminalCapabilities(images="kitty", terminal="kitty")

    if os.environ.get("WEZTERM_EXECUTABLE"):
        return TerminalCapabilities(images="iterm2", terminal="wezterm")

    if term_program == "iTerm.app":
        return TerminalCapabilities(images="iterm2", terminal="iterm2")

    return TerminalCapabilities(images=None, terminal="unsupported")


def get_capabilities() -> TerminalCapabilities:
    global _cached_capabilities
    if _cached_capabilities is None:
        _cached_capabilities = detect_capabilities()
    return _cached_capabilities


def reset_capabilities_cache() -> None:
    global _cached_capabilities
    _cached_capabilities = None


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

_DIMENSIONS_RE = re.compile(r"(\d+) (\d+)")


def is_readable_file(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.R_OK)


def read_image_dimensions(path: str) -> tuple[int, int] | None:
    """Ask ImageMagick's ``identify`` for the pixel size of *path*."""
    try:
        proc = subprocess.run(
            ["identify", "-format", "%w %h", path],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        logger.debug("identify unavailable: %s", exc)
        return None

    if proc.returncode != 0:
        logger.debug("identify failed for %s: %s", path, proc.stderr.strip())
        return None

    m = _DIMENSIONS_RE.search(proc.stdout)
    if m is None:
        return None
    return int(m.group(1)), int(m.group(2))


def compute_geometry(
    width_px: int,
    height_px: int,
    max_width_cells: int = DEFAULT_MAX_WIDTH_CELLS,
    px_per_cell: int = PX_PER_CELL,
) -> ResolvedGeometry:
    display_width = min(width_px, max_width_cells * px_per_cell)
    display_height = height_px * display_width // width_px
    rows = math.ceil(display_height / LINE_HEIGHT_PX) + 1
    return ResolvedGeometry(
        source_width_px=width_px,
        source_height_px=height_px,
        display_width_px=display_width,
        display_height_px=display_height,
        rows_consumed=rows,
    )


def resolve_geometry(
    path: str,
    max_width_cells: int = DEFAULT_MAX_WIDTH_CELLS,
    px_per_cell: int = PX_PER_CELL,
) -> ResolvedGeometry | None:
    if not is_readable_file(path):
        logger.debug("Image not readable: %s", path)
        return None

    dims = read_image_dimensions(path)
    if dims is None:
        return None
    width, height = dims
    if width <= 0 or height <= 0:
        return None
    return compute_geometry(width, height, max_width_cells, px_per_cell)


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------

KITTY_CHUNK_SIZE = 4096

_KITTY_DELETE_ALL = "\x1b_Ga=d,d=A\x1b\\"


def cursor_to(row: int, col: int = 1) -> str:
    return f"\x1b[{row};{col}H"


def allocate_image_id() -> int:
    return random.randint(1, 0xFFFFFFFE)


def read_base64(path: str) -> str:
    with open(path, "rb") as f:
        return base64.b64encode(f.read()).decode("ascii")


def delete_all_kitty_images() -> str:
    return _KITTY_DELETE_ALL


def encode_kitty(
    base64_data: str,
    *,
    width_px: int,
    height_px: int,
    image_id: int,
) -> list[str]:
    """Split *base64_data* into kitty graphics chunks.

    Only the first chunk carries the image parameters; every chunk carries
    the id and ``m=1`` except the last, which ends the transfer with ``m=0``.
    """
    chunks: list[str] = []
    offset = 0

    while True:
        chunk = base64_data[offset : offset + KITTY_CHUNK_SIZE]
        offset += KITTY_CHUNK_SIZE
        more = 1 if offset < len(base64_data) else 0

        if not chunks:
            params = (
                f"a=T,f=100,i={image_id},s={width_px},v={height_px},q=2,m={more}"
            )
        else:
            params = f"i={image_id},m={more}"
        chunks.append(f"\x1b_G{params};{chunk}\x1b\\")

        if not more:
            return chunks


def encode_iterm2(
    base64_data: str,
    *,
    width_px: int,
    height_px: int,
    name: str | None = None,
) -> str:
    params: list[str] = []
    if name:
        params.append(f"name={base64.b64encode(name.encode()).decode()}")
    params.append("inline=1")
    params.append(f"width={width_px}px")
    params.append(f"height={height_px}px")
    params.append("preserveAspectRatio=1")
    return f"\x1b]1337;File={';'.join(params)}:{base64_data}\x07"


class ProtocolEncoder(Protocol):
    """Turns an image file into positioned terminal control sequences."""

    protocol: str

    def encode(
        self,
        path: str,
        geometry: ResolvedGeometry,
        origin_row: int,
        *,
        reset: bool = True,
    ) -> EncodedImage: ...

    def clear(self) -> list[str]: ...


class KittyEncoder:
    protocol = "kitty"

    def encode(
        self,
        path: str,
        geometry: ResolvedGeometry,
        origin_row: int,
        *,
        reset: bool = True,
    ) -> EncodedImage:
        if not is_readable_file(path):
            return EncodedImage()

        sequences: list[str] = []
        # No per-position replace in this protocol, so start from a clean slate.
        if reset:
            sequences.append(_KITTY_DELETE_ALL)
        sequences.append(cursor_to(origin_row))
        sequences.extend(
            encode_kitty(
                read_base64(path),
                width_px=geometry.display_width_px,
                height_px=geometry.display_height_px,
                image_id=allocate_image_id(),
            )
        )
        return EncodedImage(sequences=sequences, rows=geometry.rows_consumed)

    def clear(self) -> list[str]:
        return [_KITTY_DELETE_ALL]


class ITerm2Encoder:
    protocol = "iterm2"

    def encode(
        self,
        path: str,
        geometry: ResolvedGeometry,
        origin_row: int,
        *,
        reset: bool = True,
    ) -> EncodedImage:
        if not is_readable_file(path):
            return EncodedImage()

        sequence = encode_iterm2(
            read_base64(path),
            width_px=geometry.display_width_px,
            height_px=geometry.display_height_px,
            name=os.path.basename(path),
        )
        return EncodedImage(
            sequences=[cursor_to(origin_row), sequence],
            rows=geometry.rows_consumed,
        )

    def clear(self) -> list[str]:
        # iTerm2 keeps no image registry; old images vanish on redraw/scroll.
        return []


def encoder_for(capabilities: TerminalCapabilities) -> ProtocolEncoder | None:
    if capabilities.images == "kitty":
        return KittyEncoder()
    if capabilities.images == "iterm2":
        return ITerm2Encoder()
    return None


def image_fallback(src: str) -> str:
    return f"[Image: {src}]"
