"""Two-phase rendering of a layout plan onto a render sink.

Phase one replaces every buffer line at once. Phase two paints images at
their reserved rows, and only runs once the sink has redrawn the committed
buffer, because image placement is addressed by screen row.
"""

from __future__ import annotations

import logging
from typing import Callable, Literal, Protocol

from termki.layout import LayoutEntry, LayoutPlan
from termki.terminal_image import (
    DEFAULT_MAX_WIDTH_CELLS,
    ProtocolEncoder,
    ResolvedGeometry,
    resolve_geometry,
)

logger = logging.getLogger(__name__)

NoticeLevel = Literal["info", "warning", "error"]

_SAVE_CURSOR = "\x1b7"
_RESTORE_CURSOR = "\x1b8"


class RenderSink(Protocol):
    """Surface that owns the text buffer and the raw terminal stream."""

    @property
    def rows(self) -> int: ...

    @property
    def columns(self) -> int: ...

    def set_lines(self, lines: list[str]) -> None: ...

    def write(self, data: str) -> None: ...

    def call_soon(self, callback: Callable[[], None]) -> None: ...

    def notify(self, message: str, level: NoticeLevel = "info") -> None: ...


GeometryResolver = Callable[[str], ResolvedGeometry | None]


class ImageEmission:
    """Second phase of a render pass: the images of one committed plan."""

    def __init__(
        self,
        sink: RenderSink,
        encoder: ProtocolEncoder | None,
        resolver: GeometryResolver,
        images: list[LayoutEntry],
    ) -> None:
        self._sink = sink
        self._encoder = encoder
        self._resolver = resolver
        self._images = images
        self.emitted: list[LayoutEntry] = []
        self.cancelled = False

    def __len__(self) -> int:
        return len(self._images)

    def cancel(self) -> None:
        """Drop this emission; a newer pass owns the screen now."""
        self.cancelled = True

    def emit(self) -> None:
        if self.cancelled or self._encoder is None:
            return

        visible_rows = self._sink.rows
        for entry in self._images:
            if entry.row_start > visible_rows:
                logger.debug("Image row %d off screen, skipping", entry.row_start)
                continue

            geometry = self._resolver(entry.content)
            if geometry is None:
                logger.debug("No geometry for %s, keeping placeholder", entry.content)
                continue

            # The first image already starts from a cleared registry; resetting
            # again would erase images painted earlier in this pass.
            encoded = self._encoder.encode(
                entry.content,
                geometry,
                entry.row_start,
                reset=not self.emitted,
            )
            if not encoded.sequences:
                continue

            self._sink.write(_SAVE_CURSOR + "".join(encoded.sequences) + _RESTORE_CURSOR)
            self.emitted.append(entry)


class RenderOrchestrator:
    def __init__(
        self,
        sink: RenderSink,
        encoder: ProtocolEncoder | None,
        resolver: GeometryResolver | None = None,
        max_width_cells: int = DEFAULT_MAX_WIDTH_CELLS,
    ) -> None:
        self._sink = sink
        self._encoder = encoder
        if resolver is None:

            def resolver(path: str) -> ResolvedGeometry | None:
                return resolve_geometry(path, max_width_cells=max_width_cells)

        self._resolver = resolver
        self._pending: ImageEmission | None = None

    @property
    def encoder(self) -> ProtocolEncoder | None:
        return self._encoder

    def clear_images(self) -> None:
        """Remove painted images and cancel any emission still queued."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._encoder is None:
            return
        sequences = self._encoder.clear()
        if sequences:
            self._sink.write("".join(sequences))

    def commit(self, plan: LayoutPlan) -> ImageEmission:
        """Clear old images and replace the whole buffer with *plan*."""
        self.clear_images()
        self._sink.set_lines(plan.lines())
        emission = ImageEmission(
            self._sink, self._encoder, self._resolver, list(plan.images())
        )
        self._pending = emission
        return emission

    def render(self, plan: LayoutPlan) -> ImageEmission:
        emission = self.commit(plan)
        if len(emission):
            self._sink.call_soon(emission.emit)
        return emission
