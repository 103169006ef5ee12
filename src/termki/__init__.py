"""termki: review Anki cards in the terminal with inline images."""

from termki.anki_connect import AnkiConnectClient, AnkiConnectError, CardInfo, discover_media_dir
from termki.config import Config, load_config
from termki.layout import ImageReference, LayoutEntry, LayoutPlan, PlanBuilder, layout, strip_html
from termki.render import ImageEmission, RenderOrchestrator, RenderSink
from termki.session import ReviewSession, SessionState, SessionStats
from termki.terminal_image import (
    EncodedImage,
    ITerm2Encoder,
    KittyEncoder,
    ProtocolEncoder,
    ResolvedGeometry,
    TerminalCapabilities,
    detect_capabilities,
    encoder_for,
    get_capabilities,
    reset_capabilities_cache,
    resolve_geometry,
)

__all__ = [
    # AnkiConnect
    "AnkiConnectClient",
    "AnkiConnectError",
    "CardInfo",
    "discover_media_dir",
    # Config
    "Config",
    "load_config",
    # Layout
    "ImageReference",
    "LayoutEntry",
    "LayoutPlan",
    "PlanBuilder",
    "layout",
    "strip_html",
    # Rendering
    "ImageEmission",
    "RenderOrchestrator",
    "RenderSink",
    # Session
    "ReviewSession",
    "SessionState",
    "SessionStats",
    # Terminal images
    "EncodedImage",
    "ITerm2Encoder",
    "KittyEncoder",
    "ProtocolEncoder",
    "ResolvedGeometry",
    "TerminalCapabilities",
    "detect_capabilities",
    "encoder_for",
    "get_capabilities",
    "reset_capabilities_cache",
    "resolve_geometry",
]
