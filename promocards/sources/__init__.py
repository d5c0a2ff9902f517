"""Remote image sources (REST export and live editor automation)."""

from typing import Optional

from .base import ImageSource, SourceSession
from .figma_rest import FigmaRestSession, FigmaRestSource

__all__ = [
    "FigmaLiveSource",
    "FigmaRestSession",
    "FigmaRestSource",
    "ImageSource",
    "SourceSession",
    "create_source",
]


def __getattr__(name: str):
    """Lazy import so the browser stack only loads when it is used."""
    if name in ("FigmaLiveSource", "EditorSession", "EditorPage", "load_cookies"):
        from . import figma_live
        return getattr(figma_live, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def create_source(settings, strategy: Optional[str] = None) -> ImageSource:
    """Build the image source for a rendering strategy."""
    strategy = strategy or settings.rendering_strategy
    if strategy == "rest":
        return FigmaRestSource.from_settings(settings)
    if strategy == "liveAutomation":
        from .figma_live import FigmaLiveSource
        return FigmaLiveSource.from_settings(settings)
    raise ValueError(f"Unknown rendering strategy: {strategy}")
