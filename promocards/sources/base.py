"""Remote image source interface.

A source is configuration only. ``source.session()`` opens the per-batch
handle (HTTP client, browser page) that every record of one batch run goes
through; the handle is closed unconditionally when the run ends.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator

from ..models import CardRequest, RasterImage, TemplateConfig


class SourceSession(ABC):
    """Per-batch handle onto a remote image service."""

    @abstractmethod
    async def fetch_base_image(
        self,
        template: TemplateConfig,
        request: CardRequest,
        index: int = 0,
    ) -> RasterImage:
        """Produce the base image for one card.

        Args:
            template: Resolved template
            request: The card being rendered
            index: Position of the card in its batch

        Raises:
            RemoteUnavailable: network or auth failure
            TemplateNotFound: the reference does not resolve remotely
            CardTimeout: the remote call exceeded its time budget
        """

    async def close(self) -> None:
        """Release the session. Must be safe to call more than once."""


class ImageSource(ABC):
    """Abstract base class for base-image providers.

    Implementations:
    - FigmaRestSource: REST export of a node; text is composited afterwards
    - FigmaLiveSource: duplicates a component in a live editor session and
      writes the text into its layers before exporting
    """

    #: Strategy name reported in batch results
    name = "source"

    #: True when exported images already contain the card text
    renders_text = False

    @abstractmethod
    async def open_session(self) -> SourceSession:
        """Acquire per-batch resources.

        Raises:
            BatchSetupError: if credentials or the remote runtime are unusable
        """

    @asynccontextmanager
    async def session(self) -> AsyncIterator[SourceSession]:
        handle = await self.open_session()
        try:
            yield handle
        finally:
            await handle.close()
