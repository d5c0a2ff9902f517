"""Single-card rendering: template -> base image -> text -> upload."""

import asyncio
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .compositor import Compositor
from .errors import CardError
from .models import CardRequest, CardResult, RasterImage
from .sources.base import SourceSession
from .templates import TemplateResolver
from .text_layout import layout
from .uploaders import ImageUploader, header_tag, make_filename
from .utils import get_logger

logger = get_logger(__name__)

INTERNAL_ERROR_KIND = "Internal"


class CardRenderer:
    """Turns one request into one result.

    ``render`` never raises for per-card problems; every failure is captured
    in the returned ``CardResult`` with the original header, promo and template
    kept for traceability.

    Args:
        resolver: Template table
        uploader: Opened image hosting sink
        compositor: Text overlay; only used when ``overlay_text`` is set
        overlay_text: Composite the text locally (REST strategy). Live editor
            exports already contain the text.
        stage_dir: If set, the final image is written here while it uploads
            and deleted afterwards
        debug_dir: If set, base and final images are kept here for inspection
    """

    def __init__(
        self,
        resolver: TemplateResolver,
        uploader: ImageUploader,
        compositor: Optional[Compositor] = None,
        overlay_text: bool = True,
        stage_dir: Optional[Path] = None,
        debug_dir: Optional[Path] = None,
    ):
        self.resolver = resolver
        self.uploader = uploader
        self.compositor = compositor or Compositor()
        self.overlay_text = overlay_text
        self.stage_dir = stage_dir
        self.debug_dir = debug_dir

    async def render(
        self,
        request: CardRequest,
        session: SourceSession,
        index: int = 0,
    ) -> CardResult:
        logger.info(f'Processing card: "{request.header}"')
        try:
            image_url = await self._render(request, session, index)
        except CardError as e:
            logger.error(f'Failed to process card "{request.header}" [{e.kind}]: {e.message}')
            return CardResult.failed(request, e.message, e.kind)
        except Exception as e:
            logger.exception(f'Unexpected error processing card "{request.header}"')
            return CardResult.failed(request, str(e) or type(e).__name__, INTERNAL_ERROR_KIND)
        return CardResult.ok(request, image_url)

    async def _render(self, request: CardRequest, session: SourceSession, index: int) -> str:
        template = self.resolver.resolve(request.template)
        base = await session.fetch_base_image(template, request, index)
        self._keep_debug(base, f"debug_base_{index + 1}")

        if self.overlay_text:
            # Layout follows the measured export, not the nominal template size
            text_layout = layout(request.header, request.promo, base.width, base.height)
            card = await asyncio.to_thread(self.compositor.composite, base, text_layout)
            self._keep_debug(card, f"debug_processed_{index + 1}")
        else:
            card = base

        name = make_filename(request.header)
        metadata = {"tags": [tag for tag in ("promo-card", header_tag(request.header)) if tag]}
        with self._staged(card, name):
            return await self.uploader.upload(card, name, metadata)

    @contextmanager
    def _staged(self, image: RasterImage, name: str) -> Iterator[Optional[Path]]:
        # The uploader sends image.data; the staged copy only exists on disk
        # for outside inspection while the upload is in flight.
        if self.stage_dir is None:
            yield None
            return
        self.stage_dir.mkdir(parents=True, exist_ok=True)
        path = self.stage_dir / f"{name}.png"
        path.write_bytes(image.data)
        logger.debug(f"Staged export at {path}")
        try:
            yield path
        finally:
            path.unlink(missing_ok=True)

    def _keep_debug(self, image: RasterImage, stem: str) -> None:
        if self.debug_dir is None:
            return
        self.debug_dir.mkdir(parents=True, exist_ok=True)
        path = self.debug_dir / f"{stem}.png"
        path.write_bytes(image.data)
        logger.debug(f"Saved {path}")
