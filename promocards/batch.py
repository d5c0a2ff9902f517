"""Batch orchestration.

Records go through one card renderer strictly one at a time: the live editor
strategy mutates a single shared document, and both strategies talk to
rate-limited services. Output slot ``i`` always belongs to input ``i``.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, Sequence

from .card_renderer import CardRenderer
from .compositor import Compositor
from .models import BatchResult, CardRequest, CardResult
from .results_store import ResultsStore
from .sources import ImageSource, create_source
from .templates import TemplateResolver
from .uploaders import ImageUploader, create_uploader
from .utils import get_logger

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class BatchRunner:
    """Runs a batch of card requests through one rendering strategy."""

    def __init__(
        self,
        source: ImageSource,
        renderer: CardRenderer,
        inter_record_delay_ms: int = 1000,
        results_store: Optional[ResultsStore] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.source = source
        self.renderer = renderer
        self.inter_record_delay_ms = inter_record_delay_ms
        self.results_store = results_store
        self._sleep = sleep

    @property
    def uploader(self) -> ImageUploader:
        return self.renderer.uploader

    @classmethod
    def from_settings(
        cls,
        settings,
        strategy: Optional[str] = None,
        source: Optional[ImageSource] = None,
        uploader: Optional[ImageUploader] = None,
        persist: bool = True,
        sleep: SleepFunc = asyncio.sleep,
    ) -> "BatchRunner":
        """Wire up a runner from settings.

        Raises:
            ConfigurationError: if the template table has no default entry
        """
        resolver = TemplateResolver.from_settings(settings)
        source = source or create_source(settings, strategy)
        uploader = uploader or create_uploader(settings)
        renderer = CardRenderer(
            resolver=resolver,
            uploader=uploader,
            compositor=Compositor.from_settings(settings),
            overlay_text=not source.renders_text,
            stage_dir=settings.temp_dir if source.renders_text else None,
            debug_dir=settings.temp_dir if settings.debug_artifacts else None,
        )
        return cls(
            source=source,
            renderer=renderer,
            inter_record_delay_ms=settings.inter_record_delay_ms,
            results_store=ResultsStore.from_settings(settings) if persist else None,
            sleep=sleep,
        )

    async def run_batch(self, requests: Sequence[CardRequest]) -> BatchResult:
        """Render every request and return index-aligned results.

        Per-card failures are recorded in their slot; the batch always runs
        to the end. Setup failures (credentials, browser launch) raise
        before any record is attempted.

        Raises:
            BatchSetupError: if the source or uploader cannot be opened
        """
        requests = list(requests)
        total = len(requests)
        batch = BatchResult(strategy=self.source.name)
        started = time.monotonic()
        logger.info(f"Processing batch of {total} cards ({self.source.name})")

        if total:
            async with self.uploader:
                async with self.source.session() as session:
                    for i, request in enumerate(requests):
                        logger.info(f"[{i + 1}/{total}] Processing...")
                        result = await self.renderer.render(request, session, index=i)
                        batch.results.append(result)
                        if i < total - 1:
                            await self._pause()

        batch.duration_ms = int((time.monotonic() - started) * 1000)
        summary = batch.summary
        logger.info(
            f"Batch complete in {batch.duration_ms}ms: "
            f"{summary['successful']} successful, {summary['failed']} failed"
        )

        if self.results_store is not None:
            self.results_store.save(batch)
        return batch

    async def render_one(self, request: CardRequest) -> CardResult:
        """Render a single card with its own session (no inter-record delay)."""
        async with self.uploader:
            async with self.source.session() as session:
                return await self.renderer.render(request, session, index=0)

    async def _pause(self) -> None:
        if self.inter_record_delay_ms <= 0:
            return
        logger.debug(f"Waiting {self.inter_record_delay_ms}ms before next card...")
        await self._sleep(self.inter_record_delay_ms / 1000)


async def render_batch(
    requests: Sequence[CardRequest],
    settings=None,
    **kwargs,
) -> BatchResult:
    """Render a validated batch with the configured strategy.

    This is the entry point for callers such as an HTTP front door; they
    validate input (see ``normalize_batch``) before calling and return or
    persist the result afterwards.
    """
    if settings is None:
        from .config import settings as default_settings
        settings = default_settings
    runner = BatchRunner.from_settings(settings, **kwargs)
    return await runner.run_batch(requests)
