"""Local directory sink for dry runs."""

import asyncio
from pathlib import Path
from typing import Optional

from ..errors import BatchSetupError, UploadFailed
from ..models import RasterImage
from ..utils import get_logger
from .base import ImageUploader

logger = get_logger(__name__)


class LocalUploader(ImageUploader):
    """Writes cards into a directory and returns ``file://`` URLs."""

    name = "local"

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    @classmethod
    def from_settings(cls, settings) -> "LocalUploader":
        return cls(settings.local_upload_dir)

    async def open(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BatchSetupError(f"Cannot create upload directory {self.directory}: {e}") from e

    async def upload(
        self,
        image: RasterImage,
        name: str,
        metadata: Optional[dict] = None,
    ) -> str:
        path = self.directory / f"{name}.{image.format.lower()}"
        try:
            await asyncio.to_thread(path.write_bytes, image.data)
        except OSError as e:
            raise UploadFailed(f"Could not write {path}: {e}", cause=e) from e
        logger.info(f"Saved card locally: {path}")
        return path.resolve().as_uri()
