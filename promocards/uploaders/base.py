"""Image hosting interface and upload naming."""

import re
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ..models import RasterImage

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]+")
HEADER_SLICE = 20


def make_filename(header: str, now: Optional[datetime] = None) -> str:
    """Build a traceable, collision-resistant upload name (no extension).

    Example: ``card_1718031234567_Summer_Sale_3f9a1c``
    """
    now = now or datetime.now()
    millis = int(now.timestamp() * 1000)
    slug = _UNSAFE.sub("", re.sub(r"\s+", "_", header.strip()[:HEADER_SLICE])).strip("_")
    parts = ["card", str(millis)]
    if slug:
        parts.append(slug)
    parts.append(uuid.uuid4().hex[:6])
    return "_".join(parts)


def header_tag(header: str) -> str:
    """Lower-case, hyphenated tag for a header."""
    return re.sub(r"[^a-z0-9-]", "", re.sub(r"\s+", "-", header.strip().lower()))


class ImageUploader(ABC):
    """Pushes rendered cards to a hosting service.

    Used as an async context manager around a batch run so that network
    clients are opened once and always closed.
    """

    name = "uploader"

    async def open(self) -> None:
        """Validate configuration and open clients.

        Raises:
            BatchSetupError: if credentials or configuration are unusable
        """

    async def close(self) -> None:
        """Release clients. Safe to call more than once."""

    async def __aenter__(self) -> "ImageUploader":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @abstractmethod
    async def upload(
        self,
        image: RasterImage,
        name: str,
        metadata: Optional[dict] = None,
    ) -> str:
        """Upload an image and return its public URL.

        Args:
            image: Encoded image to upload
            name: File name without extension
            metadata: Optional extra fields, e.g. ``{"tags": [...]}``

        Raises:
            UploadRejected: bad credentials or configuration
            UploadFailed: transient network or service error
            CardTimeout: the upload exceeded its time budget
        """
