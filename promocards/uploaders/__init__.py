"""Image hosting sinks."""

from typing import Optional

from .base import ImageUploader, header_tag, make_filename
from .cloudinary import CloudinaryUploader
from .local import LocalUploader

__all__ = [
    "CloudinaryUploader",
    "ImageUploader",
    "LocalUploader",
    "create_uploader",
    "header_tag",
    "make_filename",
]


def create_uploader(settings, service: Optional[str] = None) -> ImageUploader:
    """Build the uploader for the configured hosting service."""
    service = service or settings.upload_service
    if service == "cloudinary":
        return CloudinaryUploader.from_settings(settings)
    if service == "local":
        return LocalUploader.from_settings(settings)
    raise ValueError(f"Unsupported upload service: {service}")
