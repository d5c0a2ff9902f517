"""Cloudinary image hosting."""

import hashlib
import re
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from ..errors import BatchSetupError, CardTimeout, UploadFailed, UploadRejected
from ..models import RasterImage
from ..utils import get_logger, remote_retry
from .base import ImageUploader

logger = get_logger(__name__)

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"

_URL_PATTERN = re.compile(r"^cloudinary://(?P<key>[^:]+):(?P<secret>[^@]+)@(?P<cloud>[^/?#]+)")


@dataclass(frozen=True)
class CloudinaryCredentials:
    api_key: str
    api_secret: str
    cloud_name: str

    @classmethod
    def parse(cls, url: Optional[str]) -> "CloudinaryCredentials":
        """Parse ``cloudinary://<api_key>:<api_secret>@<cloud_name>``.

        Raises:
            BatchSetupError: if the URL is missing or malformed
        """
        if not url:
            raise BatchSetupError("CLOUDINARY_URL not configured")
        match = _URL_PATTERN.match(url.strip())
        if not match:
            raise BatchSetupError("Invalid CLOUDINARY_URL format")
        return cls(match["key"], match["secret"], match["cloud"])


def sign_params(params: dict, api_secret: str) -> str:
    """Cloudinary request signature: SHA-1 of sorted params + secret."""
    payload = "&".join(
        f"{key}={params[key]}" for key in sorted(params) if params[key] not in (None, "")
    )
    return hashlib.sha1(f"{payload}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryUploader(ImageUploader):
    """Uploads PNG cards with a signed request, or unsigned with a preset."""

    name = "cloudinary"

    def __init__(
        self,
        cloudinary_url: Optional[str],
        folder: str = "promo-cards",
        upload_preset: Optional[str] = None,
        timeout_seconds: float = 30.0,
        retry_attempts: int = 3,
        api_base: str = CLOUDINARY_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cloudinary_url = cloudinary_url
        self.folder = folder
        self.upload_preset = upload_preset
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = retry_attempts
        self.api_base = api_base.rstrip("/")
        self._transport = transport
        self._credentials: Optional[CloudinaryCredentials] = None
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "CloudinaryUploader":
        return cls(
            cloudinary_url=settings.cloudinary_url,
            folder=settings.cloudinary_folder,
            upload_preset=settings.cloudinary_upload_preset,
            timeout_seconds=settings.remote_timeout_seconds,
            retry_attempts=settings.retry_attempts,
            **kwargs,
        )

    @property
    def upload_url(self) -> str:
        return f"{self.api_base}/{self._credentials.cloud_name}/image/upload"

    async def open(self) -> None:
        self._credentials = CloudinaryCredentials.parse(self.cloudinary_url)
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _form_fields(self, name: str, metadata: Optional[dict]) -> dict:
        tags = list((metadata or {}).get("tags") or [])
        fields = {
            "folder": self.folder,
            "public_id": name,
            "tags": ",".join(tags) if tags else None,
        }
        if self.upload_preset:
            fields["upload_preset"] = self.upload_preset
        else:
            fields["timestamp"] = str(int(time.time()))
            fields["signature"] = sign_params(fields, self._credentials.api_secret)
            fields["api_key"] = self._credentials.api_key
        return {key: value for key, value in fields.items() if value not in (None, "")}

    async def upload(
        self,
        image: RasterImage,
        name: str,
        metadata: Optional[dict] = None,
    ) -> str:
        if self._client is None or self._credentials is None:
            raise UploadRejected("Cloudinary uploader used before open()")

        logger.info(f"Uploading {name}.png to Cloudinary ({len(image.data)} bytes)")
        fields = self._form_fields(name, metadata)
        files = {"file": (f"{name}.png", image.data, "image/png")}

        async for attempt in remote_retry(self.retry_attempts):
            with attempt:
                response = await self._post(fields, files)
                self._check_status(response)

        try:
            url = response.json().get("secure_url")
        except ValueError as e:
            raise UploadFailed(f"Invalid JSON from Cloudinary: {e}", cause=e) from e
        if not url:
            raise UploadFailed("Cloudinary response has no secure_url")
        logger.info(f"Uploaded successfully: {url}")
        return url

    async def _post(self, fields: dict, files: dict) -> httpx.Response:
        try:
            return await self._client.post(self.upload_url, data=fields, files=files)
        except httpx.TimeoutException as e:
            raise CardTimeout(f"Upload timed out after {self.timeout_seconds}s", cause=e) from e
        except httpx.HTTPError as e:
            raise UploadFailed(f"Upload request failed: {e}", cause=e) from e

    @staticmethod
    def _check_status(response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        try:
            detail = response.json().get("error", {}).get("message") or response.text[:200]
        except ValueError:
            detail = response.text[:200]
        if status in (400, 401, 403, 404):
            raise UploadRejected(f"Cloudinary rejected upload ({status}): {detail}")
        raise UploadFailed(f"Cloudinary error ({status}): {detail}")
