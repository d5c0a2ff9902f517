"""Design-tool REST export source."""

from typing import Optional

import httpx

from ..errors import BatchSetupError, CardTimeout, RemoteUnavailable, TemplateNotFound
from ..models import CardRequest, RasterImage, TemplateConfig
from ..utils import get_logger, remote_retry
from .base import ImageSource, SourceSession

logger = get_logger(__name__)

COMPONENT_TYPES = ("COMPONENT", "COMPONENT_SET")


class FigmaRestSource(ImageSource):
    """Exports template nodes through the REST images endpoint.

    Stateless apart from the HTTP client, so calls for different references
    may run concurrently.
    """

    name = "rest"
    renders_text = False

    def __init__(
        self,
        token: Optional[str],
        file_key: str,
        api_base: str = "https://api.figma.com/v1",
        scale: float = 2,
        timeout_seconds: float = 30.0,
        retry_attempts: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.file_key = file_key
        self.api_base = api_base.rstrip("/")
        self.scale = scale
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = retry_attempts
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "FigmaRestSource":
        return cls(
            token=settings.figma_token,
            file_key=settings.figma_file_key,
            api_base=settings.figma_api_base,
            scale=settings.export_scale,
            timeout_seconds=settings.remote_timeout_seconds,
            retry_attempts=settings.retry_attempts,
            **kwargs,
        )

    async def open_session(self) -> "FigmaRestSession":
        if not self.token:
            raise BatchSetupError("FIGMA_TOKEN not configured. Get it from Figma settings.")
        if not self.file_key:
            raise BatchSetupError("FIGMA_FILE_KEY not configured")
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            transport=self._transport,
            follow_redirects=True,
        )
        return FigmaRestSession(self, client)


class FigmaRestSession(SourceSession):
    """One HTTP client shared by every record of a batch."""

    def __init__(self, source: FigmaRestSource, client: httpx.AsyncClient):
        self.source = source
        self._client: Optional[httpx.AsyncClient] = client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_base_image(
        self,
        template: TemplateConfig,
        request: CardRequest,
        index: int = 0,
    ) -> RasterImage:
        image_url = await self.export_image(template.remote_ref, self.source.scale)
        logger.info(f"Downloading export for node {template.remote_ref}")
        # Export URLs are pre-signed; the API token is not sent there
        response = await self._get(image_url, authenticated=False)
        image = RasterImage.from_bytes(response.content)
        logger.info(f"Base image dimensions: {image.width}x{image.height}")
        return image

    async def export_image(self, node_id: str, scale: float) -> str:
        """Ask the design tool to render a node and return the image URL.

        Raises:
            TemplateNotFound: if no image is returned for the node
        """
        logger.info(f"Exporting node {node_id} at {scale}x")
        response = await self._get(
            f"{self.source.api_base}/images/{self.source.file_key}",
            params={"ids": node_id, "format": "png", "scale": f"{scale:g}"},
            missing_is_template=True,
        )
        payload = self._json(response)
        if payload.get("err"):
            raise TemplateNotFound(f"Export failed for node {node_id}: {payload['err']}")
        image_url = (payload.get("images") or {}).get(node_id)
        if not image_url:
            raise TemplateNotFound(f"No image URL returned for node {node_id}")
        return image_url

    async def list_components(self) -> list[dict]:
        """List components and component sets in the design file.

        Returns:
            Dicts with id, name, type and the page path they live under
        """
        response = await self._get(f"{self.source.api_base}/files/{self.source.file_key}")
        document = self._json(response).get("document") or {}

        components: list[dict] = []

        def _walk(node: dict, path: str) -> None:
            if node.get("type") in COMPONENT_TYPES:
                components.append({
                    "id": node.get("id"),
                    "name": node.get("name"),
                    "type": node.get("type"),
                    "path": path,
                })
            for child in node.get("children") or []:
                _walk(child, f"{path}/{node.get('name', '')}")

        for page in document.get("children") or []:
            for child in page.get("children") or []:
                _walk(child, page.get("name", ""))

        logger.info(f"Found {len(components)} components in file {self.source.file_key}")
        return components

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _get(
        self,
        url: str,
        params: Optional[dict] = None,
        missing_is_template: bool = False,
        authenticated: bool = True,
    ) -> httpx.Response:
        if self._client is None:
            raise RemoteUnavailable("REST session is closed")
        headers = {"X-Figma-Token": self.source.token} if authenticated else None
        async for attempt in remote_retry(self.source.retry_attempts):
            with attempt:
                response = await self._send(url, params, headers)
                self._check_status(response, missing_is_template)
        return response

    async def _send(self, url: str, params: Optional[dict], headers: Optional[dict]) -> httpx.Response:
        try:
            return await self._client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as e:
            raise CardTimeout(
                f"Timed out after {self.source.timeout_seconds}s: {url}", cause=e
            ) from e
        except httpx.HTTPError as e:
            raise RemoteUnavailable(f"Request failed: {e}", transient=True, cause=e) from e

    @staticmethod
    def _check_status(response: httpx.Response, missing_is_template: bool) -> None:
        status = response.status_code
        if status < 400:
            return
        detail = response.text[:200]
        if status in (401, 403):
            raise RemoteUnavailable(f"Design tool rejected credentials ({status}): {detail}")
        if missing_is_template and status in (400, 404):
            raise TemplateNotFound(f"Template not found ({status}): {detail}")
        if status == 429 or status >= 500:
            raise RemoteUnavailable(f"Design tool unavailable ({status}): {detail}", transient=True)
        raise RemoteUnavailable(f"Unexpected response ({status}): {detail}")

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            return response.json()
        except ValueError as e:
            raise RemoteUnavailable(f"Invalid JSON from design tool: {e}", cause=e) from e
