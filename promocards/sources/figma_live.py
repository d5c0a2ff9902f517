"""Live editor automation source.

Drives a headless browser, authenticated with pre-supplied session cookies,
against the design editor's in-page scripting object. One page is opened per
batch and reused for every record; each record creates a positioned duplicate
of the base component, writes its text, exports it and removes it again.

This path depends on editor readiness signals, exact layer names and the
scripting object being present, so every failure is scoped to one record.
"""

import asyncio
import base64
import binascii
import json
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from ..errors import BatchSetupError, CardTimeout, RemoteUnavailable, TemplateNotFound
from ..models import CardRequest, RasterImage, TemplateConfig
from ..utils import get_logger
from . import editor_scripts
from .base import ImageSource, SourceSession

logger = get_logger(__name__)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]

_SAME_SITE = {"strict": "Strict", "lax": "Lax", "none": "None", "no_restriction": "None"}


def load_cookies(path: Path) -> list[dict]:
    """Read exported browser cookies and shape them for Playwright.

    Accepts the usual export formats (Puppeteer/DevTools, browser extensions).

    Raises:
        BatchSetupError: if the file is missing or malformed
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise BatchSetupError(f"Session cookies not found at {path}") from e
    except (OSError, ValueError) as e:
        raise BatchSetupError(f"Could not read session cookies from {path}: {e}") from e

    if isinstance(raw, dict) and "cookies" in raw:
        raw = raw["cookies"]
    if not isinstance(raw, list) or not raw:
        raise BatchSetupError(f"No cookies found in {path}")

    cookies = []
    for entry in raw:
        if not isinstance(entry, dict) or "name" not in entry or "value" not in entry:
            continue
        cookie = {
            "name": str(entry["name"]),
            "value": str(entry["value"]),
            "domain": entry.get("domain") or ".figma.com",
            "path": entry.get("path") or "/",
        }
        expires = entry.get("expires", entry.get("expirationDate"))
        if isinstance(expires, (int, float)) and expires > 0:
            cookie["expires"] = float(expires)
        if "httpOnly" in entry:
            cookie["httpOnly"] = bool(entry["httpOnly"])
        if "secure" in entry:
            cookie["secure"] = bool(entry["secure"])
        same_site = _SAME_SITE.get(str(entry.get("sameSite", "")).lower())
        if same_site:
            cookie["sameSite"] = same_site
        cookies.append(cookie)

    if not cookies:
        raise BatchSetupError(f"No usable cookies found in {path}")
    return cookies


@dataclass(frozen=True)
class NodeInfo:
    """Snapshot of an editor node's identity and bounds."""

    id: str
    name: str
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: dict) -> "NodeInfo":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            x=float(data.get("x", 0)),
            y=float(data.get("y", 0)),
            width=float(data.get("width", 0)),
            height=float(data.get("height", 0)),
        )


class EditorPage:
    """Editor operations on one open page.

    Every call is bounded by ``call_timeout``; timeouts become ``CardTimeout``
    and other browser errors ``RemoteUnavailable``.
    """

    def __init__(self, page: Any, call_timeout: float = 30.0):
        self.page = page
        self.call_timeout = call_timeout

    async def _evaluate(self, script: str, arg: Optional[dict] = None, what: str = "editor call"):
        try:
            return await asyncio.wait_for(self.page.evaluate(script, arg), self.call_timeout)
        except (asyncio.TimeoutError, PlaywrightTimeoutError) as e:
            raise CardTimeout(f"{what} timed out after {self.call_timeout}s", cause=e) from e
        except PlaywrightError as e:
            raise RemoteUnavailable(f"{what} failed: {e}", cause=e) from e

    async def wait_until_ready(self, timeout: float) -> None:
        """Wait for the canvas and the scripting object to appear.

        Both waits share one deadline of ``timeout`` seconds.
        """
        timeout_ms = timeout * 1000

        async def _ready() -> None:
            await self.page.wait_for_selector("canvas", timeout=timeout_ms)
            await self.page.wait_for_function(editor_scripts.EDITOR_READY, timeout=timeout_ms)

        try:
            await asyncio.wait_for(_ready(), timeout)
        except (asyncio.TimeoutError, PlaywrightTimeoutError) as e:
            raise CardTimeout(f"Editor not ready after {timeout}s", cause=e) from e
        except PlaywrightError as e:
            raise RemoteUnavailable(f"Editor failed to load: {e}", cause=e) from e

    async def find_component(self, ref: str) -> NodeInfo:
        """Locate a component by exact name (or node id).

        Raises:
            TemplateNotFound: if no component matches
        """
        data = await self._evaluate(editor_scripts.FIND_COMPONENT, {"ref": ref}, "find component")
        if not data:
            raise TemplateNotFound(f'Component "{ref}" not found')
        return NodeInfo.from_dict(data)

    async def duplicate(self, component: NodeInfo, offset_x: float, tag: str = "") -> NodeInfo:
        """Create an instance of ``component`` shifted right by ``offset_x``.

        A non-empty ``tag`` is appended to the instance name so leftovers can
        be found by ``sweep``.
        """
        data = await self._evaluate(
            editor_scripts.DUPLICATE_COMPONENT,
            {"componentId": component.id, "offsetX": offset_x, "tag": tag},
            "duplicate component",
        )
        if not data:
            raise TemplateNotFound(f'Component "{component.name}" ({component.id}) is gone')
        return NodeInfo.from_dict(data)

    async def load_fonts(self, node_id: str) -> list[dict]:
        """Load the fonts used by text layers under a node.

        Returns:
            Fonts that failed to load, each with family, style and error
        """
        result = await self._evaluate(editor_scripts.LOAD_FONTS, {"nodeId": node_id}, "load fonts")
        return list((result or {}).get("failed") or [])

    async def set_text_layer(self, node_id: str, layer_name: str, text: str) -> bool:
        """Overwrite a named text layer. Returns False if the layer is absent."""
        return bool(await self._evaluate(
            editor_scripts.SET_TEXT_LAYER,
            {"nodeId": node_id, "layerName": layer_name, "text": text},
            f"set text layer {layer_name}",
        ))

    async def export_node(self, node_id: str, scale: float) -> bytes:
        encoded = await self._evaluate(
            editor_scripts.EXPORT_NODE, {"nodeId": node_id, "scale": scale}, "export node"
        )
        if not encoded:
            raise RemoteUnavailable(f"Export of node {node_id} returned no data")
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise RemoteUnavailable(f"Export of node {node_id} was not valid base64", cause=e) from e

    async def remove_node(self, node_id: str) -> bool:
        return bool(await self._evaluate(editor_scripts.REMOVE_NODE, {"nodeId": node_id}, "remove node"))

    async def sweep(self, tag: str) -> int:
        """Remove every instance whose name ends with ``tag``. Returns the count."""
        return int(await self._evaluate(editor_scripts.SWEEP_INSTANCES, {"tag": tag}, "sweep instances") or 0)


class FigmaLiveSource(ImageSource):
    """Renders cards by editing duplicates of a component in a live editor."""

    name = "liveAutomation"
    renders_text = True

    def __init__(
        self,
        file_url: str,
        cookies_path: Path,
        scale: float = 2,
        headless: bool = True,
        viewport: tuple[int, int] = (1920, 1080),
        offset_x: int = 400,
        header_layer: str = "Header",
        promo_layer: str = "PromoText",
        ready_timeout: float = 30.0,
        call_timeout: float = 30.0,
        navigation_timeout: float = 60.0,
        settle_delay: float = 1.0,
    ):
        self.file_url = file_url
        self.cookies_path = Path(cookies_path)
        self.scale = scale
        self.headless = headless
        self.viewport = viewport
        self.offset_x = offset_x
        self.header_layer = header_layer
        self.promo_layer = promo_layer
        self.ready_timeout = ready_timeout
        self.call_timeout = call_timeout
        self.navigation_timeout = navigation_timeout
        self.settle_delay = settle_delay

    @classmethod
    def from_settings(cls, settings) -> "FigmaLiveSource":
        return cls(
            file_url=settings.figma_file_url,
            cookies_path=settings.cookies_path,
            scale=settings.export_scale,
            headless=settings.browser_headless,
            viewport=(settings.viewport_width, settings.viewport_height),
            offset_x=settings.duplicate_offset_x,
            header_layer=settings.header_layer_name,
            promo_layer=settings.promo_layer_name,
            ready_timeout=settings.ready_timeout_seconds,
            call_timeout=settings.remote_timeout_seconds,
            navigation_timeout=settings.navigation_timeout_seconds,
            settle_delay=settings.settle_delay_ms / 1000,
        )

    async def open_session(self) -> "EditorSession":
        """Launch the browser, restore the session and open the design file.

        Raises:
            BatchSetupError: on missing cookies or if the editor never loads
        """
        cookies = load_cookies(self.cookies_path)

        playwright = await async_playwright().start()
        session = EditorSession(self, page=None, playwright=playwright)
        try:
            session.browser = await playwright.chromium.launch(headless=self.headless, args=BROWSER_ARGS)
            width, height = self.viewport
            context = await session.browser.new_context(viewport={"width": width, "height": height})
            await context.add_cookies(cookies)
            page = await context.new_page()

            logger.info(f"Opening design file {self.file_url}")
            await page.goto(self.file_url, wait_until="networkidle", timeout=self.navigation_timeout * 1000)

            session.editor = EditorPage(page, call_timeout=self.call_timeout)
            logger.info("Waiting for the editor to load...")
            await session.editor.wait_until_ready(self.ready_timeout)
            logger.info("Editor loaded")
        except (PlaywrightError, RemoteUnavailable, CardTimeout) as e:
            await session.close()
            raise BatchSetupError(f"Could not open design editor: {e}") from e
        except BaseException:
            await session.close()
            raise
        return session


class EditorSession(SourceSession):
    """The browser page shared by every record of one batch.

    Access is serialized with a lock: two records must never duplicate or
    export against the same document at once.
    """

    def __init__(
        self,
        source: FigmaLiveSource,
        page: Any = None,
        playwright: Any = None,
        browser: Any = None,
    ):
        self.source = source
        self.playwright = playwright
        self.browser = browser
        self.editor: Optional[EditorPage] = (
            EditorPage(page, call_timeout=source.call_timeout) if page is not None else None
        )
        self.lock = asyncio.Lock()
        self.tag = f"[promocards {uuid.uuid4().hex[:8]}]"
        self._duplicated = False
        self._components: dict[str, NodeInfo] = {}

    async def close(self) -> None:
        try:
            if self.editor is not None and self._duplicated:
                await self._sweep()
            if self.browser is not None:
                try:
                    await self.browser.close()
                    logger.info("Browser closed")
                except PlaywrightError as e:
                    logger.warning(f"Error closing browser: {e}")
                self.browser = None
        finally:
            if self.playwright is not None:
                await self.playwright.stop()
                self.playwright = None

    async def component(self, ref: str) -> NodeInfo:
        """Find a base component once per batch and remember it."""
        if ref not in self._components:
            logger.info(f"Looking for base component: {ref}")
            self._components[ref] = await self.editor.find_component(ref)
        return self._components[ref]

    async def fetch_base_image(
        self,
        template: TemplateConfig,
        request: CardRequest,
        index: int = 0,
    ) -> RasterImage:
        if self.editor is None:
            raise RemoteUnavailable("Editor session is not open")

        source = self.source
        async with self.lock:
            component = await self.component(template.remote_ref)
            self._duplicated = True
            node = await self.editor.duplicate(component, offset_x=source.offset_x * index, tag=self.tag)
            logger.info(f"Created instance {node.id} at ({node.x:.0f}, {node.y:.0f})")
            try:
                for font in await self.editor.load_fonts(node.id):
                    logger.warning(
                        f"Could not load font {font.get('family')} {font.get('style')}: {font.get('error')}"
                    )

                for layer, text in ((source.header_layer, request.header), (source.promo_layer, request.promo)):
                    if not await self.editor.set_text_layer(node.id, layer, text):
                        logger.warning(f'Text layer "{layer}" not found in {component.name}')

                if source.settle_delay > 0:
                    await asyncio.sleep(source.settle_delay)

                logger.info(f"Exporting instance {node.id} at {source.scale}x")
                data = await self.editor.export_node(node.id, source.scale)
            finally:
                await self._discard(node.id)

        image = RasterImage.from_bytes(data)
        logger.info(f"Exported image dimensions: {image.width}x{image.height}")
        return image

    async def _discard(self, node_id: str) -> None:
        try:
            await self.editor.remove_node(node_id)
        except (RemoteUnavailable, CardTimeout) as e:
            logger.warning(f"Could not remove instance {node_id}: {e}")

    async def _sweep(self) -> None:
        # A timed-out duplicate call can still create its instance in the page
        try:
            removed = await self.editor.sweep(self.tag)
        except (RemoteUnavailable, CardTimeout) as e:
            logger.warning(f"Could not sweep leftover instances: {e}")
            return
        if removed:
            logger.info(f"Removed {removed} leftover instance(s)")
