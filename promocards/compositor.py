"""Text overlay compositing with Pillow.

The overlay is drawn from font outlines onto a transparent RGBA layer sized to
the base image's measured dimensions, then merged with an "over" alpha blend.
"""

import io
from functools import lru_cache
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw, ImageFilter, ImageFont, UnidentifiedImageError

from .errors import CompositionFailed
from .models import RasterImage
from .text_layout import TextLayout, layout as compute_layout
from .utils import get_logger

logger = get_logger(__name__)

HEADER_COLOR = (26, 26, 26, 255)       # #1a1a1a
PROMO_COLOR = (102, 102, 102, 255)     # #666666
SHADOW_COLOR = (0, 0, 0, 77)           # 30% black
SHADOW_OFFSET = 2
SHADOW_BLUR_RADIUS = 2

# Text anchor: horizontal middle, vertical baseline
TEXT_ANCHOR = "ms"

PNG_COMPRESS_LEVEL = 8


@lru_cache(maxsize=64)
def _load_font(path: Optional[str], size: int) -> ImageFont.FreeTypeFont:
    if path:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            logger.warning(f"Could not load font {path}, using default")
    return ImageFont.load_default(size=size)


class Compositor:
    """Merges a text layout over a base image."""

    def __init__(
        self,
        font_path: Optional[Path] = None,
        bold_font_path: Optional[Path] = None,
    ):
        self.font_path = str(font_path) if font_path else None
        self.bold_font_path = str(bold_font_path) if bold_font_path else self.font_path

    @classmethod
    def from_settings(cls, settings) -> "Compositor":
        return cls(font_path=settings.font_path, bold_font_path=settings.font_bold_path)

    def composite(self, base: RasterImage, text_layout: TextLayout) -> RasterImage:
        """Overlay ``text_layout`` on ``base`` and return a new PNG image.

        The layout is recomputed when it was made for a different canvas than
        the decoded base, since exports can differ slightly from the nominal
        size.

        Raises:
            CompositionFailed: if the base image cannot be decoded
        """
        try:
            with Image.open(io.BytesIO(base.data)) as img:
                canvas = img.convert("RGBA")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise CompositionFailed(f"Could not decode base image: {e}", cause=e) from e

        width, height = canvas.size
        if not text_layout.fits(width, height):
            logger.debug(
                f"Layout computed for {text_layout.canvas_width}x{text_layout.canvas_height}, "
                f"base is {width}x{height}; recomputing"
            )
            text_layout = compute_layout(
                text_layout.header_text, text_layout.promo_text, width, height
            )

        try:
            merged = Image.alpha_composite(canvas, self._shadow_layer(text_layout))
            merged = Image.alpha_composite(merged, self._text_layer(text_layout))
            buffer = io.BytesIO()
            merged.save(buffer, format="PNG", compress_level=PNG_COMPRESS_LEVEL)
        except (OSError, ValueError) as e:
            raise CompositionFailed(f"Could not merge text overlay: {e}", cause=e) from e

        return RasterImage(data=buffer.getvalue(), width=width, height=height, format="PNG")

    def _header_font(self, text_layout: TextLayout) -> ImageFont.FreeTypeFont:
        return _load_font(self.bold_font_path, max(1, text_layout.header_font_size))

    def _promo_font(self, text_layout: TextLayout) -> ImageFont.FreeTypeFont:
        return _load_font(self.font_path, max(1, text_layout.promo_font_size))

    def _shadow_layer(self, text_layout: TextLayout) -> Image.Image:
        size = (text_layout.canvas_width, text_layout.canvas_height)
        layer = Image.new("RGBA", size, (0, 0, 0, 0))
        if text_layout.header_text:
            draw = ImageDraw.Draw(layer)
            pos = text_layout.header_position
            draw.text(
                (pos.x + SHADOW_OFFSET, pos.y + SHADOW_OFFSET),
                text_layout.header_text,
                font=self._header_font(text_layout),
                fill=SHADOW_COLOR,
                anchor=TEXT_ANCHOR,
            )
            layer = layer.filter(ImageFilter.GaussianBlur(SHADOW_BLUR_RADIUS))
        return layer

    def _text_layer(self, text_layout: TextLayout) -> Image.Image:
        size = (text_layout.canvas_width, text_layout.canvas_height)
        layer = Image.new("RGBA", size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)

        if text_layout.header_text:
            pos = text_layout.header_position
            draw.text(
                (pos.x, pos.y),
                text_layout.header_text,
                font=self._header_font(text_layout),
                fill=HEADER_COLOR,
                anchor=TEXT_ANCHOR,
            )

        promo_font = self._promo_font(text_layout)
        for line in text_layout.promo_lines:
            draw.text(
                (line.position.x, line.position.y),
                line.text,
                font=promo_font,
                fill=PROMO_COLOR,
                anchor=TEXT_ANCHOR,
            )
        return layer
