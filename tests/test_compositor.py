"""Tests for the text overlay compositor."""

import io

import pytest
from PIL import Image

from promocards.compositor import Compositor
from promocards.errors import CompositionFailed
from promocards.models import RasterImage
from promocards.text_layout import layout

from .conftest import make_png

WHITE = (255, 255, 255, 255)


def _decode(image: RasterImage) -> Image.Image:
    return Image.open(io.BytesIO(image.data)).convert("RGBA")


class TestComposite:
    def test_output_matches_base_size(self):
        base = RasterImage.from_bytes(make_png(600, 400, WHITE))
        result = Compositor().composite(base, layout("Summer Sale", "50% off all items!", 600, 400))

        assert result.size == (600, 400)
        assert result.format == "PNG"
        assert _decode(result).size == (600, 400)

    def test_returns_new_image(self):
        data = make_png(600, 400, WHITE)
        base = RasterImage.from_bytes(data)
        result = Compositor().composite(base, layout("Summer Sale", "50% off", 600, 400))

        assert result is not base
        assert base.data == data
        assert result.data != data

    def test_draws_text_near_anchors(self):
        base = RasterImage.from_bytes(make_png(800, 600, WHITE))
        result = _decode(Compositor().composite(base, layout("HEADLINE", "", 800, 600)))

        # Band just above the header baseline should contain dark pixels
        band = result.crop((200, 130, 600, 182))
        darkest = min(px[0] for px in band.getdata())
        assert darkest < 128

        # The bottom of the card has no text
        bottom = result.crop((0, 500, 800, 600))
        assert all(px[:3] == (255, 255, 255) for px in bottom.getdata())

    def test_uses_measured_dimensions(self):
        # Layout made for a nominal size; the export came back slightly larger
        base = RasterImage.from_bytes(make_png(802, 601, WHITE))
        result = Compositor().composite(base, layout("Header", "Promo text", 800, 600))
        assert result.size == (802, 601)

    def test_undecodable_base(self):
        broken = RasterImage(data=b"\x89PNG broken", width=10, height=10)
        with pytest.raises(CompositionFailed):
            Compositor().composite(broken, layout("h", "p", 10, 10))

    def test_oversized_base(self, monkeypatch):
        base = RasterImage.from_bytes(make_png(400, 300, WHITE))
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        with pytest.raises(CompositionFailed):
            Compositor().composite(base, layout("h", "p", 400, 300))

    def test_missing_font_file_falls_back(self, tmp_path):
        compositor = Compositor(font_path=tmp_path / "missing.ttf")
        base = RasterImage.from_bytes(make_png(300, 200, WHITE))
        result = compositor.composite(base, layout("Header", "Promo", 300, 200))
        assert result.size == (300, 200)

    def test_accepts_rgb_base(self):
        buffer = io.BytesIO()
        Image.new("RGB", (320, 240), (10, 200, 10)).save(buffer, format="PNG")
        base = RasterImage.from_bytes(buffer.getvalue())

        result = Compositor().composite(base, layout("Header", "Promo", 320, 240))
        assert _decode(result).getpixel((5, 5)) == (10, 200, 10, 255)
