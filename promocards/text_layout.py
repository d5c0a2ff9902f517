"""Text layout for promo cards.

Pure geometry: given a canvas size and the header/promo strings, decide where
each piece of text goes, how big it is, and how the promo wraps. No fonts are
loaded here; wrapping uses an average glyph width estimate, which only aims to
avoid clipping, not to match real glyph metrics.
"""

import math
from dataclasses import dataclass

# Vertical anchors as a fraction of canvas height
HEADER_Y_RATIO = 0.30
PROMO_Y_RATIO = 0.60

# Font sizes as a fraction of canvas width
HEADER_FONT_RATIO = 0.06
PROMO_FONT_RATIO = 0.04

# Promo lines may use this fraction of the canvas width
WRAP_WIDTH_RATIO = 0.80

# Average glyph advance as a fraction of the font size
CHAR_WIDTH_FACTOR = 0.6

LINE_HEIGHT_FACTOR = 1.3


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class TextLine:
    text: str
    position: Point


@dataclass(frozen=True)
class TextLayout:
    """Positions and sizes for the header and the wrapped promo lines.

    Positions are text anchors: horizontally centered, vertically on the
    baseline.
    """

    canvas_width: int
    canvas_height: int
    header_text: str
    promo_text: str
    header_position: Point
    header_font_size: int
    promo_font_size: int
    promo_lines: tuple[TextLine, ...]
    line_height: float

    def fits(self, width: int, height: int) -> bool:
        return self.canvas_width == width and self.canvas_height == height


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def font_sizes(width: int) -> tuple[int, int]:
    """Header and promo font sizes in pixels for a canvas width."""
    return (
        _round_half_up(width * HEADER_FONT_RATIO),
        _round_half_up(width * PROMO_FONT_RATIO),
    )


def wrap_words(text: str, max_width: float, font_size: int) -> list[str]:
    """Greedily pack words into lines that fit ``max_width``.

    A word that is longer than a whole line gets a line of its own and is never
    split.
    """
    words = text.split()
    if not words:
        return []

    char_width = font_size * CHAR_WIDTH_FACTOR
    max_chars = math.floor(max_width / char_width) if char_width > 0 else 0

    lines: list[str] = []
    current: list[str] = []
    current_len = 0
    for word in words:
        # Length of the line if this word were appended, with a joining space
        candidate_len = current_len + len(word) + (1 if current else 0)
        if current and candidate_len > max_chars:
            lines.append(" ".join(current))
            current = [word]
            current_len = len(word)
        else:
            current.append(word)
            current_len = candidate_len

    if current:
        lines.append(" ".join(current))
    return lines


def layout(header: str, promo: str, width: int, height: int) -> TextLayout:
    """Compute the text layout for a canvas.

    Args:
        header: Header text, drawn on a single line
        promo: Promo text, word-wrapped
        width: Canvas width in pixels
        height: Canvas height in pixels

    Returns:
        TextLayout; identical inputs always give an identical layout
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Canvas must have positive dimensions, got {width}x{height}")

    header_size, promo_size = font_sizes(width)
    center_x = width / 2
    line_height = promo_size * LINE_HEIGHT_FACTOR
    promo_top = height * PROMO_Y_RATIO

    lines = wrap_words(promo, width * WRAP_WIDTH_RATIO, promo_size)
    promo_lines = tuple(
        TextLine(text=line, position=Point(center_x, promo_top + i * line_height))
        for i, line in enumerate(lines)
    )

    return TextLayout(
        canvas_width=width,
        canvas_height=height,
        header_text=header.strip(),
        promo_text=promo,
        header_position=Point(center_x, height * HEADER_Y_RATIO),
        header_font_size=header_size,
        promo_font_size=promo_size,
        promo_lines=promo_lines,
        line_height=line_height,
    )
