"""
Rendering helper functions for scale and axis image generation.

Thin layer over Pillow: an immutable draw style, font loading and text
metrics, label fitting, distance formatting and a canvas whose primitives
take the style explicitly instead of carrying mutable drawing state.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Tuple

from PIL import Image, ImageDraw, ImageFont

from scale_grid import dpi_scale

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

# === Style Constants ===
FONT_CANDIDATES = (
    "arial.ttf",
    "Arial.ttf",
    "LiberationSans-Regular.ttf",
    "DejaVuSans.ttf",
)
AXIS_FONT_SIZE = 8      # base font size in px at reference resolution
MIN_FONT_SIZE = 1.0     # smallest size the label fitter shrinks to
STROKE_BASE_SIZE = 1    # base stroke size in px
FOREGROUND: RGB = (0, 0, 0)
BACKGROUND: RGB = (255, 255, 255)
IMAGE_MODE = "RGB"
DISTANCE_QUANTUM = Decimal("0.1")  # at most one decimal place


def load_font(size: float) -> ImageFont.FreeTypeFont:
    """Load the first available font from FONT_CANDIDATES at the given size.

    Falls back to Pillow's bundled default font when none is installed.
    """
    for name in FONT_CANDIDATES:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    logger.debug("None of %s found, using Pillow default font", FONT_CANDIDATES)
    return ImageFont.load_default(size=size)


@dataclass(frozen=True)
class DrawStyle:
    """Colours, stroke and font applied to a drawing primitive.

    Attributes:
        font_size: Font size in px (may be fractional after fitting)
        stroke_width: Line width in px
        fg: Foreground colour for lines, fills and text
        bg: Background colour
        font: Loaded font, derived from font_size when not given
    """
    font_size: float
    stroke_width: int = STROKE_BASE_SIZE
    fg: RGB = FOREGROUND
    bg: RGB = BACKGROUND
    font: ImageFont.FreeTypeFont = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.font is None:
            object.__setattr__(self, 'font', load_font(self.font_size))

    @classmethod
    def for_dpi(cls, dpi: int) -> 'DrawStyle':
        """Base style with font and stroke scaled to the resolution."""
        scale = dpi_scale(dpi)
        return cls(
            font_size=math.ceil(AXIS_FONT_SIZE * scale),
            stroke_width=max(1, round(STROKE_BASE_SIZE * scale))
        )

    def with_font_size(self, size: float) -> 'DrawStyle':
        """Return a copy of this style using another font size."""
        return replace(self, font_size=size, font=None)


def text_width(style: DrawStyle, text: str) -> int:
    """Advance width of text in px."""
    return int(round(style.font.getlength(text)))


def text_height(style: DrawStyle) -> int:
    """Line height (ascent + descent) of the style's font in px."""
    ascent, descent = style.font.getmetrics()
    return ascent + descent


def char_width(style: DrawStyle) -> int:
    """Width of a digit, used as the gap between a tick and its label."""
    return text_width(style, "1")


def fit_font(style: DrawStyle, target_width: float, text: str) -> Tuple[DrawStyle, bool]:
    """
    Shrink the font until text fits into target_width.

    The size is scaled by target / measured and the text is measured again,
    since hinted glyph advances do not scale linearly. The size is never
    increased and stops at MIN_FONT_SIZE.

    Args:
        style: Current draw style
        target_width: Width in px the text has to fit into
        text: The (widest) text to fit

    Returns:
        Tuple of (style, changed)
    """
    floor_size = min(MIN_FONT_SIZE, style.font_size)
    fitted = style
    measured = text_width(fitted, text)

    while measured > target_width and fitted.font_size > floor_size:
        new_size = floor_size
        if target_width > 0:
            new_size = max(fitted.font_size * target_width / measured, floor_size)
        logger.debug("Shrinking font size from %s to %s", fitted.font_size, new_size)
        fitted = fitted.with_font_size(new_size)
        measured = text_width(fitted, text)

    return fitted, fitted is not style


def format_distance(value: float) -> str:
    """Format a distance with at most one decimal place ("0.#").

    Rounding works on the exact binary value, so 0.15 gives "0.1".
    """
    rounded = Decimal(value).quantize(DISTANCE_QUANTUM, rounding=ROUND_HALF_EVEN)
    if rounded == rounded.to_integral_value():
        return str(int(rounded))
    return str(rounded)


def render_rotated_text(text: str, style: DrawStyle) -> Image.Image:
    """Render text on its own surface, rotated to read bottom to top.

    The returned image is text_height wide and text_width tall.
    """
    width = max(1, text_width(style, text))
    height = max(1, text_height(style))

    surface = Image.new(IMAGE_MODE, (width, height), style.bg)
    draw = ImageDraw.Draw(surface)
    draw.text((0, int(height * 0.75)), text, fill=style.fg, font=style.font, anchor="ls")

    # 270 degrees clockwise
    return surface.transpose(Image.Transpose.ROTATE_90)


class Canvas:
    """Drawing surface owned by a single render call.

    Use as a context manager; the drawing context is released on exit and
    the finished image stays available as ``canvas.image``.
    """

    def __init__(self, width: int, height: int, background: RGB = BACKGROUND):
        if width < 1 or height < 1:
            raise ValueError(f"Image size must be at least 1x1 px, got {width}x{height}")
        self.image = Image.new(IMAGE_MODE, (width, height), background)
        self._draw = ImageDraw.Draw(self.image)

    def __enter__(self) -> 'Canvas':
        return self

    def __exit__(self, exc_type, exc, tb):
        self._draw = None
        return False

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def outline_rect(self, x: int, y: int, w: int, h: int, style: DrawStyle):
        """Draw a rectangle outline covering x..x+w and y..y+h."""
        self._draw.rectangle([x, y, x + w, y + h], outline=style.fg, width=style.stroke_width)

    def fill_rect(self, x: int, y: int, w: int, h: int, style: DrawStyle):
        """Fill the w x h pixels starting at (x, y)."""
        if w < 1 or h < 1:
            return
        self._draw.rectangle([x, y, x + w - 1, y + h - 1], fill=style.fg)

    def line(self, x0: float, y0: float, x1: float, y1: float, style: DrawStyle):
        self._draw.line([(x0, y0), (x1, y1)], fill=style.fg, width=style.stroke_width)

    def text(self, x: int, y: int, text: str, style: DrawStyle):
        """Draw text with its baseline starting at (x, y)."""
        self._draw.text((x, y), text, fill=style.fg, font=style.font, anchor="ls")

    def paste(self, img: Image.Image, x: int, y: int):
        self.image.paste(img, (x, y))
