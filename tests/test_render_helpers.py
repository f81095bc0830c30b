"""
Tests for render_helpers module.

Run with: pytest tests/test_render_helpers.py -v
"""

import numpy as np
import pytest
from PIL import Image
from render_helpers import (
    BACKGROUND,
    FOREGROUND,
    MIN_FONT_SIZE,
    Canvas,
    DrawStyle,
    char_width,
    fit_font,
    format_distance,
    load_font,
    render_rotated_text,
    text_height,
    text_width,
)


BLACK = [0, 0, 0]
WHITE = [255, 255, 255]


class TestDrawStyle:
    """Tests for the DrawStyle dataclass."""

    @pytest.mark.parametrize("dpi,font_size,stroke", [
        (72, 8, 1),
        (150, 17, 2),
        (300, 34, 4),
        (36, 4, 1),
    ])
    def test_for_dpi(self, dpi, font_size, stroke):
        """Test font and stroke scaling with the resolution."""
        style = DrawStyle.for_dpi(dpi)
        assert style.font_size == font_size
        assert style.stroke_width == stroke
        assert style.fg == FOREGROUND
        assert style.bg == BACKGROUND

    def test_font_loaded(self):
        """Test that a font is loaded for the style's size."""
        style = DrawStyle(font_size=12)
        assert style.font is not None
        assert style.font.getlength("1000") > 0

    def test_with_font_size_returns_copy(self):
        """Test that changing the font size leaves the original alone."""
        style = DrawStyle(font_size=20, stroke_width=3)
        smaller = style.with_font_size(10)
        assert style.font_size == 20
        assert smaller.font_size == 10
        assert smaller.stroke_width == 3
        assert smaller.font is not style.font

    def test_immutable(self):
        """Test that styles cannot be modified."""
        style = DrawStyle(font_size=8)
        with pytest.raises(AttributeError):
            style.font_size = 12

    def test_equality_ignores_font_object(self):
        """Test that styles compare by their settings."""
        assert DrawStyle(font_size=8) == DrawStyle(font_size=8)
        assert DrawStyle(font_size=8) != DrawStyle(font_size=9)

    def test_fractional_size(self):
        """Test that fitted, fractional sizes load."""
        style = DrawStyle(font_size=6.4)
        assert text_width(style, "100") > 0


class TestTextMetrics:
    """Tests for text measuring helpers."""

    def test_empty_text(self):
        assert text_width(DrawStyle(font_size=10), "") == 0

    def test_longer_text_is_wider(self):
        """Test that more digits need more room."""
        style = DrawStyle(font_size=10)
        assert text_width(style, "5682000") > text_width(style, "20")

    def test_larger_font_is_wider(self):
        """Test that width grows with the font size."""
        assert (text_width(DrawStyle(font_size=40), "1000")
                > text_width(DrawStyle(font_size=10), "1000"))

    def test_text_height(self):
        """Test that the line height is in the range of the font size."""
        style = DrawStyle(font_size=20)
        assert 10 < text_height(style) < 40

    def test_char_width(self):
        """Test the tick to label gap."""
        style = DrawStyle(font_size=20)
        assert char_width(style) == text_width(style, "1")
        assert char_width(style) > 0

    def test_load_font(self):
        """Test loading a font directly."""
        font = load_font(16)
        assert font.getlength("12") > 0


class TestFitFont:
    """Tests for fit_font function."""

    @pytest.fixture
    def style(self):
        return DrawStyle(font_size=20)

    def test_shrinks_until_text_fits(self, style):
        """Test that the fitted text is no wider than the target."""
        target = text_width(style, "5690000") // 2
        fitted, changed = fit_font(style, target, "5690000")
        assert changed is True
        assert fitted.font_size < style.font_size
        assert text_width(fitted, "5690000") <= target

    def test_fits_already(self, style):
        """Test that a fitting text leaves the style unchanged."""
        fitted, changed = fit_font(style, text_width(style, "1000") + 10, "1000")
        assert changed is False
        assert fitted is style

    def test_exact_fit(self, style):
        """Test that an exact fit is not changed."""
        fitted, changed = fit_font(style, text_width(style, "1000"), "1000")
        assert changed is False
        assert fitted.font_size == 20

    @pytest.mark.parametrize("target", [0, 5, 30, 60, 200])
    def test_never_grows(self, style, target):
        """Test that the font size never increases."""
        fitted, _ = fit_font(style, target, "141.7")
        assert fitted.font_size <= style.font_size

    @pytest.mark.parametrize("font_size", [8, 17, 34, 67])
    @pytest.mark.parametrize("label", ["141.7", "5690000", "28.3"])
    @pytest.mark.parametrize("target", [5, 12, 25, 40, 90])
    def test_refit_does_nothing(self, font_size, label, target):
        """Test that fitting the measured text a second time changes nothing."""
        fitted, _ = fit_font(DrawStyle(font_size=font_size), target, label)
        assert (text_width(fitted, label) <= target
                or fitted.font_size == MIN_FONT_SIZE)
        refitted, changed = fit_font(fitted, target, label)
        assert changed is False
        assert refitted.font_size == fitted.font_size

    @pytest.mark.parametrize("target", [0, -9])
    def test_minimum_size(self, style, target):
        """Test that an impossible target clamps to the minimum size."""
        fitted, changed = fit_font(style, target, "1000")
        assert changed is True
        assert fitted.font_size == MIN_FONT_SIZE

    def test_empty_text(self, style):
        fitted, changed = fit_font(style, 0, "")
        assert changed is False
        assert fitted is style

    def test_original_untouched(self, style):
        """Test that fitting returns a new style."""
        fit_font(style, 10, "1000")
        assert style.font_size == 20


class TestFormatDistance:
    """Tests for format_distance function."""

    @pytest.mark.parametrize("value,expected", [
        (28.3465, "28.3"),
        (56.693, "56.7"),
        (141.7325, "141.7"),
        (2.0, "2"),
        (100, "100"),
        (0.04, "0"),
        (0.15, "0.1"),
        (0.35, "0.3"),
        (0.45, "0.5"),
        (0.25, "0.2"),
        (1234.56, "1234.6"),
        (1999.96, "2000"),
    ])
    def test_one_decimal(self, value, expected):
        """Test '0.#' formatting, half-even on the exact binary value."""
        assert format_distance(value) == expected


class TestRenderRotatedText:
    """Tests for render_rotated_text function."""

    def test_size_is_swapped(self):
        """Test that the surface is text_height wide and text_width tall."""
        style = DrawStyle(font_size=20)
        img = render_rotated_text("5682000", style)
        assert img.size == (text_height(style), text_width(style, "5682000"))

    def test_contains_ink(self):
        """Test that the text is actually drawn."""
        img = render_rotated_text("1000", DrawStyle(font_size=20))
        pixels = np.asarray(img)
        assert (pixels < 128).any()
        assert img.mode == "RGB"

    def test_reads_bottom_to_top(self):
        """Test that the rotated text is taller than wide."""
        img = render_rotated_text("12345678", DrawStyle(font_size=20))
        assert img.height > img.width


class TestCanvas:
    """Tests for the Canvas class."""

    @pytest.fixture
    def style(self):
        return DrawStyle(font_size=8)

    def test_background(self):
        """Test that a new canvas is white RGB."""
        with Canvas(30, 20) as canvas:
            pass
        pixels = np.asarray(canvas.image)
        assert canvas.image.mode == "RGB"
        assert pixels.shape == (20, 30, 3)
        assert (pixels == 255).all()

    @pytest.mark.parametrize("width,height", [(0, 10), (10, 0), (-1, 5)])
    def test_invalid_size(self, width, height):
        """Test that empty canvases are rejected."""
        with pytest.raises(ValueError, match="Image size"):
            Canvas(width, height)

    def test_fill_rect(self, style):
        """Test that a filled rectangle covers exactly w x h pixels."""
        with Canvas(20, 20) as canvas:
            canvas.fill_rect(5, 5, 4, 3, style)
        pixels = np.asarray(canvas.image)
        assert (pixels[5:8, 5:9] == 0).all()
        assert pixels[8, 5].tolist() == WHITE
        assert pixels[5, 9].tolist() == WHITE

    def test_outline_rect(self, style):
        """Test that the outline spans x..x+w and leaves the inside empty."""
        with Canvas(20, 20) as canvas:
            canvas.outline_rect(2, 2, 10, 10, style)
        pixels = np.asarray(canvas.image)
        assert pixels[2, 2].tolist() == BLACK
        assert pixels[12, 12].tolist() == BLACK
        assert pixels[7, 7].tolist() == WHITE
        assert pixels[13, 13].tolist() == WHITE

    def test_line(self, style):
        """Test a horizontal line."""
        with Canvas(20, 20) as canvas:
            canvas.line(0, 10, 20, 10, style)
        pixels = np.asarray(canvas.image)
        assert (pixels[10, :] == 0).all()
        assert (pixels[9, :] == 255).all()

    def test_text(self):
        """Test that text is drawn above its baseline."""
        style = DrawStyle(font_size=16)
        with Canvas(60, 30) as canvas:
            canvas.text(2, 20, "88", style)
        pixels = np.asarray(canvas.image)
        assert (pixels[:21] < 128).any()
        assert (pixels[24:] == 255).all()

    def test_paste(self):
        """Test compositing another image."""
        patch = Image.new("RGB", (3, 3), (0, 0, 0))
        with Canvas(10, 10) as canvas:
            canvas.paste(patch, 4, 4)
        pixels = np.asarray(canvas.image)
        assert (pixels[4:7, 4:7] == 0).all()
        assert pixels[3, 3].tolist() == WHITE
