"""
scale_image.py - Scale bar and coordinate axis images for printed maps

Generates:
- Scale bar with alternating unit rectangles labelled in metres
- Vertical axis ruler with rotated coordinate labels (northings)
- Horizontal axis ruler with upright coordinate labels (eastings)

NOTE: bounding boxes have to be given in a metric CRS such as EPSG:25832.
"""

import logging
import math
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from PIL import Image
from pyproj.exceptions import CRSError

from map_utils import Bounds
from render_helpers import (
    Canvas,
    DrawStyle,
    char_width,
    fit_font,
    format_distance,
    render_rotated_text,
    text_height,
    text_width,
)
from scale_grid import (
    DPC,
    REFERENCE_DPI,
    dpi_scale,
    find_suitable_coordinates,
    grid_size_for_scale,
    parse_scale,
    project_marks,
    round_half_up,
)

logger = logging.getLogger(__name__)

# === Configuration ===
OUTPUT_DIR = Path("output")

# Scale bar (base sizes in px at REFERENCE_DPI)
SCALE_IMG_WIDTH = 170
SCALE_IMG_HEIGHT = 25
NUM_SCALE_UNIT_RECTANGLES = 5
SCALE_UNIT_MARGIN = 10  # px kept free on each side of the widest unit label

# Axis rulers (base sizes in px at REFERENCE_DPI)
VERTICAL_AXIS_WIDTH = 25
HORIZONTAL_AXIS_HEIGHT = 25

IMAGE_KINDS = ("scale", "vertical", "horizontal")

ScaleValue = Union[int, str]

get_grid_size = grid_size_for_scale


@dataclass(frozen=True)
class RenderRequest:
    """Inputs of a single scale or axis render call.

    Attributes:
        bounds: Map extent in a metric CRS
        map_width: Map width in px at reference resolution
        map_height: Map height in px at reference resolution
        dpi: Target print resolution
        scale: Map scale denominator (int or integer string), axis images only
        grid_size: Explicit grid size in metres, axis images only
    """
    bounds: Bounds
    map_width: int
    map_height: int
    dpi: int
    scale: Optional[ScaleValue] = None
    grid_size: Optional[int] = None

    def __post_init__(self):
        if self.map_width <= 0 or self.map_height <= 0:
            raise ValueError(f"Map size must be positive, got {self.map_width}x{self.map_height}")
        if self.dpi <= 0:
            raise ValueError(f"DPI must be positive, got {self.dpi}")
        if self.scale is not None and self.grid_size is not None:
            raise ValueError("Give either a scale or a grid size, not both")
        if self.grid_size is not None and self.grid_size <= 0:
            raise ValueError(f"Grid size must be positive, got {self.grid_size}")
        if self.scale is not None:
            object.__setattr__(self, 'scale', parse_scale(self.scale))

    @property
    def dpi_scale(self) -> float:
        return dpi_scale(self.dpi)

    @property
    def resolved_grid_size(self) -> int:
        """Grid size in metres, derived from the scale unless given."""
        if self.grid_size is not None:
            return self.grid_size
        if self.scale is None:
            raise ValueError("Axis images need a scale or a grid size")
        return grid_size_for_scale(self.scale)


@dataclass(frozen=True)
class ProjectedMark:
    """A grid-aligned coordinate and where it lands on the axis image."""
    coordinate: int
    pixel: int
    label: str
    label_visible: bool


@dataclass(frozen=True)
class ScaleBarLayout:
    """Geometry of a scale bar image.

    Attributes:
        width, height: Image size in px
        unit_value: Real world distance of one unit rectangle in metres
        unit_width: Width of one unit rectangle in px (1 cm at target DPI)
        rect_x, rect_y: Top left corner of the first unit rectangle
        rect_height: Height of the unit rectangles
        separator_height: Height of the tick at each rectangle's trailing edge
        text_y: Label baseline
        style: Draw style after label fitting
        labels: Cumulative distance label per rectangle
    """
    width: int
    height: int
    unit_value: float
    unit_width: int
    rect_x: int
    rect_y: int
    rect_height: int
    separator_height: int
    text_y: int
    style: DrawStyle
    labels: Tuple[str, ...]


@dataclass(frozen=True)
class AxisLayout:
    """Geometry of an axis ruler image."""
    width: int
    height: int
    grid_size: int
    style: DrawStyle
    marks: Tuple[ProjectedMark, ...]


# === Scale Bar ===

def scale_unit_meters(bbox_width_m: float, map_width: int) -> float:
    """
    Real world distance represented by 1 cm on the printed map.

    Args:
        bbox_width_m: Width of the bounding box in metres
        map_width: Map width in px at reference resolution

    Returns:
        Distance in metres, rounded to 4 decimal places
    """
    width_cm = abs(bbox_width_m) * 100.0
    scale_width = width_cm / (map_width / REFERENCE_DPI * DPC)
    return float(round_half_up(scale_width * 100)) / 10000


def layout_scale_bar(request: RenderRequest) -> ScaleBarLayout:
    """Compute the scale bar geometry and fit the label font."""
    if request.bounds.width == 0:
        raise ValueError("Scale bar needs bounds with a non-zero width")

    scale = request.dpi_scale
    unit_value = scale_unit_meters(request.bounds.width, request.map_width)

    width = math.floor(SCALE_IMG_WIDTH * scale)
    height = math.floor(SCALE_IMG_HEIGHT * scale)

    style = DrawStyle.for_dpi(request.dpi)
    unit_width = math.ceil(request.dpi / DPC)

    rect_y = height - (height // 2) - 1
    separator_height = rect_y // 6
    text_y = rect_y - separator_height - text_height(style) // 4

    # The last label carries the largest value, so it is the widest
    widest = format_distance(unit_value * NUM_SCALE_UNIT_RECTANGLES)
    style, _ = fit_font(style, unit_width - 2 * SCALE_UNIT_MARGIN, widest)

    labels = tuple(
        format_distance(unit_value * (i + 1))
        for i in range(NUM_SCALE_UNIT_RECTANGLES)
    )

    return ScaleBarLayout(
        width=width,
        height=height,
        unit_value=unit_value,
        unit_width=unit_width,
        rect_x=unit_width // 2,
        rect_y=rect_y,
        rect_height=height // 3,
        separator_height=separator_height,
        text_y=text_y,
        style=style,
        labels=labels,
    )


def render_scale_bar(request: RenderRequest) -> Image.Image:
    """Render the scale bar image for a request."""
    layout = layout_scale_bar(request)
    style = layout.style

    with Canvas(layout.width, layout.height, style.bg) as canvas:
        x = layout.rect_x
        for i, label in enumerate(layout.labels):
            # Every second rectangle is filled
            if (i + 1) % 2 == 0:
                canvas.fill_rect(x, layout.rect_y, layout.unit_width, layout.rect_height, style)
            canvas.outline_rect(x, layout.rect_y, layout.unit_width, layout.rect_height, style)

            separator_x = x + layout.unit_width
            canvas.text(separator_x - text_width(style, label) // 2, layout.text_y, label, style)
            canvas.outline_rect(
                separator_x,
                layout.rect_y - layout.separator_height,
                1,
                layout.separator_height,
                style
            )

            x += layout.unit_width

    return canvas.image


# === Axis Rulers ===

def axis_label(coordinate: float) -> str:
    """Label text of a mark, the coordinate truncated to an integer."""
    return str(int(coordinate))


def fit_axis_font(
    style: DrawStyle,
    coords: Sequence[int],
    pixels: Sequence[int]
) -> Tuple[DrawStyle, bool]:
    """
    Shrink the axis font if mark labels do not fit into the gap between marks.

    Args:
        style: Current draw style
        coords: Real world coordinates of the marks (ascending)
        pixels: Projected positions of the marks

    Returns:
        Tuple of (style, changed)
    """
    if len(coords) == 0:
        logger.warning("List of real world coordinates is empty")
        return style, False

    # Only one mark, nothing to collide with
    if len(pixels) < 2:
        return style, False

    # The last coordinate is the biggest, assume its label is the widest
    gap = int(abs(pixels[1] - pixels[0]))
    return fit_font(style, gap, axis_label(coords[-1]))


def _layout_axis(
    request: RenderRequest,
    min_coord: float,
    max_coord: float,
    width: int,
    height: int,
    extent: int,
    extent_name: str
) -> AxisLayout:
    if max_coord == min_coord:
        raise ValueError(f"Axis needs bounds with a non-zero {extent_name}")

    grid_size = request.resolved_grid_size
    coords = find_suitable_coordinates(min_coord, max_coord, grid_size)
    pixels = project_marks(coords, extent, min_coord, max_coord)

    style, _ = fit_axis_font(DrawStyle.for_dpi(request.dpi), coords, pixels)
    gap = char_width(style)

    marks = []
    for coord, pixel in zip(coords, pixels):
        label = axis_label(coord)
        marks.append(ProjectedMark(
            coordinate=coord,
            pixel=int(pixel),
            label=label,
            # Labels are drawn one gap past the tick and skipped if they
            # would run past the far edge
            label_visible=bool(pixel + gap + text_width(style, label) < extent),
        ))

    return AxisLayout(
        width=width,
        height=height,
        grid_size=grid_size,
        style=style,
        marks=tuple(marks),
    )


def layout_vertical_axis(request: RenderRequest) -> AxisLayout:
    """Marks for the vertical axis, measured upwards from the bottom edge."""
    scale = request.dpi_scale
    width = math.floor(VERTICAL_AXIS_WIDTH * scale)
    height = math.floor(request.map_height * scale)
    bounds = request.bounds
    return _layout_axis(request, bounds.min_y, bounds.max_y, width, height, height, "height")


def layout_horizontal_axis(request: RenderRequest) -> AxisLayout:
    """Marks for the horizontal axis, measured from the left edge."""
    scale = request.dpi_scale
    width = math.floor(request.map_width * scale)
    height = math.floor(HORIZONTAL_AXIS_HEIGHT * scale)
    bounds = request.bounds
    return _layout_axis(request, bounds.min_x, bounds.max_x, width, height, width, "width")


def render_vertical_axis(request: RenderRequest) -> Image.Image:
    """Render the vertical axis ruler for a request."""
    layout = layout_vertical_axis(request)
    style = layout.style
    gap = char_width(style)

    with Canvas(layout.width, layout.height, style.bg) as canvas:
        for mark in layout.marks:
            logger.debug("real world y: %s img y: %s", mark.coordinate, mark.pixel)

            # Image Y grows downwards, northings grow upwards
            y = layout.height - mark.pixel
            canvas.line(0, y, layout.width, y, style)

            if mark.label_visible:
                label_img = render_rotated_text(mark.label, style)
                canvas.paste(
                    label_img,
                    layout.width // 2,
                    int(y - text_width(style, mark.label) - gap)
                )

    return canvas.image


def render_horizontal_axis(request: RenderRequest) -> Image.Image:
    """Render the horizontal axis ruler for a request."""
    layout = layout_horizontal_axis(request)
    style = layout.style
    gap = char_width(style)

    with Canvas(layout.width, layout.height, style.bg) as canvas:
        for mark in layout.marks:
            logger.debug("real world x: %s img x: %s", mark.coordinate, mark.pixel)

            canvas.line(mark.pixel, 0, mark.pixel, layout.height, style)

            if mark.label_visible:
                canvas.text(int(mark.pixel + gap), layout.height // 2, mark.label, style)

    return canvas.image


# === Public API ===

def generate_scale_image(
    min_x: float,
    min_y: float,
    max_x: float,
    max_y: float,
    map_width: int,
    map_height: int,
    dpi: int
) -> Image.Image:
    """
    Generate the scale bar image.

    Args:
        min_x, min_y: Lower left corner of the bounding box
        max_x, max_y: Upper right corner of the bounding box
        map_width: Width of the map image in px
        map_height: Height of the map image in px
        dpi: Desired print resolution

    Returns:
        RGB scale bar image
    """
    request = RenderRequest(
        bounds=Bounds.from_corners(min_x, min_y, max_x, max_y),
        map_width=map_width,
        map_height=map_height,
        dpi=dpi,
    )
    return render_scale_bar(request)


def generate_vertical_axis(
    min_x: float,
    min_y: float,
    max_x: float,
    max_y: float,
    map_width: int,
    map_height: int,
    dpi: int,
    scale: ScaleValue
) -> Image.Image:
    """
    Generate the vertical axis image with marks on the grid derived from scale.

    The scale may be passed as a string (e.g. from a print dialog) as long as
    it parses as an integer.
    """
    request = RenderRequest(
        bounds=Bounds.from_corners(min_x, min_y, max_x, max_y),
        map_width=map_width,
        map_height=map_height,
        dpi=dpi,
        scale=scale,
    )
    return render_vertical_axis(request)


def generate_vertical_axis_with_grid(
    min_x: float,
    min_y: float,
    max_x: float,
    max_y: float,
    map_width: int,
    map_height: int,
    dpi: int,
    grid_size: int
) -> Image.Image:
    """
    Generate the vertical axis image with a mark every grid_size metres,
    starting at the first northing divisible by grid_size.
    """
    request = RenderRequest(
        bounds=Bounds.from_corners(min_x, min_y, max_x, max_y),
        map_width=map_width,
        map_height=map_height,
        dpi=dpi,
        grid_size=grid_size,
    )
    return render_vertical_axis(request)


def generate_horizontal_axis(
    min_x: float,
    min_y: float,
    max_x: float,
    max_y: float,
    map_width: int,
    map_height: int,
    dpi: int,
    scale: ScaleValue
) -> Image.Image:
    """Generate the horizontal axis image, see generate_vertical_axis."""
    request = RenderRequest(
        bounds=Bounds.from_corners(min_x, min_y, max_x, max_y),
        map_width=map_width,
        map_height=map_height,
        dpi=dpi,
        scale=scale,
    )
    return render_horizontal_axis(request)


def generate_horizontal_axis_with_grid(
    min_x: float,
    min_y: float,
    max_x: float,
    max_y: float,
    map_width: int,
    map_height: int,
    dpi: int,
    grid_size: int
) -> Image.Image:
    """Generate the horizontal axis image, see generate_vertical_axis_with_grid."""
    request = RenderRequest(
        bounds=Bounds.from_corners(min_x, min_y, max_x, max_y),
        map_width=map_width,
        map_height=map_height,
        dpi=dpi,
        grid_size=grid_size,
    )
    return render_horizontal_axis(request)


# === Export ===

RENDERERS = {
    "scale": ("scale", render_scale_bar),
    "vertical": ("vertical_axis", render_vertical_axis),
    "horizontal": ("horizontal_axis", render_horizontal_axis),
}


def export_images(
    request: RenderRequest,
    output_dir: Path,
    prefix: str = "map",
    kinds: Sequence[str] = IMAGE_KINDS
) -> List[Path]:
    """
    Render the requested images and save them as PNG files.

    Args:
        request: Render inputs (scale or grid size needed for axis images)
        output_dir: Folder to write to, created if missing
        prefix: File name prefix
        kinds: Any of "scale", "vertical", "horizontal"

    Returns:
        Paths of the written files
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for kind in kinds:
        suffix, renderer = RENDERERS[kind]
        img = renderer(request)
        output_path = output_dir / f"{prefix}_{suffix}.png"
        img.save(output_path, dpi=(request.dpi, request.dpi))
        print(f"  Saved {img.width}x{img.height} {kind} image: {output_path}")
        written.append(output_path)

    return written


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line interface for scale and axis image generation."""
    import argparse

    parser = argparse.ArgumentParser(description='Generate scale bar and axis images for a printed map')
    parser.add_argument('--bbox', nargs=4, type=float, required=True,
                        metavar=('MIN_X', 'MIN_Y', 'MAX_X', 'MAX_Y'),
                        help='Map bounding box (metric CRS unless --source-crs is given)')
    parser.add_argument('--size', nargs=2, type=int, required=True, metavar=('WIDTH', 'HEIGHT'),
                        help='Map size in px at 72 DPI')
    parser.add_argument('--dpi', type=int, default=300, help='Print resolution (default: 300)')
    grid = parser.add_mutually_exclusive_group()
    grid.add_argument('--scale', type=str, help='Map scale denominator, e.g. 5000 for 1:5000')
    grid.add_argument('--grid-size', type=int, help='Grid size in metres for axis marks')
    parser.add_argument('--source-crs', help='CRS of --bbox, e.g. EPSG:4326')
    parser.add_argument('--target-crs', default='EPSG:25832',
                        help='Metric CRS to reproject --bbox into (default: EPSG:25832)')
    parser.add_argument('--only', action='append', choices=IMAGE_KINDS,
                        help='Only render the given image (repeatable)')
    parser.add_argument('--output-dir', type=Path, default=OUTPUT_DIR, help='Output folder')
    parser.add_argument('--prefix', default='map', help='File name prefix (default: map)')
    parser.add_argument('--verbose', action='store_true', help='Log mark positions and font fitting')

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')

    kinds = args.only or list(IMAGE_KINDS)
    if args.scale is None and args.grid_size is None:
        axis_kinds = [k for k in kinds if k != "scale"]
        if axis_kinds:
            parser.error(f"--scale or --grid-size is required for {', '.join(axis_kinds)} images")

    print("Scale Image Generation")
    try:
        bounds = Bounds.from_corners(*args.bbox)
        if args.source_crs:
            print(f"  Reprojecting bounds {args.source_crs} -> {args.target_crs}")
            bounds = bounds.reproject(args.source_crs, args.target_crs)
        print(f"  Bounds: X {bounds.min_x:.1f}-{bounds.max_x:.1f}, Y {bounds.min_y:.1f}-{bounds.max_y:.1f}")

        request = RenderRequest(
            bounds=bounds,
            map_width=args.size[0],
            map_height=args.size[1],
            dpi=args.dpi,
            scale=args.scale,
            grid_size=args.grid_size,
        )
        if args.scale is not None or args.grid_size is not None:
            print(f"  Grid size: {request.resolved_grid_size}m")

        written = export_images(request, args.output_dir, args.prefix, kinds)
    except (ValueError, CRSError) as e:
        print(f"Error: {e}")
        return 1

    print(f"Done, wrote {len(written)} image(s) to {args.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
