"""
scale_grid.py - Grid and projection arithmetic for scale and axis images

Converts print resolutions to scale factors, picks a grid spacing for a map
scale, enumerates grid-aligned coordinates and projects real world
coordinates (metres) onto image pixels.
"""

import math
from typing import List, Sequence

import numpy as np


# === Resolution ===
REFERENCE_DPI = 72.0  # default screen resolution all base sizes refer to
DPC = 2.54            # centimetres per inch

# === Grid Size Heuristic ===
# (scale denominator upper bound, grid size in m), ascending, bound exclusive
GRID_SIZE_STEPS = (
    (500, 20),
    (1000, 50),
    (2000, 100),
    (5000, 200),
    (25000, 1000),
    (50000, 2000),
    (75000, 3000),
    (100000, 4000),
    (150000, 8000),
    (250000, 12000),
)
MAX_GRID_SIZE = 20000


def dpi_scale(dpi: int) -> float:
    """Scale factor of the given resolution relative to REFERENCE_DPI."""
    if dpi <= 0:
        raise ValueError(f"DPI must be positive, got {dpi}")
    return dpi / REFERENCE_DPI


def round_half_up(value):
    """Round to the nearest integer with ties going up (works on arrays)."""
    return np.floor(value + 0.5)


def grid_size_for_scale(scale: int) -> int:
    """
    Get the grid size in metres for a map scale.

    Args:
        scale: Scale denominator, e.g. 5000 for 1:5000

    Returns:
        Spacing between grid marks in metres
    """
    for upper_bound, grid_size in GRID_SIZE_STEPS:
        if scale < upper_bound:
            return grid_size
    return MAX_GRID_SIZE


def parse_scale(scale) -> int:
    """Parse a scale denominator given as int or integer string."""
    if isinstance(scale, bool):
        raise ValueError(f"Invalid scale: {scale!r} is not an integer")
    if isinstance(scale, (int, np.integer)):
        return int(scale)
    if isinstance(scale, (float, np.floating)):
        if not float(scale).is_integer():
            raise ValueError(f"Invalid scale: {scale!r} is not an integer")
        return int(scale)
    try:
        return int(scale)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid scale: {scale!r} is not an integer") from e


def project_marks(
    coords: Sequence[float],
    img_extent: float,
    min_coord: float,
    max_coord: float
) -> np.ndarray:
    """
    Project real world coordinates onto one image axis.

    The distances are expressed in centimetres at reference resolution
    before scaling to the image extent; the operation order is kept so that
    pixel rounding stays stable.

    Args:
        coords: Real world coordinates along the axis (metres)
        img_extent: Image width or height in px, matching the axis
        min_coord: Lower bound of the axis extent
        max_coord: Upper bound of the axis extent

    Returns:
        Integer pixel offsets from the min_coord edge
    """
    if max_coord == min_coord:
        raise ValueError(f"Cannot project onto a zero extent ({min_coord}..{max_coord})")

    coords = np.asarray(coords, dtype=float)
    distance_cm = np.abs(min_coord - coords) * 100
    delta_cm = abs(max_coord - min_coord) * 100

    ratio = img_extent / ((delta_cm * REFERENCE_DPI) / DPC)

    return round_half_up(((distance_cm * REFERENCE_DPI) / DPC) * ratio).astype(int)


def project_to_pixel(coord: float, img_extent: float, min_coord: float, max_coord: float) -> int:
    """Project a single real world coordinate, see project_marks."""
    return int(project_marks([coord], img_extent, min_coord, max_coord)[0])


def find_suitable_coordinates(min_coord: float, max_coord: float, grid_size: int) -> List[int]:
    """
    Find all grid-aligned coordinates within [min_coord, max_coord].

    Args:
        min_coord: Lower bound (e.g. min x)
        max_coord: Upper bound (e.g. max x)
        grid_size: Grid size in metres

    Returns:
        Ascending list of multiples of grid_size inside the range
    """
    if grid_size <= 0:
        raise ValueError(f"Grid size must be positive, got {grid_size}")

    # ceil/floor keep the marks inside the visible map
    start = math.ceil(min_coord)
    if start % grid_size != 0:
        # e.g. 5682123 -> 5683000 for a 1000m grid
        start = (start // grid_size) * grid_size + grid_size
    end = math.floor(max_coord)

    return list(range(start, end + 1, grid_size))
