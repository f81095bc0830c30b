"""
Utility classes for map scale and axis image generation.

This module provides the bounding box value object shared by the scale bar
and axis renderers, together with helpers to build it from shapely
geometries and to move it between coordinate reference systems.
"""

from dataclasses import dataclass
from typing import Tuple

from pyproj import Transformer
from shapely.geometry import Polygon, box as shapely_box


@dataclass(frozen=True)
class Bounds:
    """Represents a rectangular bounds in a metric coordinate system.

    The renderers expect metres, e.g. EPSG:25832 or a UTM zone.

    Attributes:
        min_x: Western/left boundary
        max_x: Eastern/right boundary
        min_y: Southern/bottom boundary
        max_y: Northern/top boundary
    """
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    def __post_init__(self):
        if self.max_x < self.min_x:
            raise ValueError(f"Invalid bounds: max_x {self.max_x} < min_x {self.min_x}")
        if self.max_y < self.min_y:
            raise ValueError(f"Invalid bounds: max_y {self.max_y} < min_y {self.min_y}")

    @classmethod
    def from_corners(cls, min_x: float, min_y: float, max_x: float, max_y: float) -> 'Bounds':
        """Build bounds from lower left and upper right corners."""
        return cls(min_x=min_x, max_x=max_x, min_y=min_y, max_y=max_y)

    @classmethod
    def from_geometry(cls, geom) -> 'Bounds':
        """Build bounds enclosing a shapely geometry."""
        if geom.is_empty:
            raise ValueError("Cannot derive bounds from an empty geometry")
        min_x, min_y, max_x, max_y = geom.bounds
        return cls.from_corners(min_x, min_y, max_x, max_y)

    @property
    def width(self) -> float:
        """Width of the bounds (east-west extent)."""
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        """Height of the bounds (north-south extent)."""
        return self.max_y - self.min_y

    @property
    def center(self) -> Tuple[float, float]:
        """Center point of the bounds as (x, y)."""
        return (
            (self.min_x + self.max_x) / 2,
            (self.min_y + self.max_y) / 2
        )

    def contains(self, x: float, y: float) -> bool:
        """Check if a point is within bounds."""
        return (self.min_x <= x <= self.max_x and
                self.min_y <= y <= self.max_y)

    def expand(self, buffer: float) -> 'Bounds':
        """Return a new Bounds expanded by buffer in all directions."""
        return Bounds(
            min_x=self.min_x - buffer,
            max_x=self.max_x + buffer,
            min_y=self.min_y - buffer,
            max_y=self.max_y + buffer
        )

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return bounds as (min_x, min_y, max_x, max_y) tuple."""
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    def as_polygon(self) -> Polygon:
        """Return the bounds as a shapely rectangle."""
        return shapely_box(*self.as_tuple())

    def reproject(self, src_crs: str, dst_crs: str) -> 'Bounds':
        """Transform the bounds into another CRS.

        All four corners are transformed so that skew between the systems
        is covered; the result is the envelope of the transformed corners.

        Args:
            src_crs: CRS of these bounds (e.g., "EPSG:4326")
            dst_crs: Target CRS, should be metric (e.g., "EPSG:25832")

        Returns:
            New Bounds in the target CRS
        """
        transformer = Transformer.from_crs(src_crs, dst_crs, always_xy=True)
        corners = [
            transformer.transform(self.min_x, self.min_y),
            transformer.transform(self.max_x, self.min_y),
            transformer.transform(self.max_x, self.max_y),
            transformer.transform(self.min_x, self.max_y),
        ]
        return Bounds(
            min_x=min(c[0] for c in corners),
            max_x=max(c[0] for c in corners),
            min_y=min(c[1] for c in corners),
            max_y=max(c[1] for c in corners)
        )
