"""Pure quad geometry: bounds, validity and point-in-polygon tests.

These functions are shared by the server-side compositor and by any
interactive editor that previews placements, so both agree on what a
valid quad is and which pixels it covers.

Conventions
-----------
- A quad is 4 ``(x, y)`` points in frame pixel space, ordered
  top-left, top-right, bottom-right, bottom-left.  Either winding is
  accepted as long as the polygon is simple.
- Anything array-like with shape ``(4, 2)`` is accepted, including a
  tuple of :class:`Point2D`.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import NamedTuple, Union

import numpy as np

from mockup_compositor.errors import GeometryError

# Quads with less area than this (in px^2) are treated as degenerate.
DEFAULT_MIN_QUAD_AREA = 1.0

# Relative tolerance for "three consecutive corners are collinear".
_COLLINEAR_TOLERANCE = 1e-9


class Point2D(NamedTuple):
    """A point in frame pixel space."""

    x: float
    y: float


QuadLike = Union[Sequence[Sequence[float]], np.ndarray]


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned integer pixel box ``[x, x + width) x [y, y + height)``."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def as_quad_array(quad: QuadLike) -> np.ndarray:
    """Return *quad* as a ``(4, 2)`` float64 array.

    Raises
    ------
    GeometryError
        If *quad* does not hold exactly 4 two-dimensional points.
    """
    try:
        points = np.asarray(quad, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise GeometryError(f"Quad is not a list of (x, y) points: {exc}") from exc
    if points.shape != (4, 2):
        raise GeometryError(f"Quad must have exactly 4 (x, y) points, got shape {points.shape}")
    return points


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------


def bounds_of(quad: QuadLike) -> BoundingBox:
    """Smallest integer pixel box containing all 4 corners.

    Min edges are floored and max edges are ceiled (rounded outward).
    A quad collapsed onto a single point yields ``width == height == 0``.
    """
    points = as_quad_array(quad)
    min_x, min_y = points.min(axis=0)
    max_x, max_y = points.max(axis=0)

    left = math.floor(min_x)
    top = math.floor(min_y)
    width = 0 if max_x == min_x else math.ceil(max_x) - left
    height = 0 if max_y == min_y else math.ceil(max_y) - top
    return BoundingBox(x=left, y=top, width=width, height=height)


def clamp_bounds(box: BoundingBox, width: int, height: int) -> BoundingBox:
    """Clip *box* to the image extent ``[0, width) x [0, height)``.

    The result may be empty when *box* lies entirely outside the image.
    """
    left = min(max(box.x, 0), width)
    top = min(max(box.y, 0), height)
    right = min(max(box.right, 0), width)
    bottom = min(max(box.bottom, 0), height)
    return BoundingBox(x=left, y=top, width=right - left, height=bottom - top)


# ---------------------------------------------------------------------------
# Validity
# ---------------------------------------------------------------------------


def signed_area(quad: QuadLike) -> float:
    """Shoelace area; positive for clockwise order in image (y-down) space."""
    points = as_quad_array(quad)
    x_values = points[:, 0]
    y_values = points[:, 1]
    return 0.5 * float(
        np.dot(x_values, np.roll(y_values, -1)) - np.dot(y_values, np.roll(x_values, -1))
    )


def _cross(origin: np.ndarray, first: np.ndarray, second: np.ndarray) -> float:
    return float(
        (first[0] - origin[0]) * (second[1] - origin[1])
        - (first[1] - origin[1]) * (second[0] - origin[0])
    )


def _on_segment(start: np.ndarray, end: np.ndarray, point: np.ndarray) -> bool:
    return bool(
        min(start[0], end[0]) <= point[0] <= max(start[0], end[0])
        and min(start[1], end[1]) <= point[1] <= max(start[1], end[1])
    )


def _segments_intersect(
    first_start: np.ndarray,
    first_end: np.ndarray,
    second_start: np.ndarray,
    second_end: np.ndarray,
) -> bool:
    """True if the two closed segments share at least one point."""
    d1 = _cross(second_start, second_end, first_start)
    d2 = _cross(second_start, second_end, first_end)
    d3 = _cross(first_start, first_end, second_start)
    d4 = _cross(first_start, first_end, second_end)

    if ((d1 > 0 and d2 < 0) or (d1 < 0 and d2 > 0)) and (
        (d3 > 0 and d4 < 0) or (d3 < 0 and d4 > 0)
    ):
        return True
    if d1 == 0 and _on_segment(second_start, second_end, first_start):
        return True
    if d2 == 0 and _on_segment(second_start, second_end, first_end):
        return True
    if d3 == 0 and _on_segment(first_start, first_end, second_start):
        return True
    if d4 == 0 and _on_segment(first_start, first_end, second_end):
        return True
    return False


def quad_defect(quad: QuadLike, min_area: float = DEFAULT_MIN_QUAD_AREA) -> str | None:
    """Describe why *quad* cannot be composited, or ``None`` if it can."""
    try:
        points = as_quad_array(quad)
    except GeometryError as exc:
        return str(exc)

    if not np.all(np.isfinite(points)):
        return "quad has non-finite coordinates"

    area = abs(signed_area(points))
    if area < min_area:
        return f"quad area {area:.3f} px^2 is below the minimum of {min_area} px^2"

    # No three consecutive corners may be collinear, otherwise the
    # rectangle-to-quad homography is singular.
    for index in range(4):
        previous_point = points[index - 1]
        corner = points[index]
        next_point = points[(index + 1) % 4]
        first_edge = corner - previous_point
        second_edge = next_point - corner
        scale = float(np.linalg.norm(first_edge) * np.linalg.norm(second_edge))
        if scale == 0.0:
            return f"corner {index} coincides with a neighbouring corner"
        if abs(_cross(previous_point, corner, next_point)) <= _COLLINEAR_TOLERANCE * scale:
            return f"corner {index} is collinear with its neighbours"

    # The opposite edge pairs of a simple quad never touch.
    if _segments_intersect(points[0], points[1], points[2], points[3]):
        return "quad is self-intersecting (top and bottom edges cross)"
    if _segments_intersect(points[1], points[2], points[3], points[0]):
        return "quad is self-intersecting (left and right edges cross)"
    return None


def is_valid_quad(quad: QuadLike, min_area: float = DEFAULT_MIN_QUAD_AREA) -> bool:
    """True if *quad* is a simple polygon with at least *min_area* px^2."""
    return quad_defect(quad, min_area) is None


def validate_quad(quad: QuadLike, min_area: float = DEFAULT_MIN_QUAD_AREA) -> np.ndarray:
    """Return *quad* as a ``(4, 2)`` array or raise :class:`GeometryError`."""
    defect = quad_defect(quad, min_area)
    if defect is not None:
        raise GeometryError(defect)
    return as_quad_array(quad)


# ---------------------------------------------------------------------------
# Containment
# ---------------------------------------------------------------------------


def points_in_polygon(
    x_values: np.ndarray,
    y_values: np.ndarray,
    polygon: QuadLike,
) -> np.ndarray:
    """Vectorised even-odd ray-casting test.

    Parameters
    ----------
    x_values, y_values : np.ndarray
        Coordinates of the query points (any matching shape).
    polygon : QuadLike
        Polygon vertices as an ``(N, 2)`` array-like.

    Returns
    -------
    np.ndarray
        Boolean array with the shape of *x_values*.
    """
    vertices = np.asarray(polygon, dtype=np.float64)
    x_values = np.asarray(x_values, dtype=np.float64)
    y_values = np.asarray(y_values, dtype=np.float64)
    inside = np.zeros(np.broadcast(x_values, y_values).shape, dtype=bool)

    previous_x, previous_y = vertices[-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        for current_x, current_y in vertices:
            straddles = (current_y > y_values) != (previous_y > y_values)
            crossing_x = (previous_x - current_x) * (y_values - current_y) / (
                previous_y - current_y
            ) + current_x
            inside ^= straddles & (x_values < crossing_x)
            previous_x, previous_y = current_x, current_y
    return inside


def point_in_polygon(point: Sequence[float], polygon: QuadLike) -> bool:
    """Scalar convenience wrapper around :func:`points_in_polygon`."""
    return bool(points_in_polygon(np.array(point[0]), np.array(point[1]), polygon))
