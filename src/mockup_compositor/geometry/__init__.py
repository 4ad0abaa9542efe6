"""Geometry kernel -- pure quad and homography functions."""

from mockup_compositor.geometry.homography import (
    invert_homography,
    project_points,
    solve_homography,
)
from mockup_compositor.geometry.quad import (
    BoundingBox,
    Point2D,
    bounds_of,
    clamp_bounds,
    is_valid_quad,
    point_in_polygon,
    validate_quad,
)

__all__ = [
    "BoundingBox",
    "Point2D",
    "bounds_of",
    "clamp_bounds",
    "invert_homography",
    "is_valid_quad",
    "point_in_polygon",
    "project_points",
    "solve_homography",
    "validate_quad",
]
