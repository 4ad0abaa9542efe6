"""Tests for the quad / homography geometry kernel."""

import cv2
import numpy as np
import pytest

from conftest import RECT_QUAD, SKEWED_QUAD
from mockup_compositor.errors import GeometryError
from mockup_compositor.geometry.homography import (
    invert_homography,
    project_points,
    rectangle_corners,
    solve_homography,
)
from mockup_compositor.geometry.quad import (
    BoundingBox,
    as_quad_array,
    bounds_of,
    clamp_bounds,
    is_valid_quad,
    point_in_polygon,
    points_in_polygon,
    quad_defect,
    signed_area,
    validate_quad,
)


class TestBounds:
    def test_rectangle_bounds(self):
        assert bounds_of(RECT_QUAD) == BoundingBox(x=80, y=60, width=640, height=480)

    def test_skewed_bounds_is_smallest_enclosing_box(self):
        box = bounds_of(SKEWED_QUAD)
        assert (box.x, box.y, box.right, box.bottom) == (80, 60, 720, 540)

    def test_fractional_bounds_round_outward(self):
        box = bounds_of(((10.2, 5.7), (20.5, 5.7), (20.5, 15.1), (10.2, 15.1)))
        assert box == BoundingBox(x=10, y=5, width=11, height=11)

    def test_point_quad_has_zero_size(self):
        box = bounds_of(((3.5, 4.5),) * 4)
        assert box.width == 0
        assert box.height == 0
        assert box.is_empty

    def test_clamp_to_image(self):
        clamped = clamp_bounds(BoundingBox(x=-10, y=590, width=50, height=40), 800, 600)
        assert clamped == BoundingBox(x=0, y=590, width=40, height=10)

    def test_clamp_outside_image_is_empty(self):
        assert clamp_bounds(BoundingBox(x=900, y=10, width=20, height=20), 800, 600).is_empty


class TestValidity:
    def test_rectangle_and_skewed_are_valid(self):
        assert is_valid_quad(RECT_QUAD)
        assert is_valid_quad(SKEWED_QUAD)

    def test_counter_clockwise_winding_is_valid(self):
        reversed_quad = tuple(reversed(RECT_QUAD))
        assert signed_area(reversed_quad) < 0
        assert is_valid_quad(reversed_quad)

    def test_concave_simple_quad_is_valid(self):
        dart = ((0, 0), (100, 50), (0, 100), (30, 50))
        assert is_valid_quad(dart)

    def test_self_intersecting_quad_is_invalid(self):
        bowtie = ((0, 0), (200, 0), (0, 100), (100, 100))
        assert not is_valid_quad(bowtie)

    def test_collinear_quad_is_invalid(self):
        line = ((0, 0), (10, 0), (20, 0), (30, 0))
        assert not is_valid_quad(line)

    def test_tiny_area_is_invalid(self):
        sliver = ((0, 0), (10, 0), (10, 0.05), (0, 0.05))
        assert "area" in quad_defect(sliver)

    def test_three_collinear_corners_are_invalid(self):
        triangle_like = ((0, 0), (50, 0), (100, 0), (50, 80))
        assert not is_valid_quad(triangle_like)

    def test_repeated_corner_is_invalid(self):
        assert not is_valid_quad(((0, 0), (0, 0), (100, 100), (0, 100)))

    def test_non_finite_is_invalid(self):
        assert not is_valid_quad(((0, 0), (np.nan, 0), (100, 100), (0, 100)))

    def test_wrong_point_count_raises(self):
        with pytest.raises(GeometryError):
            as_quad_array(((0, 0), (1, 0), (1, 1)))

    def test_validate_raises_geometry_error(self):
        with pytest.raises(GeometryError, match="self-intersecting"):
            validate_quad(((0, 0), (200, 0), (0, 100), (100, 100)))


class TestPointInPolygon:
    def test_inside_and_outside(self):
        assert point_in_polygon((400, 300), RECT_QUAD)
        assert not point_in_polygon((10, 10), RECT_QUAD)
        assert not point_in_polygon((721, 300), RECT_QUAD)

    def test_vectorised_matches_scalar(self):
        xs = np.array([100.5, 700.5, 90.5, 690.0])
        ys = np.array([100.5, 70.5, 520.5, 530.0])
        expected = [point_in_polygon((x, y), SKEWED_QUAD) for x, y in zip(xs, ys)]
        assert points_in_polygon(xs, ys, SKEWED_QUAD).tolist() == expected

    def test_concave_notch_is_outside(self):
        dart = ((0, 0), (100, 50), (0, 100), (30, 50))
        assert point_in_polygon((50, 50), dart)
        assert not point_in_polygon((10, 50), dart)


class TestHomography:
    def test_corners_map_to_quad(self):
        homography = solve_homography(400, 300, SKEWED_QUAD)
        projected = project_points(homography, rectangle_corners(400, 300))
        np.testing.assert_allclose(projected, np.array(SKEWED_QUAD, dtype=float), atol=1e-9)

    def test_inverse_maps_quad_corners_to_creative_corners(self):
        inverse = invert_homography(solve_homography(400, 300, SKEWED_QUAD))
        projected = project_points(inverse, np.array(SKEWED_QUAD, dtype=float))
        np.testing.assert_allclose(projected, rectangle_corners(400, 300), atol=1e-6)

    def test_matches_opencv(self):
        source = rectangle_corners(400, 300).astype(np.float32)
        destination = np.array(SKEWED_QUAD, dtype=np.float32)
        expected = cv2.getPerspectiveTransform(source, destination)
        np.testing.assert_allclose(
            solve_homography(400, 300, SKEWED_QUAD), expected / expected[2, 2], rtol=1e-4, atol=1e-6
        )

    def test_round_trip_interior_points(self):
        homography = solve_homography(400, 300, SKEWED_QUAD)
        inverse = invert_homography(homography)
        rng = np.random.default_rng(7)
        points = rng.uniform([1, 1], [399, 299], size=(200, 2))
        round_trip = project_points(inverse, project_points(homography, points))
        np.testing.assert_allclose(round_trip, points, atol=1e-6)

    def test_identity_for_own_rectangle(self):
        homography = solve_homography(64, 48, rectangle_corners(64, 48))
        np.testing.assert_allclose(homography, np.eye(3), atol=1e-12)

    def test_points_at_infinity_are_nan(self):
        homography = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 0.0, 0.0]])
        projected = project_points(homography, np.array([[0.0, 5.0], [2.0, 4.0]]))
        assert np.all(np.isnan(projected[0]))
        np.testing.assert_allclose(projected[1], [1.0, 2.0])

    def test_non_positive_source_raises(self):
        with pytest.raises(GeometryError):
            solve_homography(0, 10, RECT_QUAD)
