"""Tests for record normalisation and placement assignment."""

import math

import pytest

from conftest import RECT_QUAD, SKEWED_QUAD, make_frame
from mockup_compositor.errors import RecordError, RequestValidationError
from mockup_compositor.geometry.quad import BoundingBox, Point2D
from mockup_compositor.models import Frame, Placement, PlacementAssignment
from mockup_compositor.pipeline.placer import creative_from_record, fill_assignments, frame_from_record
from mockup_compositor.pipeline.placer.placement import (
    assignments_by_index,
    placement_index,
    rectangle_quad,
)


def _frame_record(**overrides):
    record = {
        "id": "f-001",
        "name": "Gammel Kongevej 49",
        "frameImageUrl": "frames/gammel-kongevej.jpg",
        "frameWidth": 1600,
        "frameHeight": 1200,
    }
    record.update(overrides)
    return record


class TestFrameFromRecord:
    def test_quad_points_are_used(self):
        record = _frame_record(
            placements=[
                {
                    "id": "front",
                    "label": "Front",
                    "quadPoints": [{"x": 120, "y": 80}, {"x": 1480, "y": 140}, [1450, 1100], [150, 1060]],
                }
            ]
        )

        frame = frame_from_record(record)

        assert frame.id == "f-001"
        assert (frame.width, frame.height) == (1600, 1200)
        assert frame.image_ref == "frames/gammel-kongevej.jpg"
        assert frame.display_name == "Gammel Kongevej 49"
        (placement,) = frame.placements
        assert placement.id == "front"
        assert placement.label == "Front"
        assert placement.quad[2] == Point2D(1450.0, 1100.0)

    def test_legacy_rectangle_becomes_single_placement(self):
        record = _frame_record(
            placement={"x": 100, "y": 50, "width": 400, "height": 300, "rotation": 0, "perspective": 5}
        )

        frame = frame_from_record(record)

        assert len(frame.placements) == 1
        assert frame.placements[0].quad == rectangle_quad(100, 50, 400, 300)
        assert frame.placements[0].bounding_box == BoundingBox(x=100, y=50, width=400, height=300)

    def test_legacy_rotation_turns_rectangle_clockwise(self):
        record = _frame_record(placement={"x": 100, "y": 50, "width": 400, "height": 200, "rotation": 90})

        quad = frame_from_record(record).placements[0].quad

        expected = [(400, -50), (400, 350), (200, 350), (200, -50)]
        for point, (x, y) in zip(quad, expected):
            assert point.x == pytest.approx(x, abs=1e-9)
            assert point.y == pytest.approx(y, abs=1e-9)

    def test_legacy_rotation_keeps_centre_and_size(self):
        record = _frame_record(placement={"x": 0, "y": 0, "width": 100, "height": 60, "rotation": 30})

        quad = frame_from_record(record).placements[0].quad

        assert sum(point.x for point in quad) / 4 == pytest.approx(50)
        assert sum(point.y for point in quad) / 4 == pytest.approx(30)
        top_edge = (quad[1].x - quad[0].x, quad[1].y - quad[0].y)
        assert math.hypot(*top_edge) == pytest.approx(100)
        assert top_edge[1] > 0  # clockwise in image space tilts the top edge down

    def test_rotation_on_quad_placement_is_ignored(self):
        record = _frame_record(placements=[{"quadPoints": [list(point) for point in RECT_QUAD], "rotation": 45}])
        assert frame_from_record(record).placements[0].quad[0] == Point2D(80.0, 60.0)

    def test_non_numeric_rotation_raises(self):
        record = _frame_record(placement={"x": 0, "y": 0, "width": 10, "height": 10, "rotation": "left"})
        with pytest.raises(RecordError, match="rotation"):
            frame_from_record(record)

    def test_empty_placements_fall_back_to_legacy(self):
        record = _frame_record(placements=[], placement={"x": 0, "y": 0, "width": 10, "height": 10})
        assert len(frame_from_record(record).placements) == 1

    def test_placements_win_over_legacy(self):
        record = _frame_record(
            placements=[{"quadPoints": [list(point) for point in SKEWED_QUAD]}],
            placement={"x": 0, "y": 0, "width": 10, "height": 10},
        )
        frame = frame_from_record(record)
        assert frame.placements[0].quad[1] == Point2D(720.0, 100.0)

    def test_snake_case_keys(self):
        frame = frame_from_record(
            {"id": 7, "image_ref": "f.png", "width": 80, "height": 60, "placements": [{"quad": RECT_QUAD}]}
        )
        assert frame.id == "7"
        assert frame.display_name == "7"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"id": None},
            {"frameImageUrl": None},
            {"frameWidth": None},
            {"frameWidth": 0, "placement": {"x": 0, "y": 0, "width": 1, "height": 1}},
        ],
    )
    def test_incomplete_records_raise(self, overrides):
        with pytest.raises(RecordError):
            frame_from_record(_frame_record(**overrides))

    def test_no_placements_raise(self):
        with pytest.raises(RecordError, match="no placements"):
            frame_from_record(_frame_record())

    def test_wrong_point_count_raises(self):
        with pytest.raises(RecordError, match="exactly 4"):
            frame_from_record(_frame_record(placements=[{"quadPoints": [[0, 0], [1, 0], [1, 1]]}]))

    def test_rectangle_missing_fields_raises(self):
        with pytest.raises(RecordError, match="height"):
            frame_from_record(_frame_record(placement={"x": 0, "y": 0, "width": 10}))

    def test_non_numeric_point_raises(self):
        quad = [{"x": "left", "y": 0}, [1, 0], [1, 1], [0, 1]]
        with pytest.raises(RecordError, match="must be a number"):
            frame_from_record(_frame_record(placements=[{"quadPoints": quad}]))


class TestCreativeFromRecord:
    def test_legacy_keys(self):
        creative = creative_from_record(
            {"id": "c1", "thumbnailUrl": "creatives/c1.png", "companyName": "Acme", "width": 400, "height": 300}
        )
        assert creative.image_ref == "creatives/c1.png"
        assert creative.display_name == "Acme"
        assert (creative.width, creative.height) == (400, 300)

    def test_missing_image_raises(self):
        with pytest.raises(RecordError):
            creative_from_record({"id": "c1"})


class TestModels:
    def test_frame_requires_placements(self):
        with pytest.raises(ValueError):
            Frame(id="f", width=10, height=10, image_ref="f.png", placements=())

    def test_placement_scaled(self):
        placement = Placement(quad=RECT_QUAD, label="Front", id="p")
        scaled = placement.scaled(0.5, 2.0)
        assert scaled.quad[2] == Point2D(360.0, 1080.0)
        assert (scaled.label, scaled.id) == ("Front", "p")


class TestAssignments:
    def test_placement_index_by_index_id_and_digit_string(self):
        frame = make_frame("f1", [RECT_QUAD, SKEWED_QUAD])
        assert placement_index(frame, 1) == 1
        assert placement_index(frame, "f1-p1") == 1
        assert placement_index(frame, "0") == 0

    @pytest.mark.parametrize("ref", [2, -1, "nope", True])
    def test_unknown_placement_raises(self, ref):
        frame = make_frame("f1", [RECT_QUAD, SKEWED_QUAD])
        with pytest.raises(RequestValidationError):
            placement_index(frame, ref)

    def test_later_assignment_wins(self):
        frame = make_frame("f1", [RECT_QUAD, SKEWED_QUAD])
        mapping = assignments_by_index(
            frame,
            [
                PlacementAssignment(placement=0, creative_id="c1"),
                PlacementAssignment(placement="f1-p0", creative_id="c2"),
            ],
        )
        assert mapping == {0: "c2"}

    def test_fill_assignments_with_overrides(self):
        frame = make_frame("f1", [RECT_QUAD, SKEWED_QUAD, RECT_QUAD])
        assignments = fill_assignments(frame, "c1", {"f1-p2": "c3"})
        assert [(a.placement, a.creative_id) for a in assignments] == [(0, "c1"), (1, "c1"), (2, "c3")]

    def test_fill_assignments_without_default(self):
        frame = make_frame("f1", [RECT_QUAD, SKEWED_QUAD])
        assignments = fill_assignments(frame, None, {1: "c2"})
        assert assignments == (PlacementAssignment(placement=1, creative_id="c2"),)
