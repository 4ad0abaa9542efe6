"""Placement normalisation and assignment resolution.

Stored frame records come in two generations:

- **legacy** -- one ``placement`` rectangle ``{x, y, width, height}``,
  optionally turned clockwise by ``rotation`` degrees about its centre
  (a ``perspective`` hint is ignored);
- **current** -- a ``placements`` list whose entries carry
  ``quadPoints``: 4 ``{x, y}`` corners, TL/TR/BR/BL.

:func:`frame_from_record` folds both into a :class:`Frame` with a
non-empty tuple of quad placements.  This happens once, when a record
enters the compositor; nothing downstream checks for the legacy shape.

Record example (YAML)::

    id: f-001
    name: Gammel Kongevej 49
    frameImageUrl: frames/gammel-kongevej.jpg
    frameWidth: 1600
    frameHeight: 1200
    placements:
      - label: Front
        quadPoints:
          - {x: 120, y: 80}
          - {x: 1480, y: 140}
          - {x: 1450, y: 1100}
          - {x: 150, y: 1060}
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from mockup_compositor.errors import RecordError, RequestValidationError
from mockup_compositor.geometry.quad import Point2D
from mockup_compositor.models import Creative, Frame, Placement, PlacementAssignment, PlacementRef


def _first_present(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _as_float(value: Any, what: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise RecordError(f"{what} must be a number, got {value!r}") from None


def _point_from_record(value: Any, what: str) -> Point2D:
    if isinstance(value, Mapping):
        return Point2D(_as_float(value.get("x"), f"{what}.x"), _as_float(value.get("y"), f"{what}.y"))
    if isinstance(value, Sequence) and not isinstance(value, str) and len(value) == 2:
        return Point2D(_as_float(value[0], f"{what}.x"), _as_float(value[1], f"{what}.y"))
    raise RecordError(f"{what} must be {{x, y}} or [x, y], got {value!r}")


def rectangle_quad(x: float, y: float, width: float, height: float) -> tuple[Point2D, ...]:
    """Quad of an axis-aligned rectangle, TL/TR/BR/BL."""
    return (
        Point2D(x, y),
        Point2D(x + width, y),
        Point2D(x + width, y + height),
        Point2D(x, y + height),
    )


def rotate_quad(quad: Sequence[Point2D], degrees: float) -> tuple[Point2D, ...]:
    """Rotate *quad* clockwise (in y-down image space) about its centroid."""
    if not degrees:
        return tuple(quad)
    radians = math.radians(degrees)
    cos_value = math.cos(radians)
    sin_value = math.sin(radians)
    centre_x = sum(point.x for point in quad) / len(quad)
    centre_y = sum(point.y for point in quad) / len(quad)
    return tuple(
        Point2D(
            centre_x + (point.x - centre_x) * cos_value - (point.y - centre_y) * sin_value,
            centre_y + (point.x - centre_x) * sin_value + (point.y - centre_y) * cos_value,
        )
        for point in quad
    )


def placement_from_record(record: Mapping[str, Any], index: int = 0) -> Placement:
    """Build a :class:`Placement` from a quad or legacy rectangle record."""
    if not isinstance(record, Mapping):
        raise RecordError(f"placement {index} must be a mapping, got {type(record).__name__}")

    quad_record = _first_present(record, "quadPoints", "quad")
    if quad_record is not None:
        if not isinstance(quad_record, Sequence) or len(quad_record) != 4:
            raise RecordError(f"placement {index} quad must have exactly 4 points")
        quad = tuple(
            _point_from_record(point, f"placement {index} point {point_index}")
            for point_index, point in enumerate(quad_record)
        )
    else:
        missing = [key for key in ("x", "y", "width", "height") if record.get(key) is None]
        if missing:
            raise RecordError(
                f"placement {index} has neither quadPoints nor a rectangle (missing {', '.join(missing)})"
            )
        quad = rectangle_quad(
            _as_float(record["x"], f"placement {index}.x"),
            _as_float(record["y"], f"placement {index}.y"),
            _as_float(record["width"], f"placement {index}.width"),
            _as_float(record["height"], f"placement {index}.height"),
        )
        rotation = record.get("rotation")
        if rotation is not None:
            quad = rotate_quad(quad, _as_float(rotation, f"placement {index}.rotation"))

    placement_id = record.get("id")
    return Placement(
        quad=quad,  # type: ignore[arg-type]
        label=record.get("label"),
        id=str(placement_id) if placement_id is not None else None,
    )


def frame_from_record(record: Mapping[str, Any]) -> Frame:
    """Normalise a stored frame record into a :class:`Frame`.

    An empty or missing ``placements`` list falls back to the single
    legacy ``placement``.
    """
    frame_id = record.get("id")
    if frame_id is None:
        raise RecordError("frame record has no id")
    frame_id = str(frame_id)

    image_ref = _first_present(record, "image_ref", "frameImageUrl")
    if not image_ref:
        raise RecordError(f"frame '{frame_id}' has no image reference")

    width = _first_present(record, "width", "frameWidth")
    height = _first_present(record, "height", "frameHeight")
    if width is None or height is None:
        raise RecordError(f"frame '{frame_id}' has no width/height")

    placement_records = record.get("placements") or []
    if not placement_records:
        legacy = record.get("placement")
        if legacy is None:
            raise RecordError(f"frame '{frame_id}' has no placements")
        placement_records = [legacy]

    placements = tuple(
        placement_from_record(placement_record, index)
        for index, placement_record in enumerate(placement_records)
    )
    try:
        return Frame(
            id=frame_id,
            name=record.get("name"),
            width=int(_as_float(width, f"frame '{frame_id}' width")),
            height=int(_as_float(height, f"frame '{frame_id}' height")),
            image_ref=str(image_ref),
            placements=placements,
        )
    except ValueError as exc:
        if isinstance(exc, RecordError):
            raise
        raise RecordError(str(exc)) from exc


def creative_from_record(record: Mapping[str, Any]) -> Creative:
    """Normalise a stored creative record into a :class:`Creative`."""
    creative_id = record.get("id")
    if creative_id is None:
        raise RecordError("creative record has no id")
    image_ref = _first_present(record, "image_ref", "thumbnailUrl")
    if not image_ref:
        raise RecordError(f"creative '{creative_id}' has no image reference")
    width = record.get("width")
    height = record.get("height")
    return Creative(
        id=str(creative_id),
        image_ref=str(image_ref),
        name=_first_present(record, "name", "companyName"),
        width=int(width) if width is not None else None,
        height=int(height) if height is not None else None,
    )


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


def placement_index(frame: Frame, ref: PlacementRef) -> int:
    """Resolve a placement reference (index or id) on *frame*.

    Raises
    ------
    RequestValidationError
        If *ref* does not name a placement of *frame*.
    """
    if isinstance(ref, bool):
        raise RequestValidationError(f"Invalid placement reference {ref!r}")
    if isinstance(ref, int):
        if 0 <= ref < len(frame.placements):
            return ref
        raise RequestValidationError(
            f"Placement index {ref} out of range for frame '{frame.id}' "
            f"({len(frame.placements)} placements)"
        )
    for index, placement in enumerate(frame.placements):
        if placement.id is not None and placement.id == ref:
            return index
    # Numeric strings come from JSON object keys.
    if isinstance(ref, str) and ref.isdigit():
        return placement_index(frame, int(ref))
    raise RequestValidationError(f"Frame '{frame.id}' has no placement with id '{ref}'")


def assignments_by_index(
    frame: Frame,
    assignments: Sequence[PlacementAssignment],
) -> dict[int, str]:
    """Map placement index to creative id.  Later assignments win."""
    mapping: dict[int, str] = {}
    for assignment in assignments:
        mapping[placement_index(frame, assignment.placement)] = assignment.creative_id
    return mapping


def fill_assignments(
    frame: Frame,
    creative_id: str | None,
    overrides: Mapping[PlacementRef, str] | None = None,
) -> tuple[PlacementAssignment, ...]:
    """Assign *creative_id* to every placement, then apply *overrides*.

    With no *creative_id*, only the overridden placements are assigned.
    """
    mapping: dict[int, str] = {}
    if creative_id is not None:
        mapping = {index: creative_id for index in range(len(frame.placements))}
    for ref, override_creative_id in (overrides or {}).items():
        mapping[placement_index(frame, ref)] = override_creative_id
    return tuple(
        PlacementAssignment(placement=index, creative_id=mapping[index]) for index in sorted(mapping)
    )
