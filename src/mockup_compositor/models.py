"""Typed records for frames, placements, creatives, requests and results.

Records arriving from storage are loosely typed; they are normalised into
these frozen dataclasses once, at the boundary (see
:mod:`mockup_compositor.pipeline.placer.placement`).  Inside the
compositor every ``Placement`` has exactly four corners and every
``Frame`` has at least one placement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

from mockup_compositor.errors import PartialCompositeWarning
from mockup_compositor.geometry.quad import BoundingBox, Point2D, bounds_of

Quad = tuple[Point2D, Point2D, Point2D, Point2D]
PlacementRef = Union[int, str]
ItemStatus = Literal["processing", "done", "error"]


@dataclass(frozen=True)
class Placement:
    """A named quadrilateral advertising slot on a frame."""

    quad: Quad
    label: str | None = None
    id: str | None = None

    def __post_init__(self) -> None:
        if len(self.quad) != 4:
            raise ValueError(f"Placement quad needs exactly 4 points, got {len(self.quad)}")
        object.__setattr__(self, "quad", tuple(Point2D(float(x), float(y)) for x, y in self.quad))

    @property
    def bounding_box(self) -> BoundingBox:
        """Derived from ``quad``; never stored."""
        return bounds_of(self.quad)

    def scaled(self, scale_x: float, scale_y: float) -> Placement:
        """Copy with every corner scaled independently along x and y."""
        quad = tuple(Point2D(point.x * scale_x, point.y * scale_y) for point in self.quad)
        return Placement(quad=quad, label=self.label, id=self.id)  # type: ignore[arg-type]


@dataclass(frozen=True)
class Frame:
    """A location photo with ordered placements (index 0 is painted first)."""

    id: str
    width: int
    height: int
    image_ref: str
    placements: tuple[Placement, ...]
    name: str | None = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Frame '{self.id}' must have positive size, got {self.width}x{self.height}")
        object.__setattr__(self, "placements", tuple(self.placements))
        if not self.placements:
            raise ValueError(f"Frame '{self.id}' has no placements")

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class Creative:
    """A rectangular advertising image.

    ``width``/``height`` are the declared size; the decoded pixel size is
    what defines the homography source rectangle.
    """

    id: str
    image_ref: str
    name: str | None = None
    width: int | None = None
    height: int | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class PlacementAssignment:
    """Maps a placement (by index or id) to a creative id."""

    placement: PlacementRef
    creative_id: str


@dataclass(frozen=True)
class CompositeRequest:
    frame: Frame
    assignments: tuple[PlacementAssignment, ...]
    opacity: float = 100
    output_format: str = "jpg"

    def __post_init__(self) -> None:
        object.__setattr__(self, "assignments", tuple(self.assignments))


@dataclass(frozen=True)
class CompositeResult:
    """Encoded mockup.  ``warnings`` lists placements that were skipped."""

    image_bytes: bytes
    format: str
    width: int
    height: int
    warnings: tuple[PartialCompositeWarning, ...] = ()

    @property
    def is_partial(self) -> bool:
        return bool(self.warnings)


# ---------------------------------------------------------------------------
# Batch records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BatchItem:
    """One frame in a batch.

    ``creative_id`` falls back to the batch-wide creative when ``None``.
    ``overrides`` maps placement index/id to a creative for that placement.
    """

    frame_id: str
    creative_id: str | None = None
    overrides: dict[PlacementRef, str] | None = None


@dataclass(frozen=True)
class BatchItemResult:
    frame_id: str
    success: bool
    image_bytes: bytes | None = None
    error: str | None = None
    frame_name: str | None = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProgressEvent:
    """Batch progress.

    One ``"done"``/``"error"`` event is emitted per resolved item and
    ``processed_count`` increases by one with each of them.  Optional
    ``"processing"`` events repeat the current count.
    """

    processed_count: int
    total_count: int
    current_item_label: str | None = None
    item_status: ItemStatus | None = None
    error: str | None = None

    @property
    def percent(self) -> int:
        if self.total_count == 0:
            return 100
        return round(100 * self.processed_count / self.total_count)


@dataclass
class BatchSummary:
    """Summary statistics for a finished batch."""

    total: int
    succeeded: int
    failed: int
    elapsed_s: float
    cancelled: bool = False

    def to_log_string(self) -> str:
        """Format as a single-line log message."""
        return (
            f"total={self.total}  ok={self.succeeded}  failed={self.failed}  "
            f"elapsed={self.elapsed_s:.1f}s"
            + ("  (cancelled)" if self.cancelled else "")
        )


@dataclass(frozen=True)
class BatchCompleted:
    """Terminal batch event carrying one result per submitted item."""

    results: tuple[BatchItemResult, ...]
    summary: BatchSummary = field(compare=False)
