"""Compose every assigned placement of a frame onto one working buffer.

The ``MultiPlacementComposer`` takes a frame, its placement assignments
and the creative records, then:

1. Validates every assigned quad up front (``GeometryError`` aborts the
   request before any I/O).
2. Fetches the frame's base image and, if its decoded size differs from
   the frame's declared size, scales the quads to match.
3. Paints placements in frame order onto a single working copy, so a
   later placement occludes an earlier one where they overlap.
   Unassigned placements are left untouched.
4. Encodes the working buffer once, at the end.

Partial-success policy
----------------------
A placement whose creative is unknown or cannot be fetched is skipped
and noted as a :class:`PartialCompositeWarning` on the result.  The
request fails with :class:`AssetResolutionError` only when *no*
assigned placement could be composited.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

import numpy as np

from mockup_compositor.errors import AssetResolutionError, PartialCompositeWarning
from mockup_compositor.geometry.quad import DEFAULT_MIN_QUAD_AREA, validate_quad
from mockup_compositor.io.image_codec import DEFAULT_JPEG_QUALITY, encode_image, normalize_format
from mockup_compositor.models import (
    CompositeResult,
    Creative,
    Frame,
    Placement,
    PlacementAssignment,
)
from mockup_compositor.pipeline.assets.base import AssetResolver
from mockup_compositor.pipeline.compositor.perspective_blend import composite_into
from mockup_compositor.pipeline.placer.placement import assignments_by_index

logger = logging.getLogger(__name__)


class MultiPlacementComposer:
    """Paint creatives into a frame's placements in z-order.

    The composer holds no per-request state and can be shared by
    concurrent batch workers.

    Parameters
    ----------
    resolver : AssetResolver
        Fetches frame and creative images.
    creatives : Mapping[str, Creative]
        Creative records by id, supplied by the caller.
    min_quad_area : float
        Degenerate-quad threshold in px^2.
    jpeg_quality : int
        Quality for ``jpg`` output.
    """

    def __init__(
        self,
        resolver: AssetResolver,
        creatives: Mapping[str, Creative],
        min_quad_area: float = DEFAULT_MIN_QUAD_AREA,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    ) -> None:
        self._resolver = resolver
        self._creatives = creatives
        self._min_quad_area = min_quad_area
        self._jpeg_quality = jpeg_quality

    @property
    def creatives(self) -> Mapping[str, Creative]:
        return self._creatives

    def compose_all(
        self,
        frame: Frame,
        assignments: Sequence[PlacementAssignment],
        opacity: float = 100.0,
        output_format: str = "jpg",
    ) -> CompositeResult:
        """Composite all assigned placements of *frame* and encode the result.

        Raises
        ------
        GeometryError
            If an assigned placement has an invalid quad.
        AssetResolutionError
            If the frame image cannot be fetched, or no placement
            could be composited.
        UnsupportedFormatError
            If *output_format* is not supported.
        """
        fmt = normalize_format(output_format)
        creative_by_index = assignments_by_index(frame, assignments)

        # --- 1. Validate geometry before any I/O ------------------------
        for index in creative_by_index:
            validate_quad(frame.placements[index].quad, self._min_quad_area)

        # --- 2. Base image + declared-to-actual scaling -----------------
        base = self._resolver.fetch_image(frame.image_ref)
        canvas = base["pixels"].copy()
        placements = self._scaled_placements(frame, base["width"], base["height"])

        # --- 3. Paint placements in frame order -------------------------
        decoded: dict[str, np.ndarray] = {}
        skipped: list[PartialCompositeWarning] = []
        painted_count = 0

        for index, placement in enumerate(placements):
            creative_id = creative_by_index.get(index)
            if creative_id is None:
                continue
            try:
                creative_pixels = self._creative_pixels(creative_id, decoded)
            except AssetResolutionError as exc:
                warning = PartialCompositeWarning(index, placement.label, str(exc))
                logger.warning("Frame '%s': %s", frame.id, warning)
                skipped.append(warning)
                continue

            written = composite_into(
                canvas,
                placement.quad,
                creative_pixels,
                opacity=opacity,
                min_area=self._min_quad_area,
            )
            painted_count += 1
            logger.debug(
                "Frame '%s' placement %d: %d px from creative '%s'",
                frame.id,
                index,
                written,
                creative_id,
            )

        if creative_by_index and painted_count == 0:
            reasons = "; ".join(warning.reason for warning in skipped)
            raise AssetResolutionError(
                f"No placement of frame '{frame.id}' could be composited: {reasons}"
            )

        # --- 4. Encode once ---------------------------------------------
        image_bytes = encode_image(canvas, fmt, jpeg_quality=self._jpeg_quality)
        return CompositeResult(
            image_bytes=image_bytes,
            format=fmt,
            width=canvas.shape[1],
            height=canvas.shape[0],
            warnings=tuple(skipped),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _scaled_placements(frame: Frame, actual_width: int, actual_height: int) -> tuple[Placement, ...]:
        """Placements in decoded-image pixel space."""
        if (actual_width, actual_height) == (frame.width, frame.height):
            return frame.placements
        scale_x = actual_width / frame.width
        scale_y = actual_height / frame.height
        logger.info(
            "Frame '%s' image is %dx%d but declared %dx%d; scaling placements by (%.3f, %.3f)",
            frame.id,
            actual_width,
            actual_height,
            frame.width,
            frame.height,
            scale_x,
            scale_y,
        )
        return tuple(placement.scaled(scale_x, scale_y) for placement in frame.placements)

    def _creative_pixels(self, creative_id: str, decoded: dict[str, np.ndarray]) -> np.ndarray:
        """Fetch a creative once per request."""
        if creative_id in decoded:
            return decoded[creative_id]
        creative = self._creatives.get(creative_id)
        if creative is None:
            raise AssetResolutionError(f"Creative '{creative_id}' not found")
        pixels = self._resolver.fetch_image(creative.image_ref)["pixels"]
        decoded[creative_id] = pixels
        return pixels
