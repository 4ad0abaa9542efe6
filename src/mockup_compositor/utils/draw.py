"""Drawing helpers for placement previews.

All functions here are **generic** -- they accept quads and arrays
rather than frame records, and mutate the image in-place.  They render
the same solid-outline preview an interactive placement editor shows,
which makes it easy to check a frame's quads against its photo.
"""

from __future__ import annotations

from collections.abc import Sequence

import cv2
import numpy as np

from mockup_compositor.geometry.quad import QuadLike, as_quad_array

# ---------------------------------------------------------------------------
# Colour constants (BGR for OpenCV)
# ---------------------------------------------------------------------------

# Cycled per placement index: violet, blue, emerald, amber, red.
PLACEMENT_COLORS: tuple[tuple[int, int, int], ...] = (
    (246, 92, 139),
    (246, 130, 59),
    (129, 185, 16),
    (11, 158, 245),
    (68, 68, 239),
)
CORNER_MARKER_RADIUS = 5
TEXT_BG_COLOR: tuple[int, int, int] = (0, 0, 0)  # Black outline


def placement_color(index: int) -> tuple[int, int, int]:
    return PLACEMENT_COLORS[index % len(PLACEMENT_COLORS)]


# ---------------------------------------------------------------------------
# Quad drawing
# ---------------------------------------------------------------------------


def draw_quad(
    image: np.ndarray,
    quad: QuadLike,
    color: tuple[int, int, int],
    thickness: int = 2,
    draw_corners: bool = True,
) -> None:
    """Draw the closed outline of *quad* (and corner markers) on *image*.

    Mutates *image* in-place.
    """
    points = np.round(as_quad_array(quad)).astype(np.int32)
    cv2.polylines(image, [points.reshape(-1, 1, 2)], True, color, thickness, cv2.LINE_AA)
    if draw_corners:
        for x_value, y_value in points:
            centre = (int(x_value), int(y_value))
            cv2.circle(image, centre, CORNER_MARKER_RADIUS, color, -1, cv2.LINE_AA)
            cv2.circle(image, centre, CORNER_MARKER_RADIUS, (255, 255, 255), 1, cv2.LINE_AA)


def draw_placement_outlines(
    image: np.ndarray,
    quads: Sequence[QuadLike],
    labels: Sequence[str | None] | None = None,
    thickness: int = 2,
) -> None:
    """Outline every quad in its placement colour, labelled near its first corner.

    Mutates *image* in-place.
    """
    _frame_height, frame_width = image.shape[:2]
    font_scale = max(0.4, frame_width / 2000.0)

    for index, quad in enumerate(quads):
        color = placement_color(index)
        draw_quad(image, quad, color, thickness=thickness)

        label = labels[index] if labels is not None and index < len(labels) else None
        text = f"{index + 1}: {label}" if label else str(index + 1)
        top_left = as_quad_array(quad)[0]
        position = (int(round(top_left[0])) + 8, int(round(top_left[1])) + 20)
        overlay_text_with_outline(image, text, position, font_scale, color, 1)


# ---------------------------------------------------------------------------
# Text overlay
# ---------------------------------------------------------------------------


def overlay_text_with_outline(
    image: np.ndarray,
    text: str,
    position: tuple[int, int],
    font_scale: float,
    foreground_color: tuple[int, int, int],
    thickness: int = 1,
) -> None:
    """Draw *text* with a black outline for contrast.

    Mutates *image* in-place.
    """
    cv2.putText(
        image,
        text,
        position,
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        TEXT_BG_COLOR,
        thickness + 2,
        cv2.LINE_AA,
    )
    cv2.putText(
        image,
        text,
        position,
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        foreground_color,
        thickness,
        cv2.LINE_AA,
    )
