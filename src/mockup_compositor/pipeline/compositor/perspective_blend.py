"""Perspective compositing of a rectangular creative into one quad.

Algorithm
---------
1. **Validate** the quad (simple, non-degenerate) -- ``GeometryError``
   otherwise.
2. **Candidate pixels** -- only the quad's bounding box, clamped to the
   base image, is scanned.
3. **Clip** -- pixel centres ``(col + 0.5, row + 0.5)`` outside the quad
   (even-odd ray casting) are skipped.  Edges are hard: no feathering.
4. **Inverse warp** -- each remaining centre is mapped through the
   inverse homography into creative coordinates; samples outside
   ``[0, w) x [0, h)`` are skipped.  Inverse mapping leaves no holes.
5. **Bilinear sample** -- the four nearest creative pixels, weighted by
   fractional offsets, clamped at the creative borders.
6. **Blend** -- ``out = base * (1 - alpha) + sample * alpha`` per colour
   channel, ``alpha = opacity / 100`` times the creative's own alpha.
7. **Write** -- only blended pixels are written; every other pixel of
   the base keeps its exact value.

The bounding box is processed as NumPy arrays in horizontal bands of
``DEFAULT_BAND_ROWS`` rows, so temporary memory stays proportional to
one band rather than to the whole quad.
"""

from __future__ import annotations

import logging

import numpy as np

from mockup_compositor.errors import RequestValidationError
from mockup_compositor.geometry.homography import (
    invert_homography,
    project_points,
    solve_homography,
)
from mockup_compositor.geometry.quad import (
    DEFAULT_MIN_QUAD_AREA,
    QuadLike,
    bounds_of,
    clamp_bounds,
    points_in_polygon,
    validate_quad,
)

logger = logging.getLogger(__name__)

# Bounding-box rows composited per pass.
DEFAULT_BAND_ROWS = 256


def _split_color_alpha(image: np.ndarray) -> tuple[np.ndarray, np.ndarray | None]:
    """Return ``(bgr, alpha)`` views; *alpha* is ``None`` for opaque images."""
    if image.ndim == 2:
        return np.repeat(image[:, :, np.newaxis], 3, axis=2), None
    if image.ndim == 3 and image.shape[2] == 3:
        return image, None
    if image.ndim == 3 and image.shape[2] == 4:
        return image[:, :, :3], image[:, :, 3]
    raise ValueError(f"Expected a gray, BGR or BGRA image, got shape {image.shape}")


def bilinear_sample(image: np.ndarray, sample_x: np.ndarray, sample_y: np.ndarray) -> np.ndarray:
    """Sample *image* at continuous pixel-index coordinates.

    Parameters
    ----------
    image : np.ndarray
        ``(H, W)`` or ``(H, W, C)`` array.
    sample_x, sample_y : np.ndarray
        ``(N,)`` coordinates where integer values hit pixel centres
        exactly.  Neighbours outside the image are clamped to its border.

    Returns
    -------
    np.ndarray
        ``(N, C)`` float64 samples (``C == 1`` for 2-D input).
    """
    height, width = image.shape[:2]
    pixels = image.reshape(height, width, -1)

    floor_x = np.floor(sample_x)
    floor_y = np.floor(sample_y)
    frac_x = (sample_x - floor_x)[:, np.newaxis]
    frac_y = (sample_y - floor_y)[:, np.newaxis]

    x0 = np.clip(floor_x.astype(np.int64), 0, width - 1)
    y0 = np.clip(floor_y.astype(np.int64), 0, height - 1)
    x1 = np.clip(floor_x.astype(np.int64) + 1, 0, width - 1)
    y1 = np.clip(floor_y.astype(np.int64) + 1, 0, height - 1)

    top = pixels[y0, x0].astype(np.float64) * (1.0 - frac_x) + pixels[y0, x1] * frac_x
    bottom = pixels[y1, x0].astype(np.float64) * (1.0 - frac_x) + pixels[y1, x1] * frac_x
    return top * (1.0 - frac_y) + bottom * frac_y


def composite_into(
    canvas: np.ndarray,
    quad: QuadLike,
    creative: np.ndarray,
    opacity: float = 100.0,
    min_area: float = DEFAULT_MIN_QUAD_AREA,
    band_rows: int = DEFAULT_BAND_ROWS,
) -> int:
    """Warp *creative* into *quad* and alpha-blend it onto *canvas* (mutates in-place).

    Parameters
    ----------
    canvas : np.ndarray
        ``(H, W, 3)`` BGR or ``(H, W, 4)`` BGRA uint8 working buffer.
        Only its colour channels are written; an alpha channel is kept.
    quad : QuadLike
        4 corners in canvas pixel space, TL/TR/BR/BL.
    creative : np.ndarray
        Gray, BGR or BGRA uint8 image used as the source rectangle.
    opacity : float
        Percentage in ``[0, 100]``.
    min_area : float
        Degenerate-quad threshold in px^2.
    band_rows : int
        Rows of the bounding box processed per pass.  Peak temporary
        memory grows with ``band_rows * box width``, not with the box area.

    Returns
    -------
    int
        Number of canvas pixels written.

    Raises
    ------
    GeometryError
        If *quad* is not a valid simple quad.
    RequestValidationError
        If *opacity* is outside ``[0, 100]``.
    """
    if not 0 <= opacity <= 100:
        raise RequestValidationError(f"opacity must be in [0, 100], got {opacity}")
    if canvas.ndim != 3 or canvas.shape[2] not in (3, 4):
        raise ValueError(f"Canvas must be (H, W, 3|4), got shape {canvas.shape}")
    if band_rows < 1:
        raise ValueError(f"band_rows must be >= 1, got {band_rows}")

    quad_points = validate_quad(quad, min_area)
    canvas_height, canvas_width = canvas.shape[:2]
    creative_height, creative_width = creative.shape[:2]

    # --- 1. Candidate pixels: the clamped bounding box ------------------
    box = clamp_bounds(bounds_of(quad_points), canvas_width, canvas_height)
    if box.is_empty:
        logger.warning("Quad lies entirely outside the %dx%d canvas", canvas_width, canvas_height)
        return 0

    inverse = invert_homography(solve_homography(creative_width, creative_height, quad_points))
    creative_bgr, creative_alpha = _split_color_alpha(creative)
    columns = np.arange(box.x, box.right)

    written = 0
    for band_top in range(box.y, box.bottom, band_rows):
        band_bottom = min(band_top + band_rows, box.bottom)
        written += _composite_band(
            canvas,
            quad_points,
            inverse,
            creative_bgr,
            creative_alpha,
            columns,
            np.arange(band_top, band_bottom),
            opacity / 100.0,
        )
    return written


def _composite_band(
    canvas: np.ndarray,
    quad_points: np.ndarray,
    inverse: np.ndarray,
    creative_bgr: np.ndarray,
    creative_alpha: np.ndarray | None,
    columns: np.ndarray,
    rows: np.ndarray,
    opacity: float,
) -> int:
    """Composite the pixels of one horizontal band of the bounding box."""
    creative_height, creative_width = creative_bgr.shape[:2]
    grid_columns, grid_rows = np.meshgrid(columns, rows)
    grid_columns = grid_columns.ravel()
    grid_rows = grid_rows.ravel()
    centre_x = grid_columns + 0.5
    centre_y = grid_rows + 0.5

    # --- 2. Clip to the quad interior -----------------------------------
    inside = points_in_polygon(centre_x, centre_y, quad_points)
    if not np.any(inside):
        return 0
    grid_columns = grid_columns[inside]
    grid_rows = grid_rows[inside]

    # --- 3. Inverse warp into creative coordinates ----------------------
    source = project_points(inverse, np.column_stack([centre_x[inside], centre_y[inside]]))
    source_x = source[:, 0]
    source_y = source[:, 1]
    with np.errstate(invalid="ignore"):
        in_source = (
            (source_x >= 0.0)
            & (source_x < creative_width)
            & (source_y >= 0.0)
            & (source_y < creative_height)
        )
    if not np.any(in_source):
        return 0
    grid_columns = grid_columns[in_source]
    grid_rows = grid_rows[in_source]

    # --- 4. Bilinear sample (pixel i is centred at i + 0.5) -------------
    sample_x = source_x[in_source] - 0.5
    sample_y = source_y[in_source] - 0.5
    sampled_bgr = bilinear_sample(creative_bgr, sample_x, sample_y)

    alpha = np.full((len(sample_x), 1), opacity, dtype=np.float64)
    if creative_alpha is not None:
        alpha *= bilinear_sample(creative_alpha, sample_x, sample_y) / 255.0

    # --- 5. Blend: out = base * (1 - alpha) + sample * alpha ------------
    base_bgr = canvas[grid_rows, grid_columns, :3].astype(np.float64)
    blended = base_bgr * (1.0 - alpha) + sampled_bgr * alpha
    canvas[grid_rows, grid_columns, :3] = np.clip(np.rint(blended), 0, 255).astype(canvas.dtype)
    return int(len(grid_rows))


def composite(
    base: np.ndarray,
    quad: QuadLike,
    creative: np.ndarray,
    opacity: float = 100.0,
    min_area: float = DEFAULT_MIN_QUAD_AREA,
) -> np.ndarray:
    """Return a copy of *base* with *creative* composited into *quad*.

    The output always has the same shape as *base*.  See
    :func:`composite_into` for parameters.
    """
    output = base.copy()
    composite_into(output, quad, creative, opacity=opacity, min_area=min_area)
    return output
