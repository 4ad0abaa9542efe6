"""Rectangle-to-quad homography solve, inversion and point projection.

Exactly four point correspondences determine a projective transform, so
the homography is found with a direct linear transform: 8 linear
equations in the 8 unknowns ``h11 .. h32`` (``h33`` fixed to ``1``),
solved in one step with :func:`numpy.linalg.solve`.  The result matches
``cv2.getPerspectiveTransform`` for the same corners.

All matrices returned here are normalised so that ``H[2, 2] == 1``.
"""

from __future__ import annotations

import numpy as np

from mockup_compositor.errors import GeometryError
from mockup_compositor.geometry.quad import QuadLike, as_quad_array

# Below this magnitude a homogeneous ``w`` is treated as "at infinity".
_W_EPSILON = 1e-12


def rectangle_corners(width: float, height: float) -> np.ndarray:
    """Corners of a ``width x height`` source image as TL, TR, BR, BL."""
    return np.array(
        [
            [0.0, 0.0],
            [width, 0.0],
            [width, height],
            [0.0, height],
        ],
        dtype=np.float64,
    )


def homography_from_points(source: QuadLike, destination: QuadLike) -> np.ndarray:
    """Projective transform mapping 4 *source* points onto 4 *destination* points.

    Raises
    ------
    GeometryError
        If the linear system is singular (three collinear points on
        either side).
    """
    source_points = as_quad_array(source)
    destination_points = as_quad_array(destination)

    system = np.zeros((8, 8), dtype=np.float64)
    rhs = np.zeros(8, dtype=np.float64)
    for index, ((x, y), (u, v)) in enumerate(zip(source_points, destination_points)):
        system[2 * index] = [x, y, 1.0, 0.0, 0.0, 0.0, -u * x, -u * y]
        system[2 * index + 1] = [0.0, 0.0, 0.0, x, y, 1.0, -v * x, -v * y]
        rhs[2 * index] = u
        rhs[2 * index + 1] = v

    try:
        solution = np.linalg.solve(system, rhs)
    except np.linalg.LinAlgError as exc:
        raise GeometryError("Cannot solve homography: point configuration is degenerate") from exc

    homography = np.append(solution, 1.0).reshape(3, 3)
    if not np.all(np.isfinite(homography)):
        raise GeometryError("Cannot solve homography: non-finite solution")
    return homography


def solve_homography(source_width: float, source_height: float, destination_quad: QuadLike) -> np.ndarray:
    """Homography mapping the ``source_width x source_height`` rectangle onto *destination_quad*.

    Corner ``(0, 0)`` maps to the quad's first point, ``(w, 0)`` to the
    second, ``(w, h)`` to the third and ``(0, h)`` to the fourth.
    """
    if source_width <= 0 or source_height <= 0:
        raise GeometryError(
            f"Source rectangle must have positive size, got {source_width}x{source_height}"
        )
    return homography_from_points(rectangle_corners(source_width, source_height), destination_quad)


def invert_homography(homography: np.ndarray) -> np.ndarray:
    """Inverse transform, normalised to ``H[2, 2] == 1``.

    Used to map destination pixels back into creative coordinates.
    """
    try:
        inverse = np.linalg.inv(np.asarray(homography, dtype=np.float64))
    except np.linalg.LinAlgError as exc:
        raise GeometryError("Homography is singular and cannot be inverted") from exc
    if abs(inverse[2, 2]) < _W_EPSILON:
        # Valid but maps the origin to infinity; keep the unnormalised form.
        return inverse
    return inverse / inverse[2, 2]


def project_points(homography: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Project ``(N, 2)`` points through *homography*.

    Points that land at infinity (``w ~ 0``) come back as ``NaN``.
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    matrix = np.asarray(homography, dtype=np.float64)
    x_values = points[:, 0]
    y_values = points[:, 1]
    # Element-wise: a point projects the same whatever batch it is in.
    u_values = matrix[0, 0] * x_values + matrix[0, 1] * y_values + matrix[0, 2]
    v_values = matrix[1, 0] * x_values + matrix[1, 1] * y_values + matrix[1, 2]
    w_values = matrix[2, 0] * x_values + matrix[2, 1] * y_values + matrix[2, 2]

    projected = np.full((len(points), 2), np.nan, dtype=np.float64)
    finite = np.abs(w_values) > _W_EPSILON
    projected[finite, 0] = u_values[finite] / w_values[finite]
    projected[finite, 1] = v_values[finite] / w_values[finite]
    return projected
