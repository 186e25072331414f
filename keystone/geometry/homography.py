"""
Homography estimation from exactly four point correspondences.

A planar homography (projective transformation) maps one quadrilateral onto
another.  With the bottom-right coefficient fixed to 1 the remaining eight
coefficients follow from an exactly determined 8 x 8 linear system: each
correspondence (x, y) -> (u, v) contributes one equation per axis once the
homogeneous denominator z = c20*x + c21*y + 1 is cleared.

The system is solved with an LU decomposition.  Degenerate inputs (duplicate
or collinear points, badly conditioned sets) are rejected up front so callers
never receive a matrix full of NaN/Inf.
"""

import warnings
from typing import NamedTuple, Tuple

import numpy as np
from scipy.linalg import LinAlgError, LinAlgWarning, lu_factor, lu_solve


# Largest accepted 2-norm condition number of the normalised 8 x 8 system.
MAX_CONDITION = 1e10

# Minimum triangle area (in normalised units) for three points to count as
# non-collinear.
COLLINEAR_EPS = 1e-9


class ProjectionError(ValueError):
    """Base class for homography errors."""


class SingularSystemError(ProjectionError):
    """The correspondence system has no unique, well-conditioned solution."""


class InvalidInputError(ProjectionError):
    """Point sets do not have the required shape or contain bad values."""


class Point2D(NamedTuple):
    x: float
    y: float


Quad = Tuple[Point2D, Point2D, Point2D, Point2D]


class CorrespondenceSet(NamedTuple):
    """Four ordered (source, dest) pairs; index i in both quads is one pair."""

    source: Quad
    dest: Quad

    def swapped(self) -> "CorrespondenceSet":
        return CorrespondenceSet(self.dest, self.source)


class ProjectiveMatrix(NamedTuple):
    """Row-major 3 x 3 projective matrix with c22 fixed to 1.

    ``u = (c00*x + c01*y + c02) / z`` and ``v = (c10*x + c11*y + c12) / z``
    with ``z = c20*x + c21*y + c22``.
    """

    c00: float
    c01: float
    c02: float
    c10: float
    c11: float
    c12: float
    c20: float
    c21: float
    c22: float = 1.0

    def as_array(self) -> np.ndarray:
        return np.array(self, dtype=np.float64).reshape(3, 3)


IDENTITY = ProjectiveMatrix(1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0)


# ---------------------------------------------------------------------------
# Input handling
# ---------------------------------------------------------------------------

def as_quad(points) -> Quad:
    """Convert any 4 x 2 sequence or array into a validated Quad.

    Raises
    ------
    InvalidInputError
        If *points* is not four pairs of finite real numbers.
    """
    try:
        arr = np.asarray(points, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Points are not numeric: {points!r}") from exc

    if arr.shape != (4, 2):
        raise InvalidInputError(
            f"Expected exactly 4 points of 2 coordinates, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise InvalidInputError("Point coordinates must be finite")

    return tuple(Point2D(float(x), float(y)) for x, y in arr)


def make_correspondences(source, dest) -> CorrespondenceSet:
    return CorrespondenceSet(as_quad(source), as_quad(dest))


# ---------------------------------------------------------------------------
# Linear system
# ---------------------------------------------------------------------------

def build_system(source, dest):
    """Build the 8 x 8 coefficient matrix U and right-hand side b.

    Rows 0-3 hold the u-equations and rows 4-7 the v-equations of the four
    correspondences, in point order.
    """
    src = np.asarray(source, dtype=np.float64)
    dst = np.asarray(dest, dtype=np.float64)
    x, y = src[:, 0], src[:, 1]
    u, v = dst[:, 0], dst[:, 1]
    zeros = np.zeros(4)
    ones = np.ones(4)

    U = np.vstack([
        np.column_stack([x, y, ones, zeros, zeros, zeros, -x * u, -y * u]),
        np.column_stack([zeros, zeros, zeros, x, y, ones, -x * v, -y * v]),
    ])
    b = np.concatenate([u, v])
    return U, b


def _normalise(points: np.ndarray) -> np.ndarray:
    """Move the centroid to the origin and scale to mean distance sqrt(2)."""
    centred = points - points.mean(axis=0)
    mean_dist = np.mean(np.sqrt(np.sum(centred ** 2, axis=1)))
    if mean_dist == 0.0:
        raise SingularSystemError("All four points coincide")
    return centred * (np.sqrt(2.0) / mean_dist)


def _check_not_collinear(points: np.ndarray, label: str) -> None:
    for skip in range(4):
        a, b, c = np.delete(points, skip, axis=0)
        area = 0.5 * abs((b[0] - a[0]) * (c[1] - a[1]) -
                         (b[1] - a[1]) * (c[0] - a[0]))
        if area < COLLINEAR_EPS:
            raise SingularSystemError(
                f"Three {label} points are collinear or coincide "
                f"(all but point {skip})")


def condition_number(source, dest) -> float:
    """Condition number of the correspondence system in normalised units.

    Both quads are normalised first, so the figure does not depend on the
    pixel scale of the inputs.
    """
    src = _normalise(np.asarray(source, dtype=np.float64))
    dst = _normalise(np.asarray(dest, dtype=np.float64))
    U, _ = build_system(src, dst)
    return float(np.linalg.cond(U))


def check_degenerate(source, dest, max_condition: float = MAX_CONDITION) -> None:
    """Raise SingularSystemError when the pair of quads cannot be solved."""
    src = _normalise(np.asarray(source, dtype=np.float64))
    dst = _normalise(np.asarray(dest, dtype=np.float64))
    _check_not_collinear(src, "source")
    _check_not_collinear(dst, "destination")

    cond = condition_number(source, dest)
    if not np.isfinite(cond) or cond > max_condition:
        raise SingularSystemError(
            f"Correspondence system is ill-conditioned "
            f"(condition number {cond:.3g} > {max_condition:.3g})")


# ---------------------------------------------------------------------------
# Solve
# ---------------------------------------------------------------------------

def solve_projection(source, dest,
                     max_condition: float = MAX_CONDITION) -> ProjectiveMatrix:
    """Solve the projective matrix mapping *source* onto *dest*.

    Parameters
    ----------
    source, dest : sequence of 4 (x, y) pairs
        Ordered quadrilateral corners; ``source[i]`` maps to ``dest[i]``.
    max_condition : float
        Largest accepted condition number of the normalised system.

    Returns
    -------
    ProjectiveMatrix
        Nine coefficients with ``c22 == 1``.

    Raises
    ------
    InvalidInputError
        Wrong shape or non-finite coordinates.
    SingularSystemError
        Duplicate, collinear or near-degenerate points.
    """
    pairs = make_correspondences(source, dest)
    check_degenerate(pairs.source, pairs.dest, max_condition)

    U, b = build_system(pairs.source, pairs.dest)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", LinAlgWarning)
            lu_piv = lu_factor(U)
        coeffs = lu_solve(lu_piv, b)
    except (LinAlgError, LinAlgWarning) as exc:
        raise SingularSystemError(f"LU solve failed: {exc}") from exc

    if not np.all(np.isfinite(coeffs)):
        raise SingularSystemError("LU solve produced non-finite coefficients")

    return ProjectiveMatrix(*(float(c) for c in coeffs), 1.0)


def solve_correspondences(pairs: CorrespondenceSet,
                          max_condition: float = MAX_CONDITION) -> ProjectiveMatrix:
    return solve_projection(pairs.source, pairs.dest, max_condition)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

def project_point(mat: ProjectiveMatrix, x: float, y: float):
    """Map a single point through *mat* with homogeneous division.

    Points on the vanishing line (z == 0) map to non-finite coordinates.
    """
    u = mat.c00 * x + mat.c01 * y + mat.c02
    v = mat.c10 * x + mat.c11 * y + mat.c12
    z = mat.c20 * x + mat.c21 * y + mat.c22
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(u) / z), float(np.float64(v) / z)


def project_points(mat: ProjectiveMatrix, points: np.ndarray) -> np.ndarray:
    """Map an N x 2 array of (x, y) points through *mat*.

    Parameters
    ----------
    mat : ProjectiveMatrix
        Matrix to apply.
    points : np.ndarray
        N x 2 array of (x, y) coordinates.

    Returns
    -------
    np.ndarray
        N x 2 float64 array of (u, v) coordinates.  Rows for points on the
        vanishing line are non-finite.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    homog = np.hstack([pts, np.ones((pts.shape[0], 1))])

    transformed = homog @ mat.as_array().T
    with np.errstate(divide="ignore", invalid="ignore"):
        return transformed[:, :2] / transformed[:, 2:3]


def render_matrix(mat: ProjectiveMatrix) -> Tuple[float, ...]:
    """Lay *mat* out as a column-major 4 x 4 transform acting on the z=0 plane.

    Columns are ``[c00, c10, 0, c20]``, ``[c01, c11, 0, c21]``,
    ``[0, 0, 1, 0]`` and ``[c02, c12, 0, c22]``.
    """
    return (
        mat.c00, mat.c10, 0.0, mat.c20,
        mat.c01, mat.c11, 0.0, mat.c21,
        0.0,     0.0,     1.0, 0.0,
        mat.c02, mat.c12, 0.0, mat.c22,
    )
