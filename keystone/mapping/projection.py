"""
Forward / inverse projective mapping between a canvas and a screen quad.

The mapper holds two point sets (canvas corners ``in_pts`` and screen corners
``out_pts``) and two matrices solved from them.  The inverse matrix is solved
independently from the swapped correspondences rather than by inverting the
forward matrix, so ``map_inverse(map_forward(p))`` is only approximately
``p``; ``round_trip_error`` reports how far off it is.

Points are replaced through the setters, which mark the mapper stale.  The
matrices are recomputed only by ``update()`` (or immediately when the mapper
was built with ``auto_update=True``), since every refresh costs two 8 x 8
solves.
"""

import numpy as np

from keystone.geometry.homography import (
    MAX_CONDITION,
    CorrespondenceSet,
    InvalidInputError,
    as_quad,
    project_point,
    project_points,
    render_matrix,
    solve_correspondences,
)


class ProjectionMapper:
    """Keystone mapping for one projected surface.

    Parameters
    ----------
    in_pts : sequence of 4 (x, y) pairs
        Source ("canvas") corners.
    out_pts : sequence of 4 (x, y) pairs
        Destination ("screen") corners; ``in_pts[i]`` maps to ``out_pts[i]``.
    max_condition : float
        Conditioning threshold passed to the solver.
    auto_update : bool
        Recompute both matrices on every point change instead of waiting for
        an explicit ``update()``.

    Raises
    ------
    SingularSystemError, InvalidInputError
        If the initial point sets cannot be solved.
    """

    def __init__(self, in_pts, out_pts, max_condition: float = MAX_CONDITION,
                 auto_update: bool = False):
        self.max_condition = max_condition
        self.auto_update = auto_update
        self.in_pts = as_quad(in_pts)
        self.out_pts = as_quad(out_pts)
        self.forward = None
        self.inverse = None
        self._stale = True
        self.update()

    def __repr__(self):
        state = "stale" if self._stale else "consistent"
        return (f"ProjectionMapper(in_pts={list(self.in_pts)}, "
                f"out_pts={list(self.out_pts)}, {state})")

    @property
    def correspondences(self) -> CorrespondenceSet:
        return CorrespondenceSet(self.in_pts, self.out_pts)

    @property
    def stale(self) -> bool:
        """True when a point changed since the last successful update()."""
        return self._stale

    # -- refresh --------------------------------------------------------------

    def update(self) -> None:
        """Re-solve both matrices from the current point sets.

        Both matrices are replaced together.  If either solve fails the
        previous matrices are kept and the error propagates.
        """
        pairs = self.correspondences
        forward = solve_correspondences(pairs, self.max_condition)
        inverse = solve_correspondences(pairs.swapped(), self.max_condition)
        self.forward, self.inverse = forward, inverse
        self._stale = False

    def _changed(self) -> None:
        self._stale = True
        if self.auto_update:
            self.update()

    # -- mutation -------------------------------------------------------------

    @staticmethod
    def _replaced(quad, index: int, point):
        if not 0 <= index < 4:
            raise InvalidInputError(f"Corner index must be 0-3, got {index}")
        pts = list(quad)
        pts[index] = point
        return as_quad(pts)

    def set_in_point(self, index: int, point) -> None:
        self.in_pts = self._replaced(self.in_pts, index, point)
        self._changed()

    def set_out_point(self, index: int, point) -> None:
        self.out_pts = self._replaced(self.out_pts, index, point)
        self._changed()

    def set_points(self, in_pts=None, out_pts=None) -> None:
        """Replace one or both quads at once."""
        if in_pts is not None:
            self.in_pts = as_quad(in_pts)
        if out_pts is not None:
            self.out_pts = as_quad(out_pts)
        self._changed()

    # -- mapping --------------------------------------------------------------

    def map_forward(self, x: float, y: float):
        """Canvas (x, y) -> screen (u, v)."""
        return project_point(self.forward, x, y)

    def map_inverse(self, u: float, v: float):
        """Screen (u, v) -> canvas (x, y)."""
        return project_point(self.inverse, u, v)

    def map_forward_many(self, points) -> np.ndarray:
        return project_points(self.forward, points)

    def map_inverse_many(self, points) -> np.ndarray:
        return project_points(self.inverse, points)

    def render_matrix(self):
        """Forward matrix as 16 column-major values for a 4 x 4 transform."""
        return render_matrix(self.forward)

    def round_trip_error(self, points) -> float:
        """Largest distance between *points* and their forward/inverse image.

        Parameters
        ----------
        points : array-like
            N x 2 canvas coordinates.

        Returns
        -------
        float
            Maximum Euclidean error in canvas units, 0.0 for no points.
        """
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if pts.shape[0] == 0:
            return 0.0
        back = self.map_inverse_many(self.map_forward_many(pts))
        return float(np.max(np.sqrt(np.sum((back - pts) ** 2, axis=1))))
