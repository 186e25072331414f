import os
import sys
import unittest

import numpy as np

THIS_DIR = os.path.dirname(__file__)
ROOT_DIR = os.path.dirname(THIS_DIR)
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from keystone.geometry.homography import (
    InvalidInputError,
    SingularSystemError,
    render_matrix,
    solve_projection,
)
from keystone.mapping.projection import ProjectionMapper

UNIT_SQUARE = [(0, 0), (1, 0), (1, 1), (0, 1)]
CANVAS = [(0, 0), (0, 1080), (1920, 0), (1920, 1080)]
SCREEN = [(-700, -400), (-650, 300), (600, -150), (500, 450)]


class ProjectionMapperTests(unittest.TestCase):
    def setUp(self):
        self.mapper = ProjectionMapper(CANVAS, SCREEN)

    def test_keystone_scenario(self):
        u, v = self.mapper.map_forward(0, 0)
        self.assertAlmostEqual(u, -700, delta=1e-6)
        self.assertAlmostEqual(v, -400, delta=1e-6)

        u, v = self.mapper.map_forward(1920, 1080)
        self.assertAlmostEqual(u, 500, delta=1e-6)
        self.assertAlmostEqual(v, 450, delta=1e-6)

        x, y = self.mapper.map_inverse(-700, -400)
        self.assertAlmostEqual(x, 0, delta=1e-6)
        self.assertAlmostEqual(y, 0, delta=1e-6)

    def test_every_corner_maps_both_ways(self):
        for (x, y), (u, v) in zip(CANVAS, SCREEN):
            np.testing.assert_allclose(self.mapper.map_forward(x, y), (u, v), atol=1e-6)
            np.testing.assert_allclose(self.mapper.map_inverse(u, v), (x, y), atol=1e-6)

    def test_round_trip_is_close_to_identity(self):
        ys, xs = np.mgrid[0:1081:120, 0:1921:160]
        probe = np.column_stack([xs.ravel(), ys.ravel()]).astype(float)
        self.assertLess(self.mapper.round_trip_error(probe), 1e-6 * 1920)

        back = self.mapper.map_inverse(*self.mapper.map_forward(333.0, 777.0))
        np.testing.assert_allclose(back, (333.0, 777.0), rtol=1e-6)

    def test_inverse_is_independent_solve_of_swapped_points(self):
        self.assertEqual(self.mapper.forward, solve_projection(CANVAS, SCREEN))
        self.assertEqual(self.mapper.inverse, solve_projection(SCREEN, CANVAS))

    def test_render_matrix_exports_forward(self):
        self.assertEqual(self.mapper.render_matrix(), render_matrix(self.mapper.forward))
        self.assertEqual(len(self.mapper.render_matrix()), 16)

    def test_vectorised_mapping(self):
        pts = np.array(CANVAS, dtype=float)
        np.testing.assert_allclose(self.mapper.map_forward_many(pts), SCREEN, atol=1e-6)
        np.testing.assert_allclose(self.mapper.map_inverse_many(SCREEN), pts, atol=1e-6)

    def test_identity_mapper(self):
        mapper = ProjectionMapper(UNIT_SQUARE, UNIT_SQUARE)
        np.testing.assert_allclose(mapper.map_forward(7.5, -2.0), (7.5, -2.0), atol=1e-9)
        np.testing.assert_allclose(mapper.map_inverse(7.5, -2.0), (7.5, -2.0), atol=1e-9)


class MapperStateTests(unittest.TestCase):
    def test_fresh_after_construction(self):
        mapper = ProjectionMapper(UNIT_SQUARE, UNIT_SQUARE)
        self.assertFalse(mapper.stale)

    def test_setter_marks_stale_until_update(self):
        mapper = ProjectionMapper(UNIT_SQUARE, UNIT_SQUARE)
        forward = mapper.forward

        mapper.set_out_point(2, (2, 2))
        self.assertTrue(mapper.stale)
        self.assertEqual(mapper.out_pts[2], (2.0, 2.0))
        self.assertEqual(mapper.forward, forward)

        mapper.update()
        self.assertFalse(mapper.stale)
        np.testing.assert_allclose(mapper.map_forward(1, 1), (2, 2), atol=1e-9)
        np.testing.assert_allclose(mapper.map_inverse(2, 2), (1, 1), atol=1e-9)

    def test_auto_update_recomputes_on_change(self):
        mapper = ProjectionMapper(UNIT_SQUARE, UNIT_SQUARE, auto_update=True)
        mapper.set_in_point(0, (-1, -1))
        self.assertFalse(mapper.stale)
        np.testing.assert_allclose(mapper.map_forward(-1, -1), (0, 0), atol=1e-9)

    def test_set_points_replaces_both_quads(self):
        mapper = ProjectionMapper(UNIT_SQUARE, UNIT_SQUARE)
        mapper.set_points(CANVAS, SCREEN)
        self.assertTrue(mapper.stale)
        mapper.update()
        np.testing.assert_allclose(mapper.map_forward(1920, 0), (600, -150), atol=1e-6)

    def test_failed_update_keeps_previous_matrices(self):
        mapper = ProjectionMapper(UNIT_SQUARE, UNIT_SQUARE)
        forward, inverse = mapper.forward, mapper.inverse

        mapper.set_in_point(2, (2, 0))
        with self.assertRaises(SingularSystemError):
            mapper.update()
        self.assertTrue(mapper.stale)
        self.assertEqual(mapper.forward, forward)
        self.assertEqual(mapper.inverse, inverse)

    def test_degenerate_construction_fails(self):
        with self.assertRaises(SingularSystemError):
            ProjectionMapper([(0, 0), (10, 0), (20, 0), (5, 5)], UNIT_SQUARE)

    def test_bad_point_rejected_without_changing_state(self):
        mapper = ProjectionMapper(UNIT_SQUARE, UNIT_SQUARE)
        with self.assertRaises(InvalidInputError):
            mapper.set_out_point(1, (float("inf"), 0))
        self.assertEqual(mapper.out_pts[1], (1.0, 0.0))
        self.assertFalse(mapper.stale)

    def test_corner_index_out_of_range(self):
        mapper = ProjectionMapper(UNIT_SQUARE, UNIT_SQUARE)
        for index in (4, -1):
            with self.assertRaises(InvalidInputError):
                mapper.set_in_point(index, (2, 2))
            with self.assertRaises(InvalidInputError):
                mapper.set_out_point(index, (2, 2))
        self.assertEqual(list(mapper.in_pts), [tuple(map(float, p)) for p in UNIT_SQUARE])
        self.assertFalse(mapper.stale)

    def test_round_trip_error_of_no_points(self):
        mapper = ProjectionMapper(UNIT_SQUARE, UNIT_SQUARE)
        self.assertEqual(mapper.round_trip_error([]), 0.0)
        self.assertEqual(mapper.round_trip_error(np.empty((0, 2))), 0.0)

    def test_mappers_are_independent(self):
        a = ProjectionMapper(UNIT_SQUARE, UNIT_SQUARE)
        b = ProjectionMapper(UNIT_SQUARE, UNIT_SQUARE)
        a.set_out_point(0, (0.2, 0.1))
        a.update()
        self.assertNotEqual(a.forward, b.forward)
        self.assertFalse(b.stale)


if __name__ == "__main__":
    unittest.main()
