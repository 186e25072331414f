import os
import shutil
import sys
import tempfile
import unittest

THIS_DIR = os.path.dirname(__file__)
ROOT_DIR = os.path.dirname(THIS_DIR)
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from keystone.geometry.homography import InvalidInputError
from keystone.mapping.projection import ProjectionMapper
from keystone.utils.calibration_io import load_calibration, save_calibration

CANVAS = [(0, 0), (0, 1080), (1920, 0), (1920, 1080)]
SCREEN = [(-700, -400), (-650, 300), (600, -150), (500, 450)]


class CalibrationIOTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp(prefix="keystone_calib_")

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def write(self, name, text):
        path = os.path.join(self.tmp, name)
        with open(path, "w") as fh:
            fh.write(text)
        return path

    def test_save_then_load(self):
        path = os.path.join(self.tmp, "nested", "wall.yaml")
        save_calibration(path, CANVAS, SCREEN)
        self.assertTrue(os.path.isfile(path))

        in_pts, out_pts = load_calibration(path)
        self.assertEqual([tuple(p) for p in in_pts], [tuple(map(float, p)) for p in CANVAS])
        self.assertEqual([tuple(p) for p in out_pts], [tuple(map(float, p)) for p in SCREEN])

    def test_loaded_points_feed_a_mapper(self):
        path = os.path.join(self.tmp, "wall.yaml")
        save_calibration(path, CANVAS, SCREEN)
        mapper = ProjectionMapper(*load_calibration(path))
        u, v = mapper.map_forward(1920, 1080)
        self.assertAlmostEqual(u, 500, delta=1e-6)
        self.assertAlmostEqual(v, 450, delta=1e-6)

    def test_missing_key(self):
        path = self.write("partial.yaml", "in_pts: [[0, 0], [1, 0], [1, 1], [0, 1]]\n")
        with self.assertRaises(InvalidInputError):
            load_calibration(path)

    def test_wrong_point_count(self):
        path = self.write("short.yaml",
                          "in_pts: [[0, 0], [1, 0], [1, 1]]\n"
                          "out_pts: [[0, 0], [1, 0], [1, 1]]\n")
        with self.assertRaises(InvalidInputError):
            load_calibration(path)

    def test_not_a_mapping(self):
        path = self.write("list.yaml", "- 1\n- 2\n")
        with self.assertRaises(InvalidInputError):
            load_calibration(path)

    def test_invalid_yaml(self):
        path = self.write("broken.yaml", "in_pts: [[0, 0\n")
        with self.assertRaises(InvalidInputError):
            load_calibration(path)


if __name__ == "__main__":
    unittest.main()
