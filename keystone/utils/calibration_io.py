"""
Calibration persistence.

A calibration file stores the canvas corners and the screen corners of one
surface as YAML::

    in_pts:  [[0, 0], [0, 1080], [1920, 0], [1920, 1080]]
    out_pts: [[-700, -400], [-650, 300], [600, -150], [500, 450]]
"""

import os

import yaml

from keystone.geometry.homography import InvalidInputError, as_quad


def save_calibration(path: str, in_pts, out_pts) -> None:
    """Write both point sets to *path*, creating parent directories."""
    data = {
        "in_pts": [[float(x), float(y)] for x, y in as_quad(in_pts)],
        "out_pts": [[float(x), float(y)] for x, y in as_quad(out_pts)],
    }
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w") as fh:
        yaml.safe_dump(data, fh, default_flow_style=None, sort_keys=False)


def load_calibration(path: str):
    """Read a calibration file.

    Returns
    -------
    in_pts, out_pts : Quad
        Validated canvas and screen corners.

    Raises
    ------
    InvalidInputError
        If the file is not a mapping with ``in_pts`` and ``out_pts`` of four
        points each.
    """
    with open(path, "r") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise InvalidInputError(f"{path}: not valid YAML ({exc})") from exc

    if not isinstance(data, dict):
        raise InvalidInputError(f"{path}: expected a mapping with in_pts/out_pts")

    missing = [key for key in ("in_pts", "out_pts") if key not in data]
    if missing:
        raise InvalidInputError(f"{path}: missing {', '.join(missing)}")

    return as_quad(data["in_pts"]), as_quad(data["out_pts"])
