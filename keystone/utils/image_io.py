"""
Image I/O helpers.

Thin wrappers around PIL and scikit-image for loading canvas images, saving
rendered screens and drawing the calibration test pattern used when no
canvas image is configured.
"""

import os
import numpy as np
from PIL import Image
from skimage.draw import disk, line


def load_image(path: str) -> np.ndarray:
    """Load an image as a uint8 RGB array.

    Parameters
    ----------
    path : str
        File path to the image.

    Returns
    -------
    np.ndarray
        H x W x 3 uint8 array.
    """
    return np.array(Image.open(path).convert("RGB"))


def save_image(img: np.ndarray, path: str) -> None:
    Image.fromarray(img).save(path)


def ensure_output_dir(name: str, base: str = "results") -> str:
    """Create and return the output subdirectory for one surface."""
    path = os.path.join(base, name)
    os.makedirs(path, exist_ok=True)
    return path


def make_test_pattern(height: int, width: int, step: int = 40) -> np.ndarray:
    """Draw a keystone test pattern: a grid, diagonals and corner markers.

    Corner markers use a distinct colour per corner in the order top-left,
    top-right, bottom-right, bottom-left so the orientation of a warped
    pattern is obvious.

    Parameters
    ----------
    height, width : int
        Size of the pattern in pixels.
    step : int
        Grid spacing in pixels.

    Returns
    -------
    np.ndarray
        height x width x 3 uint8 image.
    """
    img = np.full((height, width, 3), 32, dtype=np.uint8)

    for y in range(0, height, step):
        img[y, :] = (200, 200, 200)
    for x in range(0, width, step):
        img[:, x] = (200, 200, 200)
    img[-1, :] = (255, 255, 255)
    img[:, -1] = (255, 255, 255)

    for r0, c0, r1, c1 in ((0, 0, height - 1, width - 1),
                           (0, width - 1, height - 1, 0)):
        rr, cc = line(r0, c0, r1, c1)
        img[rr, cc] = (255, 255, 0)

    radius = max(2, min(height, width) // 20)
    corners = [(0, 0), (0, width - 1), (height - 1, width - 1), (height - 1, 0)]
    colours = [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 0, 255)]
    for centre, colour in zip(corners, colours):
        rr, cc = disk(centre, radius, shape=img.shape[:2])
        img[rr, cc] = colour

    return img
