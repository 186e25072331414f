"""
Keystone rendering via inverse warping.

Every pixel of the output ("screen") raster is converted to screen
coordinates, mapped back into the canvas with the mapper's inverse matrix
and sampled from the canvas image with bilinear interpolation.  Pixels that
land outside the canvas keep the background value, which leaves the
quadrilateral image on an otherwise blank screen.
"""

import numpy as np


# Slack (canvas pixels) for inverse-mapped coordinates that land a rounding
# error outside the canvas edge.
EDGE_TOLERANCE = 1e-6


def screen_grid(output_shape: tuple, origin: str = "corner") -> np.ndarray:
    """Screen coordinates of every pixel in a raster.

    Parameters
    ----------
    output_shape : tuple of (int, int)
        (height, width) of the screen raster.
    origin : str
        ``"corner"`` for pixel coordinates with (0, 0) top-left, or
        ``"center"`` for coordinates with (0, 0) at the raster centre.

    Returns
    -------
    np.ndarray
        (height * width) x 2 array of (x, y) screen coordinates in row-major
        pixel order.
    """
    h_out, w_out = output_shape
    ys, xs = np.mgrid[0:h_out, 0:w_out].astype(np.float64)

    if origin == "center":
        xs -= w_out / 2.0
        ys -= h_out / 2.0
    elif origin != "corner":
        raise ValueError(f"Unknown origin {origin!r} (use 'corner' or 'center')")

    return np.column_stack([xs.ravel(), ys.ravel()])


def bilinear_sample(img: np.ndarray, x_in: np.ndarray, y_in: np.ndarray) -> np.ndarray:
    """Sample *img* at fractional coordinates inside [0, W-1] x [0, H-1].

    Neighbours past the last row or column are clamped to it, so samples on
    the far edges read the edge pixels.
    """
    h, w = img.shape[:2]
    x0 = np.floor(x_in).astype(int)
    y0 = np.floor(y_in).astype(int)
    x1 = np.minimum(x0 + 1, w - 1)
    y1 = np.minimum(y0 + 1, h - 1)
    dx = (x_in - x0)[:, np.newaxis]
    dy = (y_in - y0)[:, np.newaxis]

    pixels = img.reshape(h, w, -1).astype(np.float64)
    return (
        pixels[y0, x0] * (1 - dx) * (1 - dy) +
        pixels[y0, x1] *      dx  * (1 - dy) +
        pixels[y1, x0] * (1 - dx) *      dy  +
        pixels[y1, x1] *      dx  *      dy
    )


def warp_to_quad(img: np.ndarray, mapper, output_shape: tuple,
                 origin: str = "corner", background=0) -> np.ndarray:
    """Render the canvas image *img* skewed onto the mapper's screen quad.

    Parameters
    ----------
    img : np.ndarray
        H x W or H x W x C canvas image.  Canvas coordinates are pixel
        coordinates of this image.
    mapper : ProjectionMapper
        Mapper whose ``in_pts`` live in canvas pixels and ``out_pts`` in
        screen coordinates.
    output_shape : tuple of (int, int)
        (height, width) of the screen raster.
    origin : str
        Screen coordinate convention, see :func:`screen_grid`.
    background : scalar
        Value for screen pixels not covered by the canvas.

    Returns
    -------
    np.ndarray
        Screen raster with the same dtype and channel layout as *img*.
    """
    h_out, w_out = output_shape
    channels = img.shape[2:]
    warped = np.full((h_out * w_out,) + channels, background, dtype=img.dtype)

    canvas_pts = mapper.map_inverse_many(screen_grid(output_shape, origin))
    x_in, y_in = canvas_pts[:, 0], canvas_pts[:, 1]

    x_max, y_max = img.shape[1] - 1, img.shape[0] - 1
    with np.errstate(invalid="ignore"):
        inside = (
            np.isfinite(x_in) & np.isfinite(y_in) &
            (x_in >= -EDGE_TOLERANCE) & (x_in <= x_max + EDGE_TOLERANCE) &
            (y_in >= -EDGE_TOLERANCE) & (y_in <= y_max + EDGE_TOLERANCE)
        )

    # Rounding can push edge pixels just outside the canvas
    x_in = np.clip(x_in[inside], 0, x_max)
    y_in = np.clip(y_in[inside], 0, y_max)
    samples = bilinear_sample(img, x_in, y_in)
    if np.issubdtype(img.dtype, np.integer):
        info = np.iinfo(img.dtype)
        samples = np.clip(np.rint(samples), info.min, info.max)
    warped[inside] = samples.reshape((-1,) + channels).astype(img.dtype)

    return warped.reshape((h_out, w_out) + channels)


def quad_bounds(mapper, canvas_shape: tuple):
    """Screen bounding box of the four canvas corners after forward mapping.

    Parameters
    ----------
    mapper : ProjectionMapper
        Mapper to project with.
    canvas_shape : tuple
        Shape of the canvas image; only (height, width) are used.

    Returns
    -------
    tuple of float
        (x_min, y_min, x_max, y_max) in screen coordinates.
    """
    h, w = canvas_shape[:2]
    corners = np.array([
        [0, 0],
        [w, 0],
        [w, h],
        [0, h],
    ], dtype=float)

    warped_corners = mapper.map_forward_many(corners)
    x_min, y_min = np.min(warped_corners, axis=0)
    x_max, y_max = np.max(warped_corners, axis=0)
    return float(x_min), float(y_min), float(x_max), float(y_max)
