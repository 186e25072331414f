"""
Visualization utilities for keystone calibration.

All functions save figures to disk rather than displaying them interactively,
making the module suitable for headless execution.
"""

import os
import numpy as np
import matplotlib
matplotlib.use("Agg")          # non-interactive backend
import matplotlib.pyplot as plt


def _extent(shape: tuple, origin: str):
    """imshow extent so that pixels line up with screen coordinates."""
    h, w = shape[:2]
    if origin == "center":
        return (-w / 2.0, w / 2.0, h / 2.0, -h / 2.0)
    return (0, w, h, 0)


def save_quad_overlay(screen: np.ndarray, out_pts, name: str, out_dir: str,
                      origin: str = "corner") -> None:
    """Save the screen raster with the calibrated quad and numbered corners."""
    quad = np.asarray(out_pts, dtype=float)

    fig, ax = plt.subplots(figsize=(12, 8))
    ax.imshow(screen, extent=_extent(screen.shape, origin))

    # Corners are stored in canvas order, not perimeter order; draw the
    # outline through the convex ordering around the centroid.
    centre = quad.mean(axis=0)
    order = np.argsort(np.arctan2(quad[:, 1] - centre[1], quad[:, 0] - centre[0]))
    outline = np.vstack([quad[order], quad[order[:1]]])
    ax.plot(outline[:, 0], outline[:, 1], "g-", linewidth=1.5)

    kw = dict(color="yellow", fontsize=10, weight="bold",
              bbox=dict(boxstyle="round,pad=0.3", facecolor="black", alpha=0.5))
    for idx, (x, y) in enumerate(quad):
        ax.plot(x, y, "ro", markersize=8)
        ax.text(x + 10, y - 10, str(idx), **kw)

    ax.set_title(f"{name} – screen quad")
    ax.axis("off")
    plt.tight_layout()
    plt.savefig(os.path.join(out_dir, name, "quad_overlay.jpg"), dpi=150, bbox_inches="tight")
    plt.close()


def save_side_by_side(canvas: np.ndarray, screen: np.ndarray, name: str,
                      out_dir: str, round_trip_error: float) -> None:
    """Save the canvas next to its keystone-corrected rendering."""
    fig, axes = plt.subplots(1, 2, figsize=(16, 6))

    axes[0].imshow(canvas); axes[0].set_title(f"{name} – canvas"); axes[0].axis("off")
    axes[1].imshow(screen)
    axes[1].set_title(f"Warped screen  |  round-trip error {round_trip_error:.2e}")
    axes[1].axis("off")

    plt.tight_layout()
    plt.savefig(os.path.join(out_dir, name, "side_by_side.jpg"), dpi=150, bbox_inches="tight")
    plt.close()
