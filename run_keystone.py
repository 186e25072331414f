#!/usr/bin/env python3
"""
run_keystone.py – Projector Keystone Correction Runner

Loads configuration from configs/default.yaml (or a user-specified file),
solves the forward and inverse projective matrices for every surface defined
in the config, renders each canvas onto its screen quad and writes the
results to the results directory.

Usage
-----
    python run_keystone.py
    python run_keystone.py --config configs/default.yaml
    python run_keystone.py --surfaces projector
    python run_keystone.py --no-render
    python run_keystone.py --save-calibration
"""

import argparse
import os
import sys
import time

import numpy as np
import yaml

# Ensure the project root is on the Python path when invoked directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from keystone.geometry.homography import (
    MAX_CONDITION,
    InvalidInputError,
    SingularSystemError,
    condition_number,
)
from keystone.mapping.projection import ProjectionMapper
from keystone.rendering.warp import quad_bounds, warp_to_quad
from keystone.utils.calibration_io import load_calibration, save_calibration
from keystone.utils.image_io import (
    ensure_output_dir,
    load_image,
    make_test_pattern,
    save_image,
)
from keystone.utils.visualization import save_quad_overlay, save_side_by_side


# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────

def load_config(path: str) -> dict:
    with open(path, "r") as fh:
        return yaml.safe_load(fh) or {}


def banner(text: str) -> None:
    width = 60
    print("\n" + "─" * width)
    print(f"  {text}")
    print("─" * width)


def format_matrix(mat) -> str:
    rows = np.asarray(mat, dtype=float).reshape(3, 3)
    return "\n".join("      [" + "  ".join(f"{c:>14.6g}" for c in row) + "]"
                     for row in rows)


def surface_points(surface_cfg: dict):
    """Return (in_pts, out_pts) from a calibration file or inline config."""
    if "calibration" in surface_cfg:
        return load_calibration(surface_cfg["calibration"])
    return surface_cfg["in_pts"], surface_cfg["out_pts"]


def surface_canvas(surface_cfg: dict) -> np.ndarray:
    if "image" in surface_cfg:
        return load_image(surface_cfg["image"])
    width, height = surface_cfg.get("canvas_size", [640, 480])
    return make_test_pattern(height, width, step=surface_cfg.get("pattern_step", 40))


# ──────────────────────────────────────────────────────────────────────────────
# Per-surface run
# ──────────────────────────────────────────────────────────────────────────────

def run_surface(surface_cfg: dict, cfg: dict, results_dir: str,
                render: bool, save_calib: bool) -> dict:
    """Solve, report and render a single surface and return summary metrics."""
    name = surface_cfg["name"]
    banner(f"Surface: {name}")

    metrics = {
        "surface": name,
        "status": "ok",
        "condition": None,
        "round_trip": None,
        "bounds": None,
    }

    # ── 1. Solve forward / inverse matrices ──────────────────────────────────
    print("  Stage 1 – Solving projective matrices")
    max_cond = cfg.get("solver", {}).get("max_condition", MAX_CONDITION)
    try:
        in_pts, out_pts = surface_points(surface_cfg)
        mapper = ProjectionMapper(in_pts, out_pts, max_condition=float(max_cond))
    except SingularSystemError as exc:
        print(f"  [WARN] {name} skipped – {exc}")
        metrics["status"] = "singular"
        return metrics
    except (InvalidInputError, KeyError) as exc:
        print(f"  [WARN] {name} skipped – invalid points: {exc}")
        metrics["status"] = "invalid"
        return metrics

    print("    Forward (canvas → screen):")
    print(format_matrix(mapper.forward))
    print("    Inverse (screen → canvas):")
    print(format_matrix(mapper.inverse))
    print("    Render matrix (column-major 4×4):")
    print("      " + ", ".join(f"{v:.6g}" for v in mapper.render_matrix()))

    out_dir = ensure_output_dir(name, base=results_dir)
    if save_calib:
        calib_path = os.path.join(out_dir, "calibration.yaml")
        save_calibration(calib_path, mapper.in_pts, mapper.out_pts)
        print(f"    Saved calibration → {calib_path}")

    # ── 2. Diagnostics ───────────────────────────────────────────────────────
    print("  Stage 2 – Diagnostics")
    canvas = surface_canvas(surface_cfg)
    h, w = canvas.shape[:2]
    ys, xs = np.mgrid[0:h:max(1, h // 16), 0:w:max(1, w // 16)]
    probe = np.column_stack([xs.ravel(), ys.ravel()]).astype(float)
    metrics["condition"] = condition_number(mapper.in_pts, mapper.out_pts)
    metrics["round_trip"] = mapper.round_trip_error(probe)
    metrics["bounds"] = quad_bounds(mapper, canvas.shape)
    x_min, y_min, x_max, y_max = metrics["bounds"]
    print(f"    Condition number: {metrics['condition']:.3g} (normalised system)")
    print(f"    Round-trip error: {metrics['round_trip']:.3e} px "
          f"over {probe.shape[0]} probe points")
    print(f"    Screen bounds   : x [{x_min:.1f}, {x_max:.1f}]  "
          f"y [{y_min:.1f}, {y_max:.1f}]")

    # ── 3. Render ────────────────────────────────────────────────────────────
    if render:
        print("  Stage 3 – Rendering canvas onto screen quad")
        r_cfg = cfg.get("render", {})
        origin = r_cfg.get("origin", "corner")
        screen_w, screen_h = r_cfg.get("screen_size", [w, h])
        screen = warp_to_quad(canvas, mapper, (screen_h, screen_w), origin=origin)

        save_image(screen, os.path.join(out_dir, "screen.png"))
        save_quad_overlay(screen, mapper.out_pts, name, results_dir, origin=origin)
        save_side_by_side(canvas, screen, name, results_dir, metrics["round_trip"])
        print(f"  Saved screen → {os.path.join(out_dir, 'screen.png')}")

    return metrics


# ──────────────────────────────────────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────────────────────────────────────

def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Projector keystone correction via four-point homography"
    )
    p.add_argument(
        "--config", default="configs/default.yaml",
        help="Path to YAML configuration file (default: configs/default.yaml)",
    )
    p.add_argument(
        "--surfaces", nargs="*", default=None,
        help="Subset of surface names to process (default: all surfaces in config)",
    )
    p.add_argument(
        "--no-render", action="store_true",
        help="Only solve and report the matrices, skip image rendering",
    )
    p.add_argument(
        "--save-calibration", action="store_true",
        help="Write each surface's point sets to <results>/<name>/calibration.yaml",
    )
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    # Load configuration
    if not os.path.exists(args.config):
        print(f"[ERROR] Config file not found: {args.config}")
        sys.exit(1)
    cfg = load_config(args.config)

    results_dir = cfg.get("results_dir", "results")
    surfaces = cfg.get("surfaces", [])

    # Optionally restrict to a subset of surfaces
    if args.surfaces:
        surfaces = [s for s in surfaces if s["name"] in args.surfaces]
        if not surfaces:
            print(f"[ERROR] No matching surfaces found for: {args.surfaces}")
            sys.exit(1)

    # Validate that referenced files exist
    for sc in surfaces:
        for key in ("image", "calibration"):
            if key in sc and not os.path.exists(sc[key]):
                print(f"[ERROR] File not found: {sc[key]}")
                sys.exit(1)

    render = not args.no_render

    banner("Projector Keystone Correction")
    print(f"  Config  : {args.config}")
    print(f"  Surfaces: {[s['name'] for s in surfaces]}")
    print(f"  Render  : {'enabled' if render else 'disabled'}")
    print(f"  Output  : {results_dir}/")

    t0 = time.time()
    all_metrics = []

    for sc in surfaces:
        metrics = run_surface(sc, cfg, results_dir, render, args.save_calibration)
        all_metrics.append(metrics)

    # ── Summary table ──────────────────────────────────────────────────────
    banner("Results Summary")
    header = f"{'Surface':<14} {'Status':>9} {'Condition':>11} {'Round trip':>12} {'Screen bounds':>36}"
    print(header)
    print("─" * len(header))
    for m in all_metrics:
        cond = f"{m['condition']:.3g}" if m["condition"] is not None else "–"
        rt = f"{m['round_trip']:.2e}" if m["round_trip"] is not None else "–"
        if m["bounds"] is not None:
            bounds = "({:.0f}, {:.0f}) – ({:.0f}, {:.0f})".format(*m["bounds"])
        else:
            bounds = "–"
        print(f"{m['surface']:<14} {m['status']:>9} {cond:>11} {rt:>12} {bounds:>36}")

    elapsed = time.time() - t0
    print(f"\nRun complete in {elapsed:.1f}s")
    print(f"Results saved to: {os.path.abspath(results_dir)}/")

    return all_metrics


if __name__ == "__main__":
    main()
