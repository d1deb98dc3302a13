#!/usr/bin/env python3
"""Render a scene description or the built-in Cornell box.

Usage:
    python examples/render_scene.py [SCENE.json] [options]

Options:
    --width WIDTH       Image width in pixels (default: 400)
    --height HEIGHT     Image height in pixels (default: 400)
    --samples SAMPLES   Number of samples per pixel (default: 64)
    --max-depth DEPTH   Scattering events per path (default: 8)
    --rr-depth DEPTH    Bounce from which Russian roulette applies (default: off)
    --batch-size SIZE   Samples per progress update (default: 8)
    --output OUTPUT     Output file path (default: render.png)
    --tone-map METHOD   none, reinhard or exposure (default: reinhard)
    --preview           Show the result in a Matplotlib window
    --verbose           Log debug messages

Example:
    python examples/render_scene.py examples/scenes/spheres.json --samples 128
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import taichi as ti

logger = logging.getLogger("render_scene")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a JSON scene description with the lumen path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "scene",
        nargs="?",
        type=Path,
        default=None,
        help="Scene description (JSON); renders the Cornell box when omitted",
    )
    parser.add_argument("--width", type=int, default=400, help="Image width in pixels (default: 400)")
    parser.add_argument("--height", type=int, default=400, help="Image height in pixels (default: 400)")
    parser.add_argument("--samples", type=int, default=64, help="Samples per pixel (default: 64)")
    parser.add_argument("--max-depth", type=int, default=8, help="Scattering events per path (default: 8)")
    parser.add_argument(
        "--rr-depth",
        type=int,
        default=0,
        help="Bounce from which Russian roulette applies, 0 disables it (default: 0)",
    )
    parser.add_argument("--batch-size", type=int, default=8, help="Samples per progress update (default: 8)")
    parser.add_argument("--output", type=Path, default=Path("render.png"), help="Output PNG path")
    parser.add_argument(
        "--tone-map",
        choices=("none", "reinhard", "exposure"),
        default="reinhard",
        help="Tone mapping applied before export (default: reinhard)",
    )
    parser.add_argument("--preview", action="store_true", help="Show the result in a Matplotlib window")
    parser.add_argument("--verbose", action="store_true", help="Log debug messages")
    return parser.parse_args()


def render(args: argparse.Namespace) -> Path:
    """Load the scene, render it progressively and save the image."""
    # Lazy imports so that ti.init() runs before any Taichi field is created
    from lumen.camera.pinhole import setup_camera
    from lumen.core.integrator import RenderSettings
    from lumen.core.progressive import ProgressiveRenderer
    from lumen.preview.display import show_preview
    from lumen.preview.export import save_png
    from lumen.scene.cornell_box import create_cornell_box_scene
    from lumen.scene.description import load_scene

    if args.scene is None:
        scene, camera, _ = create_cornell_box_scene()
    else:
        scene, camera = load_scene(args.scene)

    settings = RenderSettings(
        width=args.width,
        height=args.height,
        samples_per_pixel=args.samples,
        max_depth=args.max_depth,
        russian_roulette_depth=args.rr_depth,
    )
    settings.validate()

    scene.build()
    setup_camera(camera, settings.aspect_ratio)
    renderer = ProgressiveRenderer(
        settings.width,
        settings.height,
        max_depth=settings.max_depth,
        russian_roulette_depth=settings.russian_roulette_depth,
    )

    start_time = time.perf_counter()
    for current, target in renderer.render_progressive(settings.samples_per_pixel, args.batch_size):
        elapsed = time.perf_counter() - start_time
        rate = current / elapsed if elapsed > 0 else 0.0
        logger.info(f"{current}/{target} samples ({rate:.1f} spp/s)")

    save_png(renderer, args.output, tone_map=args.tone_map, gamma=2.2)
    logger.info(f"Total time: {time.perf_counter() - start_time:.2f}s")

    if args.preview:
        show_preview(renderer, tone_map=args.tone_map)
    return args.output


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ti.init(arch=ti.cpu)

    from lumen.errors import LumenError

    try:
        render(args)
    except LumenError as exc:
        logger.error(f"{exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
