#!/usr/bin/env python3
"""Render one of the preset scenes to an image file.

Usage:
    python examples/render_scene.py [options]

Options:
    --scene NAME        cornell, spheres or perlin (default: cornell)
    --height HEIGHT     Image height in pixels (default: 400)
    --samples SAMPLES   Samples per pixel (default: 100)
    --max-depth DEPTH   Maximum path segments per sample (default: 12)
    --threads N         Worker threads (default: all cores)
    --partition NAME    interleaved or contiguous (default: interleaved)
    --seed SEED         Random seed (default: 0)
    --output OUTPUT     Output file path (default: <scene>.png)
    --verbose           Log debug messages

Example:
    python examples/render_scene.py --height 200 --samples 64 --threads 8
"""

import argparse
import logging
import os
import sys

logger = logging.getLogger("render")

SCENE_ASPECT = {"cornell": 1.0, "spheres": 16.0 / 9.0, "perlin": 16.0 / 9.0}


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a preset scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--scene", choices=sorted(SCENE_ASPECT), default="cornell", help="Preset scene")
    parser.add_argument("--height", type=int, default=400, help="Image height in pixels (default: 400)")
    parser.add_argument("--samples", type=int, default=100, help="Samples per pixel (default: 100)")
    parser.add_argument("--max-depth", type=int, default=12, help="Maximum path segments (default: 12)")
    parser.add_argument("--threads", type=int, default=os.cpu_count() or 1, help="Worker threads")
    parser.add_argument(
        "--partition", choices=["interleaved", "contiguous"], default="interleaved", help="Row partition"
    )
    parser.add_argument("--seed", type=int, default=0, help="Random seed (default: 0)")
    parser.add_argument("--output", type=str, default=None, help="Output file path")
    parser.add_argument("--verbose", action="store_true", help="Log debug messages")
    return parser.parse_args()


def render_preset(args: argparse.Namespace) -> str:
    """Build the chosen scene, render it and save the image.

    Returns:
        The path the image was written to.
    """
    # Modules declaring fields are imported after init_runtime
    from pathtracer.config import RenderConfig
    from pathtracer.core.scheduler import Renderer
    from pathtracer.scene.presets import (
        create_cornell_box_scene,
        create_perlin_spheres_scene,
        create_sphere_field_scene,
    )

    if args.scene == "cornell":
        _, camera = create_cornell_box_scene()
    elif args.scene == "spheres":
        _, camera = create_sphere_field_scene(seed=args.seed)
    else:
        _, camera = create_perlin_spheres_scene()

    config = RenderConfig(
        image_height=args.height,
        samples_per_pixel=args.samples,
        aspect_ratio=SCENE_ASPECT[args.scene],
        thread_count=args.threads,
        max_depth=args.max_depth,
        partition=args.partition,
    )
    framebuffer = Renderer(config, camera).render()

    output = args.output or f"{args.scene}.png"
    framebuffer.save(output)
    return output


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from pathtracer.runtime import init_runtime

    try:
        init_runtime(thread_count=args.threads, seed=args.seed)
        output = render_preset(args)
    except (ValueError, RuntimeError) as e:
        logger.error("Render failed: %s", e)
        return 1

    logger.info("Wrote %s", os.path.abspath(output))
    return 0


if __name__ == "__main__":
    sys.exit(main())
