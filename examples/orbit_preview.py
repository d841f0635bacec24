#!/usr/bin/env python3
"""Orbit the camera around the default scene and log how the image refines.

This script drives a ProgressiveRenderer headlessly the way an interactive
viewer would: it renders a few passes from one viewpoint, moves the camera
along its orbit, and repeats. Every move starts a new generation, so the
accumulated image is thrown away and tiles still in flight are discarded.

Usage:
    python -m examples.orbit_preview [options]

Options:
    --width WIDTH         Image width in pixels (default: 160)
    --height HEIGHT       Image height in pixels (default: 120)
    --workers N           Worker processes, 0 renders inline (default: CPU count)
    --samples N           Samples per pixel per pass (default: 1)
    --bounces N           Maximum path length (default: 4)
    --passes N            Passes to render per viewpoint (default: 4)
    --steps N             Number of orbit steps (default: 8)
    --log-level LEVEL     Logging level (default: INFO)

Example:
    python -m examples.orbit_preview --workers 4 --steps 12 --passes 8
"""

import argparse
import logging
import sys
import time

from spherepath.config import RenderConfig
from spherepath.core.accumulation import unpack_rgba
from spherepath.core.progressive import ProgressiveRenderer
from spherepath.errors import InvalidConfiguration
from spherepath.logging_config import setup_logging
from spherepath.scene.presets import create_default_camera, create_default_scene

logger = logging.getLogger("spherepath.examples.orbit_preview")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Orbit the camera around the default scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=160, help="Image width (default: 160)")
    parser.add_argument("--height", type=int, default=120, help="Image height (default: 120)")
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker processes, 0 renders inline (default: CPU count)",
    )
    parser.add_argument(
        "--samples", type=int, default=1, help="Samples per pixel per pass (default: 1)"
    )
    parser.add_argument("--bounces", type=int, default=4, help="Maximum path length (default: 4)")
    parser.add_argument(
        "--passes", type=int, default=4, help="Passes to render per viewpoint (default: 4)"
    )
    parser.add_argument("--steps", type=int, default=8, help="Number of orbit steps (default: 8)")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser.parse_args()


def mean_brightness(renderer: ProgressiveRenderer) -> float:
    """Average of the displayed RGB channels over the frame, on the 0..255 scale."""
    rgba = renderer.to_rgba8()
    return float(rgba[..., :3].mean())


def orbit_preview(config: RenderConfig, passes: int, steps: int) -> None:
    """Render passes at each of steps evenly spaced azimuths."""
    camera = create_default_camera()
    with ProgressiveRenderer(config, camera=camera, scene=create_default_scene()) as renderer:
        elevation, radius = camera.elevation, camera.radius

        for step in range(steps):
            azimuth = camera.azimuth + 360.0 / steps
            renderer.camera_orbit(elevation, azimuth, radius)

            start = time.perf_counter()
            renderer.render_passes(passes)
            elapsed = time.perf_counter() - start

            center = renderer.display_buffer[
                (renderer.height // 2) * renderer.width + renderer.width // 2
            ]
            logger.info(
                "Step %d/%d: azimuth %.1f, %d passes in %.2fs, mean %.1f, center rgba %s",
                step + 1,
                steps,
                azimuth % 360.0,
                renderer.passes_completed,
                elapsed,
                mean_brightness(renderer),
                unpack_rgba(center),
            )

        stats = renderer.stats()
        logger.info(
            "Done: generation %d, %d total passes, %d stale tiles dropped",
            stats["generation"],
            stats["total_passes"],
            stats["stale_results"],
        )


def main() -> int:
    """Main entry point."""
    args = parse_args()
    setup_logging(args.log_level)

    try:
        overrides = {
            "width": args.width,
            "height": args.height,
            "samples_per_frame": args.samples,
            "max_bounces": args.bounces,
        }
        if args.workers is not None:
            overrides["worker_count"] = args.workers
        config = RenderConfig.from_env(**overrides)
        orbit_preview(config, passes=args.passes, steps=args.steps)
        return 0
    except InvalidConfiguration as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
