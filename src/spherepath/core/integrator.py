"""Path tracing integrator for Monte Carlo light transport over sphere scenes.

This module implements the per-tile rendering kernel. Each path is traced with
a fixed shading model:

    - A miss ends the path (the environment is black).
    - An emissive hit adds throughput * albedo / 255 and ends the path.
    - A diffuse hit adds a direct term from a fixed directional light,
      throughput * albedo * (max(0, dot(n, L)) * 0.1 + 0.2), then continues
      along a cosine-weighted direction with throughput *= albedo.
    - Paths still alive after max_bounces are truncated (no Russian roulette).

The small direct term and the ambient floor are part of the look of the
renderer; indirect bounces dominate the image.

render_tile() is what workers call: it runs the kernel over one tile's
accumulation rows and returns the updated rows with packed display colors.

Example:
    >>> from spherepath.core.integrator import init_taichi, trace_path_sample
    >>> from spherepath.camera.orbit import CameraRay
    >>> from spherepath.scene.model import Material, Scene, Sphere
    >>> init_taichi(seed=42)
    >>> scene = Scene.of(Sphere(center=(0, 0, 0), radius=1.0, material=Material((255, 0, 0))))
    >>> r, g, b = trace_path_sample(CameraRay((0, 0, 5), (0, 0, -1)), scene, max_bounces=1)
"""

import logging
import time

import numpy as np
import taichi as ti
import taichi.math as tm

from spherepath.camera.orbit import generate_ray
from spherepath.core.accumulation import display_colors
from spherepath.core.ray import (
    dot,
    normalize,
    normalize_array,
    sample_cosine_hemisphere,
    vec3,
)
from spherepath.render.messages import TileJob, TileResult
from spherepath.scene.intersection import pack_ray, trace_closest
from spherepath.scene.model import Scene

logger = logging.getLogger(__name__)

# =============================================================================
# Rendering Constants
# =============================================================================

# Fixed directional light
LIGHT_DIR_X, LIGHT_DIR_Y, LIGHT_DIR_Z = (float(c) for c in normalize_array((1.0, 0.0, 2.0)))

# Weight of the direct light term and the ambient floor
DIRECT_LIGHT_STRENGTH = 0.1
AMBIENT_LIGHT = 0.2

# Offset along the normal for the origin of bounce rays
SURFACE_OFFSET = 0.001

# Colors are specified on the 0..255 scale
COLOR_SCALE = 255.0


def init_taichi(seed: int | None = None, num_threads: int | None = None) -> None:
    """Initialize Taichi for the path tracing kernels.

    Kernels use double precision throughout, on the CPU backend.

    Args:
        seed: Random seed for ti.random(). None keeps Taichi's default.
        num_threads: Maximum kernel threads. None lets Taichi decide.
    """
    kwargs = {"arch": ti.cpu, "default_fp": ti.f64, "log_level": ti.WARN}
    if seed is not None:
        kwargs["random_seed"] = seed
    if num_threads is not None:
        kwargs["cpu_max_num_threads"] = num_threads
    ti.init(**kwargs)
    logger.debug("Taichi initialized (seed=%s, threads=%s)", seed, num_threads)


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def trace_path(
    origin: vec3,
    direction: vec3,
    centers: ti.template(),
    radii: ti.template(),
    albedos: ti.template(),
    emissive: ti.template(),
    num_spheres: ti.i32,
    max_bounces: ti.i32,
) -> vec3:
    """Trace a single path through the scene.

    Args:
        origin: Origin of the primary ray.
        direction: Direction of the primary ray (any length).
        centers: (n, 3) ndarray of sphere centers.
        radii: (n,) ndarray of sphere radii.
        albedos: (n, 3) ndarray of sphere colors on the 0..255 scale.
        emissive: (n,) ndarray of emissive flags.
        num_spheres: Number of valid spheres.
        max_bounces: Maximum number of path segments.

    Returns:
        The linear, unclamped radiance estimate of the path.
    """
    light_dir = vec3(LIGHT_DIR_X, LIGHT_DIR_Y, LIGHT_DIR_Z)
    radiance = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    ray_origin = origin
    ray_direction = direction

    # Active flag for path continuation (no break inside ti.func loops)
    active = 1

    for _ in range(max_bounces):
        if active == 1:
            rec = trace_closest(ray_origin, ray_direction, centers, radii, num_spheres)

            if rec.hit == 0:
                active = 0
            else:
                i = rec.sphere_index
                color = vec3(albedos[i, 0], albedos[i, 1], albedos[i, 2]) / COLOR_SCALE

                if emissive[i] != 0:
                    radiance += throughput * color
                    active = 0
                else:
                    brightness = (
                        ti.max(0.0, dot(rec.normal, light_dir)) * DIRECT_LIGHT_STRENGTH
                        + AMBIENT_LIGHT
                    )
                    radiance += throughput * color * brightness

                    ray_direction = sample_cosine_hemisphere(rec.normal)
                    ray_origin = rec.point + rec.normal * SURFACE_OFFSET
                    throughput *= color

    return radiance


@ti.func
def _sanitize(color: vec3) -> vec3:
    """Replace NaN/Inf channels with zero."""
    result = color
    for c in ti.static(range(3)):
        if tm.isnan(result[c]) or tm.isinf(result[c]):
            result[c] = 0.0
    return result


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_tile_kernel(
    camera: ti.types.ndarray(dtype=ti.f64, ndim=2),
    tan_half_fov: ti.f64,
    width: ti.i32,
    height: ti.i32,
    start_row: ti.i32,
    centers: ti.types.ndarray(dtype=ti.f64, ndim=2),
    radii: ti.types.ndarray(dtype=ti.f64, ndim=1),
    albedos: ti.types.ndarray(dtype=ti.f64, ndim=2),
    emissive: ti.types.ndarray(dtype=ti.i32, ndim=1),
    num_spheres: ti.i32,
    samples: ti.i32,
    max_bounces: ti.i32,
    sums: ti.types.ndarray(dtype=ti.f64, ndim=3),
    counts: ti.types.ndarray(dtype=ti.u32, ndim=2),
):
    """Add samples paths to every pixel of a tile.

    One sub-pixel jitter is drawn per pixel and shared by the pixel's
    samples for this pass.
    """
    aspect_ratio = ti.cast(width, ti.f64) / ti.cast(height, ti.f64)

    for row, x in ti.ndrange(sums.shape[0], sums.shape[1]):
        y = start_row + row
        screen_x = (ti.cast(x, ti.f64) + ti.random(ti.f64)) / ti.cast(width, ti.f64)
        screen_y = (ti.cast(y, ti.f64) + ti.random(ti.f64)) / ti.cast(height, ti.f64)

        total = vec3(0.0, 0.0, 0.0)
        for _ in range(samples):
            ray = generate_ray(camera, tan_half_fov, screen_x, screen_y, aspect_ratio)
            color = trace_path(
                ray.origin,
                ray.direction,
                centers,
                radii,
                albedos,
                emissive,
                num_spheres,
                max_bounces,
            )
            total += _sanitize(color)

        for c in ti.static(range(3)):
            sums[row, x, c] += total[c]
        counts[row, x] += ti.cast(samples, ti.u32)


@ti.kernel
def _trace_path_kernel(
    ray_data: ti.types.ndarray(dtype=ti.f64, ndim=1),
    centers: ti.types.ndarray(dtype=ti.f64, ndim=2),
    radii: ti.types.ndarray(dtype=ti.f64, ndim=1),
    albedos: ti.types.ndarray(dtype=ti.f64, ndim=2),
    emissive: ti.types.ndarray(dtype=ti.i32, ndim=1),
    num_spheres: ti.i32,
    max_bounces: ti.i32,
    out: ti.types.ndarray(dtype=ti.f64, ndim=1),
):
    """Trace one path for a given ray. Used for testing and tools."""
    origin = vec3(ray_data[0], ray_data[1], ray_data[2])
    direction = vec3(ray_data[3], ray_data[4], ray_data[5])
    color = trace_path(
        origin, direction, centers, radii, albedos, emissive, num_spheres, max_bounces
    )
    for c in ti.static(range(3)):
        out[c] = color[c]


# =============================================================================
# Public Rendering API
# =============================================================================


def trace_path_sample(ray, scene: Scene, max_bounces: int) -> tuple[float, float, float]:
    """Trace a single path for a ray and return its radiance.

    This is a Python-callable function for testing. Production rendering goes
    through render_tile(). Taichi must be initialized (see init_taichi()).

    Args:
        ray: An (origin, direction) pair, e.g. a CameraRay.
        scene: The scene to trace.
        max_bounces: Maximum number of path segments.

    Returns:
        Tuple of (R, G, B) linear radiance.
    """
    arrays = scene.to_arrays()
    out = np.zeros(3, dtype=np.float64)
    _trace_path_kernel(
        pack_ray(ray),
        arrays.centers,
        arrays.radii,
        arrays.albedos,
        arrays.emissive,
        arrays.count,
        max_bounces,
        out,
    )
    return (float(out[0]), float(out[1]), float(out[2]))


def render_tile(job: TileJob) -> TileResult:
    """Render samples_per_frame more samples into a tile's rows.

    The job's sums and counts arrays are updated in place and handed back in
    the result together with the packed display colors.

    Args:
        job: The tile job, including the tile's accumulation rows.

    Returns:
        The TileResult for the job.
    """
    start = time.perf_counter()

    sums = np.ascontiguousarray(job.sums, dtype=np.float64)
    counts = np.ascontiguousarray(job.counts, dtype=np.uint32)
    scene = job.scene

    _render_tile_kernel(
        job.camera.to_array(),
        job.camera.tan_half_fov,
        job.width,
        job.height,
        job.tile.start_row,
        scene.centers,
        scene.radii,
        scene.albedos,
        scene.emissive,
        scene.count,
        job.samples_per_frame,
        job.max_bounces,
        sums,
        counts,
    )

    elapsed = time.perf_counter() - start
    logger.debug(
        "Worker %d rendered tile %d (rows %d-%d, generation %d) in %.1fms",
        job.worker_id,
        job.tile_id,
        job.tile.start_row,
        job.tile.end_row,
        job.generation,
        elapsed * 1000.0,
    )

    return TileResult(
        worker_id=job.worker_id,
        generation=job.generation,
        tile_id=job.tile_id,
        tile=job.tile,
        sums=sums,
        counts=counts,
        colors=display_colors(sums, counts),
        processing_time=elapsed,
    )
