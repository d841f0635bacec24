"""Core rendering module.

Components:
    ray: Ray data structure, vector helpers and cosine hemisphere sampling
    integrator: Path tracer and the per-tile rendering kernel
    accumulation: Per-pixel radiance sums, tone mapping and RGBA packing
    progressive: ProgressiveRenderer, the public rendering facade

All per-pixel work runs in Taichi kernels in double precision.
"""

from .ray import (
    Ray,
    build_onb_from_normal,
    cross,
    dot,
    length,
    local_to_world,
    make_ray,
    normalize,
    random_cosine_direction,
    ray_at,
    sample_cosine_hemisphere,
    vec3,
)

# Note: integrator, accumulation and progressive are NOT imported here to avoid
# circular imports. Import them directly, e.g.:
#   from spherepath.core.progressive import ProgressiveRenderer

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length",
    "normalize",
    "dot",
    "cross",
    "random_cosine_direction",
    "build_onb_from_normal",
    "local_to_world",
    "sample_cosine_hemisphere",
]
