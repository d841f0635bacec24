"""Ray data structure and vector utilities for the path tracing kernels.

This module provides the Ray dataclass and the vector helpers used inside
Taichi kernels. Everything is double precision: call ti.init with
default_fp=ti.f64 (see spherepath.core.integrator.init_taichi) before
launching kernels that use these functions.

Unlike taichi.math.normalize, normalize() here maps a zero vector to the zero
vector instead of producing NaNs, so degenerate directions never poison a
pixel.
normalize_array() applies the same rule to numpy vectors on the host.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherepath.core.ray import Ray, ray_at, vec3
    >>> @ti.kernel
    ... def point() -> ti.f64:
    ...     ray = Ray(origin=vec3(0.0, 0.0, 0.0), direction=vec3(0.0, 0.0, -1.0))
    ...     return ray_at(ray, 5.0).z
    >>> point()
    -5.0
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

# Double-precision 3D vector used by all kernels
vec3 = ti.types.vector(3, ti.f64)


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Not required to be
            unit length; intersection divides by dot(direction, direction).
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f64) -> vec3:
    """Compute the point along the ray at parameter t."""
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length(v: vec3) -> ti.f64:
    """Compute the Euclidean length (magnitude) of a vector."""
    return ti.sqrt(tm.dot(v, v))


@ti.func
def dot(a: vec3, b: vec3) -> ti.f64:
    """Compute the dot product of two vectors."""
    return tm.dot(a, b)


@ti.func
def cross(a: vec3, b: vec3) -> vec3:
    """Compute the cross product a x b."""
    return tm.cross(a, b)


@ti.func
def normalize(v: vec3) -> vec3:
    """Normalize a vector to unit length.

    Args:
        v: The input vector.

    Returns:
        A unit vector in the same direction as v, or the zero vector when v
        has zero length.
    """
    n = length(v)
    result = vec3(0.0, 0.0, 0.0)
    if n > 0.0:
        result = v / n
    return result


# =============================================================================
# Random Sampling Utilities for Monte Carlo
# =============================================================================


@ti.func
def random_cosine_direction() -> vec3:
    """Generate a random direction with cosine-weighted distribution.

    Returns:
        A random direction in the local coordinate frame (z-up), with
        PDF = cos(theta) / pi.
    """
    r1 = ti.random(ti.f64)
    r2 = ti.random(ti.f64)
    phi = 2.0 * tm.pi * r1
    r = ti.sqrt(r2)
    x = r * ti.cos(phi)
    y = r * ti.sin(phi)
    z = ti.sqrt(ti.max(0.0, 1.0 - r2))
    return vec3(x, y, z)


@ti.func
def build_onb_from_normal(normal: vec3):
    """Build an orthonormal basis whose z-axis is the given normal.

    The tangent is chosen from the normal's dominant horizontal component:
    (-n.y, n.x, 0) when |n.x| > |n.z|, else (0, -n.z, n.y).

    Args:
        normal: The surface normal (unit length).

    Returns:
        A tuple (tangent, bitangent, normal).
    """
    tangent = vec3(0.0, -normal.z, normal.y)
    if ti.abs(normal.x) > ti.abs(normal.z):
        tangent = vec3(-normal.y, normal.x, 0.0)
    tangent = normalize(tangent)
    bitangent = cross(normal, tangent)
    return tangent, bitangent, normal


@ti.func
def local_to_world(local_dir: vec3, tangent: vec3, bitangent: vec3, normal: vec3) -> vec3:
    """Transform a direction from the local (z-up) frame to world coordinates."""
    return local_dir.x * tangent + local_dir.y * bitangent + local_dir.z * normal


@ti.func
def sample_cosine_hemisphere(normal: vec3) -> vec3:
    """Cosine-weighted hemisphere sampling around a surface normal.

    Args:
        normal: The surface normal defining the hemisphere orientation.

    Returns:
        A normalized world-space direction in the hemisphere around normal.
    """
    local_dir = random_cosine_direction()
    tangent, bitangent, n = build_onb_from_normal(normal)
    return normalize(local_to_world(local_dir, tangent, bitangent, n))


# =============================================================================
# Host-side Helpers
# =============================================================================


def normalize_array(v) -> npt.NDArray[np.float64]:
    """Normalize a host vector to unit length.

    Args:
        v: Any array-like of three numbers.

    Returns:
        A float64 unit vector, or the zero vector when v has zero length.
    """
    v = np.asarray(v, dtype=np.float64)
    n = float(np.linalg.norm(v))
    if n == 0.0:
        return np.zeros_like(v)
    return v / n
