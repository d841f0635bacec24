"""Ray-sphere intersection.

The intersection solves the quadratic

    |origin + t * direction - center|^2 = radius^2

with a = dot(d, d), b = 2 * dot(oc, d), c = dot(oc, oc) - radius^2, and keeps
the smallest root greater than HIT_EPSILON. The epsilon stops rays leaving a
surface from immediately re-hitting it at t ~ 0 (shadow acne). Directions do
not have to be unit length; a zero-length direction never hits.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherepath.geometry.sphere import hit_sphere
    >>> from spherepath.core.ray import vec3
    >>> @ti.kernel
    ... def distance() -> ti.f64:
    ...     rec = hit_sphere(vec3(0.0, 0.0, 10.0), vec3(0.0, 0.0, -1.0), vec3(0.0), 2.0)
    ...     return rec.t
    >>> distance()
    8.0
"""

import taichi as ti
import taichi.math as tm

from spherepath.core.ray import normalize, vec3

# Minimum accepted hit distance along a ray
HIT_EPSILON = 0.001


@ti.dataclass
class HitRecord:
    """Record of a ray-sphere intersection.

    Attributes:
        hit: 1 if the ray intersected the sphere, 0 otherwise.
        t: Distance parameter along the ray. Only valid if hit == 1.
        point: The intersection point. Only valid if hit == 1.
        normal: Unit outward surface normal at point. Only valid if hit == 1.
    """

    hit: ti.i32
    t: ti.f64
    point: vec3
    normal: vec3


@ti.func
def make_miss_record() -> HitRecord:
    """Create a HitRecord indicating no intersection."""
    return HitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
    )


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    center: vec3,
    radius: ti.f64,
) -> HitRecord:
    """Test for ray-sphere intersection.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction of the ray (any non-zero length).
        center: Center of the sphere.
        radius: Radius of the sphere.

    Returns:
        A HitRecord for the nearest intersection beyond HIT_EPSILON, or a
        miss record.
    """
    oc = ray_origin - center
    a = tm.dot(ray_direction, ray_direction)
    b = 2.0 * tm.dot(oc, ray_direction)
    c = tm.dot(oc, oc) - radius * radius
    discriminant = b * b - 4.0 * a * c

    result = make_miss_record()

    if a > 0.0 and discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t1 = (-b - sqrt_d) / (2.0 * a)
        t2 = (-b + sqrt_d) / (2.0 * a)

        t = -1.0
        if t1 > HIT_EPSILON:
            t = t1
        elif t2 > HIT_EPSILON:
            t = t2

        if t > 0.0:
            point = ray_origin + t * ray_direction
            result = HitRecord(
                hit=1,
                t=t,
                point=point,
                normal=normalize(point - center),
            )

    return result
