"""Scene-level closest-hit queries.

trace_closest() scans every sphere of a packed scene (see
spherepath.scene.model.SceneArrays) and keeps the nearest hit. The scan is a
brute-force loop in scene order with a strict comparison, so of two spheres
hit at exactly the same distance the first one wins.

closest_hit() and intersect() wrap the kernel-side query for Python callers
and return HitResult objects with the material of the hit sphere.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherepath.camera.orbit import CameraRay
    >>> from spherepath.scene.intersection import closest_hit
    >>> from spherepath.scene.model import Scene, Sphere
    >>> scene = Scene.of(Sphere(center=(0, 0, 0), radius=1.0))
    >>> closest_hit(CameraRay((0, 0, 10), (0, 0, -1)), scene).distance
    9.0
"""

from dataclasses import dataclass

import numpy as np
import taichi as ti

from spherepath.core.ray import vec3
from spherepath.geometry.sphere import hit_sphere
from spherepath.scene.model import Material, Scene, Sphere

# Upper bound for hit distances; anything farther counts as a miss
T_MAX = 1e30


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection.

    Attributes:
        hit: 1 if any sphere was hit, 0 otherwise.
        t: Distance parameter of the closest hit.
        point: The closest intersection point.
        normal: Unit outward normal at point.
        sphere_index: Index of the hit sphere in scene order, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f64
    point: vec3
    normal: vec3
    sphere_index: ti.i32


@ti.func
def trace_closest(
    ray_origin: vec3,
    ray_direction: vec3,
    centers: ti.template(),
    radii: ti.template(),
    num_spheres: ti.i32,
) -> SceneHitRecord:
    """Find the closest sphere hit along a ray.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        centers: (n, 3) ndarray of sphere centers.
        radii: (n,) ndarray of sphere radii.
        num_spheres: Number of valid spheres in the arrays.

    Returns:
        A SceneHitRecord for the closest hit, or a miss record.
    """
    result = SceneHitRecord(
        hit=0,
        t=T_MAX,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        sphere_index=-1,
    )

    for i in range(num_spheres):
        center = vec3(centers[i, 0], centers[i, 1], centers[i, 2])
        rec = hit_sphere(ray_origin, ray_direction, center, radii[i])
        if rec.hit == 1 and rec.t < result.t:
            result = SceneHitRecord(
                hit=1,
                t=rec.t,
                point=rec.point,
                normal=rec.normal,
                sphere_index=i,
            )

    return result


@ti.kernel
def _closest_hit_kernel(
    ray_data: ti.types.ndarray(dtype=ti.f64, ndim=1),
    centers: ti.types.ndarray(dtype=ti.f64, ndim=2),
    radii: ti.types.ndarray(dtype=ti.f64, ndim=1),
    num_spheres: ti.i32,
    out: ti.types.ndarray(dtype=ti.f64, ndim=1),
):
    """Run trace_closest for one ray and write the record into out.

    out layout: [hit, t, px, py, pz, nx, ny, nz, sphere_index]
    """
    origin = vec3(ray_data[0], ray_data[1], ray_data[2])
    direction = vec3(ray_data[3], ray_data[4], ray_data[5])
    rec = trace_closest(origin, direction, centers, radii, num_spheres)
    out[0] = ti.cast(rec.hit, ti.f64)
    out[1] = rec.t
    out[2] = rec.point.x
    out[3] = rec.point.y
    out[4] = rec.point.z
    out[5] = rec.normal.x
    out[6] = rec.normal.y
    out[7] = rec.normal.z
    out[8] = ti.cast(rec.sphere_index, ti.f64)


# =============================================================================
# Python-side queries
# =============================================================================


@dataclass(frozen=True)
class HitResult:
    """Result of a closest-hit query.

    Attributes:
        hit: Whether anything was hit.
        distance: Ray parameter of the hit (0.0 on a miss).
        point: Hit point.
        normal: Unit outward normal at the hit point.
        material: Material of the hit sphere, None on a miss.
        sphere_index: Scene index of the hit sphere, -1 on a miss.
    """

    hit: bool
    distance: float
    point: tuple[float, float, float]
    normal: tuple[float, float, float]
    material: Material | None
    sphere_index: int = -1


MISS = HitResult(
    hit=False,
    distance=0.0,
    point=(0.0, 0.0, 0.0),
    normal=(0.0, 0.0, 0.0),
    material=None,
)


def pack_ray(ray) -> np.ndarray:
    """Pack any (origin, direction) pair into a 6-element float64 array."""
    origin, direction = ray
    return np.concatenate(
        [np.asarray(origin, dtype=np.float64), np.asarray(direction, dtype=np.float64)]
    )


def closest_hit(ray, scene: Scene) -> HitResult:
    """Find the closest hit of a ray against a scene.

    Python-callable wrapper around trace_closest, for tools and tests. Taichi
    must already be initialized with default_fp=ti.f64.

    Args:
        ray: An (origin, direction) pair, e.g. a CameraRay.
        scene: The scene to test against.

    Returns:
        The HitResult of the nearest sphere, or MISS.
    """
    arrays = scene.to_arrays()
    out = np.zeros(9, dtype=np.float64)
    _closest_hit_kernel(pack_ray(ray), arrays.centers, arrays.radii, arrays.count, out)

    if out[0] == 0.0:
        return MISS

    index = int(out[8])
    return HitResult(
        hit=True,
        distance=float(out[1]),
        point=(float(out[2]), float(out[3]), float(out[4])),
        normal=(float(out[5]), float(out[6]), float(out[7])),
        material=scene.spheres[index].material,
        sphere_index=index,
    )


def intersect(ray, sphere: Sphere) -> HitResult:
    """Intersect a ray with a single sphere."""
    return closest_hit(ray, Scene.of(sphere))
