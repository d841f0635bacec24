"""Scene module: scene description, ray-scene queries and presets.

Components:
    model: Material, Sphere and Scene value types, packed SceneArrays
    intersection: Closest-hit search over all spheres (ti.func + host wrappers)
    presets: Default demo scene and camera

Scenes are immutable values. Kernels receive them as structure-of-arrays
numpy buffers from Scene.to_arrays().
"""

from .intersection import MISS, HitResult, SceneHitRecord, closest_hit, intersect, trace_closest
from .model import Material, Scene, SceneArrays, Sphere
from .presets import (
    DefaultSceneParams,
    create_default_camera,
    create_default_scene,
    create_single_sphere_scene,
)

__all__ = [
    # Model
    "Material",
    "Sphere",
    "Scene",
    "SceneArrays",
    # Intersection
    "SceneHitRecord",
    "HitResult",
    "MISS",
    "trace_closest",
    "closest_hit",
    "intersect",
    # Presets
    "DefaultSceneParams",
    "create_default_scene",
    "create_single_sphere_scene",
    "create_default_camera",
]
