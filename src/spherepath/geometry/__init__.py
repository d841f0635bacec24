"""Geometry module for the sphere primitive.

Components:
    sphere: Ray-sphere intersection with the self-intersection epsilon rule

Intersection routines are Taichi functions (@ti.func) shared by every
kernel that traces rays.
"""

from .sphere import HIT_EPSILON, HitRecord, hit_sphere, make_miss_record

__all__ = [
    "HIT_EPSILON",
    "HitRecord",
    "hit_sphere",
    "make_miss_record",
]
