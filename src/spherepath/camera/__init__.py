"""Camera module for view and primary ray generation.

Components:
    orbit: Look-at camera placed explicitly or on an orbit, immutable
        CameraBasis snapshots and the shared generate_ray() ti.func

Ray generation uses normalized screen coordinates:
    screen_x in [0, 1]: left to right across the image
    screen_y in [0, 1]: top to bottom across the image
"""

from .orbit import (
    BASIS_EPSILON,
    DEFAULT_FOV,
    DEFAULT_LOOK_AT,
    DEFAULT_POSITION,
    DEFAULT_UP,
    Camera,
    CameraBasis,
    CameraRay,
    generate_ray,
)

__all__ = [
    "Camera",
    "CameraBasis",
    "CameraRay",
    "generate_ray",
    "BASIS_EPSILON",
    "DEFAULT_POSITION",
    "DEFAULT_LOOK_AT",
    "DEFAULT_UP",
    "DEFAULT_FOV",
]
