"""Orbit / look-at camera and primary ray generation.

The camera is placed either at an explicit position or on an orbit around its
look-at point given by elevation, azimuth (degrees) and radius:

    x = radius * cos(e) * cos(a)
    y = radius * sin(e)
    z = radius * cos(e) * sin(a)

The orthonormal basis (forward, right, up) is rebuilt from position, look-at
and the world-up hint whenever it is needed, with fixed fallbacks for
degenerate configurations:
- position == look_at: forward = (0, 0, -1)
- forward parallel to world-up: right = (1, 0, 0)
- degenerate up: up = (0, 1, 0)

Workers never see a Camera. They receive a CameraBasis, an immutable snapshot
packed into a (4, 3) array, and generate rays with generate_ray(). The same
ti.func also backs CameraBasis.get_ray() on the host, so there is exactly one
implementation of the screen-to-ray mapping.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherepath.camera.orbit import Camera
    >>> camera = Camera.from_orbit(elevation=30.0, azimuth=90.0, radius=10.0)
    >>> ray = camera.get_ray(0.5, 0.5, aspect_ratio=16 / 9)
    >>> # ray.direction equals camera.forward at the image center
"""

import math
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
import numpy.typing as npt
import taichi as ti

from spherepath.config import check_fov
from spherepath.core.ray import Ray, make_ray, normalize_array, vec3
from spherepath.errors import InvalidConfiguration

# Lengths below this are treated as zero when building the camera basis
BASIS_EPSILON = 1e-6

# Defaults matching the interactive viewer's initial view
DEFAULT_POSITION = (0.0, 2.5, 10.0)
DEFAULT_LOOK_AT = (0.0, 0.0, 0.0)
DEFAULT_UP = (0.0, 1.0, 0.0)
DEFAULT_FOV = 90.0


class CameraRay(NamedTuple):
    """A primary ray evaluated on the host.

    Attributes:
        origin: Ray origin (camera position).
        direction: Ray direction; not normalized.
    """

    origin: tuple[float, float, float]
    direction: tuple[float, float, float]


def normalize_or(v: npt.NDArray[np.float64], fallback, epsilon: float = BASIS_EPSILON):
    """Normalize v, or return fallback when |v| is below epsilon."""
    if float(np.linalg.norm(v)) < epsilon:
        return np.array(fallback, dtype=np.float64)
    return normalize_array(v)


# =============================================================================
# Camera snapshot and ray generation
# =============================================================================


@dataclass(frozen=True)
class CameraBasis:
    """Immutable camera snapshot sent to workers.

    Attributes:
        origin: Camera position.
        forward: Unit view direction.
        right: Unit right vector.
        up: Unit up vector.
        fov: Vertical field of view in degrees.
    """

    origin: tuple[float, float, float]
    forward: tuple[float, float, float]
    right: tuple[float, float, float]
    up: tuple[float, float, float]
    fov: float

    def __post_init__(self):
        check_fov(self.fov)

    @property
    def tan_half_fov(self) -> float:
        """tan(fov / 2), half the viewport height at unit distance."""
        return math.tan(math.radians(self.fov) / 2.0)

    def to_array(self) -> npt.NDArray[np.float64]:
        """Pack as a (4, 3) array: origin, right, up, forward."""
        return np.array([self.origin, self.right, self.up, self.forward], dtype=np.float64)

    def get_ray(self, screen_x: float, screen_y: float, aspect_ratio: float) -> CameraRay:
        """Generate the ray through a normalized screen position.

        Requires Taichi to be initialized with default_fp=ti.f64.

        Args:
            screen_x: Horizontal position in [0, 1], left to right.
            screen_y: Vertical position in [0, 1], top to bottom.
            aspect_ratio: Image width divided by height.

        Returns:
            The CameraRay for that screen position.
        """
        out = np.zeros(6, dtype=np.float64)
        _get_ray_kernel(
            self.to_array(), self.tan_half_fov, screen_x, screen_y, aspect_ratio, out
        )
        return CameraRay(
            origin=(float(out[0]), float(out[1]), float(out[2])),
            direction=(float(out[3]), float(out[4]), float(out[5])),
        )


@ti.func
def generate_ray(
    basis: ti.template(),
    tan_half_fov: ti.f64,
    screen_x: ti.f64,
    screen_y: ti.f64,
    aspect_ratio: ti.f64,
) -> Ray:
    """Generate a ray through normalized screen coordinates.

    Screen y grows downward while the viewport v coordinate grows upward.
    The direction is right * u + up * v + forward and is not renormalized.

    Args:
        basis: (4, 3) ndarray from CameraBasis.to_array().
        tan_half_fov: tan(fov / 2).
        screen_x: Horizontal coordinate in [0, 1] (left to right).
        screen_y: Vertical coordinate in [0, 1] (top to bottom).
        aspect_ratio: Image width divided by height.

    Returns:
        A Ray starting at the camera position.
    """
    origin = vec3(basis[0, 0], basis[0, 1], basis[0, 2])
    right = vec3(basis[1, 0], basis[1, 1], basis[1, 2])
    up = vec3(basis[2, 0], basis[2, 1], basis[2, 2])
    forward = vec3(basis[3, 0], basis[3, 1], basis[3, 2])

    viewport_height = 2.0 * tan_half_fov
    viewport_width = viewport_height * aspect_ratio

    u = (screen_x - 0.5) * viewport_width
    v = (0.5 - screen_y) * viewport_height

    return make_ray(origin, right * u + up * v + forward)


@ti.kernel
def _get_ray_kernel(
    basis: ti.types.ndarray(dtype=ti.f64, ndim=2),
    tan_half_fov: ti.f64,
    screen_x: ti.f64,
    screen_y: ti.f64,
    aspect_ratio: ti.f64,
    out: ti.types.ndarray(dtype=ti.f64, ndim=1),
):
    ray = generate_ray(basis, tan_half_fov, screen_x, screen_y, aspect_ratio)
    for i in ti.static(range(3)):
        out[i] = ray.origin[i]
        out[3 + i] = ray.direction[i]


# =============================================================================
# Camera
# =============================================================================


class Camera:
    """Camera positioned explicitly or on an orbit around its look-at point.

    Constructing from an explicit position also derives the matching orbit
    parameters, so a later orbit() call continues from the current view.

    Attributes:
        position: Camera position.
        look_at: Point the camera looks at.
        world_up: Up hint used to build the basis.
        fov: Vertical field of view in degrees, in (0, 180).
        elevation: Orbit elevation in degrees, in [-90, 90].
        azimuth: Orbit azimuth in degrees, in [0, 360).
        radius: Orbit radius.
    """

    def __init__(
        self,
        position=DEFAULT_POSITION,
        look_at=DEFAULT_LOOK_AT,
        up=DEFAULT_UP,
        fov: float = DEFAULT_FOV,
    ) -> None:
        """Create a camera at an explicit position.

        Raises:
            InvalidConfiguration: If fov is not in (0, 180).
        """
        check_fov(fov)
        self._position = np.array(position, dtype=np.float64)
        self._look_at = np.array(look_at, dtype=np.float64)
        self._world_up = np.array(up, dtype=np.float64)
        self._fov = float(fov)
        self._derive_orbit()

    @classmethod
    def from_orbit(
        cls,
        elevation: float,
        azimuth: float,
        radius: float,
        look_at=DEFAULT_LOOK_AT,
        up=DEFAULT_UP,
        fov: float = DEFAULT_FOV,
    ) -> "Camera":
        """Create a camera on an orbit around look_at."""
        _check_radius(radius)
        camera = cls(position=look_at, look_at=look_at, up=up, fov=fov)
        camera.orbit(elevation, azimuth, radius)
        return camera

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def position(self) -> tuple[float, float, float]:
        return _as_tuple(self._position)

    @property
    def look_at(self) -> tuple[float, float, float]:
        return _as_tuple(self._look_at)

    @property
    def world_up(self) -> tuple[float, float, float]:
        return _as_tuple(self._world_up)

    @property
    def fov(self) -> float:
        return self._fov

    @property
    def elevation(self) -> float:
        return self._elevation

    @property
    def azimuth(self) -> float:
        return self._azimuth

    @property
    def radius(self) -> float:
        return self._radius

    @property
    def forward(self) -> tuple[float, float, float]:
        return _as_tuple(self._compute_basis()[0])

    @property
    def right(self) -> tuple[float, float, float]:
        return _as_tuple(self._compute_basis()[1])

    @property
    def up(self) -> tuple[float, float, float]:
        return _as_tuple(self._compute_basis()[2])

    # -------------------------------------------------------------------------
    # Mutation (between passes only; the renderer works on snapshots)
    # -------------------------------------------------------------------------

    def orbit(self, elevation: float, azimuth: float, radius: float) -> tuple[float, float, float]:
        """Move the camera onto an orbit around the look-at point.

        Elevation is clamped to [-90, 90] and azimuth wrapped into [0, 360).

        Args:
            elevation: Elevation angle in degrees.
            azimuth: Azimuth angle in degrees.
            radius: Distance from the look-at point.

        Returns:
            The new camera position.

        Raises:
            InvalidConfiguration: If radius is not positive.
        """
        _check_radius(radius)
        self._elevation = min(90.0, max(-90.0, float(elevation)))
        self._azimuth = float(azimuth) % 360.0
        self._radius = float(radius)

        e = math.radians(self._elevation)
        a = math.radians(self._azimuth)
        cos_e = math.cos(e)
        offset = np.array(
            [
                self._radius * cos_e * math.cos(a),
                self._radius * math.sin(e),
                self._radius * cos_e * math.sin(a),
            ],
            dtype=np.float64,
        )
        self._position = self._look_at + offset
        return self.position

    def set_position(self, position) -> None:
        """Place the camera at an explicit position."""
        self._position = np.array(position, dtype=np.float64)
        self._derive_orbit()

    def set_look_at(self, look_at) -> None:
        """Change the look-at point, keeping the camera position."""
        self._look_at = np.array(look_at, dtype=np.float64)
        self._derive_orbit()

    def set_up(self, up) -> None:
        """Change the world-up hint."""
        self._world_up = np.array(up, dtype=np.float64)

    def set_fov(self, fov: float) -> None:
        """Change the vertical field of view.

        Raises:
            InvalidConfiguration: If fov is not in (0, 180).
        """
        check_fov(fov)
        self._fov = float(fov)

    # -------------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------------

    def _derive_orbit(self) -> None:
        """Derive orbit parameters from the current position."""
        offset = self._position - self._look_at
        radius = float(np.linalg.norm(offset))
        if radius == 0.0:
            self._radius = 1.0
            self._elevation = 0.0
            self._azimuth = 0.0
            return

        self._radius = radius
        self._elevation = math.degrees(math.asin(max(-1.0, min(1.0, offset[1] / radius))))
        self._azimuth = math.degrees(math.atan2(offset[2], offset[0])) % 360.0

    def _compute_basis(self):
        """Build the (forward, right, up) basis via Gram-Schmidt against world-up."""
        forward = normalize_or(self._look_at - self._position, (0.0, 0.0, -1.0))
        right = normalize_or(np.cross(self._world_up, forward), (1.0, 0.0, 0.0))
        up = normalize_or(np.cross(forward, right), (0.0, 1.0, 0.0))
        return forward, right, up

    def snapshot(self) -> CameraBasis:
        """Take an immutable snapshot for rendering."""
        forward, right, up = self._compute_basis()
        return CameraBasis(
            origin=self.position,
            forward=_as_tuple(forward),
            right=_as_tuple(right),
            up=_as_tuple(up),
            fov=self._fov,
        )

    def get_ray(self, screen_x: float, screen_y: float, aspect_ratio: float) -> CameraRay:
        """Generate the ray through a normalized screen position.

        See CameraBasis.get_ray().
        """
        return self.snapshot().get_ray(screen_x, screen_y, aspect_ratio)

    def __repr__(self) -> str:
        return (
            f"Camera(position={self.position}, look_at={self.look_at}, "
            f"fov={self._fov}, elevation={self._elevation:.2f}, "
            f"azimuth={self._azimuth:.2f}, radius={self._radius:.3f})"
        )


def _check_radius(radius: float) -> None:
    if not radius > 0.0:
        raise InvalidConfiguration(f"Orbit radius must be positive, got {radius!r}")


def _as_tuple(v) -> tuple[float, float, float]:
    return (float(v[0]), float(v[1]), float(v[2]))
