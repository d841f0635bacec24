"""Scene description: spheres with albedo/emissive materials.

The scene is plain, immutable Python data so it can be snapshotted by value
and pickled to worker processes. Kernels never see these objects directly;
Scene.to_arrays() packs them into contiguous numpy arrays that are passed as
Taichi ndarray arguments.

Colors use the 0..255 scale and are stored exactly as given. For emissive
materials the albedo is the emission intensity and may exceed 255.

Example:
    >>> from spherepath.scene.model import Material, Scene, Sphere
    >>> red = Material(albedo=(255, 0, 0))
    >>> lamp = Material(albedo=(2000, 2000, 2000), emissive=True)
    >>> scene = Scene.of(
    ...     Sphere(center=(0, 0, 0), radius=1.0, material=red),
    ...     Sphere(center=(0, 5, 0), radius=0.5, material=lamp),
    ... )
    >>> len(scene)
    2
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from spherepath.errors import InvalidConfiguration

Color = tuple[float, float, float]
Point = tuple[float, float, float]


@dataclass(frozen=True)
class Material:
    """Surface material.

    Attributes:
        albedo: RGB color on the 0..255 scale. For emissive materials this is
            the emitted intensity, divided by 255 to get radiance.
        emissive: Whether the surface is a light source. Paths end when they
            reach an emissive surface.
    """

    albedo: Color = (255.0, 255.0, 255.0)
    emissive: bool = False


@dataclass(frozen=True)
class Sphere:
    """A sphere primitive with its material.

    Attributes:
        center: Center point in world space.
        radius: Sphere radius. Zero is tolerated (the sphere degenerates to a
            point); negative values are rejected.
        material: Surface material.
    """

    center: Point
    radius: float
    material: Material = Material()

    def __post_init__(self) -> None:
        if self.radius < 0:
            raise InvalidConfiguration(f"Sphere radius must be non-negative, got {self.radius!r}")


@dataclass(frozen=True)
class SceneArrays:
    """Structure-of-arrays view of a scene for kernel arguments.

    Arrays always hold at least one row so kernels never receive empty
    ndarrays; count is the number of rows that are real spheres.

    Attributes:
        centers: (n, 3) float64 sphere centers.
        radii: (n,) float64 radii.
        albedos: (n, 3) float64 colors on the 0..255 scale.
        emissive: (n,) int32 flags, 1 for emissive.
        count: Number of valid spheres.
    """

    centers: npt.NDArray[np.float64]
    radii: npt.NDArray[np.float64]
    albedos: npt.NDArray[np.float64]
    emissive: npt.NDArray[np.int32]
    count: int


@dataclass(frozen=True)
class Scene:
    """An ordered, immutable collection of spheres.

    Order only matters for ties: when two spheres are hit at exactly the same
    distance, the one that comes first wins.
    """

    spheres: tuple[Sphere, ...] = ()

    @classmethod
    def of(cls, *spheres: Sphere) -> "Scene":
        """Create a scene from spheres given as arguments."""
        return cls(tuple(spheres))

    @classmethod
    def coerce(cls, scene: "Scene | Iterable[Sphere]") -> "Scene":
        """Accept either a Scene or any iterable of spheres.

        Raises:
            InvalidConfiguration: If an element is not a Sphere.
        """
        if isinstance(scene, Scene):
            return scene
        spheres = tuple(scene)
        for sphere in spheres:
            if not isinstance(sphere, Sphere):
                raise InvalidConfiguration(f"Scene entries must be Sphere, got {type(sphere)!r}")
        return cls(spheres)

    def __len__(self) -> int:
        return len(self.spheres)

    def __iter__(self) -> Iterator[Sphere]:
        return iter(self.spheres)

    def to_arrays(self) -> SceneArrays:
        """Pack the scene into contiguous arrays for the kernels."""
        n = max(1, len(self.spheres))
        centers = np.zeros((n, 3), dtype=np.float64)
        radii = np.zeros(n, dtype=np.float64)
        albedos = np.zeros((n, 3), dtype=np.float64)
        emissive = np.zeros(n, dtype=np.int32)

        for i, sphere in enumerate(self.spheres):
            centers[i] = sphere.center
            radii[i] = sphere.radius
            albedos[i] = sphere.material.albedo
            emissive[i] = 1 if sphere.material.emissive else 0

        return SceneArrays(
            centers=centers,
            radii=radii,
            albedos=albedos,
            emissive=emissive,
            count=len(self.spheres),
        )
