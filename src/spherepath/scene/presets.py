"""Ready-made scenes and cameras.

The default scene is a small studio setup that shows off the renderer's
look: a huge ground sphere acting as a floor, three diffuse spheres in a row
and an emissive sphere above them acting as an area light.

Example:
    >>> from spherepath.scene.presets import create_default_camera, create_default_scene
    >>> scene = create_default_scene()
    >>> camera = create_default_camera()
    >>> len(scene)
    5
"""

from dataclasses import dataclass

from spherepath.camera.orbit import (
    DEFAULT_FOV,
    DEFAULT_LOOK_AT,
    DEFAULT_POSITION,
    DEFAULT_UP,
    Camera,
)
from spherepath.scene.model import Color, Material, Scene, Sphere

# =============================================================================
# Default Scene Parameters
# =============================================================================


@dataclass
class DefaultSceneParams:
    """Parameters for customizing the default scene.

    Attributes:
        light_intensity: Emission of the light sphere on the 0..255 scale per
            channel. Values above 255 make the light brighter than white.
        light_color: Tint of the light, each component in [0, 1].
        ground_color: Albedo of the ground sphere.
        sphere_colors: Albedos of the left, middle and right spheres.

    Example:
        >>> params = DefaultSceneParams(light_intensity=600.0)
        >>> scene = create_default_scene(params)
    """

    light_intensity: float = 400.0
    light_color: Color = (1.0, 1.0, 1.0)
    ground_color: Color = (200.0, 200.0, 200.0)
    sphere_colors: tuple[Color, Color, Color] = (
        (220.0, 40.0, 40.0),
        (230.0, 230.0, 230.0),
        (40.0, 80.0, 220.0),
    )


# Ground is a sphere large enough to look flat, touching y = 0 at the origin
GROUND_RADIUS = 1000.0

SPHERE_RADIUS = 1.0
SPHERE_SPACING = 2.2

LIGHT_CENTER = (0.0, 6.0, 2.0)
LIGHT_RADIUS = 1.5


# =============================================================================
# Scene Factories
# =============================================================================


def create_default_scene(params: DefaultSceneParams | None = None) -> Scene:
    """Create the default demo scene.

    Spheres, in order: ground, left, middle, right, light.

    Args:
        params: Optional DefaultSceneParams. If None, uses the defaults.

    Returns:
        The scene.
    """
    if params is None:
        params = DefaultSceneParams()

    ground = Sphere(
        center=(0.0, -GROUND_RADIUS, 0.0),
        radius=GROUND_RADIUS,
        material=Material(albedo=params.ground_color),
    )

    # Three spheres resting on the ground, left to right along X
    row = [
        Sphere(
            center=(offset * SPHERE_SPACING, SPHERE_RADIUS, 0.0),
            radius=SPHERE_RADIUS,
            material=Material(albedo=color),
        )
        for offset, color in zip((-1, 0, 1), params.sphere_colors)
    ]

    light = Sphere(
        center=LIGHT_CENTER,
        radius=LIGHT_RADIUS,
        material=Material(
            albedo=tuple(params.light_intensity * c for c in params.light_color),
            emissive=True,
        ),
    )

    return Scene.of(ground, *row, light)


def create_single_sphere_scene(
    color: Color = (255.0, 0.0, 0.0),
    center=(0.0, 0.0, 0.0),
    radius: float = 1.0,
) -> Scene:
    """Create a scene with one diffuse sphere and nothing else.

    With max_bounces=1 every pixel covering the sphere sees only the direct
    and ambient terms, which makes this scene handy for checking shading.
    """
    return Scene.of(Sphere(center=center, radius=radius, material=Material(albedo=color)))


def create_default_camera(fov: float = DEFAULT_FOV) -> Camera:
    """Create the camera for the default scene, slightly above and in front."""
    return Camera(position=DEFAULT_POSITION, look_at=DEFAULT_LOOK_AT, up=DEFAULT_UP, fov=fov)
