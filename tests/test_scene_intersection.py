"""Tests for the scene model and closest-hit queries.

Tests cover:
- Scene construction, coercion and validation
- Packing into kernel arrays
- Closest-hit selection, ties and misses
- Presets
"""

import math

import numpy as np
import pytest


class TestSceneModel:
    """Tests for Material, Sphere and Scene."""

    def test_negative_radius_rejected(self):
        """Test a negative radius raises InvalidConfiguration."""
        from spherepath.errors import InvalidConfiguration
        from spherepath.scene.model import Sphere

        with pytest.raises(InvalidConfiguration):
            Sphere(center=(0.0, 0.0, 0.0), radius=-1.0)

    def test_zero_radius_tolerated(self):
        """Test a zero radius is accepted."""
        from spherepath.scene.model import Sphere

        assert Sphere(center=(0.0, 0.0, 0.0), radius=0.0).radius == 0.0

    def test_coerce_from_list(self):
        """Test a list of spheres becomes a Scene with the same order."""
        from spherepath.scene.model import Scene, Sphere

        spheres = [Sphere((0.0, 0.0, 0.0), 1.0), Sphere((1.0, 0.0, 0.0), 2.0)]
        scene = Scene.coerce(spheres)

        assert isinstance(scene, Scene)
        assert list(scene) == spheres

    def test_coerce_rejects_non_spheres(self):
        """Test anything that is not a Sphere is rejected."""
        from spherepath.errors import InvalidConfiguration
        from spherepath.scene.model import Scene

        with pytest.raises(InvalidConfiguration):
            Scene.coerce([((0.0, 0.0, 0.0), 1.0)])

    def test_to_arrays(self):
        """Test packing keeps values and flags emissive spheres."""
        from spherepath.scene.model import Material, Scene, Sphere

        scene = Scene.of(
            Sphere((1.0, 2.0, 3.0), 0.5, Material((10.0, 20.0, 30.0))),
            Sphere((0.0, 5.0, 0.0), 1.5, Material((900.0, 900.0, 900.0), emissive=True)),
        )
        arrays = scene.to_arrays()

        assert arrays.count == 2
        np.testing.assert_array_equal(arrays.centers[0], [1.0, 2.0, 3.0])
        np.testing.assert_array_equal(arrays.radii, [0.5, 1.5])
        np.testing.assert_array_equal(arrays.albedos[1], [900.0, 900.0, 900.0])
        np.testing.assert_array_equal(arrays.emissive, [0, 1])

    def test_empty_scene_arrays_are_padded(self):
        """Test an empty scene still produces one row with count 0."""
        from spherepath.scene.model import Scene

        arrays = Scene().to_arrays()
        assert arrays.count == 0
        assert arrays.centers.shape == (1, 3)


class TestClosestHit:
    """Tests for closest_hit over a whole scene."""

    def test_nearest_sphere_wins(self):
        """Test the front sphere is reported when two spheres line up."""
        from spherepath.scene.intersection import closest_hit
        from spherepath.scene.model import Material, Scene, Sphere

        far = Sphere((0.0, 0.0, -5.0), 1.0, Material((0.0, 0.0, 255.0)))
        near = Sphere((0.0, 0.0, 0.0), 1.0, Material((255.0, 0.0, 0.0)))
        scene = Scene.of(far, near)

        hit = closest_hit(((0.0, 0.0, 5.0), (0.0, 0.0, -1.0)), scene)

        assert hit.hit
        assert hit.sphere_index == 1
        assert hit.material == near.material
        assert abs(hit.distance - 4.0) < 1e-9
        assert abs(hit.normal[2] - 1.0) < 1e-9

    def test_tie_goes_to_first_sphere(self):
        """Test identical spheres resolve to the one listed first."""
        from spherepath.scene.intersection import closest_hit
        from spherepath.scene.model import Material, Scene, Sphere

        first = Sphere((0.0, 0.0, 0.0), 1.0, Material((255.0, 0.0, 0.0)))
        second = Sphere((0.0, 0.0, 0.0), 1.0, Material((0.0, 255.0, 0.0)))

        hit = closest_hit(((0.0, 0.0, 5.0), (0.0, 0.0, -1.0)), Scene.of(first, second))

        assert hit.sphere_index == 0

    def test_miss_returns_miss(self):
        """Test a ray that hits nothing returns MISS."""
        from spherepath.scene.intersection import MISS, closest_hit
        from spherepath.scene.model import Scene, Sphere

        scene = Scene.of(Sphere((0.0, 0.0, 0.0), 1.0))
        assert closest_hit(((0.0, 0.0, 5.0), (0.0, 1.0, 0.0)), scene) is MISS

    def test_empty_scene_misses(self):
        """Test the padded row of an empty scene is never hit."""
        from spherepath.scene.intersection import closest_hit
        from spherepath.scene.model import Scene

        assert not closest_hit(((0.0, 0.0, 5.0), (0.0, 0.0, -1.0)), Scene()).hit

    def test_no_false_hits(self):
        """Test rays that clear the sphere by a margin never hit it."""
        from spherepath.scene.intersection import intersect
        from spherepath.scene.model import Sphere

        sphere = Sphere((0.0, 0.0, 0.0), 1.0)
        for angle in np.linspace(0.0, 2.0 * math.pi, 16, endpoint=False):
            offset = (1.01 * math.cos(angle), 1.01 * math.sin(angle))
            ray = ((offset[0], offset[1], 10.0), (0.0, 0.0, -1.0))
            assert not intersect(ray, sphere).hit

    def test_hit_distance_matches_analytic(self):
        """Test the hit distance equals the analytic entry distance for grazing offsets."""
        from spherepath.scene.intersection import intersect
        from spherepath.scene.model import Sphere

        sphere = Sphere((0.0, 0.0, 0.0), 2.0)
        for y in (0.0, 0.5, 1.0, 1.9):
            hit = intersect(((0.0, y, 10.0), (0.0, 0.0, -1.0)), sphere)
            expected = 10.0 - math.sqrt(4.0 - y * y)
            assert hit.hit
            assert abs(hit.distance - expected) < 1e-9


class TestPresets:
    """Tests for the ready-made scenes."""

    def test_default_scene_has_one_light(self):
        """Test the default scene has ground, three spheres and one emissive light."""
        from spherepath.scene.presets import create_default_scene

        scene = create_default_scene()
        emissive = [s for s in scene if s.material.emissive]

        assert len(scene) == 5
        assert len(emissive) == 1
        assert emissive[0] is scene.spheres[-1]

    def test_default_scene_params(self):
        """Test light intensity and tint scale the light albedo."""
        from spherepath.scene.presets import DefaultSceneParams, create_default_scene

        params = DefaultSceneParams(light_intensity=100.0, light_color=(1.0, 0.5, 0.0))
        light = create_default_scene(params).spheres[-1]

        assert light.material.albedo == (100.0, 50.0, 0.0)

    def test_default_camera_sees_scene(self):
        """Test the center ray of the default camera hits something."""
        from spherepath.scene.intersection import closest_hit
        from spherepath.scene.presets import create_default_camera, create_default_scene

        ray = create_default_camera().get_ray(0.5, 0.5, 4.0 / 3.0)
        assert closest_hit(ray, create_default_scene()).hit
