"""Tests for the path tracing integrator.

Tests cover:
- Shading of a single diffuse sphere (direct + ambient terms)
- Emissive termination
- Misses and bounce truncation
- Non-negative, finite radiance
- render_tile() accumulation and display colors
"""

import math

import numpy as np


def make_job(scene, camera, width=8, height=8, tile=None, samples=1, max_bounces=4, sums=None):
    """Build a TileJob over a tile with fresh (or given) accumulation rows."""
    from spherepath.render.messages import TileJob
    from spherepath.render.tiles import Tile

    if tile is None:
        tile = Tile(0, height)
    if sums is None:
        sums = np.zeros((tile.rows, width, 3), dtype=np.float64)
    return TileJob(
        worker_id=0,
        generation=0,
        tile_id=0,
        tile=tile,
        width=width,
        height=height,
        camera=camera.snapshot(),
        scene=scene.to_arrays(),
        samples_per_frame=samples,
        max_bounces=max_bounces,
        sums=sums,
        counts=np.zeros((tile.rows, width), dtype=np.uint32),
    )


# Direct + ambient brightness for a normal facing +Z
RED_SPHERE_RADIANCE = 0.1 * 2.0 / math.sqrt(5.0) + 0.2


class TestTracePath:
    """Tests for single paths traced with trace_path_sample()."""

    def test_red_sphere_direct_and_ambient(self, red_sphere_scene):
        """Test a head-on hit returns albedo * (0.1 * max(0, n.L) + 0.2)."""
        from spherepath.core.integrator import trace_path_sample

        r, g, b = trace_path_sample(((0.0, 0.0, 5.0), (0.0, 0.0, -1.0)), red_sphere_scene, 1)

        assert abs(r - RED_SPHERE_RADIANCE) < 1e-9
        assert g == 0.0
        assert b == 0.0

    def test_red_sphere_bounces_escape(self, red_sphere_scene):
        """Test extra bounces add nothing when bounce rays can only escape."""
        from spherepath.core.integrator import trace_path_sample

        for _ in range(10):
            r, g, b = trace_path_sample(((0.0, 0.0, 5.0), (0.0, 0.0, -1.0)), red_sphere_scene, 8)
            assert abs(r - RED_SPHERE_RADIANCE) < 1e-9
            assert g == 0.0 and b == 0.0

    def test_back_facing_light_gives_ambient_only(self):
        """Test a surface facing away from the light only receives the ambient term."""
        from spherepath.core.integrator import AMBIENT_LIGHT, trace_path_sample
        from spherepath.scene.presets import create_single_sphere_scene

        scene = create_single_sphere_scene(color=(255.0, 255.0, 255.0))
        # Hit at (0, 0, -1), normal (0, 0, -1): dot with light direction is negative
        r, g, b = trace_path_sample(((0.0, 0.0, -5.0), (0.0, 0.0, 1.0)), scene, 1)

        for c in (r, g, b):
            assert abs(c - AMBIENT_LIGHT) < 1e-9

    def test_miss_is_black(self, red_sphere_scene):
        """Test a ray that hits nothing returns zero radiance."""
        from spherepath.core.integrator import trace_path_sample

        assert trace_path_sample(((0.0, 0.0, 5.0), (0.0, 1.0, 0.0)), red_sphere_scene, 4) == (
            0.0,
            0.0,
            0.0,
        )

    def test_emissive_hit_terminates(self):
        """Test an emissive hit returns albedo / 255 regardless of max_bounces."""
        from spherepath.core.integrator import trace_path_sample
        from spherepath.scene.model import Material, Scene, Sphere

        lamp = Sphere((0.0, 0.0, 0.0), 1.0, Material((510.0, 255.0, 0.0), emissive=True))
        scene = Scene.of(lamp)

        for bounces in (1, 4):
            r, g, b = trace_path_sample(((0.0, 0.0, 5.0), (0.0, 0.0, -1.0)), scene, bounces)
            assert abs(r - 2.0) < 1e-12
            assert abs(g - 1.0) < 1e-12
            assert b == 0.0

    def test_black_diffuse_blocks_emitter(self):
        """Test light reached after a black diffuse bounce contributes nothing."""
        from spherepath.core.integrator import trace_path_sample
        from spherepath.scene.model import Material, Scene, Sphere

        # Camera inside a huge emissive shell looking at a black diffuse sphere
        black = Sphere((0.0, 0.0, 0.0), 1.0, Material((0.0, 0.0, 0.0)))
        shell = Sphere((0.0, 0.0, 0.0), 50.0, Material((255.0, 255.0, 255.0), emissive=True))
        scene = Scene.of(black, shell)

        r, g, b = trace_path_sample(((0.0, 0.0, 5.0), (0.0, 0.0, -1.0)), scene, 4)
        assert (r, g, b) == (0.0, 0.0, 0.0)

    def test_radiance_non_negative_and_finite(self):
        """Test many paths through the default scene give finite, non-negative radiance."""
        from spherepath.core.integrator import trace_path_sample
        from spherepath.scene.presets import create_default_camera, create_default_scene

        scene = create_default_scene()
        camera = create_default_camera()
        for sx in np.linspace(0.05, 0.95, 6):
            for sy in np.linspace(0.05, 0.95, 6):
                ray = camera.get_ray(sx, sy, 4.0 / 3.0)
                for c in trace_path_sample(ray, scene, 4):
                    assert c >= 0.0
                    assert math.isfinite(c)


class TestRenderTile:
    """Tests for render_tile()."""

    def test_counts_and_shapes(self, red_sphere_scene, front_camera):
        """Test every pixel of the tile gets samples_per_frame more samples."""
        from spherepath.core.integrator import render_tile
        from spherepath.render.tiles import Tile

        job = make_job(
            red_sphere_scene, front_camera, width=10, height=8, tile=Tile(2, 6), samples=3
        )
        result = render_tile(job)

        assert result.sums.shape == (4, 10, 3)
        assert result.counts.shape == (4, 10)
        assert result.colors.shape == (4, 10)
        assert (result.counts == 3).all()
        assert result.tile == job.tile
        assert result.generation == job.generation
        assert result.processing_time >= 0.0

    def test_sums_accumulate_across_calls(self, red_sphere_scene, front_camera):
        """Test feeding a result back in keeps adding samples."""
        from spherepath.core.integrator import render_tile

        job = make_job(red_sphere_scene, front_camera, samples=2)
        first = render_tile(job)
        second = render_tile(make_job(red_sphere_scene, front_camera, samples=2, sums=first.sums))

        # counts restart from the job's own counts, sums from the job's sums
        assert (second.counts == 2).all()
        assert (second.sums >= first.sums - 1e-12).all()

    def test_uniform_emitter_converges_to_exact_color(self):
        """Test an emitter filling the view displays exactly its radiance."""
        from spherepath.camera.orbit import Camera
        from spherepath.core.accumulation import unpack_rgba
        from spherepath.core.integrator import render_tile
        from spherepath.scene.model import Material, Scene, Sphere

        # Camera inside an emissive shell: every ray hits it
        shell = Sphere((0.0, 0.0, 0.0), 100.0, Material((127.5, 255.0, 0.0), emissive=True))
        scene = Scene.of(shell)
        camera = Camera(position=(0.0, 0.0, 5.0), look_at=(0.0, 0.0, 0.0))

        result = render_tile(make_job(scene, camera, width=6, height=4, samples=5))

        np.testing.assert_allclose(result.sums[..., 0], 5 * 0.5)
        np.testing.assert_allclose(result.sums[..., 1], 5 * 1.0)
        np.testing.assert_allclose(result.sums[..., 2], 0.0)
        assert unpack_rgba(result.colors[0, 0]) == (127, 255, 0, 255)

    def test_red_sphere_center_pixel_display(self, red_sphere_scene, front_camera):
        """Test the center pixel of a red sphere displays about (73, 0, 0)."""
        from spherepath.core.accumulation import unpack_rgba
        from spherepath.core.integrator import render_tile

        width = height = 33
        job = make_job(red_sphere_scene, front_camera, width=width, height=height, max_bounces=1)
        result = render_tile(job)

        r, g, b, a = unpack_rgba(result.colors[height // 2, width // 2])
        expected = math.floor(RED_SPHERE_RADIANCE * 255.0)
        # Jitter tilts the normal slightly off axis
        assert abs(r - expected) <= 3
        assert g == 0 and b == 0
        assert a == 255

    def test_background_pixels_black(self, red_sphere_scene, front_camera):
        """Test corner pixels that see nothing stay black."""
        from spherepath.core.accumulation import unpack_rgba
        from spherepath.core.integrator import render_tile

        result = render_tile(make_job(red_sphere_scene, front_camera, width=16, height=16))

        assert unpack_rgba(result.colors[0, 0]) == (0, 0, 0, 255)
        assert (result.sums[0, 0] == 0.0).all()
