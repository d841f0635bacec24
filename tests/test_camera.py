"""Unit tests for the orbit camera.

Tests cover:
- Orbit placement formula, clamping and wrapping
- Orbit parameters derived from an explicit position
- Orthonormal basis and degenerate fallbacks
- Primary ray generation through CameraBasis snapshots
- Validation of fov and orbit radius
"""

import math

import numpy as np
import pytest


def assert_vec_close(actual, expected, tol=1e-9):
    assert np.allclose(np.asarray(actual), np.asarray(expected), atol=tol), (
        f"{actual} != {expected}"
    )


class TestOrbit:
    """Tests for orbit placement."""

    def test_orbit_position_formula(self):
        """Test x = r cos(e) cos(a), y = r sin(e), z = r cos(e) sin(a) around look_at."""
        from spherepath.camera.orbit import Camera

        camera = Camera.from_orbit(elevation=30.0, azimuth=90.0, radius=10.0)

        e, a = math.radians(30.0), math.radians(90.0)
        expected = (
            10.0 * math.cos(e) * math.cos(a),
            10.0 * math.sin(e),
            10.0 * math.cos(e) * math.sin(a),
        )
        assert_vec_close(camera.position, expected)

    def test_orbit_is_relative_to_look_at(self):
        """Test the orbit is centered on the look-at point."""
        from spherepath.camera.orbit import Camera

        camera = Camera.from_orbit(elevation=0.0, azimuth=0.0, radius=2.0, look_at=(1.0, 1.0, 1.0))
        assert_vec_close(camera.position, (3.0, 1.0, 1.0))

    def test_elevation_clamped_and_azimuth_wrapped(self):
        """Test elevation is clamped to [-90, 90] and azimuth wrapped into [0, 360)."""
        from spherepath.camera.orbit import Camera

        camera = Camera()
        camera.orbit(elevation=120.0, azimuth=-90.0, radius=5.0)

        assert camera.elevation == 90.0
        assert camera.azimuth == 270.0
        assert_vec_close(camera.position, (0.0, 5.0, 0.0))

    def test_orbit_derived_from_position(self):
        """Test constructing at a position recovers elevation, azimuth and radius."""
        from spherepath.camera.orbit import Camera

        camera = Camera(position=(0.0, 2.5, 10.0))

        radius = math.sqrt(2.5**2 + 10.0**2)
        assert abs(camera.radius - radius) < 1e-9
        assert abs(camera.elevation - math.degrees(math.asin(2.5 / radius))) < 1e-9
        assert abs(camera.azimuth - 90.0) < 1e-9

        # Re-applying the derived orbit leaves the camera where it was
        camera.orbit(camera.elevation, camera.azimuth, camera.radius)
        assert_vec_close(camera.position, (0.0, 2.5, 10.0))

    def test_setters_rederive_orbit(self):
        """Test set_position and set_look_at keep the orbit in sync with the position."""
        from spherepath.camera.orbit import Camera

        camera = Camera()
        camera.set_position((0.0, 0.0, 4.0))
        assert abs(camera.radius - 4.0) < 1e-9
        assert abs(camera.azimuth - 90.0) < 1e-9

        camera.set_look_at((0.0, 0.0, 1.0))
        assert abs(camera.radius - 3.0) < 1e-9
        assert_vec_close(camera.forward, (0.0, 0.0, -1.0))

    def test_position_at_look_at_falls_back_to_unit_radius(self):
        """Test a camera sitting on its look-at point gets radius 1."""
        from spherepath.camera.orbit import Camera

        camera = Camera(position=(0.0, 0.0, 0.0), look_at=(0.0, 0.0, 0.0))
        assert camera.radius == 1.0

    @pytest.mark.parametrize("radius", [0.0, -1.0])
    def test_non_positive_radius_rejected(self, radius):
        """Test orbit radius must be positive."""
        from spherepath.camera.orbit import Camera
        from spherepath.errors import InvalidConfiguration

        camera = Camera()
        before = camera.position
        with pytest.raises(InvalidConfiguration):
            camera.orbit(10.0, 10.0, radius)
        assert camera.position == before

    @pytest.mark.parametrize("fov", [0.0, 180.0, -10.0, 200.0])
    def test_invalid_fov_rejected(self, fov):
        """Test fov must lie strictly between 0 and 180 degrees."""
        from spherepath.camera.orbit import Camera
        from spherepath.errors import InvalidConfiguration

        with pytest.raises(InvalidConfiguration):
            Camera(fov=fov)
        with pytest.raises(InvalidConfiguration):
            Camera().set_fov(fov)


class TestBasis:
    """Tests for the (forward, right, up) basis."""

    def test_basis_is_orthonormal(self):
        """Test the basis of an arbitrary camera is orthonormal."""
        from spherepath.camera.orbit import Camera

        camera = Camera(position=(3.0, 4.0, -2.0), look_at=(0.5, -1.0, 1.0))
        f, r, u = (np.array(v) for v in (camera.forward, camera.right, camera.up))

        for v in (f, r, u):
            assert abs(np.linalg.norm(v) - 1.0) < 1e-9
        assert abs(f @ r) < 1e-9
        assert abs(f @ u) < 1e-9
        assert abs(r @ u) < 1e-9

    def test_forward_points_at_look_at(self):
        """Test forward is the normalized direction to the look-at point."""
        from spherepath.camera.orbit import Camera

        camera = Camera(position=(0.0, 0.0, 5.0), look_at=(0.0, 0.0, 0.0))
        assert_vec_close(camera.forward, (0.0, 0.0, -1.0))
        assert_vec_close(camera.up, (0.0, 1.0, 0.0))

    def test_coincident_position_uses_default_forward(self):
        """Test position == look_at falls back to forward (0, 0, -1)."""
        from spherepath.camera.orbit import Camera

        camera = Camera(position=(1.0, 1.0, 1.0), look_at=(1.0, 1.0, 1.0))
        assert_vec_close(camera.forward, (0.0, 0.0, -1.0))

    def test_forward_parallel_to_up_uses_default_right(self):
        """Test looking straight down falls back to right (1, 0, 0)."""
        from spherepath.camera.orbit import Camera

        camera = Camera(position=(0.0, 5.0, 0.0), look_at=(0.0, 0.0, 0.0), up=(0.0, 1.0, 0.0))
        assert_vec_close(camera.forward, (0.0, -1.0, 0.0))
        assert_vec_close(camera.right, (1.0, 0.0, 0.0))
        assert not any(math.isnan(c) for c in camera.up)

    def test_degenerate_up_uses_default_up(self):
        """Test forward parallel to both up hint and fallback right gives up (0, 1, 0)."""
        from spherepath.camera.orbit import Camera

        camera = Camera(position=(5.0, 0.0, 0.0), look_at=(0.0, 0.0, 0.0), up=(1.0, 0.0, 0.0))
        assert_vec_close(camera.right, (1.0, 0.0, 0.0))
        assert_vec_close(camera.up, (0.0, 1.0, 0.0))


class TestRayGeneration:
    """Tests for primary ray generation."""

    def test_center_ray_is_forward(self):
        """Test the ray through the image center points along forward."""
        from spherepath.camera.orbit import Camera

        camera = Camera.from_orbit(elevation=20.0, azimuth=45.0, radius=7.0)
        ray = camera.get_ray(0.5, 0.5, aspect_ratio=16.0 / 9.0)

        assert_vec_close(ray.origin, camera.position)
        assert_vec_close(ray.direction, camera.forward)

    def test_corner_ray(self):
        """Test the top-left ray is right * u + up * v + forward on the viewport."""
        from spherepath.camera.orbit import Camera

        camera = Camera(position=(0.0, 0.0, 5.0), look_at=(0.0, 0.0, 0.0), fov=90.0)
        aspect = 2.0
        ray = camera.get_ray(0.0, 0.0, aspect_ratio=aspect)

        # fov 90: viewport height 2, width 4; top-left is u = -2, v = +1
        f, r, u = (np.array(v) for v in (camera.forward, camera.right, camera.up))
        assert_vec_close(ray.direction, r * -2.0 + u * 1.0 + f)

    def test_screen_y_grows_downward(self):
        """Test rays near the top of the screen point above forward."""
        from spherepath.camera.orbit import Camera

        camera = Camera(position=(0.0, 0.0, 5.0), look_at=(0.0, 0.0, 0.0))
        top = camera.get_ray(0.5, 0.1, 1.0)
        bottom = camera.get_ray(0.5, 0.9, 1.0)

        assert top.direction[1] > 0.0
        assert bottom.direction[1] < 0.0

    def test_snapshot_is_immutable(self):
        """Test moving a camera does not change an earlier snapshot."""
        from spherepath.camera.orbit import Camera

        camera = Camera()
        snapshot = camera.snapshot()
        camera.orbit(10.0, 200.0, 3.0)

        assert snapshot.origin != camera.position
        assert snapshot.to_array().shape == (4, 3)
        assert_vec_close(snapshot.to_array()[0], snapshot.origin)
        assert_vec_close(snapshot.to_array()[3], snapshot.forward)

    @pytest.mark.parametrize("fov", [0.0, 180.0, 200.0])
    def test_snapshot_with_invalid_fov_rejected(self, fov):
        """Test a CameraBasis cannot be built with fov outside (0, 180)."""
        import dataclasses

        from spherepath.camera.orbit import Camera, CameraBasis
        from spherepath.errors import InvalidConfiguration

        with pytest.raises(InvalidConfiguration):
            dataclasses.replace(Camera().snapshot(), fov=fov)
        with pytest.raises(InvalidConfiguration):
            CameraBasis(
                origin=(0.0, 0.0, 5.0),
                forward=(0.0, 0.0, -1.0),
                right=(1.0, 0.0, 0.0),
                up=(0.0, 1.0, 0.0),
                fov=fov,
            )
