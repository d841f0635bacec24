"""Pytest configuration for spherepath tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts. Renderers created in
    tests therefore use InlineWorkerPool(initialize_taichi=False).
    """
    ti.init(arch=ti.cpu, default_fp=ti.f64, random_seed=42)
    yield


@pytest.fixture
def inline_pool():
    """An in-process worker pool that reuses the session's Taichi runtime."""
    from spherepath.render.pool import InlineWorkerPool

    return InlineWorkerPool(seed=42, initialize_taichi=False)


@pytest.fixture
def red_sphere_scene():
    """A single red diffuse unit sphere at the origin."""
    from spherepath.scene.presets import create_single_sphere_scene

    return create_single_sphere_scene(color=(255.0, 0.0, 0.0))


@pytest.fixture
def front_camera():
    """Camera on the +Z axis looking at the origin."""
    from spherepath.camera.orbit import Camera

    return Camera(position=(0.0, 0.0, 5.0), look_at=(0.0, 0.0, 0.0), up=(0.0, 1.0, 0.0), fov=90.0)
