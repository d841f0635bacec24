"""Interactive progressive path tracer for sphere scenes.

This package renders scenes made of spheres with a Taichi path tracing kernel,
splitting each frame into horizontal tiles that a pool of worker processes
refines pass after pass. Every camera, scene or resolution change starts a new
generation, and results computed for an older generation are dropped on
arrival.

Subpackages:
    core: Ray and vector utilities, path tracing kernel, accumulation buffer,
        and the ProgressiveRenderer facade
    geometry: Ray-sphere intersection
    scene: Scene model, packed kernel arrays, closest-hit queries, presets
    camera: Orbit/look-at camera and the shared ray generation function
    render: Tile work queue, worker messages, coordinator and worker pools
"""

__version__ = "0.1.0"
