"""Progressive renderer: the public face of the tile rendering pipeline.

ProgressiveRenderer wires a Coordinator to a worker pool and exposes the
inbound controls (camera, scene, resolution, sampling), the outbound display
buffer and a pump loop that moves events between the two. Nothing happens in
the background: the owner calls pump() regularly (e.g. once per UI frame) and
every state change happens on that thread.

Passes refine the image without end. Every completed pass adds
samples_per_frame samples to every pixel; a camera, scene or resolution
change throws the accumulated image away and starts over.

Example:
    >>> from spherepath.config import RenderConfig
    >>> from spherepath.core.progressive import ProgressiveRenderer
    >>>
    >>> with ProgressiveRenderer(RenderConfig(width=160, height=120)) as renderer:
    ...     renderer.render_passes(4)
    ...     pixels = renderer.display_buffer  # flat uint32 RGBA words
    ...     renderer.camera_orbit(elevation=20.0, azimuth=45.0, radius=8.0)
    ...     renderer.pump(timeout=0.05)
"""

import logging
import time
from collections.abc import Iterable

import numpy as np
import numpy.typing as npt

from spherepath.camera.orbit import Camera, CameraBasis
from spherepath.config import RenderConfig
from spherepath.render.coordinator import Coordinator, RendererState
from spherepath.render.messages import TileResult, WorkerFailure, WorkRequest
from spherepath.render.pool import InlineWorkerPool, WorkerPool
from spherepath.scene.model import Scene, Sphere
from spherepath.scene.presets import create_default_camera, create_default_scene

logger = logging.getLogger(__name__)


class ProgressiveRenderer:
    """A progressive renderer that keeps refining until its inputs change.

    Attributes:
        config: The configuration the renderer was created with.
        width: Image width in pixels.
        height: Image height in pixels.
    """

    def __init__(
        self,
        config: RenderConfig | None = None,
        camera: Camera | CameraBasis | None = None,
        scene: Scene | Iterable[Sphere] | None = None,
        pool=None,
    ) -> None:
        """Initialize the renderer. No workers are started until start().

        Args:
            config: Render configuration. Defaults to RenderConfig().
            camera: Initial camera. Defaults to the preset camera.
            scene: Initial scene. Defaults to the preset scene.
            pool: Worker pool to use instead of the one implied by
                config.worker_count.

        Raises:
            InvalidConfiguration: If the configuration is invalid.
        """
        if config is None:
            config = RenderConfig()
        config.validate()
        self.config = config

        # Camera mutations after this point only reach the renderer via set_camera()
        self._camera = camera if camera is not None else create_default_camera()
        state = RendererState.create(
            width=config.width,
            height=config.height,
            camera=self._camera,
            scene=scene if scene is not None else create_default_scene(),
            tile_height=config.tile_height,
            samples_per_frame=config.samples_per_frame,
            max_bounces=config.max_bounces,
        )
        self._coordinator = Coordinator(state)
        self._pool = pool if pool is not None else self._create_pool(config)
        self._started = False
        self._closed = False
        self._consecutive_failures = 0

    @staticmethod
    def _create_pool(config: RenderConfig):
        worker_count = config.resolved_worker_count()
        if worker_count == 0:
            return InlineWorkerPool(seed=config.seed)
        return WorkerPool(worker_count, seed=config.seed)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self._coordinator.state.width

    @property
    def height(self) -> int:
        return self._coordinator.state.height

    @property
    def camera(self) -> CameraBasis:
        """Snapshot of the camera used for new tiles."""
        return self._coordinator.state.camera

    @property
    def scene(self) -> Scene:
        return self._coordinator.state.scene

    @property
    def samples_per_frame(self) -> int:
        return self._coordinator.state.samples_per_frame

    @property
    def max_bounces(self) -> int:
        return self._coordinator.state.max_bounces

    @property
    def generation(self) -> int:
        return self._coordinator.generation

    @property
    def passes_completed(self) -> int:
        """Full passes merged since the last camera/scene/resolution change."""
        return self._coordinator.passes_completed

    @property
    def display_buffer(self) -> npt.NDArray[np.uint32]:
        """Flat (width * height,) array of packed RGBA display colors.

        Pixel (x, y) is at index y * width + x. The array is a live view:
        its contents change as pump() merges tiles.
        """
        return self._coordinator.state.buffer.display_buffer

    @property
    def coordinator(self) -> Coordinator:
        return self._coordinator

    @property
    def started(self) -> bool:
        return self._started

    def is_pass_complete(self) -> bool:
        """Whether a full pass has been merged since the last reset."""
        return self._coordinator.is_pass_complete()

    def to_rgba8(self) -> npt.NDArray[np.uint8]:
        """Get the display colors as a (height, width, 4) uint8 image."""
        return self._coordinator.state.buffer.to_rgba8()

    def stats(self) -> dict:
        """Get a snapshot of renderer counters."""
        stats = self._coordinator.stats()
        stats["alive_workers"] = self._pool.alive_count if self._started else 0
        stats["started"] = self._started
        return stats

    # -------------------------------------------------------------------------
    # Inbound controls
    # -------------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("ProgressiveRenderer has been shut down")

    def set_camera(self, camera: Camera | CameraBasis) -> None:
        """Render from a new camera, discarding the accumulated image."""
        self._check_open()
        if isinstance(camera, Camera):
            self._camera = camera
        self._coordinator.set_camera(camera)

    def camera_orbit(self, elevation: float, azimuth: float, radius: float) -> None:
        """Move the current camera on its orbit and render from there.

        Raises:
            InvalidConfiguration: If radius is not positive.
            TypeError: If the renderer was given a CameraBasis instead of a Camera.
        """
        self._check_open()
        if not isinstance(self._camera, Camera):
            raise TypeError("camera_orbit() needs a Camera, not a CameraBasis snapshot")
        self._camera.orbit(elevation, azimuth, radius)
        self._coordinator.set_camera(self._camera)

    def set_scene(self, scene: Scene | Iterable[Sphere]) -> None:
        """Render a new scene, discarding the accumulated image."""
        self._check_open()
        self._coordinator.set_scene(scene)

    def set_resolution(self, width: int, height: int) -> None:
        """Change the frame size, discarding the accumulated image."""
        self._check_open()
        self._coordinator.set_resolution(width, height)

    def set_samples_per_frame(self, samples: int) -> None:
        """Change samples per pixel per pass, from the next assigned tile on."""
        self._check_open()
        self._coordinator.set_samples_per_frame(samples)

    def set_max_bounces(self, max_bounces: int) -> None:
        """Change the maximum path length, from the next assigned tile on."""
        self._check_open()
        self._coordinator.set_max_bounces(max_bounces)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the worker pool. Called implicitly by pump()."""
        self._check_open()
        if self._started:
            return
        for worker_id in self._pool.start():
            self._coordinator.register_worker(worker_id)
        self._started = True
        logger.info(
            "Renderer started: %dx%d, %d workers, %d spp/pass, %d bounces",
            self.width,
            self.height,
            len(self._pool.worker_ids),
            self.samples_per_frame,
            self.max_bounces,
        )

    def pump(self, timeout: float | None = None) -> int:
        """Process worker events and hand out tiles.

        Args:
            timeout: Seconds to wait for the first event. Defaults to
                config.poll_interval.

        Returns:
            Number of events processed.

        Raises:
            RuntimeError: If the renderer is shut down, every worker has
                failed and respawning is disabled, or config.max_consecutive_failures
                workers failed in a row without a tile being merged.
        """
        self._check_open()
        if not self._started:
            self.start()
        if timeout is None:
            timeout = self.config.poll_interval

        events = self._pool.poll(timeout)
        events.extend(self._pool.reap_dead_workers())

        for event in events:
            if isinstance(event, WorkRequest):
                job = self._coordinator.on_worker_requests_work(event.worker_id)
                if job is not None:
                    self._pool.send(job)
            elif isinstance(event, TileResult):
                if self._coordinator.on_worker_returns_result(event):
                    self._consecutive_failures = 0
            elif isinstance(event, WorkerFailure):
                self._handle_failure(event)
            else:
                logger.warning("Ignoring unknown worker event %r", event)

        for job in self._coordinator.dispatch_waiting():
            self._pool.send(job)

        if not self._coordinator.active_workers:
            raise RuntimeError("All render workers have failed")

        return len(events)

    def _handle_failure(self, failure: WorkerFailure) -> None:
        if not self._coordinator.on_worker_failure(failure):
            return
        self._consecutive_failures += 1
        gave_up = self._consecutive_failures >= self.config.max_consecutive_failures

        if self.config.respawn_failed_workers and not gave_up:
            new_id = self._pool.respawn(failure.worker_id)
            self._coordinator.register_worker(new_id)
            logger.warning("Replaced failed worker %d with worker %d", failure.worker_id, new_id)
        else:
            self._pool.retire(failure.worker_id)
            logger.warning("Retired failed worker %d", failure.worker_id)
        self._coordinator.forget_worker(failure.worker_id)

        if gave_up:
            lines = failure.error.strip().splitlines()
            raise RuntimeError(
                f"{self._consecutive_failures} worker failures in a row without a merged "
                f"tile; last error: {lines[-1] if lines else 'unknown'}"
            )

    def render_passes(self, num_passes: int = 1, timeout: float | None = None) -> int:
        """Pump until num_passes more full passes have been merged.

        Args:
            num_passes: Number of additional passes to wait for.
            timeout: Overall time limit in seconds, or None to wait forever.

        Returns:
            passes_completed after the wait.

        Raises:
            TimeoutError: If the passes did not complete in time.
        """
        target = self.passes_completed + num_passes
        deadline = None if timeout is None else time.monotonic() + timeout

        while self.passes_completed < target:
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(
                    f"Rendered {self.passes_completed} of {target} passes in {timeout}s"
                )
            self.pump()

        return self.passes_completed

    def shutdown(self) -> None:
        """Stop the workers. The renderer cannot be used afterwards."""
        if self._closed:
            return
        self._closed = True
        if self._started:
            self._pool.shutdown()
        logger.info(
            "Renderer shut down after %d passes (%d stale tiles dropped)",
            self._coordinator.total_passes,
            self._coordinator.stale_results,
        )

    def __enter__(self) -> "ProgressiveRenderer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"generation={self.generation}, passes={self.passes_completed})"
        )
