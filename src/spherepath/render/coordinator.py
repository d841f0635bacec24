"""Single-threaded coordinator for tile-based progressive rendering.

The coordinator owns all mutable render state (camera and scene snapshots,
accumulation buffer, work queue and generation counter) and reacts to worker
messages. It never blocks and never talks to processes itself; the worker
pool feeds it events and sends out the jobs it returns.

Per-worker state machine:

    IDLE -> AWAITING_WORK -> RENDERING -> AWAITING_WORK -> ...
                                  \\-> RETIRED (on failure)

Retired workers are dropped with forget_worker() once the pool has stopped or
replaced them.

Cancellation is cooperative. A camera, scene or resolution change bumps the
generation and clears the accumulation state, but in-flight tiles are left
running; their results carry the old generation and are dropped on arrival.
At most one tile render per worker is wasted per change. Under very rapid
camera motion every worker may be busy with stale tiles for a moment, which
delays the first fresh tiles by up to one tile render.

Example:
    >>> from spherepath.camera.orbit import Camera
    >>> from spherepath.render.coordinator import Coordinator, RendererState
    >>> from spherepath.scene.presets import create_default_scene
    >>> state = RendererState.create(64, 48, Camera(), create_default_scene())
    >>> coordinator = Coordinator(state)
    >>> coordinator.register_worker(0)
    >>> job = coordinator.on_worker_requests_work(0)
    >>> job.tile_id
    0
"""

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from spherepath.camera.orbit import Camera, CameraBasis
from spherepath.config import check_positive_int
from spherepath.core.accumulation import AccumulationBuffer
from spherepath.render.messages import TileJob, TileResult, WorkerFailure
from spherepath.render.tiles import Tile, WorkQueue
from spherepath.scene.model import Scene, SceneArrays, Sphere

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Lifecycle state of a worker as seen by the coordinator."""

    IDLE = "idle"
    AWAITING_WORK = "awaiting_work"
    RENDERING = "rendering"
    RETIRED = "retired"


@dataclass(frozen=True)
class Assignment:
    """The tile a worker is currently rendering."""

    generation: int
    tile_id: int
    tile: Tile


@dataclass
class RendererState:
    """All mutable render state, owned by one Coordinator.

    Attributes:
        width: Frame width in pixels.
        height: Frame height in pixels.
        tile_height: Scanlines per tile.
        camera: Camera snapshot used for new jobs.
        scene: Scene used for new jobs.
        scene_arrays: Packed form of scene.
        samples_per_frame: Samples per pixel per pass.
        max_bounces: Maximum path length.
        generation: Current camera/scene/resolution epoch.
        buffer: Global accumulation buffer.
        queue: Work queue of the current pass.
    """

    width: int
    height: int
    tile_height: int
    camera: CameraBasis
    scene: Scene
    scene_arrays: SceneArrays
    samples_per_frame: int
    max_bounces: int
    generation: int
    buffer: AccumulationBuffer
    queue: WorkQueue

    @classmethod
    def create(
        cls,
        width: int,
        height: int,
        camera: Camera | CameraBasis,
        scene: Scene | Iterable[Sphere],
        tile_height: int = 16,
        samples_per_frame: int = 1,
        max_bounces: int = 4,
    ) -> "RendererState":
        """Build a fresh state at generation 0.

        Raises:
            InvalidConfiguration: If a size or count is out of range.
        """
        for name, value in (
            ("width", width),
            ("height", height),
            ("tile_height", tile_height),
            ("samples_per_frame", samples_per_frame),
            ("max_bounces", max_bounces),
        ):
            check_positive_int(name, value)

        scene = Scene.coerce(scene)
        return cls(
            width=width,
            height=height,
            tile_height=tile_height,
            camera=_snapshot(camera),
            scene=scene,
            scene_arrays=scene.to_arrays(),
            samples_per_frame=samples_per_frame,
            max_bounces=max_bounces,
            generation=0,
            buffer=AccumulationBuffer(width, height),
            queue=WorkQueue(height, tile_height),
        )


class Coordinator:
    """Routes tiles to workers and merges their results.

    Attributes:
        state: The render state this coordinator owns.
        passes_completed: Full passes merged in the current generation.
        total_passes: Full passes merged since creation.
        stale_results: Results dropped for carrying an old generation.
        render_seconds: Worker time spent on merged tiles.
    """

    def __init__(self, state: RendererState) -> None:
        self.state = state
        self.passes_completed = 0
        self.total_passes = 0
        self.stale_results = 0
        self.render_seconds = 0.0
        self._workers: dict[int, WorkerState] = {}
        self._assignments: dict[int, Assignment] = {}
        self._waiting: deque[int] = deque()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def generation(self) -> int:
        return self.state.generation

    def worker_state(self, worker_id: int) -> WorkerState | None:
        """Get the state of a worker, or None if it is unknown or forgotten."""
        return self._workers.get(worker_id)

    def assignment(self, worker_id: int) -> Assignment | None:
        return self._assignments.get(worker_id)

    @property
    def active_workers(self) -> list[int]:
        """Workers that have not been retired."""
        return [w for w, s in self._workers.items() if s is not WorkerState.RETIRED]

    @property
    def waiting_workers(self) -> list[int]:
        return list(self._waiting)

    def is_pass_complete(self) -> bool:
        """Whether the current generation has merged at least one full pass.

        The queue is reset the moment a pass completes, so this reports
        whether the displayed frame covers every tile rather than the
        transient state of the queue.
        """
        return self.passes_completed > 0

    def stats(self) -> dict:
        """Get a snapshot of coordinator counters."""
        return {
            "generation": self.state.generation,
            "passes_completed": self.passes_completed,
            "total_passes": self.total_passes,
            "stale_results": self.stale_results,
            "render_seconds": self.render_seconds,
            "tiles": len(self.state.queue),
            "tiles_completed": len(self.state.queue.completed),
            "workers": {w: s.value for w, s in self._workers.items()},
        }

    # -------------------------------------------------------------------------
    # Configuration changes
    # -------------------------------------------------------------------------

    def set_camera(self, camera: Camera | CameraBasis) -> None:
        """Use a new camera from the next job on, starting a new generation."""
        self.state.camera = _snapshot(camera)
        self._new_generation("camera")

    def set_scene(self, scene: Scene | Iterable[Sphere]) -> None:
        """Use a new scene from the next job on, starting a new generation.

        Raises:
            InvalidConfiguration: If an entry is not a Sphere.
        """
        scene = Scene.coerce(scene)
        self.state.scene = scene
        self.state.scene_arrays = scene.to_arrays()
        self._new_generation("scene")

    def set_resolution(self, width: int, height: int) -> None:
        """Reallocate buffers and tiles for a new frame size.

        Raises:
            InvalidConfiguration: If width or height is below 1.
        """
        check_positive_int("width", width)
        check_positive_int("height", height)
        state = self.state
        state.width = width
        state.height = height
        state.buffer.resize(width, height)
        state.queue = WorkQueue(height, state.tile_height)
        logger.info("Resolution set to %dx%d (%d tiles)", width, height, len(state.queue))
        self._new_generation("resolution")

    def set_samples_per_frame(self, samples: int) -> None:
        """Change samples per pixel per pass for tiles assigned from now on."""
        check_positive_int("samples_per_frame", samples)
        self.state.samples_per_frame = samples

    def set_max_bounces(self, max_bounces: int) -> None:
        """Change the maximum path length for tiles assigned from now on."""
        check_positive_int("max_bounces", max_bounces)
        self.state.max_bounces = max_bounces

    def _new_generation(self, reason: str) -> None:
        state = self.state
        state.generation += 1
        state.buffer.reset()
        state.queue.reset()
        self.passes_completed = 0
        logger.debug("Generation %d started (%s changed)", state.generation, reason)

    # -------------------------------------------------------------------------
    # Worker events
    # -------------------------------------------------------------------------

    def register_worker(self, worker_id: int) -> None:
        """Add a worker, or bring a retired worker id back as a fresh worker."""
        self._workers[worker_id] = WorkerState.IDLE
        self._assignments.pop(worker_id, None)

    def on_worker_requests_work(self, worker_id: int) -> TileJob | None:
        """Assign the next tile to a worker.

        Returns:
            The TileJob to send, or None if the queue is exhausted. In that
            case the worker is parked until dispatch_waiting() finds work.
        """
        state = self._workers.get(worker_id)
        if state is None or state is WorkerState.RETIRED:
            logger.debug("Ignoring work request from unknown or retired worker %d", worker_id)
            return None
        if state is WorkerState.RENDERING:
            logger.warning(
                "Worker %d requested work while rendering %s",
                worker_id,
                self._assignments.get(worker_id),
            )
            return None

        job = self._assign(worker_id)
        if job is None:
            self._workers[worker_id] = WorkerState.AWAITING_WORK
            if worker_id not in self._waiting:
                self._waiting.append(worker_id)
        return job

    def dispatch_waiting(self) -> list[TileJob]:
        """Hand out tiles to parked workers while the queue has any."""
        jobs = []
        while self._waiting and self.state.queue.has_next():
            worker_id = self._waiting.popleft()
            job = self._assign(worker_id)
            if job is not None:
                jobs.append(job)
        return jobs

    def on_worker_returns_result(self, result: TileResult) -> bool:
        """Merge a finished tile.

        Returns:
            True if the result was merged, False if it was dropped.
        """
        assignment = self._assignments.get(result.worker_id)
        if (
            assignment is not None
            and assignment.generation == result.generation
            and assignment.tile_id == result.tile_id
        ):
            del self._assignments[result.worker_id]
            if self._workers.get(result.worker_id) is WorkerState.RENDERING:
                self._workers[result.worker_id] = WorkerState.AWAITING_WORK
        else:
            assignment = None

        state = self.state
        if result.generation != state.generation:
            self.stale_results += 1
            logger.debug(
                "Dropped stale tile %d from worker %d (generation %d, current %d)",
                result.tile_id,
                result.worker_id,
                result.generation,
                state.generation,
            )
            return False

        if assignment is None or not state.buffer.is_checked_out(result.tile):
            logger.warning(
                "Dropped unexpected tile %d from worker %d (generation %d)",
                result.tile_id,
                result.worker_id,
                result.generation,
            )
            return False

        state.buffer.checkin(result.tile, result.sums, result.counts, result.colors)
        state.queue.mark_complete(result.tile_id)
        self.render_seconds += result.processing_time
        logger.debug("Merged tile %d from worker %d", result.tile_id, result.worker_id)

        if state.queue.is_pass_complete():
            self.passes_completed += 1
            self.total_passes += 1
            state.queue.reset()
            logger.debug(
                "Pass %d of generation %d complete", self.passes_completed, state.generation
            )
        return True

    def on_worker_failure(self, failure: WorkerFailure) -> bool:
        """Retire a failed worker and put its tile back at the front of the queue.

        Returns:
            True if the failure was handled, False if the worker was already
            retired or is unknown.
        """
        worker_id = failure.worker_id
        state = self._workers.get(worker_id)
        if state is None or state is WorkerState.RETIRED:
            logger.debug("Ignoring repeated failure of worker %d", worker_id)
            return False

        assignment = self._assignments.pop(worker_id, None)
        self._workers[worker_id] = WorkerState.RETIRED
        if worker_id in self._waiting:
            self._waiting.remove(worker_id)

        if assignment is not None and assignment.generation == self.state.generation:
            self.state.buffer.release(assignment.tile)
            self.state.queue.requeue_front(assignment.tile_id)
            logger.warning(
                "Worker %d failed; tile %d returned to the queue: %s",
                worker_id,
                assignment.tile_id,
                failure.error.strip().splitlines()[-1] if failure.error.strip() else "",
            )
        else:
            logger.warning("Worker %d failed while holding no current tile", worker_id)
        return True

    def forget_worker(self, worker_id: int) -> None:
        """Drop a retired worker from the bookkeeping.

        Later events carrying its id are treated like those of any unknown
        worker and ignored.
        """
        if self._workers.get(worker_id) is WorkerState.RETIRED:
            del self._workers[worker_id]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _assign(self, worker_id: int) -> TileJob | None:
        state = self.state
        entry = state.queue.next()
        if entry is None:
            return None

        tile_id, tile = entry
        tile_slice = state.buffer.checkout(tile)
        self._assignments[worker_id] = Assignment(state.generation, tile_id, tile)
        self._workers[worker_id] = WorkerState.RENDERING
        logger.debug(
            "Assigned tile %d (rows %d-%d) to worker %d, generation %d",
            tile_id,
            tile.start_row,
            tile.end_row,
            worker_id,
            state.generation,
        )
        return TileJob(
            worker_id=worker_id,
            generation=state.generation,
            tile_id=tile_id,
            tile=tile,
            width=state.width,
            height=state.height,
            camera=state.camera,
            scene=state.scene_arrays,
            samples_per_frame=state.samples_per_frame,
            max_bounces=state.max_bounces,
            sums=tile_slice.sums,
            counts=tile_slice.counts,
        )


def _snapshot(camera: Camera | CameraBasis) -> CameraBasis:
    if isinstance(camera, CameraBasis):
        return camera
    return camera.snapshot()
