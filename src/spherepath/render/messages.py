"""Messages exchanged between the coordinator and workers.

All types must be picklable: they cross process boundaries through
multiprocessing queues. Jobs carry the camera and scene by value, so a worker
never observes later edits, and the tile's accumulation rows, which the
coordinator does not touch again until the matching TileResult arrives.
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from spherepath.camera.orbit import CameraBasis
from spherepath.render.tiles import Tile
from spherepath.scene.model import SceneArrays


@dataclass
class TileJob:
    """A tile to render for one pass.

    Attributes:
        worker_id: Worker the job was assigned to.
        generation: Generation the job was issued under.
        tile_id: Index of the tile in the work queue.
        tile: Row range of the tile.
        width: Frame width in pixels.
        height: Frame height in pixels.
        camera: Camera snapshot.
        scene: Packed scene arrays.
        samples_per_frame: Samples to add to each pixel.
        max_bounces: Maximum path length.
        sums: (rows, width, 3) accumulated radiance of the tile.
        counts: (rows, width) accumulated sample counts of the tile.
    """

    worker_id: int
    generation: int
    tile_id: int
    tile: Tile
    width: int
    height: int
    camera: CameraBasis
    scene: SceneArrays
    samples_per_frame: int
    max_bounces: int
    sums: npt.NDArray[np.float64]
    counts: npt.NDArray[np.uint32]


@dataclass
class TileResult:
    """A rendered tile returned by a worker.

    Attributes:
        worker_id: Worker that rendered the tile.
        generation: Generation copied from the TileJob.
        tile_id: Index of the tile in the work queue.
        tile: Row range of the tile.
        sums: Updated (rows, width, 3) radiance sums.
        counts: Updated (rows, width) sample counts.
        colors: (rows, width) packed display colors.
        processing_time: Seconds spent rendering.
    """

    worker_id: int
    generation: int
    tile_id: int
    tile: Tile
    sums: npt.NDArray[np.float64]
    counts: npt.NDArray[np.uint32]
    colors: npt.NDArray[np.uint32]
    processing_time: float = 0.0


@dataclass(frozen=True)
class WorkRequest:
    """A worker is ready for its next tile."""

    worker_id: int


@dataclass(frozen=True)
class WorkerFailure:
    """A worker crashed or raised while rendering.

    Attributes:
        worker_id: The failed worker.
        error: Description of the failure (traceback text when available).
    """

    worker_id: int
    error: str
