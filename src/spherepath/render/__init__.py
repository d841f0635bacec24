"""Tile scheduling and the worker pool.

Components:
    tiles: Tile partitioning and the per-pass WorkQueue
    messages: Picklable messages between coordinator and workers
    coordinator: Single-threaded scheduling state machine
    pool: Multiprocessing and inline worker pools
    worker: Worker process entry point

Only tiles and messages are imported here; coordinator and pool depend on
the accumulation buffer, which itself depends on tiles.
"""

from .messages import TileJob, TileResult, WorkerFailure, WorkRequest
from .tiles import Tile, WorkQueue, partition_rows

__all__ = [
    "Tile",
    "WorkQueue",
    "partition_rows",
    "TileJob",
    "TileResult",
    "WorkRequest",
    "WorkerFailure",
]
