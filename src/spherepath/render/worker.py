"""Worker process entry point.

Each worker owns its own Taichi runtime, seeded uniquely, and renders one
TileJob at a time. The protocol with the pool is:

    worker -> events: WorkRequest on startup and after every result
    pool -> jobs:     TileJob, or None to shut down
    worker -> events: TileResult when a job is done
    worker -> events: WorkerFailure if anything raises; the worker then exits

This module is the target of multiprocessing.Process, so it only imports what
the render path needs.
"""

import logging
import traceback

from spherepath.logging_config import setup_logging
from spherepath.render.messages import TileJob, WorkerFailure, WorkRequest

logger = logging.getLogger(__name__)


def worker_main(worker_id: int, job_queue, event_queue, seed: int, log_level=None) -> None:
    """Main loop for a worker process.

    Args:
        worker_id: Id reported in every message.
        job_queue: Queue this worker receives TileJobs (or None) from.
        event_queue: Queue shared by all workers for results and requests.
        seed: Seed for this worker's random number generator.
        log_level: Logging level for the worker process.
    """
    setup_logging(log_level)
    jobs_processed = 0

    try:
        # Imported here so a broken Taichi install is reported as a failure
        from spherepath.core.integrator import init_taichi, render_tile

        init_taichi(seed=seed, num_threads=1)
        logger.debug("Worker %d started (seed=%d)", worker_id, seed)
        event_queue.put(WorkRequest(worker_id))

        while True:
            job: TileJob | None = job_queue.get()
            if job is None:
                break
            result = render_tile(job)
            event_queue.put(result)
            jobs_processed += 1
            event_queue.put(WorkRequest(worker_id))

    except Exception as e:
        logger.error("Worker %d failed: %s", worker_id, e)
        event_queue.put(
            WorkerFailure(worker_id, f"{type(e).__name__}: {e}\n{traceback.format_exc()}")
        )

    finally:
        logger.debug("Worker %d shutting down (processed %d jobs)", worker_id, jobs_processed)
