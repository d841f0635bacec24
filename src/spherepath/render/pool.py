"""Worker pools that execute TileJobs.

WorkerPool runs tiles in separate processes. Each worker has a private job
queue; all workers report on one shared event queue (WorkRequest, TileResult
and WorkerFailure messages). The "spawn" start method is used everywhere so
every worker starts a clean interpreter with its own Taichi runtime.

InlineWorkerPool has the same interface but renders synchronously on the
calling thread. It is used for worker_count=0 and in tests.

A failed worker is never reused. respawn() starts a replacement under a new
worker id, so late messages from the old process can be told apart.
"""

import logging
import multiprocessing as mp
import os
import queue
import time
import traceback
from collections import deque
from dataclasses import dataclass

from spherepath.render.messages import TileJob, WorkerFailure, WorkRequest
from spherepath.render.worker import worker_main

logger = logging.getLogger(__name__)

# Seconds to wait for workers to exit before terminating them
SHUTDOWN_TIMEOUT = 2.0

# Taichi seeds are 32-bit
_SEED_MODULUS = 2**31


def derive_seed(base_seed: int | None, worker_id: int) -> int:
    """Get the random seed for a worker incarnation."""
    if base_seed is None:
        base_seed = os.getpid() * 7919 + int(time.time())
    return (base_seed + worker_id * 104729) % _SEED_MODULUS


@dataclass
class WorkerHandle:
    """A worker process and its private job queue."""

    worker_id: int
    seed: int
    process: mp.process.BaseProcess
    job_queue: object
    failed: bool = False
    retired_at: float | None = None


class WorkerPool:
    """Pool of worker processes rendering tiles.

    Args:
        worker_count: Number of processes to start.
        seed: Base random seed. Each worker gets a distinct derived seed.
        log_level: Log level name for the worker processes. Defaults to the
            effective level of the spherepath logger.
    """

    def __init__(self, worker_count: int, seed: int | None = None, log_level: str | None = None):
        if worker_count < 1:
            raise ValueError(f"WorkerPool needs at least one worker, got {worker_count}")
        self._worker_count = worker_count
        self._seed = seed
        self._log_level = log_level or logging.getLevelName(
            logging.getLogger("spherepath").getEffectiveLevel()
        )
        self._ctx = mp.get_context("spawn")
        self._event_queue = None
        self._workers: dict[int, WorkerHandle] = {}
        self._retiring: list[WorkerHandle] = []
        self._next_id = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def worker_ids(self) -> list[int]:
        """Ids of workers that have not failed or been retired."""
        return [w for w, h in self._workers.items() if not h.failed]

    @property
    def alive_count(self) -> int:
        return sum(1 for h in self._workers.values() if h.process.is_alive())

    def start(self) -> list[int]:
        """Spawn the worker processes.

        Returns:
            The ids of the new workers.
        """
        if self._running:
            logger.debug("Worker pool already running, ignoring start request")
            return self.worker_ids

        self._event_queue = self._ctx.Queue()
        self._running = True
        ids = [self._spawn() for _ in range(self._worker_count)]
        logger.info("Started %d worker processes", len(ids))
        return ids

    def _spawn(self) -> int:
        worker_id = self._next_id
        self._next_id += 1
        seed = derive_seed(self._seed, worker_id)
        job_queue = self._ctx.Queue()
        process = self._ctx.Process(
            target=worker_main,
            args=(worker_id, job_queue, self._event_queue, seed, self._log_level),
            name=f"spherepath-worker-{worker_id}",
            daemon=True,
        )
        process.start()
        self._workers[worker_id] = WorkerHandle(worker_id, seed, process, job_queue)
        logger.debug("Spawned worker %d (pid=%s, seed=%d)", worker_id, process.pid, seed)
        return worker_id

    def send(self, job: TileJob) -> None:
        """Queue a job on its worker's private job queue."""
        handle = self._workers.get(job.worker_id)
        if handle is None:
            raise KeyError(f"No worker with id {job.worker_id}")
        if handle.failed:
            # Its failure event is already on its way to the coordinator
            logger.debug("Not sending tile %d to failed worker %d", job.tile_id, job.worker_id)
            return
        handle.job_queue.put(job)

    def poll(self, timeout: float = 0.0) -> list:
        """Collect worker events.

        Waits up to timeout seconds for the first event, then drains whatever
        else is already queued without blocking.

        Returns:
            WorkRequest, TileResult and WorkerFailure messages in arrival order.
        """
        if not self._running:
            return []

        events = []
        try:
            if timeout > 0:
                events.append(self._event_queue.get(timeout=timeout))
            else:
                events.append(self._event_queue.get_nowait())
            while True:
                events.append(self._event_queue.get_nowait())
        except queue.Empty:
            pass

        return [event for event in events if self._accept(event)]

    def _accept(self, event) -> bool:
        if isinstance(event, WorkerFailure):
            handle = self._workers.get(event.worker_id)
            if handle is None or handle.failed:
                # Already reported by reap_dead_workers()
                return False
            handle.failed = True
        return True

    def reap_dead_workers(self) -> list[WorkerFailure]:
        """Report workers whose process exited without sending a failure."""
        self._collect_retired()
        failures = []
        for handle in self._workers.values():
            if handle.failed or handle.process.is_alive():
                continue
            handle.failed = True
            failures.append(
                WorkerFailure(
                    handle.worker_id,
                    f"Worker process exited unexpectedly (exit code {handle.process.exitcode})",
                )
            )
            logger.warning(
                "Worker %d died with exit code %s", handle.worker_id, handle.process.exitcode
            )
        return failures

    def retire(self, worker_id: int) -> None:
        """Stop a worker and forget about it.

        Never waits for the process. The worker is asked to exit and is
        reaped by later reap_dead_workers() calls; one that is still running
        SHUTDOWN_TIMEOUT seconds later is terminated.
        """
        handle = self._workers.pop(worker_id, None)
        if handle is None:
            return
        handle.failed = True
        handle.retired_at = time.monotonic()
        if handle.process.is_alive():
            handle.job_queue.put(None)
        self._retiring.append(handle)
        self._collect_retired()
        logger.debug("Retired worker %d", worker_id)

    def _collect_retired(self) -> None:
        pending = []
        for handle in self._retiring:
            if handle.process.is_alive():
                if time.monotonic() - handle.retired_at >= SHUTDOWN_TIMEOUT:
                    logger.warning("Force terminating retired worker %d", handle.worker_id)
                    handle.process.terminate()
                    handle.retired_at = time.monotonic()
                pending.append(handle)
                continue
            handle.process.join(timeout=0)
            handle.job_queue.close()
            handle.job_queue.cancel_join_thread()
        self._retiring = pending

    def respawn(self, worker_id: int) -> int:
        """Replace a failed worker with a fresh process.

        Returns:
            The id of the replacement worker.
        """
        self.retire(worker_id)
        new_id = self._spawn()
        logger.info("Respawned worker %d as worker %d", worker_id, new_id)
        return new_id

    def shutdown(self, timeout: float = SHUTDOWN_TIMEOUT) -> None:
        """Stop all workers, terminating any that do not exit in time."""
        if not self._running:
            return
        self._running = False

        for handle in self._workers.values():
            if handle.process.is_alive():
                handle.job_queue.put(None)

        # Retired workers that have not exited yet are stopped too
        handles = [*self._workers.values(), *self._retiring]

        # Keep draining events so workers blocked on a full pipe can exit
        deadline = time.time() + timeout
        while time.time() < deadline and any(h.process.is_alive() for h in handles):
            try:
                while True:
                    self._event_queue.get_nowait()
            except queue.Empty:
                pass
            time.sleep(0.01)

        for handle in handles:
            if handle.process.is_alive():
                logger.warning("Force terminating worker %d", handle.worker_id)
                handle.process.terminate()
            handle.process.join(timeout=0.5)
            handle.job_queue.close()
            handle.job_queue.cancel_join_thread()

        self._event_queue.close()
        self._event_queue.cancel_join_thread()
        self._event_queue = None
        self._workers.clear()
        self._retiring.clear()
        logger.info("Worker pool shut down")


class InlineWorkerPool:
    """Single in-process worker that renders each job as soon as it is sent.

    Args:
        seed: Random seed for the kernels.
        initialize_taichi: Call init_taichi() on start. Disable when Taichi
            has already been initialized by the caller.
    """

    def __init__(self, seed: int | None = None, initialize_taichi: bool = True):
        self._seed = seed
        self._initialize_taichi = initialize_taichi
        self._events: deque = deque()
        self._worker_id: int | None = None
        self._next_id = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def worker_ids(self) -> list[int]:
        return [] if self._worker_id is None else [self._worker_id]

    @property
    def alive_count(self) -> int:
        return len(self.worker_ids)

    def start(self) -> list[int]:
        if self._running:
            return self.worker_ids

        from spherepath.core.integrator import init_taichi

        if self._initialize_taichi:
            init_taichi(seed=derive_seed(self._seed, 0))
        self._running = True
        return [self._spawn()]

    def _spawn(self) -> int:
        self._worker_id = self._next_id
        self._next_id += 1
        self._events.append(WorkRequest(self._worker_id))
        return self._worker_id

    def send(self, job: TileJob) -> None:
        from spherepath.core.integrator import render_tile

        if job.worker_id != self._worker_id:
            raise KeyError(f"No live worker with id {job.worker_id}")
        try:
            self._events.append(render_tile(job))
        except Exception as e:
            logger.error("Inline worker %d failed: %s", job.worker_id, e)
            self._events.append(
                WorkerFailure(job.worker_id, f"{type(e).__name__}: {e}\n{traceback.format_exc()}")
            )
            self._worker_id = None
            return
        self._events.append(WorkRequest(job.worker_id))

    def poll(self, timeout: float = 0.0) -> list:
        events = list(self._events)
        self._events.clear()
        return events

    def reap_dead_workers(self) -> list[WorkerFailure]:
        return []

    def retire(self, worker_id: int) -> None:
        if worker_id == self._worker_id:
            self._worker_id = None

    def respawn(self, worker_id: int) -> int:
        self.retire(worker_id)
        return self._spawn()

    def shutdown(self, timeout: float = SHUTDOWN_TIMEOUT) -> None:
        self._running = False
        self._worker_id = None
        self._events.clear()
