"""
Thread worker pool for fan-out/fan-in rendering work.

Tasks go through a single multi-consumer queue. After the last task the
producer pushes one sentinel per worker, so each worker exits after seeing
exactly one sentinel and every task is taken exactly once. Joining the
workers is the barrier that ends a run; each worker's private state is handed
back to the caller only after that barrier.
"""

import os
import queue
import threading
import time
from typing import Any, Callable, Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)

_SENTINEL = object()


class WorkerError(RuntimeError):
    """A task failed inside a worker; the whole run is aborted."""

    def __init__(self, worker_id: int, cause: BaseException):
        super().__init__(f"Worker {worker_id} failed: {cause!r}")
        self.worker_id = worker_id
        self.cause = cause


def get_optimal_worker_count() -> int:
    """Number of workers matching the available hardware parallelism."""
    return max(1, os.cpu_count() or 1)


class ProgressCounter:
    """Lock-guarded completion counter that notifies an optional callback."""

    def __init__(self, total: int, callback: Optional[Callable[[int, int], None]] = None):
        self.total = total
        self.completed = 0
        self._callback = callback
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self.completed += 1
            completed = self.completed
            if self._callback is not None:
                try:
                    self._callback(completed, self.total)
                except Exception as e:
                    logger.warning(f"Progress callback failed: {e}")
        return completed


class WorkerPool:
    """Fixed-size pool of threads draining one task queue."""

    def __init__(self, num_workers: Optional[int] = None, name: str = "worker"):
        """
        Initialize the worker pool.

        Args:
            num_workers: Number of worker threads (None for CPU count)
            name: Prefix for worker thread names
        """
        if num_workers is None:
            self.num_workers = get_optimal_worker_count()
        else:
            if num_workers < 1:
                raise ValueError("num_workers must be >= 1")
            self.num_workers = num_workers
        self.name = name

    def run(self, tasks: Iterable[Any], process: Callable[[Any, Any], None],
            make_state: Callable[[], Any] = lambda: None) -> List[Any]:
        """
        Process every task on the pool and wait for all workers.

        Args:
            tasks: Work units; consumed lazily by the producer loop
            process: Called as ``process(state, task)`` inside a worker
            make_state: Builds one private state object per worker

        Returns:
            The per-worker state objects, in worker order

        Raises:
            WorkerError: If any task raised an Exception; chained to the first failure.
                Other BaseExceptions (KeyboardInterrupt, SystemExit) are re-raised
                unwrapped after the join.
        """
        task_queue: queue.Queue = queue.Queue()
        states = [make_state() for _ in range(self.num_workers)]
        abort = threading.Event()
        failure_lock = threading.Lock()
        failures = []

        def worker(worker_id: int) -> None:
            state = states[worker_id]
            while True:
                task = task_queue.get()
                if task is _SENTINEL:
                    return
                if abort.is_set():
                    continue
                try:
                    process(state, task)
                except BaseException as e:
                    with failure_lock:
                        failures.append((worker_id, e))
                    abort.set()

        threads = [threading.Thread(target=worker, args=(i,), name=f"{self.name}-{i}", daemon=True)
                   for i in range(self.num_workers)]
        for thread in threads:
            thread.start()

        start_time = time.time()
        submitted = 0
        try:
            for task in tasks:
                if abort.is_set():
                    break
                task_queue.put(task)
                submitted += 1
        finally:
            for _ in threads:
                task_queue.put(_SENTINEL)
            for thread in threads:
                thread.join()

        if failures:
            worker_id, cause = failures[0]
            logger.error(f"{self.name} pool aborted: worker {worker_id} raised {cause!r}")
            if not isinstance(cause, Exception):
                # interrupts and exits are re-raised as they are
                raise cause
            raise WorkerError(worker_id, cause) from cause

        logger.debug(f"{self.name} pool: {submitted} tasks on {self.num_workers} workers "
                     f"in {time.time() - start_time:.3f}s")
        return states
