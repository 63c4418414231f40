"""A fixed-size pool of worker threads fed from a FIFO task queue."""

from __future__ import annotations

import collections
import threading
from typing import Callable


class ThreadPool:
    """Worker threads that run queued callables.

    Once stopped, each worker finishes at most the task it is running and
    exits; tasks still queued are not run, and no more may be enqueued.
    """

    def __init__(self, threads: int) -> None:
        if threads < 0:
            raise ValueError("threads must not be negative")
        self._size = threads
        self._workers: list[threading.Thread] = []
        self._tasks: collections.deque[Callable[[], object]] = collections.deque()
        self._cond = threading.Condition()
        self._stopped = False
        self._active = 0

    def __enter__(self) -> ThreadPool:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def start(self) -> None:
        """Start the worker threads."""
        for _ in range(self._size):
            worker = threading.Thread(
                target=self._worker,
                name=f"ThreadPool-{len(self._workers)}",
                daemon=True,
            )
            self._workers.append(worker)
            worker.start()

    def stop(self) -> None:
        """Stop accepting tasks and wait for the workers to exit."""
        with self._cond:
            self._stopped = True
            self._cond.notify_all()
        current = threading.current_thread()
        for worker in self._workers:
            if worker is not current:
                worker.join()

    def enqueue(self, task: Callable[[], object]) -> None:
        """Queue a callable; raises RuntimeError once the pool is stopped."""
        with self._cond:
            if self._stopped:
                raise RuntimeError("enqueue on stopped ThreadPool")
            self._tasks.append(task)
            self._cond.notify()

    def queue_size(self) -> int:
        with self._cond:
            return len(self._tasks)

    def active_threads(self) -> int:
        return self._active

    def _worker(self) -> None:
        while not self._stopped:
            with self._cond:
                self._cond.wait_for(lambda: self._stopped or bool(self._tasks))
                if self._stopped and not self._tasks:
                    return
                task = self._tasks.popleft()
                self._active += 1
            try:
                task()
            finally:
                with self._cond:
                    self._active -= 1