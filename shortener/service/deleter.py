"""
Deletion worker pool.

Responsibilities:
    - Accept soft-delete jobs without making the caller wait for storage
    - Apply each job with a single `soft_delete` call on a worker thread
    - Drop (and log) jobs whose owner id is malformed or whose backend call
      fails; there is no retry and no dead-letter queue

Job lifecycle:
    ENQUEUED -> DISPATCHED -> APPLIED
                           -> DROPPED   (bad owner id / backend error)

Delivery is at-most-once. The caller only learns that the job was queued.
Jobs handled by different workers may complete in any order.
"""

import enum
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..errors import InvalidInputError, StorageError
from ..models import parse_user_id
from ..storage.base import BaseStorage

log = logging.getLogger(__name__)

_STOP = object()


class JobState(enum.Enum):
    ENQUEUED = "enqueued"
    DISPATCHED = "dispatched"
    APPLIED = "applied"
    DROPPED = "dropped"


@dataclass
class DeletionJob:
    owner: str
    short_ids: List[str]
    state: JobState = field(default=JobState.ENQUEUED)


class DeletionWorkerPool:
    """
    Fixed pool of long-lived threads consuming deletion jobs from a bounded queue.

    Args:
        storage: Backend shared with the service layer.
        workers: Number of worker threads.
        queue_size: Max queued jobs (0 = unbounded).
        put_timeout: Seconds `submit` may wait for room in a full queue
            before dropping the job (None = wait indefinitely).
    """

    def __init__(
        self,
        storage: BaseStorage,
        workers: int = 5,
        queue_size: int = 0,
        put_timeout: Optional[float] = 1.0,
    ):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.storage = storage
        self.workers = workers
        self.put_timeout = put_timeout
        self._queue: "queue.Queue" = queue.Queue(maxsize=queue_size)
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._closed = False
        self._stats = {"enqueued": 0, "applied": 0, "dropped": 0}

    # ---- Lifecycle --------------------------------------------------------

    @property
    def running(self) -> bool:
        return bool(self._threads)

    def start(self) -> None:
        """Launch the worker threads (no-op if already running)."""
        with self._lock:
            if self._threads:
                return
            self._closed = False
            for i in range(self.workers):
                t = threading.Thread(target=self._run, name=f"deleter-{i}", daemon=True)
                t.start()
                self._threads.append(t)
        log.info("started %d deletion workers", self.workers)

    def join(self) -> None:
        """Block until every queued job has been applied or dropped."""
        self._queue.join()

    def shutdown(self, wait: bool = True) -> None:
        """Stop the workers after the jobs already queued."""
        with self._lock:
            threads, self._threads = self._threads, []
            self._closed = True
        for _ in threads:
            self._queue.put(_STOP)
        if wait:
            for t in threads:
                t.join()
        if threads:
            log.info("stopped %d deletion workers", len(threads))

    # ---- Producer side ----------------------------------------------------

    def submit(self, owner: str, short_ids: Iterable[str]) -> bool:
        """
        Queue a deletion job and return without waiting for it to be applied.

        Returns:
            bool: True if the job was queued, False if it was dropped because
            the pool is shut down or the queue stayed full for `put_timeout`
            seconds.
        """
        job = DeletionJob(owner=owner, short_ids=list(short_ids))
        if self._closed:
            job.state = JobState.DROPPED
            self._count("dropped")
            log.error("deletion pool is shut down, dropping job for user %s (%d ids)", owner, len(job.short_ids))
            return False
        try:
            self._queue.put(job, timeout=self.put_timeout)
        except queue.Full:
            job.state = JobState.DROPPED
            self._count("dropped")
            log.error("deletion queue is full, dropping job for user %s (%d ids)", owner, len(job.short_ids))
            return False
        self._count("enqueued")
        return True

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._stats)

    # ---- Consumer side ----------------------------------------------------

    def _count(self, key: str) -> None:
        with self._lock:
            self._stats[key] += 1

    def _run(self) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is _STOP:
                    return
                self._apply(job)
            finally:
                self._queue.task_done()

    def _apply(self, job: DeletionJob) -> None:
        job.state = JobState.DISPATCHED
        try:
            uid = parse_user_id(job.owner, op="delete_urls")
        except InvalidInputError as exc:
            job.state = JobState.DROPPED
            self._count("dropped")
            log.warning("unable to parse user id (%s): %s", job.owner, exc)
            return

        try:
            self.storage.soft_delete(uid, job.short_ids)
        except StorageError as exc:
            job.state = JobState.DROPPED
            self._count("dropped")
            log.error("unable to delete urls for user %s: %s", uid, exc)
            return
        except Exception:
            # keep the worker alive
            job.state = JobState.DROPPED
            self._count("dropped")
            log.exception("unexpected error while deleting urls for user %s", uid)
            return

        job.state = JobState.APPLIED
        self._count("applied")
        log.debug("deleted %d urls for user %s", len(job.short_ids), uid)
