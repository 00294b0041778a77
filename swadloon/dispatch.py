"""Concurrent chapter upload.

The reconciliation plan is turned into immutable jobs, put in a WorkQueue and
drained by a fixed pool of worker threads. Every job carries what it needs
(plan entry, manga id, record-store handle), so the queue is the only thing
the workers share.

A job goes PENDING -> IN_FLIGHT -> SUCCEEDED | FAILED. Failed jobs are not
retried within a run and never stop the other workers.
"""

from __future__ import annotations

import threading
from collections import deque
from enum import Enum
from threading import Thread
from typing import Iterable, List, NamedTuple, Optional

from .errors import JobError, RecordStoreError, RequestErrorKind
from .logging_config import get_logger
from .progress import DEFAULT_POLL_INTERVAL, ProgressCallback, ProgressReporter
from .reconcile import Action, PlanEntry, ReconciliationPlan
from .record_store import RecordStore

logger = get_logger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Job(NamedTuple):
    entry: PlanEntry
    manga_id: str
    store: RecordStore

    @property
    def index(self) -> int:
        return self.entry.index

    @property
    def operation(self) -> str:
        return self.entry.action.value


class JobResult(NamedTuple):
    job: Job
    status: JobStatus
    error: Optional[JobError] = None

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.SUCCEEDED


def jobs_from_plan(plan: ReconciliationPlan, manga_id: str, store: RecordStore) -> List[Job]:
    return [Job(entry, manga_id, store) for entry in plan]


class WorkQueue:
    """Ordered queue of pending jobs guarded by a single lock.

    Jobs can only be taken, never put back.
    """

    def __init__(self, jobs: Iterable[Job]):
        self._jobs = deque(jobs)
        self._lock = threading.Lock()
        self._total = len(self._jobs)

    @property
    def total(self) -> int:
        return self._total

    def take(self) -> Optional[Job]:
        """Pop the next pending job, or return None when the queue is empty."""
        with self._lock:
            if not self._jobs:
                return None
            return self._jobs.popleft()

    def remaining(self) -> int:
        with self._lock:
            return len(self._jobs)


def execute_job(job: Job) -> JobResult:
    """Run the create or update call for one job and capture the outcome."""
    entry = job.entry
    chapter = entry.chapter
    logger.debug(f"{job.operation} chapter {job.index}: {JobStatus.IN_FLIGHT.value}")

    try:
        if entry.action is Action.CREATE:
            record = job.store.create_chapter(job.manga_id, chapter)
        else:
            record = job.store.update_chapter(
                job.manga_id, entry.remote, chapter, replace_pages=entry.replace_pages
            )
    except RecordStoreError as exc:
        logger.error(f"✗ {job.operation} {job.index:4} '{chapter.name}': {exc}")
        return JobResult(job, JobStatus.FAILED, JobError(exc.kind, job.index, job.operation, exc))
    except Exception as exc:
        logger.exception(f"✗ {job.operation} {job.index:4} '{chapter.name}': unexpected error")
        return JobResult(
            job,
            JobStatus.FAILED,
            JobError(RequestErrorKind.UNEXPECTED, job.index, job.operation, exc),
        )

    marker = "[+]" if entry.action is Action.CREATE else "[~]"
    logger.info(
        f"{marker} {job.operation} {job.index:4} '{chapter.name}' "
        f"({chapter.page_count} pages) -> {record.id}"
    )
    return JobResult(job, JobStatus.SUCCEEDED)


def upload_worker(work_queue: WorkQueue, results: List[JobResult]) -> None:
    """Take jobs until the queue is empty.

    `results` belongs to this worker alone; the dispatcher reads it after join.
    """
    while True:
        job = work_queue.take()
        if job is None:
            return
        results.append(execute_job(job))


class UploadDispatcher:
    """Run jobs on a bounded pool of worker threads."""

    def __init__(
        self,
        thread_count: int,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        if thread_count < 1:
            raise ValueError(f"thread_count must be at least 1, got {thread_count}")
        self.thread_count = thread_count
        self.poll_interval = poll_interval

    def worker_count(self, job_count: int) -> int:
        return min(self.thread_count, job_count)

    def run(
        self,
        jobs: Iterable[Job],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[JobResult]:
        """Dispatch every job and block until all of them reached a terminal state.

        :param jobs: Jobs in the order they should be taken.
        :param on_progress: Called with (done, total) on every progress poll.
        :return: One result per job, in no particular order.
        """
        work_queue = WorkQueue(jobs)
        if work_queue.total == 0:
            return []

        num_workers = self.worker_count(work_queue.total)
        logger.info(f"Uploading {work_queue.total} chapter(s) with {num_workers} thread(s)")

        per_worker: List[List[JobResult]] = [[] for _ in range(num_workers)]
        threads = [
            Thread(
                target=upload_worker,
                args=(work_queue, per_worker[tid]),
                name=f"SwadloonUploadWorker-{tid}",
            )
            for tid in range(num_workers)
        ]
        for thread in threads:
            thread.start()

        reporter = ProgressReporter(work_queue, self.poll_interval, on_progress)
        reporter.run_until(lambda: not any(t.is_alive() for t in threads))

        for thread in threads:
            thread.join()

        return [result for results in per_worker for result in results]
