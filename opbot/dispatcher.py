"""
Concurrent collection of work packages across (project, assignee) pairs.
"""

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional, Sequence

from opbot.classifier import DEFAULT_DATE_FIELD, AsOf, classify
from opbot.errors import (
    CollectionCancelled,
    ConfigurationError,
    FetchCancelled,
    ReportError,
)
from opbot.models import CollectedTasks, Job
from opbot.openproject import OpenProjectClient

DEFAULT_MAX_WORKERS = 8

# How often blocked queue calls wake up to look at the cancel event
QUEUE_POLL_SECONDS = 0.1


class ResultAccumulator:
    """Thread-safe merge point for classified batches coming from workers."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tasks = CollectedTasks()
        self.batches = 0

    def merge(self, batch: CollectedTasks) -> None:
        with self._lock:
            self._tasks.extend(batch)
            self.batches += 1

    def result(self) -> CollectedTasks:
        with self._lock:
            return CollectedTasks(
                backlog=list(self._tasks.backlog),
                in_progress=list(self._tasks.in_progress),
                sent_to_test_today=list(self._tasks.sent_to_test_today),
            )


def _put(jobs: queue.Queue, item, cancel_event: threading.Event) -> bool:
    """Blocking put that gives up once cancellation is requested."""
    while not cancel_event.is_set():
        try:
            jobs.put(item, timeout=QUEUE_POLL_SECONDS)
            return True
        except queue.Full:
            continue
    return False


def produce_jobs(
    project_ids: Sequence[str],
    assignee_ids: Sequence[str],
    jobs: queue.Queue,
    cancel_event: threading.Event,
    consumers: int = 1,
) -> int:
    """
    Put the project x assignee cross product on `jobs`, then one `None`
    end marker per consumer. Stops emitting as soon as cancellation is seen.
    Returns the number of jobs produced.
    """
    produced = 0
    for pid in project_ids:
        for uid in assignee_ids:
            if not _put(jobs, Job(project_id=str(pid), assignee_id=str(uid)), cancel_event):
                return produced
            produced += 1

    for _ in range(consumers):
        if not _put(jobs, None, cancel_event):
            break
    return produced


class TaskCollector:
    """
    Fetches and classifies work packages with a bounded worker pool.

    A job that fails is logged and skipped; only cancellation (or an empty
    job space) fails the whole collection.
    """

    def __init__(
        self,
        client: OpenProjectClient,
        *,
        max_workers: int = DEFAULT_MAX_WORKERS,
        date_field: str = DEFAULT_DATE_FIELD,
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.max_workers = max_workers
        self.date_field = date_field
        self.logger = logger or logging.getLogger("collector")

    def collect_all(
        self,
        project_ids: Sequence[str],
        assignee_ids: Sequence[str],
        as_of: AsOf,
        cancel_event: Optional[threading.Event] = None,
    ) -> CollectedTasks:
        total_jobs = len(project_ids) * len(assignee_ids)
        if total_jobs == 0:
            raise ConfigurationError("no projects or assignees configured")
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {self.max_workers}")

        cancel_event = cancel_event or threading.Event()
        worker_count = min(self.max_workers, total_jobs)

        # Bounded: the producer only runs a little ahead of the workers
        jobs: queue.Queue = queue.Queue(maxsize=worker_count * 2)
        accumulator = ResultAccumulator()
        t0 = time.perf_counter()

        # Leaving the executor block joins the producer and every worker, in all paths
        with ThreadPoolExecutor(
            max_workers=worker_count + 1, thread_name_prefix="op-worker"
        ) as executor:
            producer = executor.submit(
                produce_jobs, project_ids, assignee_ids, jobs, cancel_event, worker_count
            )
            futures = [
                executor.submit(
                    self._worker, n + 1, jobs, accumulator, as_of, cancel_event
                )
                for n in range(worker_count)
            ]
            failed = sum(f.result() for f in as_completed(futures))
            produced = producer.result()

        if cancel_event.is_set():
            self.logger.warning(f"⛔ Collection cancelled after {produced}/{total_jobs} jobs were queued")
            raise CollectionCancelled("work package collection cancelled")

        collected = accumulator.result()
        self.logger.info(
            f"✅ Collected {total_jobs - failed}/{total_jobs} jobs with {worker_count} workers "
            f"in {time.perf_counter() - t0:.2f}s "
            f"(backlog={len(collected.backlog)}, in_progress={len(collected.in_progress)}, "
            f"sent_to_test_today={len(collected.sent_to_test_today)})"
        )
        return collected

    def _worker(
        self,
        worker_id: int,
        jobs: queue.Queue,
        accumulator: ResultAccumulator,
        as_of: AsOf,
        cancel_event: threading.Event,
    ) -> int:
        """Drain the job queue until the end marker; returns the number of failed jobs."""
        failed = 0

        while not cancel_event.is_set():
            try:
                job = jobs.get(timeout=QUEUE_POLL_SECONDS)
            except queue.Empty:
                continue
            if job is None:
                break

            try:
                tasks = self.client.fetch_work_packages(
                    job.project_id, job.assignee_id, cancel_event
                )
            except FetchCancelled:
                break
            except ReportError as e:
                failed += 1
                self.logger.error(
                    f"❌ Failed to fetch work packages "
                    f"(worker={worker_id}, project_id={job.project_id}, "
                    f"assignee_id={job.assignee_id}): {e}"
                )
                continue

            batch = CollectedTasks()
            for t in tasks:
                batch.add(classify(t, as_of, date_field=self.date_field), t)

            if not batch.is_empty():
                accumulator.merge(batch)

        return failed
