"""Threaded scheduler: one dispatcher thread feeding a worker pool"""
import heapq
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, List, Optional
from croniter import croniter
from logging_config import get_logger
from metrics.errors import SchedulingConfigurationError
from .base import BaseScheduler, ScheduledJob


logger = get_logger(__name__)


def next_cron_time(expression: str, now: float) -> float:
    """Next local time the expression matches after now, as epoch seconds"""
    base = datetime.fromtimestamp(now)
    return croniter(expression, base).get_next(datetime).timestamp()


def next_interval_time(due: float, interval: float, now: float) -> float:
    """Next firing for an interval job, skipping firings that were missed"""
    next_due = due + interval
    if next_due <= now:
        next_due = now + interval
    return next_due


class ThreadedScheduler(BaseScheduler):
    """Dispatches due jobs from a heap onto a ThreadPoolExecutor.

    A recurring job is pushed back onto the heap only after its current run
    returns, so a hung producer holds a single worker. Blocking jobs such as
    the flush get their own single-thread executor and never wait behind
    producers.
    """

    def __init__(self, worker_threads: int = 10, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._executor = ThreadPoolExecutor(
            max_workers=worker_threads,
            thread_name_prefix="metrics_job"
        )
        self._blocking_executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="metrics_blocking"
        )
        self._condition = threading.Condition()
        self._queue: list = []
        self._jobs: Dict[int, ScheduledJob] = {}
        self._thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()
        self._shutdown = False

    def every(self, interval, job, first_in=None, blocking=False, name=None) -> ScheduledJob:
        if interval <= 0:
            raise SchedulingConfigurationError(f"Interval must be positive: {interval!r}")
        entry = ScheduledJob(
            name=name or getattr(job, "__name__", "job"),
            kind="every",
            job=job,
            interval=interval,
            first_in=first_in,
            blocking=blocking,
        )
        delay = interval if first_in is None else first_in
        self._add(entry, self._clock() + delay)
        return entry

    def cron(self, expression, job, name=None) -> ScheduledJob:
        if not croniter.is_valid(expression):
            raise SchedulingConfigurationError(f"Invalid cron expression: {expression!r}")
        entry = ScheduledJob(
            name=name or getattr(job, "__name__", "job"),
            kind="cron",
            job=job,
            expression=expression,
        )
        self._add(entry, next_cron_time(expression, self._clock()))
        return entry

    def once(self, delay, job, name=None) -> ScheduledJob:
        if delay < 0:
            raise SchedulingConfigurationError(f"Delay must not be negative: {delay!r}")
        entry = ScheduledJob(
            name=name or getattr(job, "__name__", "job"),
            kind="once",
            job=job,
            delay=delay,
        )
        self._add(entry, self._clock() + delay)
        return entry

    def jobs(self) -> List[ScheduledJob]:
        with self._condition:
            return list(self._jobs.values())

    def start(self) -> None:
        """Start the dispatcher thread"""
        with self._condition:
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._dispatch_loop, name="metrics-scheduler", daemon=True)
            self._thread.start()
        logger.info("Scheduler started", jobs=len(self._jobs), event_type="scheduler_start")

    def shutdown(self, wait: bool = True) -> None:
        """Stop dispatching and release the worker pool"""
        with self._condition:
            if self._shutdown:
                return
            self._shutdown = True
            self._condition.notify_all()
        self._executor.shutdown(wait=wait)
        self._blocking_executor.shutdown(wait=wait)
        if wait and self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self._stopped.set()
        logger.info("Scheduler stopped", event_type="scheduler_stop")

    def join(self, timeout: Optional[float] = None) -> None:
        self._stopped.wait(timeout)

    def _add(self, entry: ScheduledJob, due: float) -> None:
        with self._condition:
            self._jobs[entry.job_id] = entry
            self._push(entry, due)

    def _push(self, entry: ScheduledJob, due: float) -> None:
        # Caller holds the condition
        heapq.heappush(self._queue, (due, entry.job_id, entry))
        self._condition.notify()

    def _dispatch_loop(self) -> None:
        with self._condition:
            while not self._shutdown:
                if not self._queue:
                    self._condition.wait()
                    continue
                due, _, entry = self._queue[0]
                delay = due - self._clock()
                if delay > 0:
                    self._condition.wait(delay)
                    continue
                heapq.heappop(self._queue)
                self._dispatch(entry, due)

    def _dispatch(self, entry: ScheduledJob, due: float) -> None:
        # Caller holds the condition; recurring jobs are pushed back by _run once they finish
        executor = self._blocking_executor if entry.blocking else self._executor
        executor.submit(self._run, entry, due)

    def _run(self, entry: ScheduledJob, due: float) -> None:
        try:
            entry.job()
        except Exception as e:
            logger.error("Scheduled job failed", job=entry.name, error=str(e), event_type="job_error", exc_info=True)
        finally:
            with self._condition:
                entry.runs += 1
                if entry.kind == "once":
                    self._jobs.pop(entry.job_id, None)
                elif not self._shutdown:
                    self._push(entry, self._next_due(entry, due))

    def _next_due(self, entry: ScheduledJob, due: float) -> float:
        now = self._clock()
        if entry.kind == "cron":
            return next_cron_time(entry.expression, now)
        return next_interval_time(due, entry.interval, now)
