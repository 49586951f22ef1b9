"""Deterministic scheduler that only runs jobs when told to"""
from typing import Dict, List, Optional
from croniter import croniter
from metrics.errors import SchedulingConfigurationError
from .base import BaseScheduler, ScheduledJob
from .threaded import next_cron_time, next_interval_time


class ManualScheduler(BaseScheduler):
    """Scheduler driven by a virtual clock.

    Jobs run synchronously on the calling thread, either by name through
    fire() or in due order through advance(). Exceptions escaping a job
    propagate to the caller.
    """

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.started = False
        self.stopped = False
        self._due: Dict[int, float] = {}
        self._jobs: Dict[int, ScheduledJob] = {}

    def every(self, interval, job, first_in=None, blocking=False, name=None) -> ScheduledJob:
        if interval <= 0:
            raise SchedulingConfigurationError(f"Interval must be positive: {interval!r}")
        entry = ScheduledJob(name=name or job.__name__, kind="every", job=job,
                             interval=interval, first_in=first_in, blocking=blocking)
        self._add(entry, self.now + (interval if first_in is None else first_in))
        return entry

    def cron(self, expression, job, name=None) -> ScheduledJob:
        if not croniter.is_valid(expression):
            raise SchedulingConfigurationError(f"Invalid cron expression: {expression!r}")
        entry = ScheduledJob(name=name or job.__name__, kind="cron", job=job, expression=expression)
        self._add(entry, next_cron_time(expression, self.now))
        return entry

    def once(self, delay, job, name=None) -> ScheduledJob:
        entry = ScheduledJob(name=name or job.__name__, kind="once", job=job, delay=delay)
        self._add(entry, self.now + delay)
        return entry

    def jobs(self) -> List[ScheduledJob]:
        return list(self._jobs.values())

    def start(self) -> None:
        self.started = True

    def shutdown(self, wait: bool = True) -> None:
        self.stopped = True

    def join(self, timeout: Optional[float] = None) -> None:
        return None

    def find(self, name: str, kind: Optional[str] = None) -> List[ScheduledJob]:
        """Jobs registered under name, optionally filtered by kind"""
        return [
            entry for entry in self._jobs.values()
            if entry.name == name and (kind is None or entry.kind == kind)
        ]

    def due_at(self, entry: ScheduledJob) -> Optional[float]:
        return self._due.get(entry.job_id)

    def fire(self, name: str, kind: Optional[str] = None) -> int:
        """Run every job registered under name right now"""
        matches = self.find(name, kind)
        if not matches:
            raise KeyError(name)
        for entry in matches:
            self._run(entry)
        return len(matches)

    def fire_all(self, kind: Optional[str] = None) -> int:
        """Run every job once, in registration order, without moving the clock"""
        matches = [entry for entry in self.jobs() if kind is None or entry.kind == kind]
        for entry in matches:
            self._run(entry)
        return len(matches)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running due jobs in order"""
        target = self.now + seconds
        fired = 0
        while True:
            pending = [(due, job_id) for job_id, due in self._due.items() if due <= target]
            if not pending:
                break
            due, job_id = min(pending)
            entry = self._jobs[job_id]
            self.now = max(self.now, due)
            self._reschedule(entry, due)
            self._run(entry)
            fired += 1
        self.now = target
        return fired

    def _add(self, entry: ScheduledJob, due: float) -> None:
        self._jobs[entry.job_id] = entry
        self._due[entry.job_id] = due

    def _reschedule(self, entry: ScheduledJob, due: float) -> None:
        if entry.kind == "once":
            self._jobs.pop(entry.job_id, None)
            self._due.pop(entry.job_id, None)
        elif entry.kind == "cron":
            self._due[entry.job_id] = next_cron_time(entry.expression, self.now)
        else:
            self._due[entry.job_id] = next_interval_time(due, entry.interval, self.now)

    def _run(self, entry: ScheduledJob) -> None:
        entry.runs += 1
        entry.job()
