"""Scheduler interface consumed by the metrics client"""
import abc
import itertools
from dataclasses import dataclass, field
from typing import Callable, List, Optional

_job_ids = itertools.count(1)


@dataclass
class ScheduledJob:
    """A job known to a scheduler"""
    name: str
    kind: str
    job: Callable[[], None]
    interval: Optional[float] = None
    expression: Optional[str] = None
    delay: Optional[float] = None
    first_in: Optional[float] = None
    blocking: bool = False
    runs: int = 0
    job_id: int = field(default_factory=lambda: next(_job_ids))

    def describe(self) -> dict:
        """Plain dict used by the status endpoints"""
        return {
            "name": self.name,
            "kind": self.kind,
            "interval": self.interval,
            "expression": self.expression,
            "delay": self.delay,
            "blocking": self.blocking,
            "runs": self.runs,
        }


class BaseScheduler(abc.ABC):
    """Abstract base class for schedulers"""

    @abc.abstractmethod
    def every(self, interval: float, job: Callable[[], None], first_in: Optional[float] = None,
              blocking: bool = False, name: Optional[str] = None) -> ScheduledJob:
        """Run job every interval seconds; blocking jobs never overlap"""
        pass

    @abc.abstractmethod
    def cron(self, expression: str, job: Callable[[], None], name: Optional[str] = None) -> ScheduledJob:
        """Run job whenever the cron expression matches"""
        pass

    @abc.abstractmethod
    def once(self, delay: float, job: Callable[[], None], name: Optional[str] = None) -> ScheduledJob:
        """Run job once after delay seconds"""
        pass

    @abc.abstractmethod
    def jobs(self) -> List[ScheduledJob]:
        """List jobs that are still scheduled"""
        pass

    def start(self) -> None:
        """Begin dispatching jobs"""

    def shutdown(self, wait: bool = True) -> None:
        """Stop dispatching jobs"""

    def join(self, timeout: Optional[float] = None) -> None:
        """Block until the scheduler shuts down"""
