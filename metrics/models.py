"""Metric models shared by the store, registrar and senders"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Sequence, Union


class RecordPolicy(Enum):
    """How record_many treats a mapping with invalid entries"""
    BEST_EFFORT = "best_effort"
    ALL_OR_NOTHING = "all_or_nothing"


class JobKind(Enum):
    """Registration shapes understood by the registrar"""
    METRIC = "metric"
    METRICS = "metrics"
    DAILY = "daily"
    FLUSH = "flush"


# Carbon drops NaN datapoints, so a producer returning None shows up as a gap
MISSING_VALUE = math.nan


@dataclass
class Sample:
    """Single timestamped measurement ready for the wire"""
    key: str
    value: float
    timestamp: Optional[float] = None

    def stamped(self, now: float) -> "Sample":
        """Return this sample with a timestamp, using now when none was given"""
        if self.timestamp is not None:
            return self
        return Sample(self.key, self.value, now)


@dataclass
class MetricOptions:
    """Options accepted by register_metric"""
    immediate: bool = False
    shifts: Sequence[Union[int, float, str]] = ()
    first_in: Optional[float] = None


@dataclass
class JobRegistration:
    """A producer bound to a name and a cadence"""
    name: str
    kind: JobKind
    cadence: Any
    producer: Callable
    options: MetricOptions = field(default_factory=MetricOptions)


@dataclass
class JobResult:
    """Outcome of one firing of a job"""
    job_name: str
    ok: bool
    recorded: Sequence[str] = ()
    rejected: dict = field(default_factory=dict)
    error: Optional[BaseException] = None
    duration: float = 0.0


@dataclass
class FlushReport:
    """Outcome of one flush cycle"""
    samples: int = 0
    shifted: int = 0
    counters: int = 0
    errors: int = 0
    duration: float = 0.0

    @property
    def sent(self) -> int:
        return self.samples + self.shifted + self.counters


def build_key(prefix: str, *parts: Any) -> str:
    """Join prefix and name parts into a dotted key with spaces replaced"""
    key = ".".join(str(part) for part in (prefix,) + parts if part not in (None, ""))
    return key.replace(" ", "_")
