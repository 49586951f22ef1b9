"""Cadence specifications and duration parsing"""
import re
from dataclasses import dataclass
from typing import Union
from croniter import croniter
from metrics.errors import SchedulingConfigurationError

DURATION_UNITS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
}

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhdw]?)\s*$")


@dataclass(frozen=True)
class IntervalCadence:
    """Fire every N seconds"""
    seconds: float

    def describe(self) -> str:
        return f"every {self.seconds:g}s"


@dataclass(frozen=True)
class CronCadence:
    """Fire on a five-field cron expression"""
    expression: str

    def describe(self) -> str:
        return f"cron '{self.expression}'"


@dataclass(frozen=True)
class DailyCadence:
    """Fire once after a delay, then every day at hour:minute"""
    first_in: float
    hour: int
    minute: int = 0

    @property
    def expression(self) -> str:
        return f"{self.minute} {self.hour} * * *"

    def describe(self) -> str:
        return f"once in {self.first_in:g}s, then daily at {self.hour:02d}:{self.minute:02d}"


Cadence = Union[IntervalCadence, CronCadence, DailyCadence]


def parse_duration(value: Union[int, float, str]) -> float:
    """Convert 90, "90", "30s", "5m", "1h", "1d" or "1w" to seconds"""
    if isinstance(value, bool):
        raise SchedulingConfigurationError(f"Unsupported duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        match = _DURATION_RE.match(value)
        if not match:
            raise SchedulingConfigurationError(f"Unsupported duration: {value!r}")
        number, unit = match.groups()
        seconds = float(number) * DURATION_UNITS[unit or "s"]
    else:
        raise SchedulingConfigurationError(f"Unsupported duration: {value!r}")

    if seconds < 0:
        raise SchedulingConfigurationError(f"Duration must not be negative: {value!r}")
    return seconds


def parse_cadence(value) -> Cadence:
    """Turn a user supplied cadence into an IntervalCadence or CronCadence"""
    if isinstance(value, (IntervalCadence, CronCadence, DailyCadence)):
        cadence = value
    elif isinstance(value, str) and len(value.split()) >= 5:
        if not croniter.is_valid(value):
            raise SchedulingConfigurationError(f"Invalid cron expression: {value!r}")
        cadence = CronCadence(value.strip())
    else:
        cadence = IntervalCadence(parse_duration(value))

    if isinstance(cadence, IntervalCadence) and cadence.seconds <= 0:
        raise SchedulingConfigurationError(f"Interval must be positive: {value!r}")
    return cadence
