"""Exception hierarchy for the metrics client"""
from typing import Any, Dict, Optional


class MetricsClientError(Exception):
    """Base class for all client errors"""


class InvalidMeasurement(MetricsClientError):
    """A producer returned something that is not a number"""

    def __init__(self, key: str, value: Any = None, rejected: Optional[Dict[str, str]] = None):
        self.key = key
        self.value = value
        self.rejected = rejected or {}
        if self.rejected:
            message = f"Invalid measurements for {', '.join(sorted(self.rejected))}"
        else:
            message = f"Invalid measurement for {key}: {value!r}"
        super().__init__(message)


class ProducerFailure(MetricsClientError):
    """A producer callback raised; the original exception is the cause"""

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Producer for {job_name} failed")


class TransportFailure(MetricsClientError):
    """Writing a batch failed twice in a row"""

    def __init__(self, target: str, lines: int = 0):
        self.target = target
        self.lines = lines
        super().__init__(f"Could not deliver {lines} lines to {target}")


class SchedulingConfigurationError(MetricsClientError):
    """A cadence or registration option is malformed"""
