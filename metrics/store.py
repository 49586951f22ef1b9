"""Thread-safe aggregation of samples and counters"""
import math
import numbers
import threading
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple
from .errors import InvalidMeasurement
from .models import MISSING_VALUE, RecordPolicy, Sample


def coerce_value(key: str, value: Any) -> float:
    """Validate a producer value, mapping None to the missing-value sentinel"""
    if value is None:
        return MISSING_VALUE
    # Decimal is a Number but not Real
    if isinstance(value, (bool, complex)) or not isinstance(value, numbers.Number):
        raise InvalidMeasurement(key, value)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidMeasurement(key, value)


class MetricStore:
    """Samples and counters waiting for the next flush.

    Samples are last-write-wins per key. Counters accumulate until drained.
    Both maps are swapped out wholesale on drain, and a single lock guards
    every mutation so concurrent producers never lose an update.
    """

    def __init__(self, record_policy: RecordPolicy = RecordPolicy.BEST_EFFORT):
        self.record_policy = record_policy
        self._lock = threading.Lock()
        self._samples: Dict[str, Sample] = {}
        self._counters: Dict[str, int] = {}
        self._last_observed: Dict[str, float] = {}

    def record_sample(self, key: str, value: Any, timestamp: Optional[float] = None) -> None:
        """Record a sample, overwriting any unflushed sample for the key"""
        coerced = coerce_value(key, value)
        with self._lock:
            self._store(key, coerced, timestamp)

    def record_many(self, values: Mapping[str, Any], timestamp: Optional[float] = None,
                    policy: Optional[RecordPolicy] = None) -> Dict[str, str]:
        """Record every entry of a mapping.

        With BEST_EFFORT the valid entries are recorded and the rejected ones
        are returned as key -> reason. With ALL_OR_NOTHING a single invalid
        entry raises InvalidMeasurement and nothing is recorded.
        """
        policy = policy or self.record_policy
        accepted: List[Tuple[str, float]] = []
        rejected: Dict[str, str] = {}

        for key, value in values.items():
            try:
                accepted.append((key, coerce_value(key, value)))
            except InvalidMeasurement as e:
                rejected[key] = str(e)

        if rejected and policy == RecordPolicy.ALL_OR_NOTHING:
            raise InvalidMeasurement(next(iter(rejected)), rejected=rejected)

        with self._lock:
            for key, coerced in accepted:
                self._store(key, coerced, timestamp)
        return rejected

    def increment_counter(self, key: str, delta: int = 1) -> int:
        """Add delta to a counter, creating it if absent"""
        if isinstance(delta, bool) or not isinstance(delta, numbers.Integral):
            raise InvalidMeasurement(key, delta)
        with self._lock:
            value = self._counters.get(key, 0) + int(delta)
            self._counters[key] = value
        return value

    def drain_samples(self) -> List[Sample]:
        """Take every pending sample, leaving the store empty"""
        with self._lock:
            samples, self._samples = self._samples, {}
        return list(samples.values())

    def drain_counters(self, now: Optional[float] = None) -> List[Sample]:
        """Take every counter, stamped with the drain time"""
        with self._lock:
            counters, self._counters = self._counters, {}
        stamp = time.time() if now is None else now
        return [Sample(key, float(value), stamp) for key, value in counters.items()]

    def last_observed(self, key: str) -> Optional[float]:
        """Most recent value recorded for key, surviving drains"""
        with self._lock:
            return self._last_observed.get(key)

    def pending(self) -> Dict[str, int]:
        with self._lock:
            return {"samples": len(self._samples), "counters": len(self._counters)}

    def _store(self, key: str, value: float, timestamp: Optional[float]) -> None:
        # Caller holds the lock; re-inserting keeps insertion order matching write order
        self._samples.pop(key, None)
        self._samples[key] = Sample(key, value, timestamp)
        if not math.isnan(value):
            self._last_observed[key] = value
