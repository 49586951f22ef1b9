"""Flush driver: drains the store on a fixed cadence and hands batches to the sender"""
import threading
import time
from typing import Dict, List, Optional, Sequence, Union
from logging_config import get_logger, log_flush
from scheduling.base import BaseScheduler
from scheduling.cadence import parse_duration
from .errors import TransportFailure
from .exporters.base import BaseSender
from .models import FlushReport, Sample
from .store import MetricStore


logger = get_logger(__name__)

FLUSH_JOB_NAME = "graphite_flush"


def shifted_key(key: str, offset: Union[int, float, str]) -> str:
    if isinstance(offset, float) and offset.is_integer():
        offset = int(offset)
    return f"{key}_shifted.{offset}_ago"


def compute_shifts(shifts: Dict[Union[int, float, str], Sequence[str]], store: MetricStore,
                   now: float) -> List[Sample]:
    """Copy the last observed value of each base key into the future"""
    shifted = []
    for offset, keys in shifts.items():
        seconds = parse_duration(offset)
        for key in keys:
            value = store.last_observed(key)
            if value is None:
                continue
            shifted.append(Sample(shifted_key(key, offset), value, now + seconds))
    return shifted


class FlushDriver:
    """Single recurring job moving drained samples and counters onto the wire"""

    def __init__(self, store: MetricStore, sender: BaseSender, registrar=None):
        self.store = store
        self.sender = sender
        self.registrar = registrar
        self.flush_count = 0
        self.flush_errors = 0
        self.last_flush_time = 0.0
        self.last_report: Optional[FlushReport] = None
        self._lock = threading.Lock()

    def schedule(self, scheduler: BaseScheduler, interval: float, first_in: float) -> None:
        """Register the flush as a blocking job so two flushes never overlap"""
        scheduler.every(interval, self.flush, first_in=first_in, blocking=True, name=FLUSH_JOB_NAME)

    def flush(self, now: Optional[float] = None) -> FlushReport:
        """Drain, add shifted samples, and send"""
        started = time.time()
        now = started if now is None else now
        report = FlushReport()

        with self._lock:
            samples = [sample.stamped(now) for sample in self.store.drain_samples()]
            counters = self.store.drain_counters(now)

            report.samples = len(samples)
            report.counters = len(counters)

            if samples:
                shifts = self.registrar.shifts if self.registrar is not None else {}
                shifted = compute_shifts(shifts, self.store, now)
                report.shifted = len(shifted)
                if not self._deliver(samples + shifted, "samples"):
                    report.errors += 1

            if counters and not self._deliver(counters, "counters"):
                report.errors += 1

            report.duration = time.time() - started
            self.flush_count += 1
            self.flush_errors += report.errors
            self.last_flush_time = time.time()
            self.last_report = report

        if report.sent or report.errors:
            log_flush(logger, report.samples + report.shifted, report.counters, report.duration, report.errors)
        return report

    def _deliver(self, batch: List[Sample], label: str) -> bool:
        try:
            self.sender.send(batch)
            return True
        except TransportFailure as e:
            logger.error("Dropping batch after failed delivery", batch=label, lines=len(batch),
                         target=e.target, error=str(e.__cause__ or e), event_type="transport_failure")
        except Exception as e:
            logger.error("Sender raised unexpectedly", batch=label, lines=len(batch), error=str(e),
                         event_type="transport_failure", exc_info=True)
        return False
