"""Job registrar binding producers to cadences and recording their results"""
import threading
import time
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Union
from config import Config
from logging_config import get_logger
from scheduling.base import BaseScheduler
from scheduling.cadence import CronCadence, DailyCadence, IntervalCadence, parse_cadence, parse_duration
from .errors import InvalidMeasurement, ProducerFailure, SchedulingConfigurationError
from .models import JobKind, JobRegistration, JobResult, MetricOptions, build_key
from .store import MetricStore


logger = get_logger(__name__)

Action = Callable[[JobResult], None]


def yesterday_timestamp(today: date) -> float:
    """Local midnight at the start of the day before today"""
    yesterday = today - timedelta(days=1)
    return datetime(yesterday.year, yesterday.month, yesterday.day).timestamp()


class JobRegistrar:
    """Registers producers with the scheduler and records what they return"""

    def __init__(self, prefix: str, store: MetricStore, scheduler: BaseScheduler,
                 config: Config, post_job_hook: Optional[Callable[[], None]] = None):
        self.prefix = prefix
        self.store = store
        self.scheduler = scheduler
        self.config = config
        self.post_job_hook = post_job_hook
        self.registrations: List[JobRegistration] = []
        self.today: Callable[[], date] = date.today
        self._shifts: Dict[Union[int, float, str], List[str]] = {}
        self._daily_count = 0
        self._lock = threading.Lock()

    @property
    def shifts(self) -> Dict[Union[int, float, str], List[str]]:
        """Offset -> base keys that should be re-emitted at that offset"""
        with self._lock:
            return {offset: list(keys) for offset, keys in self._shifts.items()}

    def register_metric(self, name: str, producer: Callable[[], Any], interval: Any = None,
                        options: Optional[MetricOptions] = None) -> JobRegistration:
        """Run producer on interval and record its result under prefix.name"""
        options = options or MetricOptions()
        cadence = parse_cadence(self.config.metric_interval if interval is None else interval)
        first_in = None if options.first_in is None else parse_duration(options.first_in)
        key = build_key(self.prefix, name)

        if options.shifts:
            self._add_shifts(key, options.shifts)

        def action(result: JobResult) -> None:
            self._record(result, key, producer(), allow_scalar=True)

        registration = JobRegistration(name=name, kind=JobKind.METRIC, cadence=cadence,
                                       producer=producer, options=options)
        self._schedule(registration, action, first_in)

        if options.immediate:
            self.execute(name, action)
        return registration

    def register_metrics(self, producer: Callable[[], Mapping], cadence: Any = None,
                         name: Optional[str] = None) -> JobRegistration:
        """Run producer on cadence and record every entry of the mapping it returns"""
        parsed = parse_cadence(self.config.metric_interval if cadence is None else cadence)
        base = build_key(self.prefix, name)

        def action(result: JobResult) -> None:
            self._record(result, base, producer(), allow_scalar=False)

        registration = JobRegistration(name=name or getattr(producer, "__name__", "metrics"),
                                       kind=JobKind.METRICS, cadence=parsed, producer=producer)
        self._schedule(registration, action, None)
        return registration

    def register_daily_metric(self, name: str, producer: Callable[[date], Any]) -> JobRegistration:
        """Run producer once soon, then daily, with yesterday's date"""
        with self._lock:
            ordinal = self._daily_count
            self._daily_count += 1

        cadence = DailyCadence(
            first_in=self.config.daily_first_in + ordinal * self.config.daily_stagger,
            hour=self.config.daily_hour,
            minute=self.config.daily_minute,
        )
        key = build_key(self.prefix, name, "daily")

        def action(result: JobResult) -> None:
            today = self.today()
            value = producer(today - timedelta(days=1))
            self._record(result, key, value, allow_scalar=True, timestamp=yesterday_timestamp(today))

        registration = JobRegistration(name=name, kind=JobKind.DAILY, cadence=cadence, producer=producer)
        self._schedule(registration, action, None)
        return registration

    def execute(self, job_name: str, action: Action) -> JobResult:
        """Run one firing, isolating every failure from the scheduler"""
        started = time.time()
        result = JobResult(job_name=job_name, ok=True)
        try:
            action(result)
        except InvalidMeasurement as e:
            result.ok = False
            result.error = e
            result.rejected = e.rejected or {e.key: str(e)}
            logger.warning("Invalid measurement", job=job_name, error=str(e), event_type="invalid_measurement")
        except Exception as e:
            failure = ProducerFailure(job_name)
            failure.__cause__ = e
            result.ok = False
            result.error = failure
            logger.error("Producer failed", job=job_name, error=str(e), error_type=type(e).__name__,
                         event_type="producer_failure", exc_info=e)
        finally:
            self._run_post_job_hook(job_name)
            result.duration = time.time() - started

        if result.ok and result.rejected:
            logger.warning("Rejected measurements", job=job_name, rejected=sorted(result.rejected),
                           event_type="invalid_measurement")
        return result

    def _schedule(self, registration: JobRegistration, action: Action, first_in: Optional[float]) -> None:
        def job() -> None:
            self.execute(registration.name, action)

        cadence = registration.cadence
        if isinstance(cadence, IntervalCadence):
            delay = self.config.metric_first_in if first_in is None else first_in
            self.scheduler.every(cadence.seconds, job, first_in=delay, name=registration.name)
        elif isinstance(cadence, DailyCadence):
            self.scheduler.once(cadence.first_in, job, name=registration.name)
            self.scheduler.cron(cadence.expression, job, name=registration.name)
        elif isinstance(cadence, CronCadence):
            self.scheduler.cron(cadence.expression, job, name=registration.name)
        else:
            raise SchedulingConfigurationError(f"Unsupported cadence: {cadence!r}")

        with self._lock:
            self.registrations.append(registration)
        logger.info("Registered job", job=registration.name, kind=registration.kind.value,
                    cadence=cadence.describe(), event_type="job_registered")

    def _record(self, result: JobResult, key: str, value: Any, allow_scalar: bool,
                timestamp: Optional[float] = None) -> None:
        if isinstance(value, Mapping):
            values = {build_key(key, sub): item for sub, item in value.items()}
            result.rejected = self.store.record_many(values, timestamp)
            result.recorded = [k for k in values if k not in result.rejected]
            return
        if not allow_scalar:
            raise InvalidMeasurement(key, value)
        self.store.record_sample(key, value, timestamp)
        result.recorded = [key]

    def _add_shifts(self, key: str, shifts: Sequence[Union[int, float, str]]) -> None:
        for offset in shifts:
            parse_duration(offset)
        with self._lock:
            for offset in shifts:
                self._shifts.setdefault(offset, []).append(key)

    def _run_post_job_hook(self, job_name: str) -> None:
        if self.post_job_hook is None:
            return
        try:
            self.post_job_hook()
        except Exception as e:
            logger.error("Post-job hook failed", job=job_name, error=str(e), event_type="post_job_hook_error",
                         exc_info=e)
