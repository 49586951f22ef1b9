"""Tests for cadence parsing and the schedulers"""
import threading
import time
from datetime import datetime
import pytest

from metrics.errors import SchedulingConfigurationError
from scheduling.cadence import CronCadence, DailyCadence, IntervalCadence, parse_cadence, parse_duration
from scheduling.manual import ManualScheduler
from scheduling.threaded import ThreadedScheduler, next_cron_time, next_interval_time


class TestDurations:
    """Duration strings and numbers"""

    @pytest.mark.parametrize("value,expected", [
        (90, 90.0),
        (1.5, 1.5),
        ("90", 90.0),
        ("30s", 30.0),
        ("5m", 300.0),
        ("1h", 3600.0),
        ("1d", 86400.0),
        ("1w", 604800.0),
    ])
    def test_parse_duration(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["soon", "5x", -1, None, True, [60]])
    def test_invalid_duration(self, value):
        with pytest.raises(SchedulingConfigurationError):
            parse_duration(value)


class TestCadence:
    """Cadence shapes"""

    def test_interval(self):
        assert parse_cadence("1m") == IntervalCadence(60.0)

    def test_cron(self):
        assert parse_cadence("*/5 * * * *") == CronCadence("*/5 * * * *")

    def test_invalid_cron(self):
        with pytest.raises(SchedulingConfigurationError):
            parse_cadence("99 * * * *")

    def test_zero_interval(self):
        with pytest.raises(SchedulingConfigurationError):
            parse_cadence(0)

    def test_unsupported_shape(self):
        with pytest.raises(SchedulingConfigurationError):
            parse_cadence({"every": 60})

    def test_explicit_cadence_passes_through(self):
        daily = DailyCadence(first_in=30, hour=3)
        assert parse_cadence(daily) is daily
        assert daily.expression == "0 3 * * *"


class TestScheduleMath:
    """Next firing computation"""

    def test_next_interval(self):
        assert next_interval_time(100, 60, 120) == 160

    def test_next_interval_skips_missed_firings(self):
        assert next_interval_time(100, 60, 500) == 560

    def test_next_cron_time(self):
        now = datetime(2024, 1, 1, 12, 7, 30).timestamp()
        assert next_cron_time("*/15 * * * *", now) == datetime(2024, 1, 1, 12, 15).timestamp()


class TestManualScheduler:
    """Deterministic scheduler used throughout the tests"""

    def setup_method(self):
        self.scheduler = ManualScheduler(start=1000.0)
        self.calls = []

    def test_every_respects_first_in(self):
        self.scheduler.every(60, lambda: self.calls.append(self.scheduler.now), first_in=5, name="tick")

        assert self.scheduler.advance(4) == 0
        assert self.scheduler.advance(1) == 1
        assert self.scheduler.advance(120) == 2
        assert self.calls == [1005.0, 1065.0, 1125.0]

    def test_every_without_first_in_waits_one_interval(self):
        job = self.scheduler.every(60, lambda: None, name="tick")

        assert self.scheduler.due_at(job) == 1060.0

    def test_once_runs_a_single_time(self):
        self.scheduler.once(10, lambda: self.calls.append("once"), name="boot")

        self.scheduler.advance(100)

        assert self.calls == ["once"]
        assert self.scheduler.find("boot") == []

    def test_fire_by_name(self):
        self.scheduler.every(60, lambda: self.calls.append("a"), name="a")
        self.scheduler.every(60, lambda: self.calls.append("b"), name="b")

        assert self.scheduler.fire("b") == 1
        assert self.calls == ["b"]

    def test_fire_all(self):
        self.scheduler.every(60, lambda: self.calls.append("a"), name="a")
        self.scheduler.cron("0 3 * * *", lambda: self.calls.append("b"), name="b")
        self.scheduler.once(10, lambda: self.calls.append("c"), name="c")

        assert self.scheduler.fire_all() == 3
        assert self.calls == ["a", "b", "c"]
        assert self.scheduler.now == 1000.0

    def test_fire_all_by_kind(self):
        self.scheduler.every(60, lambda: self.calls.append("a"), name="a")
        self.scheduler.cron("0 3 * * *", lambda: self.calls.append("b"), name="b")

        assert self.scheduler.fire_all(kind="cron") == 1
        assert self.calls == ["b"]

    def test_fire_unknown_name(self):
        with pytest.raises(KeyError):
            self.scheduler.fire("missing")

    def test_invalid_registrations(self):
        with pytest.raises(SchedulingConfigurationError):
            self.scheduler.every(0, lambda: None)
        with pytest.raises(SchedulingConfigurationError):
            self.scheduler.cron("not a cron at all", lambda: None)


class TestThreadedScheduler:
    """Real threads, short intervals"""

    def setup_method(self):
        self.scheduler = ThreadedScheduler(worker_threads=4)

    def teardown_method(self):
        self.scheduler.shutdown(wait=True)

    def test_once_fires(self):
        fired = threading.Event()
        self.scheduler.once(0.01, fired.set, name="once")
        self.scheduler.start()

        assert fired.wait(2)

    def test_failing_job_does_not_stop_others(self):
        """An exception in one job leaves the dispatcher running"""
        fired = threading.Event()

        def boom():
            raise RuntimeError("boom")

        self.scheduler.every(0.01, boom, first_in=0, name="boom")
        self.scheduler.every(0.05, fired.set, first_in=0.02, name="ok")
        self.scheduler.start()

        assert fired.wait(2)

    def test_blocking_job_never_overlaps(self):
        """A blocking job is not started again while still running"""
        active = []
        overlaps = []
        runs = []
        lock = threading.Lock()

        def slow():
            with lock:
                if active:
                    overlaps.append(True)
                active.append(True)
            time.sleep(0.05)
            with lock:
                active.pop()
                runs.append(True)

        self.scheduler.every(0.01, slow, first_in=0, blocking=True, name="flush")
        self.scheduler.start()
        time.sleep(0.3)

        assert runs
        assert overlaps == []

    def test_hung_producer_does_not_stop_flush(self):
        """A producer stuck on I/O holds one worker; the flush keeps running"""
        scheduler = ThreadedScheduler(worker_threads=3)
        release = threading.Event()
        hung_calls = []
        flushes = []

        def hung():
            hung_calls.append(True)
            release.wait(5)

        scheduler.every(0.02, hung, first_in=0, name="hung")
        scheduler.every(0.05, lambda: flushes.append(True), first_in=0.2, blocking=True, name="flush")
        scheduler.start()
        try:
            time.sleep(0.8)

            assert len(flushes) >= 3
            assert len(hung_calls) == 1
        finally:
            release.set()
            scheduler.shutdown(wait=True)

    def test_slow_job_delays_only_its_own_next_run(self):
        """A non-blocking job is not started again while its previous run is active"""
        release = threading.Event()
        slow_calls = []
        fast_calls = []

        def slow():
            slow_calls.append(True)
            release.wait(5)

        self.scheduler.every(0.01, slow, first_in=0, name="slow")
        self.scheduler.every(0.02, lambda: fast_calls.append(True), first_in=0, name="fast")
        self.scheduler.start()
        try:
            time.sleep(0.3)

            assert len(slow_calls) == 1
            assert len(fast_calls) >= 3
        finally:
            release.set()

    def test_shutdown_stops_join(self):
        self.scheduler.start()
        self.scheduler.shutdown(wait=True)
        self.scheduler.join(timeout=1)

    def test_invalid_cron_rejected(self):
        with pytest.raises(SchedulingConfigurationError):
            self.scheduler.cron("61 * * * *", lambda: None)

    def test_jobs_lists_registrations(self):
        self.scheduler.every(60, lambda: None, name="a")
        self.scheduler.cron("0 3 * * *", lambda: None, name="b")

        assert sorted(job.name for job in self.scheduler.jobs()) == ["a", "b"]
