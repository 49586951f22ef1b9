"""Shared test fixtures"""
from typing import List
import pytest

from config import Config
from metrics.errors import TransportFailure
from metrics.exporters.base import BaseSender
from scheduling.manual import ManualScheduler


class RecordingSender(BaseSender):
    """Sender that keeps every batch and can be told to fail"""

    def __init__(self):
        self.batches: List[list] = []
        self.failures = 0
        self.resets = 0
        self.closed = False

    def send(self, batch):
        if not batch:
            return
        if self.failures:
            self.failures -= 1
            raise TransportFailure("fake:2003", len(batch))
        self.batches.append(list(batch))

    def reset_connection(self):
        self.resets += 1

    def close(self):
        self.closed = True

    @property
    def lines(self):
        return [(s.key, s.value, s.timestamp) for batch in self.batches for s in batch]


class FakeSocket:
    """Socket double recording writes; scripted to raise on given calls"""

    def __init__(self, fail_with=None):
        self.fail_with = fail_with
        self.written: List[bytes] = []
        self.closed = False

    def sendall(self, payload):
        if self.fail_with is not None:
            raise self.fail_with
        self.written.append(payload)

    def close(self):
        self.closed = True


@pytest.fixture
def config():
    return Config(
        graphite_host="carbon.test:2003",
        graphite_prefix="svc",
        flush_interval=60,
        flush_first_in=10,
        metric_first_in=60,
        daily_first_in=30,
        daily_stagger=10,
    )


@pytest.fixture
def scheduler():
    return ManualScheduler(start=1_700_000_000.0)


@pytest.fixture
def sender():
    return RecordingSender()
