"""Carbon plaintext protocol sender over a persistent TCP connection"""
import re
import socket
import threading
import time
from typing import Optional, Sequence
from config import split_host
from logging_config import get_logger
from metrics.errors import TransportFailure
from metrics.models import Sample
from .base import BaseSender


logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s")


def format_line(sample: Sample, now: float) -> str:
    """Render one sample as '<key> <value> <timestamp>\\n'"""
    timestamp = now if sample.timestamp is None else sample.timestamp
    key = _WHITESPACE.sub("_", sample.key)
    return f"{key} {float(sample.value)} {int(timestamp)}\n"


def format_message(batch: Sequence[Sample], now: Optional[float] = None) -> str:
    now = time.time() if now is None else now
    return "".join(format_line(sample, now) for sample in batch)


class PlaintextSender(BaseSender):
    """Writes batches to Carbon, reconnecting and retrying once on failure"""

    def __init__(self, server: str, connection_logger=None, connect_timeout: float = 5.0):
        self.server = server
        self.host, self.port = split_host(server)
        self.connection_logger = connection_logger
        self.connect_timeout = connect_timeout
        self._socket: Optional[socket.socket] = None
        self._lock = threading.Lock()
        self._healthy = True

    @property
    def target(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def connected(self) -> bool:
        return self._socket is not None

    def send(self, batch: Sequence[Sample]) -> None:
        """Write the whole batch in a single sendall"""
        if not batch:
            return

        message = format_message(batch)
        if self.connection_logger is not None:
            self.connection_logger.info(f"Graphite: {message}")
        payload = message.encode("utf-8")

        with self._lock:
            try:
                self._write(payload)
            except OSError as first:
                logger.warning("Graphite write failed, reconnecting", target=self.target,
                               error=str(first), event_type="wire_retry")
                try:
                    self._write(payload)
                except OSError as second:
                    self._healthy = False
                    raise TransportFailure(self.target, len(batch)) from second
        self._healthy = True

    def reset_connection(self) -> None:
        with self._lock:
            self._discard()

    def close(self) -> None:
        self.reset_connection()

    def is_healthy(self) -> bool:
        return self._healthy

    def _write(self, payload: bytes) -> None:
        # Caller holds the lock; any failure leaves the connection absent
        try:
            self._connection().sendall(payload)
        except OSError:
            self._discard()
            raise

    def _connection(self) -> socket.socket:
        if self._socket is None:
            self._socket = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
            logger.debug("Connected to Graphite", target=self.target, event_type="wire_connect")
        return self._socket

    def _discard(self) -> None:
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
