"""Client facade applications hold to register metrics"""
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional
from config import Config
from logging_config import get_connection_logger, get_logger, log_client_startup
from metrics.exporters.base import BaseSender, SenderFactory
from metrics.flush import FlushDriver
from metrics.models import JobRegistration, MetricOptions, build_key
from metrics.registry import JobRegistrar
from metrics.store import MetricStore
from scheduling.base import BaseScheduler
from scheduling.threaded import ThreadedScheduler


logger = get_logger(__name__)


@dataclass
class ClientOptions:
    """Construction-time collaborators a client can be given"""
    connection_logger: Any = None
    custom_sender: Optional[BaseSender] = None
    custom_scheduler: Optional[BaseScheduler] = None
    post_job_hook: Optional[Callable[[], None]] = None


class MetricsClient:
    """Owns the store, registrar, sender and flush driver for one prefix"""

    def __init__(self, server: Optional[str] = None, prefix: Optional[str] = None,
                 config: Optional[Config] = None, options: Optional[ClientOptions] = None):
        self.config = config or Config()
        self.options = options or ClientOptions()
        self.server = server or self.config.graphite_host
        self.prefix = (prefix or self.config.graphite_prefix).strip(".")

        connection_logger = self.options.connection_logger
        if connection_logger is None and self.config.trace_messages:
            connection_logger = get_connection_logger()

        self.store = MetricStore(self.config.record_policy)
        self.sender = SenderFactory.create_sender(
            self.config,
            self.server,
            custom_sender=self.options.custom_sender,
            connection_logger=connection_logger
        )

        # A shared scheduler belongs to whoever passed it in
        self._owns_scheduler = self.options.custom_scheduler is None
        self.scheduler = self.options.custom_scheduler or ThreadedScheduler(self.config.worker_threads)

        self.registrar = JobRegistrar(
            self.prefix,
            self.store,
            self.scheduler,
            self.config,
            post_job_hook=self.options.post_job_hook
        )
        self.flush_driver = FlushDriver(self.store, self.sender, self.registrar)
        self.flush_driver.schedule(self.scheduler, self.config.flush_interval, self.config.flush_first_in)

        self.started_at = time.time()
        self._closed = False
        log_client_startup(logger, self.config, self.server, self.prefix)

        self.start()

    def start(self) -> None:
        """Start dispatching jobs if this client owns its scheduler"""
        if self._owns_scheduler and not self._closed:
            self.scheduler.start()

    def register_metric(self, name: str, producer: Callable[[], Any], interval: Any = None,
                        options: Optional[MetricOptions] = None) -> JobRegistration:
        """Record producer() under prefix.name every interval"""
        return self.registrar.register_metric(name, producer, interval, options)

    def register_metrics(self, producer: Callable[[], Mapping], cadence: Any = None,
                         name: Optional[str] = None) -> JobRegistration:
        """Record every entry of producer() on cadence"""
        return self.registrar.register_metrics(producer, cadence, name)

    def register_daily_metric(self, name: str, producer: Callable) -> JobRegistration:
        """Record producer(yesterday) under prefix.name.daily once a day"""
        return self.registrar.register_daily_metric(name, producer)

    def metric(self, name: str, interval: Any = None, immediate: bool = False, shifts=(), first_in=None):
        """Decorator form of register_metric"""
        def decorator(producer):
            options = MetricOptions(immediate=immediate, shifts=tuple(shifts), first_in=first_in)
            self.register_metric(name, producer, interval, options)
            return producer
        return decorator

    def metrics(self, cadence: Any = None, name: Optional[str] = None):
        """Decorator form of register_metrics"""
        def decorator(producer):
            self.register_metrics(producer, cadence, name)
            return producer
        return decorator

    def daily_metric(self, name: str):
        """Decorator form of register_daily_metric"""
        def decorator(producer):
            self.register_daily_metric(name, producer)
            return producer
        return decorator

    def increment_counter(self, name: str, delta: int = 1) -> int:
        """Add delta to the counter prefix.name"""
        return self.store.increment_counter(build_key(self.prefix, name), delta)

    def reset_connection(self) -> None:
        """Drop the current connection; the next flush reconnects"""
        self.sender.reset_connection()

    def flush(self):
        """Flush immediately instead of waiting for the next scheduled flush"""
        return self.flush_driver.flush()

    def status(self) -> Dict[str, Any]:
        """Snapshot used by the status server"""
        driver = self.flush_driver
        return {
            "server": self.server,
            "prefix": self.prefix,
            "uptime_seconds": round(time.time() - self.started_at, 1),
            "flush": {
                "interval_seconds": self.config.flush_interval,
                "total_flushes": driver.flush_count,
                "flush_errors": driver.flush_errors,
                "last_flush_time": driver.last_flush_time or None,
            },
            "pending": self.store.pending(),
            "registrations": len(self.registrar.registrations),
            "shifts": {str(offset): keys for offset, keys in self.registrar.shifts.items()},
            "sender_healthy": self.sender.is_healthy(),
        }

    def join(self, timeout: Optional[float] = None) -> None:
        """Block until the scheduler stops"""
        self.scheduler.join(timeout)

    def run(self, setup: Callable[["MetricsClient"], None]) -> None:
        """Register metrics through setup, then block until interrupted"""
        setup(self)
        try:
            self.join()
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down", event_type="client_interrupt")
        finally:
            self.shutdown()

    def shutdown(self, wait: bool = True, flush: bool = True) -> None:
        """Flush what is pending, then stop the scheduler and close the connection"""
        if self._closed:
            return
        self._closed = True
        if self._owns_scheduler:
            self.scheduler.shutdown(wait=wait)
        if flush:
            self.flush_driver.flush()
        self.sender.close()
        logger.info("Metrics client stopped", event_type="client_shutdown")

    def __enter__(self) -> "MetricsClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
