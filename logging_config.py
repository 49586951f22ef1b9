"""Structured logging configuration for the Graphite metrics client"""
import logging
import os
import sys
from typing import Any, Dict
import structlog
from structlog.stdlib import LoggerFactory
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, TimeStamper, StackInfoRenderer
from config import Config


def setup_structured_logging(config: Config) -> None:
    """Setup structured logging with JSON format for production and console for development"""

    # Configure processors
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        TimeStamper(fmt="iso"),
        StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    # Use JSON renderer for production, console for development
    is_development = os.getenv("ENVIRONMENT", "production").lower() == "development"
    if is_development:
        processors.append(ConsoleRenderer())
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, config.log_level.upper())

    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    handlers.append(console_handler)

    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(config.log_file))
        file_handler.setLevel(level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )

    # Set specific logger levels to reduce noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("fastapi").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)


def get_connection_logger(name: str = "graphite.wire") -> structlog.stdlib.BoundLogger:
    """Logger that receives a trace of every outbound message"""
    return structlog.get_logger(name).bind(event_type="wire_trace")


def log_flush(logger: structlog.stdlib.BoundLogger, samples: int, counters: int, flush_time: float, errors: int = 0) -> None:
    """Log a flush cycle with structured data"""
    logger.info(
        "Metrics flushed",
        samples=samples,
        counters=counters,
        flush_time_seconds=round(flush_time, 3),
        errors=errors,
        event_type="metrics_flush"
    )


def log_client_startup(logger: structlog.stdlib.BoundLogger, config: Config, server: str, prefix: str) -> None:
    """Log client startup with configuration details"""
    logger.info(
        "Metrics client starting up",
        service_name=config.service_name,
        service_version=config.service_version,
        graphite_host=server,
        prefix=prefix,
        flush_interval=config.flush_interval,
        record_policy=config.record_policy.value,
        status_enabled=config.status_enabled,
        event_type="client_startup"
    )


def log_error(logger: structlog.stdlib.BoundLogger, error: BaseException, context: Dict[str, Any] = None) -> None:
    """Log error with structured context"""
    logger.error(
        "Error occurred",
        error=str(error),
        error_type=type(error).__name__,
        context=context or {},
        event_type="error",
        exc_info=error
    )
