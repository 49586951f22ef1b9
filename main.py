#!/usr/bin/env python3
"""Standalone runner: register metrics from a definitions callable and feed Graphite"""
import importlib
import sys
from typing import Callable
from config import Config
from app.client import MetricsClient
from app.server import StatusServer
from logging_config import setup_structured_logging, get_logger, log_error


def load_definitions(target: str) -> Callable[[MetricsClient], None]:
    """Import 'package.module:callable'"""
    module_name, _, attr = target.partition(":")
    module = importlib.import_module(module_name)
    definitions = getattr(module, attr)
    if not callable(definitions):
        raise TypeError(f"{target} is not callable")
    return definitions


def main():
    """Main application entry point"""
    status_server = None
    try:
        # Load configuration
        config = Config()

        # Setup structured logging
        setup_structured_logging(config)

        if not config.definitions:
            raise ValueError("DEFINITIONS must point at a callable that registers metrics")
        definitions = load_definitions(config.definitions)

        client = MetricsClient(config=config)

        if config.status_enabled:
            status_server = StatusServer(client)
            status_server.start()

        # Blocks until interrupted
        client.run(definitions)

    except Exception as e:
        logger = get_logger(__name__)
        log_error(logger, e, {"component": "main", "phase": "startup"})
        sys.exit(1)
    finally:
        if status_server is not None:
            status_server.stop()


if __name__ == '__main__':
    main()
