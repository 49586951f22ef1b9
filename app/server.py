"""FastAPI status server for a running metrics client"""
import threading
import time
from typing import Optional
import uvicorn
from fastapi import FastAPI, HTTPException
from app.client import MetricsClient
from logging_config import get_logger, log_error


logger = get_logger(__name__)


class StatusServer:
    """Health and status endpoints for the process embedding the client"""

    def __init__(self, client: MetricsClient):
        self.client = client
        self.config = client.config
        self.app = FastAPI(
            title="Graphite Feeder",
            version=self.config.service_version,
            docs_url=None,  # Disable docs for security
            redoc_url=None,  # Disable redoc for security
            openapi_url=None  # Disable OpenAPI schema for security
        )
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

        self._setup_routes()

    def _setup_routes(self):
        """Setup FastAPI routes"""

        @self.app.get('/health')
        def health_check():
            """Healthy while flushes keep happening"""
            driver = self.client.flush_driver
            last_flush = driver.last_flush_time or self.client.started_at
            age = time.time() - last_flush
            # Allow for the first flush delay before the first flush has happened
            allowance = self.config.flush_interval * 2 + self.config.flush_first_in
            is_healthy = age < allowance

            health_data = {
                "status": "healthy" if is_healthy else "unhealthy",
                "last_flush_seconds_ago": round(age, 1) if driver.last_flush_time else None,
                "flush_interval": self.config.flush_interval,
                "total_flushes": driver.flush_count,
                "flush_errors": driver.flush_errors,
                "sender_healthy": self.client.sender.is_healthy(),
            }

            if not is_healthy:
                raise HTTPException(status_code=503, detail=health_data)

            return health_data

        @self.app.get('/status')
        def get_status():
            """Detailed status information"""
            return {
                "service": {
                    "name": self.config.service_name,
                    "version": self.config.service_version,
                },
                "client": self.client.status(),
            }

        @self.app.get('/jobs')
        def list_jobs():
            """Jobs known to the scheduler"""
            return {
                "jobs": [job.describe() for job in self.client.scheduler.jobs()],
                "registrations": [
                    {
                        "name": registration.name,
                        "kind": registration.kind.value,
                        "cadence": registration.cadence.describe(),
                    }
                    for registration in self.client.registrar.registrations
                ],
            }

        @self.app.post('/flush')
        def manual_flush():
            """Manually trigger a flush"""
            try:
                report = self.client.flush()
                return {
                    "success": report.errors == 0,
                    "sent": report.sent,
                    "errors": report.errors,
                }
            except Exception as e:
                log_error(logger, e, {"component": "manual_flush", "endpoint": "/flush"})
                raise HTTPException(status_code=500, detail={"error": str(e)})

    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app

    def start(self) -> None:
        """Serve on a daemon thread"""
        server_config = uvicorn.Config(
            self.app,
            host=self.config.status_host,
            port=self.config.status_port,
            log_config=None  # We handle logging ourselves
        )
        self._server = uvicorn.Server(server_config)
        self._thread = threading.Thread(target=self._server.run, name="status-server", daemon=True)
        self._thread.start()
        logger.info("Status server started", host=self.config.status_host, port=self.config.status_port,
                    event_type="status_server_start")

    def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=5)
