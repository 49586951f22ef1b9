"""Tests for the FastAPI status server"""
from unittest.mock import patch
from fastapi.testclient import TestClient

from app.client import ClientOptions, MetricsClient
from app.server import StatusServer
from config import Config
from conftest import RecordingSender
from scheduling.manual import ManualScheduler


class TestStatusServer:
    """Status endpoints"""

    def setup_method(self):
        self.config = Config(graphite_host="carbon.test", graphite_prefix="svc", flush_interval=60, flush_first_in=10)
        self.sender = RecordingSender()
        self.scheduler = ManualScheduler()
        self.client = MetricsClient(
            config=self.config,
            options=ClientOptions(custom_sender=self.sender, custom_scheduler=self.scheduler)
        )
        self.server = StatusServer(self.client)
        self.http = TestClient(self.server.get_app())

    def test_health_endpoint_healthy(self):
        """Healthy right after a flush"""
        self.client.flush_driver.last_flush_time = 1234567890
        self.client.flush_driver.flush_count = 10

        with patch('time.time', return_value=1234567890 + 10):
            response = self.http.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["total_flushes"] == 10
        assert data["flush_errors"] == 0

    def test_health_endpoint_unhealthy(self):
        """Unhealthy once flushes stop"""
        self.client.flush_driver.last_flush_time = 1234567890

        with patch('time.time', return_value=1234567890 + 500):
            response = self.http.get("/health")

        assert response.status_code == 503
        assert response.json()["detail"]["status"] == "unhealthy"

    def test_health_allows_two_intervals_plus_first_delay(self):
        """Stale after 2 * flush_interval + flush_first_in seconds"""
        self.client.flush_driver.last_flush_time = 1234567890

        with patch('time.time', return_value=1234567890 + 125):
            assert self.http.get("/health").status_code == 200
        with patch('time.time', return_value=1234567890 + 131):
            assert self.http.get("/health").status_code == 503

    def test_health_before_first_flush(self):
        """A freshly started client is healthy"""
        response = self.http.get("/health")

        assert response.status_code == 200
        assert response.json()["last_flush_seconds_ago"] is None

    def test_status_endpoint(self):
        self.client.increment_counter("hits")

        response = self.http.get("/status")

        assert response.status_code == 200
        data = response.json()
        assert data["service"]["name"] == "graphite-feeder"
        assert data["client"]["prefix"] == "svc"
        assert data["client"]["pending"]["counters"] == 1

    def test_jobs_endpoint(self):
        self.client.register_metric("cpu", lambda: 1, "5m")

        response = self.http.get("/jobs")

        data = response.json()
        assert {job["name"] for job in data["jobs"]} == {"graphite_flush", "cpu"}
        assert data["registrations"] == [{"name": "cpu", "kind": "metric", "cadence": "every 300s"}]

    def test_manual_flush(self):
        self.client.increment_counter("hits", 4)

        response = self.http.post("/flush")

        assert response.status_code == 200
        assert response.json() == {"success": True, "sent": 1, "errors": 0}
        assert self.sender.lines[0][:2] == ("svc.hits", 4.0)
