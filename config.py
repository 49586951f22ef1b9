"""Configuration for the Graphite metrics client"""
from pathlib import Path
from typing import Literal, Optional, Tuple
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from metrics.models import RecordPolicy

DEFAULT_PORT = 2003


class Config(BaseSettings):
    """Client configuration with Pydantic validation and environment-based settings"""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    # Collector connection
    graphite_host: str = Field(default="localhost:2003", description="Carbon host, optionally host:port")
    graphite_prefix: str = Field(default="app", description="Prefix prepended to every key")
    connect_timeout: float = Field(default=5.0, gt=0, description="TCP connect timeout in seconds")

    # Flush cadence
    flush_interval: int = Field(default=60, ge=1, description="Seconds between flushes")
    flush_first_in: float = Field(default=10.0, ge=0, description="Delay before the first flush")

    # Producer cadence
    metric_interval: int = Field(default=60, ge=1, description="Default interval for register_metric")
    metric_first_in: float = Field(default=60.0, ge=0, description="Warm-up delay before the first firing")
    daily_first_in: float = Field(default=30.0, ge=0, description="Delay before the first daily firing")
    daily_stagger: float = Field(default=10.0, ge=0, description="Extra delay per daily registration")
    daily_hour: int = Field(default=3, ge=0, le=23, description="Hour at which daily metrics run")
    daily_minute: int = Field(default=0, ge=0, le=59, description="Minute at which daily metrics run")

    # Store behaviour
    record_policy: RecordPolicy = Field(default=RecordPolicy.BEST_EFFORT, description="record_many policy")

    # Scheduler
    worker_threads: int = Field(default=10, ge=1, description="Worker threads running producers")

    # Logging
    trace_messages: bool = Field(default=False, description="Log every outbound Graphite message")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file path")

    # Status server
    status_enabled: bool = Field(default=False, description="Serve /health and /status")
    status_host: str = Field(default="127.0.0.1", description="Status server host")
    status_port: int = Field(default=9109, ge=1, le=65535, description="Status server port")

    # Standalone runner
    definitions: Optional[str] = Field(default=None, description="module:callable registering metrics")

    # Service identification
    service_name: str = Field(default="graphite-feeder", description="Service name")
    service_version: str = Field(default="1.0.0", description="Service version")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("graphite_prefix")
    @classmethod
    def validate_prefix(cls, v):
        """Strip stray dots and whitespace from the prefix"""
        v = v.strip().strip(".")
        if not v:
            raise ValueError("GRAPHITE_PREFIX must not be empty")
        return v

    @field_validator("graphite_host")
    @classmethod
    def validate_graphite_host(cls, v):
        """Accept host or host:port"""
        v = v.strip()
        if not v:
            raise ValueError("GRAPHITE_HOST must not be empty")
        host, _, port = v.partition(":")
        if not host:
            raise ValueError("GRAPHITE_HOST is missing a hostname")
        if port and not port.isdigit():
            raise ValueError(f"GRAPHITE_HOST has an invalid port: {port}")
        return v

    @field_validator("log_file")
    @classmethod
    def ensure_log_directory(cls, v):
        if isinstance(v, Path):
            v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("definitions")
    @classmethod
    def validate_definitions(cls, v):
        if v is not None and ":" not in v:
            raise ValueError("DEFINITIONS must look like 'package.module:callable'")
        return v

    def host_and_port(self) -> Tuple[str, int]:
        """Split graphite_host into host and port"""
        return split_host(self.graphite_host)


def split_host(server: str) -> Tuple[str, int]:
    """Split a host[:port] string, falling back to the Carbon plaintext port"""
    host, _, port = server.partition(":")
    return host, int(port) if port else DEFAULT_PORT
