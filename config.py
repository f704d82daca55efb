"""Configuration for the instrumentation exercise service"""
import socket
from pathlib import Path
from typing import Annotated, Dict, Optional, Tuple
from pydantic import Field, validator
from pydantic_settings import BaseSettings, NoDecode
from metrics.models import ExportFormat


# Fixed by design, not exposed as settings
EXPORT_INTERVAL_SECONDS = 5
BACKGROUND_INTERVAL_SECONDS = 5.0

DEFAULT_OTLP_ENDPOINT = "http://localhost:9090/api/v1/otlp/v1/metrics"


class Config(BaseSettings):
    """Service configuration loaded from environment variables"""

    # Server settings
    listen_addr: str = Field(default=":8080", description="Address to listen on for web requests")

    # Export configuration - mutually exclusive formats
    export_format: ExportFormat = Field(default=ExportFormat.OTLP, description="Export format (prometheus or otlp)")

    # OTLP settings (only used when export_format=OTLP)
    otlp_endpoint: str = Field(default=DEFAULT_OTLP_ENDPOINT, description="OTLP metrics endpoint")
    # Comma-separated k=v pairs rather than JSON
    otlp_headers: Annotated[Dict[str, str], NoDecode] = Field(default_factory=dict, description="OTLP headers")
    otlp_insecure: bool = Field(default=True, description="Use insecure OTLP connection (gRPC only)")
    otlp_timeout: float = Field(default=10.0, description="OTLP export timeout in seconds")

    # Service identification
    service_name: str = Field(default="otel-instrumentation-exercise", description="Service name")
    service_version: str = Field(default="1.0.0", description="Service version")
    instance_id: str = Field(default="", description="Override instance ID")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file")
    enable_request_logging: bool = Field(default=True, description="Enable HTTP request logging")

    class Config:
        env_prefix = ""
        case_sensitive = False

    @validator('otlp_endpoint')
    def validate_otlp_endpoint(cls, v):
        if not v:
            raise ValueError("OTLP_ENDPOINT must not be empty")
        return v

    @validator('otlp_timeout')
    def validate_otlp_timeout(cls, v):
        if v <= 0:
            raise ValueError("OTLP_TIMEOUT must be positive")
        return v

    @validator('otlp_headers', pre=True)
    def parse_otlp_headers(cls, v):
        if isinstance(v, str):
            headers = {}
            if v:
                for header in v.split(','):
                    if '=' in header:
                        key, value = header.split('=', 1)
                        headers[key.strip()] = value.strip()
            return headers
        return v or {}

    @validator('log_level')
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @validator('log_file')
    def ensure_log_directory(cls, v):
        if isinstance(v, Path):
            v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @validator('listen_addr')
    def validate_listen_addr(cls, v):
        parse_listen_addr(v)
        return v

    def is_prometheus_format(self) -> bool:
        return self.export_format == ExportFormat.PROMETHEUS

    def is_otlp_format(self) -> bool:
        return self.export_format == ExportFormat.OTLP

    def get_listen_host_port(self) -> Tuple[str, int]:
        """Get host and port to bind the HTTP server to"""
        return parse_listen_addr(self.listen_addr)

    def get_otel_resource_attributes(self) -> Dict[str, str]:
        """Get OpenTelemetry resource attributes"""
        return {
            "service.name": self.service_name,
            "service.version": self.service_version,
            "service.instance.id": self.instance_id or socket.gethostname(),
        }


def parse_listen_addr(addr: str) -> Tuple[str, int]:
    """Split a ``host:port`` or ``:port`` address; an empty host binds all interfaces"""
    host, sep, port = addr.rpartition(':')
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid listen address: {addr!r}")

    port_number = int(port)
    if not 0 <= port_number <= 65535:
        raise ValueError(f"Invalid listen port: {port_number}")

    # [::1]:8080 style IPv6 literals
    if host.startswith('[') and host.endswith(']'):
        host = host[1:-1]

    return host or "0.0.0.0", port_number
