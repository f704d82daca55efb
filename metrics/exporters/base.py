"""Base exporter interface and factory"""
import abc
from opentelemetry.sdk.metrics.export import MetricReader
from config import Config
from metrics.models import ExportFormat


class BaseExporter(abc.ABC):
    """Abstract base class for metric exporters

    An exporter owns the OpenTelemetry metric reader that the meter provider
    is built with. Push exporters hand it a periodic reader, pull exporters a
    reader that is collected on demand.
    """

    def __init__(self, config: Config):
        self.config = config

    @property
    @abc.abstractmethod
    def reader(self) -> MetricReader:
        """The metric reader to attach to the meter provider"""
        pass

    @abc.abstractmethod
    def is_healthy(self) -> bool:
        """Check if exporter is healthy"""
        pass

    def export_failed(self) -> bool:
        """Whether the most recent export to the backend failed"""
        return False

    def shutdown(self) -> None:
        """Mark the exporter closed once its reader has been shut down"""
        pass


class ExporterFactory:
    """Factory for creating exporters based on configuration"""

    @staticmethod
    def create_exporter(config: Config) -> BaseExporter:
        """Create an exporter based on the configured export format"""
        if config.export_format == ExportFormat.PROMETHEUS:
            from .prometheus import PrometheusExporter
            return PrometheusExporter(config)
        elif config.export_format == ExportFormat.OTLP:
            from .otlp import OTLPExporter
            return OTLPExporter(config)
        else:
            raise ValueError(f"Unsupported export format: {config.export_format}")
