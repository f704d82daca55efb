"""Prometheus pull exporter serving OpenTelemetry metrics in text exposition format"""
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics.export import MetricReader
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, generate_latest
from config import Config
from logging_config import get_logger
from .base import BaseExporter


logger = get_logger(__name__)

CONTENT_TYPE = CONTENT_TYPE_LATEST


class RegistryMetricReader(PrometheusMetricReader):
    """PrometheusMetricReader that publishes into its own collector registry

    The stock reader registers with the process-wide REGISTRY, which would
    merge the output of every metrics context alive in the process.
    """

    def __init__(self, registry: CollectorRegistry):
        super().__init__(disable_target_info=True)
        REGISTRY.unregister(self._collector)
        registry.register(self._collector)
        self.registry = registry

    def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:
        self.registry.unregister(self._collector)


class PrometheusExporter(BaseExporter):
    """Collect metrics on demand and render them for a scrape endpoint"""

    def __init__(self, config: Config):
        super().__init__(config)
        self.registry = CollectorRegistry()
        self._reader = RegistryMetricReader(self.registry)
        self._healthy = True

    @property
    def reader(self) -> MetricReader:
        return self._reader

    def is_healthy(self) -> bool:
        return self._healthy

    def shutdown(self) -> None:
        self._healthy = False
        logger.info("Prometheus exporter shutdown", event_type="prometheus_shutdown")

    def render(self) -> bytes:
        """Collect and render metrics in Prometheus exposition format"""
        output = generate_latest(self.registry)
        logger.debug("Rendered Prometheus metrics", size_bytes=len(output))
        return output
