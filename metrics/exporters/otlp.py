"""OTLP push exporter backed by the OpenTelemetry SDK periodic reader"""
from typing import Optional
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter as OTLPMetricHTTPExporter
from opentelemetry.sdk.metrics.export import (
    MetricExporter,
    MetricExportResult,
    MetricReader,
    MetricsData,
    PeriodicExportingMetricReader,
)
from config import Config, EXPORT_INTERVAL_SECONDS
from logging_config import get_logger
from .base import BaseExporter


logger = get_logger(__name__)


class ResultRecordingExporter(MetricExporter):
    """Delegates to a metric exporter and remembers the result of its last export

    The periodic reader logs and discards export results, so a collector
    that is down would otherwise go unnoticed at shutdown.
    """

    def __init__(self, exporter: MetricExporter):
        super().__init__(
            preferred_temporality=exporter._preferred_temporality,
            preferred_aggregation=exporter._preferred_aggregation,
        )
        self.exporter = exporter
        self.last_result: Optional[MetricExportResult] = None
        self.failures = 0

    def export(self, metrics_data: MetricsData, timeout_millis: float = 10_000,
               **kwargs) -> MetricExportResult:
        try:
            result = self.exporter.export(metrics_data, timeout_millis=timeout_millis, **kwargs)
        except Exception:
            self._record(MetricExportResult.FAILURE)
            raise
        self._record(result)
        return result

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return self.exporter.force_flush(timeout_millis=timeout_millis)

    def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:
        self.exporter.shutdown(timeout_millis=timeout_millis, **kwargs)

    def _record(self, result: MetricExportResult) -> None:
        self.last_result = result
        if result == MetricExportResult.FAILURE:
            self.failures += 1
            logger.warning("OTLP export failed", failures=self.failures, event_type="otel_export_failed")


class OTLPExporter(BaseExporter):
    """Push metrics to an OTLP collector every EXPORT_INTERVAL_SECONDS"""

    def __init__(self, config: Config, metric_exporter: Optional[MetricExporter] = None):
        super().__init__(config)
        self.endpoint = config.otlp_endpoint
        self.metric_exporter = ResultRecordingExporter(metric_exporter or self._create_metric_exporter())
        self._reader = PeriodicExportingMetricReader(
            exporter=self.metric_exporter,
            export_interval_millis=EXPORT_INTERVAL_SECONDS * 1000
        )
        self._healthy = True

        logger.info(
            "OTLP exporter configured",
            endpoint=self.endpoint,
            protocol=self.protocol,
            export_interval_seconds=EXPORT_INTERVAL_SECONDS,
            timeout_seconds=config.otlp_timeout,
            event_type="otel_setup"
        )

    @property
    def protocol(self) -> str:
        if self.endpoint.startswith('http://') or self.endpoint.startswith('https://'):
            return "http/protobuf"
        return "grpc"

    def _create_metric_exporter(self) -> MetricExporter:
        # Determine if using HTTP or gRPC based on endpoint
        if self.protocol == "http/protobuf":
            return OTLPMetricHTTPExporter(
                endpoint=self.endpoint,
                headers=self.config.otlp_headers,
                timeout=self.config.otlp_timeout
            )
        return OTLPMetricExporter(
            endpoint=self.endpoint,
            headers=list(self.config.otlp_headers.items()),
            insecure=self.config.otlp_insecure,
            timeout=self.config.otlp_timeout
        )

    @property
    def reader(self) -> MetricReader:
        return self._reader

    def export_failed(self) -> bool:
        return self.metric_exporter.last_result == MetricExportResult.FAILURE

    def is_healthy(self) -> bool:
        return self._healthy and not self.export_failed()

    def shutdown(self) -> None:
        self._healthy = False
        logger.info("OTLP exporter shutdown", endpoint=self.endpoint, event_type="otel_shutdown")
