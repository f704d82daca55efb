"""Metrics context owning the meter provider and the instruments created on it"""
import re
from typing import Dict, List, Optional, Sequence
from opentelemetry.metrics import Counter, Histogram, _Gauge
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.resources import Resource
from config import Config
from logging_config import get_logger
from .errors import ExportError, InstrumentError
from .exporters.base import BaseExporter, ExporterFactory
from .models import InstrumentSpec


logger = get_logger(__name__)

_INSTRUMENT_NAME = re.compile(r'^[A-Za-z][A-Za-z0-9_.\-/]{0,254}$')


class TimestampGauge:
    """Synchronous gauge that also keeps the last value set for local readers"""

    def __init__(self, gauge: _Gauge):
        self._gauge = gauge
        self._value: Optional[float] = None

    @property
    def value(self) -> Optional[float]:
        return self._value

    def set(self, value: float) -> None:
        self._gauge.set(value)
        self._value = value


class MetricsContext:
    """Explicitly constructed metrics backend, passed to everything that records

    The meter provider is never installed as the global OpenTelemetry
    provider, so several contexts can coexist (tests rely on this).
    """

    def __init__(self, config: Config, exporter: Optional[BaseExporter] = None,
                 extra_readers: Sequence[MetricReader] = ()):
        self.config = config
        self.exporter = exporter or ExporterFactory.create_exporter(config)
        self.instruments: Dict[str, object] = {}
        self._shutdown = False

        readers: List[MetricReader] = [self.exporter.reader, *extra_readers]
        self.meter_provider = MeterProvider(
            resource=Resource.create(config.get_otel_resource_attributes()),
            metric_readers=readers,
            shutdown_on_exit=False,
        )
        self.meter = self.meter_provider.get_meter(config.service_name, config.service_version)

        logger.info(
            "Metrics context created",
            service_name=config.service_name,
            export_format=config.export_format.value,
            readers=len(readers),
            event_type="metrics_setup"
        )

    def create_counter(self, spec: InstrumentSpec) -> Counter:
        self._check_name(spec.name)
        try:
            counter = self.meter.create_counter(
                name=spec.name,
                unit=spec.unit,
                description=spec.description
            )
        except Exception as e:
            raise InstrumentError(spec.name, str(e)) from e
        return self._register(spec, counter, "counter")

    def create_gauge(self, spec: InstrumentSpec) -> TimestampGauge:
        self._check_name(spec.name)
        try:
            gauge = self.meter.create_gauge(
                name=spec.name,
                unit=spec.unit,
                description=spec.description
            )
        except Exception as e:
            raise InstrumentError(spec.name, str(e)) from e
        return self._register(spec, TimestampGauge(gauge), "gauge")

    def create_histogram(self, spec: InstrumentSpec) -> Histogram:
        self._check_name(spec.name)
        if spec.boundaries is not None and list(spec.boundaries) != sorted(set(spec.boundaries)):
            raise InstrumentError(spec.name, "bucket boundaries must be strictly increasing")
        try:
            histogram = self.meter.create_histogram(
                name=spec.name,
                unit=spec.unit,
                description=spec.description,
                explicit_bucket_boundaries_advisory=list(spec.boundaries) if spec.boundaries else None
            )
        except Exception as e:
            raise InstrumentError(spec.name, str(e)) from e
        return self._register(spec, histogram, "histogram")

    def force_flush(self, timeout_millis: float = 10_000) -> None:
        """Flush buffered measurements through every reader

        Raises ExportError if a reader fails, the flush times out, or the
        exporter reports that its latest export did not reach the backend.
        """
        try:
            flushed = self.meter_provider.force_flush(timeout_millis=timeout_millis)
        except Exception as e:
            raise ExportError(f"Failed to flush metrics: {e}") from e
        if flushed is False:
            raise ExportError("Failed to flush metrics: timed out")
        if self.exporter.export_failed():
            raise ExportError("Failed to flush metrics: export to backend failed")

    def shutdown(self, timeout_millis: float = 30_000) -> None:
        """Flush remaining metrics and close the export pipeline

        The pipeline is closed even when the flush fails; the flush error is
        raised afterwards.
        """
        if self._shutdown:
            return
        self._shutdown = True

        logger.info("Shutting down OpenTelemetry", event_type="otel_shutdown")
        try:
            self.force_flush(timeout_millis=timeout_millis)
        finally:
            self._close(timeout_millis)

    def _close(self, timeout_millis: float) -> None:
        try:
            self.meter_provider.shutdown(timeout_millis=timeout_millis)
        except Exception as e:
            raise ExportError(f"Failed to shut down meter provider: {e}") from e
        finally:
            self.exporter.shutdown()

    def _check_name(self, name: str) -> None:
        if not _INSTRUMENT_NAME.match(name):
            raise InstrumentError(name, "invalid instrument name")
        if name in self.instruments:
            raise InstrumentError(name, "instrument already registered")

    def _register(self, spec: InstrumentSpec, instrument, kind: str):
        self.instruments[spec.name] = instrument
        logger.debug("Created OTel instrument", name=spec.name, kind=kind, unit=spec.unit)
        return instrument
