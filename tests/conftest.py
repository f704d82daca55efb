"""Shared fixtures for the instrumentation exercise tests"""
import pytest
from opentelemetry.sdk.metrics.export import InMemoryMetricReader, MetricExporter, MetricExportResult
from prometheus_client.parser import text_string_to_metric_families

from config import Config
from metrics.errors import ExportError
from metrics.exporters.otlp import OTLPExporter
from metrics.models import ExportFormat
from metrics.registry import MetricsContext


class FailingReader(InMemoryMetricReader):
    """Reader whose collection always fails"""

    def collect(self, timeout_millis: float = 10_000) -> None:
        raise RuntimeError("collector unreachable")

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        raise RuntimeError("collector unreachable")


class StubMetricExporter(MetricExporter):
    """Metric exporter answering with a fixed result instead of contacting a collector"""

    def __init__(self, result=MetricExportResult.SUCCESS):
        super().__init__()
        self.result = result
        self.exports = 0

    def export(self, metrics_data, timeout_millis: float = 10_000, **kwargs) -> MetricExportResult:
        self.exports += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return True

    def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:
        pass


class FakeSleep:
    """Records requested sleep durations instead of sleeping"""

    def __init__(self):
        self.durations = []

    async def __call__(self, seconds):
        self.durations.append(seconds)


@pytest.fixture
def config():
    return Config(export_format=ExportFormat.PROMETHEUS, enable_request_logging=False)


@pytest.fixture
def otlp_config():
    return Config(export_format=ExportFormat.OTLP, enable_request_logging=False)


@pytest.fixture
def reader():
    return InMemoryMetricReader()


@pytest.fixture
def metrics(config, reader):
    context = MetricsContext(config, extra_readers=[reader])
    yield context
    context.shutdown()


@pytest.fixture
def failing_reader():
    return FailingReader()


@pytest.fixture
def otlp_metrics(otlp_config):
    """Return a factory building an OTLP metrics context over a stub exporter"""
    built = []

    def _build(result=MetricExportResult.SUCCESS):
        stub = StubMetricExporter(result)
        context = MetricsContext(otlp_config, exporter=OTLPExporter(otlp_config, metric_exporter=stub))
        built.append(context)
        return context, stub

    yield _build

    for context in built:
        try:
            context.shutdown()
        except ExportError:
            pass


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def read_points(reader):
    """Return a function reading the current data points of a metric by name"""

    def _read(name):
        points = []
        data = reader.get_metrics_data()
        if data is None:
            return points
        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    if metric.name == name:
                        points.extend(metric.data.data_points)
        return points

    return _read


@pytest.fixture
def sample_value():
    """Return a function looking up one sample in a Prometheus scrape

    Samples are matched by name prefix and suffix so the assertions do not
    depend on how unit suffixes are spelled.
    """

    def _find(output, prefix, suffix="", **labels):
        text = output.decode() if isinstance(output, bytes) else output
        for family in text_string_to_metric_families(text):
            for sample in family.samples:
                if sample.name.startswith(prefix) and sample.name.endswith(suffix) \
                        and sample.labels == labels:
                    return sample.value
        return None

    return _find
