"""Metric data models"""
from dataclasses import dataclass
from typing import Optional, Sequence
from enum import Enum


class ExportFormat(Enum):
    """How metrics leave the process"""
    PROMETHEUS = "prometheus"
    OTLP = "otlp"


# Bucket boundaries (seconds) for HTTP request durations
REQUEST_DURATION_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0)


@dataclass(frozen=True)
class InstrumentSpec:
    """Name, description and unit of an instrument, plus histogram boundaries"""
    name: str
    description: str
    unit: str = "1"
    boundaries: Optional[Sequence[float]] = None


REQUEST_DURATION = InstrumentSpec(
    name="http.server.request.duration",
    description="A histogram of HTTP request durations.",
    unit="s",
    boundaries=REQUEST_DURATION_BUCKETS,
)
BACKGROUND_RUNS = InstrumentSpec(
    name="background_task.runs",
    description="The total number of background task runs.",
)
BACKGROUND_FAILURES = InstrumentSpec(
    name="background_task.failures",
    description="The total number of background task failures.",
)
BACKGROUND_LAST_RUN = InstrumentSpec(
    name="background_task.last_run_timestamp",
    description="The Unix timestamp in seconds of the last background task run.",
    unit="s",
)
BACKGROUND_LAST_SUCCESS = InstrumentSpec(
    name="background_task.last_success_timestamp",
    description="The Unix timestamp in seconds of the last successful background task run.",
    unit="s",
)

