"""Errors raised by the metrics layer"""


class MetricsError(Exception):
    """Base class for metrics setup and export failures"""


class InstrumentError(MetricsError):
    """An instrument could not be created or registered"""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Failed to create instrument {name!r}: {reason}")
        self.name = name
        self.reason = reason


class ExportError(MetricsError):
    """Buffered metrics could not be flushed or the pipeline failed to close"""
