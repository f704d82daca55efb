"""Structured logging configuration for the instrumentation exercise service"""
import logging
import os
import sys
from typing import Any, Dict
import structlog
from structlog.stdlib import LoggerFactory
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, TimeStamper
from config import Config


def setup_structured_logging(config: Config) -> None:
    """Setup structured logging with JSON format for production and console for development"""

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    # Use JSON renderer for production, console for development
    is_development = os.getenv("ENVIRONMENT", "production").lower() == "development"
    if is_development:
        processors.append(ConsoleRenderer())
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, config.log_level.upper())
    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    handlers.append(console_handler)

    if config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(config.log_file))
        file_handler.setLevel(level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=handlers,
        force=True
    )

    # Set specific logger levels to reduce noise
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('opentelemetry').setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)


def log_server_startup(logger: structlog.stdlib.BoundLogger, config: Config) -> None:
    """Log server startup with configuration details"""
    logger.info(
        "Server starting up",
        service_name=config.service_name,
        service_version=config.service_version,
        listen_addr=config.listen_addr,
        export_format=config.export_format.value,
        otlp_endpoint=config.otlp_endpoint if config.is_otlp_format() else None,
        event_type="server_startup"
    )


def log_background_run(logger: structlog.stdlib.BoundLogger, success: bool, timestamp: float, duration: float) -> None:
    """Log the outcome of one background task iteration"""
    if success:
        message = "Background task completed successfully"
    else:
        message = "Background task failed"

    logger.info(
        message,
        success=success,
        timestamp=timestamp,
        duration_seconds=round(duration, 3),
        event_type="background_task_run"
    )


def log_error(logger: structlog.stdlib.BoundLogger, error: Exception, context: Dict[str, Any] = None) -> None:
    """Log error with structured context"""
    logger.error(
        "Error occurred",
        error=str(error),
        error_type=type(error).__name__,
        context=context or {},
        event_type="error",
        exc_info=True
    )
