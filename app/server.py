"""FastAPI server setup and routes"""
import asyncio
import time
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, HTTPException, Response
from config import Config
from logging_config import get_logger, log_error
from metrics.errors import ExportError
from metrics.exporters.prometheus import CONTENT_TYPE
from metrics.registry import MetricsContext
from .api import DemoAPI
from .background import BackgroundTask
from .middleware import RequestLoggingMiddleware


logger = get_logger(__name__)


class DemoServer:
    """FastAPI server wiring the demo API, the background task and metrics export"""

    def __init__(self, config: Config,
                 metrics: Optional[MetricsContext] = None,
                 api: Optional[DemoAPI] = None,
                 background: Optional[BackgroundTask] = None):
        self.config = config
        self.app = FastAPI(
            title="Instrumentation Exercise",
            version=config.service_version,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=self._lifespan
        )

        # Instruments are created here; an InstrumentError aborts startup
        self.metrics = metrics or MetricsContext(config)
        self.api = api or DemoAPI(self.metrics)
        self.background = background or BackgroundTask(self.metrics)

        self.background_task: Optional[asyncio.Task] = None
        self.stop_event: Optional[asyncio.Event] = None
        self.shutdown_error: Optional[ExportError] = None

        self._setup_middleware()
        self._setup_routes()

    def _setup_middleware(self):
        if self.config.enable_request_logging:
            self.app.add_middleware(RequestLoggingMiddleware)

    def _setup_routes(self):
        self.api.register(self.app)

        if self.config.is_prometheus_format():
            @self.app.get('/metrics', response_class=Response)
            def get_metrics():
                """Serve metrics in Prometheus format"""
                return Response(self.metrics.exporter.render(), media_type=CONTENT_TYPE)

        @self.app.get('/health')
        def health_check():
            """Health check endpoint"""
            last_run = self.background.last_run.value
            health_data = {
                "status": "healthy" if self.background.running else "unhealthy",
                "export_format": self.config.export_format.value,
                "exporter_healthy": self.metrics.exporter.is_healthy(),
                "background_task": {
                    "running": self.background.running,
                    "runs": self.background.runs,
                    "failures": self.background.failures,
                    "last_run_timestamp": last_run,
                    "last_success_timestamp": self.background.last_success.value,
                    "last_run_seconds_ago": round(time.time() - last_run, 1) if last_run else None,
                },
            }

            if not self.background.running:
                raise HTTPException(status_code=503, detail=health_data)

            return health_data

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        """Run the background loop for the lifetime of the application"""
        logger.info(
            "Application startup initiated",
            service_name=self.config.service_name,
            service_version=self.config.service_version,
            export_format=self.config.export_format.value,
            event_type="server_startup"
        )
        self.stop_event = asyncio.Event()
        self.background_task = asyncio.create_task(self.background.run(self.stop_event))

        yield

        logger.info("Shutting down", event_type="server_shutdown")
        await self.stop_background()

        # Unflushed metrics on exit are fatal; main() turns this into a non-zero exit
        try:
            self.metrics.shutdown()
        except ExportError as e:
            log_error(logger, e, {"component": "metrics", "phase": "shutdown"})
            self.shutdown_error = e

    async def stop_background(self):
        """Signal the background loop to stop and wait for it to finish"""
        if self.stop_event:
            self.stop_event.set()
        if self.background_task:
            await self.background_task
            self.background_task = None

    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app
