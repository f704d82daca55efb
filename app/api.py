"""Demo API handlers with simulated latency and request duration instrumentation"""
import asyncio
import functools
import random
import time
from typing import Awaitable, Callable
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from logging_config import get_logger
from metrics.models import REQUEST_DURATION
from metrics.registry import MetricsContext


logger = get_logger(__name__)

# Go's net/http mux routes every method to a handler
ANY_METHOD = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

FOO_LATENCY = (0.025, 0.150)
BAR_LATENCY = (0.050, 0.200)


class DemoAPI:
    """Two endpoints that simulate work of random duration"""

    def __init__(self, metrics: MetricsContext,
                 rng: Callable[[], float] = random.random,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.request_durations = metrics.create_histogram(REQUEST_DURATION)
        self.rng = rng
        self.sleep = sleep

    def register(self, app: FastAPI) -> None:
        """Register the instrumented handlers on the application"""
        app.add_api_route("/api/foo", self.instrument("/api/foo")(self.foo),
                          methods=ANY_METHOD, response_class=PlainTextResponse)
        app.add_api_route("/api/bar", self.instrument("/api/bar")(self.bar),
                          methods=ANY_METHOD, response_class=PlainTextResponse)

    def instrument(self, route: str):
        """Record the wall-clock duration of each handler call under ``http.route``

        The handler's response is returned untouched. Exceptions propagate
        and leave no sample behind.
        """
        attributes = {"http.route": route}

        def decorator(handler):
            @functools.wraps(handler)
            async def wrapper(*args, **kwargs):
                start = time.perf_counter()

                response = await handler(*args, **kwargs)

                self.request_durations.record(time.perf_counter() - start, attributes=attributes)
                return response
            return wrapper
        return decorator

    async def foo(self) -> PlainTextResponse:
        logger.info("Handling foo")
        await self._simulate(*FOO_LATENCY)
        return PlainTextResponse("Handled foo")

    async def bar(self) -> PlainTextResponse:
        logger.info("Handling bar")
        await self._simulate(*BAR_LATENCY)
        return PlainTextResponse("Handled bar")

    async def _simulate(self, minimum: float, spread: float) -> None:
        # Stand-in for real work: minimum + uniform [0, spread)
        await self.sleep(minimum + self.rng() * spread)
