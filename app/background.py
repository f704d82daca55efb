"""Periodic background task reporting run and failure counts plus timestamps"""
import asyncio
import random
import time
from typing import Awaitable, Callable, Optional
from config import BACKGROUND_INTERVAL_SECONDS
from logging_config import get_logger, log_background_run
from metrics.models import (
    BACKGROUND_FAILURES,
    BACKGROUND_LAST_RUN,
    BACKGROUND_LAST_SUCCESS,
    BACKGROUND_RUNS,
)
from metrics.registry import MetricsContext


logger = get_logger(__name__)

FAILURE_PROBABILITY = 0.3
WORK_DURATION = (1.0, 0.5)


async def simulate_work(rng: Callable[[], float] = random.random,
                        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
    """Sleep for a random duration in [1.0s, 1.5s)"""
    minimum, spread = WORK_DURATION
    await sleep(minimum + rng() * spread)


class BackgroundTask:
    """Batch-job stand-in that runs on a fixed schedule until stopped"""

    def __init__(self, metrics: MetricsContext,
                 work: Optional[Callable[[], Awaitable[None]]] = None,
                 rng: Callable[[], float] = random.random,
                 clock: Callable[[], float] = time.time,
                 interval: float = BACKGROUND_INTERVAL_SECONDS):
        self.total_count = metrics.create_counter(BACKGROUND_RUNS)
        self.failure_count = metrics.create_counter(BACKGROUND_FAILURES)
        self.last_run = metrics.create_gauge(BACKGROUND_LAST_RUN)
        self.last_success = metrics.create_gauge(BACKGROUND_LAST_SUCCESS)

        self.work = work or simulate_work
        self.rng = rng
        self.clock = clock
        self.interval = interval

        self.running = False
        self.runs = 0
        self.failures = 0

    async def run_once(self) -> bool:
        """Run a single iteration and record its outcome; returns True on success"""
        logger.info("Performing background task", event_type="background_task_start")
        started = time.perf_counter()

        await self.work()

        # Captured once: on success last_run and last_success are equal.
        timestamp = self.clock()

        success = self.rng() > FAILURE_PROBABILITY
        if success:
            self.last_success.set(timestamp)
        else:
            self.failure_count.add(1)
            self.failures += 1

        self.total_count.add(1)
        self.last_run.set(timestamp)
        self.runs += 1

        log_background_run(logger, success, timestamp, time.perf_counter() - started)
        return success

    async def run(self, stop: asyncio.Event) -> None:
        """Run iterations on a fixed schedule until ``stop`` is set

        The stop event is only checked between iterations, while waiting for
        the next tick, so an iteration is never abandoned halfway.
        """
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval

        logger.info("Starting background task loop", interval_seconds=self.interval,
                    event_type="background_loop_start")
        self.running = True
        try:
            while True:
                await self.run_once()

                if await self._wait_for_tick(stop, next_tick - loop.time()):
                    break
                # A late tick fires immediately once, then the schedule resumes from now
                next_tick = max(next_tick + self.interval, loop.time())
        finally:
            self.running = False

        logger.info("Background task loop stopped", runs=self.runs, failures=self.failures,
                    event_type="background_loop_stop")

    async def _wait_for_tick(self, stop: asyncio.Event, timeout: float) -> bool:
        """Wait for the next tick or the stop event; returns True if stopped"""
        if stop.is_set():
            return True
        if timeout <= 0:
            return False
        try:
            await asyncio.wait_for(stop.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True
