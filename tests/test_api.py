"""Tests for the demo API handlers and the instrumentation wrapper"""
import time
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api import DemoAPI
from metrics.models import REQUEST_DURATION


def route_points(read_points, route):
    return [p for p in read_points(REQUEST_DURATION.name) if p.attributes.get("http.route") == route]


class TestHandlers:
    """Test simulated latency and response bodies"""

    @pytest.mark.asyncio
    async def test_foo_latency_bounds(self, metrics, fake_sleep):
        draws = iter([0.0, 0.999999])
        api = DemoAPI(metrics, rng=lambda: next(draws), sleep=fake_sleep)

        first = await api.foo()
        await api.foo()

        assert first.status_code == 200
        assert first.body == b"Handled foo"
        assert fake_sleep.durations[0] == pytest.approx(0.025)
        assert 0.025 <= fake_sleep.durations[1] < 0.175

    @pytest.mark.asyncio
    async def test_bar_latency_bounds(self, metrics, fake_sleep):
        draws = iter([0.0, 0.999999])
        api = DemoAPI(metrics, rng=lambda: next(draws), sleep=fake_sleep)

        first = await api.bar()
        await api.bar()

        assert first.body == b"Handled bar"
        assert fake_sleep.durations[0] == pytest.approx(0.05)
        assert 0.05 <= fake_sleep.durations[1] < 0.25

    @pytest.mark.asyncio
    async def test_foo_real_latency(self, metrics):
        api = DemoAPI(metrics)

        start = time.perf_counter()
        await api.foo()
        elapsed = time.perf_counter() - start

        # Upper bound leaves room for scheduler jitter
        assert 0.025 <= elapsed < 0.175 + 0.1


class TestInstrumentation:
    """Test the request duration wrapper"""

    @pytest.mark.asyncio
    async def test_records_duration_with_route(self, metrics, read_points, fake_sleep):
        api = DemoAPI(metrics, rng=lambda: 0.5, sleep=fake_sleep)
        wrapped = api.instrument("/api/foo")(api.foo)

        await wrapped()
        await wrapped()

        points = route_points(read_points, "/api/foo")
        assert len(points) == 1
        assert points[0].count == 2
        assert route_points(read_points, "/api/bar") == []

    @pytest.mark.asyncio
    async def test_response_passes_through_unchanged(self, metrics):
        api = DemoAPI(metrics)
        sentinel = object()

        async def handler(value, *, flag):
            assert flag is True
            return value

        wrapped = api.instrument("/custom")(handler)

        assert await wrapped(sentinel, flag=True) is sentinel
        assert wrapped.__name__ == "handler"

    @pytest.mark.asyncio
    async def test_exception_propagates_without_sample(self, metrics, read_points):
        api = DemoAPI(metrics)

        async def broken():
            raise RuntimeError("boom")

        wrapped = api.instrument("/api/broken")(broken)

        with pytest.raises(RuntimeError, match="boom"):
            await wrapped()

        assert route_points(read_points, "/api/broken") == []

    @pytest.mark.asyncio
    async def test_recorded_duration_covers_handler(self, metrics, read_points):
        api = DemoAPI(metrics)

        async def slow():
            time.sleep(0.02)
            return "done"

        await api.instrument("/slow")(slow)()

        point = route_points(read_points, "/slow")[0]
        assert point.sum >= 0.02


class TestRoutes:
    """Test route registration"""

    def setup_method(self):
        self.app = FastAPI()

    def test_foo_and_bar_routes(self, metrics, read_points, fake_sleep):
        DemoAPI(metrics, sleep=fake_sleep).register(self.app)
        client = TestClient(self.app)

        foo = client.get("/api/foo")
        bar = client.get("/api/bar")

        assert foo.status_code == 200
        assert foo.text == "Handled foo"
        assert foo.headers["content-type"].startswith("text/plain")
        assert bar.status_code == 200
        assert bar.text == "Handled bar"
        assert route_points(read_points, "/api/foo")[0].count == 1
        assert route_points(read_points, "/api/bar")[0].count == 1

    def test_any_method_is_accepted(self, metrics, read_points, fake_sleep):
        DemoAPI(metrics, sleep=fake_sleep).register(self.app)
        client = TestClient(self.app)

        assert client.post("/api/foo").text == "Handled foo"
        assert client.put("/api/bar").text == "Handled bar"
        assert client.delete("/api/foo").status_code == 200

        assert route_points(read_points, "/api/foo")[0].count == 2
