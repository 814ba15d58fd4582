"""
Metric counters, collection and OTLP distribution.
"""

import json

import httpx
import pytest

from pizza_service.services.metrics import (
    AuthMetric,
    HttpMetric,
    MetricCounter,
    Metrics,
    MetricsCollector,
    MetricsDistributor,
    MetricsJob,
    PizzaMetric,
)


class TestMetricCounter:

    def test_operations(self):
        counter = MetricCounter(PizzaMetric)
        counter.inc(PizzaMetric.SOLD)
        counter.inc(PizzaMetric.SOLD)
        counter.dec(PizzaMetric.SOLD)
        counter.add(PizzaMetric.REVENUE, 0.25)
        counter.set(PizzaMetric.CREATION_FAILURE, 5)

        assert counter.get(PizzaMetric.SOLD) == 1
        assert counter.get(PizzaMetric.REVENUE) == 0.25
        assert counter.get(PizzaMetric.CREATION_FAILURE) == 5

        counter.reset()
        assert counter.snapshot() == {"pizzas_sold": 0, "pizzas_failed": 0, "revenue": 0}

    def test_containers_are_independent(self):
        first, second = Metrics(), Metrics()
        first.http.inc(HttpMetric.GET_REQUESTS)
        assert second.http.get(HttpMetric.GET_REQUESTS) == 0


class TestCollector:

    def test_collect_flattens_every_family(self):
        metrics = Metrics()
        metrics.auth.inc(AuthMetric.ACTIVE_USERS)
        metrics.pizza.add(PizzaMetric.REVENUE, 1.5)

        collected = MetricsCollector(metrics).collect()
        assert collected["active_users"] == 1
        assert collected["revenue"] == 1.5
        assert "cpu_usage" in collected
        assert "memory_usage" in collected
        assert "log_success" in collected
        assert 0 <= collected["memory_usage"] <= 100


class TestDistributor:

    def test_payload_shape(self):
        distributor = MetricsDistributor("http://metrics.test", "key", "pizza-test")
        collected = MetricsCollector(Metrics()).collect()
        collected["revenue"] = 2.5
        collected["active_users"] = 3

        payload = distributor.build_payload(collected)
        metrics = {m["name"]: m for m in payload["resourceMetrics"][0]["scopeMetrics"][0]["metrics"]}

        users = metrics["active_users"]["sum"]
        assert users["isMonotonic"] is False
        assert users["aggregationTemporality"] == "AGGREGATION_TEMPORALITY_CUMULATIVE"
        assert users["dataPoints"][0]["asInt"] == 3
        assert users["dataPoints"][0]["attributes"] == [{"key": "source", "value": {"stringValue": "pizza-test"}}]

        assert metrics["revenue"]["sum"]["isMonotonic"] is True
        assert metrics["revenue"]["sum"]["dataPoints"][0]["asDouble"] == 2.5
        assert metrics["pizza_latency"]["unit"] == "ms"
        assert "gauge" in metrics["cpu_usage"]
        assert metrics["memory_usage"]["unit"] == "%"

    async def test_distribute_posts_with_bearer(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            distributor = MetricsDistributor("http://metrics.test/otlp", "key", "pizza-test", client=client)
            assert await distributor.distribute(MetricsCollector(Metrics()).collect())

        assert seen["auth"] == "Bearer key"
        assert "resourceMetrics" in seen["body"]

    async def test_failed_push_is_reported_not_raised(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500, text="boom"))) as client:
            distributor = MetricsDistributor("http://metrics.test/otlp", "key", "pizza-test", client=client)
            assert not await distributor.distribute({})

        def unreachable(request):
            raise httpx.ConnectError("down", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(unreachable)) as client:
            distributor = MetricsDistributor("http://metrics.test/otlp", "key", "pizza-test", client=client)
            assert not await distributor.distribute({})


class TestJob:

    async def test_start_and_stop(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            distributor = MetricsDistributor("http://metrics.test/otlp", "key", "pizza-test", client=client)
            job = MetricsJob(MetricsCollector(Metrics()), distributor, interval=0.01)

            assert await job.run_once()
            job.start()
            assert job.running
            await job.stop()
            assert not job.running

        assert len(calls) >= 1

    @pytest.mark.parametrize("interval", [0.01, 1.0])
    async def test_stop_without_start(self, interval):
        job = MetricsJob(MetricsCollector(Metrics()), MetricsDistributor("http://x", None, "s"), interval=interval)
        await job.stop()
