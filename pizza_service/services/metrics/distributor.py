"""
Metrics Distributor

Pushes collected metrics to an OTLP/HTTP JSON endpoint (for example
Grafana Cloud). Counters go out as cumulative sums and host samples as
gauges, each tagged with the configured ``source``.

A failed push is logged and dropped; the next interval sends fresh
cumulative values anyway.
"""

import logging
import time
from typing import Optional

import httpx

from pizza_service.services.metrics.collector import CollectedMetrics

logger = logging.getLogger(__name__)

CUMULATIVE = "AGGREGATION_TEMPORALITY_CUMULATIVE"

SUMS = [
    "active_users",
    "auth_attempts",
    "auth_attempts_success",
    "auth_attempts_fail",
    "get_requests",
    "put_requests",
    "post_requests",
    "delete_requests",
    "other_requests",
    "server_error",
    "service_latency",
    "pizza_latency",
    "pizzas_sold",
    "pizzas_failed",
    "revenue",
    "log_success",
    "log_failed",
]

GAUGES = ["cpu_usage", "memory_usage"]

# active users goes down on logout
NON_MONOTONIC = {"active_users"}

UNITS = {
    "service_latency": "ms",
    "pizza_latency": "ms",
    "cpu_usage": "%",
    "memory_usage": "%",
}

DOUBLES = {"revenue", "cpu_usage", "memory_usage"}


class MetricsDistributor:
    """
    Sends metric snapshots over HTTP.

    Args:
        url: OTLP metrics endpoint
        api_key: Bearer credential for the endpoint
        source: Value of the ``source`` attribute on every data point
        client: Optional pre-built client, mainly for tests
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str],
        source: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.url = url
        self.api_key = api_key
        self.source = source
        self._client = client
        self._timeout = timeout

    def _data_point(self, name: str, value: float, now_ns: int) -> dict:
        value_key = "asDouble" if name in DOUBLES else "asInt"
        return {
            value_key: float(value) if name in DOUBLES else int(value),
            "timeUnixNano": now_ns,
            "attributes": [{"key": "source", "value": {"stringValue": self.source}}],
        }

    def build_payload(self, collected: CollectedMetrics) -> dict:
        now_ns = time.time_ns()
        metrics = []
        for name in SUMS:
            metrics.append({
                "name": name,
                "unit": UNITS.get(name, "1"),
                "sum": {
                    "dataPoints": [self._data_point(name, collected.get(name, 0), now_ns)],
                    "aggregationTemporality": CUMULATIVE,
                    "isMonotonic": name not in NON_MONOTONIC,
                },
            })
        for name in GAUGES:
            metrics.append({
                "name": name,
                "unit": UNITS.get(name, "1"),
                "gauge": {
                    "dataPoints": [self._data_point(name, collected.get(name, 0), now_ns)],
                },
            })
        return {"resourceMetrics": [{"scopeMetrics": [{"metrics": metrics}]}]}

    async def _post(self, body: dict) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if self._client is not None:
            return await self._client.post(self.url, json=body, headers=headers)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self.url, json=body, headers=headers)

    async def distribute(self, collected: CollectedMetrics) -> bool:
        """Push one snapshot. Returns whether the endpoint accepted it."""
        body = self.build_payload(collected)
        try:
            response = await self._post(body)
        except httpx.HTTPError as e:
            logger.error(f"Error pushing metrics: {e}")
            return False

        if not response.is_success:
            logger.warning(f"Failed to push metrics (HTTP {response.status_code}): {response.text}")
            return False

        logger.debug("Pushed metrics")
        return True
