"""
Metrics: in-process counters plus an optional periodic OTLP push.

Usage:
    from pizza_service.services.metrics import Metrics, PizzaMetric

    metrics = Metrics()
    metrics.pizza.add(PizzaMetric.SOLD, 3)
"""

from pizza_service.core.config import Settings
from pizza_service.services.metrics.collector import CollectedMetrics, MetricsCollector
from pizza_service.services.metrics.distributor import MetricsDistributor
from pizza_service.services.metrics.job import MetricsJob
from pizza_service.services.metrics.types import (
    AuthMetric,
    HttpMetric,
    LatencyMetric,
    LoggerMetric,
    MetricCounter,
    Metrics,
    PizzaMetric,
    SystemMetric,
)


def create_metrics_job(settings: Settings, metrics: Metrics) -> MetricsJob:
    distributor = MetricsDistributor(
        url=settings.metrics_url,
        api_key=settings.metrics_api_key,
        source=settings.metrics_source,
    )
    return MetricsJob(
        MetricsCollector(metrics),
        distributor,
        interval=settings.metrics_interval_seconds,
    )


__all__ = [
    "create_metrics_job",
    "AuthMetric",
    "CollectedMetrics",
    "HttpMetric",
    "LatencyMetric",
    "LoggerMetric",
    "MetricCounter",
    "Metrics",
    "MetricsCollector",
    "MetricsDistributor",
    "MetricsJob",
    "PizzaMetric",
    "SystemMetric",
]
