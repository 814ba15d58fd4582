"""
Metrics Collector

Samples host CPU and memory into the system counters and flattens every
counter into a single mapping ready for distribution.
"""

import logging
import os

from pizza_service.services.metrics.types import Metrics, SystemMetric

logger = logging.getLogger(__name__)

# Wire name -> value
CollectedMetrics = dict[str, float]


def cpu_usage_percentage() -> float:
    """One-minute load average per CPU, as a percentage."""
    try:
        load = os.getloadavg()[0]
    except OSError:
        return 0.0
    return round(load / (os.cpu_count() or 1), 2) * 100


def memory_usage_percentage() -> float:
    """Share of physical memory in use, as a percentage."""
    try:
        total = os.sysconf("SC_PHYS_PAGES")
        free = os.sysconf("SC_AVPHYS_PAGES")
    except (AttributeError, ValueError, OSError):
        return 0.0
    if total <= 0:
        return 0.0
    return round((total - free) / total * 100, 2)


class MetricsCollector:
    """Snapshots a Metrics container."""

    def __init__(self, metrics: Metrics):
        self.metrics = metrics

    def collect(self) -> CollectedMetrics:
        self.metrics.system.set(SystemMetric.CPU, cpu_usage_percentage())
        self.metrics.system.set(SystemMetric.MEM, memory_usage_percentage())

        collected: CollectedMetrics = {}
        for counter in self.metrics.counters():
            collected.update(counter.snapshot())
        return collected
