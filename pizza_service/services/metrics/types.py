"""
Metric families and counters.

Each family is an Enum; a MetricCounter holds one number per member.
The Metrics container groups one counter per family and belongs to an
application context, so tests never share counts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Type, TypeVar, Union


class AuthMetric(str, Enum):
    ACTIVE_USERS = "active_users"
    AUTH_ATTEMPTS = "auth_attempts"
    AUTH_ATTEMPTS_SUCCESS = "auth_attempts_success"
    AUTH_ATTEMPTS_FAIL = "auth_attempts_fail"


class HttpMetric(str, Enum):
    GET_REQUESTS = "get_requests"
    PUT_REQUESTS = "put_requests"
    POST_REQUESTS = "post_requests"
    DELETE_REQUESTS = "delete_requests"
    OTHER_REQUESTS = "other_requests"
    SERVER_ERROR = "server_error"


class LatencyMetric(str, Enum):
    PIZZA_CREATION = "pizza_latency"
    SERVICE_ENDPOINT = "service_latency"


class LoggerMetric(str, Enum):
    LOG_FAILED = "log_failed"
    LOG_SUCCEEDED = "log_success"


class PizzaMetric(str, Enum):
    SOLD = "pizzas_sold"
    CREATION_FAILURE = "pizzas_failed"
    REVENUE = "revenue"


class SystemMetric(str, Enum):
    CPU = "cpu_usage"
    MEM = "memory_usage"


M = TypeVar("M", bound=Enum)
Number = Union[int, float]


class MetricCounter(Generic[M]):
    """One number per member of a metric enum, all starting at zero."""

    def __init__(self, family: Type[M]):
        self.family = family
        self._values: dict[M, Number] = {}
        self.reset()

    def inc(self, metric: M) -> None:
        self._values[metric] += 1

    def dec(self, metric: M) -> None:
        self._values[metric] -= 1

    def add(self, metric: M, amount: Number) -> None:
        self._values[metric] += amount

    def set(self, metric: M, value: Number) -> None:
        self._values[metric] = value

    def get(self, metric: M) -> Number:
        return self._values[metric]

    def reset(self) -> None:
        self._values = {metric: 0 for metric in self.family}

    def snapshot(self) -> dict[str, Number]:
        """Current values keyed by wire name."""
        return {metric.value: value for metric, value in self._values.items()}


@dataclass
class Metrics:
    auth: MetricCounter[AuthMetric] = field(default_factory=lambda: MetricCounter(AuthMetric))
    http: MetricCounter[HttpMetric] = field(default_factory=lambda: MetricCounter(HttpMetric))
    latency: MetricCounter[LatencyMetric] = field(default_factory=lambda: MetricCounter(LatencyMetric))
    logs: MetricCounter[LoggerMetric] = field(default_factory=lambda: MetricCounter(LoggerMetric))
    pizza: MetricCounter[PizzaMetric] = field(default_factory=lambda: MetricCounter(PizzaMetric))
    system: MetricCounter[SystemMetric] = field(default_factory=lambda: MetricCounter(SystemMetric))

    def counters(self) -> list[MetricCounter]:
        return [self.auth, self.http, self.latency, self.logs, self.pizza, self.system]

    def reset(self) -> None:
        for counter in self.counters():
            counter.reset()
