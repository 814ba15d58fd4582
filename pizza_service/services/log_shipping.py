"""
Log Shipping to Loki

Structured records (those logged with ``extra={"log_type": ...}``) are
rendered as JSON, buffered per level and pushed to a Loki push endpoint
on a fixed interval. Plain application logs stay on stdout only.

Usage:
    logger.info(
        "Pizza factory created pizza(s)",
        extra={"log_type": "factory", "payload": {"response": body}},
    )
"""

import asyncio
import json
import logging
import re
from typing import Optional

import httpx

from pizza_service.core.config import Settings
from pizza_service.services.metrics.types import LoggerMetric, Metrics

logger = logging.getLogger(__name__)

# Loki level label per stdlib level
LEVELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "ERROR",
}

# Streams are sent in this order
STREAM_ORDER = ["DEBUG", "ERROR", "INFO", "WARN"]

_PASSWORD_PATTERN = re.compile(r'"password":\s*"(?:[^"\\]|\\.)*"')


def redact_passwords(line: str) -> str:
    return _PASSWORD_PATTERN.sub('"password": "*****"', line)


class StructuredFormatter(logging.Formatter):
    """Render a record as ``{"type", "message", **payload}`` JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "type": getattr(record, "log_type", "app"),
            "message": record.getMessage(),
        }
        payload = getattr(record, "payload", None)
        if isinstance(payload, dict):
            entry.update(payload)
        return redact_passwords(json.dumps(entry, default=str))


class StructuredRecordFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return hasattr(record, "log_type")


class LokiLogHandler(logging.Handler):
    """
    Buffers formatted records until ``flush_to_sink`` pushes them.

    Each buffered value is ``[timestamp_ns, line]`` with the timestamp
    truncated to whole seconds.
    """

    def __init__(
        self,
        url: str,
        user_id: Optional[str],
        api_key: Optional[str],
        source: str,
        metrics: Metrics,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        super().__init__(level=logging.DEBUG)
        self.url = url
        self.user_id = user_id
        self.api_key = api_key
        self.source = source
        self.metrics = metrics
        self._client = client
        self._timeout = timeout
        self._buffers: dict[str, list[list[str]]] = {level: [] for level in STREAM_ORDER}
        self.setFormatter(StructuredFormatter())
        self.addFilter(StructuredRecordFilter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        level = LEVELS.get(record.levelno, "INFO")
        timestamp = str(int(record.created) * 1_000_000_000)
        self.acquire()
        try:
            self._buffers[level].append([timestamp, line])
        finally:
            self.release()

    def pending(self) -> int:
        return sum(len(values) for values in self._buffers.values())

    def _drain(self) -> list[dict]:
        self.acquire()
        try:
            buffers = self._buffers
            self._buffers = {level: [] for level in STREAM_ORDER}
        finally:
            self.release()
        return [
            {"stream": {"level": level, "source": self.source}, "values": buffers[level]}
            for level in STREAM_ORDER
            if buffers[level]
        ]

    async def _post(self, body: dict) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.user_id}:{self.api_key}"}
        if self._client is not None:
            return await self._client.post(self.url, json=body, headers=headers)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self.url, json=body, headers=headers)

    async def flush_to_sink(self) -> Optional[bool]:
        """
        Push everything buffered so far.

        Returns None when there was nothing to send, otherwise whether the
        sink accepted the batch. Rejected batches are dropped.
        """
        streams = self._drain()
        if not streams:
            return None

        try:
            response = await self._post({"streams": streams})
        except httpx.HTTPError as e:
            self.metrics.logs.inc(LoggerMetric.LOG_FAILED)
            logger.error(f"Error sending logs to Loki: {e}")
            return False

        if not response.is_success:
            self.metrics.logs.inc(LoggerMetric.LOG_FAILED)
            logger.warning(f"Failed to send logs to Loki: HTTP {response.status_code}")
            return False

        self.metrics.logs.inc(LoggerMetric.LOG_SUCCEEDED)
        return True


class LogShipper:
    """Attaches a LokiLogHandler to a logger and flushes it periodically."""

    def __init__(self, handler: LokiLogHandler, interval: float = 5.0, logger_name: str = "pizza_service"):
        self.handler = handler
        self.interval = interval
        self.target = logging.getLogger(logger_name)
        self._task: Optional[asyncio.Task] = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.handler.flush_to_sink()

    def start(self) -> None:
        if self._task is not None:
            return
        self.target.addHandler(self.handler)
        self._task = asyncio.create_task(self._loop())
        logger.info(f"📜 Log shipping started (every {self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.target.removeHandler(self.handler)
        await self.handler.flush_to_sink()
        logger.info("Log shipping stopped")


def create_log_shipper(settings: Settings, metrics: Metrics) -> LogShipper:
    handler = LokiLogHandler(
        url=settings.logging_url,
        user_id=settings.logging_user_id,
        api_key=settings.logging_api_key,
        source=settings.logging_source,
        metrics=metrics,
    )
    return LogShipper(handler, interval=settings.log_flush_interval_seconds)
